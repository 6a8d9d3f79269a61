"""
Google Business Profile adapter.

Daily views and actions come from the Business Profile Performance API.
Reviews, local posts and media come from the v4 My Business API, which only
reports current totals plus item creation times; totals are emitted as
undated snapshot rows and creation times as per-day events.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from practice_metrics.clients.providers.base import ProviderAdapter
from practice_metrics.models.metrics import DateRange, ProviderName, RawRows

DAILY_METRICS = (
    "BUSINESS_IMPRESSIONS_DESKTOP_MAPS",
    "BUSINESS_IMPRESSIONS_DESKTOP_SEARCH",
    "BUSINESS_IMPRESSIONS_MOBILE_MAPS",
    "BUSINESS_IMPRESSIONS_MOBILE_SEARCH",
    "CALL_CLICKS",
    "WEBSITE_CLICKS",
    "BUSINESS_DIRECTION_REQUESTS",
)


def _created_on(item: Dict[str, Any]) -> Optional[dt.date]:
    raw = item.get("createTime")
    if not raw:
        return None
    try:
        return dt.date.fromisoformat(str(raw)[:10])
    except ValueError:
        return None


class BusinessProfileAdapter(ProviderAdapter):
    """Collect per-location daily activity for a Business Profile account."""

    provider = ProviderName.GBP

    PERFORMANCE_URL = "https://businessprofileperformance.googleapis.com/v1"
    INFORMATION_URL = "https://mybusinessbusinessinformation.googleapis.com/v1"
    LEGACY_URL = "https://mybusiness.googleapis.com/v4"
    PAGE_SIZE = 100

    async def fetch(
        self,
        access_token: str,
        date_range: DateRange,
        *,
        target: Optional[str] = None,
        dimensions: Optional[Sequence[str]] = None,
    ) -> RawRows:
        account = self._require_target(target)
        if not account.startswith("accounts/"):
            account = f"accounts/{account}"
        rows: List[Dict[str, Any]] = []

        async with self._client() as client:
            locations = await self._resolve_locations(
                client, access_token, account, dimensions
            )
            for location, title in locations:
                rows.extend(
                    await self._daily_metrics(client, access_token, location, title, date_range)
                )
                rows.extend(
                    await self._reviews(client, access_token, account, location, title, date_range)
                )
                rows.extend(
                    await self._posts(client, access_token, account, location, title, date_range)
                )
                rows.extend(
                    await self._media(client, access_token, account, location, title, date_range)
                )

        return RawRows(provider=self.provider, rows=rows, dimensions=("location",))

    async def _resolve_locations(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        account: str,
        requested: Optional[Sequence[str]],
    ) -> List[Tuple[str, str]]:
        """Return (resource name, display title) pairs to collect."""
        if requested:
            resolved = []
            for name in requested:
                resource = name if name.startswith("locations/") else f"locations/{name}"
                # Key rows by display title, as for listed locations.
                payload = await self._request_json(
                    client,
                    "GET",
                    f"{self.INFORMATION_URL}/{resource}",
                    access_token=access_token,
                    params={"readMask": "name,title"},
                )
                resolved.append((resource, payload.get("title") or resource))
            return resolved

        locations: List[Tuple[str, str]] = []
        page_token: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"readMask": "name,title", "pageSize": self.PAGE_SIZE}
            if page_token:
                params["pageToken"] = page_token
            payload = await self._request_json(
                client,
                "GET",
                f"{self.INFORMATION_URL}/{account}/locations",
                access_token=access_token,
                params=params,
            )
            for item in payload.get("locations") or []:
                name = item.get("name")
                if name:
                    locations.append((name, item.get("title") or name))
            page_token = payload.get("nextPageToken")
            if not page_token:
                return locations

    async def _daily_metrics(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        location: str,
        title: str,
        date_range: DateRange,
    ) -> List[Dict[str, Any]]:
        params: List[Tuple[str, Any]] = [("dailyMetrics", name) for name in DAILY_METRICS]
        for prefix, day in (("start_date", date_range.start), ("end_date", date_range.end)):
            params.extend(
                [
                    (f"dailyRange.{prefix}.year", day.year),
                    (f"dailyRange.{prefix}.month", day.month),
                    (f"dailyRange.{prefix}.day", day.day),
                ]
            )
        payload = await self._request_json(
            client,
            "GET",
            f"{self.PERFORMANCE_URL}/{location}:fetchMultiDailyMetricsTimeSeries",
            access_token=access_token,
            params=params,
        )

        rows: List[Dict[str, Any]] = []
        for group in payload.get("multiDailyMetricTimeSeries") or []:
            for series in group.get("dailyMetricTimeSeries") or []:
                metric = series.get("dailyMetric")
                dated_values = (series.get("timeSeries") or {}).get("datedValues") or []
                for point in dated_values:
                    day = point.get("date") or {}
                    try:
                        date = dt.date(int(day["year"]), int(day["month"]), int(day["day"]))
                    except (KeyError, TypeError, ValueError):
                        continue
                    rows.append(
                        {
                            "location": title,
                            "date": date.isoformat(),
                            "metric": metric,
                            # Zero-valued days omit ``value``.
                            "value": point.get("value", 0),
                        }
                    )
        return rows

    async def _reviews(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        account: str,
        location: str,
        title: str,
        date_range: DateRange,
    ) -> List[Dict[str, Any]]:
        url = f"{self.LEGACY_URL}/{account}/{location}/reviews"
        rows: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        snapshot: Dict[str, Any] = {}
        while True:
            params: Dict[str, Any] = {"pageSize": 50, "orderBy": "updateTime desc"}
            if page_token:
                params["pageToken"] = page_token
            payload = await self._request_json(
                client, "GET", url, access_token=access_token, params=params
            )
            if not snapshot:
                snapshot = payload
            reviews = payload.get("reviews") or []
            rows.extend(self._dated_events(reviews, "REVIEW_CREATED", title, date_range))
            page_token = payload.get("nextPageToken")
            oldest = _created_on(reviews[-1]) if reviews else None
            # Newest first: stop once a page reaches before the range.
            if not page_token or (oldest is not None and oldest < date_range.start):
                break

        rows.append(self._snapshot(title, "AVERAGE_RATING", snapshot.get("averageRating")))
        rows.append(self._snapshot(title, "TOTAL_REVIEWS", snapshot.get("totalReviewCount")))
        return rows

    async def _paged_items(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        url: str,
        items_key: str,
    ) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        """Follow ``nextPageToken``; return every item and the first page."""
        items: List[Dict[str, Any]] = []
        first_page: Dict[str, Any] = {}
        page_token: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"pageSize": self.PAGE_SIZE}
            if page_token:
                params["pageToken"] = page_token
            payload = await self._request_json(
                client, "GET", url, access_token=access_token, params=params
            )
            if not first_page:
                first_page = payload
            items.extend(payload.get(items_key) or [])
            page_token = payload.get("nextPageToken")
            if not page_token:
                return items, first_page

    async def _posts(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        account: str,
        location: str,
        title: str,
        date_range: DateRange,
    ) -> List[Dict[str, Any]]:
        posts, _ = await self._paged_items(
            client,
            access_token,
            f"{self.LEGACY_URL}/{account}/{location}/localPosts",
            "localPosts",
        )
        return self._dated_events(posts, "POST_CREATED", title, date_range)

    async def _media(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        account: str,
        location: str,
        title: str,
        date_range: DateRange,
    ) -> List[Dict[str, Any]]:
        media, first_page = await self._paged_items(
            client,
            access_token,
            f"{self.LEGACY_URL}/{account}/{location}/media",
            "mediaItems",
        )
        photos = [item for item in media if item.get("mediaFormat", "PHOTO") == "PHOTO"]
        rows = self._dated_events(photos, "PHOTO_CREATED", title, date_range)
        rows.append(self._snapshot(title, "TOTAL_PHOTOS", first_page.get("totalMediaItemCount")))
        return rows

    @staticmethod
    def _dated_events(
        items: Sequence[Dict[str, Any]], metric: str, title: str, date_range: DateRange
    ) -> List[Dict[str, Any]]:
        rows = []
        for item in items:
            created = _created_on(item)
            if created is not None and created in date_range:
                rows.append(
                    {"location": title, "date": created.isoformat(), "metric": metric, "value": 1}
                )
        return rows

    @staticmethod
    def _snapshot(title: str, metric: str, value: Any) -> Dict[str, Any]:
        return {"location": title, "date": None, "metric": metric, "value": value}


__all__ = ["BusinessProfileAdapter", "DAILY_METRICS"]
