"""Google Analytics 4 Data API adapter."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from practice_metrics.clients.providers.base import ProviderAdapter
from practice_metrics.models.metrics import DateRange, ProviderName, RawRows

GA4_METRICS = (
    "newUsers",
    "totalUsers",
    "sessions",
    "engagementRate",
    "keyEvents",
    "averageSessionDuration",
    "bounceRate",
    "screenPageViewsPerSession",
)


class GA4Adapter(ProviderAdapter):
    """Run a daily ``runReport`` against one GA4 property."""

    provider = ProviderName.GA4

    BASE_URL = "https://analyticsdata.googleapis.com/v1beta"
    PAGE_SIZE = 10000

    async def fetch(
        self,
        access_token: str,
        date_range: DateRange,
        *,
        target: Optional[str] = None,
        dimensions: Optional[Sequence[str]] = None,
    ) -> RawRows:
        property_id = self._require_target(target).removeprefix("properties/")
        url = f"{self.BASE_URL}/properties/{property_id}:runReport"
        rows: List[Dict[str, Any]] = []
        offset = 0

        async with self._client() as client:
            while True:
                body = {
                    "dateRanges": [
                        {
                            "startDate": date_range.start.isoformat(),
                            "endDate": date_range.end.isoformat(),
                        }
                    ],
                    "metrics": [{"name": name} for name in GA4_METRICS],
                    "dimensions": [{"name": "date"}],
                    "orderBys": [{"dimension": {"dimensionName": "date"}}],
                    "limit": self.PAGE_SIZE,
                    "offset": offset,
                }
                payload = await self._request_json(
                    client, "POST", url, access_token=access_token, json=body
                )
                page = self._flatten(payload)
                rows.extend(page)
                offset += len(page)
                total = int(payload.get("rowCount") or 0)
                if not page or offset >= total:
                    break

        return RawRows(provider=self.provider, rows=rows, dimensions=("date",))

    @staticmethod
    def _flatten(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Key each row's values by the response's dimension and metric headers."""
        dimension_names = [h.get("name") for h in payload.get("dimensionHeaders", [])]
        metric_names = [h.get("name") for h in payload.get("metricHeaders", [])]
        flattened: List[Dict[str, Any]] = []
        for row in payload.get("rows") or []:
            item: Dict[str, Any] = {}
            for name, value in zip(dimension_names, row.get("dimensionValues", [])):
                item[name] = value.get("value")
            for name, value in zip(metric_names, row.get("metricValues", [])):
                item[name] = value.get("value")
            flattened.append(item)
        return flattened


__all__ = ["GA4Adapter", "GA4_METRICS"]
