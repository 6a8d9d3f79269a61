"""Google Search Console ``searchAnalytics.query`` adapter."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

from practice_metrics.clients.providers.base import ProviderAdapter
from practice_metrics.core.errors import ValidationError
from practice_metrics.models.metrics import DateRange, ProviderName, RawRows

ALLOWED_DIMENSIONS = ("query", "page", "device", "country")
DEFAULT_DIMENSIONS = ("query", "page", "device")


class SearchConsoleAdapter(ProviderAdapter):
    """Query daily search analytics broken down by query/page/device/country."""

    provider = ProviderName.GSC

    BASE_URL = "https://searchconsole.googleapis.com/webmasters/v3"
    ROW_LIMIT = 25000

    @staticmethod
    def resolve_dimensions(dimensions: Optional[Sequence[str]]) -> Tuple[str, ...]:
        if not dimensions:
            return DEFAULT_DIMENSIONS
        resolved: List[str] = []
        for name in dimensions:
            key = name.strip().lower()
            if key not in ALLOWED_DIMENSIONS:
                raise ValidationError(
                    f"Unsupported search console dimension {name!r}; "
                    f"allowed: {', '.join(ALLOWED_DIMENSIONS)}.",
                    provider=ProviderName.GSC.value,
                )
            if key not in resolved:
                resolved.append(key)
        return tuple(resolved)

    async def fetch(
        self,
        access_token: str,
        date_range: DateRange,
        *,
        target: Optional[str] = None,
        dimensions: Optional[Sequence[str]] = None,
    ) -> RawRows:
        site_url = self._require_target(target)
        breakdown = self.resolve_dimensions(dimensions)
        keys = ("date",) + breakdown
        url = f"{self.BASE_URL}/sites/{quote(site_url, safe='')}/searchAnalytics/query"
        rows: List[Dict[str, Any]] = []
        start_row = 0

        async with self._client() as client:
            while True:
                body = {
                    "startDate": date_range.start.isoformat(),
                    "endDate": date_range.end.isoformat(),
                    "dimensions": list(keys),
                    "rowLimit": self.ROW_LIMIT,
                    "startRow": start_row,
                }
                payload = await self._request_json(
                    client, "POST", url, access_token=access_token, json=body
                )
                page = payload.get("rows") or []
                for row in page:
                    item: Dict[str, Any] = dict(zip(keys, row.get("keys", [])))
                    for metric in ("clicks", "impressions", "ctr", "position"):
                        item[metric] = row.get(metric)
                    rows.append(item)
                if len(page) < self.ROW_LIMIT:
                    break
                start_row += len(page)

        return RawRows(provider=self.provider, rows=rows, dimensions=keys)


__all__ = ["ALLOWED_DIMENSIONS", "DEFAULT_DIMENSIONS", "SearchConsoleAdapter"]
