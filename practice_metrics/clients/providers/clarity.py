"""Microsoft Clarity Data Export adapter."""

from __future__ import annotations

import datetime as dt
from typing import Any, Callable, Dict, List, Optional, Sequence

from practice_metrics.clients.providers.base import ProviderAdapter
from practice_metrics.core.errors import ValidationError
from practice_metrics.models.metrics import DateRange, ProviderName, RawRows

# The export endpoint only covers the trailing 1-3 days.
MAX_EXPORT_DAYS = 3


def _utc_today() -> dt.date:
    return dt.datetime.now(dt.timezone.utc).date()


class ClarityAdapter(ProviderAdapter):
    """Read project live insights with a project-scoped bearer token."""

    provider = ProviderName.CLARITY
    requires_target = False

    def __init__(
        self,
        *,
        base_url: str = "https://www.clarity.ms/export-data/api/v1",
        today: Optional[Callable[[], dt.date]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._base_url = base_url.rstrip("/")
        self._today = today or _utc_today

    def export_window(self) -> DateRange:
        """The days the live-insights export can still report on."""
        today = self._today()
        return DateRange(today - dt.timedelta(days=MAX_EXPORT_DAYS), today)

    async def fetch(
        self,
        access_token: str,
        date_range: DateRange,
        *,
        target: Optional[str] = None,
        dimensions: Optional[Sequence[str]] = None,
    ) -> RawRows:
        window = self.export_window()
        if date_range.end not in window:
            raise ValidationError(
                f"Clarity only exports the last {MAX_EXPORT_DAYS} days; end_date must be "
                f"between {window.start.isoformat()} and {window.end.isoformat()}.",
                provider=self.provider.value,
            )
        num_days = min(max(date_range.days, 1), MAX_EXPORT_DAYS)
        async with self._client() as client:
            payload = await self._request_json(
                client,
                "GET",
                f"{self._base_url}/project-live-insights",
                access_token=access_token,
                params={"numOfDays": num_days},
            )

        rows: List[Dict[str, Any]] = []
        # Insights are a trailing-window summary; they are attributed to the range end.
        report_date = date_range.end.isoformat()
        for block in payload if isinstance(payload, list) else []:
            metric = block.get("metricName")
            if not metric:
                continue
            information = block.get("information") or [{}]
            row: Dict[str, Any] = {"date": report_date, "metric": metric}
            row.update(information[0])
            rows.append(row)
        return RawRows(provider=self.provider, rows=rows, dimensions=("date",))


__all__ = ["ClarityAdapter", "MAX_EXPORT_DAYS"]
