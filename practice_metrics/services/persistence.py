"""
Storage of scored metric records.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from practice_metrics.clients.sqlite_store import SQLiteStore
from practice_metrics.core.errors import PersistenceError, ValidationError
from practice_metrics.models.metrics import DateRange, MetricRecord, ProviderName
from practice_metrics.services.providers import PROVIDERS, KeyPolicy, get_profile

logger = logging.getLogger(__name__)


class MetricPersistence:
    """Write records row by row and read them back by client and date range."""

    def __init__(self, store: SQLiteStore) -> None:
        self._store = store
        self.ensure_tables()

    def ensure_tables(self) -> None:
        for profile in PROVIDERS.values():
            unique = profile.conflict_columns if profile.key_policy is KeyPolicy.UPSERT else ()
            self._store.ensure_table(
                profile.table,
                profile.record_type.column_types(),
                unique=unique,
                indexes=[("client_id", "date")],
            )

    def persist(self, provider: ProviderName, records: Sequence[MetricRecord]) -> int:
        """Score and store ``records``; return how many were written.

        Any incoming ``calculated_score`` is replaced by the provider score of
        the record's own fields.

        Raises:
            PersistenceError: one or more rows failed; carries the stored count
                and each failed row's index, natural key and reason.
        """
        profile = get_profile(provider)
        now = datetime.now(timezone.utc).isoformat()
        stored = 0
        failed: List[Dict[str, Any]] = []

        for index, record in enumerate(records):
            row = record.to_row()
            row["calculated_score"] = profile.score(record)
            row["created_at"] = now
            row["updated_at"] = now
            try:
                if profile.key_policy is KeyPolicy.UPSERT:
                    self._store.upsert_row(
                        profile.table, row, conflict_columns=profile.conflict_columns
                    )
                else:
                    self._store.insert_row(profile.table, row)
            except sqlite3.Error as exc:
                failed.append(
                    {
                        "index": index,
                        "key": {name: row.get(name) for name in profile.conflict_columns},
                        "reason": str(exc),
                    }
                )
                continue
            stored += 1

        if failed:
            logger.error(
                "Stored %s of %s %s records; %s failed",
                stored,
                len(records),
                profile.name.value,
                len(failed),
            )
            raise PersistenceError(
                f"{len(failed)} of {len(records)} {profile.name.value} records could not be stored.",
                stored=stored,
                failed=failed,
                provider=profile.name.value,
            )
        logger.info("Stored %s %s records", stored, profile.name.value)
        return stored

    def load(
        self,
        provider: ProviderName,
        client_id: str,
        date_range: DateRange,
        filters: Optional[Mapping[str, Optional[str]]] = None,
    ) -> List[MetricRecord]:
        """Records for ``client_id`` inside ``date_range``, oldest first."""
        profile = get_profile(provider)
        allowed = profile.filters or {}
        equals: Dict[str, Any] = {}
        contains: Dict[str, str] = {}
        for name, value in (filters or {}).items():
            if value is None or value == "":
                continue
            if name not in allowed:
                raise ValidationError(
                    f"Filter {name!r} is not supported for {profile.name.value}.",
                    provider=profile.name.value,
                )
            column, mode = allowed[name]
            if mode == "contains":
                contains[column] = str(value)
            else:
                equals[column] = value

        rows = self._store.select_range(
            profile.table,
            client_id=client_id,
            start_date=date_range.start.isoformat(),
            end_date=date_range.end.isoformat(),
            equals=equals,
            contains=contains,
        )
        for row in rows:
            row.pop("id", None)
        return [profile.record_type(**row) for row in rows]

    def distinct(self, provider: ProviderName, column: str, client_id: str) -> List[Any]:
        profile = get_profile(provider)
        return self._store.select_distinct(profile.table, column, client_id=client_id)


__all__ = ["MetricPersistence"]
