"""Tests for the command-line metrics fetch script."""

from __future__ import annotations

import json

import pytest

from practice_metrics.schemas import FetchResult
from scripts import fetch_metrics


class StubService:
    def __init__(self, failing: set[str] | None = None) -> None:
        self.failing = failing or set()
        self.calls: list[tuple] = []

    async def fetch_and_store_many(self, client_id, providers, date_range):
        self.calls.append((client_id, list(providers), date_range))
        return [
            FetchResult(
                provider=provider,
                records_stored=0 if provider in self.failing else date_range.days,
                error={"error": "provider_unavailable"} if provider in self.failing else None,
            )
            for provider in providers
        ]


def _use(monkeypatch: pytest.MonkeyPatch, service: StubService) -> None:
    monkeypatch.setattr(fetch_metrics, "get_metrics_service", lambda: service)


def test_fetches_requested_providers(monkeypatch, capsys) -> None:
    service = StubService()
    _use(monkeypatch, service)

    exit_code = fetch_metrics.main(
        [
            "--client-id",
            "practice-1",
            "--provider",
            "ga4",
            "--provider",
            "clarity",
            "--start-date",
            "2024-05-01",
            "--end-date",
            "2024-05-07",
        ]
    )

    assert exit_code == fetch_metrics.EXIT_OK
    client_id, providers, date_range = service.calls[0]
    assert (client_id, providers, date_range.days) == ("practice-1", ["ga4", "clarity"], 7)
    printed = json.loads(capsys.readouterr().out)
    assert [item["records_stored"] for item in printed] == [7, 7]


def test_all_flag_covers_every_provider_and_reports_failures(monkeypatch) -> None:
    service = StubService(failing={"gbp"})
    _use(monkeypatch, service)

    exit_code = fetch_metrics.main(["--client-id", "practice-1", "--all"])

    assert exit_code == fetch_metrics.EXIT_PROVIDER_ERROR
    assert service.calls[0][1] == ["ga4", "gsc", "gbp", "clarity"]
    assert service.calls[0][2].days == 1


def test_reversed_range_is_rejected_without_fetching(monkeypatch, capsys) -> None:
    service = StubService()
    _use(monkeypatch, service)

    exit_code = fetch_metrics.main(
        [
            "--client-id",
            "practice-1",
            "--all",
            "--start-date",
            "2024-05-07",
            "--end-date",
            "2024-05-01",
        ]
    )

    assert exit_code == fetch_metrics.EXIT_VALIDATION_ERROR
    assert service.calls == []
    assert "after end_date" in capsys.readouterr().err
