"""Pull provider metrics for one client from the command line.

Runs the same fetch-and-store path as ``POST /api/metrics/{provider}/fetch``,
for one or more providers concurrently, and prints a JSON summary.

Example usages::

    # Yesterday's GA4 and Clarity data for a client.
    python -m scripts.fetch_metrics --client-id practice-42 \
        --provider ga4 --provider clarity

    # A fixed window for every provider.
    python -m scripts.fetch_metrics --client-id practice-42 --all \
        --start-date 2024-05-01 --end-date 2024-05-31
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import date, timedelta

from practice_metrics.core.config import get_settings
from practice_metrics.core.errors import MetricsEngineError
from practice_metrics.core.logging import configure_logging
from practice_metrics.dependencies import get_metrics_service
from practice_metrics.models.metrics import DateRange, ProviderName

EXIT_OK = 0
EXIT_PROVIDER_ERROR = 1
EXIT_VALIDATION_ERROR = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fetch, score and store provider metrics for a client."
    )
    parser.add_argument("--client-id", required=True, help="Client practice identifier.")
    providers = parser.add_mutually_exclusive_group(required=True)
    providers.add_argument(
        "--provider",
        action="append",
        choices=[member.value for member in ProviderName],
        help="Provider to fetch; repeat for several.",
    )
    providers.add_argument(
        "--all", action="store_true", help="Fetch every provider."
    )
    yesterday = (date.today() - timedelta(days=1)).isoformat()
    parser.add_argument(
        "--start-date",
        default=yesterday,
        help="First day to fetch, YYYY-MM-DD (default: yesterday).",
    )
    parser.add_argument(
        "--end-date",
        default=yesterday,
        help="Last day to fetch, YYYY-MM-DD (default: yesterday).",
    )
    return parser


async def _run(client_id: str, providers: list[str], date_range: DateRange) -> list[dict]:
    service = get_metrics_service()
    results = await service.fetch_and_store_many(client_id, providers, date_range)
    return [result.model_dump() for result in results]


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(get_settings().log_level)

    providers = [member.value for member in ProviderName] if args.all else args.provider
    try:
        date_range = DateRange.parse(args.start_date, args.end_date)
    except MetricsEngineError as exc:
        print(exc.message, file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    results = asyncio.run(_run(args.client_id, providers, date_range))
    print(json.dumps(results, indent=2))
    if any(result["error"] for result in results):
        return EXIT_PROVIDER_ERROR
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
