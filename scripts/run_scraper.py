"""
Run one scraper config once from the CLI and print the result as JSON.
"""

from __future__ import annotations

import argparse
import json

from app.config import configure_logging
from app.scheduler.jobs import ConfigBusyError
from app.scraping.normalization import parse_month_filter
from app.services.scraper_runtime import get_scraper_scheduler
from db.repositories.errors import ScraperConfigNotFoundError


def main() -> int:
    parser = argparse.ArgumentParser(description="Run one scraper config now.")
    parser.add_argument("--config-id", dest="config_id", type=int, required=True, help="Scraper config id.")
    parser.add_argument(
        "--month",
        dest="month",
        default=None,
        help="Optional YYYY-MM month to restrict extraction to.",
    )
    args = parser.parse_args()
    if args.month is not None:
        try:
            parse_month_filter(args.month)
        except ValueError as exc:
            parser.error(str(exc))

    configure_logging()

    try:
        result = get_scraper_scheduler().run_now(args.config_id, month=args.month)
    except (ScraperConfigNotFoundError, ConfigBusyError) as exc:
        print(json.dumps({"error": str(exc)}, indent=2))
        return 2

    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
