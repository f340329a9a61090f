"""
Run the scraper scheduler in the foreground without the HTTP API.
"""

from __future__ import annotations

import logging
import signal
import threading

from app.config import configure_logging, get_scheduler_settings
from app.scheduler.jobs import build_scheduler
from app.services.scraper_runtime import get_scraper_scheduler

logger = logging.getLogger("run_scheduler")


def main() -> int:
    configure_logging()

    settings = get_scheduler_settings()
    scraper_scheduler = get_scraper_scheduler()
    scheduler = build_scheduler(scraper_scheduler, settings)

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    scheduler.start()
    logger.info("Scheduler running, tick every %ds with %d workers", settings.tick_seconds, settings.max_workers)
    try:
        stop.wait()
    finally:
        scheduler.shutdown(wait=True)
        scraper_scheduler.shutdown(wait=True)
        logger.info("Scheduler shut down")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
