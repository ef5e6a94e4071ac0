"""
Command line entry point: one-off scrape, confirmed reset, daily daemon, export.
"""
import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timedelta
from typing import Optional

from .config import config
from .core import reset_catalog, run_scrape
from .database import db_connect, db_init
from .export import save_catalog
from .models import ListingUnavailableError, ResetNotConfirmedError
from .utils import init_logger, now_iso

logger = logging.getLogger("shopscraper")


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Forum catalog scraper with SQLite persistence")
    mode = ap.add_mutually_exclusive_group()
    mode.add_argument("--reset", action="store_true",
                      help="Delete all catalog data, then scrape (requires --confirm or CONFIRM_RESET=1)")
    mode.add_argument("--daemon", action="store_true", help="Scrape on start, then daily at --hour")
    mode.add_argument("--export", type=str, default="", metavar="OUT",
                      help="Export the catalog to CSV/XLSX instead of scraping")
    ap.add_argument("--confirm", action="store_true", help="Confirm a destructive --reset")
    ap.add_argument("--hour", type=int, default=config.DAEMON_HOUR, help="Local hour for daemon runs")
    ap.add_argument("--db", type=str, default=config.DB_PATH, help="Path to SQLite DB")
    ap.add_argument("--subreddit", type=str, default=config.SUBREDDIT, help="Source community")
    ap.add_argument("--headed", action="store_true", help="Show the browser when rendering is needed")
    # Logging
    lvl_choices = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    ap.add_argument("--log-level", choices=lvl_choices, default=None,
                    help="Global log level for both console and file (overrides --log-console/--log-file).")
    ap.add_argument("--log-console", choices=lvl_choices, default=os.getenv("LOG_CONSOLE", config.LOG_LEVEL.upper()),
                    help="Console log level (default from env LOG_CONSOLE or LOG_LEVEL).")
    ap.add_argument("--log-file", choices=lvl_choices, default=os.getenv("LOG_FILE", "DEBUG"),
                    help="File log level (default from env LOG_FILE or DEBUG).")
    ap.add_argument("--log-file-path", default=os.getenv("LOG_FILE_PATH", "shopscraper.log"),
                    help="Path to log file (default from env LOG_FILE_PATH or shopscraper.log).")
    ap.add_argument("--no-file-log", action="store_true",
                    help="Disable file logging (only console output).")
    return ap.parse_args(argv)


def seconds_until(hour: int, now: Optional[datetime] = None) -> float:
    """Seconds from ``now`` to the next occurrence of ``hour``:00 local time."""
    now = now or datetime.now()
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


async def run_daemon(hour: int):
    logger.info(f">>> Daemon started - daily at {hour:02d}:00")
    while True:
        logger.info(f">>> Running at {now_iso()}")
        try:
            await run_scrape()
        except Exception:
            logger.exception("Scheduled run failed")
        await asyncio.sleep(seconds_until(hour))


def main(argv=None) -> int:
    args = parse_args(argv)
    eff_console = args.log_level or args.log_console
    eff_file = args.log_level or args.log_file
    init_logger(
        console_level=eff_console,
        file_level=eff_file,
        log_file=None if args.no_file_log else args.log_file_path
    )
    logger.info(
        f"Logger initialized: console={eff_console}, "
        f"file={'DISABLED' if args.no_file_log else eff_file}, "
        f"path={'N/A' if args.no_file_log else args.log_file_path}"
    )

    config.DB_PATH = args.db
    config.SUBREDDIT = args.subreddit
    if args.headed:
        config.HEADLESS = False

    if args.export:
        conn = db_connect(args.db)
        try:
            db_init(conn)
            save_catalog(conn, args.export)
        finally:
            conn.close()
        return 0

    if args.daemon:
        try:
            asyncio.run(run_daemon(args.hour))
        except KeyboardInterrupt:
            logger.info(">>> Daemon stopped")
        return 0

    try:
        if args.reset:
            summary = asyncio.run(reset_catalog(confirmed=args.confirm or config.CONFIRM_RESET))
        else:
            summary = asyncio.run(run_scrape())
    except ResetNotConfirmedError as e:
        logger.error(str(e))
        return 1
    except ListingUnavailableError as e:
        logger.error(f"Scrape failed: {e}")
        return 1

    logger.info(f">>> Summary: {summary.to_dict()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
