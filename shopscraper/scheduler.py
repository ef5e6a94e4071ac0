"""
Freshness scheduler: decides on each catalog read whether to refresh.

The in-flight task handle is the only concurrency guard: at most one scrape
runs at a time, callers either wait for it (empty catalog) or return
immediately.
"""
import asyncio
import logging
import os
import time
from typing import Any, Awaitable, Callable, Optional

from .config import Config, config
from .core import run_scrape
from .database import count_catalog_items, db_connect, db_init

logger = logging.getLogger(__name__)


class FreshnessScheduler:
    """
    Single-flight, cooldown-bounded trigger for scrape runs.

    Args:
        run: coroutine function performing one scrape pass.
        count_items: returns how many catalog items currently exist.
        cooldown_s: minimum time between two run starts on the warm path.
        disabled: when true, ``ensure_fresh`` never triggers anything.
        clock: monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        run: Callable[[], Awaitable[Any]],
        count_items: Callable[[], int],
        cooldown_s: Optional[float] = None,
        disabled: Optional[bool] = None,
        clock: Callable[[], float] = time.monotonic,
        cfg: Config = config,
    ):
        self._run = run
        self._count_items = count_items
        self.cooldown_s = cfg.AUTO_REFRESH_COOLDOWN_S if cooldown_s is None else cooldown_s
        self.disabled = cfg.DISABLE_AUTO_SCRAPE if disabled is None else disabled
        self._clock = clock
        self._running: Optional["asyncio.Task[None]"] = None
        self.last_started_at: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self._running is not None

    async def _guarded_run(self):
        try:
            await self._run()
        except Exception:
            logger.exception("Auto scrape failed")
        finally:
            self._running = None

    def _start(self) -> "asyncio.Task[None]":
        if self._running is None:
            self.last_started_at = self._clock()
            logger.info(">>> Starting catalog refresh")
            self._running = asyncio.ensure_future(self._guarded_run())
        return self._running

    def _cooldown_active(self) -> bool:
        if self.last_started_at is None:
            return False
        return self._clock() - self.last_started_at < self.cooldown_s

    async def ensure_fresh(self):
        """
        Refresh the catalog if needed.

        Empty catalog: start (or join) a run and wait for it. Otherwise start
        a background run unless one is in flight or the cooldown is active.
        """
        if self.disabled:
            return

        if self._count_items() == 0:
            await asyncio.shield(self._start())
            return

        if self._running is not None or self._cooldown_active():
            return

        self._start()


async def ensure_catalog_data_fresh(scheduler: FreshnessScheduler):
    """Entry point to call before any catalog read."""
    await scheduler.ensure_fresh()


def build_scheduler(cfg: Config = config) -> FreshnessScheduler:
    """Scheduler wired to the configured database and the full pipeline."""

    def count_items() -> int:
        os.makedirs(os.path.dirname(cfg.DB_PATH) or ".", exist_ok=True)
        conn = db_connect(cfg.DB_PATH)
        try:
            db_init(conn)
            return count_catalog_items(conn)
        finally:
            conn.close()

    return FreshnessScheduler(lambda: run_scrape(cfg=cfg), count_items, cfg=cfg)
