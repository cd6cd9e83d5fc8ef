from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler

from .runner import RotationReport


LOGGER = logging.getLogger("file_rotator")


class RotationScheduler:
    """Repeat a rotation pass every *interval_seconds* until stopped.

    The first pass runs immediately.  Each pass re-resolves thresholds and
    re-lists the source directory; a failing pass is logged and the schedule
    keeps going.
    """

    def __init__(
        self,
        *,
        run_pass: Callable[[], RotationReport],
        interval_seconds: int,
        scheduler: BaseScheduler | None = None,
    ):
        self._run_pass = run_pass
        self._interval_seconds = int(interval_seconds)
        self._scheduler = scheduler if scheduler is not None else BlockingScheduler()
        self._running = False
        self.last_report: RotationReport | None = None
        self._scheduler.add_job(
            self.run_once,
            "interval",
            seconds=self._interval_seconds,
            next_run_time=datetime.now(),
            coalesce=True,
            max_instances=1,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        try:
            self._scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            LOGGER.info("[ROTATE]: Interrupted; stopping scheduler")
            self.stop()

    def stop(self) -> None:
        if not self._running:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._running = False

    def run_once(self) -> RotationReport | None:
        try:
            report = self._run_pass()
        except Exception:
            LOGGER.warning("[ROTATE]: Rotation pass failed", exc_info=True)
            return None
        self.last_report = report
        return report
