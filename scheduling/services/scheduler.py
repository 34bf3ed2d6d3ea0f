"""
In-process scheduler for the lifecycle tasks.

:class:`SchedulerService` owns a list of :class:`ScheduledTask` entries and
a single worker thread.  Fire times come from ``arq.cron.next_cron`` so the
schedules read like the cron jobs of an arq worker.  Every run is wrapped
in a ``tenacity`` retry; a task that still fails is logged and recorded in
its status, and the loop moves on to the next due task.

The service is built explicitly.  ``SchedulingConfig.ready`` starts the
process-wide instance from :func:`get_scheduler` when ``SCHEDULER_ENABLED``
is set, and the ``run_scheduler`` command runs it in the foreground.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any, Callable, Dict, List, Optional, Union
from zoneinfo import ZoneInfo

from arq.cron import next_cron
from django.conf import settings
from django.db import close_old_connections
from tenacity import RetryCallState, retry, stop_after_attempt, stop_when_event_set, wait_exponential

from scheduling.exceptions import InvalidInput
from scheduling.services import lifecycle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CronSchedule:
    """Subset of cron: fixed minute, optional hour and weekday (Monday is 0)."""
    minute: int = 0
    hour: Optional[int] = None
    weekday: Optional[int] = None

    def next_after(self, moment: datetime) -> datetime:
        return next_cron(
            moment,
            weekday=self.weekday,
            hour=self.hour,
            minute=self.minute,
            second=0,
            microsecond=0,
        )

    def __str__(self) -> str:
        hour = '*' if self.hour is None else str(self.hour)
        # cron counts Sunday as 0
        weekday = '*' if self.weekday is None else str((self.weekday + 1) % 7)
        return f"{self.minute} {hour} * * {weekday}"


@dataclass
class ScheduledTask:
    name: str
    schedule: CronSchedule
    task: Callable[[], Any]
    description: str = ''
    running: bool = False
    last_run: Optional[datetime] = None
    last_outcome: Any = None
    last_error: Optional[str] = None
    next_run: Optional[datetime] = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def as_status(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'schedule': str(self.schedule),
            'running': self.running,
            'lastRun': self.last_run.isoformat() if self.last_run else None,
            'lastOutcome': self.last_outcome,
            'lastError': self.last_error,
            'nextRun': self.next_run.isoformat() if self.next_run else None,
        }


def default_tasks() -> List[ScheduledTask]:
    return [
        ScheduledTask(
            'appointmentCleanup', CronSchedule(minute=0, hour=0),
            lifecycle.mark_missed_appointments,
            "Marks booked appointments as missed after end of day",
        ),
        ScheduledTask(
            'dailyStats', CronSchedule(minute=0, hour=6),
            lifecycle.generate_daily_statistics,
            "Generates daily appointment statistics",
        ),
        ScheduledTask(
            'weeklyCleanup', CronSchedule(minute=0, hour=2, weekday=6),
            lifecycle.perform_weekly_cleanup,
            "Cleans up old statistics and counts inactive patients",
        ),
        ScheduledTask(
            'reminders', CronSchedule(minute=0),
            lifecycle.process_reminders,
            "Selects appointments due for a reminder",
        ),
    ]


def _log_before_sleep(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Task attempt %s failed (%s: %s), retrying",
        retry_state.attempt_number, type(exc).__name__, exc,
    )


class SchedulerService:
    def __init__(
        self,
        tasks: Optional[List[ScheduledTask]] = None,
        tz: Union[str, tzinfo, None] = None,
        retries: Optional[int] = None,
        retry_wait: float = 2,
    ) -> None:
        self.tasks: Dict[str, ScheduledTask] = {}
        for task in (tasks if tasks is not None else default_tasks()):
            if task.name in self.tasks:
                raise ValueError(f"duplicate task name {task.name!r}")
            self.tasks[task.name] = task
        tz = tz or settings.SCHEDULER_TIMEZONE
        self.tz = ZoneInfo(tz) if isinstance(tz, str) else tz
        self.retries = settings.SCHEDULER_TASK_RETRIES if retries is None else retries
        self.retry_wait = retry_wait
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def now(self) -> datetime:
        return datetime.now(self.tz)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            if not self._stop.is_set():
                return
            # previous loop is still finishing a task
            self._thread.join()
        self._stop.clear()
        now = self.now()
        for task in self.tasks.values():
            task.next_run = task.schedule.next_after(now)
            logger.info("Scheduled task '%s' (%s), next run %s", task.name, task.schedule, task.next_run)
        self._thread = threading.Thread(target=self._loop, name='scheduling-scheduler', daemon=True)
        self._thread.start()
        logger.info("Scheduler started with %s tasks", len(self.tasks))

    def stop(self, timeout: Optional[float] = 5) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                # handle is kept so start() waits for this loop to exit
                logger.warning("Scheduler thread still finishing a task after %ss", timeout)
            else:
                self._thread = None
        for task in self.tasks.values():
            task.next_run = None
        logger.info("Scheduler stopped")

    def wait(self) -> None:
        """Block until :meth:`stop` is called from another thread or a signal handler."""
        while self.is_running:
            self._stop.wait(1)

    def status(self) -> List[Dict[str, Any]]:
        return [task.as_status() for task in self.tasks.values()]

    def get(self, name: str) -> ScheduledTask:
        try:
            return self.tasks[name]
        except KeyError:
            raise InvalidInput(f"Unknown task {name!r}", tasks=sorted(self.tasks)) from None

    def run_now(self, name: str) -> Dict[str, Any]:
        """Run one task immediately in the calling thread and return its status."""
        task = self.get(name)
        self._execute(task)
        return task.as_status()

    def _call_with_retry(self, task: ScheduledTask, interruptible: bool = False) -> Any:
        # loop runs give up retrying as soon as stop() is called
        stop = stop_after_attempt(self.retries + 1)
        if interruptible:
            stop = stop | stop_when_event_set(self._stop)
        decorated = retry(
            stop=stop,
            wait=wait_exponential(multiplier=self.retry_wait, max=60),
            sleep=self._stop.wait if interruptible else time.sleep,
            before_sleep=_log_before_sleep,
            reraise=True,
        )(task.task)
        return decorated()

    def _execute(self, task: ScheduledTask, interruptible: bool = False) -> None:
        if not task.lock.acquire(blocking=False):
            logger.warning("Task '%s' is already running, skipping", task.name)
            return
        task.running = True
        started = self.now()
        logger.info("Running task '%s'", task.name)
        try:
            outcome = self._call_with_retry(task, interruptible)
        except Exception as exc:
            task.last_error = f"{type(exc).__name__}: {exc}"
            logger.exception("Task '%s' failed", task.name)
        else:
            task.last_outcome = outcome
            task.last_error = None
            logger.info("Task '%s' completed: %s", task.name, outcome)
        finally:
            task.last_run = started
            task.running = False
            task.lock.release()

    def _loop(self) -> None:
        while not self._stop.is_set():
            now = self.now()
            for task in self.tasks.values():
                if task.next_run is not None and task.next_run <= now:
                    close_old_connections()
                    self._execute(task, interruptible=True)
                    close_old_connections()
                    task.next_run = task.schedule.next_after(self.now())
            upcoming = [t.next_run for t in self.tasks.values() if t.next_run is not None]
            if not upcoming:
                break
            delay = (min(upcoming) - self.now()).total_seconds()
            self._stop.wait(max(min(delay, 60), 0.5))

    # manual triggers

    def generate_statistics_for_date(self, date: str):
        return lifecycle.generate_statistics_for_date(date)

    def mark_missed_for_past_date(self, date: str) -> int:
        return lifecycle.mark_missed_for_past_date(date)

    def cron_summary(self) -> Dict[str, Any]:
        return {
            'cronJobStatus': self.status(),
            'schedulerRunning': self.is_running,
            'currentMetrics': lifecycle.cron_summary(),
        }


_instance: Optional[SchedulerService] = None
_instance_lock = threading.Lock()


def get_scheduler() -> SchedulerService:
    """Process-wide scheduler built from settings on first use."""
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = SchedulerService()
        return _instance
