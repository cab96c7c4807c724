"""
APScheduler-based monitoring of per-user mailboxes.

Each active user gets one interval job that runs the inbox pipeline. The
registry of active jobs belongs to the MonitorScheduler instance and is
not persisted; the agent_active flag in the credential store is the
durable record of who should be monitored (see reconcile).
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

from inbox_agent.config import settings
from inbox_agent.core.logging import get_logger
from inbox_agent.processors.base import BaseProcessor

log = get_logger(__name__)


@dataclass
class MonitorTask:
    """The periodic job monitoring one user's mailbox."""

    user_id: str
    job: Job
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def job_id_for(user_id: str) -> str:
    return f"monitor:{user_id}"


class MonitorScheduler:
    """
    Starts and stops per-user monitoring jobs.

    At most one job exists per user. Pipeline runs for the same user never
    overlap: the job allows a single instance and every run (scheduled or
    immediate) takes the user's run lock, skipping if it is already held.
    """

    def __init__(
        self,
        processor: BaseProcessor | None = None,
        scheduler: BaseScheduler | None = None,
        interval_minutes: int | None = None,
    ):
        if processor is None:
            from inbox_agent.processors.inbox import InboxProcessor
            processor = InboxProcessor()
        self.processor = processor
        self.interval_minutes = interval_minutes or settings.monitor_interval_minutes
        self._scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)
        self._tasks: dict[str, MonitorTask] = {}
        self._run_locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def start(self, user_id: str, run_immediately: bool = True) -> None:
        """
        Start monitoring a user, replacing any job already running for them.

        Args:
            user_id: User to monitor
            run_immediately: Run the pipeline once, synchronously, before returning.
                When False the first run is queued on the scheduler right away instead.
        """
        with self._lock:
            self._stop_locked(user_id)
            if not self._scheduler.running:
                self._scheduler.start()

            job_kwargs = {}
            if not run_immediately:
                job_kwargs["next_run_time"] = datetime.now(timezone.utc)

            job = self._scheduler.add_job(
                self.run_now,
                trigger=IntervalTrigger(minutes=self.interval_minutes),
                args=[user_id],
                id=job_id_for(user_id),
                name=f"Monitor inbox for {user_id}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                **job_kwargs,
            )
            self._tasks[user_id] = MonitorTask(user_id=user_id, job=job)

        log.info("monitoring_started", user_id=user_id, interval_minutes=self.interval_minutes)

        if run_immediately:
            self.run_now(user_id)

    def stop(self, user_id: str) -> None:
        """Stop monitoring a user. No-op if the user is not being monitored."""
        with self._lock:
            stopped = self._stop_locked(user_id)
        if stopped:
            log.info("monitoring_stopped", user_id=user_id)

    def _stop_locked(self, user_id: str) -> bool:
        task = self._tasks.pop(user_id, None)
        run_lock = self._run_locks.get(user_id)
        if run_lock is not None and not run_lock.locked():
            del self._run_locks[user_id]
        if task is None:
            return False
        try:
            task.job.remove()
        except JobLookupError:
            log.warning("monitor_job_already_removed", user_id=user_id)
        return True

    def run_now(self, user_id: str) -> dict | None:
        """
        Run the pipeline for a user unless a run for them is already in flight.

        Returns:
            Run statistics, or None if the run was skipped or failed
        """
        run_lock = self._run_lock(user_id)
        if not run_lock.acquire(blocking=False):
            log.warning("pipeline_run_skipped", user_id=user_id, reason="previous run still in flight")
            return None

        try:
            return self.processor.process_new_emails(user_id)
        except Exception as e:
            log.error("pipeline_run_error", user_id=user_id, error=str(e))
            return None
        finally:
            run_lock.release()

    def _run_lock(self, user_id: str) -> threading.Lock:
        with self._lock:
            return self._run_locks.setdefault(user_id, threading.Lock())

    def is_active(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._tasks

    def active_users(self) -> list[str]:
        with self._lock:
            return sorted(self._tasks)

    def get_task(self, user_id: str) -> MonitorTask | None:
        with self._lock:
            return self._tasks.get(user_id)

    def reconcile(self, user_ids: Iterable[str]) -> int:
        """
        Start monitoring for users whose agent is persisted as active.

        Used on startup, when the in-memory registry is empty. First runs
        are queued on the scheduler rather than run inline.

        Returns:
            Number of users started
        """
        started = 0
        for user_id in user_ids:
            if self.is_active(user_id):
                continue
            self.start(user_id, run_immediately=False)
            started += 1

        log.info("monitoring_reconciled", started=started, active=len(self.active_users()))
        return started

    def shutdown(self) -> None:
        """Stop all monitoring and the underlying scheduler. In-flight runs finish on their own."""
        with self._lock:
            for user_id in list(self._tasks):
                self._stop_locked(user_id)
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
        log.info("scheduler_stopped")
