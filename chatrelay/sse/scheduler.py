"""
Interval job scheduling for stream connections
Uses APScheduler to run keep-alive and poll jobs off the request threads.
"""
import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import config

logger = logging.getLogger(__name__)


class StreamScheduler:
    """Owns the background scheduler shared by every open connection."""

    def __init__(self, scheduler=None, max_workers: int = 20):
        self.scheduler = scheduler or BackgroundScheduler(
            executors={'default': {'type': 'threadpool', 'max_workers': max_workers}},
            job_defaults={
                'coalesce': True,  # merge missed runs into one
                'max_instances': 1,
                'misfire_grace_time': config.SCHEDULER_MISFIRE_GRACE_TIME,
            },
        )
        self.scheduler.add_listener(self._on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MISSED)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Start the scheduler if it is not running yet."""
        if self.scheduler.running:
            return
        self.scheduler.start()
        logger.info("Stream scheduler started")

    def stop(self):
        """Shut down without waiting for in-flight ticks."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Stream scheduler stopped")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def every(self, seconds: float, func, job_id: str, name: str = None) -> str:
        """Run ``func`` every ``seconds``. Returns the job id for ``cancel``."""
        self.scheduler.add_job(
            func,
            IntervalTrigger(seconds=seconds),
            id=job_id,
            name=name or job_id,
            replace_existing=True,
        )
        return job_id

    def cancel(self, job_id: str) -> bool:
        """Remove a job. Returns False if it was already gone."""
        try:
            self.scheduler.remove_job(job_id)
            return True
        except JobLookupError:
            return False

    def job_count(self) -> int:
        return len(self.scheduler.get_jobs())

    def _on_job_event(self, event):
        if event.exception:
            logger.error(f"Stream job '{event.job_id}' raised: {event.exception}")
        else:
            logger.warning(f"Stream job '{event.job_id}' missed its run time")
