"""
Scheduler Service
Runs the registered health checks on an interval using APScheduler and hands
every fresh report to the registered publishers.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Protocol

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from healthchecks_telegram.common_types import HealthReport
from healthchecks_telegram.services.health_checks import HealthCheckService

logger = logging.getLogger(__name__)

JOB_ID = "health_publish"


class HealthReportPublisher(Protocol):
    async def publish(self, report: HealthReport, cancel_event: Optional[asyncio.Event] = None): ...


class HealthPublisherScheduler:
    def __init__(
        self,
        health_checks: HealthCheckService,
        publishers: List[HealthReportPublisher],
        delay: float = 5,
        period: float = 30,
    ):
        self.health_checks = health_checks
        self.publishers = publishers
        self.delay = delay
        self.period = period
        self.scheduler = AsyncIOScheduler()
        self.is_running = False
        self.last_report: Optional[HealthReport] = None

    async def start(self):
        """Start the scheduler and add the publish job."""
        if self.is_running:
            return
        self.scheduler.start()
        self.is_running = True
        self.scheduler.add_job(
            func=self.run_once,
            trigger=IntervalTrigger(seconds=self.period),
            id=JOB_ID,
            next_run_time=datetime.now() + timedelta(seconds=self.delay),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(
            f"Health publisher scheduler started: first run in {self.delay}s, "
            f"then every {self.period}s, {len(self.publishers)} publisher(s)"
        )

    async def stop(self):
        """Stop the scheduler."""
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Health publisher scheduler stopped")

    async def run_once(self) -> HealthReport:
        """One tick: run the checks, then give the report to every publisher."""
        report = await self.health_checks.check_health()
        self.last_report = report
        logger.info(f"Health checks finished: {report.status.value} in {report.total_duration.total_seconds():.3f}s")

        results = await asyncio.gather(
            *(publisher.publish(report) for publisher in self.publishers),
            return_exceptions=True,
        )
        for publisher, result in zip(self.publishers, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                logger.error(
                    f"Publisher {type(publisher).__name__} failed: {result}",
                    exc_info=(type(result), result, result.__traceback__),
                )
        return report
