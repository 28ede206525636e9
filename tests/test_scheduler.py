import asyncio
import logging

import httpx

from healthchecks_telegram.common_types import HealthCheckResult, HealthStatus
from healthchecks_telegram.services.health_checks import HealthCheckService, ping_check
from healthchecks_telegram.services.scheduler import HealthPublisherScheduler, JOB_ID
from healthchecks_telegram.services.telegram_publisher import PublisherOptions, TelegramPublisher


class RecordingPublisher:
    def __init__(self):
        self.reports = []

    async def publish(self, report, cancel_event=None):
        self.reports.append(report)


class BrokenPublisher:
    async def publish(self, report, cancel_event=None):
        raise RuntimeError("formatter bug")


def test_run_once_hands_report_to_every_publisher():
    service = HealthCheckService()
    service.add_check("ping", ping_check)
    first, second = RecordingPublisher(), RecordingPublisher()
    scheduler = HealthPublisherScheduler(service, [first, second])

    report = asyncio.run(scheduler.run_once())

    assert first.reports == [report]
    assert second.reports == [report]
    assert scheduler.last_report is report


def test_publisher_error_is_logged_not_raised(caplog):
    service = HealthCheckService()
    service.add_check("ping", ping_check)
    healthy = RecordingPublisher()
    scheduler = HealthPublisherScheduler(service, [BrokenPublisher(), healthy])

    asyncio.run(scheduler.run_once())

    assert len(healthy.reports) == 1
    assert any(r.levelno == logging.ERROR and "formatter bug" in r.getMessage() for r in caplog.records)


def test_status_change_predicate_across_ticks(telegram_options, fake_telegram):
    state = {"status": HealthStatus.HEALTHY}
    service = HealthCheckService()
    service.add_check("app", lambda: HealthCheckResult(status=state["status"]))

    publisher = TelegramPublisher(
        telegram_options,
        PublisherOptions(predicate=lambda current, previous: previous is None or current.status != previous.status),
        httpx.AsyncClient(transport=fake_telegram.transport()),
    )
    scheduler = HealthPublisherScheduler(service, [publisher])

    async def _ticks():
        await scheduler.run_once()
        await scheduler.run_once()
        state["status"] = HealthStatus.UNHEALTHY
        await scheduler.run_once()
        await scheduler.run_once()

    asyncio.run(_ticks())

    assert len(fake_telegram.requests) == 2
    assert publisher.previous_report.status == HealthStatus.UNHEALTHY


def test_start_registers_interval_job_and_stop():
    service = HealthCheckService()

    async def _lifecycle():
        scheduler = HealthPublisherScheduler(service, [], delay=60, period=120)
        await scheduler.start()
        job = scheduler.scheduler.get_job(JOB_ID)
        running = scheduler.is_running
        await scheduler.stop()
        return job, running, scheduler.is_running

    job, running, after_stop = asyncio.run(_lifecycle())

    assert job is not None
    assert running is True
    assert after_stop is False
