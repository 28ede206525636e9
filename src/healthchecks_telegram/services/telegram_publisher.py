"""
Telegram health-check publisher.
Decides whether a health report is worth a notification, renders it and
posts it to one chat through the Telegram Bot API.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import httpx

from healthchecks_telegram.common_types import HealthReport, PreviousReportCell
from healthchecks_telegram.settings.config import TelegramOptions

logger = logging.getLogger(__name__)

Predicate = Callable[[HealthReport, Optional[HealthReport]], bool]
Formatter = Callable[[HealthReport], str]


def always_publish(current: HealthReport, previous: Optional[HealthReport]) -> bool:
    return True


def status_name(report: HealthReport) -> str:
    return report.status.value


@dataclass
class PublisherOptions:
    """Publishing behavior. Both callables must be quick and synchronous."""
    predicate: Predicate = always_publish
    formatter: Formatter = status_name


class PublishOutcome(str, Enum):
    SKIPPED = "skipped"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TelegramPublisher:
    """
    Publishes health reports to a Telegram chat.

    ``publish`` never raises because of a delivery problem: non-2xx answers,
    transport errors and cancellation through ``cancel_event`` are logged and
    reported as a ``PublishOutcome``. Errors raised by the predicate or the
    formatter do propagate.

    The previous report is replaced after every call, whatever the outcome.
    Concurrent calls are allowed; the last one to finish wins.
    """

    def __init__(
        self,
        telegram_options: TelegramOptions,
        publisher_options: Optional[PublisherOptions] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if http_client is None:
            raise ValueError("TelegramPublisher needs a shared http_client")
        self._url = telegram_options.send_message_url
        self._chat_id = telegram_options.chat_id
        self._options = publisher_options or PublisherOptions()
        self._client = http_client
        self._previous = PreviousReportCell()

    @property
    def options(self) -> PublisherOptions:
        return self._options

    @property
    def previous_report(self) -> Optional[HealthReport]:
        return self._previous.get()

    def should_publish(self, current: HealthReport, previous: Optional[HealthReport]) -> bool:
        return self._options.predicate(current, previous)

    def render(self, current: HealthReport) -> str:
        return self._options.formatter(current)

    def build_payload(self, text: str) -> dict:
        return {"chat_id": self._chat_id, "text": text}

    async def publish(self, report: HealthReport, cancel_event: Optional[asyncio.Event] = None) -> PublishOutcome:
        previous = self._previous.get()
        previous_status = previous.status.value if previous else None
        logger.debug(f"Previous status: {previous_status}, Current status: {report.status.value}")

        if not self.should_publish(report, previous):
            logger.debug(f"Skipping publishing result for status: {report.status.value}")
            self._previous.set(report)
            return PublishOutcome.SKIPPED

        payload = self.build_payload(self.render(report))

        logger.info(f"Publishing result: {report.status.value}")
        try:
            return await self._deliver(payload, cancel_event)
        finally:
            self._previous.set(report)

    async def _deliver(self, payload: dict, cancel_event: Optional[asyncio.Event]) -> PublishOutcome:
        try:
            response = await self._send(payload, cancel_event)
        except httpx.HTTPError as e:
            logger.error(f"Failed to publish result: {type(e).__name__}: {e}")
            return PublishOutcome.FAILED

        if response is None:
            logger.warning("Publishing cancelled before the Telegram API answered")
            return PublishOutcome.CANCELLED

        if response.is_success:
            logger.info("Successfully published result")
            return PublishOutcome.DELIVERED

        logger.error(
            f"Failed to publish result. Status code: {response.status_code}, "
            f"Reason: {response.reason_phrase}"
        )
        return PublishOutcome.FAILED

    async def _send(self, payload: dict, cancel_event: Optional[asyncio.Event]) -> Optional[httpx.Response]:
        """POST the payload. Returns None when ``cancel_event`` fired first."""
        if cancel_event is None:
            return await self._client.post(self._url, json=payload)
        if cancel_event.is_set():
            return None

        send_task = asyncio.ensure_future(self._client.post(self._url, json=payload))
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({send_task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not send_task.done():
                send_task.cancel()
                await asyncio.gather(send_task, return_exceptions=True)

        if send_task.cancelled():
            return None
        return send_task.result()
