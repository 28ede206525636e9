import asyncio
import os
import sys
import tempfile
from datetime import timedelta

sys.path.insert(0, os.path.join(os.path.abspath(os.path.dirname(os.path.dirname(__file__))), "src"))
os.environ.setdefault("HEALTH_PUBLISHER_LOG_DIR", tempfile.mkdtemp(prefix="health-publisher-logs-"))

import httpx
import pytest

from healthchecks_telegram import dependencies
from healthchecks_telegram.common_types import HealthReport, HealthReportEntry, HealthStatus
from healthchecks_telegram.settings.config import TelegramOptions

BOT_TOKEN = "3141592654:66666000000000066666111113333355555"
CHAT_ID = -2718281828


def make_report(status: HealthStatus) -> HealthReport:
    entries = {
        "test": HealthReportEntry(
            status=status,
            description="test health check",
            duration=timedelta(milliseconds=100),
        )
    }
    return HealthReport.from_entries(entries, timedelta(milliseconds=100))


class FakeTelegram:
    """Stands in for the Bot API: records every request and answers with ``status_code``."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code == 200:
            return httpx.Response(200, json={"ok": True, "result": {"message_id": len(self.requests)}})
        return httpx.Response(self.status_code, json={"ok": False, "description": "Bad Request: chat not found"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


class StallingBody(httpx.AsyncByteStream):
    """A response body that sends its first chunk and then goes silent."""

    def __init__(self, stall: float = 5.0):
        self.stall = stall
        self.closed = False

    async def __aiter__(self):
        yield b'{"ok": tr'
        await asyncio.sleep(self.stall)
        yield b'ue}'

    async def aclose(self):
        self.closed = True


@pytest.fixture
def report_factory():
    return make_report


@pytest.fixture
def telegram_options():
    return TelegramOptions(base_url="https://api.telegram.org", bot_token=BOT_TOKEN, chat_id=CHAT_ID)


@pytest.fixture
def fake_telegram():
    return FakeTelegram()


@pytest.fixture
def stalling_body():
    return StallingBody


@pytest.fixture(autouse=True)
def clean_dependencies(monkeypatch, tmp_path):
    """Isolate every test from the real settings file, env and global registries."""
    monkeypatch.setenv("HEALTH_PUBLISHER_SETTINGS_FILE", str(tmp_path / "settings.json"))
    for name in ("TELEGRAM_BASE_URL", "TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID"):
        monkeypatch.delenv(name, raising=False)
    dependencies.reset()
    dependencies.http_clients.clear()
    yield
    dependencies.reset()
    dependencies.http_clients.clear()
