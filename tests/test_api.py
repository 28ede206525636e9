import json

import pytest
from fastapi.testclient import TestClient

from healthchecks_telegram import dependencies
from healthchecks_telegram.common_types import HealthCheckResult
from healthchecks_telegram.main import app
from healthchecks_telegram.settings.config import TelegramConfigError

client = TestClient(app)


def test_root():
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json()["publishers"] == 0


def test_health_reports_ping():
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "Healthy"
    assert body["entries"]["ping"]["status"] == "Healthy"


def test_health_unhealthy_returns_503():
    dependencies.get_health_check_service().add_check("disk", lambda: HealthCheckResult.unhealthy("disk full"))

    resp = client.get("/health")

    assert resp.status_code == 503
    assert resp.json()["entries"]["disk"]["description"] == "disk full"


def test_last_report_before_first_tick():
    resp = client.get("/health/last")
    assert resp.status_code == 404


def _write_settings(tmp_path, monkeypatch, telegram):
    settings_file = tmp_path / "settings.json"
    settings_file.write_text(json.dumps({"telegram": telegram, "health_check_delay": 3600}))
    monkeypatch.setenv("HEALTH_PUBLISHER_SETTINGS_FILE", str(settings_file))


def test_lifespan_registers_publisher_and_scheduler(tmp_path, monkeypatch):
    _write_settings(tmp_path, monkeypatch, {
        "bot_token": "3141592654:88888000000000088888111113333355555",
        "chat_id": -2718281828,
    })

    with TestClient(app) as live:
        resp = live.get("/")
        assert resp.json()["publishers"] == 1
        scheduler = dependencies.get_scheduler()
        assert scheduler is not None and scheduler.is_running

    assert dependencies.get_publishers() == []
    assert dependencies.http_clients == {}


@pytest.mark.parametrize("telegram", [
    {"base_url": "http://api.telegram.org", "bot_token": "token", "chat_id": 1},
    {"bot_token": "token", "chat_id": 0},
    {"bot_token": "", "chat_id": 1},
])
def test_startup_fails_on_invalid_telegram_options(tmp_path, monkeypatch, telegram):
    _write_settings(tmp_path, monkeypatch, telegram)

    with pytest.raises(TelegramConfigError):
        with TestClient(app):
            pass

    assert dependencies.get_publishers() == []
