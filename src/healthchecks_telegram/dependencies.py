"""
Wiring for the shared HTTP client, health checks and the Telegram publisher.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from healthchecks_telegram.services.health_checks import HealthCheckService, ping_check
from healthchecks_telegram.services.resilience import RetryTransport
from healthchecks_telegram.services.scheduler import HealthPublisherScheduler
from healthchecks_telegram.services.telegram_publisher import PublisherOptions, TelegramPublisher
from healthchecks_telegram.settings.config import (
    TelegramOptions,
    build_telegram_options,
    get_runtime_settings,
    load_telegram_options,
)
from healthchecks_telegram.settings.defaults import (
    DEFAULT_SETTINGS_KEY,
    DEFAULT_TELEGRAM_BASE_URL,
    HTTP_CLIENT_NAME,
    RESILIENCE_PIPELINE_NAME,
)

logger = logging.getLogger(__name__)

TelegramConfig = Union[None, TelegramOptions, Callable[[Dict[str, Any]], None]]
PublisherConfig = Union[None, PublisherOptions, Callable[[PublisherOptions], None]]

# Named shared HTTP clients
http_clients: Dict[str, httpx.AsyncClient] = {}

# Global health check registry
health_check_service: Optional[HealthCheckService] = None

publishers: List[TelegramPublisher] = []

# Set by the application lifespan
scheduler_service: Optional[HealthPublisherScheduler] = None


def build_retry_transport(cfg: dict, transport: Optional[httpx.AsyncBaseTransport] = None) -> RetryTransport:
    return RetryTransport(
        transport,
        max_retry_attempts=int(cfg.get("publisher_retry_max_attempts", 3)),
        base_delay=float(cfg.get("publisher_retry_base_delay", 2.0)),
        max_delay=float(cfg.get("publisher_retry_max_delay", 30.0)),
        attempt_timeout=float(cfg.get("publisher_attempt_timeout", 30.0)),
    )


def get_http_client(
    name: str = HTTP_CLIENT_NAME,
    cfg: Optional[dict] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Return the named shared client, creating it with the retry pipeline on first use."""
    client = http_clients.get(name)
    if client is None or client.is_closed:
        cfg = cfg if cfg is not None else get_runtime_settings()
        retry = build_retry_transport(cfg, transport)
        # RetryTransport times each attempt, body included
        client = httpx.AsyncClient(transport=retry, timeout=None)
        http_clients[name] = client
        logger.info(
            f"Created HTTP client '{name}' with {RESILIENCE_PIPELINE_NAME}: "
            f"{retry.max_retry_attempts} retries, {retry.attempt_timeout:.0f}s per attempt, "
            f"worst case {retry.worst_case_latency():.0f}s per message"
        )
    return client


async def close_http_clients():
    for name, client in list(http_clients.items()):
        await client.aclose()
        logger.info(f"Closed HTTP client '{name}'")
    http_clients.clear()


def get_health_check_service() -> HealthCheckService:
    """Dependency function to get the health check registry"""
    global health_check_service
    if health_check_service is None:
        cfg = get_runtime_settings()
        health_check_service = HealthCheckService(timeout=float(cfg.get("health_check_timeout", 30)))
        health_check_service.add_check("ping", ping_check, tags=("live",))
    return health_check_service


def _resolve_telegram_options(telegram: TelegramConfig, settings_key: str, cfg: dict) -> TelegramOptions:
    if isinstance(telegram, TelegramOptions):
        return telegram
    if telegram is None:
        return load_telegram_options(settings_key, cfg)
    values: Dict[str, Any] = {"base_url": DEFAULT_TELEGRAM_BASE_URL}
    telegram(values)
    return build_telegram_options(values)


def _resolve_publisher_options(publisher: PublisherConfig) -> PublisherOptions:
    if isinstance(publisher, PublisherOptions):
        return publisher
    options = PublisherOptions()
    if publisher is not None:
        publisher(options)
    return options


def add_telegram_publisher(
    telegram: TelegramConfig = None,
    publisher: PublisherConfig = None,
    settings_key: str = DEFAULT_SETTINGS_KEY,
    cfg: Optional[dict] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> TelegramPublisher:
    """
    Register a Telegram publisher.

    ``telegram`` is either None (bind the options from the ``settings_key``
    section of the settings), a ready TelegramOptions, or a callable that
    fills a dict with ``base_url``/``bot_token``/``chat_id``.
    ``publisher`` is None, a PublisherOptions, or a callable mutating the
    default PublisherOptions.

    Options are validated here, so a bad configuration raises
    TelegramConfigError before the host starts serving.
    """
    cfg = cfg if cfg is not None else get_runtime_settings()
    telegram_options = _resolve_telegram_options(telegram, settings_key, cfg)
    publisher_options = _resolve_publisher_options(publisher)

    client = http_client or get_http_client(HTTP_CLIENT_NAME, cfg)
    instance = TelegramPublisher(telegram_options, publisher_options, client)
    publishers.append(instance)
    logger.info(f"Telegram publisher registered for chat {telegram_options.chat_id}")
    return instance


def create_scheduler(cfg: Optional[dict] = None) -> HealthPublisherScheduler:
    """Build the scheduler over the current checks and every registered publisher."""
    global scheduler_service
    cfg = cfg if cfg is not None else get_runtime_settings()
    scheduler_service = HealthPublisherScheduler(
        get_health_check_service(),
        get_publishers(),
        delay=float(cfg.get("health_check_delay", 5)),
        period=float(cfg.get("health_check_period", 30)),
    )
    return scheduler_service


def get_scheduler() -> Optional[HealthPublisherScheduler]:
    return scheduler_service


def get_publishers() -> List[TelegramPublisher]:
    return list(publishers)


def reset():
    """Forget registered publishers and checks. Clients must be closed with close_http_clients()."""
    global health_check_service, scheduler_service
    publishers.clear()
    health_check_service = None
    scheduler_service = None
