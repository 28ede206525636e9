"""
Default settings for the Telegram health-check publisher.
"""

# Names the shared HTTP client and its resilience pipeline are registered under
HTTP_CLIENT_NAME = "TelegramPublisher"
RESILIENCE_PIPELINE_NAME = "TelegramPublisherResiliencePipeline"
RETRY_STRATEGY_NAME = "TelegramPublisherRetryStrategy"

DEFAULT_TELEGRAM_BASE_URL = "https://api.telegram.org"
DEFAULT_SETTINGS_KEY = "telegram"

DEFAULT_SETTINGS = {
    "telegram": {
        "base_url": DEFAULT_TELEGRAM_BASE_URL,
        "bot_token": "",
        "chat_id": 0,
    },
    "publisher_retry_max_attempts": 3,
    "publisher_retry_base_delay": 2.0,
    "publisher_retry_max_delay": 30.0,
    "publisher_attempt_timeout": 30.0,
    "health_check_delay": 5,
    "health_check_period": 30,
    "health_check_timeout": 30,
}
