from contextlib import asynccontextmanager
import logging
from logging.handlers import RotatingFileHandler
import os
import sys
import traceback

from fastapi import FastAPI

from healthchecks_telegram import dependencies
from healthchecks_telegram.routers import health
from healthchecks_telegram.settings.config import get_port, get_runtime_settings

# ---------------------------------------------------------------------------
# Logging setup: stdout + per-area log files under <cwd>/data/logs/
# ---------------------------------------------------------------------------
_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

def _setup_logging():
    log_dir = os.environ.get("HEALTH_PUBLISHER_LOG_DIR", os.path.join("data", "logs"))
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(_LOG_FORMAT)

    stdout_h = logging.StreamHandler(sys.stdout)
    stdout_h.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(logging.INFO)
    root.addHandler(stdout_h)

    def _file_handler(filename):
        h = RotatingFileHandler(
            os.path.join(log_dir, filename),
            maxBytes=5 * 1024 * 1024,   # 5 MB
            backupCount=3,
        )
        h.setFormatter(formatter)
        return h

    # app.log      : lifecycle, settings, wiring, health endpoint
    # publisher.log: Telegram delivery and retries
    # scheduler.log: health check ticks
    routing = {
        "app.log": [
            "healthchecks_telegram.main", "healthchecks_telegram.dependencies",
            "healthchecks_telegram.settings", "healthchecks_telegram.routers",
            "healthchecks_telegram.utils",
        ],
        "publisher.log": [
            "healthchecks_telegram.services.telegram_publisher",
            "healthchecks_telegram.services.resilience",
        ],
        "scheduler.log": [
            "healthchecks_telegram.services.scheduler",
            "healthchecks_telegram.services.health_checks",
        ],
    }
    for filename, names in routing.items():
        fh = _file_handler(filename)
        for name in names:
            logging.getLogger(name).addHandler(fh)

_setup_logging()
logger = logging.getLogger("healthchecks_telegram.main")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application lifespan...")
    try:
        cfg = get_runtime_settings()

        # Invalid Telegram options abort startup here
        dependencies.add_telegram_publisher(cfg=cfg)

        scheduler = dependencies.create_scheduler(cfg)
        await scheduler.start()
    except Exception as e:
        logger.error(f"Error during application startup: {e}")
        logger.error(traceback.format_exc())
        await dependencies.close_http_clients()
        dependencies.reset()
        raise

    yield

    await scheduler.stop()
    await dependencies.close_http_clients()
    dependencies.reset()
    logger.info("Application shutdown: Clean up completed.")

app = FastAPI(
    title="Health Checks Telegram Publisher",
    description="Publishes application health reports to a Telegram chat",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(health.router)

@app.get("/", tags=["Entry"])
async def root():
    return {"message": "Health checks Telegram publisher", "publishers": len(dependencies.get_publishers())}

if __name__ == "__main__":
    import uvicorn

    port = get_port()
    logger.info(f"Starting server on port {port}")
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info"
    )
