import threading
import sys
from typing import Optional, Sequence

import uvicorn
from loguru import logger

from hubgraph.client import GitHubEventsSource
from hubgraph.config import HubGraphConfig, load_config
from hubgraph.publisher import get_publisher
from hubgraph.scheduler import RefreshScheduler
from hubgraph.server import SNAPSHOT_PATH, app


def setup_logging(log_level: str = "INFO"):
    logger.remove()
    logger.add(sys.stdout, level=log_level.upper())


def create_scheduler(config: HubGraphConfig) -> RefreshScheduler:
    source = GitHubEventsSource(token=config.token, timeout=config.request_timeout)
    return RefreshScheduler(
        source,
        get_publisher(),
        page_count=config.pages,
        refresh_delay=config.delay,
        token=config.token,
        max_rate_limit_retries=config.max_rate_limit_retries,
        recompute_interval=config.recompute_interval,
        backoff_base=config.backoff_base,
        backoff_max=config.backoff_max,
    )


def run_server(config: HubGraphConfig):
    """Run the FastAPI server"""
    logger.info(f"Listening on port {config.port} - http://localhost:{config.port}{SNAPSHOT_PATH}")
    uvicorn.run(app, host=config.host, port=config.port, log_config=None, access_log=False)


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point that runs both the refresh scheduler and the server"""
    config = load_config(argv)
    setup_logging(config.log_level)

    scheduler = create_scheduler(config)

    # Scheduler runs in a daemon thread, the server in the main thread
    scheduler_thread = threading.Thread(target=scheduler.run, name="refresh-scheduler", daemon=True)
    scheduler_thread.start()

    try:
        run_server(config)
    finally:
        logger.info("Server stopped, stopping refresh scheduler")
        scheduler.stop()
        scheduler_thread.join(timeout=config.request_timeout + 5)


if __name__ == "__main__":
    main()
