"""
Standalone notification worker
Consumes task_created events without serving HTTP

Exits with status 1 when the broker bootstrap runs out of retries.
"""

import asyncio
import logging
import signal
import sys

from shared.utils.config import get_broker_config, get_db_config
from shared.utils.errors import BrokerFatalError
from shared.utils.logger import init_logging
from services.notification_service.bootstrap import build_components
from services.notification_service.utils.config import get_app_config

logger = logging.getLogger(__name__)


async def run_worker() -> None:
    config = get_app_config()
    broker_config = get_broker_config()
    broker_config.log_config()

    components = await build_components(
        config, broker_config, get_db_config(), max_retries=config.worker_max_retries
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, components.consumer.stop)

    try:
        await components.consumer.run()
    finally:
        await components.close()


def main() -> None:
    init_logging()
    logger.info("Notification worker starting...")
    try:
        asyncio.run(run_worker())
    except BrokerFatalError as e:
        logger.critical(f"💥 {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
