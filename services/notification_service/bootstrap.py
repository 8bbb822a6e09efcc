"""
Component wiring shared by the HTTP app and the standalone worker
"""

import logging
from dataclasses import dataclass

from shared.utils.broker import BrokerConnection
from shared.utils.config import BrokerConfig, DatabaseConfig
from shared.utils.database import DocumentStore
from services.notification_service.services.event_consumer import EventConsumer
from services.notification_service.services.notification_service import NotificationService
from services.notification_service.utils.config import AppConfig

logger = logging.getLogger(__name__)


@dataclass
class NotificationComponents:
    store: DocumentStore
    broker: BrokerConnection
    notification_service: NotificationService
    consumer: EventConsumer

    async def close(self) -> None:
        self.consumer.stop()
        await self.broker.close()
        await self.store.close()


async def build_components(
    config: AppConfig,
    broker_config: BrokerConfig,
    db_config: DatabaseConfig,
    max_retries: int
) -> NotificationComponents:
    """
    Connect the store and the broker and wire the consumer

    Raises:
        BrokerFatalError: the broker bootstrap ran out of retries
    """
    store = DocumentStore(
        db_config.database_url,
        min_size=db_config.db_pool_min_size,
        max_size=db_config.db_pool_max_size,
        command_timeout=db_config.db_command_timeout
    )
    await store.initialize()

    notification_service = NotificationService(store.collection(config.notifications_collection))
    await notification_service.ensure_indexes()

    broker = BrokerConnection(
        broker_config.rabbitmq_url,
        queues=(broker_config.task_queue,),
        reconnect_delay=broker_config.broker_reconnect_delay,
        monitor_interval=broker_config.broker_monitor_interval,
        connect_timeout=broker_config.broker_connect_timeout,
        heartbeat=broker_config.broker_heartbeat
    )
    try:
        await broker.connect(max_retries=max_retries, base_delay=broker_config.broker_retry_delay)
    except BaseException:
        await store.close()
        raise

    consumer = EventConsumer(
        broker,
        broker_config.task_queue,
        receive_timeout=config.consumer_receive_timeout,
        retry_delay=config.consumer_retry_delay,
        unavailable_backoff=config.consumer_unavailable_backoff
    ).subscribe(broker_config.task_queue, notification_service.create_from_event)

    return NotificationComponents(store, broker, notification_service, consumer)
