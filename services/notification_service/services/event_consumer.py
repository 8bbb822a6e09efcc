"""
Event Consumer
Receive loop over a broker queue with explicit acknowledgement

Delivery is at-least-once: a message is acknowledged only after its handler
succeeded. A handler failure requeues the message, so it can come back to
this or another consumer, possibly behind newer messages. Messages that
cannot be parsed are rejected without requeue; retrying them cannot help.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional

from kombu.message import Message

from shared.schemas.events import TaskEvent
from shared.utils.broker import BrokerConnection
from shared.utils.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)

EventHandler = Callable[[TaskEvent], Awaitable[object]]


@dataclass
class Delivery:
    """One received message and the event parsed from it"""

    message: Message
    broker: BrokerConnection
    event: Optional[TaskEvent] = None
    error: Optional[str] = None
    settled: bool = field(default=False, init=False)

    @property
    def redelivered(self) -> bool:
        return bool(self.message.delivery_info.get("redelivered"))

    async def ack(self) -> None:
        await self.broker.ack(self.message)
        self.settled = True

    async def nack(self, requeue: bool = True) -> None:
        await self.broker.nack(self.message, requeue=requeue)
        self.settled = True


def parse_event(message: Message) -> TaskEvent:
    """
    Decode a message body into a TaskEvent

    Raises:
        ValueError: body is not JSON or not a task_created payload
    """
    body = message.body
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8")
    data = json.loads(body)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return TaskEvent.from_message(data, message.headers)


class EventConsumer:
    """Consumes one queue and settles every message it receives"""

    def __init__(
        self,
        broker: BrokerConnection,
        queue_name: str,
        handler: Optional[EventHandler] = None,
        receive_timeout: float = 1.0,
        retry_delay: float = 1.0,
        unavailable_backoff: float = 1.0
    ):
        self.broker = broker
        self.queue_name = queue_name
        self.handler = handler
        self.receive_timeout = receive_timeout
        self.retry_delay = retry_delay
        self.unavailable_backoff = unavailable_backoff
        self.stats: Dict[str, int] = {"received": 0, "acked": 0, "requeued": 0, "rejected": 0}
        self._stopping = False
        self._running = False

    def subscribe(self, queue_name: str, handler: EventHandler) -> "EventConsumer":
        """Attach the handler that every parsed event on queue_name is passed to"""
        self.queue_name = queue_name
        self.handler = handler
        return self

    @property
    def status(self) -> str:
        if self._running:
            return "consuming" if self.broker.is_connected else "waiting_for_broker"
        return "stopped"

    def stop(self) -> None:
        self._stopping = True

    async def receive(self) -> AsyncIterator[Delivery]:
        """Yield deliveries one at a time, in the order the broker releases them"""
        while not self._stopping:
            try:
                message = await self.broker.get(self.queue_name, timeout=self.receive_timeout)
            except ServiceUnavailableError:
                # The connection manager is reconnecting in the background
                await asyncio.sleep(self.unavailable_backoff)
                continue
            if message is None:
                continue

            self.stats["received"] += 1
            try:
                event = parse_event(message)
            except (ValueError, UnicodeDecodeError) as e:
                yield Delivery(message, self.broker, error=str(e))
                continue
            yield Delivery(message, self.broker, event=event)

    async def process(self, delivery: Delivery) -> None:
        """Run the handler for one delivery and settle it"""
        try:
            if delivery.event is None:
                logger.error(f"🗑️ Rejecting unparseable message on {self.queue_name}: {delivery.error}")
                await delivery.nack(requeue=False)
                self.stats["rejected"] += 1
                return

            event = delivery.event
            logger.info(
                f"📥 Received task notification {event.event_id}: {event.payload.title}"
                f"{' (redelivered)' if delivery.redelivered else ''}"
            )
            try:
                await self.handler(event)
            except Exception as e:
                logger.error(f"❌ Handler failed for event {event.event_id}, requeueing: {e}", exc_info=True)
                if self.retry_delay:
                    await asyncio.sleep(self.retry_delay)
                await delivery.nack(requeue=True)
                self.stats["requeued"] += 1
                return

            await delivery.ack()
            self.stats["acked"] += 1
        except ServiceUnavailableError as e:
            # Unsettled messages go back to the queue when their channel closes
            logger.warning(f"⚠️ Could not settle message on {self.queue_name}, broker will redeliver: {e.message}")

    async def run(self) -> None:
        """Consume until stop() is called"""
        if self.handler is None:
            raise RuntimeError("EventConsumer.run() called without a handler")

        self._stopping = False
        self._running = True
        logger.info(f"👂 Consuming from {self.queue_name}")
        try:
            async for delivery in self.receive():
                await self.process(delivery)
        finally:
            self._running = False
            logger.info(f"Stopped consuming from {self.queue_name}")
