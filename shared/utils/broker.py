"""
Broker Connection Manager
Owns the AMQP connection/channel lifecycle shared by producers and consumers

The raw kombu handles never leave this module. Callers only see publish(),
get(), ack()/nack() and the connection state; every one of them fails fast
with ServiceUnavailableError while the connection is not CONNECTED.

Lifecycle:
    - connect(): bounded bootstrap, constant delay between attempts,
      BrokerFatalError once the budget is spent
    - a monitor task watches the live connection; a connection error is
      treated as a close event and schedules a reconnect
    - the reconnect loop retries without a bound until it succeeds or the
      connection is closed; at most one reconnect loop runs at a time
"""

import asyncio
import logging
import socket
from enum import Enum
from typing import Optional, Dict, Any, Iterable, Tuple

from kombu import Connection, Queue, Producer
from kombu.exceptions import EncodeError
from kombu.message import Message
from kombu.simple import SimpleQueue

from shared.utils.errors import (
    BrokerFatalError,
    InternalError,
    ServiceUnavailableError,
)

logger = logging.getLogger(__name__)

TASK_NOTIFICATIONS_QUEUE = "task_notifications"

PERSISTENT_DELIVERY = 2


class ConnectionState(str, Enum):
    """Broker connection states"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"


def _release_quietly(connection: Connection) -> None:
    try:
        connection.release()
    except Exception as e:
        logger.debug(f"Ignoring error while releasing broker connection: {e}")


class BrokerConnection:
    """
    Process-wide owner of one broker connection and its channel

    All blocking kombu calls run in a worker thread and are serialized by an
    asyncio.Lock, so concurrent request handlers can publish safely.
    """

    def __init__(
        self,
        url: str,
        queues: Iterable[str] = (TASK_NOTIFICATIONS_QUEUE,),
        reconnect_delay: float = 5.0,
        monitor_interval: Optional[float] = 1.0,
        poll_timeout: float = 0.1,
        connect_timeout: float = 5.0,
        heartbeat: float = 0,
        transport_options: Optional[Dict[str, Any]] = None,
        prefetch_count: int = 1
    ):
        self.url = url
        self.queue_names: Tuple[str, ...] = tuple(queues)
        self.reconnect_delay = reconnect_delay
        self.monitor_interval = monitor_interval
        self.poll_timeout = poll_timeout
        self.connect_timeout = connect_timeout
        self.heartbeat = heartbeat
        self.transport_options = transport_options or {}
        self.prefetch_count = prefetch_count

        self.state = ConnectionState.DISCONNECTED
        self.attempts = 0
        self.retry_delay: Optional[float] = None

        self._connection: Optional[Connection] = None
        self._channel = None
        self._producer: Optional[Producer] = None
        self._receivers: Dict[str, SimpleQueue] = {}
        self._errors: Tuple[type, ...] = (OSError,)
        self._lock = asyncio.Lock()
        self._monitor_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._closed = False
        self._safe_url = Connection(url).as_uri()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED and self._channel is not None

    @property
    def status(self) -> str:
        """Connection state as reported by health endpoints"""
        return self.state.value

    @property
    def reconnecting(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def _unavailable(self, operation: str, queue_name: str) -> ServiceUnavailableError:
        return ServiceUnavailableError(
            "No channel to broker",
            details={"operation": operation, "queue": queue_name, "state": self.state.value}
        )

    # ------------------------------------------------------------------
    # Connect / reconnect
    # ------------------------------------------------------------------

    def _open(self) -> Tuple[Connection, Any]:
        """Open connection, open channel, declare durable queues (blocking)"""
        connection = Connection(
            self.url,
            connect_timeout=self.connect_timeout,
            heartbeat=self.heartbeat,
            transport_options=self.transport_options
        )
        try:
            connection.connect()
            channel = connection.channel()
            for name in self.queue_names:
                Queue(name, durable=True).bind(channel).declare()
        except BaseException:
            _release_quietly(connection)
            raise
        return connection, channel

    async def _establish(self) -> None:
        if self.state is ConnectionState.CLOSING:
            raise ServiceUnavailableError("Broker connection is closing")

        self.state = ConnectionState.CONNECTING
        try:
            connection, channel = await asyncio.to_thread(self._open)
        except BaseException:
            if self.state is ConnectionState.CONNECTING:
                self.state = ConnectionState.DISCONNECTED
            raise

        async with self._lock:
            if self._closed or self.state is ConnectionState.CLOSING:
                await asyncio.to_thread(_release_quietly, connection)
                raise ServiceUnavailableError("Broker connection is closing")

            self._connection = connection
            self._channel = channel
            self._producer = Producer(channel)
            self._receivers = {}
            self._errors = (
                tuple(connection.connection_errors)
                + tuple(connection.channel_errors)
                + (OSError,)
            )
            self.state = ConnectionState.CONNECTED

        self._start_monitor(connection)

    async def connect(self, max_retries: int = 5, base_delay: float = 3.0) -> None:
        """
        Bootstrap the broker connection

        Every failed attempt is followed by a constant base_delay sleep, so a
        broker that never comes up costs exactly max_retries attempts and
        about max_retries * base_delay seconds.

        Raises:
            BrokerFatalError: all attempts failed; the owning process must exit
        """
        self._closed = False
        self.retry_delay = base_delay
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_retries + 1):
            self.attempts = attempt
            try:
                await self._establish()
                logger.info(f"✅ Connected to broker {self._safe_url} (attempt {attempt}/{max_retries})")
                return
            except Exception as e:
                last_error = e
                logger.error(
                    f"❌ Failed to connect to broker (attempt {attempt}/{max_retries}), "
                    f"retrying in {base_delay}s: {e}"
                )
                await asyncio.sleep(base_delay)

        self.state = ConnectionState.DISCONNECTED
        logger.critical(f"💥 Failed to connect to broker after {max_retries} attempts")
        raise BrokerFatalError(self._safe_url, max_retries, last_error)

    def _connection_lost(self, exc: BaseException) -> None:
        """Close-event handler: drop the channel and schedule a reconnect"""
        if self._closed or self.state is ConnectionState.CLOSING:
            return

        logger.warning(f"🔌 Broker connection lost: {exc}. Reconnecting in {self.reconnect_delay}s...")
        connection = self._connection
        self.state = ConnectionState.DISCONNECTED
        self._connection = None
        self._channel = None
        self._producer = None
        self._receivers = {}

        if connection is not None:
            asyncio.get_running_loop().run_in_executor(None, _release_quietly, connection)

        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self.reconnecting:
            logger.debug("Reconnect already scheduled, ignoring close event")
            return
        self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        attempt = 0
        while not self._closed:
            await asyncio.sleep(self.reconnect_delay)
            if self._closed:
                return

            attempt += 1
            self.attempts = attempt
            try:
                await self._establish()
                logger.info(f"✅ Reconnected to broker after {attempt} attempt(s)")
                return
            except Exception as e:
                logger.error(f"❌ Reconnect attempt {attempt} failed, retrying in {self.reconnect_delay}s: {e}")

    # ------------------------------------------------------------------
    # Monitor
    # ------------------------------------------------------------------

    def _start_monitor(self, connection: Connection) -> None:
        if self.monitor_interval is None:
            return
        current = asyncio.current_task()
        if self._monitor_task is not None and not self._monitor_task.done() and self._monitor_task is not current:
            self._monitor_task.cancel()
        self._monitor_task = asyncio.create_task(self._monitor(connection))

    def _poll(self, connection: Connection) -> None:
        if connection.heartbeat:
            connection.heartbeat_check()
        try:
            connection.drain_events(timeout=self.poll_timeout)
        except socket.timeout:
            pass

    async def _monitor(self, connection: Connection) -> None:
        """Watch one connection until it is replaced, closed or lost"""
        while True:
            await asyncio.sleep(self.monitor_interval)
            async with self._lock:
                if self._connection is not connection or self.state is not ConnectionState.CONNECTED:
                    return
                try:
                    await asyncio.to_thread(self._poll, connection)
                except self._errors as e:
                    self._connection_lost(e)
                    return

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def publish(
        self,
        queue_name: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Publish a persistent JSON message to a queue

        Raises:
            ServiceUnavailableError: no channel (disconnected, reconnecting,
                or the connection failed during the publish)
        """
        if not self.is_connected:
            raise self._unavailable("publish", queue_name)

        async with self._lock:
            if not self.is_connected:
                raise self._unavailable("publish", queue_name)
            producer = self._producer
            try:
                await asyncio.to_thread(
                    producer.publish,
                    payload,
                    exchange='',
                    routing_key=queue_name,
                    serializer='json',
                    delivery_mode=PERSISTENT_DELIVERY,
                    headers=headers or {},
                    retry=False
                )
            except EncodeError as e:
                raise InternalError(f"Could not serialize message for {queue_name}") from e
            except self._errors as e:
                self._connection_lost(e)
                raise self._unavailable("publish", queue_name) from e

        logger.debug(f"📤 Published message to {queue_name}")

    def _receiver(self, queue_name: str) -> SimpleQueue:
        receiver = self._receivers.get(queue_name)
        if receiver is None:
            receiver = SimpleQueue(self._channel, Queue(queue_name, durable=True))
            receiver.consumer.qos(prefetch_count=self.prefetch_count)
            # Undecodable bodies are still handed to the caller, which decides
            # how to settle them.
            receiver.consumer.on_decode_error = lambda message, exc: receiver.buffer.append(message)
            self._receivers[queue_name] = receiver
        return receiver

    def _get_blocking(self, queue_name: str, timeout: float) -> Optional[Message]:
        receiver = self._receiver(queue_name)
        try:
            return receiver.get(block=True, timeout=timeout)
        except SimpleQueue.Empty:
            return None

    async def get(self, queue_name: str, timeout: float = 1.0) -> Optional[Message]:
        """
        Receive one message, or None if nothing arrived within timeout

        The message stays unacknowledged until ack() or nack() is called.
        """
        if not self.is_connected:
            raise self._unavailable("get", queue_name)

        async with self._lock:
            if not self.is_connected:
                raise self._unavailable("get", queue_name)
            try:
                return await asyncio.to_thread(self._get_blocking, queue_name, timeout)
            except self._errors as e:
                self._connection_lost(e)
                raise self._unavailable("get", queue_name) from e

    async def _settle(self, message: Message, operation: str, requeue: bool = False) -> None:
        async with self._lock:
            # Delivery tags are only valid on the channel that delivered them;
            # the broker requeues unsettled messages when that channel dies.
            if not self.is_connected or message.channel is not self._channel:
                raise self._unavailable(operation, message.delivery_info.get("routing_key", ""))
            try:
                if operation == "ack":
                    await asyncio.to_thread(message.ack)
                else:
                    await asyncio.to_thread(message.reject, requeue=requeue)
            except self._errors as e:
                self._connection_lost(e)
                raise self._unavailable(operation, message.delivery_info.get("routing_key", "")) from e

    async def ack(self, message: Message) -> None:
        """Acknowledge: the broker drops the message permanently"""
        await self._settle(message, "ack")

    async def nack(self, message: Message, requeue: bool = True) -> None:
        """Negatively acknowledge; with requeue the message is redelivered"""
        await self._settle(message, "nack", requeue=requeue)

    async def queue_depth(self, queue_name: str) -> int:
        """Number of ready messages in a queue"""
        if not self.is_connected:
            raise self._unavailable("queue_depth", queue_name)

        async with self._lock:
            if not self.is_connected:
                raise self._unavailable("queue_depth", queue_name)
            queue = Queue(queue_name, durable=True).bind(self._channel)
            try:
                result = await asyncio.to_thread(queue.queue_declare, passive=True)
            except self._errors as e:
                self._connection_lost(e)
                raise self._unavailable("queue_depth", queue_name) from e
            return result.message_count

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the connection and stop background tasks"""
        self._closed = True
        self.state = ConnectionState.CLOSING

        for task in (self._reconnect_task, self._monitor_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._reconnect_task = None
        self._monitor_task = None

        async with self._lock:
            connection = self._connection
            self._connection = None
            self._channel = None
            self._producer = None
            self._receivers = {}
            if connection is not None:
                await asyncio.to_thread(_release_quietly, connection)

        self.state = ConnectionState.DISCONNECTED
        logger.info("Broker connection closed")
