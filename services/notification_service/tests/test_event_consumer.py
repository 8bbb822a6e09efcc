"""
Tests for the event consumer's settle rules
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from services.notification_service.services.event_consumer import EventConsumer, parse_event
from shared.schemas.events import EVENT_ID_HEADER
from shared.utils.errors import ServiceUnavailableError


def make_message(body, headers=None, redelivered=False):
    message = MagicMock()
    message.body = body if isinstance(body, bytes) else json.dumps(body).encode()
    message.headers = headers if headers is not None else {EVENT_ID_HEADER: "e1"}
    message.delivery_info = {"routing_key": "task_notifications", "redelivered": redelivered}
    return message


@pytest.fixture
def broker():
    broker = MagicMock()
    broker.is_connected = True
    broker.get = AsyncMock(return_value=None)
    broker.ack = AsyncMock()
    broker.nack = AsyncMock()
    return broker


@pytest.fixture
def handler():
    return AsyncMock()


@pytest.fixture
def consumer(broker, handler):
    return EventConsumer(broker, "task_notifications", handler, receive_timeout=0.01, retry_delay=0)


async def next_delivery(consumer):
    deliveries = consumer.receive()
    try:
        return await deliveries.__anext__()
    finally:
        await deliveries.aclose()


class TestParseEvent:

    def test_valid_message(self):
        event = parse_event(make_message({"taskId": "t1", "title": "Buy milk", "userId": "u1"}))

        assert event.event_id == "e1"
        assert event.payload.title == "Buy milk"

    @pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b'{"title": "no ids"}', b"\xff\xfe"])
    def test_invalid_messages(self, body):
        with pytest.raises(ValueError):
            parse_event(make_message(body))


class TestProcess:

    @pytest.mark.asyncio
    async def test_success_acks(self, consumer, broker, handler):
        message = make_message({"taskId": "t1", "title": "Buy milk", "userId": "u1"})
        broker.get.return_value = message

        await consumer.process(await next_delivery(consumer))

        handler.assert_awaited_once()
        assert handler.call_args[0][0].payload.task_id == "t1"
        broker.ack.assert_awaited_once_with(message)
        broker.nack.assert_not_awaited()
        assert consumer.stats == {"received": 1, "acked": 1, "requeued": 0, "rejected": 0}

    @pytest.mark.asyncio
    async def test_handler_failure_requeues(self, consumer, broker, handler):
        message = make_message({"taskId": "t1", "title": "Buy milk", "userId": "u1"})
        broker.get.return_value = message
        handler.side_effect = RuntimeError("database down")

        await consumer.process(await next_delivery(consumer))

        broker.nack.assert_awaited_once_with(message, requeue=True)
        broker.ack.assert_not_awaited()
        assert consumer.stats["requeued"] == 1

    @pytest.mark.asyncio
    async def test_unparseable_message_rejected_without_requeue(self, consumer, broker, handler):
        message = make_message(b"{broken")
        broker.get.return_value = message

        await consumer.process(await next_delivery(consumer))

        handler.assert_not_awaited()
        broker.nack.assert_awaited_once_with(message, requeue=False)
        assert consumer.stats["rejected"] == 1

    @pytest.mark.asyncio
    async def test_settle_failure_is_not_fatal(self, consumer, broker):
        broker.get.return_value = make_message({"taskId": "t1", "title": "Buy milk", "userId": "u1"})
        broker.ack.side_effect = ServiceUnavailableError("No channel to broker")

        await consumer.process(await next_delivery(consumer))

        assert consumer.stats["acked"] == 0


class TestRun:

    @pytest.mark.asyncio
    async def test_run_requires_handler(self, broker):
        with pytest.raises(RuntimeError):
            await EventConsumer(broker, "task_notifications").run()

    @pytest.mark.asyncio
    async def test_waits_out_broker_outage(self, broker, handler):
        consumer = EventConsumer(
            broker, "task_notifications", handler,
            receive_timeout=0.01, retry_delay=0, unavailable_backoff=0.01
        )
        message = make_message({"taskId": "t1", "title": "Buy milk", "userId": "u1"})
        broker.get.side_effect = [ServiceUnavailableError("No channel to broker"), None, message]
        handler.side_effect = lambda event: consumer.stop()

        await consumer.run()

        assert broker.get.await_count == 3
        broker.ack.assert_awaited_once_with(message)
        assert consumer.status == "stopped"

    @pytest.mark.asyncio
    async def test_status_while_consuming(self, broker, handler):
        consumer = EventConsumer(broker, "task_notifications", handler, receive_timeout=0.01)
        statuses = []

        async def record_status(event):
            statuses.append(consumer.status)
            broker.is_connected = False
            statuses.append(consumer.status)
            consumer.stop()

        broker.get.return_value = make_message({"taskId": "t1", "title": "Buy milk", "userId": "u1"})
        consumer.subscribe("task_notifications", record_status)

        await consumer.run()

        assert statuses == ["consuming", "waiting_for_broker"]
