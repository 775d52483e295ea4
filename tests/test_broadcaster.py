import asyncio
import threading

from app.core.websocket_manager import QueueBroadcaster, QueueConnection


class FakeConnection:
    def __init__(self, name):
        self.name = name
        self.messages = []

    def send(self, message):
        self.messages.append(message)
        return True

    def __repr__(self):
        return f"<FakeConnection {self.name}>"


class BrokenConnection(FakeConnection):
    def send(self, message):
        raise ConnectionResetError("peer went away")


class FakeWebSocket:
    def __init__(self):
        self.sent = []

    async def send_text(self, data):
        self.sent.append(data)


def test_subscribe_is_idempotent():
    broadcaster = QueueBroadcaster()
    conn = FakeConnection("a")
    assert broadcaster.subscribe(conn, 1) is True
    assert broadcaster.subscribe(conn, 1) is False

    assert broadcaster.publish(1, {"type": "token_created"}) == 1
    assert conn.messages == [{"type": "token_created"}]


def test_publish_only_reaches_subscribers_of_the_event():
    broadcaster = QueueBroadcaster()
    a, b = FakeConnection("a"), FakeConnection("b")
    broadcaster.subscribe(a, 1)
    broadcaster.subscribe(b, 2)

    broadcaster.publish(1, {"type": "token_changed", "event_id": 1})
    assert len(a.messages) == 1
    assert b.messages == []
    assert broadcaster.publish(3, {"type": "token_changed", "event_id": 3}) == 0


def test_unsubscribe_stops_delivery():
    broadcaster = QueueBroadcaster()
    conn = FakeConnection("a")
    broadcaster.subscribe(conn, 1)
    broadcaster.subscribe(conn, 2)

    assert broadcaster.unsubscribe(conn, 1) is True
    assert broadcaster.unsubscribe(conn, 1) is False
    broadcaster.publish(1, {"type": "snapshot"})
    assert conn.messages == []
    assert broadcaster.subscriptions(conn) == {2}
    assert broadcaster.subscribed_events() == [2]


def test_disconnect_removes_every_subscription():
    broadcaster = QueueBroadcaster()
    conn, other = FakeConnection("a"), FakeConnection("b")
    for event_id in (1, 2, 3):
        broadcaster.subscribe(conn, event_id)
    broadcaster.subscribe(other, 2)

    assert broadcaster.disconnect(conn) == {1, 2, 3}
    assert broadcaster.subscriptions(conn) == set()
    assert broadcaster.subscribed_events() == [2]
    assert broadcaster.subscribers(2) == [other]
    assert broadcaster.disconnect(conn) == set()


def test_broken_connection_does_not_block_others():
    broadcaster = QueueBroadcaster()
    broken, healthy = BrokenConnection("broken"), FakeConnection("healthy")
    broadcaster.subscribe(broken, 1)
    broadcaster.subscribe(healthy, 1)

    assert broadcaster.publish(1, {"type": "token_changed"}) == 1
    assert healthy.messages == [{"type": "token_changed"}]


def test_connection_pumps_messages_in_order():
    async def scenario():
        ws = FakeWebSocket()
        conn = QueueConnection(ws, outbox_size=5)
        pump = asyncio.create_task(conn.pump())
        conn.send({"type": "subscribed", "event_id": 1})
        conn.send({"type": "snapshot", "event_id": 1})
        await asyncio.sleep(0.01)
        conn.close()
        await asyncio.wait_for(pump, timeout=1)
        return ws.sent

    sent = asyncio.run(scenario())
    assert sent == ['{"type": "subscribed", "event_id": 1}', '{"type": "snapshot", "event_id": 1}']


def test_full_outbox_drops_instead_of_blocking():
    async def scenario():
        conn = QueueConnection(FakeWebSocket(), outbox_size=1)
        first = conn.send({"type": "token_created"})
        second = conn.send({"type": "token_changed"})
        return first, second, conn.dropped

    assert asyncio.run(scenario()) == (True, False, 1)


def test_send_from_worker_thread_reaches_socket():
    async def scenario():
        ws = FakeWebSocket()
        conn = QueueConnection(ws)
        pump = asyncio.create_task(conn.pump())

        worker = threading.Thread(target=conn.send, args=({"type": "token_changed"},))
        worker.start()
        worker.join()
        await asyncio.sleep(0.01)

        conn.close()
        await asyncio.wait_for(pump, timeout=1)
        return ws.sent, conn.send({"type": "late"})

    sent, late = asyncio.run(scenario())
    assert sent == ['{"type": "token_changed"}']
    assert late is False
