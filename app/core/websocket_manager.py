# File: app/core/websocket_manager.py
from typing import Any, Dict, List, Optional, Set
from fastapi import WebSocket
import asyncio
import json
import logging
import threading
import uuid

from app.core.config import settings

logger = logging.getLogger(__name__)

_CLOSE = object()


class QueueConnection:
    """A subscribed WebSocket with its own bounded outbox.

    `send` never blocks and may be called from any thread (sync endpoints run
    in a threadpool, the snapshot job runs in the scheduler thread). A
    separate `pump` coroutine drains the outbox onto the socket, so a slow
    client only ever fills its own outbox.
    """

    def __init__(
        self,
        websocket: WebSocket,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        outbox_size: Optional[int] = None,
    ):
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.loop = loop or asyncio.get_running_loop()
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=outbox_size or settings.WEBSOCKET_OUTBOX_SIZE)
        self.closed = False
        self.dropped = 0

    def __repr__(self) -> str:
        return f"<QueueConnection {self.id[:8]}>"

    def send(self, message: Dict[str, Any]) -> bool:
        if self.closed:
            return False
        if self._on_loop_thread():
            return self._enqueue(message)
        try:
            self.loop.call_soon_threadsafe(self._enqueue, message)
        except RuntimeError:
            # Event loop already shut down
            self.closed = True
            return False
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._on_loop_thread():
            self._enqueue_close()
        else:
            try:
                self.loop.call_soon_threadsafe(self._enqueue_close)
            except RuntimeError:
                pass

    async def pump(self) -> None:
        """Forward queued messages to the socket until closed or broken"""
        while True:
            message = await self.outbox.get()
            if message is _CLOSE:
                return
            try:
                await self.websocket.send_text(json.dumps(message))
            except Exception as e:
                logger.info(f"{self!r} send failed, closing: {e}")
                self.closed = True
                return

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self.loop
        except RuntimeError:
            return False

    def _enqueue(self, message: Dict[str, Any]) -> bool:
        if self.closed:
            return False
        try:
            self.outbox.put_nowait(message)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"{self!r} outbox full, dropped {message.get('type')} message")
            return False

    def _enqueue_close(self) -> None:
        # Make room for the sentinel; pending messages are moot once closing.
        while True:
            try:
                self.outbox.put_nowait(_CLOSE)
                return
            except asyncio.QueueFull:
                self.outbox.get_nowait()


class QueueBroadcaster:
    """Registry of queue subscriptions and fan-out of queue changes.

    Two symmetric maps are kept: event id -> connections and connection ->
    event ids, so a disconnect removes a connection from every event it
    joined. Any object with a non-blocking `send(message) -> bool` can be
    registered.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Set[Any]] = {}
        self._subscriptions: Dict[Any, Set[int]] = {}

    def subscribe(self, connection: Any, event_id: int) -> bool:
        """Add the connection to the event. Returns False if it was already there."""
        with self._lock:
            events = self._subscriptions.setdefault(connection, set())
            if event_id in events:
                return False
            events.add(event_id)
            self._subscribers.setdefault(event_id, set()).add(connection)
        logger.info(f"{connection!r} subscribed to event {event_id}")
        return True

    def unsubscribe(self, connection: Any, event_id: int) -> bool:
        with self._lock:
            removed = self._remove(connection, event_id)
            events = self._subscriptions.get(connection)
            if events is not None and not events:
                del self._subscriptions[connection]
        if removed:
            logger.info(f"{connection!r} unsubscribed from event {event_id}")
        return removed

    def disconnect(self, connection: Any) -> Set[int]:
        """Drop every subscription held by the connection"""
        with self._lock:
            events = self._subscriptions.pop(connection, set())
            for event_id in events:
                members = self._subscribers.get(event_id)
                if members is not None:
                    members.discard(connection)
                    if not members:
                        del self._subscribers[event_id]
        if events:
            logger.info(f"{connection!r} disconnected from events {sorted(events)}")
        return events

    def publish(self, event_id: int, message: Dict[str, Any]) -> int:
        """Hand the message to every current subscriber of the event.

        Returns the number of connections that accepted it. A failing
        connection never stops delivery to the others.
        """
        with self._lock:
            targets = list(self._subscribers.get(event_id, ()))
        delivered = 0
        for connection in targets:
            try:
                if connection.send(message):
                    delivered += 1
            except Exception as e:
                logger.error(f"Failed to deliver {message.get('type')} to {connection!r}: {e}")
        logger.debug(f"Published {message.get('type')} for event {event_id} to {delivered}/{len(targets)}")
        return delivered

    def subscribers(self, event_id: int) -> List[Any]:
        with self._lock:
            return list(self._subscribers.get(event_id, ()))

    def subscriptions(self, connection: Any) -> Set[int]:
        with self._lock:
            return set(self._subscriptions.get(connection, ()))

    def subscribed_events(self) -> List[int]:
        with self._lock:
            return sorted(self._subscribers)

    def _remove(self, connection: Any, event_id: int) -> bool:
        events = self._subscriptions.get(connection)
        if events is None or event_id not in events:
            return False
        events.discard(event_id)
        members = self._subscribers.get(event_id)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._subscribers[event_id]
        return True


queue_broadcaster = QueueBroadcaster()
