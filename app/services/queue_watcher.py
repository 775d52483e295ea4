# File: app/services/queue_watcher.py
"""Live queue client.

`QueueViewState` holds one event's queue as a client sees it and merges
snapshots and pushes. `QueueWatcher` keeps it current against a running
server: snapshot on every (re)connect, pushes over the WebSocket, and a
periodic snapshot poll as a backstop for missed pushes.
"""
from collections import Counter
from typing import Any, Callable, Dict, List, Optional
import asyncio
import json
import logging

import requests
import websockets
from websockets.exceptions import WebSocketException

from app.core.config import settings

logger = logging.getLogger(__name__)

# Position along the state machine; a token never moves to a lower rank.
_STATUS_RANK = {"WAITING": 0, "IN_PROGRESS": 1, "DONE": 2, "NO_SHOW": 2}


class QueueViewState:

    def __init__(self, event_id: int):
        self.event_id = event_id
        self.tokens: Dict[int, Dict[str, Any]] = {}
        self.paused = False
        self.snapshots = 0

    def apply_snapshot(self, snapshot: Dict[str, Any]) -> None:
        for token in snapshot.get("tokens", []):
            self._merge(token)
        self.paused = bool(snapshot.get("paused", False))
        self.snapshots += 1

    def apply_message(self, message: Dict[str, Any]) -> bool:
        """Apply a realtime message. Returns True if the view changed."""
        mtype = message.get("type")
        if message.get("event_id") not in (None, self.event_id):
            return False
        if mtype == "snapshot":
            self.apply_snapshot(message)
            return True
        if mtype in ("token_created", "token_changed"):
            token = message.get("token")
            return isinstance(token, dict) and self._merge(token)
        if mtype == "queue_paused":
            changed = self.paused != bool(message.get("paused"))
            self.paused = bool(message.get("paused"))
            return changed
        return False

    def _merge(self, token: Dict[str, Any]) -> bool:
        current = self.tokens.get(token["id"])
        if current is not None:
            if _STATUS_RANK.get(token["status"], 0) < _STATUS_RANK.get(current["status"], 0):
                # Stale push or snapshot; keep the newer state.
                return False
            if current == token:
                return False
        self.tokens[token["id"]] = token
        return True

    @property
    def ordered_tokens(self) -> List[Dict[str, Any]]:
        return sorted(self.tokens.values(), key=lambda t: t["token_no"])

    @property
    def stats(self) -> Dict[str, int]:
        counts = Counter(t["status"] for t in self.tokens.values())
        return {
            "waiting": counts["WAITING"],
            "in_progress": counts["IN_PROGRESS"],
            "completed": counts["DONE"],
            "no_show": counts["NO_SHOW"],
            "total": len(self.tokens),
        }

    @property
    def now_serving(self) -> Optional[Dict[str, Any]]:
        for token in self.ordered_tokens:
            if token["status"] == "IN_PROGRESS":
                return token
        return None

    def token_for_visitor(self, visitor_id: int) -> Optional[Dict[str, Any]]:
        mine = [t for t in self.ordered_tokens if t["visitor_id"] == visitor_id]
        for token in reversed(mine):
            if token["status"] in ("WAITING", "IN_PROGRESS"):
                return token
        return mine[-1] if mine else None


class QueueWatcher:
    """Keeps a `QueueViewState` in sync with the server.

    `fetch_snapshot` and `connect` default to HTTP via requests and the
    websockets client; both can be swapped (tests, other transports).
    """

    def __init__(
        self,
        base_url: str,
        event_id: int,
        *,
        poll_interval: Optional[float] = None,
        reconnect_delay: float = 2.0,
        on_change: Optional[Callable[[QueueViewState], None]] = None,
        fetch_snapshot: Optional[Callable[[], Dict[str, Any]]] = None,
        connect: Optional[Callable[[str], Any]] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.event_id = event_id
        self.poll_interval = settings.QUEUE_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.reconnect_delay = reconnect_delay
        self.on_change = on_change
        self.timeout = timeout
        self.state = QueueViewState(event_id)
        self._fetch_snapshot = fetch_snapshot or self._http_snapshot
        self._connect = connect or websockets.connect
        self._stopped = asyncio.Event()

    @property
    def snapshot_url(self) -> str:
        return f"{self.base_url}{settings.API_V1_STR}/events/{self.event_id}/queue"

    @property
    def socket_url(self) -> str:
        if self.base_url.startswith("https://"):
            root = "wss://" + self.base_url[len("https://"):]
        elif self.base_url.startswith("http://"):
            root = "ws://" + self.base_url[len("http://"):]
        else:
            root = self.base_url
        return f"{root}{settings.API_V1_STR}/ws/queue"

    def _http_snapshot(self) -> Dict[str, Any]:
        response = requests.get(self.snapshot_url, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    async def refresh(self) -> None:
        """Pull the full snapshot and merge it"""
        loop = asyncio.get_running_loop()
        snapshot = await loop.run_in_executor(None, self._fetch_snapshot)
        self.state.apply_snapshot(snapshot)
        self._changed()

    def handle_raw(self, raw: Any) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed queue message: {raw!r:.80}")
            return
        if isinstance(message, dict) and self.state.apply_message(message):
            self._changed()

    async def run(self) -> None:
        poller = asyncio.create_task(self._poll_loop()) if self.poll_interval > 0 else None
        try:
            while not self._stopped.is_set():
                try:
                    await self._listen_once()
                except (OSError, WebSocketException) as e:
                    logger.warning(f"Queue socket for event {self.event_id} dropped: {e}")
                if not self._stopped.is_set():
                    await self._sleep(self.reconnect_delay)
        finally:
            if poller is not None:
                poller.cancel()

    def stop(self) -> None:
        self._stopped.set()

    async def _listen_once(self) -> None:
        async with self._connect(self.socket_url) as ws:
            await ws.send(json.dumps({"type": "subscribe", "event_id": self.event_id}))
            # Pushes are not replayed; every (re)connect starts from a snapshot.
            await self._safe_refresh()
            async for raw in ws:
                self.handle_raw(raw)
                if self._stopped.is_set():
                    return

    async def _poll_loop(self) -> None:
        while not self._stopped.is_set():
            await self._sleep(self.poll_interval)
            if not self._stopped.is_set():
                await self._safe_refresh()

    async def _safe_refresh(self) -> None:
        try:
            await self.refresh()
        except requests.RequestException as e:
            logger.warning(f"Snapshot fetch for event {self.event_id} failed: {e}")

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _changed(self) -> None:
        if self.on_change is not None:
            try:
                self.on_change(self.state)
            except Exception:
                logger.exception("Queue on_change callback failed")
