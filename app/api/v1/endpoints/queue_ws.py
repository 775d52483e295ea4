# File: app/api/v1/endpoints/queue_ws.py
from typing import Any, Dict, Optional
import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool

from app.core.exceptions import QueueError
from app.core.websocket_manager import QueueConnection, queue_broadcaster
from app.db.database import SessionLocal
from app.services.queue_engine import queue_engine

logger = logging.getLogger(__name__)

router = APIRouter()

def _load_snapshot(event_id: int) -> Dict[str, Any]:
    # Own session per read; an idle socket must not pin a pooled connection.
    db = SessionLocal()
    try:
        return queue_engine.snapshot_message(db, event_id)
    finally:
        db.close()

async def _subscribe(connection: QueueConnection, event_id: Any) -> None:
    try:
        event_id = int(event_id)
        # Register first so nothing published after the snapshot read is missed.
        queue_broadcaster.subscribe(connection, event_id)
        snapshot = await run_in_threadpool(_load_snapshot, event_id)
    except (TypeError, ValueError):
        connection.send({"type": "error", "code": "bad_request", "message": "event_id must be an integer"})
        return
    except QueueError as e:
        queue_broadcaster.unsubscribe(connection, event_id)
        connection.send({"type": "error", "code": e.code, "message": e.message, "event_id": event_id})
        return
    connection.send({"type": "subscribed", "event_id": event_id})
    connection.send(snapshot)

def _unsubscribe(connection: QueueConnection, event_id: Any) -> None:
    try:
        event_id = int(event_id)
    except (TypeError, ValueError):
        connection.send({"type": "error", "code": "bad_request", "message": "event_id must be an integer"})
        return
    queue_broadcaster.unsubscribe(connection, event_id)
    connection.send({"type": "unsubscribed", "event_id": event_id})

# WebSocket endpoint for live queue updates
@router.websocket("/ws/queue")
async def queue_websocket(
    websocket: WebSocket,
    event_id: Optional[int] = None,
):
    """Subscribe to queue changes for one or more events.

    Client messages: {"type": "subscribe"|"unsubscribe", "event_id": ...},
    {"type": "ping"}. Every subscribe is answered with a full snapshot.
    """
    await websocket.accept()
    connection = QueueConnection(websocket)
    pump = asyncio.create_task(connection.pump())

    try:
        if event_id is not None:
            await _subscribe(connection, event_id)

        while True:
            raw = await websocket.receive_text()
            try:
                message: Dict[str, Any] = json.loads(raw)
            except ValueError:
                connection.send({"type": "error", "code": "bad_request", "message": "Invalid JSON"})
                continue
            if not isinstance(message, dict):
                connection.send({"type": "error", "code": "bad_request", "message": "Expected an object"})
                continue

            mtype = message.get("type")
            if mtype == "subscribe":
                await _subscribe(connection, message.get("event_id"))
            elif mtype == "unsubscribe":
                _unsubscribe(connection, message.get("event_id"))
            elif mtype == "ping":
                connection.send({"type": "pong"})
            else:
                connection.send({"type": "error", "code": "bad_request", "message": f"Unknown type {mtype!r}"})

    except WebSocketDisconnect:
        logger.info(f"{connection!r} disconnected")
    except Exception as e:
        logger.error(f"Queue WebSocket error on {connection!r}: {e}")
    finally:
        queue_broadcaster.disconnect(connection)
        connection.close()
        try:
            await asyncio.wait_for(pump, timeout=1.0)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            pump.cancel()
