"""
WebSocket connection manager for the Cricket Live relay.

Manages client WebSocket connections with:
- Topic rooms (match_list, live_matches, match_<id>)
- Initial push of the cached match list on connect
- Replay-on-subscribe: cached detail/scorecard for a match, current live array
- Heartbeat pings for connection liveness
- Per-connection subscription limits

Implements the Broadcaster capability used by the fan-out publisher.
"""
from __future__ import annotations

import asyncio
import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from shared.config import Settings, get_settings
from shared.models.enums import Topic, TopicEvent, WSClientOp, WSServerMsgType
from shared.utils.logging import get_logger
from shared.utils.metrics import WS_CONNECTIONS, WS_MESSAGES

from ingest.publisher import list_payload, live_payload
from ingest.store import CacheStore

logger = get_logger(__name__)

RECEIVE_TIMEOUT_S = 60.0


@dataclass
class WSConnection:
    """Represents a single WebSocket client connection."""

    ws: WebSocket
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    subscriptions: set[str] = field(default_factory=set)
    created_at: float = field(default_factory=time.monotonic)
    last_pong_at: float = field(default_factory=time.monotonic)
    remote_addr: str = ""

    @property
    def alive_seconds(self) -> float:
        return time.monotonic() - self.created_at


class WebSocketManager:
    """
    Manages all WebSocket connections for this process.

    Membership operations are idempotent: joining a topic twice or leaving a
    topic that was never joined is harmless.
    """

    def __init__(self, store: CacheStore, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._connections: dict[str, WSConnection] = {}
        # topic -> set of connection_ids
        self._topic_subscribers: dict[str, set[str]] = {}
        self._heartbeat_task: Optional[asyncio.Task[None]] = None
        self._shutdown = asyncio.Event()

    @property
    def connection_count(self) -> int:
        """Current number of active connections."""
        return len(self._connections)

    def subscriber_count(self, topic: str) -> int:
        return len(self._topic_subscribers.get(topic, ()))

    async def start(self) -> None:
        """Start the heartbeat task."""
        self._shutdown.clear()
        self._heartbeat_task = asyncio.create_task(self._run_heartbeat())
        logger.info("ws_manager_started")

    async def stop(self) -> None:
        """Stop background tasks and close all connections."""
        self._shutdown.set()
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            await asyncio.gather(self._heartbeat_task, return_exceptions=True)

        for conn in list(self._connections.values()):
            await self._close_connection(conn, code=1001, reason="server_shutdown")

        logger.info("ws_manager_stopped")

    # ── Broadcaster capability ──────────────────────────────────────────

    def has_listeners(self, topic: str) -> bool:
        return bool(self._topic_subscribers.get(topic))

    async def broadcast(self, topic: str, event: str, payload: Any) -> None:
        """Send a message to every connection in a topic. Best effort, no acks."""
        subscriber_ids = self._topic_subscribers.get(topic)
        if not subscriber_ids:
            return

        message = self._event_message(topic, event, payload)
        tasks = []
        for conn_id in list(subscriber_ids):
            conn = self._connections.get(conn_id)
            if conn:
                tasks.append(self._send(conn, message))

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            WS_MESSAGES.labels(direction="out").inc(len(tasks))

    # ── Connection lifecycle ────────────────────────────────────────────

    async def handle_connection(self, ws: WebSocket) -> None:
        """
        Handle a WebSocket connection lifecycle.

        Accepts the connection, processes messages, and cleans up on disconnect.
        """
        conn = await self.connect(ws)
        try:
            while not self._shutdown.is_set():
                try:
                    raw = await asyncio.wait_for(ws.receive_text(), timeout=RECEIVE_TIMEOUT_S)
                except asyncio.TimeoutError:
                    continue
                await self.handle_message(conn, raw)

        except WebSocketDisconnect:
            pass
        except Exception as exc:
            logger.warning(
                "ws_connection_error",
                connection_id=conn.connection_id,
                error=str(exc),
            )
        finally:
            self.disconnect(conn)

    async def connect(self, ws: WebSocket) -> WSConnection:
        """Accept and register a connection, then push the cached match list."""
        await ws.accept()
        conn = WSConnection(
            ws=ws,
            remote_addr=f"{ws.client.host}:{ws.client.port}" if ws.client else "unknown",
        )
        self._connections[conn.connection_id] = conn
        WS_CONNECTIONS.inc()

        logger.info(
            "ws_connected",
            connection_id=conn.connection_id,
            remote_addr=conn.remote_addr,
        )

        await self._send(conn, {
            "type": WSServerMsgType.STATE.value,
            "connection_id": conn.connection_id,
            "max_subscriptions": self._settings.ws_max_subscriptions_per_conn,
            "heartbeat_interval": self._settings.ws_heartbeat_interval_s,
        })

        summaries = self._store.summaries()
        if summaries:
            await self._send(conn, self._event_message(
                Topic.MATCH_LIST.value,
                TopicEvent.INITIAL_DATA.value,
                list_payload(summaries, self._store.last_updated),
            ))
        return conn

    def disconnect(self, conn: WSConnection) -> None:
        """Remove a connection from all tracking structures."""
        if self._connections.pop(conn.connection_id, None) is None:
            return
        WS_CONNECTIONS.dec()

        for topic in list(conn.subscriptions):
            self._leave(conn, topic)

        logger.info(
            "ws_disconnected",
            connection_id=conn.connection_id,
            alive_seconds=round(conn.alive_seconds, 1),
        )

    # ── Client messages ─────────────────────────────────────────────────

    async def handle_message(self, conn: WSConnection, raw: str) -> None:
        """Parse and dispatch a client message."""
        WS_MESSAGES.labels(direction="in").inc()
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            await self._send_error(conn, "invalid_json", "Message must be valid JSON")
            return

        if not isinstance(msg, dict) or not msg.get("op"):
            await self._send_error(conn, "missing_op", "Message must include 'op' field")
            return

        op = msg["op"]
        try:
            operation = WSClientOp(op)
        except ValueError:
            await self._send_error(conn, "unknown_op", f"Unknown operation: {op}")
            return

        if operation == WSClientOp.PING:
            conn.last_pong_at = time.monotonic()
            await self._send(conn, {"type": WSServerMsgType.PONG.value, "timestamp": time.time()})
        elif operation == WSClientOp.SUBSCRIBE_LIST:
            await self.subscribe(conn, Topic.MATCH_LIST.value)
        elif operation == WSClientOp.UNSUBSCRIBE_LIST:
            await self.unsubscribe(conn, Topic.MATCH_LIST.value)
        elif operation == WSClientOp.SUBSCRIBE_LIVE:
            if await self.subscribe(conn, Topic.LIVE_MATCHES.value):
                await self._send_live_replay(conn)
        elif operation == WSClientOp.UNSUBSCRIBE_LIVE:
            await self.unsubscribe(conn, Topic.LIVE_MATCHES.value)
        else:
            match_id = msg.get("match_id")
            if match_id is None or str(match_id) == "":
                await self._send_error(conn, "missing_match_id", f"{op} requires match_id")
                return
            match_id = str(match_id)
            if operation == WSClientOp.SUBSCRIBE_MATCH:
                if await self.subscribe(conn, Topic.match(match_id)):
                    await self._send_match_replay(conn, match_id)
            else:
                await self.unsubscribe(conn, Topic.match(match_id))

    async def subscribe(self, conn: WSConnection, topic: str) -> bool:
        """Join a topic. Returns False if the subscription limit was hit."""
        if topic not in conn.subscriptions:
            if len(conn.subscriptions) >= self._settings.ws_max_subscriptions_per_conn:
                await self._send_error(
                    conn,
                    "subscription_limit",
                    f"Maximum {self._settings.ws_max_subscriptions_per_conn} subscriptions per connection",
                )
                return False
            conn.subscriptions.add(topic)
            self._topic_subscribers.setdefault(topic, set()).add(conn.connection_id)
            logger.debug("ws_subscribed", connection_id=conn.connection_id, topic=topic)

        await self._send(conn, {
            "type": WSServerMsgType.STATE.value,
            "subscribed": sorted(conn.subscriptions),
        })
        return True

    async def unsubscribe(self, conn: WSConnection, topic: str) -> None:
        self._leave(conn, topic)
        await self._send(conn, {
            "type": WSServerMsgType.STATE.value,
            "subscribed": sorted(conn.subscriptions),
        })

    def _leave(self, conn: WSConnection, topic: str) -> None:
        conn.subscriptions.discard(topic)
        members = self._topic_subscribers.get(topic)
        if members is not None:
            members.discard(conn.connection_id)
            if not members:
                del self._topic_subscribers[topic]

    # ── Replay ──────────────────────────────────────────────────────────

    async def _send_match_replay(self, conn: WSConnection, match_id: str) -> None:
        """Unicast the last known detail and scorecard for a match, if cached."""
        topic = Topic.match(match_id)
        detail = self._store.get_detail(match_id)
        if detail is not None:
            await self._send(conn, self._event_message(
                topic, TopicEvent.DETAILS.value, detail.payload, replay=True
            ))
        card = self._store.get_scorecard(match_id)
        if card is not None:
            await self._send(conn, self._event_message(
                topic, TopicEvent.SCORECARD.value, card.to_payload(), replay=True
            ))
        if detail is not None or card is not None:
            logger.debug("ws_replay_sent", connection_id=conn.connection_id, match_id=match_id)

    async def _send_live_replay(self, conn: WSConnection) -> None:
        live = self._store.live_summaries()
        if not live:
            return
        await self._send(conn, self._event_message(
            Topic.LIVE_MATCHES.value,
            TopicEvent.LIVE_MATCHES_UPDATE.value,
            live_payload(live, self._store.last_updated),
            replay=True,
        ))

    # ── Heartbeat ───────────────────────────────────────────────────────

    async def _run_heartbeat(self) -> None:
        """
        Periodically send heartbeat pings to all connections.
        Disconnect clients that haven't responded.
        """
        interval = self._settings.ws_heartbeat_interval_s
        timeout = self._settings.ws_heartbeat_timeout_s
        while not self._shutdown.is_set():
            try:
                await asyncio.sleep(interval)
                now = time.monotonic()
                for conn in list(self._connections.values()):
                    if now - conn.last_pong_at > interval + timeout:
                        logger.info(
                            "ws_heartbeat_timeout",
                            connection_id=conn.connection_id,
                            alive_seconds=round(conn.alive_seconds, 1),
                        )
                        await self._close_connection(conn, code=1000, reason="heartbeat_timeout")
                        continue
                    await self._send(conn, {"type": WSServerMsgType.PING.value, "timestamp": time.time()})
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error("ws_heartbeat_error", error=str(exc))

    # ── Low-level send ──────────────────────────────────────────────────

    @staticmethod
    def _event_message(topic: str, event: str, payload: Any, replay: bool = False) -> dict[str, Any]:
        message: dict[str, Any] = {
            "type": WSServerMsgType.EVENT.value,
            "topic": topic,
            "event": event,
            "data": payload,
            "timestamp": time.time(),
        }
        if replay:
            message["replay"] = True
        return message

    async def _send(self, conn: WSConnection, message: dict[str, Any]) -> None:
        """Send a JSON message to a WebSocket connection."""
        try:
            if conn.ws.client_state == WebSocketState.CONNECTED:
                await conn.ws.send_text(json.dumps(message, default=str))
        except Exception as exc:
            logger.debug(
                "ws_send_error",
                connection_id=conn.connection_id,
                error=str(exc),
            )

    async def _send_error(self, conn: WSConnection, code: str, message: str) -> None:
        await self._send(conn, {
            "type": WSServerMsgType.ERROR.value,
            "error": {"code": code, "message": message},
        })

    async def _close_connection(self, conn: WSConnection, code: int = 1000, reason: str = "") -> None:
        """Close a WebSocket connection and clean up."""
        try:
            if conn.ws.client_state == WebSocketState.CONNECTED:
                await conn.ws.close(code=code, reason=reason)
        except Exception as exc:
            logger.debug("ws_close_error", connection_id=conn.connection_id, error=str(exc))
        self.disconnect(conn)
