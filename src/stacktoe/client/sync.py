"""Reconnecting WebSocket client for online games.

``GameClient`` keeps at most one live connection to the game service,
dispatches inbound events to per-type callbacks and, when the connection
drops, retries with exponential backoff (1s, 2s, 4s, 8s, 16s) for up to five
attempts before giving up. Re-opened connections replay the join handshake
with the seat identity saved in client storage.
"""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

import aiohttp

from stacktoe.engine import Color

from .storage import KeyValueStorage, RoomInfo, load_online_room_info, save_online_room_info

logger = logging.getLogger(__name__)

Callback = Callable[[Dict[str, Any]], Any]

EVENT_TYPES = (
    "room_joined",
    "waiting_for_opponent",
    "opponent_joined",
    "game_start",
    "move_made",
    "game_over",
    "reconnected",
    "opponent_left",
    "invalid_move",
    "error",
    "rematch_requested",
    "rematch_declined",
    "rematch_start",
    "emoji",
    "reconnecting",
)


class ClientState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECT_SCHEDULED = "reconnect_scheduled"
    GAVE_UP = "gave_up"


class Transport(Protocol):
    async def send_json(self, payload: Dict[str, Any]) -> None:
        ...

    async def receive_json(self) -> Optional[Dict[str, Any]]:
        """Next inbound message, or None once the connection is closed."""
        ...

    async def close(self) -> None:
        ...


Connector = Callable[[str], Awaitable[Transport]]


class AiohttpTransport:
    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse) -> None:
        self._session = session
        self._ws = ws

    @classmethod
    async def connect(cls, url: str) -> "AiohttpTransport":
        session = aiohttp.ClientSession()
        try:
            ws = await session.ws_connect(url, heartbeat=30.0)
        except BaseException:
            await session.close()
            raise
        return cls(session, ws)

    async def send_json(self, payload: Dict[str, Any]) -> None:
        await self._ws.send_json(payload)

    async def receive_json(self) -> Optional[Dict[str, Any]]:
        while True:
            msg = await self._ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    return json.loads(msg.data)
                except ValueError:
                    logger.error("Failed to parse message: %r", msg.data)
                    continue
            if msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
                aiohttp.WSMsgType.ERROR,
            ):
                return None

    async def close(self) -> None:
        try:
            await self._ws.close()
        finally:
            await self._session.close()


class GameClient:
    def __init__(
        self,
        base_url: str,
        storage: Optional[KeyValueStorage] = None,
        *,
        player_id: Optional[str] = None,
        connector: Optional[Connector] = None,
        auto_rejoin: bool = True,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 16.0,
        rejoin_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.storage = storage
        self.player_id = player_id or uuid.uuid4().hex
        self.player_name: Optional[str] = None
        self.auto_rejoin = auto_rejoin
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.rejoin_delay = rejoin_delay
        self._connector: Connector = connector or AiohttpTransport.connect
        self._sleep = sleep

        self.state = ClientState.IDLE
        self.room_id: Optional[str] = None
        self.attempt = 0
        self._should_reconnect = False
        self._transport: Optional[Transport] = None
        self._task: Optional[asyncio.Task] = None
        self._handlers: Dict[str, List[Callback]] = {}

    # --- callbacks ---

    def on(self, event_type: str, callback: Callback) -> Callable[[], None]:
        """Register ``callback`` for ``event_type``; returns an unsubscribe function."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")
        self._handlers.setdefault(event_type, []).append(callback)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if callback in handlers:
                handlers.remove(callback)

        return unsubscribe

    async def _dispatch(self, message: Dict[str, Any]) -> None:
        for callback in list(self._handlers.get(message.get("type", ""), [])):
            try:
                result = callback(message)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Callback for %s failed", message.get("type"))

    # --- connection lifecycle ---

    @property
    def connected(self) -> bool:
        return self.state is ClientState.CONNECTED

    def url_for(self, room_id: str) -> str:
        return f"{self.base_url}/ws/game/{room_id}"

    def reconnect_delay(self, attempt: int) -> float:
        """Delay before reconnect ``attempt`` (1-based)."""
        return min(self.base_delay * (2 ** max(0, attempt - 1)), self.max_delay)

    async def connect(self, room_id: str) -> None:
        if self._task is not None and not self._task.done():
            logger.info("Already connected to %s", self.room_id)
            return
        self.room_id = room_id
        self.attempt = 0
        self._should_reconnect = True
        self._task = asyncio.create_task(self._run())

    async def wait_closed(self) -> None:
        """Wait until the connection loop has stopped for good."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self) -> None:
        reconnecting = False
        while True:
            self.state = ClientState.CONNECTING
            transport: Optional[Transport] = None
            try:
                transport = await self._connector(self.url_for(self.room_id or ""))
            except Exception as exc:
                logger.warning("Connection to %s failed: %s", self.room_id, exc)

            if transport is not None:
                self._transport = transport
                self.state = ClientState.CONNECTED
                self.attempt = 0
                logger.info("Connected to room %s", self.room_id)
                try:
                    if reconnecting and self.auto_rejoin:
                        await self._sleep(self.rejoin_delay)
                        await self._rejoin()
                    await self._pump(transport)
                finally:
                    # disconnect() takes and closes the transport itself
                    if self._transport is transport:
                        self._transport = None
                        await self._close_transport(transport)
                logger.info("Disconnected from room %s", self.room_id)

            if not self._should_reconnect:
                self.state = ClientState.IDLE
                return
            if self.attempt >= self.max_attempts:
                self.state = ClientState.GAVE_UP
                logger.error("Max reconnect attempts reached for %s", self.room_id)
                await self._dispatch({"type": "error", "message": "connection lost, please reload"})
                return

            self.attempt += 1
            delay = self.reconnect_delay(self.attempt)
            self.state = ClientState.RECONNECT_SCHEDULED
            logger.info(
                "Reconnecting (%d/%d) in %.1fs", self.attempt, self.max_attempts, delay
            )
            await self._dispatch({"type": "reconnecting", "attempt": self.attempt})
            await self._sleep(delay)
            if not self._should_reconnect:
                self.state = ClientState.IDLE
                return
            reconnecting = True

    async def _close_transport(self, transport: Transport) -> None:
        try:
            await transport.close()
        except Exception:
            logger.warning("Failed to close connection to %s", self.room_id, exc_info=True)

    async def _pump(self, transport: Transport) -> None:
        while True:
            try:
                message = await transport.receive_json()
            except Exception:
                logger.warning("Connection to %s broke", self.room_id)
                return
            if message is None:
                return
            await self._on_message(message)

    async def _on_message(self, message: Dict[str, Any]) -> None:
        if message.get("type") == "room_joined" and self.storage is not None:
            try:
                info = RoomInfo(
                    room_id=message["roomId"],
                    player_id=self.player_id,
                    player_color=Color(message["color"]),
                    player_name=self.player_name or "",
                )
            except (KeyError, ValueError):
                logger.warning("room_joined without a usable seat: %r", message)
            else:
                save_online_room_info(self.storage, info)
        await self._dispatch(message)

    async def _rejoin(self) -> None:
        info = load_online_room_info(self.storage) if self.storage is not None else None
        if info is not None and info.room_id == self.room_id:
            room_id, player_id, name = info.room_id, info.player_id, info.player_name
        elif self.player_name:
            room_id, player_id, name = self.room_id, self.player_id, self.player_name
        else:
            logger.info("No saved seat for %s, skipping rejoin", self.room_id)
            return
        await self.send({"type": "join_room", "roomId": room_id, "playerName": name, "uuid": player_id})

    # --- outbound ---

    async def join(self, player_name: str) -> bool:
        self.player_name = player_name
        return await self.send(
            {"type": "join_room", "roomId": self.room_id, "playerName": player_name, "uuid": self.player_id}
        )

    async def send(self, message: Dict[str, Any]) -> bool:
        transport = self._transport
        if transport is None or self.state is not ClientState.CONNECTED:
            logger.error("Cannot send %s: not connected (%s)", message.get("type"), self.state.value)
            if message.get("type") == "make_move":
                await self._dispatch({"type": "error", "message": "connection lost, move not sent"})
            return False
        try:
            await transport.send_json(message)
        except Exception:
            logger.exception("Failed to send %s", message.get("type"))
            await self._dispatch({"type": "error", "message": f"failed to send {message.get('type')}"})
            return False
        return True

    async def disconnect(self) -> None:
        """Close the connection and stop any pending reconnect."""
        self._should_reconnect = False
        task, self._task = self._task, None
        transport, self._transport = self._transport, None
        if transport is not None:
            try:
                await transport.close()
            except Exception:
                logger.debug("Transport already closed")
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self.state = ClientState.IDLE
        self.attempt = 0
