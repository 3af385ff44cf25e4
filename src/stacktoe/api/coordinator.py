"""Live-connection coordination for online rooms.

The coordinator maps each WebSocket to a seat, applies inbound messages to the
Room Manager and the rules engine, and fans events out to the room. All of its
bookkeeping is process-local; the durable room record lives in the store.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Set, Union

from pydantic import ValidationError

from stacktoe.engine import Color, apply_move, move_to_dict, validate_move
from stacktoe.results import GameResultReporter, build_result
from stacktoe.rooms import RoomError, RoomManager, RoomStatus

from . import messages
from .messages import (
    Emoji,
    JoinRoom,
    LeaveRoom,
    MakeMove,
    RematchAccept,
    RematchDecline,
    RematchRequest,
)

logger = logging.getLogger(__name__)

FAILURE_MESSAGES = {
    "join_room": "failed to join room",
    "make_move": "move failed",
    "rematch_request": "rematch failed",
    "rematch_accept": "rematch failed",
}


class Connection(Protocol):
    async def send_json(self, data: Any) -> None:
        ...

    async def close(self, code: int = 1000) -> None:
        ...


@dataclass(frozen=True)
class SeatBinding:
    room_id: str
    color: Color
    player_name: str
    identity: Optional[str] = None


class ConnectionRegistry:
    """Bidirectional connection <-> seat map for one process."""

    def __init__(self) -> None:
        self._bindings: Dict[Connection, SeatBinding] = {}
        self._rooms: Dict[str, Dict[Color, Connection]] = {}

    def bind(self, connection: Connection, binding: SeatBinding) -> None:
        self._bindings[connection] = binding
        self._rooms.setdefault(binding.room_id, {})[binding.color] = connection

    def unbind(self, connection: Connection) -> Optional[SeatBinding]:
        binding = self._bindings.pop(connection, None)
        if binding is None:
            return None
        seats = self._rooms.get(binding.room_id)
        if seats is not None:
            if seats.get(binding.color) is connection:
                del seats[binding.color]
            if not seats:
                del self._rooms[binding.room_id]
        return binding

    def binding_for(self, connection: Connection) -> Optional[SeatBinding]:
        return self._bindings.get(connection)

    def connections_in_room(self, room_id: str) -> Dict[Color, Connection]:
        return dict(self._rooms.get(room_id, {}))

    def connection_for(self, room_id: str, color: Color) -> Optional[Connection]:
        return self._rooms.get(room_id, {}).get(color)

    def stats(self) -> Dict:
        return {
            "totalGameRooms": len(self._rooms),
            "totalGamePlayers": len(self._bindings),
            "rooms": [
                {"roomId": room_id, "playerCount": len(seats)}
                for room_id, seats in sorted(self._rooms.items())
            ],
        }


class ConnectionCoordinator:
    def __init__(
        self,
        rooms: RoomManager,
        reporter: Optional[GameResultReporter] = None,
        registry: Optional[ConnectionRegistry] = None,
    ) -> None:
        self.rooms = rooms
        self.reporter = reporter
        self.registry = registry or ConnectionRegistry()
        self.pending_rematch: Dict[str, Color] = {}
        self.last_winner: Dict[str, Color] = {}
        self.move_counts: Dict[str, int] = {}
        self._report_tasks: Set[asyncio.Task] = set()

    # --- transport helpers ---

    async def send(self, connection: Connection, payload: Dict) -> None:
        try:
            await connection.send_json(payload)
        except Exception:
            logger.warning("Dropping %s for an unreachable connection", payload.get("type"))

    async def broadcast(
        self, room_id: str, payload: Dict, exclude: Optional[Connection] = None
    ) -> None:
        for connection in self.registry.connections_in_room(room_id).values():
            if connection is not exclude:
                await self.send(connection, payload)

    # --- inbound dispatch ---

    async def handle_message(self, connection: Connection, raw: Union[str, bytes, Dict]) -> bool:
        """Handle one inbound frame. Returns False once the connection should close."""
        try:
            message = messages.parse_client_message(raw)
        except ValidationError as exc:
            logger.info("Rejected malformed message: %s", exc.errors()[:1])
            await self.send(connection, messages.error("invalid message"))
            return True

        if isinstance(message, LeaveRoom):
            await self.handle_leave(connection)
            return False
        try:
            await self._dispatch(connection, message)
        except Exception:
            # The seat stays bound so the player can retry.
            logger.exception("Failed to handle %s", message.type)
            await self.send(connection, messages.error(FAILURE_MESSAGES.get(message.type, "request failed")))
        return True

    async def _dispatch(self, connection: Connection, message) -> None:
        if isinstance(message, JoinRoom):
            await self.handle_join(connection, message)
        elif isinstance(message, MakeMove):
            await self.handle_move(connection, message)
        elif isinstance(message, RematchRequest):
            await self.handle_rematch_request(connection)
        elif isinstance(message, RematchAccept):
            await self.handle_rematch_accept(connection)
        elif isinstance(message, RematchDecline):
            await self.handle_rematch_decline(connection)
        elif isinstance(message, Emoji):
            await self.handle_emoji(connection, message)

    async def _require_binding(self, connection: Connection) -> Optional[SeatBinding]:
        binding = self.registry.binding_for(connection)
        if binding is None:
            await self.send(connection, messages.error("join a room first"))
        return binding

    # --- join / rejoin ---

    async def handle_join(self, connection: Connection, message: JoinRoom) -> None:
        existing = self.registry.binding_for(connection)
        if existing is not None:
            logger.info("Connection already seated in %s, ignoring join", existing.room_id)
            return

        if message.uuid and await self._try_rejoin(connection, message):
            return

        try:
            color, room = await self.rooms.join_room(message.room_id, message.player_name, message.uuid)
        except RoomError as exc:
            logger.info("Join failed for %s: %s", message.room_id, exc)
            await self.send(connection, messages.error(str(exc)))
            return

        room_id = room.room_id
        self.registry.bind(
            connection,
            SeatBinding(room_id=room_id, color=color, player_name=message.player_name, identity=message.uuid),
        )
        await self.send(connection, messages.room_joined(room_id, color))

        if room.status is not RoomStatus.PLAYING:
            await self.send(connection, messages.waiting_for_opponent())
            return

        self.move_counts[room_id] = 0
        await self.broadcast(room_id, messages.opponent_joined(message.player_name), exclude=connection)
        for seat_color, seat_connection in self.registry.connections_in_room(room_id).items():
            await self.send(seat_connection, messages.game_start(room.game_state, seat_color))
        logger.info("Game started: %s", room_id)

    async def _try_rejoin(self, connection: Connection, message: JoinRoom) -> bool:
        room = await self.rooms.get_room(message.room_id)
        if room is None:
            return False
        for color, seat in room.players.items():
            if seat is None or seat.identity != message.uuid:
                continue
            if self.registry.connection_for(room.room_id, color) is not None:
                logger.info("Identity already seated as %s in %s", color.value, room.room_id)
                await self.send(connection, messages.error("already connected"))
                return True
            color, room = await self.rooms.rejoin_room(room.room_id, message.uuid)
            self.registry.bind(
                connection,
                SeatBinding(room.room_id, color, seat.name, message.uuid),
            )
            await self.send(connection, messages.room_joined(room.room_id, color))
            await self.send(connection, messages.reconnected(room.room_id, room.game_state, color))
            return True
        return False

    # --- moves ---

    async def handle_move(self, connection: Connection, message: MakeMove) -> None:
        binding = await self._require_binding(connection)
        if binding is None:
            return
        room = await self.rooms.get_room(binding.room_id)
        if room is None:
            await self.send(connection, messages.error("room not found"))
            return
        if room.status is not RoomStatus.PLAYING:
            await self.send(connection, messages.error("game not in progress"))
            return

        move = message.move.to_move()
        verdict = validate_move(room.game_state, move, binding.color)
        if not verdict:
            await self.send(connection, messages.invalid_move(verdict.reason or "invalid move"))
            return

        new_state = apply_move(room.game_state, move)
        room = await self.rooms.update_game_state(binding.room_id, new_state)
        self.move_counts[room.room_id] = self.move_counts.get(room.room_id, 0) + 1
        await self.broadcast(
            room.room_id, messages.move_made(new_state, move_to_dict(move), binding.color)
        )
        logger.info("Move made in %s by %s", room.room_id, binding.color.value)

        if new_state.winner is None:
            return
        self.last_winner[room.room_id] = new_state.winner
        await self.broadcast(room.room_id, messages.game_over(new_state.winner, new_state))
        logger.info("Game over in %s, winner %s", room.room_id, new_state.winner.value)
        self._schedule_report(room)

    def _schedule_report(self, room) -> None:
        if self.reporter is None:
            return
        red, blue = room.players[Color.RED], room.players[Color.BLUE]
        result = build_result(
            room.room_id,
            red.identity if red else None,
            blue.identity if blue else None,
            room.game_state.winner,
            self.move_counts.get(room.room_id, 0),
        )
        if result is None:
            logger.info("Skipping result hand-off for %s: guest player", room.room_id)
            return
        task = asyncio.create_task(self._report(result))
        self._report_tasks.add(task)
        task.add_done_callback(self._report_tasks.discard)

    async def _report(self, result) -> None:
        try:
            await self.reporter.report(result)  # type: ignore[union-attr]
        except Exception:
            logger.exception("Result hand-off failed for %s", result.room_id)

    async def drain_reports(self) -> None:
        """Wait for outstanding result hand-offs (shutdown and tests)."""
        if self._report_tasks:
            await asyncio.gather(*list(self._report_tasks), return_exceptions=True)

    # --- leave / disconnect ---

    async def handle_leave(self, connection: Connection) -> None:
        await self.disconnect(connection)
        try:
            await connection.close()
        except Exception:
            logger.debug("Connection already closed")

    async def disconnect(self, connection: Connection) -> None:
        """Release the connection's seat. Safe to call more than once."""
        binding = self.registry.binding_for(connection)
        if binding is None:
            return
        room_id = binding.room_id
        self.pending_rematch.pop(room_id, None)
        self.last_winner.pop(room_id, None)
        self.move_counts.pop(room_id, None)
        self.registry.unbind(connection)
        try:
            await self.rooms.leave_room(room_id, binding.color)
        except Exception:
            logger.exception("Failed to release seat %s in %s", binding.color.value, room_id)
        logger.info("Player left: %s (%s)", binding.player_name, room_id)
        await self.broadcast(room_id, messages.opponent_left())

    # --- rematch ---

    async def _finished_room(self, connection: Connection, binding: SeatBinding):
        room = await self.rooms.get_room(binding.room_id)
        if room is None:
            await self.send(connection, messages.error("room not found"))
            return None
        if room.status is not RoomStatus.FINISHED:
            await self.send(connection, messages.error("game still in progress"))
            return None
        return room

    async def handle_rematch_request(self, connection: Connection) -> None:
        binding = await self._require_binding(connection)
        if binding is None:
            return
        room = await self._finished_room(connection, binding)
        if room is None:
            return

        pending = self.pending_rematch.get(room.room_id)
        if pending is binding.color:
            return
        if pending is not None:
            await self._start_rematch(room.room_id)
            return

        self.pending_rematch[room.room_id] = binding.color
        winner = self.last_winner.get(room.room_id)
        loser = winner.opponent() if winner is not None else None
        await self.broadcast(room.room_id, messages.rematch_requested(binding.color, loser))

    async def handle_rematch_accept(self, connection: Connection) -> None:
        binding = await self._require_binding(connection)
        if binding is None:
            return
        pending = self.pending_rematch.get(binding.room_id)
        if pending is None or pending is binding.color:
            await self.send(connection, messages.error("no rematch request pending"))
            return
        if await self._finished_room(connection, binding) is None:
            return
        await self._start_rematch(binding.room_id)

    async def handle_rematch_decline(self, connection: Connection) -> None:
        binding = await self._require_binding(connection)
        if binding is None:
            return
        self.pending_rematch.pop(binding.room_id, None)
        await self.broadcast(binding.room_id, messages.rematch_declined())

    async def _start_rematch(self, room_id: str) -> None:
        room = await self.rooms.reset_for_rematch(room_id, self.last_winner.get(room_id))
        self.pending_rematch.pop(room_id, None)
        self.last_winner.pop(room_id, None)
        self.move_counts[room_id] = 0
        for color, connection in self.registry.connections_in_room(room_id).items():
            await self.send(connection, messages.rematch_start(room.game_state, color))

    # --- chatter ---

    async def handle_emoji(self, connection: Connection, message: Emoji) -> None:
        binding = await self._require_binding(connection)
        if binding is None:
            return
        await self.broadcast(
            binding.room_id, messages.emoji(message.emoji, binding.color), exclude=connection
        )
