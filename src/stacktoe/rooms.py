"""Authoritative room records for online play.

Each room is one JSON document in a ``KeyValueStore`` under ``room:<id>``,
always read and re-written whole, with the TTL refreshed on every write.
"""
from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from stacktoe.engine import Color, GameState, deserialize_state, initial_state, serialize_state
from stacktoe.store import KeyValueStore

logger = logging.getLogger(__name__)

ROOM_PREFIX = "room:"
ROOM_TTL_SECONDS = 3600 * 24
ROOM_ID_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O, 1/I
ROOM_ID_LENGTH = 4
MAX_ID_ATTEMPTS = 10


class RoomStatus(str, Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class RoomError(Exception):
    """Session-level failure reported to the client as an ``error`` event."""


class RoomNotFoundError(RoomError):
    def __init__(self, room_id: str) -> None:
        super().__init__("room not found")
        self.room_id = room_id


class RoomFullError(RoomError):
    def __init__(self, room_id: str) -> None:
        super().__init__("room full")
        self.room_id = room_id


@dataclass
class Seat:
    name: str
    identity: Optional[str] = None


@dataclass
class Room:
    room_id: str
    game_state: GameState = field(default_factory=initial_state)
    players: Dict[Color, Optional[Seat]] = field(
        default_factory=lambda: {Color.RED: None, Color.BLUE: None}
    )
    status: RoomStatus = RoomStatus.WAITING
    created_at: float = 0.0
    last_activity: float = 0.0

    @property
    def empty(self) -> bool:
        return all(seat is None for seat in self.players.values())

    @property
    def full(self) -> bool:
        return all(seat is not None for seat in self.players.values())

    def open_seat(self) -> Optional[Color]:
        for color in (Color.RED, Color.BLUE):
            if self.players[color] is None:
                return color
        return None

    def to_dict(self) -> Dict:
        return {
            "roomId": self.room_id,
            "players": {
                color.value: (
                    {"name": seat.name, "identity": seat.identity} if seat is not None else None
                )
                for color, seat in self.players.items()
            },
            "gameState": serialize_state(self.game_state),
            "status": self.status.value,
            "createdAt": self.created_at,
            "lastActivity": self.last_activity,
        }

    @classmethod
    def from_dict(cls, payload: Dict) -> "Room":
        try:
            players: Dict[Color, Optional[Seat]] = {}
            for color in Color:
                seat = payload["players"].get(color.value)
                players[color] = (
                    Seat(name=seat["name"], identity=seat.get("identity")) if seat else None
                )
            return cls(
                room_id=payload["roomId"],
                game_state=deserialize_state(payload["gameState"]),
                players=players,
                status=RoomStatus(payload["status"]),
                created_at=float(payload.get("createdAt", 0.0)),
                last_activity=float(payload.get("lastActivity", 0.0)),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ValueError(f"Malformed room document: {exc}") from exc


def normalize_room_id(room_id: str) -> str:
    return room_id.strip().upper()


class RoomManager:
    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = ROOM_TTL_SECONDS,
        id_length: int = ROOM_ID_LENGTH,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.id_length = id_length
        self._clock = clock
        self._rng = rng or random.SystemRandom()

    def _key(self, room_id: str) -> str:
        return f"{ROOM_PREFIX}{normalize_room_id(room_id)}"

    def generate_room_id(self) -> str:
        return "".join(self._rng.choice(ROOM_ID_ALPHABET) for _ in range(self.id_length))

    async def create_room(self) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            room_id = self.generate_room_id()
            if await self.store.get(self._key(room_id)) is None:
                break
        else:
            raise RoomError("could not allocate a room id")

        now = self._clock()
        await self.save_room(Room(room_id=room_id, created_at=now, last_activity=now))
        logger.info("Room created: %s", room_id)
        return room_id

    async def get_room(self, room_id: str) -> Optional[Room]:
        raw = await self.store.get(self._key(room_id))
        if raw is None:
            return None
        try:
            return Room.from_dict(json.loads(raw))
        except ValueError:
            logger.exception("Discarding unreadable room document %s", room_id)
            return None

    async def require_room(self, room_id: str) -> Room:
        room = await self.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        return room

    async def save_room(self, room: Room) -> None:
        await self.store.set(self._key(room.room_id), json.dumps(room.to_dict()), self.ttl_seconds)

    async def delete_room(self, room_id: str) -> None:
        await self.store.delete(self._key(room_id))
        logger.info("Room deleted: %s", room_id)

    async def join_room(
        self, room_id: str, player_name: str, identity: Optional[str] = None
    ) -> Tuple[Color, Room]:
        room = await self.require_room(room_id)
        color = room.open_seat()
        if color is None:
            raise RoomFullError(room.room_id)

        room.players[color] = Seat(name=player_name, identity=identity)
        if room.full:
            room.status = RoomStatus.PLAYING
        room.last_activity = self._clock()
        await self.save_room(room)
        logger.info("Player joined: %s -> %s (%s)", player_name, room.room_id, color.value)
        return color, room

    async def rejoin_room(self, room_id: str, identity: str) -> Tuple[Color, Room]:
        """Reclaim the seat held under ``identity``."""
        room = await self.require_room(room_id)
        for color, seat in room.players.items():
            if seat is not None and seat.identity == identity:
                room.last_activity = self._clock()
                await self.save_room(room)
                logger.info("Player rejoined: %s -> %s (%s)", identity, room.room_id, color.value)
                return color, room
        raise RoomError("not a member of this room")

    async def leave_room(self, room_id: str, color: Color) -> Optional[Room]:
        """Vacate ``color``'s seat; returns the surviving room or None once deleted."""
        room = await self.get_room(room_id)
        if room is None:
            return None
        room.players[color] = None
        if room.empty:
            await self.delete_room(room.room_id)
            return None

        room.game_state = initial_state()
        room.status = RoomStatus.WAITING
        room.last_activity = self._clock()
        await self.save_room(room)
        logger.info("Player left: %s (%s), room reset to waiting", room.room_id, color.value)
        return room

    async def update_game_state(self, room_id: str, game_state: GameState) -> Room:
        room = await self.require_room(room_id)
        room.game_state = game_state
        if game_state.winner is not None:
            room.status = RoomStatus.FINISHED
        room.last_activity = self._clock()
        await self.save_room(room)
        return room

    async def reset_for_rematch(self, room_id: str, last_winner: Optional[Color]) -> Room:
        """Fresh board with the previous game's loser moving first."""
        room = await self.require_room(room_id)
        first = last_winner.opponent() if last_winner is not None else Color.RED
        room.game_state = initial_state(first)
        room.status = RoomStatus.PLAYING
        room.last_activity = self._clock()
        await self.save_room(room)
        logger.info("Rematch in %s, %s moves first", room.room_id, first.value)
        return room
