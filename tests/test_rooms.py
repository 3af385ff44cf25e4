import json
import random

import pytest

from stacktoe.engine import Color, Place, Size, apply_move, initial_state
from stacktoe.rooms import (
    ROOM_ID_ALPHABET,
    Room,
    RoomError,
    RoomFullError,
    RoomManager,
    RoomNotFoundError,
    RoomStatus,
)
from stacktoe.store import MemoryStore


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def manager(store: MemoryStore) -> RoomManager:
    return RoomManager(store, clock=FakeClock(), rng=random.Random(11))


def winning_state():
    state = initial_state()
    for move in [Place(0, 0, Size.SMALL), Place(1, 0, Size.SMALL), Place(0, 1, Size.SMALL),
                 Place(1, 1, Size.SMALL), Place(0, 2, Size.MEDIUM)]:
        state = apply_move(state, move)
    assert state.winner is Color.RED
    return state


@pytest.mark.asyncio
async def test_create_room_starts_waiting(manager: RoomManager, store: MemoryStore) -> None:
    room_id = await manager.create_room()
    assert len(room_id) == 4
    assert set(room_id) <= set(ROOM_ID_ALPHABET)
    room = await manager.get_room(room_id)
    assert room.status is RoomStatus.WAITING
    assert room.empty
    assert room.game_state == initial_state()
    assert await store.keys("room:") == [f"room:{room_id}"]
    assert await store.ttl(f"room:{room_id}") == pytest.approx(86400, abs=1)


@pytest.mark.asyncio
async def test_room_ids_avoid_confusable_characters(manager: RoomManager) -> None:
    for _ in range(200):
        room_id = manager.generate_room_id()
        assert not set(room_id) & set("01IO")


@pytest.mark.asyncio
async def test_create_room_retries_collisions(store: MemoryStore) -> None:
    class ScriptedRng:
        def __init__(self, ids):
            self.chars = iter("".join(ids))

        def choice(self, _alphabet):
            return next(self.chars)

    first = RoomManager(store, rng=ScriptedRng(["AAAA"]))
    assert await first.create_room() == "AAAA"
    second = RoomManager(store, rng=ScriptedRng(["AAAA", "AAAA", "BBBB"]))
    assert await second.create_room() == "BBBB"


@pytest.mark.asyncio
async def test_create_room_gives_up_after_bounded_retries(store: MemoryStore) -> None:
    class ConstantRng:
        def choice(self, _alphabet):
            return "Z"

    manager = RoomManager(store, rng=ConstantRng())
    assert await manager.create_room() == "ZZZZ"
    with pytest.raises(RoomError):
        await manager.create_room()


@pytest.mark.asyncio
async def test_join_fills_red_then_blue(manager: RoomManager) -> None:
    room_id = await manager.create_room()
    color, room = await manager.join_room(room_id, "Ada", "ada-1")
    assert color is Color.RED
    assert room.status is RoomStatus.WAITING
    color, room = await manager.join_room(room_id.lower(), "Bo")
    assert color is Color.BLUE
    assert room.status is RoomStatus.PLAYING
    assert room.players[Color.RED].name == "Ada"
    assert room.players[Color.RED].identity == "ada-1"
    assert room.players[Color.BLUE].identity is None
    with pytest.raises(RoomFullError, match="room full"):
        await manager.join_room(room_id, "Cy")


@pytest.mark.asyncio
async def test_join_missing_room(manager: RoomManager) -> None:
    with pytest.raises(RoomNotFoundError, match="room not found"):
        await manager.join_room("NOPE", "Ada")


@pytest.mark.asyncio
async def test_expired_room_is_not_found() -> None:
    clock = FakeClock(0.0)
    manager = RoomManager(MemoryStore(clock=clock), ttl_seconds=30, rng=random.Random(1))
    room_id = await manager.create_room()
    clock.now += 31
    assert await manager.get_room(room_id) is None
    with pytest.raises(RoomNotFoundError):
        await manager.join_room(room_id, "Ada")


@pytest.mark.asyncio
async def test_update_game_state_finishes_room(manager: RoomManager) -> None:
    room_id = await manager.create_room()
    await manager.join_room(room_id, "Ada")
    await manager.join_room(room_id, "Bo")
    room = await manager.update_game_state(room_id, winning_state())
    assert room.status is RoomStatus.FINISHED
    stored = await manager.get_room(room_id)
    assert stored.game_state.winner is Color.RED


@pytest.mark.asyncio
async def test_leave_resets_to_waiting_then_deletes(manager: RoomManager, store: MemoryStore) -> None:
    room_id = await manager.create_room()
    await manager.join_room(room_id, "Ada")
    await manager.join_room(room_id, "Bo")
    await manager.update_game_state(room_id, winning_state())

    room = await manager.leave_room(room_id, Color.RED)
    assert room.status is RoomStatus.WAITING
    assert room.players[Color.RED] is None
    assert room.players[Color.BLUE].name == "Bo"
    assert room.game_state == initial_state()

    assert await manager.leave_room(room_id, Color.BLUE) is None
    assert await store.get(f"room:{room_id}") is None
    # already gone
    assert await manager.leave_room(room_id, Color.BLUE) is None


@pytest.mark.asyncio
async def test_rematch_loser_moves_first(manager: RoomManager) -> None:
    room_id = await manager.create_room()
    await manager.join_room(room_id, "Ada")
    await manager.join_room(room_id, "Bo")
    await manager.update_game_state(room_id, winning_state())

    room = await manager.reset_for_rematch(room_id, Color.RED)
    assert room.status is RoomStatus.PLAYING
    assert room.game_state == initial_state(Color.BLUE)

    room = await manager.reset_for_rematch(room_id, None)
    assert room.game_state.current_player is Color.RED


@pytest.mark.asyncio
async def test_rejoin_room_by_identity(manager: RoomManager) -> None:
    room_id = await manager.create_room()
    await manager.join_room(room_id, "Ada", "ada-1")
    await manager.join_room(room_id, "Bo", "bo-2")
    color, room = await manager.rejoin_room(room_id, "bo-2")
    assert color is Color.BLUE
    with pytest.raises(RoomError, match="not a member"):
        await manager.rejoin_room(room_id, "stranger")


@pytest.mark.asyncio
async def test_corrupt_room_document_reads_as_missing(manager: RoomManager, store: MemoryStore) -> None:
    await store.set("room:BAD1", "{not json", 60)
    assert await manager.get_room("BAD1") is None
    await store.set("room:BAD2", json.dumps({"roomId": "BAD2"}), 60)
    assert await manager.get_room("BAD2") is None


def test_room_document_shape() -> None:
    room = Room(room_id="ABCD", created_at=1.0, last_activity=2.0)
    payload = room.to_dict()
    assert set(payload) == {"roomId", "players", "gameState", "status", "createdAt", "lastActivity"}
    assert payload["players"] == {"red": None, "blue": None}
    assert payload["status"] == "waiting"
    assert Room.from_dict(payload) == room
