"""Client-side persistence of games in progress and online seat identity.

Everything here is best-effort: a missing or corrupted entry loads as ``None``
and write failures are logged, never raised.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple, Union

from stacktoe.ai import Difficulty
from stacktoe.engine import Color, GameState, deserialize_state, serialize_state

logger = logging.getLogger(__name__)

LOCAL_GAME_STATE_KEY = "stacktoe:local:gameState"
AI_GAME_STATE_KEY = "stacktoe:ai:gameState"
AI_DIFFICULTY_KEY = "stacktoe:ai:difficulty"
ONLINE_ROOM_KEY = "stacktoe:online:room"


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class MemoryStorage:
    def __init__(self, items: Optional[Dict[str, str]] = None) -> None:
        self.items: Dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class JsonFileStorage:
    """String key-value pairs kept in a single JSON file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable storage file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        os.replace(tmp, self.path)

    def get_item(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


@dataclass(frozen=True)
class RoomInfo:
    room_id: str
    player_id: str
    player_color: Color
    player_name: str


def _load_state(storage: KeyValueStorage, key: str) -> Optional[GameState]:
    raw = storage.get_item(key)
    if raw is None:
        return None
    try:
        return deserialize_state(json.loads(raw))
    except ValueError:
        logger.warning("Discarding corrupted saved game under %s", key)
        return None


def _safely(action: str, fn, *args) -> None:
    try:
        fn(*args)
    except OSError:
        logger.exception("Failed to %s", action)


# --- local two-player game ---


def save_local_game_state(storage: KeyValueStorage, state: GameState) -> None:
    _safely("save local game", storage.set_item, LOCAL_GAME_STATE_KEY, json.dumps(serialize_state(state)))


def load_local_game_state(storage: KeyValueStorage) -> Optional[GameState]:
    return _load_state(storage, LOCAL_GAME_STATE_KEY)


def clear_local_game_state(storage: KeyValueStorage) -> None:
    _safely("clear local game", storage.remove_item, LOCAL_GAME_STATE_KEY)


# --- single player against the AI ---


def save_ai_game_state(storage: KeyValueStorage, state: GameState, difficulty: Difficulty) -> None:
    _safely("save AI game", storage.set_item, AI_GAME_STATE_KEY, json.dumps(serialize_state(state)))
    _safely("save AI difficulty", storage.set_item, AI_DIFFICULTY_KEY, Difficulty(difficulty).value)


def load_ai_game_state(storage: KeyValueStorage) -> Optional[Tuple[GameState, Difficulty]]:
    state = _load_state(storage, AI_GAME_STATE_KEY)
    raw_difficulty = storage.get_item(AI_DIFFICULTY_KEY)
    if state is None or raw_difficulty is None:
        return None
    try:
        return state, Difficulty(raw_difficulty)
    except ValueError:
        logger.warning("Discarding unknown saved difficulty %r", raw_difficulty)
        return None


def clear_ai_game_state(storage: KeyValueStorage) -> None:
    _safely("clear AI game", storage.remove_item, AI_GAME_STATE_KEY)
    _safely("clear AI difficulty", storage.remove_item, AI_DIFFICULTY_KEY)


# --- online seat identity, replayed on reconnect ---


def save_online_room_info(storage: KeyValueStorage, info: RoomInfo) -> None:
    payload = asdict(info)
    payload["player_color"] = info.player_color.value
    _safely("save room info", storage.set_item, ONLINE_ROOM_KEY, json.dumps(payload))


def load_online_room_info(storage: KeyValueStorage) -> Optional[RoomInfo]:
    raw = storage.get_item(ONLINE_ROOM_KEY)
    if raw is None:
        return None
    try:
        payload = json.loads(raw)
        return RoomInfo(
            room_id=payload["room_id"],
            player_id=payload["player_id"],
            player_color=Color(payload["player_color"]),
            player_name=payload["player_name"],
        )
    except (ValueError, KeyError, TypeError):
        logger.warning("Discarding corrupted room info")
        return None


def clear_online_room_info(storage: KeyValueStorage) -> None:
    _safely("clear room info", storage.remove_item, ONLINE_ROOM_KEY)
