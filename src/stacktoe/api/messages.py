"""Wire messages exchanged over the game WebSocket.

Inbound frames are JSON objects discriminated by ``type`` and parsed with
pydantic; outbound events are plain dicts built by the helpers below.
"""
from __future__ import annotations

from typing import Annotated, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from stacktoe.engine import Color, GameState, Move, Place, Relocate, Size, serialize_state

Coordinate = Annotated[int, Field(ge=0, le=2)]


class PlacePayload(BaseModel):
    type: Literal["place"]
    row: Coordinate
    col: Coordinate
    size: Size

    def to_move(self) -> Move:
        return Place(self.row, self.col, self.size)


class RelocatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["move"]
    from_row: Coordinate = Field(alias="fromRow")
    from_col: Coordinate = Field(alias="fromCol")
    to_row: Coordinate = Field(alias="toRow")
    to_col: Coordinate = Field(alias="toCol")

    def to_move(self) -> Move:
        return Relocate(self.from_row, self.from_col, self.to_row, self.to_col)


MovePayload = Annotated[Union[PlacePayload, RelocatePayload], Field(discriminator="type")]


class JoinRoom(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["join_room"]
    room_id: str = Field(alias="roomId", min_length=1)
    player_name: str = Field(alias="playerName", min_length=1, max_length=32)
    uuid: Optional[str] = None


class MakeMove(BaseModel):
    type: Literal["make_move"]
    move: MovePayload


class LeaveRoom(BaseModel):
    type: Literal["leave_room"]


class RematchRequest(BaseModel):
    type: Literal["rematch_request"]


class RematchAccept(BaseModel):
    type: Literal["rematch_accept"]


class RematchDecline(BaseModel):
    type: Literal["rematch_decline"]


class Emoji(BaseModel):
    type: Literal["emoji"]
    emoji: str = Field(min_length=1, max_length=16)


ClientMessage = Annotated[
    Union[JoinRoom, MakeMove, LeaveRoom, RematchRequest, RematchAccept, RematchDecline, Emoji],
    Field(discriminator="type"),
]
client_message_adapter: TypeAdapter = TypeAdapter(ClientMessage)


def parse_client_message(raw: Union[str, bytes, Dict]):
    """Parse one inbound frame; raises pydantic.ValidationError when malformed."""
    if isinstance(raw, (str, bytes)):
        return client_message_adapter.validate_json(raw)
    return client_message_adapter.validate_python(raw)


# --- server -> client events ---


def room_joined(room_id: str, color: Color) -> Dict:
    return {"type": "room_joined", "roomId": room_id, "color": color.value}


def waiting_for_opponent() -> Dict:
    return {"type": "waiting_for_opponent"}


def opponent_joined(opponent_name: str) -> Dict:
    return {"type": "opponent_joined", "opponentName": opponent_name}


def game_start(state: GameState, your_color: Color) -> Dict:
    return {"type": "game_start", "gameState": serialize_state(state), "yourColor": your_color.value}


def reconnected(room_id: str, state: GameState, your_color: Color) -> Dict:
    return {
        "type": "reconnected",
        "roomId": room_id,
        "gameState": serialize_state(state),
        "yourColor": your_color.value,
    }


def move_made(state: GameState, last_move: Dict, moved_by: Color) -> Dict:
    return {
        "type": "move_made",
        "gameState": serialize_state(state),
        "lastMove": last_move,
        "movedBy": moved_by.value,
    }


def game_over(winner: Color, state: GameState) -> Dict:
    return {"type": "game_over", "winner": winner.value, "gameState": serialize_state(state)}


def opponent_left() -> Dict:
    return {"type": "opponent_left"}


def invalid_move(reason: str) -> Dict:
    return {"type": "invalid_move", "reason": reason}


def error(message: str) -> Dict:
    return {"type": "error", "message": message}


def rematch_requested(by: Color, loser_starts: Optional[Color]) -> Dict:
    return {
        "type": "rematch_requested",
        "by": by.value,
        "loserStarts": loser_starts.value if loser_starts else None,
    }


def rematch_declined() -> Dict:
    return {"type": "rematch_declined"}


def rematch_start(state: GameState, your_color: Color) -> Dict:
    return {"type": "rematch_start", "gameState": serialize_state(state), "yourColor": your_color.value}


def emoji(symbol: str, sender: Color) -> Dict:
    return {"type": "emoji", "emoji": symbol, "from": sender.value}
