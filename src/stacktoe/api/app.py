from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from stacktoe import __version__
from stacktoe.ai import Difficulty, select_move
from stacktoe.config import Settings
from stacktoe.engine import Color, GameState, deserialize_state, legal_moves, move_to_dict
from stacktoe.results import GameResultReporter, HttpResultReporter, LoggingResultReporter
from stacktoe.rooms import RoomError, RoomManager
from stacktoe.store import KeyValueStore, MemoryStore

from .coordinator import ConnectionCoordinator

logger = logging.getLogger(__name__)


class CreateRoomResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(alias="roomId")


class PositionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    game_state: Dict = Field(alias="gameState")
    color: Optional[Color] = None


class AIMoveRequest(PositionRequest):
    difficulty: Difficulty = Difficulty.EASY


def _parse_state(payload: Dict) -> GameState:
    try:
        return deserialize_state(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    reporter: Optional[GameResultReporter] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    if reporter is None:
        if settings.results_url:
            reporter = HttpResultReporter(settings.results_url, timeout=settings.results_timeout)
        else:
            reporter = LoggingResultReporter()
    rooms = RoomManager(
        store if store is not None else MemoryStore(),
        ttl_seconds=settings.room_ttl_seconds,
        id_length=settings.room_id_length,
    )
    coordinator = ConnectionCoordinator(rooms, reporter=reporter)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        await coordinator.drain_reports()

    app = FastAPI(title="stacktoe game service", version=__version__, lifespan=lifespan)
    app.state.rooms = rooms
    app.state.coordinator = coordinator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok", "service": "game-service"}

    @app.get("/stats/game")
    async def game_stats() -> Dict:
        return coordinator.registry.stats()

    @app.post("/api/rooms", response_model=CreateRoomResponse, response_model_by_alias=True)
    async def create_room() -> CreateRoomResponse:
        try:
            room_id = await rooms.create_room()
        except RoomError as exc:
            logger.error("Room creation failed: %s", exc)
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return CreateRoomResponse(room_id=room_id)

    @app.get("/api/rooms/{room_id}")
    async def get_room(room_id: str) -> Dict:
        room = await rooms.get_room(room_id)
        if room is None:
            raise HTTPException(status_code=404, detail="room not found")
        return room.to_dict()

    @app.post("/api/legal-moves")
    def list_legal_moves(body: PositionRequest) -> Dict[str, List[Dict]]:
        state = _parse_state(body.game_state)
        color = body.color or state.current_player
        return {"moves": [move_to_dict(m) for m in legal_moves(state, color)]}

    @app.post("/api/ai/move")
    def ai_move(body: AIMoveRequest) -> Dict:
        state = _parse_state(body.game_state)
        color = body.color or state.current_player
        move = select_move(
            state,
            color,
            body.difficulty,
            medium_depth=settings.medium_depth,
            hard_depth=settings.hard_depth,
        )
        return {"move": move_to_dict(move) if move is not None else None}

    @app.websocket("/ws/game/{room_id}")
    async def ws_game(websocket: WebSocket, room_id: str) -> None:
        await websocket.accept()
        logger.info("WebSocket connection for room %s", room_id)
        try:
            while True:
                data = await websocket.receive_text()
                if not await coordinator.handle_message(websocket, data):
                    break
        except WebSocketDisconnect:
            pass
        finally:
            await coordinator.disconnect(websocket)

    return app
