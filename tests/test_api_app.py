from __future__ import annotations

import pytest

fastapi = pytest.importorskip("fastapi")

from fastapi.testclient import TestClient

from stacktoe.api import create_app
from stacktoe.config import Settings
from stacktoe.engine import initial_state, serialize_state
from stacktoe.store import MemoryStore


class RecordingReporter:
    def __init__(self) -> None:
        self.results = []

    async def report(self, result) -> None:
        self.results.append(result)


@pytest.fixture()
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture()
def client(reporter: RecordingReporter) -> TestClient:
    app = create_app(Settings(), store=MemoryStore(), reporter=reporter)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client: TestClient) -> None:
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok", "service": "game-service"}


def test_create_and_fetch_room(client: TestClient) -> None:
    res = client.post("/api/rooms")
    assert res.status_code == 200
    room_id = res.json()["roomId"]
    assert len(room_id) == 4

    room = client.get(f"/api/rooms/{room_id}").json()
    assert room["roomId"] == room_id
    assert room["status"] == "waiting"
    assert room["players"] == {"red": None, "blue": None}
    assert room["gameState"] == serialize_state(initial_state())


def test_unknown_room_is_404(client: TestClient) -> None:
    res = client.get("/api/rooms/ZZZZ")
    assert res.status_code == 404
    assert res.json()["detail"] == "room not found"


def test_legal_moves_endpoint(client: TestClient) -> None:
    res = client.post("/api/legal-moves", json={"gameState": serialize_state(initial_state())})
    assert res.status_code == 200
    moves = res.json()["moves"]
    assert len(moves) == 27
    assert moves[0] == {"type": "place", "row": 0, "col": 0, "size": "small"}


def test_legal_moves_rejects_bad_state(client: TestClient) -> None:
    res = client.post("/api/legal-moves", json={"gameState": {"board": []}})
    assert res.status_code == 400


@pytest.mark.parametrize("difficulty", ["easy", "medium"])
def test_ai_move_endpoint(client: TestClient, difficulty: str) -> None:
    body = {"gameState": serialize_state(initial_state()), "difficulty": difficulty}
    res = client.post("/api/ai/move", json=body)
    assert res.status_code == 200
    move = res.json()["move"]
    assert move["type"] == "place"


def test_ai_move_rejects_unknown_difficulty(client: TestClient) -> None:
    body = {"gameState": serialize_state(initial_state()), "difficulty": "impossible"}
    assert client.post("/api/ai/move", json=body).status_code == 422


def test_websocket_game_flow(client: TestClient, reporter: RecordingReporter) -> None:
    room_id = client.post("/api/rooms").json()["roomId"]
    with client.websocket_connect(f"/ws/game/{room_id}") as ws_a:
        ws_a.send_json({"type": "join_room", "roomId": room_id, "playerName": "Ada", "uuid": "id-a"})
        assert ws_a.receive_json() == {"type": "room_joined", "roomId": room_id, "color": "red"}
        assert ws_a.receive_json() == {"type": "waiting_for_opponent"}

        with client.websocket_connect(f"/ws/game/{room_id}") as ws_b:
            ws_b.send_json({"type": "join_room", "roomId": room_id, "playerName": "Bo", "uuid": "id-b"})
            assert ws_b.receive_json()["color"] == "blue"
            assert ws_a.receive_json() == {"type": "opponent_joined", "opponentName": "Bo"}
            start_a = ws_a.receive_json()
            start_b = ws_b.receive_json()
            assert start_a["type"] == start_b["type"] == "game_start"
            assert start_a["yourColor"] == "red"
            assert start_b["yourColor"] == "blue"

            stats = client.get("/stats/game").json()
            assert stats["totalGamePlayers"] == 2

            # Blue tries to move out of turn: only blue hears about it.
            ws_b.send_json({"type": "make_move", "move": {"type": "place", "row": 0, "col": 0, "size": "small"}})
            assert ws_b.receive_json() == {"type": "invalid_move", "reason": "not your turn"}

            script = [
                (ws_a, {"type": "place", "row": 0, "col": 0, "size": "small"}),
                (ws_b, {"type": "place", "row": 1, "col": 0, "size": "small"}),
                (ws_a, {"type": "place", "row": 0, "col": 1, "size": "small"}),
                (ws_b, {"type": "place", "row": 1, "col": 1, "size": "small"}),
                (ws_a, {"type": "place", "row": 0, "col": 2, "size": "medium"}),
            ]
            for sender, move in script:
                sender.send_json({"type": "make_move", "move": move})
                for ws in (ws_a, ws_b):
                    event = ws.receive_json()
                    assert event["type"] == "move_made"
                    assert event["lastMove"] == move

            assert ws_a.receive_json()["winner"] == "red"
            assert ws_b.receive_json()["type"] == "game_over"

            ws_b.send_json({"type": "leave_room"})

        assert ws_a.receive_json() == {"type": "opponent_left"}

    room = client.get(f"/api/rooms/{room_id}")
    assert room.status_code == 404
    assert len(reporter.results) == 1
    assert reporter.results[0].total_moves == 5
