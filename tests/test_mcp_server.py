from __future__ import annotations

import pytest

pytest.importorskip("mcp")

from stacktoe import mcp_server
from stacktoe.engine import initial_state, serialize_state


@pytest.fixture()
def calls(monkeypatch: pytest.MonkeyPatch):
    seen = []

    def fake_request(method, path, json=None):
        seen.append((method, path, json))
        return {"ok": True}

    monkeypatch.setattr(mcp_server, "_request", fake_request)
    return seen


def test_room_tools(calls) -> None:
    mcp_server.create_room()
    mcp_server.get_room(" abcd ")
    assert calls == [("POST", "/api/rooms", None), ("GET", "/api/rooms/ABCD", None)]


def test_suggest_move_payload(calls) -> None:
    state = serialize_state(initial_state())
    mcp_server.suggest_move(state, difficulty="HARD", color="Blue")
    assert calls == [("POST", "/api/ai/move", {"gameState": state, "color": "blue", "difficulty": "hard"})]


def test_rejects_unknown_inputs(calls) -> None:
    state = serialize_state(initial_state())
    with pytest.raises(ValueError):
        mcp_server.suggest_move(state, difficulty="godlike")
    with pytest.raises(ValueError):
        mcp_server.legal_moves(state, color="green")
    assert calls == []
