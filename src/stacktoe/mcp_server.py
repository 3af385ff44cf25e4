"""MCP tool server for stacktoe.

Expose the game service's HTTP API so an external MCP client can open rooms,
inspect positions and ask the built-in AI for moves.
"""
from __future__ import annotations

import os
from typing import Any, Dict, Optional

import httpx
from mcp.server.fastmcp import FastMCP

API_BASE = os.getenv("STACKTOE_API_URL", "http://127.0.0.1:8000").rstrip("/")
VALID_DIFFICULTIES = {"easy", "medium", "hard"}
VALID_COLORS = {"red", "blue"}

mcp = FastMCP("stacktoe")


def _request(
    method: str,
    path: str,
    json: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    with httpx.Client(timeout=20.0) as client:
        response = client.request(method, f"{API_BASE}{path}", json=json)
    if response.is_error:
        detail = response.text
        try:
            detail = response.json().get("detail", detail)
        except ValueError:
            pass
        raise ValueError(f"{method} {path} failed ({response.status_code}): {detail}")
    return response.json()


def _position(game_state: Dict[str, Any], color: Optional[str]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"gameState": game_state}
    if color is not None:
        color = color.lower().strip()
        if color not in VALID_COLORS:
            raise ValueError(f"Unsupported color '{color}'. Valid colors: {sorted(VALID_COLORS)}")
        payload["color"] = color
    return payload


@mcp.tool(description="Check whether the stacktoe game service is running.")
def health() -> Dict[str, Any]:
    return _request("GET", "/health")


@mcp.tool(description="Create an online room and return its four-character roomId.")
def create_room() -> Dict[str, Any]:
    return _request("POST", "/api/rooms")


@mcp.tool(description="Fetch a room record: seats, status and the current gameState.")
def get_room(room_id: str) -> Dict[str, Any]:
    return _request("GET", f"/api/rooms/{room_id.strip().upper()}")


@mcp.tool(
    description=(
        "List legal moves for a gameState. color defaults to the side to move "
        "(red or blue)."
    )
)
def legal_moves(game_state: Dict[str, Any], color: Optional[str] = None) -> Dict[str, Any]:
    return _request("POST", "/api/legal-moves", json=_position(game_state, color))


@mcp.tool(
    description=(
        "Ask the built-in AI for a move. difficulty is easy, medium or hard; "
        "returns {move: null} when the side has no legal move."
    )
)
def suggest_move(
    game_state: Dict[str, Any], difficulty: str = "medium", color: Optional[str] = None
) -> Dict[str, Any]:
    difficulty = difficulty.lower().strip()
    if difficulty not in VALID_DIFFICULTIES:
        raise ValueError(
            f"Unsupported difficulty '{difficulty}'. Valid: {sorted(VALID_DIFFICULTIES)}"
        )
    payload = _position(game_state, color)
    payload["difficulty"] = difficulty
    return _request("POST", "/api/ai/move", json=payload)


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
