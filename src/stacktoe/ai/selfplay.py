from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from stacktoe.engine import Color, MoveRecord, initial_state, record_move

from .agent import AIAgent


@dataclass
class SelfPlayResult:
    winner: Optional[Color]
    plies: int
    end_reason: str
    history: List[MoveRecord] = field(default_factory=list)


def play_game(
    red: AIAgent,
    blue: AIAgent,
    max_plies: int = 60,
    first_player: Color = Color.RED,
) -> SelfPlayResult:
    """Play one game between two agents and keep the full move history."""
    state = initial_state(first_player)
    history: List[MoveRecord] = []

    while state.winner is None and len(history) < max_plies:
        agent = red if state.current_player is Color.RED else blue
        move = agent.select_move(state)
        if move is None:
            # No legal move: the side to move is stuck and loses.
            return SelfPlayResult(
                winner=state.current_player.opponent(),
                plies=len(history),
                end_reason="no_legal_moves",
                history=history,
            )
        state, record = record_move(state, move, step=len(history) + 1)
        history.append(record)

    if state.winner is not None:
        end_reason = "line_completed"
    else:
        end_reason = "max_plies"
    return SelfPlayResult(winner=state.winner, plies=len(history), end_reason=end_reason, history=history)
