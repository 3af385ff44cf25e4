from __future__ import annotations

import logging
import random
from enum import Enum
from typing import List, Optional

from stacktoe.engine import Color, GameState, Move, legal_moves

from .evaluation import safe_moves, tactical_score, winning_move
from .search import best_move_alpha_beta, best_move_minimax

logger = logging.getLogger(__name__)

DEFAULT_MEDIUM_DEPTH = 3
DEFAULT_HARD_DEPTH = 5


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


def _candidates(state: GameState, color: Color, moves: List[Move]) -> List[Move]:
    """Single-ply block: keep moves that deny the opponent an immediate win."""
    return safe_moves(state, color, moves)


def heuristic_move(
    state: GameState, color: Color, rng: Optional[random.Random] = None
) -> Optional[Move]:
    """Easy: win now, else block, else prefer captures and central cells."""
    moves = legal_moves(state, color)
    if not moves:
        return None
    win = winning_move(state, color, moves)
    if win is not None:
        return win
    pool = _candidates(state, color, moves)
    best = max(tactical_score(state, m) for m in pool)
    top = [m for m in pool if tactical_score(state, m) == best]
    return (rng or random).choice(top)


def minimax_move(state: GameState, color: Color, depth: int = DEFAULT_MEDIUM_DEPTH) -> Optional[Move]:
    """Medium: plain minimax to ``depth`` plies (the candidate move counts as one)."""
    moves = legal_moves(state, color)
    if not moves:
        return None
    win = winning_move(state, color, moves)
    if win is not None:
        return win
    return best_move_minimax(state, color, _candidates(state, color, moves), max(1, depth))


def alpha_beta_move(state: GameState, color: Color, depth: int = DEFAULT_HARD_DEPTH) -> Optional[Move]:
    """Hard: alpha-beta with move ordering, searched deeper than medium."""
    moves = legal_moves(state, color)
    if not moves:
        return None
    win = winning_move(state, color, moves)
    if win is not None:
        return win
    return best_move_alpha_beta(state, color, _candidates(state, color, moves), max(1, depth))


def select_move(
    state: GameState,
    color: Color,
    difficulty: Difficulty = Difficulty.EASY,
    *,
    medium_depth: int = DEFAULT_MEDIUM_DEPTH,
    hard_depth: int = DEFAULT_HARD_DEPTH,
    rng: Optional[random.Random] = None,
) -> Optional[Move]:
    difficulty = Difficulty(difficulty)
    if difficulty is Difficulty.MEDIUM:
        return minimax_move(state, color, medium_depth)
    if difficulty is Difficulty.HARD:
        return alpha_beta_move(state, color, hard_depth)
    return heuristic_move(state, color, rng)


class AIAgent:
    """Computer opponent for one difficulty level."""

    def __init__(
        self,
        difficulty: Difficulty = Difficulty.EASY,
        medium_depth: int = DEFAULT_MEDIUM_DEPTH,
        hard_depth: int = DEFAULT_HARD_DEPTH,
        seed: Optional[int] = None,
    ) -> None:
        self.difficulty = Difficulty(difficulty)
        self.medium_depth = medium_depth
        self.hard_depth = hard_depth
        self.rng = random.Random(seed)

    def select_move(self, state: GameState, color: Optional[Color] = None) -> Optional[Move]:
        """Pick a move for ``color`` (default: the side to move)."""
        color = color or state.current_player
        move = select_move(
            state,
            color,
            self.difficulty,
            medium_depth=self.medium_depth,
            hard_depth=self.hard_depth,
            rng=self.rng,
        )
        logger.debug("AI %s (%s) chose %s", color.value, self.difficulty.value, move)
        return move

    def __repr__(self) -> str:
        return f"AIAgent(difficulty={self.difficulty.value!r})"
