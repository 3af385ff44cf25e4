"""Position scoring and one-ply tactics shared by every difficulty."""
from __future__ import annotations

from typing import List, Optional

from stacktoe.engine import (
    CELLS,
    LINES,
    Color,
    GameState,
    Move,
    Place,
    apply_move,
    legal_moves,
    top_piece,
)

WIN_SCORE = 10_000
CENTER = (1, 1)
CORNERS = ((0, 0), (0, 2), (2, 0), (2, 2))


def evaluate(state: GameState, color: Color, depth_left: int = 0) -> int:
    """Score ``state`` from ``color``'s point of view.

    Terminal scores are shifted by the remaining depth so that a win found
    closer to the root outranks a slower one.
    """
    if state.winner is color:
        return WIN_SCORE + depth_left
    if state.winner is not None:
        return -WIN_SCORE - depth_left

    score = 0
    for line in LINES:
        own = theirs = 0
        for row, col in line:
            piece = top_piece(state, row, col)
            if piece is None:
                continue
            if piece.color is color:
                own += 1
            else:
                theirs += 1
        if own == 2 and theirs == 0:
            score += 10
        if theirs == 2 and own == 0:
            score -= 15

    for row, col in CELLS:
        piece = top_piece(state, row, col)
        if piece is None:
            continue
        weight = piece.size.rank
        if (row, col) == CENTER:
            weight += 3
        elif (row, col) in CORNERS:
            weight += 1
        score += weight if piece.color is color else -weight
    return score


def winning_move(state: GameState, color: Color, moves: List[Move]) -> Optional[Move]:
    for move in moves:
        if apply_move(state, move).winner is color:
            return move
    return None


def opponent_can_win(after: GameState, color: Color) -> bool:
    """True when the side to move in ``after`` is ``color``'s opponent and it has a winning reply."""
    opponent = color.opponent()
    if after.winner is not None:
        return after.winner is opponent
    if after.current_player is not opponent:
        return False
    return winning_move(after, opponent, legal_moves(after, opponent)) is not None


def safe_moves(state: GameState, color: Color, moves: List[Move]) -> List[Move]:
    """Moves that leave the opponent no immediate win; all moves when none are safe."""
    safe = [m for m in moves if not opponent_can_win(apply_move(state, m), color)]
    return safe or list(moves)


def tactical_score(state: GameState, move: Move) -> int:
    """Cheap preference used for easy play and move ordering."""
    row, col = move.target
    score = 0
    if top_piece(state, row, col) is not None:
        score += 4
    if (row, col) == CENTER:
        score += 2
    elif (row, col) in CORNERS:
        score += 1
    if isinstance(move, Place):
        score += 1
    return score
