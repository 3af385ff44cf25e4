"""Fixed-depth game-tree search (plain minimax and alpha-beta)."""
from __future__ import annotations

import math
from typing import List, Optional

from stacktoe.engine import Color, GameState, Move, apply_move, legal_moves

from .evaluation import evaluate, tactical_score


def ordered_moves(state: GameState, color: Color) -> List[Move]:
    moves = legal_moves(state, color)
    moves.sort(key=lambda m: tactical_score(state, m), reverse=True)
    return moves


def minimax(state: GameState, depth: int, color: Color) -> float:
    """Value of ``state`` for ``color`` searching ``depth`` more plies."""
    if state.winner is not None or depth <= 0:
        return evaluate(state, color, depth)
    mover = state.current_player
    moves = legal_moves(state, mover)
    if not moves:
        return evaluate(state, color, depth)
    scores = [minimax(apply_move(state, move), depth - 1, color) for move in moves]
    return max(scores) if mover is color else min(scores)


def alpha_beta(
    state: GameState,
    depth: int,
    color: Color,
    alpha: float = -math.inf,
    beta: float = math.inf,
) -> float:
    if state.winner is not None or depth <= 0:
        return evaluate(state, color, depth)
    mover = state.current_player
    moves = ordered_moves(state, mover)
    if not moves:
        return evaluate(state, color, depth)

    if mover is color:
        value = -math.inf
        for move in moves:
            value = max(value, alpha_beta(apply_move(state, move), depth - 1, color, alpha, beta))
            alpha = max(alpha, value)
            if alpha >= beta:
                break  # beta cut-off
        return value

    value = math.inf
    for move in moves:
        value = min(value, alpha_beta(apply_move(state, move), depth - 1, color, alpha, beta))
        beta = min(beta, value)
        if alpha >= beta:
            break  # alpha cut-off
    return value


def best_move_minimax(state: GameState, color: Color, candidates: List[Move], depth: int) -> Optional[Move]:
    best_move: Optional[Move] = None
    best_score = -math.inf
    for move in candidates:
        score = minimax(apply_move(state, move), depth - 1, color)
        if best_move is None or score > best_score:
            best_score = score
            best_move = move
    return best_move


def best_move_alpha_beta(
    state: GameState, color: Color, candidates: List[Move], depth: int
) -> Optional[Move]:
    ordered = sorted(candidates, key=lambda m: tactical_score(state, m), reverse=True)
    best_move: Optional[Move] = None
    alpha = -math.inf
    for move in ordered:
        score = alpha_beta(apply_move(state, move), depth - 1, color, alpha, math.inf)
        if best_move is None or score > alpha:
            alpha = score
            best_move = move
    return best_move
