#!/usr/bin/env python3
"""
Head-to-head evaluator for AI difficulty levels.

Example:
  PYTHONPATH=src python3 scripts/eval_difficulties.py \
    --challenger hard \
    --baseline medium \
    --games 40
"""

from __future__ import annotations

import argparse
import math
import os
import sys
from typing import List, Optional

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from stacktoe.ai import AIAgent, Difficulty, play_game  # noqa: E402
from stacktoe.engine import Color  # noqa: E402


def elo_from_score(score: float) -> float:
    score = min(0.9999, max(0.0001, score))
    return -400.0 * math.log10((1.0 / score) - 1.0)


def main(argv: Optional[List[str]] = None) -> int:
    levels = [d.value for d in Difficulty]
    parser = argparse.ArgumentParser(description="Evaluate one AI difficulty against another.")
    parser.add_argument("--challenger", choices=levels, default="hard", help="Challenger level.")
    parser.add_argument("--baseline", choices=levels, default="medium", help="Baseline level.")
    parser.add_argument("--games", type=int, default=40, help="Number of games (default: 40).")
    parser.add_argument(
        "--max-plies",
        type=int,
        default=60,
        help="Maximum plies per game before it counts as a draw (default: 60).",
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42).")
    args = parser.parse_args(argv)

    challenger = AIAgent(args.challenger, seed=args.seed)
    baseline = AIAgent(args.baseline, seed=args.seed + 1)

    wins = 0
    losses = 0
    draws = 0

    for game_idx in range(args.games):
        # Alternate colours and who opens so neither side keeps the first move.
        challenger_is_red = game_idx % 2 == 0
        red, blue = (challenger, baseline) if challenger_is_red else (baseline, challenger)
        first = Color.RED if (game_idx // 2) % 2 == 0 else Color.BLUE
        result = play_game(red, blue, max_plies=args.max_plies, first_player=first)
        if result.winner is None:
            draws += 1
            continue
        challenger_color = Color.RED if challenger_is_red else Color.BLUE
        if result.winner is challenger_color:
            wins += 1
        else:
            losses += 1

    total = wins + losses + draws
    score = (wins + 0.5 * draws) / max(1, total)
    elo = elo_from_score(score)
    variance = score * (1.0 - score) / max(1, total)
    ci = 1.96 * math.sqrt(variance)
    elo_lo = elo_from_score(max(0.0001, score - ci))
    elo_hi = elo_from_score(min(0.9999, score + ci))

    print(f"{args.challenger} vs {args.baseline}")
    print(f"Games: {total}  Wins: {wins}  Losses: {losses}  Draws: {draws}")
    print(f"Score: {score:.4f}")
    print(f"Elo estimate: {elo:+.1f} (95% CI: {elo_lo:+.1f} .. {elo_hi:+.1f})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
