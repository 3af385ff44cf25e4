"""AI opponents: heuristic (easy), minimax (medium) and alpha-beta (hard)."""

from .agent import (  # noqa: F401
    AIAgent,
    Difficulty,
    alpha_beta_move,
    heuristic_move,
    minimax_move,
    select_move,
)
from .selfplay import SelfPlayResult, play_game  # noqa: F401
