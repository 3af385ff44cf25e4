"""stacktoe package."""

from .engine import (  # noqa: F401
    GameState,
    Move,
    Place,
    Relocate,
    Piece,
    Size,
    Color,
    Validation,
    initial_state,
    legal_moves,
    validate_move,
    apply_move,
    check_winner,
    serialize_state,
    deserialize_state,
)
from .ai import AIAgent, Difficulty  # noqa: F401

__all__ = [
    "__version__",
    "GameState",
    "Move",
    "Place",
    "Relocate",
    "Piece",
    "Size",
    "Color",
    "Validation",
    "initial_state",
    "legal_moves",
    "validate_move",
    "apply_move",
    "check_winner",
    "serialize_state",
    "deserialize_state",
    "create_app",
    "AIAgent",
    "Difficulty",
]

__version__ = "0.1.0"


def create_app():
    """Lazy import to avoid requiring FastAPI unless requested."""
    from stacktoe.api import create_app as factory

    return factory()
