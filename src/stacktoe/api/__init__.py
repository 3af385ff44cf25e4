"""HTTP and WebSocket surface of the game service."""

from .app import create_app  # noqa: F401
from .coordinator import ConnectionCoordinator, ConnectionRegistry, SeatBinding  # noqa: F401
