"""Runtime settings read from ``STACKTOE_*`` environment variables."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    host: str = "127.0.0.1"
    port: int = 8000
    room_ttl_seconds: int = 3600 * 24
    room_id_length: int = 4
    results_url: Optional[str] = None
    results_timeout: float = 5.0
    cors_origins: Tuple[str, ...] = field(default=("*",))
    medium_depth: int = 3
    hard_depth: int = 5
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("STACKTOE_CORS_ORIGINS", "*")
        return cls(
            host=os.getenv("STACKTOE_HOST", "127.0.0.1"),
            port=_env_int("STACKTOE_PORT", 8000),
            room_ttl_seconds=_env_int("STACKTOE_ROOM_TTL_SECONDS", 3600 * 24),
            room_id_length=_env_int("STACKTOE_ROOM_ID_LENGTH", 4),
            results_url=os.getenv("STACKTOE_RESULTS_URL") or None,
            results_timeout=_env_float("STACKTOE_RESULTS_TIMEOUT", 5.0),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            medium_depth=_env_int("STACKTOE_MEDIUM_DEPTH", 3),
            hard_depth=_env_int("STACKTOE_HARD_DEPTH", 5),
            log_level=os.getenv("STACKTOE_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
