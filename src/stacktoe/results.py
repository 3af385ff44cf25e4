"""Hand-off of finished online games to the rating service.

Reporting is fire-and-forget: ``report`` never raises, failures are logged
and gameplay never waits on them.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

import httpx

from stacktoe.engine import Color

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameResult:
    room_id: str
    red_identity: str
    blue_identity: str
    winner: Color
    total_moves: int

    def to_payload(self) -> Dict:
        return {
            "roomId": self.room_id,
            "redPlayerIdentity": self.red_identity,
            "bluePlayerIdentity": self.blue_identity,
            "winnerColor": self.winner.value,
            "totalMoves": self.total_moves,
        }


def build_result(
    room_id: str,
    red_identity: Optional[str],
    blue_identity: Optional[str],
    winner: Color,
    total_moves: int,
) -> Optional[GameResult]:
    """None when either side has no durable identity (guest play)."""
    if not red_identity or not blue_identity:
        return None
    return GameResult(room_id, red_identity, blue_identity, winner, total_moves)


class GameResultReporter(Protocol):
    async def report(self, result: GameResult) -> None:
        ...


class LoggingResultReporter:
    """Used when no rating service is configured."""

    async def report(self, result: GameResult) -> None:
        logger.info("Game result (not forwarded): %s", result.to_payload())


class HttpResultReporter:
    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def report(self, result: GameResult) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=result.to_payload())
            if response.is_error:
                logger.warning(
                    "Rating service rejected result for %s (%s): %s",
                    result.room_id,
                    response.status_code,
                    response.text,
                )
                return
            logger.info("Game result recorded: %s", result.room_id)
        except httpx.HTTPError:
            logger.exception("Failed to report game result for %s", result.room_id)
