import json
import logging

import httpx
import pytest

from stacktoe.engine import Color
from stacktoe.results import GameResult, HttpResultReporter, LoggingResultReporter, build_result


def sample_result() -> GameResult:
    return GameResult("ABCD", "user-red", "user-blue", Color.BLUE, 7)


def test_payload_shape() -> None:
    assert sample_result().to_payload() == {
        "roomId": "ABCD",
        "redPlayerIdentity": "user-red",
        "bluePlayerIdentity": "user-blue",
        "winnerColor": "blue",
        "totalMoves": 7,
    }


@pytest.mark.parametrize("red,blue", [(None, "b"), ("r", None), ("", "b"), (None, None)])
def test_build_result_skips_guests(red, blue) -> None:
    assert build_result("ABCD", red, blue, Color.RED, 5) is None


def test_build_result_with_identities() -> None:
    result = build_result("ABCD", "r", "b", Color.RED, 5)
    assert result == GameResult("ABCD", "r", "b", Color.RED, 5)


@pytest.mark.asyncio
async def test_http_reporter_posts_payload() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, str(request.url), json.loads(request.content)))
        return httpx.Response(201, json={"ok": True})

    reporter = HttpResultReporter("http://ratings.test/games", transport=httpx.MockTransport(handler))
    await reporter.report(sample_result())
    assert seen == [("POST", "http://ratings.test/games", sample_result().to_payload())]


@pytest.mark.asyncio
async def test_http_reporter_logs_rejection(caplog: pytest.LogCaptureFixture) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    reporter = HttpResultReporter("http://ratings.test/games", transport=transport)
    with caplog.at_level(logging.WARNING, logger="stacktoe.results"):
        await reporter.report(sample_result())
    assert "rejected result for ABCD" in caplog.text


@pytest.mark.asyncio
async def test_http_reporter_swallows_transport_errors(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    reporter = HttpResultReporter("http://ratings.test/games", transport=httpx.MockTransport(handler))
    with caplog.at_level(logging.ERROR, logger="stacktoe.results"):
        await reporter.report(sample_result())
    assert "Failed to report game result for ABCD" in caplog.text


@pytest.mark.asyncio
async def test_logging_reporter(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="stacktoe.results"):
        await LoggingResultReporter().report(sample_result())
    assert "user-red" in caplog.text
