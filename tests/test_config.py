import pytest

from stacktoe.config import Settings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ["STACKTOE_PORT", "STACKTOE_RESULTS_URL", "STACKTOE_CORS_ORIGINS", "STACKTOE_MEDIUM_DEPTH", "STACKTOE_HARD_DEPTH"]:
        monkeypatch.delenv(name, raising=False)
    settings = Settings.from_env()
    assert settings.port == 8000
    assert settings.room_ttl_seconds == 86400
    assert settings.results_url is None
    assert settings.cors_origins == ("*",)
    assert (settings.medium_depth, settings.hard_depth) == (3, 5)


def test_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STACKTOE_PORT", "9100")
    monkeypatch.setenv("STACKTOE_RESULTS_URL", "http://ratings.test/games")
    monkeypatch.setenv("STACKTOE_RESULTS_TIMEOUT", "1.5")
    monkeypatch.setenv("STACKTOE_CORS_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("STACKTOE_LOG_LEVEL", "debug")
    settings = Settings.from_env()
    assert settings.port == 9100
    assert settings.results_url == "http://ratings.test/games"
    assert settings.results_timeout == 1.5
    assert settings.cors_origins == ("http://a.test", "http://b.test")
    assert settings.log_level == "DEBUG"


def test_bad_integer_is_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STACKTOE_PORT", "eighty")
    with pytest.raises(ValueError, match="STACKTOE_PORT"):
        Settings.from_env()
