from stacktoe import __version__
from stacktoe.cli import main


def test_version(capsys) -> None:
    assert main(["--version"]) == 0
    assert capsys.readouterr().out.strip() == __version__


def test_selfplay_summary(capsys) -> None:
    assert main(["--selfplay", "easy", "easy", "--games", "2", "--max-plies", "12", "--seed", "3"]) == 0
    out = capsys.readouterr().out
    assert "game 1: first=red" in out
    assert "game 2: first=blue" in out
    assert "draws:" in out
