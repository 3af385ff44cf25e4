"""Command-line entrypoint for stacktoe."""
import argparse
from collections import Counter

from . import __version__
from .ai import AIAgent, Difficulty, play_game
from .config import Settings, configure_logging
from .engine import Color

DIFFICULTIES = [d.value for d in Difficulty]


def main(argv=None) -> int:
    settings = Settings.from_env()
    parser = argparse.ArgumentParser(prog="stacktoe")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--serve", action="store_true", help="Run the game service")
    parser.add_argument("--host", default=settings.host, help="Server host")
    parser.add_argument("--port", type=int, default=settings.port, help="Server port")
    parser.add_argument(
        "--selfplay",
        nargs=2,
        metavar=("RED", "BLUE"),
        choices=DIFFICULTIES,
        help="Play AI difficulties against each other, e.g. --selfplay easy hard.",
    )
    parser.add_argument(
        "--games",
        type=int,
        default=10,
        help="Number of self-play games, alternating who moves first (default: 10).",
    )
    parser.add_argument(
        "--max-plies",
        type=int,
        default=60,
        help="Maximum plies per self-play game before it is scored a draw (default: 60).",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for the easy AI's tie-breaks.")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level.")
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return 0

    configure_logging(args.log_level)

    if args.selfplay:
        return _selfplay(args, settings)

    if args.serve:
        from uvicorn import run

        from stacktoe.api import create_app

        run(create_app(settings), host=args.host, port=args.port, reload=False)
        return 0

    parser.print_help()
    return 0


def _selfplay(args, settings: Settings) -> int:
    red_level, blue_level = args.selfplay
    tally: Counter = Counter()
    total_plies = 0
    for game_idx in range(args.games):
        red = AIAgent(red_level, settings.medium_depth, settings.hard_depth, seed=args.seed)
        blue = AIAgent(blue_level, settings.medium_depth, settings.hard_depth, seed=args.seed)
        first = Color.RED if game_idx % 2 == 0 else Color.BLUE
        result = play_game(red, blue, max_plies=args.max_plies, first_player=first)
        tally[result.winner.value if result.winner else "draw"] += 1
        total_plies += result.plies
        print(
            f"game {game_idx + 1}: first={first.value} winner="
            f"{result.winner.value if result.winner else '-'} plies={result.plies} ({result.end_reason})"
        )

    games = max(1, args.games)
    print(f"red ({red_level}) wins: {tally['red']}")
    print(f"blue ({blue_level}) wins: {tally['blue']}")
    print(f"draws: {tally['draw']}")
    print(f"average plies: {total_plies / games:.1f}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
