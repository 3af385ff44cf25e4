"""Core rules engine for stacktoe (stacking-piece tic-tac-toe).

The engine is deterministic and UI-agnostic so the server, the AI and the
client all run the exact same rules. Coordinates are zero-based (row, col)
pairs on a 3x3 board. Every transition returns a new GameState; inputs are
never mutated.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

BOARD_SIZE = 3
STARTING_RESERVE = 2
Coord = Tuple[int, int]  # (row, col), zero-based


class Color(str, Enum):
    RED = "red"
    BLUE = "blue"

    def opponent(self) -> "Color":
        return Color.BLUE if self is Color.RED else Color.RED


class Size(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    @property
    def rank(self) -> int:
        return SIZE_ORDER[self]


SIZE_ORDER: Dict[Size, int] = {Size.SMALL: 1, Size.MEDIUM: 2, Size.LARGE: 3}

# Rule violation reasons, reported verbatim to the move's author.
NOT_YOUR_TURN = "not your turn"
PIECE_EXHAUSTED = "piece exhausted"
CANNOT_COVER_OWN = "cannot cover own piece"
SAME_SIZE = "cannot cover with same size"
ONLY_LARGER = "only larger piece may cover"
SAME_CELL = "choose a different cell"
NO_PIECE = "no piece there"
OUT_OF_RANGE = "cell out of range"
GAME_OVER = "game already over"


@dataclass(frozen=True)
class Piece:
    color: Color
    size: Size


Cell = Tuple[Piece, ...]  # bottom to top
Row = Tuple[Cell, Cell, Cell]
Board = Tuple[Row, Row, Row]
Reserves = Dict[Color, Dict[Size, int]]


@dataclass(frozen=True)
class Place:
    row: int
    col: int
    size: Size

    @property
    def target(self) -> Coord:
        return (self.row, self.col)


@dataclass(frozen=True)
class Relocate:
    from_row: int
    from_col: int
    to_row: int
    to_col: int

    @property
    def origin(self) -> Coord:
        return (self.from_row, self.from_col)

    @property
    def target(self) -> Coord:
        return (self.to_row, self.to_col)


Move = Union[Place, Relocate]


@dataclass(frozen=True)
class Validation:
    valid: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


VALID = Validation(True)


def _invalid(reason: str) -> Validation:
    return Validation(False, reason)


def fresh_reserves() -> Reserves:
    return {color: {size: STARTING_RESERVE for size in Size} for color in Color}


def empty_board() -> Board:
    return tuple(tuple(() for _ in range(BOARD_SIZE)) for _ in range(BOARD_SIZE))  # type: ignore[return-value]


@dataclass
class GameState:
    board: Board = field(default_factory=empty_board)
    reserves: Reserves = field(default_factory=fresh_reserves)
    current_player: Color = Color.RED
    winner: Optional[Color] = None

    @property
    def active(self) -> bool:
        return self.winner is None


# Rows, columns, then the two diagonals. check_winner reports the first hit.
LINES: Sequence[Tuple[Coord, Coord, Coord]] = (
    ((0, 0), (0, 1), (0, 2)),
    ((1, 0), (1, 1), (1, 2)),
    ((2, 0), (2, 1), (2, 2)),
    ((0, 0), (1, 0), (2, 0)),
    ((0, 1), (1, 1), (2, 1)),
    ((0, 2), (1, 2), (2, 2)),
    ((0, 0), (1, 1), (2, 2)),
    ((0, 2), (1, 1), (2, 0)),
)
CELLS: Sequence[Coord] = tuple((r, c) for r in range(BOARD_SIZE) for c in range(BOARD_SIZE))


def initial_state(first_player: Color = Color.RED) -> GameState:
    """Empty board, two pieces of each size per colour."""
    return GameState(current_player=first_player)


def copy_reserves(reserves: Reserves) -> Reserves:
    return {color: dict(counts) for color, counts in reserves.items()}


def with_current_player(state: GameState, color: Color) -> GameState:
    """Same position with a different side to move."""
    return GameState(
        board=state.board,
        reserves=copy_reserves(state.reserves),
        current_player=color,
        winner=state.winner,
    )


def coord_in_bounds(row: int, col: int) -> bool:
    return 0 <= row < BOARD_SIZE and 0 <= col < BOARD_SIZE


def top_piece(state: GameState, row: int, col: int) -> Optional[Piece]:
    cell = state.board[row][col]
    return cell[-1] if cell else None


def _covering(piece: Piece, target: Optional[Piece]) -> Validation:
    if target is None:
        return VALID
    if target.color is piece.color:
        return _invalid(CANNOT_COVER_OWN)
    if piece.size.rank > target.size.rank:
        return VALID
    if piece.size.rank == target.size.rank:
        return _invalid(SAME_SIZE)
    return _invalid(ONLY_LARGER)


def validate_placement(
    state: GameState, row: int, col: int, color: Color, size: Size
) -> Validation:
    if color is not state.current_player:
        return _invalid(NOT_YOUR_TURN)
    if state.reserves[color][size] <= 0:
        return _invalid(PIECE_EXHAUSTED)
    return _covering(Piece(color, size), top_piece(state, row, col))


def validate_relocation(
    state: GameState, from_row: int, from_col: int, to_row: int, to_col: int
) -> Validation:
    if (from_row, from_col) == (to_row, to_col):
        return _invalid(SAME_CELL)
    moving = top_piece(state, from_row, from_col)
    if moving is None:
        return _invalid(NO_PIECE)
    if moving.color is not state.current_player:
        return _invalid(NOT_YOUR_TURN)
    return _covering(moving, top_piece(state, to_row, to_col))


def validate_move(state: GameState, move: Move, color: Color) -> Validation:
    """Full server-side check of a move submitted by the side playing ``color``."""
    coords: Iterable[Coord]
    if isinstance(move, Place):
        coords = (move.target,)
    else:
        coords = (move.origin, move.target)
    if not all(coord_in_bounds(r, c) for r, c in coords):
        return _invalid(OUT_OF_RANGE)
    if state.winner is not None:
        return _invalid(GAME_OVER)
    if color is not state.current_player:
        return _invalid(NOT_YOUR_TURN)
    if isinstance(move, Place):
        return validate_placement(state, move.row, move.col, color, move.size)
    return validate_relocation(state, move.from_row, move.from_col, move.to_row, move.to_col)


def _replace_cells(board: Board, updates: Dict[Coord, Cell]) -> Board:
    rows = []
    for r in range(BOARD_SIZE):
        row = board[r]
        if any(coord[0] == r for coord in updates):
            row = tuple(updates.get((r, c), row[c]) for c in range(BOARD_SIZE))
        rows.append(row)
    return tuple(rows)  # type: ignore[return-value]


def _finish(board: Board, reserves: Reserves, mover: Color) -> GameState:
    state = GameState(board=board, reserves=reserves, current_player=mover)
    winner = check_winner(state)
    if winner is not None:
        state.winner = winner
    else:
        state.current_player = mover.opponent()
    return state


def apply_placement(
    state: GameState, row: int, col: int, color: Color, size: Size
) -> GameState:
    """Place a reserve piece. Assumes validate_placement accepted it."""
    board = _replace_cells(state.board, {(row, col): state.board[row][col] + (Piece(color, size),)})
    reserves = copy_reserves(state.reserves)
    reserves[color][size] -= 1
    return _finish(board, reserves, color)


def apply_relocation(
    state: GameState, from_row: int, from_col: int, to_row: int, to_col: int
) -> GameState:
    """Move a top piece. Assumes validate_relocation accepted it."""
    source = state.board[from_row][from_col]
    piece = source[-1]
    board = _replace_cells(
        state.board,
        {
            (from_row, from_col): source[:-1],
            (to_row, to_col): state.board[to_row][to_col] + (piece,),
        },
    )
    return _finish(board, copy_reserves(state.reserves), piece.color)


def apply_move(state: GameState, move: Move) -> GameState:
    if isinstance(move, Place):
        return apply_placement(state, move.row, move.col, state.current_player, move.size)
    return apply_relocation(state, move.from_row, move.from_col, move.to_row, move.to_col)


def check_winner(state: GameState) -> Optional[Color]:
    for line in LINES:
        tops = [top_piece(state, r, c) for r, c in line]
        if any(piece is None for piece in tops):
            continue
        first = tops[0].color  # type: ignore[union-attr]
        if all(piece.color is first for piece in tops):  # type: ignore[union-attr]
            return first
    return None


def legal_moves(state: GameState, color: Color) -> List[Move]:
    """Every move the rules accept for ``color``: placements, then relocations."""
    moves: List[Move] = []
    for size in Size:
        if state.reserves[color][size] <= 0:
            continue
        for row, col in CELLS:
            if validate_placement(state, row, col, color, size):
                moves.append(Place(row, col, size))
    for from_row, from_col in CELLS:
        piece = top_piece(state, from_row, from_col)
        if piece is None or piece.color is not color:
            continue
        for to_row, to_col in CELLS:
            if validate_relocation(state, from_row, from_col, to_row, to_col):
                moves.append(Relocate(from_row, from_col, to_row, to_col))
    return moves


def moving_piece(state: GameState, move: Move) -> Piece:
    if isinstance(move, Place):
        return Piece(state.current_player, move.size)
    piece = top_piece(state, move.from_row, move.from_col)
    if piece is None:
        raise ValueError("No piece at origin")
    return piece


def captured_piece(state: GameState, move: Move) -> Optional[Piece]:
    """The opposing top piece that ``move`` would bury, if any."""
    row, col = move.target
    return top_piece(state, row, col)


@dataclass(frozen=True)
class MoveRecord:
    step: int
    player: Color
    move: Move
    piece: Piece
    captured: Optional[Piece]
    state_after: GameState


def record_move(state: GameState, move: Move, step: int) -> Tuple[GameState, MoveRecord]:
    """Apply ``move`` and return the new state with its history entry."""
    piece = moving_piece(state, move)
    captured = captured_piece(state, move)
    next_state = apply_move(state, move)
    record = MoveRecord(
        step=step,
        player=piece.color,
        move=move,
        piece=piece,
        captured=captured,
        state_after=next_state,
    )
    return next_state, record


def state_at(history: Sequence[MoveRecord], step: int, first_player: Color = Color.RED) -> GameState:
    """Snapshot after ``step`` moves; step 0 is the starting position."""
    if step <= 0 or not history:
        return initial_state(first_player)
    index = min(step, len(history)) - 1
    return history[index].state_after


# --- serialisation (wire / store shape) ---


def _piece_to_dict(piece: Piece) -> Dict:
    return {"color": piece.color.value, "size": piece.size.value}


def _piece_from_dict(payload: Dict) -> Piece:
    return Piece(color=Color(payload["color"]), size=Size(payload["size"]))


def serialize_state(state: GameState) -> Dict:
    """Serialize GameState to a JSON-friendly dict."""
    return {
        "board": [
            [{"pieces": [_piece_to_dict(p) for p in cell]} for cell in row]
            for row in state.board
        ],
        "reserves": {
            color.value: {size.value: counts[size] for size in Size}
            for color, counts in state.reserves.items()
        },
        "currentPlayer": state.current_player.value,
        "winner": state.winner.value if state.winner else None,
    }


def deserialize_state(payload: Dict) -> GameState:
    try:
        rows = payload["board"]
        if len(rows) != BOARD_SIZE or any(len(row) != BOARD_SIZE for row in rows):
            raise ValueError("Board must be 3x3")
        board = tuple(
            tuple(tuple(_piece_from_dict(p) for p in cell["pieces"]) for cell in row)
            for row in rows
        )
        reserves_payload = payload["reserves"]
        reserves: Reserves = {}
        for color in Color:
            counts = reserves_payload[color.value]
            reserves[color] = {size: int(counts[size.value]) for size in Size}
            if any(v < 0 for v in reserves[color].values()):
                raise ValueError("Reserve counts must be non-negative")
        return GameState(
            board=board,  # type: ignore[arg-type]
            reserves=reserves,
            current_player=Color(payload["currentPlayer"]),
            winner=Color(payload["winner"]) if payload.get("winner") else None,
        )
    except (KeyError, TypeError, AttributeError) as exc:
        raise ValueError(f"Malformed game state: {exc}") from exc


def move_to_dict(move: Move) -> Dict:
    if isinstance(move, Place):
        return {"type": "place", "row": move.row, "col": move.col, "size": move.size.value}
    return {
        "type": "move",
        "fromRow": move.from_row,
        "fromCol": move.from_col,
        "toRow": move.to_row,
        "toCol": move.to_col,
    }


def move_from_dict(payload: Dict) -> Move:
    try:
        kind = payload["type"]
        if kind == "place":
            return Place(int(payload["row"]), int(payload["col"]), Size(payload["size"]))
        if kind == "move":
            return Relocate(
                int(payload["fromRow"]),
                int(payload["fromCol"]),
                int(payload["toRow"]),
                int(payload["toCol"]),
            )
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Malformed move: {exc}") from exc
    raise ValueError(f"Unknown move type: {kind}")


def serialize_record(record: MoveRecord) -> Dict:
    annotated = move_to_dict(record.move)
    annotated.update(color=record.piece.color.value, size=record.piece.size.value)
    return {
        "step": record.step,
        "player": record.player.value,
        "move": annotated,
        "capturedPiece": _piece_to_dict(record.captured) if record.captured else None,
        "gameStateAfter": serialize_state(record.state_after),
    }
