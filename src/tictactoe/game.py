"""Core rules and the per-game state machine for tic-tac-toe sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple
import re
import threading
import time

from .errors import ConflictError, ValidationError, unknown_player

Player = str  # "X" or "O"
EMPTY = " "
SYMBOLS: Tuple[Player, Player] = ("X", "O")

WINNING_LINES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)

NAME_PATTERN = re.compile(r"^[A-Za-z0-9 _-]{2,15}$")


class GameStatus(str, Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    PAUSED = "paused"
    WON = "won"
    DRAW = "draw"


# ---------- Board ----------


def new_board() -> List[str]:
    return [EMPTY] * 9


def opponent(player: Player) -> Player:
    return "O" if player == "X" else "X"


def empty_cells(cells: List[str]) -> List[int]:
    return [i for i, c in enumerate(cells) if c == EMPTY]


def is_full(cells: List[str]) -> bool:
    return all(c != EMPTY for c in cells)


def check_winner(
    cells: List[str],
) -> Optional[Tuple[Player, Tuple[int, int, int]]]:
    """Return the first completed line as ``(symbol, indices)``, or None."""
    for a, b, c in WINNING_LINES:
        v = cells[a]
        if v != EMPTY and v == cells[b] == cells[c]:
            return v, (a, b, c)
    return None


def validate_display_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not NAME_PATTERN.match(cleaned):
        raise ValidationError(
            "invalid_name",
            "Name must be 2-15 characters of letters, digits, spaces, '-' or '_'",
        )
    return cleaned


# ---------- Players & snapshots ----------


@dataclass
class PlayerSeat:
    player_id: str
    name: str
    symbol: Player
    join_order: int
    is_synthetic: bool = False


@dataclass(frozen=True)
class PlayerView:
    name: str
    symbol: Player
    is_synthetic: bool


@dataclass(frozen=True)
class GameSnapshot:
    """Read-only view of a session, optionally scoped to one player."""

    session_id: str
    board: Tuple[Optional[Player], ...]
    current_turn: Player
    status: GameStatus
    winner: Optional[Player]
    winning_line: Optional[Tuple[int, int, int]]
    players: Tuple[PlayerView, ...]
    rematch_votes: int
    ai_pending: bool
    difficulty: Optional[str]
    created_at: float
    your_symbol: Optional[Player] = None
    your_turn: Optional[bool] = None
    your_rematch_vote: Optional[bool] = None


# ---------- Session ----------


@dataclass
class GameSession:
    """One game's board, seats, turn and round status.

    Status moves ``waiting -> playing -> won | draw``, ``playing -> paused ->
    playing`` when a seat empties and is refilled, and ``won | draw ->
    playing`` once every seated human has voted for a rematch. Every check
    runs before the board is written, so a rejected call changes nothing.
    Callers serialize access through ``lock``.
    """

    session_id: str
    difficulty: Optional[str] = None
    cells: List[str] = field(default_factory=new_board)
    current_turn: Player = "X"
    status: GameStatus = GameStatus.WAITING
    winner: Optional[Player] = None
    winning_line: Optional[Tuple[int, int, int]] = None
    players: Dict[str, PlayerSeat] = field(default_factory=dict)
    rematch_votes: Set[str] = field(default_factory=set)
    pause_cause: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    touched_at: float = field(default_factory=time.time)
    ai_pending: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _joins: int = field(default=0, repr=False)

    # ---- seats ----

    @property
    def is_ai_game(self) -> bool:
        return self.difficulty is not None

    def seat_for(self, symbol: Player) -> Optional[PlayerSeat]:
        for seat in self.players.values():
            if seat.symbol == symbol:
                return seat
        return None

    def human_seats(self) -> List[PlayerSeat]:
        return [p for p in self.players.values() if not p.is_synthetic]

    def seat_player(
        self,
        player_id: str,
        name: str,
        is_synthetic: bool = False,
        symbol: Optional[Player] = None,
    ) -> PlayerSeat:
        """Seat a player on ``symbol`` or the free one (X first)."""
        if len(self.players) >= 2:
            raise ValidationError("full", "Game is full")
        if symbol is None:
            symbol = "X" if self.seat_for("X") is None else "O"
        elif self.seat_for(symbol) is not None:
            raise ValidationError("full", f"Seat {symbol} is taken")
        self._joins += 1
        seat = PlayerSeat(
            player_id=player_id,
            name=name,
            symbol=symbol,
            join_order=self._joins,
            is_synthetic=is_synthetic,
        )
        self.players[player_id] = seat
        if len(self.players) == 2 and self.status in (
            GameStatus.WAITING,
            GameStatus.PAUSED,
        ):
            self.status = GameStatus.PLAYING
            self.pause_cause = None
        return seat

    def join(self, player_id: str, display_name: str) -> PlayerSeat:
        name = validate_display_name(display_name)
        return self.seat_player(player_id, name)

    def leave(self, player_id: str) -> bool:
        seat = self.players.pop(player_id, None)
        if seat is None:
            return False
        self.rematch_votes.discard(player_id)
        if self.status is GameStatus.PLAYING and len(self.players) < 2:
            self.status = GameStatus.PAUSED
            self.pause_cause = player_id
        return True

    # ---- moves ----

    def move(self, player_id: str, position: int) -> None:
        if (
            not isinstance(position, int)
            or isinstance(position, bool)
            or not 0 <= position <= 8
        ):
            raise ValidationError("out_of_range", "Position must be between 0 and 8")
        if self.status is not GameStatus.PLAYING:
            raise ConflictError("not_playing", "Game is not active")
        if self.cells[position] != EMPTY:
            raise ConflictError("occupied", "Position already occupied")
        seat = self.players.get(player_id)
        if seat is None:
            raise unknown_player()
        if seat.symbol != self.current_turn:
            raise ConflictError("wrong_turn", "Not your turn")

        self.cells[position] = seat.symbol
        result = check_winner(self.cells)
        # A line completed on the last empty cell is a win, not a draw
        if result is not None:
            self.status = GameStatus.WON
            self.winner, self.winning_line = result
        elif is_full(self.cells):
            self.status = GameStatus.DRAW
        else:
            self.current_turn = opponent(self.current_turn)

    def needs_ai_move(self) -> bool:
        if self.status is not GameStatus.PLAYING:
            return False
        seat = self.seat_for(self.current_turn)
        return seat is not None and seat.is_synthetic

    # ---- rematch ----

    def request_rematch(self, player_id: str) -> Tuple[bool, int]:
        """Record a vote; returns ``(started, waiting_for)``."""
        if self.status not in (GameStatus.WON, GameStatus.DRAW):
            raise ConflictError("in_progress", "Game is still in progress")
        if player_id not in self.players:
            raise unknown_player()
        self.rematch_votes.add(player_id)

        # The synthetic seat always agrees
        humans = {p.player_id for p in self.human_seats()}
        waiting_for = len(humans - self.rematch_votes)
        if waiting_for:
            return False, waiting_for
        self.reset_round()
        return True, 0

    def reset_round(self) -> None:
        self.cells = new_board()
        self.current_turn = "X"
        self.winner = None
        self.winning_line = None
        self.rematch_votes.clear()
        self.pause_cause = None
        self.status = (
            GameStatus.PLAYING if len(self.players) == 2 else GameStatus.WAITING
        )

    # ---- reads ----

    def snapshot(self, for_player_id: Optional[str] = None) -> GameSnapshot:
        players = tuple(
            PlayerView(name=p.name, symbol=p.symbol, is_synthetic=p.is_synthetic)
            for p in sorted(self.players.values(), key=lambda p: p.join_order)
        )
        scoped = {}
        if for_player_id is not None:
            seat = self.players.get(for_player_id)
            if seat is None:
                raise unknown_player()
            scoped = {
                "your_symbol": seat.symbol,
                "your_turn": self.status is GameStatus.PLAYING
                and seat.symbol == self.current_turn,
                "your_rematch_vote": for_player_id in self.rematch_votes,
            }
        return GameSnapshot(
            session_id=self.session_id,
            board=tuple(c if c in SYMBOLS else None for c in self.cells),
            current_turn=self.current_turn,
            status=self.status,
            winner=self.winner,
            winning_line=self.winning_line,
            players=players,
            rematch_votes=len(self.rematch_votes),
            ai_pending=self.ai_pending,
            difficulty=self.difficulty,
            created_at=self.created_at,
            **scoped,
        )
