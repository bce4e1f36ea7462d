"""Computer opponent for tic-tac-toe with three difficulty tiers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import math
import random

from .game import EMPTY, Player, check_winner, empty_cells, is_full, opponent

logger = logging.getLogger(__name__)

CENTER = 4
CORNERS: Tuple[int, ...] = (0, 2, 6, 8)
EDGES: Tuple[int, ...] = (1, 3, 5, 7)

# Terminal scores from the AI's point of view
WIN_SCORE, LOSS_SCORE, DRAW_SCORE = 10, -10, 0


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


@dataclass
class TicTacToeAI:
    """Chooses a cell for ``player`` on a 9-cell board.

    - easy: uniformly random empty cell
    - medium: win > block > center > random corner > random edge > random
    - hard: full minimax (win +10, loss -10, draw 0), lowest index on ties

    The board passed to ``choose`` is never modified; the search works on
    copies. Hard mode memoizes exact scores per (board, side to move), which
    leaves the chosen move identical to plain minimax.
    """

    player: Player = "O"
    difficulty: Difficulty = Difficulty.MEDIUM
    rng: random.Random = field(default_factory=random.Random, repr=False)
    _tt: Dict[Tuple[Tuple[str, ...], Player], int] = field(
        default_factory=dict, repr=False
    )

    def __post_init__(self) -> None:
        self.difficulty = Difficulty(self.difficulty)

    # ---- public API ----

    def choose(self, cells: Sequence[str]) -> Optional[int]:
        board = list(cells)
        moves = empty_cells(board)
        if not moves or check_winner(board) is not None:
            return None

        if self.difficulty is Difficulty.EASY:
            move = self.rng.choice(moves)
        elif self.difficulty is Difficulty.MEDIUM:
            move = self._heuristic_move(board, moves)
        else:
            move = self._best_move(board, moves)
        logger.debug("AI %s (%s) chose cell %d", self.player, self.difficulty.value, move)
        return move

    # ---- medium ----

    def _completing_move(
        self, board: List[str], player: Player, moves: List[int]
    ) -> Optional[int]:
        for move in moves:
            child = board.copy()
            child[move] = player
            result = check_winner(child)
            if result is not None and result[0] == player:
                return move
        return None

    def _heuristic_move(self, board: List[str], moves: List[int]) -> int:
        win = self._completing_move(board, self.player, moves)
        if win is not None:
            return win
        block = self._completing_move(board, opponent(self.player), moves)
        if block is not None:
            return block
        if CENTER in moves:
            return CENTER
        for group in (CORNERS, EDGES):
            open_cells = [i for i in group if i in moves]
            if open_cells:
                return self.rng.choice(open_cells)
        return self.rng.choice(moves)

    # ---- hard ----

    def _best_move(self, board: List[str], moves: List[int]) -> int:
        best_score = -math.inf
        best_move = moves[0]
        for move in moves:
            child = board.copy()
            child[move] = self.player
            score = self._minimax(child, opponent(self.player))
            if score > best_score:
                best_score, best_move = score, move
        return best_move

    def _minimax(self, board: List[str], to_move: Player) -> int:
        key = (tuple(board), to_move)
        cached = self._tt.get(key)
        if cached is not None:
            return cached

        result = check_winner(board)
        if result is not None:
            score = WIN_SCORE if result[0] == self.player else LOSS_SCORE
        elif is_full(board):
            score = DRAW_SCORE
        else:
            scores = []
            for move, cell in enumerate(board):
                if cell != EMPTY:
                    continue
                child = board.copy()
                child[move] = to_move
                scores.append(self._minimax(child, opponent(to_move)))
            score = max(scores) if to_move == self.player else min(scores)

        self._tt[key] = score
        return score
