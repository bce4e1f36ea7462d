"""Tic-tac-toe package exposing game rules, the AI, session stores and the web API."""

from .ai import Difficulty, TicTacToeAI
from .game import GameSession, GameStatus, check_winner
from .matchmaking import MatchmakingQueue
from .registry import SessionRegistry

__all__ = [
    "Difficulty",
    "GameSession",
    "GameStatus",
    "MatchmakingQueue",
    "SessionRegistry",
    "TicTacToeAI",
    "check_winner",
]
