"""Session repository interface and its in-memory implementation."""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol
import threading

from .game import GameSession


class SessionStore(Protocol):
    def get(self, session_id: str) -> Optional[GameSession]: ...

    def put(self, session: GameSession) -> None: ...

    def delete(self, session_id: str) -> bool: ...

    def list(self) -> List[GameSession]: ...


class InMemorySessionStore:
    """Process-local mapping of session id to GameSession."""

    def __init__(self) -> None:
        self._sessions: Dict[str, GameSession] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[GameSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def put(self, session: GameSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def list(self) -> List[GameSession]:
        with self._lock:
            return list(self._sessions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
