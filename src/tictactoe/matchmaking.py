"""FIFO matchmaking queue that pairs waiting players into new sessions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import logging
import threading
import time
import uuid

from .errors import NotFoundError
from .game import validate_display_name
from .registry import SessionRegistry

logger = logging.getLogger(__name__)

WAIT_SECONDS_PER_PLAYER = 30
QUEUE_TTL_SECONDS = 60 * 5


@dataclass
class MatchmakingEntry:
    player_id: str
    name: str
    enqueued_at: float


@dataclass(frozen=True)
class MatchResult:
    matched: bool
    session_id: Optional[str] = None
    opponent_name: Optional[str] = None
    symbol: Optional[str] = None


@dataclass(frozen=True)
class QueueStatus:
    position: int
    total_waiting: int
    estimated_wait_seconds: int
    matched: bool = False
    session_id: Optional[str] = None


def _not_queued(player_id: str) -> NotFoundError:
    return NotFoundError("not_queued", f"Player {player_id} not found in queue")


class MatchmakingQueue:
    """Pairs the two oldest entries whenever any queued player polls.

    The caller is told about the match only if it was one of the pair; the
    other paired player picks up a pending notice on its next ``try_match``.
    Dequeue, pairing and session creation happen under one lock so no entry
    is paired twice.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        *,
        wait_seconds_per_player: int = WAIT_SECONDS_PER_PLAYER,
        entry_ttl: float = QUEUE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = registry
        self.wait_seconds_per_player = wait_seconds_per_player
        self.entry_ttl = entry_ttl
        self._clock = clock
        self._entries: List[MatchmakingEntry] = []
        self._notices: Dict[str, Tuple[MatchResult, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def enqueue(self, display_name: str) -> str:
        name = validate_display_name(display_name)
        entry = MatchmakingEntry(
            player_id=uuid.uuid4().hex, name=name, enqueued_at=self._clock()
        )
        with self._lock:
            self._entries.append(entry)
            waiting = len(self._entries)
        logger.info("Queued %s for matchmaking (%d waiting)", name, waiting)
        return entry.player_id

    def try_match(self, player_id: str) -> MatchResult:
        with self._lock:
            notice = self._notices.pop(player_id, None)
            if notice is not None:
                return notice[0]
            if self._index(player_id) is None:
                raise _not_queued(player_id)
            if len(self._entries) < 2:
                return MatchResult(matched=False)

            first, second = self._entries[0], self._entries[1]
            del self._entries[:2]
            session = self.registry.create_matched_session(
                [(first.player_id, first.name), (second.player_id, second.name)]
            )
            now = self._clock()
            results = {
                first.player_id: MatchResult(True, session.session_id, second.name, "X"),
                second.player_id: MatchResult(True, session.session_id, first.name, "O"),
            }
            logger.info(
                "Matched %s and %s in session %s",
                first.name,
                second.name,
                session.session_id,
            )
            for pid, result in results.items():
                if pid != player_id:
                    self._notices[pid] = (result, now)
            return results.get(player_id, MatchResult(matched=False))

    def status(self, player_id: str) -> QueueStatus:
        """Queue position, or position 0 with ``matched`` once paired."""
        with self._lock:
            total = len(self._entries)
            notice = self._notices.get(player_id)
            if notice is not None:
                return QueueStatus(
                    position=0,
                    total_waiting=total,
                    estimated_wait_seconds=0,
                    matched=True,
                    session_id=notice[0].session_id,
                )
            index = self._index(player_id)
            if index is None:
                raise _not_queued(player_id)
        return QueueStatus(
            position=index + 1,
            total_waiting=total,
            estimated_wait_seconds=total * self.wait_seconds_per_player,
        )

    def cancel(self, player_id: str) -> bool:
        """Remove a waiting entry, or give up the seat of an unclaimed match."""
        with self._lock:
            notice = self._notices.pop(player_id, None)
            index = self._index(player_id)
            entry = self._entries.pop(index) if index is not None else None
        if notice is not None and notice[0].session_id is not None:
            self.registry.leave(notice[0].session_id, player_id)
            logger.info("Player %s gave up match %s", player_id, notice[0].session_id)
            return True
        if entry is None:
            return False
        logger.info("%s left the matchmaking queue", entry.name)
        return True

    def sweep_expired(self, now: Optional[float] = None) -> int:
        """Drop entries and undelivered notices older than ``entry_ttl``."""
        now = self._clock() if now is None else now
        with self._lock:
            before = len(self._entries)
            self._entries = [
                e for e in self._entries if now - e.enqueued_at <= self.entry_ttl
            ]
            dropped = before - len(self._entries)
            for pid, (_, created) in list(self._notices.items()):
                if now - created > self.entry_ttl:
                    del self._notices[pid]
        if dropped:
            logger.info("Dropped %d stale matchmaking entries", dropped)
        return dropped

    def _index(self, player_id: str) -> Optional[int]:
        for i, entry in enumerate(self._entries):
            if entry.player_id == player_id:
                return i
        return None
