"""Session registry: creation, lookup, locking and the delayed AI turn."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional, Sequence, Tuple
import logging
import random
import time
import uuid

from .ai import Difficulty, TicTacToeAI
from .errors import ValidationError, session_not_found
from .game import GameSession, GameSnapshot, GameStatus, PlayerSeat
from .store import InMemorySessionStore, SessionStore

logger = logging.getLogger(__name__)

AI_SYMBOL = "O"
AI_THINK_DELAY: Tuple[float, float] = (0.5, 1.5)
SESSION_TTL_SECONDS = 60 * 30  # 30 minutes

Scheduler = Callable[..., None]


def _new_id() -> str:
    return uuid.uuid4().hex


class SessionRegistry:
    """Owns every GameSession through a SessionStore.

    Each mutation takes the session's lock, so moves, joins and leaves on one
    session are applied one at a time. The AI reply is handed to a
    ``schedule`` callable (e.g. ``BackgroundTasks.add_task``) and applied by
    ``run_ai_turn`` after a short delay.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        *,
        ai_think_delay: Tuple[float, float] = AI_THINK_DELAY,
        session_ttl: float = SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.store: SessionStore = store if store is not None else InMemorySessionStore()
        self.ai_think_delay = ai_think_delay
        self.session_ttl = session_ttl
        self._clock = clock
        self._rng = rng or random.Random()
        self._strategists: Dict[Difficulty, TicTacToeAI] = {}

    # ---- creation & lookup ----

    def create_session(self, difficulty: Optional[str] = None) -> GameSession:
        ai_level: Optional[Difficulty] = None
        if difficulty is not None:
            try:
                ai_level = Difficulty(difficulty)
            except ValueError as exc:
                raise ValidationError(
                    "invalid_difficulty",
                    f"Unsupported difficulty {difficulty!r}. "
                    f"Choose one of {', '.join(d.value for d in Difficulty)}.",
                ) from exc

        now = self._clock()
        session = GameSession(
            session_id=_new_id(),
            difficulty=ai_level.value if ai_level else None,
            created_at=now,
            touched_at=now,
        )
        if ai_level is not None:
            session.seat_player(
                f"ai-{_new_id()}",
                f"AI ({ai_level.value})",
                is_synthetic=True,
                symbol=AI_SYMBOL,
            )
        self.store.put(session)
        logger.info(
            "Created session %s (%s)",
            session.session_id,
            f"AI {ai_level.value}" if ai_level else "multiplayer",
        )
        return session

    def create_matched_session(self, entries: Sequence[Tuple[str, str]]) -> GameSession:
        """Create a session with ``(player_id, name)`` pairs seated X then O."""
        now = self._clock()
        session = GameSession(session_id=_new_id(), created_at=now, touched_at=now)
        for player_id, name in entries:
            session.seat_player(player_id, name)
        self.store.put(session)
        logger.info("Created matched session %s", session.session_id)
        return session

    def get(self, session_id: str) -> GameSession:
        session = self.store.get(session_id)
        if session is None:
            raise session_not_found(session_id)
        return session

    @contextmanager
    def _locked(self, session_id: str) -> Iterator[GameSession]:
        """Hold the session lock, failing if the session was deleted meanwhile."""
        session = self.get(session_id)
        with session.lock:
            if self.store.get(session_id) is not session:
                raise session_not_found(session_id)
            yield session

    def delete(self, session_id: str) -> None:
        if not self.store.delete(session_id):
            raise session_not_found(session_id)
        logger.info("Deleted session %s", session_id)

    def __len__(self) -> int:
        return len(self.store.list())

    # ---- player operations ----

    def join(
        self,
        session_id: str,
        display_name: str,
        schedule: Optional[Scheduler] = None,
    ) -> Tuple[PlayerSeat, GameSnapshot]:
        with self._locked(session_id) as session:
            seat = session.join(_new_id(), display_name)
            self._touch(session)
            run_ai = self._claim_ai_turn(session, schedule)
            snapshot = session.snapshot(seat.player_id)
        logger.info(
            "Player %s joined %s as %s", seat.name, session_id, seat.symbol
        )
        if run_ai and schedule is not None:
            schedule(self.run_ai_turn, session_id)
        return seat, snapshot

    def move(
        self,
        session_id: str,
        player_id: str,
        position: int,
        schedule: Optional[Scheduler] = None,
    ) -> GameSnapshot:
        with self._locked(session_id) as session:
            session.move(player_id, position)
            self._touch(session)
            run_ai = self._claim_ai_turn(session, schedule)
            snapshot = session.snapshot(player_id)
        if run_ai and schedule is not None:
            schedule(self.run_ai_turn, session_id)
        return snapshot

    def leave(self, session_id: str, player_id: str) -> None:
        session = self.store.get(session_id)
        if session is None:
            return
        with session.lock:
            if not session.leave(player_id):
                return
            self._touch(session)
            abandoned = not session.human_seats()
            if abandoned:
                self.store.delete(session_id)
        logger.info("Player %s left session %s", player_id, session_id)
        if abandoned:
            logger.info("Deleted abandoned session %s", session_id)

    def request_rematch(
        self,
        session_id: str,
        player_id: str,
        schedule: Optional[Scheduler] = None,
    ) -> Tuple[bool, int, GameSnapshot]:
        with self._locked(session_id) as session:
            started, waiting_for = session.request_rematch(player_id)
            self._touch(session)
            run_ai = self._claim_ai_turn(session, schedule)
            snapshot = session.snapshot(player_id)
        if started:
            logger.info("Rematch started in session %s", session_id)
        if run_ai and schedule is not None:
            schedule(self.run_ai_turn, session_id)
        return started, waiting_for, snapshot

    def snapshot(
        self, session_id: str, player_id: Optional[str] = None
    ) -> GameSnapshot:
        session = self.get(session_id)
        with session.lock:
            return session.snapshot(player_id)

    # ---- AI ----

    def strategist(self, difficulty: str) -> TicTacToeAI:
        level = Difficulty(difficulty)
        ai = self._strategists.get(level)
        if ai is None:
            ai = TicTacToeAI(player=AI_SYMBOL, difficulty=level, rng=self._rng)
            self._strategists[level] = ai
        return ai

    def run_ai_turn(self, session_id: str) -> Optional[int]:
        """Sleep for the think delay, then play the AI's move if still due."""
        session = self.store.get(session_id)
        if session is None:
            return None

        low, high = self.ai_think_delay
        time.sleep(max(0.0, self._rng.uniform(low, high)))

        with session.lock:
            try:
                if not session.needs_ai_move() or session.difficulty is None:
                    return None
                seat = session.seat_for(session.current_turn)
                ai = self.strategist(session.difficulty)
                position = ai.choose(session.cells)
                if position is None or seat is None:
                    return None
                session.move(seat.player_id, position)
                self._touch(session)
                return position
            finally:
                session.ai_pending = False

    def _claim_ai_turn(
        self, session: GameSession, schedule: Optional[Scheduler]
    ) -> bool:
        if schedule is None or session.ai_pending or not session.needs_ai_move():
            return False
        session.ai_pending = True
        return True

    # ---- lifecycle ----

    def _touch(self, session: GameSession) -> None:
        session.touched_at = self._clock()

    def sweep_expired(self, now: Optional[float] = None) -> int:
        """Delete sessions untouched for longer than ``session_ttl``."""
        now = self._clock() if now is None else now
        expired = [
            s.session_id
            for s in self.store.list()
            if now - s.touched_at > self.session_ttl
        ]
        for session_id in expired:
            self.store.delete(session_id)
        if expired:
            logger.info("Swept %d idle session(s)", len(expired))
        return len(expired)

    def count_by_status(self) -> Dict[str, int]:
        counts: Dict[str, int] = {status.value: 0 for status in GameStatus}
        for session in self.store.list():
            counts[session.status.value] += 1
        return counts
