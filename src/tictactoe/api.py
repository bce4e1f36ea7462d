"""FastAPI HTTP surface over the session registry and matchmaking queue."""

from __future__ import annotations

from typing import Dict, Optional
import logging

from fastapi import BackgroundTasks, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .ai import Difficulty
from .config import Settings
from .errors import GameError
from .game import GameSnapshot
from .matchmaking import MatchmakingQueue
from .registry import SessionRegistry

logger = logging.getLogger(__name__)

STATUS_BY_KIND: Dict[str, int] = {
    "not_found": 404,
    "validation": 400,
    "conflict": 409,
}


class AIConfig(BaseModel):
    difficulty: Difficulty = Difficulty.MEDIUM


class NewGameRequest(BaseModel):
    """Request payload for creating a session; ``ai`` seats a computer as O."""

    ai: Optional[AIConfig] = None


class JoinRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    player_name: str = Field(alias="playerName")


class PlayerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    player_id: str = Field(alias="playerId")


class MoveRequest(PlayerRequest):
    """Request payload for a move; range is checked by the game itself."""

    position: int


def serialize_snapshot(snapshot: GameSnapshot) -> Dict[str, object]:
    state: Dict[str, object] = {
        "gameId": snapshot.session_id,
        "board": list(snapshot.board),
        "currentTurn": snapshot.current_turn,
        "status": snapshot.status.value,
        "winner": snapshot.winner,
        "winningLine": list(snapshot.winning_line) if snapshot.winning_line else None,
        "players": [
            {"name": p.name, "symbol": p.symbol, "isSynthetic": p.is_synthetic}
            for p in snapshot.players
        ],
        "rematchVotes": snapshot.rematch_votes,
        "aiPending": snapshot.ai_pending,
        "difficulty": snapshot.difficulty,
        "createdAt": snapshot.created_at,
    }
    if snapshot.your_symbol is not None:
        state["yourSymbol"] = snapshot.your_symbol
        state["yourTurn"] = snapshot.your_turn
        state["yourRematchVote"] = snapshot.your_rematch_vote
    return state


def create_app(
    registry: Optional[SessionRegistry] = None,
    matchmaking: Optional[MatchmakingQueue] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Build the application around the given (or freshly created) stores."""

    settings = settings or Settings()
    if registry is None:
        registry = SessionRegistry(
            ai_think_delay=settings.ai_think_delay,
            session_ttl=settings.session_ttl,
        )
    if matchmaking is None:
        matchmaking = MatchmakingQueue(
            registry,
            wait_seconds_per_player=settings.match_wait_seconds,
            entry_ttl=settings.queue_ttl,
        )

    app = FastAPI(
        title="Tic-Tac-Toe",
        description="Tic-tac-toe against the computer, a friend or a random opponent",
    )
    app.state.registry = registry
    app.state.matchmaking = matchmaking

    @app.exception_handler(GameError)
    async def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
        logger.debug("Rejected %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=STATUS_BY_KIND.get(exc.kind, 400), content=exc.to_dict()
        )

    def _sweep() -> None:
        registry.sweep_expired()
        matchmaking.sweep_expired()

    # ---- games ----

    @app.post("/api/game")
    def create_game(request: Optional[NewGameRequest] = None) -> Dict[str, object]:
        _sweep()
        difficulty = request.ai.difficulty.value if request and request.ai else None
        session = registry.create_session(difficulty)
        return serialize_snapshot(registry.snapshot(session.session_id))

    @app.get("/api/game/{game_id}")
    def get_game(
        game_id: str, player_id: Optional[str] = Query(default=None, alias="playerId")
    ) -> Dict[str, object]:
        return serialize_snapshot(registry.snapshot(game_id, player_id))

    @app.delete("/api/game/{game_id}")
    def delete_game(game_id: str) -> Dict[str, object]:
        registry.delete(game_id)
        return {"ok": True}

    @app.post("/api/game/{game_id}/join")
    def join_game(
        game_id: str, request: JoinRequest, background_tasks: BackgroundTasks
    ) -> Dict[str, object]:
        seat, snapshot = registry.join(
            game_id, request.player_name, schedule=background_tasks.add_task
        )
        return {
            "playerId": seat.player_id,
            "symbol": seat.symbol,
            **serialize_snapshot(snapshot),
        }

    @app.post("/api/game/{game_id}/move")
    def make_move(
        game_id: str, request: MoveRequest, background_tasks: BackgroundTasks
    ) -> Dict[str, object]:
        snapshot = registry.move(
            game_id,
            request.player_id,
            request.position,
            schedule=background_tasks.add_task,
        )
        return serialize_snapshot(snapshot)

    @app.post("/api/game/{game_id}/leave")
    def leave_game(game_id: str, request: PlayerRequest) -> Dict[str, object]:
        registry.leave(game_id, request.player_id)
        return {"ok": True}

    @app.post("/api/game/{game_id}/rematch")
    def rematch(
        game_id: str, request: PlayerRequest, background_tasks: BackgroundTasks
    ) -> Dict[str, object]:
        started, waiting_for, snapshot = registry.request_rematch(
            game_id, request.player_id, schedule=background_tasks.add_task
        )
        return {
            "started": started,
            "waitingFor": waiting_for,
            **serialize_snapshot(snapshot),
        }

    # ---- matchmaking ----

    @app.post("/api/matchmaking/join")
    def join_matchmaking(request: JoinRequest) -> Dict[str, str]:
        _sweep()
        player_id = matchmaking.enqueue(request.player_name)
        return {"playerId": player_id, "status": "queued"}

    @app.get("/api/matchmaking/match/{player_id}")
    def try_match(player_id: str) -> Dict[str, object]:
        result = matchmaking.try_match(player_id)
        payload: Dict[str, object] = {"matched": result.matched}
        if result.matched:
            payload.update(
                gameId=result.session_id,
                playerId=player_id,
                symbol=result.symbol,
                opponentName=result.opponent_name,
            )
        return payload

    @app.get("/api/matchmaking/status/{player_id}")
    def matchmaking_status(player_id: str) -> Dict[str, object]:
        status = matchmaking.status(player_id)
        payload: Dict[str, object] = {
            "position": status.position,
            "totalWaiting": status.total_waiting,
            "estimatedWaitSeconds": status.estimated_wait_seconds,
            "matched": status.matched,
        }
        if status.matched:
            payload["gameId"] = status.session_id
        return payload

    @app.delete("/api/matchmaking/{player_id}")
    def cancel_matchmaking(player_id: str) -> Dict[str, object]:
        return {"ok": True, "removed": matchmaking.cancel(player_id)}

    # ---- misc ----

    @app.get("/api/health")
    def health() -> Dict[str, object]:
        return {
            "status": "ok",
            "sessions": len(registry),
            "byStatus": registry.count_by_status(),
            "waiting": len(matchmaking),
        }

    return app


app = create_app(settings=Settings.from_env())
