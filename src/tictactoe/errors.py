"""Error taxonomy shared by the game core and the HTTP layer."""

from __future__ import annotations


class GameError(ValueError):
    """Rejected operation with a machine-readable ``kind`` and ``code``."""

    kind = "conflict"

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.code, "kind": self.kind, "detail": self.message}


class NotFoundError(GameError):
    kind = "not_found"


class ValidationError(GameError):
    kind = "validation"


class ConflictError(GameError):
    kind = "conflict"


def session_not_found(session_id: str) -> NotFoundError:
    return NotFoundError("not_found", f"Game {session_id} not found")


def unknown_player() -> NotFoundError:
    return NotFoundError("unknown_player", "Player not in this game")
