"""Runtime settings read from ``TICTACTOE_*`` environment variables."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Tuple
import os


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    ai_delay_min: float = 0.5
    ai_delay_max: float = 1.5
    session_ttl: float = 60 * 30
    queue_ttl: float = 60 * 5
    match_wait_seconds: int = 30

    @property
    def ai_think_delay(self) -> Tuple[float, float]:
        return (self.ai_delay_min, self.ai_delay_max)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        settings = cls(
            host=env.get("TICTACTOE_HOST", defaults.host),
            port=int(env.get("TICTACTOE_PORT", defaults.port)),
            log_level=env.get("TICTACTOE_LOG_LEVEL", defaults.log_level).upper(),
            ai_delay_min=float(env.get("TICTACTOE_AI_DELAY_MIN", defaults.ai_delay_min)),
            ai_delay_max=float(env.get("TICTACTOE_AI_DELAY_MAX", defaults.ai_delay_max)),
            session_ttl=float(env.get("TICTACTOE_SESSION_TTL", defaults.session_ttl)),
            queue_ttl=float(env.get("TICTACTOE_QUEUE_TTL", defaults.queue_ttl)),
            match_wait_seconds=int(
                env.get("TICTACTOE_MATCH_WAIT_SECONDS", defaults.match_wait_seconds)
            ),
        )
        if settings.ai_delay_min < 0 or settings.ai_delay_max < settings.ai_delay_min:
            raise ValueError(
                "TICTACTOE_AI_DELAY_MIN/MAX must satisfy 0 <= min <= max"
            )
        return settings
