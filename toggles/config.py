"""Runtime configuration, read from the environment (and a ``.env`` file).

Variables:
    TOGGLES_ENV                      development | production (default development)
    TOGGLES_TTL_SECONDS              idle time before an unreferenced toggle is evicted
    TOGGLES_SWEEP_INTERVAL_SECONDS   period of the eviction sweep
    TOGGLES_MAX_NOTIFY_DEPTH         nested change notifications allowed per toggle
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum

from dotenv import load_dotenv

from .result import Err, Ok, Result, first_error

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0
DEFAULT_MAX_NOTIFY_DEPTH = 32


class Mode(Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


@dataclass(frozen=True)
class ToggleConfig:
    mode: Mode = Mode.DEVELOPMENT
    ttl_seconds: float = DEFAULT_TTL_SECONDS
    sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS
    max_notify_depth: int = DEFAULT_MAX_NOTIFY_DEPTH

    @property
    def is_production(self) -> bool:
        """Production mode downgrades naming conflicts from errors to warnings."""
        return self.mode is Mode.PRODUCTION

    @classmethod
    def from_env(cls) -> Result[ToggleConfig, Exception]:
        """Build a config from TOGGLES_* variables, loading ``.env`` first."""
        load_dotenv()

        match os.getenv("TOGGLES_ENV", "").strip().lower():
            case "" | "dev" | "development" | "test":
                mode = Mode.DEVELOPMENT
            case "prod" | "production":
                mode = Mode.PRODUCTION
            case other:
                return Err(
                    ValueError(
                        f"TOGGLES_ENV must be 'development' or 'production', got {other!r}."
                    )
                )

        ttl = _positive_number("TOGGLES_TTL_SECONDS", DEFAULT_TTL_SECONDS, float)
        interval = _positive_number(
            "TOGGLES_SWEEP_INTERVAL_SECONDS", DEFAULT_SWEEP_INTERVAL_SECONDS, float
        )
        depth = _positive_number("TOGGLES_MAX_NOTIFY_DEPTH", DEFAULT_MAX_NOTIFY_DEPTH, int)

        match (ttl, interval, depth):
            case (Ok(t), Ok(i), Ok(d)):
                return Ok(
                    cls(
                        mode=mode,
                        ttl_seconds=t,
                        sweep_interval_seconds=i,
                        max_notify_depth=d,
                    )
                )
            case _:
                error = first_error((ttl, interval, depth))
                assert error is not None
                return Err(error)


def _positive_number[N: (int, float)](
    var: str, default: N, parse: type[N]
) -> Result[N, Exception]:
    raw = os.getenv(var)
    match raw:
        case None:
            return Ok(default)
        case str(text) if not text.strip():
            return Ok(default)
        case str(text):
            try:
                value = parse(text.strip())
            except ValueError:
                return Err(ValueError(f"{var} must be a number, got {text!r}."))
            if value <= 0:
                return Err(ValueError(f"{var} must be positive, got {text!r}."))
            return Ok(value)


_default_config: ToggleConfig | None = None


def get_default_config() -> ToggleConfig:
    """Return the process-wide config, read from the environment on first use.

    An invalid environment is reported once and replaced by the defaults.
    """
    global _default_config
    if _default_config is None:
        match ToggleConfig.from_env():
            case Ok(config):
                pass
            case Err(e):
                logger.warning("Invalid toggle configuration, using defaults: %s", e)
                config = ToggleConfig()
        _default_config = config
    return _default_config
