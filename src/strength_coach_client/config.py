"""Configuration settings for the strength coach client."""
import os
from pathlib import Path
from typing import Literal


EnvironmentType = Literal["development", "staging", "production"]
WeightUnit = Literal["kg", "lb"]

DEFAULT_API_BASE = "https://strength-coach-ui.onrender.com"


def _env_float(name: str, default: float) -> float:
    try:
        value = float(os.getenv(name, ""))
    except ValueError:
        return default
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    try:
        value = int(os.getenv(name, ""))
    except ValueError:
        return default
    return value if value > 0 else default


class Settings:
    """Client settings."""

    # Environment
    ENVIRONMENT: EnvironmentType = "development"

    # Remote API
    API_BASE: str = DEFAULT_API_BASE
    REQUEST_TIMEOUT: float = 30.0
    FETCH_RETRY_ATTEMPTS: int = 3

    # Local credential cache (token + serialized user only)
    CREDENTIALS_DIR: Path = Path.home() / ".strength-coach"

    # Session behaviour
    DEFAULT_UNIT: WeightUnit = "kg"
    REST_TICK_SECONDS: float = 0.25
    RESUME_REACQUIRES_LOCK: bool = True

    def __init__(self):
        # Environment
        env = os.getenv("ENVIRONMENT", "development").lower()
        if env in ("development", "staging", "production"):
            self.ENVIRONMENT = env  # type: ignore
        else:
            self.ENVIRONMENT = "development"

        # Remote API
        base = os.getenv("COACH_API_BASE") or DEFAULT_API_BASE
        self.API_BASE = base.rstrip("/")
        self.REQUEST_TIMEOUT = _env_float("COACH_REQUEST_TIMEOUT", 30.0)
        self.FETCH_RETRY_ATTEMPTS = _env_int("COACH_FETCH_RETRY_ATTEMPTS", 3)

        creds_dir = os.getenv("COACH_CREDENTIALS_DIR")
        self.CREDENTIALS_DIR = (
            Path(creds_dir).expanduser() if creds_dir else Path.home() / ".strength-coach"
        )

        # Session behaviour
        unit = os.getenv("COACH_DEFAULT_UNIT", "kg").lower()
        self.DEFAULT_UNIT = unit if unit in ("kg", "lb") else "kg"  # type: ignore
        self.REST_TICK_SECONDS = _env_float("COACH_REST_TICK_SECONDS", 0.25)
        self.RESUME_REACQUIRES_LOCK = (
            os.getenv("COACH_RESUME_REACQUIRES_LOCK", "true").lower() == "true"
        )


settings = Settings()
