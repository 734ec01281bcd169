"""
Credential cache for the mobile session.

The only state the client persists: the bearer token and the serialized user
profile, so a session survives an app restart. Nothing about workouts or locks
is ever written to disk.
"""
import json
import logging
import time
from pathlib import Path
from typing import Optional

import jwt
from pydantic import ValidationError as PydanticValidationError

from .config import settings
from .models import AuthUser

logger = logging.getLogger(__name__)

TOKEN_FILE = "auth_token"
USER_FILE = "auth_user.json"


def token_expired(token: str, now: Optional[float] = None) -> bool:
    """
    True when ``token`` is a JWT whose ``exp`` claim has passed.

    The signature is not verified here; the server stays the authority. Opaque
    (non-JWT) tokens and JWTs without ``exp`` are never considered expired.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return False
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return False
    return exp <= (now if now is not None else time.time())


class CredentialStore:
    """Token + user profile, in memory and mirrored to ``directory``."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory else settings.CREDENTIALS_DIR
        self.token: Optional[str] = None
        self.user: Optional[AuthUser] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def login(self, user: AuthUser, token: Optional[str]) -> None:
        """Remember ``user`` and ``token`` and persist them (best-effort)."""
        self.user = user
        self.token = token
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            token_path = self.directory / TOKEN_FILE
            if token:
                token_path.write_text(token, encoding="utf-8")
            elif token_path.exists():
                token_path.unlink()
            (self.directory / USER_FILE).write_text(user.model_dump_json(), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to persist credentials: {e}")

    def clear(self) -> None:
        """Forget the session in memory and on disk."""
        self.user = None
        self.token = None
        for name in (TOKEN_FILE, USER_FILE):
            path = self.directory / name
            try:
                if path.exists():
                    path.unlink()
            except OSError as e:
                logger.warning(f"Failed to remove {path}: {e}")

    def restore(self) -> bool:
        """
        Reload a previous session from disk.

        Corrupt files and expired JWTs are treated as logged out. Returns True
        when a user profile was restored.
        """
        token_path = self.directory / TOKEN_FILE
        user_path = self.directory / USER_FILE
        try:
            token = token_path.read_text(encoding="utf-8").strip() if token_path.exists() else None
            user = (
                AuthUser.model_validate(json.loads(user_path.read_text(encoding="utf-8")))
                if user_path.exists()
                else None
            )
        except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning(f"Failed to restore auth state: {e}")
            self.clear()
            return False

        if token and token_expired(token):
            logger.info("Stored token has expired; discarding session")
            self.clear()
            return False

        self.token = token or None
        self.user = user
        return user is not None
