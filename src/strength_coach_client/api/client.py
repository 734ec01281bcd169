"""
Coach API client.

Thin async wrapper around the coach server's JSON-over-HTTPS API. Every
response is checked twice: the HTTP status must be 2xx AND the envelope must
say ``ok: true``. Either check failing is a failure on its own.

Reads go through :func:`retry_read`; mutations are sent exactly once.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..auth import CredentialStore
from ..config import settings
from ..errors import (
    AuthError,
    ConflictError,
    NetworkError,
    ServerError,
    ValidationError,
)
from ..models import (
    AthleteDashboard,
    AuthUser,
    LoginResponse,
    SetEntry,
    WorkoutList,
    WorkoutPayload,
)
from .retry import retry_read

logger = logging.getLogger(__name__)

# Envelope text some endpoints use instead of a 401
AUTH_REQUIRED_ERROR = "auth required"

# Per-item mutation endpoints
LOG_STRAIGHT = "log_straight"
LOG_TOP = "log_top"
LOG_BK = "log_bk"
LOG_ACC = "log_acc"
CLEAR_TOP = "clear_top"
DELETE_LAST_SET = "delete_last_set"
SWAP_ACC = "swap_acc"


@dataclass
class ApiResponse:
    """Raw outcome of one HTTP exchange; JSON is None when the body isn't JSON."""
    ok: bool
    status: int
    json: Any
    raw: str

    @property
    def envelope(self) -> Dict[str, Any]:
        return self.json if isinstance(self.json, dict) else {}


class CoachApiClient:
    """Async client for the coach API, bound to one credential store."""

    def __init__(
        self,
        credentials: Optional[CredentialStore] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ):
        """
        Initialize the client.

        Args:
            credentials: Token/user cache; a fresh one is created when omitted
            base_url: API root (defaults to settings.API_BASE)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests plug fakes in here)
            on_unauthorized: Called after a 401 has cleared the credentials
        """
        self.credentials = credentials or CredentialStore()
        self.base_url = (base_url or settings.API_BASE).rstrip("/")
        self.on_unauthorized = on_unauthorized
        # Cookie jar lives on the httpx client: the cookie-session fallback
        self._http = httpx.AsyncClient(
            timeout=timeout or settings.REQUEST_TIMEOUT,
            transport=transport,
        )

    async def __aenter__(self) -> "CoachApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # =========================================================================
    # HTTP Helpers
    # =========================================================================

    def _url(self, path: str) -> str:
        return path if path.startswith("http") else f"{self.base_url}{path}"

    def _headers(self, caller_headers: Optional[Dict[str, str]], has_body: bool) -> Dict[str, str]:
        caller_headers = dict(caller_headers or {})
        headers: Dict[str, str] = {"Accept": "application/json"}

        has_content_type = any(k.lower() == "content-type" for k in caller_headers)
        if has_body and not has_content_type:
            headers["Content-Type"] = "application/json"

        headers.update(caller_headers)

        # Caller-supplied Authorization wins over the stored token
        has_auth = any(k.lower() == "authorization" for k in headers)
        token = self.credentials.token
        if token and not has_auth:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def fetch_json(
        self,
        method: str,
        path: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ApiResponse:
        """
        Send one request and parse the body as JSON if possible.

        Never raises on HTTP status; raises NetworkError only when the request
        itself could not complete.
        """
        method = method.upper()
        url = self._url(path)

        content: Optional[str] = None
        if body is not None and method not in ("GET", "HEAD"):
            content = body if isinstance(body, str) else json.dumps(body)

        merged = self._headers(headers, has_body=content is not None)
        auth_present = any(k.lower() == "authorization" for k in merged)
        logger.debug(f"fetch_json {method} {url} auth? {auth_present} hasBody? {content is not None}")

        try:
            response = await self._http.request(method, url, content=content, headers=merged)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise NetworkError() from e

        raw = response.text or ""
        trimmed = raw.strip()
        parsed: Any = None
        if trimmed:
            try:
                parsed = json.loads(trimmed)
            except ValueError:
                logger.info(f"fetch_json parse failed: {response.status_code} {url} {trimmed[:300]}")

        return ApiResponse(
            ok=response.is_success,
            status=response.status_code,
            json=parsed,
            raw=raw,
        )

    def _handle_unauthorized(self) -> None:
        self.credentials.clear()
        if self.on_unauthorized:
            self.on_unauthorized()

    async def call(
        self,
        method: str,
        path: str,
        body: Any = None,
        failure_message: str = "Request failed",
        auth_redirect: bool = True,
    ) -> Dict[str, Any]:
        """
        Send a request and enforce the ``{ok, error?, ...}`` envelope.

        Returns the envelope on success.

        Raises:
            NetworkError: transport failure
            AuthError: 401 (or ``auth required``) when ``auth_redirect`` is set;
                cached credentials are cleared first
            ConflictError: HTTP 409
            ServerError: any other non-2xx, or an envelope without ``ok: true``
        """
        response = await self.fetch_json(method, path, body=body)
        envelope = response.envelope
        server_error = envelope.get("error") or envelope.get("message")

        if auth_redirect and (response.status == 401 or server_error == AUTH_REQUIRED_ERROR):
            logger.info(f"{method} {path} requires login (HTTP {response.status})")
            self._handle_unauthorized()
            raise AuthError()

        if not response.ok:
            message = server_error or f"{failure_message} (HTTP {response.status})"
            logger.info(f"{method} {path} not ok: {response.status} {response.raw[:200]}")
            if response.status == 409:
                raise ConflictError(message)
            raise ServerError(message, status_code=response.status)

        if envelope.get("ok") is not True:
            logger.info(f"{method} {path} envelope not ok: {server_error!r}")
            raise ServerError(server_error or failure_message, status_code=response.status)

        return envelope

    async def _get_model(self, path: str, model: Any, failure_message: str) -> Any:
        async def _fetch() -> Any:
            return await self.call("GET", path, failure_message=failure_message)

        envelope = await retry_read(_fetch)
        try:
            return model.model_validate(envelope)
        except PydanticValidationError as e:
            logger.error(f"Unexpected payload from {path}: {e}")
            raise ServerError("Unexpected response from server") from e

    # =========================================================================
    # Auth
    # =========================================================================

    async def login(self, email: str, password: str) -> AuthUser:
        """Log in, cache the token + profile, and return the profile."""
        email = (email or "").strip()
        if not email or not password:
            raise ValidationError("Email and password are required.", field="email")

        envelope = await self.call(
            "POST",
            "/auth/login-mobile",
            body={"email": email, "password": password},
            failure_message="Login failed.",
            auth_redirect=False,
        )
        result = LoginResponse.model_validate(envelope)
        user = result.to_user(email)
        self.credentials.login(user, result.token)
        logger.info(f"Logged in as {user.email} ({user.role})")
        return user

    async def logout(self) -> None:
        """Best-effort server logout; local credentials are always cleared."""
        try:
            await self.fetch_json("POST", "/auth/logout-mobile")
        except NetworkError as e:
            logger.warning(f"logout request failed: {e}")
        self.credentials.clear()

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_dashboard(self) -> AthleteDashboard:
        return await self._get_model(
            "/athletes/mobile/dashboard", AthleteDashboard, "Failed to load dashboard"
        )

    async def get_workout_list(self, athlete_id: Optional[int] = None) -> WorkoutList:
        path = "/workouts/my_list/mobile"
        if athlete_id is not None:
            path = f"{path}/{athlete_id}"
        return await self._get_model(path, WorkoutList, "Failed to load workouts.")

    async def get_workout(self, workout_id: int) -> WorkoutPayload:
        """Fetch the full workout aggregate (items, set logs, permissions)."""
        return await self._get_model(
            f"/workouts/mobile/{workout_id}", WorkoutPayload, "Failed to load workout"
        )

    # =========================================================================
    # Workout lifecycle
    # =========================================================================

    async def workout_action(
        self, workout_id: int, action: str, failure_message: str = "Failed to update workout status"
    ) -> Dict[str, Any]:
        """POST one of checkout/checkin/begin/complete/cancel."""
        return await self.call(
            "POST", f"/workouts/mobile/{workout_id}/{action}", failure_message=failure_message
        )

    # =========================================================================
    # Per-item mutations
    # =========================================================================

    async def item_action(
        self,
        workout_id: int,
        item_id: int,
        action: str,
        body: Any = None,
        failure_message: str = "Request failed",
    ) -> Dict[str, Any]:
        return await self.call(
            "POST",
            f"/workouts/mobile/{workout_id}/items/{item_id}/{action}",
            body=body,
            failure_message=failure_message,
        )

    async def log_straight(self, workout_id: int, item_id: int, entry: SetEntry) -> Dict[str, Any]:
        return await self.item_action(
            workout_id, item_id, LOG_STRAIGHT, entry.to_payload(), "Failed to log set"
        )

    async def log_top(self, workout_id: int, item_id: int, entry: SetEntry) -> Dict[str, Any]:
        return await self.item_action(
            workout_id, item_id, LOG_TOP, entry.to_payload(), "Failed to log top set"
        )

    async def log_bk(self, workout_id: int, item_id: int, entry: SetEntry) -> Dict[str, Any]:
        return await self.item_action(
            workout_id, item_id, LOG_BK, entry.to_payload(), "Failed to log backdown set"
        )

    async def log_acc(self, workout_id: int, item_id: int, entry: SetEntry) -> Dict[str, Any]:
        return await self.item_action(
            workout_id,
            item_id,
            LOG_ACC,
            entry.to_payload(include_reps=True),
            "Failed to log accessory set",
        )

    async def clear_top(self, workout_id: int, item_id: int) -> Dict[str, Any]:
        return await self.item_action(workout_id, item_id, CLEAR_TOP, None, "Failed to clear top set")

    async def delete_last_set(self, workout_id: int, item_id: int) -> Dict[str, Any]:
        return await self.item_action(
            workout_id, item_id, DELETE_LAST_SET, None, "Failed to undo last set"
        )

    async def swap_acc(self, workout_id: int, item_id: int, movement: str) -> Dict[str, Any]:
        return await self.item_action(
            workout_id, item_id, SWAP_ACC, {"movement": movement}, "Failed to swap accessory"
        )
