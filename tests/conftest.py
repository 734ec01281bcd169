"""
Test fixtures for strength-coach-client.

Provides sample workout payloads and an in-process fake of the coach API
(a small FastAPI app served through httpx's ASGI transport) so controller
tests exercise the real HTTP client without touching the network.
"""

import copy
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

# Make src/ importable so tests can do `import strength_coach_client...`
for p in {ROOT, SRC}:
    p_str = str(p)
    if p_str not in sys.path:
        sys.path.insert(0, p_str)

from strength_coach_client.api.client import CoachApiClient
from strength_coach_client.auth import CredentialStore
from strength_coach_client.models import AuthUser, WorkoutPayload


TEST_TOKEN = "test-token"
TEST_BASE_URL = "http://testserver"
WORKOUT_ID = 42


# ---------------------------------------------------------------------------
# Sample Data Fixtures
# ---------------------------------------------------------------------------


def build_workout_dict(status: str = "assigned") -> Dict[str, Any]:
    """Squat straight sets, a bench top set with linked backdowns, accessories."""
    return {
        "id": WORKOUT_ID,
        "athlete_id": 7,
        "date": "2024-05-06",
        "label": "Week 3 Day 1",
        "status": status,
        "training_block_id": 3,
        "core_items": [
            {
                "id": 1,
                "lift": "SQ",
                "variant": "STRAIGHT",
                "sets": 3,
                "reps": 5,
                "mode": "RPE",
                "rpe_target": 7.0,
                "target_low_kg": 140.0,
                "target_high_kg": 150.0,
                "set_logs": [],
                "lookback_best": {
                    "date": "2024-04-29T00:00:00",
                    "actual_weight_kg": 142.5,
                    "actual_reps": 5,
                    "actual_rpe": 7.5,
                },
            },
            {
                "id": 2,
                "lift": "BN",
                "variant": "TOP",
                "sets": 1,
                "reps": 3,
                "mode": "RPE",
                "rpe_target": 8.0,
                "actual_weight_kg": None,
                "actual_rpe": None,
                "set_logs": [],
            },
            {
                "id": 3,
                "lift": "BN",
                "variant": "BK",
                "sets": 3,
                "reps": 5,
                "mode": "PCT",
                "pct": 0.85,
                "parent_item_id": 2,
                "set_logs": [],
            },
        ],
        "accessory_groups": [
            {
                "group": None,
                "items": [
                    {
                        "id": 10,
                        "lift": "ACC",
                        "variant": "ACC",
                        "movement": "DB Row",
                        "sets": 3,
                        "reps": 10,
                        "rir_target": 2.0,
                        "set_logs": [],
                    }
                ],
            },
            {
                "group": "A",
                "items": [
                    {"id": 11, "lift": "ACC", "variant": "ACC", "movement": "Curl", "sets": 2, "reps": 12, "superset_group": "A", "superset_pos": 1},
                    {"id": 12, "lift": "ACC", "variant": "ACC", "movement": "Pushdown", "sets": 2, "reps": 12, "superset_group": "A", "superset_pos": 2},
                ],
            },
        ],
    }


def build_payload_dict(status: str = "assigned", can_log: bool = True) -> Dict[str, Any]:
    return {
        "ok": True,
        "permissions": {"can_log": can_log, "can_coach": False, "is_self_coached": False},
        "workout": build_workout_dict(status),
        "athlete": {"id": 7, "name": "Sam Lifter", "user_id": 70, "coach_id": 5},
    }


def make_payload(status: str = "assigned", can_log: bool = True, **item_overrides: Dict[str, Any]) -> WorkoutPayload:
    """
    Build a validated payload. Keyword arguments ``item_<id>`` patch that item,
    e.g. ``make_payload(item_2={"actual_weight_kg": 100, "actual_rpe": 8})``.
    """
    data = build_payload_dict(status, can_log)
    for key, patch_fields in item_overrides.items():
        item_id = int(key.split("_", 1)[1])
        for item in _iter_items(data["workout"]):
            if item["id"] == item_id:
                item.update(patch_fields)
    return WorkoutPayload.model_validate(data)


def _iter_items(workout: Dict[str, Any]):
    yield from workout["core_items"]
    for group in workout["accessory_groups"]:
        yield from group["items"]


@pytest.fixture
def payload_dict() -> Dict[str, Any]:
    return build_payload_dict()


@pytest.fixture
def assigned_payload() -> WorkoutPayload:
    return make_payload("assigned")


@pytest.fixture
def in_progress_payload() -> WorkoutPayload:
    return make_payload("in_progress")


# ---------------------------------------------------------------------------
# Fake Coach API
# ---------------------------------------------------------------------------


class FakeCoachServer:
    """
    In-memory coach API.

    Keeps one workout per id, a lock holder per workout and the requests it
    received. ``fail(path, status, body)`` forces the next requests to ``path``
    to answer with the given response instead.
    """

    ME = "this-device"

    def __init__(self):
        self.workouts: Dict[int, Dict[str, Any]] = {WORKOUT_ID: build_workout_dict()}
        self.permissions: Dict[str, Any] = {"can_log": True, "can_coach": False, "is_self_coached": False}
        self.locks: Dict[int, str] = {}
        self.requests: List[Tuple[str, str, Any]] = []
        self.overrides: Dict[str, Tuple[int, Any]] = {}
        self.app = self._build_app()

    # -- helpers ------------------------------------------------------------

    def fail(self, path: str, status: int, body: Any) -> None:
        self.overrides[path] = (status, body)

    def paths(self) -> List[str]:
        return [path for _, path, _ in self.requests]

    def set_status(self, status: str, workout_id: int = WORKOUT_ID) -> None:
        self.workouts[workout_id]["status"] = status

    def item(self, item_id: int, workout_id: int = WORKOUT_ID) -> Dict[str, Any]:
        for item in _iter_items(self.workouts[workout_id]):
            if item["id"] == item_id:
                return item
        raise KeyError(item_id)

    def transport(self) -> httpx.ASGITransport:
        return httpx.ASGITransport(app=self.app)

    @staticmethod
    def _error(status: int, message: str) -> JSONResponse:
        return JSONResponse({"ok": False, "error": message}, status_code=status)

    async def _guard(self, request: Request) -> Optional[JSONResponse]:
        raw = await request.body()
        body = None
        if raw:
            body = await request.json()
        self.requests.append((request.method, request.url.path, body))

        if request.url.path in self.overrides:
            status, payload = self.overrides[request.url.path]
            return JSONResponse(payload, status_code=status)
        if request.url.path.startswith("/auth/"):
            return None
        if request.headers.get("authorization") != f"Bearer {TEST_TOKEN}":
            return self._error(401, "auth required")
        return None

    # -- app ----------------------------------------------------------------

    def _build_app(self) -> FastAPI:
        app = FastAPI()
        server = self

        @app.post("/auth/login-mobile")
        async def login(request: Request):
            blocked = await server._guard(request)
            if blocked:
                return blocked
            body = await request.json()
            if body.get("password") != "secret":
                return server._error(401, "Invalid credentials")
            return {
                "ok": True,
                "email": body["email"],
                "user_name": "Sam Lifter",
                "is_coach": False,
                "has_linked_athlete": True,
                "athlete_id": 7,
                "token": TEST_TOKEN,
            }

        @app.post("/auth/logout-mobile")
        async def logout(request: Request):
            blocked = await server._guard(request)
            if blocked:
                return blocked
            return {"ok": True}

        @app.get("/athletes/mobile/dashboard")
        async def dashboard(request: Request):
            blocked = await server._guard(request)
            if blocked:
                return blocked
            return {
                "ok": True,
                "athlete": {"id": 7, "name": "Sam Lifter"},
                "next_workout": {"id": WORKOUT_ID, "date": "2024-05-06", "label": "Week 3 Day 1", "status": "assigned"},
                "recent_workouts": [
                    {"id": 40, "date": "2024-04-29", "label": "Week 2 Day 1", "status": "completed"},
                    {"id": 41, "date": "2024-05-01", "label": "Week 2 Day 2", "status": "completed"},
                ],
            }

        @app.get("/workouts/mobile/{workout_id}")
        async def get_workout(workout_id: int, request: Request):
            blocked = await server._guard(request)
            if blocked:
                return blocked
            if workout_id not in server.workouts:
                return server._error(404, "Workout not found")
            return {
                "ok": True,
                "permissions": server.permissions,
                "workout": copy.deepcopy(server.workouts[workout_id]),
                "athlete": {"id": 7, "name": "Sam Lifter"},
            }

        @app.post("/workouts/mobile/{workout_id}/{action}")
        async def workout_action(workout_id: int, action: str, request: Request):
            blocked = await server._guard(request)
            if blocked:
                return blocked
            return server._workout_action(workout_id, action)

        @app.post("/workouts/mobile/{workout_id}/items/{item_id}/{action}")
        async def item_action(workout_id: int, item_id: int, action: str, request: Request):
            blocked = await server._guard(request)
            if blocked:
                return blocked
            body = await request.json() if await request.body() else {}
            return server._item_action(workout_id, item_id, action, body or {})

        return app

    def _workout_action(self, workout_id: int, action: str):
        workout = self.workouts[workout_id]
        holder = self.locks.get(workout_id)
        status = workout["status"]

        if action == "checkout":
            if holder not in (None, self.ME):
                return self._error(409, "Workout is checked out on another device")
            self.locks[workout_id] = self.ME
            return {"ok": True}
        if action == "checkin":
            if holder == self.ME:
                del self.locks[workout_id]
            return {"ok": True}

        if holder not in (None, self.ME):
            return self._error(409, "Workout is checked out on another device")
        allowed = {
            "begin": ({"assigned", "cancelled", "completed"}, "in_progress"),
            "complete": ({"in_progress"}, "completed"),
            "cancel": ({"in_progress"}, "cancelled"),
        }
        if action not in allowed:
            return self._error(404, "Unknown action")
        sources, target = allowed[action]
        if status not in sources:
            return {"ok": False, "error": f"Workout is {status}"}
        workout["status"] = target
        return {"ok": True, "status": target}

    def _item_action(self, workout_id: int, item_id: int, action: str, body: Dict[str, Any]):
        if self.workouts[workout_id]["status"] != "in_progress":
            return self._error(400, "Workout is not in progress")
        item = self.item(item_id, workout_id)
        logs = item.setdefault("set_logs", [])

        if action in ("log_straight", "log_bk", "log_acc"):
            next_index = max([sl["set_index"] for sl in logs] + [0]) + 1
            if next_index > (item.get("sets") or 0):
                return {"ok": False, "error": "All sets logged"}
            log = {"id": 1000 + len(self.requests), "set_index": next_index}
            log.update({k: v for k, v in body.items() if k.startswith("actual_")})
            logs.append(log)
            return {"ok": True, "set_log": log}
        if action == "log_top":
            item["actual_weight_kg"] = body["actual_weight_kg"]
            item["actual_rpe"] = body["actual_rpe"]
            return {"ok": True}
        if action == "clear_top":
            item["actual_weight_kg"] = None
            item["actual_rpe"] = None
            return {"ok": True}
        if action == "delete_last_set":
            if not logs:
                return {"ok": False, "error": "No sets to delete"}
            logs.remove(max(logs, key=lambda sl: sl["set_index"]))
            return {"ok": True}
        if action == "swap_acc":
            item["movement"] = body["movement"]
            return {"ok": True}
        return self._error(404, "Unknown action")


@pytest.fixture
def fake_server() -> FakeCoachServer:
    return FakeCoachServer()


@pytest.fixture
def credentials(tmp_path) -> CredentialStore:
    """Logged-in credential store backed by a temp directory."""
    store = CredentialStore(directory=tmp_path / "creds")
    store.token = TEST_TOKEN
    store.user = AuthUser(email="sam@example.com", user_name="Sam Lifter", has_linked_athlete=True, athlete_id=7)
    return store


@pytest.fixture
def api_client(fake_server, credentials) -> CoachApiClient:
    """CoachApiClient wired to the fake server."""
    return CoachApiClient(
        credentials=credentials,
        base_url=TEST_BASE_URL,
        transport=fake_server.transport(),
    )


# ---------------------------------------------------------------------------
# Environment Variables
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def isolate_credentials_dir(monkeypatch, tmp_path):
    """Keep any default CredentialStore away from the real home directory."""
    from strength_coach_client.config import settings

    monkeypatch.setattr(settings, "CREDENTIALS_DIR", tmp_path / "default-creds")
