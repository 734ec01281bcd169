"""Data models for the coach API payloads.

Every model mirrors the JSON the server sends. Snapshots are frozen: the client
never patches a fetched workout in place, it refetches and replaces it.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


def _none_as_empty(value: Any) -> Any:
    """Servers send null for empty collections; treat it as empty."""
    return [] if value is None else value


class ItemVariant(str, Enum):
    """How an item's sets are prescribed."""
    STRAIGHT = "STRAIGHT"  # Uniform working sets
    TOP = "TOP"            # One heavy top set, backdowns hang off it
    BK = "BK"              # Backdown sets, optionally linked to a TOP parent
    VR = "VR"              # Variable / freeform movement
    ACC = "ACC"            # Accessory movement


class IntensityMode(str, Enum):
    RPE = "RPE"
    PCT = "PCT"


class WorkoutStatus(str, Enum):
    """Server-authoritative workout lifecycle status."""
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SetLog(BaseModel):
    """One completed set under an item. Weights are kilograms."""
    id: Optional[int] = None
    set_index: int = Field(0, description="1-based, unique within the item; 0 when the server sent none")
    actual_weight_kg: Optional[float] = None
    actual_reps: Optional[int] = None
    actual_rpe: Optional[float] = None
    actual_rir: Optional[float] = None

    class Config:
        extra = "ignore"
        frozen = True

    @field_validator("set_index", mode="before")
    @classmethod
    def missing_index_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @property
    def is_indexed(self) -> bool:
        return self.set_index >= 1


class LookbackBest(BaseModel):
    """Best previous performance for an item.

    Older endpoints send ``weight_kg``/``reps``/``rpe``/``rir`` instead of the
    ``actual_*`` names; both are accepted.
    """
    workout_id: Optional[int] = None
    date: Optional[str] = None
    label: Optional[str] = None
    actual_weight_kg: Optional[float] = None
    actual_reps: Optional[int] = None
    actual_rpe: Optional[float] = None
    actual_rir: Optional[float] = None
    weight_kg: Optional[float] = None
    reps: Optional[int] = None
    rpe: Optional[float] = None
    rir: Optional[float] = None

    class Config:
        extra = "ignore"
        frozen = True

    @property
    def best_weight_kg(self) -> Optional[float]:
        return self.actual_weight_kg if self.actual_weight_kg is not None else self.weight_kg

    @property
    def best_reps(self) -> Optional[int]:
        return self.actual_reps if self.actual_reps is not None else self.reps

    @property
    def best_rpe(self) -> Optional[float]:
        return self.actual_rpe if self.actual_rpe is not None else self.rpe

    @property
    def best_rir(self) -> Optional[float]:
        return self.actual_rir if self.actual_rir is not None else self.rir


class WorkoutItem(BaseModel):
    """One exercise prescription within a workout."""
    id: int
    lift: str = ""
    variant: str = ItemVariant.STRAIGHT.value
    movement: Optional[str] = None
    sets: Optional[int] = None
    reps: Optional[int] = None
    reps_text: Optional[str] = None
    mode: Optional[str] = None
    rpe_target: Optional[float] = None
    pct: Optional[float] = None
    rir_target: Optional[float] = None
    target_low_kg: Optional[float] = None
    target_high_kg: Optional[float] = None
    baseline_low_kg: Optional[float] = None
    baseline_high_kg: Optional[float] = None
    # Recorded top-set actual (TOP items); a summary for other variants
    actual_weight_kg: Optional[float] = None
    actual_rpe: Optional[float] = None
    notes: Optional[str] = None
    superset_group: Optional[str] = None
    superset_pos: Optional[int] = None
    set_logs: List[SetLog] = Field(default_factory=list)
    lookback_best: Optional[LookbackBest] = None
    # Backwards-compat aliases some endpoints use for lookback_best
    last_best: Optional[LookbackBest] = None
    prev_best: Optional[LookbackBest] = None
    parent_item_id: Optional[int] = None

    class Config:
        extra = "ignore"
        frozen = True

    @field_validator("set_logs", mode="before")
    @classmethod
    def empty_set_logs(cls, value: Any) -> Any:
        return _none_as_empty(value)

    @property
    def prescribed_sets(self) -> int:
        return self.sets or 0

    @property
    def is_top(self) -> bool:
        return self.variant == ItemVariant.TOP.value

    @property
    def is_backdown(self) -> bool:
        return self.variant == ItemVariant.BK.value

    @property
    def is_straight_like(self) -> bool:
        return self.variant in (ItemVariant.STRAIGHT.value, ItemVariant.VR.value) or self.lift == "VR"

    @property
    def has_top_actual(self) -> bool:
        """A top set counts as logged only when both weight and RPE are recorded."""
        return self.actual_weight_kg is not None and self.actual_rpe is not None

    @property
    def best(self) -> Optional[LookbackBest]:
        return self.lookback_best or self.last_best or self.prev_best


class AccessoryGroup(BaseModel):
    """Accessory items; a non-empty ``group`` marks a superset."""
    group: Optional[str] = None
    items: List[WorkoutItem] = Field(default_factory=list)

    class Config:
        extra = "ignore"
        frozen = True

    @field_validator("items", mode="before")
    @classmethod
    def empty_items(cls, value: Any) -> Any:
        return _none_as_empty(value)

    @property
    def is_superset(self) -> bool:
        return bool(self.group)


class Permissions(BaseModel):
    can_log: bool = False
    can_coach: bool = False
    is_self_coached: bool = False

    class Config:
        extra = "ignore"
        frozen = True


class Workout(BaseModel):
    """One training session for one athlete."""
    id: int
    athlete_id: Optional[int] = None
    date: Optional[str] = None
    label: Optional[str] = None
    status: Optional[str] = None
    training_block_id: Optional[int] = None
    core_items: List[WorkoutItem] = Field(default_factory=list)
    accessory_groups: List[AccessoryGroup] = Field(default_factory=list)

    class Config:
        extra = "ignore"
        frozen = True

    @field_validator("core_items", "accessory_groups", mode="before")
    @classmethod
    def empty_collections(cls, value: Any) -> Any:
        return _none_as_empty(value)

    def all_items(self) -> List[WorkoutItem]:
        """Core items followed by accessory items, in display order."""
        items = list(self.core_items)
        for group in self.accessory_groups:
            items.extend(group.items)
        return items

    def item_index(self) -> Dict[int, WorkoutItem]:
        return {item.id: item for item in self.all_items()}

    def find_item(self, item_id: int) -> Optional[WorkoutItem]:
        return self.item_index().get(item_id)

    def is_accessory(self, item_id: int) -> bool:
        return any(it.id == item_id for grp in self.accessory_groups for it in grp.items)

    def backdowns_for(self, top_item_id: int) -> List[WorkoutItem]:
        """BK items whose ``parent_item_id`` points at ``top_item_id``."""
        return [
            it for it in self.core_items
            if it.is_backdown and it.parent_item_id == top_item_id
        ]

    def parent_of(self, item: WorkoutItem) -> Optional[WorkoutItem]:
        if item.parent_item_id is None:
            return None
        return self.find_item(item.parent_item_id)


class Athlete(BaseModel):
    id: int
    name: str = ""
    user_id: Optional[int] = None
    coach_id: Optional[int] = None

    class Config:
        extra = "ignore"
        frozen = True


class WorkoutPayload(BaseModel):
    """Response of ``GET /workouts/mobile/{id}``."""
    ok: bool = True
    permissions: Permissions = Field(default_factory=Permissions)
    workout: Workout
    athlete: Optional[Athlete] = None

    class Config:
        extra = "ignore"
        frozen = True


class SetEntry(BaseModel):
    """Validated, normalized set input ready to send. Weight is kilograms."""
    actual_weight_kg: float = Field(..., gt=0)
    actual_reps: Optional[int] = Field(default=None, gt=0)
    actual_rpe: Optional[float] = None
    actual_rir: Optional[float] = None

    class Config:
        frozen = True

    def to_payload(self, include_reps: bool = False) -> Dict[str, Any]:
        """Build the JSON body; accessory bodies carry reps and RIR."""
        body: Dict[str, Any] = {"actual_weight_kg": self.actual_weight_kg}
        if include_reps:
            body["actual_reps"] = self.actual_reps
            body["actual_rir"] = self.actual_rir
        else:
            body["actual_rpe"] = self.actual_rpe
        return body


class AuthUser(BaseModel):
    """Authenticated user profile cached alongside the token."""
    email: str
    user_name: Optional[str] = None
    role: str = "athlete"
    is_coach: bool = False
    has_linked_athlete: bool = False
    athlete_id: Optional[int] = None

    class Config:
        extra = "ignore"
        frozen = True


class LoginResponse(BaseModel):
    ok: bool = False
    error: Optional[str] = None
    email: Optional[str] = None
    user_name: Optional[str] = None
    role: Optional[str] = None
    is_coach: Optional[bool] = None
    has_linked_athlete: Optional[bool] = None
    athlete_id: Optional[int] = None
    token: Optional[str] = None

    class Config:
        extra = "ignore"

    def to_user(self, fallback_email: str) -> AuthUser:
        """Build the cached profile, inferring role from the coach flag when absent."""
        is_coach = bool(self.is_coach or self.role == "coach")
        role = self.role if self.role in ("coach", "athlete") else ("coach" if self.is_coach else "athlete")
        return AuthUser(
            email=self.email or fallback_email,
            user_name=self.user_name,
            role=role,
            is_coach=is_coach,
            has_linked_athlete=bool(self.has_linked_athlete),
            athlete_id=self.athlete_id,
        )


class WorkoutSummary(BaseModel):
    """Workout row as it appears in dashboard and list payloads."""
    id: int
    date: Optional[str] = None
    label: Optional[str] = None
    status: Optional[str] = None

    class Config:
        extra = "ignore"
        frozen = True


class AthleteDashboard(BaseModel):
    """Response of ``GET /athletes/mobile/dashboard``."""
    athlete: Optional[Athlete] = None
    coach: Optional[Dict[str, Any]] = None
    next_workout: Optional[WorkoutSummary] = None
    recent_workouts: List[WorkoutSummary] = Field(default_factory=list)

    class Config:
        extra = "ignore"
        frozen = True

    @field_validator("recent_workouts", mode="before")
    @classmethod
    def empty_recent(cls, value: Any) -> Any:
        return _none_as_empty(value)


class TrainingBlock(BaseModel):
    id: int
    name: str = ""

    class Config:
        extra = "ignore"
        frozen = True


class WorkoutList(BaseModel):
    """Response of ``GET /workouts/my_list/mobile``."""
    athlete: Optional[Athlete] = None
    blocks: List[TrainingBlock] = Field(default_factory=list)
    pending_map: Dict[str, List[WorkoutSummary]] = Field(default_factory=dict)
    completed_map: Dict[str, List[WorkoutSummary]] = Field(default_factory=dict)
    unassigned_pending: List[WorkoutSummary] = Field(default_factory=list)
    unassigned_completed: List[WorkoutSummary] = Field(default_factory=list)

    class Config:
        extra = "ignore"
        frozen = True

    @property
    def has_any_workouts(self) -> bool:
        return bool(self.blocks) or bool(self.unassigned_pending) or bool(self.unassigned_completed)
