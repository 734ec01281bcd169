"""
Set-logging reconciliation.

Given one item of a fetched workout, works out which set (if any) may take new
input, whether the caller may submit it right now, and turns the raw strings a
user typed into a validated :class:`SetEntry` in kilograms.

Nothing here mutates the snapshot. After any accepted mutation the caller
refetches the whole workout, because the server recomputes derived fields
(next index, lookback bests) that cannot be inferred locally.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Mapping, Optional, Set

from ..config import WeightUnit
from ..errors import ValidationError
from ..models import Permissions, SetEntry, SetLog, Workout, WorkoutItem, WorkoutStatus
from ..units import to_canonical_kg
from ..utils import is_blank, to_float, to_int


class LogKind(str, Enum):
    """Which logging endpoint an item's input goes to."""
    STRAIGHT = "straight"
    TOP = "top"
    BK = "bk"
    ACC = "acc"


class RowState(str, Enum):
    LOGGED = "logged"
    NEXT = "next"
    LOCKED = "locked"


@dataclass(frozen=True)
class SetRow:
    """One prescribed set as it should be shown."""
    set_index: int
    state: RowState
    log: Optional[SetLog] = None


def log_kind(item: WorkoutItem, workout: Workout) -> LogKind:
    if workout.is_accessory(item.id):
        return LogKind.ACC
    if item.is_top:
        return LogKind.TOP
    if item.is_backdown:
        return LogKind.BK
    return LogKind.STRAIGHT


# =============================================================================
# Next set
# =============================================================================


def logged_indices(item: WorkoutItem) -> Set[int]:
    return {sl.set_index for sl in item.set_logs if sl.is_indexed}


def latest_logged_index(item: WorkoutItem) -> int:
    return max(logged_indices(item) | {0})


def next_loggable_index(item: WorkoutItem) -> Optional[int]:
    """
    One past the highest logged index, capped at the prescribed count.

    Returns None when every prescribed set is logged (or none are prescribed);
    the caller shows the item as complete instead of an input.
    """
    prescribed = item.prescribed_sets
    candidate = min(prescribed, latest_logged_index(item) + 1)
    if candidate < 1 or candidate in logged_indices(item):
        return None
    return candidate


def set_rows(item: WorkoutItem) -> List[SetRow]:
    """Every prescribed set: logged, the next one to log, or locked."""
    # Logs without a usable index never occupy a row
    by_index = {sl.set_index: sl for sl in item.set_logs if sl.is_indexed}
    next_idx = next_loggable_index(item)
    rows = []
    for idx in range(1, item.prescribed_sets + 1):
        if idx in by_index:
            rows.append(SetRow(idx, RowState.LOGGED, by_index[idx]))
        elif idx == next_idx:
            rows.append(SetRow(idx, RowState.NEXT))
        else:
            rows.append(SetRow(idx, RowState.LOCKED))
    return rows


# =============================================================================
# Submission gate
# =============================================================================


def parent_has_actual(item: WorkoutItem, workout: Workout) -> bool:
    """
    For a BK item linked to a TOP parent, whether the top set is recorded.

    Unlinked BK items have no parent to wait for. A link that doesn't resolve
    within the same workout never opens.
    """
    if not item.is_backdown or item.parent_item_id is None:
        return True
    parent = workout.parent_of(item)
    return parent is not None and parent.has_top_actual


def can_submit(
    item: WorkoutItem,
    workout_status: Optional[str],
    permissions: Permissions,
    workout: Workout,
) -> bool:
    """
    Write permission AND workout in progress AND (for BK) parent top logged.

    Evaluate on every render and before every submission; never cache it.
    """
    if not permissions.can_log:
        return False
    if workout_status != WorkoutStatus.IN_PROGRESS.value:
        return False
    return parent_has_actual(item, workout)


def submission_block_reason(
    item: WorkoutItem,
    workout: Workout,
    permissions: Permissions,
) -> Optional[str]:
    """Why a new set can't be logged for ``item`` right now, or None if it can."""
    if not permissions.can_log:
        return "You do not have permission to log this workout."
    if workout.status != WorkoutStatus.IN_PROGRESS.value:
        return "Begin workout to log sets"
    if not parent_has_actual(item, workout):
        return "Locked until top set is logged"
    if log_kind(item, workout) is LogKind.TOP:
        if item.has_top_actual:
            return "Top set already logged"
        return None
    if next_loggable_index(item) is None:
        return "All sets logged"
    return None


def can_undo(item: WorkoutItem) -> bool:
    return bool(item.set_logs)


def last_set_log(item: WorkoutItem) -> Optional[SetLog]:
    """The set log ``undo`` removes: always the highest index."""
    if not item.set_logs:
        return None
    return max(item.set_logs, key=lambda sl: sl.set_index)


# =============================================================================
# Input validation
# =============================================================================


def _weight(raw: Optional[str], unit: WeightUnit, invalid_message: str) -> float:
    """Parse typed weight; blank counts as 0, i.e. missing."""
    value = 0.0 if is_blank(raw) else to_float(raw)
    if value is None:
        raise ValidationError(invalid_message, field="weight")
    if value <= 0:
        raise ValidationError("Weight required", field="weight")
    return to_canonical_kg(value, unit)


def _optional_number(raw: Optional[str], field: str, message: str) -> Optional[float]:
    if is_blank(raw):
        return None
    value = to_float(raw)
    if value is None:
        raise ValidationError(message, field=field)
    return value


def validate_input(fields: Mapping[str, str], unit: WeightUnit, kind: LogKind) -> SetEntry:
    """
    Validate raw form strings and normalize them to a kilogram ``SetEntry``.

    Weight must be a positive number for every kind. Top sets also need an RPE,
    accessory sets need a positive whole number of reps (RIR optional).

    Raises:
        ValidationError: with the offending field; nothing is ever partially sent
    """
    weight_raw = fields.get("weight")

    if kind is LogKind.ACC:
        invalid = f"Enter a valid accessory weight ({unit}) and reps"
        weight_kg = _weight(weight_raw, unit, invalid)
        reps = to_int(fields.get("reps"))
        if reps is None or reps <= 0:
            raise ValidationError(invalid, field="reps")
        rir = _optional_number(fields.get("rir"), "rir", "Enter a valid RIR")
        return SetEntry(actual_weight_kg=weight_kg, actual_reps=reps, actual_rir=rir)

    if kind is LogKind.TOP:
        invalid = f"Enter a valid top set: weight ({unit}) and RPE"
        weight_kg = _weight(weight_raw, unit, invalid)
        rpe = _optional_number(fields.get("rpe"), "rpe", invalid)
        if rpe is None:
            raise ValidationError(invalid, field="rpe")
        return SetEntry(actual_weight_kg=weight_kg, actual_rpe=rpe)

    if kind is LogKind.BK:
        invalid = f"Enter a valid backdown set weight ({unit})"
    else:
        invalid = "Enter a valid weight"
    weight_kg = _weight(weight_raw, unit, invalid)
    rpe = _optional_number(fields.get("rpe"), "rpe", "Enter a valid RPE")
    return SetEntry(actual_weight_kg=weight_kg, actual_rpe=rpe)
