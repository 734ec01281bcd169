"""Text rendering of a workout snapshot for the terminal."""
from typing import List, Optional

from .config import WeightUnit
from .models import LookbackBest, SetLog, Workout, WorkoutItem, WorkoutPayload
from .services.dashboard_service import status_label
from .services.set_reconciler import RowState, parent_has_actual, set_rows
from .units import to_display

LIFT_NAMES = {
    "SQ": "Comp Squat",
    "BN": "Comp Bench",
    "DL": "Comp Deadlift",
}


def lift_display_name(item: WorkoutItem) -> str:
    if (item.variant == "VR" or item.lift == "VR") and item.movement:
        return item.movement
    if item.lift in LIFT_NAMES:
        return LIFT_NAMES[item.lift]
    return item.movement or item.lift


def scheme_line(item: WorkoutItem) -> str:
    """``sets × reps`` plus the intensity target."""
    reps = item.reps or item.reps_text or "—"
    line = f"{item.sets or 0} × {reps}"
    if item.mode == "RPE" and item.rpe_target is not None:
        line += f" @ RPE {item.rpe_target:.1f}"
    elif item.mode == "PCT" and item.pct is not None:
        line += f" @ {item.pct * 100:.1f}% TM"
    if item.rir_target is not None:
        line += f" • RIR {item.rir_target:.1f}"
    return line


def target_range(item: WorkoutItem, unit: WeightUnit) -> Optional[str]:
    low, high = item.target_low_kg, item.target_high_kg
    if low is None or high is None or (low == 0 and high == 0):
        return None
    return f"{to_display(low, unit)}–{to_display(high, unit)} {unit}"


def lookback_line(best: Optional[LookbackBest], unit: WeightUnit) -> Optional[str]:
    if best is None:
        return None
    weight, reps = best.best_weight_kg, best.best_reps
    if weight is None or reps is None:
        return None
    line = f"Last best: {to_display(weight, unit)} {unit} × {reps}"
    if best.best_rpe is not None:
        line += f" @ RPE {best.best_rpe:.1f}"
    if best.best_rir is not None:
        line += f" (RIR {best.best_rir:g})"
    if best.date:
        line += f" · {best.date[:10]}"
    return line


def _set_text(row_log: SetLog, unit: WeightUnit, accessory: bool) -> str:
    text = f"{to_display(row_log.actual_weight_kg, unit)} {unit}"
    if accessory:
        reps = row_log.actual_reps if row_log.actual_reps is not None else "?"
        text += f" × {reps}"
        if row_log.actual_rir is not None:
            text += f" (RIR {row_log.actual_rir:g})"
    elif row_log.actual_rpe is not None:
        text += f" @ RPE {row_log.actual_rpe:.1f}"
    return text


def _item_lines(item: WorkoutItem, workout: Workout, unit: WeightUnit, can_log: bool, accessory: bool) -> List[str]:
    title = (item.movement or "Accessory") if accessory else lift_display_name(item)
    lines = [f"[{item.id}] {title}  {scheme_line(item)}"]
    rng = target_range(item, unit)
    if rng:
        lines.append(f"    Target {rng}")
    best = lookback_line(item.best, unit)
    if best:
        lines.append(f"    {best}")
    if item.notes and item.notes.strip():
        lines.append(f"    Note: {item.notes.strip()}")

    if item.is_top:
        if item.has_top_actual:
            lines.append(f"    Top: {to_display(item.actual_weight_kg, unit)} {unit} @ RPE {item.actual_rpe:.1f}")
        else:
            lines.append("    Top: " + ("ready to log" if can_log else "Begin workout to log top set"))
        return lines

    if item.is_backdown and not parent_has_actual(item, workout):
        lines.append(f"    Backdowns {len(item.set_logs)}/{item.prescribed_sets}: Locked until top set is logged")

    for row in set_rows(item):
        if row.state is RowState.LOGGED:
            status = _set_text(row.log, unit, accessory)
        elif row.state is RowState.NEXT:
            status = "next" if can_log else "Begin workout to log sets"
        else:
            status = "Locked until previous set is logged"
        lines.append(f"    Set {row.set_index}: {status}")
    return lines


def render_workout(payload: WorkoutPayload, unit: WeightUnit) -> str:
    """Multi-line summary of the workout, items and their sets."""
    workout = payload.workout
    can_log = payload.permissions.can_log and workout.status == "in_progress"
    athlete = payload.athlete.name if payload.athlete else ""
    lines = [
        workout.label or "Training Session",
        f"{athlete} · {workout.date or 'No date set'} · {status_label(workout.status)}",
        "",
    ]

    for item in workout.core_items:
        # Linked backdowns are rendered under their TOP item
        if item.is_backdown and item.parent_item_id is not None and workout.parent_of(item) is not None:
            continue
        lines.extend(_item_lines(item, workout, unit, can_log, accessory=False))
        if item.is_top:
            for bd in workout.backdowns_for(item.id):
                lines.extend("  " + ln for ln in _item_lines(bd, workout, unit, can_log, accessory=False))

    for group in workout.accessory_groups:
        if group.is_superset:
            lines.append(f"Superset {group.group}")
        for item in group.items:
            prefix = "  " if group.is_superset else ""
            lines.extend(prefix + ln for ln in _item_lines(item, workout, unit, can_log, accessory=True))

    return "\n".join(lines)
