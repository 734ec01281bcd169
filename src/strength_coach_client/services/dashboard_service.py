"""Display-only aggregates for the athlete dashboard and workout list."""
import logging
from datetime import date
from typing import List, Optional

from ..models import AthleteDashboard, WorkoutList, WorkoutSummary

logger = logging.getLogger(__name__)

COMPLETED_ALIASES = ("logged", "completed", "done")


def status_label(status: Optional[str]) -> str:
    """Human label for a workout status; missing status reads as Assigned."""
    value = (status or "assigned").lower()
    if value == "assigned":
        return "Assigned"
    if value == "in_progress":
        return "In progress"
    if value in COMPLETED_ALIASES:
        return "Completed"
    return value.replace("_", " ", 1).title()


def _date_key(w: WorkoutSummary) -> date:
    try:
        return date.fromisoformat((w.date or "")[:10])
    except ValueError:
        return date.min


def most_recent_completed(recent: List[WorkoutSummary]) -> Optional[WorkoutSummary]:
    """
    Latest-dated recent workout whose status is ``completed``.

    Falls back to the first recent workout when none is completed, and to None
    when there are no recent workouts at all.
    """
    completed = [w for w in recent if (w.status or "").lower() == "completed"]
    if completed:
        return max(completed, key=_date_key)
    return recent[0] if recent else None


def first_name(dashboard: AthleteDashboard) -> str:
    name = dashboard.athlete.name if dashboard.athlete else ""
    return name.split(" ")[0] if name else "Athlete"


def block_sections(workouts: WorkoutList) -> List[dict]:
    """Group the list payload per training block, then the unassigned workouts."""
    sections = []
    for block in workouts.blocks:
        key = str(block.id)
        sections.append({
            "title": block.name,
            "pending": workouts.pending_map.get(key, []),
            "completed": workouts.completed_map.get(key, []),
        })
    if workouts.unassigned_pending or workouts.unassigned_completed:
        sections.append({
            "title": "Unassigned",
            "pending": workouts.unassigned_pending,
            "completed": workouts.unassigned_completed,
        })
    return sections
