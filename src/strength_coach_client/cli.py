"""
Command-line front end.

Usage:
    coach-session login you@example.com --password ...
    coach-session show 42 --unit lb
    coach-session begin 42
    coach-session log 42 7 --weight 225 --rpe 8 --unit lb
    coach-session undo 42 7
    coach-session complete 42
    coach-session rest 90
"""
import argparse
import asyncio
import getpass
import logging
import sys
from typing import Awaitable, Callable, List, Optional

from .api.client import CoachApiClient
from .auth import CredentialStore
from .config import settings
from .errors import CoachClientError
from .presentation import render_workout
from .services.dashboard_service import (
    block_sections,
    first_name,
    most_recent_completed,
    status_label,
)
from .services.rest_timer import RestTimer, RestTimerState, format_rest_time
from .services.workout_session import WorkoutSession

logger = logging.getLogger(__name__)


def _print_err(message: str) -> None:
    print(message, file=sys.stderr)


def _landing(user) -> str:
    if not user.is_coach and user.has_linked_athlete and user.athlete_id:
        return f"athlete dashboard (athlete {user.athlete_id})"
    if user.is_coach:
        return "coach dashboard"
    return "home"


async def _with_client(args: argparse.Namespace, fn: Callable[[CoachApiClient], Awaitable[int]]) -> int:
    store = CredentialStore()
    store.restore()
    async with CoachApiClient(credentials=store, base_url=args.api_base) as client:
        try:
            return await fn(client)
        except CoachClientError as e:
            _print_err(e.message)
            return 1


async def _run_session(
    args: argparse.Namespace,
    action: Callable[[WorkoutSession], Awaitable[bool]],
) -> int:
    async def _go(client: CoachApiClient) -> int:
        session = WorkoutSession(client, args.workout_id, unit=args.unit)
        ok = await session.refresh()
        if ok:
            ok = await action(session)
        if session.needs_login:
            _print_err("Session expired. Please log in again.")
            return 1
        if session.error:
            _print_err(f"{session.error.title}: {session.error.text}")
        if session.snapshot:
            print(render_workout(session.snapshot, session.unit))
        return 0 if ok else 1

    return await _with_client(args, _go)


# =============================================================================
# Commands
# =============================================================================


async def cmd_login(args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")

    async def _go(client: CoachApiClient) -> int:
        user = await client.login(args.email, password)
        print(f"Logged in as {user.user_name or user.email}; landing on {_landing(user)}")
        return 0

    return await _with_client(args, _go)


async def cmd_logout(args: argparse.Namespace) -> int:
    async def _go(client: CoachApiClient) -> int:
        await client.logout()
        print("Logged out")
        return 0

    return await _with_client(args, _go)


async def cmd_dashboard(args: argparse.Namespace) -> int:
    async def _go(client: CoachApiClient) -> int:
        dash = await client.get_dashboard()
        print(f"Hi {first_name(dash)}")
        if dash.next_workout:
            nw = dash.next_workout
            print(f"Next: [{nw.id}] {nw.label or 'Workout'} {nw.date or ''} ({nw.status or 'assigned'})")
        recent = most_recent_completed(dash.recent_workouts)
        if recent:
            print(f"Last: [{recent.id}] {recent.label or 'Workout'} {recent.date or ''} ({status_label(recent.status)})")
        return 0

    return await _with_client(args, _go)


async def cmd_workouts(args: argparse.Namespace) -> int:
    async def _go(client: CoachApiClient) -> int:
        listing = await client.get_workout_list(args.athlete_id)
        if not listing.has_any_workouts:
            print("No workouts yet.")
            return 0
        for section in block_sections(listing):
            print(section["title"])
            for w in section["pending"] + section["completed"]:
                print(f"  [{w.id}] {w.date or ''} {w.label or 'Workout'} - {status_label(w.status)}")
        return 0

    return await _with_client(args, _go)


async def cmd_show(args: argparse.Namespace) -> int:
    async def _noop(session: WorkoutSession) -> bool:
        return True

    return await _run_session(args, _noop)


async def cmd_lifecycle(args: argparse.Namespace) -> int:
    async def _act(session: WorkoutSession) -> bool:
        if args.command == "begin":
            return await session.begin()
        if args.command == "complete":
            return await session.complete()
        if args.command == "cancel":
            return await session.cancel(confirmed=args.yes)
        return await session.resume()

    return await _run_session(args, _act)


async def cmd_log(args: argparse.Namespace) -> int:
    async def _act(session: WorkoutSession) -> bool:
        for field in ("weight", "rpe", "reps", "rir"):
            value = getattr(args, field)
            if value is not None:
                session.update_input(args.item_id, field, value)
        return await session.log_set(args.item_id)

    return await _run_session(args, _act)


async def cmd_item(args: argparse.Namespace) -> int:
    async def _act(session: WorkoutSession) -> bool:
        if args.command == "undo":
            return await session.undo_last(args.item_id)
        if args.command == "clear-top":
            return await session.clear_top(args.item_id)
        return await session.swap_accessory(args.item_id, args.movement)

    return await _run_session(args, _act)


async def cmd_rest(args: argparse.Namespace) -> int:
    def _show(state: RestTimerState) -> None:
        text = format_rest_time(state.remaining_seconds) if state.running else "done"
        print(f"\rRest {text}   ", end="", flush=True)

    timer = RestTimer(on_update=_show)
    try:
        timer.start(args.seconds)
    except ValueError as e:
        _print_err(str(e))
        return 1
    await timer.run()
    print()
    return 0


# =============================================================================
# Parser
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="coach-session", description="Strength coach workout session client")
    parser.add_argument("--api-base", default=None, help="API root (default: COACH_API_BASE)")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("login")
    p.add_argument("email")
    p.add_argument("--password")
    p.set_defaults(handler=cmd_login)

    sub.add_parser("logout").set_defaults(handler=cmd_logout)
    sub.add_parser("dashboard").set_defaults(handler=cmd_dashboard)

    p = sub.add_parser("workouts")
    p.add_argument("--athlete-id", type=int, default=None)
    p.set_defaults(handler=cmd_workouts)

    def workout_parser(name: str, handler) -> argparse.ArgumentParser:
        wp = sub.add_parser(name)
        wp.add_argument("workout_id", type=int)
        wp.add_argument("--unit", choices=("kg", "lb"), default=settings.DEFAULT_UNIT)
        wp.set_defaults(handler=handler)
        return wp

    workout_parser("show", cmd_show)
    workout_parser("begin", cmd_lifecycle)
    workout_parser("complete", cmd_lifecycle)
    workout_parser("resume", cmd_lifecycle)
    workout_parser("cancel", cmd_lifecycle).add_argument(
        "--yes", action="store_true", help="Confirm cancelling the workout"
    )

    p = workout_parser("log", cmd_log)
    p.add_argument("item_id", type=int)
    p.add_argument("--weight")
    p.add_argument("--rpe")
    p.add_argument("--reps")
    p.add_argument("--rir")

    for name in ("undo", "clear-top"):
        workout_parser(name, cmd_item).add_argument("item_id", type=int)

    p = workout_parser("swap", cmd_item)
    p.add_argument("item_id", type=int)
    p.add_argument("movement")

    p = sub.add_parser("rest")
    p.add_argument("seconds", type=int)
    p.set_defaults(handler=cmd_rest)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        return asyncio.run(args.handler(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
