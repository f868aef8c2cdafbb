import argparse
import asyncio
import datetime
import json
import sys
from typing import List, Optional, Tuple

from client import RecordClient
from config import YamlConfig
from logging_config import configure_logging
from models import Workout
from search import format_workout_date
from settings_schema import ClientSettings, load_settings, validate_settings
from workouts_view import WorkoutsView


def format_workout(workout: Workout) -> str:
    names = sorted({s.exercise_name or f"#{s.exercise_id}" for s in workout.sets})
    line = (
        f"{workout.id}\t{format_workout_date(workout.date)} {workout.date:%H:%M}"
        f"\t{workout.duration or 0} min\t{len(workout.sets)} sets"
    )
    if names:
        line += "\t" + ", ".join(names)
    if workout.notes:
        line += f"\t{workout.notes}"
    return line


async def list_workouts(
    client: RecordClient,
    settings: ClientSettings,
    page: int = 0,
    day: Optional[datetime.date] = None,
    start: Optional[datetime.date] = None,
    end: Optional[datetime.date] = None,
    search: Optional[str] = None,
) -> WorkoutsView:
    view = WorkoutsView(client, settings)
    await view.load_catalog()
    if day is not None:
        await view.select_day(day)
    elif start is not None or end is not None:
        await view.select_range(start, end)
    elif page:
        await view.show_page(page)
    else:
        await view.refresh()
    if search:
        view.set_search_term(search)
        view.flush_search()
    view.close()
    return view


async def copy_workout(
    client: RecordClient,
    settings: ClientSettings,
    workout_id: int,
    save: bool = False,
) -> Tuple[WorkoutsView, Optional[Workout]]:
    view = WorkoutsView(client, settings)
    draft = await view.copy(workout_id)
    if draft is not None and save:
        return view, await view.save(draft)
    return view, draft


async def delete_workout(
    client: RecordClient,
    settings: ClientSettings,
    workout_id: int,
    confirmed: bool = False,
) -> Tuple[WorkoutsView, bool]:
    view = WorkoutsView(client, settings, confirm=_ask_confirmation)
    deleted = await view.delete(workout_id, confirmed)
    return view, deleted


def _ask_confirmation(workout_id: int) -> bool:
    answer = input(f"Delete workout {workout_id}? [y/N] ")
    return answer.strip().lower() in {"y", "yes"}


def configure(path: str, changes: dict, sign_out: bool = False) -> ClientSettings:
    """Merge ``changes`` into the settings file after validating them."""
    cfg = YamlConfig(path)
    if sign_out:
        cfg.forget("api_token")
    data = cfg.update(changes)
    settings = validate_settings(data)
    cfg.save(data)
    return settings


def serve(host: str, port: int, token: Optional[str]) -> None:
    import uvicorn
    from rest_api import RecordAPI

    uvicorn.run(RecordAPI(token=token).app, host=host, port=port)


def _report(view: WorkoutsView) -> int:
    if view.error is not None:
        print(f"error ({view.error.kind}): {view.error.message}", file=sys.stderr)
        return 1
    if view.not_found:
        print("workout not found", file=sys.stderr)
    return 0


async def _run(args: argparse.Namespace, settings: ClientSettings) -> int:
    async with RecordClient.from_settings(settings) as client:
        if args.cmd == "list":
            view = await list_workouts(
                client,
                settings,
                page=args.page,
                day=args.day,
                start=args.start,
                end=args.end,
                search=args.search,
            )
            for workout in view.records:
                print(format_workout(workout))
            if not view.records and view.error is None:
                print("No workouts found.")
            return _report(view)
        if args.cmd == "copy":
            view, result = await copy_workout(client, settings, args.id, args.save)
            if result is not None:
                payload = result.to_request()
                if result.id is not None:
                    payload = {"id": result.id, **payload}
                print(json.dumps(payload, indent=2))
            return _report(view)
        if args.cmd == "delete":
            view, deleted = await delete_workout(client, settings, args.id, args.yes)
            print("deleted" if deleted else "cancelled")
            return _report(view)
    return 2


def _date(value: str) -> datetime.date:
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError("date must be in YYYY-MM-DD format")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Workout list commands")
    parser.add_argument("--config", default="settings.yaml")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd", required=True)

    lst = sub.add_parser("list")
    lst.add_argument("--page", type=int, default=0)
    lst.add_argument("--day", type=_date)
    lst.add_argument("--start", type=_date)
    lst.add_argument("--end", type=_date)
    lst.add_argument("--search")

    cp = sub.add_parser("copy")
    cp.add_argument("id", type=int)
    cp.add_argument("--save", action="store_true")

    rm = sub.add_parser("delete")
    rm.add_argument("id", type=int)
    rm.add_argument("--yes", action="store_true")

    cfg = sub.add_parser("config")
    cfg.add_argument("--base-url", dest="base_url")
    cfg.add_argument("--page-size", dest="page_size", type=int)
    cfg.add_argument("--debounce-ms", dest="search_debounce_ms", type=int)
    cfg.add_argument("--timeout", dest="request_timeout", type=float)
    cfg.add_argument("--token", dest="api_token")
    cfg.add_argument("--sign-out", action="store_true")

    srv = sub.add_parser("serve")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8080)
    srv.add_argument("--token")

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.cmd == "list" and args.day and (args.start or args.end):
        parser.error("--day cannot be combined with --start/--end")
    if args.cmd == "list" and bool(args.start) != bool(args.end):
        parser.error("--start and --end must be given together")

    if args.cmd == "serve":
        serve(args.host, args.port, args.token)
        return 0
    if args.cmd == "config":
        changes = {
            "base_url": args.base_url,
            "page_size": args.page_size,
            "search_debounce_ms": args.search_debounce_ms,
            "request_timeout": args.request_timeout,
            "api_token": args.api_token,
        }
        if args.sign_out and args.api_token:
            parser.error("--sign-out cannot be combined with --token")
        try:
            settings = configure(args.config, changes, sign_out=args.sign_out)
        except ValueError as e:
            print(f"invalid settings: {e}", file=sys.stderr)
            return 1
        print(json.dumps(settings.model_dump(exclude={"api_token"}), indent=2))
        return 0

    try:
        settings = load_settings(args.config)
    except ValueError as e:
        print(f"invalid settings: {e}", file=sys.stderr)
        return 1
    return asyncio.run(_run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
