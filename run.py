"""Dungeon Engine CLI entry point.

Provides subcommands for simulating resolutions without a database, creating
the schema, running one batch tick, spending level-up points and paging
through a user's dungeon log. Accepts configuration via flags and environment
variables, with optional .env loading.

Run `python run.py --help` for details.
"""

import argparse
import json
import os
import sys
from textwrap import dedent

from dotenv import load_dotenv

from dungeon_engine import __version__


def parse_args(argv: list[str]) -> argparse.Namespace:
    description = """
    Dungeon Engine

    Deterministic dungeon event simulation. Each action point resolves one
    event (battle, rest, trap, treasure or a floor move) and appends an
    auditable log.
    """

    epilog = dedent(
        """
        Environment variables:
          DATABASE_URL          SQLAlchemy database URI (default: sqlite:///instance/dungeon.db)
          DUNGEON_EVENT_CONFIG  Event configuration JSON (default: packaged defaults)
          DUNGEON_CATALOG_DIR   Directory with monsters.json, drops.json, items.json
          DUNGEON_LOG_LEVEL     debug | info | warn | error
          DUNGEON_LOG_JSON      1 to emit JSON log lines

        Examples:
          # Resolve five actions for a fresh player and print the narrative
          python run.py simulate --user demo --actions 5

          # Start from a custom state and print raw JSON entries
          python run.py simulate --user demo --actions 3 --seed-state '{"hp": 6, "maxHp": 10, "ap": 5}' --json

          # Create tables, add a player with 10 AP, then run one batch tick
          python run.py init-db
          python run.py seed-user --user demo --ap 10
          python run.py batch

          # Page through logs
          python run.py logs --user demo --limit 10
        """
    )

    parser = argparse.ArgumentParser(
        prog="dungeon",
        description=dedent(description),
        epilog=epilog,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--env-file", dest="env_file", help="Path to a .env file to load before processing flags")
    parser.add_argument("--version", action="version", version=f"Dungeon Engine {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    sim = subparsers.add_parser("simulate", help="Resolve actions in memory and print the log")
    sim.add_argument("--user", required=True, help="User id (also the seed prefix)")
    sim.add_argument("--actions", type=int, default=1, help="Number of actions to resolve (default: 1)")
    sim.add_argument("--seed-state", dest="seed_state", default=None, help="Initial state as a JSON object (camelCase keys)")
    sim.add_argument("--json", action="store_true", help="Print entries as JSON lines instead of narrative")

    subparsers.add_parser("init-db", help="Create the database tables")

    seed_user = subparsers.add_parser("seed-user", help="Create a dungeon state row for a user")
    seed_user.add_argument("--user", required=True)
    seed_user.add_argument("--ap", type=int, default=10, help="Starting action points (default: 10)")

    subparsers.add_parser("batch", help="Run one batch tick against DATABASE_URL")

    level_up = subparsers.add_parser("level-up", help="Show or apply level-up options for a user")
    level_up.add_argument("--user", required=True)
    level_up.add_argument("--stat", choices=["hp", "atk", "def", "luck"], default=None)
    level_up.add_argument("--roll-index", dest="roll_index", type=int, default=None)

    logs = subparsers.add_parser("logs", help="List a user's dungeon log, newest first")
    logs.add_argument("--user", required=True)
    logs.add_argument("--limit", type=int, default=20)
    logs.add_argument("--cursor", default=None)
    logs.add_argument("--filter", dest="action_or_category", default=None, help="Action or category name")
    logs.add_argument("--json", action="store_true")

    return parser.parse_args(argv)


def _initial_state(user_id: str, actions: int, raw: str | None):
    from dungeon_engine.models.state import DungeonState

    data = {"userId": user_id, "ap": actions}
    if raw:
        data.update(json.loads(raw))
        data["userId"] = user_id
    return DungeonState.from_dict(data)


def cmd_simulate(args) -> int:
    from dungeon_engine import build_engine
    from dungeon_engine.errors import InsufficientActionPoints
    from dungeon_engine.logs import describe, encode_entry

    engine = build_engine()
    state = _initial_state(args.user, args.actions, args.seed_state)
    for _ in range(args.actions):
        try:
            resolution = engine.resolve_next_action(state, state.version)
        except InsufficientActionPoints as exc:
            print(f"[WARN] {exc}", file=sys.stderr)
            break
        for entry in resolution.entries:
            print(json.dumps(encode_entry(entry)) if args.json else describe(entry))
        state = resolution.next_state
    print(json.dumps({"state": state.to_dict()}) if args.json else f"final: {state.to_dict()}")
    return 0


def cmd_init_db(args) -> int:
    from dungeon_engine import create_app

    app = create_app()
    print(f"[INFO] Tables ready at {app.config['SQLALCHEMY_DATABASE_URI']}")
    return 0


def cmd_seed_user(args) -> int:
    from dungeon_engine import build_store, create_app
    from dungeon_engine.models.state import DungeonState, utcnow

    app = create_app()
    with app.app_context():
        store = build_store()
        if store.load_state(args.user) is not None:
            print(f"[WARN] {args.user} already has a dungeon state", file=sys.stderr)
            return 1
        now = utcnow()
        store.create_state(DungeonState(user_id=args.user, ap=args.ap, created_at=now, updated_at=now))
    print(f"[INFO] Created dungeon state for {args.user} with {args.ap} AP")
    return 0


def cmd_batch(args) -> int:
    from dungeon_engine import build_engine, build_store, create_app
    from dungeon_engine.config import BatchConfig
    from dungeon_engine.services.batch_service import DungeonBatchService

    app = create_app()
    with app.app_context():
        service = DungeonBatchService(build_store(), build_engine(app), BatchConfig.from_env())
        report = service.run_tick()
    print(json.dumps(report.to_dict()))
    return 0


def cmd_level_up(args) -> int:
    from dungeon_engine import build_store, create_app
    from dungeon_engine.errors import DungeonError
    from dungeon_engine.services.level_up_service import LevelUpService

    app = create_app()
    with app.app_context():
        service = LevelUpService(build_store())
        try:
            if args.stat is None:
                selection = service.get_selection(args.user)
                payload = {
                    "points": selection.points,
                    "rollIndex": selection.roll_index,
                    "options": [o.to_dict() for o in selection.options],
                }
            else:
                roll_index = args.roll_index
                if roll_index is None:
                    roll_index = service.get_selection(args.user).roll_index
                result = service.apply_selection(args.user, args.stat, roll_index)
                payload = {"applied": result.applied.to_dict(), "state": result.state.to_dict()}
        except DungeonError as exc:
            print(json.dumps(exc.to_dict()), file=sys.stderr)
            return 1
    print(json.dumps(payload))
    return 0


def cmd_logs(args) -> int:
    from dungeon_engine import build_store, create_app
    from dungeon_engine.logs import describe, encode_entry

    app = create_app()
    with app.app_context():
        try:
            page = build_store().list_logs(
                args.user, cursor=args.cursor, limit=args.limit, action_or_category=args.action_or_category
            )
        except ValueError as exc:
            # bad cursor, unknown filter or out-of-range limit
            print(f"[ERROR] {exc}", file=sys.stderr)
            return 2
    for entry in page.entries:
        print(json.dumps(encode_entry(entry)) if args.json else f"#{entry.sequence} {describe(entry)}")
    if page.next_cursor:
        print(f"next cursor: {page.next_cursor}")
    return 0


COMMANDS = {
    "simulate": cmd_simulate,
    "init-db": cmd_init_db,
    "seed-user": cmd_seed_user,
    "batch": cmd_batch,
    "level-up": cmd_level_up,
    "logs": cmd_logs,
}


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    if getattr(args, "env_file", None):
        load_dotenv(args.env_file, override=True)
    else:
        # Load default .env if present (no error if missing)
        load_dotenv()
    os.environ.setdefault("DUNGEON_LOG_LEVEL", "warn" if args.command == "simulate" else "info")
    return COMMANDS[args.command](args)


def _console_main() -> int:
    return main(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
