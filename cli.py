import argparse
import asyncio
import json
import logging
import shutil

from config import DEFAULT_DB_PATH, YamlConfig, database_path, load_settings
from seed_sample_data import seed
from tracker_service import TrackerService


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def show_today(db_path: str, yaml_path: str, user_id: str | None) -> dict:
    service = TrackerService(db_path, load_settings(yaml_path))
    return asyncio.run(service.today_view(user_id))


def show_streaks(db_path: str, yaml_path: str, user_id: str) -> dict:
    service = TrackerService(db_path, load_settings(yaml_path))
    return asyncio.run(service.statistics.streaks(user_id))


def configure(yaml_path: str, assignments: list[str]) -> dict:
    """Apply ``key=value`` assignments and return the settings, token hidden."""
    changes = {}
    for item in assignments:
        key, sep, value = item.partition("=")
        if not sep:
            raise ValueError(f"expected key=value, got {item!r}")
        changes[key.strip()] = value.strip() or None
    if changes:
        settings = YamlConfig(yaml_path).update(**changes)
    else:
        settings = load_settings(yaml_path)
    shown = settings.model_dump()
    shown["api_token"] = "set" if settings.api_token else None
    return shown


def serve(db_path: str, yaml_path: str, host: str, port: int) -> None:
    import uvicorn

    from rest_api import TrackerAPI

    api = TrackerAPI(db_path, yaml_path)
    uvicorn.run(api.app, host=host, port=port)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Training tracker commands")
    parser.add_argument("--db", default=database_path(DEFAULT_DB_PATH))
    parser.add_argument("--yaml", default="settings.yaml")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("seed")

    today = sub.add_parser("today")
    today.add_argument("--user", default=None)

    streaks = sub.add_parser("streaks")
    streaks.add_argument("--user", required=True)

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")

    srv = sub.add_parser("serve")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    cfg = sub.add_parser("config")
    cfg.add_argument("--set", dest="assignments", action="append", default=[])

    args = parser.parse_args(argv)
    logging.basicConfig(level=load_settings(args.yaml).log_level)

    if args.cmd == "seed":
        if asyncio.run(seed(args.db)):
            print("Seed data inserted")
        else:
            print("Database already contains templates")
    elif args.cmd == "today":
        print(json.dumps(show_today(args.db, args.yaml, args.user), indent=2))
    elif args.cmd == "streaks":
        print(json.dumps(show_streaks(args.db, args.yaml, args.user), indent=2))
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "serve":
        serve(args.db, args.yaml, args.host, args.port)
    elif args.cmd == "config":
        print(json.dumps(configure(args.yaml, args.assignments), indent=2))


if __name__ == "__main__":
    main()
