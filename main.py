"""Main CLI entrypoint for DeskPilot."""
import argparse
import sys

from dotenv import load_dotenv

# Load environment variables from .env file BEFORE importing modules that depend on them
load_dotenv()

from shared.callbacks import enable_chat_logging
from shared.config import Configuration
from shared.context import SYSTEM_USER, RequestContext
from database import get_tabular_store, seed_default_settings, setup_database
from file_store import get_file_store
from services import SecretStore, run_daily_analysis


def _load_config() -> Configuration:
    config = Configuration()
    config.validate()
    return config


def cmd_serve(args) -> int:
    import uvicorn

    uvicorn.run("app.main:app", host=args.host, port=args.port, reload=args.reload, log_level="info")
    return 0


def cmd_setup_database(args) -> int:
    """Reset every table and write its header row."""
    config = _load_config()
    target = config.spreadsheet_id if config.tabular_backend == "sheets" else (config.database_path or "default SQLite file")
    if not args.yes:
        print(f"This will CLEAR all data in every table of {target}.")
        answer = input("Continue? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            print("Setup cancelled.")
            return 1

    store = get_tabular_store(config)
    tables = setup_database(store)
    print(f"Database setup complete! Reset {len(tables)} tables:")
    for name in tables:
        print(f"  - {name}")

    if args.seed_settings:
        added = seed_default_settings(store)
        print(f"Seeded {added} default settings.")
    return 0


def cmd_run_daily_analysis(args) -> int:
    """Generate today's coaching reports for all users."""
    config = _load_config()
    ctx = RequestContext(
        user_email=SYSTEM_USER,
        store=get_tabular_store(config),
        secrets=SecretStore(config.secrets_env_path),
        config=config,
        files=get_file_store(config),
    )
    stats = run_daily_analysis(ctx)
    print(f"Reports generated: {stats['generated']}, skipped: {stats['skipped']}, failed: {stats['failed']}")
    return 1 if stats["failed"] else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="DeskPilot")
    parser.add_argument("--log", action="store_true", help="Enable chat logging to console and logs/chat.log")
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"], help="Logging level when --log is set")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the web app with uvicorn")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")
    serve.set_defaults(func=cmd_serve)

    setup = subparsers.add_parser("setup-database", help="Create or reset all tables (destructive)")
    setup.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    setup.add_argument("--seed-settings", action="store_true", help="Add the default Config_Settings rows")
    setup.set_defaults(func=cmd_setup_database)

    daily = subparsers.add_parser("run-daily-analysis", help="Generate today's coaching reports")
    daily.set_defaults(func=cmd_run_daily_analysis)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.log:
        level = {"debug": 10, "info": 20, "warning": 30, "error": 40}.get(args.log_level.lower(), 20)
        enable_chat_logging(level=level)
        print(f"Logging enabled at level: {args.log_level.upper()}")
    try:
        return args.func(args)
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
