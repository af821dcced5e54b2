"""Schema tooling for the key table.

Usage:
  python -m jwkstore migrate up [--steps N]
  python -m jwkstore migrate down [--steps N]
  python -m jwkstore migrate status

DATABASE_URL and JWK_MIGRATION_TABLE are read from the environment (or .env)
unless --database-url / --table are given.
"""

import argparse
import sys
from typing import List, Optional

from jwkstore.core.config import settings
from jwkstore.core.exceptions import KeyStoreError
from jwkstore.core.logging_config import configure_logging
from jwkstore.db.database import build_engine
from jwkstore.db.migrations import MigrationRegistry


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jwkstore", description="Manage the JSON Web Key store")
    parser.add_argument("--database-url", default="", help="Database URL (empty = use DATABASE_URL)")
    parser.add_argument("--table", default="", help="Migration bookkeeping table (empty = use JWK_MIGRATION_TABLE)")

    commands = parser.add_subparsers(dest="command", required=True)
    migrate = commands.add_parser("migrate", help="Apply, revert or inspect schema migrations")
    actions = migrate.add_subparsers(dest="action", required=True)

    up = actions.add_parser("up", help="Apply pending migrations")
    up.add_argument("--steps", type=int, default=None, help="Apply at most N steps")
    down = actions.add_parser("down", help="Revert applied migrations, newest first")
    down.add_argument("--steps", type=int, default=1, help="Revert at most N steps (default 1)")
    actions.add_parser("status", help="List migrations and whether they are applied")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(log_format="text")

    engine = build_engine(args.database_url or settings.database_url)
    registry = MigrationRegistry(engine, table_name=args.table or settings.migration_table)
    try:
        if args.action == "up":
            n = registry.apply_schema(max_steps=args.steps)
            print(f"Applied {n} migration(s)")
        elif args.action == "down":
            n = registry.rollback(max_steps=args.steps)
            print(f"Reverted {n} migration(s)")
        else:
            for status in registry.status():
                mark = "applied" if status.applied else "pending"
                when = f" at {status.applied_at:%Y-%m-%d %H:%M:%S}" if status.applied_at else ""
                print(f"{status.id:>4}  {mark:<8} {status.description}{when}")
    except KeyStoreError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        engine.dispose()
    return 0
