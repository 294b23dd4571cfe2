"""Utility script to create or reset the configured database schema."""
from __future__ import annotations

import argparse
import sys

from sqlalchemy.exc import SQLAlchemyError

from distributor_comments.core.settings import settings
from distributor_comments.db.session import Base, make_engine


def ensure_tables(db_url: str, *, drop_first: bool = False) -> None:
    """Create all tables for the given database, optionally dropping them first."""
    engine = make_engine(db_url)
    try:
        if drop_first:
            Base.metadata.drop_all(bind=engine)
            print("[ensure_db] dropped all tables")
        Base.metadata.create_all(bind=engine)
        print(f"[ensure_db] ensured tables: {', '.join(sorted(Base.metadata.tables))}")
    finally:
        engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Ensure or reset the configured database")
    parser.add_argument(
        "--drop-tables",
        action="store_true",
        help="Drop every table before creating them again.",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to effective settings URL)",
    )
    args = parser.parse_args()

    try:
        ensure_tables(args.url or settings.database_url_sync, drop_first=args.drop_tables)
    except SQLAlchemyError as exc:
        print(f"[ensure_db] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
