"""Command-line entry point for running one attendance import."""

from __future__ import annotations

import argparse
import dataclasses
import os

import msgspec

from rollcall.logging import configure_logging

from .actor import run_import_sync
from .config import ImportConfig
from .errors import AttendanceImportError

_DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///rollcall.db"


def main(argv: list[str] | None = None) -> int:
    """Fetch, reconcile and merge one attendance snapshot.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 on success, 1 when the import fails.

    """
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--database-url",
        default=os.environ.get("ROLLCALL_DATABASE_URL", _DEFAULT_DATABASE_URL),
        help="SQLAlchemy URL of the fact store",
    )
    parser.add_argument(
        "--attendance-url",
        default=None,
        help="Override ROLLCALL_ATTENDANCE_URL for this run",
    )
    parser.add_argument(
        "--roster-url",
        default=None,
        help="Override ROLLCALL_ROSTER_URL for this run",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    try:
        config = ImportConfig.from_env()
    except ValueError as exc:
        print(f"Invalid configuration: {exc}")
        return 1
    overrides = {
        key: value
        for key, value in (
            ("attendance_url", args.attendance_url),
            ("roster_url", args.roster_url),
        )
        if value
    }
    config = dataclasses.replace(config, **overrides)

    try:
        outcome = run_import_sync(args.database_url, config)
    except AttendanceImportError as exc:
        print(f"Attendance import failed: {exc}")
        return 1

    print(msgspec.json.encode(outcome).decode())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
