"""Create a sample SQLite database and register it as a db9s connection."""

from __future__ import annotations

import argparse
import sqlite3
import sys
from contextlib import closing
from pathlib import Path

from db9s import config
from db9s.config import ConnectionStore, SettingsFileError

DEFAULT_DB = Path.home() / ".db9s" / "sample.db"
CONNECTION_NAME = "SQLite Sample"

SEED_SQL = """
CREATE TABLE IF NOT EXISTS accounts (
    id INTEGER PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS orders (
    id INTEGER PRIMARY KEY,
    account_id INTEGER REFERENCES accounts(id),
    total REAL NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending'
);
INSERT OR IGNORE INTO accounts (id, email) VALUES
    (1, 'anna@example.com'),
    (2, 'ben@example.com'),
    (3, 'cara@example.com');
INSERT OR IGNORE INTO orders (id, account_id, total, status) VALUES
    (1, 1, 19.99, 'complete'),
    (2, 2, 5.5, 'pending'),
    (3, 3, 42.0, 'complete');
""".strip()


def seed_data(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with closing(sqlite3.connect(path)) as conn:
        conn.executescript(SEED_SQL)
        conn.commit()


def register_connection(path: Path, settings: Path | None = None) -> bool:
    """Add the sample connection unless one with the same name exists."""

    store = ConnectionStore.open(settings)
    if any(connection.name == CONNECTION_NAME for connection in store.connections):
        print(f"Connection '{CONNECTION_NAME}' already present; leaving as-is.")
        return False
    store.add_connection(CONNECTION_NAME, f"sqlite://{path.resolve()}")
    print(f"Added '{CONNECTION_NAME}' connection to {settings or config.SETTINGS_FILE}.")
    return True


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--database", type=Path, default=DEFAULT_DB, help="SQLite file to create")
    parser.add_argument("--settings", type=Path, default=None, help="Settings file to update")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        seed_data(args.database)
    except (OSError, sqlite3.Error) as exc:
        print(f"Could not create {args.database}: {exc}")
        return 1
    try:
        register_connection(args.database, args.settings)
    except SettingsFileError as exc:
        print(exc)
        return 1
    print(f"Sample database is ready at {args.database}.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
