"""Tests for database schema."""

import sqlite3

from prose_vcs.core.database.schema import (
    create_schema,
    get_metadata,
    get_schema_version,
    migrate_schema,
    set_metadata,
)


def test_create_schema_creates_tables() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    tables = {
        row[0]
        for row in conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ).fetchall()
    }
    assert {"objects", "branches", "metadata"} <= tables


def test_migrate_schema_on_empty_db_creates_schema_and_sets_version() -> None:
    conn = sqlite3.connect(":memory:")
    assert get_schema_version(conn) is None
    migrate_schema(conn)
    assert get_schema_version(conn) == 1


def test_migrate_schema_is_idempotent() -> None:
    conn = sqlite3.connect(":memory:")
    migrate_schema(conn)
    migrate_schema(conn)
    assert get_schema_version(conn) == 1


def test_metadata_round_trip(db: sqlite3.Connection) -> None:
    assert get_metadata(db, "working_root") is None
    set_metadata(db, "working_root", "abc")
    set_metadata(db, "working_root", "def")
    assert get_metadata(db, "working_root") == "def"
