"""Shared test fixtures."""

import sqlite3

import pytest

from prose_vcs.core.database.schema import create_schema
from prose_vcs.core.engine import VersionControl
from prose_vcs.core.tree.markdown import blocks_from_text
from tests.unit.fakes import FakeResolver

NOTES_SOURCE = {
    "notes/todo": "# Todo\n\n- buy milk\n- write report",
    "notes/ideas": "A paragraph about ideas.",
    "journal/2024/january": "Cold and quiet.",
}


@pytest.fixture
def vc() -> VersionControl:
    """Return a fresh in-memory engine."""
    return VersionControl()


@pytest.fixture
def populated_vc() -> VersionControl:
    """Return an in-memory engine with three documents committed on the default branch."""
    engine = VersionControl()
    for path, text in NOTES_SOURCE.items():
        engine.write_document(path, blocks_from_text(text, engine.put))
    engine.commit("add notes", "alice")
    return engine


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def db() -> sqlite3.Connection:
    """Return an in-memory DB with the repository schema."""
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    return conn
