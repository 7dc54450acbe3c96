"""Tests for the SQLite state store and a durable engine."""

import sqlite3

import pytest

from prose_vcs.core.engine import VersionControl
from prose_vcs.core.store.sqlite import (
    SOURCE_TIER,
    WORKING_TIER,
    SqliteObjectStore,
    SqliteStateStore,
)
from prose_vcs.core.tree.markdown import blocks_from_text
from prose_vcs.errors import CorruptStateError
from prose_vcs.models.refs import Branch, EngineState


def _open(conn: sqlite3.Connection) -> VersionControl:
    return VersionControl(
        source=SqliteObjectStore(conn, SOURCE_TIER),
        working=SqliteObjectStore(conn, WORKING_TIER),
        state=SqliteStateStore(conn),
    )


def test_load_on_empty_database_returns_none(db: sqlite3.Connection) -> None:
    assert SqliteStateStore(db).load() is None


def test_save_and_load_state(db: sqlite3.Connection) -> None:
    main = Branch(name="default", commit="a" * 64)
    feature = Branch(name="feature", commit="b" * 64)
    old = Branch(name="old", commit="c" * 64)
    state = EngineState(
        branches=[main, feature],
        default_branch=main,
        current_branch=feature,
        working_root="d" * 64,
        archived_branches=[old],
    )
    store = SqliteStateStore(db)
    store.save(state)

    loaded = store.load()
    assert loaded is not None
    assert [b.name for b in loaded.branches] == ["default", "feature"]
    assert [b.name for b in loaded.archived_branches] == ["old"]
    assert loaded.default_branch.uuid == main.uuid
    assert loaded.current_branch is loaded.branches[1]
    assert loaded.working_root == "d" * 64


def test_load_rejects_archived_current_branch(db: sqlite3.Connection) -> None:
    main = Branch(name="default", commit="a" * 64)
    gone = Branch(name="gone", commit="b" * 64)
    SqliteStateStore(db).save(
        EngineState(
            branches=[main],
            default_branch=main,
            current_branch=gone,
            working_root="d" * 64,
            archived_branches=[gone],
        )
    )
    with pytest.raises(CorruptStateError):
        SqliteStateStore(db).load()


def test_engine_bootstraps_once_and_resumes(db: sqlite3.Connection) -> None:
    first = _open(db)
    first.write_document("notes/todo", blocks_from_text("milk", first.put))
    commit_cid = first.commit("add todo", "alice")
    first.create_branch("draft")

    second = _open(db)
    assert second.get_current_branch().commit == commit_cid
    assert [b.name for b in second.get_branches()] == ["default", "draft"]
    assert [d.path for d in second.documents()] == ["notes/todo"]
    assert not second.is_dirty()


def test_uncommitted_work_survives_reopening(db: sqlite3.Connection) -> None:
    first = _open(db)
    first.write_document("notes/todo", blocks_from_text("milk", first.put))

    second = _open(db)
    assert second.is_dirty()
    assert [d.path for d in second.documents()] == ["notes/todo"]

    second.discard()
    assert _open(db).documents() == []


def test_refused_archive_of_current_branch_keeps_repository_loadable(
    db: sqlite3.Connection,
) -> None:
    first = _open(db)
    feature = first.create_branch("feature", carry_working_state=True)
    assert not first.archive_branch(feature)

    second = _open(db)
    assert second.get_current_branch().name == "feature"
    assert second.get_archived_branches() == []


def test_commit_moves_working_tier_into_source(db: sqlite3.Connection) -> None:
    vc = _open(db)
    vc.write_document("notes/todo", blocks_from_text("milk", vc.put))
    assert len(SqliteObjectStore(db, WORKING_TIER)) > 0
    vc.commit("add todo", "alice")
    assert len(SqliteObjectStore(db, WORKING_TIER)) == 0
    root = vc.get_working_root()
    assert SqliteObjectStore(db, SOURCE_TIER).has(root)
