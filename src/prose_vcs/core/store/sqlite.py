"""SQLite-backed object store and engine state store.

Each tier of the object store is a slice of the ``objects`` table keyed by
``(tier, cid)``. Rows are only ever inserted (``INSERT OR IGNORE``) except
when a whole tier is cleared, which only happens to the working tier.
"""

import json
import sqlite3
import time
from collections.abc import Iterator

from loguru import logger

from prose_vcs.core.cid import CID, canonical_encoding, compute_cid
from prose_vcs.core.database.schema import get_metadata
from prose_vcs.errors import CorruptStateError
from prose_vcs.models.nodes import Node, node_from_dict
from prose_vcs.models.refs import Branch, EngineState
from prose_vcs.protocols import ObjectStoreProtocol

SOURCE_TIER = "source"
WORKING_TIER = "working"


class SqliteObjectStore:
    """One tier of the content-addressed store, persisted in SQLite."""

    def __init__(self, conn: sqlite3.Connection, tier: str) -> None:
        self._conn = conn
        self.tier = tier

    def put(self, node: Node) -> CID:
        cid = compute_cid(node)
        self.store(cid, node)
        return cid

    def store(self, cid: CID, node: Node) -> None:
        self._conn.execute(
            "INSERT OR IGNORE INTO objects (cid, tier, type, body, stored_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (cid, self.tier, node.type, canonical_encoding(node).decode("utf-8"),
             int(time.time() * 1000)),
        )
        self._conn.commit()

    def get(self, cid: CID) -> Node | None:
        row = self._conn.execute(
            "SELECT body FROM objects WHERE tier = ? AND cid = ?",
            (self.tier, cid),
        ).fetchone()
        if row is None:
            return None
        return node_from_dict(json.loads(row[0]))

    def has(self, cid: CID) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM objects WHERE tier = ? AND cid = ?",
            (self.tier, cid),
        ).fetchone()
        return row is not None

    def items(self) -> Iterator[tuple[CID, Node]]:
        rows = self._conn.execute(
            "SELECT cid, body FROM objects WHERE tier = ? ORDER BY stored_at, cid",
            (self.tier,),
        ).fetchall()
        return iter([(cid, node_from_dict(json.loads(body))) for cid, body in rows])

    def clear(self) -> None:
        self._conn.execute("DELETE FROM objects WHERE tier = ?", (self.tier,))
        self._conn.commit()

    def transfer_to(self, target: ObjectStoreProtocol) -> None:
        if isinstance(target, SqliteObjectStore) and target._conn is self._conn:
            self._conn.execute(
                "INSERT OR IGNORE INTO objects (cid, tier, type, body, stored_at) "
                "SELECT cid, ?, type, body, stored_at FROM objects WHERE tier = ?",
                (target.tier, self.tier),
            )
            self._conn.commit()
            return
        for cid, node in self.items():
            target.store(cid, node)

    def __len__(self) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM objects WHERE tier = ?", (self.tier,)
        ).fetchone()
        return int(row[0])


class SqliteStateStore:
    """Persists branches and the working root in the ``branches``/``metadata`` tables."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def load(self) -> EngineState | None:
        default_id = get_metadata(self._conn, "default_branch")
        current_id = get_metadata(self._conn, "current_branch")
        working_root = get_metadata(self._conn, "working_root")
        if default_id is None or current_id is None or working_root is None:
            return None

        rows = self._conn.execute(
            "SELECT uuid, name, commit_cid, archived FROM branches ORDER BY position"
        ).fetchall()
        live: list[Branch] = []
        archived: list[Branch] = []
        for branch_id, name, commit_cid, is_archived in rows:
            branch = Branch(name=name, commit=commit_cid, uuid=branch_id)
            (archived if is_archived else live).append(branch)

        by_id = {b.uuid: b for b in live}
        if default_id not in by_id or current_id not in by_id:
            msg = "Saved state references a branch that is not live"
            raise CorruptStateError(msg)

        logger.debug("Loaded {} live and {} archived branches", len(live), len(archived))
        return EngineState(
            branches=live,
            default_branch=by_id[default_id],
            current_branch=by_id[current_id],
            working_root=working_root,
            archived_branches=archived,
        )

    def save(self, state: EngineState) -> None:
        try:
            self._conn.execute("DELETE FROM branches")
            self._conn.executemany(
                "INSERT INTO branches (uuid, name, commit_cid, archived, position) "
                "VALUES (?, ?, ?, ?, ?)",
                [
                    (b.uuid, b.name, b.commit, int(archived), position)
                    for position, (b, archived) in enumerate(
                        [(b, False) for b in state.branches]
                        + [(b, True) for b in state.archived_branches]
                    )
                ],
            )
            self._conn.executemany(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                [
                    ("default_branch", state.default_branch.uuid),
                    ("current_branch", state.current_branch.uuid),
                    ("working_root", state.working_root),
                ],
            )
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise
