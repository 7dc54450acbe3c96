"""Traversals over the commit DAG: history listing and ancestry checks."""

import heapq
import itertools
from collections import deque
from collections.abc import Iterator, Sequence
from datetime import datetime

from prose_vcs.config import HISTORY_MAX_DEPTH
from prose_vcs.core.cid import CID
from prose_vcs.models.nodes import Commit
from prose_vcs.models.refs import Branch, CommitNode
from prose_vcs.protocols import Resolver


def _resolve_commit(cid: CID, resolve: Resolver) -> Commit | None:
    node = resolve(cid)
    return node if isinstance(node, Commit) else None


def _epoch(timestamp: str) -> float:
    """Seconds since the epoch for an ISO-8601 string; unparseable sorts oldest."""
    try:
        return datetime.fromisoformat(timestamp).timestamp()
    except ValueError:
        return float("-inf")


def get_commit_history(
    branches: Sequence[Branch],
    resolve: Resolver,
    max_depth: int = HISTORY_MAX_DEPTH,
) -> list[CommitNode]:
    """List commits reachable from any branch head, newest first.

    A priority walk seeded with every branch head: the newest queued commit
    (by its recorded timestamp) is emitted next, then its parents are
    queued. Each commit appears once. With skewed clocks a commit can come
    out before one of its descendants, so use :func:`topological_order` when
    parent-before-child order matters.

    Args:
        branches: Branches whose heads seed the walk; used for annotation too.
        resolve: Node lookup.
        max_depth: Maximum number of commits to return.
    """
    visited: set[CID] = set()
    result: list[CommitNode] = []
    counter = itertools.count()
    queue: list[tuple[float, int, CID]] = []

    def push(cid: CID) -> None:
        commit = _resolve_commit(cid, resolve)
        newest_first = -_epoch(commit.timestamp) if commit else float("inf")
        heapq.heappush(queue, (newest_first, next(counter), cid))

    for branch in branches:
        push(branch.commit)

    while queue and len(result) < max_depth:
        _, _, cid = heapq.heappop(queue)
        if cid in visited:
            continue
        visited.add(cid)

        commit = _resolve_commit(cid, resolve)
        if commit is None:
            continue

        result.append(
            CommitNode(
                cid=cid,
                commit=commit,
                branches=tuple(b for b in branches if b.commit == cid),
                is_merge_commit=len(commit.parents) > 1,
            )
        )
        for parent in commit.parents:
            if parent not in visited:
                push(parent)

    return result


def topological_order(heads: Sequence[CID], resolve: Resolver) -> list[CID]:
    """Commits reachable from *heads*, every child listed before its parents.

    Unlike :func:`get_commit_history` this ignores timestamps entirely.
    Commits that do not resolve are left out.
    """
    children_left: dict[CID, int] = {}
    parents_of: dict[CID, tuple[CID, ...]] = {}
    stack = list(heads)
    while stack:
        cid = stack.pop()
        if cid in parents_of:
            continue
        commit = _resolve_commit(cid, resolve)
        parents = commit.parents if commit else ()
        parents_of[cid] = parents
        children_left.setdefault(cid, 0)
        for parent in parents:
            children_left[parent] = children_left.get(parent, 0) + 1
            stack.append(parent)

    ready = deque(cid for cid in dict.fromkeys(heads) if children_left.get(cid, 0) == 0)
    order: list[CID] = []
    while ready:
        cid = ready.popleft()
        if _resolve_commit(cid, resolve) is not None:
            order.append(cid)
        for parent in parents_of.get(cid, ()):
            children_left[parent] -= 1
            if children_left[parent] == 0:
                ready.append(parent)
    return order


def iter_first_parents(commit_cid: CID, resolve: Resolver) -> Iterator[tuple[CID, Commit]]:
    """Yield (cid, commit) along the first-parent chain, starting at *commit_cid*."""
    cid: CID | None = commit_cid
    seen: set[CID] = set()
    while cid is not None and cid not in seen:
        seen.add(cid)
        commit = _resolve_commit(cid, resolve)
        if commit is None:
            return
        yield cid, commit
        cid = commit.parents[0] if commit.parents else None


def find_common_ancestor(branch_a: Branch, branch_b: Branch, resolve: Resolver) -> CID | None:
    """First commit reached from both branch heads, walking both sides in lockstep.

    Follows every parent edge breadth first, one step on each side per
    round. Returns None when the histories are disjoint.
    """
    visited_a: set[CID] = set()
    visited_b: set[CID] = set()
    queue_a: deque[CID] = deque([branch_a.commit])
    queue_b: deque[CID] = deque([branch_b.commit])

    while queue_a or queue_b:
        if queue_a:
            cid_a = queue_a.popleft()
            if cid_a in visited_b:
                return cid_a
            if cid_a not in visited_a:
                visited_a.add(cid_a)
                commit_a = _resolve_commit(cid_a, resolve)
                if commit_a:
                    queue_a.extend(commit_a.parents)
        if queue_b:
            cid_b = queue_b.popleft()
            if cid_b in visited_a:
                return cid_b
            if cid_b not in visited_b:
                visited_b.add(cid_b)
                commit_b = _resolve_commit(cid_b, resolve)
                if commit_b:
                    queue_b.extend(commit_b.parents)

    return None


def is_ancestor(candidate: CID, descendant: CID, resolve: Resolver) -> bool:
    """True if *candidate* is reachable from *descendant* through parent edges.

    A commit counts as its own ancestor.
    """
    visited: set[CID] = set()
    queue: deque[CID] = deque([descendant])
    while queue:
        cid = queue.popleft()
        if cid == candidate:
            return True
        if cid in visited:
            continue
        visited.add(cid)
        commit = _resolve_commit(cid, resolve)
        if commit:
            queue.extend(commit.parents)
    return False
