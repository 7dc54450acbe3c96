"""Copy-on-write rewrites of a content-addressed tree."""

from collections.abc import Callable

from prose_vcs.core.cid import CID
from prose_vcs.models.nodes import Node
from prose_vcs.protocols import Resolver


def replace_in_tree(
    root_cid: CID,
    old_cid: CID,
    new_cid: CID,
    resolve: Resolver,
    put: Callable[[Node], CID],
) -> CID:
    """Swap every reference to *old_cid* reachable from *root_cid* for *new_cid*.

    Each ancestor of a replaced reference is re-created with the new child
    and stored through *put*, so it gets a new CID too; untouched subtrees
    keep theirs. Each CID is rewritten once even when shared. Returns the
    CID of the rewritten root, which equals *root_cid* when *old_cid* does
    not occur.
    """
    memo: dict[CID, CID] = {}

    def rewrite(cid: CID) -> CID:
        if cid == old_cid:
            return new_cid
        if cid in memo:
            return memo[cid]
        node = resolve(cid)
        if node is None or not node.references():
            memo[cid] = cid
            return cid
        mapping = {ref: rewrite(ref) for ref in node.references()}
        updated = node.replace_references(mapping)
        result = cid if updated is node else put(updated)
        memo[cid] = result
        return result

    return rewrite(root_cid)


def split_path(path: str) -> list[str]:
    """Split a slash-separated tree path into its non-empty segments."""
    parts = [p for p in path.strip("/").split("/") if p]
    if not parts:
        msg = f"Empty path: {path!r}"
        raise ValueError(msg)
    return parts
