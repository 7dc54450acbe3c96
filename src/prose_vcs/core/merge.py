"""Name-keyed recursive merge of two versioned trees.

Directories are matched by name, documents by name (``"untitled"`` when
unnamed). Matching directories are merged recursively. Any other collision,
document against document or a type mismatch, is resolved by taking the
source side. Entries present on one side only are kept: those of the current
side in their original order first, then the source-only ones.

This only computes the merged tree. Whether a user should review the result
is a separate question answered by :mod:`prose_vcs.core.review`; the
collision paths returned here are informational.
"""

from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from prose_vcs.config import UNTITLED_DOCUMENT_KEY
from prose_vcs.core.cid import CID
from prose_vcs.models.nodes import Directory, Document, GrammarRoot, Node
from prose_vcs.protocols import Resolver


@dataclass(frozen=True)
class MergeResult:
    """Merged tree plus the paths of collisions that were resolved source-wins."""

    root: CID  # -> GrammarRoot
    conflicts: tuple[str, ...] = ()


@dataclass(frozen=True)
class MergeOutcome:
    """What a merge commit produced."""

    commit: CID  # -> Commit
    root: CID  # -> GrammarRoot
    conflicts: tuple[str, ...] = ()


def _child_key(node: Node) -> str | None:
    if isinstance(node, Directory):
        return node.name
    if isinstance(node, Document):
        return node.name or UNTITLED_DOCUMENT_KEY
    return None


class _TreeMerger:
    def __init__(self, resolve: Resolver, put: Callable[[Node], CID]) -> None:
        self.resolve = resolve
        self.put = put
        self.conflicts: list[str] = []

    def _keyed(self, refs: tuple[CID, ...], *, directories_only: bool) -> dict[str, CID]:
        """Map name -> CID. A later duplicate name replaces the CID but keeps the slot."""
        keyed: dict[str, CID] = {}
        for cid in refs:
            node = self.resolve(cid)
            if node is None:
                logger.debug("Merge skips dangling reference {}", cid)
                continue
            if directories_only and not isinstance(node, Directory):
                continue
            key = _child_key(node)
            if key:
                keyed[key] = cid
        return keyed

    def merge_roots(self, current_cid: CID, source_cid: CID) -> CID:
        current = self.resolve(current_cid)
        source = self.resolve(source_cid)
        current_ok = isinstance(current, GrammarRoot)
        source_ok = isinstance(source, GrammarRoot)

        if not current_ok and not source_ok:
            logger.warning("Neither side of the merge resolves; using an empty root")
            return self.put(GrammarRoot())
        if not current_ok:
            logger.warning("Current root {} does not resolve; source wins", current_cid)
            return source_cid
        if not source_ok:
            logger.warning("Source root {} does not resolve; current wins", source_cid)
            return current_cid

        current_dirs = self._keyed(current.content, directories_only=True)  # type: ignore[union-attr]
        source_dirs = self._keyed(source.content, directories_only=True)  # type: ignore[union-attr]

        merged: list[CID] = []
        for name, current_dir in current_dirs.items():
            source_dir = source_dirs.get(name)
            if source_dir is None:
                merged.append(current_dir)
            else:
                merged.append(self.merge_directories(current_dir, source_dir, f"{name}/"))
        merged.extend(cid for name, cid in source_dirs.items() if name not in current_dirs)

        return self.put(GrammarRoot(content=tuple(merged)))

    def merge_directories(self, current_cid: CID, source_cid: CID, path: str) -> CID:
        current = self.resolve(current_cid)
        source = self.resolve(source_cid)
        if not isinstance(current, Directory):
            return source_cid
        if not isinstance(source, Directory):
            return current_cid

        current_children = self._keyed(current.children, directories_only=False)
        source_children = self._keyed(source.children, directories_only=False)

        merged: list[CID] = []
        for name, current_child in current_children.items():
            source_child = source_children.get(name)
            if source_child is None:
                merged.append(current_child)
                continue
            if isinstance(self.resolve(current_child), Directory) and isinstance(
                self.resolve(source_child), Directory
            ):
                merged.append(self.merge_directories(current_child, source_child, f"{path}{name}/"))
                continue
            if current_child != source_child:
                logger.debug("Merge collision at {}{}: taking source", path, name)
                self.conflicts.append(f"{path}{name}")
            merged.append(source_child)
        merged.extend(cid for name, cid in source_children.items() if name not in current_children)

        return self.put(Directory(name=current.name, children=tuple(merged)))


def merge_roots(
    current_cid: CID,
    source_cid: CID,
    resolve: Resolver,
    put: Callable[[Node], CID],
) -> MergeResult:
    """Merge the GrammarRoot *source_cid* into *current_cid*.

    Args:
        current_cid: Root of the branch receiving the merge.
        source_cid: Root of the branch being merged in.
        resolve: Node lookup over both trees.
        put: Where newly built directories and the merged root are stored.

    Returns:
        MergeResult with the merged root CID and the collision paths.
    """
    merger = _TreeMerger(resolve, put)
    root = merger.merge_roots(current_cid, source_cid)
    return MergeResult(root=root, conflicts=tuple(merger.conflicts))
