"""Read-only traversals over a versioned tree.

Dangling references are expected (a partially applied edit can leave one
behind); every walk skips a CID that does not resolve and carries on.
"""

from loguru import logger

from prose_vcs.config import UNTITLED_DOCUMENT_PATH
from prose_vcs.core.cid import CID
from prose_vcs.models.nodes import Directory, Document, GrammarRoot
from prose_vcs.models.refs import DocumentInfo
from prose_vcs.protocols import Resolver


def get_documents(root_cid: CID, resolve: Resolver) -> list[DocumentInfo]:
    """List every document under a GrammarRoot, depth first, with its path.

    Paths are the directory names joined by ``/`` followed by the document
    name (``"Untitled"`` when unnamed), e.g. ``notes/daily/todo``.
    """
    root = resolve(root_cid)
    if not isinstance(root, GrammarRoot):
        return []

    docs: list[DocumentInfo] = []

    def walk_directory(directory: Directory, path_prefix: str) -> None:
        for child_cid in directory.children:
            child = resolve(child_cid)
            if child is None:
                logger.debug("Skipping dangling reference {} under {!r}", child_cid, path_prefix)
                continue
            if isinstance(child, Directory):
                walk_directory(child, f"{path_prefix}{child.name}/")
            elif isinstance(child, Document):
                docs.append(
                    DocumentInfo(
                        cid=child_cid,
                        doc=child,
                        path=f"{path_prefix}{child.name or UNTITLED_DOCUMENT_PATH}",
                    )
                )

    for dir_cid in root.content:
        directory = resolve(dir_cid)
        if isinstance(directory, Directory):
            walk_directory(directory, f"{directory.name}/")

    return docs


def find_document_by_path(root_cid: CID, path: str, resolve: Resolver) -> DocumentInfo | None:
    """Return the first document whose walker path equals *path*."""
    return next((d for d in get_documents(root_cid, resolve) if d.path == path), None)


def find_child_directory(
    directory: Directory | GrammarRoot, name: str, resolve: Resolver
) -> CID | None:
    """CID of the first sub-directory called *name*, if any."""
    refs = directory.content if isinstance(directory, GrammarRoot) else directory.children
    for cid in refs:
        child = resolve(cid)
        if isinstance(child, Directory) and child.name == name:
            return cid
    return None


def collect_all_cids(root_cid: CID, resolve: Resolver) -> set[CID]:
    """Every CID reachable from *root_cid*, the root included.

    Works on any node graph (trees, commits, block content) because it
    follows each node's declared references. CIDs that do not resolve are
    still reported, since something references them.
    """
    collected: set[CID] = set()
    stack = [root_cid]
    while stack:
        cid = stack.pop()
        if cid in collected:
            continue
        collected.add(cid)
        node = resolve(cid)
        if node is None:
            continue
        stack.extend(node.references())
    return collected


def collect_leaf_cids(root_cid: CID, resolve: Resolver) -> set[CID]:
    """CIDs of reachable nodes that reference nothing (text, code, empty folders).

    Unresolvable CIDs are not leaves; they are left out.
    """
    leaves: set[CID] = set()
    seen: set[CID] = set()
    stack = [root_cid]
    while stack:
        cid = stack.pop()
        if cid in seen:
            continue
        seen.add(cid)
        node = resolve(cid)
        if node is None:
            continue
        refs = node.references()
        if refs:
            stack.extend(refs)
        else:
            leaves.add(cid)
    return leaves
