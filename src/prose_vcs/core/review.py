"""Compare a feature branch with a base branch before merging it.

The merge itself never asks for help; this module tells a caller what a
merge would change and whether it needs a human decision.
"""

from dataclasses import dataclass

from prose_vcs.core.cid import CID
from prose_vcs.core.history import iter_first_parents
from prose_vcs.core.tree.walker import get_documents
from prose_vcs.errors import CorruptStateError
from prose_vcs.models.nodes import Commit
from prose_vcs.models.refs import Branch, DocumentInfo
from prose_vcs.protocols import Resolver


@dataclass(frozen=True)
class ChangedDocument:
    """The same path on both sides with different content."""

    base: DocumentInfo
    feature: DocumentInfo

    @property
    def path(self) -> str:
        return self.feature.path


@dataclass(frozen=True)
class DocumentDiff:
    """Path-keyed comparison of the documents in two trees."""

    added: tuple[DocumentInfo, ...] = ()
    removed: tuple[DocumentInfo, ...] = ()
    modified: tuple[ChangedDocument, ...] = ()
    unchanged: tuple[DocumentInfo, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified)


@dataclass(frozen=True)
class Review:
    """What merging a feature branch into a base branch would bring in.

    When the base moved on since the feature branched off, every modified
    document is reported under ``conflicts`` instead of ``modified``.
    """

    feature: Branch
    base: Branch
    diverged: bool
    added: tuple[DocumentInfo, ...] = ()
    removed: tuple[DocumentInfo, ...] = ()
    modified: tuple[ChangedDocument, ...] = ()
    conflicts: tuple[ChangedDocument, ...] = ()
    unchanged: tuple[DocumentInfo, ...] = ()

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)


def diff_documents(base_root: CID, feature_root: CID, resolve: Resolver) -> DocumentDiff:
    """Classify documents by path: added, removed, modified, or unchanged."""
    base_docs = {d.path: d for d in get_documents(base_root, resolve)}
    feature_docs = get_documents(feature_root, resolve)
    feature_paths = {d.path for d in feature_docs}

    added: list[DocumentInfo] = []
    modified: list[ChangedDocument] = []
    unchanged: list[DocumentInfo] = []
    for doc in feature_docs:
        base_doc = base_docs.get(doc.path)
        if base_doc is None:
            added.append(doc)
        elif base_doc.cid != doc.cid:
            modified.append(ChangedDocument(base=base_doc, feature=doc))
        else:
            unchanged.append(doc)

    removed = [d for path, d in base_docs.items() if path not in feature_paths]
    return DocumentDiff(
        added=tuple(added),
        removed=tuple(removed),
        modified=tuple(modified),
        unchanged=tuple(unchanged),
    )


def has_diverged(feature: Branch, base: Branch, resolve: Resolver) -> bool:
    """True if *base* gained commits the feature branch was not built on.

    Walks the feature head's first-parent chain looking for a commit whose
    parents include the current base head.
    """
    if feature.commit == base.commit:
        return False
    for _, commit in iter_first_parents(feature.commit, resolve):
        if base.commit in commit.parents:
            return False
    return True


def review_branch(feature: Branch, base: Branch, resolve: Resolver) -> Review:
    """Diff the heads of *feature* and *base* and flag conflicting edits."""
    feature_commit = resolve(feature.commit)
    base_commit = resolve(base.commit)
    if not isinstance(feature_commit, Commit) or not isinstance(base_commit, Commit):
        msg = f"Cannot review {feature.name!r} against {base.name!r}: a branch head does not resolve"
        raise CorruptStateError(msg)

    diff = diff_documents(base_commit.content, feature_commit.content, resolve)
    diverged = has_diverged(feature, base, resolve)
    return Review(
        feature=feature,
        base=base,
        diverged=diverged,
        added=diff.added,
        removed=diff.removed,
        modified=() if diverged else diff.modified,
        conflicts=diff.modified if diverged else (),
        unchanged=diff.unchanged,
    )
