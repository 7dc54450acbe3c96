"""Mutable references and read-only view records."""

from dataclasses import dataclass, field
from uuid import uuid4

from prose_vcs.core.cid import CID
from prose_vcs.models.nodes import Commit, Document


@dataclass
class Branch:
    """A named, movable pointer to a commit. Identity is ``uuid``, not the name."""

    name: str
    commit: CID  # -> Commit
    uuid: str = field(default_factory=lambda: str(uuid4()))


@dataclass(frozen=True)
class DocumentInfo:
    """A document found by the tree walker, with its slash-joined path."""

    cid: CID  # -> Document
    doc: Document
    path: str


@dataclass(frozen=True)
class CommitNode:
    """A commit annotated for history display."""

    cid: CID  # -> Commit
    commit: Commit
    branches: tuple[Branch, ...] = ()
    is_merge_commit: bool = False


@dataclass
class EngineState:
    """The mutable session of one engine: live branches and what is being edited.

    ``default_branch`` and ``current_branch`` are members of ``branches``.
    """

    branches: list[Branch]
    default_branch: Branch
    current_branch: Branch
    working_root: CID  # -> GrammarRoot
    archived_branches: list[Branch] = field(default_factory=list)
