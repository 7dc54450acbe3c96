"""Content-addressed version control for trees of prose documents."""

from prose_vcs.core.engine import VersionControl
from prose_vcs.core.merge import MergeOutcome, MergeResult
from prose_vcs.errors import (
    BranchExistsError,
    BranchNotFoundError,
    CommitNotFoundError,
    CorruptStateError,
    DirtyWorkingTreeError,
    PathNotFoundError,
    VersionControlError,
)
from prose_vcs.models.refs import Branch, CommitNode, DocumentInfo

__version__ = "0.1.0"

__all__ = [
    "Branch",
    "BranchExistsError",
    "BranchNotFoundError",
    "CommitNode",
    "CommitNotFoundError",
    "CorruptStateError",
    "DirtyWorkingTreeError",
    "DocumentInfo",
    "MergeOutcome",
    "MergeResult",
    "PathNotFoundError",
    "VersionControl",
    "VersionControlError",
]
