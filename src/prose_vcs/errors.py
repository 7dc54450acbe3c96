"""Exceptions raised by the version control engine.

Missing references are not errors: ``resolve`` returns ``None`` and the
walkers skip dangling subtrees. Exceptions are reserved for broken
preconditions the caller has to act on.
"""


class VersionControlError(Exception):
    """Base class for all prose-vcs errors."""


class CorruptStateError(VersionControlError):
    """The object store lost a node the engine cannot work without.

    Raised when a branch head or a commit's content root does not resolve.
    Retrying will not help; the repository needs repair.
    """


class BranchExistsError(VersionControlError, ValueError):
    """A live branch already uses the requested name."""


class BranchNotFoundError(VersionControlError, KeyError):
    """No live branch has the requested name."""


class CommitNotFoundError(VersionControlError, ValueError):
    """A CID given as a commit does not resolve to one."""


class DirtyWorkingTreeError(VersionControlError):
    """Checkout refused because it would drop uncommitted changes."""


class PathNotFoundError(VersionControlError, KeyError):
    """A slash-separated tree path does not lead to a directory."""
