"""Configuration constants for prose-vcs."""

import os
from pathlib import Path

# Name of the branch every repository starts with. It can never be archived.
DEFAULT_BRANCH_NAME: str = "default"

# Author recorded on the bootstrap commit and on merge commits.
SYSTEM_AUTHOR: str = "system"
MERGE_AUTHOR: str = "merge"
INITIAL_COMMIT_MESSAGE: str = "initial commit"

# Name key for unnamed documents during a merge, and the path segment the
# tree walker shows for them.
UNTITLED_DOCUMENT_KEY: str = "untitled"
UNTITLED_DOCUMENT_PATH: str = "Untitled"

# Commits returned by the history view when no limit is given.
HISTORY_MAX_DEPTH: int = 50

# Length of a content identifier (hex-encoded SHA-256).
CID_LENGTH: int = 64

# Repository directory. The environment variable wins, otherwise the first
# directory which exists is used, otherwise the first candidate.
DATA_DIR_ENV_VAR: str = "PROSE_VCS_DATA_DIR"
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/prose-vcs").expanduser(),
    Path("~/.prose-vcs").expanduser(),
]

DATABASE_FILENAME: str = "repository.db"


def resolve_data_directory() -> Path:
    """Return the repository directory to use when none is given explicitly."""
    override = os.environ.get(DATA_DIR_ENV_VAR)
    if override:
        return Path(override).expanduser()
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]
