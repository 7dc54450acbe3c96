"""Content identifiers: SHA-256 over a canonical JSON encoding of a node."""

from __future__ import annotations

import hashlib
import json
import re
from typing import TYPE_CHECKING, Any, TypeAlias

from prose_vcs.config import CID_LENGTH

if TYPE_CHECKING:
    from prose_vcs.models.nodes import Node

# Hex digest of a node. The node type it points at lives only in annotations
# (``CID  # -> Commit``); at runtime every CID is the same opaque string.
CID: TypeAlias = str

_CID_RE = re.compile(rf"[0-9a-f]{{{CID_LENGTH}}}")


def is_cid(value: Any) -> bool:
    """Check whether *value* has the shape of a content identifier."""
    return isinstance(value, str) and _CID_RE.fullmatch(value) is not None


def canonical_encoding(node: Node) -> bytes:
    """Serialize a node so that equal content always yields equal bytes.

    Keys are sorted and whitespace is fixed, so field insertion order never
    leaks into the encoding. Referenced nodes appear as their CIDs. Non-ASCII
    characters are written as \\u escapes, so any Python string encodes,
    lone surrogates included.
    """
    return json.dumps(node.to_dict(), sort_keys=True, separators=(",", ":")).encode("ascii")


def compute_cid(node: Node) -> CID:
    """Return the content identifier of *node*."""
    return hashlib.sha256(canonical_encoding(node)).hexdigest()
