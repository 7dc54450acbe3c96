"""Protocols for the storage seams of the version control engine."""

from collections.abc import Iterator
from typing import Protocol, runtime_checkable

from prose_vcs.core.cid import CID
from prose_vcs.models.nodes import Node
from prose_vcs.models.refs import EngineState


@runtime_checkable
class Resolver(Protocol):
    """Look up a node by CID. Returns ``None`` when no store holds it."""

    def __call__(self, cid: CID) -> Node | None: ...


@runtime_checkable
class ObjectStoreProtocol(Protocol):
    """Content-addressed map from CID to immutable node."""

    def put(self, node: Node) -> CID:
        """Store a node under its content identifier and return the CID."""
        ...

    def store(self, cid: CID, node: Node) -> None:
        """Store a node under an already computed CID."""
        ...

    def get(self, cid: CID) -> Node | None:
        """Return the node for *cid*, or None if not stored here."""
        ...

    def has(self, cid: CID) -> bool:
        """Check whether *cid* is stored here."""
        ...

    def items(self) -> Iterator[tuple[CID, Node]]:
        """Iterate over all stored (cid, node) pairs."""
        ...

    def clear(self) -> None:
        """Drop every stored node."""
        ...

    def transfer_to(self, target: "ObjectStoreProtocol") -> None:
        """Copy every entry into *target*. Never removes anything from *target*."""
        ...

    def __len__(self) -> int: ...


@runtime_checkable
class StateStoreProtocol(Protocol):
    """Durable home for the engine's branch set and working root."""

    def load(self) -> EngineState | None:
        """Return the saved session, or None if nothing was saved yet."""
        ...

    def save(self, state: EngineState) -> None:
        """Persist the session, replacing what was saved before."""
        ...
