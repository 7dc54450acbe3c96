"""In-memory object store."""

from collections.abc import Iterator

from prose_vcs.core.cid import CID, compute_cid
from prose_vcs.models.nodes import Node
from prose_vcs.protocols import ObjectStoreProtocol


class MemoryObjectStore:
    """Dict-backed content-addressed store.

    Putting the same content twice keeps a single entry, so identical
    subtrees are stored once.
    """

    def __init__(self) -> None:
        self._objects: dict[CID, Node] = {}

    def put(self, node: Node) -> CID:
        cid = compute_cid(node)
        self._objects[cid] = node
        return cid

    def store(self, cid: CID, node: Node) -> None:
        self._objects[cid] = node

    def get(self, cid: CID) -> Node | None:
        return self._objects.get(cid)

    def has(self, cid: CID) -> bool:
        return cid in self._objects

    def items(self) -> Iterator[tuple[CID, Node]]:
        return iter(list(self._objects.items()))

    def clear(self) -> None:
        self._objects.clear()

    def transfer_to(self, target: ObjectStoreProtocol) -> None:
        for cid, node in self._objects.items():
            target.store(cid, node)

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, cid: object) -> bool:
        return cid in self._objects
