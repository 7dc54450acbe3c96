"""Immutable, content-addressed node types.

Every node is a frozen dataclass tagged with a ``type`` string. Fields that
point at other nodes are named in ``ref_fields`` and hold CIDs (or tuples of
CIDs); every other field is a plain value. Traversals go through
``references()`` and never guess from the shape of a string.
"""

from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any, ClassVar, TypeAlias

from prose_vcs.core.cid import CID, is_cid


class Node:
    """Behaviour shared by all node dataclasses."""

    type: ClassVar[str]
    ref_fields: ClassVar[tuple[str, ...]] = ()

    def __post_init__(self) -> None:
        for name in self.ref_fields:
            value = getattr(self, name)
            if isinstance(value, list):
                value = tuple(value)
                object.__setattr__(self, name, value)
            refs = value if isinstance(value, tuple) else (value,)
            for ref in refs:
                if not is_cid(ref):
                    msg = f"{type(self).__name__}.{name} must hold CIDs, got {ref!r}"
                    raise ValueError(msg)
        self._validate()

    def _validate(self) -> None:
        pass

    def references(self) -> tuple[CID, ...]:
        """CIDs of the nodes this node points at, in field order."""
        refs: list[CID] = []
        for name in self.ref_fields:
            value = getattr(self, name)
            if isinstance(value, tuple):
                refs.extend(value)
            else:
                refs.append(value)
        return tuple(refs)

    def replace_references(self, mapping: Mapping[CID, CID]) -> "Node":
        """Return a copy with references swapped according to *mapping*.

        Returns ``self`` when nothing changes, so callers can detect a no-op
        with an identity check.
        """
        changes: dict[str, Any] = {}
        for name in self.ref_fields:
            value = getattr(self, name)
            if isinstance(value, tuple):
                new_value: Any = tuple(mapping.get(v, v) for v in value)
            else:
                new_value = mapping.get(value, value)
            if new_value != value:
                changes[name] = new_value
        if not changes:
            return self
        return replace(self, **changes)  # type: ignore[type-var]

    def to_dict(self) -> dict[str, Any]:
        """Plain-data form used for hashing and persistence. ``None`` fields are dropped."""
        data: dict[str, Any] = {"type": self.type}
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if value is None:
                continue
            data[f.name] = list(value) if isinstance(value, tuple) else value
        return data


# ---------------------------------------------------------------------------
# Filesystem
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GrammarRoot(Node):
    """Root of a versioned tree: an ordered list of top-level directories."""

    type: ClassVar[str] = "grammar_root"
    ref_fields: ClassVar[tuple[str, ...]] = ("content",)

    content: tuple[CID, ...] = ()


@dataclass(frozen=True)
class Directory(Node):
    """A named folder holding directories and documents."""

    type: ClassVar[str] = "folder"
    ref_fields: ClassVar[tuple[str, ...]] = ("children",)

    name: str
    children: tuple[CID, ...] = ()


@dataclass(frozen=True)
class Document(Node):
    """A leaf container of prose blocks."""

    type: ClassVar[str] = "document"
    ref_fields: ClassVar[tuple[str, ...]] = ("content",)

    name: str | None = None
    created_at: str | None = None
    content: tuple[CID, ...] = ()


# ---------------------------------------------------------------------------
# Block nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Heading(Node):
    type: ClassVar[str] = "heading"
    ref_fields: ClassVar[tuple[str, ...]] = ("content",)

    level: int
    content: tuple[CID, ...] = ()

    def _validate(self) -> None:
        if not 1 <= self.level <= 6:
            msg = f"heading level must be between 1 and 6, got {self.level!r}"
            raise ValueError(msg)


@dataclass(frozen=True)
class Paragraph(Node):
    type: ClassVar[str] = "paragraph"
    ref_fields: ClassVar[tuple[str, ...]] = ("content",)

    content: tuple[CID, ...] = ()


@dataclass(frozen=True)
class ListBlock(Node):
    """An ordered or bullet list; ``items`` point at ListItem nodes."""

    type: ClassVar[str] = "list"
    ref_fields: ClassVar[tuple[str, ...]] = ("items",)

    ordered: bool = False
    items: tuple[CID, ...] = ()


@dataclass(frozen=True)
class ListItem(Node):
    type: ClassVar[str] = "list_item"
    ref_fields: ClassVar[tuple[str, ...]] = ("content",)

    content: tuple[CID, ...] = ()


@dataclass(frozen=True)
class CodeBlock(Node):
    type: ClassVar[str] = "code_block"

    value: str
    language: str | None = None


@dataclass(frozen=True)
class BlockQuote(Node):
    type: ClassVar[str] = "blockquote"
    ref_fields: ClassVar[tuple[str, ...]] = ("content",)

    content: tuple[CID, ...] = ()


@dataclass(frozen=True)
class HorizontalRule(Node):
    type: ClassVar[str] = "horizontal_rule"


# ---------------------------------------------------------------------------
# Inline nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Text(Node):
    type: ClassVar[str] = "text"

    value: str


@dataclass(frozen=True)
class Emphasis(Node):
    type: ClassVar[str] = "emphasis"
    ref_fields: ClassVar[tuple[str, ...]] = ("content",)

    content: tuple[CID, ...] = ()


@dataclass(frozen=True)
class Strong(Node):
    type: ClassVar[str] = "strong"
    ref_fields: ClassVar[tuple[str, ...]] = ("content",)

    content: tuple[CID, ...] = ()


@dataclass(frozen=True)
class CodeSpan(Node):
    type: ClassVar[str] = "code_span"

    value: str


@dataclass(frozen=True)
class Link(Node):
    type: ClassVar[str] = "link"
    ref_fields: ClassVar[tuple[str, ...]] = ("content",)

    href: str
    content: tuple[CID, ...] = ()


@dataclass(frozen=True)
class Image(Node):
    type: ClassVar[str] = "image"

    src: str
    alt: str = ""


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Commit(Node):
    """A tree snapshot plus its parent commits.

    ``parents`` is empty for the bootstrap commit, holds one CID for an
    ordinary commit, and two for a merge (target head first, source head
    second). ``timestamp`` is an ISO-8601 string.
    """

    type: ClassVar[str] = "commit"
    ref_fields: ClassVar[tuple[str, ...]] = ("parents", "content")

    parents: tuple[CID, ...]
    content: CID
    author: str
    timestamp: str
    message: str

    def _validate(self) -> None:
        if len(self.parents) > 2:
            msg = f"commit may have at most two parents, got {len(self.parents)}"
            raise ValueError(msg)


BlockNode: TypeAlias = (
    Heading | Paragraph | ListBlock | ListItem | CodeBlock | BlockQuote | HorizontalRule
)
InlineNode: TypeAlias = Text | Emphasis | Strong | CodeSpan | Link | Image
AnyNode: TypeAlias = GrammarRoot | Directory | Document | BlockNode | InlineNode | Commit

NODE_TYPES: dict[str, type[Node]] = {
    cls.type: cls
    for cls in (
        GrammarRoot,
        Directory,
        Document,
        Heading,
        Paragraph,
        ListBlock,
        ListItem,
        CodeBlock,
        BlockQuote,
        HorizontalRule,
        Text,
        Emphasis,
        Strong,
        CodeSpan,
        Link,
        Image,
        Commit,
    )
}


def node_from_dict(data: Mapping[str, Any]) -> Node:
    """Rebuild a node from the output of ``Node.to_dict``."""
    type_tag = data.get("type")
    cls = NODE_TYPES.get(type_tag)  # type: ignore[arg-type]
    if cls is None:
        msg = f"Unknown node type: {type_tag!r}"
        raise ValueError(msg)
    kwargs = {k: tuple(v) if isinstance(v, list) else v for k, v in data.items() if k != "type"}
    return cls(**kwargs)
