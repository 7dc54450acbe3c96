"""Render documents as markdown, and build simple documents from plain text."""

import io
import re
from collections.abc import Callable

from prose_vcs.core.cid import CID
from prose_vcs.models.nodes import (
    BlockQuote,
    CodeBlock,
    CodeSpan,
    Document,
    Emphasis,
    Heading,
    HorizontalRule,
    Image,
    Link,
    ListBlock,
    ListItem,
    Node,
    Paragraph,
    Strong,
    Text,
)
from prose_vcs.protocols import Resolver

_HEADING_RE = re.compile(r"(#{1,6})\s+(.*)")
_BULLET_RE = re.compile(r"[-*]\s+(.*)")
_ORDERED_RE = re.compile(r"\d+[.)]\s+(.*)")


def _render_inline(cids: tuple[CID, ...], resolve: Resolver) -> str:
    out = io.StringIO()
    for cid in cids:
        node = resolve(cid)
        if isinstance(node, Text):
            out.write(node.value)
        elif isinstance(node, Emphasis):
            out.write(f"*{_render_inline(node.content, resolve)}*")
        elif isinstance(node, Strong):
            out.write(f"**{_render_inline(node.content, resolve)}**")
        elif isinstance(node, CodeSpan):
            out.write(f"`{node.value}`")
        elif isinstance(node, Link):
            out.write(f"[{_render_inline(node.content, resolve)}]({node.href})")
        elif isinstance(node, Image):
            out.write(f"![{node.alt}]({node.src})")
    return out.getvalue()


def _render_block(node: Node, resolve: Resolver) -> list[str]:
    """Render one block node as a list of lines."""
    if isinstance(node, Heading):
        return [f"{'#' * node.level} {_render_inline(node.content, resolve)}"]
    if isinstance(node, Paragraph):
        return _render_inline(node.content, resolve).split("\n")
    if isinstance(node, HorizontalRule):
        return ["---"]
    if isinstance(node, CodeBlock):
        return [f"```{node.language or ''}", *node.value.split("\n"), "```"]
    if isinstance(node, BlockQuote):
        lines = _render_blocks(node.content, resolve)
        return [f"> {line}" if line else ">" for line in lines]
    if isinstance(node, ListBlock):
        lines: list[str] = []
        for i, item_cid in enumerate(node.items, start=1):
            item = resolve(item_cid)
            if not isinstance(item, ListItem):
                continue
            marker = f"{i}. " if node.ordered else "- "
            item_lines = _render_blocks(item.content, resolve) or [""]
            lines.append(f"{marker}{item_lines[0]}")
            lines.extend(f"{' ' * len(marker)}{line}" if line else "" for line in item_lines[1:])
        return lines
    if isinstance(node, ListItem):
        return _render_blocks(node.content, resolve)
    return []


def _render_blocks(cids: tuple[CID, ...], resolve: Resolver) -> list[str]:
    lines: list[str] = []
    for cid in cids:
        node = resolve(cid)
        if node is None:
            continue
        if lines:
            lines.append("")
        lines.extend(_render_block(node, resolve))
    return lines


def render_document_as_markdown(
    doc_cid: CID,
    resolve: Resolver,
    *,
    include_title: bool = False,
) -> str:
    """Render a document's blocks as markdown.

    Args:
        doc_cid: The document to render.
        resolve: Node lookup.
        include_title: Prefix the output with the document name as a heading.

    Returns:
        Markdown text, or an empty string if the document does not resolve.
    """
    doc = resolve(doc_cid)
    if not isinstance(doc, Document):
        return ""

    out = io.StringIO()
    if include_title and doc.name:
        out.write(f"# {doc.name}\n\n")
    for line in _render_blocks(doc.content, resolve):
        out.write(f"{line}\n")
    return out.getvalue()


def blocks_from_text(text: str, put: Callable[[Node], CID]) -> tuple[CID, ...]:
    """Store plain text as block nodes and return their CIDs in order.

    Understands a small subset of markdown: ``#`` headings, fenced code,
    ``---`` rules, ``-``/``1.`` lists, ``>`` quotes, and blank-line
    separated paragraphs. Inline markup is kept as literal text.
    """
    blocks: list[CID] = []
    lines = text.splitlines()
    i = 0

    def paragraph(body: str) -> CID:
        return put(Paragraph(content=(put(Text(value=body)),)))

    while i < len(lines):
        line = lines[i]
        stripped = line.strip()

        if not stripped:
            i += 1
            continue

        if stripped.startswith("```"):
            language = stripped[3:].strip() or None
            body: list[str] = []
            i += 1
            while i < len(lines) and not lines[i].strip().startswith("```"):
                body.append(lines[i])
                i += 1
            i += 1  # closing fence
            blocks.append(put(CodeBlock(value="\n".join(body), language=language)))
            continue

        if stripped in ("---", "***", "___"):
            blocks.append(put(HorizontalRule()))
            i += 1
            continue

        heading = _HEADING_RE.fullmatch(stripped)
        if heading:
            content = (put(Text(value=heading.group(2))),)
            blocks.append(put(Heading(level=len(heading.group(1)), content=content)))
            i += 1
            continue

        list_re = _BULLET_RE if _BULLET_RE.fullmatch(stripped) else None
        if list_re is None and _ORDERED_RE.fullmatch(stripped):
            list_re = _ORDERED_RE
        if list_re is not None:
            items: list[CID] = []
            while i < len(lines) and (match := list_re.fullmatch(lines[i].strip())):
                items.append(put(ListItem(content=(paragraph(match.group(1)),))))
                i += 1
            blocks.append(put(ListBlock(ordered=list_re is _ORDERED_RE, items=tuple(items))))
            continue

        if stripped.startswith(">"):
            quoted: list[str] = []
            while i < len(lines) and lines[i].strip().startswith(">"):
                quoted.append(lines[i].strip()[1:].lstrip())
                i += 1
            blocks.append(put(BlockQuote(content=(paragraph("\n".join(quoted)),))))
            continue

        para: list[str] = []
        while i < len(lines) and lines[i].strip() and not _starts_block(lines[i].strip()):
            para.append(lines[i].strip())
            i += 1
        if not para:
            # A block marker that did not parse as a block; keep it as text.
            para.append(stripped)
            i += 1
        blocks.append(paragraph("\n".join(para)))

    return tuple(blocks)


def _starts_block(stripped: str) -> bool:
    return (
        stripped.startswith(("```", ">"))
        or stripped in ("---", "***", "___")
        or _HEADING_RE.fullmatch(stripped) is not None
        or _BULLET_RE.fullmatch(stripped) is not None
        or _ORDERED_RE.fullmatch(stripped) is not None
    )
