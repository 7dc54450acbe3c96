"""Tests for copy-on-write tree rewrites."""

import pytest

from prose_vcs.core.tree.rewrite import replace_in_tree, split_path
from prose_vcs.models.nodes import Directory, Document, GrammarRoot, Paragraph, Text
from tests.unit.fakes import FakeResolver


def test_replace_rewrites_path_to_root(resolver: FakeResolver) -> None:
    old_text = resolver.put(Text(value="old"))
    para = resolver.put(Paragraph(content=(old_text,)))
    doc = resolver.put(Document(name="d", content=(para,)))
    folder = resolver.put(Directory(name="f", children=(doc,)))
    root = resolver.put(GrammarRoot(content=(folder,)))
    new_text = resolver.put(Text(value="new"))

    new_root = replace_in_tree(root, old_text, new_text, resolver, resolver.put)

    assert new_root != root
    expected_para = resolver.put(Paragraph(content=(new_text,)))
    expected_doc = resolver.put(Document(name="d", content=(expected_para,)))
    expected_folder = resolver.put(Directory(name="f", children=(expected_doc,)))
    assert new_root == resolver.put(GrammarRoot(content=(expected_folder,)))


def test_replace_every_occurrence(resolver: FakeResolver) -> None:
    old = resolver.put(Text(value="dup"))
    new = resolver.put(Text(value="fresh"))
    p1 = resolver.put(Paragraph(content=(old, old)))
    doc = resolver.put(Document(name="d", content=(p1,)))

    new_doc = replace_in_tree(doc, old, new, resolver, resolver.put)

    rewritten = resolver(new_doc)
    assert isinstance(rewritten, Document)
    assert resolver(rewritten.content[0]) == Paragraph(content=(new, new))


def test_untouched_subtrees_keep_their_cid(resolver: FakeResolver) -> None:
    old = resolver.put(Text(value="old"))
    other = resolver.put(Directory(name="other"))
    doc = resolver.put(Document(content=(resolver.put(Paragraph(content=(old,))),)))
    target = resolver.put(Directory(name="target", children=(doc,)))
    root = resolver.put(GrammarRoot(content=(target, other)))

    new_root = replace_in_tree(root, old, resolver.put(Text(value="new")), resolver, resolver.put)

    rewritten = resolver(new_root)
    assert isinstance(rewritten, GrammarRoot)
    assert rewritten.content[1] == other
    assert rewritten.content[0] != target


def test_no_occurrence_returns_same_root(resolver: FakeResolver) -> None:
    root = resolver.put(GrammarRoot(content=(resolver.put(Directory(name="a")),)))
    before = len(resolver.nodes)
    assert replace_in_tree(root, "9" * 64, "8" * 64, resolver, resolver.put) == root
    assert len(resolver.nodes) == before


def test_replacing_the_root_itself(resolver: FakeResolver) -> None:
    root = resolver.put(GrammarRoot())
    new = resolver.put(GrammarRoot(content=(resolver.put(Directory(name="a")),)))
    assert replace_in_tree(root, root, new, resolver, resolver.put) == new


def test_shared_subtree_is_resolved_once(resolver: FakeResolver) -> None:
    old = resolver.put(Text(value="old"))
    shared = resolver.put(Paragraph(content=(old,)))
    doc = resolver.put(Document(name="d", content=(shared, shared, shared)))
    resolver.lookups.clear()

    replace_in_tree(doc, old, resolver.put(Text(value="new")), resolver, resolver.put)

    assert resolver.lookups.count(shared) == 1


def test_split_path() -> None:
    assert split_path("notes/daily/") == ["notes", "daily"]
    assert split_path("/notes//todo") == ["notes", "todo"]
    with pytest.raises(ValueError):
        split_path("//")
