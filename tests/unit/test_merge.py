"""Tests for the name-keyed tree merge."""

from prose_vcs.core.merge import merge_roots
from prose_vcs.core.tree.walker import get_documents
from prose_vcs.models.nodes import Directory, Document, GrammarRoot, Paragraph, Text
from tests.unit.fakes import FakeResolver


def _doc(r: FakeResolver, name: str | None, body: str) -> str:
    para = r.put(Paragraph(content=(r.put(Text(value=body)),)))
    return r.put(Document(name=name, content=(para,)))


def _root(r: FakeResolver, *dirs: Directory) -> str:
    return r.put(GrammarRoot(content=tuple(r.put(d) for d in dirs)))


def _paths_and_cids(root: str, r: FakeResolver) -> list[tuple[str, str]]:
    return [(d.path, d.cid) for d in get_documents(root, r)]


def test_same_folder_name_is_merged_into_one(resolver: FakeResolver) -> None:
    a = _doc(resolver, "a", "A")
    b = _doc(resolver, "b", "B")
    current = _root(resolver, Directory(name="docs", children=(a,)))
    source = _root(resolver, Directory(name="docs", children=(b,)))

    result = merge_roots(current, source, resolver, resolver.put)

    merged = resolver(result.root)
    assert isinstance(merged, GrammarRoot)
    assert len(merged.content) == 1
    assert _paths_and_cids(result.root, resolver) == [("docs/a", a), ("docs/b", b)]
    assert result.conflicts == ()


def test_document_collision_takes_source(resolver: FakeResolver) -> None:
    x1 = _doc(resolver, "x", "one")
    x2 = _doc(resolver, "x", "two")
    current = _root(resolver, Directory(name="docs", children=(x1,)))
    source = _root(resolver, Directory(name="docs", children=(x2,)))

    result = merge_roots(current, source, resolver, resolver.put)

    assert _paths_and_cids(result.root, resolver) == [("docs/x", x2)]
    assert result.conflicts == ("docs/x",)


def test_identical_documents_are_not_collisions(resolver: FakeResolver) -> None:
    x = _doc(resolver, "x", "same")
    current = _root(resolver, Directory(name="docs", children=(x,)))
    source = _root(resolver, Directory(name="docs", children=(x,)))

    result = merge_roots(current, source, resolver, resolver.put)

    assert result.conflicts == ()
    assert result.root == current


def test_type_mismatch_takes_source(resolver: FakeResolver) -> None:
    as_doc = _doc(resolver, "plans", "a document")
    as_dir = resolver.put(Directory(name="plans"))
    current = _root(resolver, Directory(name="docs", children=(as_doc,)))
    source = _root(resolver, Directory(name="docs", children=(as_dir,)))

    result = merge_roots(current, source, resolver, resolver.put)

    docs = resolver(resolver(result.root).content[0])  # type: ignore[union-attr]
    assert isinstance(docs, Directory)
    assert docs.children == (as_dir,)
    assert result.conflicts == ("docs/plans",)


def test_nested_folders_merge_recursively(resolver: FakeResolver) -> None:
    a = _doc(resolver, "a", "A")
    b = _doc(resolver, "b", "B")
    current = _root(
        resolver, Directory(name="top", children=(resolver.put(Directory(name="sub", children=(a,))),))
    )
    source = _root(
        resolver, Directory(name="top", children=(resolver.put(Directory(name="sub", children=(b,))),))
    )

    result = merge_roots(current, source, resolver, resolver.put)

    assert [p for p, _ in _paths_and_cids(result.root, resolver)] == ["top/sub/a", "top/sub/b"]


def test_ordering_current_first_then_source_only(resolver: FakeResolver) -> None:
    current = _root(resolver, Directory(name="b"), Directory(name="a"))
    source = _root(resolver, Directory(name="c"), Directory(name="a"), Directory(name="d"))

    result = merge_roots(current, source, resolver, resolver.put)

    merged = resolver(result.root)
    assert isinstance(merged, GrammarRoot)
    names = [resolver(cid).name for cid in merged.content]  # type: ignore[union-attr]
    assert names == ["b", "a", "c", "d"]


def test_unnamed_documents_share_a_key(resolver: FakeResolver) -> None:
    first = _doc(resolver, None, "first")
    second = _doc(resolver, None, "second")
    current = _root(resolver, Directory(name="docs", children=(first,)))
    source = _root(resolver, Directory(name="docs", children=(second,)))

    result = merge_roots(current, source, resolver, resolver.put)

    assert _paths_and_cids(result.root, resolver) == [("docs/Untitled", second)]
    assert result.conflicts == ("docs/untitled",)


def test_missing_current_side_returns_source(resolver: FakeResolver) -> None:
    source = _root(resolver, Directory(name="docs"))
    assert merge_roots("0" * 64, source, resolver, resolver.put).root == source


def test_missing_source_side_returns_current(resolver: FakeResolver) -> None:
    current = _root(resolver, Directory(name="docs"))
    assert merge_roots(current, "0" * 64, resolver, resolver.put).root == current


def test_both_sides_missing_gives_empty_root(resolver: FakeResolver) -> None:
    result = merge_roots("0" * 64, "1" * 64, resolver, resolver.put)
    assert resolver(result.root) == GrammarRoot()


def test_merge_is_deterministic(resolver: FakeResolver) -> None:
    a = _doc(resolver, "a", "A")
    b = _doc(resolver, "a", "B")
    current = _root(resolver, Directory(name="docs", children=(a,)), Directory(name="x"))
    source = _root(resolver, Directory(name="docs", children=(b,)), Directory(name="y"))

    first = merge_roots(current, source, resolver, resolver.put)
    second = merge_roots(current, source, resolver, resolver.put)

    assert first == second


def test_dangling_child_is_dropped(resolver: FakeResolver) -> None:
    a = _doc(resolver, "a", "A")
    gone = _doc(resolver, "gone", "G")
    current = _root(resolver, Directory(name="docs", children=(a, gone)))
    source = _root(resolver, Directory(name="docs", children=(a,)))
    resolver.forget(gone)

    result = merge_roots(current, source, resolver, resolver.put)

    assert _paths_and_cids(result.root, resolver) == [("docs/a", a)]
