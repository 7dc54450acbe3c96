"""Tests for tree walking."""

from prose_vcs.core.cid import compute_cid
from prose_vcs.core.tree.walker import (
    collect_all_cids,
    collect_leaf_cids,
    find_child_directory,
    find_document_by_path,
    get_documents,
)
from prose_vcs.models.nodes import (
    Commit,
    Directory,
    Document,
    Emphasis,
    GrammarRoot,
    Paragraph,
    Text,
)
from tests.unit.fakes import FakeResolver


def _build(r: FakeResolver) -> dict[str, str]:
    """notes/{todo, daily/monday}, plus an unnamed document in misc/."""
    cids: dict[str, str] = {}
    cids["text"] = r.put(Text(value="milk"))
    cids["para"] = r.put(Paragraph(content=(cids["text"],)))
    cids["todo"] = r.put(Document(name="todo", content=(cids["para"],)))
    cids["monday"] = r.put(Document(name="monday"))
    cids["daily"] = r.put(Directory(name="daily", children=(cids["monday"],)))
    cids["notes"] = r.put(Directory(name="notes", children=(cids["todo"], cids["daily"])))
    cids["unnamed"] = r.put(Document(created_at="2024-01-01T00:00:00.000Z"))
    cids["misc"] = r.put(Directory(name="misc", children=(cids["unnamed"],)))
    cids["root"] = r.put(GrammarRoot(content=(cids["notes"], cids["misc"])))
    return cids


def test_get_documents_depth_first_with_paths(resolver: FakeResolver) -> None:
    cids = _build(resolver)
    docs = get_documents(cids["root"], resolver)
    assert [(d.path, d.cid) for d in docs] == [
        ("notes/todo", cids["todo"]),
        ("notes/daily/monday", cids["monday"]),
        ("misc/Untitled", cids["unnamed"]),
    ]
    assert docs[0].doc.name == "todo"


def test_get_documents_on_missing_root(resolver: FakeResolver) -> None:
    assert get_documents("a" * 64, resolver) == []


def test_get_documents_skips_dangling_subtrees(resolver: FakeResolver) -> None:
    cids = _build(resolver)
    resolver.forget(cids["daily"])
    assert [d.path for d in get_documents(cids["root"], resolver)] == [
        "notes/todo",
        "misc/Untitled",
    ]


def test_find_document_by_path(resolver: FakeResolver) -> None:
    cids = _build(resolver)
    found = find_document_by_path(cids["root"], "notes/daily/monday", resolver)
    assert found is not None
    assert found.cid == cids["monday"]
    assert find_document_by_path(cids["root"], "notes/nope", resolver) is None


def test_find_child_directory(resolver: FakeResolver) -> None:
    cids = _build(resolver)
    root = resolver(cids["root"])
    notes = resolver(cids["notes"])
    assert isinstance(root, GrammarRoot)
    assert isinstance(notes, Directory)
    assert find_child_directory(root, "notes", resolver) == cids["notes"]
    assert find_child_directory(notes, "daily", resolver) == cids["daily"]
    assert find_child_directory(notes, "todo", resolver) is None


def test_collect_all_cids(resolver: FakeResolver) -> None:
    cids = _build(resolver)
    assert collect_all_cids(cids["root"], resolver) == set(cids.values())


def test_collect_all_cids_follows_commits(resolver: FakeResolver) -> None:
    cids = _build(resolver)
    first = resolver.put(
        Commit(parents=(), content=cids["root"], author="a", timestamp="t0", message="one")
    )
    second = resolver.put(
        Commit(parents=(first,), content=cids["root"], author="a", timestamp="t1", message="two")
    )
    reachable = collect_all_cids(second, resolver)
    assert {first, second, cids["text"]} <= reachable


def test_collect_all_cids_reports_dangling_refs(resolver: FakeResolver) -> None:
    cids = _build(resolver)
    resolver.forget(cids["daily"])
    reachable = collect_all_cids(cids["root"], resolver)
    assert cids["daily"] in reachable
    assert cids["monday"] not in reachable


def test_plain_values_shaped_like_cids_are_not_followed(resolver: FakeResolver) -> None:
    lookalike = compute_cid(Text(value="hidden"))
    text = resolver.put(Text(value=lookalike))
    assert collect_all_cids(text, resolver) == {text}


def test_collect_leaf_cids(resolver: FakeResolver) -> None:
    cids = _build(resolver)
    assert collect_leaf_cids(cids["root"], resolver) == {
        cids["text"],
        cids["monday"],
        cids["unnamed"],
    }


def test_collect_leaf_cids_inline_nesting(resolver: FakeResolver) -> None:
    text = resolver.put(Text(value="stress"))
    em = resolver.put(Emphasis(content=(text,)))
    para = resolver.put(Paragraph(content=(em,)))
    assert collect_leaf_cids(para, resolver) == {text}
