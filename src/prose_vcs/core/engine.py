"""The version control engine: object store tiers, branches, commits, merges.

Edits go into the working tier. ``commit`` folds the working tier into the
source-of-truth tier and records a commit on the current branch; ``merge``
combines two branch heads into a two-parent commit. All node updates are
copy-on-write, and every operation finishes by repointing a single CID
(the working root or a branch head).
"""

from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime

from loguru import logger

from prose_vcs.config import (
    DEFAULT_BRANCH_NAME,
    INITIAL_COMMIT_MESSAGE,
    MERGE_AUTHOR,
    SYSTEM_AUTHOR,
)
from prose_vcs.core.cid import CID
from prose_vcs.core.merge import MergeOutcome, merge_roots
from prose_vcs.core.store.memory import MemoryObjectStore
from prose_vcs.core.tree.rewrite import replace_in_tree, split_path
from prose_vcs.core.tree.walker import find_child_directory, get_documents
from prose_vcs.errors import (
    BranchExistsError,
    BranchNotFoundError,
    CommitNotFoundError,
    CorruptStateError,
    DirtyWorkingTreeError,
    PathNotFoundError,
)
from prose_vcs.models.nodes import Commit, Directory, Document, GrammarRoot, Node
from prose_vcs.models.refs import Branch, DocumentInfo, EngineState
from prose_vcs.protocols import ObjectStoreProtocol, StateStoreProtocol


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class VersionControl:
    """Content-addressed version control over a tree of documents.

    With no arguments everything lives in memory. Pass durable stores (see
    :mod:`prose_vcs.core.store.sqlite`) to keep history and branches across
    processes; a saved session is picked up, otherwise a fresh repository
    with an empty initial commit on the default branch is created.

    Not safe for concurrent writers: one engine per repository at a time.
    """

    def __init__(
        self,
        *,
        source: ObjectStoreProtocol | None = None,
        working: ObjectStoreProtocol | None = None,
        state: StateStoreProtocol | None = None,
    ) -> None:
        self._source: ObjectStoreProtocol = source if source is not None else MemoryObjectStore()
        self._working: ObjectStoreProtocol = working if working is not None else MemoryObjectStore()
        self._state_store = state

        loaded = state.load() if state is not None else None
        if loaded is None:
            self._state = self._bootstrap()
            self._save()
        else:
            self._state = loaded
            logger.debug("Resumed on branch '{}'", loaded.current_branch.name)

    def _bootstrap(self) -> EngineState:
        root_cid = self._source.put(GrammarRoot())
        commit_cid = self._source.put(
            Commit(
                parents=(),
                content=root_cid,
                author=SYSTEM_AUTHOR,
                timestamp=utc_timestamp(),
                message=INITIAL_COMMIT_MESSAGE,
            )
        )
        default = Branch(name=DEFAULT_BRANCH_NAME, commit=commit_cid)
        logger.debug("Initialized repository with commit {}", commit_cid)
        return EngineState(
            branches=[default],
            default_branch=default,
            current_branch=default,
            working_root=root_cid,
        )

    def _save(self) -> None:
        if self._state_store is not None:
            self._state_store.save(self._state)

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def put(self, node: Node) -> CID:
        """Store a node in the working tier and return its CID."""
        return self._working.put(node)

    def resolve(self, cid: CID) -> Node | None:
        """Look a CID up in the working tier, then the source of truth."""
        node = self._working.get(cid)
        if node is None:
            node = self._source.get(cid)
        return node

    def _resolve_commit(self, cid: CID) -> Commit:
        commit = self.resolve(cid)
        if not isinstance(commit, Commit):
            msg = f"Commit {cid} does not resolve"
            raise CorruptStateError(msg)
        return commit

    # ------------------------------------------------------------------
    # Working state
    # ------------------------------------------------------------------

    def get_working_root(self) -> CID:
        return self._state.working_root

    def set_working_root(self, cid: CID) -> None:
        self._state.working_root = cid
        self._save()
        logger.debug("Working root is now {}", cid[:12])

    def set_root(self, root: GrammarRoot) -> CID:
        """Store *root* in the working tier and make it the working root."""
        cid = self._working.put(root)
        self.set_working_root(cid)
        return cid

    def head_commit(self) -> Commit:
        """The commit the current branch points at."""
        return self._resolve_commit(self._state.current_branch.commit)

    def is_dirty(self) -> bool:
        """True if the working root differs from the current head's content."""
        return self.head_commit().content != self._state.working_root

    def discard(self) -> None:
        """Drop uncommitted work and go back to the current head."""
        head = self.head_commit()
        self._working.clear()
        self._state.working_root = head.content
        self._save()
        logger.info("Discarded uncommitted changes on '{}'", self._state.current_branch.name)

    def view_commit(self, commit_cid: CID) -> CID:
        """Point the working root at a historical commit's tree and return it.

        The current branch does not move, so the engine reports dirty until
        the view is committed or discarded.
        """
        commit = self._resolve_commit(commit_cid)
        self.set_working_root(commit.content)
        return commit.content

    def update_node(self, old_cid: CID, new_node: Node) -> CID:
        """Store *new_node* and substitute it for *old_cid* everywhere in the working tree.

        Every ancestor of a replaced reference is re-created, up to a new
        working root.
        """
        new_cid = self._working.put(new_node)
        root_cid = self._state.working_root
        if self.resolve(root_cid) is None:
            logger.debug("Working root {} does not resolve; only stored the new node", root_cid)
            return new_cid
        new_root = replace_in_tree(root_cid, old_cid, new_cid, self.resolve, self._working.put)
        if new_root != root_cid:
            self.set_working_root(new_root)
        return new_cid

    def documents(self) -> list[DocumentInfo]:
        """Documents in the working tree, with their paths."""
        return get_documents(self._state.working_root, self.resolve)

    # ------------------------------------------------------------------
    # Path-based editing
    # ------------------------------------------------------------------

    def _working_root_node(self) -> GrammarRoot:
        root = self.resolve(self._state.working_root)
        if not isinstance(root, GrammarRoot):
            msg = f"Working root {self._state.working_root} does not resolve"
            raise CorruptStateError(msg)
        return root

    def _rebuild_path(
        self,
        parent: GrammarRoot | Directory,
        parts: list[str],
        edit: Callable[[Directory], Directory],
        prefix: str = "",
    ) -> tuple[GrammarRoot | Directory, CID]:
        """Apply *edit* to the directory at *parts* below *parent*, creating missing ones.

        Only the nodes on that one path are re-created; other references to
        the same CIDs elsewhere in the tree are left alone. Returns the new
        parent and the CID of the edited directory.
        """
        name = parts[0]
        refs = parent.content if isinstance(parent, GrammarRoot) else parent.children
        child_cid = find_child_directory(parent, name, self.resolve)
        if child_cid is None:
            child = Directory(name=name)
            logger.debug("Created directory {}{}", prefix, name)
        else:
            resolved = self.resolve(child_cid)
            if not isinstance(resolved, Directory):
                raise PathNotFoundError(f"{prefix}{name}")
            child = resolved

        if len(parts) == 1:
            new_child = edit(child)
            new_child_cid = self._working.put(new_child)
            leaf_cid = new_child_cid
        else:
            new_child, leaf_cid = self._rebuild_path(child, parts[1:], edit, f"{prefix}{name}/")
            new_child_cid = self._working.put(new_child)

        if child_cid is None:
            new_refs = (*refs, new_child_cid)
        else:
            index = refs.index(child_cid)
            new_refs = (*refs[:index], new_child_cid, *refs[index + 1:])

        if isinstance(parent, GrammarRoot):
            return replace(parent, content=new_refs), leaf_cid
        return replace(parent, children=new_refs), leaf_cid

    def _edit_directory(self, parts: list[str], edit: Callable[[Directory], Directory]) -> CID:
        new_root, leaf_cid = self._rebuild_path(self._working_root_node(), parts, edit)
        self.set_root(new_root)  # type: ignore[arg-type]
        return leaf_cid

    def add_directory(self, path: str) -> CID:
        """Create the directory at *path*, and any missing parents. Returns its CID.

        Existing directories are reused, so calling this twice is harmless.
        """
        return self._edit_directory(split_path(path), lambda directory: directory)

    def write_document(
        self,
        path: str,
        blocks: tuple[CID, ...],
        *,
        created_at: str | None = None,
    ) -> CID:
        """Create or replace the document at *path* with the given block CIDs.

        The last path segment is the document name; the rest is the folder,
        created if missing. Documents cannot sit directly under the root.
        An existing document keeps its creation time. Only the document at
        *path* changes, even when identical content sits elsewhere.
        """
        parts = split_path(path)
        if len(parts) < 2:
            msg = f"Documents must live inside a directory: {path!r}"
            raise ValueError(msg)
        name = parts[-1]
        doc_cid = ""

        def put_document(directory: Directory) -> Directory:
            nonlocal doc_cid
            for index, child_cid in enumerate(directory.children):
                existing = self.resolve(child_cid)
                if isinstance(existing, Document) and existing.name == name:
                    doc_cid = self._working.put(replace(existing, content=tuple(blocks)))
                    children = (
                        *directory.children[:index], doc_cid, *directory.children[index + 1:]
                    )
                    return replace(directory, children=children)
            doc_cid = self._working.put(
                Document(name=name, created_at=created_at or utc_timestamp(), content=tuple(blocks))
            )
            return replace(directory, children=(*directory.children, doc_cid))

        self._edit_directory(parts[:-1], put_document)
        return doc_cid

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def get_current_branch(self) -> Branch:
        return self._state.current_branch

    def get_branches(self) -> list[Branch]:
        return list(self._state.branches)

    def get_default_branch(self) -> Branch:
        return self._state.default_branch

    def get_archived_branches(self) -> list[Branch]:
        return list(self._state.archived_branches)

    def get_branch(self, name: str) -> Branch | None:
        """The live branch called *name*, if any."""
        return next((b for b in self._state.branches if b.name == name), None)

    def _live(self, branch: Branch) -> Branch | None:
        return next((b for b in self._state.branches if b.uuid == branch.uuid), None)

    def _own(self, branch: Branch) -> Branch:
        """The engine's instance of *branch*, which carries the up-to-date head."""
        for candidate in (*self._state.branches, *self._state.archived_branches):
            if candidate.uuid == branch.uuid:
                return candidate
        return branch

    def create_branch(
        self,
        name: str,
        *,
        from_commit: CID | None = None,
        carry_working_state: bool = False,
    ) -> Branch:
        """Create a branch at *from_commit* (default: the current head).

        With ``carry_working_state`` the uncommitted work is folded into the
        source of truth, the new branch becomes current, and the working
        root is kept, so in-progress edits move onto the new branch.
        Otherwise the current branch and working state are untouched.

        Raises:
            BranchExistsError: A live branch is already called *name*.
            CommitNotFoundError: *from_commit* does not resolve to a commit.
        """
        if self.get_branch(name) is not None:
            msg = f"Branch '{name}' already exists"
            raise BranchExistsError(msg)
        if from_commit is not None and not isinstance(self.resolve(from_commit), Commit):
            msg = f"No commit {from_commit!r} to branch from"
            raise CommitNotFoundError(msg)

        branch = Branch(name=name, commit=from_commit or self._state.current_branch.commit)
        self._state.branches.append(branch)

        if carry_working_state:
            self._working.transfer_to(self._source)
            self._working.clear()
            self._state.current_branch = branch
            logger.debug("Carried working state onto new branch '{}'", name)

        self._save()
        logger.info("Created branch '{}' at {}", name, branch.commit[:12])
        return branch

    def checkout(self, branch: Branch, *, discard: bool = True) -> None:
        """Switch to *branch* and reset the working root to its head.

        Uncommitted work is discarded. Pass ``discard=False`` to refuse
        instead when the working tree is dirty.

        Raises:
            BranchNotFoundError: *branch* is not live.
            DirtyWorkingTreeError: Dirty tree and ``discard=False``.
            CorruptStateError: The branch head does not resolve.
        """
        target = self._live(branch)
        if target is None:
            raise BranchNotFoundError(branch.name)

        if self.is_dirty():
            if not discard:
                msg = f"Uncommitted changes on '{self._state.current_branch.name}'"
                raise DirtyWorkingTreeError(msg)
            logger.warning(
                "Discarding uncommitted changes on '{}'", self._state.current_branch.name
            )

        head = self._resolve_commit(target.commit)
        self._working.clear()
        self._state.current_branch = target
        self._state.working_root = head.content
        self._save()
        logger.info("Switched to branch '{}'", target.name)

    def archive_branch(self, branch: Branch) -> bool:
        """Move *branch* out of the live set. Returns False if ignored.

        The default branch, the current branch and unknown branches are
        ignored. Check out another branch before archiving the current one.
        """
        target = self._live(branch)
        if target is None:
            logger.debug("Archive ignored: branch '{}' is not live", branch.name)
            return False
        if target.uuid == self._state.default_branch.uuid:
            logger.warning("The default branch cannot be archived")
            return False
        if target.uuid == self._state.current_branch.uuid:
            logger.warning("Cannot archive the current branch '{}'", target.name)
            return False

        self._state.branches.remove(target)
        self._state.archived_branches.append(target)
        self._save()
        logger.info("Archived branch '{}'", target.name)
        return True

    def rename_branch(self, branch: Branch, name: str) -> bool:
        """Rename a live branch. Returns False if ignored.

        The default branch keeps its name, and a name already used by another
        live branch is refused.
        """
        target = self._live(branch)
        if target is None or target.uuid == self._state.default_branch.uuid:
            logger.warning("Rename ignored for branch '{}'", branch.name)
            return False
        clash = self.get_branch(name)
        if clash is not None and clash.uuid != target.uuid:
            logger.warning("Rename ignored: branch '{}' already exists", name)
            return False

        target.name = name
        self._save()
        return True

    # ------------------------------------------------------------------
    # Commits and merges
    # ------------------------------------------------------------------

    def commit(self, message: str, author: str) -> CID:
        """Record the working root as a new commit on the current branch."""
        self._working.transfer_to(self._source)
        self._working.clear()

        branch = self._state.current_branch
        commit_cid = self._source.put(
            Commit(
                parents=(branch.commit,),
                content=self._state.working_root,
                author=author,
                timestamp=utc_timestamp(),
                message=message,
            )
        )
        branch.commit = commit_cid
        self._save()
        logger.info("Committed {} on '{}': {}", commit_cid[:12], branch.name, message)
        return commit_cid

    def merge(
        self,
        source_branch: Branch,
        *,
        message: str | None = None,
        author: str = MERGE_AUTHOR,
    ) -> MergeOutcome | None:
        """Merge *source_branch* into the current branch with a two-parent commit.

        Returns None without doing anything when merging a branch into
        itself or when both heads are the same commit. Otherwise the working
        root becomes the merged tree and the working tier is cleared.

        Raises:
            CorruptStateError: A branch head does not resolve.
        """
        current = self._state.current_branch
        source = self._own(source_branch)
        if source.uuid == current.uuid or source.commit == current.commit:
            return None

        current_commit = self._resolve_commit(current.commit)
        source_commit = self._resolve_commit(source.commit)

        if self.is_dirty():
            logger.warning("Merge replaces uncommitted changes on '{}'", current.name)

        result = merge_roots(
            current_commit.content, source_commit.content, self.resolve, self._source.put
        )
        merge_cid = self._source.put(
            Commit(
                parents=(current.commit, source.commit),
                content=result.root,
                author=author,
                timestamp=utc_timestamp(),
                message=message or f"Merge '{source.name}' into '{current.name}'",
            )
        )

        current.commit = merge_cid
        self._state.working_root = result.root
        self._working.clear()
        self._save()

        logger.info(
            "Merged '{}' into '{}' as {} ({} collision(s))",
            source.name, current.name, merge_cid[:12], len(result.conflicts),
        )
        return MergeOutcome(commit=merge_cid, root=result.root, conflicts=result.conflicts)
