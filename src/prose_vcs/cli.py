"""CLI for a prose-vcs repository (edit, commit, branch, merge, review)."""

import json
import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from prose_vcs.config import DATABASE_FILENAME, resolve_data_directory
from prose_vcs.core.database.schema import migrate_schema
from prose_vcs.core.engine import VersionControl
from prose_vcs.core.history import get_commit_history
from prose_vcs.core.review import review_branch
from prose_vcs.core.store.sqlite import (
    SOURCE_TIER,
    WORKING_TIER,
    SqliteObjectStore,
    SqliteStateStore,
)
from prose_vcs.core.tree.markdown import blocks_from_text, render_document_as_markdown
from prose_vcs.core.tree.walker import find_document_by_path
from prose_vcs.errors import (
    BranchExistsError,
    CommitNotFoundError,
    DirtyWorkingTreeError,
    PathNotFoundError,
)
from prose_vcs.logging_config import configure_logging
from prose_vcs.models.refs import Branch

app = typer.Typer(help="prose-vcs: version control for trees of prose documents.")

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Repository directory"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def open_repository(data_dir: Path | None) -> tuple[sqlite3.Connection, VersionControl]:
    """Open (creating if needed) the repository database and an engine over it."""
    dst = data_dir or resolve_data_directory()
    dst.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(dst / DATABASE_FILENAME))
    migrate_schema(conn)
    vc = VersionControl(
        source=SqliteObjectStore(conn, SOURCE_TIER),
        working=SqliteObjectStore(conn, WORKING_TIER),
        state=SqliteStateStore(conn),
    )
    return conn, vc


def _require_branch(vc: VersionControl, name: str) -> Branch:
    branch = vc.get_branch(name)
    if branch is None:
        logger.error("Branch not found: {}", name)
        raise typer.Exit(1)
    return branch


@app.command()
def status(data_dir: DataDirOption = None) -> None:
    """Show the current branch and whether there are uncommitted changes."""
    conn, vc = open_repository(data_dir)
    try:
        branch = vc.get_current_branch()
        typer.echo(f"On branch {branch.name} at {branch.commit[:12]}")
        if vc.is_dirty():
            typer.echo("Uncommitted changes")
        else:
            typer.echo("Nothing to commit")
    finally:
        conn.close()


@app.command(name="ls")
def list_documents(data_dir: DataDirOption = None) -> None:
    """List documents in the working tree."""
    conn, vc = open_repository(data_dir)
    try:
        docs = vc.documents()
        typer.echo(f"{len(docs)} documents:\n")
        for info in docs:
            typer.echo(f"  {info.path}  [{info.cid[:12]}]")
    finally:
        conn.close()


@app.command()
def mkdir(
    path: str = typer.Argument(..., help="Slash-separated directory path"),
    data_dir: DataDirOption = None,
) -> None:
    """Create a directory (and any missing parents)."""
    conn, vc = open_repository(data_dir)
    try:
        vc.add_directory(path)
        typer.echo(f"Created {path}")
    except (ValueError, PathNotFoundError) as e:
        logger.error("Cannot create {}: {}", path, e)
        raise typer.Exit(1) from e
    finally:
        conn.close()


@app.command()
def write(
    path: str = typer.Argument(..., help="Document path, e.g. notes/todo"),
    text: str = typer.Option(..., "--text", "-t", help="Document body (markdown subset)"),
    data_dir: DataDirOption = None,
) -> None:
    """Create or replace a document from text."""
    conn, vc = open_repository(data_dir)
    try:
        blocks = blocks_from_text(text, vc.put)
        cid = vc.write_document(path, blocks)
        typer.echo(f"Wrote {path} [{cid[:12]}]")
    except (ValueError, PathNotFoundError) as e:
        logger.error("Cannot write {}: {}", path, e)
        raise typer.Exit(1) from e
    finally:
        conn.close()


@app.command()
def show(
    path: str = typer.Argument(..., help="Document path"),
    data_dir: DataDirOption = None,
) -> None:
    """Print a document of the working tree as markdown."""
    conn, vc = open_repository(data_dir)
    try:
        info = find_document_by_path(vc.get_working_root(), path, vc.resolve)
        if info is None:
            logger.error("Document not found: {}", path)
            raise typer.Exit(1)
        typer.echo(render_document_as_markdown(info.cid, vc.resolve, include_title=True), nl=False)
    finally:
        conn.close()


@app.command()
def commit(
    message: str = typer.Option(..., "--message", "-m", help="Commit message"),
    author: str = typer.Option("anonymous", "--author", "-a", help="Commit author"),
    data_dir: DataDirOption = None,
) -> None:
    """Commit the working tree to the current branch."""
    conn, vc = open_repository(data_dir)
    try:
        cid = vc.commit(message, author)
        typer.echo(f"[{vc.get_current_branch().name} {cid[:12]}] {message}")
    finally:
        conn.close()


@app.command()
def branch(
    name: str = typer.Argument(..., help="New branch name"),
    from_commit: Annotated[
        str | None,
        typer.Option("--from", help="Commit to start from (default: current head)"),
    ] = None,
    carry: bool = typer.Option(
        False, "--carry", help="Move uncommitted work onto the new branch and switch to it"
    ),
    data_dir: DataDirOption = None,
) -> None:
    """Create a branch."""
    conn, vc = open_repository(data_dir)
    try:
        created = vc.create_branch(name, from_commit=from_commit, carry_working_state=carry)
        typer.echo(f"Created branch {created.name} at {created.commit[:12]}")
    except (BranchExistsError, CommitNotFoundError) as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e
    finally:
        conn.close()


@app.command()
def branches(
    archived: bool = typer.Option(False, "--archived", help="List archived branches"),
    data_dir: DataDirOption = None,
) -> None:
    """List branches; the current one is marked with '*'."""
    conn, vc = open_repository(data_dir)
    try:
        if archived:
            for b in vc.get_archived_branches():
                typer.echo(f"  {b.name}  {b.commit[:12]}")
            return
        current = vc.get_current_branch()
        for b in vc.get_branches():
            marker = "*" if b.uuid == current.uuid else " "
            typer.echo(f"{marker} {b.name}  {b.commit[:12]}")
    finally:
        conn.close()


@app.command()
def checkout(
    name: str = typer.Argument(..., help="Branch to switch to"),
    force: bool = typer.Option(False, "--force", "-f", help="Discard uncommitted changes"),
    data_dir: DataDirOption = None,
) -> None:
    """Switch branches."""
    conn, vc = open_repository(data_dir)
    try:
        target = _require_branch(vc, name)
        vc.checkout(target, discard=force)
        typer.echo(f"Switched to branch {name}")
    except DirtyWorkingTreeError as e:
        logger.error("{}. Commit them, run 'discard', or use --force.", e)
        raise typer.Exit(1) from e
    finally:
        conn.close()


@app.command()
def archive(
    name: str = typer.Argument(..., help="Branch to archive"),
    data_dir: DataDirOption = None,
) -> None:
    """Archive a branch so it no longer shows up as live."""
    conn, vc = open_repository(data_dir)
    try:
        target = _require_branch(vc, name)
        if not vc.archive_branch(target):
            raise typer.Exit(1)
        typer.echo(f"Archived branch {name}")
    finally:
        conn.close()


@app.command()
def merge(
    name: str = typer.Argument(..., help="Branch to merge into the current one"),
    data_dir: DataDirOption = None,
) -> None:
    """Merge a branch into the current branch."""
    conn, vc = open_repository(data_dir)
    try:
        source = _require_branch(vc, name)
        outcome = vc.merge(source)
        if outcome is None:
            typer.echo("Already up to date.")
            return
        typer.echo(f"Merged {name} into {vc.get_current_branch().name} [{outcome.commit[:12]}]")
        for path in outcome.conflicts:
            typer.echo(f"  took {name}'s version of {path}")
    finally:
        conn.close()


@app.command()
def log(
    limit: int = typer.Option(20, "--limit", "-n", help="Max commits"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    data_dir: DataDirOption = None,
) -> None:
    """Show commit history across all live branches, newest first."""
    conn, vc = open_repository(data_dir)
    try:
        history = get_commit_history(vc.get_branches(), vc.resolve, max_depth=limit)
        if output_json:
            data = [
                {
                    "cid": node.cid,
                    "parents": list(node.commit.parents),
                    "author": node.commit.author,
                    "timestamp": node.commit.timestamp,
                    "message": node.commit.message,
                    "branches": [b.name for b in node.branches],
                    "merge": node.is_merge_commit,
                }
                for node in history
            ]
            typer.echo(json.dumps(data, indent=2))
            return
        for node in history:
            labels = f" ({', '.join(b.name for b in node.branches)})" if node.branches else ""
            typer.echo(f"{node.cid[:12]}{labels} {node.commit.message}")
            typer.echo(f"    {node.commit.author}  {node.commit.timestamp}")
    finally:
        conn.close()


@app.command()
def review(
    name: str = typer.Argument(..., help="Feature branch to review"),
    base: Annotated[
        str | None,
        typer.Option("--base", "-b", help="Branch to compare against (default: default branch)"),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Show what merging a branch would change."""
    conn, vc = open_repository(data_dir)
    try:
        feature = _require_branch(vc, name)
        base_branch = _require_branch(vc, base) if base else vc.get_default_branch()
        result = review_branch(feature, base_branch, vc.resolve)

        typer.echo(f"Reviewing {feature.name} against {base_branch.name}")
        for info in result.added:
            typer.echo(f"  added     {info.path}")
        for info in result.removed:
            typer.echo(f"  removed   {info.path}")
        for change in result.modified:
            typer.echo(f"  modified  {change.path}")
        for change in result.conflicts:
            typer.echo(f"  conflict  {change.path}")
        if result.diverged:
            typer.echo(f"{base_branch.name} has moved on since {feature.name} branched off.")
    finally:
        conn.close()


@app.command()
def discard(data_dir: DataDirOption = None) -> None:
    """Throw away uncommitted changes."""
    conn, vc = open_repository(data_dir)
    try:
        vc.discard()
        typer.echo("Discarded uncommitted changes")
    finally:
        conn.close()
