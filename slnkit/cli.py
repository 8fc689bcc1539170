"""slnkit CLI - inspect and restructure Visual Studio solution files."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click

from slnkit.config import FolderEntry
from slnkit.dotnet.guids import is_valid_guid
from slnkit.dotnet.solution import SolutionDocument, read_solution
from slnkit.errors import EntryReferenceError, SolutionError
from slnkit.graph.hierarchy import build_hierarchy
from slnkit.output import tree_to_dict, write_output
from slnkit.session import create_empty_solution, edit_solution

_SOLUTION_ARG = click.Path(exists=True, dir_okay=False)


def _configure_logging(verbose: bool) -> None:
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


def _console():
    from rich.console import Console
    return Console()


def _resolve(document: SolutionDocument, identifier: str, folders_only: bool = False) -> str:
    """Accept either a GUID or a unique entry name."""
    if is_valid_guid(identifier):
        return identifier
    candidates = document.folders if folders_only else document.entries
    matches = [e for e in candidates if e.name == identifier]
    if not matches:
        kind = "solution folder" if folders_only else "entry"
        raise EntryReferenceError(None, f"No {kind} named {identifier!r}")
    if len(matches) > 1:
        guids = ", ".join(e.guid for e in matches)
        raise click.ClickException(f"{identifier!r} is ambiguous, use a GUID: {guids}")
    return matches[0].guid


def _edit(solution: str, action):
    """Run `action(editor)` inside a locked edit of `solution`."""
    try:
        with edit_solution(solution) as editor:
            return action(editor)
    except (SolutionError, ValueError) as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option("--verbose", is_flag=True, help="Show debug logging")
def cli(verbose: bool) -> None:
    """slnkit - Edit the structure of .sln files without touching the rest."""
    _configure_logging(verbose)


@cli.command("tree")
@click.argument("solution", type=_SOLUTION_ARG)
@click.option("--json", "as_json", is_flag=True, help="Print the tree as JSON")
@click.option("-o", "--output", "output_path", default=None, help="Write the JSON tree to a file")
def tree_cmd(solution: str, as_json: bool, output_path: str | None) -> None:
    """Show the folder/project hierarchy of a solution."""
    from rich.markup import escape
    from rich.tree import Tree

    try:
        document = read_solution(solution)
    except SolutionError as e:
        raise click.ClickException(str(e)) from e
    roots = build_hierarchy(document.entries, document.relations)

    if output_path:
        write_output(tree_to_dict(document, roots), output_path)
    if as_json:
        click.echo(json.dumps(tree_to_dict(document, roots), indent=2))
        return

    def add(node: Tree, entries) -> None:
        for entry in entries:
            if isinstance(entry, FolderEntry):
                branch = node.add(f"[bold blue]{escape(entry.name)}[/bold blue]")
                add(branch, entry.children)
                for item in entry.solution_items:
                    branch.add(f"[dim]{escape(item)}[/dim]")
            else:
                node.add(f"{escape(entry.name)} [dim]{escape(entry.normalized_path)}[/dim]")

    root = Tree(f"[bold]{escape(Path(solution).name)}[/bold]")
    add(root, roots)
    _console().print(root)


@cli.command("new")
@click.argument("path", type=click.Path(dir_okay=False))
def new_cmd(path: str) -> None:
    """Create an empty solution file."""
    try:
        create_empty_solution(path)
    except FileExistsError as e:
        raise click.ClickException(f"{path} already exists") from e
    _console().print(f"[green]Created[/green] {path}")


@cli.command("add-project")
@click.argument("solution", type=_SOLUTION_ARG)
@click.argument("name")
@click.argument("project_path")
@click.option("--parent", default=None, help="Parent solution folder (GUID or name)")
def add_project_cmd(solution: str, name: str, project_path: str, parent: str | None) -> None:
    """Add a project entry to the solution."""
    def action(editor):
        parent_guid = _resolve(editor.document, parent, folders_only=True) if parent else None
        return editor.insert_project_entry(name, project_path, parent_guid)

    guid = _edit(solution, action)
    _console().print(f"[green]Added project[/green] {name} {guid}")


@cli.command("add-folder")
@click.argument("solution", type=_SOLUTION_ARG)
@click.argument("name")
@click.option("--parent", default=None, help="Parent solution folder (GUID or name)")
def add_folder_cmd(solution: str, name: str, parent: str | None) -> None:
    """Add a solution folder."""
    def action(editor):
        parent_guid = _resolve(editor.document, parent, folders_only=True) if parent else None
        return editor.insert_folder_entry(name, parent_guid)

    guid = _edit(solution, action)
    _console().print(f"[green]Added folder[/green] {name} {guid}")


@cli.command("rename")
@click.argument("solution", type=_SOLUTION_ARG)
@click.argument("entry")
@click.argument("new_name")
def rename_cmd(solution: str, entry: str, new_name: str) -> None:
    """Rename a project or solution folder (GUID or name)."""
    _edit(solution, lambda editor: editor.rename_entry(_resolve(editor.document, entry), new_name))
    _console().print(f"[green]Renamed[/green] {entry} -> {new_name}")


@cli.command("remove")
@click.argument("solution", type=_SOLUTION_ARG)
@click.argument("entry")
@click.option("--cascade", is_flag=True, help="Also remove everything nested under a folder")
def remove_cmd(solution: str, entry: str, cascade: bool) -> None:
    """Remove a project or solution folder (GUID or name)."""
    removed = _edit(
        solution,
        lambda editor: editor.remove_entry(_resolve(editor.document, entry), cascade=cascade),
    )
    _console().print(f"[green]Removed[/green] {len(removed)} entr{'y' if len(removed) == 1 else 'ies'}")


@cli.command("move")
@click.argument("solution", type=_SOLUTION_ARG)
@click.argument("entry")
@click.option("--parent", default=None, help="New parent folder; omit to move to the root")
def move_cmd(solution: str, entry: str, parent: str | None) -> None:
    """Move a project or folder under another solution folder."""
    def action(editor):
        guid = _resolve(editor.document, entry)
        parent_guid = _resolve(editor.document, parent, folders_only=True) if parent else None
        editor.move_entry(guid, parent_guid)

    _edit(solution, action)
    _console().print(f"[green]Moved[/green] {entry} -> {parent or 'solution root'}")


@cli.command("add-item")
@click.argument("solution", type=_SOLUTION_ARG)
@click.argument("item_path")
@click.option("--folder", default=None, help="Target solution folder; defaults to Solution Items")
def add_item_cmd(solution: str, item_path: str, folder: str | None) -> None:
    """Attach a loose file to a solution folder."""
    def action(editor):
        folder_guid = _resolve(editor.document, folder, folders_only=True) if folder else None
        return editor.attach_solution_item(folder_guid, item_path)

    guid = _edit(solution, action)
    _console().print(f"[green]Attached[/green] {item_path} to {guid}")


@cli.command("remove-item")
@click.argument("solution", type=_SOLUTION_ARG)
@click.argument("item_path")
def remove_item_cmd(solution: str, item_path: str) -> None:
    """Detach a loose file from whichever folder lists it."""
    found = _edit(solution, lambda editor: editor.detach_solution_item(item_path))
    if found:
        _console().print(f"[green]Detached[/green] {item_path}")
    else:
        _console().print(f"[yellow]Not listed:[/yellow] {item_path}")


@cli.command("rename-item")
@click.argument("solution", type=_SOLUTION_ARG)
@click.argument("old_name")
@click.argument("new_name")
def rename_item_cmd(solution: str, old_name: str, new_name: str) -> None:
    """Update solution-item references after a file was renamed."""
    count = _edit(solution, lambda editor: editor.update_file_reference(old_name, new_name))
    _console().print(f"Updated {count} reference(s)")


if __name__ == "__main__":
    cli()
