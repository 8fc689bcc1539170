"""Text serialisation of solution documents and JSON export of the tree."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from slnkit.config import FolderEntry, ProjectEntry
from slnkit.dotnet.solution import SolutionDocument


def serialize(document: SolutionDocument) -> str:
    """Rejoin the line buffer; CRLF lines still carry their own `\\r`."""
    return "\n".join(document.lines)


def entry_to_dict(entry: ProjectEntry | FolderEntry, context=None) -> dict[str, Any]:
    if isinstance(entry, ProjectEntry):
        return {
            "guid": entry.guid,
            "name": entry.name,
            "kind": entry.kind.value,
            "type_guid": entry.type_guid,
            "path": entry.normalized_path,
        }
    data: dict[str, Any] = {
        "guid": entry.guid,
        "name": entry.name,
        "kind": entry.kind.value,
        "solution_items": [p.replace("\\", "/") for p in entry.solution_items],
        "children": [entry_to_dict(child, context) for child in entry.children],
    }
    if context is not None:
        data["expanded"] = context.is_expanded(entry.guid)
    return data


def tree_to_dict(
    document: SolutionDocument,
    roots: Iterable[ProjectEntry | FolderEntry],
    context=None,
) -> dict[str, Any]:
    """Build the JSON shape of a solution tree (as returned by build_hierarchy)."""
    header = document.header
    return {
        "format_version": header.format_version,
        "visual_studio_version": header.visual_studio_version,
        "minimum_visual_studio_version": header.minimum_visual_studio_version,
        "stats": {
            "projects": len(document.projects),
            "folders": len(document.folders),
            "unmodeled_blocks": sum(1 for b in document.blocks if b.entry is None),
            "nested_relations": len(document.relations),
        },
        "roots": [entry_to_dict(entry, context) for entry in roots],
    }


def write_output(data: dict[str, Any], output_path: str) -> None:
    """Write a tree dict to a JSON file."""
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2, default=str)
