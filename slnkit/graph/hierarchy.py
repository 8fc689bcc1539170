"""Rooted folder/project tree from parsed entries and nested relations."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from slnkit.config import Entry, FolderEntry, NestedRelation
from slnkit.dotnet.guids import normalize_guid

logger = logging.getLogger(__name__)


@dataclass
class TreeContext:
    """State for one open solution, owned by whatever renders the tree.

    Holds the expansion state of folders and the GUID index from the most
    recent build. Pass the same context to every build for that document.
    """
    path: str | None = None
    expanded: set[str] = field(default_factory=set)
    index: dict[str, Entry] = field(default_factory=dict)

    def expand(self, guid: str) -> None:
        self.expanded.add(normalize_guid(guid))

    def collapse(self, guid: str) -> None:
        self.expanded.discard(normalize_guid(guid))

    def is_expanded(self, guid: str) -> bool:
        return normalize_guid(guid) in self.expanded

    def lookup(self, guid: str) -> Entry | None:
        return self.index.get(normalize_guid(guid))

    def refresh(self, by_guid: dict[str, Entry]) -> None:
        """Replace the index and forget expansion state of vanished entries."""
        self.index = dict(by_guid)
        stale = self.expanded - by_guid.keys()
        if stale:
            logger.debug(f"Dropping expansion state for {len(stale)} removed entries")
        self.expanded -= stale


def _break_cycles(parent_of: dict[str, str]) -> None:
    """Drop one edge from every parent cycle, in a single pass over the map."""
    done: set[str] = set()
    for start in list(parent_of):
        path: list[str] = []
        on_path: set[str] = set()
        node: str | None = start
        while node is not None and node not in done and node not in on_path:
            path.append(node)
            on_path.add(node)
            node = parent_of.get(node)
        if node is not None and node in on_path:
            closing = path[-1]
            logger.warning(
                f"Nested relation {closing} -> {parent_of[closing]} closes a cycle; "
                f"treating {closing} as a root"
            )
            del parent_of[closing]
        done.update(path)


def build_hierarchy(
    entries: Iterable[Entry],
    relations: Iterable[NestedRelation],
    context: TreeContext | None = None,
) -> list[Entry]:
    """Attach children to their folders and return the root entries.

    Relations naming an unknown GUID, a non-folder parent, or a child that
    already has a parent are ignored. Rebuilding resets `children` and
    `parent_guid` on every entry, so the same entries can be built again.
    """
    ordered: list[Entry] = []
    by_guid: dict[str, Entry] = {}
    for entry in entries:
        if entry.guid in by_guid:
            continue
        by_guid[entry.guid] = entry
        ordered.append(entry)
        entry.parent_guid = None
        if isinstance(entry, FolderEntry):
            entry.children = []

    parent_of: dict[str, str] = {}
    accepted: list[NestedRelation] = []
    for rel in relations:
        child = by_guid.get(rel.child_guid)
        parent = by_guid.get(rel.parent_guid)
        if child is None or parent is None:
            logger.debug(f"Ignoring dangling nested relation {rel.child_guid} = {rel.parent_guid}")
            continue
        if not isinstance(parent, FolderEntry):
            logger.warning(f"Parent {rel.parent_guid} of {rel.child_guid} is not a solution folder")
            continue
        if rel.child_guid == rel.parent_guid or rel.child_guid in parent_of:
            continue
        parent_of[rel.child_guid] = rel.parent_guid
        accepted.append(rel)

    _break_cycles(parent_of)

    for rel in accepted:
        if parent_of.get(rel.child_guid) != rel.parent_guid:
            continue
        child = by_guid[rel.child_guid]
        parent = by_guid[rel.parent_guid]
        parent.children.append(child)
        child.parent_guid = parent.guid

    if context is not None:
        context.refresh(by_guid)

    return [entry for entry in ordered if entry.parent_guid is None]


def walk(roots: Iterable[Entry], depth: int = 0) -> Iterator[tuple[int, Entry]]:
    """Depth-first (depth, entry) pairs, folders before their children."""
    for entry in roots:
        yield depth, entry
        if isinstance(entry, FolderEntry):
            yield from walk(entry.children, depth + 1)
