"""Structural edits on a parsed solution document.

Every public operation works on the current `SolutionDocument`, builds a
complete new line list, re-parses it, and only then replaces
`editor.document`. If anything raises along the way the previous document
is still in place, so callers never see a half-applied edit.

Operations locate their targets through the spans recorded at parse time
rather than by searching the raw text for names.
"""

from __future__ import annotations

import logging
import re

from slnkit.config import EditorConfig, Entry, FolderEntry, ProjectSection
from slnkit.dotnet.guids import GuidGenerator, normalize_guid
from slnkit.dotnet.solution import (
    SOLUTION_FOLDER_GUID,
    SolutionDocument,
    match_project_header,
    parse_lines,
    project_type_guid,
)
from slnkit.errors import EntryReferenceError, NestingCycleError, ParseError
from slnkit.graph.nesting import NestingGraph
from slnkit.output import serialize

logger = logging.getLogger(__name__)

_PAIR_RE = re.compile(r"^(\s*)(.*?)(\s*=\s*)(.*?)(\s*)$")


def _check_label(value: str, what: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{what} must not be empty")
    if '"' in value or "\n" in value or "\r" in value:
        raise ValueError(f"{what} must not contain quotes or line breaks: {value!r}")
    return value


def _check_item_path(value: str, what: str) -> str:
    _check_label(value, what)
    # Item lines are `path = path`; another `=` makes them ambiguous.
    if "=" in value:
        raise ValueError(f"{what} must not contain '=': {value!r}")
    return value


def _same_path(a: str, b: str) -> bool:
    return a.replace("/", "\\") == b.replace("/", "\\")


def _eof_index(lines: list[str]) -> int:
    # Keep a trailing terminator trailing.
    if lines and lines[-1] == "":
        return len(lines) - 1
    return len(lines)


class SolutionEditor:
    """Applies structural edits to a SolutionDocument."""

    def __init__(
        self,
        document: SolutionDocument,
        generator: GuidGenerator | None = None,
        config: EditorConfig | None = None,
    ) -> None:
        self.document = document
        self.config = config or EditorConfig()
        self.generator = generator or GuidGenerator(max_attempts=self.config.max_guid_attempts)

    def text(self) -> str:
        return serialize(self.document)

    # --- Internal helpers ---

    def _reparse(self, lines: list[str]) -> SolutionDocument:
        return parse_lines(lines, self.document.newline)

    def _commit(self, lines: list[str], message: str) -> None:
        document = self._reparse(lines)
        self.document = document
        logger.info(message)

    def _require_entry(self, doc: SolutionDocument, guid: str) -> Entry:
        entry = doc.entry(guid)
        if entry is None:
            raise EntryReferenceError(guid, f"No project or solution folder with GUID {guid}")
        return entry

    def _require_folder(self, doc: SolutionDocument, guid: str) -> FolderEntry:
        folder = doc.folder(guid)
        if folder is None:
            raise EntryReferenceError(guid, f"No solution folder with GUID {guid}")
        return folder

    def _block_index(self, doc: SolutionDocument) -> int:
        """After the last EndProject, else before Global, else at end of file."""
        last = doc.last_end_project
        if last is not None:
            return last + 1
        if doc.global_span is not None:
            return doc.global_span.start
        return _eof_index(doc.lines)

    def _terminate(self, block: list[str]) -> list[str]:
        cr = "\r" if self.document.newline == "\r\n" else ""
        return [line + cr for line in block]

    def _splice(self, lines: list[str], index: int, block: list[str]) -> None:
        """Insert generated lines at `index`, terminated like the document."""
        new = self._terminate(block)
        if index == len(lines):
            # Appending after an unterminated last line: it gains the
            # terminator and the new last line goes without one.
            if lines and not lines[-1].endswith("\r"):
                lines[-1] = self._terminate([lines[-1]])[0]
            new[-1] = block[-1]
        lines[index:index] = new

    def _item_line(self, path: str) -> str:
        return f"{self.config.indent * 2}{path} = {path}"

    def _items_section(self, paths: list[str]) -> list[str]:
        indent = self.config.indent
        return (
            [f"{indent}ProjectSection(SolutionItems) = preProject"]
            + [self._item_line(p) for p in paths]
            + [f"{indent}EndProjectSection"]
        )

    def _insert_block(self, doc: SolutionDocument, block: list[str]) -> list[str]:
        lines = list(doc.lines)
        self._splice(lines, self._block_index(doc), block)
        return lines

    def _add_relation(self, doc: SolutionDocument, child_guid: str, parent_guid: str) -> list[str]:
        indent = self.config.indent
        lines = list(doc.lines)
        entry = f"{indent * 2}{child_guid} = {parent_guid}"
        section = doc.nested_section
        if section is not None:
            self._splice(lines, section.span.end, [entry])
        elif doc.global_span is not None:
            self._splice(lines, doc.global_span.end, [
                f"{indent}GlobalSection(NestedProjects) = preSolution",
                entry,
                f"{indent}EndGlobalSection",
            ])
        else:
            self._splice(lines, _eof_index(lines), [
                "Global",
                f"{indent}GlobalSection(NestedProjects) = preSolution",
                entry,
                f"{indent}EndGlobalSection",
                "EndGlobal",
            ])
        return lines

    def _relation_lines_for(self, doc: SolutionDocument, child_guids: set[str]) -> set[int]:
        return {
            rel.line for rel in doc.relations
            if rel.child_guid in child_guids and rel.line is not None
        }

    def _root_items_folder(self, doc: SolutionDocument) -> FolderEntry | None:
        for folder in doc.find_folders(self.config.solution_items_folder):
            if doc.parent_of(folder.guid) is None:
                return folder
        return None

    def _new_guid(self, doc: SolutionDocument) -> str:
        return self.generator.generate(doc.guids())

    # --- Insertion ---

    def insert_project_entry(
        self, name: str, relative_path: str, parent_guid: str | None = None
    ) -> str:
        """Add a project block and return its new GUID."""
        _check_label(name, "Project name")
        _check_label(relative_path, "Project path")
        type_guid = project_type_guid(relative_path)
        if type_guid is None:
            raise ValueError(f"Not a recognised project file: {relative_path}")

        doc = self.document
        if parent_guid is not None:
            parent_guid = self._require_folder(doc, parent_guid).guid

        guid = self._new_guid(doc)
        lines = self._insert_block(doc, [
            f'Project("{type_guid}") = "{name}", "{relative_path}", "{guid}"',
            "EndProject",
        ])
        if parent_guid is not None:
            lines = self._add_relation(self._reparse(lines), guid, parent_guid)

        self._commit(lines, f"Added project {name!r} ({relative_path}) as {guid}")
        return guid

    def insert_folder_entry(self, name: str, parent_guid: str | None = None) -> str:
        """Add a solution folder, optionally nested under `parent_guid`."""
        _check_label(name, "Folder name")
        doc = self.document
        if parent_guid is not None:
            parent_guid = self._require_folder(doc, parent_guid).guid

        guid = self._new_guid(doc)
        lines = self._insert_block(doc, [
            f'Project("{SOLUTION_FOLDER_GUID}") = "{name}", "{name}", "{guid}"',
            "EndProject",
        ])
        if parent_guid is not None:
            lines = self._add_relation(self._reparse(lines), guid, parent_guid)

        where = f" under {parent_guid}" if parent_guid else ""
        self._commit(lines, f"Added solution folder {name!r} as {guid}{where}")
        return guid

    # --- Rename / remove / move ---

    def rename_entry(self, guid: str, new_name: str) -> None:
        """Change the label in the entry's own Project(...) header.

        The header is found through the entry's span and must carry the
        entry's type GUID and item GUID, so another entry that happens to
        share the old label is never touched.
        """
        _check_label(new_name, "New name")
        doc = self.document
        entry = self._require_entry(doc, guid)
        if entry.name == new_name:
            return

        index = entry.span.start
        line = doc.lines[index]
        found = match_project_header(line)
        if found is None:
            raise ParseError("Project header moved since parsing", index + 1)
        m, offset = found
        if normalize_guid(m.group(1)) != entry.type_guid or normalize_guid(m.group(4)) != entry.guid:
            raise ParseError(f"Header on this line does not belong to {entry.guid}", index + 1)

        groups = [2]
        if isinstance(entry, FolderEntry) and m.group(3) == m.group(2):
            groups.append(3)
        for group in reversed(groups):
            start, end = offset + m.start(group), offset + m.end(group)
            line = line[:start] + new_name + line[end:]

        lines = list(doc.lines)
        lines[index] = line
        self._commit(lines, f"Renamed {entry.guid} from {entry.name!r} to {new_name!r}")

    def remove_entry(self, guid: str, cascade: bool = False) -> list[str]:
        """Delete an entry's block and the relation lines naming it as child.

        By default children of a removed folder keep their relation lines,
        which now point at a missing parent; the hierarchy builder ignores
        those, so the children show up at the root. With `cascade=True`
        every descendant block and its relation line is removed too.
        Returns the GUIDs whose blocks were removed.
        """
        doc = self.document
        entry = self._require_entry(doc, guid)

        targets = {entry.guid}
        if cascade:
            targets |= NestingGraph.from_relations(doc.relations).descendants(entry.guid)

        drop: set[int] = set()
        removed: list[str] = []
        for block in doc.blocks:
            if block.guid in targets:
                drop.update(range(block.span.start, block.span.end + 1))
                removed.append(block.guid)
        drop |= self._relation_lines_for(doc, targets)

        lines = [line for i, line in enumerate(doc.lines) if i not in drop]
        self._commit(lines, f"Removed {entry.name!r} ({entry.guid}) and {len(removed) - 1} descendants")
        return removed

    def move_entry(self, guid: str, parent_guid: str | None = None) -> None:
        """Re-parent an entry; `None` moves it to the solution root."""
        doc = self.document
        entry = self._require_entry(doc, guid)
        if parent_guid is not None:
            parent_guid = self._require_folder(doc, parent_guid).guid
            graph = NestingGraph.from_relations(doc.relations)
            if graph.would_create_cycle(entry.guid, parent_guid):
                raise NestingCycleError(
                    f"Cannot move {entry.name!r} under its own descendant {parent_guid}"
                )
        if doc.parent_of(entry.guid) == parent_guid:
            return

        drop = self._relation_lines_for(doc, {entry.guid})
        lines = [line for i, line in enumerate(doc.lines) if i not in drop]
        if parent_guid is not None:
            lines = self._add_relation(self._reparse(lines), entry.guid, parent_guid)

        self._commit(lines, f"Moved {entry.name!r} to {parent_guid or 'solution root'}")

    # --- Solution items ---

    def attach_solution_item(self, folder_guid: str | None, relative_path: str) -> str:
        """List a loose file under a solution folder and return the folder's GUID.

        With `folder_guid=None` the file goes to the root-level
        "Solution Items" folder, which is created the first time it is needed.
        """
        _check_item_path(relative_path, "Item path")
        path = relative_path.strip().replace("/", self.config.item_separator)
        doc = self.document

        if folder_guid is None:
            folder = self._root_items_folder(doc)
            if folder is None:
                guid = self._new_guid(doc)
                name = self.config.solution_items_folder
                lines = self._insert_block(
                    doc,
                    [f'Project("{SOLUTION_FOLDER_GUID}") = "{name}", "{name}", "{guid}"']
                    + self._items_section([path])
                    + ["EndProject"],
                )
                self._commit(lines, f"Created {name!r} folder {guid} with {path}")
                return guid
        else:
            folder = self._require_folder(doc, folder_guid)

        if any(_same_path(key, path) for key in folder.solution_items):
            logger.info(f"{path} is already listed in {folder.name!r}")
            return folder.guid

        lines = list(doc.lines)
        section = folder.solution_items_section()
        if section is not None:
            self._splice(lines, section.span.end, [self._item_line(path)])
        else:
            self._splice(lines, folder.span.end, self._items_section([path]))

        self._commit(lines, f"Added solution item {path} to {folder.name!r}")
        return folder.guid

    def detach_solution_item(self, relative_path: str, folder_guid: str | None = None) -> bool:
        """Remove a loose file from a folder's item list.

        Searches every folder unless `folder_guid` is given. A section left
        empty is removed as well. Returns False if the item was not listed.
        """
        doc = self.document
        if folder_guid is not None:
            folders = [self._require_folder(doc, folder_guid)]
        else:
            folders = doc.folders

        for folder in folders:
            section: ProjectSection | None = folder.solution_items_section()
            if section is None:
                continue
            for key, index in section.item_lines.items():
                if not _same_path(key, relative_path):
                    continue
                if len(section.items) == 1:
                    drop = set(range(section.span.start, section.span.end + 1))
                else:
                    drop = {index}
                lines = [line for i, line in enumerate(doc.lines) if i not in drop]
                self._commit(lines, f"Removed solution item {key} from {folder.name!r}")
                return True

        logger.warning(f"Solution item {relative_path} not found in solution file")
        return False

    def update_file_reference(self, old_name: str, new_name: str) -> int:
        """Rename a file inside every solution-item pair that lists it.

        Matches `dir\\old = dir\\old`, `dir/old = dir/old` and bare `old = old`,
        keeping the directory prefix and spacing. Returns the number of pairs
        rewritten; zero is not an error.
        """
        _check_item_path(new_name, "New file name")
        name_re = re.compile(r"(^|[\\/])" + re.escape(old_name) + r"$")

        def rename(path: str) -> str | None:
            m = name_re.search(path)
            if m is None:
                return None
            return path[:m.start()] + m.group(1) + new_name

        doc = self.document
        lines = list(doc.lines)
        count = 0
        for ref in doc.solution_items():
            m = _PAIR_RE.match(lines[ref.line])
            if m is None:
                continue
            lead, left, eq, right, trail = m.groups()
            new_left, new_right = rename(left), rename(right)
            if new_left is None or new_right is None:
                continue
            lines[ref.line] = lead + new_left + eq + new_right + trail
            count += 1

        if count == 0:
            logger.info(f"No solution item references to {old_name!r}")
            return 0

        self._commit(lines, f"Renamed {count} solution item reference(s) {old_name!r} -> {new_name!r}")
        return count
