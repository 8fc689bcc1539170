"""Parse .sln files (custom text format, not XML) into a typed line model."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from slnkit.config import (
    FolderEntry,
    GlobalSection,
    NestedRelation,
    ProjectBlock,
    ProjectEntry,
    ProjectSection,
    SectionKind,
    SolutionHeader,
    SolutionItemReference,
    Span,
)
from slnkit.dotnet.guids import normalize_guid
from slnkit.errors import ParseError

logger = logging.getLogger(__name__)

# Project("{TYPE-GUID}") = "Name", "Path\To\Project.csproj", "{PROJECT-GUID}"
_PROJECT_RE = re.compile(
    r'^Project\(\"(\{[^}]+\})\"\)\s*=\s*\"([^\"]*)\"\s*,\s*\"([^\"]*)\"\s*,\s*\"(\{[^}]+\})\"'
)
_PROJECT_SECTION_RE = re.compile(r"^ProjectSection\(([^)]+)\)\s*=\s*(preProject|postProject)")
_GLOBAL_SECTION_RE = re.compile(r"^GlobalSection\(([^)]+)\)\s*=\s*(preSolution|postSolution)")
_ITEM_RE = re.compile(r"^(.*?)\s*=\s*(.*)$")

_FORMAT_RE = re.compile(r"Format Version (\d+\.\d+)")
_VS_VERSION_RE = re.compile(r"^VisualStudioVersion\s*=\s*(.+)$")
_MIN_VS_VERSION_RE = re.compile(r"^MinimumVisualStudioVersion\s*=\s*(.+)$")

# Known project type GUIDs
SOLUTION_FOLDER_GUID = "{2150E333-8FDC-42A3-9474-1A3956D46DE8}"
CSHARP_GUID = "{FAE04EC0-301F-11D3-BF4B-00C04F79EFBC}"
VBNET_GUID = "{F184B08F-C81C-45F6-A57F-5ABD9991F28F}"
FSHARP_GUID = "{F2A71F9B-5D33-465A-A702-920D77279786}"

PROJECT_TYPE_GUIDS = {
    ".csproj": CSHARP_GUID,
    ".vbproj": VBNET_GUID,
    ".fsproj": FSHARP_GUID,
}
PROJECT_EXTENSIONS = tuple(PROJECT_TYPE_GUIDS)

NESTED_PROJECTS = "NestedProjects"
SOLUTION_ITEMS = "SolutionItems"

_BOM = "\ufeff"


def detect_newline(text: str) -> str:
    """Return the terminator of the first line break, `\\n` if there is none."""
    index = text.find("\n")
    if index > 0 and text[index - 1] == "\r":
        return "\r\n"
    return "\n"


def is_project_path(path: str) -> bool:
    return path.lower().endswith(PROJECT_EXTENSIONS)


def project_type_guid(path: str) -> str | None:
    """Map a project file path to its type GUID by extension."""
    for ext, type_guid in PROJECT_TYPE_GUIDS.items():
        if path.lower().endswith(ext):
            return type_guid
    return None


def _body(line: str) -> str:
    """Line content used for matching: no surrounding whitespace, no BOM."""
    return line.strip().lstrip(_BOM).strip()


def match_project_header(line: str) -> tuple[re.Match, int] | None:
    """Match a Project(...) header, returning the match and its offset in `line`."""
    body = line.lstrip().lstrip(_BOM).lstrip()
    m = _PROJECT_RE.match(body)
    if m is None:
        return None
    return m, len(line) - len(body)


@dataclass
class SolutionDocument:
    """Line buffer plus the typed spans found in it.

    `lines` is the complete text split on `\\n`; a line ending in CRLF keeps
    its `\\r`, so joining them back with `\\n` reproduces the input byte for
    byte even when terminators are mixed. `newline` is the terminator used
    for lines the editor writes. Spans index into `lines`.
    """
    lines: list[str]
    newline: str = "\n"
    header: SolutionHeader = field(default_factory=SolutionHeader)
    blocks: list[ProjectBlock] = field(default_factory=list)
    entries: list[ProjectEntry | FolderEntry] = field(default_factory=list)
    relations: list[NestedRelation] = field(default_factory=list)
    global_span: Span | None = None
    global_sections: list[GlobalSection] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._by_guid: dict[str, ProjectEntry | FolderEntry] = {}
        for entry in self.entries:
            self._by_guid.setdefault(entry.guid, entry)

    # --- Lookup ---

    def entry(self, guid: str) -> ProjectEntry | FolderEntry | None:
        return self._by_guid.get(normalize_guid(guid))

    def folder(self, guid: str) -> FolderEntry | None:
        entry = self.entry(guid)
        return entry if isinstance(entry, FolderEntry) else None

    @property
    def projects(self) -> list[ProjectEntry]:
        return [e for e in self.entries if isinstance(e, ProjectEntry)]

    @property
    def folders(self) -> list[FolderEntry]:
        return [e for e in self.entries if isinstance(e, FolderEntry)]

    def find_folders(self, name: str) -> list[FolderEntry]:
        return [f for f in self.folders if f.name == name]

    def guids(self) -> set[str]:
        """Every item GUID in the file, including unmodeled blocks."""
        return {block.guid for block in self.blocks}

    def parent_of(self, guid: str) -> str | None:
        """Parent GUID from the first nested relation naming `guid` as child."""
        guid = normalize_guid(guid)
        for rel in self.relations:
            if rel.child_guid == guid:
                return rel.parent_guid
        return None

    def global_section(self, name: str) -> GlobalSection | None:
        for section in self.global_sections:
            if section.name == name:
                return section
        return None

    @property
    def nested_section(self) -> GlobalSection | None:
        return self.global_section(NESTED_PROJECTS)

    def solution_items(self) -> list[SolutionItemReference]:
        refs = []
        for folder in self.folders:
            section = folder.solution_items_section()
            if section is None:
                continue
            for key in section.items:
                refs.append(SolutionItemReference(
                    folder_guid=folder.guid,
                    relative_path=key,
                    line=section.item_lines.get(key),
                ))
        return refs

    @property
    def last_end_project(self) -> int | None:
        if not self.blocks:
            return None
        return max(block.span.end for block in self.blocks)


def _parse_items(lines: list[str], start: int, end: int) -> tuple[dict[str, str], dict[str, int]]:
    items: dict[str, str] = {}
    item_lines: dict[str, int] = {}
    for i in range(start, end):
        m = _ITEM_RE.match(_body(lines[i]))
        if m is None or not m.group(1):
            continue
        key = m.group(1)
        if key in items:
            logger.debug(f"Duplicate section key {key!r} on line {i + 1}")
            continue
        items[key] = m.group(2)
        item_lines[key] = i
    return items, item_lines


def _parse_project_section(lines: list[str], start: int) -> ProjectSection:
    m = _PROJECT_SECTION_RE.match(_body(lines[start]))
    if m is None:
        raise ParseError(f"Malformed project section header: {_body(lines[start])}", start + 1)

    for i in range(start + 1, len(lines)):
        body = _body(lines[i])
        if body == "EndProjectSection":
            items, item_lines = _parse_items(lines, start + 1, i)
            return ProjectSection(
                name=m.group(1).strip(),
                kind=SectionKind(m.group(2)),
                span=Span(start, i),
                items=items,
                item_lines=item_lines,
            )
        if body == "EndProject" or body.startswith("Project("):
            break
    raise ParseError(f"ProjectSection({m.group(1)}) is not closed by EndProjectSection", start + 1)


def _parse_block(lines: list[str], start: int) -> ProjectBlock:
    found = match_project_header(lines[start])
    if found is None:
        raise ParseError(f"Malformed project header: {_body(lines[start])}", start + 1)
    m, _ = found

    sections: list[ProjectSection] = []
    i = start + 1
    while i < len(lines):
        body = _body(lines[i])
        if body == "EndProject":
            break
        if body.startswith("Project(") or body == "Global":
            raise ParseError(
                f"Project \"{m.group(2)}\" is not closed before line {i + 1}", start + 1
            )
        if body.startswith("ProjectSection("):
            section = _parse_project_section(lines, i)
            sections.append(section)
            i = section.span.end + 1
            continue
        i += 1
    else:
        raise ParseError(f"Project \"{m.group(2)}\" has no matching EndProject", start + 1)

    type_guid = normalize_guid(m.group(1))
    name = m.group(2)
    path = m.group(3)
    guid = normalize_guid(m.group(4))
    span = Span(start, i)

    entry: ProjectEntry | FolderEntry | None = None
    if type_guid == SOLUTION_FOLDER_GUID:
        folder = FolderEntry(
            name=name,
            guid=guid,
            type_guid=type_guid,
            path=path,
            span=span,
            sections=sections,
        )
        items_section = folder.solution_items_section()
        if items_section is not None:
            folder.solution_items = dict(items_section.items)
        entry = folder
    elif is_project_path(path):
        entry = ProjectEntry(
            type_guid=type_guid,
            name=name,
            relative_path=path,
            guid=guid,
            span=span,
            sections=sections,
        )
    else:
        logger.debug(f"Keeping unmodeled project block {name!r} ({path}) verbatim")

    return ProjectBlock(
        type_guid=type_guid, name=name, path=path, guid=guid, span=span, entry=entry,
    )


def _parse_global_section(lines: list[str], start: int) -> GlobalSection:
    m = _GLOBAL_SECTION_RE.match(_body(lines[start]))
    if m is None:
        raise ParseError(f"Malformed global section header: {_body(lines[start])}", start + 1)

    for i in range(start + 1, len(lines)):
        body = _body(lines[i])
        if body == "EndGlobalSection":
            items, _ = _parse_items(lines, start + 1, i)
            return GlobalSection(
                name=m.group(1).strip(),
                kind=SectionKind(m.group(2)),
                span=Span(start, i),
                items=items,
            )
        if body == "EndGlobal":
            break
    raise ParseError(f"GlobalSection({m.group(1)}) is not closed by EndGlobalSection", start + 1)


def _parse_global(lines: list[str], start: int) -> tuple[Span, list[GlobalSection]]:
    sections: list[GlobalSection] = []
    i = start + 1
    while i < len(lines):
        body = _body(lines[i])
        if body == "EndGlobal":
            return Span(start, i), sections
        if body.startswith("GlobalSection("):
            section = _parse_global_section(lines, i)
            sections.append(section)
            i = section.span.end + 1
            continue
        i += 1
    raise ParseError("Global is not closed by EndGlobal", start + 1)


def _nested_relations(lines: list[str], section: GlobalSection) -> list[NestedRelation]:
    relations = []
    for i in range(section.span.start + 1, section.span.end):
        m = _ITEM_RE.match(_body(lines[i]))
        if m is None or not m.group(1):
            continue
        relations.append(NestedRelation(
            child_guid=normalize_guid(m.group(1)),
            parent_guid=normalize_guid(m.group(2)),
            line=i,
        ))
    return relations


def _parse_header(body: str, header: SolutionHeader) -> None:
    if body.startswith("Microsoft Visual Studio Solution File"):
        m = _FORMAT_RE.search(body)
        if m:
            header.format_version = m.group(1)
        return
    m = _VS_VERSION_RE.match(body)
    if m:
        header.visual_studio_version = m.group(1).strip()
        return
    m = _MIN_VS_VERSION_RE.match(body)
    if m:
        header.minimum_visual_studio_version = m.group(1).strip()


def parse_lines(lines: list[str], newline: str = "\n") -> SolutionDocument:
    """Build a SolutionDocument over an existing line buffer."""
    header = SolutionHeader()
    blocks: list[ProjectBlock] = []
    global_span: Span | None = None
    global_sections: list[GlobalSection] = []

    i = 0
    while i < len(lines):
        body = _body(lines[i])
        if body.startswith("Project("):
            block = _parse_block(lines, i)
            blocks.append(block)
            i = block.span.end + 1
            continue
        if body == "Global" and global_span is None:
            global_span, global_sections = _parse_global(lines, i)
            i = global_span.end + 1
            continue
        if global_span is None and not blocks:
            _parse_header(body, header)
        i += 1

    entries = []
    seen: set[str] = set()
    for block in blocks:
        if block.guid in seen:
            logger.warning(f"Duplicate project GUID {block.guid} on line {block.span.start + 1}")
        seen.add(block.guid)
        if block.entry is not None:
            entries.append(block.entry)

    relations: list[NestedRelation] = []
    for section in global_sections:
        if section.name == NESTED_PROJECTS:
            relations.extend(_nested_relations(lines, section))

    return SolutionDocument(
        lines=lines,
        newline=newline,
        header=header,
        blocks=blocks,
        entries=entries,
        relations=relations,
        global_span=global_span,
        global_sections=global_sections,
    )


def parse_solution(text: str) -> SolutionDocument:
    """Parse solution text.

    Raises ParseError for unterminated or malformed spans. Blocks that are
    neither solution folders nor recognised project files are kept in
    `blocks` but not modeled as entries.
    """
    return parse_lines(text.split("\n"), detect_newline(text))


def read_solution(sln_path: str) -> SolutionDocument:
    """Read and parse a .sln file. OSError propagates to the caller."""
    with open(sln_path, "r", encoding="utf-8", newline="") as f:
        content = f.read()
    return parse_solution(content)
