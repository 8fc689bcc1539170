"""Core data types and configuration for solution documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class EntryKind(str, Enum):
    PROJECT = "project"
    FOLDER = "folder"


class SectionKind(str, Enum):
    PRE_PROJECT = "preProject"
    POST_PROJECT = "postProject"
    PRE_SOLUTION = "preSolution"
    POST_SOLUTION = "postSolution"


@dataclass(frozen=True)
class Span:
    """Inclusive range of line indexes in the document buffer."""
    start: int
    end: int

    def __contains__(self, index: object) -> bool:
        return isinstance(index, int) and self.start <= index <= self.end


@dataclass
class ProjectSection:
    """A ProjectSection(Name) block nested inside a Project span."""
    name: str
    kind: SectionKind
    span: Span
    items: dict[str, str] = field(default_factory=dict)
    item_lines: dict[str, int] = field(default_factory=dict)


@dataclass
class GlobalSection:
    """A GlobalSection(Name) block inside Global/EndGlobal."""
    name: str
    kind: SectionKind
    span: Span
    items: dict[str, str] = field(default_factory=dict)


@dataclass
class ProjectEntry:
    type_guid: str
    name: str
    relative_path: str
    guid: str
    span: Span | None = None
    sections: list[ProjectSection] = field(default_factory=list)
    parent_guid: str | None = None

    kind = EntryKind.PROJECT

    @property
    def normalized_path(self) -> str:
        return self.relative_path.replace("\\", "/")


@dataclass
class FolderEntry:
    name: str
    guid: str
    type_guid: str = ""
    path: str = ""
    span: Span | None = None
    sections: list[ProjectSection] = field(default_factory=list)
    solution_items: dict[str, str] = field(default_factory=dict)
    children: list[ProjectEntry | FolderEntry] = field(default_factory=list)
    parent_guid: str | None = None

    kind = EntryKind.FOLDER

    def solution_items_section(self) -> ProjectSection | None:
        for section in self.sections:
            if section.name == "SolutionItems":
                return section
        return None


Entry = ProjectEntry | FolderEntry


@dataclass
class ProjectBlock:
    """Any Project...EndProject span, modeled or not."""
    type_guid: str
    name: str
    path: str
    guid: str
    span: Span
    entry: ProjectEntry | FolderEntry | None = None


@dataclass(frozen=True)
class NestedRelation:
    child_guid: str
    parent_guid: str
    line: int | None = field(default=None, compare=False)


@dataclass(frozen=True)
class SolutionItemReference:
    """A `path = path` pair in a folder's SolutionItems section."""
    folder_guid: str
    relative_path: str
    line: int | None = field(default=None, compare=False)


@dataclass
class SolutionHeader:
    format_version: str = ""
    visual_studio_version: str | None = None
    minimum_visual_studio_version: str | None = None


@dataclass
class EditorConfig:
    solution_items_folder: str = "Solution Items"
    indent: str = "\t"
    item_separator: str = "\\"
    max_guid_attempts: int = 100
