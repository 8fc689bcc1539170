"""slnkit - Parse and restructure Visual Studio solution (.sln) files."""

from slnkit.dotnet.solution import SolutionDocument, parse_solution, read_solution
from slnkit.editing.editor import SolutionEditor
from slnkit.graph.hierarchy import TreeContext, build_hierarchy
from slnkit.output import serialize

__version__ = "0.1.0"
__all__ = [
    "SolutionDocument",
    "SolutionEditor",
    "TreeContext",
    "build_hierarchy",
    "parse_solution",
    "read_solution",
    "serialize",
]
