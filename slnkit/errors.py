"""Exception taxonomy for solution parsing and editing."""

from __future__ import annotations


class SolutionError(Exception):
    """Base class for everything slnkit raises on purpose."""


class ParseError(SolutionError):
    """A span in the solution text is malformed or never closed."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.message = message
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class EntryReferenceError(SolutionError):
    """An operation named a GUID that does not resolve to a usable entry."""

    def __init__(self, guid: str | None, message: str) -> None:
        self.guid = guid
        super().__init__(message)


class CollisionError(SolutionError):
    """GUID generation kept colliding with existing identifiers."""


class NestingCycleError(SolutionError):
    """Re-parenting would make an entry its own ancestor."""
