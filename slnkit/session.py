"""File boundary: locked read/edit/write of .sln files."""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
import threading
import weakref
from collections.abc import Iterator
from pathlib import Path

from slnkit.config import EditorConfig
from slnkit.dotnet.guids import GuidGenerator
from slnkit.dotnet.solution import read_solution
from slnkit.editing.editor import SolutionEditor

logger = logging.getLogger(__name__)

_EMPTY_SOLUTION = """Microsoft Visual Studio Solution File, Format Version 12.00
# Visual Studio Version 17
VisualStudioVersion = 17.0.31903.59
MinimumVisualStudioVersion = 10.0.40219.1
Global
\tGlobalSection(SolutionProperties) = preSolution
\t\tHideSolutionNode = FALSE
\tEndGlobalSection
\tGlobalSection(ExtensibilityGlobals) = postSolution
\t\tSolutionGuid = {guid}
\tEndGlobalSection
EndGlobal
"""


class EditQueue:
    """One lock per solution path, so edits to the same file run one at a time.

    Locks are held weakly: an entry disappears once no caller holds its lock.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def lock_for(self, sln_path: str | os.PathLike) -> threading.Lock:
        key = os.path.normcase(os.path.abspath(sln_path))
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)


_default_queue = EditQueue()


def write_solution_text(sln_path: str | os.PathLike, text: str) -> None:
    """Replace the file's content atomically; on failure the old file is intact."""
    target = os.path.abspath(sln_path)
    fd, tmp_path = tempfile.mkstemp(
        prefix=".slnkit-", suffix=".tmp", dir=os.path.dirname(target)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        if os.path.exists(target):
            shutil.copymode(target, tmp_path)
        os.replace(tmp_path, target)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


@contextlib.contextmanager
def edit_solution(
    sln_path: str | os.PathLike,
    queue: EditQueue | None = None,
    generator: GuidGenerator | None = None,
    config: EditorConfig | None = None,
) -> Iterator[SolutionEditor]:
    """Read, edit and write a solution as one step.

    Holds the path's lock for the whole block. The new text is written only
    if the block exits normally and at least one edit was applied; an
    exception inside the block discards every edit.
    """
    queue = queue or _default_queue
    with queue.lock_for(sln_path):
        document = read_solution(str(sln_path))
        editor = SolutionEditor(document, generator=generator, config=config)
        yield editor
        if editor.document is document:
            logger.debug(f"No changes to write for {sln_path}")
            return
        write_solution_text(sln_path, editor.text())
        logger.info(f"Wrote {sln_path}")


def create_empty_solution(
    sln_path: str | os.PathLike, generator: GuidGenerator | None = None
) -> str:
    """Write a new, empty format-12 solution and return its SolutionGuid.

    Raises FileExistsError rather than overwriting an existing file.
    """
    guid = (generator or GuidGenerator()).generate()
    Path(sln_path).parent.mkdir(parents=True, exist_ok=True)
    with open(sln_path, "x", encoding="utf-8", newline="") as f:
        f.write(_EMPTY_SOLUTION.replace("{guid}", guid))
    logger.info(f"Created solution {sln_path}")
    return guid


def discover_solutions(root: str | os.PathLike) -> list[str]:
    """Return the .sln files directly inside `root`, sorted by name."""
    root_path = Path(root)
    if not root_path.is_dir():
        return []
    return sorted(str(p) for p in root_path.glob("*.sln") if p.is_file())
