"""Brace-wrapped version-4 GUIDs for new solution entries."""

from __future__ import annotations

import logging
import random
import re
import uuid
from collections.abc import Iterable

from slnkit.errors import CollisionError

logger = logging.getLogger(__name__)

_GUID_RE = re.compile(
    r"^\{[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}\}$"
)
_V4_GUID_RE = re.compile(
    r"^\{[0-9A-F]{8}-[0-9A-F]{4}-4[0-9A-F]{3}-[89AB][0-9A-F]{3}-[0-9A-F]{12}\}$"
)


def normalize_guid(guid: str) -> str:
    """Uppercase a GUID and make sure it is wrapped in braces."""
    guid = guid.strip().upper()
    if not guid.startswith("{"):
        guid = "{" + guid
    if not guid.endswith("}"):
        guid = guid + "}"
    return guid


def is_valid_guid(text: str) -> bool:
    """True for any braced GUID, in either case."""
    return bool(_GUID_RE.match(text))


def is_generated_guid(text: str) -> bool:
    """True only for the uppercase version-4 form this module produces."""
    return bool(_V4_GUID_RE.match(text))


class GuidGenerator:
    """Produces v4 GUIDs that do not collide with a document's identifiers.

    Uses a plain `random.Random`; the collision domain is a single solution
    file, so cryptographic strength is not needed. Pass `seed` for
    reproducible output in tests.
    """

    def __init__(self, seed: int | None = None, max_attempts: int = 100) -> None:
        self._rng = random.Random(seed)
        self.max_attempts = max_attempts

    def _candidate(self) -> str:
        value = uuid.UUID(int=self._rng.getrandbits(128), version=4)
        return "{" + str(value).upper() + "}"

    def generate(self, existing: Iterable[str] = ()) -> str:
        """Return a fresh GUID absent from `existing` (compared case-insensitively)."""
        taken = {normalize_guid(g) for g in existing}
        for _ in range(self.max_attempts):
            guid = self._candidate()
            if normalize_guid(guid) not in taken:
                return guid
            logger.debug(f"Generated GUID {guid} collides with an existing entry, retrying")
        raise CollisionError(
            f"Could not generate a unique GUID after {self.max_attempts} attempts"
        )
