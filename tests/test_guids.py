"""Tests for GUID generation and validation."""

from __future__ import annotations

import pytest

from slnkit.dotnet.guids import (
    GuidGenerator,
    is_generated_guid,
    is_valid_guid,
    normalize_guid,
)
from slnkit.errors import CollisionError


class _ScriptedGenerator(GuidGenerator):
    """Returns canned candidates instead of random ones."""

    def __init__(self, values, max_attempts=10):
        super().__init__(max_attempts=max_attempts)
        self._values = iter(values)

    def _candidate(self):
        return next(self._values)


A = "{AAAAAAAA-0000-4000-8000-000000000001}"
B = "{BBBBBBBB-0000-4000-8000-000000000002}"


class TestGuidGenerator:
    def test_format(self):
        gen = GuidGenerator(seed=1)
        for _ in range(50):
            guid = gen.generate()
            assert is_generated_guid(guid)
            assert guid == guid.upper()
            assert guid[15] == "4"
            assert guid[20] in "89AB"

    def test_seed_is_reproducible(self):
        assert GuidGenerator(seed=7).generate() == GuidGenerator(seed=7).generate()
        assert GuidGenerator(seed=7).generate() != GuidGenerator(seed=8).generate()

    def test_retries_on_collision(self):
        gen = _ScriptedGenerator([A, A.lower(), B])
        assert gen.generate(existing=[A]) == B

    def test_collision_error_when_attempts_exhausted(self):
        gen = _ScriptedGenerator([A] * 3, max_attempts=3)
        with pytest.raises(CollisionError):
            gen.generate(existing=[A])

    def test_avoids_existing_set(self):
        gen = GuidGenerator(seed=3)
        taken = {gen.generate() for _ in range(20)}
        fresh = GuidGenerator(seed=3).generate(existing=taken)
        assert fresh not in taken


class TestGuidHelpers:
    def test_normalize_adds_braces_and_uppercases(self):
        assert normalize_guid("aaaaaaaa-0000-4000-8000-000000000001") == A
        assert normalize_guid(" " + A.lower() + " ") == A

    def test_is_valid_guid(self):
        assert is_valid_guid(A)
        assert is_valid_guid(A.lower())
        assert not is_valid_guid("AAAAAAAA-0000-4000-8000-000000000001")
        assert not is_valid_guid("{AAAA}")
        assert not is_valid_guid("Libs")

    def test_generated_form_is_stricter(self):
        assert is_generated_guid(A)
        assert not is_generated_guid(A.lower())
        assert not is_generated_guid("{FAE04EC0-301F-11D3-BF4B-00C04F79EFBC}")
