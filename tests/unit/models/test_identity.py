"""Tests for test identities."""

import hashlib
import string

import pytest

from pertestcov.models.identity import (
    TestId,
    fingerprint,
    identify,
    identify_test,
    sanitize_name,
)

ALLOWED = set(string.ascii_letters + string.digits + "-._")


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("pkg.Foo.bar", "pkg.Foo.bar"),
        ("pkg.Foo.bar[param 1]", "pkg.Foo.bar-param-1-"),
        ("a   b", "a-b"),
        ("tests/test_mod.py::test", "tests-test_mod.py-test"),
        ("", ""),
    ],
)
def test_sanitize_name(text: str, expected: str) -> None:
    """Replaces every run of disallowed characters with one dash."""
    assert sanitize_name(text) == expected


@pytest.mark.parametrize(
    "text",
    [
        "Ünïcödé.test",
        "emoji.test_🚀",
        "tab\tand\nnewline",
        "quotes'\"and/slashes\\",
        "".join(chr(code) for code in range(0, 512)),
    ],
)
def test_identify_only_produces_allowed_characters(text: str) -> None:
    """Sanitized names never contain characters outside [A-Za-z0-9._-]."""
    identity = identify(text, text)

    assert set(identity.qualified_name) <= ALLOWED


def test_identify_joins_container_and_case() -> None:
    """Qualified name is <container>.<case>, fingerprinted after sanitizing."""
    identity = identify("pkg.Foo", "bar")

    assert identity.qualified_name == "pkg.Foo.bar"
    assert identity.fingerprint == fingerprint("pkg.Foo.bar")


def test_fingerprint_is_lowercase_md5_hex() -> None:
    """Fingerprint is the MD5 hex digest of the qualified name."""
    expected = hashlib.md5(b"pkg.Foo.bar").hexdigest()

    assert fingerprint("pkg.Foo.bar") == expected
    assert expected == expected.lower()


def test_fingerprint_is_deterministic() -> None:
    """Repeated calls return the same digest."""
    assert fingerprint("pkg.Foo.bar") == fingerprint("pkg.Foo.bar")
    assert identify("pkg.Foo", "bar") == identify("pkg.Foo", "bar")


def test_fingerprint_collision_spot_check() -> None:
    """Distinct names of a large generated corpus get distinct fingerprints."""
    names = {f"pkg.module{i % 97}.Suite{i % 13}.test_{i}" for i in range(20000)}

    assert len({fingerprint(name) for name in names}) == len(names)


class TestSnapshotName:
    """Tests for TestIdentity.snapshot_name."""

    def test_first_occurrence_has_no_suffix(self) -> None:
        """The first occurrence is named by the fingerprint alone."""
        identity = identify("pkg.Foo", "bar")

        assert identity.snapshot_name(0, "exec") == f"{identity.fingerprint}.exec"

    def test_reruns_are_disambiguated(self) -> None:
        """Later occurrences carry their index."""
        identity = identify("pkg.Foo", "bar")

        assert identity.snapshot_name(2, "exec") == f"{identity.fingerprint}.2.exec"


class TestTestId:
    """Tests for building TestId from host identifiers."""

    def test_from_dotted(self) -> None:
        """Splits a unittest id at its last dot."""
        assert TestId.from_dotted("pkg.mod.FooTest.test_bar") == TestId(
            container="pkg.mod.FooTest", case="test_bar"
        )

    def test_from_dotted_without_dot(self) -> None:
        """An id without dots has an empty container."""
        assert TestId.from_dotted("test_bar") == TestId(container="", case="test_bar")

    def test_from_nodeid_with_class(self) -> None:
        """Uses the module path and class as the container."""
        test_id = TestId.from_nodeid("tests/unit/test_mod.py::TestFoo::test_bar")

        assert test_id == TestId(
            container="tests.unit.test_mod.TestFoo", case="test_bar"
        )

    def test_from_nodeid_function(self) -> None:
        """A module-level function lives in its module."""
        test_id = TestId.from_nodeid("tests/test_mod.py::test_bar[1-2]")

        assert test_id == TestId(container="tests.test_mod", case="test_bar[1-2]")
        assert identify_test(test_id).qualified_name == "tests.test_mod.test_bar-1-2-"

    def test_from_nodeid_module_only(self) -> None:
        """A node id without scopes falls back to the dotted module path."""
        assert TestId.from_nodeid("tests/test_mod.py") == TestId(
            container="tests", case="test_mod"
        )
