"""Stable identities for test cases."""

import hashlib
import re
from dataclasses import dataclass
from pathlib import PurePosixPath

from pydantic import Field

from pertestcov.models.base import Model

DISALLOWED_CHARACTERS = re.compile(r"[^a-zA-Z0-9\-._]+")


def sanitize_name(text: str) -> str:
    """Replace every run of characters outside ``[A-Za-z0-9._-]`` with ``-``."""
    return DISALLOWED_CHARACTERS.sub("-", text)


def fingerprint(qualified_name: str) -> str:
    """Return the lowercase hex MD5 digest of a qualified name.

    MD5 is used as a short, deterministic file-system key, not for security.
    """
    return hashlib.md5(
        qualified_name.encode("utf-8"), usedforsecurity=False
    ).hexdigest()


@dataclass(frozen=True)
class TestId:
    """Raw identifier of a test case as reported by a host framework."""

    __test__ = False

    container: str
    case: str

    @classmethod
    def from_dotted(cls, dotted: str) -> "TestId":
        """Split a dotted id (``pkg.mod.Class.method``) at its last dot."""
        container, _, case = dotted.rpartition(".")
        return cls(container=container, case=case)

    @classmethod
    def from_nodeid(cls, nodeid: str) -> "TestId":
        """Build an id from a pytest node id.

        ``tests/test_mod.py::TestClass::test_case[param]`` becomes the
        container ``tests.test_mod.TestClass`` and case ``test_case[param]``.
        """
        path, *scopes = nodeid.split("::")
        module = ".".join(PurePosixPath(path.removesuffix(".py")).parts)
        if not scopes:
            return cls.from_dotted(module)
        return cls(container=".".join([module, *scopes[:-1]]), case=scopes[-1])


class TestIdentity(Model):
    """Sanitized qualified name of a test case and its fingerprint."""

    __test__ = False

    qualified_name: str = Field(..., description="Sanitized <container>.<case>")
    fingerprint: str = Field(..., description="Hex digest of qualified_name")

    def snapshot_name(self, occurrence: int, extension: str) -> str:
        """File name of the coverage snapshot for one occurrence of the test."""
        if occurrence:
            return f"{self.fingerprint}.{occurrence}.{extension}"
        return f"{self.fingerprint}.{extension}"


def identify(container: str, case: str) -> TestIdentity:
    """Derive the identity of a test case. Never raises for any input."""
    qualified_name = sanitize_name(f"{container}.{case}")
    return TestIdentity(
        qualified_name=qualified_name, fingerprint=fingerprint(qualified_name)
    )


def identify_test(test_id: TestId) -> TestIdentity:
    """Derive the identity of a host-reported test id."""
    return identify(test_id.container, test_id.case)
