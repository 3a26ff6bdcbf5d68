"""Test factories for generating test data."""

from typing import Any
from uuid import uuid4

from polyfactory import PostGenerated, Use
from polyfactory.factories import DataclassFactory
from polyfactory.factories.pydantic_factory import ModelFactory

from pertestcov.config import CoordinatorConfig
from pertestcov.ledger import StatusLedger
from pertestcov.models.identity import TestIdentity, fingerprint
from pertestcov.models.record import TestRecord
from pertestcov.models.snapshot import CoverageSnapshot, CoverageUnavailable


def _fingerprint_of(name: str, values: dict[str, Any]) -> str:
    return fingerprint(values["qualified_name"])


class IdentityFactory(ModelFactory[TestIdentity]):
    """Factory for TestIdentity with a consistent fingerprint."""

    __model__ = TestIdentity

    qualified_name = Use(lambda: f"pkg.module.Suite.test_{uuid4().hex[:8]}")
    fingerprint = PostGenerated(_fingerprint_of)


class RecordFactory(DataclassFactory[TestRecord]):
    """Factory for TestRecord with an empty ledger."""

    __model__ = TestRecord

    identity = Use(IdentityFactory.build)
    occurrence = 0
    ledger = Use(StatusLedger)


class CoordinatorConfigFactory(ModelFactory[CoordinatorConfig]):
    """Factory for CoordinatorConfig that records results without an agent."""

    __model__ = CoordinatorConfig

    run_id = "0"
    agent = "none"
    agent_config = Use(dict)
    timeout = 1.0
    log_file = False


class CoverageSnapshotFactory(DataclassFactory[CoverageSnapshot]):
    """Factory for CoverageSnapshot."""

    __model__ = CoverageSnapshot


class CoverageUnavailableFactory(DataclassFactory[CoverageUnavailable]):
    """Factory for CoverageUnavailable."""

    __model__ = CoverageUnavailable

    reason = "agent unreachable: [Errno 111] Connection refused"
