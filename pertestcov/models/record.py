"""Record of one test occurrence."""

from collections.abc import Sequence
from dataclasses import dataclass, field

from pertestcov.ledger import StatusLedger
from pertestcov.models.identity import TestIdentity
from pertestcov.models.status import FinalStatus, StatusEvent


@dataclass(frozen=True, kw_only=True)
class TestRecord:
    """Identity, rerun index and event ledger of one test occurrence."""

    __test__ = False

    identity: TestIdentity
    occurrence: int = 0
    ledger: StatusLedger = field(default_factory=StatusLedger)

    @property
    def qualified_name(self) -> str:
        return self.identity.qualified_name

    @property
    def events(self) -> Sequence[StatusEvent]:
        return tuple(self.ledger.events)

    @property
    def final_status(self) -> FinalStatus:
        """Final status; seals the ledger on first access."""
        return self.ledger.seal()
