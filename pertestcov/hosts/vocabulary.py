"""Translation of host framework event names into lifecycle events."""

from collections.abc import Mapping
from dataclasses import dataclass

from pertestcov.ledger import UnknownEventError
from pertestcov.models.status import StatusEvent


@dataclass(frozen=True, kw_only=True)
class EventVocabulary:
    """Event names of one host framework flavor, mapped to lifecycle events."""

    flavor: str
    events: Mapping[str, StatusEvent]

    def translate(self, name: str) -> StatusEvent:
        """Map a host event name to a lifecycle event.

        Raises:
            UnknownEventError: If the flavor does not know the name

        """
        try:
            return self.events[name]
        except KeyError:
            raise UnknownEventError(
                f"Event '{name}' is not part of the {self.flavor} vocabulary"
            ) from None
