"""
Collector base — the contract every inventory source implements.

A collector answers one question: "what software does this source say
is installed right now?" It never changes the system, and a source
that is not present on this machine is not an error: it simply
contributes nothing.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator

from reprovision.core.models.inventory import SoftwareRecord, SourceKind

logger = logging.getLogger(__name__)


class Collector(ABC):
    """Abstract base class for inventory sources.

    To create a new collector:
        1. Subclass Collector
        2. Implement name, kind, is_available, _records
        3. Add it to ``build_collectors``
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Collector identifier (e.g., 'registry', 'winget')."""

    @property
    @abstractmethod
    def kind(self) -> SourceKind:
        """Source kind stamped on every record this collector yields."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the backing tool or API exists on this machine.

        Should be fast and never raise.
        """

    @abstractmethod
    def _records(self) -> Iterator[SoftwareRecord]:
        """Yield records from the source. Only called when available."""

    def produce(self) -> Iterator[SoftwareRecord]:
        """Lazily yield the records this source currently reports.

        Unavailable sources yield nothing. The iterator reflects the
        system at the time it is consumed and cannot be restarted.
        """
        try:
            available = self.is_available()
        except Exception as e:
            logger.warning("Availability check for %s failed: %s", self.name, e)
            available = False

        if not available:
            logger.info("Source %s not available — skipping", self.name)
            return iter(())
        return self._records()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
