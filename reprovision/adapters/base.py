"""
Adapter base — the protocol contract between the planner and installers.

The planner only talks to adapters through this protocol, never
directly to winget or choco. Each adapter can install software by
identifier and answers with a Receipt.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from reprovision.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """Everything an adapter needs to execute an install action."""

    action: Action
    dry_run: bool = False
    timeout: int = 1800
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def identifier(self) -> str:
        """Package identifier to install."""
        return str(self.params.get("identifier", ""))

    @property
    def origin(self) -> str | None:
        """Source channel the identifier belongs to, if any."""
        return self.params.get("origin") or None


class Adapter(ABC):
    """Abstract base class for install adapters.

    Adapters perform external side effects and return receipts.
    They NEVER raise exceptions — failures are captured in the Receipt.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'winget', 'chocolatey')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available.

        Should be fast and never raise.
        """

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the action can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the action and return a receipt.

        MUST never raise exceptions. All failures are captured
        in the Receipt with status='failed'.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
