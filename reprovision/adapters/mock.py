"""
Mock adapter — test double for install adapters.

Used in mock mode and in tests to simulate installs without touching
a package manager. Configurable per package identifier.
"""

from __future__ import annotations

from reprovision.adapters.base import Adapter, ExecutionContext
from reprovision.core.models.action import Receipt


class MockAdapter(Adapter):
    """Install adapter that records calls and succeeds unless told otherwise.

    Failures and custom receipts are keyed by package identifier, so a
    test can say "installing Vendor.Tool fails" without knowing the
    planner's action ids.
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] installed",
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._responses: dict[str, Receipt] = {}
        self._raises: dict[str, Exception] = {}
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def installed(self) -> list[str]:
        """Identifiers this mock was asked to install, in call order."""
        return [ctx.identifier for ctx in self._call_log]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, identifier: str, receipt: Receipt) -> None:
        """Set a custom receipt for a specific identifier."""
        self._responses[identifier] = receipt

    def set_failure(self, identifier: str, error: str = "Mock failure") -> None:
        """Configure installs of ``identifier`` to fail."""
        self._responses[identifier] = Receipt.failure(
            adapter=self._name,
            action_id=identifier,
            error=error,
        )

    def set_raises(self, identifier: str, exc: Exception) -> None:
        """Configure installs of ``identifier`` to raise (misbehaving adapter)."""
        self._raises[identifier] = exc

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.identifier:
            return False, "Missing required param: 'identifier'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)

        if context.identifier in self._raises:
            raise self._raises[context.identifier]

        if context.identifier in self._responses:
            return self._responses[context.identifier].model_copy(
                update={"action_id": context.action.id}
            )

        return Receipt.success(
            adapter=self._name,
            action_id=context.action.id,
            output=self._default_output,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Clear call log and custom responses."""
        self._call_log.clear()
        self._responses.clear()
        self._raises.clear()
