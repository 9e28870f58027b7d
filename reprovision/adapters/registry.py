"""
Adapter registry — central dispatch for install adapters.

The registry handles registration, lookup, mock mode, and action
execution. The planner never talks to adapters directly — always
through the registry.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from reprovision.adapters.base import Adapter, ExecutionContext
from reprovision.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Central registry and dispatcher for install adapters.

    Features:
        - Register/unregister adapters by name
        - Mock mode: every install succeeds without running anything
        - Execute actions through the appropriate adapter
        - Query adapter availability
    """

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._mock_mode = mock_mode
        self._mock_adapter: Adapter | None = None

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_adapter: Adapter | None = None) -> None:
        """Enable or disable mock mode.

        Args:
            enabled: Whether to use mock mode.
            mock_adapter: Optional custom mock adapter. If None, uses default.
        """
        self._mock_mode = enabled
        self._mock_adapter = mock_adapter

    def register(self, adapter: Adapter) -> None:
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def unregister(self, name: str) -> None:
        self._adapters.pop(name, None)

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def list_adapters(self) -> list[str]:
        return list(self._adapters.keys())

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Get availability status of all registered adapters."""
        status = {}
        for name, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return status

    def execute_action(
        self,
        action: Action,
        dry_run: bool = False,
        timeout: int = 1800,
    ) -> Receipt:
        """Execute an action through the appropriate adapter.

        This is the main dispatch method. It:
        1. Resolves the adapter (or mock)
        2. Builds the execution context
        3. Validates the action
        4. Executes (or dry-runs)
        5. Returns a Receipt (never raises)

        Args:
            action: The install action to execute.
            dry_run: If True, validate but don't execute.
            timeout: Seconds the adapter may spend on the install.

        Returns:
            Receipt with execution results.
        """
        start_time = time.monotonic()

        context = ExecutionContext(
            action=action,
            dry_run=dry_run,
            timeout=timeout,
            params=action.params,
        )

        # Resolve adapter
        adapter: Adapter | None = None
        if self._mock_mode and self._mock_adapter:
            adapter = self._mock_adapter
        elif self._mock_mode:
            if dry_run:
                return Receipt.skip(
                    adapter=action.adapter,
                    action_id=action.id,
                    reason=f"[dry-run] Would install {context.identifier} via {action.adapter}",
                    metadata={"mock": True, "dry_run": True},
                )
            return Receipt.success(
                adapter=action.adapter,
                action_id=action.id,
                output=f"[mock] {action.adapter} install {context.identifier}",
                metadata={"mock": True, "dry_run": dry_run},
            )
        else:
            adapter = self._adapters.get(action.adapter)

        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        # Validate
        try:
            is_valid, error_msg = adapter.validate(context)
            if not is_valid:
                return Receipt.failure(
                    adapter=action.adapter,
                    action_id=action.id,
                    error=f"Validation failed: {error_msg}",
                )
        except Exception as e:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation error: {e}",
            )

        if dry_run:
            return Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason=f"[dry-run] Would install {context.identifier} via {action.adapter}",
                metadata={"dry_run": True},
            )

        # Execute
        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised during execution: %s", action.adapter, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        receipt.duration_ms = int((time.monotonic() - start_time) * 1000)
        return receipt
