"""
Domain models — Pydantic types for reprovision.

All models are re-exported here for convenient access:

    from reprovision.core.models import SoftwareRecord, MergedEntry, Receipt
"""

from reprovision.core.models.action import Action, Receipt
from reprovision.core.models.inventory import (
    IdentityKey,
    InventorySnapshot,
    MergedEntry,
    SoftwareRecord,
    SourceKind,
    SourceReference,
)
from reprovision.core.models.settings import (
    CollectionSettings,
    ReinstallSettings,
    Settings,
    SourceSettings,
)

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # inventory.py
    "IdentityKey",
    "InventorySnapshot",
    "MergedEntry",
    "SoftwareRecord",
    "SourceKind",
    "SourceReference",
    # settings.py
    "CollectionSettings",
    "ReinstallSettings",
    "Settings",
    "SourceSettings",
]
