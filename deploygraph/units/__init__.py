"""
Provisioning units.

One class per independently deployable bundle of resources. Units only
couple to each other through the facts they declare.
"""

from __future__ import annotations

from .base import ProvisionContext, Unit, UnitState
from .bastion import BastionUnit
from .cache import CacheServiceUnit
from .cluster import ClusterUnit
from .database import DatabaseServiceUnit, ManagedDatabaseUnit
from .network import NetworkUnit
from .service import ApplicationServiceUnit
from .storage import StorageUnit

__all__ = [
    # Protocol
    "ProvisionContext",
    "Unit",
    "UnitState",
    # Units
    "ApplicationServiceUnit",
    "BastionUnit",
    "CacheServiceUnit",
    "ClusterUnit",
    "DatabaseServiceUnit",
    "ManagedDatabaseUnit",
    "NetworkUnit",
    "StorageUnit",
]
