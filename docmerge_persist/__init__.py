"""
Persistence facade exposing the mapping configuration stores.
"""

from .schemas.configrec import ConfigSummary
from .stores.base_store import (
    ConfigStore,
    PersistHealth,
    StoreError,
    StoreInitializationError,
    StoreLockedError,
    StoreValidationError,
)
from .stores.config_store import InMemoryConfigStore, XLSXConfigStore, init_config_store

__all__ = [
    "ConfigStore",
    "ConfigSummary",
    "InMemoryConfigStore",
    "XLSXConfigStore",
    "init_config_store",
    "PersistHealth",
    "StoreError",
    "StoreInitializationError",
    "StoreLockedError",
    "StoreValidationError",
]
