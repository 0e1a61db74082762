"""
Configuration package.

Settings loading and validation, and the pool registry.
"""

from deepbook_janitor.config.config import NETWORK_URLS, Settings, load_json_config
from deepbook_janitor.config.pools import PoolRegistry, SkippedPool, load_pool_registry

__all__ = [
    "NETWORK_URLS",
    "Settings",
    "load_json_config",
    "PoolRegistry",
    "SkippedPool",
    "load_pool_registry",
]
