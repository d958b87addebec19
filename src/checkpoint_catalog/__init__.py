"""
Checkpoint Catalog.

Game catalog sync engine: imports IGDB records into a local
store with idempotent merges, unique slugs and deduplicated
ranked lists.
"""

from checkpoint_catalog.config import Settings, get_settings
from checkpoint_catalog.logger import get_logger, setup_logging

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
    "__version__",
]
