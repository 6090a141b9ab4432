"""FileTracker - register file fingerprints on a ledger and verify them later."""

__version__ = "0.1.0"
__author__ = "FileTracker Contributors"

from filetracker.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
