"""Utility modules for hashing and key management."""

from filetracker.utils.hashing import (
    FINGERPRINT_SIZE,
    Fingerprint,
    compute_fingerprint,
    compute_fingerprint_file,
)

__all__ = [
    "FINGERPRINT_SIZE",
    "Fingerprint",
    "compute_fingerprint",
    "compute_fingerprint_file",
]
