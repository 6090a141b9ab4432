"""Hashing utilities for deterministic content fingerprints.

Fingerprints are keccak256 digests (the Ethereum variant, not NIST SHA3-256)
so they compare bit-for-bit with the ``bytes32`` keys stored by the ledger
contract.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from eth_utils import keccak

from filetracker.errors import InvalidInputError

FINGERPRINT_SIZE = 32

_HEX_PATTERN = re.compile(r"^(0[xX])?[0-9a-fA-F]{64}$")


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """Fixed-width 32-byte content fingerprint."""

    digest: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.digest, bytes) or len(self.digest) != FINGERPRINT_SIZE:
            raise InvalidInputError(
                f"Fingerprint must be exactly {FINGERPRINT_SIZE} bytes, "
                f"got {len(self.digest) if isinstance(self.digest, bytes) else type(self.digest).__name__}"
            )

    @classmethod
    def from_hex(cls, value: str) -> Fingerprint:
        """Parse a ``0x``-prefixed (or bare) 64 hex digit string."""
        text = value.strip()
        if not _HEX_PATTERN.match(text):
            raise InvalidInputError(f"Malformed fingerprint: {value!r}")
        if text[:2].lower() == "0x":
            text = text[2:]
        return cls(bytes.fromhex(text))

    @property
    def hex(self) -> str:
        """Canonical ``0x`` + 64 lowercase hex digits rendering."""
        return "0x" + self.digest.hex()

    def __str__(self) -> str:
        return self.hex


def compute_fingerprint(content: bytes) -> Fingerprint:
    """Compute the keccak256 fingerprint of ``content``.

    Args:
        content: Full file content as one contiguous buffer

    Returns:
        Fingerprint of the content (empty input hashes the empty string)
    """
    return Fingerprint(keccak(primitive=bytes(content)))


def compute_fingerprint_file(file_path: Path) -> Fingerprint:
    """Compute the fingerprint of a file read fully into memory.

    Raises:
        FileNotFoundError: If file does not exist
        PermissionError: If file cannot be read
    """
    return compute_fingerprint(Path(file_path).read_bytes())
