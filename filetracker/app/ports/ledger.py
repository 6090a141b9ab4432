"""Ledger port interface for fingerprint registration and lookup."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from filetracker.utils.hashing import Fingerprint

ZERO_ADDRESS = "0x" + "0" * 40


class SigningCredential(BaseModel):
    """Private key used to sign registration transactions. Never mutated."""

    model_config = ConfigDict(frozen=True)

    private_key: SecretStr = Field(..., description="Hex-encoded 32-byte secp256k1 key")


class TransactionHandle(BaseModel):
    """Acknowledgement that a registration transaction was accepted by the node."""

    model_config = ConfigDict(frozen=True)

    tx_hash: str = Field(..., description="0x-prefixed transaction hash")
    fingerprint: str = Field(..., description="Fingerprint carried by the transaction")
    sender: str = Field(default=ZERO_ADDRESS, description="Address that signed the transaction")


class Confirmation(BaseModel):
    """Finalized registration transaction."""

    model_config = ConfigDict(frozen=True)

    tx_hash: str
    block_number: int | None = Field(default=None, ge=0)
    timestamp: int | None = Field(default=None, ge=0, description="Block timestamp (epoch s)")


class FileMetadata(BaseModel):
    """Metadata stored by the contract for one fingerprint.

    A fingerprint that was never registered yields an empty history rather
    than an error.
    """

    model_config = ConfigDict(frozen=True)

    file_name: str = ""
    file_size: int = Field(default=0, ge=0)
    owner: str = ZERO_ADDRESS
    history: tuple[int, ...] = Field(default=(), description="Registration timestamps (epoch s)")

    @property
    def is_registered(self) -> bool:
        return bool(self.history)

    def history_datetimes(self) -> list[datetime]:
        """History rendered as local datetimes, oldest first."""
        return [datetime.fromtimestamp(ts).astimezone() for ts in self.history]


class LedgerPort(Protocol):
    """Port interface for the remote ledger contract.

    Adapters implementing this port must provide:
    - Signed submission of ``(fingerprint, name, size)`` registrations
    - Suspension until a submitted registration is final
    - Read-only, idempotent metadata and history queries

    Side effects: Network I/O against a ledger node (online).
    """

    async def register_fingerprint(
        self,
        fingerprint: Fingerprint,
        file_name: str,
        file_size: int,
        credential: SigningCredential,
    ) -> TransactionHandle:
        """Submit a registration transaction.

        Raises:
            InvalidInputError: Empty name, negative size
            InvalidCredentialError: Malformed or rejected signing key
            LedgerConnectivityError: Node unreachable
            TransactionRevertedError: Node refused the transaction at submission
        """
        ...

    async def await_confirmation(self, handle: TransactionHandle) -> Confirmation:
        """Suspend until ``handle`` is final. No timeout is applied here.

        Raises:
            TransactionRevertedError: Transaction mined with a failed status
            LedgerConnectivityError: Connection lost while waiting
        """
        ...

    async def query_metadata(self, fingerprint: Fingerprint) -> FileMetadata:
        """Return stored metadata and history for ``fingerprint``."""
        ...

    async def query_history(self, fingerprint: Fingerprint) -> tuple[int, ...]:
        """Return the raw registration timestamps for ``fingerprint``."""
        ...
