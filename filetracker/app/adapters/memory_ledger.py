"""In-process ledger with the same semantics as the FileTracker contract.

Used by the ``memory`` network and by tests. Registrations become visible
only once confirmed, each confirmation appends a timestamp to the
fingerprint's history, and the first registration owns the name, size, and
owner fields.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from eth_account import Account
from eth_utils import keccak

from filetracker.app.ports.ledger import (
    Confirmation,
    FileMetadata,
    SigningCredential,
    TransactionHandle,
)
from filetracker.errors import (
    InvalidCredentialError,
    InvalidInputError,
    LedgerError,
    LedgerStage,
    TransactionRevertedError,
)
from filetracker.utils.hashing import Fingerprint

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _StoredFile:
    file_name: str
    file_size: int
    owner: str
    history: list[int] = field(default_factory=list)


@dataclass(slots=True)
class _PendingTransaction:
    fingerprint: Fingerprint
    file_name: str
    file_size: int
    owner: str


class InMemoryLedger:
    """Ledger adapter backed by process memory.

    Example:
        >>> ledger = InMemoryLedger()
        >>> ledger.hold_confirmations()   # confirmations now wait for release
        >>> ledger.fail_next("submit", LedgerConnectivityError("node down"))
    """

    def __init__(self, *, clock: Callable[[], int] | None = None) -> None:
        self._clock = clock or (lambda: int(time.time()))
        self._files: dict[bytes, _StoredFile] = {}
        self._pending: dict[str, _PendingTransaction] = {}
        self._nonce = itertools.count(1)
        self._block_number = 0
        self._injected: dict[LedgerStage, list[LedgerError]] = {
            "submit": [],
            "confirm": [],
            "query": [],
        }
        self._release = asyncio.Event()
        self._release.set()
        self.calls: list[str] = []

    # ------------------------------------------------------------------ #
    # Test controls
    # ------------------------------------------------------------------ #

    def fail_next(self, stage: LedgerStage, error: LedgerError) -> None:
        """Raise ``error`` on the next call at ``stage``."""
        if error.stage is None:
            error.stage = stage
        self._injected[stage].append(error)

    def hold_confirmations(self) -> None:
        """Make ``await_confirmation`` suspend until :meth:`release_confirmations`."""
        self._release.clear()

    def release_confirmations(self) -> None:
        self._release.set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _raise_injected(self, stage: LedgerStage) -> None:
        queue = self._injected[stage]
        if queue:
            raise queue.pop(0)

    # ------------------------------------------------------------------ #
    # LedgerPort
    # ------------------------------------------------------------------ #

    async def register_fingerprint(
        self,
        fingerprint: Fingerprint,
        file_name: str,
        file_size: int,
        credential: SigningCredential,
    ) -> TransactionHandle:
        self.calls.append("register_fingerprint")
        self._raise_injected("submit")

        if not file_name:
            raise InvalidInputError("File name must not be empty")
        if file_size < 0:
            raise InvalidInputError(f"File size must be unsigned, got {file_size}")

        try:
            sender = Account.from_key(credential.private_key.get_secret_value()).address
        except (ValueError, TypeError) as exc:
            raise InvalidCredentialError(f"Invalid signing key: {exc}", stage="submit") from exc

        nonce = next(self._nonce)
        tx_hash = "0x" + keccak(fingerprint.digest + nonce.to_bytes(8, "big")).hex()
        self._pending[tx_hash] = _PendingTransaction(
            fingerprint=fingerprint,
            file_name=file_name,
            file_size=file_size,
            owner=sender,
        )
        await asyncio.sleep(0)
        return TransactionHandle(tx_hash=tx_hash, fingerprint=fingerprint.hex, sender=sender)

    async def await_confirmation(self, handle: TransactionHandle) -> Confirmation:
        self.calls.append("await_confirmation")
        await self._release.wait()

        pending = self._pending.pop(handle.tx_hash, None)
        if pending is None:
            raise TransactionRevertedError(
                f"Unknown transaction {handle.tx_hash}", stage="confirm"
            )
        self._raise_injected("confirm")

        timestamp = self._clock()
        stored = self._files.setdefault(
            pending.fingerprint.digest,
            _StoredFile(
                file_name=pending.file_name,
                file_size=pending.file_size,
                owner=pending.owner,
            ),
        )
        stored.history.append(timestamp)
        self._block_number += 1
        logger.debug("Confirmed %s in block %d", handle.tx_hash, self._block_number)
        return Confirmation(
            tx_hash=handle.tx_hash,
            block_number=self._block_number,
            timestamp=timestamp,
        )

    async def query_metadata(self, fingerprint: Fingerprint) -> FileMetadata:
        self.calls.append("query_metadata")
        self._raise_injected("query")
        await asyncio.sleep(0)

        stored = self._files.get(fingerprint.digest)
        if stored is None:
            return FileMetadata()
        return FileMetadata(
            file_name=stored.file_name,
            file_size=stored.file_size,
            owner=stored.owner,
            history=tuple(stored.history),
        )

    async def query_history(self, fingerprint: Fingerprint) -> tuple[int, ...]:
        self.calls.append("query_history")
        self._raise_injected("query")
        await asyncio.sleep(0)

        stored = self._files.get(fingerprint.digest)
        return tuple(stored.history) if stored else ()
