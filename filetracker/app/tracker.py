"""Tracker controller: the state machine behind select, upload, register, and verify.

Each public operation is one coroutine with a fixed order of steps
(read -> hash -> compare or submit -> confirm -> report). Every failure is
caught here, written to the session audit log, stored in the error slot, and
returned as an :class:`OperationResult`; nothing propagates to the caller.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict

from filetracker.app.ports import (
    Confirmation,
    FileMetadata,
    FileSourcePort,
    JournalPort,
    LedgerPort,
    SigningCredential,
    TransactionHandle,
)
from filetracker.app.records import (
    COMMITTED_STATES,
    ErrorNotice,
    IntegrityRecord,
    RecordState,
    Session,
    TrackerSnapshot,
)
from filetracker.errors import (
    ConfigurationError,
    ConfirmationTimeoutError,
    ErrorKind,
    FileReadError,
    FileTrackerError,
    HashComputationError,
    LedgerError,
    LedgerStage,
    OperationInProgressError,
    PreconditionError,
)
from filetracker.utils.hashing import compute_fingerprint

logger = logging.getLogger(__name__)

T = TypeVar("T")

MISMATCH_MESSAGE = "File content does not match the stored hash"
NOT_FOUND_MESSAGE = "No history found for this hash."


class Outcome(str, Enum):
    """How an operation ended."""

    SUCCESS = "success"
    MISMATCH = "mismatch"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"


class OperationResult(BaseModel):
    """Structured result returned by every tracker operation."""

    model_config = ConfigDict(frozen=True)

    operation: str
    outcome: Outcome
    error: ErrorNotice | None = None
    snapshot: TrackerSnapshot

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS


class TrackerController:
    """Orchestrate hashing, the integrity record, and the ledger for one file at a time.

    Args:
        ledger: Ledger adapter used for registration and lookups
        credential: Signing credential for registrations (read-only)
        confirmation_timeout: Optional deadline for confirmations, in seconds
        journal: Optional persistent journal receiving completed operations
    """

    def __init__(
        self,
        ledger: LedgerPort,
        credential: SigningCredential | None = None,
        *,
        confirmation_timeout: float | None = None,
        journal: JournalPort | None = None,
    ) -> None:
        self._ledger = ledger
        self._credential = credential
        self._confirmation_timeout = confirmation_timeout
        self._journal = journal
        self._generations = itertools.count(1)
        self._session = Session(generation=0)

    # ------------------------------------------------------------------ #
    # Presentation surface
    # ------------------------------------------------------------------ #

    def snapshot(self) -> TrackerSnapshot:
        """Current record, audit log, and error slot."""
        return self._session.snapshot()

    @property
    def state(self) -> RecordState | None:
        record = self._session.record
        return record.state if record is not None else None

    @property
    def generation(self) -> int:
        return self._session.generation

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    async def select_file(self, source: FileSourcePort) -> OperationResult:
        """Start a new session for ``source``, discarding the previous one."""
        session = Session(
            generation=next(self._generations),
            record=IntegrityRecord(file_name=source.name, file_size=source.size),
            source=source,
        )
        previous = self._session
        self._session = session
        if previous.busy:
            logger.info(
                "Session %d superseded while an operation was outstanding", previous.generation
            )
        session.audit_log.append(f"File selected: {source.name}")
        return self._result(session, "select", Outcome.SUCCESS)

    async def upload(self) -> OperationResult:
        """Read the selected file and compute its fingerprint."""
        operation = "upload"
        session = self._session
        record = session.record
        if record is None or session.source is None:
            return self._reject(session, operation, PreconditionError("No file selected"))
        if session.busy:
            return self._reject(session, operation, self._busy_error(operation))

        start = record.effective_state
        if start not in (RecordState.EMPTY, RecordState.HASHED):
            return self._reject(
                session,
                operation,
                PreconditionError(f"File already uploaded and {start.value}"),
            )

        session.error = None
        session.busy = True
        try:
            content = await self._read(session.source)
            if self._is_stale(session):
                return self._superseded(session, operation)
            session.audit_log.append("File content read successfully")

            if len(content) != record.file_size:
                raise HashComputationError(
                    f"Read {len(content)} bytes but file declares {record.file_size}"
                )
            fingerprint = compute_fingerprint(content)
            session.audit_log.append(f"Computed hash: {fingerprint.hex}")

            record.local_fingerprint = fingerprint
            record.state = RecordState.HASHED
            record.resume_state = None
            return self._complete(session, operation, Outcome.SUCCESS)
        except FileTrackerError as exc:
            return self._fail(session, operation, start, "Error computing hash or storing data", exc)
        finally:
            session.busy = False

    async def register_on_chain(self) -> OperationResult:
        """Submit the local fingerprint to the ledger and wait for confirmation."""
        operation = "register"
        session = self._session
        record = session.record
        if record is None:
            return self._reject(session, operation, PreconditionError("No file selected"))
        if session.busy:
            return self._reject(session, operation, self._busy_error(operation))

        start = record.effective_state
        if start in COMMITTED_STATES or record.confirmed_fingerprint is not None:
            return self._reject(
                session,
                operation,
                PreconditionError("Fingerprint already registered on the ledger"),
            )
        if record.local_fingerprint is None or not record.file_name or record.file_size is None:
            return self._reject(
                session, operation, PreconditionError("File hash, name, or size is missing")
            )
        # MISMATCHED without a confirmed fingerprint means verify found nothing to compare.
        if start not in (RecordState.HASHED, RecordState.MISMATCHED):
            return self._reject(
                session,
                operation,
                PreconditionError(f"Cannot register a record that is {start.value}"),
            )
        if self._credential is None:
            return self._reject(
                session, operation, ConfigurationError("No signing credential supplied")
            )

        fingerprint = record.local_fingerprint
        session.error = None
        session.busy = True
        record.state = RecordState.REGISTERING
        try:
            session.audit_log.append(
                f"Submitting {fingerprint.hex} ({record.file_name}, {record.file_size} bytes)"
            )
            handle = await self._ledger_call(
                "submit",
                self._ledger.register_fingerprint(
                    fingerprint, record.file_name, record.file_size, self._credential
                ),
            )
            if self._is_stale(session):
                return self._superseded(session, operation, handle)
            session.audit_log.append(f"Transaction sent: {handle.tx_hash}")

            confirmation = await self._confirm(handle)
            if self._is_stale(session):
                return self._superseded(session, operation, handle)
            block = (
                f" in block {confirmation.block_number}"
                if confirmation.block_number is not None
                else ""
            )
            session.audit_log.append(f"Transaction confirmed{block}")

            record.confirmed_fingerprint = fingerprint
            record.state = RecordState.REGISTERED
            record.resume_state = None
            session.audit_log.append(f"File ID set: {fingerprint.hex}")
            return self._complete(
                session, operation, Outcome.SUCCESS, details={"tx_hash": handle.tx_hash}
            )
        except FileTrackerError as exc:
            return self._fail(session, operation, start, self._register_context(exc), exc)
        finally:
            session.busy = False

    async def verify(self, candidate: FileSourcePort | bytes | None = None) -> OperationResult:
        """Hash ``candidate`` (default: the selected file) and check it against the ledger.

        With a confirmed registration in the session the candidate must match
        it before history is fetched. Without one, the candidate's own
        fingerprint is looked up on the ledger.
        """
        operation = "verify"
        session = self._session
        record = session.record
        if record is None or session.source is None:
            return self._reject(
                session, operation, PreconditionError("No file selected for verification")
            )
        if session.busy:
            return self._reject(session, operation, self._busy_error(operation))

        start = record.effective_state
        if start not in (
            RecordState.HASHED,
            RecordState.REGISTERED,
            RecordState.VERIFIED,
            RecordState.MISMATCHED,
        ):
            return self._reject(
                session,
                operation,
                PreconditionError(f"Cannot verify a record that is {start.value}; upload first"),
            )

        session.error = None
        session.busy = True
        record.state = RecordState.VERIFYING
        try:
            if candidate is None:
                content = await self._read(session.source)
            elif isinstance(candidate, (bytes, bytearray)):
                content = bytes(candidate)
            else:
                content = await self._read(candidate)
            if self._is_stale(session):
                return self._superseded(session, operation)
            session.audit_log.append("File content read successfully for verification")

            fingerprint = compute_fingerprint(content)
            session.audit_log.append(f"Computed hash for verification: {fingerprint.hex}")

            reference = record.confirmed_fingerprint
            if reference is not None:
                if fingerprint != reference:
                    record.state = RecordState.MISMATCHED
                    record.resume_state = None
                    record.history = ()
                    notice = ErrorNotice(kind=ErrorKind.MISMATCH, message=MISMATCH_MESSAGE)
                    return self._complete(session, operation, Outcome.MISMATCH, notice=notice)
                session.audit_log.append(f"Fingerprint matches committed ID {reference.hex}")
            else:
                session.audit_log.append(
                    "No confirmed registration in this session; querying ledger by computed hash"
                )

            metadata = await self._ledger_call("query", self._ledger.query_metadata(fingerprint))
            if self._is_stale(session):
                return self._superseded(session, operation)
            session.audit_log.append(f"Metadata retrieved: {self._describe(metadata)}")

            record.history = metadata.history
            if not metadata.is_registered:
                if reference is not None:
                    # The ledger no longer backs the confirmed registration.
                    record.fail(start)
                    notice = ErrorNotice(kind=ErrorKind.NOT_FOUND, message=NOT_FOUND_MESSAGE)
                    return self._complete(session, operation, Outcome.NOT_FOUND, notice=notice)
                session.audit_log.append(NOT_FOUND_MESSAGE)
                record.state = RecordState.MISMATCHED
                record.resume_state = None
                notice = ErrorNotice(kind=ErrorKind.MISMATCH, message=MISMATCH_MESSAGE)
                return self._complete(session, operation, Outcome.MISMATCH, notice=notice)

            record.resume_state = None
            if reference is None and fingerprint != record.local_fingerprint:
                session.audit_log.append(
                    "Candidate differs from the selected file; history reported without "
                    "setting a file ID"
                )
                record.state = start
                return self._complete(session, operation, Outcome.SUCCESS)

            record.confirmed_fingerprint = fingerprint
            record.state = RecordState.VERIFIED
            return self._complete(session, operation, Outcome.SUCCESS)
        except FileTrackerError as exc:
            return self._fail(
                session, operation, start, "Error computing hash or verifying data", exc
            )
        finally:
            session.busy = False

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _is_stale(self, session: Session) -> bool:
        return session is not self._session

    @staticmethod
    def _busy_error(operation: str) -> OperationInProgressError:
        return OperationInProgressError(
            f"Cannot {operation} while another operation is in progress"
        )

    @staticmethod
    async def _read(source: FileSourcePort) -> bytes:
        try:
            return await source.read_bytes()
        except FileTrackerError:
            raise
        except OSError as exc:
            raise FileReadError(f"Cannot read {source.name}: {exc}") from exc

    @staticmethod
    async def _ledger_call(stage: LedgerStage, call: Awaitable[T]) -> T:
        try:
            return await call
        except FileTrackerError:
            raise
        except Exception as exc:  # noqa: BLE001 - adapters may leak transport errors
            raise LedgerError(f"Unexpected ledger failure: {exc}", stage=stage) from exc

    async def _confirm(self, handle: TransactionHandle) -> Confirmation:
        wait = self._ledger_call("confirm", self._ledger.await_confirmation(handle))
        if self._confirmation_timeout is None:
            return await wait
        try:
            return await asyncio.wait_for(wait, timeout=self._confirmation_timeout)
        except asyncio.TimeoutError as exc:
            raise ConfirmationTimeoutError(
                f"Transaction {handle.tx_hash} not confirmed within "
                f"{self._confirmation_timeout:g}s"
            ) from exc

    @staticmethod
    def _register_context(exc: FileTrackerError) -> str:
        if isinstance(exc, LedgerError) and exc.stage == "submit":
            return "Error storing data on blockchain (submission)"
        if isinstance(exc, LedgerError) and exc.stage == "confirm":
            return "Error storing data on blockchain (confirmation)"
        return "Error storing data on blockchain"

    @staticmethod
    def _describe(metadata: FileMetadata) -> str:
        return (
            f"name={metadata.file_name!r}, size={metadata.file_size}, "
            f"owner={metadata.owner}, timestamps={list(metadata.history)}"
        )

    def _result(
        self,
        session: Session,
        operation: str,
        outcome: Outcome,
        notice: ErrorNotice | None = None,
    ) -> OperationResult:
        return OperationResult(
            operation=operation,
            outcome=outcome,
            error=notice,
            snapshot=self._session.snapshot() if self._is_stale(session) else session.snapshot(),
        )

    def _complete(
        self,
        session: Session,
        operation: str,
        outcome: Outcome,
        *,
        notice: ErrorNotice | None = None,
        details: dict[str, Any] | None = None,
    ) -> OperationResult:
        if notice is not None:
            session.audit_log.append(notice.message)
        session.error = notice
        self._journal_operation(session, operation, outcome, notice, details)
        return self._result(session, operation, outcome, notice)

    def _fail(
        self,
        session: Session,
        operation: str,
        start: RecordState,
        context: str,
        exc: FileTrackerError,
    ) -> OperationResult:
        if self._is_stale(session):
            logger.info("Discarding %s failure for superseded session: %s", operation, exc)
            return self._result(session, operation, Outcome.SUPERSEDED)

        if session.record is not None:
            session.record.fail(start)
        notice = ErrorNotice.from_error(context, exc)
        session.audit_log.append(notice.message, level=logging.WARNING)
        session.error = notice
        self._journal_operation(session, operation, Outcome.FAILED, notice, None)
        return self._result(session, operation, Outcome.FAILED, notice)

    def _reject(
        self, session: Session, operation: str, exc: FileTrackerError
    ) -> OperationResult:
        notice = ErrorNotice(kind=exc.kind, message=str(exc))
        session.audit_log.append(notice.message, level=logging.WARNING)
        session.error = notice
        return self._result(session, operation, Outcome.REJECTED, notice)

    def _superseded(
        self,
        session: Session,
        operation: str,
        handle: TransactionHandle | None = None,
    ) -> OperationResult:
        suffix = f" (tx {handle.tx_hash})" if handle is not None else ""
        logger.info(
            "Discarding %s completion for superseded session %d%s",
            operation,
            session.generation,
            suffix,
        )
        return self._result(session, operation, Outcome.SUPERSEDED)

    def _journal_operation(
        self,
        session: Session,
        operation: str,
        outcome: Outcome,
        notice: ErrorNotice | None,
        extra: dict[str, Any] | None,
    ) -> None:
        if self._journal is None or session.record is None:
            return

        snapshot = session.record.snapshot()
        details: dict[str, Any] = {
            "state": snapshot.state.value,
            "local_fingerprint": snapshot.local_fingerprint,
            "committed_id": snapshot.committed_id,
        }
        if notice is not None:
            details["error"] = {"kind": notice.kind.value, "message": notice.message}
        if extra:
            details.update(extra)

        try:
            self._journal.record(operation, outcome.value, snapshot.file_name, details)
        except OSError as exc:
            logger.warning("Failed to write journal entry for %s: %s", operation, exc)
