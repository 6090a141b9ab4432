"""Error taxonomy shared by the hash engine, ledger adapters, and tracker."""

from __future__ import annotations

from enum import Enum
from typing import Literal

LedgerStage = Literal["submit", "confirm", "query"]


class ErrorKind(str, Enum):
    """Category recorded in the tracker's error slot."""

    IO = "io"
    HASH = "hash"
    CONNECTIVITY = "connectivity"
    INVALID_CREDENTIAL = "invalid_credential"
    INVALID_INPUT = "invalid_input"
    TRANSACTION_REVERTED = "transaction_reverted"
    MISMATCH = "mismatch"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"
    PRECONDITION = "precondition"
    CONFIGURATION = "configuration"


# Domain outcomes that are reported to the user but are not system faults.
NON_FAULT_KINDS = frozenset({ErrorKind.MISMATCH, ErrorKind.NOT_FOUND})


class FileTrackerError(Exception):
    """Base class for all errors raised by FileTracker components."""

    kind: ErrorKind = ErrorKind.IO


class FileReadError(FileTrackerError):
    """Raised when file content cannot be read."""

    kind = ErrorKind.IO


class HashComputationError(FileTrackerError):
    """Raised when content handed to the hash engine is corrupt or truncated."""

    kind = ErrorKind.HASH


class InvalidInputError(FileTrackerError, ValueError):
    """Raised for malformed fingerprints, empty file names, or bad sizes."""

    kind = ErrorKind.INVALID_INPUT


class PreconditionError(FileTrackerError):
    """Raised when an operation is not permitted in the record's current state."""

    kind = ErrorKind.PRECONDITION


class OperationInProgressError(PreconditionError):
    """Raised when an operation overlaps another outstanding one on the same record."""


class ConfigurationError(FileTrackerError):
    """Raised when ledger configuration is missing or invalid."""

    kind = ErrorKind.CONFIGURATION


class ConfirmationTimeoutError(FileTrackerError):
    """Raised when a transaction is not confirmed within the caller's deadline."""

    kind = ErrorKind.TIMEOUT


class LedgerError(FileTrackerError):
    """Base class for errors surfaced by ledger adapters.

    ``stage`` tells submission failures apart from confirmation and query
    failures.
    """

    kind = ErrorKind.CONNECTIVITY

    def __init__(self, message: str, *, stage: LedgerStage | None = None) -> None:
        super().__init__(message)
        self.stage = stage


class LedgerConnectivityError(LedgerError):
    """Raised when the ledger node cannot be reached or drops the connection."""

    kind = ErrorKind.CONNECTIVITY


class InvalidCredentialError(LedgerError):
    """Raised when the signing credential is malformed or rejected."""

    kind = ErrorKind.INVALID_CREDENTIAL


class TransactionRevertedError(LedgerError):
    """Raised when the ledger rejects or reverts a registration transaction."""

    kind = ErrorKind.TRANSACTION_REVERTED
