"""Integrity record, session audit log, and the snapshots handed to presenters."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from filetracker.app.ports.files import FileSourcePort
from filetracker.errors import NON_FAULT_KINDS, ErrorKind, FileTrackerError
from filetracker.utils.hashing import Fingerprint

logger = logging.getLogger(__name__)


class RecordState(str, Enum):
    """Lifecycle states of a tracked file."""

    EMPTY = "empty"
    HASHED = "hashed"
    REGISTERING = "registering"
    REGISTERED = "registered"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    MISMATCHED = "mismatched"
    FAILED = "failed"


COMMITTED_STATES = frozenset({RecordState.REGISTERED, RecordState.VERIFIED})


@dataclass(slots=True)
class IntegrityRecord:
    """One tracked file across its lifecycle.

    The confirmed registration is kept for the whole session but only exposed
    as ``committed_id`` while the record is ``REGISTERED`` or ``VERIFIED``.
    ``resume_state`` remembers where a failed attempt started so the same
    operation can be retried without re-selecting the file.
    """

    file_name: str
    file_size: int
    state: RecordState = RecordState.EMPTY
    local_fingerprint: Fingerprint | None = None
    history: tuple[int, ...] = ()
    resume_state: RecordState | None = None
    confirmed_fingerprint: Fingerprint | None = None

    @property
    def committed_id(self) -> Fingerprint | None:
        if self.state in COMMITTED_STATES:
            return self.confirmed_fingerprint
        return None

    @property
    def effective_state(self) -> RecordState:
        """State used for precondition checks (the pre-failure state when failed)."""
        if self.state is RecordState.FAILED and self.resume_state is not None:
            return self.resume_state
        return self.state

    def fail(self, from_state: RecordState) -> None:
        """Mark the current attempt failed without touching confirmed fields."""
        self.resume_state = from_state
        self.state = RecordState.FAILED

    def snapshot(self) -> RecordSnapshot:
        return RecordSnapshot(
            file_name=self.file_name,
            file_size=self.file_size,
            state=self.state,
            local_fingerprint=self.local_fingerprint.hex if self.local_fingerprint else None,
            committed_id=self.committed_id.hex if self.committed_id else None,
            history=self.history,
        )


class AuditLog:
    """Append-only, ordered log of human-readable session events.

    Entries are mirrored to the module logger. The log is never truncated;
    a new file selection replaces the whole log object.
    """

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: list[str] = []

    def append(self, message: str, *, level: int = logging.INFO) -> None:
        self._entries.append(message)
        logger.log(level, message)

    @property
    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._entries))


class ErrorNotice(BaseModel):
    """Content of the tracker's single current-error slot."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str

    @property
    def is_fault(self) -> bool:
        """False for domain outcomes (mismatch, not found) that are not system failures."""
        return self.kind not in NON_FAULT_KINDS

    @classmethod
    def from_error(cls, context: str, exc: FileTrackerError) -> ErrorNotice:
        return cls(kind=exc.kind, message=f"{context}: {exc}")


class RecordSnapshot(BaseModel):
    """Immutable view of an :class:`IntegrityRecord`."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    file_size: int = Field(ge=0)
    state: RecordState
    local_fingerprint: str | None = None
    committed_id: str | None = None
    history: tuple[int, ...] = ()


class TrackerSnapshot(BaseModel):
    """Everything a presentation layer needs after an operation."""

    model_config = ConfigDict(frozen=True)

    record: RecordSnapshot | None = None
    audit_log: tuple[str, ...] = ()
    error: ErrorNotice | None = None


@dataclass(slots=True)
class Session:
    """One file selection: source, record, audit log, error slot, and generation.

    Generation 0 is the idle session that exists before any file is selected.
    """

    generation: int
    record: IntegrityRecord | None = None
    source: FileSourcePort | None = None
    audit_log: AuditLog = field(default_factory=AuditLog)
    error: ErrorNotice | None = None
    busy: bool = False

    def snapshot(self) -> TrackerSnapshot:
        return TrackerSnapshot(
            record=self.record.snapshot() if self.record is not None else None,
            audit_log=self.audit_log.entries,
            error=self.error,
        )
