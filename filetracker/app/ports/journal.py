"""Journal port interface for the persistent activity trail."""

from typing import Any, Protocol

from pydantic import BaseModel, Field


class JournalRecord(BaseModel):
    """Normalized view of one journal entry."""

    timestamp: str = Field(..., description="ISO-8601 timestamp")
    operation: str = Field(..., description="Tracker operation (upload, register, verify)")
    outcome: str = Field(..., description="Outcome of the operation")
    file_name: str = Field(default="", description="File the operation acted on")
    details: dict[str, Any] = Field(default_factory=dict, description="Fingerprints, tx hash, error")


class JournalPort(Protocol):
    """Port interface for the activity journal.

    Adapters implementing this port must provide:
    - Append-only entries
    - Hash chain verification
    - Tamper-evident storage

    Side effects: Writes to the journal file (local).
    """

    def record(
        self,
        operation: str,
        outcome: str,
        file_name: str,
        details: dict[str, Any],
    ) -> None:
        """Append one completed operation to the journal."""
        ...

    def verify(self) -> tuple[bool, str | None]:
        """Verify journal integrity.

        Returns:
            Tuple of (is_valid, error_message)
        """
        ...

    def read_all(self) -> list[JournalRecord]:
        """Read all journal entries in chronological order."""
        ...
