"""Journal read/verify services."""

from __future__ import annotations

from dataclasses import dataclass

from filetracker.app.ports import JournalPort, JournalRecord


@dataclass(slots=True)
class AuditService:
    """Expose read/verify operations over the activity journal."""

    journal: JournalPort | None

    def is_enabled(self) -> bool:
        """Return True when the journal is configured."""

        return self.journal is not None

    def get_entries(self) -> list[JournalRecord]:
        """Return all journal entries (empty list when disabled)."""

        if self.journal is None:
            return []
        return self.journal.read_all()

    def find_by_fingerprint(self, fingerprint: str) -> list[JournalRecord]:
        """Return entries whose local or committed fingerprint equals ``fingerprint``."""

        needle = fingerprint.lower()
        return [
            record
            for record in self.get_entries()
            if needle
            in (
                str(record.details.get("local_fingerprint") or "").lower(),
                str(record.details.get("committed_id") or "").lower(),
            )
        ]

    def verify(self) -> tuple[bool, str | None]:
        """Verify journal integrity, treating a disabled journal as valid."""

        if self.journal is None:
            return True, None
        return self.journal.verify()
