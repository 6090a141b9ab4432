"""Append-only activity journal with a sealed hash chain.

Each completed tracker operation becomes one JSONL line. Lines are linked by
``previous_hash`` and signed with an HMAC that also covers the previous
signature, and a sealed tip file records the last sequence and hash so
truncation is detectable.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from filetracker import __version__
from filetracker.app.ports.journal import JournalRecord

GENESIS_HASH = "0" * 64
GENESIS_SIGNATURE = "0" * 64


class JournalEntry(BaseModel):
    """Single journal entry, hashed over its canonical JSON form."""

    timestamp: str = Field(..., description="ISO 8601 timestamp in UTC")
    operation: str = Field(..., description="Tracker operation (upload, register, verify)")
    outcome: str = Field(..., description="Operation outcome")
    file_name: str = Field(default="", description="File the operation acted on")
    details: dict[str, Any] = Field(default_factory=dict)
    version: str = Field(default=__version__, description="FileTracker version")
    previous_hash: str = Field(default=GENESIS_HASH)
    sequence: int = Field(..., ge=1)
    entry_hash: str | None = None
    signature: str | None = None

    def compute_hash(self) -> str:
        """SHA-256 over the entry content, excluding ``entry_hash`` and ``signature``."""
        data = self.model_dump(mode="json", exclude={"entry_hash", "signature"})
        content = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    def to_record(self) -> JournalRecord:
        return JournalRecord(
            timestamp=self.timestamp,
            operation=self.operation,
            outcome=self.outcome,
            file_name=self.file_name,
            details=self.details,
        )


class ActivityJournal:
    """Tamper-evident JSONL journal of tracker operations."""

    def __init__(self, journal_path: Path, *, hmac_key: bytes) -> None:
        self.journal_path = journal_path
        self.journal_path.parent.mkdir(parents=True, exist_ok=True)
        self._tip_path = journal_path.with_suffix(".tip")
        self._key = hmac_key

        entries = self._read_entries()
        last = entries[-1] if entries else None
        self._last_sequence = last.sequence if last else 0
        self._last_hash = (last.entry_hash if last else None) or GENESIS_HASH
        self._last_signature = (last.signature if last else None) or GENESIS_SIGNATURE

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _read_entries(self) -> list[JournalEntry]:
        if not self.journal_path.exists():
            return []

        entries: list[JournalEntry] = []
        with open(self.journal_path, encoding="utf-8") as fh:
            for line_num, raw_line in enumerate(fh, 1):
                line = raw_line.strip()
                if not line:
                    continue
                try:
                    entries.append(JournalEntry.model_validate_json(line))
                except ValueError as exc:
                    raise ValueError(
                        f"Invalid entry at line {line_num} in {self.journal_path}: {exc}"
                    ) from exc
        return entries

    def _sign(self, entry: JournalEntry, previous_signature: str) -> str:
        payload = f"{entry.sequence}|{entry.previous_hash}|{entry.entry_hash}|{previous_signature}"
        return hmac.new(self._key, payload.encode("utf-8"), hashlib.sha256).hexdigest()

    def _seal_tip(self, sequence: int, last_hash: str) -> str:
        payload = f"{sequence}:{last_hash}".encode("utf-8")
        return hmac.new(self._key, payload, hashlib.sha256).hexdigest()

    def _write_tip(self, sequence: int, last_hash: str) -> None:
        data = json.dumps(
            {"sequence": sequence, "hash": last_hash, "hmac": self._seal_tip(sequence, last_hash)},
            sort_keys=True,
        )
        tmp_path = self._tip_path.parent / (self._tip_path.name + ".tmp")
        tmp_path.write_text(data, encoding="utf-8")
        os.replace(tmp_path, self._tip_path)

    def _read_tip(self) -> dict[str, Any] | None:
        try:
            data = json.loads(self._tip_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None

        expected = self._seal_tip(int(data.get("sequence", 0)), str(data.get("hash")))
        if not hmac.compare_digest(expected, str(data.get("hmac", ""))):
            raise ValueError("Journal tip HMAC mismatch")
        return data

    # ------------------------------------------------------------------ #
    # JournalPort
    # ------------------------------------------------------------------ #

    def record(
        self,
        operation: str,
        outcome: str,
        file_name: str,
        details: dict[str, Any],
    ) -> JournalEntry:
        """Append one operation and fsync it before returning."""
        entry = JournalEntry(
            timestamp=datetime.now(UTC).isoformat(),
            operation=operation,
            outcome=outcome,
            file_name=file_name,
            details=details,
            previous_hash=self._last_hash,
            sequence=self._last_sequence + 1,
        )
        entry.entry_hash = entry.compute_hash()
        entry.signature = self._sign(entry, self._last_signature)

        with open(self.journal_path, "a", encoding="utf-8") as fh:
            fh.write(entry.model_dump_json() + "\n")
            fh.flush()
            os.fsync(fh.fileno())

        self._last_sequence = entry.sequence
        self._last_hash = entry.entry_hash
        self._last_signature = entry.signature
        self._write_tip(entry.sequence, entry.entry_hash)
        return entry

    def read_all(self) -> list[JournalRecord]:
        return [entry.to_record() for entry in self._read_entries()]

    def read_entries(self) -> list[JournalEntry]:
        """Raw entries including chain fields."""
        return self._read_entries()

    def verify(self) -> tuple[bool, str | None]:
        """Check hashes, chain links, signatures, sequence numbers, and the sealed tip."""
        try:
            tip = self._read_tip()
            entries = self._read_entries()
        except ValueError as exc:
            return False, f"Journal integrity failure: {exc}"

        if not entries:
            if tip and int(tip.get("sequence", 0)) > 0:
                return False, "Journal appears truncated (no entries but tip expects data)."
            return True, None

        previous_hash = GENESIS_HASH
        previous_signature = GENESIS_SIGNATURE
        for idx, entry in enumerate(entries, 1):
            if entry.entry_hash is None or entry.signature is None:
                return False, f"Entry {idx} is missing its hash or signature."
            if not hmac.compare_digest(entry.entry_hash, entry.compute_hash()):
                return False, f"Entry {idx} has invalid hash; content was modified."
            if entry.previous_hash != previous_hash:
                return False, f"Entry {idx} breaks the hash chain."
            if not hmac.compare_digest(entry.signature, self._sign(entry, previous_signature)):
                return False, f"Entry {idx} has invalid signature."
            if entry.sequence != idx:
                return False, f"Entry {idx} sequence mismatch (found {entry.sequence})."
            previous_hash = entry.entry_hash
            previous_signature = entry.signature

        if tip is None:
            return False, "Journal tip file is missing."
        if int(tip.get("sequence", 0)) != entries[-1].sequence or tip.get("hash") != previous_hash:
            return False, "Journal tip mismatch; possible truncation detected."

        return True, None
