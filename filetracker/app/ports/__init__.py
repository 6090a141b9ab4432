"""Port interfaces for the FileTracker application layer.

These protocol interfaces define contracts for adapters.
The tracker depends on these ports, never on concrete implementations.
"""

__all__ = [
    "Confirmation",
    "FileMetadata",
    "FileSourcePort",
    "JournalPort",
    "JournalRecord",
    "LedgerPort",
    "SigningCredential",
    "TransactionHandle",
    "ZERO_ADDRESS",
]

from filetracker.app.ports.files import FileSourcePort
from filetracker.app.ports.journal import JournalPort, JournalRecord
from filetracker.app.ports.ledger import (
    ZERO_ADDRESS,
    Confirmation,
    FileMetadata,
    LedgerPort,
    SigningCredential,
    TransactionHandle,
)
