"""Concrete adapters wiring application ports to built-in implementations."""

from __future__ import annotations

from .files import InMemoryFileSource, LocalFileSource
from .memory_ledger import InMemoryLedger
from .web3_ledger import Web3LedgerClient

__all__ = [
    "InMemoryFileSource",
    "InMemoryLedger",
    "LocalFileSource",
    "Web3LedgerClient",
]
