"""Persistent, tamper-evident journal of tracker activity."""

from filetracker.audit.journal import ActivityJournal, JournalEntry

__all__ = ["ActivityJournal", "JournalEntry"]
