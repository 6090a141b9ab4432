"""Application bootstrap wiring ports, adapters, and services."""

from __future__ import annotations

from dataclasses import dataclass

from filetracker.app import AuditService, TrackerController
from filetracker.app.adapters import InMemoryLedger, Web3LedgerClient
from filetracker.app.ports import JournalPort, LedgerPort, SigningCredential
from filetracker.audit.journal import ActivityJournal
from filetracker.config import Settings, get_settings


@dataclass(slots=True)
class ApplicationContainer:
    """Aggregates wired services and adapters for the CLI layer."""

    settings: Settings
    ledger_port: LedgerPort
    journal_port: JournalPort | None
    audit_service: AuditService
    credential: SigningCredential | None

    def create_tracker(self) -> TrackerController:
        """Build a fresh controller sharing this container's ledger and journal."""
        return TrackerController(
            self.ledger_port,
            self.credential,
            confirmation_timeout=self.settings.confirmation_timeout_seconds,
            journal=self.journal_port,
        )


def bootstrap_application(
    settings: Settings | None = None,
    *,
    ledger: LedgerPort | None = None,
) -> ApplicationContainer:
    """Instantiate adapters and services for CLI consumption.

    Raises:
        ConfigurationError: If the ledger connection settings are incomplete
    """

    active_settings = settings or get_settings()

    ledger_port = ledger or _create_ledger(active_settings)
    journal = _create_journal(active_settings)
    credential = (
        active_settings.get_signing_credential()
        if active_settings.has_signing_credential()
        else None
    )

    return ApplicationContainer(
        settings=active_settings,
        ledger_port=ledger_port,
        journal_port=journal,
        audit_service=AuditService(journal=journal),
        credential=credential,
    )


def _create_ledger(settings: Settings) -> LedgerPort:
    config = settings.get_ledger_config()
    if config.network == "memory":
        return InMemoryLedger()
    return Web3LedgerClient(config)


def _create_journal(settings: Settings) -> ActivityJournal | None:
    if not settings.journal_enabled:
        return None
    return ActivityJournal(
        settings.get_journal_path(),
        hmac_key=settings.get_journal_hmac_key(),
    )
