"""Tests for the in-process ledger adapter."""

import pytest
from pydantic import SecretStr

from filetracker.app.adapters import InMemoryLedger
from filetracker.app.ports import ZERO_ADDRESS, SigningCredential
from filetracker.errors import (
    InvalidCredentialError,
    InvalidInputError,
    LedgerConnectivityError,
)
from filetracker.utils.hashing import compute_fingerprint


@pytest.mark.asyncio
async def test_registration_visible_only_after_confirmation(ledger, credential):
    fingerprint = compute_fingerprint(b"report")

    handle = await ledger.register_fingerprint(fingerprint, "report.pdf", 6, credential)
    assert handle.tx_hash.startswith("0x")
    assert handle.fingerprint == fingerprint.hex
    assert not (await ledger.query_metadata(fingerprint)).is_registered

    confirmation = await ledger.await_confirmation(handle)
    assert confirmation.block_number == 1
    assert confirmation.timestamp == 1_700_000_000

    metadata = await ledger.query_metadata(fingerprint)
    assert metadata.file_name == "report.pdf"
    assert metadata.file_size == 6
    assert metadata.owner == handle.sender
    assert metadata.history == (1_700_000_000,)


@pytest.mark.asyncio
async def test_unknown_fingerprint_returns_empty_metadata(ledger):
    fingerprint = compute_fingerprint(b"never registered")

    metadata = await ledger.query_metadata(fingerprint)

    assert not metadata.is_registered
    assert metadata.owner == ZERO_ADDRESS
    assert await ledger.query_history(fingerprint) == ()


@pytest.mark.asyncio
async def test_queries_are_idempotent(ledger, credential):
    fingerprint = compute_fingerprint(b"stable")
    await ledger.await_confirmation(
        await ledger.register_fingerprint(fingerprint, "stable.txt", 6, credential)
    )

    first = await ledger.query_metadata(fingerprint)
    second = await ledger.query_metadata(fingerprint)

    assert first == second
    assert await ledger.query_history(fingerprint) == first.history


@pytest.mark.asyncio
async def test_first_registration_owns_metadata(credential):
    times = iter([10, 20])
    ledger = InMemoryLedger(clock=lambda: next(times))
    fingerprint = compute_fingerprint(b"same bytes")

    for name in ("original.txt", "renamed.txt"):
        handle = await ledger.register_fingerprint(fingerprint, name, 10, credential)
        await ledger.await_confirmation(handle)

    metadata = await ledger.query_metadata(fingerprint)
    assert metadata.file_name == "original.txt"
    assert metadata.history == (10, 20)
    assert [dt.timestamp() for dt in metadata.history_datetimes()] == [10, 20]


@pytest.mark.asyncio
@pytest.mark.parametrize(("name", "size"), [("", 1), ("a.txt", -1)])
async def test_rejects_invalid_input(ledger, credential, name, size):
    with pytest.raises(InvalidInputError):
        await ledger.register_fingerprint(compute_fingerprint(b"x"), name, size, credential)
    assert ledger.pending_count == 0


@pytest.mark.asyncio
async def test_invalid_credential_error_carries_stage(ledger):
    with pytest.raises(InvalidCredentialError) as excinfo:
        await ledger.register_fingerprint(
            compute_fingerprint(b"x"),
            "x.txt",
            1,
            SigningCredential(private_key=SecretStr("not-a-key")),
        )
    assert excinfo.value.stage == "submit"


@pytest.mark.asyncio
async def test_injected_failure_applies_once(ledger):
    fingerprint = compute_fingerprint(b"x")
    ledger.fail_next("query", LedgerConnectivityError("node down"))

    with pytest.raises(LedgerConnectivityError) as excinfo:
        await ledger.query_metadata(fingerprint)
    assert excinfo.value.stage == "query"

    assert not (await ledger.query_metadata(fingerprint)).is_registered
