"""Tests for the web3.py ledger adapter that need no running node."""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from pydantic import SecretStr
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3RPCError

from filetracker.app.adapters import Web3LedgerClient
from filetracker.app.adapters.web3_ledger import load_account, translate_error
from filetracker.app.ports import SigningCredential, TransactionHandle
from filetracker.config import LedgerConfig
from filetracker.errors import (
    InvalidCredentialError,
    InvalidInputError,
    LedgerConnectivityError,
    LedgerError,
    TransactionRevertedError,
)
from filetracker.utils.hashing import compute_fingerprint

CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


@pytest.fixture
def ledger_config() -> LedgerConfig:
    return LedgerConfig(
        network="local",
        rpc_url="http://127.0.0.1:1",
        contract_address=CONTRACT,
        receipt_poll_interval=0.001,
    )


@pytest.fixture
def fake_w3() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(ledger_config: LedgerConfig, fake_w3: MagicMock) -> Web3LedgerClient:
    return Web3LedgerClient(ledger_config, w3=fake_w3)


def test_load_account_derives_address(credential):
    account = load_account(credential)
    assert account.address.startswith("0x")
    assert len(account.address) == 42


def test_load_account_rejects_malformed_key():
    with pytest.raises(InvalidCredentialError):
        load_account(SigningCredential(private_key=SecretStr("0xdeadbeef")))


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ContractLogicError("execution reverted: exists"), TransactionRevertedError),
        (aiohttp.ClientConnectionError("refused"), LedgerConnectivityError),
        (ConnectionRefusedError("refused"), LedgerConnectivityError),
        (Web3RPCError("insufficient funds for gas * price + value"), TransactionRevertedError),
        (Web3RPCError("invalid sender"), InvalidCredentialError),
        (Web3RPCError("method not found"), LedgerError),
    ],
)
def test_translate_error(exc, expected):
    translated = translate_error(exc, "submit")

    assert type(translated) is expected
    assert translated.stage == "submit"


def test_translate_error_passes_ledger_errors_through():
    original = LedgerConnectivityError("down", stage="query")
    assert translate_error(original, "submit") is original


def test_client_builds_without_network(ledger_config):
    client = Web3LedgerClient(ledger_config)
    assert client.config.contract_address == CONTRACT


@pytest.mark.asyncio
async def test_register_validates_input_before_network(client, fake_w3, credential):
    with pytest.raises(InvalidInputError):
        await client.register_fingerprint(compute_fingerprint(b"x"), "", 1, credential)
    fake_w3.eth.get_transaction_count.assert_not_called()


@pytest.mark.asyncio
async def test_register_maps_unreachable_node(client, fake_w3, credential):
    fake_w3.eth.get_transaction_count = AsyncMock(
        side_effect=aiohttp.ClientConnectionError("connection refused")
    )

    with pytest.raises(LedgerConnectivityError) as excinfo:
        await client.register_fingerprint(compute_fingerprint(b"x"), "x.txt", 1, credential)
    assert excinfo.value.stage == "submit"


@pytest.mark.asyncio
async def test_await_confirmation_polls_until_mined(client, fake_w3):
    fake_w3.eth.get_transaction_receipt = AsyncMock(
        side_effect=[
            TransactionNotFound("pending"),
            TransactionNotFound("pending"),
            {"status": 1, "blockNumber": 7},
        ]
    )
    fake_w3.eth.get_block = AsyncMock(return_value={"timestamp": 1_700_000_123})
    handle = TransactionHandle(tx_hash="0x" + "ab" * 32, fingerprint="0x" + "cd" * 32)

    confirmation = await client.await_confirmation(handle)

    assert confirmation.block_number == 7
    assert confirmation.timestamp == 1_700_000_123
    assert fake_w3.eth.get_transaction_receipt.await_count == 3


@pytest.mark.asyncio
async def test_await_confirmation_failed_status_is_revert(client, fake_w3):
    fake_w3.eth.get_transaction_receipt = AsyncMock(return_value={"status": 0, "blockNumber": 9})
    handle = TransactionHandle(tx_hash="0x" + "ab" * 32, fingerprint="0x" + "cd" * 32)

    with pytest.raises(TransactionRevertedError) as excinfo:
        await client.await_confirmation(handle)
    assert excinfo.value.stage == "confirm"


@pytest.mark.asyncio
async def test_query_metadata_decodes_contract_tuple(client, fake_w3):
    owner = "0x19E7E376E7C213B7E7e7e46cc70A5dD086DAff2A"
    functions = fake_w3.eth.contract.return_value.functions
    functions.getFileMetadata.return_value.call = AsyncMock(
        return_value=("a.txt", 5, owner, [100, 200])
    )

    metadata = await client.query_metadata(compute_fingerprint(b"hello"))

    assert metadata.file_name == "a.txt"
    assert metadata.file_size == 5
    assert metadata.owner == owner
    assert metadata.history == (100, 200)


@pytest.mark.asyncio
async def test_query_revert_means_not_registered(client, fake_w3):
    functions = fake_w3.eth.contract.return_value.functions
    functions.getFileMetadata.return_value.call = AsyncMock(
        side_effect=ContractLogicError("execution reverted")
    )
    functions.getFileHashTimestamps.return_value.call = AsyncMock(
        side_effect=ContractLogicError("execution reverted")
    )
    fingerprint = compute_fingerprint(b"unknown")

    assert not (await client.query_metadata(fingerprint)).is_registered
    assert await client.query_history(fingerprint) == ()
