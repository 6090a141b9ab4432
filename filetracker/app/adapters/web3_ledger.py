"""web3.py adapter for the FileTracker ledger contract.

Transactions are built against the node, signed locally with the supplied
credential, and sent raw. The node is only trusted to relay and mine them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp
from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils.exceptions import ValidationError as EthValidationError
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import (
    ContractLogicError,
    TransactionNotFound,
    Web3Exception,
    Web3RPCError,
)

from filetracker.app.ports.ledger import (
    Confirmation,
    FileMetadata,
    SigningCredential,
    TransactionHandle,
)
from filetracker.config import LedgerConfig
from filetracker.errors import (
    InvalidCredentialError,
    InvalidInputError,
    LedgerConnectivityError,
    LedgerError,
    LedgerStage,
    TransactionRevertedError,
)
from filetracker.utils.hashing import Fingerprint

logger = logging.getLogger(__name__)

FILE_TRACKER_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "storeFileHash",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_fileHash", "type": "bytes32"},
            {"name": "_fileName", "type": "string"},
            {"name": "_fileSize", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getFileMetadata",
        "stateMutability": "view",
        "inputs": [{"name": "_fileHash", "type": "bytes32"}],
        "outputs": [
            {"name": "", "type": "string"},
            {"name": "", "type": "uint256"},
            {"name": "", "type": "address"},
            {"name": "", "type": "uint256[]"},
        ],
    },
    {
        "type": "function",
        "name": "getFileHashTimestamps",
        "stateMutability": "view",
        "inputs": [{"name": "_fileHash", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "uint256[]"}],
    },
]

_CONNECTIVITY_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)

# Node rejections that mean the transaction can never succeed as submitted.
_REJECTION_MARKERS = (
    "insufficient funds",
    "nonce too low",
    "replacement transaction underpriced",
    "intrinsic gas too low",
    "execution reverted",
)


def load_account(credential: SigningCredential) -> LocalAccount:
    """Derive the signing account from ``credential``.

    Raises:
        InvalidCredentialError: If the key is not a valid secp256k1 private key
    """
    try:
        return Account.from_key(credential.private_key.get_secret_value())
    except (ValueError, TypeError, EthValidationError) as exc:
        raise InvalidCredentialError(
            f"Signing credential is not a valid private key: {exc}", stage="submit"
        ) from exc


def translate_error(exc: Exception, stage: LedgerStage) -> LedgerError:
    """Map a web3/transport exception to the FileTracker error taxonomy."""
    if isinstance(exc, LedgerError):
        return exc
    if isinstance(exc, ContractLogicError):
        return TransactionRevertedError(f"Execution reverted: {exc}", stage=stage)
    if isinstance(exc, _CONNECTIVITY_ERRORS):
        return LedgerConnectivityError(f"Ledger node unreachable: {exc}", stage=stage)
    if isinstance(exc, Web3RPCError):
        message = str(exc)
        if "invalid sender" in message.lower():
            return InvalidCredentialError(f"Node rejected signer: {message}", stage=stage)
        if any(marker in message.lower() for marker in _REJECTION_MARKERS):
            return TransactionRevertedError(f"Node rejected transaction: {message}", stage=stage)
    return LedgerError(f"Ledger call failed: {exc}", stage=stage)


class Web3LedgerClient:
    """Ledger adapter talking JSON-RPC to an Ethereum-compatible node.

    The connection is built from an explicit :class:`LedgerConfig`; no
    provider or wallet is created at import time.
    """

    def __init__(self, config: LedgerConfig, *, w3: AsyncWeb3 | None = None) -> None:
        self.config = config
        self._w3 = w3 or AsyncWeb3(
            AsyncHTTPProvider(
                config.rpc_url,
                request_kwargs={"timeout": aiohttp.ClientTimeout(total=config.request_timeout)},
            )
        )
        self._contract = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(config.contract_address),
            abi=FILE_TRACKER_ABI,
        )

    async def register_fingerprint(
        self,
        fingerprint: Fingerprint,
        file_name: str,
        file_size: int,
        credential: SigningCredential,
    ) -> TransactionHandle:
        if not file_name:
            raise InvalidInputError("File name must not be empty")
        if file_size < 0:
            raise InvalidInputError(f"File size must be unsigned, got {file_size}")

        account = load_account(credential)
        try:
            nonce = await self._w3.eth.get_transaction_count(account.address, "pending")
            chain_id = await self._w3.eth.chain_id
            tx = await self._contract.functions.storeFileHash(
                fingerprint.digest, file_name, file_size
            ).build_transaction(
                {"from": account.address, "nonce": nonce, "chainId": chain_id}
            )
            signed = account.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except (Web3Exception, ValueError, *_CONNECTIVITY_ERRORS) as exc:
            logger.warning("Registration submit failed for %s: %s", fingerprint.hex, exc)
            raise translate_error(exc, "submit") from exc

        return TransactionHandle(
            tx_hash=AsyncWeb3.to_hex(tx_hash),
            fingerprint=fingerprint.hex,
            sender=account.address,
        )

    async def await_confirmation(self, handle: TransactionHandle) -> Confirmation:
        while True:
            try:
                receipt = await self._w3.eth.get_transaction_receipt(handle.tx_hash)
                break
            except TransactionNotFound:
                await asyncio.sleep(self.config.receipt_poll_interval)
            except (Web3Exception, ValueError, *_CONNECTIVITY_ERRORS) as exc:
                logger.warning("Confirmation wait failed for %s: %s", handle.tx_hash, exc)
                raise translate_error(exc, "confirm") from exc

        if receipt["status"] != 1:
            raise TransactionRevertedError(
                f"Transaction {handle.tx_hash} reverted in block {receipt['blockNumber']}",
                stage="confirm",
            )

        try:
            block = await self._w3.eth.get_block(receipt["blockNumber"])
        except (Web3Exception, ValueError, *_CONNECTIVITY_ERRORS) as exc:
            raise translate_error(exc, "confirm") from exc

        return Confirmation(
            tx_hash=handle.tx_hash,
            block_number=receipt["blockNumber"],
            timestamp=block["timestamp"],
        )

    async def query_metadata(self, fingerprint: Fingerprint) -> FileMetadata:
        try:
            file_name, file_size, owner, history = await self._contract.functions.getFileMetadata(
                fingerprint.digest
            ).call()
        except ContractLogicError:
            logger.info("No metadata stored for %s", fingerprint.hex)
            return FileMetadata()
        except (Web3Exception, ValueError, *_CONNECTIVITY_ERRORS) as exc:
            logger.warning("Metadata query failed for %s: %s", fingerprint.hex, exc)
            raise translate_error(exc, "query") from exc

        return FileMetadata(
            file_name=file_name,
            file_size=int(file_size),
            owner=owner,
            history=tuple(int(ts) for ts in history),
        )

    async def query_history(self, fingerprint: Fingerprint) -> tuple[int, ...]:
        try:
            history = await self._contract.functions.getFileHashTimestamps(
                fingerprint.digest
            ).call()
        except ContractLogicError:
            return ()
        except (Web3Exception, ValueError, *_CONNECTIVITY_ERRORS) as exc:
            logger.warning("History query failed for %s: %s", fingerprint.hex, exc)
            raise translate_error(exc, "query") from exc

        return tuple(int(ts) for ts in history)
