"""Configuration management with Pydantic and XDG base directory support."""

import os
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from filetracker.app.ports.ledger import SigningCredential
from filetracker.errors import ConfigurationError
from filetracker.utils.crypto import (
    load_or_create_fernet_key,
    load_or_create_hmac_key,
    open_secret,
    seal_secret,
    write_secure_file,
)

LOCAL_RPC_URL = "http://127.0.0.1:8545"
SEPOLIA_RPC_TEMPLATE = "https://sepolia.infura.io/v3/{project_id}"

NetworkName = Literal["local", "sepolia", "memory"]

_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
_PRIVATE_KEY_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


def get_xdg_data_home() -> Path:
    """Get XDG_DATA_HOME directory, defaulting to ~/.local/share."""
    xdg_data = os.getenv("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data)
    return Path.home() / ".local" / "share"


def get_xdg_config_home() -> Path:
    """Get XDG_CONFIG_HOME directory, defaulting to ~/.config."""
    xdg_config = os.getenv("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config)
    return Path.home() / ".config"


class LedgerConfig(BaseModel):
    """Validated, immutable connection parameters for a ledger adapter."""

    model_config = ConfigDict(frozen=True)

    network: NetworkName
    rpc_url: str
    contract_address: str
    request_timeout: float = Field(default=30.0, gt=0)
    receipt_poll_interval: float = Field(default=2.0, gt=0)


class Settings(BaseSettings):
    """FileTracker configuration settings.

    Precedence: CLI flag > environment variable > .env file > defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="FILETRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Ledger connection
    network: NetworkName = Field(
        default="local",
        description="Ledger network: local node, Sepolia via Infura, or in-process memory",
    )

    rpc_url: str | None = Field(
        default=None,
        description="Explicit JSON-RPC endpoint (overrides the network default)",
    )

    infura_project_id: str | None = Field(
        default=None,
        description="Infura project id used to build the Sepolia endpoint",
    )

    contract_address: str | None = Field(
        default=None,
        description="Address of the deployed FileTracker contract",
    )

    private_key: SecretStr | None = Field(
        default=None,
        description="Signing key; stored encrypted on first use and cleared from the model",
    )

    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-request HTTP timeout for JSON-RPC calls (seconds)",
    )

    receipt_poll_interval: float = Field(
        default=2.0,
        gt=0,
        description="Delay between transaction receipt polls (seconds)",
    )

    confirmation_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Fail registration if not confirmed within this many seconds (unset = wait)",
    )

    # Data directories
    data_dir: Path | None = Field(
        default=None,
        description="Override data directory (defaults to XDG_DATA_HOME/filetracker)",
    )

    config_dir: Path | None = Field(
        default=None,
        description="Override config directory (defaults to XDG_CONFIG_HOME/filetracker)",
    )

    # Journal settings
    journal_enabled: bool = Field(
        default=True,
        description="Record completed operations in the tamper-evident activity journal",
    )

    journal_hmac_key_path: Path | None = Field(
        default=None,
        description="Location of the journal HMAC key",
    )

    signer_key_path: Path | None = Field(
        default=None,
        description="Location of the Fernet key that encrypts the stored signing key",
    )

    _credential_cache: SigningCredential | None = PrivateAttr(default=None)

    @field_validator("contract_address")
    @classmethod
    def _validate_contract_address(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        if not _ADDRESS_PATTERN.match(value):
            raise ValueError(f"Contract address must be 0x + 40 hex digits, got {value!r}")
        return value

    @field_validator("private_key")
    @classmethod
    def _validate_private_key(cls, value: SecretStr | None) -> SecretStr | None:
        if value is None:
            return None
        if not _PRIVATE_KEY_PATTERN.match(value.get_secret_value().strip()):
            raise ValueError("Private key must be 64 hex digits (optionally 0x-prefixed)")
        return SecretStr(value.get_secret_value().strip())

    def model_post_init(self, __context: Any) -> None:
        """Persist an inline signing key into the encrypted secrets store."""
        super().model_post_init(__context)
        if self.private_key is not None:
            self.store_private_key(self.private_key.get_secret_value())
            # Prevent accidental plaintext reuse once persisted.
            object.__setattr__(self, "private_key", None)

    def get_data_dir(self) -> Path:
        """Get the data directory, creating if necessary."""
        data_dir = self.data_dir or get_xdg_data_home() / "filetracker"
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def get_config_dir(self) -> Path:
        """Get the config directory, creating if necessary."""
        config_dir = self.config_dir or get_xdg_config_home() / "filetracker"
        config_dir.mkdir(parents=True, exist_ok=True)
        return config_dir

    def get_journal_path(self) -> Path:
        """Get path to the activity journal file."""
        return self.get_data_dir() / "journal.jsonl"

    def get_journal_hmac_key(self) -> bytes:
        """Return the HMAC key used to seal journal entries."""
        key_path = (
            self.journal_hmac_key_path
            if self.journal_hmac_key_path is not None
            else self.get_config_dir() / "journal.key"
        )
        return load_or_create_hmac_key(key_path, length=32)

    def resolve_rpc_url(self) -> str:
        """Return the JSON-RPC endpoint for the configured network.

        Raises:
            ConfigurationError: If Sepolia is selected without an Infura project id
        """
        if self.rpc_url:
            return self.rpc_url
        if self.network == "sepolia":
            if not self.infura_project_id:
                raise ConfigurationError(
                    "Sepolia requires FILETRACKER_INFURA_PROJECT_ID or an explicit rpc_url."
                )
            return SEPOLIA_RPC_TEMPLATE.format(project_id=self.infura_project_id)
        return LOCAL_RPC_URL

    def get_ledger_config(self) -> LedgerConfig:
        """Validate connection settings and freeze them for the ledger adapter.

        Raises:
            ConfigurationError: If the contract address or endpoint is missing
        """
        if self.network != "memory" and self.contract_address is None:
            raise ConfigurationError(
                "Contract address not configured. Set FILETRACKER_CONTRACT_ADDRESS."
            )
        return LedgerConfig(
            network=self.network,
            rpc_url="" if self.network == "memory" else self.resolve_rpc_url(),
            contract_address=self.contract_address or "0x" + "0" * 40,
            request_timeout=self.request_timeout,
            receipt_poll_interval=self.receipt_poll_interval,
        )

    def _get_signer_key(self) -> bytes:
        key_path = (
            self.signer_key_path
            if self.signer_key_path is not None
            else self.get_config_dir() / "signer.key"
        )
        return load_or_create_fernet_key(key_path)

    def _get_credential_path(self) -> Path:
        return self.get_config_dir() / "secrets" / "signer.enc"

    def store_private_key(self, secret: str) -> None:
        """Persist the signing key using at-rest encryption."""
        token = seal_secret(secret, key=self._get_signer_key())
        write_secure_file(self._get_credential_path(), token)
        self._credential_cache = SigningCredential(private_key=SecretStr(secret))

    def has_signing_credential(self) -> bool:
        return self._credential_cache is not None or self._get_credential_path().exists()

    def get_signing_credential(self) -> SigningCredential:
        """Load the signing credential from the encrypted store.

        Raises:
            ConfigurationError: If no key has been stored or it cannot be decrypted
        """
        if self._credential_cache is not None:
            return self._credential_cache

        path = self._get_credential_path()
        if not path.exists():
            raise ConfigurationError(
                "No signing key configured. Set FILETRACKER_PRIVATE_KEY once to store it."
            )

        secret = open_secret(path.read_bytes(), key=self._get_signer_key())
        self._credential_cache = SigningCredential(private_key=SecretStr(secret))
        return self._credential_cache


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set the global settings instance (useful for testing)."""
    global _settings
    _settings = settings
