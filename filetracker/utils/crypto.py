"""Key files and at-rest encryption for the signing credential and journal."""

from __future__ import annotations

import os
import secrets
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

from filetracker.errors import ConfigurationError


def write_secure_file(path: Path, data: bytes, *, mode: int = 0o600) -> None:
    """Write ``data`` to ``path`` readable by the owner only."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    try:
        os.write(fd, data)
    finally:
        os.close(fd)

    try:
        os.chmod(path, mode)
    except PermissionError:
        # Windows may not support POSIX-style chmod.
        pass


def load_or_create_fernet_key(path: Path) -> bytes:
    """Load the Fernet key at ``path``, generating one on first use."""
    try:
        return path.read_bytes()
    except FileNotFoundError:
        key = Fernet.generate_key()
        write_secure_file(path, key)
        return key


def load_or_create_hmac_key(path: Path, *, length: int = 32) -> bytes:
    """Load the raw HMAC key at ``path``, generating ``length`` random bytes on first use."""
    try:
        return path.read_bytes()
    except FileNotFoundError:
        key = secrets.token_bytes(length)
        write_secure_file(path, key)
        return key


def seal_secret(secret: str, *, key: bytes) -> bytes:
    """Encrypt a text secret with Fernet."""
    return Fernet(key).encrypt(secret.encode("utf-8"))


def open_secret(token: bytes, *, key: bytes) -> str:
    """Decrypt a token produced by :func:`seal_secret`.

    Raises:
        ConfigurationError: If the token was sealed with a different key or is corrupt
    """
    try:
        return Fernet(key).decrypt(token).decode("utf-8")
    except InvalidToken as exc:
        raise ConfigurationError(
            "Stored secret cannot be decrypted; the key file may have been replaced."
        ) from exc
