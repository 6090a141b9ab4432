"""Tests for file sources and key handling."""

from pathlib import Path

import pytest
from cryptography.fernet import Fernet

from filetracker.app.adapters import InMemoryFileSource, LocalFileSource
from filetracker.errors import ConfigurationError, FileReadError
from filetracker.utils.crypto import (
    load_or_create_fernet_key,
    load_or_create_hmac_key,
    open_secret,
    seal_secret,
)


@pytest.mark.asyncio
async def test_in_memory_source_reports_declared_size():
    source = InMemoryFileSource(b"abc", "a.txt", size=10)

    assert source.name == "a.txt"
    assert source.size == 10
    assert await source.read_bytes() == b"abc"


@pytest.mark.asyncio
async def test_local_source_reads_file(sample_file: Path):
    source = LocalFileSource(sample_file)

    assert source.name == "contract.txt"
    assert source.size == sample_file.stat().st_size
    assert await source.read_bytes() == sample_file.read_bytes()


def test_local_source_missing_file(temp_dir: Path):
    with pytest.raises(FileReadError):
        LocalFileSource(temp_dir / "missing.txt")


@pytest.mark.asyncio
async def test_local_source_deleted_after_selection(sample_file: Path):
    source = LocalFileSource(sample_file)
    sample_file.unlink()

    with pytest.raises(FileReadError):
        await source.read_bytes()


def test_keys_are_created_once(temp_dir: Path):
    fernet_path = temp_dir / "keys" / "signer.key"
    hmac_path = temp_dir / "keys" / "journal.key"

    assert load_or_create_fernet_key(fernet_path) == load_or_create_fernet_key(fernet_path)
    assert len(load_or_create_hmac_key(hmac_path)) == 32
    assert load_or_create_hmac_key(hmac_path) == hmac_path.read_bytes()


def test_sealed_secret_requires_same_key():
    token = seal_secret("0xsecret", key=Fernet.generate_key())

    with pytest.raises(ConfigurationError):
        open_secret(token, key=Fernet.generate_key())
