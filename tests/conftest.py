"""Pytest configuration and fixtures."""

import gc
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from pydantic import SecretStr

from filetracker.app.adapters import InMemoryFileSource, InMemoryLedger
from filetracker.app.ports import SigningCredential
from filetracker.app.tracker import TrackerController
from filetracker.config import Settings

# Well-formed throwaway signing key; never funded on any network.
TEST_PRIVATE_KEY = "0x" + "11" * 32


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    try:
        yield Path(tmpdir)
    finally:
        # Release any journal file handles before cleanup
        gc.collect()
        shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def sample_file(temp_dir: Path) -> Path:
    """Create a small document on disk."""
    file_path = temp_dir / "contract.txt"
    file_path.write_bytes(b"Signed agreement, version 1.\n")
    return file_path


@pytest.fixture
def credential() -> SigningCredential:
    return SigningCredential(private_key=SecretStr(TEST_PRIVATE_KEY))


@pytest.fixture
def ledger() -> InMemoryLedger:
    """In-process ledger with a fixed clock."""
    return InMemoryLedger(clock=lambda: 1_700_000_000)


@pytest.fixture
def tracker(ledger: InMemoryLedger, credential: SigningCredential) -> TrackerController:
    return TrackerController(ledger, credential)


@pytest.fixture
def document() -> InMemoryFileSource:
    return InMemoryFileSource(b"hello", "hello.txt")


@pytest.fixture
def override_settings(temp_dir: Path) -> Generator[Settings, None, None]:
    """Provide isolated FileTracker settings on the in-memory network."""

    import filetracker.config as config_module

    original_settings = getattr(config_module, "_settings", None)

    data_dir = temp_dir / "appdata"
    config_dir = temp_dir / "appconfig"
    data_dir.mkdir(parents=True, exist_ok=True)
    config_dir.mkdir(parents=True, exist_ok=True)

    settings = config_module.Settings(
        network="memory",
        data_dir=data_dir,
        config_dir=config_dir,
        journal_enabled=True,
        private_key=TEST_PRIVATE_KEY,
    )

    config_module._settings = settings

    try:
        yield settings
    finally:
        config_module._settings = original_settings
