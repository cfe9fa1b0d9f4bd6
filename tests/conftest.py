"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Make `nodepool` importable without installing the package
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Make the azure_mock package importable from test modules
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from azure_mock import SUBSCRIPTION_ID  # noqa: E402
from nodepool.config import Config  # noqa: E402


@pytest.fixture(autouse=True)
def _no_credential_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer credentials in the environment from tripping secretless checks."""
    for var in (
        "AZURE_CLIENT_SECRET",
        "AZURE_CLIENT_CERTIFICATE_PATH",
        "AZURE_CLIENT_CERTIFICATE_PASSWORD",
        "AZURE_USERNAME",
        "AZURE_PASSWORD",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Configuration with fast polling and a throwaway state directory."""
    return Config(
        subscription_id=SUBSCRIPTION_ID,
        state_dir=tmp_path / "state",
        poll_interval_seconds=0.001,
        read_timeout_seconds=5,
    )
