"""
Pytest configuration for unit tests.

Keeps host settings out of the sync configuration so every test starts
from the defaults.
"""

import os

import pytest


def pytest_configure(config):
    """Disable OpenTelemetry SDK auto-configuration for unit tests."""
    os.environ["OTEL_SDK_DISABLED"] = "true"


@pytest.fixture(autouse=True)
def clean_sync_env(monkeypatch):
    """Remove EDRPOU_* and import sizing variables inherited from the shell."""
    for name in list(os.environ):
        if name.startswith("EDRPOU_"):
            monkeypatch.delenv(name)
    for name in ("DATABASE_URL", "IMPORT_BATCH_SIZE", "IMPORT_WORKERS"):
        monkeypatch.delenv(name, raising=False)
