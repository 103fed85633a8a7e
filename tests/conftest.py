"""Test configuration that ensures project modules are importable."""

import sys
from pathlib import Path

import pytest

# Add project root to sys.path so `datastore_shared` and `datastore_server` can be imported in tests.
ROOT = Path(__file__).resolve().parent.parent
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)


@pytest.fixture(autouse=True)
def _clean_datastore_env(monkeypatch):
    """Keep host environment variables out of config and logging tests."""
    for name in (
        "DATASTORE_URL",
        "DATASTORE_BUCKET",
        "DATASTORE_USER",
        "DATASTORE_PASSWORD",
        "DATASTORE_PREFIX",
        "LEDGERS_PER_FILE",
        "FILES_PER_PARTITION",
        "FILE_EXTENSION",
        "LOG_LEVEL",
        "UNGROUPED",
    ):
        monkeypatch.delenv(name, raising=False)
