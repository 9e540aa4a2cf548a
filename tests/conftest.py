"""Shared test fixtures for Codeshell."""

from __future__ import annotations

import asyncio

import pytest

from codeshell.ai.registry import ModelRegistry
from codeshell.ai.transactions import TransactionLog
from codeshell.config import reset_settings
from codeshell.db.engine import reset_engines
from tests.helpers.fakes import FakeAdapter

ENV_VARS = (
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "MISTRAL_API_KEY",
    "DEEPSEEK_API_KEY",
    "CODESHELL_STORAGE_DIR",
    "CODESHELL_PERSIST_INDEX",
    "CODESHELL_TRANSACTION_LOG_FILE",
    "CODESHELL_EMBEDDING_PROVIDER",
)


@pytest.fixture(autouse=True)
def _isolate(tmp_path, monkeypatch):
    """Keep real credentials, .env files and cached engines out of every test."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    reset_engines()
    yield
    reset_settings()
    reset_engines()


@pytest.fixture
def tmp_storage_dir(tmp_path):
    """Clean storage directory for each test."""
    storage = tmp_path / "storage"
    storage.mkdir()
    return storage


@pytest.fixture
def registry():
    return ModelRegistry()


@pytest.fixture
def transaction_log():
    return TransactionLog(capacity=100)


@pytest.fixture
def ready_adapter():
    """Build and initialize a FakeAdapter for a descriptor."""

    def _make(descriptor, **kwargs):
        adapter = FakeAdapter(descriptor, **kwargs)
        asyncio.run(adapter.initialize())
        return adapter

    return _make
