"""Shared fixtures for the test suite."""

from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeChatModel, FakeEmbeddingService

from dadafarin.infrastructure.account_store import AccountStore
from dadafarin.infrastructure.conversation_store import ConversationStore


def pytest_configure(config):
    """Set pytest-asyncio mode to auto so async test functions work without markers."""
    config.option.asyncio_mode = "auto"


@pytest.fixture()
def fake_embeddings() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture()
def fake_chat_model() -> FakeChatModel:
    return FakeChatModel()


@pytest.fixture()
def conversation_store(tmp_path: Path) -> ConversationStore:
    """A ConversationStore connected to a temp database."""
    store = ConversationStore(db_path=tmp_path / "app.sqlite")
    store.connect()
    yield store
    store.close()


@pytest.fixture()
def account_store(tmp_path: Path) -> AccountStore:
    """An AccountStore connected to a temp database."""
    store = AccountStore(db_path=tmp_path / "app.sqlite")
    store.connect()
    yield store
    store.close()
