"""Shared pytest fixtures."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("ENVIRONMENT", "test")

from saga.client.store import ConversationStore, FileStorage  # noqa: E402
from saga.config import Settings  # noqa: E402
from saga.main import create_app  # noqa: E402


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure required environment variables are present during tests."""

    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("ENVIRONMENT", "test")


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def storage(tmp_path: Path) -> FileStorage:
    return FileStorage(tmp_path / "state")


@pytest.fixture
def store(storage: FileStorage) -> ConversationStore:
    conversation = ConversationStore(storage)
    conversation.load()
    return conversation
