"""Shared fixtures for studio tests."""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from src.studio.config import settings
from src.studio.db import init_db


@pytest.fixture
def strategy_dir(tmp_path: Path, monkeypatch) -> Path:
    """Empty strategy-document folder wired into settings."""
    folder = tmp_path / "strategy"
    folder.mkdir()
    monkeypatch.setattr(settings, "strategy_path", str(folder))
    return folder


@pytest.fixture
def db_path(tmp_path: Path, strategy_dir: Path) -> str:
    path = str(tmp_path / "studio.db")
    init_db(path)
    return path


def make_response(text: str | None = "Generated text", input_tokens: int = 100, output_tokens: int = 50):
    """Build an object shaped like an Anthropic Messages response."""
    content = [SimpleNamespace(type="text", text=text)] if text is not None else []
    return SimpleNamespace(
        content=content,
        usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens),
    )


@pytest.fixture
def llm_client() -> Mock:
    client = Mock()
    client.messages.create.return_value = make_response()
    return client


@pytest.fixture
def response_factory():
    return make_response
