"""
Pytest fixtures shared across all test modules.

Redis and every outbound HTTP lookup are switched off through the
environment, so the relay runs fully in memory. Ban and token files live in
a per-test temporary directory.
"""

import os

# Set env vars BEFORE any relay module is imported
os.environ["REDIS_URL"] = ""
os.environ["AVATAR_API_BASE"] = ""
os.environ["GAME_THUMBNAIL_API"] = ""
os.environ["GAME_UNIVERSE_API"] = ""
os.environ["GAME_INFO_API"] = ""
os.environ["LOG_LEVEL"] = "DEBUG"

import pytest
from fastapi.testclient import TestClient

# Import relay modules AFTER env vars are set
from channelrelay.config import settings  # noqa: E402
from channelrelay.main import app  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_files(tmp_path, monkeypatch):
    """Point the ban list and token store at a fresh directory for each test."""
    monkeypatch.setattr(settings, "BAN_LIST_PATH", str(tmp_path / "bans.json"))
    monkeypatch.setattr(settings, "TOKEN_STORE_PATH", str(tmp_path / "tokens.json"))
    monkeypatch.setattr(settings, "DISCONNECT_GRACE_SECONDS", 0.05)
    return tmp_path


@pytest.fixture()
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def hub(client):
    """The live RelayHub behind the test client."""
    return client.app.state.hub
