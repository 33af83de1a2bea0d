"""Shared test fixtures."""

from datetime import datetime, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main


@pytest.fixture
def now():
    """Fixed review clock."""
    return datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def mongo_db(monkeypatch):
    """In-memory MongoDB wired into the app in place of the real connection."""
    mdb = mongomock.MongoClient(tz_aware=True)["flashcards_test"]
    database.ensure_indexes(mdb)
    monkeypatch.setattr(database, "db", mdb)
    monkeypatch.setattr(main, "db", mdb)
    return mdb


@pytest.fixture
def client(mongo_db):
    return TestClient(main.app)


@pytest.fixture
def stored_card(client):
    """(collection_id, flashcard_id) of a stored flashcard."""
    resp = client.post("/api/collections", json={"name": "Capitals"})
    collection_id = resp.json()["id"]
    resp = client.post("/api/flashcards", json={
        "collection_id": collection_id, "front": "France", "back": "Paris",
    })
    return collection_id, resp.json()["id"]
