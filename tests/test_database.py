"""Connection manager and document helpers."""

from datetime import datetime

import mongomock
import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

import database
from database import DatabaseConnection, paginate, serialize, to_object_id
from errors import DatabaseError, ValidationError


class FlakyClient:
    """MongoClient stand-in whose ping fails a set number of times."""

    failures = 0
    calls = 0
    closed = 0

    def __init__(self, *args, **kwargs):
        type(self).calls += 1
        self._client = mongomock.MongoClient()
        self.admin = self

    def command(self, name):
        if type(self).calls <= type(self).failures:
            raise ServerSelectionTimeoutError("no servers available")
        return {"ok": 1.0}

    def __getitem__(self, name):
        return self._client[name]

    @property
    def address(self):
        return ("localhost", 27017)

    def close(self):
        type(self).closed += 1


@pytest.fixture
def flaky(monkeypatch):
    sleeps = []
    FlakyClient.calls = 0
    FlakyClient.closed = 0
    monkeypatch.setattr(database, "MongoClient", FlakyClient)
    monkeypatch.setattr(database.time, "sleep", sleeps.append)
    yield sleeps
    database.db = None


class TestDatabaseConnection:

    def test_connects_after_retries(self, flaky):
        FlakyClient.failures = 2
        conn = DatabaseConnection("mongodb://test", "shop", max_retries=5, retry_delay=1.5)

        db = conn.connect()

        assert FlakyClient.calls == 3
        assert flaky == [1.5, 1.5]
        assert conn.is_connected
        assert conn.retry_count == 0
        assert database.db is db
        assert conn.status() == {"is_connected": True, "host": "localhost", "port": 27017, "name": "shop"}

    def test_gives_up_after_max_retries(self, flaky):
        FlakyClient.failures = 10
        conn = DatabaseConnection("mongodb://test", "shop", max_retries=3, retry_delay=2)

        with pytest.raises(DatabaseError):
            conn.connect()

        assert FlakyClient.calls == 3
        # no sleep after the last attempt
        assert flaky == [2, 2]
        assert not conn.is_connected

    def test_disconnect_clears_state(self, flaky):
        FlakyClient.failures = 0
        conn = DatabaseConnection("mongodb://test", "shop", max_retries=1)
        conn.connect()
        conn.disconnect()
        assert not conn.is_connected
        assert database.db is None

    def test_failed_attempts_close_their_clients(self, flaky):
        FlakyClient.failures = 10
        conn = DatabaseConnection("mongodb://test", "shop", max_retries=3, retry_delay=0)
        with pytest.raises(DatabaseError):
            conn.connect()
        assert FlakyClient.calls == 3
        assert FlakyClient.closed == 3

    def test_reconnect_closes_previous_client(self, flaky):
        FlakyClient.failures = 0
        conn = DatabaseConnection("mongodb://test", "shop", max_retries=1)
        conn.connect()
        first = conn.client
        conn.connect()
        assert conn.client is not first
        assert FlakyClient.closed == 1
        assert conn.is_connected

    def test_health_check_never_raises(self):
        conn = DatabaseConnection("mongodb://test", "shop")
        database.db = None
        result = conn.health_check()
        assert result["status"] == "unhealthy"
        assert "error" in result


class TestHelpers:

    def test_get_collection_without_database(self):
        database.db = None
        with pytest.raises(DatabaseError):
            database.get_collection("product")

    def test_create_document_sets_timestamps(self, db):
        doc_id = database.create_document("product", {"sku": "MD-1"})
        stored = db["product"].find_one({"_id": ObjectId(doc_id)})
        assert isinstance(stored["created_at"], datetime)
        assert stored["updated_at"] >= stored["created_at"]

    def test_to_object_id_rejects_garbage(self):
        with pytest.raises(ValidationError) as exc:
            to_object_id("not-an-id")
        assert exc.value.code == "INVALID_ID"

    def test_serialize_renames_ids(self):
        oid = ObjectId()
        result = serialize({"_id": oid, "items": [{"product": oid}]})
        assert result == {"id": str(oid), "items": [{"product": str(oid)}]}

    def test_paginate(self, db):
        for i in range(5):
            db["product"].insert_one({"n": i})
        docs, pagination = paginate("product", {}, page=2, limit=2, sort=[("n", 1)])
        assert [d["n"] for d in docs] == [2, 3]
        assert pagination == {
            "current_page": 2,
            "total_pages": 3,
            "total": 5,
            "has_next_page": True,
            "has_prev_page": True,
        }

    def test_generate_number_format(self, db):
        number = database.generate_number("SR", "sample_request")
        assert number.startswith("SR")
        assert len(number) == 12
        assert number.endswith("0001")
