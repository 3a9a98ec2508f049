"""
Tests for the MongoDB integration.
"""

import datetime
from unittest.mock import MagicMock, patch

import pytest
from pymongo.errors import DuplicateKeyError, PyMongoError

from arrestlead.config import MongoDBConfig
from arrestlead.db.mongo import (
    MongoRecordStore,
    MongoRunLock,
    from_mongodb_doc,
    setup_indexes,
    to_mongodb_doc,
)
from arrestlead.model import StoreError, UpsertResult


@pytest.fixture
def mongo_cfg():
    return MongoDBConfig(enabled=True, uri="mongodb://localhost:27017")


def mock_client():
    """Return a MagicMock client whose databases and collections are stable mocks."""
    client = MagicMock()
    db = MagicMock()
    collection = MagicMock()
    client.__getitem__.return_value = db
    db.__getitem__.return_value = collection
    return client, db, collection


def test_to_mongodb_doc(sample_record):
    """Test converting a record to a MongoDB document."""
    doc = to_mongodb_doc(sample_record, "Lee|12345")
    assert doc["_id"] == "Lee|12345"
    assert doc["booking_number"] == "12345"
    assert doc["charges"] == sample_record["charges"]
    assert isinstance(doc["updated_at"], datetime.datetime)
    assert "_id" not in sample_record


def test_from_mongodb_doc(sample_record):
    """Test that storage-only fields are dropped."""
    doc = to_mongodb_doc(sample_record, "Lee|12345")
    assert from_mongodb_doc(doc) == sample_record


@patch("arrestlead.db.mongo.pymongo.MongoClient")
def test_load_existing_keys(mock_mongo_client, mongo_cfg):
    """Test key loading per county."""
    client, _, collection = mock_client()
    mock_mongo_client.return_value = client
    collection.find.return_value = [{"_id": "Lee|1"}, {"_id": "Lee|2"}]

    store = MongoRecordStore(mongo_cfg)

    assert store.load_existing_keys("Lee") == {"Lee|1", "Lee|2"}
    collection.find.assert_called_once_with({"county": "Lee"}, {"_id": 1})


@patch("arrestlead.db.mongo.pymongo.MongoClient")
def test_get_record(mock_mongo_client, mongo_cfg, sample_record):
    """Test reading one record back."""
    client, _, collection = mock_client()
    mock_mongo_client.return_value = client
    collection.find_one.return_value = to_mongodb_doc(sample_record, "Lee|12345")

    store = MongoRecordStore(mongo_cfg)

    assert store.get_record("Lee", "Lee|12345") == sample_record
    collection.find_one.return_value = None
    assert store.get_record("Lee", "Lee|99999") is None


@patch("arrestlead.db.mongo.pymongo.MongoClient")
def test_upsert_record_inserted(mock_mongo_client, mongo_cfg, sample_record):
    """Test that an upserted document reports Inserted."""
    client, _, collection = mock_client()
    mock_mongo_client.return_value = client
    collection.update_one.return_value = MagicMock(upserted_id="Lee|12345")

    store = MongoRecordStore(mongo_cfg)
    assert store.upsert_record("Lee", "Lee|12345", sample_record) == UpsertResult.INSERTED

    args, kwargs = collection.update_one.call_args
    assert args[0] == {"_id": "Lee|12345"}
    assert args[1]["$set"]["booking_number"] == "12345"
    assert "scraped_at" not in args[1]["$set"]
    assert args[1]["$setOnInsert"] == {"scraped_at": sample_record["scraped_at"]}
    assert kwargs["upsert"] is True


@patch("arrestlead.db.mongo.pymongo.MongoClient")
def test_upsert_record_updated(mock_mongo_client, mongo_cfg, sample_record):
    """Test that a matched document reports Updated."""
    client, _, collection = mock_client()
    mock_mongo_client.return_value = client
    collection.update_one.return_value = MagicMock(upserted_id=None)

    store = MongoRecordStore(mongo_cfg)
    assert store.upsert_record("Lee", "Lee|12345", sample_record) == UpsertResult.UPDATED


@patch("arrestlead.db.mongo.pymongo.MongoClient")
def test_upsert_record_error(mock_mongo_client, mongo_cfg, sample_record):
    """Test that driver errors surface as StoreError."""
    client, _, collection = mock_client()
    mock_mongo_client.return_value = client
    collection.update_one.side_effect = PyMongoError("not primary")

    store = MongoRecordStore(mongo_cfg)
    with pytest.raises(StoreError):
        store.upsert_record("Lee", "Lee|12345", sample_record)


@patch("arrestlead.db.mongo.pymongo.MongoClient")
def test_run_lock_acquire_and_release(mock_mongo_client, mongo_cfg):
    """Test acquiring a free lease and releasing it by owner."""
    client, _, collection = mock_client()
    mock_mongo_client.return_value = client

    lock = MongoRunLock(mongo_cfg)
    assert lock.try_acquire("lee", 0) is True

    args, kwargs = collection.update_one.call_args
    assert args[0]["_id"] == "lee"
    assert args[1]["$set"]["owner"] == lock.owner
    assert kwargs["upsert"] is True

    lock.release("lee")
    collection.delete_one.assert_called_once_with({"_id": "lee", "owner": lock.owner})


@patch("arrestlead.db.mongo.pymongo.MongoClient")
def test_run_lock_contention(mock_mongo_client, mongo_cfg):
    """Test that a live lease held elsewhere is not acquired."""
    client, _, collection = mock_client()
    mock_mongo_client.return_value = client
    collection.update_one.side_effect = DuplicateKeyError("E11000 duplicate key")

    lock = MongoRunLock(mongo_cfg, poll_interval=0.01)
    assert lock.try_acquire("lee", 0.03) is False
    assert collection.update_one.call_count >= 2


@patch("arrestlead.db.mongo.pymongo.MongoClient")
def test_setup_indexes(mock_mongo_client, mongo_cfg):
    """Test collection and index creation."""
    client, db, collection = mock_client()
    mock_mongo_client.return_value = client
    db.list_collection_names.return_value = []

    setup_indexes(mongo_cfg)

    db.create_collection.assert_called_once()
    assert db.create_collection.call_args[0][0] == "arrest_records"
    assert collection.create_index.call_count == 4
    collection.create_index.assert_any_call([("expires_at", 1)], expireAfterSeconds=0)


@patch("arrestlead.db.mongo.pymongo.MongoClient")
def test_setup_indexes_disabled(mock_mongo_client):
    """Test that a disabled configuration does nothing."""
    setup_indexes(MongoDBConfig(enabled=False))
    mock_mongo_client.assert_not_called()
