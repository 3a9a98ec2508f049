"""
MongoDB integration for Arrest Lead.
"""

import datetime
import time
import uuid
from typing import Dict, Optional, Set

import pymongo
from pymongo.errors import DuplicateKeyError, PyMongoError

from arrestlead.config import Config, MongoDBConfig, SourceAdapterConfig
from arrestlead.db.store import RecordStore
from arrestlead.lock import RunLock
from arrestlead.log import get_logger
from arrestlead.model import ArrestRecord, StoreError, UpsertResult

logger = get_logger(__name__)


def to_mongodb_doc(record: ArrestRecord, key: str) -> Dict:
    """
    Convert a record to a MongoDB document.

    Args:
        record: Record to convert
        key: Natural key, used as the document id

    Returns:
        MongoDB document
    """
    doc = dict(record)
    doc["_id"] = key
    doc["updated_at"] = datetime.datetime.now(datetime.timezone.utc)
    return doc


def from_mongodb_doc(doc: Dict) -> ArrestRecord:
    """Strip storage-only fields from a MongoDB document."""
    return {k: v for k, v in doc.items() if k not in ("_id", "updated_at")}


class MongoRecordStore(RecordStore):
    """
    Record store backed by one MongoDB collection. The natural key is the _id.
    """

    def __init__(self, cfg: MongoDBConfig, config: Optional[Config] = None):
        self.cfg = cfg
        self.config = config or Config()
        try:
            self.client = pymongo.MongoClient(cfg.uri, retryWrites=True)
            self.collection = self.client[cfg.database][cfg.collection]
        except PyMongoError as e:
            logger.error(f"Error connecting to MongoDB: {e}")
            raise StoreError(f"Error connecting to MongoDB: {e}")

    def load_existing_keys(self, county: str) -> Set[str]:
        try:
            return {doc["_id"] for doc in self.collection.find({"county": county}, {"_id": 1})}
        except PyMongoError as e:
            logger.error(f"Error loading keys for {county}: {e}")
            raise StoreError(f"Error loading keys for {county}: {e}")

    def get_record(self, county: str, key: str) -> Optional[ArrestRecord]:
        try:
            doc = self.collection.find_one({"_id": key, "county": county})
        except PyMongoError as e:
            logger.error(f"Error reading {key}: {e}")
            raise StoreError(f"Error reading {key}: {e}")
        return from_mongodb_doc(doc) if doc else None

    def upsert_record(self, county: str, key: str, record: ArrestRecord) -> UpsertResult:
        doc = to_mongodb_doc(record, key)
        doc.pop("_id")
        first_seen = {"scraped_at": doc.pop("scraped_at")} if "scraped_at" in doc else {}

        update = {"$set": doc}
        if first_seen:
            update["$setOnInsert"] = first_seen

        try:
            result = self.collection.update_one({"_id": key}, update, upsert=True)
        except PyMongoError as e:
            logger.error(f"Error writing {key} to MongoDB: {e}")
            raise StoreError(f"Error writing {key} to MongoDB: {e}")

        if result.upserted_id is not None:
            return UpsertResult.INSERTED
        return UpsertResult.UPDATED

    def load_config(self, county: str) -> SourceAdapterConfig:
        return self.config.county(county)


class MongoRunLock(RunLock):
    """
    Run lock held as a lease document in MongoDB.

    A lease expires after ``lock_ttl`` seconds so a crashed run cannot
    block its county forever.
    """

    def __init__(self, cfg: MongoDBConfig, poll_interval: float = 0.5):
        self.cfg = cfg
        self.poll_interval = poll_interval
        self.owner = uuid.uuid4().hex
        self.client = pymongo.MongoClient(cfg.uri)
        self.collection = self.client[cfg.database][cfg.lock_collection]

    def _try_once(self, scope: str) -> bool:
        now = datetime.datetime.now(datetime.timezone.utc)
        expires_at = now + datetime.timedelta(seconds=self.cfg.lock_ttl)
        try:
            # Matches only an expired lease; otherwise the upsert collides on _id
            self.collection.update_one(
                {"_id": scope, "expires_at": {"$lt": now}},
                {"$set": {"owner": self.owner, "acquired_at": now, "expires_at": expires_at}},
                upsert=True,
            )
            return True
        except DuplicateKeyError:
            return False

    def try_acquire(self, scope: str, timeout: float) -> bool:
        deadline = time.monotonic() + max(timeout, 0)
        while True:
            try:
                if self._try_once(scope):
                    return True
            except PyMongoError as e:
                logger.error(f"Error acquiring run lock for {scope}: {e}")
                raise StoreError(f"Error acquiring run lock for {scope}: {e}")
            if time.monotonic() >= deadline:
                return False
            time.sleep(self.poll_interval)

    def release(self, scope: str) -> None:
        try:
            self.collection.delete_one({"_id": scope, "owner": self.owner})
        except PyMongoError as e:
            logger.warning(f"Error releasing run lock for {scope}: {e}")


def setup_indexes(cfg: MongoDBConfig) -> None:
    """
    Set up MongoDB collections and indexes.

    Args:
        cfg: MongoDB configuration
    """
    if not cfg.enabled:
        logger.warning("MongoDB integration is disabled in configuration")
        return

    logger.info("Setting up MongoDB collections and indexes")

    try:
        client = pymongo.MongoClient(cfg.uri)
        db = client[cfg.database]

        # Create records collection with validation
        if cfg.collection not in db.list_collection_names():
            db.create_collection(
                cfg.collection,
                validator={
                    "$jsonSchema": {
                        "bsonType": "object",
                        "required": ["county", "charges"],
                        "properties": {
                            "county": {"bsonType": "string", "minLength": 1},
                            "booking_number": {"bsonType": "string"},
                            "full_name": {"bsonType": "string"},
                            "booking_date": {"bsonType": "string"},
                            "status": {"enum": ["InCustody", "Released", "Unknown"]},
                            "charges": {
                                "bsonType": "array",
                                "items": {
                                    "bsonType": "object",
                                    "properties": {
                                        "description": {"bsonType": "string"},
                                        "bond_amount": {"bsonType": ["double", "int", "null"], "minimum": 0},
                                    },
                                },
                            },
                        },
                    }
                },
                validationLevel="moderate",
            )

        collection = db[cfg.collection]

        # Key loading per county and booking lookups
        collection.create_index([("county", pymongo.ASCENDING), ("booking_number", pymongo.ASCENDING)])
        collection.create_index([("county", pymongo.ASCENDING), ("booking_date", pymongo.ASCENDING)])
        collection.create_index([("full_name", pymongo.ASCENDING)])

        # Expired leases are reaped by the server
        locks = db[cfg.lock_collection]
        locks.create_index([("expires_at", pymongo.ASCENDING)], expireAfterSeconds=0)

        logger.info("MongoDB setup complete")
    except PyMongoError as e:
        logger.error(f"Error setting up MongoDB: {e}")
        raise StoreError(f"Error setting up MongoDB: {e}")
