"""
Record store interface for Arrest Lead.
"""

import copy
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional, Set

from arrestlead.config import Config, SourceAdapterConfig
from arrestlead.model import ArrestRecord, UpsertResult


class RecordStore(ABC):
    """
    Durable home of ArrestRecords, keyed by natural key within a county.
    """

    @abstractmethod
    def load_existing_keys(self, county: str) -> Set[str]:
        """Return every natural key stored for a county."""

    @abstractmethod
    def get_record(self, county: str, key: str) -> Optional[ArrestRecord]:
        """Return the stored record for a key, or None."""

    @abstractmethod
    def upsert_record(self, county: str, key: str, record: ArrestRecord) -> UpsertResult:
        """Write a record; returns Inserted for a new key, Updated otherwise."""

    @abstractmethod
    def load_config(self, county: str) -> SourceAdapterConfig:
        """Return the source configuration for a county."""


class InMemoryRecordStore(RecordStore):
    """
    Record store held in process memory. Used for dry runs and tests.
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self._records: Dict[str, Dict[str, ArrestRecord]] = {}
        self._lock = threading.Lock()

    def load_existing_keys(self, county: str) -> Set[str]:
        with self._lock:
            return set(self._records.get(county, {}))

    def get_record(self, county: str, key: str) -> Optional[ArrestRecord]:
        with self._lock:
            record = self._records.get(county, {}).get(key)
            return copy.deepcopy(record) if record is not None else None

    def upsert_record(self, county: str, key: str, record: ArrestRecord) -> UpsertResult:
        with self._lock:
            records = self._records.setdefault(county, {})
            result = UpsertResult.UPDATED if key in records else UpsertResult.INSERTED
            records[key] = copy.deepcopy(record)
            return result

    def load_config(self, county: str) -> SourceAdapterConfig:
        return self.config.county(county)

    def all_records(self, county: str) -> Dict[str, ArrestRecord]:
        """Return a copy of every record stored for a county."""
        with self._lock:
            return copy.deepcopy(self._records.get(county, {}))
