"""
Deduplication for Arrest Lead.

Records are keyed by county and booking number (or county, name and
booking date when the booking number is missing). Re-fetched bookings
are merged into the stored copy field by field: a blank incoming value
never erases a known one.
"""

import copy
from typing import Any, Dict, List, Optional, Set, Tuple

from arrestlead.db.store import RecordStore
from arrestlead.log import get_logger
from arrestlead.model import ArrestRecord, CustodyStatus, StoreError, UpsertResult

logger = get_logger(__name__)

# Kept from the first sighting and ignored when detecting changes
FIRST_SEEN_FIELDS = ("scraped_at",)


def natural_key(record: ArrestRecord) -> str:
    """
    Derive the natural key of a record.

    Args:
        record: Arrest record

    Returns:
        "county|booking_number", or "county|full_name|booking_date"
    """
    county = record.get("county", "")
    booking_number = (record.get("booking_number") or "").strip()
    if booking_number:
        return f"{county}|{booking_number}"
    return f"{county}|{record.get('full_name', '')}|{record.get('booking_date', '')}"


def is_blank(value: Any) -> bool:
    """Return True for values that carry no information."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return all(is_blank(v) for v in (value.values() if isinstance(value, dict) else value))
    return False


def _merge_dict(existing: Dict[str, Any], incoming: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
    merged = dict(existing)
    changed = False
    for field, value in incoming.items():
        if is_blank(value):
            continue
        if merged.get(field) != value:
            merged[field] = value
            changed = True
    return merged, changed


def _merge_charges(existing: List[Dict[str, Any]], incoming: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], bool]:
    merged = [dict(c) for c in existing]
    changed = False
    for i, charge in enumerate(incoming):
        if i < len(merged):
            merged[i], charge_changed = _merge_dict(merged[i], charge)
            changed = changed or charge_changed
        elif not is_blank(charge):
            merged.append({k: v for k, v in charge.items()})
            changed = True
    return merged, changed


def merge_records(existing: ArrestRecord, incoming: ArrestRecord) -> Tuple[ArrestRecord, bool]:
    """
    Merge an incoming record into the stored one.

    Args:
        existing: Stored record
        incoming: Freshly normalized record

    Returns:
        Tuple of (merged record, whether anything changed)
    """
    merged: ArrestRecord = copy.deepcopy(existing)
    changed = False

    for field, value in incoming.items():
        if field in FIRST_SEEN_FIELDS:
            if not merged.get(field):
                merged[field] = value
            continue
        if is_blank(value):
            continue
        # An unknown custody status never replaces a known one
        if field == "status" and value == CustodyStatus.UNKNOWN.value:
            continue

        if field == "address" and isinstance(value, dict):
            merged["address"], field_changed = _merge_dict(merged.get("address") or {}, value)
        elif field == "charges" and isinstance(value, list):
            merged["charges"], field_changed = _merge_charges(merged.get("charges") or [], value)
        else:
            field_changed = merged.get(field) != value
            if field_changed:
                merged[field] = value
        changed = changed or field_changed

    return merged, changed


class DeduplicationStore:
    """
    Decides Insert / Update / Skip for each record of one county run.

    The set of existing keys is loaded once per run. One writer per
    county is assumed; the pipeline's run lock provides it.
    """

    def __init__(self, store: RecordStore, county: str):
        self.store = store
        self.county = county
        self.keys: Optional[Set[str]] = None
        self.counts = {result: 0 for result in UpsertResult}

    def load(self) -> int:
        """
        Load the existing keys for the county.

        Returns:
            Number of keys loaded
        """
        try:
            self.keys = set(self.store.load_existing_keys(self.county))
        except StoreError:
            raise
        except Exception as e:
            logger.error(f"Error loading existing keys for {self.county}: {e}")
            raise StoreError(f"Error loading existing keys for {self.county}: {e}")
        logger.debug(f"Loaded {len(self.keys)} existing keys for {self.county}")
        return len(self.keys)

    def upsert(self, record: ArrestRecord) -> UpsertResult:
        """
        Persist a record with merge-not-overwrite semantics.

        Args:
            record: Normalized arrest record

        Returns:
            Inserted for a new key, Updated when a non-blank field changed,
            Skipped otherwise
        """
        result, _ = self.merge_upsert(record)
        return result

    def merge_upsert(self, record: ArrestRecord) -> Tuple[UpsertResult, ArrestRecord]:
        """
        Persist a record and return it as it now stands in the store.

        A partial re-fetch keeps the stored values it lacks, so callers
        scoring or notifying should use the returned record.
        """
        if self.keys is None:
            self.load()

        key = natural_key(record)
        stored = record
        if key not in self.keys:
            self.store.upsert_record(self.county, key, record)
            self.keys.add(key)
            result = UpsertResult.INSERTED
        else:
            existing = self.store.get_record(self.county, key)
            if existing is None:
                self.store.upsert_record(self.county, key, record)
                result = UpsertResult.UPDATED
            else:
                stored, changed = merge_records(existing, record)
                if changed:
                    self.store.upsert_record(self.county, key, stored)
                    result = UpsertResult.UPDATED
                else:
                    result = UpsertResult.SKIPPED

        self.counts[result] += 1
        logger.debug(f"{result.value} {key}")
        return result, stored
