"""
Data models for Arrest Lead.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, TypedDict, Union


class Address(TypedDict):
    """
    Represents a parsed residence address.
    """

    street: str
    city: str
    state: str  # Two-letter state code
    zip: str  # 5 digits, optionally ZIP+4


class Charge(TypedDict, total=False):
    """
    Represents a single booking charge with its bond and court information.
    """

    description: str  # Free-text offense description
    arresting_agency: str
    bond_type: str  # e.g. "CASH", "SURETY", "NO BOND", "ROR"
    bond_amount: Optional[float]  # Non-negative dollars, None when not published
    bond_paid_date: str
    court_location: str
    case_number: str
    court_date: str  # YYYY-MM-DD when parseable
    court_time: str


class ArrestRecord(TypedDict, total=False):
    """
    Represents one booking, the canonical unit of work.
    """

    county: str
    booking_number: str  # Source-assigned, primary natural key component
    person_id: str
    full_name: str  # Format: "LAST, FIRST MIDDLE SUFFIX"
    first_name: str
    middle_name: str
    last_name: str
    suffix: str
    dob: Optional[str]  # YYYY-MM-DD when parseable
    age: Optional[int]
    sex: str
    race: str
    height: str
    weight: str
    hair_color: str
    eye_color: str
    address: Address
    booking_date: str  # YYYY-MM-DD when parseable
    booking_time: Optional[str]
    status: str  # CustodyStatus value
    status_text: str  # Raw custody text as published
    facility: str
    charges: List[Charge]
    detail_url: str
    mugshot_url: str
    scraped_at: str  # ISO 8601 UTC timestamp


class RawBlock(TypedDict, total=False):
    """
    Represents one per-record chunk of source content, before normalization.
    """

    county: str
    kind: str  # "html" or "json"
    content: Union[str, Dict[str, Any]]
    detail: Optional[Dict[str, Any]]  # Optional detail-fetch payload
    url: str
    layout: str  # Name of the layout that reads this block


class CustodyStatus(Enum):
    """
    Normalized custody status.
    """

    IN_CUSTODY = "InCustody"
    RELEASED = "Released"
    UNKNOWN = "Unknown"


class LeadTier(Enum):
    """
    Qualitative lead bucket derived from the numeric score.
    """

    HOT = "Hot"
    WARM = "Warm"
    COLD = "Cold"
    DISQUALIFIED = "Disqualified"


class UpsertResult(Enum):
    """
    Outcome of persisting one record.
    """

    INSERTED = "Inserted"
    UPDATED = "Updated"
    SKIPPED = "Skipped"


class RunState(Enum):
    """
    States for the per-county pipeline run.
    """

    IDLE = "Idle"
    LOCKED = "Locked"
    FETCHING = "Fetching"
    NORMALIZING = "Normalizing"
    DEDUPLICATING = "Deduplicating"
    SCORING = "Scoring"
    DISPATCHING = "Dispatching"
    DONE = "Done"
    FAILED = "Failed"


class LeadScore:
    """Score, tier and the ordered reasons behind them for one record."""

    def __init__(self, score: int, tier: LeadTier, reasons: List[str]):
        self.score = score
        self.tier = tier
        self.reasons = reasons

    def to_dict(self) -> Dict[str, Any]:
        """Convert lead score to dictionary."""
        return {
            "score": self.score,
            "tier": self.tier.value,
            "reasons": list(self.reasons),
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LeadScore):
            return NotImplemented
        return (self.score, self.tier, self.reasons) == (other.score, other.tier, other.reasons)

    def __repr__(self) -> str:
        return f"LeadScore(score={self.score}, tier={self.tier.value}, reasons={self.reasons!r})"


def charges_text(record: ArrestRecord) -> str:
    """
    Join charge descriptions into one string.

    Args:
        record: Arrest record

    Returns:
        Descriptions joined with " | " in document order
    """
    return " | ".join(
        c.get("description", "") for c in record.get("charges", []) if c.get("description")
    )


def bond_types_text(record: ArrestRecord) -> str:
    """Join the distinct bond types of a record's charges."""
    seen: List[str] = []
    for charge in record.get("charges", []):
        bond_type = (charge.get("bond_type") or "").strip()
        if bond_type and bond_type not in seen:
            seen.append(bond_type)
    return " | ".join(seen)


def total_bond_amount(record: ArrestRecord) -> Optional[float]:
    """
    Sum the bond amounts published for a record's charges.

    Args:
        record: Arrest record

    Returns:
        Total bond in dollars, or None when no charge carries an amount
    """
    amounts = [
        c["bond_amount"] for c in record.get("charges", [])
        if c.get("bond_amount") is not None
    ]
    if not amounts:
        return None
    return float(sum(amounts))


def court_date_of(record: ArrestRecord) -> str:
    """Return the first non-blank court date across charges."""
    for charge in record.get("charges", []):
        if charge.get("court_date"):
            return charge["court_date"]
    return ""


class ArrestLeadError(Exception):
    """Base class for all arrestlead exceptions."""

    pass


class ConfigError(ArrestLeadError):
    """Exception raised for configuration errors."""

    pass


class FetchError(ArrestLeadError):
    """Exception raised when a source cannot be fetched after retries."""

    pass


class RecordNotFound(FetchError):
    """Exception raised for 404-style responses. An expected negative, never retried."""

    def __init__(self, url: str, status_code: int = 404):
        super().__init__(f"No record at {url} (HTTP {status_code})")
        self.url = url
        self.status_code = status_code


class BlockedError(ArrestLeadError):
    """Exception raised when an anti-bot challenge blocks a source."""

    pass


class ParseError(ArrestLeadError):
    """Exception raised for single-block normalization errors."""

    pass


class LockContention(ArrestLeadError):
    """Exception raised when another run already holds the county lock."""

    pass


class DispatchError(ArrestLeadError):
    """Exception raised when a notification sink fails."""

    pass


class StoreError(ArrestLeadError):
    """Exception raised for record store errors."""

    pass


class OutputError(ArrestLeadError):
    """Exception raised for output errors."""

    pass
