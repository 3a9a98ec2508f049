"""
Pytest configuration and fixtures.
"""

import copy
import os
import tempfile
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

import pytest

from arrestlead.config import Config, SourceAdapterConfig, default_counties
from arrestlead.model import ArrestRecord, RawBlock
from arrestlead.normalizer import RecordNormalizer
from arrestlead.sources.base import HttpFetcher

FIXED_NOW = "2025-10-27T12:00:00Z"


def fast_counties() -> Dict[str, SourceAdapterConfig]:
    """Built-in counties without request delays or backoff sleeps."""
    return {
        name: cfg.model_copy(update={"min_request_interval": 0, "backoff_factor": 0, "detail_delay": 0})
        for name, cfg in default_counties().items()
    }


def make_response(status_code: int = 200, text: str = "", json_data: Any = None) -> MagicMock:
    """Build a mock requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = json_data
    return response


def make_fetcher(cfg: SourceAdapterConfig, session: Optional[MagicMock] = None) -> HttpFetcher:
    """Build an HttpFetcher over a mock session with no rate limiting."""
    return HttpFetcher(cfg, session=session or MagicMock(), rate_limiter=MagicMock())


@pytest.fixture
def sample_config() -> Config:
    """Return a configuration with the built-in counties and no delays."""
    return Config(counties=fast_counties())


@pytest.fixture
def lee_cfg(sample_config) -> SourceAdapterConfig:
    return sample_config.county("Lee")


@pytest.fixture
def collier_cfg(sample_config) -> SourceAdapterConfig:
    return sample_config.county("Collier")


@pytest.fixture
def charlotte_cfg(sample_config) -> SourceAdapterConfig:
    return sample_config.county("Charlotte")


@pytest.fixture
def lee_booking() -> Dict[str, Any]:
    """Return a Lee booking as published by the list endpoint."""
    return {
        "bookingNumber": "12345",
        "personId": "9001",
        "surName": "SMITH",
        "givenName": "JOHN",
        "middleName": "MICHAEL",
        "birthDate": "1990-05-01",
        "race": "W",
        "sex": "M",
        "bookingDate": "2025-10-27T08:30:00",
        "inCustody": True,
        "address": "123 Main St Fort Myers FL 33901",
    }


@pytest.fixture
def lee_detail() -> Dict[str, Any]:
    """Return the charges detail payload for the Lee booking."""
    return {
        "charges": [
            {
                "offenseDescription": "DUI",
                "arrestingAgency": "LCSO",
                "bondTypeName": "Surety",
                "bondAmount": 2000,
                "courtLocation": "Courtroom 4A",
                "caseNumber": "25-CF-000123",
                "hearingDate": "2025-11-03T09:00:00",
            }
        ]
    }


@pytest.fixture
def lee_block(lee_booking, lee_detail) -> RawBlock:
    return {
        "county": "Lee",
        "kind": "json",
        "content": copy.deepcopy(lee_booking),
        "detail": copy.deepcopy(lee_detail),
        "url": "https://www.sheriffleefl.org/public-api/bookings",
        "layout": "lee_json",
    }


@pytest.fixture
def sample_record() -> ArrestRecord:
    """Return a normalized, complete, in-custody record."""
    return {
        "county": "Lee",
        "booking_number": "12345",
        "person_id": "9001",
        "full_name": "SMITH, JOHN MICHAEL",
        "first_name": "JOHN",
        "middle_name": "MICHAEL",
        "last_name": "SMITH",
        "suffix": "",
        "dob": "1990-05-01",
        "age": 35,
        "sex": "M",
        "race": "W",
        "height": "",
        "weight": "",
        "hair_color": "",
        "eye_color": "",
        "address": {"street": "123 Main St", "city": "Fort Myers", "state": "FL", "zip": "33901"},
        "booking_date": "2025-10-27",
        "booking_time": "08:30",
        "status": "InCustody",
        "status_text": "",
        "facility": "",
        "charges": [
            {
                "description": "DUI",
                "arresting_agency": "LCSO",
                "bond_type": "Surety",
                "bond_amount": 2000.0,
                "court_location": "Courtroom 4A",
                "case_number": "25-CF-000123",
                "court_date": "2025-11-03",
                "court_time": "09:00",
            }
        ],
        "detail_url": "https://www.sheriffleefl.org/booking/?id=12345",
        "mugshot_url": "",
        "scraped_at": FIXED_NOW,
    }


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield tmp_dir


@pytest.fixture
def temp_file():
    """Create a temporary file."""
    with tempfile.NamedTemporaryFile(delete=False) as tmp:
        tmp_path = tmp.name

    yield tmp_path

    # Clean up
    if os.path.exists(tmp_path):
        os.unlink(tmp_path)


@pytest.fixture
def response_factory():
    """Return the mock response builder."""
    return make_response


@pytest.fixture
def fetcher_factory():
    """Return the mock-session fetcher builder."""
    return make_fetcher


@pytest.fixture
def normalizer(sample_config) -> RecordNormalizer:
    """Return a normalizer with a fixed scrape timestamp."""
    return RecordNormalizer(sample_config, clock=lambda: FIXED_NOW)
