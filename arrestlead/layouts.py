"""
Per-county source layouts for Arrest Lead.

A layout tells the normalizer where each field lives in a county's
published markup or JSON payload. Layouts are data, not code: adding a
county that publishes in a known shape only needs a new layout entry.
"""

import re
from typing import Dict, List, Optional

from arrestlead.model import ConfigError

IN_CUSTODY_MARKERS = ["IN CUSTODY", "INCUSTODY", "IN JAIL"]
RELEASED_MARKERS = ["BONDED", "RELEASED", "BOND POSTED"]


class HtmlLayout:
    """
    Regex layout for HTML sources.

    Every field pattern has exactly one capture group. Charge rows are
    matched with ``charge_row``; ``charge_columns`` names each capture
    group of a row ("" skips the group).
    """

    def __init__(
        self,
        fields: Dict[str, List[str]],
        block_split: Optional[str] = None,
        block_pattern: Optional[str] = None,
        charge_row: Optional[str] = None,
        charge_columns: Optional[List[str]] = None,
        first_charge_fields: Optional[Dict[str, List[str]]] = None,
        charge_defaults: Optional[Dict[str, List[str]]] = None,
        in_custody_markers: Optional[List[str]] = None,
        released_markers: Optional[List[str]] = None,
        default_status: Optional[str] = None,
    ):
        self.fields = fields
        self.block_split = block_split  # Regex that separates records on a page
        self.block_pattern = block_pattern  # Regex whose matches are records
        self.charge_row = charge_row
        self.charge_columns = charge_columns or ["description"]
        # Record-wide values that belong to the first charge only
        self.first_charge_fields = first_charge_fields or {}
        # Record-wide values copied onto every charge that lacks them
        self.charge_defaults = charge_defaults or {}
        self.in_custody_markers = in_custody_markers or list(IN_CUSTODY_MARKERS)
        self.released_markers = released_markers or list(RELEASED_MARKERS)
        self.default_status = default_status

    def split(self, markup: str) -> List[str]:
        """
        Split a result page into per-record blocks.

        Args:
            markup: HTML page

        Returns:
            Record blocks in document order; the whole page when the layout
            defines no split
        """
        if self.block_split:
            # Text before the first separator is page chrome
            return [part for part in re.split(self.block_split, markup, flags=re.IGNORECASE)[1:] if part.strip()]
        if self.block_pattern:
            return [m.group(0) for m in re.finditer(self.block_pattern, markup, re.IGNORECASE | re.DOTALL)]
        return [markup]


class JsonLayout:
    """
    Key layout for JSON sources.

    Each field maps to candidate keys tried in order. Booking-level
    fields are looked up in the record payload first, then in the first
    charge (some APIs only publish booking data alongside charges).
    """

    def __init__(
        self,
        fields: Dict[str, List[str]],
        charge_fields: Dict[str, List[str]],
        charge_list_keys: Optional[List[str]] = None,
        in_custody_flag_keys: Optional[List[str]] = None,
        in_custody_markers: Optional[List[str]] = None,
        released_markers: Optional[List[str]] = None,
    ):
        self.fields = fields
        self.charge_fields = charge_fields
        self.charge_list_keys = charge_list_keys or ["charges"]
        self.in_custody_flag_keys = in_custody_flag_keys or []
        self.in_custody_markers = in_custody_markers or list(IN_CUSTODY_MARKERS)
        self.released_markers = released_markers or list(RELEASED_MARKERS)


# Booking search list pages: one <tr> per booking with a booking/?id= link
BOOKING_LIST_LAYOUT = HtmlLayout(
    fields={
        "booking_number": [r"booking/\?id=(\d+)", r"booking_id=(\d+)", r"id=(\d{6,})"],
        "full_name": [r"<td[^>]*>\s*(?:<a[^>]*>)?\s*([^<]+?)\s*(?:</a>)?\s*</td>"],
        "dob": [r"DOB[:\s]*([0-9/]+)"],
        "booking_date": [r"(?:Booked|Booking Date)[:\s]*(\d{2}/\d{2}/\d{4})", r"<td[^>]*>\s*(\d{2}/\d{2}/\d{4})"],
        "booking_time": [r"(\d{1,2}:\d{2}:\d{2}\s*[AP]M)"],
        "facility": [r"((?:JAIL|CORE)[^<]*)"],
        "person_id": [r"person_id=(\d+)"],
    },
    default_status="In Custody",
)

COLLIER_LAYOUT = HtmlLayout(
    block_split=r"<table[^>]*>\s*<tr[^>]*>\s*<td[^>]*>Name</td>",
    fields={
        "full_name": [r"<td[^>]*>([^<]+)</td>\s*<td[^>]*>\d{2}/\d{2}/\d{4}</td>\s*<td[^>]*>[^<]+</td>"],
        "dob": [r"<td[^>]*>[^<]+</td>\s*<td[^>]*>(\d{2}/\d{2}/\d{4})</td>\s*<td[^>]*>[^<]+</td>"],
        "address": [r"<td[^>]*>[^<]+</td>\s*<td[^>]*>\d{2}/\d{2}/\d{4}</td>\s*<td[^>]*>([^<]+)</td>"],
        "person_id": [r"A#[^\d]*(\d{8})"],
        "race": [r"Race</td>\s*<td[^>]*>([^<]+)<"],
        "sex": [r"Sex</td>\s*<td[^>]*>([^<]+)<"],
        "height": [r"Height</td>\s*<td[^>]*>([^<]+)<"],
        "weight": [r"Weight</td>\s*<td[^>]*>([^<]+)<"],
        "hair_color": [r"Hair Color</td>\s*<td[^>]*>([^<]+)<"],
        "eye_color": [r"Eye Color</td>\s*<td[^>]*>([^<]+)<"],
        "booking_date": [r"Booking Date</td>\s*<td[^>]*>(\d{2}/\d{2}/\d{4})<"],
        "booking_number": [r"Booking Number</td>\s*<td[^>]*>(\d+)<"],
        "age": [r"Age at Arrest</td>\s*<td[^>]*>(\d+)<"],
        "status_text": [r"\d{2}/\d{2}/\d{4}\s+(BONDED|RELEASED|IN CUSTODY)"],
    },
    charge_row=(
        r"<tr[^>]*>\s*<td[^>]*>(\d{2}/\d{2}/\d{4})</td>\s*<td[^>]*>(\d+)</td>"
        r"\s*<td[^>]*>([^<]+)</td>"
    ),
    charge_columns=["", "", "description"],
    first_charge_fields={
        "court_date": [r"Court Date</th>\s*</tr>\s*<tr[^>]*>.*?<td[^>]*>(\d{2}/\d{2}/\d{4})<"],
        "case_number": [r"Case Number</td>\s*<td[^>]*>([^<]+)<"],
        "bond_amount": [r"Bond Amount</td>\s*<td[^>]*>([^<]+)<"],
        "bond_type": [r"Bond Type</td>\s*<td[^>]*>([^<]+)<"],
    },
    charge_defaults={
        "arresting_agency": [r"Agency</td>\s*<td[^>]*>([^<]+)<"],
    },
)

# Roster rows linking to /bookings/<number>
CHARLOTTE_LAYOUT = HtmlLayout(
    block_pattern=r"<tr[^>]*>(?:(?!</tr>).)*?/bookings?/(?:\?id=)?\d+(?:(?!</tr>).)*?</tr>",
    fields={
        "booking_number": [r"/bookings?/(?:\?id=)?(\d+)"],
        "full_name": [r"<a[^>]*/bookings?/[^>]*>([^<]+)</a>"],
        "dob": [r"DOB[:\s]*(\d{1,2}/\d{1,2}/\d{4})"],
        "booking_date": [r"(?:Booked|Booking Date)[:\s]*(?:</?[^>]+>\s*)*(\d{1,2}/\d{1,2}/\d{4})", r"<td[^>]*>\s*(\d{1,2}/\d{1,2}/\d{4})"],
        "booking_time": [r"(\d{1,2}:\d{2}(?::\d{2})?\s*[AP]M)"],
        "status_text": [r"(IN CUSTODY|RELEASED|BONDED)"],
        "mugshot_url": [r"<img[^>]*src=\"([^\"]+)\""],
    },
    charge_row=r"<li[^>]*class=\"[^\"]*charge[^\"]*\"[^>]*>(.*?)</li>",
    charge_columns=["description"],
    first_charge_fields={
        "bond_amount": [r"Bond[:\s]*(\$[\d,]+(?:\.\d{2})?)"],
        "bond_type": [r"Bond Type[:\s]*([A-Z ]+)"],
    },
)

LEE_JSON_LAYOUT = JsonLayout(
    fields={
        "booking_number": ["bookingNumber", "booking_number", "id"],
        "person_id": ["personId", "person_id"],
        "full_name": ["fullName", "full_name", "name"],
        "last_name": ["surName", "lastName", "last_name"],
        "first_name": ["givenName", "firstName", "first_name"],
        "middle_name": ["middleName", "middle_name"],
        "suffix": ["suffix", "nameSuffix"],
        "dob": ["birthDate", "dob", "date_of_birth"],
        "age": ["age"],
        "race": ["race"],
        "sex": ["sex", "gender"],
        "height": ["height"],
        "weight": ["weight"],
        "hair_color": ["hair", "hairColor"],
        "eye_color": ["eyes", "eyeColor"],
        "address": ["address"],
        "booking_date": ["bookingDate", "booking_date", "booked_on"],
        "booking_time": ["bookingTime", "booking_time"],
        "status_text": ["inCustodyText", "status", "disposition"],
        "facility": ["facility", "location", "currentFacility"],
        "mugshot_url": ["mugshotUrl", "mugshot_url", "photoUrl"],
    },
    charge_fields={
        "description": ["offenseDescription", "description", "charge"],
        "arresting_agency": ["arrestingAgency", "arrestBy", "agency"],
        "bond_type": ["bondTypeName", "bondType", "bond_type"],
        "bond_amount": ["bondAmount", "bond_amount"],
        "bond_paid_date": ["bondDatePosted", "bondPaidDate"],
        "court_location": ["courtLocation", "court_location"],
        "case_number": ["caseNumber", "case_number"],
        "court_date": ["hearingDate", "courtDate", "court_date"],
        "court_time": ["hearingTime", "courtTime", "court_time"],
    },
    charge_list_keys=["charges"],
    in_custody_flag_keys=["inCustody", "in_custody"],
)

LAYOUTS: Dict[str, object] = {
    "booking_list": BOOKING_LIST_LAYOUT,
    "collier": COLLIER_LAYOUT,
    "charlotte": CHARLOTTE_LAYOUT,
    "lee_json": LEE_JSON_LAYOUT,
}


def get_layout(name: str):
    """
    Look up a layout by name.

    Args:
        name: Layout name

    Returns:
        HtmlLayout or JsonLayout

    Raises:
        ConfigError: If no layout has that name
    """
    try:
        return LAYOUTS[name]
    except KeyError:
        raise ConfigError(f"Unknown layout: {name}")
