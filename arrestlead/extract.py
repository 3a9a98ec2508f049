"""
Text extraction helpers for Arrest Lead.

Pure functions that turn raw source markup into clean field values:
whitespace and tag cleanup, regex field extraction, hidden form fields,
names, addresses, dates, times and money.
"""

import datetime
import html
import re
from typing import Dict, List, Optional, Pattern, Sequence, Tuple, Union

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from arrestlead.log import get_logger
from arrestlead.model import Address

logger = get_logger(__name__)

PatternLike = Union[str, Pattern]

NAME_SUFFIXES = {
    "JR", "SR", "II", "III", "IV", "V", "VI", "VII", "VIII", "IX", "X",
    "2ND", "3RD", "4TH", "5TH",
}

STREET_TYPES = {
    "ST", "STREET", "AVE", "AVENUE", "RD", "ROAD", "DR", "DRIVE",
    "LN", "LANE", "WAY", "BLVD", "BOULEVARD", "CT", "COURT",
    "CIR", "CIRCLE", "TER", "TERRACE", "PKWY", "PARKWAY",
    "HWY", "HIGHWAY", "PL", "PLACE", "TRL", "TRAIL", "LOOP",
}

ZIP_RE = r"(\d{5}(?:-\d{4})?)"
FULL_ADDRESS_RE = re.compile(r"^(.+?),\s*([^,]+?),\s*([A-Za-z]{2})\s+" + ZIP_RE + r"$")
CITY_STATE_ZIP_RE = re.compile(r"^([^,]+?),\s*([A-Za-z]{2})\s+" + ZIP_RE + r"$")
NO_COMMA_ADDRESS_RE = re.compile(r"^(.+?)\s+([A-Z]{2})\s+" + ZIP_RE + r"$")
STREET_ZIP_RE = re.compile(r"^(.+?)\s+" + ZIP_RE + r"$")
ZIP_ONLY_RE = re.compile(r"^" + ZIP_RE + r"$")

SLASH_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})\b")
ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T\s].*)?$")
TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([AaPp][Mm])?$")


def clean_text(text: Optional[str]) -> str:
    """
    Collapse internal whitespace and trim.

    Args:
        text: Input text, may be None

    Returns:
        Cleaned text, "" for None
    """
    if text is None:
        return ""
    return re.sub(r"\s+", " ", str(text)).strip()


def strip_tags(markup: Optional[str]) -> str:
    """
    Remove markup tags, decode entities and collapse whitespace.

    Args:
        markup: HTML fragment

    Returns:
        Plain text
    """
    if not markup:
        return ""
    if "<" not in markup:
        return clean_text(html.unescape(markup))
    soup = BeautifulSoup(markup, "html.parser")
    return clean_text(soup.get_text(" "))


def _compile(pattern: PatternLike) -> Optional[Pattern]:
    if not isinstance(pattern, str):
        return pattern
    try:
        return re.compile(pattern, re.IGNORECASE | re.DOTALL)
    except re.error as e:
        logger.warning(f"Invalid extraction pattern {pattern!r}: {e}")
        return None


def extract_field(block: Optional[str], patterns: Union[PatternLike, Sequence[PatternLike]]) -> str:
    """
    Extract the first non-empty capture from a block.

    Patterns are tried in order; each must have one capture group. The
    captured text has tags stripped and whitespace collapsed.

    Args:
        block: Markup or text to search
        patterns: One pattern or an ordered list of alternates

    Returns:
        Cleaned capture, or "" when nothing matches
    """
    if not block:
        return ""
    if isinstance(patterns, (str, re.Pattern)):
        patterns = [patterns]

    for pattern in patterns:
        regex = _compile(pattern)
        if regex is None:
            continue
        match = regex.search(block)
        if not match or not match.groups():
            continue
        value = strip_tags(match.group(1))
        if value:
            return value
    return ""


def extract_all(block: Optional[str], pattern: PatternLike) -> List[Tuple[str, ...]]:
    """
    Extract every match of a pattern as a tuple of cleaned captures.

    Args:
        block: Markup or text to search
        pattern: Pattern with one or more capture groups

    Returns:
        Capture tuples in document order
    """
    if not block:
        return []
    regex = _compile(pattern)
    if regex is None:
        return []

    rows = []
    for match in regex.finditer(block):
        groups = match.groups() or (match.group(0),)
        rows.append(tuple(strip_tags(g) for g in groups))
    return rows


def extract_hidden_field(markup: Optional[str], name: str) -> Optional[str]:
    """
    Get the value of a hidden form input.

    Args:
        markup: HTML page
        name: Input name or id

    Returns:
        Field value ("" when the value attribute is empty), None when absent
    """
    if not markup:
        return None
    soup = BeautifulSoup(markup, "html.parser")
    field = soup.find("input", attrs={"name": name}) or soup.find("input", attrs={"id": name})
    if field is None:
        return None
    return field.get("value", "")


def _is_suffix(token: str) -> bool:
    return token.upper().replace(".", "") in NAME_SUFFIXES


def build_full_name(first: str, middle: str, last: str, suffix: str) -> str:
    """Build a name in "Last, First Middle Suffix" form."""
    if not first and not last:
        return ""
    if not last or not first:
        return " ".join(p for p in (last or first, suffix) if p)

    name = f"{last}, {first}"
    if middle:
        name += f" {middle}"
    if suffix:
        name += f" {suffix}"
    return name


def parse_name(name: Optional[str]) -> Dict[str, str]:
    """
    Split a person name into its parts.

    Handles "Last, First Middle Suffix" and "First Middle Last Suffix".
    Suffixes are matched case-insensitively with periods ignored and
    are kept as written.

    Args:
        name: Name as published

    Returns:
        Dictionary with first_name, middle_name, last_name, suffix, full_name
    """
    text = clean_text(name)
    parts = {"first_name": "", "middle_name": "", "last_name": "", "suffix": "", "full_name": ""}
    if not text:
        return parts

    suffix = ""
    if "," in text:
        pieces = [p.strip() for p in text.split(",")]
        last_tokens = pieces[0].split()
        rest = " ".join(pieces[1:]).split()

        if rest and _is_suffix(rest[-1]):
            suffix = rest.pop()
        elif len(last_tokens) > 1 and _is_suffix(last_tokens[-1]):
            # "SMITH JR, JOHN"
            suffix = last_tokens.pop()

        last = " ".join(last_tokens)
        first = rest[0] if rest else ""
        middle = " ".join(rest[1:])
    else:
        tokens = text.split()
        if len(tokens) > 1 and _is_suffix(tokens[-1]):
            suffix = tokens.pop()

        if len(tokens) == 1:
            first, middle, last = "", "", tokens[0]
        elif len(tokens) == 2:
            first, middle, last = tokens[0], "", tokens[1]
        else:
            first, middle, last = tokens[0], " ".join(tokens[1:-1]), tokens[-1]

    parts.update(
        first_name=first,
        middle_name=middle,
        last_name=last,
        suffix=suffix,
        full_name=build_full_name(first, middle, last, suffix),
    )
    return parts


def _split_street_city(head: str) -> Tuple[str, str]:
    tokens = head.split()
    # Right-most street type that still leaves a city token
    for i in range(len(tokens) - 2, -1, -1):
        if tokens[i].upper().strip(".,") in STREET_TYPES:
            return " ".join(tokens[: i + 1]).rstrip(","), " ".join(tokens[i + 1:]).strip(",")
    if "," in head:
        street, _, city = head.rpartition(",")
        return street.strip(), city.strip()
    return tokens[0], " ".join(tokens[1:])


def parse_address(text: Optional[str], home_state: str = "FL") -> Address:
    """
    Parse a free-form residence address.

    Formats are tried in order: "street, city, ST zip", "city, ST zip",
    "street city ST zip", "street zip", "zip"; anything else becomes
    the street.

    Args:
        text: Address as published
        home_state: State assumed when only a zip is given

    Returns:
        Address with street, city, state and zip
    """
    addr = clean_text(text)
    if not addr:
        return {"street": "", "city": "", "state": "", "zip": ""}

    match = FULL_ADDRESS_RE.match(addr)
    if match:
        return {
            "street": match.group(1).strip(),
            "city": match.group(2).strip(),
            "state": match.group(3).upper(),
            "zip": match.group(4),
        }

    match = CITY_STATE_ZIP_RE.match(addr)
    if match:
        return {
            "street": "",
            "city": match.group(1).strip(),
            "state": match.group(2).upper(),
            "zip": match.group(3),
        }

    match = NO_COMMA_ADDRESS_RE.match(addr)
    if match and len(match.group(1).split()) > 1 and match.group(2) not in STREET_TYPES:
        street, city = _split_street_city(match.group(1))
        return {"street": street, "city": city, "state": match.group(2), "zip": match.group(3)}

    match = STREET_ZIP_RE.match(addr)
    if match:
        return {"street": match.group(1).strip(), "city": "", "state": home_state, "zip": match.group(2)}

    match = ZIP_ONLY_RE.match(addr)
    if match:
        return {"street": "", "city": "", "state": home_state, "zip": match.group(1)}

    return {"street": addr, "city": "", "state": "", "zip": ""}


def normalize_date(text: Optional[str]) -> str:
    """
    Normalize a date to YYYY-MM-DD.

    Args:
        text: Date as published (MM/DD/YYYY, ISO, or free-form)

    Returns:
        ISO date, the input unchanged when unparseable, "" when blank
    """
    value = clean_text(text)
    if not value:
        return ""

    try:
        match = SLASH_DATE_RE.match(value)
        if match:
            month, day, year = (int(g) for g in match.groups())
            return datetime.date(year, month, day).isoformat()

        match = ISO_DATE_RE.match(value)
        if match:
            year, month, day = (int(g) for g in match.groups())
            return datetime.date(year, month, day).isoformat()
    except ValueError:
        return value

    # Free-form dates need a year or a month name to avoid guessing
    if not re.search(r"\d{4}|[A-Za-z]{3}", value):
        return value
    try:
        return date_parser.parse(value).date().isoformat()
    except (ValueError, OverflowError):
        return value


def normalize_time(text: Optional[str]) -> str:
    """
    Normalize a clock time to 24-hour HH:MM.

    Args:
        text: Time such as "3:05:00 PM" or "15:05"

    Returns:
        24-hour time, the input unchanged when unparseable
    """
    value = clean_text(text)
    match = TIME_RE.match(value)
    if not match:
        return value

    hour, minute = int(match.group(1)), int(match.group(2))
    meridiem = (match.group(4) or "").upper()
    if meridiem == "PM" and hour < 12:
        hour += 12
    elif meridiem == "AM" and hour == 12:
        hour = 0
    if hour > 23 or minute > 59:
        return value
    return f"{hour:02d}:{minute:02d}"


def parse_money(text: Optional[Union[str, int, float]]) -> Optional[float]:
    """
    Parse a dollar amount.

    Args:
        text: Amount such as "$1,500.00"

    Returns:
        Amount as float, None when blank, unparseable or negative
    """
    if text is None:
        return None
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        amount = float(text)
    else:
        value = re.sub(r"[$,\s]", "", str(text))
        if not value:
            return None
        try:
            amount = float(value)
        except ValueError:
            return None
    if amount < 0 or amount != amount:
        return None
    return amount


def compute_age(dob: Optional[str], on_date: Optional[Union[str, datetime.date]]) -> Optional[int]:
    """
    Compute age in whole years.

    Args:
        dob: Birth date (YYYY-MM-DD)
        on_date: Reference date (YYYY-MM-DD or date)

    Returns:
        Age, or None when either date is missing or unparseable
    """
    if not dob or not on_date:
        return None
    try:
        birth = datetime.date.fromisoformat(str(dob)[:10])
        if isinstance(on_date, datetime.date):
            ref = on_date
        else:
            ref = datetime.date.fromisoformat(str(on_date)[:10])
    except ValueError:
        return None

    age = ref.year - birth.year - ((ref.month, ref.day) < (birth.month, birth.day))
    if age < 0:
        return None
    return age
