"""
Record normalization for Arrest Lead.

Turns one RawBlock into one canonical ArrestRecord using the county's
layout. A block that yields neither a booking number nor a name and
booking date is malformed and produces None.
"""

import datetime
import re
from typing import Any, Callable, Dict, List, Optional

from arrestlead.config import Config, SourceAdapterConfig
from arrestlead.extract import (
    build_full_name,
    clean_text,
    compute_age,
    extract_all,
    extract_field,
    normalize_date,
    normalize_time,
    parse_address,
    parse_money,
    parse_name,
    strip_tags,
)
from arrestlead.layouts import HtmlLayout, JsonLayout, get_layout
from arrestlead.log import get_logger
from arrestlead.model import Address, ArrestRecord, Charge, CustodyStatus, ParseError, RawBlock

logger = get_logger(__name__)

CHARGE_TEXT_FIELDS = (
    "description",
    "arresting_agency",
    "bond_type",
    "bond_paid_date",
    "court_location",
    "case_number",
)

TIME_IN_TEXT_RE = re.compile(r"(\d{1,2}:\d{2}(?::\d{2})?)(?:\.\d+)?\s*([AaPp][Mm])?")


def utc_now() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def infer_status(texts: List[str], in_custody_markers: List[str], released_markers: List[str]) -> CustodyStatus:
    """
    Infer custody status from free text.

    In-custody markers win over released markers anywhere in the texts,
    so a block that was bonded and later re-booked reads as held.

    Args:
        texts: Candidate texts from one block
        in_custody_markers: Markers meaning the person is held
        released_markers: Markers meaning the person is out

    Returns:
        Custody status
    """
    uppers = [text.upper() for text in texts if text]
    if any(marker in upper for upper in uppers for marker in in_custody_markers):
        return CustodyStatus.IN_CUSTODY
    if any(marker in upper for upper in uppers for marker in released_markers):
        return CustodyStatus.RELEASED
    return CustodyStatus.UNKNOWN


def _first_value(sources: List[Dict[str, Any]], keys: List[str]) -> Any:
    for source in sources:
        if not isinstance(source, dict):
            continue
        for key in keys:
            value = source.get(key)
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            return value
    return None


def _time_part(raw: Any) -> str:
    # "10/27/2025 08:30 AM" or "2025-10-27T08:30:00"
    if raw is None:
        return ""
    match = TIME_IN_TEXT_RE.search(str(raw))
    if not match:
        return ""
    return normalize_time(f"{match.group(1)} {match.group(2) or ''}")


def _finish_charge(raw: Dict[str, Any]) -> Charge:
    charge: Charge = {}
    for field in CHARGE_TEXT_FIELDS:
        if raw.get(field) not in (None, ""):
            charge[field] = clean_text(str(raw[field]))
    if "bond_amount" in raw:
        charge["bond_amount"] = parse_money(raw.get("bond_amount"))
    if raw.get("court_date"):
        charge["court_date"] = normalize_date(str(raw["court_date"]))
        if not raw.get("court_time"):
            derived = _time_part(raw["court_date"])
            if derived:
                charge["court_time"] = derived
    if raw.get("court_time"):
        charge["court_time"] = normalize_time(str(raw["court_time"]))
    return charge


class RecordNormalizer:
    """
    Normalizes raw source blocks into ArrestRecords.
    """

    def __init__(self, config: Config, clock: Callable[[], str] = utc_now):
        """
        Initialize the normalizer.

        Args:
            config: Application configuration (county layouts and home states)
            clock: Returns the scrape timestamp stamped on each record
        """
        self.config = config
        self.clock = clock

    def normalize(self, block: RawBlock, county: str) -> Optional[ArrestRecord]:
        """
        Normalize one raw block.

        Args:
            block: Raw block from a source adapter
            county: County the block came from

        Returns:
            Normalized record, or None when the block is malformed
        """
        try:
            source_cfg = self.config.county(county)
            layout = get_layout(block.get("layout") or source_cfg.layout)
            if isinstance(layout, JsonLayout):
                record = self._normalize_json(block, layout, source_cfg)
            else:
                record = self._normalize_html(block, layout, source_cfg)
        except ParseError as e:
            logger.debug(f"Skipping malformed {county} block from {block.get('url', '')}: {e}")
            return None
        return record

    def _normalize_html(self, block: RawBlock, layout: HtmlLayout, cfg: SourceAdapterConfig) -> ArrestRecord:
        content = block.get("content")
        if not isinstance(content, str):
            raise ParseError("HTML block content is not markup")

        fields = {name: extract_field(content, patterns) for name, patterns in layout.fields.items()}

        charges: List[Dict[str, Any]] = []
        if layout.charge_row:
            for row in extract_all(content, layout.charge_row):
                charge = {
                    column: value
                    for column, value in zip(layout.charge_columns, row)
                    if column and value
                }
                if charge:
                    charges.append(charge)

        if charges:
            for name, patterns in layout.first_charge_fields.items():
                value = extract_field(content, patterns)
                if value and not charges[0].get(name):
                    charges[0][name] = value
            for name, patterns in layout.charge_defaults.items():
                value = extract_field(content, patterns)
                if value:
                    for charge in charges:
                        charge.setdefault(name, value)

        status = infer_status(
            [fields.get("status_text", ""), strip_tags(content)], layout.in_custody_markers, layout.released_markers
        )
        if status == CustodyStatus.UNKNOWN and layout.default_status:
            status = infer_status([layout.default_status], layout.in_custody_markers, layout.released_markers)
        status_text = fields.get("status_text") or layout.default_status or ""

        return self._build(fields, charges, status, status_text, block, cfg)

    def _normalize_json(self, block: RawBlock, layout: JsonLayout, cfg: SourceAdapterConfig) -> ArrestRecord:
        content = block.get("content")
        if not isinstance(content, dict):
            raise ParseError("JSON block content is not an object")
        detail = block.get("detail") or {}

        raw_charges = _first_value([detail, content], layout.charge_list_keys) or []
        if not isinstance(raw_charges, list):
            raw_charges = []
        raw_charges = [c for c in raw_charges if isinstance(c, dict)]

        sources = [content, detail.get("booking") if isinstance(detail, dict) else None]
        if raw_charges:
            sources.append(raw_charges[0])

        fields: Dict[str, Any] = {}
        for name, keys in layout.fields.items():
            value = _first_value(sources, keys)
            if value is not None:
                fields[name] = value

        charges = []
        for raw in raw_charges:
            charge = {}
            for name, keys in layout.charge_fields.items():
                value = _first_value([raw], keys)
                if value is not None:
                    charge[name] = value
            if charge:
                charges.append(charge)

        flag = _first_value(sources, layout.in_custody_flag_keys)
        status_text = clean_text(str(fields.get("status_text") or ""))
        if isinstance(flag, bool):
            status = CustodyStatus.IN_CUSTODY if flag else CustodyStatus.RELEASED
        else:
            status = infer_status([status_text], layout.in_custody_markers, layout.released_markers)

        return self._build(fields, charges, status, status_text, block, cfg)

    def _build(
        self,
        fields: Dict[str, Any],
        raw_charges: List[Dict[str, Any]],
        status: CustodyStatus,
        status_text: str,
        block: RawBlock,
        cfg: SourceAdapterConfig,
    ) -> ArrestRecord:
        def text(name: str) -> str:
            value = fields.get(name)
            return clean_text(str(value)) if value is not None else ""

        booking_number = text("booking_number")

        # Separately published name parts take precedence over a combined name
        if text("last_name"):
            first, middle, last, suffix = text("first_name"), text("middle_name"), text("last_name"), text("suffix")
            name = {
                "first_name": first,
                "middle_name": middle,
                "last_name": last,
                "suffix": suffix,
                "full_name": build_full_name(first, middle, last, suffix),
            }
        else:
            name = parse_name(text("full_name"))

        raw_booking_date = fields.get("booking_date")
        booking_date = normalize_date(text("booking_date"))
        booking_time = normalize_time(text("booking_time")) or _time_part(raw_booking_date) or None

        if not booking_number and not (name["full_name"] and booking_date):
            raise ParseError("no booking number and no name with booking date")

        dob = normalize_date(text("dob")) or None
        age_text = text("age")
        age = int(age_text) if age_text.isdigit() else compute_age(dob, booking_date)

        raw_address = fields.get("address")
        if isinstance(raw_address, dict):
            address: Address = {
                "street": clean_text(raw_address.get("street") or raw_address.get("line1")),
                "city": clean_text(raw_address.get("city")),
                "state": clean_text(raw_address.get("state")).upper(),
                "zip": clean_text(str(raw_address.get("zip") or raw_address.get("postalCode") or "")),
            }
        else:
            address = parse_address(text("address"), home_state=cfg.home_state)

        detail_url = ""
        if cfg.detail_url_template and booking_number:
            detail_url = cfg.detail_url_template.format(booking_number=booking_number)
        elif block.get("kind") == "html":
            detail_url = block.get("url", "")

        record: ArrestRecord = {
            "county": cfg.name,
            "booking_number": booking_number,
            "person_id": text("person_id"),
            "full_name": name["full_name"],
            "first_name": name["first_name"],
            "middle_name": name["middle_name"],
            "last_name": name["last_name"],
            "suffix": name["suffix"],
            "dob": dob,
            "age": age,
            "sex": text("sex"),
            "race": text("race"),
            "height": text("height"),
            "weight": text("weight"),
            "hair_color": text("hair_color"),
            "eye_color": text("eye_color"),
            "address": address,
            "booking_date": booking_date,
            "booking_time": booking_time,
            "status": status.value,
            "status_text": status_text,
            "facility": text("facility"),
            "charges": [_finish_charge(c) for c in raw_charges],
            "detail_url": detail_url,
            "mugshot_url": text("mugshot_url"),
            "scraped_at": self.clock(),
        }
        return record


def normalize(block: RawBlock, county: str, config: Optional[Config] = None) -> Optional[ArrestRecord]:
    """
    Normalize one raw block with a default normalizer.

    Args:
        block: Raw block from a source adapter
        county: County the block came from
        config: Application configuration (defaults to built-in counties)

    Returns:
        Normalized record, or None when the block is malformed
    """
    return RecordNormalizer(config or Config()).normalize(block, county)
