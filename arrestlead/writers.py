"""
Output writers for Arrest Lead.
"""

import csv
import json
import os
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from arrestlead.config import OutputConfig
from arrestlead.log import get_logger
from arrestlead.model import ArrestRecord, LeadScore, OutputError

logger = get_logger(__name__)

ScoredRecord = Tuple[ArrestRecord, Optional[LeadScore]]

RECORD_COLUMNS = [
    "county", "booking_number", "full_name", "dob", "age", "sex", "race",
    "booking_date", "booking_time", "status", "facility",
    "street", "city", "state", "zip",
]
CHARGE_COLUMNS = [
    "description", "arresting_agency", "bond_type", "bond_amount", "bond_paid_date",
    "court_date", "court_time", "court_location", "case_number",
]
SCORE_COLUMNS = ["score", "tier", "reasons"]
CSV_COLUMNS = RECORD_COLUMNS + CHARGE_COLUMNS + SCORE_COLUMNS + ["detail_url", "scraped_at"]


def _ensure_dir(path: str) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)


def scored_dict(record: ArrestRecord, score: Optional[LeadScore]) -> Dict[str, Any]:
    """Record as a dictionary, with its lead score under "lead" when scored."""
    data = dict(record)
    if score is not None:
        data["lead"] = score.to_dict()
    return data


def write_outputs(scored_records: Sequence[ScoredRecord], cfg: OutputConfig) -> None:
    """
    Write scored records to all configured output formats.

    Args:
        scored_records: (record, score) pairs
        cfg: Output configuration
    """
    logger.info(f"Writing {len(scored_records)} records to outputs")

    for error in validate_records([record for record, _ in scored_records]):
        logger.warning(f"Validation error: {error}")

    if cfg.json_path:
        write_json(scored_records, cfg.json_path, cfg.pretty_json)

    if cfg.csv_path:
        write_csv(scored_records, cfg.csv_path)

    if cfg.ndjson_path:
        write_ndjson(scored_records, cfg.ndjson_path)


def write_json(scored_records: Sequence[ScoredRecord], path: str, pretty: bool = True) -> None:
    """
    Write scored records to a JSON file.

    Args:
        scored_records: (record, score) pairs
        path: Output file path
        pretty: Whether to pretty-print the JSON
    """
    logger.info(f"Writing JSON to {path}")

    try:
        _ensure_dir(path)
        data = [scored_dict(record, score) for record, score in scored_records]
        with open(path, "w", encoding="utf-8") as f:
            if pretty:
                json.dump(data, f, indent=2, ensure_ascii=False)
            else:
                json.dump(data, f, ensure_ascii=False)

        logger.info(f"Wrote {len(data)} records to {path}")
    except Exception as e:
        logger.error(f"Error writing JSON to {path}: {e}")
        raise OutputError(f"Error writing JSON to {path}: {e}")


def csv_rows(record: ArrestRecord, score: Optional[LeadScore]) -> List[Dict[str, Any]]:
    """
    Flatten a record into CSV rows, one per charge.

    A record without charges still yields one row.
    """
    address = record.get("address") or {}
    base = {column: record.get(column, "") for column in RECORD_COLUMNS if column not in address}
    for column in ("street", "city", "state", "zip"):
        base[column] = address.get(column, "")
    base["detail_url"] = record.get("detail_url", "")
    base["scraped_at"] = record.get("scraped_at", "")
    if score is not None:
        base["score"] = score.score
        base["tier"] = score.tier.value
        base["reasons"] = "; ".join(score.reasons)

    rows = []
    for charge in record.get("charges") or [{}]:
        row = dict(base)
        for column in CHARGE_COLUMNS:
            value = charge.get(column)
            row[column] = "" if value is None else value
        rows.append(row)
    return rows


def write_csv(scored_records: Sequence[ScoredRecord], path: str) -> None:
    """
    Write scored records to a CSV file, one row per charge.

    Args:
        scored_records: (record, score) pairs
        path: Output file path
    """
    logger.info(f"Writing CSV to {path}")

    try:
        _ensure_dir(path)
        row_count = 0
        with open(path, "w", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS, restval="")
            writer.writeheader()
            for record, score in scored_records:
                for row in csv_rows(record, score):
                    writer.writerow(row)
                    row_count += 1

        logger.info(f"Wrote {row_count} rows to {path}")
    except Exception as e:
        logger.error(f"Error writing CSV to {path}: {e}")
        raise OutputError(f"Error writing CSV to {path}: {e}")


def write_ndjson(scored_records: Sequence[ScoredRecord], path: str) -> None:
    """
    Write scored records to an NDJSON file, one record per line.

    Args:
        scored_records: (record, score) pairs
        path: Output file path
    """
    logger.info(f"Writing NDJSON to {path}")

    try:
        _ensure_dir(path)
        with open(path, "w", encoding="utf-8") as f:
            for record, score in scored_records:
                f.write(json.dumps(scored_dict(record, score), ensure_ascii=False) + "\n")

        logger.info(f"Wrote {len(scored_records)} lines to {path}")
    except Exception as e:
        logger.error(f"Error writing NDJSON to {path}: {e}")
        raise OutputError(f"Error writing NDJSON to {path}: {e}")


def validate_records(records: Sequence[ArrestRecord]) -> List[str]:
    """
    Check records before writing outputs.

    Args:
        records: Records to check

    Returns:
        List of validation problems
    """
    errors = []

    for i, record in enumerate(records):
        if not record.get("booking_number") and not record.get("full_name"):
            errors.append(f"Record {i}: Missing booking number and name")

        for field in ("booking_date", "dob"):
            value = record.get(field)
            if value and not re.match(r"^\d{4}-\d{2}-\d{2}$", value):
                errors.append(f"Record {i}: Unparsed {field}: {value}")

        for j, charge in enumerate(record.get("charges", [])):
            amount = charge.get("bond_amount")
            if amount is not None and amount < 0:
                errors.append(f"Record {i}, Charge {j}: Negative bond amount: {amount}")

    return errors
