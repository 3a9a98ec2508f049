"""
Command-line interface for Arrest Lead.
"""

import argparse
import json
import sys
from typing import List, Optional, Tuple

from arrestlead.config import Config, OutputConfig, load_config
from arrestlead.db.mongo import MongoRecordStore, MongoRunLock, setup_indexes
from arrestlead.db.store import InMemoryRecordStore, RecordStore
from arrestlead.lock import LocalRunLock, RunLock
from arrestlead.log import configure_logging, get_logger
from arrestlead.model import ArrestLeadError, ArrestRecord
from arrestlead.pipeline import Pipeline, RunSummary
from arrestlead.scoring import LeadScorer
from arrestlead.writers import write_outputs

logger = get_logger(__name__)


def build_backends(config: Config) -> Tuple[RecordStore, RunLock]:
    """
    Choose the record store and run lock for a configuration.

    Args:
        config: Application configuration

    Returns:
        MongoDB store and lease lock when MongoDB is enabled, in-memory ones otherwise
    """
    if config.mongodb and config.mongodb.enabled:
        return MongoRecordStore(config.mongodb, config), MongoRunLock(config.mongodb)

    logger.info("MongoDB disabled; records are kept in memory for this run only")
    return InMemoryRecordStore(config), LocalRunLock()


def output_config(args: argparse.Namespace, config: Config) -> OutputConfig:
    """Output paths from the command line, falling back to the configuration."""
    return OutputConfig(
        json_path=args.json or config.output.json_path,
        csv_path=args.csv or config.output.csv_path,
        ndjson_path=args.ndjson or config.output.ndjson_path,
        pretty_json=config.output.pretty_json,
    )


def report(summaries: List[RunSummary], args: argparse.Namespace, config: Config) -> int:
    """
    Print run summaries and write exports.

    Returns:
        Exit code: 1 when any run failed
    """
    for summary in summaries:
        print(json.dumps(summary.to_dict(), indent=2))

    scored = [item for summary in summaries for item in summary.scored]
    outputs = output_config(args, config)
    if scored and (outputs.json_path or outputs.csv_path or outputs.ndjson_path):
        write_outputs(scored, outputs)

    failed = [summary.county for summary in summaries if summary.failed]
    if failed:
        logger.error(f"Failed runs: {', '.join(failed)}")
        return 1
    return 0


def load_records(path: str) -> List[ArrestRecord]:
    """
    Load records from a JSON file (a list of records or {"records": [...]}).

    Args:
        path: JSON file path

    Returns:
        Records found in the file
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    records = data.get("records", []) if isinstance(data, dict) else data
    if not isinstance(records, list):
        raise ArrestLeadError(f"No records found in {path}")
    return records


def process_command(args: argparse.Namespace) -> int:
    """
    Process command-line arguments.

    Args:
        args: Command-line arguments

    Returns:
        Exit code
    """
    config = load_config(args.config)
    configure_logging(config, args.log_level)

    if args.command == "score":
        scorer = LeadScorer(config.scoring)
        results = []
        for record, lead_score in scorer.score_many(load_records(args.file)):
            results.append({
                "county": record.get("county", ""),
                "booking_number": record.get("booking_number", ""),
                "full_name": record.get("full_name", ""),
                **lead_score.to_dict(),
            })
        print(json.dumps(results, indent=2))
        return 0

    if args.command == "init-db":
        if not (config.mongodb and config.mongodb.enabled):
            logger.error("MongoDB is not enabled in the configuration")
            return 1
        setup_indexes(config.mongodb)
        return 0

    store, run_lock = build_backends(config)
    pipeline = Pipeline(config, store=store, run_lock=run_lock)

    if args.command == "backfill":
        if args.start > args.end:
            logger.error(f"Start {args.start} is after end {args.end}")
            return 1
        summaries = [pipeline.backfill(args.county, args.start, args.end)]
    else:
        counties = args.county or list(config.counties)
        for county in counties:
            config.county(county)
        summaries = pipeline.run_all(counties, args.workers)

    return report(summaries, args, config)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(description="Arrest Lead")
    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], help="Logging level")
    parser.add_argument("--json", help="JSON output file")
    parser.add_argument("--csv", help="CSV output file")
    parser.add_argument("--ndjson", help="NDJSON output file")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Run command
    run_parser = subparsers.add_parser("run", help="Fetch, score and notify new bookings")
    run_parser.add_argument("--county", action="append", help="County to run (repeatable; default all)")
    run_parser.add_argument("--workers", type=int, help="Counties to run in parallel")

    # Backfill command
    backfill_parser = subparsers.add_parser("backfill", help="Probe a range of booking numbers")
    backfill_parser.add_argument("--county", default="Lee", help="County with a JSON booking API")
    backfill_parser.add_argument("--start", type=int, required=True, help="First booking number")
    backfill_parser.add_argument("--end", type=int, required=True, help="Last booking number")

    # Score command
    score_parser = subparsers.add_parser("score", help="Score records from a JSON file")
    score_parser.add_argument("file", help="JSON file of arrest records")

    # Init-db command
    subparsers.add_parser("init-db", help="Create MongoDB indexes and validators")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "run"
        args.county = None
        args.workers = None

    try:
        return process_command(args)
    except ArrestLeadError as e:
        logger.error(f"Error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
