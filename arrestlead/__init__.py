"""
Arrest Lead - County Arrest Booking Ingestion.

A system for collecting arrest bookings from county sheriff websites,
normalizing them into one record schema and scoring them as bail-bond leads.
"""

__version__ = "0.1.0"

from arrestlead.model import ArrestRecord, Charge, CustodyStatus, LeadScore, LeadTier, RunState, UpsertResult
from arrestlead.config import Config, MongoDBConfig, SourceAdapterConfig, load_config
from arrestlead.normalizer import RecordNormalizer, normalize
from arrestlead.scoring import LeadScorer, score_record
from arrestlead.dedup import DeduplicationStore, natural_key
from arrestlead.pipeline import Pipeline, RunSummary
from arrestlead.writers import write_json, write_csv, write_ndjson, write_outputs

__all__ = [
    "ArrestRecord",
    "Charge",
    "CustodyStatus",
    "LeadScore",
    "LeadTier",
    "RunState",
    "UpsertResult",
    "Config",
    "MongoDBConfig",
    "SourceAdapterConfig",
    "load_config",
    "RecordNormalizer",
    "normalize",
    "LeadScorer",
    "score_record",
    "DeduplicationStore",
    "natural_key",
    "Pipeline",
    "RunSummary",
    "write_json",
    "write_csv",
    "write_ndjson",
    "write_outputs",
]
