"""
Pipeline orchestration for Arrest Lead.

A run for one county moves through Fetching, Normalizing,
Deduplicating, Scoring and Dispatching under a per-county run lock.
Only transport failures after retries and unexpected errors end a run
as Failed; every other failure is counted and the run continues.
"""

import concurrent.futures
import time
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from arrestlead.config import Config, SourceAdapterConfig
from arrestlead.db.store import InMemoryRecordStore, RecordStore
from arrestlead.dedup import DeduplicationStore, natural_key
from arrestlead.lock import LocalRunLock, RunLock, hold
from arrestlead.log import get_logger
from arrestlead.model import (
    ArrestRecord,
    ConfigError,
    FetchError,
    LeadScore,
    LeadTier,
    LockContention,
    RunState,
    UpsertResult,
)
from arrestlead.normalizer import RecordNormalizer
from arrestlead.notify import NotificationSink, build_notification, build_sink
from arrestlead.scoring import LeadScorer
from arrestlead.sources import FetchResult, JsonApiAdapter, SourceAdapter, build_adapter

logger = get_logger(__name__)

COUNT_FIELDS = (
    "fetched",
    "normalized",
    "skipped_malformed",
    "inserted",
    "updated",
    "skipped_duplicate",
    "dispatched",
    "dispatch_failures",
)

UPSERT_COUNTS = {
    UpsertResult.INSERTED: "inserted",
    UpsertResult.UPDATED: "updated",
    UpsertResult.SKIPPED: "skipped_duplicate",
}


class RunSummary:
    """
    Outcome of one county run. Always carries counters, even when the
    run failed or was skipped.
    """

    def __init__(self, county: str):
        self.county = county
        self.state = RunState.IDLE
        self.blocked = False
        self.budget_exceeded = False
        self.error = ""
        self.source = ""
        self.message = ""
        self.counts: Dict[str, int] = {field: 0 for field in COUNT_FIELDS}
        self.tiers: Dict[str, int] = {tier.value: 0 for tier in LeadTier}
        self.elapsed_seconds = 0.0
        # Scored records of this run, for exports; not part of to_dict()
        self.scored: List[Tuple[ArrestRecord, LeadScore]] = []

    @property
    def failed(self) -> bool:
        return self.state == RunState.FAILED

    def fail(self, error: str) -> None:
        self.state = RunState.FAILED
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        """Convert run summary to dictionary."""
        return {
            "county": self.county,
            "state": self.state.value,
            "blocked": self.blocked,
            "budget_exceeded": self.budget_exceeded,
            "error": self.error,
            "source": self.source,
            "message": self.message,
            "counts": dict(self.counts),
            "tiers": dict(self.tiers),
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }

    def __repr__(self) -> str:
        return f"RunSummary({self.county}, {self.state.value}, {self.counts})"


class BudgetExceeded(Exception):
    """Internal signal: the run used up its wall-clock budget."""


class Pipeline:
    """
    Runs county ingestion end to end.
    """

    def __init__(
        self,
        config: Config,
        store: Optional[RecordStore] = None,
        run_lock: Optional[RunLock] = None,
        sink: Optional[NotificationSink] = None,
        adapter_factory: Callable[[SourceAdapterConfig], SourceAdapter] = build_adapter,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Application configuration
            store: Record store (in-memory by default)
            run_lock: Per-county run lock (in-process by default)
            sink: Notification sink (built from the notification config by default)
            adapter_factory: Builds the source adapter for a county
            clock: Monotonic clock in seconds, used for the run budget
        """
        self.config = config
        self.store = store or InMemoryRecordStore(config)
        self.run_lock = run_lock or LocalRunLock()
        self.sink = sink or build_sink(config.notification)
        self.adapter_factory = adapter_factory
        self.clock = clock
        self.normalizer = RecordNormalizer(config)
        self.scorer = LeadScorer(config.scoring)

    def run_once(self, county: str) -> RunSummary:
        """
        Run one ingestion pass for a county.

        Args:
            county: County name

        Returns:
            Run summary; state is Locked when another run holds the county
        """
        return self._run(county, lambda adapter, dedup: adapter.fetch_recent_records())

    def backfill(self, county: str, start: int, end: int) -> RunSummary:
        """
        Probe a booking-number range and ingest what is found.

        Booking numbers already stored are skipped.

        Args:
            county: County name; its source must be a JSON API
            start: First booking number
            end: Last booking number, inclusive

        Returns:
            Run summary
        """

        def fetch(adapter: SourceAdapter, dedup: DeduplicationStore) -> FetchResult:
            if not isinstance(adapter, JsonApiAdapter):
                raise ConfigError(f"{county}: backfill needs a JSON API source, not {adapter.cfg.adapter}")
            prefix = f"{adapter.county}|"
            known = [key[len(prefix):] for key in dedup.keys or () if key.startswith(prefix)]
            return adapter.fetch_booking_range(start, end, skip=known)

        return self._run(county, fetch)

    def run_all(self, counties: Optional[List[str]] = None, max_workers: Optional[int] = None) -> List[RunSummary]:
        """
        Run several counties in parallel, each as an independent pipeline run.

        Args:
            counties: County names (all configured counties by default)
            max_workers: Parallel runs (pipeline config by default)

        Returns:
            Run summaries in the order of counties
        """
        counties = counties or list(self.config.counties)
        workers = max(1, max_workers or self.config.pipeline.max_workers)

        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self.run_once, county) for county in counties]
            return [future.result() for future in futures]

    def _run(
        self,
        county: str,
        fetch: Callable[[SourceAdapter, DeduplicationStore], FetchResult],
    ) -> RunSummary:
        summary = RunSummary(county)
        started = self.clock()
        scope = county.strip().lower()

        try:
            with hold(self.run_lock, scope, self.config.pipeline.lock_timeout):
                self._run_locked(summary, county, fetch, started)
        except LockContention:
            summary.state = RunState.LOCKED
            logger.info(f"Skipping {county}: another run is active")
            return summary

        summary.elapsed_seconds = self.clock() - started
        logger.info(
            f"{summary.county} run {summary.state.value} in {summary.elapsed_seconds:.1f}s: "
            f"{summary.counts} tiers={summary.tiers}"
        )
        return summary

    def _run_locked(
        self,
        summary: RunSummary,
        county: str,
        fetch: Callable[[SourceAdapter, DeduplicationStore], FetchResult],
        started: float,
    ) -> None:
        adapter = None
        try:
            cfg = self.store.load_config(county)
            summary.county = cfg.name
            adapter = self.adapter_factory(cfg)
            dedup = DeduplicationStore(self.store, cfg.name)
            dedup.load()
            self._execute(summary, adapter, dedup, fetch, started)
        except FetchError as e:
            logger.error(f"Run for {county} failed in {summary.state.value}: {e}")
            summary.fail(str(e))
        except Exception as e:
            logger.exception(f"Unexpected error in {county} run during {summary.state.value}: {e}")
            summary.fail(f"{type(e).__name__}: {e}")
        finally:
            if adapter is not None:
                adapter.fetcher.close()

    def _check_budget(self, summary: RunSummary, started: float) -> None:
        if self.clock() - started > self.config.pipeline.max_run_seconds:
            summary.budget_exceeded = True
            raise BudgetExceeded()

    def _execute(
        self,
        summary: RunSummary,
        adapter: SourceAdapter,
        dedup: DeduplicationStore,
        fetch: Callable[[SourceAdapter, DeduplicationStore], FetchResult],
        started: float,
    ) -> None:
        counts = summary.counts

        summary.state = RunState.FETCHING
        result = fetch(adapter, dedup)
        summary.source = result.source
        summary.message = result.message
        counts["fetched"] = len(result.blocks)
        if result.blocked:
            summary.blocked = True
            logger.warning(f"{summary.county} source blocked: {result.message}")

        try:
            summary.state = RunState.NORMALIZING
            records: List[ArrestRecord] = []
            for block in result.blocks:
                self._check_budget(summary, started)
                try:
                    record = self.normalizer.normalize(block, summary.county)
                except Exception as e:
                    logger.warning(f"Error normalizing {summary.county} block from {block.get('url', '')}: {e}")
                    record = None
                if record is None:
                    counts["skipped_malformed"] += 1
                    continue
                records.append(record)
            counts["normalized"] = len(records)

            summary.state = RunState.DEDUPLICATING
            # One entry per booking, holding the merged record as stored
            stored: Dict[str, ArrestRecord] = {}
            changed_keys: Set[str] = set()
            for record in records:
                self._check_budget(summary, started)
                upsert_result, merged = dedup.merge_upsert(record)
                counts[UPSERT_COUNTS[upsert_result]] += 1
                key = natural_key(record)
                stored[key] = merged
                if upsert_result != UpsertResult.SKIPPED:
                    changed_keys.add(key)

            summary.state = RunState.SCORING
            leads: List[Tuple[ArrestRecord, LeadScore]] = []
            for key, record in stored.items():
                lead_score = self.scorer.score(record)
                summary.tiers[lead_score.tier.value] += 1
                summary.scored.append((record, lead_score))
                if key in changed_keys and lead_score.tier.value in self.config.pipeline.notify_tiers:
                    leads.append((record, lead_score))

            summary.state = RunState.DISPATCHING
            self._dispatch(summary, leads, started)
        except BudgetExceeded:
            logger.warning(
                f"{summary.county} run exceeded its {self.config.pipeline.max_run_seconds}s budget "
                f"during {summary.state.value}; stored records are kept"
            )

        summary.state = RunState.DONE

    def _dispatch(self, summary: RunSummary, leads: List[Tuple[ArrestRecord, LeadScore]], started: float) -> None:
        leads = sorted(leads, key=lambda lead: lead[1].score, reverse=True)
        limit = self.config.pipeline.max_notifications_per_run
        if len(leads) > limit:
            logger.info(f"{len(leads)} leads qualify for {summary.county}; notifying the first {limit}")

        for record, lead_score in leads[:limit]:
            self._check_budget(summary, started)
            payload = build_notification(record, lead_score)
            try:
                ok = self.sink.notify(payload)
            except Exception as e:
                logger.warning(f"Notification failed for {payload['key']}: {e}")
                ok = False
            if ok:
                summary.counts["dispatched"] += 1
            else:
                summary.counts["dispatch_failures"] += 1
