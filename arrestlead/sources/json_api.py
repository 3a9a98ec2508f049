"""
Adapter for undocumented JSON booking APIs.
"""

import concurrent.futures
import time
from typing import Any, Dict, Iterable, List, Optional, Set
from urllib.parse import urljoin

from arrestlead.layouts import JsonLayout, get_layout
from arrestlead.log import get_logger
from arrestlead.model import ConfigError, FetchError, RawBlock, RecordNotFound
from arrestlead.sources.base import FetchResult, FetchWindow, HttpFetcher, SourceAdapter

logger = get_logger(__name__)


class JsonApiAdapter(SourceAdapter):
    """
    Tries candidate endpoints until one returns booking JSON, then
    optionally enriches each booking with a detail fetch.
    """

    kind = "json"

    def __init__(
        self,
        cfg,
        fetcher: Optional[HttpFetcher] = None,
        fallback: Optional[SourceAdapter] = None,
    ):
        super().__init__(cfg, fetcher)
        self.fallback = fallback
        layout = get_layout(cfg.layout)
        if not isinstance(layout, JsonLayout):
            raise ConfigError(f"{cfg.name}: layout {cfg.layout} is not a JSON layout")
        self.layout = layout

    def url_for(self, path: str) -> str:
        return urljoin(self.cfg.base_url.rstrip("/") + "/", path.lstrip("/"))

    def booking_number_of(self, item: Dict[str, Any]) -> str:
        for key in self.layout.fields.get("booking_number", []):
            value = item.get(key)
            if value not in (None, ""):
                return str(value).strip()
        return ""

    def extract_items(self, payload: Any) -> Optional[List[Dict[str, Any]]]:
        """
        Pull the booking list out of a payload.

        Args:
            payload: Decoded JSON

        Returns:
            Booking objects, or None when the payload has no recognizable list
        """
        items = payload
        if isinstance(payload, dict):
            items = None
            for key in self.cfg.list_keys:
                if isinstance(payload.get(key), list):
                    items = payload[key]
                    break
        if not isinstance(items, list):
            return None

        bookings = [item for item in items if isinstance(item, dict)]
        if items and not any(self.booking_number_of(item) for item in bookings):
            return None
        return bookings

    def fetch_list(self) -> Optional[FetchResult]:
        """
        Try each candidate endpoint in order.

        Returns:
            Result from the first endpoint with a booking list, or None
        """
        answered_empty = None
        for path in self.cfg.api_paths:
            url = self.url_for(path)
            try:
                payload = self.fetcher.get_json(url)
            except FetchError as e:
                logger.debug(f"Endpoint {url} unusable: {e}")
                continue

            items = self.extract_items(payload)
            if items is None:
                logger.debug(f"Endpoint {url} returned JSON without a booking list")
                continue
            if not items:
                answered_empty = answered_empty or url
                continue

            logger.info(f"Found {len(items)} booking(s) at {url}")
            blocks = self.enrich(items, url)
            return FetchResult(blocks=blocks, source=url)

        if answered_empty:
            return FetchResult(source=answered_empty, message="endpoint returned no bookings")
        return None

    def fetch_detail(self, booking_number: str) -> Optional[Dict[str, Any]]:
        """
        Fetch the per-booking detail payload.

        Args:
            booking_number: Booking number

        Returns:
            Detail payload with a "charges" list, or None when unavailable
        """
        if not self.cfg.detail_path_template:
            return None
        url = self.url_for(self.cfg.detail_path_template.format(booking_number=booking_number))
        payload = self.fetcher.get_json(url)
        if isinstance(payload, list):
            return {"charges": payload}
        if isinstance(payload, dict):
            return payload
        return None

    def _detail_task(self, booking_number: str) -> Optional[Dict[str, Any]]:
        if self.cfg.detail_delay > 0:
            time.sleep(self.cfg.detail_delay)
        try:
            return self.fetch_detail(booking_number)
        except FetchError as e:
            logger.debug(f"Detail fetch failed for {booking_number}, keeping list data: {e}")
            return None

    def enrich(self, items: List[Dict[str, Any]], url: str) -> List[RawBlock]:
        """
        Attach detail payloads to list items.

        Only the first ``max_enrich`` items are enriched; detail failures
        keep the list data.

        Args:
            items: Booking objects from the list endpoint
            url: List endpoint URL

        Returns:
            Raw blocks in list order
        """
        details: Dict[int, Optional[Dict[str, Any]]] = {}
        to_enrich = [
            (i, self.booking_number_of(item))
            for i, item in enumerate(items[: max(self.cfg.max_enrich, 0)])
            if self.booking_number_of(item)
        ]

        if to_enrich and self.cfg.detail_path_template:
            workers = max(1, self.cfg.detail_concurrency)
            with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {
                    executor.submit(self._detail_task, number): i for i, number in to_enrich
                }
                for future in concurrent.futures.as_completed(futures):
                    details[futures[future]] = future.result()
            logger.info(f"Enriched {sum(1 for d in details.values() if d)} of {len(items)} booking(s)")

        return [self.make_block(item, url, detail=details.get(i)) for i, item in enumerate(items)]

    def fetch_recent_records(self, window: Optional[FetchWindow] = None) -> FetchResult:
        logger.info(f"Fetching {self.county} bookings from JSON API")
        result = self.fetch_list()
        if result is not None:
            return result

        if self.fallback is not None:
            logger.warning(f"No JSON endpoint answered for {self.county}; using HTML fallback")
            return self.fallback.fetch_recent_records(window)

        raise FetchError(f"No JSON endpoint answered for {self.county}")

    def fetch_booking(self, booking_number: str) -> Optional[RawBlock]:
        """
        Fetch one booking by number.

        Args:
            booking_number: Booking number

        Returns:
            Raw block, or None when the booking does not exist

        Raises:
            FetchError: On transport failure
        """
        booking_number = str(booking_number)
        try:
            detail = self.fetch_detail(booking_number)
        except RecordNotFound:
            return None

        charges = (detail or {}).get("charges") or []
        content: Dict[str, Any] = {}
        if self.cfg.booking_lookup_template:
            url = self.url_for(self.cfg.booking_lookup_template.format(booking_number=booking_number))
            try:
                payload = self.fetcher.get_json(url)
                items = self.extract_items(payload) or []
                if items:
                    content = items[0]
                elif isinstance(payload, dict) and self.booking_number_of(payload):
                    content = payload
            except RecordNotFound:
                pass
            except FetchError as e:
                # Person details are optional; charges carry the booking data
                logger.debug(f"Booking lookup failed for {booking_number}: {e}")

        if not charges and not content:
            return None

        content = dict(content)
        booking_keys = self.layout.fields.get("booking_number", ["bookingNumber"])
        if not self.booking_number_of(content):
            content[booking_keys[0]] = booking_number
        url = self.url_for(self.cfg.detail_path_template.format(booking_number=booking_number))
        return self.make_block(content, url, detail={"charges": charges})

    def fetch_booking_range(self, start: int, end: int, skip: Optional[Iterable[str]] = None) -> FetchResult:
        """
        Probe a range of booking numbers.

        Missing bookings (404) are expected and counted, not errors.

        Args:
            start: First booking number
            end: Last booking number, inclusive
            skip: Booking numbers already known

        Returns:
            Fetch result with checked/found/missing/skipped/errors stats
        """
        known: Set[str] = set(skip or [])
        stats = {"checked": 0, "found": 0, "missing": 0, "skipped": 0, "errors": 0}
        blocks = []

        for number in range(int(start), int(end) + 1):
            booking_number = str(number)
            if booking_number in known:
                stats["skipped"] += 1
                continue

            stats["checked"] += 1
            try:
                block = self.fetch_booking(booking_number)
            except FetchError as e:
                stats["errors"] += 1
                logger.warning(f"Error probing booking {booking_number}: {e}")
                continue

            if block is None:
                stats["missing"] += 1
            else:
                stats["found"] += 1
                blocks.append(block)

            if stats["checked"] % 50 == 0:
                logger.info(
                    f"Progress: {stats['checked']} checked | Found: {stats['found']} | "
                    f"Missing: {stats['missing']}"
                )

        logger.info(f"Probed {self.county} bookings {start}-{end}: {stats}")
        return FetchResult(blocks=blocks, source="booking_range", stats=stats)
