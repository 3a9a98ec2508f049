"""
Source adapter base classes and HTTP transport for Arrest Lead.
"""

import datetime
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import requests

from arrestlead.config import SourceAdapterConfig
from arrestlead.log import get_logger
from arrestlead.model import FetchError, RawBlock, RecordNotFound

logger = get_logger(__name__)

RETRY_STATUS_CODES = {429, 500, 502, 503, 504}
NOT_FOUND_STATUS_CODES = {404, 410}

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,application/json;q=0.8,*/*;q=0.7",
    "Accept-Language": "en-US,en;q=0.9",
}


class FetchWindow:
    """Date range a fetch should cover, inclusive."""

    def __init__(self, start: datetime.date, end: datetime.date):
        if start > end:
            raise ValueError(f"Window start {start} is after end {end}")
        self.start = start
        self.end = end

    @classmethod
    def lookback(cls, days: int, today: Optional[datetime.date] = None) -> "FetchWindow":
        """Window of the given number of days ending today."""
        end = today or datetime.date.today()
        return cls(end - datetime.timedelta(days=days), end)

    def __repr__(self) -> str:
        return f"FetchWindow({self.start.isoformat()}..{self.end.isoformat()})"


class FetchResult:
    """
    Output of one adapter fetch.
    """

    def __init__(
        self,
        blocks: Optional[List[RawBlock]] = None,
        blocked: bool = False,
        source: str = "",
        message: str = "",
        stats: Optional[Dict[str, int]] = None,
    ):
        self.blocks = blocks or []
        self.blocked = blocked  # Anti-bot challenge with no usable session
        self.source = source  # Transport or endpoint that produced the blocks
        self.message = message
        self.stats = stats or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert fetch result to dictionary."""
        return {
            "blocks": len(self.blocks),
            "blocked": self.blocked,
            "source": self.source,
            "message": self.message,
            "stats": dict(self.stats),
        }

    def __len__(self) -> int:
        return len(self.blocks)


class HostRateLimiter:
    """
    Enforces a minimum delay between requests to the same host.

    Shared by every fetcher in the process so concurrent detail fetches
    still respect the host's limit.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._next_slot: Dict[str, float] = {}

    def wait(self, host: str, min_interval: float) -> None:
        if min_interval <= 0:
            return
        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot.get(host, 0.0))
            self._next_slot[host] = slot + min_interval
        delay = slot - now
        if delay > 0:
            time.sleep(delay)


RATE_LIMITER = HostRateLimiter()


class HttpFetcher:
    """
    requests.Session wrapper with timeouts, capped exponential backoff and
    per-host rate limiting.
    """

    def __init__(
        self,
        cfg: SourceAdapterConfig,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[HostRateLimiter] = None,
    ):
        self.cfg = cfg
        self.session = session or requests.Session()
        self.session.headers.update(DEFAULT_HEADERS)
        self.session.headers["User-Agent"] = cfg.user_agent
        self.rate_limiter = rate_limiter or RATE_LIMITER

    def backoff(self, attempt: int) -> float:
        """Seconds to sleep before retry number ``attempt + 1``."""
        return min(self.cfg.backoff_factor * (2 ** attempt), self.cfg.max_backoff)

    def request(self, method: str, url: str, accept_status: Iterable[int] = (), **kwargs) -> requests.Response:
        """
        Send a request with retry.

        Args:
            method: HTTP method
            url: Target URL
            accept_status: Error statuses returned to the caller as-is
            **kwargs: Passed to requests.Session.request

        Returns:
            Successful response

        Raises:
            RecordNotFound: On 404/410, without retry
            FetchError: On other 4xx, or when retries are exhausted
        """
        kwargs.setdefault("timeout", self.cfg.request_timeout)
        host = urlparse(url).netloc
        max_retries = self.cfg.max_retries
        last_error = None

        for attempt in range(max_retries + 1):
            self.rate_limiter.wait(host, self.cfg.min_request_interval)
            try:
                response = self.session.request(method, url, **kwargs)
            except requests.exceptions.ConnectionError as e:
                last_error = e
                logger.warning(f"Connection error for {url} (attempt {attempt + 1}/{max_retries + 1}): {e}")
            except requests.exceptions.Timeout as e:
                last_error = e
                logger.warning(f"Timeout error for {url} (attempt {attempt + 1}/{max_retries + 1}): {e}")
            except requests.exceptions.RequestException as e:
                raise FetchError(f"Request error for {url}: {e}")
            else:
                status = response.status_code
                if status in accept_status:
                    return response
                if status in NOT_FOUND_STATUS_CODES:
                    logger.debug(f"No record at {url} (HTTP {status})")
                    raise RecordNotFound(url, status)
                if status in RETRY_STATUS_CODES:
                    last_error = f"HTTP {status}"
                    logger.warning(f"HTTP {status} for {url} (attempt {attempt + 1}/{max_retries + 1})")
                elif status >= 400:
                    raise FetchError(f"HTTP {status} for {url}")
                else:
                    return response

            # Don't sleep after the last attempt
            if attempt < max_retries:
                sleep_time = self.backoff(attempt)
                logger.info(f"Retrying in {sleep_time:.1f} seconds...")
                time.sleep(sleep_time)

        raise FetchError(f"Failed to fetch {url} after {max_retries + 1} attempts: {last_error}")

    def get(self, url: str, **kwargs) -> requests.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs) -> requests.Response:
        return self.request("POST", url, **kwargs)

    def get_json(self, url: str, **kwargs) -> Any:
        """
        GET a URL and decode its JSON body.

        Raises:
            FetchError: If the body is not JSON
        """
        response = self.get(url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(f"Invalid JSON from {url}: {e}")

    def close(self) -> None:
        self.session.close()


class SourceAdapter(ABC):
    """
    Fetches recent bookings from one county source.
    """

    kind = "html"

    def __init__(self, cfg: SourceAdapterConfig, fetcher: Optional[HttpFetcher] = None):
        self.cfg = cfg
        self.fetcher = fetcher or HttpFetcher(cfg)

    @property
    def county(self) -> str:
        return self.cfg.name

    def default_window(self) -> FetchWindow:
        return FetchWindow.lookback(self.cfg.lookback_days)

    def make_block(self, content: Any, url: str, detail: Optional[Dict[str, Any]] = None,
                   layout: Optional[str] = None, kind: Optional[str] = None) -> RawBlock:
        """Wrap source content as a RawBlock for this county."""
        block: RawBlock = {
            "county": self.county,
            "kind": kind or self.kind,
            "content": content,
            "url": url,
            "layout": layout or self.cfg.layout,
        }
        if detail is not None:
            block["detail"] = detail
        return block

    @abstractmethod
    def fetch_recent_records(self, window: Optional[FetchWindow] = None) -> FetchResult:
        """
        Fetch raw blocks for bookings in the window.

        Args:
            window: Date range; defaults to the configured lookback

        Returns:
            Fetch result

        Raises:
            FetchError: On unrecoverable transport failure
        """
