"""
Adapter for sources behind an anti-bot challenge.

A direct fetch is tried first. When a challenge page comes back, the
request is repeated with a session cookie provisioned outside this
system. With no usable session the fetch reports ``blocked`` instead
of failing.
"""

from typing import Optional

from arrestlead.layouts import HtmlLayout, get_layout
from arrestlead.log import get_logger
from arrestlead.model import BlockedError, ConfigError, FetchError
from arrestlead.sources.base import FetchResult, FetchWindow, SourceAdapter

logger = get_logger(__name__)

# Challenge pages are commonly served with these statuses
CHALLENGE_STATUS_CODES = (403, 503)


class SessionGatedAdapter(SourceAdapter):
    """
    GET with challenge detection and session-cookie fallback.
    """

    def is_challenge(self, markup: str) -> bool:
        """Return True when a page is an anti-bot challenge."""
        return any(marker in markup for marker in self.cfg.challenge_markers)

    def fetch_page(self, url: str, cookie: Optional[str] = None) -> str:
        """
        Fetch a page, optionally with a session cookie.

        Args:
            url: Page URL
            cookie: Cookie header value

        Returns:
            Page markup

        Raises:
            BlockedError: If the response is a challenge page
            FetchError: On transport failure or an error status without a challenge
        """
        headers = {"Cookie": cookie} if cookie else {}
        response = self.fetcher.get(url, headers=headers, accept_status=CHALLENGE_STATUS_CODES)
        markup = response.text
        if self.is_challenge(markup):
            raise BlockedError(f"Challenge page from {url}")
        if response.status_code in CHALLENGE_STATUS_CODES:
            raise FetchError(f"HTTP {response.status_code} for {url}")
        return markup

    def fetch_recent_records(self, window: Optional[FetchWindow] = None) -> FetchResult:
        url = self.cfg.search_url
        logger.info(f"Fetching {self.county} roster from {url}")

        source = "direct"
        try:
            markup = self.fetch_page(url)
        except BlockedError:
            cookie = self.cfg.resolve_session_cookie()
            if not cookie:
                logger.warning(f"{self.county} is behind a challenge and no session cookie is configured")
                return FetchResult(blocked=True, source=source, message="challenge page, no session cookie")

            logger.info(f"{self.county} challenged; retrying with stored session cookie")
            source = "session_cookie"
            try:
                markup = self.fetch_page(url, cookie=cookie)
            except BlockedError:
                logger.warning(f"{self.county} session cookie was rejected")
                return FetchResult(blocked=True, source=source, message="session cookie rejected")

        layout = get_layout(self.cfg.layout)
        if not isinstance(layout, HtmlLayout):
            raise ConfigError(f"{self.county}: layout {self.cfg.layout} is not an HTML layout")

        blocks = [self.make_block(part, url) for part in layout.split(markup)]
        logger.info(f"Found {len(blocks)} booking row(s) for {self.county}")
        return FetchResult(blocks=blocks, source=source)
