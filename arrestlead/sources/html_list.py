"""
Plain GET + regex adapter for booking list pages.
"""

import re
from typing import List, Optional

from arrestlead.log import get_logger
from arrestlead.model import RawBlock
from arrestlead.sources.base import FetchResult, FetchWindow, SourceAdapter

logger = get_logger(__name__)

ANCHOR_PATTERN = r"booking/\?id=(\d+)"
ALTERNATE_ANCHOR_PATTERNS = [r"booking_id=(\d+)", r"[?&]id=(\d{6,})"]


def find_booking_numbers(markup: str, patterns: List[str]) -> List[str]:
    """
    Collect booking numbers from anchors, first occurrence wins.

    Args:
        markup: HTML page
        patterns: Anchor patterns with one capture group

    Returns:
        Unique booking numbers in document order
    """
    seen = set()
    numbers = []
    for pattern in patterns:
        for match in re.finditer(pattern, markup, re.IGNORECASE):
            number = match.group(1)
            if number not in seen:
                seen.add(number)
                numbers.append(number)
    return numbers


def find_row(markup: str, booking_number: str) -> Optional[str]:
    """Return the <tr> row that contains a booking number, or None."""
    number = re.escape(booking_number)
    pattern = (
        r"<tr[^>]*>(?:(?!</tr>).)*?(?<!\d)" + number + r"(?!\d)(?:(?!</tr>).)*?</tr>"
    )
    match = re.search(pattern, markup, re.IGNORECASE | re.DOTALL)
    return match.group(0) if match else None


class HtmlListAdapter(SourceAdapter):
    """
    One GET of a booking list page; one block per booking row.
    """

    anchor_pattern = ANCHOR_PATTERN
    alternate_anchor_patterns = ALTERNATE_ANCHOR_PATTERNS

    def parse_page(self, markup: str, url: str, layout: Optional[str] = None) -> List[RawBlock]:
        """
        Split a list page into per-booking row blocks.

        Args:
            markup: HTML page
            url: Page URL
            layout: Layout name for the blocks

        Returns:
            Raw blocks, one per unique booking number
        """
        numbers = find_booking_numbers(markup, [self.anchor_pattern])
        if not numbers:
            logger.debug(f"No booking anchors on {url}, trying alternate patterns")
            for pattern in self.alternate_anchor_patterns:
                numbers = find_booking_numbers(markup, [pattern])
                if numbers:
                    break

        logger.info(f"Found {len(numbers)} booking number(s) on {url}")

        blocks = []
        for number in numbers:
            row = find_row(markup, number)
            if row is None:
                logger.debug(f"No table row for booking {number}")
                continue
            blocks.append(self.make_block(row, url, layout=layout, kind="html"))
        return blocks

    def fetch_recent_records(self, window: Optional[FetchWindow] = None) -> FetchResult:
        url = self.cfg.search_url
        logger.info(f"Fetching {self.county} booking list from {url}")
        response = self.fetcher.get(url)
        blocks = self.parse_page(response.text, url)
        return FetchResult(blocks=blocks, source="html_list")
