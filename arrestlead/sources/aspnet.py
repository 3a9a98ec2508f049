"""
Stateful ASP.NET WebForms adapter.

The search page carries ViewState hidden fields that must be posted back
together with the date range, as a browser would on clicking Search.
"""

from typing import Dict, Optional

from arrestlead.extract import extract_hidden_field
from arrestlead.layouts import HtmlLayout, get_layout
from arrestlead.log import get_logger
from arrestlead.model import ConfigError, FetchError
from arrestlead.sources.base import FetchResult, FetchWindow, SourceAdapter

logger = get_logger(__name__)


class AspNetFormAdapter(SourceAdapter):
    """
    GET the form, echo its hidden state back in a POST, split the results.
    """

    def session_vars(self, markup: str) -> Dict[str, str]:
        """
        Extract the hidden state fields of a form page.

        Args:
            markup: Form page HTML

        Returns:
            Field name to value

        Raises:
            FetchError: If a required hidden field is missing
        """
        values = {}
        for name in self.cfg.hidden_fields:
            value = extract_hidden_field(markup, name)
            if value is None and name in self.cfg.required_hidden_fields:
                raise FetchError(f"Missing hidden field {name} on {self.cfg.search_url}")
            values[name] = value or ""
        return values

    def form_data(self, hidden: Dict[str, str], window: FetchWindow) -> Dict[str, str]:
        """Build the POST body for a date-range search."""
        fields = self.cfg.form_fields
        for role in ("date_from", "date_to", "submit"):
            if role not in fields:
                raise ConfigError(f"{self.county}: form_fields is missing '{role}'")

        data = dict(hidden)
        data[fields["date_from"]] = window.start.strftime(self.cfg.date_format)
        data[fields["date_to"]] = window.end.strftime(self.cfg.date_format)
        data[fields["submit"]] = self.cfg.submit_value
        return data

    def fetch_recent_records(self, window: Optional[FetchWindow] = None) -> FetchResult:
        window = window or self.default_window()
        url = self.cfg.search_url

        logger.info(f"Fetching {self.county} search form from {url}")
        page = self.fetcher.get(url)
        hidden = self.session_vars(page.text)
        logger.debug(f"ViewState extracted for {self.county}: {bool(hidden.get('__VIEWSTATE'))}")

        logger.info(f"Searching {self.county} bookings for {window}")
        response = self.fetcher.post(
            url,
            data=self.form_data(hidden, window),
            headers={"Content-Type": "application/x-www-form-urlencoded", "Referer": url},
        )

        layout = get_layout(self.cfg.layout)
        if not isinstance(layout, HtmlLayout):
            raise ConfigError(f"{self.county}: layout {self.cfg.layout} is not an HTML layout")

        blocks = [self.make_block(part, url) for part in layout.split(response.text)]
        logger.info(f"Found {len(blocks)} potential arrest block(s) for {self.county}")
        return FetchResult(blocks=blocks, source="aspnet_form")
