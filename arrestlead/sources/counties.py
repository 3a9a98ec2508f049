"""
County source adapters.
"""

from typing import Optional

from arrestlead.config import SourceAdapterConfig
from arrestlead.sources.aspnet import AspNetFormAdapter
from arrestlead.sources.base import HttpFetcher
from arrestlead.sources.html_list import HtmlListAdapter
from arrestlead.sources.json_api import JsonApiAdapter
from arrestlead.sources.session_gated import SessionGatedAdapter


class LeeCountyAdapter(JsonApiAdapter):
    """
    Lee County: public booking API with per-booking charges, falling back
    to the booking search page.
    """

    def __init__(self, cfg: SourceAdapterConfig, fetcher: Optional[HttpFetcher] = None):
        fetcher = fetcher or HttpFetcher(cfg)
        fallback = None
        if cfg.search_url:
            fallback_cfg = cfg.model_copy(update={"layout": cfg.fallback_layout or "booking_list"})
            fallback = HtmlListAdapter(fallback_cfg, fetcher)
        super().__init__(cfg, fetcher, fallback=fallback)


class CollierCountyAdapter(AspNetFormAdapter):
    """Collier County: ASP.NET arrest search report."""


class CharlotteCountyAdapter(SessionGatedAdapter):
    """Charlotte County: inmate roster behind a browser challenge."""
