"""
Source adapters for Arrest Lead.
"""

from typing import Dict, Optional, Type

from arrestlead.config import SourceAdapterConfig
from arrestlead.model import ConfigError
from arrestlead.sources.aspnet import AspNetFormAdapter
from arrestlead.sources.base import FetchResult, FetchWindow, HttpFetcher, SourceAdapter
from arrestlead.sources.counties import CharlotteCountyAdapter, CollierCountyAdapter, LeeCountyAdapter
from arrestlead.sources.html_list import HtmlListAdapter
from arrestlead.sources.json_api import JsonApiAdapter
from arrestlead.sources.session_gated import SessionGatedAdapter

ADAPTERS: Dict[str, Type[SourceAdapter]] = {
    "html_list": HtmlListAdapter,
    "aspnet_form": AspNetFormAdapter,
    "session_gated": SessionGatedAdapter,
    "json_api": JsonApiAdapter,
}

COUNTY_ADAPTERS: Dict[str, Type[SourceAdapter]] = {
    "lee": LeeCountyAdapter,
    "collier": CollierCountyAdapter,
    "charlotte": CharlotteCountyAdapter,
}


def build_adapter(cfg: SourceAdapterConfig, fetcher: Optional[HttpFetcher] = None) -> SourceAdapter:
    """
    Build the adapter for a county source.

    A county-specific adapter is used when one exists for the configured
    protocol; otherwise the generic protocol adapter.

    Args:
        cfg: Source configuration
        fetcher: HTTP fetcher to share (one per adapter by default)

    Returns:
        Source adapter

    Raises:
        ConfigError: If the adapter type is unknown
    """
    if cfg.adapter not in ADAPTERS:
        raise ConfigError(f"Unknown adapter type for {cfg.name}: {cfg.adapter}")

    cls = COUNTY_ADAPTERS.get(cfg.name.lower())
    if cls is None or not issubclass(cls, ADAPTERS[cfg.adapter]):
        cls = ADAPTERS[cfg.adapter]
    return cls(cfg, fetcher)


__all__ = [
    "ADAPTERS",
    "AspNetFormAdapter",
    "CharlotteCountyAdapter",
    "CollierCountyAdapter",
    "FetchResult",
    "FetchWindow",
    "HtmlListAdapter",
    "HttpFetcher",
    "JsonApiAdapter",
    "LeeCountyAdapter",
    "SessionGatedAdapter",
    "SourceAdapter",
    "build_adapter",
]
