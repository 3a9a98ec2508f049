"""
Configuration module for Arrest Lead.
"""

import json
import os
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from arrestlead.model import ConfigError

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)


class SourceAdapterConfig(BaseModel):
    """
    Configuration for one county source. Read-only during a run.
    """

    name: str  # County name, also the natural key prefix
    adapter: str = "html_list"  # json_api / aspnet_form / session_gated / html_list
    layout: str = "booking_list"  # Name of the field layout in arrestlead.layouts
    fallback_layout: Optional[str] = None  # HTML layout used when no JSON endpoint answers
    base_url: str = ""
    search_url: str = ""  # Page fetched by HTML-based adapters
    detail_url_template: str = ""  # e.g. "https://host/booking/?id={booking_number}"
    api_paths: List[str] = []  # Candidate JSON endpoints, tried in order
    detail_path_template: str = ""  # Per-record JSON detail endpoint
    booking_lookup_template: str = ""  # Single-booking JSON lookup, used for ID-range probes
    list_keys: List[str] = ["data", "bookings", "items", "results"]
    lookback_days: int = 3
    date_format: str = "%m/%d/%Y"  # Format of date-range parameters

    # Transport
    request_timeout: float = 30.0  # Seconds per request
    max_retries: int = 2  # Retries after the first attempt
    backoff_factor: float = 1.0
    max_backoff: float = 30.0  # Cap for a single backoff sleep
    min_request_interval: float = 0.5  # Minimum delay between requests to one host
    user_agent: str = DEFAULT_USER_AGENT

    # Session-gated sources
    session_cookie: Optional[str] = None  # Pre-provisioned cookie header value
    session_cookie_env: Optional[str] = None  # Env var holding the cookie
    challenge_markers: List[str] = [
        "Just a moment",
        "cf-browser-verification",
        "challenge-platform",
        "cf_chl_opt",
    ]

    # JSON detail enrichment
    max_enrich: int = 120
    detail_delay: float = 0.3
    detail_concurrency: int = 2

    # ASP.NET forms
    form_fields: Dict[str, str] = {}  # Role (date_from/date_to/submit) -> form field name
    submit_value: str = "Search"
    required_hidden_fields: List[str] = ["__VIEWSTATE", "__EVENTVALIDATION"]
    hidden_fields: List[str] = ["__VIEWSTATE", "__VIEWSTATEGENERATOR", "__EVENTVALIDATION"]

    home_state: str = "FL"  # Default state for partial addresses

    def resolve_session_cookie(self) -> Optional[str]:
        """Return the configured session cookie, falling back to the environment."""
        if self.session_cookie:
            return self.session_cookie
        if self.session_cookie_env:
            return os.environ.get(self.session_cookie_env) or None
        return None


class ScoringConfig(BaseModel):
    """
    Weights, thresholds and disqualifiers for lead scoring.
    """

    # Bond amount bands
    ideal_bond_min: float = 500
    ideal_bond_max: float = 50000
    high_bond_max: float = 100000
    ideal_bond_points: int = 30
    high_bond_points: int = 20
    very_high_bond_points: int = 10
    low_bond_points: int = -10
    no_bond_amount_points: int = -50

    # Bond type markers
    bondable_types: List[str] = ["CASH", "SURETY"]
    bondable_type_points: int = 25
    unbondable_types: List[str] = ["NO BOND", "HOLD"]
    unbondable_type_points: int = -50
    ror_types: List[str] = ["ROR", "R.O.R"]
    ror_type_points: int = -30

    # Custody
    in_custody_points: int = 20
    released_points: int = -30

    # Completeness
    complete_points: int = 15
    incomplete_points: int = -10

    # Disqualifiers
    disqualifying_charges: List[str] = ["MURDER", "CAPITAL", "FEDERAL"]
    county_disqualifiers: Dict[str, List[str]] = {
        "Collier": ["IMMIGRATION", "DETAINER", "WARRANT"],
    }
    disqualifying_charge_points: int = -100

    # Tiers
    hot_threshold: int = 70
    warm_threshold: int = 40

    @field_validator("bondable_types", "unbondable_types", "ror_types", "disqualifying_charges")
    @classmethod
    def upper_markers(cls, v):
        # Record text is upper-cased before matching
        return [term.upper() for term in v]

    @field_validator("county_disqualifiers")
    @classmethod
    def upper_county_markers(cls, v):
        return {county: [term.upper() for term in terms] for county, terms in v.items()}


class PipelineConfig(BaseModel):
    """
    Configuration for per-run control flow.
    """

    lock_timeout: float = 30.0  # Seconds to wait for the county lock
    max_run_seconds: float = 300.0  # Wall-clock budget per run
    notify_tiers: List[str] = ["Hot"]
    max_notifications_per_run: int = 12
    max_workers: int = 3  # Counties processed in parallel by run_all


class NotificationConfig(BaseModel):
    """
    Configuration for the Slack notification sink.
    """

    enabled: bool = False
    slack_webhook_url: Optional[str] = None
    slack_webhook_env: str = "SLACK_WEBHOOK_URL"
    channel: Optional[str] = None
    username: str = "Arrest Lead Bot"
    min_interval: float = 1.0  # Seconds between outbound posts
    timeout: float = 10.0

    def resolve_webhook_url(self) -> Optional[str]:
        """Return the configured webhook URL, falling back to the environment."""
        return self.slack_webhook_url or os.environ.get(self.slack_webhook_env) or None


class OutputConfig(BaseModel):
    """
    Configuration for run exports.
    """

    json_path: Optional[str] = None
    csv_path: Optional[str] = None
    ndjson_path: Optional[str] = None
    pretty_json: bool = True


class LoggingConfig(BaseModel):
    """
    Configuration for logging.
    """

    level: str = "INFO"  # Logging level (DEBUG/INFO/WARN/ERROR)


class MongoDBConfig(BaseModel):
    """
    Configuration for MongoDB integration.
    """

    enabled: bool = False
    uri: str = "mongodb://localhost:27017"
    database: str = "arrest_leads"
    collection: str = "arrest_records"
    lock_collection: str = "run_locks"
    lock_ttl: float = 600.0  # Seconds before a stale run lock expires


def default_counties() -> Dict[str, SourceAdapterConfig]:
    """Return the built-in county source configurations."""
    return {
        "Lee": SourceAdapterConfig(
            name="Lee",
            adapter="json_api",
            layout="lee_json",
            fallback_layout="booking_list",
            base_url="https://www.sheriffleefl.org",
            search_url="https://www.sheriffleefl.org/booking-search/",
            detail_url_template="https://www.sheriffleefl.org/booking/?id={booking_number}",
            api_paths=[
                "/public-api/bookings",
                "/wp-json/booking/recent",
                "/api/recent-bookings",
                "/booking-data",
            ],
            detail_path_template="/public-api/bookings/{booking_number}/charges",
            booking_lookup_template="/public-api/bookings?bookingNumber={booking_number}",
            min_request_interval=0.1,
        ),
        "Collier": SourceAdapterConfig(
            name="Collier",
            adapter="aspnet_form",
            layout="collier",
            base_url="https://www2.colliersheriff.org",
            search_url="https://www2.colliersheriff.org/arrestsearch/Report.aspx",
            form_fields={
                "date_from": "ctl00$ContentPlaceHolder1$txtDateFrom",
                "date_to": "ctl00$ContentPlaceHolder1$txtDateTo",
                "submit": "ctl00$ContentPlaceHolder1$btnSearch",
            },
        ),
        "Charlotte": SourceAdapterConfig(
            name="Charlotte",
            adapter="session_gated",
            layout="charlotte",
            base_url="https://inmates.charlottecountyfl.revize.com",
            search_url="https://inmates.charlottecountyfl.revize.com/",
            detail_url_template="https://inmates.charlottecountyfl.revize.com/bookings/{booking_number}",
            session_cookie_env="CHARLOTTE_CF_COOKIES",
        ),
    }


class Config(BaseModel):
    """
    Main configuration.
    """

    counties: Dict[str, SourceAdapterConfig] = Field(default_factory=default_counties)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    mongodb: Optional[MongoDBConfig] = None  # MongoDB config (optional)

    def county(self, name: str) -> SourceAdapterConfig:
        """
        Look up a county source configuration by name (case-insensitive).

        Args:
            name: County name

        Returns:
            Source adapter configuration

        Raises:
            ConfigError: If the county is not configured
        """
        for key, cfg in self.counties.items():
            if key.lower() == name.lower():
                return cfg
        raise ConfigError(f"Unknown county: {name}")


def load_config(path: Optional[str] = None) -> Config:
    """
    Load configuration from a file.

    Args:
        path: Path to the configuration file

    Returns:
        Configuration object
    """
    if path:
        if not os.path.exists(path):
            raise ConfigError(f"Configuration file not found: {path}")

        with open(path, "r") as f:
            if path.endswith(".yaml") or path.endswith(".yml"):
                config_dict = yaml.safe_load(f) or {}
            elif path.endswith(".json"):
                config_dict = json.load(f)
            else:
                raise ConfigError(f"Unsupported configuration file format: {path}")

        # County entries may omit their own name; the mapping key supplies it
        counties = config_dict.get("counties")
        if isinstance(counties, dict):
            merged = {k: v.model_dump() for k, v in default_counties().items()}
            for name, county_dict in counties.items():
                base = merged.get(name, {})
                base.update(county_dict or {})
                base.setdefault("name", name)
                merged[name] = base
            config_dict["counties"] = merged

        return Config(**config_dict)
    else:
        default_locations = [
            "./config.yaml",
            "./config.yml",
            "./config.json",
            os.path.expanduser("~/.config/arrestlead/config.yaml"),
        ]

        for loc in default_locations:
            if os.path.exists(loc):
                return load_config(loc)

        return Config()
