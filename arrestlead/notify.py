"""
Notification sinks for Arrest Lead.

Notification is best-effort: a failed post is counted by the pipeline
and never rolls back stored records.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from arrestlead.config import NotificationConfig
from arrestlead.dedup import natural_key
from arrestlead.links import search_links
from arrestlead.log import get_logger
from arrestlead.model import (
    ArrestRecord,
    DispatchError,
    LeadScore,
    bond_types_text,
    charges_text,
    court_date_of,
    total_bond_amount,
)

logger = get_logger(__name__)

# Slack rejects very long messages
MAX_TEXT_LENGTH = 39000


def _bond_text(record: ArrestRecord) -> str:
    amount = total_bond_amount(record)
    amount_text = f"${amount:,.2f}" if amount is not None else "not set"
    bond_types = bond_types_text(record)
    return f"{amount_text} ({bond_types})" if bond_types else amount_text


def _court_text(record: ArrestRecord) -> str:
    for charge in record.get("charges", []):
        if charge.get("court_date"):
            parts = [charge["court_date"], charge.get("court_time", ""), charge.get("court_location", "")]
            return " ".join(p for p in parts if p)
    return court_date_of(record)


def build_notification(record: ArrestRecord, score: LeadScore) -> Dict[str, Any]:
    """
    Build the structured notification payload for a scored record.

    Args:
        record: Arrest record
        score: Its lead score

    Returns:
        Payload with identity, score, highlights and search links
    """
    return {
        "county": record.get("county", ""),
        "booking_number": record.get("booking_number", ""),
        "key": natural_key(record),
        "score": score.score,
        "tier": score.tier.value,
        "reasons": list(score.reasons),
        "highlights": {
            "name": record.get("full_name", ""),
            "charges": charges_text(record),
            "bond": _bond_text(record),
            "court": _court_text(record),
            "status": record.get("status", ""),
            "detail_url": record.get("detail_url", ""),
        },
        "links": search_links(record),
    }


def format_text(payload: Dict[str, Any]) -> str:
    """
    Render a payload as a Slack message.

    Args:
        payload: Notification payload

    Returns:
        Message text using Slack markup
    """
    highlights = payload.get("highlights", {})
    charges = highlights.get("charges") or "Unknown"
    top_charge = charges.split("|")[0].strip()

    lines = [
        f"*New {payload.get('tier', '')} Arrest Lead - {payload.get('county', '')}*",
        "",
        f"*Name:* {highlights.get('name', '')}",
        f"*Bond:* {highlights.get('bond', '')}",
        f"*Charges:* {top_charge}",
        f"*Booking #:* {payload.get('booking_number', '')}",
        f"*Score:* {payload.get('score')} ({payload.get('tier', '')})",
    ]
    if highlights.get("court"):
        lines.append(f"*Court:* {highlights['court']}")
    if highlights.get("detail_url"):
        lines.append(f"*Detail:* {highlights['detail_url']}")

    links = payload.get("links") or {}
    if links:
        lines.append(" | ".join(f"<{url}|{name.title()}>" for name, url in links.items()))

    return "\n".join(lines)[:MAX_TEXT_LENGTH]


class NotificationSink(ABC):
    """
    Receives qualifying leads.
    """

    @abstractmethod
    def notify(self, payload: Dict[str, Any]) -> bool:
        """
        Deliver one payload.

        Returns:
            True on success, False on failure

        Raises:
            DispatchError: On delivery failure the sink cannot recover from
        """


class LogSink(NotificationSink):
    """Writes leads to the application log."""

    def notify(self, payload: Dict[str, Any]) -> bool:
        logger.info(
            f"Lead {payload.get('key')}: {payload.get('tier')} ({payload.get('score')}) "
            f"{payload.get('highlights', {}).get('name', '')}"
        )
        return True


class SlackWebhookSink(NotificationSink):
    """
    Posts leads to a Slack incoming webhook.

    Safe to share across county pipelines: posts are serialized and
    spaced at least ``min_interval`` seconds apart.
    """

    def __init__(
        self,
        webhook_url: str,
        channel: Optional[str] = None,
        username: Optional[str] = None,
        min_interval: float = 1.0,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.webhook_url = webhook_url
        self.channel = channel
        self.username = username
        self.min_interval = min_interval
        self.timeout = timeout
        self.session = session or requests.Session()
        self._lock = threading.Lock()
        self._last_post = 0.0

    def _wait_turn(self) -> None:
        elapsed = time.monotonic() - self._last_post
        if elapsed < self.min_interval:
            time.sleep(self.min_interval - elapsed)

    def notify(self, payload: Dict[str, Any]) -> bool:
        message: Dict[str, Any] = {"text": format_text(payload)}
        if self.channel:
            message["channel"] = self.channel
        if self.username:
            message["username"] = self.username

        with self._lock:
            self._wait_turn()
            try:
                response = self.session.post(self.webhook_url, json=message, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                raise DispatchError(f"Slack webhook request failed: {e}")
            finally:
                self._last_post = time.monotonic()

        if response.status_code >= 400:
            raise DispatchError(f"Slack webhook returned HTTP {response.status_code}: {response.text[:200]}")
        return True


class MultiSink(NotificationSink):
    """
    Fans a payload out to several sinks. Succeeds only if all succeed.
    """

    def __init__(self, sinks: List[NotificationSink]):
        self.sinks = sinks

    def notify(self, payload: Dict[str, Any]) -> bool:
        ok = True
        for sink in self.sinks:
            try:
                ok = sink.notify(payload) and ok
            except DispatchError as e:
                logger.warning(f"{type(sink).__name__} failed for {payload.get('key')}: {e}")
                ok = False
        return ok


def build_sink(cfg: NotificationConfig) -> NotificationSink:
    """
    Build the notification sink for a configuration.

    Args:
        cfg: Notification configuration

    Returns:
        LogSink, plus Slack when enabled and a webhook URL is available
    """
    sinks: List[NotificationSink] = [LogSink()]
    if cfg.enabled:
        url = cfg.resolve_webhook_url()
        if url:
            sinks.append(
                SlackWebhookSink(
                    url,
                    channel=cfg.channel,
                    username=cfg.username,
                    min_interval=cfg.min_interval,
                    timeout=cfg.timeout,
                )
            )
        else:
            logger.warning("Slack notifications enabled but no webhook URL configured")
    return sinks[0] if len(sinks) == 1 else MultiSink(sinks)
