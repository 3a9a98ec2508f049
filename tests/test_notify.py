"""
Tests for notification payloads and sinks.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from arrestlead.config import NotificationConfig
from arrestlead.model import DispatchError
from arrestlead.notify import (
    LogSink,
    MultiSink,
    SlackWebhookSink,
    build_notification,
    build_sink,
    format_text,
)
from arrestlead.scoring import LeadScorer

WEBHOOK = "https://hooks.slack.com/services/T000/B000/XXXX"


@pytest.fixture
def payload(sample_record):
    return build_notification(sample_record, LeadScorer().score(sample_record))


def test_build_notification(payload):
    """Test the structured payload."""
    assert payload["county"] == "Lee"
    assert payload["booking_number"] == "12345"
    assert payload["key"] == "Lee|12345"
    assert payload["score"] == 90
    assert payload["tier"] == "Hot"
    assert payload["reasons"][0] == "Ideal bond amount ($500-$50K)"
    assert payload["highlights"] == {
        "name": "SMITH, JOHN MICHAEL",
        "charges": "DUI",
        "bond": "$2,000.00 (Surety)",
        "court": "2025-11-03 09:00 Courtroom 4A",
        "status": "InCustody",
        "detail_url": "https://www.sheriffleefl.org/booking/?id=12345",
    }
    assert set(payload["links"]) == {"google", "facebook", "truepeoplesearch"}


def test_build_notification_without_bond(sample_record):
    """Test the bond highlight when no amount is published."""
    sample_record["charges"] = [{"description": "PETIT THEFT"}]
    payload = build_notification(sample_record, LeadScorer().score(sample_record))
    assert payload["highlights"]["bond"] == "not set"
    assert payload["highlights"]["court"] == ""


def test_format_text(payload):
    """Test the Slack message text."""
    text = format_text(payload)
    lines = text.split("\n")
    assert lines[0] == "*New Hot Arrest Lead - Lee*"
    assert "*Name:* SMITH, JOHN MICHAEL" in lines
    assert "*Bond:* $2,000.00 (Surety)" in lines
    assert "*Charges:* DUI" in lines
    assert "*Booking #:* 12345" in lines
    assert "*Score:* 90 (Hot)" in lines
    assert "*Court:* 2025-11-03 09:00 Courtroom 4A" in lines
    assert "|Google>" in lines[-1]


def test_format_text_top_charge_only(payload):
    """Test that only the first charge is shown."""
    payload["highlights"]["charges"] = "DUI | RESISTING OFFICER"
    assert "*Charges:* DUI" in format_text(payload).split("\n")


def test_log_sink(payload):
    """Test the always-on log sink."""
    assert LogSink().notify(payload) is True


@patch("arrestlead.notify.time")
def test_slack_sink_posts_and_spaces_messages(mock_time, payload):
    """Test webhook posting with the minimum interval between posts."""
    mock_time.monotonic.return_value = 100.0
    session = MagicMock()
    session.post.return_value = MagicMock(status_code=200, text="ok")
    sink = SlackWebhookSink(WEBHOOK, channel="#leads", username="Arrest Lead Bot", session=session)

    assert sink.notify(payload) is True
    mock_time.sleep.assert_not_called()

    args, kwargs = session.post.call_args
    assert args[0] == WEBHOOK
    assert kwargs["json"]["channel"] == "#leads"
    assert kwargs["json"]["username"] == "Arrest Lead Bot"
    assert kwargs["json"]["text"].startswith("*New Hot Arrest Lead - Lee*")
    assert kwargs["timeout"] == 10.0

    sink.notify(payload)
    mock_time.sleep.assert_called_once_with(1.0)


@patch("arrestlead.notify.time")
def test_slack_sink_http_error(mock_time, payload):
    """Test that an error status raises DispatchError."""
    mock_time.monotonic.return_value = 100.0
    session = MagicMock()
    session.post.return_value = MagicMock(status_code=500, text="internal_error")
    sink = SlackWebhookSink(WEBHOOK, session=session)

    with pytest.raises(DispatchError, match="HTTP 500"):
        sink.notify(payload)


@patch("arrestlead.notify.time")
def test_slack_sink_request_error(mock_time, payload):
    """Test that transport errors raise DispatchError."""
    mock_time.monotonic.return_value = 100.0
    session = MagicMock()
    session.post.side_effect = requests.exceptions.ConnectionError("unreachable")
    sink = SlackWebhookSink(WEBHOOK, session=session)

    with pytest.raises(DispatchError, match="request failed"):
        sink.notify(payload)


def test_multi_sink(payload):
    """Test that one failing sink fails the fan-out without stopping it."""
    failing = MagicMock()
    failing.notify.side_effect = DispatchError("Slack webhook returned HTTP 500")
    after = MagicMock()
    after.notify.return_value = True

    assert MultiSink([LogSink(), failing, after]).notify(payload) is False
    after.notify.assert_called_once_with(payload)
    assert MultiSink([LogSink(), after]).notify(payload) is True


def test_build_sink_disabled():
    """Test the default log-only sink."""
    assert isinstance(build_sink(NotificationConfig()), LogSink)


def test_build_sink_enabled():
    """Test that an enabled webhook adds the Slack sink."""
    sink = build_sink(NotificationConfig(enabled=True, slack_webhook_url=WEBHOOK, min_interval=2.0))
    assert isinstance(sink, MultiSink)
    slack = sink.sinks[1]
    assert isinstance(slack, SlackWebhookSink)
    assert slack.webhook_url == WEBHOOK
    assert slack.min_interval == 2.0


def test_build_sink_webhook_from_environment(monkeypatch):
    """Test the environment fallback for the webhook URL."""
    monkeypatch.setenv("SLACK_WEBHOOK_URL", WEBHOOK)
    sink = build_sink(NotificationConfig(enabled=True))
    assert sink.sinks[1].webhook_url == WEBHOOK


def test_build_sink_enabled_without_url(monkeypatch):
    """Test that a missing webhook falls back to logging only."""
    monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)
    assert isinstance(build_sink(NotificationConfig(enabled=True)), LogSink)
