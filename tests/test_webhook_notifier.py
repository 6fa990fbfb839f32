"""Tests for the Make.com webhook notifier."""

import pytest
import requests

import webhook_notifier
from webhook_notifier import WebhookNotifier


class FakeResponse:
    def __init__(self, status_code: int, text: str = "") -> None:
        self.status_code = status_code
        self.text = text


@pytest.fixture
def calls(monkeypatch):
    recorded = []

    def fake_post(url, json=None, headers=None, timeout=None):
        recorded.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return FakeResponse(200, "Accepted")

    monkeypatch.setattr(webhook_notifier.requests, "post", fake_post)
    return recorded


class TestWebhookNotifier:
    """Tests for dispatch outcomes."""

    def test_successful_post(self, calls) -> None:
        notifier = WebhookNotifier(webhook_url="https://hook.example/abc", timeout=5)
        payload = {"event_type": "goal", "minute": 23, "idempotency_key": "M1:abc"}

        result = notifier.dispatch(payload)

        assert result.success is True
        assert result.status_code == 200
        assert calls[0]["url"] == "https://hook.example/abc"
        assert calls[0]["json"] == payload
        assert calls[0]["timeout"] == 5
        assert calls[0]["headers"]["Idempotency-Key"] == "M1:abc"

    def test_no_idempotency_header_without_key(self, calls) -> None:
        WebhookNotifier(webhook_url="https://hook.example/abc").dispatch({"event_type": "goal"})
        assert "Idempotency-Key" not in calls[0]["headers"]

    def test_unconfigured_webhook_does_not_post(self, calls) -> None:
        result = WebhookNotifier(webhook_url="").dispatch({"event_type": "goal"})
        assert result.success is False
        assert "not configured" in result.error_detail
        assert calls == []

    def test_non_2xx_reported(self, monkeypatch) -> None:
        monkeypatch.setattr(webhook_notifier.requests, "post",
                            lambda *a, **kw: FakeResponse(410, "Scenario is off" * 50))
        result = WebhookNotifier(webhook_url="https://hook.example/abc").dispatch({"event_type": "goal"})
        assert result.success is False
        assert result.status_code == 410
        assert result.error_detail.startswith("Make failed 410: Scenario is off")
        assert len(result.error_detail) <= len("Make failed 410: ") + 200

    def test_timeout_reported(self, monkeypatch) -> None:
        def raise_timeout(*args, **kwargs):
            raise requests.Timeout("slow")

        monkeypatch.setattr(webhook_notifier.requests, "post", raise_timeout)
        result = WebhookNotifier(webhook_url="https://hook.example/abc", timeout=3).dispatch({})
        assert result.success is False
        assert result.error_detail == "timeout after 3s"

    def test_connection_error_reported(self, monkeypatch) -> None:
        def raise_connection(*args, **kwargs):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(webhook_notifier.requests, "post", raise_connection)
        result = WebhookNotifier(webhook_url="https://hook.example/abc").dispatch({})
        assert result.success is False
        assert result.error_detail == "refused"
