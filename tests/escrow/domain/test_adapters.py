"""Tests for the notifier and payment gateway adapters and their factories."""

import pytest
from escrow.gateway import FakeGateway, get_gateway, reset_gateway
from escrow.notifier import NotificationError, get_notifier, reset_notifier
from escrow.notifier.fake_notifier import FakeNotifier
from escrow.notifier.log_notifier import LogNotifier


class TestFakeNotifier:
    def setup_method(self):
        self.notifier = FakeNotifier()

    def test_records_messages(self):
        self.notifier.notify("a@b.com", "Hi", "Hello")
        assert self.notifier.sent_to("a@b.com") == [{"recipient": "a@b.com", "subject": "Hi", "body": "Hello"}]

    def test_failure_raises(self):
        self.notifier.configure(should_succeed=False, failure_reason="Relay down")
        with pytest.raises(NotificationError, match="Relay down"):
            self.notifier.notify("a@b.com", "Hi", "Hello")
        assert self.notifier.sent == []

    def test_reset(self):
        self.notifier.notify("a@b.com", "Hi", "Hello")
        self.notifier.configure(should_succeed=False)
        self.notifier.reset()
        assert self.notifier.sent == []
        assert self.notifier.should_succeed is True


class TestFakeGateway:
    def setup_method(self):
        self.gateway = FakeGateway()

    def test_successful_charge(self):
        result = self.gateway.create_charge(100.0, "ZAR", "Credit_Card", "ord-1-1")
        assert result.success is True
        assert result.gateway_reference.startswith("fake_chg_")
        assert self.gateway.calls[0]["idempotency_key"] == "ord-1-1"

    def test_declined_charge(self):
        self.gateway.configure(should_succeed=False, failure_reason="Do not honour")
        result = self.gateway.create_charge(100.0, "ZAR", "Credit_Card", "ord-1-1")
        assert result.success is False
        assert result.failure_reason == "Do not honour"


class TestFactories:
    def test_log_notifier_selected_by_environment(self, monkeypatch):
        monkeypatch.setenv("NOTIFIER_ADAPTER", "log")
        reset_notifier()
        assert isinstance(get_notifier(), LogNotifier)

    def test_unknown_notifier(self, monkeypatch):
        monkeypatch.setenv("NOTIFIER_ADAPTER", "pigeon")
        reset_notifier()
        with pytest.raises(ValueError):
            get_notifier()

    def test_unknown_gateway(self, monkeypatch):
        monkeypatch.setenv("PAYMENT_GATEWAY", "stripe")
        reset_gateway()
        with pytest.raises(ValueError):
            get_gateway()

    def test_log_notifier_accepts_messages(self):
        LogNotifier().notify("a@b.com", "Hi", "Hello")
