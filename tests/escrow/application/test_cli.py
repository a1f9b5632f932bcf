"""Tests for the escrow-admin command line."""

import pytest
from escrow import cli
from escrow.domain import escrow
from escrow.order.order import Order
from protean import current_domain


@pytest.fixture(autouse=True)
def _initialised_domain(monkeypatch):
    monkeypatch.setattr(cli, "_init_domain", lambda: escrow)
    monkeypatch.setattr(cli, "configure_logging", lambda: None)


class TestSweepCommand:
    def test_releases_due_orders(self, delivered_order_id, clock, capsys):
        clock.advance(days=7)

        assert cli.main(["sweep"]) == 0

        assert "Released escrow for 1 order(s)." in capsys.readouterr().out
        assert current_domain.repository_for(Order).get(delivered_order_id).funds_held is False

    def test_batch_size_option(self, delivered_order_id, clock, capsys):
        clock.advance(days=7)
        assert cli.main(["sweep", "--batch-size", "1"]) == 0
        assert "1 order(s)" in capsys.readouterr().out


class TestOverviewCommand:
    def test_prints_summary(self, delivered_order_id, capsys):
        assert cli.main(["overview"]) == 0
        out = capsys.readouterr().out
        assert "Orders holding funds: 1" in out
        assert "1000.00" in out


class TestSchemaCommands:
    def test_memory_provider_needs_no_tables(self, capsys):
        assert cli.main(["setup-db"]) == 0
        assert "nothing to do" in capsys.readouterr().out


def test_failed_command_returns_non_zero(monkeypatch):
    def boom(batch_size=None):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(cli, "sweep", boom)
    assert cli.main(["sweep"]) == 1


def test_unknown_command_exits():
    with pytest.raises(SystemExit):
        cli.main(["refund-everything"])
