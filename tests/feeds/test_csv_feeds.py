from __future__ import annotations

from pathlib import Path

import pytest

from strategy_lab.feeds import CSVPriceSource, CSVYieldSource, FeedSnapshot, catalog_snapshot, load_snapshot

FIXTURES = Path(__file__).resolve().parent.parent / "fixtures"


def test_csv_price_source_keeps_known_assets() -> None:
    prices = CSVPriceSource(str(FIXTURES / "prices.csv")).fetch()
    assert prices == {"ETH": 3300.0, "weETH": 3445.0}


def test_csv_yield_source_normalises_operations() -> None:
    yields = CSVYieldSource(str(FIXTURES / "yields.csv")).fetch()
    assert yields == {
        ("etherfi", "stake", "eETH"): 3.1,
        ("aave-v3", "supply", "ETH"): 1.8,
        ("aave-v3", "borrow", "ETH"): 2.5,
    }


def test_csv_source_rejects_missing_columns(tmp_path: Path) -> None:
    bad = tmp_path / "bad.csv"
    bad.write_text("asset,usd\nETH,3300\n")
    with pytest.raises(ValueError):
        CSVPriceSource(str(bad)).fetch()


def test_load_snapshot_survives_failing_source(tmp_path: Path, caplog) -> None:
    snapshot = load_snapshot(
        CSVPriceSource(str(tmp_path / "missing.csv")),
        CSVYieldSource(str(FIXTURES / "yields.csv")),
    )
    assert dict(snapshot.prices) == {}
    assert snapshot.apy("aave-v3", "borrow", "ETH") == 2.5
    assert "CSVPriceSource failed" in caplog.text


def test_snapshot_lookups_distinguish_unknown_from_zero() -> None:
    snapshot = FeedSnapshot(prices={"ETH": 0.0}, yields={("x", "supply", "ETH"): 0.0})
    assert snapshot.price("ETH") == 0.0
    assert snapshot.price("rETH") is None
    assert snapshot.price("DAI") == 1.0
    assert snapshot.apy("x", "supply", "ETH") == 0.0
    assert snapshot.apy("x", "borrow", "ETH") is None
    assert snapshot.apy(None, "borrow", "ETH") is None


def test_snapshot_is_read_only() -> None:
    snapshot = FeedSnapshot(prices={"ETH": 1.0})
    with pytest.raises(TypeError):
        snapshot.prices["ETH"] = 2.0  # type: ignore[index]
    updated = snapshot.with_prices({"ETH": 2.0})
    assert snapshot.price("ETH") == 1.0
    assert updated.price("ETH") == 2.0


def test_catalog_snapshot_exposes_reference_apys() -> None:
    snapshot = catalog_snapshot({"ETH": 3300.0})
    assert snapshot.reference_price == 3300.0
    assert snapshot.apy("etherfi", "stake", "eETH") == 3.0
    assert snapshot.apy("etherfi", "stake", "weETH") == 3.0
    assert snapshot.apy("morpho", "supply", "USDC") == 10.2
    assert snapshot.apy("aave-v3", "borrow", "weETH") is None
