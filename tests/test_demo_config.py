from pathlib import Path

import pytest

from strategy_demo import build_feeds, main
from strategy_lab.config import CONFIG_ENV_VAR, EngineConfig, engine_config, load_config


def test_loads_config_file() -> None:
    cfg = load_config("configs/demo.toml")
    assert cfg["feeds"]["prices_csv"].endswith("sample_prices.csv")
    assert cfg["feeds"]["yields_csv"].endswith("sample_yields.csv")
    assert cfg["output"]["show"] is False
    assert cfg["output"]["charts"] == ["blocks", "yields", "health"]
    assert cfg["strategy"] == {"template": "leveraged-lst-2x", "iterations": 3}
    engine = engine_config(cfg)
    assert engine.swap_fee_rate == 0.003
    assert engine.gas_cost("borrow") == 3.5


def test_defaults_when_file_missing(tmp_path: Path, caplog) -> None:
    cfg = load_config(tmp_path / "nope.toml")
    assert cfg["strategy"]["template"] == "leveraged-lst-2x"
    assert cfg["feeds"]["yields_csv"] is None
    assert "not found" in caplog.text


def test_env_var_selects_config(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "custom.toml"
    path.write_text('[strategy]\ntemplate = "stablecoin-yield"\n\n[engine]\nmax_loop_iterations = 5\nbogus = 1\n')
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    cfg = load_config(None)
    assert cfg["strategy"]["template"] == "stablecoin-yield"
    assert cfg["strategy"]["iterations"] == 3
    assert engine_config(cfg) == EngineConfig(max_loop_iterations=5)


def test_engine_gas_costs_merge_with_defaults() -> None:
    engine = EngineConfig.from_mapping({"gas_costs": {"swap": 9.0}})
    assert engine.gas_cost("swap") == 9.0
    assert engine.gas_cost("lend") == 3.0


def test_build_feeds_layers_csv_over_catalog() -> None:
    cfg = load_config("configs/demo.toml")
    feeds = build_feeds(cfg)
    assert feeds.price("ETH") == 3300.0
    assert feeds.apy("etherfi", "stake", "eETH") == 3.1
    assert feeds.apy("compound-v3", "supply", "USDC") == 7.8


def test_main_writes_report(tmp_path: Path, monkeypatch, capsys) -> None:
    import matplotlib

    matplotlib.use("Agg")
    monkeypatch.setattr("sys.argv", ["strategy_demo.py", "configs/demo.toml"])
    monkeypatch.setenv("STRATEGY_LAB_OUTDIR", str(tmp_path))
    main()
    out = capsys.readouterr().out
    assert "Leverage:           2.53x" in out
    assert (tmp_path / "summary.csv").exists()
    assert (tmp_path / "health_factors.png").exists()


@pytest.fixture(autouse=True)
def _repo_root(monkeypatch) -> None:
    monkeypatch.chdir(Path(__file__).resolve().parents[1])
