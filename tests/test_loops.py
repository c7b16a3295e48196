import math

import pytest

from strategy_lab.config import EngineConfig
from strategy_lab.core import BorrowConfig, Graph, InputConfig, LendConfig, StakeConfig
from strategy_lab.feeds import FeedSnapshot
from strategy_lab.loops import (
    analyze_loop,
    calculate_health_factors,
    calculate_loop_iterations,
    detect_loops,
    liquidation_price,
    loop_id,
)
from strategy_lab.valuation import propagate


@pytest.fixture
def loop_graph() -> tuple[Graph, dict[str, str]]:
    """1 ETH -> Stake -> Lend (LT 82.5) -> Borrow 70% -> back into Stake."""

    graph = Graph()
    ids = {
        "input": graph.add_block("input", config=InputConfig(asset="ETH", amount=1.0)),
        "stake": graph.add_block("stake", config=StakeConfig(protocol="etherfi", output_asset="weETH")),
        "lend": graph.add_block("lend", config=LendConfig(protocol="aave-v3", liquidation_threshold=82.5)),
        "borrow": graph.add_block("borrow", config=BorrowConfig(asset="ETH", ltv_percent=70.0)),
    }
    graph.connect(ids["input"], ids["stake"])
    graph.connect(ids["stake"], ids["lend"])
    graph.connect(ids["lend"], ids["borrow"])
    graph.connect(ids["borrow"], ids["stake"])
    return graph, ids


def test_detect_loops_finds_cycle_in_traversal_order(loop_graph) -> None:
    graph, ids = loop_graph
    (loop,) = detect_loops(graph)
    assert loop.block_ids == (ids["stake"], ids["lend"], ids["borrow"])
    assert loop.entry_block_id == ids["stake"]
    assert loop.exit_block_id == ids["borrow"]
    assert loop.id == loop_id(loop.block_ids)
    assert len(loop.edge_ids) == 3
    assert loop.iterations == 1


def test_detect_loops_applies_iteration_state(loop_graph) -> None:
    graph, _ = loop_graph
    loop_key = detect_loops(graph)[0].id
    (loop,) = detect_loops(graph, {loop_key: 4})
    assert loop.iterations == 4


def test_detect_loops_ignores_cycles_unreachable_from_input(loop_graph) -> None:
    graph, ids = loop_graph
    graph.disconnect(f"edge_{ids['input']}_{ids['stake']}")
    assert detect_loops(graph) == []


def test_detect_loops_on_acyclic_graph(eth_input) -> None:
    graph, inp = eth_input
    graph.connect(inp, graph.add_block("stake"))
    assert detect_loops(graph) == []


def test_loop_iterations_geometric_series() -> None:
    values, total, leverage = calculate_loop_iterations(1000.0, 0.7, 3)
    assert values == pytest.approx([1000.0, 700.0, 490.0])
    assert total == pytest.approx(2190.0)
    assert leverage == pytest.approx(2.19)


def test_loop_iterations_accept_per_iteration_schedule() -> None:
    values, _, leverage = calculate_loop_iterations(100.0, [0.5, 0.8], 3)
    assert values == pytest.approx([100.0, 50.0, 40.0])
    assert leverage == pytest.approx(1.9)


def test_loop_iterations_reject_zero_passes() -> None:
    with pytest.raises(ValueError):
        calculate_loop_iterations(100.0, 0.7, 0)


def test_health_factors_strictly_decrease_above_floor() -> None:
    series = calculate_health_factors(1.0, 0.7, 82.5, 3)
    hfs = [h.health_factor for h in series]
    assert all(math.isfinite(hf) for hf in hfs)
    assert hfs[0] == pytest.approx(1.7 * 0.825 / 0.7)
    assert hfs[1] == pytest.approx(2.19 * 0.825 / 1.19)
    assert hfs[2] == pytest.approx(2.533 * 0.825 / 1.533)
    assert hfs[0] > hfs[1] > hfs[2]
    floor = 82.5 / (100 * 0.7)
    assert all(hf > floor for hf in hfs)
    assert [h.debt for h in series] == pytest.approx([0.7, 1.19, 1.533])
    assert series[-1].collateral == pytest.approx(2.533)


def test_health_factors_first_pass_already_borrows() -> None:
    (first,) = calculate_health_factors(1000.0, 0.7, 80.0, 1)
    assert first.iteration == 1
    assert first.debt == pytest.approx(700.0)
    assert first.collateral == pytest.approx(1700.0)
    assert first.health_factor == pytest.approx(1700.0 * 0.8 / 700.0)


def test_health_factors_without_borrowing_are_infinite() -> None:
    series = calculate_health_factors(1000.0, 0.0, 80.0, 2)
    assert all(math.isinf(h.health_factor) for h in series)
    assert all(h.debt == 0.0 for h in series)


def test_health_factors_follow_threshold_schedule() -> None:
    series = calculate_health_factors(1.0, 0.5, [80.0, 80.0, 60.0], 3)
    assert series[2].health_factor == pytest.approx(1.875 * 0.6 / 0.875)


def test_liquidation_price_cases() -> None:
    assert liquidation_price(3300.0, 2.19, 1.19, 82.5) == pytest.approx(3300.0 * 1.19 / (2.19 * 0.825))
    assert liquidation_price(3300.0, 1.0, 0.0, 82.5) is None
    assert liquidation_price(None, 2.0, 1.0, 82.5) is None


def test_analyze_loop_scales_entry_value(loop_graph) -> None:
    graph, ids = loop_graph
    feeds = FeedSnapshot(prices={"ETH": 3300.0})
    loop_key = detect_loops(graph)[0].id
    (loop,) = detect_loops(graph, {loop_key: 3})
    analysis = analyze_loop(graph, loop, propagate(graph, feeds), feeds)

    assert analysis.ltv == pytest.approx(0.7)
    assert analysis.liquidation_threshold == 82.5
    assert analysis.initial_value == pytest.approx(3300.0)
    assert analysis.effective_leverage == pytest.approx(2.19)
    assert analysis.total_value == pytest.approx(3300.0 * 2.19)
    assert analysis.health_factor == pytest.approx(2.533 * 0.825 / 1.533)
    assert analysis.debt == pytest.approx(3300.0 * 1.533)
    assert analysis.liquidation_price == pytest.approx(3300.0 * 1.533 / (2.533 * 0.825))


def test_analyze_loop_includes_edge_fractions(loop_graph) -> None:
    graph, ids = loop_graph
    graph.set_edge_flow_percent(f"edge_{ids['borrow']}_{ids['stake']}", 50.0)
    feeds = FeedSnapshot(prices={"ETH": 3300.0})
    (loop,) = detect_loops(graph)
    analysis = analyze_loop(graph, loop, propagate(graph, feeds), feeds)
    assert analysis.ltv == pytest.approx(0.35)


def test_single_pass_loop_carries_its_borrow(loop_graph) -> None:
    graph, _ = loop_graph
    feeds = FeedSnapshot(prices={"ETH": 3300.0})
    (loop,) = detect_loops(graph)
    analysis = analyze_loop(graph, loop, propagate(graph, feeds), feeds)
    assert analysis.effective_leverage == 1.0
    assert analysis.debt == pytest.approx(2310.0)
    assert analysis.health_factor == pytest.approx(1.7 * 0.825 / 0.7)
    assert analysis.liquidation_price == pytest.approx(3300.0 * 0.7 / (1.7 * 0.825))


def test_analyze_loop_rejects_too_many_iterations(loop_graph) -> None:
    graph, _ = loop_graph
    feeds = FeedSnapshot(prices={"ETH": 3300.0})
    loop_key = detect_loops(graph)[0].id
    (loop,) = detect_loops(graph, {loop_key: 11})
    with pytest.raises(ValueError):
        analyze_loop(graph, loop, propagate(graph, feeds), feeds, EngineConfig(max_loop_iterations=10))
