import pytest

from strategy_lab.config import EngineConfig
from strategy_lab.core import CycleRejected
from strategy_lab.loops import loop_id
from strategy_lab.session import MAX_HISTORY_SIZE, StrategySession


@pytest.fixture
def session(feeds) -> StrategySession:
    return StrategySession(feeds)


def test_new_session_is_an_empty_state(session) -> None:
    assert not session.result.is_valid
    assert session.result.error_message
    assert not session.can_undo


def test_every_mutation_re_evaluates(session) -> None:
    inp = session.add_block("input")
    assert session.result.is_valid
    assert session.result.initial_value == pytest.approx(3300.0)

    lend = session.add_block("lend")
    session.connect(inp, lend)
    assert session.result.yield_sources[0].type == "supply"

    session.update_block_config(inp, amount=2.0)
    assert session.result.initial_value == pytest.approx(6600.0)


def test_failed_mutation_leaves_history_untouched(session) -> None:
    a = session.add_block("input")
    b = session.add_block("stake")
    c = session.add_block("lend")
    session.connect(a, b)
    session.connect(b, c)
    depth = len(session._undo)
    with pytest.raises(CycleRejected):
        session.connect(c, b)
    assert len(session._undo) == depth


def test_undo_and_redo_restore_graph(session) -> None:
    inp = session.add_block("input")
    stake = session.add_block("stake")
    edge = session.connect(inp, stake)

    assert session.undo()
    assert session.graph.find_edge(inp, stake) is None
    assert session.redo()
    assert session.graph.edge(edge).target == stake
    assert session.result.yield_sources


def test_new_mutation_clears_redo(session) -> None:
    session.add_block("input")
    session.undo()
    assert session.can_redo
    session.add_block("input")
    assert not session.can_redo
    assert not session.redo()


def test_history_is_bounded(session) -> None:
    for _ in range(MAX_HISTORY_SIZE + 5):
        session.add_block("stake")
    undone = 0
    while session.undo():
        undone += 1
    assert undone == MAX_HISTORY_SIZE
    assert len(session.graph) == 5


def test_loop_iterations_drive_leverage(session) -> None:
    session.load_template("leveraged-lst-2x")
    (analysis,) = session.result.loops
    assert session.result.leverage == pytest.approx(1.7)

    session.set_loop_iterations(analysis.loop.id, 3)
    assert session.result.leverage == pytest.approx(2.533)
    assert session.result.loops[0].effective_leverage == pytest.approx(2.19)
    session.undo()
    assert session.result.leverage == pytest.approx(1.7)


def test_set_loop_iterations_validates(session) -> None:
    session.load_template("leveraged-lst-2x")
    loop_id = session.result.loops[0].loop.id
    with pytest.raises(ValueError):
        session.set_loop_iterations(loop_id, 0)
    with pytest.raises(ValueError):
        session.set_loop_iterations(loop_id, session.config.max_loop_iterations + 1)
    with pytest.raises(KeyError):
        session.set_loop_iterations("loop:nope", 2)


def test_breaking_a_loop_drops_its_iteration_state(session) -> None:
    session.load_template("leveraged-lst-2x")
    loop_id = session.result.loops[0].loop.id
    session.set_loop_iterations(loop_id, 4)
    session.remove_block("template_borrow_1")
    assert session.loop_iterations == {}
    assert session.result.loops == ()


def test_update_feeds_re_evaluates_without_history(session, feeds) -> None:
    session.load_template("conservative-lst")
    depth = len(session._undo)
    result = session.update_feeds(feeds.with_prices({"ETH": 1650.0}))
    assert result.initial_value == pytest.approx(1650.0)
    assert len(session._undo) == depth


def test_clear_resets_to_empty_state(session) -> None:
    session.load_template("stablecoin-yield")
    session.clear()
    assert len(session.graph) == 0
    assert not session.result.is_valid
    session.undo()
    assert len(session.graph) == 2


def test_remove_block_drops_its_subtree_from_block_values(session) -> None:
    session.load_template("lst-lending")
    assert session.result.block_values["template_lend_1"].output_value_usd == pytest.approx(3300.0)

    session.remove_block("template_stake_1")
    values = session.result.block_values
    assert "template_stake_1" not in values
    assert set(values) == {"template_input_1", "template_lend_1"}
    assert values["template_lend_1"].output_value_usd == 0.0
    assert values["template_input_1"].output_value_usd == pytest.approx(3300.0)
    assert session.graph.edges == []


def test_loop_ids_follow_the_engine_search_bounds(feeds) -> None:
    session = StrategySession(feeds, EngineConfig(max_search_depth=3))
    session.load_template("leveraged-lst-2x")
    assert session.result.loops == ()
    hidden = loop_id(("template_stake_1", "template_lend_1", "template_borrow_1"))
    with pytest.raises(KeyError):
        session.set_loop_iterations(hidden, 2)
