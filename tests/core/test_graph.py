import pytest

from strategy_lab.core import (
    BorrowConfig,
    CycleRejected,
    DuplicateEdge,
    Graph,
    InvalidConnection,
    SelfLoopOnNonLoopBlock,
    StakeConfig,
    SwapConfig,
    UnknownBlock,
    UnknownConfigField,
    UnknownEdge,
)


@pytest.fixture
def chain() -> tuple[Graph, list[str]]:
    """Input -> Stake -> Lend -> Borrow without any loop edge."""

    graph = Graph()
    ids = [graph.add_block(kind) for kind in ("input", "stake", "lend", "borrow")]
    for source, target in zip(ids, ids[1:]):
        graph.connect(source, target)
    return graph, ids


def test_add_block_assigns_ids_and_default_config() -> None:
    graph = Graph()
    first = graph.add_block("input")
    second = graph.add_block("stake", (10, 20))
    assert first != second
    assert graph.block(second).position == (10.0, 20.0)
    assert isinstance(graph.block(second).config, StakeConfig)
    assert graph.block(second).label == "Stake"


def test_add_block_rejects_unknown_kind() -> None:
    with pytest.raises(ValueError):
        Graph().add_block("bridge")


def test_connect_builds_edge_id_from_endpoints(chain) -> None:
    graph, (inp, stake, *_) = chain
    edge = graph.find_edge(inp, stake)
    assert edge is not None
    assert edge.id == f"edge_{inp}_{stake}"
    assert edge.flow_percent == 100.0


def test_connect_without_percent_splits_evenly() -> None:
    graph = Graph()
    src = graph.add_block("input")
    targets = [graph.add_block("stake") for _ in range(3)]
    for target in targets:
        graph.connect(src, target)
    assert [e.flow_percent for e in graph.outgoing(src)] == [33.3, 33.3, 33.3]


def test_connect_with_explicit_percent_leaves_siblings(chain) -> None:
    graph, (inp, stake, *_) = chain
    other = graph.add_block("stake")
    graph.connect(inp, other, 40.0)
    assert graph.find_edge(inp, stake).flow_percent == 100.0
    assert graph.find_edge(inp, other).flow_percent == 40.0


def test_connect_rejections_leave_graph_unchanged(chain) -> None:
    graph, (inp, stake, lend, borrow) = chain
    before = graph.to_dict()
    revision = graph.revision

    with pytest.raises(SelfLoopOnNonLoopBlock):
        graph.connect(stake, stake)
    with pytest.raises(DuplicateEdge):
        graph.connect(inp, stake)
    with pytest.raises(InvalidConnection):
        graph.connect(stake, inp)
    with pytest.raises(CycleRejected):
        graph.connect(lend, stake)
    with pytest.raises(UnknownBlock):
        graph.connect(inp, "missing")
    with pytest.raises(ValueError):
        graph.connect(borrow, graph.add_block("swap"), 150.0)

    assert graph.find_edge(lend, stake) is None
    assert len(graph.edges) == len(before["edges"])
    assert graph.revision == revision + 1  # only the swap block was added


def test_leverage_loop_through_borrow_is_accepted(chain) -> None:
    graph, (_, stake, _, borrow) = chain
    edge_id = graph.connect(borrow, stake)
    assert graph.edge(edge_id).target == stake


def test_remove_block_cascades_edges(chain) -> None:
    graph, (inp, stake, lend, borrow) = chain
    removed = graph.remove_block(stake)
    assert sorted(removed) == sorted([f"edge_{inp}_{stake}", f"edge_{stake}_{lend}"])
    for edge in graph.edges:
        assert stake not in (edge.source, edge.target)
    assert not graph.is_configured(lend)


def test_update_block_config_validates_and_rejects_unknown_fields(chain) -> None:
    graph, (_, _, _, borrow) = chain
    graph.update_block_config(borrow, ltv_percent=50.0)
    assert graph.block(borrow).config == BorrowConfig(asset="ETH", ltv_percent=50.0)

    with pytest.raises(ValueError):
        graph.update_block_config(borrow, ltv_percent=120.0)
    with pytest.raises(UnknownConfigField):
        graph.update_block_config(borrow, slippage=1.0)
    assert graph.block(borrow).config.ltv_percent == 50.0


def test_missing_required_field_marks_block_invalid(chain) -> None:
    graph, (_, stake, _, _) = chain
    graph.update_block_config(stake, protocol=None)
    assert not graph.block(stake).is_valid
    assert graph.block(stake).config.missing_fields() == ["protocol"]


def test_swap_from_asset_filled_on_connect(chain) -> None:
    graph, (_, _, _, borrow) = chain
    swap = graph.add_block("swap")
    graph.connect(borrow, swap)
    assert graph.block(swap).config == SwapConfig(from_asset="ETH")


def test_set_edge_flow_percent_never_touches_siblings() -> None:
    graph = Graph()
    src = graph.add_block("input")
    a, b = graph.add_block("stake"), graph.add_block("lend")
    ea = graph.connect(src, a)
    eb = graph.connect(src, b)
    graph.set_edge_flow_percent(ea, 80.0)
    assert graph.edge(ea).flow_percent == 80.0
    assert graph.edge(eb).flow_percent == 50.0
    with pytest.raises(UnknownEdge):
        graph.set_edge_flow_percent("edge_nope", 10.0)


def test_revision_increments_on_every_mutation(chain) -> None:
    graph, (inp, stake, *_) = chain
    start = graph.revision
    graph.move_block(inp, (5, 5))
    graph.set_block_label(stake, "EtherFi")
    graph.disconnect(f"edge_{inp}_{stake}")
    assert graph.revision == start + 3


def test_is_configured_rules(chain) -> None:
    graph, (inp, stake, *_) = chain
    lonely = graph.add_block("lend")
    assert graph.is_configured(inp)
    assert graph.is_configured(stake)
    assert not graph.is_configured(lonely)


def test_snapshot_round_trip_preserves_structure(chain) -> None:
    graph, (_, stake, _, borrow) = chain
    graph.connect(borrow, stake)
    clone = graph.copy()
    assert clone.to_dict() == graph.to_dict()
    clone.update_block_config(borrow, ltv_percent=10.0)
    assert graph.block(borrow).config.ltv_percent == 70.0


def test_connect_refuses_colliding_edge_ids() -> None:
    graph = Graph()
    for block_id, kind in (("a_b", "input"), ("a", "input"), ("c", "stake"), ("b_c", "stake")):
        graph.add_block(kind, block_id=block_id)
    graph.connect("a_b", "c")
    with pytest.raises(InvalidConnection):
        graph.connect("a", "b_c")
    assert graph.edge("edge_a_b_c").source == "a_b"
    assert len(graph.edges) == 1
