import sys
from pathlib import Path

import pytest

# Ensure the package is importable without installation when running tests locally
pkg_src = Path(__file__).resolve().parents[1] / "src"
if str(pkg_src) not in sys.path:
    sys.path.insert(0, str(pkg_src))

from strategy_lab.core import Graph, InputConfig  # noqa: E402
from strategy_lab.feeds import FeedSnapshot, catalog_snapshot  # noqa: E402

ETH_PRICE = 3300.0


@pytest.fixture
def feeds() -> FeedSnapshot:
    """ETH at 3300 USD with the catalog's reference APYs."""

    return catalog_snapshot({"ETH": ETH_PRICE, "eETH": ETH_PRICE, "weETH": ETH_PRICE})


@pytest.fixture
def eth_input() -> tuple[Graph, str]:
    """Graph holding a single 100 ETH Input block."""

    graph = Graph()
    block_id = graph.add_block("input", config=InputConfig(asset="ETH", amount=100.0))
    return graph, block_id
