"""Route validation: configuration, connection and token issues of a graph.

Issues never stop an evaluation. Errors mark blocks that contribute nothing
until fixed; warnings flag graphs that evaluate but probably not as intended.
"""

from __future__ import annotations

from collections.abc import Collection

from .allocation import outgoing_allocation
from .config import EngineConfig
from .core import Block, Edge, Graph, LendConfig, StakeConfig, ValidationIssue
from .protocols import ACCEPTED_ASSETS, WRAPPED_ASSETS, accepts_asset, staking_protocol
from .traversal import UpstreamFold, depth_first_search, origin_map


def _label(block: Block) -> str:
    return block.label or block.id


def inflow_assets(
    graph: Graph, skip_edges: Collection[str] | None = None
) -> dict[str, str | None]:
    """Asset entering each block, traced from the Input blocks' assets.

    Loop back edges are left out of the trace; ``skip_edges`` defaults to the
    ones found by a depth-first walk from the Input blocks.
    """

    if skip_edges is None:
        skip_edges = depth_first_search(graph).back_edge_ids

    def combine(block: Block, inflows: list[tuple[Edge, tuple[str | None, str | None]]]):
        entering = None
        for edge, (_, upstream_out) in inflows:
            if edge.flow_percent > 0 and upstream_out is not None:
                entering = upstream_out
                break
        hint = block.config.output_asset_hint
        return entering, hint if hint is not None else entering

    fold = UpstreamFold(graph, combine, on_cycle=(None, None), skip_edges=skip_edges)
    return {block_id: pair[0] for block_id, pair in fold.fold_all().items()}


def _token_issue(block: Block, asset: str, wanted: tuple[str, ...]) -> ValidationIssue:
    wrapped = WRAPPED_ASSETS.get(asset)
    if wrapped is not None and wrapped in wanted:
        fix = f"Wrap {asset} into {wrapped} before this block"
    else:
        fix = f"Add a swap block to convert {asset} to {wanted[0]}"
    return ValidationIssue(
        type="incompatible_tokens",
        message=f'Block "{_label(block)}" cannot accept {asset}',
        severity="warning",
        block_id=block.id,
        suggested_fix=fix,
    )


def check_token_compatibility(
    graph: Graph, skip_edges: Collection[str] | None = None
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    entering = inflow_assets(graph, skip_edges)
    for block in graph.blocks:
        asset = entering.get(block.id)
        cfg = block.config
        if asset is None:
            continue
        if isinstance(cfg, StakeConfig) and cfg.protocol is not None:
            protocol = staking_protocol(cfg.protocol)
            if protocol is not None and asset != protocol.input_asset:
                issues.append(_token_issue(block, asset, (protocol.input_asset,)))
        elif isinstance(cfg, LendConfig) and cfg.protocol is not None and not accepts_asset(cfg.protocol, asset):
            issues.append(_token_issue(block, asset, ACCEPTED_ASSETS[cfg.protocol]))
    return issues


def validate_graph(graph: Graph, *, config: EngineConfig | None = None) -> list[ValidationIssue]:
    """Every issue found in ``graph``, in block order.

    ``config`` bounds the cycle search the same way the evaluation does.
    """

    engine = config or EngineConfig()
    search = depth_first_search(
        graph, max_depth=engine.max_search_depth, max_cycles=engine.max_cycles
    )
    origins = origin_map(graph)
    issues: list[ValidationIssue] = []
    if len(graph) and not graph.blocks_of_kind("input"):
        issues.append(
            ValidationIssue(
                type="no_input",
                message="Strategy has no Input block",
                suggested_fix="Add an Input block with the capital to deploy",
            )
        )

    for block in graph.blocks:
        missing = block.config.missing_fields()
        if missing:
            issues.append(
                ValidationIssue(
                    type="missing_configuration",
                    message=f'Block "{_label(block)}" is missing {", ".join(missing)}',
                    block_id=block.id,
                    suggested_fix="Complete the block configuration",
                )
            )
        status = outgoing_allocation(graph, block.id)
        if status.is_over:
            issues.append(
                ValidationIssue(
                    type="over_allocation",
                    message=f'Block "{_label(block)}" sends out {status.total:.1f}% of its output',
                    severity="warning",
                    block_id=block.id,
                    suggested_fix="Lower the outgoing flow percentages to a total of 100%",
                )
            )
        if block.kind == "input":
            continue
        incoming = graph.incoming(block.id)
        if not incoming:
            if not graph.outgoing(block.id):
                issues.append(
                    ValidationIssue(
                        type="disconnected",
                        message=f'Block "{_label(block)}" is not connected to the strategy flow',
                        severity="warning",
                        block_id=block.id,
                    )
                )
            issues.append(
                ValidationIssue(
                    type="missing_connection",
                    message=f'Block "{_label(block)}" has no input connection',
                    block_id=block.id,
                    suggested_fix="Connect an output from another block to this block's input",
                )
            )
        elif not origins[block.id]:
            issues.append(
                ValidationIssue(
                    type="unreachable",
                    message=f'Block "{_label(block)}" is not fed by any Input block',
                    severity="warning",
                    block_id=block.id,
                )
            )

    for members, edge_ids in search.cycles:
        if any(graph.block(b).kind == "borrow" for b in members):
            continue
        issues.append(
            ValidationIssue(
                type="circular_flow",
                message="Cycle without a Borrow block: " + " -> ".join(members),
                edge_id=edge_ids[-1],
                suggested_fix="Remove one of the edges closing the cycle",
            )
        )

    issues.extend(check_token_compatibility(graph, search.back_edge_ids))
    return issues


__all__ = ["inflow_assets", "check_token_compatibility", "validate_graph"]
