"""
TradingDesk - LangGraph Desk Graph

Defines the StateGraph that runs the four tiers strictly in sequence.
Fan-out happens inside each tier node; the graph edges are the joins.

Graph topology:
    START → tier_1 (5 analysts) → tier_2 (2 managers) → tier_3 (risk) → tier_4 (CEO) → END
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

from langgraph.graph import END, StateGraph

from agents.state import DeskRunState

TierNode = Callable[[DeskRunState], Awaitable[dict[str, Any]]]

TIER_NODES = ("tier_1", "tier_2", "tier_3", "tier_4")


class DeskTiers(Protocol):
    """Anything exposing one coroutine per tier, e.g. the orchestrator."""

    async def tier_1(self, state: DeskRunState) -> dict[str, Any]: ...
    async def tier_2(self, state: DeskRunState) -> dict[str, Any]: ...
    async def tier_3(self, state: DeskRunState) -> dict[str, Any]: ...
    async def tier_4(self, state: DeskRunState) -> dict[str, Any]: ...


def create_desk_graph(tiers: DeskTiers) -> Any:
    """
    Build and compile the desk StateGraph.

    Args:
        tiers: Provider of the tier node coroutines

    Returns:
        Compiled LangGraph runnable (use `ainvoke`)
    """
    graph = StateGraph(DeskRunState)

    # ── Add nodes ──────────────────────────────────────────────
    for name in TIER_NODES:
        node: TierNode = getattr(tiers, name)
        graph.add_node(name, node)

    # ── Strict tier ordering ───────────────────────────────────
    graph.set_entry_point(TIER_NODES[0])
    for upstream, downstream in zip(TIER_NODES, TIER_NODES[1:]):
        graph.add_edge(upstream, downstream)

    # ── End ────────────────────────────────────────────────────
    graph.add_edge(TIER_NODES[-1], END)

    return graph.compile()
