"""
TradingDesk - Agent Roles & Topology

The desk is a fixed four-tier tree:

    ShortTerm ─┐
    LongTerm  ─┼→ TechManager ─┐
    Quant     ─┘               ├→ RiskManager → CEO
    OnChain   ─┬→ FundManager ─┘
    Macro     ─┘

The tree is data: the orchestrator only ever asks `INPUTS[role]`.
"""

from __future__ import annotations

from enum import Enum


class AgentRole(str, Enum):
    """The nine analysis units."""

    SHORT_TERM = "SHORT_TERM_ANALYST"
    LONG_TERM = "LONG_TERM_ANALYST"
    QUANT = "QUANT_ANALYST"
    ON_CHAIN = "ON_CHAIN_ANALYST"
    MACRO = "MACRO_ANALYST"
    TECH_MANAGER = "TECHNICAL_MANAGER"
    FUND_MANAGER = "FUNDAMENTAL_MANAGER"
    RISK_MANAGER = "RISK_MANAGER"
    CEO = "CEO"


TIERS: tuple[tuple[AgentRole, ...], ...] = (
    (
        AgentRole.SHORT_TERM,
        AgentRole.LONG_TERM,
        AgentRole.QUANT,
        AgentRole.ON_CHAIN,
        AgentRole.MACRO,
    ),
    (AgentRole.TECH_MANAGER, AgentRole.FUND_MANAGER),
    (AgentRole.RISK_MANAGER,),
    (AgentRole.CEO,),
)

PARENT: dict[AgentRole, AgentRole] = {
    AgentRole.SHORT_TERM: AgentRole.TECH_MANAGER,
    AgentRole.LONG_TERM: AgentRole.TECH_MANAGER,
    AgentRole.QUANT: AgentRole.TECH_MANAGER,
    AgentRole.ON_CHAIN: AgentRole.FUND_MANAGER,
    AgentRole.MACRO: AgentRole.FUND_MANAGER,
    AgentRole.TECH_MANAGER: AgentRole.RISK_MANAGER,
    AgentRole.FUND_MANAGER: AgentRole.RISK_MANAGER,
    AgentRole.RISK_MANAGER: AgentRole.CEO,
}


def _invert(parents: dict[AgentRole, AgentRole]) -> dict[AgentRole, tuple[AgentRole, ...]]:
    children: dict[AgentRole, list[AgentRole]] = {role: [] for role in AgentRole}
    for child, parent in parents.items():
        children[parent].append(child)
    return {role: tuple(kids) for role, kids in children.items()}


INPUTS: dict[AgentRole, tuple[AgentRole, ...]] = _invert(PARENT)

TERMINAL_ROLE = AgentRole.CEO


def tier_of(role: AgentRole) -> int:
    """1-based tier index of a role."""
    for index, tier in enumerate(TIERS, start=1):
        if role in tier:
            return index
    raise ValueError(f"Unknown role: {role!r}")


def inputs_of(role: AgentRole) -> tuple[AgentRole, ...]:
    """Roles whose reports feed `role`, in declaration order."""
    return INPUTS[role]
