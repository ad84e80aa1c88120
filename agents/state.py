"""
TradingDesk - Agent State Schema

Per-agent display state, the legal status transitions, and the typed run
state passed between the LangGraph tier nodes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, TypedDict

from agents.roles import AgentRole
from tradingdesk.exceptions import InvalidTransitionError


class AgentStatus(str, Enum):
    IDLE = "IDLE"
    THINKING = "THINKING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


# Reset to IDLE happens at run start and is not a transition
ALLOWED_TRANSITIONS: dict[AgentStatus, frozenset[AgentStatus]] = {
    AgentStatus.IDLE: frozenset({AgentStatus.THINKING}),
    AgentStatus.THINKING: frozenset({AgentStatus.COMPLETED, AgentStatus.ERROR}),
    AgentStatus.COMPLETED: frozenset(),
    AgentStatus.ERROR: frozenset(),
}


@dataclass(frozen=True)
class AgentState:
    """What observers see for one agent."""

    role: AgentRole
    display_name: str
    display_description: str
    status: AgentStatus = AgentStatus.IDLE
    output: str | None = None

    def transition(self, status: AgentStatus, output: str | None = None) -> "AgentState":
        """
        Return the state after moving to `status`.

        Output is only replaced when a new one is given.

        Raises:
            InvalidTransitionError: `status` is not reachable from the current one
        """
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"{self.role.value}: {self.status.value} -> {status.value} is not allowed"
            )
        return AgentState(
            role=self.role,
            display_name=self.display_name,
            display_description=self.display_description,
            status=status,
            output=output if output is not None else self.output,
        )


class DeskRunState(TypedDict, total=False):
    """
    Shared state passed through the LangGraph StateGraph.

    Fields:
        symbol:          Instrument being analyzed
        candles:         Candle snapshot taken at run start
        signals:         SupplementalMarketSignals (may be None)

        tier1_reports:   Analyst report per role, sentinel on failure
        tier2_reports:   Manager report per role, sentinel on failure
        risk_output:     Raw Risk Manager output or its placeholder
        ceo_inputs:      Report map handed to the CEO
        decision:        Parsed TradingDecision, None if the CEO failed
    """

    symbol: str
    candles: list[Any]
    signals: Any

    tier1_reports: dict[str, str]
    tier2_reports: dict[str, str]
    risk_output: str
    ceo_inputs: dict[str, str]
    decision: Any
