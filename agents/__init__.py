"""
TradingDesk - Multi-Agent Desk Package

LangGraph-powered nine-agent trading desk in four tiers:
    - Analysts:     ShortTerm, LongTerm, Quant, OnChain, Macro
    - Managers:     Technical, Fundamental
    - Risk Manager: Risk/reward gate
    - CEO:          Final structured decision

Usage:
    from agents.providers import create_provider
    from agents.orchestrator import PipelineOrchestrator
"""

from agents.roles import AgentRole, INPUTS, TIERS
from agents.state import AgentState, AgentStatus
from agents.orchestrator import OrchestratorSnapshot, PipelineOrchestrator

__all__ = [
    "AgentRole",
    "AgentState",
    "AgentStatus",
    "INPUTS",
    "TIERS",
    "OrchestratorSnapshot",
    "PipelineOrchestrator",
]
