"""
TradingDesk - Pipeline Orchestrator

Runs the nine-agent desk once per trigger:

    supplemental signals → tier 1 (fan-out) → tier 2 (fan-in per manager)
    → tier 3 (risk) → tier 4 (CEO) → decision

Failures stay inside the agent that raised them. Downstream agents get a
sentinel report instead, so every prompt is built from a complete set of
upstream reports.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, Sequence

from agents.finalizer import format_summary, parse_decision
from agents.graph import create_desk_graph
from agents.locales import translations
from agents.providers import AgentProvider
from agents.roles import INPUTS, TIERS, AgentRole
from agents.runner import AgentTaskRunner
from agents.state import AgentState, AgentStatus, DeskRunState
from tradingdesk.config import PipelineConfig, settings
from tradingdesk.exceptions import TradingDeskError
from tradingdesk.ingestion.market_data import MarketDataFetcher
from tradingdesk.logging import get_pipeline_logger
from tradingdesk.models import Candle, SupplementalMarketSignals, TradingDecision, UserPosition

logger = get_pipeline_logger()

ANALYST_UNAVAILABLE = "Analysis unavailable due to error."
MANAGER_UNAVAILABLE = "Manager report unavailable due to error."
RISK_UNAVAILABLE = "Risk Analysis Failed"


class MarketView(Protocol):
    """What the orchestrator needs from the market side (an InstrumentSession)."""

    symbol: str | None

    def snapshot(self) -> list[Candle]: ...


@dataclass
class OrchestratorSnapshot:
    """Read-only view for observers."""

    agents: list[AgentState]
    in_progress: bool
    decision: TradingDecision | None
    error: str | None
    signals: SupplementalMarketSignals | None = None


def gather_inputs(role: AgentRole, reports: dict[str, str], sentinel: str) -> dict[str, str]:
    """Report map for `role`, restricted to its configured upstream roles."""
    return {
        child.value: reports.get(child.value, sentinel)
        for child in INPUTS[role]
    }


@dataclass
class _RunContext:
    runner: AgentTaskRunner
    candles: list[Candle] = field(default_factory=list)


class PipelineOrchestrator:
    """
    Owner of the agent state map and the single in-progress flag.

    Agent states change only through `transition` (and the reset at run
    start). Observers can register `on_change` to receive a snapshot after
    every change.
    """

    def __init__(
        self,
        provider: AgentProvider,
        market: MarketView,
        fetcher: MarketDataFetcher | None = None,
        language: str | None = None,
        config: PipelineConfig | None = None,
        user_position: UserPosition | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_change: Callable[[OrchestratorSnapshot], Any] | None = None,
    ) -> None:
        self.provider = provider
        self.market = market
        self.fetcher = fetcher
        self.config = config or settings.pipeline
        self.language = language or self.config.language
        self.user_position = user_position
        self.on_change = on_change
        self._sleep = sleep

        self._agents: dict[AgentRole, AgentState] = self._fresh_agents()
        self._in_progress = False
        self._run: _RunContext | None = None

        self.final_decision: TradingDecision | None = None
        self.error: str | None = None
        self.signals: SupplementalMarketSignals | None = None

        self._graph = create_desk_graph(self)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def agents(self) -> list[AgentState]:
        return [self._agents[role] for tier in TIERS for role in tier]

    def agent(self, role: AgentRole) -> AgentState:
        return self._agents[role]

    def snapshot(self) -> OrchestratorSnapshot:
        return OrchestratorSnapshot(
            agents=self.agents,
            in_progress=self._in_progress,
            decision=self.final_decision,
            error=self.error,
            signals=self.signals,
        )

    def transition(self, role: AgentRole, status: AgentStatus, output: str | None = None) -> AgentState:
        """The only way an agent's status changes during a run."""
        new_state = self._agents[role].transition(status, output)
        self._agents[role] = new_state
        logger.debug("agent_transition", role=role.value, status=status.value)
        self._notify()
        return new_state

    def _fresh_agents(self) -> dict[AgentRole, AgentState]:
        t = translations(self.language)
        return {
            role: AgentState(
                role=role,
                display_name=t["agent_names"][role],
                display_description=t["agent_descs"][role],
            )
            for tier in TIERS
            for role in tier
        }

    def _notify(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self.snapshot())
        except Exception as e:
            # Observers never affect the run
            logger.warning("observer_failed", error=str(e), error_type=type(e).__name__)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def start_analysis(self) -> TradingDecision | None:
        """
        Run the desk once on the current candle snapshot.

        No-op when there is no market data or a run is already in progress.
        Returns the decision, or None when no decision was produced.
        """
        candles = self.market.snapshot()
        if not candles or self._in_progress:
            logger.info(
                "analysis_skipped",
                reason="in_progress" if self._in_progress else "no_market_data",
            )
            return None

        t = translations(self.language)
        if not self.provider.has_credential:
            self.error = t["missing_key"].format(provider=self.provider.name)
            logger.warning("analysis_rejected", reason="missing_credential", provider=self.provider.name)
            self._notify()
            return None

        # Claimed before the first await so a concurrent trigger sees it
        self._in_progress = True
        symbol = self.market.symbol or ""

        try:
            self.error = None
            self.final_decision = None
            self.signals = None
            self._agents = self._fresh_agents()
            self._run = _RunContext(
                runner=AgentTaskRunner(
                    self.provider,
                    symbol=symbol,
                    language=self.language,
                    config=self.config,
                    user_position=self.user_position,
                    sleep=self._sleep,
                ),
                candles=list(candles),
            )
            self._notify()
            logger.info("analysis_started", symbol=symbol, provider=self.provider.name, candles=len(candles))

            self.signals = await self._fetch_signals(symbol)

            initial_state: DeskRunState = {
                "symbol": symbol,
                "candles": list(candles),
                "signals": self.signals,
            }
            result = await self._graph.ainvoke(initial_state)

            self.final_decision = result.get("decision")
            logger.info(
                "analysis_complete",
                symbol=symbol,
                action=self.final_decision.action.value if self.final_decision else None,
                failed_agents=[a.role.value for a in self.agents if a.status is AgentStatus.ERROR],
            )
            return self.final_decision

        except Exception as e:
            logger.error("analysis_failed", symbol=symbol, error=str(e), error_type=type(e).__name__)
            self.error = t["run_failed"].format(error=e)
            return None

        finally:
            self._in_progress = False
            self._run = None
            self._notify()

    async def _fetch_signals(self, symbol: str) -> SupplementalMarketSignals | None:
        if not self.config.supplemental_signals or self.fetcher is None:
            return None
        try:
            return await self.fetcher.fetch_supplemental_signals(symbol)
        except Exception as e:
            logger.warning("supplemental_signals_failed", symbol=symbol, error=str(e))
            return None

    async def _pace(self) -> None:
        if self.config.tier_delay_ms > 0:
            await self._sleep(self.config.tier_delay_ms / 1000)

    def _context(self) -> _RunContext:
        if self._run is None:
            raise TradingDeskError("No analysis run in progress")
        return self._run

    async def _run_agent(
        self,
        role: AgentRole,
        reports: dict[str, str] | None = None,
        extra_context: str | None = None,
    ) -> str | None:
        """Run one agent with failure isolation; None means it ended in ERROR."""
        run = self._context()
        try:
            output = await run.runner.run(
                role,
                run.candles,
                reports=reports,
                extra_context=extra_context,
            )
        except Exception as e:
            logger.warning("agent_isolated", role=role.value, error=str(e))
            self.transition(role, AgentStatus.ERROR, translations(self.language)["failed"])
            return None

        self.transition(role, AgentStatus.COMPLETED, output)
        return output

    async def _fan_out(
        self,
        roles: Sequence[AgentRole],
        reports_for: Callable[[AgentRole], dict[str, str] | None],
        extra_for: Callable[[AgentRole], str | None] = lambda _role: None,
    ) -> dict[str, str | None]:
        for role in roles:
            self.transition(role, AgentStatus.THINKING)

        outputs = await asyncio.gather(*(
            self._run_agent(role, reports=reports_for(role), extra_context=extra_for(role))
            for role in roles
        ))
        return {role.value: output for role, output in zip(roles, outputs)}

    # ------------------------------------------------------------------
    # Tier nodes (wired by agents.graph)
    # ------------------------------------------------------------------

    async def tier_1(self, state: DeskRunState) -> dict[str, Any]:
        signals: SupplementalMarketSignals | None = state.get("signals")
        extra: dict[AgentRole, str] = {}
        if signals is not None:
            extra = {
                AgentRole.SHORT_TERM: signals.order_book_context(),
                AgentRole.QUANT: signals.funding_context(),
                AgentRole.ON_CHAIN: signals.gas_context(),
            }

        outputs = await self._fan_out(
            TIERS[0],
            reports_for=lambda _role: None,
            extra_for=lambda role: extra.get(role) or None,
        )
        return {"tier1_reports": _with_sentinel(outputs, ANALYST_UNAVAILABLE)}

    async def tier_2(self, state: DeskRunState) -> dict[str, Any]:
        await self._pace()
        tier1 = state.get("tier1_reports", {})

        outputs = await self._fan_out(
            TIERS[1],
            reports_for=lambda role: gather_inputs(role, tier1, ANALYST_UNAVAILABLE),
        )
        return {"tier2_reports": _with_sentinel(outputs, MANAGER_UNAVAILABLE)}

    async def tier_3(self, state: DeskRunState) -> dict[str, Any]:
        await self._pace()
        risk_inputs = gather_inputs(
            AgentRole.RISK_MANAGER, state.get("tier2_reports", {}), MANAGER_UNAVAILABLE
        )

        outputs = await self._fan_out(TIERS[2], reports_for=lambda _role: risk_inputs)
        risk_output = outputs[AgentRole.RISK_MANAGER.value] or RISK_UNAVAILABLE

        # The CEO sees everything the Risk Manager saw plus its verdict
        ceo_inputs = {**risk_inputs, AgentRole.RISK_MANAGER.value: risk_output}
        return {"risk_output": risk_output, "ceo_inputs": ceo_inputs}

    async def tier_4(self, state: DeskRunState) -> dict[str, Any]:
        await self._pace()
        run = self._context()
        t = translations(self.language)
        ceo = AgentRole.CEO

        self.transition(ceo, AgentStatus.THINKING)
        try:
            raw = await run.runner.run(ceo, run.candles, reports=state.get("ceo_inputs", {}))
        except Exception as e:
            logger.error("ceo_failed", error=str(e))
            self.transition(ceo, AgentStatus.ERROR, t["ceo_unavailable"])
            return {"decision": None}

        try:
            decision = parse_decision(raw)
        except Exception as e:
            logger.error("decision_parse_crashed", error=str(e), error_type=type(e).__name__)
            decision = TradingDecision.fallback(f"Failed to parse CEO decision format ({e}).")
        self.final_decision = decision
        self.transition(ceo, AgentStatus.COMPLETED, format_summary(decision, self.language))
        return {"decision": decision}


def _with_sentinel(outputs: dict[str, str | None], sentinel: str) -> dict[str, str]:
    return {role: output if output is not None else sentinel for role, output in outputs.items()}
