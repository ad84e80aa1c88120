"""
TradingDesk - Agent Task Runner

Runs one analysis unit against the selected provider with bounded retry:
three attempts, waiting 1s then 2s between them. A missing credential is
rejected before the first attempt and never retried.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Sequence

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

from agents.prompts import build_prompt
from agents.providers import AgentProvider, CompletionRequest
from agents.roles import AgentRole, TERMINAL_ROLE, tier_of
from tradingdesk.config import PipelineConfig, settings
from tradingdesk.logging import get_agent_logger
from tradingdesk.models import Candle, TradingDecision, UserPosition

logger = get_agent_logger()


class AgentTaskRunner:
    """
    Executes single agent tasks. Holds no shared state besides its
    configuration, so one runner can serve a whole tier concurrently.
    """

    def __init__(
        self,
        provider: AgentProvider,
        symbol: str = "",
        language: str = "en",
        config: PipelineConfig | None = None,
        user_position: UserPosition | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.provider = provider
        self.symbol = symbol
        self.language = language
        self.config = config or settings.pipeline
        self.user_position = user_position
        self._sleep = sleep

    def temperature_for(self, role: AgentRole) -> float:
        return self.config.temperatures.get(role.value, 0.7)

    def build_request(
        self,
        role: AgentRole,
        candles: Sequence[Candle],
        reports: dict[str, str] | None = None,
        extra_context: str | None = None,
        temperature: float | None = None,
    ) -> CompletionRequest:
        position = None
        if self.config.user_position_context and tier_of(role) > 1:
            position = self.user_position

        prompt = build_prompt(
            role,
            candles,
            symbol=self.symbol,
            language=self.language,
            reports=reports,
            extra_context=extra_context,
            user_position=position,
        )
        return CompletionRequest(
            role=role,
            prompt=prompt,
            temperature=self.temperature_for(role) if temperature is None else temperature,
            structured_schema=TradingDecision if role is TERMINAL_ROLE else None,
            web_search=role is AgentRole.MACRO and self.config.macro_web_search,
        )

    async def run(
        self,
        role: AgentRole,
        candles: Sequence[Candle],
        reports: dict[str, str] | None = None,
        extra_context: str | None = None,
        temperature: float | None = None,
    ) -> str:
        """
        Run one agent and return its text.

        Raises:
            MissingCredentialError: no API key, raised before any attempt
            Exception: the last provider error once all attempts failed
        """
        self.provider.require_credential()
        request = self.build_request(role, candles, reports, extra_context, temperature)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(multiplier=self.config.backoff_base_seconds),
            before_sleep=self._log_retry(role),
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    text = await self.provider.complete(request)
        except Exception as e:
            logger.error(
                "agent_failed",
                role=role.value,
                provider=self.provider.name,
                attempts=self.config.max_attempts,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        logger.debug("agent_completed", role=role.value, chars=len(text))
        return text

    def _log_retry(self, role: AgentRole) -> Callable[[RetryCallState], None]:
        def log(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "agent_attempt_failed",
                role=role.value,
                attempt=retry_state.attempt_number,
                max_attempts=self.config.max_attempts,
                retry_in=retry_state.next_action.sleep if retry_state.next_action else None,
                error=str(error),
            )
        return log
