"""
TradingDesk - Logging

Every component logs through structlog with snake_case event names
(``selection_loaded``, ``agent_isolated``, ``decision_parsed``) and keyword
fields instead of formatted messages. Each logger carries a ``component``
field (ingestion, agents or pipeline) so a single desk run can be followed
across the market-data side and the agent tiers.

``setup_logging`` is called once by the desk runner. Tests never call it,
so structlog's defaults apply there.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.typing import Processor

from tradingdesk.config import settings

# HTTP client and websocket libraries log every request and frame at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "websockets")


def _renderer(debug: bool) -> list[Processor]:
    if debug:
        return [structlog.dev.ConsoleRenderer(colors=True)]
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]


def setup_logging() -> None:
    """Route desk events to stdout: coloured lines with TRADINGDESK_DEBUG=true, JSON otherwise."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        *_renderer(settings.debug),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None, **context: Any) -> structlog.BoundLogger:
    """structlog logger for `name`, pre-bound with `context` when given."""
    logger = structlog.get_logger(name)
    return logger.bind(**context) if context else logger


def get_ingestion_logger() -> structlog.BoundLogger:
    """Fetch cascade, Etherscan client, live feed and instrument session."""
    return get_logger("tradingdesk.ingestion", component="ingestion")


def get_agent_logger() -> structlog.BoundLogger:
    """LLM providers and the per-agent task runner."""
    return get_logger("tradingdesk.agents", component="agents")


def get_pipeline_logger() -> structlog.BoundLogger:
    """Orchestrator, tier graph and decision finalizer."""
    return get_logger("tradingdesk.pipeline", component="pipeline")
