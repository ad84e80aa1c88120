"""
TradingDesk - Data Models

Pydantic models for market data, supplemental signals and the desk's
final trading decision.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TradeAction(str, Enum):
    """Final action issued by the desk."""

    LONG = "LONG"
    SHORT = "SHORT"
    WAIT = "WAIT"


class PositionSide(str, Enum):
    """Side of an open user position."""

    LONG = "LONG"
    SHORT = "SHORT"


# =============================================================================
# Market Data
# =============================================================================

class Candle(BaseModel):
    """One OHLCV bar. `time` is the bar open time in epoch milliseconds."""

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    @classmethod
    def from_kline_row(cls, row: Sequence[Any]) -> "Candle":
        """
        Build a candle from a REST kline row.

        Binance format: [openTime, open, high, low, close, volume, closeTime, ...]
        """
        return cls(
            time=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
        )

    @classmethod
    def from_stream_kline(cls, k: dict[str, Any]) -> "Candle":
        """Build a candle from the `k` object of a kline stream event."""
        return cls(
            time=int(k["t"]),
            open=float(k["o"]),
            high=float(k["h"]),
            low=float(k["l"]),
            close=float(k["c"]),
            volume=float(k["v"]),
        )

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.time / 1000, tz=timezone.utc)

    @property
    def change_pct(self) -> float:
        """Close-to-open change percentage."""
        if self.open == 0:
            return 0.0
        return (self.close - self.open) / self.open * 100


class OrderBook(BaseModel):
    """Order book depth snapshot; levels are [price, quantity] strings."""

    model_config = ConfigDict(populate_by_name=True)

    last_update_id: int = Field(default=0, alias="lastUpdateId")
    bids: list[tuple[str, str]] = Field(default_factory=list)
    asks: list[tuple[str, str]] = Field(default_factory=list)


class FundingRate(BaseModel):
    """Perpetual funding snapshot from the premium index."""

    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    mark_price: str = Field(default="", alias="markPrice")
    last_funding_rate: str = Field(alias="lastFundingRate")
    next_funding_time: int = Field(alias="nextFundingTime")

    @property
    def next_funding_at(self) -> datetime:
        return datetime.fromtimestamp(self.next_funding_time / 1000, tz=timezone.utc)


class GasOracle(BaseModel):
    """Ethereum gas price tiers in gwei."""

    model_config = ConfigDict(populate_by_name=True)

    safe_gas_price: str = Field(alias="SafeGasPrice")
    propose_gas_price: str = Field(alias="ProposeGasPrice")
    fast_gas_price: str = Field(alias="FastGasPrice")
    suggest_base_fee: str = Field(default="", alias="suggestBaseFee")


class SupplementalMarketSignals(BaseModel):
    """Best-effort extra context fetched once per run."""

    order_book: OrderBook | None = None
    funding_rate: FundingRate | None = None
    gas_oracle: GasOracle | None = None

    def order_book_context(self, levels: int = 10) -> str:
        if not self.order_book:
            return ""
        bids = "\n".join(f"Price: {p}, Vol: {q}" for p, q in self.order_book.bids[:levels])
        asks = "\n".join(f"Price: {p}, Vol: {q}" for p, q in self.order_book.asks[:levels])
        return f"Top {levels} Bids:\n{bids}\nTop {levels} Asks:\n{asks}"

    def funding_context(self) -> str:
        if not self.funding_rate:
            return ""
        next_time = self.funding_rate.next_funding_at.strftime("%H:%M:%S UTC")
        return (
            f"Current Funding Rate: {self.funding_rate.last_funding_rate}\n"
            f"Next Funding Time: {next_time}"
        )

    def gas_context(self) -> str:
        if not self.gas_oracle:
            return ""
        g = self.gas_oracle
        return (
            f"ETH Gas (Gwei) - Safe: {g.safe_gas_price}, "
            f"Propose: {g.propose_gas_price}, Fast: {g.fast_gas_price}"
        )


# =============================================================================
# User Context
# =============================================================================

class UserPosition(BaseModel):
    """An open position the desk should take into account."""

    side: PositionSide
    entry_price: str
    leverage: str
    liquidation_price: str | None = None

    def describe(self) -> str:
        text = f"{self.side.value} from {self.entry_price} at {self.leverage}x leverage"
        if self.liquidation_price:
            text += f", liquidation at {self.liquidation_price}"
        return text


# =============================================================================
# Decision
# =============================================================================

class TradingDecision(BaseModel):
    """
    Final structured decision issued by the CEO agent.

    Also used as the structured-output schema for providers that support it,
    so field aliases match the JSON keys the CEO is asked to produce.
    """

    model_config = ConfigDict(populate_by_name=True)

    action: TradeAction = Field(description="LONG, SHORT or WAIT")
    confidence: int = Field(ge=0, le=100, description="Confidence 0-100")
    entry_price: str = Field(alias="entryPrice", description="Entry zone")
    stop_loss: str = Field(alias="stopLoss")
    take_profit: str = Field(alias="takeProfit")
    reasoning: str = Field(description="2-3 sentence justification")

    @field_validator("action", mode="before")
    @classmethod
    def normalise_action(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: Any) -> int:
        if isinstance(v, bool):
            raise ValueError("confidence must be a number")
        try:
            if isinstance(v, str):
                v = v.strip().rstrip("%")
            value = float(v)
        except (TypeError, OverflowError) as e:
            raise ValueError(f"confidence must be a number, got {type(v).__name__}") from e
        if not math.isfinite(value):
            raise ValueError("confidence must be finite")
        return max(0, min(100, int(round(value))))

    @field_validator("entry_price", "stop_loss", "take_profit", mode="before")
    @classmethod
    def price_as_text(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @classmethod
    def fallback(cls, reasoning: str) -> "TradingDecision":
        """A WAIT decision used when the CEO output cannot be understood."""
        return cls(
            action=TradeAction.WAIT,
            confidence=0,
            entry_price="N/A",
            stop_loss="N/A",
            take_profit="N/A",
            reasoning=reasoning,
        )
