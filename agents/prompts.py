"""
TradingDesk - Agent Prompts

One brief per role plus the market data rendering every analyst shares.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from agents.roles import AgentRole
from tradingdesk.indicators import compute_bollinger_bands, compute_rsi, compute_sma
from tradingdesk.models import Candle, UserPosition

SYSTEM_PROMPT = "You are a professional crypto trading assistant."

PROMPT_WINDOW = 48

BASE_PERSONA = {
    "en": (
        "You are a top-tier Wall Street crypto trader with 20 years of experience. "
        "Every trade must be surgically precise. Do not use ambiguous fluff. "
        "Give hardcore, logical judgments."
    ),
    "zh": (
        "你是一名拥有20年经验的华尔街顶级加密货币交易员。每一笔交易都必须极其精准。"
        "不要使用模棱两可的废话，直接给出硬核的逻辑判断。"
    ),
}

LANGUAGE_INSTRUCTION = {
    "en": "Output in English.",
    "zh": "You MUST output your analysis in Chinese (Simplified).",
}

ROLE_BRIEFS: dict[AgentRole, str] = {
    AgentRole.SHORT_TERM: """**ROLE: Elite Scalper (Short-Term Analyst)**
Find immediate setups (1-4 hours) for {symbol}.
1. Patterns: flags, pennants, liquidity sweeps (SFP) at highs/lows.
2. Volume: does volume confirm the move or diverge from it?
3. Confluence: RSI >70 / <30, price tagging the Bollinger Bands.
Concise analysis (max 100 words). State "Bullish", "Bearish" or "Neutral" and the invalidation level.""",

    AgentRole.LONG_TERM: """**ROLE: Trend Following Strategist (Long-Term Analyst)**
Determine the dominant market structure of {symbol}. Ignore intraday noise.
1. Structure: higher highs/lows or lower highs/lows?
2. Key levels: major supply and demand zones price is approaching.
3. SMA(20): is price above or below it?
Concise analysis (max 100 words) on the path of least resistance.""",

    AgentRole.QUANT: """**ROLE: Quantitative Analyst (Statistical Arbitrage)**
Assess move probability for {symbol} from statistics, funding and volatility.
1. Funding: a high positive rate with rising price hints at a squeeze; a high negative rate with falling price hints at a long squeeze; funding within 60 minutes raises volatility.
2. Mean reversion: is price outside the Bollinger Bands?
3. RSI divergence against price.
Concise analysis (max 100 words) with a 0-100% probability that the trend continues.""",

    AgentRole.ON_CHAIN: """**ROLE: On-Chain & Whale Tracker**
Infer smart money intent for {symbol} from volume flow and network activity.
1. Gas: high gas means high on-chain activity, bullish for ETH/alts unless extreme.
2. Volume signatures: high volume with small bodies is churn or absorption; low volume pullbacks are consolidation.
Concise analysis (max 100 words). Are whales accumulating or dumping?""",

    AgentRole.MACRO: """**ROLE: Global Macro Strategist**
Is this a Risk-On or Risk-Off environment for {symbol}?
1. Sentiment implied by the price action of a risk asset.
2. Crypto-specific weakness versus broad risk moves.
3. Global liquidity conditions.
Concise analysis (max 100 words). Define the regime: "Risk-On" (buy dips) or "Risk-Off" (sell rallies).""",

    AgentRole.TECH_MANAGER: """**ROLE: Technical Strategy Manager**
Synthesize the Short-Term, Trend and Quant reports and resolve their conflicts.
- Trend bullish but short-term bearish: plan a buy-the-dip.
- All three aligned: the signal is strong.
Synthesized plan (max 100 words) stating the Primary Bias (Long/Short/Neutral) and the Key Zone.""",

    AgentRole.FUND_MANAGER: """**ROLE: Fundamental Strategy Manager**
Synthesize the On-Chain and Macro reports and grade trade quality.
- Risk-Off with whales dumping vetoes or shrinks the trade.
- Name the narrative: fear or greed?
Synthesized view (max 100 words) with a Trade Quality grade (High/Medium/Low).""",

    AgentRole.RISK_MANAGER: """**ROLE: Risk Manager (The Veto Power)**
Compute the Risk-to-Reward and approve or reject the setup.
- R:R = (Take Profit - Entry) / (Entry - Stop Loss); it must exceed 1.5.
- Stops sit below support for longs and above resistance for shorts.
Risk report (max 100 words) stating "R:R Ratio: X.X" and "APPROVED" or "REJECTED - BAD R:R".""",

    AgentRole.CEO: """**ROLE: CEO & Execution Algorithm**
Issue the final command for the trading engine.
- Risk Manager "REJECTED" means action "WAIT".
- Risk Manager "APPROVED" means "LONG" or "SHORT" following the Technical Manager.
- Confidence is the average of the Technical and Fundamental managers' conviction (0-100).
The reasoning (2-3 sentences) must mention the confidence, its key drivers, and the entry, stop loss and take profit levels.
You MUST output ONLY valid JSON (no markdown, no text before or after):
{{"action": "LONG" | "SHORT" | "WAIT", "confidence": number, "entryPrice": "string", "stopLoss": "string", "takeProfit": "string", "reasoning": "string"}}""",
}

EXTRA_CONTEXT_HEADERS: dict[AgentRole, str] = {
    AgentRole.SHORT_TERM: "LIVE ORDER BOOK (DEPTH)",
    AgentRole.QUANT: "DERIVATIVES DATA",
    AgentRole.ON_CHAIN: "REAL-TIME NETWORK DATA",
}


def _fmt(value: float | None, digits: int) -> str:
    return "-" if value is None else f"{value:.{digits}f}"


def format_market_data(candles: Sequence[Candle], window: int = PROMPT_WINDOW) -> str:
    """
    Render the latest candles with RSI(14), BB(20,2) and SMA(20).

    Indicators are computed on the full history so the displayed rows
    are not starved of warm-up data.
    """
    closes = [c.close for c in candles]
    sma20 = compute_sma(closes, 20)
    lower, _, upper = compute_bollinger_bands(closes, 20, 2.0)
    rsi14 = compute_rsi(closes, 14)

    shown = min(len(candles), window)
    start = len(candles) - shown
    lines = [f"Market Data ({shown} candles) WITH TECHNICAL INDICATORS:"]

    for offset, candle in enumerate(candles[start:]):
        i = start + offset
        ts = datetime.fromtimestamp(candle.time / 1000, tz=timezone.utc).isoformat()
        lines.append(
            f"[T-{shown - 1 - offset}] Time: {ts} | Price: {candle.close} "
            f"(Chg: {candle.change_pct:.2f}%) | Vol: {candle.volume:.0f} | "
            f"RSI(14): {_fmt(rsi14[i], 1)} | "
            f"BB(20,2): [{_fmt(lower[i], 2)} - {_fmt(upper[i], 2)}] | "
            f"SMA(20): {_fmt(sma20[i], 2)}"
        )
    return "\n".join(lines)


def format_reports(reports: dict[str, str]) -> str:
    return "".join(
        f"--- Report from {role} ---\n{content}\n" for role, content in reports.items()
    )


def build_prompt(
    role: AgentRole,
    candles: Sequence[Candle],
    symbol: str,
    language: str = "en",
    reports: dict[str, str] | None = None,
    extra_context: str | None = None,
    user_position: UserPosition | None = None,
) -> str:
    """Assemble the user prompt for one agent."""
    sections = [
        BASE_PERSONA.get(language, BASE_PERSONA["en"]),
        ROLE_BRIEFS[role].format(symbol=symbol),
    ]

    if extra_context and role in EXTRA_CONTEXT_HEADERS:
        sections.append(f"**{EXTRA_CONTEXT_HEADERS[role]}:**\n{extra_context}")

    if reports:
        sections.append(f"**TEAM REPORTS:**\n{format_reports(reports)}")
    else:
        sections.append(f"**DATA:**\n{format_market_data(candles)}")

    if user_position is not None:
        sections.append(
            f"**CURRENT USER POSITION:** {user_position.describe()}\n"
            "Address whether to hold, add to, reduce or close this position."
        )

    sections.append(LANGUAGE_INSTRUCTION.get(language, LANGUAGE_INSTRUCTION["en"]))
    return "\n\n".join(sections)
