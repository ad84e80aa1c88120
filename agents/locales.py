"""
TradingDesk - Display Strings

English and Simplified Chinese text for agent cards and run messages.
"""

from __future__ import annotations

from typing import Literal

from agents.roles import AgentRole

Language = Literal["en", "zh"]

TRANSLATIONS: dict[str, dict] = {
    "en": {
        "agent_names": {
            AgentRole.SHORT_TERM: "Short-Term Analyst",
            AgentRole.LONG_TERM: "Trend Analyst",
            AgentRole.QUANT: "Quant Analyst",
            AgentRole.ON_CHAIN: "On-Chain Analyst",
            AgentRole.MACRO: "Macro Analyst",
            AgentRole.TECH_MANAGER: "Technical Manager",
            AgentRole.FUND_MANAGER: "Fundamental Manager",
            AgentRole.RISK_MANAGER: "Risk Manager",
            AgentRole.CEO: "General Manager (CEO)",
        },
        "agent_descs": {
            AgentRole.SHORT_TERM: "Price Action, Liquidity Sweeps (SFP), Order Book Walls.",
            AgentRole.LONG_TERM: "Market Structure (HH/HL), Weekly/Daily Supply & Demand.",
            AgentRole.QUANT: "Funding Rate Squeezes, Z-Score Mean Reversion, Volatility.",
            AgentRole.ON_CHAIN: "Gas Fees correlation, Exchange Flows, Whale Tracking.",
            AgentRole.MACRO: "Risk-On/Risk-Off Regime, Global Liquidity Context.",
            AgentRole.TECH_MANAGER: "Synthesizes Structure, Momentum & Stats into a Setup.",
            AgentRole.FUND_MANAGER: "Validates trade quality via On-Chain & Macro sentiment.",
            AgentRole.RISK_MANAGER: "Calculates R:R Ratio. Vetoes trades with < 1.5 R:R.",
            AgentRole.CEO: "Executes final signal strictly based on Risk parameters.",
        },
        "failed": "Analysis failed.",
        "ceo_unavailable": "CEO unavailable. No decision was issued.",
        "missing_key": "Please provide a {provider} API key.",
        "run_failed": "Analysis run failed: {error}",
        "summary": "DECISION: {action}\nCONFIDENCE: {confidence}%\nREASON: {reasoning}",
    },
    "zh": {
        "agent_names": {
            AgentRole.SHORT_TERM: "短线分析师",
            AgentRole.LONG_TERM: "趋势分析师",
            AgentRole.QUANT: "量化分析师",
            AgentRole.ON_CHAIN: "链上分析师",
            AgentRole.MACRO: "宏观分析师",
            AgentRole.TECH_MANAGER: "技术经理",
            AgentRole.FUND_MANAGER: "基本面经理",
            AgentRole.RISK_MANAGER: "风控经理",
            AgentRole.CEO: "总经理 (CEO)",
        },
        "agent_descs": {
            AgentRole.SHORT_TERM: "价格行为、流动性扫荡 (SFP)、订单簿挂单墙。",
            AgentRole.LONG_TERM: "市场结构 (HH/HL)、周线/日线供需区。",
            AgentRole.QUANT: "资金费率挤压、Z 分数均值回归、波动率。",
            AgentRole.ON_CHAIN: "Gas 费相关性、交易所资金流、巨鲸追踪。",
            AgentRole.MACRO: "风险偏好/避险周期、全球流动性背景。",
            AgentRole.TECH_MANAGER: "将结构、动量与统计综合为交易方案。",
            AgentRole.FUND_MANAGER: "通过链上与宏观情绪验证交易质量。",
            AgentRole.RISK_MANAGER: "计算盈亏比，否决盈亏比 < 1.5 的交易。",
            AgentRole.CEO: "严格依据风控参数执行最终信号。",
        },
        "failed": "分析失败。",
        "ceo_unavailable": "CEO 不可用，未生成决策。",
        "missing_key": "请输入 {provider} API 密钥。",
        "run_failed": "分析运行失败：{error}",
        "summary": "决策: {action}\n置信度: {confidence}%\n理由: {reasoning}",
    },
}


def translations(language: str) -> dict:
    """Strings for `language`, falling back to English."""
    return TRANSLATIONS.get(language, TRANSLATIONS["en"])
