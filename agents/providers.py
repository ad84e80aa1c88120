"""
TradingDesk - Agent Providers

A provider turns one prompt into text. Every backend is a LangChain chat
model; they differ in construction and in whether they can return
schema-constrained output or use a web search tool.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel

from agents.prompts import SYSTEM_PROMPT
from agents.roles import AgentRole
from tradingdesk.config import LLMConfig, settings
from tradingdesk.exceptions import EmptyCompletionError, MissingCredentialError, UnknownProviderError


@dataclass
class CompletionRequest:
    """Everything a backend needs for one call."""

    role: AgentRole
    prompt: str
    temperature: float = 0.7
    system_prompt: str = SYSTEM_PROMPT
    structured_schema: type[BaseModel] | None = None
    web_search: bool = False


class AgentProvider(ABC):
    """Contract shared by all backends."""

    name: str = "base"
    supports_structured_output: bool = False
    supports_web_search: bool = False

    def __init__(self, api_key: str | None = None, config: LLMConfig | None = None):
        self.config = config or settings.llm
        self._explicit_key = api_key

    @property
    def api_key(self) -> str:
        """User-supplied key first, then the environment."""
        return self._explicit_key or self.config.api_key_for(self.name)

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    def require_credential(self) -> None:
        if not self.has_credential:
            raise MissingCredentialError(self.name)

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> str:
        """Return the completion text, raising on any failure."""


class ChatModelProvider(AgentProvider):
    """Backend built on a LangChain chat model."""

    @abstractmethod
    def _create_model(self, temperature: float) -> BaseChatModel:
        ...

    def _with_web_search(self, llm: BaseChatModel) -> Any:
        return llm

    async def complete(self, request: CompletionRequest) -> str:
        llm = self._create_model(request.temperature)
        messages = [
            SystemMessage(content=request.system_prompt),
            HumanMessage(content=request.prompt),
        ]

        if request.structured_schema is not None and self.supports_structured_output:
            result = await llm.with_structured_output(request.structured_schema).ainvoke(messages)
            if result is None:
                raise EmptyCompletionError(f"{self.name} returned no structured result")
            if isinstance(result, BaseModel):
                return result.model_dump_json(by_alias=True)
            return json.dumps(result)

        runnable: Any = llm
        if request.web_search and self.supports_web_search:
            runnable = self._with_web_search(llm)

        response = await runnable.ainvoke(messages)
        content = _content_text(response.content)
        if not content.strip():
            raise EmptyCompletionError(f"{self.name} returned empty response")
        return content


def _content_text(content: Any) -> str:
    """Flatten message content, which some models return as a list of parts."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return str(content or "")


class GeminiProvider(ChatModelProvider):
    """Google Gemini. Supports structured output and Google Search grounding."""

    name = "gemini"
    supports_structured_output = True
    supports_web_search = True

    def _create_model(self, temperature: float) -> BaseChatModel:
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=self.config.gemini_model,
            google_api_key=self.api_key,
            temperature=temperature,
            timeout=self.config.request_timeout,
        )

    def _with_web_search(self, llm: BaseChatModel) -> Any:
        return llm.bind_tools([{"google_search": {}}])


class DeepSeekProvider(ChatModelProvider):
    """DeepSeek through its OpenAI-compatible API. Free text only."""

    name = "deepseek"

    def _create_model(self, temperature: float) -> BaseChatModel:
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=self.config.deepseek_model,
            api_key=self.api_key,
            base_url=self.config.deepseek_base_url,
            temperature=temperature,
            timeout=self.config.request_timeout,
        )


class GroqProvider(ChatModelProvider):
    """Groq-hosted open models. Free text only."""

    name = "groq"

    def _create_model(self, temperature: float) -> BaseChatModel:
        from langchain_groq import ChatGroq

        return ChatGroq(
            model=self.config.groq_model,
            api_key=self.api_key,
            temperature=temperature,
            timeout=self.config.request_timeout,
        )


PROVIDERS: dict[str, type[AgentProvider]] = {
    GeminiProvider.name: GeminiProvider,
    DeepSeekProvider.name: DeepSeekProvider,
    GroqProvider.name: GroqProvider,
}


def create_provider(
    name: str | None = None,
    api_key: str | None = None,
    config: LLMConfig | None = None,
) -> AgentProvider:
    """Instantiate a backend by name (defaults to the configured provider)."""
    config = config or settings.llm
    name = (name or config.provider).lower()
    try:
        provider_cls = PROVIDERS[name]
    except KeyError:
        raise UnknownProviderError(
            f"Unknown provider {name!r}; expected one of {sorted(PROVIDERS)}"
        ) from None
    return provider_cls(api_key=api_key, config=config)
