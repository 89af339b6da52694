"""Generative completion service used as the last-resort extractor.

Providers
---------
``openai`` (default)
    Any OpenAI-compatible chat endpoint through ``langchain_openai``.
    Requires ``LLM_API_KEY`` (or ``OPENAI_API_KEY``); set ``LLM_BASE_URL`` to
    point at a gateway instead of api.openai.com.

``ollama``
    A local model through ``langchain_ollama``.  Needs no key.

A missing key is not an error at startup: the service simply reports itself
as not configured and the pipeline carries on with what it already has.
"""

from __future__ import annotations

import logging
from typing import Any

from storefront.config import settings

logger = logging.getLogger(__name__)


class CompletionUnavailable(Exception):
    """The completion service is unconfigured or the call failed."""


# ---------------------------------------------------------------------------
# LLM helper (mirrors the provider switch used for embeddings)
# ---------------------------------------------------------------------------

def _get_llm() -> Any:
    """Return a configured LangChain chat model based on ``settings``."""
    if settings.llm_provider == "ollama":
        from langchain_ollama import ChatOllama

        return ChatOllama(
            model=settings.ollama_chat_model,
            base_url=settings.ollama_base_url,
            temperature=0,
            client_kwargs={"timeout": settings.llm_timeout},
        )

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=settings.openai_chat_model,
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url or None,
        timeout=settings.llm_timeout,
        max_retries=0,
        temperature=0,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

class CompletionService:
    """Single-shot ``system + user -> text`` completions.

    Args:
        llm: A LangChain chat model.  Built lazily from ``settings`` when
            omitted, so constructing the service never touches the network.
    """

    def __init__(self, llm: Any = None) -> None:
        self._llm = llm

    @property
    def configured(self) -> bool:
        return self._llm is not None or settings.llm_configured

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Return the model's reply to *user_prompt* under *system_prompt*.

        Raises:
            CompletionUnavailable: No provider is configured, or the call
                failed for any reason (network, auth, quota, timeout).
        """
        if not self.configured:
            raise CompletionUnavailable("AI service not configured")

        from langchain_core.messages import HumanMessage, SystemMessage

        if self._llm is None:
            self._llm = _get_llm()

        try:
            response = await self._llm.ainvoke(
                [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
            )
        except Exception as exc:
            logger.warning("[llm] completion failed: %s", exc)
            raise CompletionUnavailable(str(exc)) from exc

        content = response.content if hasattr(response, "content") else str(response)
        if isinstance(content, list):
            # Some providers return a list of content parts.
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        return content
