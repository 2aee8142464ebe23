# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
import os
from openai import OpenAI, OpenAIError
from .base import BaseProvider
from ..config import CFG
from ..errors import LLMError, missing_api_key
from ..schemas import LLMMessage, LLMResponse, TokenUsage


def _to_response(res) -> LLMResponse:
    if not res.choices:
        raise LLMError("No choices returned from the OpenAI API")
    choice = res.choices[0]
    usage = None
    if getattr(res, "usage", None) is not None:
        usage = TokenUsage(
            prompt_tokens=res.usage.prompt_tokens or 0,
            completion_tokens=res.usage.completion_tokens or 0,
            total_tokens=res.usage.total_tokens or 0,
        )
    return LLMResponse(
        content=choice.message.content or "",
        model=res.model,
        finish_reason=choice.finish_reason,
        usage=usage,
    )


class OpenAIProvider(BaseProvider):
    name = "openai"
    models = ("gpt-4o-mini", "gpt-4o", "gpt-4.1-mini", "gpt-4.1")

    def __init__(self, cfg=CFG):
        self.model = cfg.get("llm.model", "gpt-4o-mini")
        self.temperature = float(cfg.get("llm.temperature", 0.1))
        self.max_tokens = int(cfg.get("llm.max_tokens", 150))
        api_key = cfg.get("llm.api_key") or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise missing_api_key(self.name)
        self.client = OpenAI(
            api_key=api_key,
            base_url=cfg.get("llm.base_url"),
            organization=cfg.get("llm.organization"),
            timeout=float(cfg.get("llm.timeout", 30)),
        )

    def complete(self, messages: list[LLMMessage]) -> LLMResponse:
        self.validate_messages(messages)
        try:
            res = self.client.chat.completions.create(
                model=self.model,
                messages=[m.model_dump() for m in messages],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            raise LLMError(f"OpenAI request failed: {e}", {"provider": self.name}) from e
        return _to_response(res)
