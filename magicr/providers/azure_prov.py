# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
import os
from openai import AzureOpenAI, OpenAIError
from .base import BaseProvider
from .openai_prov import _to_response
from ..config import CFG
from ..errors import ConfigError, LLMError, missing_api_key
from ..schemas import LLMMessage, LLMResponse


class AzureProvider(BaseProvider):
    """Azure OpenAI; the deployment name is sent as the model."""
    name = "azure"
    models = ("gpt-4o-mini", "gpt-4o", "gpt-35-turbo")

    def __init__(self, cfg=CFG):
        self.deployment = cfg.get("llm.deployment_name") or cfg.get("llm.model", "gpt-4o-mini")
        self.temperature = float(cfg.get("llm.temperature", 0.1))
        self.max_tokens = int(cfg.get("llm.max_tokens", 150))
        api_key = cfg.get("llm.api_key") or os.environ.get("AZURE_OPENAI_API_KEY")
        if not api_key:
            raise missing_api_key(self.name)
        endpoint = cfg.get("llm.endpoint") or os.environ.get("AZURE_OPENAI_ENDPOINT")
        if not endpoint:
            raise ConfigError("Azure OpenAI endpoint not configured (llm.endpoint)")
        self.client = AzureOpenAI(
            api_key=api_key,
            azure_endpoint=endpoint,
            api_version=cfg.get("llm.api_version", "2024-06-01"),
            timeout=float(cfg.get("llm.timeout", 30)),
        )

    def complete(self, messages: list[LLMMessage]) -> LLMResponse:
        self.validate_messages(messages)
        try:
            res = self.client.chat.completions.create(
                model=self.deployment,
                messages=[m.model_dump() for m in messages],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            raise LLMError(f"Azure OpenAI request failed: {e}", {"provider": self.name}) from e
        return _to_response(res)
