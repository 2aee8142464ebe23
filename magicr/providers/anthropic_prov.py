# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
import os
import requests
from .base import BaseProvider
from ..config import CFG
from ..errors import LLMError, missing_api_key
from ..schemas import LLMMessage, LLMResponse, TokenUsage

API_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"


class AnthropicProvider(BaseProvider):
    name = "anthropic"
    models = ("claude-3-5-haiku-latest", "claude-3-5-sonnet-latest", "claude-3-haiku-20240307")

    def __init__(self, cfg=CFG):
        model = cfg.get("llm.model")
        # the global default model belongs to openai
        if not model or str(model).startswith("gpt-"):
            model = "claude-3-haiku-20240307"
        self.model = model
        self.temperature = float(cfg.get("llm.temperature", 0.1))
        self.max_tokens = int(cfg.get("llm.max_tokens", 150))
        self.timeout = float(cfg.get("llm.timeout", 30))
        self.url = cfg.get("llm.base_url") or API_URL
        self.api_key = cfg.get("llm.api_key") or os.environ.get("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise missing_api_key(self.name)

    def _payload(self, messages: list[LLMMessage]) -> dict:
        system = [m.content for m in messages if m.role == "system"]
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": m.role, "content": m.content}
                         for m in messages if m.role != "system"],
        }
        if system:
            payload["system"] = "\n\n".join(system)
        return payload

    def complete(self, messages: list[LLMMessage]) -> LLMResponse:
        self.validate_messages(messages)
        headers = {
            "content-type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": API_VERSION,
        }
        try:
            resp = requests.post(self.url, json=self._payload(messages),
                                 headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise LLMError(f"Anthropic request failed: {e}", {"provider": self.name}) from e
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("error", {}).get("message")
            except ValueError:
                detail = None
            raise LLMError(
                f"Anthropic API error {resp.status_code}: {detail or resp.text[:200]}",
                {"provider": self.name, "status": resp.status_code},
            )
        data = resp.json()
        text = next((c.get("text", "") for c in data.get("content") or []
                     if c.get("type") == "text"), None)
        if text is None:
            raise LLMError("No content returned from the Anthropic API")
        usage = data.get("usage") or {}
        prompt_t = int(usage.get("input_tokens", 0))
        completion_t = int(usage.get("output_tokens", 0))
        return LLMResponse(
            content=text,
            model=data.get("model"),
            finish_reason=data.get("stop_reason"),
            usage=TokenUsage(prompt_tokens=prompt_t, completion_tokens=completion_t,
                             total_tokens=prompt_t + completion_t),
        )
