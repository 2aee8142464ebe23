# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
from .base import BaseProvider
from ..config import CFG
from ..errors import ConfigError

PROVIDERS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-haiku-20240307",
    "azure": "gpt-4o-mini",
}

def get_provider(cfg=CFG) -> BaseProvider:
    ptype = (cfg.get("llm.provider", "openai") or "openai").lower()
    match ptype:
        case "openai":
            from .openai_prov import OpenAIProvider
            return OpenAIProvider(cfg)
        case "anthropic":
            from .anthropic_prov import AnthropicProvider
            return AnthropicProvider(cfg)
        case "azure":
            from .azure_prov import AzureProvider
            return AzureProvider(cfg)
        case _:
            raise ConfigError(f"Unknown llm.provider: {ptype}",
                              {"supported": sorted(PROVIDERS)})
