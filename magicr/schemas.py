# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pydantic schemas for LLM provider requests and responses."""

from typing import Literal
from pydantic import BaseModel


class LLMMessage(BaseModel):
    """One role-tagged chat message."""
    role: Literal["system", "user", "assistant"]
    content: str


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class LLMResponse(BaseModel):
    """Provider-agnostic completion result."""
    content: str
    model: str | None = None
    finish_reason: str | None = None
    usage: TokenUsage | None = None
