# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
from abc import ABC, abstractmethod
from ..errors import LLMError
from ..schemas import LLMMessage, LLMResponse


class BaseProvider(ABC):
    name: str = "base"
    models: tuple[str, ...] = ()

    @abstractmethod
    def complete(self, messages: list[LLMMessage]) -> LLMResponse: ...

    def test_connection(self) -> bool:
        reply = self.complete([LLMMessage(role="user", content="Reply with OK.")])
        return bool(reply.content.strip())

    @staticmethod
    def validate_messages(messages: list[LLMMessage]) -> None:
        if not messages:
            raise LLMError("Messages list cannot be empty")
        for msg in messages:
            if not msg.content:
                raise LLMError(f"Empty {msg.role} message")
