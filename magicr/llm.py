# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
import asyncio, re
from typing import Awaitable, Callable, Iterable, TypeVar
from .config import CFG
from .errors import LLMError
from .log import LOG as log
from .metrics import inc as m_inc
from .models import ChangeType, Commit
from .prompts import categorize_messages, rephrase_messages
from .providers.base import BaseProvider
from .providers.factory import get_provider
from .schemas import LLMMessage, LLMResponse

T = TypeVar("T")

_CONVENTIONAL_PREFIX = re.compile(
    r"^(feat|fix|docs|style|refactor|test|chore|perf|build|ci|revert)(\([^)]*\))?!?:\s*",
    re.IGNORECASE,
)
# GitHub squash-merge suffix; the PR number is rendered as a reference
_PR_SUFFIX = re.compile(r"\s*\(#\d+\)$")


def clean_description(message: str) -> str:
    """Deterministic fallback when no rephrased text is available."""
    text = _CONVENTIONAL_PREFIX.sub("", (message or "").strip())
    text = _PR_SUFFIX.sub("", re.sub(r"\.$", "", text))
    return text[:1].upper() + text[1:]


def _first_line(reply: str) -> str:
    for line in (reply or "").splitlines():
        line = line.strip().lstrip("-*• ").strip().strip("\"'`").strip()
        if line:
            return _PR_SUFFIX.sub("", re.sub(r"\.$", "", line))
    return ""


class LLMService:
    """
    Thin layer over a provider: the two prompts the changelog needs plus
    batched fan-out. Batches run one after another with `batch_delay`
    seconds between them; calls inside a batch run concurrently.
    """
    def __init__(self, provider: BaseProvider, batch_size: int = 10,
                 batch_delay: float = 1.0):
        self.provider = provider
        self.batch_size = max(1, int(batch_size))
        self.batch_delay = max(0.0, float(batch_delay))

    @classmethod
    def from_config(cls, cfg=CFG) -> "LLMService":
        return cls(
            get_provider(cfg),
            batch_size=cfg.get("llm.batch_size", 10),
            batch_delay=cfg.get("llm.batch_delay", 1.0),
        )

    def _complete(self, messages: list[LLMMessage]) -> LLMResponse:
        m_inc("llm_requests_total")
        try:
            res = self.provider.complete(messages)
        except LLMError:
            m_inc("llm_failures_total")
            raise
        except Exception as e:
            m_inc("llm_failures_total")
            raise LLMError(f"{self.provider.name} request failed: {e}") from e
        if res.usage is not None:
            m_inc("llm_tokens_total", float(res.usage.total_tokens))
        return res

    # -------- single calls --------
    def categorize_commit(self, message: str) -> ChangeType | None:
        """Category named by the model, None if the reply names none."""
        reply = self._complete(categorize_messages(message)).content
        found = ChangeType.from_label(reply)
        if found is None:
            for word in re.findall(r"[A-Za-z]+", reply):
                found = ChangeType.from_label(word)
                if found is not None:
                    break
        return found

    def rephrase_commit(self, commit: Commit) -> str:
        line = _first_line(self._complete(rephrase_messages(commit)).content)
        if not line:
            raise LLMError("Empty rephrase reply", {"commit": commit.short_hash})
        return line

    def test_connection(self) -> bool:
        try:
            return self.provider.test_connection()
        except Exception as e:
            log.error(f"LLM connection test failed: {e}")
            return False

    # -------- batched --------
    async def _batched(self, items: list[T],
                       work: Callable[[T], Awaitable[None]]) -> None:
        for start in range(0, len(items), self.batch_size):
            if start and self.batch_delay:
                await asyncio.sleep(self.batch_delay)
            batch = items[start:start + self.batch_size]
            await asyncio.gather(*(work(item) for item in batch))

    async def categorize_all(
            self, commits: Iterable[Commit],
            fallback: dict[str, ChangeType]) -> dict[str, ChangeType]:
        """
        Category per commit hash. A failed call yields Changed; a reply that
        names no category keeps `fallback[hash]`.
        """
        out: dict[str, ChangeType] = {}

        async def one(commit: Commit) -> None:
            try:
                found = await asyncio.to_thread(self.categorize_commit, commit.message)
            except LLMError as e:
                log.warning(f"Failed to categorize commit {commit.short_hash}: {e}")
                out[commit.hash] = ChangeType.CHANGED
                return
            out[commit.hash] = found or fallback.get(commit.hash, ChangeType.CHANGED)

        await self._batched(list(commits), one)
        return out

    async def rephrase_all(self, commits: Iterable[Commit],
                           cache: dict[str, str]) -> dict[str, str]:
        """Description per commit hash; `cache` is filled in place."""
        todo: list[Commit] = []
        for commit in commits:
            if commit.hash in cache:
                m_inc("llm_cache_hits_total")
            elif all(c.hash != commit.hash for c in todo):
                todo.append(commit)

        async def one(commit: Commit) -> None:
            try:
                cache[commit.hash] = await asyncio.to_thread(self.rephrase_commit, commit)
            except LLMError as e:
                log.debug(f"Rephrase fallback for {commit.short_hash}: {e}")
                m_inc("llm_fallbacks_total")
                cache[commit.hash] = clean_description(commit.message)

        await self._batched(todo, one)
        return cache
