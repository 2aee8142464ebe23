# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

import hashlib
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List
from magicr.errors import GitError, LLMError
from magicr.llm import LLMService, clean_description
from magicr.models import GitCommit, GitTag
from magicr.prompts import CATEGORIZE_SYSTEM
from magicr.providers.base import BaseProvider
from magicr.schemas import LLMMessage, LLMResponse, TokenUsage

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
TODAY = date(2024, 6, 1)


class FakeGit:
    """
    Linear in-memory history. Commits are appended oldest first; refs are
    HEAD, tag names and full hashes.
    """
    def __init__(self, remote: str | None = "https://github.com/acme/widget.git"):
        self.history: List[GitCommit] = []
        self.tags: dict[str, str] = {}
        self.tag_dates: dict[str, datetime] = {}
        self.remote = remote
        self.fail_hash = False
        self.calls: list = []

    def commit(self, subject: str, body: str = "", when: datetime | None = None) -> str:
        n = len(self.history)
        h = hashlib.sha1(f"{n}:{subject}".encode()).hexdigest()
        when = when or T0 + timedelta(hours=n)
        self.history.append(GitCommit(
            hash=h, subject=subject, body=body,
            author_name="Dev", author_email="dev@example.com", author_date=when,
            committer_name="Dev", committer_email="dev@example.com", committer_date=when,
        ))
        return h

    def tag(self, name: str, at: str | None = None, when: datetime | None = None) -> None:
        target = at or self.history[-1].hash
        self.tags[name] = target
        idx = self._index(target)
        self.tag_dates[name] = when or self.history[idx].committer_date

    def _resolve(self, ref: str) -> str:
        if ref == "HEAD":
            if not self.history:
                raise GitError("ambiguous argument 'HEAD'")
            return self.history[-1].hash
        if ref in self.tags:
            return self.tags[ref]
        if any(c.hash == ref for c in self.history):
            return ref
        raise GitError(f"unknown revision {ref}", {"ref": ref})

    def _index(self, commit_hash: str) -> int:
        return next(i for i, c in enumerate(self.history) if c.hash == commit_hash)

    # -------- collaborator interface --------
    def get_commits_between(self, from_ref=None, to_ref="HEAD"):
        self.calls.append(("get_commits_between", from_ref, to_ref))
        end = self._index(self._resolve(to_ref))
        start = self._index(self._resolve(from_ref)) + 1 if from_ref else 0
        return list(reversed(self.history[start:end + 1]))

    def get_commit_hash(self, ref: str) -> str:
        if self.fail_hash:
            raise GitError(f"ambiguous argument '{ref}'")
        return self._resolve(ref)

    def get_all_tags(self):
        return [GitTag(name=n, date=self.tag_dates[n], subject="") for n in self.tags]

    def get_remote_url(self, remote: str = "origin"):
        return self.remote

    def has_commits(self) -> bool:
        return bool(self.history)


def _echo_subject(prompt: str) -> str:
    subject = prompt.split("\n")[0].replace("Commit message: ", "", 1)
    return clean_description(subject)


class FakeProvider(BaseProvider):
    """
    Scripted provider. `categorize` and `rephrase` map a user prompt to a
    reply; the defaults answer nothing useful for categorization (so the
    classifier wins) and echo the cleaned subject when rephrasing.
    """
    name = "fake"

    def __init__(self,
                 categorize: Callable[[str], str] | None = None,
                 rephrase: Callable[[str], str] | None = None,
                 fail: bool = False):
        self.categorize = categorize or (lambda prompt: "Unsure")
        self.rephrase = rephrase or _echo_subject
        self.fail = fail
        self.calls: List[List[LLMMessage]] = []

    def complete(self, messages):
        self.validate_messages(messages)
        self.calls.append(messages)
        if self.fail:
            raise LLMError("provider down")
        user = messages[-1].content
        if messages[0].content == CATEGORIZE_SYSTEM:
            text = self.categorize(user)
        else:
            text = self.rephrase(user)
        return LLMResponse(content=text, model="fake-1",
                           usage=TokenUsage(prompt_tokens=3, completion_tokens=2, total_tokens=5))

    def count(self, system: str) -> int:
        return sum(1 for m in self.calls if m[0].content == system)


def make_llm(provider: BaseProvider, batch_size: int = 10) -> LLMService:
    return LLMService(provider, batch_size=batch_size, batch_delay=0)
