# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
from .models import Commit
from .schemas import LLMMessage

CATEGORIZE_SYSTEM = (
    "You are a commit categorization expert. Categorize the following commit "
    "into one of these categories: Added, Changed, Deprecated, Removed, Fixed, "
    "Security. Respond with only the category name."
)

REPHRASE_SYSTEM = """You write entries for a changelog that follows the "Keep a Changelog" format.
Rewrite the commit message you are given as a single changelog line:
- imperative present tense ("Add", "Fix", "Remove"), capitalised
- describe the user-facing effect, not implementation details
- no conventional-commit prefix, no scope, no issue or PR numbers, no commit hash
- no trailing period, no markdown, no quotes
Respond with the line only."""


def categorize_messages(message: str) -> list[LLMMessage]:
    return [
        LLMMessage(role="system", content=CATEGORIZE_SYSTEM),
        LLMMessage(role="user", content=f"Categorize this commit: {message}"),
    ]


def rephrase_messages(commit: Commit) -> list[LLMMessage]:
    prompt = f"Commit message: {commit.message}"
    # short bodies are usually trailers, skip them
    if commit.body and len(commit.body) > 20:
        body = commit.body[:200]
        prompt += f"\nBody: {body}{'...' if len(commit.body) > 200 else ''}"
    return [
        LLMMessage(role="system", content=REPHRASE_SYSTEM),
        LLMMessage(role="user", content=prompt),
    ]
