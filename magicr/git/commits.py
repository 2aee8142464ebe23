# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Commit classifier: maps a raw commit to a Keep a Changelog category and
extracts conventional-commit metadata. Pure text processing, never raises.
"""

from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Iterable
from ..log import LOG as log
from ..models import ChangeType, Commit, GitCommit

CONVENTIONAL = re.compile(
    r"^(?P<type>\w+)(?:\((?P<scope>[\w\-./ ]+)\))?(?P<bang>!)?:\s+(?P<description>.+)"
)
BREAKING = re.compile(r"BREAKING CHANGES?:|!:")
ISSUE = re.compile(r"#(\d+)")
PR = re.compile(r"\(#(\d+)\)|\s#(\d+)|PR\s#(\d+)|Pull Request\s#(\d+)", re.IGNORECASE)

# conventional type -> category; anything else is Changed
_TYPE_TABLE: dict[str, ChangeType] = {
    "feat": ChangeType.ADDED,
    "feature": ChangeType.ADDED,
    "add": ChangeType.ADDED,
    "fix": ChangeType.FIXED,
    "bugfix": ChangeType.FIXED,
    "hotfix": ChangeType.FIXED,
    "patch": ChangeType.FIXED,
    "refactor": ChangeType.CHANGED,
    "change": ChangeType.CHANGED,
    "update": ChangeType.CHANGED,
    "improve": ChangeType.CHANGED,
    "enhancement": ChangeType.CHANGED,
    "perf": ChangeType.CHANGED,
    "performance": ChangeType.CHANGED,
    "style": ChangeType.CHANGED,
    "docs": ChangeType.CHANGED,
    "doc": ChangeType.CHANGED,
    "documentation": ChangeType.CHANGED,
    "remove": ChangeType.REMOVED,
    "delete": ChangeType.REMOVED,
    "deprecate": ChangeType.DEPRECATED,
    "security": ChangeType.SECURITY,
    "sec": ChangeType.SECURITY,
}

# keyword fallback, checked in this order
_KEYWORDS: tuple[tuple[ChangeType, tuple[str, ...]], ...] = (
    (ChangeType.SECURITY, ("security", "vulnerability", "cve", "exploit", "xss", "csrf", "injection")),
    (ChangeType.ADDED, ("add", "new", "create", "implement", "introduce", "feature")),
    (ChangeType.FIXED, ("fix", "bug", "issue", "error", "problem", "resolve", "correct")),
    (ChangeType.REMOVED, ("remove", "delete", "drop", "eliminate")),
    (ChangeType.DEPRECATED, ("deprecate", "obsolete")),
)


def type_to_category(ctype: str) -> ChangeType:
    return _TYPE_TABLE.get((ctype or "").lower(), ChangeType.CHANGED)


def keyword_category(subject: str) -> ChangeType:
    low = (subject or "").lower()
    for category, words in _KEYWORDS:
        if any(w in low for w in words):
            return category
    return ChangeType.CHANGED


def extract_issues(text: str) -> list[str]:
    seen: list[str] = []
    for num in ISSUE.findall(text or ""):
        if num not in seen:
            seen.append(num)
    return seen


def extract_pr(text: str) -> int | None:
    m = PR.search(text or "")
    if not m:
        return None
    num = next((g for g in m.groups() if g), None)
    return int(num) if num else None


@dataclass
class ParsedCommit:
    category: ChangeType
    description: str
    type: str | None = None
    scope: str | None = None
    breaking: bool = False
    pr: int | None = None
    issues: list[str] = field(default_factory=list)


def classify(subject: str, body: str = "") -> ParsedCommit:
    subject = subject or ""
    body = body or ""
    result = ParsedCommit(category=keyword_category(subject), description=subject)
    m = CONVENTIONAL.match(subject)
    if m:
        result.type = m.group("type")
        result.scope = m.group("scope") or None
        result.description = m.group("description")
        result.category = type_to_category(result.type)
    result.breaking = bool(BREAKING.search(f"{subject}\n{body}"))
    combined = f"{subject} {body}"
    result.issues = extract_issues(combined)
    result.pr = extract_pr(combined)
    return result


def to_commit(raw: GitCommit, parsed: ParsedCommit | None = None) -> Commit:
    parsed = parsed or classify(raw.subject, raw.body)
    return Commit(
        hash=raw.hash,
        message=raw.subject,
        body=raw.body,
        author=raw.author_name,
        date=raw.author_date,
        type=parsed.type,
        scope=parsed.scope,
        breaking=parsed.breaking,
        pr=parsed.pr,
        issues=tuple(parsed.issues),
    )


def parse_commits(raw_commits: Iterable[GitCommit]) -> dict[ChangeType, list[Commit]]:
    """Group commits by category, keeping the input (newest-first) order."""
    grouped: dict[ChangeType, list[Commit]] = {}
    for raw in raw_commits:
        parsed = classify(raw.subject, raw.body)
        log.debug(f"Parsed commit {raw.hash[:7]}: {parsed.category.value}")
        grouped.setdefault(parsed.category, []).append(to_commit(raw, parsed))
    return grouped


def summarize(grouped: dict[ChangeType, list[Commit]]) -> str:
    return ", ".join(f"{t.value}: {len(c)} commit(s)" for t, c in grouped.items() if c)
