# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

UNRELEASED = "Unreleased"


class ChangeType(str, Enum):
    ADDED = "Added"
    CHANGED = "Changed"
    DEPRECATED = "Deprecated"
    REMOVED = "Removed"
    FIXED = "Fixed"
    SECURITY = "Security"

    @classmethod
    def from_label(cls, label: str) -> "ChangeType | None":
        """Case-insensitive lookup by section name, None when unknown."""
        key = (label or "").strip().strip("*#:. ").lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        return None


# rendering order, also the enum declaration order
CHANGE_TYPE_ORDER: tuple[ChangeType, ...] = tuple(ChangeType)


@dataclass(frozen=True)
class GitCommit:
    """Raw record as returned by the Git collaborator."""
    hash: str
    subject: str
    body: str = ""
    author_name: str = ""
    author_email: str = ""
    author_date: datetime | None = None
    committer_name: str = ""
    committer_email: str = ""
    committer_date: datetime | None = None


@dataclass(frozen=True)
class GitTag:
    name: str
    date: datetime | None = None
    subject: str = ""


@dataclass(frozen=True)
class Commit:
    hash: str
    message: str
    body: str = ""
    author: str = ""
    date: datetime | None = None
    type: str | None = None
    scope: str | None = None
    breaking: bool = False
    pr: int | None = None
    issues: tuple[str, ...] = ()

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


@dataclass
class Change:
    description: str
    commits: list[Commit] = field(default_factory=list)
    scope: str | None = None
    pr: int | None = None
    issues: list[str] = field(default_factory=list)


@dataclass
class ChangelogEntry:
    version: str
    date: date | None = None
    sections: dict[ChangeType, list[Change]] = field(default_factory=dict)

    @property
    def is_unreleased(self) -> bool:
        return self.version == UNRELEASED

    def has_changes(self) -> bool:
        return any(self.sections.get(t) for t in CHANGE_TYPE_ORDER)


@dataclass(frozen=True)
class Tag:
    name: str
    version: str
    hash: str
    date: datetime | None
    is_pre_release: bool = False


@dataclass(frozen=True)
class RepositoryInfo:
    owner: str
    name: str
    url: str
