# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
import functools, re
from dataclasses import dataclass
from typing import Callable, Iterable
from ..errors import GitError
from ..log import LOG as log
from ..models import GitTag, Tag

# semver.org 2.0.0 grammar
_SEMVER = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*)(?:\.(?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*))*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

_CANDIDATE = r"(\d+\.\d+\.\d+(?:-[\w.-]+)?(?:\+[\w.-]+)?)"
# suffix form first: "1.2.3-release" alone would parse as a pre-release
TAG_PATTERNS = (
    re.compile(rf"^{_CANDIDATE}[-_]release$", re.IGNORECASE),            # 1.2.3-release
    re.compile(rf"^release[-/]?v?{_CANDIDATE}$", re.IGNORECASE),         # release/v1.2.3
    re.compile(rf"^v?{_CANDIDATE}$", re.IGNORECASE),                     # v1.2.3, 1.2.3
)


@functools.total_ordering
@dataclass(frozen=True)
class SemVer:
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: str = ""

    @classmethod
    def parse(cls, text: str) -> "SemVer | None":
        m = _SEMVER.match((text or "").strip())
        if not m:
            return None
        pre = tuple(m.group(4).split(".")) if m.group(4) else ()
        return cls(int(m.group(1)), int(m.group(2)), int(m.group(3)), pre, m.group(5) or "")

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    def _pre_key(self):
        # a release sorts above any of its pre-releases
        if not self.prerelease:
            return (1,)
        ids = tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in self.prerelease)
        return (0, ids)

    def _key(self):
        return (self.major, self.minor, self.patch, self._pre_key())

    def __eq__(self, other):
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other):
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self):
        return hash(self._key())

    def bump(self, release_type: str) -> "SemVer":
        match release_type:
            case "major":
                return SemVer(self.major + 1, 0, 0)
            case "minor":
                return SemVer(self.major, self.minor + 1, 0)
            case "patch":
                return SemVer(self.major, self.minor, self.patch + (0 if self.prerelease else 1))
            case _:
                raise ValueError(f"Unknown release type: {release_type}")

    def __str__(self) -> str:
        out = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            out += "-" + ".".join(self.prerelease)
        if self.build:
            out += "+" + self.build
        return out


def extract_version(tag_name: str) -> str | None:
    """Normalized semver string for an accepted tag name, else None."""
    for pattern in TAG_PATTERNS:
        m = pattern.match((tag_name or "").strip())
        if m and SemVer.parse(m.group(1)):
            return m.group(1)
    return None


def version_key(version: str) -> SemVer | None:
    """Sort key for changelog version labels; a leading v is tolerated."""
    v = (version or "").strip()
    return SemVer.parse(v[1:] if v[:1] in ("v", "V") else v)


@dataclass(frozen=True)
class VersionPlan:
    next_version: str
    release_type: str
    current_version: str | None = None
    is_first_release: bool = False


class TagResolver:
    """
    Turns raw repository tags into validated, sorted Tag records.
    `hash_of` resolves a tag name to its commit; failures leave the hash empty.
    """
    def __init__(self, hash_of: Callable[[str], str] | None = None):
        self.hash_of = hash_of

    def _hash(self, name: str) -> str:
        if self.hash_of is None:
            return ""
        try:
            return self.hash_of(name)
        except GitError as e:
            log.debug(f"Could not resolve tag {name}: {e}")
            return ""

    def to_tag(self, git_tag: GitTag) -> Tag | None:
        version = extract_version(git_tag.name)
        if not version:
            log.debug(f"Could not extract version from tag: {git_tag.name}")
            return None
        return Tag(
            name=git_tag.name,
            version=version,
            hash=self._hash(git_tag.name),
            date=git_tag.date,
            is_pre_release=SemVer.parse(version).is_prerelease,
        )

    def get_version_tags(self, git_tags: Iterable[GitTag]) -> list[Tag]:
        """Valid semver tags sorted newest first."""
        tags = [t for t in (self.to_tag(g) for g in git_tags) if t is not None]
        return sort_tags(tags)


def sort_tags(tags: Iterable[Tag]) -> list[Tag]:
    return sorted(tags, key=lambda t: SemVer.parse(t.version), reverse=True)


def latest_release_tag(tags: list[Tag]) -> Tag | None:
    return next((t for t in tags if not t.is_pre_release), None)


def latest_tag(tags: list[Tag]) -> Tag | None:
    return tags[0] if tags else None


def previous_tag(tags: list[Tag], current: Tag, include_pre_releases: bool = False) -> Tag | None:
    """The next older eligible tag after `current` in a newest-first list."""
    seen = False
    for tag in tags:
        if seen and (include_pre_releases or not tag.is_pre_release):
            return tag
        if tag.name == current.name:
            seen = True
    return None


def plan_next_version(tags: list[Tag], breaking: bool, features: bool,
                      fixes: bool) -> VersionPlan:
    latest = latest_release_tag(tags)
    if latest is None:
        return VersionPlan(next_version="1.0.0", release_type="major", is_first_release=True)
    if breaking:
        release_type = "major"
    elif features:
        release_type = "minor"
    else:
        release_type = "patch"
    current = SemVer.parse(latest.version)
    return VersionPlan(
        next_version=str(current.bump(release_type)),
        release_type=release_type,
        current_version=latest.version,
    )
