# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from ..config import CFG
from ..errors import duplicate_versions
from ..models import CHANGE_TYPE_ORDER, UNRELEASED, Change, ChangelogEntry
from .parser import COMPARE_LINKS_MARKER, MAGICR_MARKER

PROJECT_URL = "https://github.com/warengonzaga/magic-release"

HEADER = f"""# Changelog

All notable changes to this project will be documented in this file.

The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.1.0/),
and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html).

<!-- {MAGICR_MARKER} - {PROJECT_URL} -->"""


@dataclass
class RenderOptions:
    repo_url: str | None = None
    include_commit_links: bool = True
    include_pr_links: bool = True
    include_issue_links: bool = True
    include_compare_links: bool = True
    # version -> tag name, for compare links; defaults to v<version>
    tag_names: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, cfg=CFG, repo_url: str | None = None) -> "RenderOptions":
        return cls(
            repo_url=repo_url.rstrip("/") if repo_url else None,
            include_commit_links=bool(cfg.get("changelog.include_commit_links", True)),
            include_pr_links=bool(cfg.get("changelog.include_pr_links", True)),
            include_issue_links=bool(cfg.get("changelog.include_issue_links", True)),
            include_compare_links=bool(cfg.get("changelog.include_compare_links", True)),
        )


class ChangelogRenderer:
    """
    Entry list -> Markdown. Output depends only on the entries and the
    options, so rendering the same list twice gives the same bytes.
    """
    def __init__(self, options: RenderOptions | None = None):
        self.options = options or RenderOptions()

    def header(self) -> str:
        return HEADER

    def format_header(self, version: str, when: date | None) -> str:
        if version == UNRELEASED or when is None:
            return f"## [{version}]"
        return f"## [{version}] - {when.isoformat()}"

    def format_change(self, change: Change) -> str:
        text = f"**{change.scope}**: {change.description}" if change.scope else change.description
        refs: list[str] = []
        if self.options.include_commit_links:
            for commit in change.commits:
                token = f"`{commit.short_hash}`"
                if token not in refs:
                    refs.append(token)
        if self.options.include_pr_links and change.pr:
            refs.append(f"#{change.pr}")
        if self.options.include_issue_links:
            refs += [f"#{i}" for i in change.issues if str(i) != str(change.pr)]
        if refs:
            text += f" ({', '.join(refs)})"
        if not self.options.include_commit_links and change.commits:
            # hidden hashes keep already documented commits recognisable
            hashes = dict.fromkeys(c.short_hash for c in change.commits)
            text += f" <!-- {' '.join(hashes)} -->"
        return f"- {text}"

    def render_entry(self, entry: ChangelogEntry) -> str:
        lines = [self.format_header(entry.version, entry.date)]
        for ctype in CHANGE_TYPE_ORDER:
            changes = entry.sections.get(ctype)
            if not changes:
                continue
            lines += ["", f"### {ctype.value}", ""]
            lines += [self.format_change(c) for c in changes]
        return "\n".join(lines)

    def tag_for(self, version: str) -> str:
        return self.options.tag_names.get(version) or f"v{version}"

    def compare_links(self, entries: list[ChangelogEntry]) -> str:
        """Reference list for the version headers, newest first."""
        base = self.options.repo_url
        versions = [e.version for e in entries if e.version != UNRELEASED]
        if not (self.options.include_compare_links and base and versions):
            return ""
        lines = [COMPARE_LINKS_MARKER,
                 f"[{UNRELEASED}]: {base}/compare/{self.tag_for(versions[0])}...HEAD"]
        for i, version in enumerate(versions):
            if i + 1 < len(versions):
                prev = self.tag_for(versions[i + 1])
                lines.append(f"[{version}]: {base}/compare/{prev}...{self.tag_for(version)}")
            else:
                lines.append(f"[{version}]: {base}/releases/tag/{self.tag_for(version)}")
        return "\n".join(lines)

    @staticmethod
    def assemble(preamble: str, blocks: list[str], trailer: str) -> str:
        parts = [p.rstrip() for p in (preamble, *blocks, trailer) if p and p.strip()]
        return "\n\n".join(parts) + "\n"

    def render(self, entries: list[ChangelogEntry]) -> str:
        dupes = [v for v, n in Counter(e.version for e in entries).items() if n > 1]
        if dupes:
            raise duplicate_versions(dupes)
        shown = [e for e in entries if e.has_changes()]
        return self.assemble(
            self.header(),
            [self.render_entry(e) for e in shown],
            self.compare_links(shown),
        )
