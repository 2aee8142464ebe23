# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict
from .changelog.parser import COMPARE_LINKS_MARKER, LINK_DEF, ChangelogParser
from .changelog.reconcile import (
    ConversionScenario, Reconciler, ScenarioType, count_commits, detect_scenario, plan_entries,
)
from .changelog.render import ChangelogRenderer, RenderOptions
from .changelog.writer import write_changelog
from .config import CFG
from .errors import GitError
from .git.commits import parse_commits, summarize
from .git.service import GitService, parse_repository_url, repository_base_url
from .git.tags import (
    TagResolver, VersionPlan, latest_release_tag, latest_tag, plan_next_version, previous_tag,
)
from .llm import LLMService, clean_description
from .log import LOG as log, ops_event
from .metrics import inc as m_inc
from .models import CHANGE_TYPE_ORDER, Change, ChangelogEntry, ChangeType, Commit, GitCommit, Tag


@dataclass
class GenerateResult:
    scenario: ConversionScenario
    content: str
    entries: list[ChangelogEntry]
    path: Path
    written: bool = False
    dry_run: bool = False
    backup: Path | None = None
    commits_found: int = 0
    commits_skipped: int = 0
    next_version: VersionPlan | None = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "scenario": self.scenario.type.value,
            "path": str(self.path),
            "written": self.written,
            "dry_run": self.dry_run,
            "backup": str(self.backup) if self.backup else None,
            "versions": [e.version for e in self.entries],
            "commits": self.commits_found,
            "skipped": self.commits_skipped,
            "next_version": self.next_version.next_version if self.next_version else None,
        }


def _newest_first(commit: Commit) -> float:
    return commit.date.timestamp() if commit.date else float("-inf")


def _scenario_of(kwargs, result) -> str | None:
    return result.scenario.type.value if result is not None else None


def _commits_of(kwargs, result) -> int | None:
    return result.commits_found if result is not None else None


class MagicRelease:
    """
    Orchestrates one changelog update: read and check the existing file,
    find the undocumented commits, pick a scenario, describe the commits,
    reconcile and write behind a backup.

    Collaborators can be injected; by default they are built from `cfg`.
    """
    def __init__(self, cfg=CFG, cwd: str | Path | None = None, *,
                 git: GitService | None = None, llm: LLMService | None = None,
                 parser: ChangelogParser | None = None,
                 renderer: ChangelogRenderer | None = None,
                 today: Callable[[], date] = date.today):
        self.cfg = cfg
        self.cwd = Path(cwd or os.getcwd())
        self.git = git or GitService(self.cwd)
        self.parser = parser or ChangelogParser()
        self.renderer = renderer or ChangelogRenderer(
            RenderOptions.from_config(cfg, self._repo_url()))
        self.use_llm_categories = bool(cfg.get("rules.llm_categorization", True))
        self.use_llm_rephrase = bool(cfg.get("rules.llm_rephrase", True))
        if llm is None and (self.use_llm_categories or self.use_llm_rephrase):
            llm = LLMService.from_config(cfg)
        self.llm = llm
        self.today = today

    @property
    def changelog_path(self) -> Path:
        return self.cwd / self.cfg.get("changelog.filename", "CHANGELOG.md")

    def _repo_url(self) -> str | None:
        remote = self.git.get_remote_url(self.cfg.get("git.remote", "origin"))
        detected = parse_repository_url(remote, str(self.cwd)) if remote else None
        return repository_base_url(self.cfg.get("git.repository"), detected)

    def _read_existing(self, path: Path) -> str | None:
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            log.warning(f"Could not read {path}: {e}")
            return None

    def _has_unreleased_content(self, text: str | None) -> bool:
        raw = self.parser.extract_unreleased_raw(text)
        if raw is None:
            return False
        for line in raw.split("\n")[1:]:
            line = line.strip()
            if line and not LINK_DEF.match(line) and line != COMPARE_LINKS_MARKER:
                return True
        return False

    def _version_tags(self) -> list[Tag]:
        return TagResolver(self.git.get_commit_hash).get_version_tags(self.git.get_all_tags())

    def _collect(self, tags: list[Tag], tag: Tag | None, from_ref: str | None,
                 to_ref: str | None, include_pre: bool, tag_documented: bool = False):
        """
        (raw commits, head hash, tag hash, degraded) for the range to document.
        A tag already in the changelog only bounds the range from below.
        """
        end = to_ref or "HEAD"
        try:
            head_hash = self.git.get_commit_hash(end)
            tag_hash = (tag.hash or self.git.get_commit_hash(tag.name)) if tag else None
        except GitError as e:
            log.warning(f"Could not compare {end} with the latest tag, "
                        f"treating all commits as unreleased: {e}")
            return self.git.get_commits_between(None, "HEAD"), None, None, True

        if from_ref or to_ref:
            start = from_ref
        elif tag is None:
            start = None
        elif head_hash == tag_hash and not tag_documented:
            prev = previous_tag(tags, tag, include_pre)
            start, end = (prev.name if prev else None), tag.name
        else:
            start = tag.name
        log.debug(f"Commit range: {start or '(root)'}..{end}")
        return self.git.get_commits_between(start, end), head_hash, tag_hash, False

    async def _build_sections(self, grouped: dict[ChangeType, list[Commit]],
                              cache: dict[str, str]) -> dict[ChangeType, list[Change]]:
        commits = [c for cs in grouped.values() for c in cs]
        category = {c.hash: t for t, cs in grouped.items() for c in cs}
        if self.llm is not None and self.use_llm_categories:
            category = await self.llm.categorize_all(commits, category)
        if self.llm is not None and self.use_llm_rephrase:
            await self.llm.rephrase_all(commits, cache)

        sections: dict[ChangeType, list[Change]] = {}
        for commit in sorted(commits, key=_newest_first, reverse=True):
            change = Change(
                description=cache.get(commit.hash) or clean_description(commit.message),
                commits=[commit],
                scope=commit.scope,
                pr=commit.pr,
                issues=[i for i in commit.issues if i != str(commit.pr)],
            )
            sections.setdefault(category[commit.hash], []).append(change)
        return {t: sections[t] for t in CHANGE_TYPE_ORDER if t in sections}

    @staticmethod
    def _tag_documented(tag: Tag, versions: set[str]) -> bool:
        return tag.version in versions or tag.name in versions

    @ops_event("generate", dry_run="dry_run", scenario=_scenario_of, commits=_commits_of)
    async def generate(self, *, from_ref: str | None = None, to_ref: str | None = None,
                       dry_run: bool = False) -> GenerateResult:
        m_inc("generate_total")
        path = self.changelog_path
        existing = self._read_existing(path)
        self.parser.validate(existing)

        documented = self.parser.get_documented_commits(existing)
        versions = self.parser.extract_versions(existing)
        has_unreleased = self._has_unreleased_content(existing)

        include_pre = bool(self.cfg.get("rules.include_pre_releases", False))
        tags = self._version_tags()
        tag = latest_tag(tags) if include_pre else latest_release_tag(tags)
        tag_documented = tag is not None and self._tag_documented(tag, versions)
        raw, head_hash, tag_hash, degraded = self._collect(
            tags, tag, from_ref, to_ref, include_pre, tag_documented)

        fresh: list[GitCommit] = [c for c in raw if not self.parser.is_documented(c.hash, documented)]
        skipped = len(raw) - len(fresh)
        m_inc("commits_processed_total", float(len(fresh)))
        m_inc("commits_skipped_total", float(skipped))
        grouped = parse_commits(fresh)
        log.info(f"Found {len(fresh)} new commit(s), {skipped} already documented")
        if grouped:
            log.debug(summarize(grouped))

        scenario_tag = None if degraded else tag
        if scenario_tag is not None and tag_documented:
            log.debug(f"Tag {scenario_tag.name} is already in the changelog")
            scenario_tag = None
        scenario = detect_scenario(
            head_hash, tag_hash, has_unreleased, scenario_tag, grouped,
            min_commits=self.cfg.get("rules.min_commits_for_update", 1),
        )
        log.info(f"Scenario: {scenario.type.value}")

        planned = plan_entries(scenario, grouped, self.today())
        cache: dict[str, str] = {}
        for p in planned:
            if count_commits(p.commits):
                p.sections = await self._build_sections(p.commits, cache)

        self.renderer.options.tag_names = {t.version: t.name for t in tags}
        result = Reconciler(self.parser, self.renderer).reconcile(existing, scenario, planned)

        all_commits = [c for cs in grouped.values() for c in cs]
        out = GenerateResult(
            scenario=scenario,
            content=result.text,
            entries=result.entries,
            path=path,
            dry_run=dry_run,
            commits_found=len(fresh),
            commits_skipped=skipped,
            next_version=plan_next_version(
                tags,
                breaking=any(c.breaking for c in all_commits),
                features=bool(grouped.get(ChangeType.ADDED)),
                fixes=bool(grouped.get(ChangeType.FIXED)),
            ),
        )

        if dry_run:
            log.info("Dry run, changelog not written")
            return out
        if existing is None and scenario.type is ScenarioType.NO_CONVERSION:
            log.info("Nothing to document")
            return out
        if result.text == existing:
            log.info(f"{path.name} is up to date")
            return out
        out.backup = write_changelog(
            path, result.text, self.cfg.get("changelog.backup_retention_days", 7))
        out.written = True
        return out

    def test_services(self) -> Dict[str, bool | None]:
        """Git and LLM reachability; llm is None when no provider is in use."""
        status: Dict[str, bool | None] = {"git": False, "llm": None}
        try:
            status["git"] = self.git.has_commits()
        except GitError as e:
            log.error(f"Git check failed: {e}")
        if self.llm is not None:
            status["llm"] = self.llm.test_connection()
        return status
