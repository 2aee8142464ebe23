# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Reconciliation engine.

Decides what the changelog should look like given the existing document,
the latest tag, HEAD, and the commits not yet documented:

    detect_scenario()  -> ConversionScenario  (which of five cases applies)
    plan_entries()     -> [PlannedEntry]      (version/date/commits tuples)
    Reconciler.reconcile(existing, scenario, planned) -> ReconciliationResult

Existing version blocks are carried over as raw text; only entries the
scenario produces are rendered.
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from ..errors import duplicate_versions
from ..git.tags import version_key
from ..log import LOG as log
from ..models import (
    CHANGE_TYPE_ORDER, UNRELEASED, Change, ChangelogEntry, ChangeType, Commit, Tag,
)
from .parser import BULLET, SECTION_HEADER, ChangelogParser, Document
from .render import ChangelogRenderer


class ScenarioType(Enum):
    CONVERT_UNRELEASED = "convert-unreleased"
    USE_TAG_VERSION = "use-tag-version"
    DUAL_CONVERSION = "dual-conversion"
    NEW_UNRELEASED = "new-unreleased"
    NO_CONVERSION = "no-conversion"


@dataclass(frozen=True)
class ConversionScenario:
    type: ScenarioType
    target_version: str | None = None
    tag_date: date | None = None
    # existing Unreleased content survives (renamed or as-is)
    preserve_unreleased: bool = False
    # a fresh Unreleased section is produced from new commits
    add_unreleased: bool = False


def count_commits(grouped: dict[ChangeType, list[Commit]]) -> int:
    return sum(len(v) for v in grouped.values())


def detect_scenario(
    head_hash: str | None,
    tag_hash: str | None,
    has_unreleased: bool,
    latest: Tag | None,
    new_commits: dict[ChangeType, list[Commit]],
    min_commits: int = 1,
) -> ConversionScenario:
    has_new = count_commits(new_commits) >= max(1, int(min_commits))

    if latest is None:
        if has_new:
            return ConversionScenario(ScenarioType.NEW_UNRELEASED,
                                      preserve_unreleased=has_unreleased, add_unreleased=True)
        return ConversionScenario(ScenarioType.NO_CONVERSION, preserve_unreleased=has_unreleased)

    tag_at_head = bool(head_hash) and head_hash == tag_hash
    target = latest.version
    tag_date = latest.date.date() if latest.date else None

    if tag_at_head and has_unreleased:
        return ConversionScenario(ScenarioType.CONVERT_UNRELEASED, target, tag_date,
                                  preserve_unreleased=True)
    if tag_at_head and has_new:
        return ConversionScenario(ScenarioType.USE_TAG_VERSION, target, tag_date)
    if not tag_at_head and has_unreleased:
        return ConversionScenario(ScenarioType.DUAL_CONVERSION, target, tag_date,
                                  preserve_unreleased=True, add_unreleased=has_new)
    if not tag_at_head and has_new:
        return ConversionScenario(ScenarioType.NEW_UNRELEASED, add_unreleased=True)
    return ConversionScenario(ScenarioType.NO_CONVERSION, preserve_unreleased=has_unreleased)


@dataclass
class PlannedEntry:
    version: str
    date: date | None
    commits: dict[ChangeType, list[Commit]] = field(default_factory=dict)
    # take the content of the existing Unreleased section instead of commits
    rename_unreleased: bool = False
    # filled by the caller once descriptions are known
    sections: dict[ChangeType, list[Change]] = field(default_factory=dict)

    def to_entry(self) -> ChangelogEntry:
        return ChangelogEntry(self.version, self.date, dict(self.sections))


def plan_entries(scenario: ConversionScenario,
                 new_commits: dict[ChangeType, list[Commit]],
                 today: date) -> list[PlannedEntry]:
    match scenario.type:
        case ScenarioType.CONVERT_UNRELEASED:
            return [PlannedEntry(scenario.target_version, scenario.tag_date, rename_unreleased=True)]
        case ScenarioType.USE_TAG_VERSION:
            return [PlannedEntry(scenario.target_version, scenario.tag_date, new_commits)]
        case ScenarioType.DUAL_CONVERSION:
            return [
                PlannedEntry(UNRELEASED, today, new_commits),
                PlannedEntry(scenario.target_version, scenario.tag_date, rename_unreleased=True),
            ]
        case ScenarioType.NEW_UNRELEASED:
            return [PlannedEntry(UNRELEASED, today, new_commits)]
        case ScenarioType.NO_CONVERSION:
            return []
        case _:
            raise ValueError(f"Unhandled scenario: {scenario.type}")


@dataclass
class ReconciliationResult:
    text: str
    entries: list[ChangelogEntry]
    scenario: ConversionScenario


@dataclass
class _Item:
    version: str
    raw: str
    entry: ChangelogEntry


def _body_is_blank(raw: str) -> bool:
    return not "\n".join(raw.split("\n")[1:]).strip()


def _order(items: list[_Item]) -> list[_Item]:
    """Unreleased, then semver descending; unparsable labels keep their place at the end."""
    unreleased = [i for i in items if i.version == UNRELEASED]
    versioned = [i for i in items if i.version != UNRELEASED and version_key(i.version)]
    other = [i for i in items if i.version != UNRELEASED and not version_key(i.version)]
    versioned.sort(key=lambda i: version_key(i.version), reverse=True)
    return unreleased + versioned + other


class Reconciler:
    def __init__(self, parser: ChangelogParser, renderer: ChangelogRenderer):
        self.parser = parser
        self.renderer = renderer

    def reconcile(self, existing_text: str | None, scenario: ConversionScenario,
                  planned: list[PlannedEntry]) -> ReconciliationResult:
        existing = existing_text if existing_text and existing_text.strip() else None

        match scenario.type:
            case ScenarioType.NO_CONVERSION:
                if existing is not None:
                    return ReconciliationResult(existing, self.parser.parse(existing), scenario)
                return ReconciliationResult(self.renderer.render([]), [], scenario)
            case (ScenarioType.CONVERT_UNRELEASED | ScenarioType.USE_TAG_VERSION
                  | ScenarioType.DUAL_CONVERSION | ScenarioType.NEW_UNRELEASED):
                pass
            case _:
                raise ValueError(f"Unhandled scenario: {scenario.type}")

        doc = self.parser.split(existing) if existing is not None else Document()
        generated = existing is None or self.parser.is_magicr_generated(existing)
        preamble = doc.preamble if existing is not None else self.renderer.header()
        current = doc.find(UNRELEASED)
        renaming = any(p.rename_unreleased for p in planned)

        items: list[_Item] = []
        produced: set[str] = set()
        for p in planned:
            if p.rename_unreleased:
                if current is None:
                    log.debug(f"No Unreleased section to rename to {p.version}")
                    continue
                items.append(self._renamed(current.raw, current.entry, p))
            elif p.version == UNRELEASED and current is not None and not renaming:
                items.append(self._merged(current.raw, current.entry, p.to_entry()))
            else:
                entry = p.to_entry()
                if not entry.has_changes():
                    log.debug(f"Dropping empty entry {p.version}")
                    continue
                items.append(_Item(p.version, self.renderer.render_entry(entry), entry))
            produced.add(p.version)

        for block in doc.blocks:
            if block.version in produced:
                continue
            if block.version == UNRELEASED and renaming:
                continue
            if not block.entry.has_changes() and _body_is_blank(block.raw):
                continue
            items.append(_Item(block.version, block.raw, block.entry))

        dupes = [v for v, n in Counter(i.version for i in items).items() if n > 1]
        if dupes:
            raise duplicate_versions(dupes)
        items = _order(items)
        entries = [i.entry for i in items]

        trailer = self.renderer.compare_links(entries) if generated else doc.trailer
        text = self.renderer.assemble(preamble, [i.raw for i in items], trailer)
        log.debug(f"Reconciled {scenario.type.value}: {[i.version for i in items]}")
        return ReconciliationResult(text, entries, scenario)

    # -------- text surgery --------
    def _renamed(self, raw: str, entry: ChangelogEntry, p: PlannedEntry) -> _Item:
        """Same section body under a new header line."""
        lines = raw.split("\n")
        lines[0] = self.renderer.format_header(p.version, p.date)
        renamed = ChangelogEntry(p.version, p.date, entry.sections)
        return _Item(p.version, "\n".join(lines).rstrip(), renamed)

    def _merged(self, raw: str, entry: ChangelogEntry, new: ChangelogEntry) -> _Item:
        """New bullets go on top of the matching category; missing categories are added in order."""
        lines = raw.rstrip().split("\n")
        for ctype in CHANGE_TYPE_ORDER:
            changes = new.sections.get(ctype)
            if changes:
                self._insert_changes(lines, ctype, [self.renderer.format_change(c) for c in changes])

        sections: dict[ChangeType, list[Change]] = {}
        for ctype in CHANGE_TYPE_ORDER:
            merged = list(new.sections.get(ctype, [])) + list(entry.sections.get(ctype, []))
            if merged:
                sections[ctype] = merged
        return _Item(UNRELEASED, "\n".join(lines), ChangelogEntry(UNRELEASED, None, sections))

    @staticmethod
    def _insert_changes(lines: list[str], ctype: ChangeType, bullets: list[str]) -> None:
        headings = []
        for i, line in enumerate(lines):
            m = SECTION_HEADER.match(line.strip())
            if m:
                headings.append((i, ChangeType.from_label(m.group(1))))

        at = next((i for i, t in headings if t is ctype), None)
        if at is not None:
            j = at + 1
            while j < len(lines) and not lines[j].strip():
                j += 1
            block = list(bullets)
            if j == at + 1:
                block.insert(0, "")
            if j < len(lines) and not BULLET.match(lines[j].strip()):
                block.append("")
            lines[j:j] = block
            return

        rank = CHANGE_TYPE_ORDER.index(ctype)
        later = next((i for i, t in headings
                      if t is not None and CHANGE_TYPE_ORDER.index(t) > rank), None)
        block = [f"### {ctype.value}", ""] + bullets
        if later is not None:
            lines[later:later] = block + [""]
        else:
            while lines and not lines[-1].strip() and len(lines) > 1:
                lines.pop()
            lines.extend([""] + block)
