# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Reads Keep a Changelog documents. Only the grammar the renderer writes is
understood structurally; everything else survives as raw block text.
"""

from __future__ import annotations
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from ..errors import ChangelogCorruptionError, duplicate_versions
from ..log import LOG as log
from ..models import UNRELEASED, Change, ChangelogEntry, ChangeType, Commit

MAGICR_MARKER = "Generated by Magic Release (magicr)"
COMPARE_LINKS_MARKER = "<!-- Compare Links -->"

VERSION_HEADER = re.compile(r"^##\s*\[([^\]]+)\](?:\s*-\s*(.+))?")
VERSION_HEADER_M = re.compile(r"^##\s*\[([^\]]+)\]", re.MULTILINE)
ANY_H2 = re.compile(r"^##(?!#)")
SECTION_HEADER = re.compile(r"^###\s+(.+?)\s*$")
BULLET = re.compile(r"^[-*]\s+(.+)")
SCOPE = re.compile(r"^\*\*([^*]+)\*\*:\s*(.+)$")
REFS = re.compile(r"\s*\(([^()]*)\)\s*$")
REF_HASH = re.compile(r"^\[?`([0-9a-f]{7,40})`\]?(?:\([^)]*\))?$")
REF_NUM = re.compile(r"^\[?#(\d+)\]?(?:\([^)]*\))?$")
LINK_DEF = re.compile(r"^\[[^\]]+\]:\s*\S+")
ISO_DATE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
DOCUMENTED_HASH = re.compile(r"`([0-9a-f]{7,40})`|/commits?/([0-9a-f]{7,40})\b")
# bullets rendered without commit links carry their hashes in a comment
HASH_NOTE = re.compile(r"<!--\s*((?:[0-9a-f]{7,40}\s+)*[0-9a-f]{7,40})\s*-->")


@dataclass
class Block:
    """One version section: its label, exact source text and parsed form."""
    version: str
    raw: str
    entry: ChangelogEntry


@dataclass
class Document:
    preamble: str = ""
    blocks: list[Block] = field(default_factory=list)
    trailer: str = ""

    def find(self, version: str) -> Block | None:
        return next((b for b in self.blocks if b.version == version), None)


def _normalize_version(label: str) -> str:
    label = label.strip()
    return UNRELEASED if label.lower() == UNRELEASED.lower() else label


def _parse_date(text: str | None) -> date | None:
    if not text:
        return None
    m = ISO_DATE.search(text)
    if not m:
        return None
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None


def parse_change(text: str) -> Change:
    """`[**scope**: ]description[ (`hash`, #pr, #issue)][ <!-- hash -->]` to a Change."""
    description = text.strip()
    scope = None
    m = SCOPE.match(description)
    if m:
        scope, description = m.group(1).strip(), m.group(2).strip()
    commits: list[Commit] = []
    issues: list[str] = []
    hidden: list[str] = []
    note = HASH_NOTE.search(description)
    if note and not description[note.end():].strip():
        description = description[:note.start()].rstrip()
        hidden = note.group(1).split()
    m = REFS.search(description)
    if m:
        tokens = [t.strip() for t in m.group(1).split(",") if t.strip()]
        if tokens and all(REF_HASH.match(t) or REF_NUM.match(t) for t in tokens):
            description = description[:m.start()].rstrip()
            for tok in tokens:
                hm = REF_HASH.match(tok)
                if hm:
                    commits.append(Commit(hash=hm.group(1), message=description))
                else:
                    issues.append(REF_NUM.match(tok).group(1))
    commits += [Commit(hash=h, message=description) for h in hidden]
    return Change(description=description, commits=commits, scope=scope, issues=issues)


def _parse_block(lines: list[str]) -> ChangelogEntry:
    m = VERSION_HEADER.match(lines[0].strip())
    entry = ChangelogEntry(version=_normalize_version(m.group(1)), date=_parse_date(m.group(2)))
    current: ChangeType | None = None
    for raw_line in lines[1:]:
        line = raw_line.strip()
        if not line or line.startswith("<!--"):
            continue
        sm = SECTION_HEADER.match(line)
        if sm:
            current = ChangeType.from_label(sm.group(1))
            if current is not None:
                entry.sections.setdefault(current, [])
            continue
        bm = BULLET.match(line)
        if bm and current is not None and raw_line[:1] in ("-", "*"):
            entry.sections[current].append(parse_change(bm.group(1)))
    if entry.version == UNRELEASED:
        entry.date = None
    return entry


def _trailer_start(lines: list[str], floor: int) -> int:
    """Index where the trailing link-reference block begins (len if none)."""
    cut = len(lines)
    i = len(lines) - 1
    while i > floor:
        line = lines[i].strip()
        if not line:
            i -= 1
            continue
        if LINK_DEF.match(line) or line == COMPARE_LINKS_MARKER:
            cut = i
            i -= 1
            continue
        break
    return cut


class ChangelogParser:
    """Pure queries over changelog text."""

    def split(self, text: str | None) -> Document:
        text = text or ""
        lines = text.split("\n")
        starts = [i for i, line in enumerate(lines) if VERSION_HEADER.match(line.strip())]
        if not starts:
            return Document(preamble=text.rstrip("\n"))
        doc = Document(preamble="\n".join(lines[:starts[0]]).rstrip("\n"))
        cut = _trailer_start(lines, starts[-1])
        doc.trailer = "\n".join(lines[cut:]).strip("\n")
        bounds = starts + [cut]
        for start, end in zip(bounds, bounds[1:]):
            chunk = lines[start:end]
            entry = _parse_block(chunk)
            doc.blocks.append(Block(entry.version, "\n".join(chunk).rstrip("\n"), entry))
        return doc

    def parse(self, text: str | None) -> list[ChangelogEntry]:
        """Entries in document order; duplicate version headers raise."""
        entries = [b.entry for b in self.split(text).blocks]
        dupes = [v for v, n in Counter(e.version for e in entries).items() if n > 1]
        if dupes:
            raise duplicate_versions(dupes)
        log.debug(f"Parsed {len(entries)} changelog entries")
        return entries

    def extract_versions(self, text: str | None) -> set[str]:
        return {_normalize_version(v) for v in VERSION_HEADER_M.findall(text or "")}

    def is_magicr_generated(self, text: str | None) -> bool:
        return MAGICR_MARKER in (text or "")

    def extract_unreleased_raw(self, text: str | None) -> str | None:
        """Unreleased header up to the next level-2 header, verbatim."""
        lines = (text or "").split("\n")
        start = None
        for i, line in enumerate(lines):
            m = VERSION_HEADER.match(line.strip())
            if m and _normalize_version(m.group(1)) == UNRELEASED:
                start = i
                break
        if start is None:
            return None
        end = next((j for j in range(start + 1, len(lines)) if ANY_H2.match(lines[j])),
                   len(lines))
        return "\n".join(lines[start:end])

    def get_documented_commits(self, text: str | None) -> set[str]:
        """Hash tokens in the document, each also present in its 7-char form."""
        found: set[str] = set()
        tokens = [a or b for a, b in DOCUMENTED_HASH.findall(text or "")]
        for note in HASH_NOTE.findall(text or ""):
            tokens += note.split()
        for token in tokens:
            found.add(token)
            found.add(token[:7])
        return found

    @staticmethod
    def is_documented(commit_hash: str, documented: set[str]) -> bool:
        return commit_hash in documented or commit_hash[:7] in documented

    def validate(self, text: str | None) -> None:
        """Integrity check for an existing file; raises ChangelogCorruptionError."""
        if not (text or "").strip():
            return
        self.parse(text)
        if self.is_magicr_generated(text) and not self.extract_versions(text):
            headings = (SECTION_HEADER.match(line.strip()) for line in text.split("\n"))
            if any(m and ChangeType.from_label(m.group(1)) for m in headings):
                raise ChangelogCorruptionError(
                    "Generated changelog has change sections but no version headers")
