# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
import os, re, subprocess
from datetime import datetime
from pathlib import Path
from ..errors import GitError, not_a_repository
from ..log import LOG as log
from ..models import GitCommit, GitTag, RepositoryInfo

# unit / record separators keep multi-line bodies intact
_US, _RS = "\x1f", "\x1e"
_LOG_FORMAT = "%x1f".join(["%H", "%s", "%b", "%an", "%ae", "%aI", "%cn", "%ce", "%cI"]) + "%x1e"
_TAG_FORMAT = "%1f".join(["%(refname:short)", "%(creatordate:iso-strict)", "%(subject)"])

_MISSING_REF = ("unknown revision", "does not have any commits yet",
                "bad revision", "ambiguous argument")


def _parse_date(value: str) -> datetime | None:
    value = (value or "").strip()
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class GitService:
    def __init__(self, cwd: str | Path | None = None):
        self.cwd = str(cwd or os.getcwd())
        if not os.path.exists(os.path.join(self.cwd, ".git")):
            raise not_a_repository(self.cwd)

    def _git(self, *args: str) -> str:
        log.debug(f"Executing: git {' '.join(args)}")
        try:
            out = subprocess.run(
                ["git", *args], cwd=self.cwd, check=True, text=True,
                stdout=subprocess.PIPE, stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise GitError("Git is not installed or not available in PATH") from e
        except subprocess.CalledProcessError as e:
            raise GitError(f"git {' '.join(args)} failed: {(e.stderr or '').strip()}",
                           {"args": list(args), "returncode": e.returncode}) from e
        return out.stdout.strip()

    # -------- commits --------
    def get_commits_between(self, from_ref: str | None = None,
                            to_ref: str = "HEAD") -> list[GitCommit]:
        """Commits reachable from to_ref but not from from_ref, newest first."""
        rng = f"{from_ref}..{to_ref}" if from_ref else to_ref
        try:
            output = self._git("log", rng, f"--pretty=format:{_LOG_FORMAT}")
        except GitError as e:
            if any(s in e.message for s in _MISSING_REF):
                log.warning(f"Reference {from_ref or to_ref} not found or repository is empty")
                return []
            raise
        commits = []
        for record in output.split(_RS):
            record = record.strip("\n")
            if not record.strip():
                continue
            parts = record.split(_US)
            if len(parts) < 9:
                continue
            commits.append(GitCommit(
                hash=parts[0].strip(),
                subject=parts[1].strip(),
                body=parts[2].strip(),
                author_name=parts[3].strip(),
                author_email=parts[4].strip(),
                author_date=_parse_date(parts[5]),
                committer_name=parts[6].strip(),
                committer_email=parts[7].strip(),
                committer_date=_parse_date(parts[8]),
            ))
        return commits

    def has_commits(self) -> bool:
        try:
            self._git("rev-parse", "--verify", "HEAD")
            return True
        except GitError:
            return False

    def get_commit_hash(self, ref: str) -> str:
        """Full hash of the commit a ref (branch, tag, HEAD) points at."""
        out = self._git("rev-list", "-n", "1", ref)
        if not out:
            raise GitError(f"Reference {ref} does not point at a commit", {"ref": ref})
        return out

    # -------- tags --------
    def get_all_tags(self) -> list[GitTag]:
        try:
            output = self._git("tag", "-l", "--sort=-version:refname", f"--format={_TAG_FORMAT}")
        except GitError:
            log.warning("Failed to list tags, repository might have no tags yet")
            return []
        tags = []
        for line in output.splitlines():
            parts = line.split(_US)
            if not parts[0].strip():
                continue
            tags.append(GitTag(
                name=parts[0].strip(),
                date=_parse_date(parts[1]) if len(parts) > 1 else None,
                subject=parts[2].strip() if len(parts) > 2 else "",
            ))
        return tags

    # -------- repository --------
    def get_remote_url(self, remote: str = "origin") -> str | None:
        try:
            return self._git("remote", "get-url", remote) or None
        except GitError:
            return None


_HOSTED = re.compile(r"(github\.com|gitlab\.com)[:/]([^/]+)/([^/]+?)(?:\.git)?/?$")


def parse_repository_url(remote_url: str, cwd: str) -> RepositoryInfo:
    """GitHub/GitLab remotes (https or ssh) to owner/name/url."""
    m = _HOSTED.search((remote_url or "").strip())
    if m:
        host, owner, name = m.groups()
        return RepositoryInfo(owner=owner, name=name, url=f"https://{host}/{owner}/{name}")
    url = (remote_url or "").strip()
    if url.endswith(".git"):
        url = url[:-4]
    return RepositoryInfo(owner="unknown", name=os.path.basename(os.path.abspath(cwd)), url=url)


def repository_base_url(configured: str | None, detected: RepositoryInfo | None) -> str | None:
    """
    Base URL used for compare links. git.repository may be a full URL or
    owner/repo (GitHub); otherwise the detected http(s) remote is used.
    """
    if configured:
        configured = configured.strip().rstrip("/")
        if configured.startswith("http"):
            return configured
        if re.fullmatch(r"[\w.-]+/[\w.-]+", configured):
            return f"https://github.com/{configured}"
        return None
    if detected and detected.url.startswith("http"):
        return detected.url.rstrip("/")
    return None
