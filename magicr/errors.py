# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

"""Error hierarchy. Every error carries a stable code for CLI and ops output."""

from __future__ import annotations
from typing import Any


class MagicReleaseError(Exception):
    code = "MAGICR_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def as_dict(self) -> dict[str, Any]:
        return {"ok": False, "code": self.code, "error": self.message,
                "details": self.context or None}


class GitError(MagicReleaseError):
    code = "GIT_ERROR"


class LLMError(MagicReleaseError):
    code = "LLM_ERROR"


class ConfigError(MagicReleaseError):
    code = "CONFIG_ERROR"


class APIKeyError(ConfigError):
    code = "API_KEY_ERROR"


class ValidationError(MagicReleaseError):
    code = "VALIDATION_ERROR"


class ChangelogError(MagicReleaseError):
    code = "CHANGELOG_ERROR"


class ChangelogCorruptionError(ChangelogError):
    code = "CHANGELOG_CORRUPT"


class ChangelogWriteError(ChangelogError):
    code = "CHANGELOG_WRITE_ERROR"


def not_a_repository(path: str) -> GitError:
    return GitError(f"The directory ({path}) is not a Git repository.", {
        "path": path,
        "solution": 'Initialize a repository with "git init" or run inside one.',
    })


def missing_api_key(provider: str) -> APIKeyError:
    return APIKeyError(f"No API key configured for {provider}.", {
        "provider": provider,
        "solution": "Set llm.api_key in .magicrrc or the MAGICR_LLM__API_KEY variable.",
    })


def duplicate_versions(versions: list[str]) -> ChangelogCorruptionError:
    return ChangelogCorruptionError(
        f"Changelog has duplicate version headers: {', '.join(versions)}",
        {"versions": versions},
    )
