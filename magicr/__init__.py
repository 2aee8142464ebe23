# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

__all__ = [
    "config", "log", "metrics", "errors", "models", "schemas", "prompts",
    "llm", "providers", "git", "changelog", "service", "cli",
]
