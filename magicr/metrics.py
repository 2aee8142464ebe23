# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
import time, threading
from typing import Dict, Any

_started = time.time()
_lock = threading.Lock()
_DEFAULT_COUNTERS = (
    "generate_total",
    "commits_processed_total",
    "commits_skipped_total",
    "llm_requests_total",
    "llm_failures_total",
    "llm_fallbacks_total",
    "llm_cache_hits_total",
    "llm_tokens_total",
    "changelog_writes_total",
    "backups_pruned_total",
    "errors_total",
)
_counters: Dict[str, float] = {k: 0.0 for k in _DEFAULT_COUNTERS}

_last_error: str | None = None

def inc(name: str, value: float = 1.0):
    with _lock:
        _counters[name] = _counters.get(name, 0.0) + value

def set_error(msg: str):
    global _last_error
    with _lock:
        _last_error = msg
        _counters["errors_total"] = _counters.get("errors_total", 0.0) + 1.0

def reset():
    global _last_error
    with _lock:
        _counters.clear()
        _counters.update({k: 0.0 for k in _DEFAULT_COUNTERS})
        _last_error = None

def snapshot(extra: Dict[str, Any] | None = None) -> Dict[str, Any]:
    with _lock:
        data = dict(_counters)
        data.update({
            "uptime_seconds": time.time() - _started,
            "last_error": _last_error,
        })
        if extra:
            data.update(extra)
        return data

def summary() -> str:
    """One-line human summary of the non-zero counters."""
    snap = snapshot()
    parts = [f"{k}={int(v)}" for k, v in snap.items()
             if k.endswith("_total") and isinstance(v, float) and v]
    return ", ".join(parts) or "no activity"
