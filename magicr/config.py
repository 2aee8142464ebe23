# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
import os, re, yaml, threading
from pathlib import Path
from typing import Any, Dict
from dotenv import load_dotenv

load_dotenv()

_ENV_PREFIX = "MAGICR_"

# project files, first hit wins
CONFIG_FILENAMES = (
    ".magicrrc",
    ".magicrrc.json",
    ".magicrrc.yml",
    ".magicr.json",
    "magicr.config.json",
)

_DEFAULTS = {
    "llm": {
        "provider": "openai",
        "model": "gpt-4o-mini",
        "temperature": 0.1,
        "max_tokens": 150,
        "timeout": 30,
        "batch_size": 10,
        "batch_delay": 1.0,
    },
    "changelog": {
        "filename": "CHANGELOG.md",
        "include_commit_links": True,
        "include_pr_links": True,
        "include_issue_links": True,
        "include_compare_links": True,
        "backup_retention_days": 7,
    },
    "git": {"remote": "origin"},
    "rules": {
        "min_commits_for_update": 1,
        "include_pre_releases": False,
        "llm_categorization": True,
        "llm_rephrase": True,
    },
    "log": {"level": "INFO", "ops": None},
}

_ENV_PATTERN = re.compile(r"\$\{([^}:|]+)(?:\|([^}]*))?\}")

# ---------------- utils ----------------
def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(a)
    for k, v in (b or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        elif v is not None:
            out[k] = v
    return out

def _coerce(s: str) -> Any:
    if isinstance(s, str):
        low = s.lower()
        if low in {"true", "false"}:
            return low == "true"
        try:
            if s.isdigit():
                return int(s)
            return float(s)
        except ValueError:
            return s
    return s

def _subst_env(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    def repl(m: re.Match) -> str:
        key = m.group(1)
        default = m.group(2) if m.group(2) is not None else ""
        return os.environ.get(key, default)
    return _ENV_PATTERN.sub(repl, value)

def _resolve_env_in_obj(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _resolve_env_in_obj(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_resolve_env_in_obj(v) for v in obj]
    return _subst_env(obj)

def _env_to_dict(prefix: str = _ENV_PREFIX) -> Dict[str, Any]:
    envmap: Dict[str, Any] = {}
    for k, v in os.environ.items():
        if not k.startswith(prefix) or k == prefix + "CONFIG":
            continue
        path = k[len(prefix):].lower().split("__")
        cur = envmap
        for part in path[:-1]:
            cur = cur.setdefault(part, {})
        cur[path[-1]] = _coerce(v)
    return envmap

def _load_yaml(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    if p.is_file():
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        # camelCase keys from older JSON project files
        return _snake_keys(data) if isinstance(data, dict) else {}
    return {}

def _snake_keys(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {re.sub(r"(?<!^)(?=[A-Z])", "_", str(k)).lower(): _snake_keys(v)
                for k, v in obj.items()}
    return obj

def find_project_config(search_dir: str | Path | None = None) -> Path | None:
    explicit = os.environ.get(_ENV_PREFIX + "CONFIG")
    if explicit:
        return Path(explicit)
    base = Path(search_dir or os.getcwd())
    for name in CONFIG_FILENAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None

# --------------- singleton wrapper ----------------
class Config:
    """
    Single backing dict; thread-safe. Can be constructed from a file path
    or from a pre-built dict. `get(path, default)` persists default.
    """
    def __init__(
            self,
            data: Dict[str, Any] | None = None,
            path: str | Path | None = None):
        self._lock = threading.RLock()
        if data is None:
            data = self._load_dict(path)
        self._cfg: Dict[str, Any] = dict(data)

    @staticmethod
    def _load_dict(path: str | Path | None) -> Dict[str, Any]:
        path = path or find_project_config()
        file_cfg = _resolve_env_in_obj(_load_yaml(path)) if path else {}
        env_cfg = _env_to_dict()
        return _deep_merge(_deep_merge(_DEFAULTS, file_cfg), env_cfg)

    # -------- path ops --------
    def _get_from(self, store: Dict[str, Any], path: str):
        cur: Any = store
        for part in path.split("."):
            if not isinstance(cur, dict) or part not in cur:
                return None
            cur = cur[part]
        return cur

    def _set_into(self, store: Dict[str, Any], path: str, value: Any) -> None:
        cur = store
        parts = path.split(".")
        for p in parts[:-1]:
            cur = cur.setdefault(p, {})
        cur[parts[-1]] = value

    # -------- public API --------
    def get(self, path: str, default: Any = None) -> Any:
        with self._lock:
            val = self._get_from(self._cfg, path)
            if val is not None:
                return val
            if default is not None:
                # persist default on first read
                self._set_into(self._cfg, path, default)
                return default
            return None

    def set(self, path: str, value: Any) -> None:
        with self._lock:
            self._set_into(self._cfg, path, value)

    def as_dict(self) -> Dict[str, Any]:
        with self._lock:
            return _deep_merge({}, self._cfg)

    def snapshot(self) -> Dict[str, Any]:
        return self.as_dict()

    # replace all config in place (keeps object identity)
    def replace(self, data: Dict[str, Any] | None = None,
                path: str | Path | None = None) -> None:
        fresh = Config(data=data, path=path)
        with self._lock:
            self._cfg.clear()
            self._cfg.update(fresh._cfg)

    # attribute sugar (cfg.llm, cfg.changelog, ...)
    def __getattr__(self, item):
        if item.startswith("_"):
            raise AttributeError(item)
        with self._lock:
            v = self._cfg.get(item)
            if isinstance(v, dict):
                # lightweight view sharing the same backing dict
                child = Config({})
                child._cfg = v
                return child
            return v

# --- singleton access (CLI + tests share this) ---
_CFG_SINGLETON = Config()

def get_cfg() -> Config:
    return _CFG_SINGLETON

def reload_cfg(path: str | None = None) -> Config:
    # hard reload from disk/env; keep the same object
    _CFG_SINGLETON.replace(path=path)
    return _CFG_SINGLETON

CFG = _CFG_SINGLETON
