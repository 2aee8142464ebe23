# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import asyncio, functools, json, logging, sys, threading, time
from datetime import datetime, timezone

_dest: str | None = None
_handle = None
_lock = threading.Lock()


def configure(dest: str | None) -> None:
    """
    Select the ops stream sink. dest is None/null, 'stdout', or a file path.
    Opens the file handle if needed. No-op if dest is None/null.
    """
    global _dest, _handle
    with _lock:
        if _handle is not None:
            try:
                _handle.flush()
                _handle.close()
            finally:
                _handle = None
        _dest = None

    if not dest or str(dest).strip().lower() in ("null", "none", ""):
        return

    _dest = str(dest).strip()
    if _dest != "stdout":
        with _lock:
            _handle = open(_dest, "a", encoding="utf-8", buffering=1)


def emit(**fields) -> None:
    """
    Write one JSON line. No-op if not configured.
    None values are dropped before serialisation.
    """
    if _dest is None:
        return
    ts = (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )
    payload: dict = {"ts": ts}
    payload.update({k: v for k, v in fields.items() if v is not None})
    line = json.dumps(payload, separators=(",", ":")) + "\n"
    if _dest == "stdout":
        sys.stdout.write(line)
    else:
        with _lock:
            if _handle is not None:
                _handle.write(line)


def close() -> None:
    """Flush and close the file handle if open."""
    global _handle
    with _lock:
        if _handle is not None:
            try:
                _handle.flush()
                _handle.close()
            finally:
                _handle = None


# --------------- dev stream (stderr) ---------------

class _ColorFormatter(logging.Formatter):
    """Formatter with ANSI colors for terminal output."""
    COLORS = {
        logging.DEBUG:    "\033[36m",   # cyan
        logging.INFO:     "\033[32m",   # green
        logging.WARNING:  "\033[33m",   # yellow
        logging.ERROR:    "\033[31m",   # red
        logging.CRITICAL: "\033[35m",   # magenta
    }
    RESET = "\033[0m"
    BOLD  = "\033[1m"

    def __init__(self, fmt: str, datefmt: str, use_color: bool = True):
        super().__init__(fmt, datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        if self.use_color:
            color = self.COLORS.get(record.levelno, "")
            if record.name.startswith("magicr"):
                record.name = f"{self.BOLD}magicr{self.RESET}{color}"
            record.levelname = f"{color}{record.levelname}{self.RESET}"
            record.msg = f"{color}{record.msg}{self.RESET}"
        return super().format(record)


def _shift(level: int, delta: int) -> int:
    return min(logging.CRITICAL, max(logging.DEBUG, level + 10 * delta))


def _init_logger() -> logging.Logger:
    """
    Initializes hierarchical logging levels:
      - magicr (base) → bold + colored, to stderr
      - quiet namespaces (base +1 → less verbose)
      - all others (base +2)
    Lazy import of get_cfg avoids a circular import with config.py.
    """
    from magicr.config import get_cfg
    cfg = get_cfg()
    base_level = getattr(logging, str(cfg.get("log.level", "INFO")).upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(_shift(base_level, +2))
    root.handlers.clear()

    use_color = hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(_ColorFormatter(
        "%(asctime)s %(levelname)-5s %(name)s: %(message)s",
        "%H:%M:%S",
        use_color=use_color,
    ))
    root.addHandler(handler)

    magicr_log = logging.getLogger("magicr")
    magicr_log.setLevel(base_level)

    for ns in cfg.get("log.quiet", ["openai", "httpx", "httpcore", "urllib3"]):
        logging.getLogger(ns).setLevel(_shift(base_level, +1))

    return magicr_log


_LOGGER_SINGLETON = _init_logger()


def set_verbosity(verbose: bool = False, debug: bool = False, quiet: bool = False) -> int:
    """
    Pick the magicr level from explicit CLI flags and return it.
    quiet silences everything below WARNING, e.g. while output goes to stdout.
    """
    if debug or verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    _LOGGER_SINGLETON.setLevel(level)
    return level


LOG = _LOGGER_SINGLETON

# --------------- ops stream ---------------

def ops_event(op: str, **extra_keys):
    """
    Times the call and emits one ops line; sync or async callables.

    Extra fields: a str value is looked up in the call's kwargs, a
    callable is called as ``fn(kwargs, result)`` once the call returns
    (result is None when it raised).
    """
    def _extras(kwargs: dict, result) -> dict:
        out: dict = {}
        for field, src in extra_keys.items():
            try:
                out[field] = src(kwargs, result) if callable(src) else kwargs.get(src)
            except Exception:
                out[field] = None
        return out

    def _finish(t0: float, exc: BaseException | None, kwargs: dict, result) -> None:
        code = None
        if exc is not None:
            code = getattr(exc, "code", None) or type(exc).__name__
        emit(
            op=op,
            latency_ms=round((time.perf_counter() - t0) * 1000, 2),
            status="error" if exc is not None else "ok",
            error_code=code,
            **_extras(kwargs, result),
        )

    def decorator(fn):
        if asyncio.iscoroutinefunction(fn):
            @functools.wraps(fn)
            async def awrapper(*args, **kwargs):
                t0 = time.perf_counter()
                try:
                    result = await fn(*args, **kwargs)
                except Exception as e:
                    _finish(t0, e, kwargs, None)
                    raise
                _finish(t0, None, kwargs, result)
                return result
            return awrapper

        @functools.wraps(fn)
        def swrapper(*args, **kwargs):
            t0 = time.perf_counter()
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                _finish(t0, e, kwargs, None)
                raise
            _finish(t0, None, kwargs, result)
            return result
        return swrapper
    return decorator
