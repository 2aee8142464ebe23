# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

import asyncio, json, logging
import pytest
import magicr.log as ops_log
from magicr.errors import GitError


@pytest.fixture(autouse=True)
def reset():
    """Reset ops_log singleton state before and after each test."""
    ops_log.configure(None)
    yield
    ops_log.configure(None)
    ops_log.set_verbosity()


def test_emit_noop_when_not_configured(capsys):
    ops_log.emit(op="generate", scenario="no-conversion", latency_ms=1.0, status="ok")
    assert capsys.readouterr().out == ""


def test_configure_stdout_emits_json(capsys):
    ops_log.configure("stdout")
    ops_log.emit(op="generate", scenario="new-unreleased", commits=3,
                 latency_ms=12.5, status="ok", error_code=None)
    data = json.loads(capsys.readouterr().out.strip())
    assert data["op"] == "generate"
    assert data["commits"] == 3
    assert "error_code" not in data
    assert "ts" in data


def test_configure_null_string_disables(capsys):
    ops_log.configure("stdout")
    ops_log.configure("null")
    ops_log.emit(op="generate", status="ok")
    assert capsys.readouterr().out == ""


def test_configure_file(tmp_path):
    path = tmp_path / "ops.jsonl"
    ops_log.configure(str(path))
    ops_log.emit(op="generate", status="ok")
    ops_log.emit(op="generate", status="error", error_code="GIT_ERROR")
    ops_log.close()
    lines = [json.loads(line) for line in path.read_text().strip().splitlines()]
    assert [d["status"] for d in lines] == ["ok", "error"]
    assert lines[1]["error_code"] == "GIT_ERROR"


def test_ops_event_sync_and_async(capsys):
    ops_log.configure("stdout")

    @ops_log.ops_event("check", target="target")
    def check(*, target):
        return True

    @ops_log.ops_event("fetch", size=lambda kw, res: len(res))
    async def fetch():
        return [1, 2]

    @ops_log.ops_event("broken")
    def broken():
        raise GitError("boom")

    check(target="git")
    asyncio.run(fetch())
    with pytest.raises(GitError):
        broken()
    events = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
    assert [e["op"] for e in events] == ["check", "fetch", "broken"]
    assert events[0]["target"] == "git"
    assert events[1]["size"] == 2
    assert events[2]["status"] == "error" and events[2]["error_code"] == "GIT_ERROR"
    assert all("latency_ms" in e for e in events)


def test_set_verbosity_levels():
    assert ops_log.set_verbosity(verbose=True) == logging.DEBUG
    assert ops_log.LOG.level == logging.DEBUG
    assert ops_log.set_verbosity(quiet=True) == logging.WARNING
    assert ops_log.set_verbosity() == logging.INFO
