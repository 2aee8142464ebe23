# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

import json
import pytest
import yaml
from magicr import cli as mrcli
from magicr.service import MagicRelease
from utils import TODAY, FakeGit, FakeProvider, make_llm


@pytest.fixture
def cli_env(monkeypatch, tmp_path):
    git = FakeGit()
    provider = FakeProvider()

    def factory(cfg, cwd):
        return MagicRelease(cfg, cwd, git=git, llm=make_llm(provider), today=lambda: TODAY)

    monkeypatch.setattr(mrcli, "MagicRelease", factory)
    return mrcli, git, tmp_path


def test_generate_dry_run_prints_document(cli_env, capsys):
    cli, git, tmp_path = cli_env
    git.commit("feat: add export")
    assert cli.main_cli(["generate", "-C", str(tmp_path), "--dry-run"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("# Changelog")
    assert "- Add export (" in out
    assert not (tmp_path / "CHANGELOG.md").exists()


def test_generate_writes_and_reports(cli_env, capsys):
    cli, git, tmp_path = cli_env
    git.commit("feat: add export")
    git.tag("v1.0.0")
    assert cli.main_cli(["generate", "-C", str(tmp_path)]) == 0
    assert capsys.readouterr().out.strip() == "CHANGELOG.md updated (use-tag-version)"
    assert "## [1.0.0]" in (tmp_path / "CHANGELOG.md").read_text(encoding="utf-8")

    assert cli.main_cli(["generate", "-C", str(tmp_path), "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["scenario"] == "no-conversion"
    assert data["written"] is False


def test_generate_honours_changelog_filename(cli_env, monkeypatch):
    cli, git, tmp_path = cli_env
    monkeypatch.setenv("MAGICR_CHANGELOG__FILENAME", "HISTORY.md")
    git.commit("fix: crash")
    assert cli.main_cli(["generate", "-C", str(tmp_path)]) == 0
    assert (tmp_path / "HISTORY.md").exists()


def test_errors_print_code_and_exit_non_zero(tmp_path, capsys):
    # no .git here: the real service refuses to start
    assert mrcli.main_cli(["generate", "-C", str(tmp_path)]) == 1
    err = capsys.readouterr().err
    assert "error [GIT_ERROR]" in err
    assert "Traceback" not in err


def test_verbose_errors_include_context(tmp_path, capsys):
    assert mrcli.main_cli(["generate", "-C", str(tmp_path), "--verbose"]) == 1
    err = capsys.readouterr().err
    assert '"path"' in err
    assert "Traceback" in err


def test_init_writes_sample_without_secrets(tmp_path, capsys):
    assert mrcli.main_cli(["init", "-C", str(tmp_path), "--provider", "anthropic"]) == 0
    data = yaml.safe_load((tmp_path / ".magicrrc").read_text(encoding="utf-8"))
    assert data["llm"]["provider"] == "anthropic"
    assert data["llm"]["model"].startswith("claude-")
    assert "api_key" not in data["llm"]

    assert mrcli.main_cli(["init", "-C", str(tmp_path)]) == 1
    assert "error [VALIDATION_ERROR]" in capsys.readouterr().err
    assert mrcli.main_cli(["init", "-C", str(tmp_path), "--force"]) == 0


def test_providers_marks_current(tmp_path, capsys, monkeypatch):
    monkeypatch.setenv("MAGICR_LLM__PROVIDER", "azure")
    assert mrcli.main_cli(["providers", "-C", str(tmp_path)]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 3
    assert [l for l in lines if l.startswith("*")][0].split()[1] == "azure"


def test_check_reports_services(cli_env, capsys):
    cli, git, tmp_path = cli_env
    git.commit("feat: add export")
    assert cli.main_cli(["check", "-C", str(tmp_path)]) == 0
    assert capsys.readouterr().out.splitlines() == ["git: ok", "llm: ok"]


def test_check_fails_without_commits(cli_env, capsys):
    cli, git, tmp_path = cli_env
    assert cli.main_cli(["check", "-C", str(tmp_path)]) == 1
    assert "git: FAILED" in capsys.readouterr().out
