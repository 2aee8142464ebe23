# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

import asyncio, json, logging
import pytest
from magicr import log as ops
from magicr import metrics
from magicr.changelog.reconcile import ScenarioType
from magicr.errors import APIKeyError, ChangelogCorruptionError
from magicr.prompts import CATEGORIZE_SYSTEM, REPHRASE_SYSTEM
from magicr.service import MagicRelease
from utils import TODAY, FakeProvider, make_llm

HEADER = """# Changelog

<!-- Generated by Magic Release (magicr) - https://github.com/warengonzaga/magic-release -->
"""


def _svc(cfg, tmp_path, git, llm):
    return MagicRelease(cfg, tmp_path, git=git, llm=llm, today=lambda: TODAY)


def _run(svc, **kw):
    return asyncio.run(svc.generate(**kw))


def _body(text):
    return text.split("<!-- Compare Links -->")[0]


def test_first_release_tag_at_head(cfg, tmp_path, git, llm):
    c1 = git.commit("feat: add login")
    c2 = git.commit("fix: handle empty password (#4)")
    c3 = git.commit("docs: update readme")
    git.tag("v1.0.0")

    res = _run(_svc(cfg, tmp_path, git, llm))
    text = (tmp_path / "CHANGELOG.md").read_text(encoding="utf-8")

    assert res.scenario.type is ScenarioType.USE_TAG_VERSION
    assert res.written and res.backup is None
    assert text == res.content
    assert "## [Unreleased]" not in text
    assert "## [1.0.0] - 2024-01-01" in text
    assert f"- Add login (`{c1[:7]}`)" in text
    assert f"- Handle empty password (`{c2[:7]}`, #4)" in text
    assert f"- Update readme (`{c3[:7]}`)" in text
    assert text.endswith("[1.0.0]: https://github.com/acme/widget/releases/tag/v1.0.0\n")


def test_convert_unreleased_on_new_tag(cfg, tmp_path, git, provider, llm):
    c1 = git.commit("feat: add login")
    git.tag("v1.0.0")
    c2 = git.commit("feat: add search")
    git.tag("v1.1.0")
    (tmp_path / "CHANGELOG.md").write_text(HEADER + f"""
## [Unreleased]

### Added

- Add search (`{c2[:7]}`)

## [1.0.0] - 2024-01-01

### Added

- Add login (`{c1[:7]}`)
""", encoding="utf-8")

    res = _run(_svc(cfg, tmp_path, git, llm))
    assert res.scenario.type is ScenarioType.CONVERT_UNRELEASED
    text = (tmp_path / "CHANGELOG.md").read_text(encoding="utf-8")
    assert "## [Unreleased]" not in text
    assert f"## [1.1.0] - 2024-01-01\n\n### Added\n\n- Add search (`{c2[:7]}`)" in text
    assert f"## [1.0.0] - 2024-01-01\n\n### Added\n\n- Add login (`{c1[:7]}`)" in text
    assert provider.calls == []
    assert res.backup is not None and res.backup.exists()


def test_dual_conversion(cfg, tmp_path, git, llm):
    c1 = git.commit("feat: add a")
    c2 = git.commit("fix: repair b")
    git.tag("v1.0.0")
    c3 = git.commit("feat: add c")
    (tmp_path / "CHANGELOG.md").write_text(HEADER + f"""
## [Unreleased]

### Added

- Add a (`{c1[:7]}`)

### Fixed

- Repair b (`{c2[:7]}`)
""", encoding="utf-8")

    res = _run(_svc(cfg, tmp_path, git, llm))
    assert res.scenario.type is ScenarioType.DUAL_CONVERSION
    body = _body(res.content)
    unreleased, released = body.split("## [1.0.0] - 2024-01-01")
    assert "## [Unreleased]" in unreleased
    assert c3[:7] in unreleased and c1[:7] not in unreleased
    assert c1[:7] in released and c2[:7] in released and c3[:7] not in released


def test_no_tags_everything_unreleased(cfg, tmp_path, git, llm):
    git.commit("feat: add export")
    git.commit("fix: broken import")
    git.commit("Tweak colors")

    res = _run(_svc(cfg, tmp_path, git, llm))
    assert res.scenario.type is ScenarioType.NEW_UNRELEASED
    assert [e.version for e in res.entries] == ["Unreleased"]
    heads = [line for line in res.content.splitlines() if line.startswith("#")]
    assert heads[-4:] == ["## [Unreleased]", "### Added", "### Changed", "### Fixed"]
    # no released versions -> no compare links
    assert "Compare Links" not in res.content


def test_second_run_is_idempotent(cfg, tmp_path, git, provider, llm):
    git.commit("feat: add export")
    git.commit("fix: broken import")
    git.tag("v0.1.0")
    first = _run(_svc(cfg, tmp_path, git, llm))
    calls = len(provider.calls)

    second = _run(_svc(cfg, tmp_path, git, llm))
    assert second.scenario.type is ScenarioType.NO_CONVERSION
    assert not second.written
    assert second.content == first.content
    assert (tmp_path / "CHANGELOG.md").read_text(encoding="utf-8") == first.content
    assert len(provider.calls) == calls
    assert list(tmp_path.glob("CHANGELOG.backup.*.md")) == []


def test_converted_release_is_not_documented_again(cfg, tmp_path, git, llm):
    c1 = git.commit("feat: add login")
    git.tag("v1.0.0")
    git.commit("feat: add search")
    git.tag("v1.1.0")
    (tmp_path / "CHANGELOG.md").write_text(HEADER + f"""
## [Unreleased]

### Added

- Search box

## [1.0.0] - 2024-01-01

### Added

- Add login (`{c1[:7]}`)
""", encoding="utf-8")

    first = _run(_svc(cfg, tmp_path, git, llm))
    assert first.scenario.type is ScenarioType.CONVERT_UNRELEASED

    second = _run(_svc(cfg, tmp_path, git, llm))
    assert second.scenario.type is ScenarioType.NO_CONVERSION
    assert second.commits_found == 0
    assert not second.written
    text = (tmp_path / "CHANGELOG.md").read_text(encoding="utf-8")
    assert text == first.content
    assert "## [Unreleased]" not in text


def test_rerun_without_commit_links(cfg, tmp_path, git, llm):
    cfg.set("changelog.include_commit_links", False)
    c1 = git.commit("feat: add login")
    git.commit("fix: crash")
    first = _run(_svc(cfg, tmp_path, git, llm))
    assert f"- Add login <!-- {c1[:7]} -->" in first.content
    assert "`" not in _body(first.content).split("## [Unreleased]")[1]

    second = _run(_svc(cfg, tmp_path, git, llm))
    assert second.commits_found == 0 and second.commits_skipped == 2
    assert not second.written

    git.commit("feat: add export")
    third = _run(_svc(cfg, tmp_path, git, llm))
    assert third.commits_found == 1
    assert third.content.count("- Add login") == 1
    assert third.content.count("- Crash") == 1
    assert third.content.count("- Add export") == 1


def test_documented_commits_never_reappear(cfg, tmp_path, git, llm):
    full = git.commit("feat: add a")
    short = git.commit("feat: add b")
    fresh = git.commit("feat: add c")
    (tmp_path / "CHANGELOG.md").write_text(HEADER + f"""
## [Unreleased]

### Added

- Add a ([commit](https://github.com/acme/widget/commit/{full}))
- Add b (`{short[:7]}`)
""", encoding="utf-8")

    res = _run(_svc(cfg, tmp_path, git, llm))
    assert res.commits_found == 1 and res.commits_skipped == 2
    assert res.content.count(f"`{fresh[:7]}`") == 1
    assert res.content.count(short[:7]) == 1
    assert f"`{full[:7]}`" not in res.content
    assert metrics.snapshot()["commits_skipped_total"] == 2


def test_new_commits_after_documented_tag_merge_into_unreleased(cfg, tmp_path, git, llm):
    git.commit("feat: add export")
    git.tag("v0.1.0")
    _run(_svc(cfg, tmp_path, git, llm))
    later = git.commit("fix: crash on save")

    res = _run(_svc(cfg, tmp_path, git, llm))
    assert res.scenario.type is ScenarioType.NEW_UNRELEASED
    body = _body(res.content)
    assert body.index("## [Unreleased]") < body.index("## [0.1.0]")
    assert f"- Crash on save (`{later[:7]}`)" in body
    assert res.backup is not None


def test_changes_are_newest_first(cfg, tmp_path, git, llm):
    git.commit("feat: add one")
    git.commit("feat: add two")
    git.commit("feat: add three")
    res = _run(_svc(cfg, tmp_path, git, llm))
    bullets = [line for line in res.content.splitlines() if line.startswith("- ")]
    assert [b.split(" (")[0] for b in bullets] == ["- Add three", "- Add two", "- Add one"]


def test_llm_category_overrides_classifier(cfg, tmp_path, git):
    git.commit("feat: sanitize html input")
    provider = FakeProvider(categorize=lambda prompt: "Security")
    res = _run(_svc(cfg, tmp_path, git, make_llm(provider)))
    assert "### Security" in res.content and "### Added" not in res.content
    assert provider.count(CATEGORIZE_SYSTEM) == 1
    assert provider.count(REPHRASE_SYSTEM) == 1


def test_provider_failure_degrades_silently(cfg, tmp_path, git):
    git.commit("feat: add export")
    git.commit("fix: broken import")
    res = _run(_svc(cfg, tmp_path, git, make_llm(FakeProvider(fail=True))))
    # failed categorization falls back to Changed, descriptions to cleanup
    assert "### Changed" in res.content
    assert "- Add export (" in res.content and "- Broken import (" in res.content
    snap = metrics.snapshot()
    assert snap["llm_fallbacks_total"] == 2
    assert snap["llm_failures_total"] == 4


def test_llm_disabled_needs_no_key(cfg, tmp_path, git):
    cfg.set("rules.llm_categorization", False)
    cfg.set("rules.llm_rephrase", False)
    git.commit("feat(ui): add dark mode.")
    svc = MagicRelease(cfg, tmp_path, git=git, today=lambda: TODAY)
    assert svc.llm is None
    res = _run(svc)
    assert "- **ui**: Add dark mode (" in res.content


def test_missing_api_key_fails_at_construction(cfg, tmp_path, git):
    with pytest.raises(APIKeyError):
        MagicRelease(cfg, tmp_path, git=git)


def test_dry_run_never_touches_disk(cfg, tmp_path, git, llm):
    git.commit("feat: add export")
    res = _run(_svc(cfg, tmp_path, git, llm), dry_run=True)
    assert res.dry_run and not res.written
    assert "## [Unreleased]" in res.content
    assert not (tmp_path / "CHANGELOG.md").exists()


def test_min_commits_for_update(cfg, tmp_path, git, llm):
    cfg.set("rules.min_commits_for_update", 3)
    git.commit("feat: add export")
    res = _run(_svc(cfg, tmp_path, git, llm))
    assert res.scenario.type is ScenarioType.NO_CONVERSION
    assert not (tmp_path / "CHANGELOG.md").exists()


def test_corrupt_changelog_aborts_before_write(cfg, tmp_path, git, llm):
    git.commit("feat: add export")
    path = tmp_path / "CHANGELOG.md"
    original = "## [1.0.0]\n\n### Added\n\n- A\n\n## [1.0.0]\n\n### Fixed\n\n- B\n"
    path.write_text(original, encoding="utf-8")
    with pytest.raises(ChangelogCorruptionError):
        _run(_svc(cfg, tmp_path, git, llm))
    assert path.read_text(encoding="utf-8") == original
    assert list(tmp_path.glob("CHANGELOG.backup.*.md")) == []


def test_git_compare_failure_degrades_to_unreleased(cfg, tmp_path, git, llm, caplog):
    git.commit("feat: add export")
    git.tag("v1.0.0")
    git.commit("fix: broken import")
    git.fail_hash = True
    with caplog.at_level(logging.WARNING, logger="magicr"):
        res = _run(_svc(cfg, tmp_path, git, llm))
    assert res.scenario.type is ScenarioType.NEW_UNRELEASED
    assert res.commits_found == 2
    assert "## [1.0.0]" not in res.content
    assert any("treating all commits as unreleased" in r.message for r in caplog.records)


def test_explicit_range(cfg, tmp_path, git, llm):
    git.commit("feat: add one")
    start = git.commit("feat: add two")
    git.commit("feat: add three")
    res = _run(_svc(cfg, tmp_path, git, llm), from_ref=start)
    assert res.commits_found == 1
    assert ("get_commits_between", start, "HEAD") in git.calls


def test_next_version_suggestion(cfg, tmp_path, git, llm):
    git.commit("feat: add export")
    git.tag("v1.2.0")
    git.commit("feat!: drop legacy api")
    res = _run(_svc(cfg, tmp_path, git, llm), dry_run=True)
    assert res.next_version.next_version == "2.0.0"


def test_generate_emits_ops_event(cfg, tmp_path, git, llm, capsys):
    git.commit("feat: add export")
    ops.configure("stdout")
    try:
        _run(_svc(cfg, tmp_path, git, llm), dry_run=True)
    finally:
        ops.configure(None)
    event = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert event["op"] == "generate"
    assert event["status"] == "ok"
    assert event["scenario"] == "new-unreleased"
    assert event["commits"] == 1
    assert event["dry_run"] is True


def test_generate_ops_event_carries_error_code(cfg, tmp_path, git, llm, capsys):
    (tmp_path / "CHANGELOG.md").write_text("## [1.0.0]\n\n## [1.0.0]\n", encoding="utf-8")
    ops.configure("stdout")
    try:
        with pytest.raises(ChangelogCorruptionError):
            _run(_svc(cfg, tmp_path, git, llm))
    finally:
        ops.configure(None)
    event = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert event["status"] == "error"
    assert event["error_code"] == "CHANGELOG_CORRUPT"
