# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
import argparse, asyncio, json, os, sys, traceback
from pathlib import Path
import yaml
from magicr import log as ops
from magicr import metrics
from magicr.config import CONFIG_FILENAMES, Config, find_project_config, reload_cfg
from magicr.errors import MagicReleaseError, ValidationError
from magicr.log import LOG as log, set_verbosity
from magicr.providers.factory import PROVIDERS
from magicr.service import MagicRelease

# written by `magicr init`; never contains credentials
SAMPLE_CONFIG = {
    "llm": {"provider": "openai", "model": "gpt-4o-mini", "temperature": 0.1},
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
}


def _load_cfg(args) -> Config:
    path = args.config or find_project_config(args.cwd)
    cfg = reload_cfg(str(path) if path else None)
    ops.configure(args.ops_log or cfg.get("log.ops"))
    return cfg


def _fail(e: MagicReleaseError, verbose: bool) -> int:
    metrics.set_error(f"{e.code}: {e.message}")
    print(f"error [{e.code}]: {e.message}", file=sys.stderr)
    if verbose:
        if e.context:
            print(json.dumps(e.context, indent=2, default=str), file=sys.stderr)
        traceback.print_exception(type(e), e, e.__traceback__, file=sys.stderr)
    return 1


def cmd_generate(args) -> int:
    cfg = _load_cfg(args)
    svc = MagicRelease(cfg, args.cwd)
    res = asyncio.run(svc.generate(from_ref=args.from_ref, to_ref=args.to_ref,
                                   dry_run=args.dry_run))
    if args.json:
        print(json.dumps(res.as_dict(), ensure_ascii=False))
    elif args.dry_run:
        sys.stdout.write(res.content)
    else:
        state = "updated" if res.written else "unchanged"
        print(f"{res.path.name} {state} ({res.scenario.type.value})")
    if res.next_version is not None:
        log.debug(f"Suggested next version: {res.next_version.next_version} "
                  f"({res.next_version.release_type})")
    log.debug(f"Metrics: {metrics.summary()}")
    return 0


def cmd_check(args) -> int:
    cfg = _load_cfg(args)
    status = MagicRelease(cfg, args.cwd).test_services()
    for name, ok in status.items():
        label = "skipped" if ok is None else ("ok" if ok else "FAILED")
        print(f"{name}: {label}")
    return 0 if all(ok is not False for ok in status.values()) else 1


def cmd_init(args) -> int:
    target = Path(args.cwd) / CONFIG_FILENAMES[0]
    if target.exists() and not args.force:
        raise ValidationError(f"{target} already exists (use --force to overwrite)",
                              {"path": str(target)})
    sample = json.loads(json.dumps(SAMPLE_CONFIG))
    if args.provider:
        sample["llm"]["provider"] = args.provider
        sample["llm"]["model"] = PROVIDERS[args.provider]
    with open(target, "w", encoding="utf-8") as f:
        yaml.safe_dump(sample, f, sort_keys=False)
    print(f"Wrote {target}")
    return 0


def cmd_providers(args) -> int:
    cfg = _load_cfg(args)
    current = (cfg.get("llm.provider") or "").lower()
    for name, model in PROVIDERS.items():
        mark = "*" if name == current else " "
        print(f"{mark} {name:<10} {model}")
    return 0


def main_cli(argv=None) -> int:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-C", "--cwd", default=os.getcwd(),
                        help="Repository directory (default: current directory)")
    common.add_argument("--config", help="Path to a project config file")
    common.add_argument("--ops-log", help="Ops event stream: stdout or a file path")
    common.add_argument("-v", "--verbose", action="store_true")
    common.add_argument("--debug", action="store_true")
    common.add_argument("-q", "--quiet", action="store_true", help="Only warnings and errors")

    p = argparse.ArgumentParser(prog="magicr",
                                description="Generate a Keep a Changelog file from Git history")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_gen = sub.add_parser("generate", parents=[common], help="Create or update the changelog")
    p_gen.add_argument("--dry-run", action="store_true", help="Print the result, write nothing")
    p_gen.add_argument("--from", dest="from_ref", help="Start ref (exclusive)")
    p_gen.add_argument("--to", dest="to_ref", help="End ref (inclusive, default HEAD)")
    p_gen.add_argument("--json", action="store_true", help="Print a JSON summary")
    p_gen.set_defaults(func=cmd_generate)

    p_check = sub.add_parser("check", parents=[common], help="Test Git and LLM connectivity")
    p_check.set_defaults(func=cmd_check)

    p_init = sub.add_parser("init", parents=[common], help=f"Write a sample {CONFIG_FILENAMES[0]}")
    p_init.add_argument("--provider", choices=sorted(PROVIDERS))
    p_init.add_argument("--force", action="store_true")
    p_init.set_defaults(func=cmd_init)

    p_prov = sub.add_parser("providers", parents=[common], help="List supported LLM providers")
    p_prov.set_defaults(func=cmd_providers)

    args = p.parse_args(argv)
    verbose = args.verbose or args.debug
    set_verbosity(verbose=args.verbose, debug=args.debug, quiet=args.quiet)
    try:
        return args.func(args)
    except MagicReleaseError as e:
        return _fail(e, verbose)
    finally:
        ops.close()


if __name__ == "__main__":
    raise SystemExit(main_cli())
