#!/usr/bin/env python3
"""
Mim - CLI

Trigger for verification passes plus a few thin operations on the
pending-review store. Output is JSON unless --pretty is given.

Usage:
    python mim_cli.py run [--repo PATH] [--pretty]        # One verification pass
    python mim_cli.py status [--repo PATH] [--pretty]     # Reviews, manifest, lock
    python mim_cli.py reviews [--repo PATH] [--pretty]    # List pending reviews
    python mim_cli.py answer <id> <option-number|text>    # Answer a review
    python mim_cli.py apply [--repo PATH] [--pretty]      # Apply answered reviews
    python mim_cli.py version
"""
import asyncio
import json
import os
import sys
from pathlib import Path

if hasattr(sys.stdout, 'reconfigure'):
    sys.stdout.reconfigure(encoding='utf-8')
if hasattr(sys.stderr, 'reconfigure'):
    sys.stderr.reconfigure(encoding='utf-8')

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, SCRIPT_DIR)

from mim.__version__ import __version__
from mim.core.errors import ReviewNotFoundError
from mim.core.orchestrator import collect_status, run_apply, run_pass
from mim.storage.review_store import PendingReviewStore
from mim.utils.config import MimConfig
from mim.utils.cost_tracker import CostTracker
from mim.utils.git import find_repo_root
from mim.utils.logging import (
    configure_logging,
    print_pass_report,
    print_review_list,
    print_status,
)

USAGE = "Usage: mim_cli.py <run|status|reviews|answer|apply|version> [--repo PATH] [--pretty]"


def _parse_flags(argv):
    """Split argv into positionals, --repo value and --pretty."""
    positionals = []
    repo = None
    pretty = False
    i = 0
    while i < len(argv):
        if argv[i] == "--repo" and i + 1 < len(argv):
            i += 1
            repo = argv[i]
        elif argv[i] == "--pretty":
            pretty = True
        else:
            positionals.append(argv[i])
        i += 1
    return positionals, repo, pretty


def _resolve_repo(repo):
    if repo:
        return Path(repo).resolve()
    cwd = Path.cwd()
    return find_repo_root(cwd) or cwd


def _setup(repo, pretty):
    config = MimConfig.from_env()
    paths = config.paths(repo)
    # Never create a knowledge directory just to log into it
    log_file = paths.log_file if paths.base.is_dir() else None
    configure_logging(log_file=log_file, debug=config.debug_mode, to_console=pretty)
    return config, paths


def _build_delegate(config, repo, cost_tracker):
    # Deferred: only passes that investigate need the SDK client
    from mim.indexing.anthropic_delegate import AnthropicDelegate
    return AnthropicDelegate.from_config(config, repo, cost_tracker)


async def cmd_run(repo, pretty=False):
    config, _ = _setup(repo, pretty)
    if not config.has_api_key:
        report = {"status": "skipped", "reason": "no_api_key", "warnings": config.validate()}
    else:
        cost_tracker = CostTracker()
        delegate = _build_delegate(config, repo, cost_tracker)
        report = await run_pass(repo, config, delegate, cost_tracker=cost_tracker)
    if pretty:
        print_pass_report(report)
    else:
        print(json.dumps(report, indent=2, default=str))


async def cmd_apply(repo, pretty=False):
    config, _ = _setup(repo, pretty)
    if not config.has_api_key:
        report = {"status": "skipped", "reason": "no_api_key"}
    else:
        cost_tracker = CostTracker()
        delegate = _build_delegate(config, repo, cost_tracker)
        report = await run_apply(repo, config, delegate, cost_tracker=cost_tracker)
    print(json.dumps(report, indent=2, default=str))


def cmd_status(repo, pretty=False):
    config, _ = _setup(repo, pretty)
    status = collect_status(repo, config)
    status["warnings"] = config.validate()
    if pretty:
        print_status(status)
    else:
        print(json.dumps(status, indent=2, default=str))


def cmd_reviews(repo, pretty=False):
    config, paths = _setup(repo, pretty)
    reviews = PendingReviewStore(paths.pending_dir).list_all()
    if pretty:
        print_review_list(reviews)
    else:
        print(json.dumps([r.to_dict() for r in reviews], indent=2))


def cmd_answer(repo, entry_id, answer):
    config, paths = _setup(repo, False)
    store = PendingReviewStore(paths.pending_dir)
    try:
        review = store.answer(entry_id, answer)
    except ReviewNotFoundError as e:
        print(json.dumps({"error": str(e)}))
        sys.exit(1)
    print(json.dumps({"answered": review.id, "answer": review.answer}))


async def main():
    if len(sys.argv) < 2:
        print(json.dumps({"error": USAGE}))
        sys.exit(1)

    cmd = sys.argv[1].lower()
    positionals, repo_arg, pretty = _parse_flags(sys.argv[2:])

    try:
        if cmd == "version":
            print(json.dumps({"version": __version__}))
            return

        repo = _resolve_repo(repo_arg)

        if cmd == "run":
            await cmd_run(repo, pretty=pretty)

        elif cmd == "status":
            cmd_status(repo, pretty=pretty)

        elif cmd == "reviews":
            cmd_reviews(repo, pretty=pretty)

        elif cmd == "answer":
            if len(positionals) < 2:
                print(json.dumps({"error": "Usage: mim_cli.py answer <id> <option-number|text>"}))
                sys.exit(1)
            cmd_answer(repo, positionals[0], " ".join(positionals[1:]))

        elif cmd == "apply":
            await cmd_apply(repo, pretty=pretty)

        else:
            print(json.dumps({"error": f"Unknown command: {cmd}. Use run|status|reviews|answer|apply|version"}))
            sys.exit(1)

    except Exception as e:
        print(json.dumps({"error": str(e)}))
        sys.exit(1)


def run():
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
