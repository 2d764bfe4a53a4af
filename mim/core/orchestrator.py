"""
Mim - Orchestrator

One verification pass over one repository:

    1. Resolve HEAD            (no repository → skipped)
    2. Acquire the run lock    (another pass active → skipped)
    3. Recheck pending reviews, drop moot ones
    4. Read all entries, drop the ones the manifest throttles
    5. Dispatch investigations; resolve each verdict as it lands
    6. Release the lock and return a report

Passes are idempotent. Triggering one while another runs is a cheap no-op,
and a failed pass leaves every verdict it managed to record in place.
"""
import time
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .applier import apply_answered
from .delegate import KnowledgeDelegate
from .dispatcher import InvestigationDispatcher
from .rechecker import StalenessRechecker
from .resolution import ResolutionEngine
from .types import ManifestStatus
from ..indexing.entry_reader import read_all_entries
from ..storage.manifest import Manifest
from ..storage.review_store import PendingReviewStore
from ..storage.run_lock import RunLock
from ..utils.config import MimConfig
from ..utils.cost_tracker import CostTracker
from ..utils.git import resolve_head
from ..utils.logging import get_logger

logger = get_logger("orchestrator")

HeadResolver = Callable[[Path], Optional[str]]


def _skipped(reason: str) -> Dict[str, Any]:
    return {"status": "skipped", "reason": reason}


def _empty_report(commit: str) -> Dict[str, Any]:
    return {
        "status": "completed",
        "commit": commit,
        "entries_found": 0,
        "entries_throttled": 0,
        "entries_dispatched": 0,
        "entries_skipped_pending": 0,
        "verified_ok": 0,
        "auto_fixed": 0,
        "reviews_created": 0,
        "failed": 0,
        "recheck": {"checked": 0, "removed": 0, "kept": 0, "failed": 0},
        "duration_s": 0.0,
    }


def open_manifest(config: MimConfig, paths) -> Manifest:
    return Manifest(
        paths.manifest_file,
        recheck_window=timedelta(hours=config.recheck_window_hours),
        throttle_window=timedelta(hours=config.throttle_window_hours),
    )


async def run_pass(
    repo_root,
    config: MimConfig,
    delegate: KnowledgeDelegate,
    head_resolver: HeadResolver = resolve_head,
    cost_tracker: Optional[CostTracker] = None,
) -> Dict[str, Any]:
    """
    Run one verification pass.

    Returns:
        Pass report dict; "status" is "completed", "skipped" or "failed"
    """
    paths = config.paths(repo_root)

    commit = head_resolver(paths.repo_root)
    if not commit:
        logger.debug("No git HEAD at %s, nothing to do", paths.repo_root)
        return _skipped("not_a_repository")

    lock = RunLock(paths.lock_file)
    with lock.hold() as acquired:
        if not acquired:
            return _skipped("locked")

        started = time.monotonic()
        report = _empty_report(commit)
        logger.info("Starting verification pass at %s", commit[:12])
        try:
            await _verify(paths, config, delegate, commit, report)
        except Exception as e:
            logger.exception("Verification pass failed")
            report["status"] = "failed"
            report["error"] = f"{type(e).__name__}: {e}"

        report["duration_s"] = round(time.monotonic() - started, 3)
        if cost_tracker is not None:
            report["cost"] = cost_tracker.get_summary()
        logger.info(
            "Pass %s: %d ok, %d auto-fixed, %d reviews, %d failed in %.1fs",
            report["status"], report["verified_ok"], report["auto_fixed"],
            report["reviews_created"], report["failed"], report["duration_s"],
        )
        return report


async def _verify(paths, config: MimConfig, delegate, commit: str, report: Dict[str, Any]):
    review_store = PendingReviewStore(paths.pending_dir)
    manifest = open_manifest(config, paths)

    # Phase 1: prune reviews the code has already answered
    rechecker = StalenessRechecker(
        delegate, review_store,
        max_concurrent=config.max_concurrent,
        call_timeout=config.call_timeout,
    )
    report["recheck"] = await rechecker.recheck_all()

    # Phase 2: pick what is due
    entries = read_all_entries(paths.base, config.categories)
    report["entries_found"] = len(entries)
    due = [e for e in entries if not manifest.should_skip(e.id, commit)]
    report["entries_throttled"] = len(entries) - len(due)
    if not due:
        logger.info("All %d entries are within their throttle window", len(entries))
        return

    # Phase 3: investigate and resolve
    engine = ResolutionEngine(
        manifest, review_store, delegate, paths,
        auto_fix_inline=config.auto_fix_inline,
        call_timeout=config.call_timeout,
    )
    dispatcher = InvestigationDispatcher(
        delegate, review_store,
        max_concurrent=config.max_concurrent,
        inter_call_delay=config.inter_call_delay,
        call_timeout=config.call_timeout,
    )

    async def on_verdict(entry, verdict):
        return await engine.resolve(entry, verdict, commit)

    results = await dispatcher.run_all(due, on_verdict)

    for result in results:
        if result.skipped:
            report["entries_skipped_pending"] += 1
            continue
        report["entries_dispatched"] += 1
        if result.error is not None:
            report["failed"] += 1
        elif result.outcome is ManifestStatus.OK:
            report["verified_ok"] += 1
        elif result.outcome is ManifestStatus.AUTO_FIXED:
            report["auto_fixed"] += 1
    report["reviews_created"] = engine.reviews_created


async def run_apply(
    repo_root,
    config: MimConfig,
    delegate: KnowledgeDelegate,
    cost_tracker: Optional[CostTracker] = None,
) -> Dict[str, Any]:
    """Apply answered reviews under the same lock as a verification pass."""
    paths = config.paths(repo_root)
    lock = RunLock(paths.lock_file)
    with lock.hold() as acquired:
        if not acquired:
            return _skipped("locked")
        report = await apply_answered(
            PendingReviewStore(paths.pending_dir),
            delegate,
            paths.base,
            call_timeout=config.call_timeout,
        )
        if cost_tracker is not None:
            report["cost"] = cost_tracker.get_summary()
        return report


def collect_status(repo_root, config: MimConfig) -> Dict[str, Any]:
    """Read-only snapshot for the status command."""
    paths = config.paths(repo_root)
    review_store = PendingReviewStore(paths.pending_dir)
    reviews = review_store.list_all()
    lock_record = RunLock(paths.lock_file)
    record = lock_record.read() if lock_record.is_held() else None
    return {
        "knowledge_dir": str(paths.base),
        "pending_reviews": sum(1 for r in reviews if not r.is_answered),
        "answered_reviews": sum(1 for r in reviews if r.is_answered),
        "manifest": open_manifest(config, paths).summary(),
        "lock": record.to_dict() if record else None,
    }
