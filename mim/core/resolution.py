"""
Mim - Resolution Engine

Turns one verdict into exactly one durable outcome:

    valid                      → manifest "ok"
    auto_fix issue             → fix applied in place   → "auto_fixed"
                                 fix failed / deferred  → review, "review_pending"
    needs_review issue         → review                 → "review_pending"
    non-valid, no issue        → generic review         → "review_pending"

The manifest write is the commit point for an entry. It happens last, after
any fix or review has landed, so a crash mid-resolution leaves the entry
unrecorded and it is simply investigated again next pass.
"""
import asyncio
from typing import List, Optional

from .delegate import KnowledgeDelegate
from .errors import DelegateError
from .types import KnowledgeEntry, ManifestStatus, PendingReview, ReviewType
from .verdicts import AutoFixIssue, NeedsReviewIssue, Verdict
from ..storage.manifest import Manifest
from ..storage.review_store import PendingReviewStore
from ..utils.config import KnowledgePaths
from ..utils.logging import get_logger

logger = get_logger("resolution")

DEFAULT_OPTIONS = [
    "Keep current documentation",
    "Update to match code",
    "Remove this entry",
]
MANUAL_FIX_OPTION = "Apply suggested fix manually"


def _review_context(entry: KnowledgeEntry, verdict: Verdict) -> str:
    return (
        f"Category: {entry.category}\n"
        f"File: {entry.file}\n\n"
        f"Findings: {verdict.findings.current_behavior}\n\n"
        f"Location recommendation: {verdict.location.scope.value} - {verdict.location.reason}"
    )


class ResolutionEngine:
    """
    Usage:
        engine = ResolutionEngine(manifest, review_store, delegate, paths)
        outcome = await engine.resolve(entry, verdict, commit)
    """

    def __init__(
        self,
        manifest: Manifest,
        review_store: PendingReviewStore,
        delegate: KnowledgeDelegate,
        paths: KnowledgePaths,
        auto_fix_inline: bool = True,
        call_timeout: Optional[float] = 300.0,
    ):
        self.manifest = manifest
        self.review_store = review_store
        self.delegate = delegate
        self.paths = paths
        self.auto_fix_inline = auto_fix_inline
        self.call_timeout = call_timeout
        self.reviews_created = 0

    async def resolve(
        self,
        entry: KnowledgeEntry,
        verdict: Verdict,
        commit: str,
    ) -> ManifestStatus:
        if verdict.is_valid:
            logger.info("Entry %s is valid", entry.id)
            outcome = ManifestStatus.OK
        elif isinstance(verdict.issue, AutoFixIssue):
            outcome = await self._resolve_auto_fix(entry, verdict, verdict.issue, commit)
        elif isinstance(verdict.issue, NeedsReviewIssue):
            outcome = self._resolve_needs_review(entry, verdict, verdict.issue, commit)
        else:
            logger.info("Entry %s is %s with no issue detail", entry.id, verdict.status.value)
            issue = NeedsReviewIssue(
                description=f"This entry was found to be {verdict.status.value}: "
                            f"{verdict.findings.current_behavior or 'no details given'}",
            )
            outcome = self._resolve_needs_review(entry, verdict, issue, commit)

        self.manifest.record(entry.id, outcome, commit)
        return outcome

    # ─── Auto-fix ─────────────────────────────────────────────────────────

    async def _resolve_auto_fix(
        self,
        entry: KnowledgeEntry,
        verdict: Verdict,
        issue: AutoFixIssue,
        commit: str,
    ) -> ManifestStatus:
        if not self.auto_fix_inline:
            self._write_review(PendingReview(
                id=entry.id,
                subject=f"{entry.topic} - auto fix",
                type=ReviewType.AUTO_FIX,
                question=issue.description,
                knowledge_file=entry.knowledge_file,
                context=_review_context(entry, verdict),
                options=[],
                agent_notes=issue.suggested_fix,
                auto_apply=True,
                created_at_commit=commit,
            ))
            return ManifestStatus.REVIEW_PENDING

        if await self._try_fix(entry, issue):
            logger.info("Auto-fixed %s: %s", entry.id, issue.description)
            return ManifestStatus.AUTO_FIXED

        self._write_review(PendingReview(
            id=entry.id,
            subject=f"{entry.topic} - {verdict.status.value}",
            type=ReviewType(verdict.status.value),
            question=(
                f"{issue.description}\n\nAn automatic fix was attempted and failed. "
                f"Suggested fix: {issue.suggested_fix}"
            ),
            knowledge_file=entry.knowledge_file,
            context=_review_context(entry, verdict),
            options=[MANUAL_FIX_OPTION] + DEFAULT_OPTIONS,
            agent_notes=issue.suggested_fix,
            created_at_commit=commit,
        ))
        return ManifestStatus.REVIEW_PENDING

    async def _try_fix(self, entry: KnowledgeEntry, issue: AutoFixIssue) -> bool:
        knowledge_path = self.paths.base / entry.knowledge_file
        if not knowledge_path.is_file():
            logger.warning("Cannot fix %s: %s no longer exists", entry.id, knowledge_path)
            return False
        try:
            return bool(await asyncio.wait_for(
                self.delegate.apply_fix(entry, str(knowledge_path), issue.suggested_fix),
                timeout=self.call_timeout,
            ))
        except asyncio.TimeoutError:
            logger.warning("Fix for %s timed out", entry.id)
        except DelegateError as e:
            logger.warning("Fix for %s failed: %s", entry.id, e)
        except Exception:
            logger.exception("Unexpected error fixing %s", entry.id)
        return False

    # ─── Review ───────────────────────────────────────────────────────────

    def _resolve_needs_review(
        self,
        entry: KnowledgeEntry,
        verdict: Verdict,
        issue: NeedsReviewIssue,
        commit: str,
    ) -> ManifestStatus:
        options: List[str] = list(issue.options) or list(DEFAULT_OPTIONS)
        self._write_review(PendingReview(
            id=entry.id,
            subject=f"{entry.topic} - {verdict.status.value}",
            type=ReviewType(verdict.status.value),
            question=issue.question or issue.description,
            knowledge_file=entry.knowledge_file,
            context=_review_context(entry, verdict),
            options=options,
            agent_notes=issue.agent_notes,
            created_at_commit=commit,
        ))
        return ManifestStatus.REVIEW_PENDING

    def _write_review(self, review: PendingReview) -> bool:
        # An existing review for the entry is kept as is
        created = self.review_store.create(review, overwrite=False)
        if created:
            self.reviews_created += 1
        else:
            logger.info("Review for %s already exists, keeping it", review.id)
        return created
