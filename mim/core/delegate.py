"""
Mim - Delegate Protocol

Defines what Mim needs from the external reasoning service.
Uses structural typing (Protocol): any object with these methods works.
No inheritance, no registration, no boilerplate.

The orchestrator never decides validity itself. It hands one entry (or one
review) to the delegate and acts on the structured answer. Every method may
be slow and may fail; callers contain failures per entry.
"""
from typing import Protocol, runtime_checkable

from .types import KnowledgeEntry, PendingReview, RecheckResult
from .verdicts import Verdict


@runtime_checkable
class KnowledgeDelegate(Protocol):
    """
    Protocol for the investigation and fix-application service.

    All methods are async so a batch of calls can be in flight at once.
    Implementations raise DelegateError (or VerdictParseError) on failure.
    """

    async def investigate(self, entry: KnowledgeEntry) -> Verdict:
        """
        Verify one entry against the codebase with read-only capabilities
        (read files, find by name, search content, read git history).

        Returns:
            Parsed Verdict for exactly this entry
        """
        ...

    async def apply_fix(
        self,
        entry: KnowledgeEntry,
        knowledge_path: str,
        fix_description: str,
    ) -> bool:
        """
        Mechanically apply `fix_description` to the single file at
        `knowledge_path`. Capabilities are read and in-place edit of that
        file only; no judgment.

        Returns:
            True if the edit was made
        """
        ...

    async def recheck_review(self, review: PendingReview) -> RecheckResult:
        """Decide whether a pending review still describes a live issue."""
        ...

    async def apply_decision(self, review: PendingReview, knowledge_path: str) -> bool:
        """
        Carry out a review's answer (or its auto-apply fix) on the single
        knowledge file it concerns.

        Returns:
            True if the decision was applied
        """
        ...
