"""
Mim - Investigation Dispatcher

Sends entries to the delegate in bounded batches: up to `max_concurrent`
calls in flight, the whole batch awaited, then the next batch. With
max_concurrent=1 and an inter-call delay this degrades to a strictly
sequential, rate-limited walk.

Each entry is handled inside its own task:
    1. pending-review check (right before the call, never cached)
    2. delegate.investigate() under a timeout
    3. on_verdict() so the result is persisted as soon as it lands

A failure in any one task is logged and recorded on its VerdictResult; it
never cancels the rest of the batch.
"""
import asyncio
from typing import Awaitable, Callable, List, Optional

from .delegate import KnowledgeDelegate
from .errors import DelegateError
from .types import KnowledgeEntry, ManifestStatus, VerdictResult
from .verdicts import Verdict
from ..storage.review_store import PendingReviewStore
from ..utils.logging import get_logger

logger = get_logger("dispatcher")

OnVerdict = Callable[[KnowledgeEntry, Verdict], Awaitable[Optional[ManifestStatus]]]


def batched(items: List, size: int) -> List[List]:
    size = max(1, size)
    return [items[i:i + size] for i in range(0, len(items), size)]


class InvestigationDispatcher:
    """
    Usage:
        dispatcher = InvestigationDispatcher(delegate, review_store, max_concurrent=5)
        results = await dispatcher.run_all(entries, engine_callback)
    """

    def __init__(
        self,
        delegate: KnowledgeDelegate,
        review_store: PendingReviewStore,
        max_concurrent: int = 5,
        inter_call_delay: float = 0.0,
        call_timeout: Optional[float] = 300.0,
    ):
        self.delegate = delegate
        self.review_store = review_store
        self.max_concurrent = max(1, max_concurrent)
        self.inter_call_delay = max(0.0, inter_call_delay)
        self.call_timeout = call_timeout

    async def run_all(
        self,
        entries: List[KnowledgeEntry],
        on_verdict: OnVerdict,
    ) -> List[VerdictResult]:
        """Investigate every entry. Results come back in input order."""
        results: List[VerdictResult] = []
        batches = batched(entries, self.max_concurrent)
        for index, batch in enumerate(batches):
            if index > 0 and self.inter_call_delay:
                await asyncio.sleep(self.inter_call_delay)
            logger.debug(
                "Dispatching batch %d/%d (%d entries)", index + 1, len(batches), len(batch)
            )
            batch_results = await asyncio.gather(
                *(self._investigate_one(entry, on_verdict) for entry in batch)
            )
            results.extend(batch_results)
        return results

    async def _investigate_one(
        self,
        entry: KnowledgeEntry,
        on_verdict: OnVerdict,
    ) -> VerdictResult:
        # A review may have been written since the entry list was built
        if self.review_store.exists(entry.id):
            logger.info("Skipping %s: pending review exists", entry.id)
            return VerdictResult(entry=entry, skipped=True)

        try:
            verdict = await asyncio.wait_for(
                self.delegate.investigate(entry), timeout=self.call_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Investigation of %s timed out after %ss", entry.id, self.call_timeout)
            return VerdictResult(entry=entry, error="timeout")
        except DelegateError as e:
            logger.warning("Investigation of %s failed: %s", entry.id, e)
            return VerdictResult(entry=entry, error=str(e))
        except Exception as e:
            # Never let one entry take down the batch
            logger.exception("Unexpected error investigating %s", entry.id)
            return VerdictResult(entry=entry, error=f"{type(e).__name__}: {e}")

        if verdict.entry_id != entry.id:
            logger.warning(
                "Delegate answered for %s while investigating %s, discarding",
                verdict.entry_id, entry.id,
            )
            return VerdictResult(entry=entry, error="verdict for wrong entry")

        try:
            outcome = await on_verdict(entry, verdict)
        except Exception as e:
            logger.exception("Failed to resolve verdict for %s", entry.id)
            return VerdictResult(entry=entry, verdict=verdict, error=f"{type(e).__name__}: {e}")

        return VerdictResult(entry=entry, verdict=verdict, outcome=outcome)
