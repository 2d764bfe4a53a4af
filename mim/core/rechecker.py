"""
Mim - Staleness Rechecker

Before a pass investigates anything, every unanswered pending review is put
back to the delegate with one narrow question: is this still an issue?
Reviews the delegate reports as moot are deleted. Errors keep the review,
since asking a human an unnecessary question is cheaper than losing one.

The manifest is not touched here. Once a moot review is gone, its entry is
investigated again whenever the normal throttle lets it through.
"""
import asyncio
from typing import Dict, List, Optional

from .delegate import KnowledgeDelegate
from .dispatcher import batched
from .errors import DelegateError
from .types import PendingReview
from ..storage.review_store import PendingReviewStore
from ..utils.logging import get_logger

logger = get_logger("rechecker")


class StalenessRechecker:

    def __init__(
        self,
        delegate: KnowledgeDelegate,
        review_store: PendingReviewStore,
        max_concurrent: int = 5,
        call_timeout: Optional[float] = 300.0,
    ):
        self.delegate = delegate
        self.review_store = review_store
        self.max_concurrent = max(1, max_concurrent)
        self.call_timeout = call_timeout

    async def recheck_all(self) -> Dict[str, int]:
        """
        Recheck all unanswered reviews in bounded batches.

        Returns:
            {"checked", "removed", "kept", "failed"} counts
        """
        stats = {"checked": 0, "removed": 0, "kept": 0, "failed": 0}
        reviews = self.review_store.list_unanswered()
        if not reviews:
            return stats

        logger.info("Rechecking %d pending reviews", len(reviews))
        for batch in batched(reviews, self.max_concurrent):
            outcomes = await asyncio.gather(*(self._recheck_one(r) for r in batch))
            for outcome in outcomes:
                stats["checked"] += 1
                stats[outcome] += 1

        if stats["removed"]:
            logger.info("Removed %d moot reviews", stats["removed"])
        return stats

    async def _recheck_one(self, review: PendingReview) -> str:
        try:
            result = await asyncio.wait_for(
                self.delegate.recheck_review(review), timeout=self.call_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Recheck of review %s timed out, keeping it", review.id)
            return "failed"
        except DelegateError as e:
            logger.warning("Recheck of review %s failed, keeping it: %s", review.id, e)
            return "failed"
        except Exception:
            logger.exception("Unexpected error rechecking review %s, keeping it", review.id)
            return "failed"

        if result.still_relevant:
            return "kept"

        self.review_store.delete(review.id)
        logger.info("Review %s is moot: %s", review.id, result.reason or "no reason given")
        return "removed"
