"""
Mim - Review Applier

Carries out decided reviews: ones a human has answered, and auto-fix reviews
queued with auto_apply. Each is handed to the delegate together with the one
knowledge file it concerns; a review is deleted only once its decision has
been applied, so a failure leaves it in place for the next attempt.
"""
import asyncio
from pathlib import Path
from typing import Any, Dict, Optional

from .delegate import KnowledgeDelegate
from .errors import DelegateError
from .types import PendingReview
from ..storage.review_store import PendingReviewStore
from ..utils.logging import get_logger

logger = get_logger("applier")


def is_keep_answer(answer: Optional[str]) -> bool:
    """'Keep current documentation' and friends need no edit."""
    return bool(answer) and answer.strip().lower().startswith("keep")


def is_ready(review: PendingReview) -> bool:
    return review.is_answered or review.auto_apply


async def apply_answered(
    store: PendingReviewStore,
    delegate: KnowledgeDelegate,
    knowledge_base: Path,
    call_timeout: Optional[float] = 300.0,
) -> Dict[str, Any]:
    """
    Apply every ready review, one at a time.

    Returns:
        {"ready", "applied", "kept", "dropped", "failed"} counts
    """
    report = {"ready": 0, "applied": 0, "kept": 0, "dropped": 0, "failed": 0}

    for review in store.list_all():
        if not is_ready(review):
            continue
        report["ready"] += 1

        if is_keep_answer(review.answer):
            store.delete(review.id)
            logger.info("Review %s answered keep, nothing to apply", review.id)
            report["kept"] += 1
            continue

        knowledge_path = Path(knowledge_base) / review.knowledge_file
        if not knowledge_path.is_file():
            store.delete(review.id)
            logger.info("Review %s targets missing file %s, dropping", review.id, review.knowledge_file)
            report["dropped"] += 1
            continue

        try:
            applied = await asyncio.wait_for(
                delegate.apply_decision(review, str(knowledge_path)),
                timeout=call_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Applying review %s timed out", review.id)
            applied = False
        except DelegateError as e:
            logger.warning("Applying review %s failed: %s", review.id, e)
            applied = False
        except Exception:
            logger.exception("Unexpected error applying review %s", review.id)
            applied = False

        if applied:
            store.delete(review.id)
            logger.info("Applied review %s", review.id)
            report["applied"] += 1
        else:
            report["failed"] += 1

    return report
