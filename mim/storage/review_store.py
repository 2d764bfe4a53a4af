"""
Mim - Pending-Review Store

One JSON file per review under <knowledge>/pending-review/, named after the
percent-encoded entry ID. The file name is the key, so at most one review
can exist per entry. Readers are lenient: a file that fails to parse is
logged and treated as absent rather than breaking the listing.
"""
import json
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import quote

from ..core.errors import ReviewNotFoundError
from ..core.types import PendingReview
from ..utils.logging import get_logger

logger = get_logger("reviews")


class PendingReviewStore:
    """CRUD over the pending-review directory."""

    def __init__(self, pending_dir: Path):
        self.pending_dir = Path(pending_dir)

    def _path(self, entry_id: str) -> Path:
        # percent-encoding keeps distinct IDs on distinct files
        return self.pending_dir / f"{quote(entry_id, safe='')}.json"

    def _write(self, review: PendingReview):
        self.pending_dir.mkdir(parents=True, exist_ok=True)
        self._path(review.id).write_text(
            json.dumps(review.to_dict(), indent=2),
            encoding="utf-8",
        )

    def _read(self, path: Path) -> Optional[PendingReview]:
        try:
            return PendingReview.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Skipping unreadable review file %s: %s", path.name, e)
            return None

    # ─── CRUD ─────────────────────────────────────────────────────────────

    def exists(self, entry_id: str) -> bool:
        return self._path(entry_id).exists()

    def get(self, entry_id: str) -> Optional[PendingReview]:
        return self._read(self._path(entry_id))

    def create(self, review: PendingReview, overwrite: bool = False) -> bool:
        """
        Persist a new review. Returns False without writing if one already
        exists for the entry, unless overwrite is set.
        """
        if not overwrite and self.exists(review.id):
            logger.info("Review for %s already exists, not overwriting", review.id)
            return False
        self._write(review)
        logger.info("Created %s review for %s", review.type.value, review.id)
        return True

    def update(self, review: PendingReview):
        if not self.exists(review.id):
            raise ReviewNotFoundError(f"No pending review for '{review.id}'")
        self._write(review)

    def delete(self, entry_id: str) -> bool:
        """Remove the review file. Returns whether there was one to remove."""
        try:
            self._path(entry_id).unlink()
        except FileNotFoundError:
            return False
        return True

    # ─── Listing ──────────────────────────────────────────────────────────

    def list_all(self) -> List[PendingReview]:
        if not self.pending_dir.is_dir():
            return []
        reviews = []
        for path in sorted(self.pending_dir.glob("*.json")):
            review = self._read(path)
            if review is not None:
                reviews.append(review)
        return reviews

    def list_unanswered(self) -> List[PendingReview]:
        return [r for r in self.list_all() if not r.is_answered]

    def list_answered(self) -> List[PendingReview]:
        return [r for r in self.list_all() if r.is_answered]

    def count_pending(self) -> int:
        return len(self.list_unanswered())

    # ─── Answering ────────────────────────────────────────────────────────

    def answer(self, entry_id: str, answer: Union[str, int]) -> PendingReview:
        """
        Record the human's answer. A 1-based option number selects that
        option's text; anything else is stored verbatim.
        """
        review = self.get(entry_id)
        if review is None:
            raise ReviewNotFoundError(f"No pending review for '{entry_id}'")

        text = str(answer).strip()
        if text.isdigit() and 1 <= int(text) <= len(review.options):
            text = review.options[int(text) - 1]
        if not text:
            raise ValueError("Answer must not be empty")

        review.answer = text
        self._write(review)
        logger.info("Recorded answer for %s: %s", entry_id, text)
        return review
