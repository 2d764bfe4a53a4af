"""
Tests for applying answered and auto-apply reviews.
"""
import os
import sys
import tempfile
from pathlib import Path

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from mim.core.applier import apply_answered, is_keep_answer
from mim.core.errors import DelegateError
from mim.core.types import PendingReview, ReviewType
from mim.storage.review_store import PendingReviewStore
from fake_delegate import FakeDelegate


def _setup(tmp, **review_kwargs):
    base = Path(tmp)
    (base / "patterns").mkdir()
    (base / "patterns" / "a.md").write_text("## One\nfirst\n", encoding="utf-8")
    store = PendingReviewStore(base / "pending-review")
    fields = dict(
        id="patterns-a-0", subject="One - stale", type=ReviewType.STALE,
        question="q", knowledge_file="patterns/a.md",
    )
    fields.update(review_kwargs)
    store.create(PendingReview(**fields))
    return base, store


def test_is_keep_answer():
    assert is_keep_answer("Keep current documentation")
    assert not is_keep_answer("Remove this entry")
    assert not is_keep_answer(None)


@pytest.mark.asyncio
async def test_answered_review_applied_and_deleted():
    with tempfile.TemporaryDirectory() as tmp:
        base, store = _setup(tmp, answer="Update to match code")
        delegate = FakeDelegate()
        report = await apply_answered(store, delegate, base)

        assert report["applied"] == 1
        assert delegate.decisions[0][1] == str(base / "patterns" / "a.md")
        assert store.list_all() == []


@pytest.mark.asyncio
async def test_keep_answer_needs_no_delegate():
    with tempfile.TemporaryDirectory() as tmp:
        base, store = _setup(tmp, answer="Keep current documentation")
        delegate = FakeDelegate()
        report = await apply_answered(store, delegate, base)

        assert report["kept"] == 1
        assert delegate.decisions == []
        assert store.list_all() == []


@pytest.mark.asyncio
async def test_unanswered_review_is_ignored():
    with tempfile.TemporaryDirectory() as tmp:
        base, store = _setup(tmp)
        delegate = FakeDelegate()
        report = await apply_answered(store, delegate, base)

        assert report["ready"] == 0
        assert store.exists("patterns-a-0")


@pytest.mark.asyncio
async def test_auto_apply_review_needs_no_answer():
    with tempfile.TemporaryDirectory() as tmp:
        base, store = _setup(tmp, type=ReviewType.AUTO_FIX, auto_apply=True, agent_notes="fix")
        delegate = FakeDelegate()
        report = await apply_answered(store, delegate, base)
        assert report["applied"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("result", [False, DelegateError("no edit")])
async def test_failure_keeps_review(result):
    with tempfile.TemporaryDirectory() as tmp:
        base, store = _setup(tmp, answer="Remove this entry")
        report = await apply_answered(store, FakeDelegate(decision_result=result), base)

        assert report["failed"] == 1
        assert store.exists("patterns-a-0")


@pytest.mark.asyncio
async def test_review_for_missing_file_is_dropped():
    with tempfile.TemporaryDirectory() as tmp:
        base, store = _setup(tmp, answer="Remove this entry", knowledge_file="patterns/gone.md")
        delegate = FakeDelegate()
        report = await apply_answered(store, delegate, base)

        assert report["dropped"] == 1
        assert delegate.decisions == []
        assert store.list_all() == []
