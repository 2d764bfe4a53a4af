"""
Tests for turning verdicts into manifest records, fixes and reviews.
"""
import os
import sys
import tempfile

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from mim.core.errors import DelegateError
from mim.core.resolution import DEFAULT_OPTIONS, MANUAL_FIX_OPTION, ResolutionEngine
from mim.core.types import KnowledgeEntry, ManifestStatus, ReviewType
from mim.core.verdicts import parse_verdict
from mim.storage.manifest import Manifest
from mim.storage.review_store import PendingReviewStore
from mim.utils.config import KnowledgePaths
from fake_delegate import FakeDelegate, auto_fix_raw, needs_review_raw, valid_raw

ENTRY = KnowledgeEntry(
    id="architecture-caching-1", category="architecture", file="caching.md",
    topic="Redis layer", content="All reads go through src/cache.py.",
)


def _engine(tmp, delegate, auto_fix_inline=True, with_file=True):
    paths = KnowledgePaths.for_repo(tmp)
    if with_file:
        (paths.base / "architecture").mkdir(parents=True)
        (paths.base / "architecture" / "caching.md").write_text("## Redis layer\nold\n")
    manifest = Manifest(paths.manifest_file)
    store = PendingReviewStore(paths.pending_dir)
    engine = ResolutionEngine(manifest, store, delegate, paths, auto_fix_inline=auto_fix_inline)
    return engine, manifest, store


@pytest.mark.asyncio
async def test_valid_marks_ok():
    with tempfile.TemporaryDirectory() as tmp:
        engine, manifest, store = _engine(tmp, FakeDelegate())
        outcome = await engine.resolve(ENTRY, parse_verdict(valid_raw(), ENTRY.id), "c1")
        assert outcome is ManifestStatus.OK
        assert manifest.get(ENTRY.id).commit_hash == "c1"
        assert store.list_all() == []


@pytest.mark.asyncio
async def test_auto_fix_applied():
    with tempfile.TemporaryDirectory() as tmp:
        delegate = FakeDelegate()
        engine, manifest, store = _engine(tmp, delegate)
        outcome = await engine.resolve(ENTRY, parse_verdict(auto_fix_raw("fix it"), ENTRY.id), "c1")

        assert outcome is ManifestStatus.AUTO_FIXED
        entry_id, path, fix = delegate.fixes[0]
        assert path.endswith(os.path.join("architecture", "caching.md"))
        assert fix == "fix it"
        assert store.list_all() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("fix_result", [False, DelegateError("edit failed")])
async def test_failed_fix_degrades_to_review(fix_result):
    with tempfile.TemporaryDirectory() as tmp:
        engine, manifest, store = _engine(tmp, FakeDelegate(fix_result=fix_result))
        outcome = await engine.resolve(ENTRY, parse_verdict(auto_fix_raw(), ENTRY.id), "c1")

        assert outcome is ManifestStatus.REVIEW_PENDING
        review = store.get(ENTRY.id)
        assert review.type is ReviewType.OUTDATED
        assert MANUAL_FIX_OPTION in review.options
        assert manifest.get(ENTRY.id).status is ManifestStatus.REVIEW_PENDING


@pytest.mark.asyncio
async def test_missing_file_skips_fix_call():
    with tempfile.TemporaryDirectory() as tmp:
        delegate = FakeDelegate()
        engine, manifest, store = _engine(tmp, delegate, with_file=False)
        outcome = await engine.resolve(ENTRY, parse_verdict(auto_fix_raw(), ENTRY.id), "c1")
        assert outcome is ManifestStatus.REVIEW_PENDING
        assert delegate.fixes == []


@pytest.mark.asyncio
async def test_deferred_auto_fix_queues_auto_apply_review():
    with tempfile.TemporaryDirectory() as tmp:
        delegate = FakeDelegate()
        engine, manifest, store = _engine(tmp, delegate, auto_fix_inline=False)
        outcome = await engine.resolve(ENTRY, parse_verdict(auto_fix_raw("fix it"), ENTRY.id), "c1")

        assert outcome is ManifestStatus.REVIEW_PENDING
        assert delegate.fixes == []
        review = store.get(ENTRY.id)
        assert review.type is ReviewType.AUTO_FIX
        assert review.auto_apply is True
        assert review.agent_notes == "fix it"


@pytest.mark.asyncio
async def test_needs_review_uses_delegate_options():
    with tempfile.TemporaryDirectory() as tmp:
        engine, manifest, store = _engine(tmp, FakeDelegate())
        raw = needs_review_raw(status="conflict", options=["Keep", "Rewrite"], notes="hidden")
        await engine.resolve(ENTRY, parse_verdict(raw, ENTRY.id), "c1")

        review = store.get(ENTRY.id)
        assert review.type is ReviewType.CONFLICT
        assert review.options == ["Keep", "Rewrite"]
        assert review.agent_notes == "hidden"
        assert review.subject == "Redis layer - conflict"
        assert review.created_at_commit == "c1"
        assert "Category: architecture" in review.context


@pytest.mark.asyncio
async def test_needs_review_falls_back_to_default_options():
    with tempfile.TemporaryDirectory() as tmp:
        engine, manifest, store = _engine(tmp, FakeDelegate())
        raw = needs_review_raw(question="", options=[])
        await engine.resolve(ENTRY, parse_verdict(raw, ENTRY.id), "c1")

        review = store.get(ENTRY.id)
        assert review.options == DEFAULT_OPTIONS
        assert review.question == "Referenced code changed"


@pytest.mark.asyncio
async def test_non_valid_without_issue_gets_generic_review():
    with tempfile.TemporaryDirectory() as tmp:
        engine, manifest, store = _engine(tmp, FakeDelegate())
        raw = valid_raw()
        raw["status"] = "stale"
        outcome = await engine.resolve(ENTRY, parse_verdict(raw, ENTRY.id), "c1")

        assert outcome is ManifestStatus.REVIEW_PENDING
        review = store.get(ENTRY.id)
        assert review.type is ReviewType.STALE
        assert review.options == DEFAULT_OPTIONS


@pytest.mark.asyncio
async def test_existing_review_is_not_overwritten():
    with tempfile.TemporaryDirectory() as tmp:
        engine, manifest, store = _engine(tmp, FakeDelegate())
        await engine.resolve(ENTRY, parse_verdict(needs_review_raw(question="first"), ENTRY.id), "c1")
        await engine.resolve(ENTRY, parse_verdict(needs_review_raw(question="second"), ENTRY.id), "c2")
        assert store.get(ENTRY.id).question == "first"
        assert engine.reviews_created == 1


@pytest.mark.asyncio
async def test_reviews_created_counts_only_new_files():
    with tempfile.TemporaryDirectory() as tmp:
        engine, _, store = _engine(tmp, FakeDelegate(), auto_fix_inline=False)
        await engine.resolve(ENTRY, parse_verdict(auto_fix_raw(), ENTRY.id), "c1")
        assert engine.reviews_created == 1
        await engine.resolve(ENTRY, parse_verdict(needs_review_raw(), ENTRY.id), "c2")
        assert engine.reviews_created == 1
        assert store.get(ENTRY.id).type is ReviewType.AUTO_FIX
