"""
Tests for the manifest throttle and its persistence.
"""
import json
import os
import sys
import tempfile
from datetime import timedelta
from pathlib import Path

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from mim.core.types import ManifestStatus, utcnow
from mim.storage.manifest import Manifest


def _manifest(tmp):
    return Manifest(Path(tmp) / ".manifest.json")


def test_never_checked_is_never_skipped():
    with tempfile.TemporaryDirectory() as tmp:
        manifest = _manifest(tmp)
        assert manifest.should_skip("patterns-a-0", "abc") is False


def test_same_commit_skips_within_recheck_window():
    with tempfile.TemporaryDirectory() as tmp:
        manifest = _manifest(tmp)
        now = utcnow()
        manifest.record("e", ManifestStatus.OK, "abc", now=now - timedelta(hours=23))
        assert manifest.should_skip("e", "abc", now=now) is True


def test_same_commit_due_after_recheck_window():
    with tempfile.TemporaryDirectory() as tmp:
        manifest = _manifest(tmp)
        now = utcnow()
        manifest.record("e", ManifestStatus.OK, "abc", now=now - timedelta(hours=25))
        assert manifest.should_skip("e", "abc", now=now) is False


def test_new_commit_throttled_for_an_hour():
    with tempfile.TemporaryDirectory() as tmp:
        manifest = _manifest(tmp)
        now = utcnow()
        manifest.record("e", ManifestStatus.OK, "old", now=now - timedelta(minutes=30))
        assert manifest.should_skip("e", "new", now=now) is True
        manifest.record("e", ManifestStatus.OK, "old", now=now - timedelta(hours=2))
        assert manifest.should_skip("e", "new", now=now) is False


def test_custom_windows():
    with tempfile.TemporaryDirectory() as tmp:
        manifest = Manifest(
            Path(tmp) / ".manifest.json",
            recheck_window=timedelta(hours=2),
            throttle_window=timedelta(minutes=5),
        )
        now = utcnow()
        manifest.record("e", ManifestStatus.OK, "abc", now=now - timedelta(hours=3))
        assert manifest.should_skip("e", "abc", now=now) is False


def test_record_persists_immediately():
    with tempfile.TemporaryDirectory() as tmp:
        manifest = _manifest(tmp)
        manifest.record("patterns-a-0", ManifestStatus.AUTO_FIXED, "abc")

        data = json.loads((Path(tmp) / ".manifest.json").read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["entries"]["patterns-a-0"]["status"] == "auto_fixed"
        assert data["entries"]["patterns-a-0"]["commit_hash"] == "abc"

        reloaded = _manifest(tmp)
        record = reloaded.get("patterns-a-0")
        assert record.status is ManifestStatus.AUTO_FIXED
        assert record.checked_at.tzinfo is not None


def test_corrupt_manifest_starts_empty():
    with tempfile.TemporaryDirectory() as tmp:
        (Path(tmp) / ".manifest.json").write_text("{not json", encoding="utf-8")
        manifest = _manifest(tmp)
        assert len(manifest) == 0
        manifest.record("e", ManifestStatus.OK, "abc")
        assert "e" in _manifest(tmp)


@pytest.mark.parametrize("content", ["[]", "null", "42", '{"version": 1, "entries": []}'])
def test_wrong_shape_manifest_starts_empty(content):
    with tempfile.TemporaryDirectory() as tmp:
        (Path(tmp) / ".manifest.json").write_text(content, encoding="utf-8")
        manifest = _manifest(tmp)
        assert len(manifest) == 0
        manifest.record("e", ManifestStatus.OK, "abc")
        assert _manifest(tmp).get("e").commit_hash == "abc"


def test_malformed_record_is_dropped():
    with tempfile.TemporaryDirectory() as tmp:
        (Path(tmp) / ".manifest.json").write_text(
            '{"version": 1, "entries": {"bad": "oops", "worse": [1]}}', encoding="utf-8"
        )
        assert len(_manifest(tmp)) == 0


def test_summary_counts_by_status():
    with tempfile.TemporaryDirectory() as tmp:
        manifest = _manifest(tmp)
        manifest.record("a", ManifestStatus.OK, "abc")
        manifest.record("b", ManifestStatus.OK, "abc")
        manifest.record("c", ManifestStatus.REVIEW_PENDING, "abc")
        assert manifest.summary() == {"ok": 2, "auto_fixed": 0, "review_pending": 1}
