"""
Mim - Manifest

Per-entry record of when each knowledge entry was last verified and under
which commit. Its only job is throttling: deciding whether an entry is due
for another delegated investigation.

Policy:
    never checked                 → always due
    checked under current commit  → due again after the recheck window (24h)
    checked under another commit  → due again after the throttle window (1h)

The daily recheck catches drift in interpretation even without code changes;
the short throttle lets a burst of commits coalesce into one check.

Every record() writes the whole file immediately. The manifest is the only
durability mechanism of a pass, so a crash loses at most the in-flight batch.
"""
import json
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Optional

from ..core.types import ManifestRecord, ManifestStatus, utcnow
from ..utils.logging import get_logger

logger = get_logger("manifest")

MANIFEST_VERSION = 1


class Manifest:
    """
    File-backed map of entry ID → ManifestRecord.
    Loaded once on construction; last write wins across processes.
    """

    def __init__(
        self,
        path: Path,
        recheck_window: timedelta = timedelta(hours=24),
        throttle_window: timedelta = timedelta(hours=1),
    ):
        self.path = Path(path)
        self.recheck_window = recheck_window
        self.throttle_window = throttle_window
        self._records: Dict[str, ManifestRecord] = self._load()

    # ─── Persistence ──────────────────────────────────────────────────────

    def _load(self) -> Dict[str, ManifestRecord]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Unreadable manifest %s, starting empty: %s", self.path, e)
            return {}
        entries = data.get("entries") if isinstance(data, dict) else None
        if not isinstance(entries, dict):
            logger.warning("Manifest %s has no entries table, starting empty", self.path)
            return {}

        records: Dict[str, ManifestRecord] = {}
        for entry_id, raw in entries.items():
            try:
                records[entry_id] = ManifestRecord.from_dict(raw)
            except (AttributeError, KeyError, TypeError, ValueError):
                logger.warning("Dropping malformed manifest record for %s", entry_id)
        return records

    def _save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": MANIFEST_VERSION,
            "entries": {
                entry_id: record.to_dict()
                for entry_id, record in sorted(self._records.items())
            },
        }
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    # ─── Read ─────────────────────────────────────────────────────────────

    def get(self, entry_id: str) -> Optional[ManifestRecord]:
        return self._records.get(entry_id)

    def __contains__(self, entry_id: str) -> bool:
        return entry_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def summary(self) -> Dict[str, int]:
        """Count of records per status, for status output."""
        counts = {status.value: 0 for status in ManifestStatus}
        for record in self._records.values():
            counts[record.status.value] += 1
        return counts

    # ─── Throttle ─────────────────────────────────────────────────────────

    def should_skip(
        self,
        entry_id: str,
        current_commit: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """Whether the entry was checked recently enough to leave alone this pass."""
        record = self._records.get(entry_id)
        if record is None:
            return False

        age = (now or utcnow()) - record.checked_at
        if record.commit_hash == current_commit:
            return age < self.recheck_window
        return age < self.throttle_window

    # ─── Write ────────────────────────────────────────────────────────────

    def record(
        self,
        entry_id: str,
        status: ManifestStatus,
        commit_hash: str,
        now: Optional[datetime] = None,
    ) -> ManifestRecord:
        """Create or overwrite the entry's record and persist immediately."""
        record = ManifestRecord(
            status=status,
            checked_at=now or utcnow(),
            commit_hash=commit_hash,
        )
        self._records[entry_id] = record
        self._save()
        return record
