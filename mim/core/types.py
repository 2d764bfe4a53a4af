"""
Mim - Core Data Types
All shared dataclasses and enums used across the system.
This is the foundational contract that all components build on.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# ─── Enums ───────────────────────────────────────────────────────────────────

class ManifestStatus(Enum):
    OK = "ok"
    AUTO_FIXED = "auto_fixed"
    REVIEW_PENDING = "review_pending"


class ReviewType(Enum):
    STALE = "stale"
    CONFLICT = "conflict"
    OUTDATED = "outdated"
    AUTO_FIX = "auto_fix"


def utcnow() -> datetime:
    """Timezone-aware UTC now. Every persisted timestamp goes through here."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp; naive values are taken to be UTC."""
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


# ─── Knowledge Entries ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class KnowledgeEntry:
    """
    One atomic, independently-checkable fact from a knowledge file.
    Snapshot taken at read time; the backing file may change afterwards.
    """
    id: str
    category: str
    file: str
    topic: str
    content: str

    @property
    def knowledge_file(self) -> str:
        """Path relative to the knowledge directory, e.g. 'architecture/caching.md'."""
        return f"{self.category}/{self.file}"


# ─── Manifest ────────────────────────────────────────────────────────────────

@dataclass
class ManifestRecord:
    """When an entry was last checked, under which commit, and with what result."""
    status: ManifestStatus
    checked_at: datetime
    commit_hash: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "status": self.status.value,
            "checked_at": self.checked_at.isoformat(),
            "commit_hash": self.commit_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManifestRecord":
        return cls(
            status=ManifestStatus(data["status"]),
            checked_at=parse_timestamp(data["checked_at"]),
            commit_hash=data["commit_hash"],
        )


# ─── Pending Reviews ─────────────────────────────────────────────────────────

@dataclass
class PendingReview:
    """
    A decision that needs a human before it is applied.

    `agent_notes` is hidden from the human; it tells the fix-applier how to
    carry out whichever option gets chosen. An `answer` means the review is
    ready to apply but not yet cleaned up.
    """
    id: str
    subject: str
    type: ReviewType
    question: str
    knowledge_file: str
    context: str = ""
    options: List[str] = field(default_factory=list)
    agent_notes: str = ""
    auto_apply: bool = False
    answer: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    created_at_commit: str = ""

    @property
    def is_answered(self) -> bool:
        return bool(self.answer)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["created_at"] = self.created_at.isoformat()
        if self.answer is None:
            # absent, not null: consumers test for the key
            del data["answer"]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PendingReview":
        created_at = data.get("created_at")
        return cls(
            id=data["id"],
            subject=data.get("subject", ""),
            type=ReviewType(data["type"]),
            question=data.get("question", ""),
            knowledge_file=data.get("knowledge_file", ""),
            context=data.get("context", ""),
            options=list(data.get("options") or []),
            agent_notes=data.get("agent_notes", ""),
            auto_apply=bool(data.get("auto_apply", False)),
            answer=data.get("answer") or None,
            created_at=parse_timestamp(created_at) if created_at else utcnow(),
            created_at_commit=data.get("created_at_commit", ""),
        )


# ─── Lock ────────────────────────────────────────────────────────────────────

@dataclass
class LockRecord:
    """Contents of the run lock file."""
    pid: int
    started_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {"pid": self.pid, "started_at": self.started_at.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LockRecord":
        started_at = data.get("started_at")
        return cls(
            pid=int(data["pid"]),
            started_at=parse_timestamp(started_at) if started_at else utcnow(),
        )


# ─── Delegate Results ────────────────────────────────────────────────────────

@dataclass
class RecheckResult:
    """Structured answer to "is this pending review still an issue?"."""
    still_relevant: bool
    reason: str = ""


@dataclass
class VerdictResult:
    """
    Outcome of dispatching one entry.
    Exactly one of: skipped, error set, or verdict set.
    """
    entry: KnowledgeEntry
    verdict: Optional[Any] = None               # verdicts.Verdict
    outcome: Optional[ManifestStatus] = None    # None if the engine left it unrecorded
    error: Optional[str] = None
    skipped: bool = False

    @property
    def succeeded(self) -> bool:
        return self.verdict is not None and self.error is None
