"""
Mim - Verdicts

The structured result of one delegated investigation, modelled as a tagged
union: a status crossed with an optional issue variant. `parse_verdict` is
the only way raw delegate output becomes a Verdict; anything that does not
fit the contract raises VerdictParseError and the entry is retried next pass.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from .errors import VerdictParseError


class VerdictStatus(Enum):
    VALID = "valid"
    STALE = "stale"
    CONFLICT = "conflict"
    OUTDATED = "outdated"


class LocationScope(Enum):
    GLOBAL = "global"
    LOCAL = "local"
    CODE_COMMENT = "code_comment"


@dataclass(frozen=True)
class Findings:
    code_exists: bool
    current_behavior: str
    recent_changes: str = ""


@dataclass(frozen=True)
class LocationContext:
    scope: LocationScope
    reason: str
    suggested_location: str = ""


@dataclass(frozen=True)
class AutoFixIssue:
    """Mechanical fix, safe to apply without a human."""
    description: str
    suggested_fix: str


@dataclass(frozen=True)
class NeedsReviewIssue:
    """Needs human judgment. Empty question/options fall back to defaults."""
    description: str
    question: str = ""
    options: Tuple[str, ...] = ()
    agent_notes: str = ""


Issue = Union[AutoFixIssue, NeedsReviewIssue]


@dataclass(frozen=True)
class Verdict:
    entry_id: str
    status: VerdictStatus
    findings: Findings
    location: LocationContext
    issue: Optional[Issue] = None

    @property
    def is_valid(self) -> bool:
        return self.status is VerdictStatus.VALID


# ─── Contract Schema ─────────────────────────────────────────────────────────
# Input schema of the report_verdict tool. Kept next to the parser so the two
# cannot drift apart.

VERDICT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "entry_id": {"type": "string", "description": "ID of the knowledge entry investigated"},
        "status": {
            "type": "string",
            "enum": [s.value for s in VerdictStatus],
            "description": "valid: still true. stale: referenced code is gone. "
                           "conflict: contradicts the code. outdated: partially true.",
        },
        "findings": {
            "type": "object",
            "properties": {
                "code_exists": {"type": "boolean"},
                "current_behavior": {"type": "string"},
                "recent_changes": {"type": "string"},
            },
            "required": ["code_exists", "current_behavior"],
        },
        "location_context": {
            "type": "object",
            "properties": {
                "scope": {"type": "string", "enum": [s.value for s in LocationScope]},
                "reason": {"type": "string"},
                "suggested_location": {"type": "string"},
            },
            "required": ["scope", "reason"],
        },
        "issue": {
            "type": "object",
            "description": "Omit when status is valid.",
            "properties": {
                "description": {"type": "string"},
                "severity": {"type": "string", "enum": ["auto_fix", "needs_review"]},
                "suggested_fix": {"type": "string", "description": "Required for auto_fix"},
                "review_question": {
                    "type": "string",
                    "description": "Self-contained question for the human. Do not restate the options.",
                },
                "review_options": {"type": "array", "items": {"type": "string"}},
                "review_agent_notes": {
                    "type": "string",
                    "description": "Hidden technical detail for whoever applies the decision.",
                },
            },
            "required": ["description", "severity"],
        },
    },
    "required": ["status", "findings", "location_context"],
}


# ─── Parsing ─────────────────────────────────────────────────────────────────

def _require_dict(raw: Any, name: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise VerdictParseError(f"{name} must be an object, got {type(raw).__name__}")
    return raw


def _optional_str(raw: Dict[str, Any], key: str) -> str:
    value = raw.get(key)
    return value.strip() if isinstance(value, str) else ""


def _parse_enum(enum_cls, value: Any, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise VerdictParseError(f"unknown {name}: {value!r}") from None


def _parse_issue(raw: Any) -> Issue:
    data = _require_dict(raw, "issue")
    description = _optional_str(data, "description")
    if not description:
        raise VerdictParseError("issue.description is required")

    severity = data.get("severity")
    if severity == "auto_fix":
        suggested_fix = _optional_str(data, "suggested_fix")
        if not suggested_fix:
            raise VerdictParseError("auto_fix issue without suggested_fix")
        return AutoFixIssue(description=description, suggested_fix=suggested_fix)
    if severity == "needs_review":
        options = data.get("review_options") or []
        if not isinstance(options, list):
            options = []
        return NeedsReviewIssue(
            description=description,
            question=_optional_str(data, "review_question"),
            options=tuple(o.strip() for o in options if isinstance(o, str) and o.strip()),
            agent_notes=_optional_str(data, "review_agent_notes"),
        )
    raise VerdictParseError(f"unknown issue severity: {severity!r}")


def parse_verdict(raw: Any, entry_id: Optional[str] = None) -> Verdict:
    """
    Build a Verdict from raw delegate output.

    Args:
        raw: Decoded JSON object reported by the delegate
        entry_id: ID of the entry that was investigated; wins over raw["entry_id"]

    Raises:
        VerdictParseError: if the output does not fit the contract
    """
    data = _require_dict(raw, "verdict")
    status = _parse_enum(VerdictStatus, data.get("status"), "status")

    findings_raw = _require_dict(data.get("findings"), "findings")
    findings = Findings(
        code_exists=bool(findings_raw.get("code_exists", False)),
        current_behavior=_optional_str(findings_raw, "current_behavior"),
        recent_changes=_optional_str(findings_raw, "recent_changes"),
    )

    location_raw = _require_dict(data.get("location_context"), "location_context")
    location = LocationContext(
        scope=_parse_enum(LocationScope, location_raw.get("scope"), "location scope"),
        reason=_optional_str(location_raw, "reason"),
        suggested_location=_optional_str(location_raw, "suggested_location"),
    )

    issue_raw = data.get("issue")
    issue = _parse_issue(issue_raw) if issue_raw else None

    resolved_id = entry_id or _optional_str(data, "entry_id")
    if not resolved_id:
        raise VerdictParseError("verdict does not name an entry")

    return Verdict(
        entry_id=resolved_id,
        status=status,
        findings=findings,
        location=location,
        issue=issue,
    )
