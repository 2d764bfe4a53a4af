"""
In-memory KnowledgeDelegate for tests. Verdicts are scripted per entry ID as
raw contract dicts (run through the real parser) or exceptions to raise.
"""
import asyncio
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from mim.core.types import RecheckResult
from mim.core.verdicts import parse_verdict


def valid_raw():
    return {
        "status": "valid",
        "findings": {"code_exists": True, "current_behavior": "Matches the entry"},
        "location_context": {"scope": "global", "reason": "Cross-cutting"},
    }


def needs_review_raw(status="stale", question="Is this still used?", options=None, notes=""):
    issue = {"description": "Referenced code changed", "severity": "needs_review"}
    if question:
        issue["review_question"] = question
    if options is not None:
        issue["review_options"] = options
    if notes:
        issue["review_agent_notes"] = notes
    return {
        "status": status,
        "findings": {"code_exists": False, "current_behavior": "Function was removed"},
        "location_context": {"scope": "local", "reason": "Only one module"},
        "issue": issue,
    }


def auto_fix_raw(fix="Rename src/old.py to src/new.py"):
    return {
        "status": "outdated",
        "findings": {"code_exists": True, "current_behavior": "File was renamed"},
        "location_context": {"scope": "local", "reason": "One module"},
        "issue": {"description": "Path is out of date", "severity": "auto_fix", "suggested_fix": fix},
    }


class FakeDelegate:
    """Records every call; answers from the scripts given at construction."""

    def __init__(
        self,
        verdicts=None,
        fix_result=True,
        relevance=None,
        decision_result=True,
        delay=0.0,
    ):
        self.verdicts = verdicts or {}
        self.fix_result = fix_result
        self.relevance = relevance or {}
        self.decision_result = decision_result
        self.delay = delay
        self.investigated = []
        self.fixes = []
        self.rechecked = []
        self.decisions = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def investigate(self, entry):
        self.investigated.append(entry.id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            raw = self.verdicts.get(entry.id, valid_raw())
            if isinstance(raw, BaseException):
                raise raw
            return parse_verdict(raw, entry_id=entry.id)
        finally:
            self.in_flight -= 1

    async def apply_fix(self, entry, knowledge_path, fix_description):
        self.fixes.append((entry.id, knowledge_path, fix_description))
        if isinstance(self.fix_result, BaseException):
            raise self.fix_result
        return self.fix_result

    async def recheck_review(self, review):
        self.rechecked.append(review.id)
        result = self.relevance.get(review.id, True)
        if isinstance(result, BaseException):
            raise result
        return RecheckResult(still_relevant=result, reason="scripted")

    async def apply_decision(self, review, knowledge_path):
        self.decisions.append((review.id, knowledge_path))
        if isinstance(self.decision_result, BaseException):
            raise self.decision_result
        return self.decision_result
