"""
Mim - Anthropic Delegate

KnowledgeDelegate implementation on the Anthropic Messages API.

Each call is a small agent loop: the model gets a sandboxed RepoToolbox and
one result tool (report_verdict, report_fix or report_relevance). Every turn
must be a tool call; tool outputs are fed back until the model calls the
result tool, whose input is the structured answer. The last permitted turn
forces the result tool, so a call never ends in free text.
"""
import asyncio
from typing import Any, Dict, List, Optional

import anthropic

from ..core.errors import DelegateError, ToolError
from ..core.types import KnowledgeEntry, PendingReview, RecheckResult
from ..core.verdicts import VERDICT_SCHEMA, Verdict, parse_verdict
from ..utils.config import MimConfig
from ..utils.cost_tracker import CostTracker
from ..utils.logging import get_logger
from .prompts import (
    DECISION_SYSTEM_PROMPT,
    FIX_SYSTEM_PROMPT,
    INVESTIGATOR_SYSTEM_PROMPT,
    RECHECK_SYSTEM_PROMPT,
    build_decision_prompt,
    build_fix_prompt,
    build_investigation_prompt,
    build_recheck_prompt,
)
from .tools import RepoToolbox

logger = get_logger("delegate")


# ─── Result Tools ────────────────────────────────────────────────────────────

REPORT_VERDICT_TOOL = {
    "name": "report_verdict",
    "description": "Report the outcome of the investigation. Call exactly once, when done.",
    "input_schema": VERDICT_SCHEMA,
}

REPORT_FIX_TOOL = {
    "name": "report_fix",
    "description": "Report whether the change was applied. Call exactly once, when done.",
    "input_schema": {
        "type": "object",
        "properties": {
            "applied": {"type": "boolean"},
            "reason": {"type": "string"},
        },
        "required": ["applied"],
    },
}

REPORT_RELEVANCE_TOOL = {
    "name": "report_relevance",
    "description": "Report whether the pending review is still relevant. Call exactly once.",
    "input_schema": {
        "type": "object",
        "properties": {
            "still_relevant": {"type": "boolean"},
            "reason": {"type": "string"},
        },
        "required": ["still_relevant", "reason"],
    },
}


def _block_to_param(block) -> Dict[str, Any]:
    """Response content block → request content param for the next turn."""
    if block.type == "tool_use":
        return {"type": "tool_use", "id": block.id, "name": block.name, "input": dict(block.input)}
    if block.type == "text":
        return {"type": "text", "text": block.text}
    raise DelegateError(f"Unexpected content block: {block.type}")


class AnthropicDelegate:
    """
    Delegate backed by Claude.

    Usage:
        delegate = AnthropicDelegate.from_config(config, repo_root, cost_tracker)
        verdict = await delegate.investigate(entry)
    """

    def __init__(
        self,
        api_key: str,
        repo_root,
        model: str = "claude-haiku-4-5-20251001",
        fix_model: Optional[str] = None,
        max_turns: int = 25,
        max_tokens: int = 4096,
        cost_tracker: Optional[CostTracker] = None,
        client=None,
    ):
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key)
        self.repo_root = repo_root
        self.model = model
        self.fix_model = fix_model or model
        self.max_turns = max(1, max_turns)
        self.max_tokens = max_tokens
        self.cost_tracker = cost_tracker

    @classmethod
    def from_config(
        cls,
        config: MimConfig,
        repo_root,
        cost_tracker: Optional[CostTracker] = None,
    ) -> "AnthropicDelegate":
        return cls(
            api_key=config.anthropic_api_key,
            repo_root=repo_root,
            model=config.investigator_model,
            fix_model=config.fix_model,
            max_turns=config.max_turns,
            max_tokens=config.max_tokens,
            cost_tracker=cost_tracker,
        )

    # ─── Protocol ─────────────────────────────────────────────────────────

    async def investigate(self, entry: KnowledgeEntry) -> Verdict:
        raw = await self._run_loop(
            call_type="investigation",
            subject=entry.id,
            model=self.model,
            system=INVESTIGATOR_SYSTEM_PROMPT,
            prompt=build_investigation_prompt(entry),
            toolbox=RepoToolbox(self.repo_root),
            result_tool=REPORT_VERDICT_TOOL,
        )
        return parse_verdict(raw, entry_id=entry.id)

    async def apply_fix(
        self,
        entry: KnowledgeEntry,
        knowledge_path: str,
        fix_description: str,
    ) -> bool:
        toolbox = self._edit_toolbox(knowledge_path)
        raw = await self._run_loop(
            call_type="fix",
            subject=entry.id,
            model=self.fix_model,
            system=FIX_SYSTEM_PROMPT,
            prompt=build_fix_prompt(entry, knowledge_path, fix_description),
            toolbox=toolbox,
            result_tool=REPORT_FIX_TOOL,
        )
        return self._edit_outcome(raw, toolbox, entry.id)

    async def recheck_review(self, review: PendingReview) -> RecheckResult:
        raw = await self._run_loop(
            call_type="recheck",
            subject=review.id,
            model=self.model,
            system=RECHECK_SYSTEM_PROMPT,
            prompt=build_recheck_prompt(review),
            toolbox=RepoToolbox(self.repo_root),
            result_tool=REPORT_RELEVANCE_TOOL,
        )
        still_relevant = raw.get("still_relevant")
        if not isinstance(still_relevant, bool):
            raise DelegateError(f"report_relevance without a boolean still_relevant: {raw!r}")
        return RecheckResult(still_relevant=still_relevant, reason=str(raw.get("reason", "")))

    async def apply_decision(self, review: PendingReview, knowledge_path: str) -> bool:
        toolbox = self._edit_toolbox(knowledge_path)
        raw = await self._run_loop(
            call_type="decision",
            subject=review.id,
            model=self.fix_model,
            system=DECISION_SYSTEM_PROMPT,
            prompt=build_decision_prompt(review, knowledge_path),
            toolbox=toolbox,
            result_tool=REPORT_FIX_TOOL,
        )
        return self._edit_outcome(raw, toolbox, review.id)

    # ─── Internals ────────────────────────────────────────────────────────

    def _edit_toolbox(self, knowledge_path: str) -> RepoToolbox:
        try:
            return RepoToolbox(self.repo_root, allow_git=False, editable_path=knowledge_path)
        except ToolError as e:
            raise DelegateError(str(e)) from e

    @staticmethod
    def _edit_outcome(raw: Dict[str, Any], toolbox: RepoToolbox, subject: str) -> bool:
        if not raw.get("applied"):
            logger.info("Change for %s not applied: %s", subject, raw.get("reason", "no reason given"))
            return False
        if toolbox.edits_made == 0:
            logger.warning("Delegate reported %s applied without editing the file", subject)
            return False
        return True

    async def _run_loop(
        self,
        call_type: str,
        subject: str,
        model: str,
        system: str,
        prompt: str,
        toolbox: RepoToolbox,
        result_tool: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Drive the tool-use loop until the result tool is called."""
        tools = toolbox.schemas + [result_tool]
        messages: List[Dict[str, Any]] = [{"role": "user", "content": prompt}]

        for turn in range(self.max_turns):
            last_turn = turn == self.max_turns - 1
            tool_choice = (
                {"type": "tool", "name": result_tool["name"]} if last_turn else {"type": "any"}
            )
            try:
                response = await self.client.messages.create(
                    model=model,
                    max_tokens=self.max_tokens,
                    system=system,
                    messages=messages,
                    tools=tools,
                    tool_choice=tool_choice,
                )
            except anthropic.APIError as e:
                raise DelegateError(f"{call_type} call failed: {e}") from e

            self._record_usage(call_type, subject, model, response)

            tool_uses = [block for block in response.content if block.type == "tool_use"]
            for block in tool_uses:
                if block.name == result_tool["name"]:
                    return dict(block.input)
            if not tool_uses:
                raise DelegateError(
                    f"{call_type} call ended without a result (stop_reason={response.stop_reason})"
                )

            messages.append({
                "role": "assistant",
                "content": [_block_to_param(block) for block in response.content],
            })
            results = []
            for block in tool_uses:
                try:
                    # tools do blocking file and git I/O
                    output = await asyncio.to_thread(toolbox.run, block.name, dict(block.input))
                    is_error = False
                except ToolError as e:
                    output = str(e)
                    is_error = True
                logger.debug("%s tool %s -> %s", call_type, block.name, "error" if is_error else "ok")
                results.append({
                    "type": "tool_result",
                    "tool_use_id": block.id,
                    "content": output,
                    "is_error": is_error,
                })
            messages.append({"role": "user", "content": results})

        raise DelegateError(f"{call_type} call used {self.max_turns} turns without a result")

    def _record_usage(self, call_type: str, subject: str, model: str, response):
        usage = getattr(response, "usage", None)
        if self.cost_tracker is None or usage is None:
            return
        self.cost_tracker.record(
            call_type,
            subject,
            model,
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
        )
