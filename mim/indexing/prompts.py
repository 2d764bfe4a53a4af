"""
Mim - Delegate Prompts
System prompts and per-call user messages for the four delegate calls.
Every call ends with a forced result tool, so the prompts only describe the
work; the output shape lives in the tool schemas.
"""
from ..core.types import KnowledgeEntry, PendingReview

INVESTIGATOR_SYSTEM_PROMPT = """You verify a single knowledge entry about a codebase against the code itself.

Tools:
- read_file: read a file in the repository
- find_files: find files by glob pattern
- search_content: search file contents by regular expression
- git_history: git log, show, diff or blame

Investigate:
1. Does the referenced code still exist? Check file paths, function and class names, configuration values.
2. What does the code actually do now? Compare the implementation to what the entry claims.
3. What changed recently? Use git history to see whether recent commits affect the entry.
4. Where does this knowledge belong?
   - code_comment: specific to a single file or function
   - local: specific to one directory or module
   - global: cross-cutting

When finished, call report_verdict exactly once.
- valid: the entry is still accurate. Omit the issue.
- stale: the code it describes is gone.
- conflict: the entry contradicts the code.
- outdated: partially true, details have drifted.

For anything not valid, include an issue. Use severity auto_fix only for
mechanical corrections (a renamed path, a changed constant) and give the exact
suggested_fix. Use needs_review when a human has to decide; write a
self-contained review_question that explains the situation without restating
the options.

Do not ask questions. Focus on this one entry only."""

FIX_SYSTEM_PROMPT = """You apply one mechanical correction to one knowledge file.

Tools:
- read_file: read the knowledge file
- edit_file: replace one exact, unique snippet of that file

Read the file, make the smallest edit that carries out the fix, and leave the
rest of the file untouched. Do not rewrite sections that the fix does not
mention. When finished, call report_fix with applied=true if the edit was made,
or applied=false with a reason if the fix cannot be applied as described."""

RECHECK_SYSTEM_PROMPT = """You decide whether a pending knowledge review still describes a live issue.

Tools:
- read_file, find_files, search_content, git_history

Check whether the knowledge file still exists, whether the described issue is
still present, and whether code changes have resolved it. Be brief and direct.
Call report_relevance exactly once: still_relevant=true if the issue persists
and needs a human, false if it has been resolved."""

DECISION_SYSTEM_PROMPT = """You apply a decision a human made about one knowledge file.

Tools:
- read_file: read the knowledge file
- edit_file: replace one exact, unique snippet of that file

Apply the answer to the file:
- an answer to remove: delete the affected section
- an answer to update: rewrite the affected section to match the code
- any other answer: carry it out as literally as possible

The agent notes carry technical detail about how to apply the change. Make
precise, minimal edits. When finished, call report_fix with applied=true if
the decision is reflected in the file, false with a reason otherwise."""


def build_investigation_prompt(entry: KnowledgeEntry) -> str:
    return (
        f"Investigate this knowledge entry:\n\n"
        f"**Entry ID:** {entry.id}\n"
        f"**Category:** {entry.category}\n"
        f"**File:** {entry.file}\n"
        f"**Topic:** {entry.topic}\n\n"
        f"**Content:**\n{entry.content}\n\n"
        f"Verify this knowledge against the actual codebase. Check whether the referenced "
        f"code exists, whether the claims are accurate, and where this knowledge belongs."
    )


def build_fix_prompt(entry: KnowledgeEntry, knowledge_path: str, fix_description: str) -> str:
    return (
        f"Knowledge file: {knowledge_path}\n"
        f"Section: ## {entry.topic}\n\n"
        f"Fix to apply:\n{fix_description}"
    )


def build_recheck_prompt(review: PendingReview) -> str:
    return (
        f"Check whether this pending review is still relevant:\n\n"
        f"**Review ID:** {review.id}\n"
        f"**Subject:** {review.subject}\n"
        f"**Type:** {review.type.value}\n"
        f"**Question:** {review.question}\n"
        f"**Context:** {review.context}\n"
        f"**Knowledge File:** {review.knowledge_file}"
    )


def build_decision_prompt(review: PendingReview, knowledge_path: str) -> str:
    answer = review.answer or "Apply the suggested fix described in the agent notes."
    lines = [
        f"Knowledge file: {knowledge_path}",
        f"Subject: {review.subject}",
        f"Question: {review.question}",
        f"Answer: {answer}",
    ]
    if review.agent_notes:
        lines.append(f"Agent notes: {review.agent_notes}")
    return "\n".join(lines)
