"""
Mim - Repository Toolbox

The sandboxed capabilities a delegate may use while it works. Every path is
resolved against the repository root and rejected if it escapes it.

Investigation gets a read-only view: read files, find files by glob, search
content by regex, and read git history (log/show/diff/blame only). Fix and
decision calls get read access plus `edit_file`, which can touch exactly one
file and only by replacing a unique snippet.

Tool failures raise ToolError; the delegate reports the message back to the
model as an error result and lets it try something else.
"""
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.errors import ToolError
from ..utils.git import run_git

MAX_READ_CHARS = 20_000
MAX_MATCHES = 100
MAX_SEARCH_FILE_BYTES = 1_000_000
ALLOWED_GIT_COMMANDS = ("log", "show", "diff", "blame")
# Flags that write files, run external programs, read files by path or leave the repository
BLOCKED_GIT_FLAGS = (
    "--output", "--ext-diff", "--textconv", "--contents", "--no-index",
    "--ignore-revs-file", "--git-dir", "--work-tree", "-o",
)
SKIP_DIRS = {".git", "node_modules", "__pycache__", ".venv", "venv", ".mypy_cache", ".pytest_cache"}


# ─── Tool Schemas ────────────────────────────────────────────────────────────

READ_FILE_TOOL = {
    "name": "read_file",
    "description": "Read a text file from the repository. Paths are relative to the repository root.",
    "input_schema": {
        "type": "object",
        "properties": {
            "path": {"type": "string"},
            "offset": {"type": "integer", "description": "1-based line to start from"},
            "limit": {"type": "integer", "description": "Maximum number of lines"},
        },
        "required": ["path"],
    },
}

FIND_FILES_TOOL = {
    "name": "find_files",
    "description": "Find files whose path matches a glob pattern, e.g. 'src/**/*.py'.",
    "input_schema": {
        "type": "object",
        "properties": {"pattern": {"type": "string"}},
        "required": ["pattern"],
    },
}

SEARCH_CONTENT_TOOL = {
    "name": "search_content",
    "description": "Search file contents with a regular expression. Returns path:line: text matches.",
    "input_schema": {
        "type": "object",
        "properties": {
            "pattern": {"type": "string"},
            "glob": {"type": "string", "description": "Only search files matching this glob"},
        },
        "required": ["pattern"],
    },
}

GIT_HISTORY_TOOL = {
    "name": "git_history",
    "description": "Run a read-only git command: log, show, diff or blame.",
    "input_schema": {
        "type": "object",
        "properties": {
            "command": {"type": "string", "enum": list(ALLOWED_GIT_COMMANDS)},
            "args": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["command"],
    },
}

EDIT_FILE_TOOL = {
    "name": "edit_file",
    "description": "Replace one exact, unique snippet of the target knowledge file. "
                   "Use an empty new_string to delete the snippet.",
    "input_schema": {
        "type": "object",
        "properties": {
            "path": {"type": "string"},
            "old_string": {"type": "string"},
            "new_string": {"type": "string"},
        },
        "required": ["path", "old_string", "new_string"],
    },
}


class RepoToolbox:
    """
    Usage:
        toolbox = RepoToolbox(repo_root)                          # investigation
        toolbox = RepoToolbox(repo_root, allow_git=False,
                              editable_path=knowledge_file)       # fix / decision
        output = toolbox.run("read_file", {"path": "README.md"})
    """

    def __init__(
        self,
        repo_root,
        allow_git: bool = True,
        editable_path: Optional[str] = None,
    ):
        self.repo_root = Path(repo_root).resolve()
        self.allow_git = allow_git
        self.editable_path = self._resolve(editable_path) if editable_path else None
        self.edits_made = 0

    @property
    def schemas(self) -> List[Dict[str, Any]]:
        if self.editable_path is not None:
            return [READ_FILE_TOOL, EDIT_FILE_TOOL]
        tools = [READ_FILE_TOOL, FIND_FILES_TOOL, SEARCH_CONTENT_TOOL]
        if self.allow_git:
            tools.append(GIT_HISTORY_TOOL)
        return tools

    def run(self, name: str, tool_input: Dict[str, Any]) -> str:
        """Execute one tool call. Raises ToolError on any rejection or failure."""
        handlers = {
            "read_file": self.read_file,
            "find_files": self.find_files,
            "search_content": self.search_content,
            "git_history": self.git_history,
            "edit_file": self.edit_file,
        }
        allowed = {schema["name"] for schema in self.schemas}
        if name not in allowed:
            raise ToolError(f"Tool not available: {name}")
        try:
            return handlers[name](**tool_input)
        except (TypeError, ValueError) as e:
            raise ToolError(f"Bad arguments for {name}: {e}") from e

    # ─── Paths ────────────────────────────────────────────────────────────

    def _resolve(self, path: str) -> Path:
        raw = Path(path).expanduser()
        target = (raw if raw.is_absolute() else self.repo_root / raw).resolve()
        if target != self.repo_root and self.repo_root not in target.parents:
            raise ToolError(f"Path outside repository: {path}")
        return target

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.repo_root).as_posix()

    def _walk(self, pattern: str):
        for path in sorted(self.repo_root.glob(pattern)):
            if any(part in SKIP_DIRS for part in path.relative_to(self.repo_root).parts):
                continue
            if path.is_file():
                yield path

    # ─── Read-only Tools ──────────────────────────────────────────────────

    def read_file(self, path: str, offset: int = 1, limit: Optional[int] = None) -> str:
        target = self._resolve(path)
        if not target.is_file():
            raise ToolError(f"No such file: {path}")
        try:
            lines = target.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError as e:
            raise ToolError(f"Cannot read {path}: {e}") from e

        start = max(1, offset) - 1
        end = start + limit if limit else len(lines)
        numbered = "\n".join(f"{i + 1}\t{line}" for i, line in enumerate(lines[start:end], start))
        if len(numbered) > MAX_READ_CHARS:
            numbered = numbered[:MAX_READ_CHARS] + "\n[truncated]"
        return numbered or "(empty file)"

    def find_files(self, pattern: str) -> str:
        if Path(pattern).is_absolute() or ".." in Path(pattern).parts:
            raise ToolError("Pattern must be relative to the repository root")
        matches = []
        for path in self._walk(pattern):
            matches.append(self._relative(path))
            if len(matches) >= MAX_MATCHES:
                matches.append("[more results truncated]")
                break
        return "\n".join(matches) or "No files found"

    def search_content(self, pattern: str, glob: str = "**/*") -> str:
        try:
            regex = re.compile(pattern)
        except re.error as e:
            raise ToolError(f"Invalid regex: {e}") from e
        if Path(glob).is_absolute() or ".." in Path(glob).parts:
            raise ToolError("Glob must be relative to the repository root")

        matches = []
        for path in self._walk(glob):
            try:
                if path.stat().st_size > MAX_SEARCH_FILE_BYTES:
                    continue
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            for lineno, line in enumerate(text.splitlines(), 1):
                if regex.search(line):
                    matches.append(f"{self._relative(path)}:{lineno}: {line.strip()[:200]}")
                    if len(matches) >= MAX_MATCHES:
                        return "\n".join(matches + ["[more results truncated]"])
        return "\n".join(matches) or "No matches"

    def git_history(self, command: str, args: Optional[List[str]] = None) -> str:
        if not self.allow_git or command not in ALLOWED_GIT_COMMANDS:
            raise ToolError(f"git {command} is not allowed")
        args = [str(a) for a in (args or [])]
        for arg in args:
            if arg.startswith(BLOCKED_GIT_FLAGS):
                raise ToolError(f"git argument not allowed: {arg}")
            if arg.startswith("--"):
                value = arg.split("=", 1)[-1]
            elif arg.startswith("-"):
                value = arg[2:]
            else:
                value = arg
            if Path(value).is_absolute() or ".." in Path(value).parts:
                raise ToolError(f"git argument outside repository: {arg}")
        output = run_git([command, *args], cwd=self.repo_root)
        if output is None:
            raise ToolError(f"git {command} failed")
        if len(output) > MAX_READ_CHARS:
            output = output[:MAX_READ_CHARS] + "\n[truncated]"
        return output or "(no output)"

    # ─── Edit Tool ────────────────────────────────────────────────────────

    def edit_file(self, path: str, old_string: str, new_string: str) -> str:
        if self.editable_path is None:
            raise ToolError("Editing is not available")
        target = self._resolve(path)
        if target != self.editable_path:
            raise ToolError(f"Only {self._relative(self.editable_path)} may be edited")
        if not old_string:
            raise ToolError("old_string must not be empty")
        try:
            content = target.read_text(encoding="utf-8")
        except OSError as e:
            raise ToolError(f"Cannot read {path}: {e}") from e

        occurrences = content.count(old_string)
        if occurrences == 0:
            raise ToolError("old_string not found in file")
        if occurrences > 1:
            raise ToolError(f"old_string is not unique ({occurrences} matches); include more context")

        target.write_text(content.replace(old_string, new_string, 1), encoding="utf-8")
        self.edits_made += 1
        return f"Edited {self._relative(target)}"
