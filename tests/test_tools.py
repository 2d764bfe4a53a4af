"""
Tests for the sandboxed repository toolbox.
"""
import os
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from mim.core.errors import ToolError
from mim.indexing.tools import RepoToolbox


def _repo(tmp):
    root = Path(tmp)
    (root / "src").mkdir()
    (root / "src" / "cache.py").write_text("TTL = 300\n\ndef get(key):\n    return None\n")
    (root / "src" / "api.py").write_text("from cache import get\n")
    (root / "docs.md").write_text("## Cache\nTTL is 300 seconds.\n## Other\nTTL is 300 seconds.\n")
    return root


def test_read_file_numbers_lines():
    with tempfile.TemporaryDirectory() as tmp:
        toolbox = RepoToolbox(_repo(tmp))
        output = toolbox.run("read_file", {"path": "src/cache.py", "offset": 3, "limit": 1})
        assert output == "3\tdef get(key):"


def test_paths_cannot_escape_repository():
    with tempfile.TemporaryDirectory() as tmp:
        toolbox = RepoToolbox(_repo(tmp))
        with pytest.raises(ToolError):
            toolbox.run("read_file", {"path": "../../etc/passwd"})
        with pytest.raises(ToolError):
            toolbox.run("find_files", {"pattern": "../*"})


def test_find_and_search():
    with tempfile.TemporaryDirectory() as tmp:
        toolbox = RepoToolbox(_repo(tmp))
        assert toolbox.run("find_files", {"pattern": "src/*.py"}) == "src/api.py\nsrc/cache.py"
        output = toolbox.run("search_content", {"pattern": r"TTL = \d+", "glob": "**/*.py"})
        assert output == "src/cache.py:1: TTL = 300"


def test_investigation_toolbox_cannot_edit():
    with tempfile.TemporaryDirectory() as tmp:
        toolbox = RepoToolbox(_repo(tmp))
        assert "edit_file" not in {s["name"] for s in toolbox.schemas}
        with pytest.raises(ToolError):
            toolbox.run("edit_file", {"path": "docs.md", "old_string": "TTL", "new_string": "x"})


def test_git_restricted_to_read_commands():
    with tempfile.TemporaryDirectory() as tmp:
        toolbox = RepoToolbox(_repo(tmp))
        with pytest.raises(ToolError):
            toolbox.run("git_history", {"command": "push"})
        with pytest.raises(ToolError):
            toolbox.run("git_history", {"command": "diff", "args": ["--output=/tmp/x"]})


def test_edit_only_target_file_with_unique_snippet():
    with tempfile.TemporaryDirectory() as tmp:
        root = _repo(tmp)
        toolbox = RepoToolbox(root, allow_git=False, editable_path=str(root / "docs.md"))
        assert {s["name"] for s in toolbox.schemas} == {"read_file", "edit_file"}

        with pytest.raises(ToolError):
            toolbox.run("edit_file", {"path": "src/cache.py", "old_string": "300", "new_string": "600"})
        with pytest.raises(ToolError):
            # appears twice
            toolbox.run("edit_file", {"path": "docs.md", "old_string": "TTL is 300 seconds.", "new_string": "x"})
        with pytest.raises(ToolError):
            toolbox.run("find_files", {"pattern": "*"})

        toolbox.run("edit_file", {
            "path": "docs.md",
            "old_string": "## Cache\nTTL is 300 seconds.",
            "new_string": "## Cache\nTTL is 600 seconds.",
        })
        assert toolbox.edits_made == 1
        assert "TTL is 600 seconds." in (root / "docs.md").read_text()


def test_bad_arguments_are_tool_errors():
    with tempfile.TemporaryDirectory() as tmp:
        toolbox = RepoToolbox(_repo(tmp))
        with pytest.raises(ToolError):
            toolbox.run("read_file", {"file": "docs.md"})


def test_invalid_glob_is_tool_error():
    with tempfile.TemporaryDirectory() as tmp:
        toolbox = RepoToolbox(_repo(tmp))
        with pytest.raises(ToolError, match="Bad arguments"):
            toolbox.run("find_files", {"pattern": ""})
        with pytest.raises(ToolError):
            toolbox.run("search_content", {"pattern": "TTL", "glob": ""})


@pytest.mark.parametrize("args", [
    ["--contents", "/etc/hostname", "docs.md"],
    ["--contents=/etc/hostname", "docs.md"],
    ["--no-index", "docs.md", "src/cache.py"],
    ["--ignore-revs-file", "revs.txt", "docs.md"],
    ["--git-dir=/tmp", "HEAD"],
    ["-S", "../../revs.txt", "docs.md"],
    ["HEAD", "--", "/etc/hostname"],
])
def test_git_arguments_cannot_read_outside_repository(args):
    with tempfile.TemporaryDirectory() as tmp:
        toolbox = RepoToolbox(_repo(tmp))
        with pytest.raises(ToolError, match="not allowed|outside repository"):
            toolbox.run("git_history", {"command": "blame", "args": args})


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_blame_contents_does_not_leak_outside_file():
    with tempfile.TemporaryDirectory() as tmp, tempfile.TemporaryDirectory() as outside:
        root = _repo(tmp)
        secret = Path(outside) / "secret.txt"
        secret.write_text("TOP-SECRET\n")
        git = ["git", "-c", "user.name=t", "-c", "user.email=t@example.com"]
        subprocess.run(git + ["init", "-q"], cwd=root, check=True)
        subprocess.run(git + ["add", "."], cwd=root, check=True)
        subprocess.run(git + ["commit", "-q", "-m", "init"], cwd=root, check=True)

        toolbox = RepoToolbox(root)
        with pytest.raises(ToolError) as excinfo:
            toolbox.run("git_history", {
                "command": "blame", "args": ["--contents", str(secret), "docs.md"],
            })
        assert "TOP-SECRET" not in str(excinfo.value)
        assert "init" in toolbox.run("git_history", {"command": "log", "args": ["--oneline"]})
