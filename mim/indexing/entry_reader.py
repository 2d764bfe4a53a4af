"""
Mim - Entry Store Reader

Walks the category directories of the knowledge base and splits every
markdown file into atomic entries, one per `## ` section. The reader is
strictly read-only and never creates missing directories.

Entry IDs are "{category}-{file stem}-{ordinal}", where ordinal is the
section's position in the H2 split. A non-blank preamble before the first
heading occupies ordinal 0 whether or not it becomes an entry.
"""
import re
from pathlib import Path
from typing import Iterable, List

from ..core.types import KnowledgeEntry
from ..utils.logging import get_logger

logger = get_logger("reader")

_H2_SPLIT = re.compile(r"^## ", re.MULTILINE)


def _file_stem(filename: str) -> str:
    return filename[:-3] if filename.endswith(".md") else filename


def parse_knowledge_entries(category: str, filename: str, content: str) -> List[KnowledgeEntry]:
    """
    Split one knowledge file into entries.

    Sections with a heading but no body are skipped. A non-empty file that
    yields no sectioned entries becomes one entry titled after the file name.
    """
    stem = _file_stem(filename)
    entries: List[KnowledgeEntry] = []

    sections = [s for s in _H2_SPLIT.split(content) if s.strip()]
    for ordinal, section in enumerate(sections):
        heading, _, body = section.partition("\n")
        topic = heading.strip().lstrip("#").strip() or f"Section {ordinal + 1}"
        body = body.strip()
        if not body:
            continue
        entries.append(KnowledgeEntry(
            id=f"{category}-{stem}-{ordinal}",
            category=category,
            file=filename,
            topic=topic,
            content=body,
        ))

    if not entries and content.strip():
        entries.append(KnowledgeEntry(
            id=f"{category}-{stem}-0",
            category=category,
            file=filename,
            topic=stem.replace("-", " "),
            content=content.strip(),
        ))

    return entries


def read_all_entries(knowledge_dir: Path, categories: Iterable[str]) -> List[KnowledgeEntry]:
    """
    Read every entry in the knowledge base, in category order then by file name.
    Unreadable files are logged and skipped.
    """
    entries: List[KnowledgeEntry] = []
    for category in categories:
        category_dir = Path(knowledge_dir) / category
        if not category_dir.is_dir():
            continue
        for path in sorted(category_dir.glob("*.md")):
            if not path.is_file():
                continue
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Failed to read knowledge file %s: %s", path, e)
                continue
            entries.extend(parse_knowledge_entries(category, path.name, content))
    return entries
