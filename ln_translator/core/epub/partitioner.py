"""
Sentence-aligned partitioning of chapter markdown.

A chapter is cut after every ideographic full stop; fragments are packed into
sections that stay under SECTION_MAX_CHARS, and sections are grouped by
SECTIONS_PER_UNIT into translation units (one backend request each).
"""

import re
from typing import List, Tuple, TYPE_CHECKING

from ln_translator.config import SECTION_MAX_CHARS, SECTIONS_PER_UNIT, SENTENCE_TERMINATOR
from ln_translator.core.exceptions import DocumentError
from .transcoder import html_to_markdown

if TYPE_CHECKING:
    from .reader import EpubArchive


def split_sentences(text: str, terminator: str = SENTENCE_TERMINATOR) -> List[str]:
    """Split after each terminator; every fragment keeps its own terminator."""
    if not text:
        return []
    escaped = re.escape(terminator)
    return re.findall(rf'[^{escaped}]*{escaped}|[^{escaped}]+$', text)


def partition(markdown: str, max_chars: int = SECTION_MAX_CHARS,
              terminator: str = SENTENCE_TERMINATOR) -> List[str]:
    """
    Pack sentence fragments into sections shorter than ``max_chars``.

    The buffer is flushed before a fragment that would bring it to
    ``max_chars`` or beyond. A single fragment that is already too long is
    kept whole as its own section. ``''.join(partition(text)) == text``.

    Args:
        markdown: Chapter markdown
        max_chars: Section length bound, in characters
        terminator: Sentence terminator to split after

    Returns:
        Ordered list of sections
    """
    sections: List[str] = []
    buffer = ''
    for fragment in split_sentences(markdown, terminator):
        if buffer and len(buffer) + len(fragment) >= max_chars:
            sections.append(buffer)
            buffer = ''
        buffer += fragment
    if buffer:
        sections.append(buffer)
    return sections


def group(sections: List[str], size: int = SECTIONS_PER_UNIT) -> List[str]:
    """Join consecutive runs of ``size`` sections into translation units."""
    if size < 1:
        raise ValueError(f"Group size must be positive, got {size}")
    return [' '.join(sections[i:i + size]) for i in range(0, len(sections), size)]


def join_partition(parts: List[str]) -> str:
    """Render parts one after another, each under its <part>N</part> header."""
    return '\n\n'.join(f"<part>{n}</part>\n\n{part}" for n, part in enumerate(parts, 1))


def partition_archive(archive: "EpubArchive") -> List[Tuple[str, List[str]]]:
    """
    Convert every spine document to translation units.

    Returns:
        (path, units) pairs in spine order; documents without text are left out
    """
    pages = []
    for path in archive.spine_paths():
        markdown = html_to_markdown(archive.read(path))
        units = group(partition(markdown))
        if units:
            pages.append((path, units))
    return pages


def preview_chapter(archive: "EpubArchive", index: int) -> str:
    """Markdown of one spine document, split into part-tagged sections."""
    spine = archive.spine_paths()
    if not 0 <= index < len(spine):
        raise DocumentError(
            f"Chapter index {index} out of range",
            source=archive.name,
            context={'chapters': len(spine)}
        )
    markdown = html_to_markdown(archive.read(spine[index]))
    return join_partition(partition(markdown))
