"""
Data model for a translation session: pages, their activity and the
completion heuristic.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, TYPE_CHECKING
import posixpath

from ln_translator.config import COMPLETION_THRESHOLD, THINK_ENABLED, PAUSE_SECONDS
from ln_translator.core.epub.partitioner import partition_archive
from ln_translator.core.epub.transcoder import part_tag, strip_think_tags

if TYPE_CHECKING:
    from ln_translator.core.epub.reader import EpubArchive


class Activity(Enum):
    """Translation state of a page"""
    INCOMPLETE = "incomplete"
    ACTIVE = "active"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class Settings:
    """Generation parameters shared by every request of a session.

    Attributes:
        think: Let reasoning models think before answering
        pause: Seconds to wait between two pages of an auto-advancing run
    """
    think: bool = THINK_ENABLED
    pause: float = PAUSE_SECONDS


@dataclass
class Page:
    """One spine document split into translation units.

    ``text[i]`` accumulates the translation of ``sections[i]``; both lists
    always have the same length.
    """
    path: str
    sections: List[str]
    text: Optional[List[str]] = None
    activity: Activity = Activity.INCOMPLETE

    def __post_init__(self):
        if self.text is None:
            self.text = [''] * len(self.sections)
        elif len(self.text) != len(self.sections):
            raise ValueError(
                f"Page {self.path}: {len(self.text)} text slots for {len(self.sections)} sections"
            )

    @property
    def stem(self) -> str:
        return posixpath.splitext(posixpath.basename(self.path.replace('\\', '/')))[0]

    def clear(self):
        """Empty every text slot in place."""
        for i in range(len(self.text)):
            self.text[i] = ''

    def clear_unit(self, index: int):
        self.text[index] = ''

    def append(self, index: int, chunk: str):
        self.text[index] += chunk

    @property
    def has_text(self) -> bool:
        """True once any unit holds translated text (reasoning aside)."""
        return any(strip_think_tags(text).strip() for text in self.text)

    def to_markdown(self) -> str:
        """Export format: each unit under its <part>N</part> header, reasoning removed."""
        return ''.join(
            f"{part_tag(n)}{strip_think_tags(text)}\n" for n, text in enumerate(self.text, 1)
        )


def is_mostly_ascii(text: str, threshold: float = COMPLETION_THRESHOLD) -> bool:
    """
    True when ASCII letters/digits make up more than ``threshold`` percent
    of the non-whitespace characters.
    """
    characters = [c for c in text if not c.isspace()]
    if not characters:
        return False
    alphanumeric = sum(1 for c in characters if c.isascii() and c.isalnum())
    return alphanumeric / len(characters) * 100 > threshold


def check_complete(page: Page, threshold: float = COMPLETION_THRESHOLD) -> Activity:
    """
    Classify a page from its accumulated text.

    Any empty unit -> INCOMPLETE; every unit mostly ASCII -> COMPLETE;
    otherwise ERROR (leftover source text or garbage output).
    """
    if any(not text for text in page.text):
        return Activity.INCOMPLETE
    if all(is_mostly_ascii(strip_think_tags(text), threshold) for text in page.text):
        return Activity.COMPLETE
    return Activity.ERROR


def build_pages(archive: "EpubArchive") -> List[Page]:
    """Pages of an archive in spine order, skipping documents without text."""
    return [Page(path=path, sections=units) for path, units in partition_archive(archive)]
