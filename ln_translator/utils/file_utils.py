"""
File helpers: markdown export/import of translated pages, atomic writes
and output naming.
"""
import os
import tempfile
from pathlib import Path
from typing import List, TYPE_CHECKING

import aiofiles

from ln_translator.core.exceptions import FileReadError, FileWriteError

if TYPE_CHECKING:
    from ln_translator.core.epub.builder import BuilderPage
    from ln_translator.core.translation.models import Page


def get_unique_output_path(output_path):
    """
    Generate a unique output path by adding a number suffix if the file already exists.

    Args:
        output_path (str): Desired output path

    Returns:
        str: Unique output path (original or with numeric suffix)

    Examples:
        book.epub -> book.epub (if doesn't exist)
        book.epub -> book (1).epub (if book.epub exists)
    """
    path = Path(output_path)
    if not path.exists():
        return str(output_path)

    counter = 1
    while True:
        new_path = path.parent / f"{path.stem} ({counter}){path.suffix}"
        if not new_path.exists():
            return str(new_path)
        counter += 1


async def write_bytes_atomic(path, data: bytes) -> str:
    """
    Write a whole file at once: the data goes to a temporary file in the same
    directory which then replaces the target, so readers never see a partial file.
    """
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent))
        os.close(fd)
    except OSError as e:
        raise FileWriteError(f"Cannot write {target}: {e}", context={'path': str(target)})

    try:
        async with aiofiles.open(tmp_name, 'wb') as f:
            await f.write(data)
        os.replace(tmp_name, target)
    except OSError as e:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise FileWriteError(f"Cannot write {target}: {e}", context={'path': str(target)})
    return str(target)


async def write_text_atomic(path, text: str) -> str:
    return await write_bytes_atomic(path, text.encode('utf-8'))


async def read_text_file(path) -> str:
    try:
        async with aiofiles.open(path, 'r', encoding='utf-8') as f:
            return await f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadError(f"Cannot read {path}: {e}", context={'path': str(path)})


async def read_bytes_file(path) -> bytes:
    try:
        async with aiofiles.open(path, 'rb') as f:
            return await f.read()
    except OSError as e:
        raise FileReadError(f"Cannot read {path}: {e}", context={'path': str(path)})


# ============================================================================
# Translated pages
# ============================================================================

def page_markdown_path(page: "Page", folder) -> Path:
    """Export location of a page: ``folder/<chapter file stem>.md``."""
    return Path(folder) / f"{page.stem}.md"


async def save_page_markdown(page: "Page", folder) -> str:
    return await write_text_atomic(page_markdown_path(page, folder), page.to_markdown())


async def save_pages_markdown(pages: List["Page"], folder) -> List[str]:
    """
    Save each translated page to its own file; a failure stops at that page.

    Pages without any translated text are skipped so a rebuild keeps the
    source chapter for them.
    """
    return [await save_page_markdown(page, folder) for page in pages if page.has_text]


async def load_markdown_folder(folder) -> List["BuilderPage"]:
    """Read every ``*.md`` file of a folder as a builder override."""
    from ln_translator.core.epub.builder import BuilderPage

    directory = Path(folder)
    if not directory.is_dir():
        raise FileReadError(f"Not a directory: {directory}", context={'path': str(directory)})

    pages = []
    for md_file in sorted(directory.glob('*.md')):
        pages.append(BuilderPage(path=str(md_file), content=await read_text_file(md_file)))
    return pages


async def write_epub(path, data: bytes) -> str:
    return await write_bytes_atomic(path, data)
