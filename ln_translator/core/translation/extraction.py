"""
Image text extraction.

Scanned pages (jpg/jpeg/png) are sent to a vision model with the extraction
prompt. Under Chain, unchecked pages are skipped and pages go one at a time;
under Batch(size), the next ``size`` pages are handled concurrently (checked
ones only) before moving on.
"""

import asyncio
import base64
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional

from ln_translator.config import IMAGE_EXTENSIONS, IMAGE_MEDIA_TYPES
from ln_translator.core.exceptions import FileReadError
from ln_translator.prompts import EXTRACTION_PROMPT
from ln_translator.utils.file_utils import read_bytes_file, write_text_atomic
from .events import EventBus, EventType
from .execution import Batch, ExecutionMethod
from .models import Settings
from .retry_manager import RetryConfig
from .session import BaseSession


@dataclass
class ImagePage:
    name: str
    data: bytes
    checked: bool = True
    content: str = ''
    complete: bool = False

    @property
    def encoded(self) -> str:
        return base64.b64encode(self.data).decode('ascii')

    @property
    def media_type(self) -> str:
        return IMAGE_MEDIA_TYPES.get(Path(self.name).suffix.lower(), 'image/png')

    @property
    def data_uri(self) -> str:
        return f"data:{self.media_type};base64,{self.encoded}"


async def load_image_pages(folder) -> List[ImagePage]:
    """Image files of a folder, sorted by name."""
    directory = Path(folder)
    if not directory.is_dir():
        raise FileReadError(f"Not a directory: {directory}", context={'path': str(directory)})

    files = sorted(p for p in directory.iterdir()
                   if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS)
    return [ImagePage(name=p.name, data=await read_bytes_file(p)) for p in files]


class ExtractionSession(BaseSession):
    """Text extraction from a folder of page images."""

    source = "extraction"

    def __init__(self,
                 pages: Optional[List[ImagePage]] = None,
                 settings: Optional[Settings] = None,
                 method: Optional[ExecutionMethod] = None,
                 retry_config: Optional[RetryConfig] = None,
                 event_bus: Optional[EventBus] = None,
                 log_callback: Optional[Callable] = None):
        super().__init__(settings, method, retry_config, event_bus, log_callback)
        self.pages: List[ImagePage] = pages or []

    async def open_folder(self, folder) -> List[ImagePage]:
        pages = await load_image_pages(folder)
        self.abort()
        self.pages = pages
        self.finished = False
        self._log("info", f"Loaded {len(pages)} images from {folder}")
        return pages

    def extract(self, page: int = 0) -> asyncio.Task:
        """
        Extract text from ``page`` onward.

        Raises:
            BackendConnectionError: No backend or no model; nothing is started
            SessionBusyError: Another run is still in flight
        """
        self._require_model()
        self._require_idle()
        self.finished = False
        return self.handles.spawn(self._extract_step(page, self._generation),
                                  name=f"extract-{page + 1}")

    def cancel(self) -> int:
        cancelled = self.abort()
        self.events.emit(EventType.SESSION_ABORTED, source=self.source, cancelled=cancelled)
        return cancelled

    async def _extract_one(self, index: int, generation: int):
        page = self.pages[index]
        page.content = ''
        page.complete = False

        def on_chunk(chunk: str):
            if self._is_current(generation):
                page.content += chunk
                self.events.emit(EventType.EXTRACTION_UPDATED, source=self.source,
                                 page=index, chunk=chunk)

        await self._stream(EXTRACTION_PROMPT, on_chunk, generation,
                           images=[page.data_uri], operation_id=f"image {page.name}")
        if self._is_current(generation):
            page.complete = True

    async def _extract_step(self, index: int, generation: int):
        if not self._is_current(generation):
            return

        total = len(self.pages)
        if isinstance(self.method, Batch):
            window = range(index, min(index + self.method.size, total))
        else:
            while index < total and not self.pages[index].checked:
                index += 1
            window = range(index, min(index + 1, total))

        if index >= total:
            self._log("info", "Extraction complete")
            self._finish(scope="extraction", pages=total)
            self.events.emit(EventType.EXTRACTION_COMPLETED, source=self.source, pages=total)
            return

        steps = [partial(self._extract_one, i, generation) for i in window if self.pages[i].checked]
        if not await self._run_plan(steps, generation):
            return

        self._log("info", f"Extracted {window.stop}/{total} images", {
            'type': 'progress', 'current': window.stop, 'total': total,
        })
        self.handles.spawn(self._extract_step(window.stop, generation),
                           name=f"extract-{window.stop + 1}")

    def save_text(self) -> str:
        """Checked pages with content, each under a <page>NAME</page> header."""
        return ''.join(
            f"\n<page>{page.name}</page>\n\n{page.content}\n"
            for page in self.pages
            if page.checked and page.content
        )

    async def save(self, path) -> str:
        return await write_text_atomic(path, self.save_text())
