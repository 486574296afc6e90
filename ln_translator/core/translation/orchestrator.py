"""
Translation orchestrator.

Drives the per-page state machine:

    INCOMPLETE --start--> ACTIVE --all units filled, heuristic passes--> COMPLETE
                          ACTIVE --heuristic fails--> ERROR
                          ACTIVE --cancel--> INCOMPLETE

A whole-document run translates one page, classifies it, then schedules the
next page as a new task; past the last page the session finishes and a
SESSION_FINISHED event asks the UI to save.
"""

import asyncio
from functools import partial
from typing import Callable, List, Optional

from ln_translator.core.epub.reader import EpubArchive
from ln_translator.prompts import TRANSLATION_SYSTEM_PROMPT
from ln_translator.utils.file_utils import save_page_markdown, save_pages_markdown
from .events import EventBus, EventType
from .execution import ExecutionMethod
from .models import Activity, Page, Settings, build_pages, check_complete
from .retry_manager import RetryConfig
from .session import BaseSession


class TranslationSession(BaseSession):
    """Translation of one document."""

    source = "translation"

    def __init__(self,
                 pages: Optional[List[Page]] = None,
                 settings: Optional[Settings] = None,
                 method: Optional[ExecutionMethod] = None,
                 retry_config: Optional[RetryConfig] = None,
                 event_bus: Optional[EventBus] = None,
                 log_callback: Optional[Callable] = None):
        super().__init__(settings, method, retry_config, event_bus, log_callback)
        self.pages: List[Page] = pages or []
        self.archive: Optional[EpubArchive] = None
        self.name: Optional[str] = None

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------

    def open_epub(self, data: bytes, name: Optional[str] = None) -> List[Page]:
        """
        Load a document from EPUB bytes.

        Raises:
            DocumentError: Malformed archive; the current document is kept
        """
        archive = EpubArchive.from_bytes(data, name)
        pages = build_pages(archive)
        self.abort()
        self.archive = archive
        self.name = name
        self.pages = pages
        self.finished = False
        self._log("info", f"Opened {name or 'document'}: {len(pages)} pages")
        return pages

    def load_document(self, pages: List[Page], name: Optional[str] = None):
        self.abort()
        self.pages = pages
        self.name = name
        self.finished = False

    def _reset_active(self):
        for page in self.pages:
            if page.activity == Activity.ACTIVE:
                page.activity = Activity.INCOMPLETE

    def update_content(self, page: int, part: int, chunk: str):
        """Append a streamed chunk to one unit (append-only)."""
        self.pages[page].append(part, chunk)
        self.events.emit(EventType.CONTENT_UPDATED, source=self.source, page=page, part=part, chunk=chunk)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def translate(self, page: int = 0) -> asyncio.Task:
        """
        Translate the document from ``page`` onward, page after page.

        Raises:
            BackendConnectionError: No backend or no model; nothing is started
            SessionBusyError: Another run is still in flight
        """
        self._require_model()
        self._require_idle()
        self.finished = False
        self._log("info", f"Translating from page {page + 1} of {len(self.pages)}", {
            'type': 'progress', 'current': page, 'total': len(self.pages),
        })
        return self.handles.spawn(self._translate_step(page, self._generation, auto_advance=True),
                                  name=f"translate-page-{page + 1}")

    def translate_page(self, page: int) -> Optional[asyncio.Task]:
        """Re-translate every unit of one page without moving on."""
        self._require_model()
        self._require_idle()
        if not 0 <= page < len(self.pages):
            self._log("error", f"Invalid page: {page + 1}")
            return None
        return self.handles.spawn(self._translate_step(page, self._generation, auto_advance=False),
                                  name=f"translate-page-{page + 1}")

    def translate_part(self, page: int, part: int) -> Optional[asyncio.Task]:
        """Re-translate a single unit of a page."""
        self._require_model()
        self._require_idle()
        if not 0 <= page < len(self.pages) or not 0 <= part < len(self.pages[page].sections):
            self._log("error", f"Invalid part: page {page + 1}, part {part + 1}")
            return None
        return self.handles.spawn(self._translate_part_step(page, part, self._generation),
                                  name=f"translate-part-{page + 1}-{part + 1}")

    def cancel(self) -> int:
        """Abort the run: cancel every task and reset ACTIVE pages to INCOMPLETE."""
        cancelled = self.abort()
        self._log("warning", f"Translation cancelled ({cancelled} tasks stopped)")
        self.events.emit(EventType.SESSION_ABORTED, source=self.source, cancelled=cancelled)
        return cancelled

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _translate_unit(self, index: int, part: int, generation: int):
        page = self.pages[index]
        self._log("debug", "Backend Request", {
            'type': 'llm_request', 'page': index, 'unit': part,
            'model': getattr(self.connection, 'current_model', None), 'prompt': page.sections[part],
        })

        def on_chunk(chunk: str):
            if self._is_current(generation):
                self.update_content(index, part, chunk)

        def on_retry(error, attempt):
            self.events.emit(EventType.UNIT_RETRY, source=self.source,
                             page=index, part=part, attempt=attempt, error=error)

        await self._stream(page.sections[part], on_chunk, generation,
                           system_prompt=TRANSLATION_SYSTEM_PROMPT,
                           operation_id=f"page {index + 1} part {part + 1}",
                           on_retry=on_retry)

    def _classify(self, index: int):
        page = self.pages[index]
        page.activity = check_complete(page)
        self.events.emit(EventType.PAGE_COMPLETED, source=self.source,
                         page=index, activity=page.activity)
        level = "warning" if page.activity == Activity.ERROR else "info"
        self._log(level, f"Page {index + 1}/{len(self.pages)} ({page.stem}): {page.activity.value}")

    async def _translate_step(self, index: int, generation: int, auto_advance: bool):
        if not self._is_current(generation):
            return
        if index >= len(self.pages):
            self._log("info", "Translation complete", {
                'type': 'progress', 'current': len(self.pages), 'total': len(self.pages),
            })
            self._finish(scope="document", pages=len(self.pages))
            return

        page = self.pages[index]
        page.clear()
        page.activity = Activity.ACTIVE
        self.events.emit(EventType.PAGE_STARTED, source=self.source, page=index)

        steps = [partial(self._translate_unit, index, part, generation)
                 for part in range(len(page.sections))]
        if not await self._run_plan(steps, generation):
            return

        self._classify(index)

        if not auto_advance:
            self._finish(scope="page", page=index)
            return

        self._log("info", f"Page {index + 1} done", {
            'type': 'progress', 'current': index + 1, 'total': len(self.pages),
        })
        if self.settings.pause > 0:
            await asyncio.sleep(self.settings.pause)
        if self._is_current(generation):
            self.handles.spawn(self._translate_step(index + 1, generation, auto_advance=True),
                               name=f"translate-page-{index + 2}")

    async def _translate_part_step(self, index: int, part: int, generation: int):
        if not self._is_current(generation):
            return
        page = self.pages[index]
        page.clear_unit(part)
        page.activity = Activity.ACTIVE
        self.events.emit(EventType.PAGE_STARTED, source=self.source, page=index, part=part)

        if not await self._run_plan([partial(self._translate_unit, index, part, generation)], generation):
            return

        self._classify(index)
        self._finish(scope="part", page=index, part=part)

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    async def save_page(self, page: int, folder: str) -> str:
        """Write one page as ``<stem>.md`` in ``folder``."""
        return await save_page_markdown(self.pages[page], folder)

    async def save_pages(self, folder: str) -> List[str]:
        """Write every page as ``<stem>.md`` in ``folder``."""
        paths = await save_pages_markdown(self.pages, folder)
        self._log("info", f"Saved {len(paths)} pages to {folder}")
        return paths

    def summary(self) -> dict:
        counts = {activity.value: 0 for activity in Activity}
        for page in self.pages:
            counts[page.activity.value] += 1
        return counts
