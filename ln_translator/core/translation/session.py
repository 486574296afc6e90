"""
State and machinery shared by translation and extraction sessions:
backend connection, settings, execution method, task handles, retry and
abort/error handling.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Tuple

from ln_translator.core.exceptions import BackendConnectionError, SessionBusyError, TranslatorError
from ln_translator.core.llm.base import Backend
from .connection import Connected, Connection, Disconnected, connect
from .events import EventBus, EventType
from .execution import Batch, ExecutionMethod
from .handles import HandleRegistry
from .models import Settings
from .retry_manager import RetryManager, RetryConfig


Step = Callable[[], Awaitable[None]]


class BaseSession:
    """One independent session (one tab of a UI). Nothing here is shared across sessions."""

    source = "session"

    def __init__(self,
                 settings: Optional[Settings] = None,
                 method: Optional[ExecutionMethod] = None,
                 retry_config: Optional[RetryConfig] = None,
                 event_bus: Optional[EventBus] = None,
                 log_callback: Optional[Callable] = None):
        self.settings = settings or Settings()
        self.method = method or Batch()
        self.events = event_bus or EventBus()
        self.log_callback = log_callback
        self.handles = HandleRegistry()
        self.retry_manager = RetryManager(retry_config, log_callback=log_callback)
        self.connection: Connection = Disconnected()
        self.last_error: Optional[Exception] = None
        self.finished = False
        # Bumped on every abort; work started under an older value is stale
        self._generation = 0

    def _log(self, key: str, message: str, data: Optional[dict] = None):
        if self.log_callback:
            if data is None:
                self.log_callback(key, message)
            else:
                self.log_callback(key, message, data)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    @property
    def backend(self) -> Optional[Backend]:
        if isinstance(self.connection, Connected):
            return self.connection.backend
        return None

    async def connect(self, backend: Backend, model: Optional[str] = None) -> Connected:
        """Connect to a backend and select ``model`` (or the first model it offers)."""
        self.connection = await connect(backend, model)
        self._log("info", f"Connected to {backend.provider_name} "
                          f"({len(self.connection.models)} models, using {self.connection.current_model})")
        return self.connection

    def select_model(self, model: str):
        if not isinstance(self.connection, Connected):
            raise self._report_connection_error("No backend connected")
        self.connection.current_model = model

    async def disconnect(self):
        self.abort()
        backend = self.backend
        self.connection = Disconnected()
        if backend is not None:
            await backend.close()

    def _report_connection_error(self, message: str) -> BackendConnectionError:
        error = BackendConnectionError(message)
        self._log("error", message)
        self.events.emit(EventType.ERROR_REPORTED, source=self.source, error=error, fatal=False)
        return error

    def _require_model(self) -> Tuple[Backend, str]:
        """
        Raises:
            BackendConnectionError: No backend connected or no model selected
        """
        connection = self.connection
        if not isinstance(connection, Connected):
            raise self._report_connection_error("No backend connected")
        if not connection.current_model:
            raise self._report_connection_error("No model selected")
        return connection.backend, connection.current_model

    def _require_idle(self):
        """
        Raises:
            SessionBusyError: A run is still in flight; nothing is started
        """
        pending = len(self.handles.pending)
        if pending:
            error = SessionBusyError(f"A run is already in progress ({pending} tasks)", pending=pending)
            self._log("error", error.message)
            self.events.emit(EventType.ERROR_REPORTED, source=self.source, error=error, fatal=False)
            raise error

    # ------------------------------------------------------------------
    # Running work
    # ------------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _stream(self, prompt: str, on_chunk: Callable[[str], None], generation: int,
                      system_prompt: Optional[str] = None, images: Optional[List[str]] = None,
                      operation_id: Optional[str] = None, on_retry: Optional[Callable] = None):
        """Open a backend stream (with retry) and feed each chunk to ``on_chunk``."""
        backend, model = self._require_model()
        chunks = await self.retry_manager.execute_with_retry(
            backend.open_stream, model, prompt, self.settings,
            system_prompt=system_prompt, images=images,
            operation_id=operation_id, on_retry=on_retry
        )
        try:
            async for chunk in chunks:
                if not self._is_current(generation):
                    break
                on_chunk(chunk)
        finally:
            aclose = getattr(chunks, 'aclose', None)
            if aclose is not None:
                await aclose()

    async def _run_plan(self, steps: List[Step], generation: int) -> bool:
        """
        Run steps stage by stage according to the execution method.

        Returns:
            False when the run was aborted or failed
        """
        for stage in self.method.plan(steps):
            if not self._is_current(generation):
                return False
            tasks = [self.handles.spawn(step()) for step in stage]
            try:
                await asyncio.gather(*tasks)
            except TranslatorError as error:
                self._fail(error)
                return False
            except Exception as error:
                self._fail(error)
                raise
        return self._is_current(generation)

    def _fail(self, error: Exception):
        """Hard error: abort everything and surface the error."""
        self.abort()
        self.last_error = error
        self._log("error", f"Session aborted: {error}")
        self.events.emit(EventType.ERROR_REPORTED, source=self.source, error=error, fatal=True)

    def _reset_active(self):
        """Hook for subclasses: undo in-flight state after an abort."""

    def abort(self) -> int:
        """
        Cancel every outstanding task and invalidate in-flight work.

        Returns:
            Number of tasks cancelled
        """
        self._generation += 1
        cancelled = self.handles.abort()
        self._reset_active()
        backend = self.backend
        if backend is not None:
            backend.clear_history()
        return cancelled

    def _finish(self, **data):
        """Natural end of a run: drain handles and clear backend history."""
        if self.handles.abort():
            self._generation += 1
            self._reset_active()
        backend = self.backend
        if backend is not None:
            backend.clear_history()
        self.finished = True
        self.events.emit(EventType.SESSION_FINISHED, source=self.source, **data)

    async def join(self):
        """Wait until every spawned task (and its continuations) has finished."""
        await self.handles.join()
