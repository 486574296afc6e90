"""
Backend connection state: either disconnected or connected to a backend
with its model list and the selected model.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from ln_translator.core.llm.base import Backend


@dataclass(frozen=True)
class Disconnected:
    pass


@dataclass
class Connected:
    backend: Backend
    models: List[str] = field(default_factory=list)
    current_model: Optional[str] = None


Connection = Union[Disconnected, Connected]


async def connect(backend: Backend, model: Optional[str] = None) -> Connected:
    """
    Query the backend's models and build a connected state.

    The requested model is selected when given, otherwise the first model offered.
    """
    models = await backend.list_models()
    if model:
        current = model
    else:
        current = models[0] if models else None
    return Connected(backend=backend, models=models, current_model=current)
