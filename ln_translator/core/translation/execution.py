"""
Execution methods: how the per-unit steps of a page are composed.

A plan is a list of stages. Stages run one after another; the steps of a
stage run concurrently.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Sequence, TypeVar

from ln_translator.config import BATCH_SIZE


T = TypeVar('T')


class ExecutionMethod(ABC):
    """Policy turning an ordered list of steps into sequential stages"""

    @abstractmethod
    def plan(self, steps: Sequence[T]) -> List[List[T]]:
        pass


@dataclass(frozen=True)
class Chain(ExecutionMethod):
    """One step at a time; step i+1 starts after step i has finished."""

    def plan(self, steps):
        return [[step] for step in steps]

    def __str__(self):
        return "chain"


@dataclass(frozen=True)
class Batch(ExecutionMethod):
    """Groups of ``size`` steps; a group runs concurrently, groups run in order."""
    size: int = BATCH_SIZE

    def __post_init__(self):
        if self.size < 1:
            raise ValueError(f"Batch size must be positive, got {self.size}")

    def plan(self, steps):
        steps = list(steps)
        return [steps[i:i + self.size] for i in range(0, len(steps), self.size)]

    def __str__(self):
        return f"batch({self.size})"


def method_from_name(name: str, batch_size: int = BATCH_SIZE) -> ExecutionMethod:
    """Build an execution method from its CLI/config name."""
    if name.lower() == "chain":
        return Chain()
    if name.lower() == "batch":
        return Batch(batch_size)
    raise ValueError(f"Unknown execution method: {name}")
