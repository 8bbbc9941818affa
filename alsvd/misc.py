from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol
import logging
import threading

logger = logging.getLogger(__name__)

'''
Exceptions, progress events and cancellation shared by the solvers.
'''


class ConfigurationError(ValueError):
    """Raised when a model is configured inconsistently (shapes, masks, penalties)."""


class ColumnState(str, Enum):
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    CONVERGED = "converged"
    MAX_ITER_REACHED = "max_iter_reached"


@dataclass(frozen=True)
class ProgressEvent:
    column: int
    iteration: int
    tol: float
    state: ColumnState
    mse: Optional[float] = None


Observer = Callable[[ProgressEvent], None]


class SupportsCancel(Protocol):
    def is_set(self) -> bool: ...


class CancellationToken:
    '''
    Cooperative cancellation flag polled once per outer ALS iteration.
    Any object with an ``is_set()`` method (e.g. ``threading.Event``) is
    accepted in its place.
    '''
    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()


def log_progress(event: ProgressEvent) -> None:
    if event.state is ColumnState.INITIALIZING:
        logger.info("column %d | %4s | %8s", event.column + 1, "iter", "tol")
    elif event.mse is None:
        logger.info("column %d | %4d | %8.2e", event.column + 1, event.iteration, event.tol)
    else:
        logger.info("column %d | %4d | %8.2e | mse %8.4e",
                    event.column + 1, event.iteration, event.tol, event.mse)
