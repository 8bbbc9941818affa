# utils.py
from __future__ import annotations
from typing import Optional, Union
import logging
import os
import numpy as np
from numpy.typing import NDArray
from sklearn.utils import check_random_state
from sklearn.utils.validation import check_array

logger = logging.getLogger(__name__)

# added to every divisor so an all-zero column never divides by zero
DIV_OFFSET = 1e-15


def _check_factor(X, name: str) -> NDArray:
    '''
    Validates a factor matrix and returns a float64 copy the solver can own.
    '''
    # check_array also rejects NaN and inf entries
    return check_array(X, dtype=np.float64, ensure_2d=True, copy=True, input_name=name)


def _random_factor(n_rows: int, k: int, seed: Optional[Union[int, np.random.RandomState]] = None) -> NDArray:
    rng = check_random_state(seed)
    return rng.uniform(size=(n_rows, k))


def _cor(x: NDArray, y: NDArray) -> float:
    '''
    Pearson correlation between two vectors. Constant vectors correlate
    perfectly with each other and not at all with anything else.
    '''
    xc = x - x.mean()
    yc = y - y.mean()
    sx = np.sqrt(xc @ xc)
    sy = np.sqrt(yc @ yc)
    if sx == 0 or sy == 0:
        return 1.0 if sx == sy else 0.0
    return float((xc @ yc) / (sx * sy))


def _norm(x: NDArray) -> float:
    return float(np.sqrt(x @ x))


def _n_workers(threads: int) -> int:
    if threads is None or threads <= 0:
        return os.cpu_count() or 1
    return threads


def _column_chunks(n: int, n_chunks: int):
    '''Splits range(n) into at most n_chunks contiguous, disjoint slices.'''
    n_chunks = max(1, min(n_chunks, n))
    bounds = np.linspace(0, n, n_chunks + 1).astype(int)
    return [slice(bounds[i], bounds[i + 1]) for i in range(n_chunks) if bounds[i] < bounds[i + 1]]
