from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional
import logging
import numpy as np
from numpy.typing import NDArray

from .MatrixBackend import MatrixBackend
from .Masking import MaskMode, MaskState
from .misc import ConfigurationError
from .utils import _column_chunks, _n_workers

logger = logging.getLogger(__name__)

'''
Mean squared error of a factor model A ~ W @ V.T, where W = U * D (or the
unscaled U while a fit is still running).

Columns of A are scored independently. Each worker fills its own slice of a
per-column loss array and the array is summed in column order afterwards,
so the result does not depend on the number of threads.
'''


class Evaluator:
    def __init__(self, A: MatrixBackend, mask: MaskState, threads: int = 0):
        self.A = A
        self.mask = mask
        self.threads = threads

    def _column_losses(self, kernel: Callable[[int, NDArray], float], w: NDArray, v: NDArray) -> NDArray:
        n_cols = self.A.n_cols
        losses = np.zeros(n_cols)

        def work(cols: slice):
            pred = w @ v[cols].T
            for c, j in enumerate(range(cols.start, cols.stop)):
                losses[j] = kernel(j, pred[:, c])

        n_workers = _n_workers(self.threads)
        chunks = _column_chunks(n_cols, n_workers)
        if n_workers == 1 or len(chunks) == 1:
            for cols in chunks:
                work(cols)
        else:
            with ThreadPoolExecutor(max_workers=n_workers) as executor:
                # consume the iterator so worker exceptions propagate
                list(executor.map(work, chunks))
        return losses

    def mse(self, w: NDArray, v: NDArray, k: Optional[int] = None) -> float:
        '''
        Error over the fitting domain: all entries, the non-zero entries
        (mask zeros) or the entries outside the masking matrix.
        '''
        A, mask = self.A, self.mask
        k = w.shape[1] if k is None else k
        if mask.mode is MaskMode.ZEROS:
            kernel = A.loss_nonzero
        else:
            kernel = lambda j, pred: A.loss_full(j, pred, mask.masked_rows(j))
        total = self._column_losses(kernel, w, v).sum()
        return float(total / mask.mse_denominator(k, A.n_cols, A.nnz))

    def mse_masked(self, w: NDArray, v: NDArray) -> float:
        '''Error over the masked coordinates only, zeros of A included.'''
        A, mask = self.A, self.mask
        if mask.mode is not MaskMode.MATRIX:
            raise ConfigurationError(
                "'mse_masked' can only be run when a masking matrix has been specified")

        def kernel(j, pred):
            rows = mask.masked_rows(j)
            if len(rows) == 0:
                return 0.0
            return A.loss_at(j, pred, rows)

        total = self._column_losses(kernel, w, v).sum()
        return float(total / max(mask.nnz, 1))
