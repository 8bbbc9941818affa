from __future__ import annotations
from enum import Enum
from typing import Optional, Tuple
import logging
import numpy as np
from numpy.typing import NDArray
import scipy.sparse as sp

from .misc import ConfigurationError

logger = logging.getLogger(__name__)

'''
Masking and link-matrix configuration. Masks only change how a model is
scored; the ALS updates never look at them.
'''

_EMPTY = np.empty(0, dtype=np.int64)


class MaskMode(str, Enum):
    NONE = "none"
    ZEROS = "zeros"
    MATRIX = "matrix"


class MaskState:
    def __init__(self, shape: Tuple[int, int]):
        self.shape = shape
        self.mode = MaskMode.NONE
        self.matrix: Optional[sp.csc_matrix] = None
        self.link_u: Optional[sp.csc_matrix] = None
        self.link_v: Optional[sp.csc_matrix] = None
        self._floor_logged = False

    def set_mask_zeros(self) -> None:
        if self.mode is MaskMode.MATRIX:
            raise ConfigurationError(
                "a masking matrix has already been specified; cannot also mask zeros")
        self.mode = MaskMode.ZEROS

    def set_mask_matrix(self, M) -> None:
        if self.mode is MaskMode.MATRIX:
            raise ConfigurationError("a masking matrix has already been specified")
        if self.mode is MaskMode.ZEROS:
            raise ConfigurationError(
                "zeros are already masked; cannot also supply a masking matrix")
        if M.shape != self.shape:
            raise ConfigurationError(
                f"dimensions of masking matrix {M.shape} and 'A' {self.shape} are not equivalent")
        # own a boolean CSC copy so the caller's mask stays untouched
        M = sp.csc_matrix(M, dtype=bool, copy=True)
        M.eliminate_zeros()
        M.sort_indices()
        self.matrix = M
        self.mode = MaskMode.MATRIX

    def set_links(self, link_u=None, link_v=None, k: Optional[int] = None) -> None:
        '''
        Stores grouping knowledge for the U and V sides. The links are
        validated and kept on the model but the updaters do not use them.
        '''
        m, n = self.shape
        if link_u is not None:
            if link_u.shape != (m, k):
                raise ConfigurationError(f"'link_u' must have shape {(m, k)}, got {link_u.shape}")
            self.link_u = sp.csc_matrix(link_u, dtype=bool, copy=True)
        if link_v is not None:
            if link_v.shape != (n, k):
                raise ConfigurationError(f"'link_v' must have shape {(n, k)}, got {link_v.shape}")
            self.link_v = sp.csc_matrix(link_v, dtype=bool, copy=True)

    @property
    def nnz(self) -> int:
        return 0 if self.matrix is None else int(self.matrix.nnz)

    def is_symmetric(self) -> bool:
        if self.matrix is None:
            return True
        if self.shape[0] != self.shape[1]:
            return False
        return (self.matrix != self.matrix.T).nnz == 0

    def masked_rows(self, j: int) -> NDArray:
        if self.matrix is None:
            return _EMPTY
        M = self.matrix
        return M.indices[M.indptr[j]:M.indptr[j + 1]]

    def mse_denominator(self, k: int, n_cols: int, nnz_A: int) -> int:
        '''
        Number of measurements the mse over the fit domain is averaged over.
        The unmasked count is k * n_cols (rank times columns of A), not
        k * n_rows; the two only differ for non-square A.
        '''
        if self.mode is MaskMode.ZEROS:
            return max(nnz_A, 1)
        if self.mode is MaskMode.MATRIX:
            denominator = k * n_cols - self.nnz
            if denominator < 1:
                # floored at 1, so mse() is the summed squared error here
                if not self._floor_logged:
                    logger.warning(
                        "masking matrix has %d entries, at least k * n_cols = %d; "
                        "mse() reports the sum of squared errors, not a mean",
                        self.nnz, k * n_cols)
                    self._floor_logged = True
                return 1
            return denominator
        return k * n_cols
