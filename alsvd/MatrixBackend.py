from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Tuple
import logging
import numpy as np
from numpy.typing import NDArray
import scipy.sparse as sp

logger = logging.getLogger(__name__)

'''
Uniform read-only view over dense and sparse input matrices.

The solvers and the evaluator only talk to a MatrixBackend, so the two
storage formats differ in speed but not in results. A backend borrows the
caller's matrix for the lifetime of the model; it never writes to it.
'''


class MatrixBackend(ABC):
    '''Capability set shared by the dense and sparse backends.'''

    @property
    @abstractmethod
    def shape(self) -> Tuple[int, int]: ...

    @property
    def n_rows(self) -> int:
        return self.shape[0]

    @property
    def n_cols(self) -> int:
        return self.shape[1]

    @property
    @abstractmethod
    def nnz(self) -> int: ...

    @abstractmethod
    def row(self, i: int) -> NDArray: ...

    @abstractmethod
    def col(self, j: int) -> NDArray: ...

    @abstractmethod
    def dot_cols(self, x: NDArray) -> NDArray:
        '''A.T @ x, i.e. the dot product of x with every column of A.'''

    @abstractmethod
    def dot_rows(self, x: NDArray) -> NDArray:
        '''A @ x, i.e. the dot product of x with every row of A.'''

    @abstractmethod
    def is_symmetric(self, rtol: float = 1e-8, atol: float = 1e-10) -> bool: ...

    @abstractmethod
    def nonzero_rows(self, j: int) -> NDArray: ...

    def zero_rows(self, j: int) -> NDArray:
        return np.setdiff1d(np.arange(self.n_rows), self.nonzero_rows(j), assume_unique=True)

    # squared-error kernels used by the evaluator, one column at a time

    @abstractmethod
    def loss_nonzero(self, j: int, pred: NDArray) -> float: ...

    @abstractmethod
    def loss_full(self, j: int, pred: NDArray, skip_rows: NDArray) -> float: ...

    @abstractmethod
    def loss_at(self, j: int, pred: NDArray, rows: NDArray) -> float: ...

    def use_symmetric_shortcut(self) -> None:
        '''Row access may be served by column access from now on.'''
        self._symmetric = True


class DenseMatrix(MatrixBackend):
    def __init__(self, A):
        A = np.asarray(A)
        if A.ndim != 2:
            raise ValueError("input matrix must be 2D")
        if A.dtype != np.float64:
            A = A.astype(np.float64)
        # read-only view so nothing in the solver can write through to the caller
        self._A = A.view()
        self._A.setflags(write=False)
        self._symmetric = False

    @property
    def shape(self):
        return self._A.shape

    @property
    def nnz(self) -> int:
        return int(np.count_nonzero(self._A))

    def row(self, i):
        return self._A[i, :]

    def col(self, j):
        return self._A[:, j]

    def dot_cols(self, x):
        return self._A.T @ x

    def dot_rows(self, x):
        if self._symmetric:
            return self._A.T @ x
        return self._A @ x

    def is_symmetric(self, rtol=1e-8, atol=1e-10):
        m, n = self.shape
        if m != n:
            return False
        return bool(np.allclose(self._A, self._A.T, rtol=rtol, atol=atol))

    def nonzero_rows(self, j):
        return np.flatnonzero(self._A[:, j])

    def zero_rows(self, j):
        return np.flatnonzero(self._A[:, j] == 0)

    def loss_nonzero(self, j, pred):
        a = self._A[:, j]
        nz = a != 0
        return float(np.sum((pred[nz] - a[nz]) ** 2))

    def loss_full(self, j, pred, skip_rows):
        r = pred - self._A[:, j]
        if len(skip_rows):
            r[skip_rows] = 0.0
        return float(r @ r)

    def loss_at(self, j, pred, rows):
        r = pred[rows] - self._A[rows, j]
        return float(r @ r)


class SparseMatrix(MatrixBackend):
    def __init__(self, A):
        if A.ndim != 2:
            raise ValueError("input matrix must be 2D")
        # CSC input is borrowed as-is; other formats are converted once
        A = A if A.format == "csc" else A.tocsc()
        if A.dtype != np.float64:
            A = A.astype(np.float64)
        if not A.has_sorted_indices:
            A = A.sorted_indices()
        self._A = A
        self._At = None
        self._symmetric = False

    @property
    def shape(self):
        return self._A.shape

    @property
    def nnz(self) -> int:
        return int(np.count_nonzero(self._A.data))

    def _column(self, M, j) -> Tuple[NDArray, NDArray]:
        start, end = M.indptr[j], M.indptr[j + 1]
        rows, vals = M.indices[start:end], M.data[start:end]
        keep = vals != 0
        return rows[keep], vals[keep]

    def _transposed(self):
        if self._symmetric:
            return self._A
        if self._At is None:
            # CSC of A.T gives cheap row access into A
            self._At = self._A.T.tocsc()
            self._At.sort_indices()
        return self._At

    def _dense(self, M, j, n) -> NDArray:
        out = np.zeros(n)
        rows, vals = self._column(M, j)
        out[rows] = vals
        return out

    def row(self, i):
        return self._dense(self._transposed(), i, self.n_cols)

    def col(self, j):
        return self._dense(self._A, j, self.n_rows)

    def dot_cols(self, x):
        return self._A.T @ x

    def dot_rows(self, x):
        if self._symmetric:
            return self._A.T @ x
        return self._A @ x

    def is_symmetric(self, rtol=1e-8, atol=1e-10):
        m, n = self.shape
        if m != n:
            return False
        if self._A.nnz == 0:
            return True
        diff = abs(self._A - self._A.T)
        scale = abs(self._A).max()
        return bool(diff.max() <= atol + rtol * scale)

    def nonzero_rows(self, j):
        return self._column(self._A, j)[0]

    def loss_nonzero(self, j, pred):
        rows, vals = self._column(self._A, j)
        r = pred[rows] - vals
        return float(r @ r)

    def loss_full(self, j, pred, skip_rows):
        rows, vals = self._column(self._A, j)
        r = pred.copy()
        r[rows] -= vals
        if len(skip_rows):
            r[skip_rows] = 0.0
        return float(r @ r)

    def loss_at(self, j, pred, rows):
        nz_rows, vals = self._column(self._A, j)
        hit = np.isin(nz_rows, rows, assume_unique=True)
        r = pred[nz_rows[hit]] - vals[hit]
        loss = float(r @ r)
        # masked rows that are empty in A are scored against an implicit zero
        masked_zero_rows = np.intersect1d(self.zero_rows(j), rows, assume_unique=True)
        z = pred[masked_zero_rows]
        return loss + float(z @ z)


def as_backend(A) -> MatrixBackend:
    '''Chooses the backend once, when the model is constructed.'''
    if sp.issparse(A):
        return SparseMatrix(A)
    return DenseMatrix(A)
