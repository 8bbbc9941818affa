from __future__ import annotations
from typing import Optional, Tuple
import logging
import numpy as np
from numpy.typing import NDArray

from .BaseConfig import SVDConfig
from .Evaluator import Evaluator
from .Masking import MaskState
from .MatrixBackend import as_backend
from .misc import ConfigurationError
from .utils import _check_factor, _random_factor

logger = logging.getLogger(__name__)

'''
Base solver class and interface.
Holds the input matrix, the factors U, V, D, the masks and the fit
statistics. Subclasses implement fit().
'''

class FactorizationSolver:
    """Abstract base class for A ~ U diag(D) V.T factorizations."""
    def __init__(
        self,
        A,
        k: Optional[int] = None,
        *,
        u=None,
        v=None,
        seed: Optional[int] = 0,
        config: Optional[SVDConfig] = None,
    ):
        self.config = config if config is not None else SVDConfig()
        self._A = as_backend(A)
        m, n = self._A.shape

        if u is None:
            if v is not None:
                raise ConfigurationError("'v' can only be given together with 'u'")
            if k is None or k < 1:
                raise ConfigurationError(f"Bad rank: {k}. Must be positive integer.")
            u = _random_factor(m, k, seed)
        else:
            u = _check_factor(u, "u")
            if u.shape[0] != m:
                raise ConfigurationError("number of rows in 'A' and 'u' are not equal!")
            if k is not None and k != u.shape[1]:
                raise ConfigurationError(f"rank {k} does not match the {u.shape[1]} columns of 'u'")
        k = u.shape[1]

        if v is None:
            v = np.zeros((n, k))
        else:
            v = _check_factor(v, "v")
            if v.shape[0] != n:
                raise ConfigurationError("dimensions of 'v' and 'A' are not compatible")
            if v.shape[1] != k:
                raise ConfigurationError("rank of 'u' and 'v' are not equal!")

        self.u = u
        self.v = v
        self.d: Optional[NDArray] = None
        self.k = k

        self.tol_ = -1.0
        self.iter_ = 0
        self.mse_ = 0.0
        self.best_model_ = 0
        self.cancelled = False
        self._fitted = False

        self._mask = MaskState(self._A.shape)
        self.symmetric = self._A.is_symmetric(self.config.sym_rtol, self.config.sym_atol)
        if self.symmetric:
            self._A.use_symmetric_shortcut()
        self._validate_config()

    def _validate_config(self):
        cfg = self.config
        for name in ("L1", "L2"):
            pair = getattr(cfg, name)
            if len(pair) != 2:
                raise ConfigurationError(f"'{name}' must be a (u, v) pair")
            if any(p < 0 or p > 1 for p in pair):
                raise ConfigurationError(f"'{name}' penalties must lie in [0, 1], got {pair}")
        if cfg.maxit < 1:
            raise ConfigurationError("'maxit' must be at least 1")
        if cfg.tol < 0:
            raise ConfigurationError("'tol' must be non-negative")

    # ----------------------------- masks ---------------------------------

    def mask_zeros(self):
        self._mask.set_mask_zeros()
        return self

    def mask_matrix(self, M):
        self._mask.set_mask_matrix(M)
        # symmetric shortcuts also need a symmetric mask
        if self.symmetric:
            self.symmetric = self._mask.is_symmetric()
        return self

    def set_link_matrices(self, link_u=None, link_v=None):
        self._mask.set_links(link_u, link_v, k=self.k)
        return self

    @property
    def mask_mode(self):
        return self._mask.mode

    # ----------------------------- scoring -------------------------------

    def _evaluator(self) -> Evaluator:
        return Evaluator(self._A, self._mask, self.config.threads)

    def _scaled_u(self) -> NDArray:
        return self.u if self.d is None else self.u * self.d

    def mse(self) -> float:
        return self._evaluator().mse(self._scaled_u(), self.v, self.k)

    def mse_masked(self) -> float:
        return self._evaluator().mse_masked(self._scaled_u(), self.v)

    # ----------------------------- getters -------------------------------

    @property
    def U(self) -> NDArray:
        return self.u

    @property
    def V(self) -> NDArray:
        return self.v

    @property
    def D(self) -> Optional[NDArray]:
        return self.d

    @property
    def fit_tol(self) -> float:
        return self.tol_

    @property
    def fit_iter(self) -> int:
        return self.iter_

    @property
    def fit_mse(self) -> float:
        '''
        mse() of the fitted model. With a masking matrix of at least
        k * n_cols entries the denominator is floored at 1, so this is the
        sum of squared errors over the unmasked entries.
        '''
        return self.mse_

    @property
    def best_model(self) -> int:
        return self.best_model_

    def fit(self, *args, **kwargs):
        raise NotImplementedError

    def predict(self, *, clip: Optional[Tuple[float, float]] = None) -> NDArray:
        self._check_fitted()
        Y = self._scaled_u() @ self.v.T
        # Optionally clip values (e.g. to the range of the data)
        if clip is not None:
            Y = np.clip(Y, *clip)
        return Y

    def _check_fitted(self):
        if not self._fitted:
            raise RuntimeError("Call fit() before predict().")
