from __future__ import annotations
from typing import Callable, Iterable, List, Optional, Sequence
import logging
import warnings
import numpy as np
from numpy.typing import NDArray
from sklearn.exceptions import ConvergenceWarning

from .FactorizationSolver import FactorizationSolver
from .misc import (
    ColumnState,
    ConfigurationError,
    Observer,
    ProgressEvent,
    SupportsCancel,
    log_progress,
)
from .utils import DIV_OFFSET, _check_factor, _cor, _norm

logger = logging.getLogger(__name__)

'''
Truncated SVD by alternating least squares with sequential deflation.

Factors are fit one column at a time, left to right. Column 0 is a plain
rank-one ALS (power iteration with optional L1 offsets), column 1 is
deflated against column 0, and every later column is deflated against all
columns before it. Once every column has finished, the column norms of U
become the diagonal D and U is normalized.
'''

Update = Callable[[NDArray], NDArray]


class ALSSVD(FactorizationSolver):
    '''
    ALS singular value decomposition, A ~ U diag(D) V.T.

    Usage:
        model = ALSSVD(A, k=3, seed=1, config=SVDConfig(tol=1e-6))
        model.fit()
        model.U, model.D, model.V
    '''

    def fit(self, cancel: Optional[SupportsCancel] = None, observer: Optional[Observer] = None):
        '''
        Fits every column of the model in turn. If ``cancel`` is set while a
        column is being fit, that column exits as it would on reaching
        ``maxit``, the remaining columns are left untouched, ``cancelled``
        is set and D stays undefined.
        '''
        self._validate_config()
        self._warn_reserved_options()
        observers = self._observers(observer)

        self.cancelled = False
        self._fitted = False
        self.d = None
        self.column_iters_: List[int] = []
        self.column_states_: List[ColumnState] = []
        self.mse_history_: List[float] = []

        for k in range(self.k):
            if k == 0:
                state = self._fit_rank_one(cancel, observers)
            elif k == 1:
                state = self._fit_rank_two(cancel, observers)
            else:
                state = self._fit_rank_k(k, cancel, observers)
            self.column_states_.append(state)
            if self.cancelled:
                break

        self.iter_ = int(sum(self.column_iters_))
        if self.cancelled:
            logger.info("fit cancelled while fitting column %d", len(self.column_iters_))
            return self

        # diagonal is the norm of each unscaled column of U
        d = np.linalg.norm(self.u, axis=0)
        self.u = self.u / np.where(d > 0, d, 1.0)
        self.d = d
        self.mse_ = self.mse()
        self._fitted = True
        return self

    def fit_restarts(
        self,
        u_init: Sequence,
        cancel: Optional[SupportsCancel] = None,
        observer: Optional[Observer] = None,
    ):
        '''
        Fits the model from each initial U in ``u_init`` and keeps the one
        with the lowest mse. Ties keep the earlier candidate.
        '''
        candidates = [_check_factor(u, f"u_init[{i}]") for i, u in enumerate(u_init)]
        if not candidates:
            raise ConfigurationError("'u_init' must contain at least one matrix")
        m = self._A.n_rows
        for i, u in enumerate(candidates):
            if u.shape[0] != m:
                raise ConfigurationError(f"dimensions of 'u_init[{i}]' and 'A' are not compatible")
            if u.shape[1] != self.v.shape[1]:
                raise ConfigurationError(f"rank of 'u_init[{i}]' is not equal to rank of 'v'")

        best = None
        self.restarts_ = []
        for i, u in enumerate(candidates):
            if self.config.verbose:
                logger.info("Fitting model %d/%d", i + 1, len(candidates))
            self.u = u
            self.tol_ = 1.0
            self.iter_ = 0
            self.fit(cancel=cancel, observer=observer)
            if self.cancelled:
                break
            if self.config.verbose:
                logger.info("MSE: %8.4e", self.mse_)
            self.restarts_.append({"model": i, "mse": self.mse_, "tol": self.tol_, "iter": self.iter_})
            if best is None or self.mse_ < best["mse"]:
                best = {
                    "model": i,
                    "u": self.u.copy(),
                    "v": self.v.copy(),
                    "d": self.d.copy(),
                    "tol": self.tol_,
                    "iter": self.iter_,
                    "mse": self.mse_,
                    "column_iters": list(self.column_iters_),
                    "column_states": list(self.column_states_),
                    "mse_history": list(self.mse_history_),
                }

        if best is not None:
            self.best_model_ = best["model"]
            self.u, self.v, self.d = best["u"], best["v"], best["d"]
            self.tol_, self.iter_, self.mse_ = best["tol"], best["iter"], best["mse"]
            self.column_iters_ = best["column_iters"]
            self.column_states_ = best["column_states"]
            self.mse_history_ = best["mse_history"]
            self._fitted = True
        return self

    # ----------------------------- updaters ------------------------------

    def _fit_rank_one(self, cancel, observers) -> ColumnState:
        A = self._A

        def update_v(u_k):
            return A.dot_cols(u_k)

        def update_u(v_k):
            return A.dot_rows(v_k)

        return self._fit_column(0, update_v, update_u, cancel, observers)

    def _fit_rank_two(self, cancel, observers) -> ColumnState:
        A = self._A
        u0, v0 = self.u[:, 0], self.v[:, 0]

        def update_v(u_k):
            return A.dot_cols(u_k) - v0 * (u_k @ u0 + DIV_OFFSET)

        def update_u(v_k):
            return A.dot_rows(v_k) - u0 * (v_k @ v0 + DIV_OFFSET)

        return self._fit_column(1, update_v, update_u, cancel, observers)

    def _fit_rank_k(self, k: int, cancel, observers) -> ColumnState:
        A = self._A
        U_prev, V_prev = self.u[:, :k], self.v[:, :k]

        # one matrix-vector product gives every projection coefficient
        def update_v(u_k):
            return A.dot_cols(u_k) - V_prev @ (U_prev.T @ u_k)

        def update_u(v_k):
            return A.dot_rows(v_k) - U_prev @ (V_prev.T @ v_k)

        return self._fit_column(k, update_v, update_u, cancel, observers)

    def _fit_column(
        self,
        k: int,
        update_v: Update,
        update_u: Update,
        cancel: Optional[SupportsCancel],
        observers: List[Observer],
    ) -> ColumnState:
        cfg = self.config
        L1_u, L1_v = cfg.L1
        u_k = self.u[:, k].copy()
        v_k = self.v[:, k].copy()
        d = _norm(u_k)
        self.tol_ = 1.0
        state = ColumnState.INITIALIZING
        self._emit(observers, ProgressEvent(k, 0, self.tol_, state))

        it = 0
        while it < cfg.maxit:
            u_it = u_k

            # update V
            v_k = update_v(u_k)
            if L1_v > 0:
                v_k = v_k - L1_v
            v_k = self._clamp(v_k / (u_k @ u_k + DIV_OFFSET))
            v_k = v_k / (_norm(v_k) + DIV_OFFSET)

            # update U
            u_k = update_u(v_k)
            if L1_u > 0:
                u_k = u_k - L1_u
            u_k = self._clamp(u_k / (v_k @ v_k + DIV_OFFSET))
            d = _norm(u_k)
            u_k = u_k / (d + DIV_OFFSET)

            it += 1
            # correlation between "u" across consecutive iterations
            self.tol_ = 1.0 - _cor(u_k, u_it)
            if self.tol_ <= cfg.tol:
                state = ColumnState.CONVERGED
            elif it == cfg.maxit:
                state = ColumnState.MAX_ITER_REACHED
            else:
                state = ColumnState.ITERATING

            mse = None
            if cfg.track_mse:
                mse = self._partial_mse(k, u_k * d, v_k)
                self.mse_history_.append(mse)
            self._emit(observers, ProgressEvent(k, it, self.tol_, state, mse))

            if state is not ColumnState.ITERATING:
                break
            if cancel is not None and cancel.is_set():
                self.cancelled = True
                break

        # "unscale" U and write the finished column back in one step
        self.u[:, k] = u_k * d
        self.v[:, k] = v_k
        self.column_iters_.append(it)

        if state is ColumnState.MAX_ITER_REACHED:
            msg = (f"column {k + 1}: convergence not reached in {it} iterations "
                   f"(actual tol = {self.tol_:4.2e}, target tol = {cfg.tol:4.2e})")
            logger.warning(msg)
            warnings.warn(msg, ConvergenceWarning)
        return state

    # ----------------------------- helpers -------------------------------

    def _clamp(self, x: NDArray) -> NDArray:
        ub = self.config.upper_bound
        if ub > 0:
            return np.clip(x, -ub, ub)
        return x

    def _partial_mse(self, k: int, u_k: NDArray, v_k: NDArray) -> float:
        w = self.u[:, :k + 1].copy()
        v = self.v[:, :k + 1].copy()
        w[:, k] = u_k
        v[:, k] = v_k
        return self._evaluator().mse(w, v, self.k)

    def _observers(self, observer: Optional[Observer]) -> List[Observer]:
        observers = []
        if self.config.verbose:
            observers.append(log_progress)
        if observer is not None:
            observers.append(observer)
        return observers

    @staticmethod
    def _emit(observers: Iterable[Observer], event: ProgressEvent) -> None:
        for obs in observers:
            obs(event)

    def _warn_reserved_options(self):
        if any(p > 0 for p in self.config.L2):
            logger.warning("L2 penalties %s are reserved and not applied by the ALS updates",
                           tuple(self.config.L2))
        if self._mask.link_u is not None or self._mask.link_v is not None:
            logger.info("link matrices are stored on the model but not enforced during fitting")
