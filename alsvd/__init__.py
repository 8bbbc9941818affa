"""Truncated SVD of dense and sparse matrices by alternating least squares."""

from .ALSSVD import ALSSVD
from .BaseConfig import BaseConfig, SVDConfig
from .FactorizationSolver import FactorizationSolver
from .LowRankDataGenerator import LowRankDataGenerator
from .Masking import MaskMode
from .MatrixBackend import DenseMatrix, MatrixBackend, SparseMatrix, as_backend
from .misc import (
    CancellationToken,
    ColumnState,
    ConfigurationError,
    ProgressEvent,
    log_progress,
)

__all__ = [
    "ALSSVD",
    "BaseConfig",
    "SVDConfig",
    "FactorizationSolver",
    "LowRankDataGenerator",
    "MaskMode",
    "MatrixBackend",
    "DenseMatrix",
    "SparseMatrix",
    "as_backend",
    "CancellationToken",
    "ColumnState",
    "ConfigurationError",
    "ProgressEvent",
    "log_progress",
]
