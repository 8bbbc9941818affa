"""
Shared Test Fixtures
====================

Small hand-checked matrices and synthetic low-rank data.
"""

import sys
from pathlib import Path

import numpy as np
import pytest
import scipy.sparse as sp

sys.path.insert(0, str(Path(__file__).parent.parent))

from alsvd import LowRankDataGenerator


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture
def hand_matrix():
    """3x3 matrix whose errors against `hand_factors` are worked out by hand."""
    return np.array([
        [1.0, 2.0, 0.0],
        [0.0, 1.0, 0.0],
        [3.0, 0.0, 1.0],
    ])


@pytest.fixture
def hand_factors():
    """
    Rank-3 factors with U @ V.T = [[1, 1, 0], [0, 0, 0], [1, 1, 0]].
    Squared residuals against `hand_matrix`:
        [[0, 1, 0],
         [0, 1, 0],
         [4, 1, 1]]   total 8
    """
    u = np.zeros((3, 3))
    u[[0, 2], 0] = 1.0
    v = np.zeros((3, 3))
    v[[0, 1], 0] = 1.0
    return u, v


@pytest.fixture
def hand_mask():
    """Masks (2, 0), (0, 1) and (2, 1); the last one is a zero of `hand_matrix`."""
    mask = np.zeros((3, 3), dtype=bool)
    mask[2, 0] = mask[0, 1] = mask[2, 1] = True
    return sp.csc_matrix(mask)


@pytest.fixture
def rank3_data():
    """40x30 exactly rank-3 matrix with singular values 10, 5, 2.5."""
    return LowRankDataGenerator(40, 30, d=3, seed=7, sv_distribution='exponential')


@pytest.fixture
def noisy_matrix():
    """50x35 rank-4 matrix (singular values 20, 12, 7.2, 4.32) plus noise."""
    gen = LowRankDataGenerator(50, 35, d=4, seed=3, sigma=0.1, sv_distribution='exponential',
                               sv_params={'scale': 20.0, 'base': 0.6})
    return gen.sample()
