"""
Tests for mse / mse_masked over the three masking modes, checked against
hand-computed values on a 3x3 matrix for both backends.
"""

import logging

import numpy as np
import pytest
import scipy.sparse as sp

from alsvd import ALSSVD, ConfigurationError, MaskMode, SVDConfig


@pytest.fixture(params=["dense", "sparse"])
def as_input(request):
    if request.param == "dense":
        return lambda A: A
    return lambda A: sp.csc_matrix(A)


class TestMSE:
    def test_no_mask_rank_one_hand_example(self, hand_matrix, as_input):
        u = np.array([[1.0], [0.0], [1.0]])
        v = np.array([[1.0], [1.0], [0.0]])
        model = ALSSVD(as_input(hand_matrix), u=u, v=v)
        # 8 squared residual over k * n_cols = 1 * 3
        assert model.mse() == pytest.approx(8 / 3)

    def test_no_mask(self, hand_matrix, hand_factors, as_input):
        u, v = hand_factors
        model = ALSSVD(as_input(hand_matrix), u=u, v=v)
        assert model.mse() == pytest.approx(8 / 9)

    def test_mask_zeros(self, hand_matrix, hand_factors, as_input):
        u, v = hand_factors
        model = ALSSVD(as_input(hand_matrix), u=u, v=v).mask_zeros()
        assert model.mask_mode is MaskMode.ZEROS
        # residuals at the five non-zeros: 0 + 1 + 1 + 4 + 1
        assert model.mse() == pytest.approx(7 / 5)

    def test_mask_matrix(self, hand_matrix, hand_factors, hand_mask, as_input):
        u, v = hand_factors
        model = ALSSVD(as_input(hand_matrix), u=u, v=v).mask_matrix(hand_mask)
        # 8 - (4 + 1 + 1) over 9 - 3 unmasked entries
        assert model.mse() == pytest.approx(2 / 6)

    def test_mask_matrix_denominator_floor(self, hand_matrix, hand_mask, as_input, caplog):
        u = np.array([[1.0], [0.0], [1.0]])
        v = np.array([[1.0], [1.0], [0.0]])
        model = ALSSVD(as_input(hand_matrix), u=u, v=v).mask_matrix(hand_mask)
        # 3 masked entries against k * n_cols = 3: summed error of the other six
        with caplog.at_level(logging.WARNING, logger="alsvd"):
            assert model.mse() == pytest.approx(2.0)
            assert model.mse() == pytest.approx(2.0)
        assert caplog.text.count("sum of squared errors") == 1

    def test_no_mask_denominator_uses_columns(self, as_input):
        A = np.arange(12, dtype=float).reshape(4, 3)
        model = ALSSVD(as_input(A), u=np.zeros((4, 1)), v=np.zeros((3, 1)))
        assert model.mse() == pytest.approx(np.sum(A ** 2) / 3)

    def test_mse_masked(self, hand_matrix, hand_factors, hand_mask, as_input):
        u, v = hand_factors
        model = ALSSVD(as_input(hand_matrix), u=u, v=v).mask_matrix(hand_mask)
        # (2, 1) is zero in A and still contributes its squared prediction
        assert model.mse_masked() == pytest.approx(6 / 3)

    def test_mse_masked_without_mask_fails(self, hand_matrix, hand_factors, as_input):
        u, v = hand_factors
        model = ALSSVD(as_input(hand_matrix), u=u, v=v)
        with pytest.raises(ConfigurationError, match="masking matrix"):
            model.mse_masked()

    def test_mse_masked_with_mask_zeros_fails(self, hand_matrix, hand_factors, as_input):
        u, v = hand_factors
        model = ALSSVD(as_input(hand_matrix), u=u, v=v).mask_zeros()
        with pytest.raises(ConfigurationError):
            model.mse_masked()


class TestMaskConflicts:
    def test_mask_zeros_after_mask_matrix(self, hand_matrix, hand_mask):
        model = ALSSVD(hand_matrix, 1).mask_matrix(hand_mask)
        with pytest.raises(ConfigurationError):
            model.mask_zeros()

    def test_mask_matrix_after_mask_zeros(self, hand_matrix, hand_mask):
        model = ALSSVD(hand_matrix, 1).mask_zeros()
        with pytest.raises(ConfigurationError):
            model.mask_matrix(hand_mask)

    def test_second_mask_matrix(self, hand_matrix, hand_mask):
        model = ALSSVD(hand_matrix, 1).mask_matrix(hand_mask)
        with pytest.raises(ConfigurationError):
            model.mask_matrix(hand_mask)

    def test_mask_shape_mismatch(self, hand_matrix):
        model = ALSSVD(hand_matrix, 1)
        with pytest.raises(ConfigurationError, match="not equivalent"):
            model.mask_matrix(sp.csc_matrix(np.ones((2, 3))))

    def test_mask_is_copied(self, hand_matrix, hand_mask):
        model = ALSSVD(hand_matrix, 1).mask_matrix(hand_mask)
        hand_mask[0, 0] = True
        assert model._mask.nnz == 3


class TestBackendParity:
    def test_dense_and_sparse_mse_match(self, noisy_matrix):
        A = np.where(np.abs(noisy_matrix) > 0.2, noisy_matrix, 0.0)
        rng = np.random.default_rng(0)
        u = rng.normal(size=(A.shape[0], 3))
        v = rng.normal(size=(A.shape[1], 3))
        dense = ALSSVD(A, u=u, v=v)
        sparse = ALSSVD(sp.csr_matrix(A), u=u, v=v)
        assert dense.mse() == pytest.approx(sparse.mse(), rel=1e-12)

        mask = sp.csc_matrix(rng.uniform(size=A.shape) < 0.2)
        dense.mask_matrix(mask)
        sparse.mask_matrix(mask)
        assert dense.mse() == pytest.approx(sparse.mse(), rel=1e-12)
        assert dense.mse_masked() == pytest.approx(sparse.mse_masked(), rel=1e-12)

    def test_thread_count_does_not_change_mse(self, noisy_matrix):
        rng = np.random.default_rng(1)
        u = rng.normal(size=(noisy_matrix.shape[0], 2))
        v = rng.normal(size=(noisy_matrix.shape[1], 2))
        single = ALSSVD(noisy_matrix, u=u, v=v, config=SVDConfig(threads=1))
        pooled = ALSSVD(noisy_matrix, u=u, v=v, config=SVDConfig(threads=4))
        assert single.mse() == pytest.approx(pooled.mse(), rel=1e-12)
