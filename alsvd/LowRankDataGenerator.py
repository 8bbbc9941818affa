import numpy as np
import scipy.sparse as sp


class LowRankDataGenerator:
    '''
    Generator for exactly low-rank test matrices.

    Builds A = U diag(s) V.T from random orthonormal factors, optionally adds
    noise, sparsifies, and draws hold-out masks for scoring a fit on entries
    it never saw.
    '''
    def __init__(self, m, n, d, seed=0, sv_distribution='uniform', sv_params=None,
                 sigma=0.0, symmetric=False):
        """Initialize generator with matrix dimensions and singular value profile.

        Args:
            m (int): Number of rows
            n (int): Number of columns (ignored when symmetric)
            d (int): Rank of the matrix
            seed (int): Random seed (default: 0)
            sv_distribution (str): Type of singular value distribution
                                 ('uniform', 'exponential', 'constant')
            sv_params (dict): Parameters for singular value generation
            sigma (float): Standard deviation of Gaussian noise (default: 0.0)
            symmetric (bool): Build a symmetric matrix U diag(s) U.T
        """
        if symmetric:
            n = m
        if d > min(m, n):
            raise ValueError(f"rank {d} exceeds the matrix dimensions {(m, n)}")
        self.m = m
        self.n = n
        self.d = d
        self.seed = seed
        self.sv_distribution = sv_distribution
        self.sv_params = sv_params or {}
        self.sigma = sigma
        self.rng = np.random.default_rng(seed)

        self.s = self._gen_singular_values()
        self.U = self._gen_orthonormal(m, d)
        self.V = self.U.copy() if symmetric else self._gen_orthonormal(n, d)
        self.A = self.U @ np.diag(self.s) @ self.V.T

    def _gen_orthonormal(self, n, d):
        """Random orthonormal columns using QR decomposition."""
        Q, _ = np.linalg.qr(self.rng.normal(size=(n, d)))
        return Q

    def _gen_singular_values(self):
        """Generate singular values according to specified distribution."""
        if self.sv_distribution == 'uniform':
            low = self.sv_params.get('low', 5.0)
            high = self.sv_params.get('high', 10.0)
            s = self.rng.uniform(low=low, high=high, size=self.d)
        elif self.sv_distribution == 'exponential':
            scale = self.sv_params.get('scale', 10.0)
            base = self.sv_params.get('base', 0.5)
            s = scale * np.power(base, np.arange(self.d))
        elif self.sv_distribution == 'constant':
            s = np.ones(self.d)
        else:
            raise ValueError(f"Unknown distribution: {self.sv_distribution}")
        return np.sort(s)[::-1]

    def sample(self):
        """Observed matrix: the low-rank matrix plus Gaussian noise."""
        if self.sigma > 0:
            return self.A + self.rng.normal(0, self.sigma, size=self.A.shape)
        return self.A.copy()

    def sparse_sample(self, density=0.3):
        """Low-rank matrix with all but a random fraction of entries set to zero, as CSC."""
        keep = self.rng.uniform(size=self.A.shape) < density
        return sp.csc_matrix(np.where(keep, self.sample(), 0.0))

    def holdout_mask(self, p_entry=0.1):
        """Sparse mask marking a random fraction of entries as held out (MCAR)."""
        mask = self.rng.uniform(size=(self.m, self.n)) < p_entry
        return sp.csc_matrix(mask)

    @property
    def singular_vectors(self):
        return self.U, self.V
