import logging

import numpy as np
import pandas as pd

from alsvd import ALSSVD, LowRankDataGenerator, SVDConfig


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # Manually checked beforehand. If not known, compute effective rank
    # using SVD.
    d = 4

    results = restart_test(m=300, n=200, matrix_rank=d,
                           num_restarts=5,
                           sigma=0.05,
                           p_values=[0.05, 0.1, 0.2])
    print(results.to_string(index=False))


def restart_test(m, n, matrix_rank,
                 num_restarts=5,
                 p_values=None, # Fractions of entries held out
                 sigma=0.0, # additive noise standard deviation
                 seed=0,
                 verbose=False):
    '''
    Fits a rank-d ALS SVD from several random starts at different
    hold-out rates and reports train and held-out error of the
    selected model. Once the hold-out mask has at least rank * n
    entries, train_error is a summed squared error rather than a mean.
    '''
    if p_values is None:
        p_values = np.linspace(0.05, 0.5, 10)

    results = []
    data_gen = LowRankDataGenerator(m, n, d=matrix_rank, seed=seed, sigma=sigma)
    A = data_gen.sample()

    for p in p_values:
        rng = np.random.default_rng(int(p * 10000) + seed)
        u_init = [rng.uniform(size=(m, matrix_rank)) for _ in range(num_restarts)]

        model = ALSSVD(A, matrix_rank, config=SVDConfig(tol=1e-8, maxit=500, verbose=verbose))
        model.mask_matrix(data_gen.holdout_mask(p))
        model.fit_restarts(u_init)

        test_mse = model.mse_masked()
        for row in model.restarts_:
            selected = row['model'] == model.best_model
            results.append({
                'p': p,
                'restart': row['model'],
                'train_error': row['mse'],
                'tol': row['tol'],
                'iter': row['iter'],
                'selected': selected,
                'test_mse': test_mse if selected else np.nan,
            })

    return pd.DataFrame(results)


if __name__ == "__main__":
    main()
