from dataclasses import dataclass
from typing import Tuple

'''
Data classes holding the tunable parameters of the ALS solvers.
'''

@dataclass
class BaseConfig:
    maxit: int = 100
    tol: float = 1e-4 # Target 1 - correlation between consecutive iterates
    threads: int = 0 # 0 uses every available core
    verbose: bool = False

@dataclass
class SVDConfig(BaseConfig):
    L1: Tuple[float, float] = (0.0, 0.0) # (u, v) flat subtractive penalties
    L2: Tuple[float, float] = (0.0, 0.0) # reserved, not applied by the updaters
    upper_bound: float = 0.0 # <= 0 disables clamping
    track_mse: bool = False # Record the mse after every iteration (slow)
    sym_rtol: float = 1e-8
    sym_atol: float = 1e-10
