"""
rt_dmd - Real-time window dynamic mode decomposition.

Tracks the one-step operator A (y ≈ A x) of a time-varying linear system
over a sliding window of snapshot pairs with O(n²) rank-2 updates.
"""

from rt_dmd.errors import (
    WindowDMDError,
    InvalidConfiguration,
    DimensionMismatch,
    NotInitialized,
    AlreadyInitialized,
    IllConditionedWindow,
)
from rt_dmd.rt_wdmd import SnapshotWindow, WindowOperator
from rt_dmd.batch_dmd import recency_weights, weighted_fit, minibatch_dmd
from rt_dmd.eigen_tracking import (
    continuous_eigenvalues,
    sort_eigenvalues,
    track_eigenvalues,
    eigenvalue_error,
)

__all__ = [
    'WindowOperator',
    'SnapshotWindow',
    'recency_weights',
    'weighted_fit',
    'minibatch_dmd',
    'continuous_eigenvalues',
    'sort_eigenvalues',
    'track_eigenvalues',
    'eigenvalue_error',
    'WindowDMDError',
    'InvalidConfiguration',
    'DimensionMismatch',
    'NotInitialized',
    'AlreadyInitialized',
    'IllConditionedWindow',
]
