#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
batch_dmd.py - Direct (non-incremental) DMD fits over snapshot windows.

Description
-----------
The functions in this module solve the windowed least-squares problem
from scratch. They are used to seed the incremental estimator in
rt_wdmd.py and as the reference it is checked against ("mini-batch DMD").

Features
--------
- Recency weights for a window of snapshot pairs.
- Weighted, optionally ridge-regularized, fit of A in Y = A X.
- Sliding mini-batch fit over a whole snapshot record.

Modules and Classes
-------------------
- 'recency_weights' : Exponential weights, 1 for the newest column.
- 'weighted_fit' : Direct fit of A over one window.
- 'minibatch_dmd' : Direct fit of A at every window position.
"""


from typing import Optional

import numpy as np


__all__ = ['recency_weights', 'weighted_fit', 'minibatch_dmd']


def _is_integer(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def _as_snapshots(
        data,
        label: str
        ) -> np.ndarray:
    data = np.asarray(data, dtype=float)
    if data.ndim == 1:
        data = data.reshape(-1, 1)
    if data.ndim != 2:
        raise ValueError(f"Argument '{label}' must be a 2D array of column snapshots.")
    if not np.all(np.isfinite(data)):
        raise ValueError(f"Argument '{label}' contains NaN or infinite values.")
    return data


def recency_weights(
        window_size: int,
        weighting: float = 1.0
        ) -> np.ndarray:
    """
    Compute the weight of each column of a snapshot window.

    The newest (last) column has weight 1 and every step back in time
    multiplies the weight by 'weighting'.

    Parameters
    ----------
    window_size : int
        Number of columns in the window.
    weighting : float, optional
        Forgetting factor in (0, 1]. Default is 1.0 (uniform weights).

    Returns
    -------
    np.ndarray
        1D array of length 'window_size', oldest column first.
    """
    if window_size < 1:
        raise ValueError("window_size must be at least 1.")
    if not (0 < weighting <= 1.0):
        raise ValueError("Forgetting factor (weighting) must be in the range (0.0 - 1.0].")
    return float(weighting) ** np.arange(window_size - 1, -1, -1, dtype=float)


def weighted_fit(
        X: np.ndarray,
        Y: np.ndarray,
        weighting: float = 1.0,
        regularization: float = 0.0
        ) -> np.ndarray:
    """
    Fit the linear operator A that best maps the columns of X onto the
    columns of Y in the weighted least-squares sense.

    With 'regularization' equal to zero this is Y_w pinv(X_w), where the
    subscript denotes columns scaled by the square root of their recency
    weight. Otherwise the ridge solution
    Y_w X_wᵀ (X_w X_wᵀ + regularization I)⁻¹ is returned. Both are computed
    with a least-squares solve rather than by forming the normal equations,
    so rank-deficient windows are handled.

    Parameters
    ----------
    X : np.ndarray
        (n, w) array of snapshots, oldest column first.
    Y : np.ndarray
        (n, w) array of the snapshots one step after those in X.
    weighting : float, optional
        Forgetting factor in (0, 1]. Default is 1.0.
    regularization : float, optional
        Non-negative ridge term. Default is 0.0.

    Returns
    -------
    np.ndarray
        (n, n) operator A.

    Raises
    ------
    ValueError
        If X and Y differ in shape, contain non-finite values, or if
        'regularization' is negative.
    """
    X = _as_snapshots(X, "X")
    Y = _as_snapshots(Y, "Y")
    if X.shape != Y.shape:
        raise ValueError(f"Arguments 'X' and 'Y' must have the same shape, got {X.shape} and {Y.shape}.")
    if regularization < 0:
        raise ValueError("Argument 'regularization' must be non-negative.")

    n, w = X.shape
    sqrt_weights = np.sqrt(recency_weights(w, weighting))
    X_w = X * sqrt_weights
    Y_w = Y * sqrt_weights

    if regularization > 0:
        lhs = np.vstack([X_w.T, np.sqrt(regularization) * np.eye(n)])
        rhs = np.vstack([Y_w.T, np.zeros((n, n))])
    else:
        lhs, rhs = X_w.T, Y_w.T

    A_T, *_ = np.linalg.lstsq(lhs, rhs, rcond=None)
    return A_T.T


def minibatch_dmd(
        x: np.ndarray,
        y: np.ndarray,
        window_size: int,
        weighting: float = 1.0,
        regularization: float = 0.0,
        start: Optional[int] = None
        ) -> np.ndarray:
    """
    Recompute the windowed fit from scratch at every position of a
    snapshot record.

    Parameters
    ----------
    x : np.ndarray
        (n, m) array of snapshots.
    y : np.ndarray
        (n, m) array of the snapshots one step after those in x.
    window_size : int
        Number of most recent snapshot pairs in each fit.
    weighting : float, optional
        Forgetting factor in (0, 1]. Default is 1.0.
    regularization : float, optional
        Non-negative ridge term. Default is 0.0.
    start : int, optional
        First column index at which to fit (the newest column of the first
        window). Defaults to 'window_size' - 1, the first full window.

    Returns
    -------
    np.ndarray
        (m, n, n) array where entry k is the operator fitted over columns
        k - window_size + 1 through k. Entries before 'start' are NaN.
    """
    x = _as_snapshots(x, "x")
    y = _as_snapshots(y, "y")
    if x.shape != y.shape:
        raise ValueError(f"Arguments 'x' and 'y' must have the same shape, got {x.shape} and {y.shape}.")
    if not _is_integer(window_size):
        raise ValueError("Argument 'window_size' must be an integer.")

    n, m = x.shape
    if window_size < 1:
        raise ValueError("window_size must be at least 1.")
    if m < window_size:
        raise ValueError("Number of snapshots must be at least the window size.")

    first = window_size - 1 if start is None else max(int(start), window_size - 1)
    operators = np.full((m, n, n), np.nan)
    for k in range(first, m):
        operators[k] = weighted_fit(
            x[:, k - window_size + 1 : k + 1],
            y[:, k - window_size + 1 : k + 1],
            weighting=weighting,
            regularization=regularization
            )
    return operators
