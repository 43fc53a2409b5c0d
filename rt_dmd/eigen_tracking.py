#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
eigen_tracking.py - Eigenvalue post-processing of tracked DMD operators.

Description
-----------
A DMD operator approximates the discrete one-step map of the sampled
system. The functions here turn operators into continuous-time eigenvalue
estimates and drive a window estimator over a recorded snapshot stream,
collecting the eigenvalue history in a DataFrame. None of them modify an
estimator beyond feeding it snapshots.

Modules and Classes
-------------------
- 'continuous_eigenvalues' : log(eig(A)) / dt.
- 'sort_eigenvalues' : Stable ordering for conjugate pairs.
- 'track_eigenvalues' : Feed a stream to an estimator, collect eigenvalues.
- 'eigenvalue_error' : Per-sample max deviation between two histories.
"""


import logging
from typing import Optional, Union

import numpy as np
import pandas as pd

from rt_dmd.errors import IllConditionedWindow


__all__ = ['continuous_eigenvalues', 'sort_eigenvalues', 'track_eigenvalues', 'eigenvalue_error']

logger = logging.getLogger(__name__)


def continuous_eigenvalues(
        A: np.ndarray,
        dt: float
        ) -> np.ndarray:
    """
    Estimate continuous-time eigenvalues from a discrete one-step operator.

    Parameters
    ----------
    A : np.ndarray
        (n, n) discrete-time operator.
    dt : float
        Sampling interval between snapshots (> 0).

    Returns
    -------
    np.ndarray
        Complex array of log(λ) / dt for each eigenvalue λ of A, sorted
        with 'sort_eigenvalues'.
    """
    if not (dt > 0):
        raise ValueError("Argument 'dt' must be positive.")
    A = np.asarray(A, dtype=float)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise ValueError(f"Argument 'A' must be a square matrix, got shape {A.shape}.")
    discrete = np.linalg.eigvals(A).astype(complex)
    return sort_eigenvalues(np.log(discrete) / dt)


def sort_eigenvalues(eigenvalues: np.ndarray) -> np.ndarray:
    """
    Order eigenvalues by descending imaginary part, then descending real part.
    Conjugate pairs therefore keep the same column from sample to sample.
    """
    eigenvalues = np.asarray(eigenvalues, dtype=complex).ravel()
    order = np.lexsort((-eigenvalues.real, -eigenvalues.imag))
    return eigenvalues[order]


def track_eigenvalues(
        operator,
        x: np.ndarray,
        y: np.ndarray,
        dt: float,
        time: Optional[np.ndarray] = None,
        skip_ill_conditioned: bool = False
        ) -> pd.DataFrame:
    """
    Drive an uninitialized window estimator over a snapshot record and
    collect its continuous-time eigenvalues after every step.

    The first 'operator.window_size' columns go to 'initialize', every
    later column to 'update'.

    Parameters
    ----------
    operator : WindowOperator
        Estimator that has not been initialized yet.
    x : np.ndarray
        (n, m) array of snapshots.
    y : np.ndarray
        (n, m) array of the snapshots one step after those in x.
    dt : float
        Sampling interval.
    time : np.ndarray, optional
        Time stamp of each column (length m). Defaults to dt, 2 dt, ...,
        the times of the y snapshots when x starts at t = 0.
    skip_ill_conditioned : bool, optional
        If True, an update rejected as ill-conditioned is logged, its row is
        left as NaN and tracking continues with the next sample. If False
        (default) the error propagates.

    Returns
    -------
    pd.DataFrame
        Index 'time', complex columns 'lambda_0' ... 'lambda_{n-1}'.
        Rows before the window fills are NaN.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.shape != y.shape or x.ndim != 2:
        raise ValueError(f"Arguments 'x' and 'y' must be 2D arrays of the same shape, got {x.shape} and {y.shape}.")

    n, m = x.shape
    w = operator.window_size
    if m < w:
        raise ValueError(f"Need at least window_size={w} snapshot pairs, got {m}.")
    if time is None:
        time = dt * np.arange(1, m + 1)
    time = np.asarray(time, dtype=float).ravel()
    if time.size != m:
        raise ValueError("Argument 'time' must have one entry per snapshot pair.")

    history = np.full((m, n), np.nan, dtype=complex)

    operator.initialize(x[:, :w], y[:, :w])
    history[w - 1] = continuous_eigenvalues(operator.A, dt)

    skipped = 0
    for k in range(w, m):
        try:
            operator.update(x[:, k], y[:, k])
        except IllConditionedWindow:
            if not skip_ill_conditioned:
                raise
            skipped += 1
            logger.info("Skipped ill-conditioned sample %d at t=%g.", k, time[k])
            continue
        history[k] = continuous_eigenvalues(operator.A, dt)

    if skipped:
        logger.warning("Skipped %d of %d samples as ill-conditioned.", skipped, m - w)

    return pd.DataFrame(
        history,
        index=pd.Index(time, name="time"),
        columns=[f"lambda_{i}" for i in range(n)]
        )


def eigenvalue_error(
        estimated: Union[pd.DataFrame, np.ndarray],
        reference: Union[pd.DataFrame, np.ndarray]
        ) -> Union[pd.Series, np.ndarray]:
    """
    Per-sample maximum absolute difference between two eigenvalue histories.

    Both inputs are (m, n) with matching eigenvalue ordering. Samples where
    either history is NaN give NaN.

    Returns
    -------
    pd.Series or np.ndarray
        A Series sharing the index of 'estimated' when it is a DataFrame,
        otherwise a 1D array.
    """
    est = estimated.to_numpy() if isinstance(estimated, pd.DataFrame) else np.asarray(estimated)
    ref = reference.to_numpy() if isinstance(reference, pd.DataFrame) else np.asarray(reference)
    if est.shape != ref.shape:
        raise ValueError(f"Eigenvalue histories must have the same shape, got {est.shape} and {ref.shape}.")

    diff = np.abs(est.astype(complex) - ref.astype(complex))
    error = np.full(diff.shape[0], np.nan)
    valid = np.all(np.isfinite(diff), axis=1)
    error[valid] = diff[valid].max(axis=1)

    if isinstance(estimated, pd.DataFrame):
        return pd.Series(error, index=estimated.index, name="max_abs_error")
    return error
