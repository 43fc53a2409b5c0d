# Real-Time Window Dynamic Mode Decomposition
# Class structures for tracking the one-step operator of a time-varying linear system
# over a sliding window of snapshot pairs.
# V1.0: SnapshotWindow ring buffer and WindowOperator with direct rank-2 updating.
# V1.1: Class-level weighting/rcond defaults (_WindowOperatorMeta), atomic failure on
#       ill-conditioned updates, optional ridge regularization.
# V1.2: Window covariance tracked next to its inverse so every update is held to the
#       initial condition-number tolerance; snapshot vectors must be (n,) or (n, 1).


import logging
from typing import Optional, Tuple, Union
import warnings

import numpy as np
import scipy.linalg

from rt_dmd.batch_dmd import _is_integer, recency_weights, weighted_fit
from rt_dmd.eigen_tracking import continuous_eigenvalues
from rt_dmd.errors import (
    AlreadyInitialized,
    DimensionMismatch,
    IllConditionedWindow,
    InvalidConfiguration,
    NotInitialized,
    )


__all__ = ['SnapshotWindow', 'WindowOperator']

logger = logging.getLogger(__name__)

ArrayLike = Union[np.ndarray, list, tuple]


class SnapshotWindow:
    """
    This class stores the most recent snapshot pairs (x, y) as columns of two
    fixed-size arrays. It supports FIFO-style updates where the newest pair
    overwrites the oldest one, so the window always holds exactly
    'num_pairs' pairs.
    """

    def __init__(
            self,
            num_states: int,
            num_pairs: int
            ) -> None:
        """
        Initializes zero-filled (num_states, num_pairs) arrays for x and y.

        Parameters
        ----------
        num_states : int
            Length of each snapshot vector.
        num_pairs : int
            Number of snapshot pairs kept in the window.
        """

        self._x: np.ndarray = np.zeros((num_states, num_pairs), dtype=float)
        self._y: np.ndarray = np.zeros((num_states, num_pairs), dtype=float)
        self._head: int = 0     # column holding the oldest pair

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(num_states={self.num_states}, num_pairs={self.num_pairs})"

    def __str__(self) -> str:
        return f"\nNumber of States: {self.num_states}\nNumber of Pairs: {self.num_pairs}\n"

    def __len__(self) -> int:
        return self.num_pairs

    def fill(
            self,
            X: np.ndarray,
            Y: np.ndarray
            ) -> None:
        """
        Replaces the whole window. Columns are in time order, oldest first.
        """
        self._x[:] = X
        self._y[:] = Y
        self._head = 0

    def push(
            self,
            xnew: np.ndarray,
            ynew: np.ndarray
            ) -> None:
        """
        Evicts the oldest pair and appends (xnew, ynew) as the newest pair.
        """
        self._x[:, self._head] = xnew
        self._y[:, self._head] = ynew
        self._head = (self._head + 1) % self.num_pairs

    @property
    def num_states(self) -> int:
        return self._x.shape[0]

    @property
    def num_pairs(self) -> int:
        return self._x.shape[1]

    @property
    def oldest(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._x[:, self._head].copy(), self._y[:, self._head].copy()

    @property
    def newest(self) -> Tuple[np.ndarray, np.ndarray]:
        idx = (self._head - 1) % self.num_pairs
        return self._x[:, idx].copy(), self._y[:, idx].copy()

    @property
    def X(self) -> np.ndarray:
        return np.roll(self._x, -self._head, axis=1)

    @property
    def Y(self) -> np.ndarray:
        return np.roll(self._y, -self._head, axis=1)


class _WindowOperatorMeta(type):
    """
    Metaclass for managing class-level defaults in WindowOperator.
    Handles the class-wide forgetting factor (weighting) and condition
    tolerance (rcond), enforcing validation through a property interface.
    Instances read these defaults once, at construction.
    """
    @property
    def class_weighting(cls) -> float:
        """
        Gets the class-wide forgetting factor (weighting).

        Returns
        -------
        float
            The default weighting given to instances constructed without one.
        """
        return cls._class_weighting

    @class_weighting.setter
    def class_weighting(cls, value: float) -> None:
        """
        Sets the class-wide forgetting factor (weighting), ensuring it is within (0.0 - 1.0].

        Raises
        ------
        InvalidConfiguration
            If the given value is not in the range (0.0 - 1.0].
        """
        if not (0 < value <= 1.0):
            raise InvalidConfiguration("Forgetting factor (weighting) must be in the range (0.0 - 1.0].")
        cls._class_weighting = float(value)

    @property
    def class_rcond(cls) -> Optional[float]:
        """
        Gets the class-wide relative condition tolerance (rcond).
        None means 'num_states * machine epsilon' for each instance.
        """
        return cls._class_rcond

    @class_rcond.setter
    def class_rcond(cls, value: Optional[float]) -> None:
        if value is not None and not (0 < value < 1.0):
            raise InvalidConfiguration("Condition tolerance (rcond) must be None or in the range (0.0 - 1.0).")
        cls._class_rcond = None if value is None else float(value)


class WindowOperator(metaclass=_WindowOperatorMeta):
    """
    Tracks the best-fit linear operator A (y ≈ A x) over a sliding window of
    the 'window_size' most recent snapshot pairs.

    After 'initialize' fits the first window directly, every 'update' evicts
    the oldest pair and appends a new one using a single rank-2 Woodbury
    correction of A and of the inverse covariance P, in O(n²) work.

    Attributes
    ----------
    _class_weighting : float
        Default class-wide forgetting factor used if no instance value is given.
    _class_rcond : Optional[float]
        Default class-wide condition tolerance used if no instance value is given.
    """
    _class_weighting: float = 1.0
    _class_rcond: Optional[float] = None

    def __init__(
            self,
            num_states: int,
            window_size: int,
            weighting: Optional[float] = None,
            regularization: float = 0.0,
            rcond: Optional[float] = None
            ) -> None:
        """
        Initialize an uninitialized WindowOperator.

        Parameters
        ----------
        num_states : int
            State dimension n (length of each snapshot).
        window_size : int
            Number of snapshot pairs w in the window; must be at least n.
        weighting : float, optional
            Forgetting factor in (0, 1]. The newest pair has weight 1 and each
            step back in time multiplies the weight by 'weighting'.
            If None, the class-wide default is used.
        regularization : float, optional
            Non-negative ridge term added to the weighted covariance of the
            first window. The term ages with the window when weighting < 1.
            Default is 0.0.
        rcond : float, optional
            Relative tolerance below which the covariance counts as singular.
            If None, the class-wide default is used, else n * machine epsilon.

        Raises
        ------
        InvalidConfiguration
            For n < 1, w < n, weighting outside (0, 1], negative
            regularization, or rcond outside (0, 1).
        """
        if not _is_integer(num_states) or num_states < 1:
            raise InvalidConfiguration(f"num_states must be a positive integer, got {num_states!r}.")
        if not _is_integer(window_size) or window_size < num_states:
            raise InvalidConfiguration(
                f"window_size must be an integer >= num_states ({num_states}), got {window_size!r}."
                )

        if weighting is None:
            weighting = WindowOperator.class_weighting
        if not (0 < weighting <= 1.0):
            raise InvalidConfiguration("Forgetting factor (weighting) must be in the range (0.0 - 1.0].")
        if not np.isfinite(regularization) or regularization < 0:
            raise InvalidConfiguration("Regularization must be a finite, non-negative number.")

        if rcond is None:
            rcond = WindowOperator.class_rcond
        if rcond is None:
            rcond = num_states * np.finfo(float).eps
        if not (0 < rcond < 1.0):
            raise InvalidConfiguration("Condition tolerance (rcond) must be in the range (0.0 - 1.0).")

        self._num_states = int(num_states)
        self._window_size = int(window_size)
        self._weighting = float(weighting)
        self._regularization = float(regularization)
        self._rcond = float(rcond)

        if self._weighting ** self._window_size < np.finfo(float).eps:
            warnings.warn(
                f"weighting**window_size = {self._weighting ** self._window_size:.3e} is below machine"
                " epsilon; the oldest pairs in the window carry no information.",
                UserWarning)

        self._window = SnapshotWindow(self._num_states, self._window_size)
        self._A: Optional[np.ndarray] = None
        self._P: Optional[np.ndarray] = None
        self._S: Optional[np.ndarray] = None
        self._timestep: int = 0

    def __repr__(self) -> str:
        return (
            f"WindowOperator(num_states={self.num_states!r}, "
            f"window_size={self.window_size!r}, "
            f"weighting={self.weighting!r})"
            )

    def __str__(self) -> str:
        return (
            f"WindowOperator\n"
            f"--------------------------\n"
            f"Number of States: {self.num_states}\n"
            f"Window Size: {self.window_size}\n"
            f"Weighting: {self.weighting:.4f}\n"
            f"Regularization: {self.regularization:.3e}\n"
            f"Timestep: {self.timestep}\n"
            )



    def initialize(
            self,
            X0: ArrayLike,
            Y0: ArrayLike
            ) -> None:
        """
        Fit the operator over the first window of snapshot pairs.

        Parameters
        ----------
        X0 : array-like
            (num_states, window_size) snapshots, oldest column first.
        Y0 : array-like
            (num_states, window_size) snapshots one step after those in X0.

        Raises
        ------
        AlreadyInitialized
            If the operator has already been initialized.
        DimensionMismatch
            If X0 or Y0 is not (num_states, window_size).
        ValueError
            If X0 or Y0 contains NaN or infinite values.
        IllConditionedWindow
            If the weighted covariance of X0 is numerically singular.
        """
        if self.is_ready:
            raise AlreadyInitialized("WindowOperator has already been initialized.")

        X0 = self._check_matrix(X0, "X0")
        Y0 = self._check_matrix(Y0, "Y0")
        n = self._num_states

        A = weighted_fit(X0, Y0, weighting=self._weighting, regularization=self._regularization)

        X_w = X0 * np.sqrt(recency_weights(self._window_size, self._weighting))
        cov = X_w @ X_w.T + self._regularization * np.eye(n)
        cov = 0.5 * (cov + cov.T)

        eigvals = np.linalg.eigvalsh(cov)
        if not (eigvals[0] > self._rcond * eigvals[-1]):
            logger.warning("Initial window covariance is singular (eigenvalues %s).", eigvals)
            raise IllConditionedWindow(
                f"Weighted covariance of the initial window is numerically singular"
                f" (min/max eigenvalue {eigvals[0]:.3e}/{eigvals[-1]:.3e}, rcond={self._rcond:.3e})."
                )
        try:
            factor = scipy.linalg.cho_factor(cov)
        except scipy.linalg.LinAlgError as err:
            logger.warning("Cholesky factorization of the initial window covariance failed.")
            raise IllConditionedWindow("Weighted covariance of the initial window is not positive definite.") from err

        # stored aged by one step so the next update only adds the rank-2 term
        P = scipy.linalg.cho_solve(factor, np.eye(n)) / self._weighting
        P = 0.5 * (P + P.T)

        self._A = A
        self._P = P
        self._S = self._weighting * cov
        self._window.fill(X0, Y0)
        self._timestep = self._window_size
        logger.info(
            "Initialized window DMD: n=%d, w=%d, weighting=%g, cond=%.3e",
            n, self._window_size, self._weighting, eigvals[-1] / eigvals[0]
            )

    def update(
            self,
            xnew: ArrayLike,
            ynew: ArrayLike
            ) -> None:
        """
        Slide the window by one snapshot pair and update A and P.

        The oldest pair is forgotten and (xnew, ynew) is remembered through a
        single rank-2 correction. On failure nothing is modified.

        Parameters
        ----------
        xnew : array-like
            New snapshot, length num_states.
        ynew : array-like
            Snapshot one step after xnew, length num_states.

        Raises
        ------
        NotInitialized
            If 'initialize' has not been called.
        DimensionMismatch
            If xnew or ynew is not shaped (num_states,) or (num_states, 1).
        ValueError
            If xnew or ynew contains NaN or infinite values.
        IllConditionedWindow
            If the new window's covariance would be numerically singular.
        """
        if not self.is_ready:
            raise NotInitialized("WindowOperator must be initialized before it can be updated.")

        xnew = self._check_vector(xnew, "xnew")
        ynew = self._check_vector(ynew, "ynew")
        xold, yold = self._window.oldest

        A, P, S = self._rank2_correction(xold, yold, xnew, ynew)

        self._A = A
        self._P = P
        self._S = S
        self._window.push(xnew, ynew)
        self._timestep += 1

    def update_many(
            self,
            X: ArrayLike,
            Y: ArrayLike
            ) -> None:
        """
        Apply 'update' to each column of X and Y in order.

        Columns before a failing one stay committed; the error of the
        failing column propagates and later columns are not applied.
        """
        X = np.asarray(X, dtype=float)
        Y = np.asarray(Y, dtype=float)
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        if Y.ndim == 1:
            Y = Y.reshape(-1, 1)
        if X.shape != Y.shape or X.ndim != 2 or X.shape[0] != self._num_states:
            raise DimensionMismatch(
                f"X and Y must both be ({self._num_states}, k) arrays, got {X.shape} and {Y.shape}."
                )
        for k in range(X.shape[1]):
            self.update(X[:, k], Y[:, k])

    def predict(self, x: ArrayLike) -> np.ndarray:
        """
        Predict the next snapshot from x with the current operator.
        """
        return self.A @ self._check_vector(x, "x")

    def eigenvalues(self, dt: Optional[float] = None) -> np.ndarray:
        """
        Eigenvalues of the current operator.

        Parameters
        ----------
        dt : float, optional
            Sampling interval. If given, the continuous-time eigenvalues
            log(λ) / dt are returned instead of the discrete ones.
        """
        if dt is None:
            return np.linalg.eigvals(self.A)
        return continuous_eigenvalues(self.A, dt)



    def _rank2_correction(
            self,
            xold: np.ndarray,
            yold: np.ndarray,
            xnew: np.ndarray,
            ynew: np.ndarray
            ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Compute the operator, inverse covariance and covariance of the slid
        window without modifying any state.

        The weighted covariance changes as rho*Sigma - rho**w xold xoldᵀ + xnew xnewᵀ:
        the window ages by one step, the evicted pair leaves with its aged
        weight, and the new pair enters with weight 1. Writing this as
        U C Uᵀ with U = [xold, xnew] and C = diag(-rho**w, 1), the Woodbury
        identity gives both corrections with the 2x2 kernel
        Gamma = (C⁻¹ + Uᵀ P U)⁻¹ = (I + C Uᵀ P U)⁻¹ C.

        The determinant ratio only compares consecutive windows, so the new
        window is also held to the same relative tolerance as 'initialize'
        through its 1-norm condition number, computed from the covariance
        and its inverse in O(n²).
        """
        rho = self._weighting
        U = np.column_stack((xold, xnew))
        V = np.column_stack((yold, ynew))
        C = np.diag([-(rho ** self._window_size), 1.0])

        PU = self._P @ U
        AU = self._A @ U
        K = np.eye(2) + C @ (U.T @ PU)

        # det(K) = det(new covariance) / det(aged old covariance)
        det_ratio = float(np.linalg.det(K))
        logger.debug("Window DMD step %d: covariance determinant ratio %.6e", self._timestep + 1, det_ratio)
        if not np.isfinite(det_ratio) or det_ratio <= self._rcond:
            logger.warning(
                "Rejected update at step %d: covariance determinant ratio %.3e", self._timestep + 1, det_ratio
                )
            raise IllConditionedWindow(
                f"Update would make the window covariance singular (determinant ratio {det_ratio:.3e},"
                f" rcond={self._rcond:.3e})."
                )
        try:
            Gamma = np.linalg.solve(K, C)
        except np.linalg.LinAlgError as err:
            raise IllConditionedWindow("Rank-2 update kernel is singular.") from err

        A = self._A + (V - AU) @ Gamma @ PU.T
        P = self._P - PU @ Gamma @ PU.T
        P = 0.5 * (P + P.T)
        S = self._S + (U * np.diag(C)) @ U.T
        S = 0.5 * (S + S.T)

        if not (np.all(np.isfinite(A)) and np.all(np.isfinite(P))) or np.any(np.diag(P) <= 0):
            logger.warning("Rejected update at step %d: non-finite or indefinite result.", self._timestep + 1)
            raise IllConditionedWindow("Update produced a non-finite or indefinite inverse covariance.")

        # P is the unaged inverse of S here
        cond = np.linalg.norm(S, 1) * np.linalg.norm(P, 1)
        if not (cond * self._rcond < 1.0):
            logger.warning("Rejected update at step %d: covariance condition number %.3e", self._timestep + 1, cond)
            raise IllConditionedWindow(
                f"Update would make the window covariance singular (condition number {cond:.3e},"
                f" rcond={self._rcond:.3e})."
                )
        return A, P / rho, rho * S

    def _check_vector(
            self,
            vector: ArrayLike,
            label: str
            ) -> np.ndarray:
        vector = np.atleast_1d(np.asarray(vector, dtype=float))
        if vector.shape not in ((self._num_states,), (self._num_states, 1)):
            raise DimensionMismatch(
                f"Argument '{label}' must have shape ({self._num_states},) or ({self._num_states}, 1),"
                f" got {vector.shape}."
                )
        vector = vector.ravel()
        if not np.all(np.isfinite(vector)):
            raise ValueError(f"Argument '{label}' contains NaN or infinite values.")
        return vector

    def _check_matrix(
            self,
            matrix: ArrayLike,
            label: str
            ) -> np.ndarray:
        matrix = np.asarray(matrix, dtype=float)
        expected = (self._num_states, self._window_size)
        if matrix.shape != expected:
            raise DimensionMismatch(f"Argument '{label}' must have shape {expected}, got {matrix.shape}.")
        if not np.all(np.isfinite(matrix)):
            raise ValueError(f"Argument '{label}' contains NaN or infinite values.")
        return matrix



    @property
    def A(self) -> np.ndarray:
        """
        Copy of the current operator.

        Raises
        ------
        NotInitialized
            If 'initialize' has not been called.
        """
        if self._A is None:
            raise NotInitialized("WindowOperator has no operator before 'initialize' is called.")
        return self._A.copy()

    @property
    def window(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Copies of the window snapshots (X, Y), each (num_states, window_size),
        oldest column first.
        """
        if not self.is_ready:
            raise NotInitialized("WindowOperator has no window before 'initialize' is called.")
        return self._window.X, self._window.Y

    @property
    def is_ready(self) -> bool:
        return self._A is not None

    @property
    def timestep(self) -> int:
        return self._timestep

    @property
    def num_states(self) -> int:
        return self._num_states

    @property
    def window_size(self) -> int:
        return self._window_size

    @property
    def weighting(self) -> float:
        return self._weighting

    @property
    def regularization(self) -> float:
        return self._regularization

    @property
    def rcond(self) -> float:
        return self._rcond



if (__name__ == '__main__'):
    warnings.warn(
        "This script is not intended to be run as a standalone program."
        " It contains structures and functions to be imported and used in other scripts.",
        UserWarning)
