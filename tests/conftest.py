"""Shared snapshot streams for the window DMD tests."""

import numpy as np
import pytest
from scipy.integrate import solve_ivp
from scipy.linalg import expm

from rt_dmd import WindowOperator


DT = 0.1
OMEGA = 1.0
EPSILON = 0.1


@pytest.fixture
def dt():
    return DT


@pytest.fixture
def omega():
    return OMEGA


@pytest.fixture
def drift_frequency():
    """Analytic rotation frequency w(t) = OMEGA + EPSILON t of 'drifting_stream'."""
    def frequency(time):
        return OMEGA + EPSILON * np.asarray(time)
    return frequency


def _split_pairs(states: np.ndarray):
    return states[:, :-1], states[:, 1:]


@pytest.fixture
def rotation_stream():
    """
    Exact samples of dx/dt = [[0, w], [-w, 0]] x with constant w,
    x(0) = [1, 0], on t = 0, DT, ..., 10.
    """
    A_c = np.array([[0.0, OMEGA], [-OMEGA, 0.0]])
    step = expm(A_c * DT)
    num_steps = 101
    states = np.empty((2, num_steps))
    states[:, 0] = [1.0, 0.0]
    for k in range(1, num_steps):
        states[:, k] = step @ states[:, k - 1]
    x, y = _split_pairs(states)
    return x, y


@pytest.fixture
def drifting_stream():
    """
    Samples of dx/dt = [[0, w(t)], [-w(t), 0]] x with w(t) = 1 + EPSILON t,
    x(0) = [1, 0], on t = 0, DT, ..., 10. Returns (x, y, time of each y).
    """
    def dynamics(t, state):
        w = OMEGA + EPSILON * t
        return np.array([w * state[1], -w * state[0]])

    t_eval = np.linspace(0.0, 10.0, 101)
    sol = solve_ivp(dynamics, (0.0, 10.0), [1.0, 0.0], t_eval=t_eval, rtol=1e-11, atol=1e-12)
    x, y = _split_pairs(sol.y)
    return x, y, t_eval[1:]


@pytest.fixture
def random_stream():
    """Generic (4, 80) snapshot pairs with no underlying linear map."""
    rng = np.random.default_rng(7)
    x = rng.standard_normal((4, 80))
    y = rng.standard_normal((4, 80))
    return x, y


@pytest.fixture
def restore_class_defaults():
    weighting = WindowOperator.class_weighting
    rcond = WindowOperator.class_rcond
    yield
    WindowOperator.class_weighting = weighting
    WindowOperator.class_rcond = rcond
