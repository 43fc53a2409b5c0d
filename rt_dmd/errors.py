#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
errors.py - Exceptions raised by the window DMD estimator.

Each class also derives from the builtin (or numpy) exception a caller
would already expect, so existing ``except ValueError`` or
``except np.linalg.LinAlgError`` handlers keep catching them.
"""


import numpy as np


__all__ = ['WindowDMDError', 'InvalidConfiguration', 'DimensionMismatch',
           'NotInitialized', 'AlreadyInitialized', 'IllConditionedWindow']


class WindowDMDError(Exception):
    """Base class for all window DMD errors."""


class InvalidConfiguration(WindowDMDError, ValueError):
    """Raised at construction for n < 1, w < n, or weighting outside (0, 1]."""


class DimensionMismatch(WindowDMDError, ValueError):
    """Raised when a snapshot or snapshot matrix has the wrong shape."""


class NotInitialized(WindowDMDError, RuntimeError):
    """Raised when 'update' is called before 'initialize'."""


class AlreadyInitialized(WindowDMDError, RuntimeError):
    """Raised when 'initialize' is called a second time."""


class IllConditionedWindow(WindowDMDError, np.linalg.LinAlgError):
    """
    Raised when the weighted covariance of the window is numerically singular,
    either at initialization or as the result of an update. An update that
    raises this leaves the estimator exactly as it was before the call.
    """
