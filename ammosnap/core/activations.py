"""Activation functions and their derivatives."""

from __future__ import annotations

import numpy as np

from .types import Array

ELU_ALPHA = 1.0


def elu(x: Array, alpha: float = ELU_ALPHA) -> Array:
    """Return the exponential linear unit of ``x``."""

    return np.where(x > 0.0, x, alpha * np.expm1(np.minimum(x, 0.0)))


def elu_deriv(x: Array, alpha: float = ELU_ALPHA) -> Array:
    return np.where(x > 0.0, 1.0, alpha * np.exp(np.minimum(x, 0.0)))


def softmax(z: Array) -> Array:
    """Row-wise softmax, shifted by the row maximum for stability."""

    shifted = z - np.max(z, axis=-1, keepdims=True)
    exp = np.exp(shifted)
    return exp / np.sum(exp, axis=-1, keepdims=True)


def softmax_backward(outputs: Array, gradient: Array) -> Array:
    """Jacobian-vector product of softmax given its ``outputs``."""

    dot = np.sum(gradient * outputs, axis=-1, keepdims=True)
    return outputs * (gradient - dot)


ACTIVATIONS = ("elu", "softmax")

__all__ = ["ACTIVATIONS", "elu", "elu_deriv", "softmax", "softmax_backward"]
