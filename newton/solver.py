"""Newton-Raphson root search, for single points and for whole pixel grids."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
import tensorflow as tf

from .polynomial import DIFF_STEP, Polynomial, horner_step, newton_update

MAX_ITERS = 100
TOLERANCE = 1e-4

CPU_DEVICE = "/CPU:0"


@dataclass(frozen=True)
class NewtonParameters:
    """Iteration limits shared by the scalar and grid solvers."""

    max_iterations: int = MAX_ITERS
    tolerance: float = TOLERANCE
    diff_step: float = DIFF_STEP

    def __post_init__(self) -> None:
        if self.max_iterations <= 0:
            raise ValueError("max_iterations must be positive")
        if not self.tolerance > 0:
            raise ValueError("tolerance must be positive")
        if not self.diff_step > 0:
            raise ValueError("diff_step must be positive")


@dataclass(frozen=True)
class NewtonResult:
    """Outcome of a grid solve.

    ``iterations`` holds the 0-based iteration at which each point converged,
    or -1 where it never did; ``roots`` is only meaningful where ``converged``.
    """

    roots: np.ndarray
    iterations: np.ndarray
    converged: np.ndarray


def find_root(
    polynomial: Polynomial,
    start: complex,
    parameters: NewtonParameters = NewtonParameters(),
) -> Optional[tuple[complex, int]]:
    """Iterate from ``start`` until successive steps are closer than the tolerance.

    Returns ``(root, iteration)`` or ``None`` when the iteration budget runs out.
    Overflow and flat differences turn into NaN/Inf and simply never converge.
    The arithmetic is the one :func:`solve_grid` runs, so both agree bit for bit.
    """

    tolerance = np.float64(parameters.tolerance)
    tolerance_sq = tolerance * tolerance
    start = complex(start)
    z_re, z_im = np.float64(start.real), np.float64(start.imag)
    with np.errstate(all="ignore"):
        for i in range(parameters.max_iterations):
            new_re, new_im = newton_update(polynomial.evaluate_parts, z_re, z_im, parameters.diff_step)
            delta_re = new_re - z_re
            delta_im = new_im - z_im
            z_re, z_im = new_re, new_im
            if delta_re * delta_re + delta_im * delta_im < tolerance_sq:
                return complex(z_re, z_im), i
    return None


def _polyval(coefficients: tf.Tensor, z_re: tf.Tensor, z_im: tf.Tensor) -> tuple[tf.Tensor, tf.Tensor]:
    """Horner evaluation over a ``(degree + 1, 2)`` tensor of coefficient parts."""

    leading = coefficients[-1]
    return tf.foldl(
        lambda acc, c: horner_step(acc[0], acc[1], z_re, z_im, c[0], c[1]),
        tf.reverse(coefficients[:-1], axis=[0]),
        initializer=(tf.fill(tf.shape(z_re), leading[0]), tf.fill(tf.shape(z_im), leading[1])),
    )


@tf.function
def _newton_run(
    z_re: tf.Tensor,
    z_im: tf.Tensor,
    coefficients: tf.Tensor,
    diff_step: tf.Tensor,
    tolerance_sq: tf.Tensor,
    max_iterations: tf.Tensor,
):
    """Iterate every point with a TensorFlow while loop, freezing converged ones."""

    max_iterations = tf.cast(max_iterations, tf.int32)
    i = tf.constant(0, dtype=tf.int32)
    roots_re = tf.zeros_like(z_re)
    roots_im = tf.zeros_like(z_im)
    ns = tf.fill(tf.shape(z_re), tf.constant(-1, dtype=tf.int32))
    active = tf.ones(tf.shape(z_re), tf.bool)

    def evaluate(re, im):
        return _polyval(coefficients, re, im)

    def cond(i, z_re, z_im, roots_re, roots_im, ns, active):
        return tf.logical_and(tf.less(i, max_iterations), tf.reduce_any(active))

    def body(i, z_re, z_im, roots_re, roots_im, ns, active):
        step_re, step_im = newton_update(evaluate, z_re, z_im, diff_step)
        new_re = tf.where(active, step_re, z_re)
        new_im = tf.where(active, step_im, z_im)
        delta_re = new_re - z_re
        delta_im = new_im - z_im
        converged = tf.logical_and(active, delta_re * delta_re + delta_im * delta_im < tolerance_sq)
        roots_re = tf.where(converged, new_re, roots_re)
        roots_im = tf.where(converged, new_im, roots_im)
        ns = tf.where(converged, tf.fill(tf.shape(ns), i), ns)
        active = tf.logical_and(active, tf.logical_not(converged))
        return i + 1, new_re, new_im, roots_re, roots_im, ns, active

    return tf.while_loop(cond, body, (i, z_re, z_im, roots_re, roots_im, ns, active))


def solve_grid(
    polynomial: Polynomial,
    points: np.ndarray,
    parameters: NewtonParameters = NewtonParameters(),
    *,
    device: str = CPU_DEVICE,
) -> NewtonResult:
    """Run :func:`find_root` on every starting point of ``points`` at once."""

    points = np.asarray(points, dtype=np.complex128)
    tolerance = np.float64(parameters.tolerance)

    with tf.device(device):
        z_re = tf.convert_to_tensor(points.real, dtype=tf.float64)
        z_im = tf.convert_to_tensor(points.imag, dtype=tf.float64)
        coefficients = tf.convert_to_tensor(polynomial.as_parts(), dtype=tf.float64)
        diff_step = tf.constant(parameters.diff_step, dtype=tf.float64)
        tolerance_sq = tf.constant(tolerance * tolerance, dtype=tf.float64)
        max_iterations = tf.constant(parameters.max_iterations, dtype=tf.int32)

        _, _, _, roots_re, roots_im, ns, _ = _newton_run(
            z_re, z_im, coefficients, diff_step, tolerance_sq, max_iterations
        )

    roots = np.empty(points.shape, dtype=np.complex128)
    roots.real = roots_re.numpy()
    roots.imag = roots_im.numpy()
    iterations = ns.numpy()
    return NewtonResult(
        roots=roots,
        iterations=iterations,
        converged=iterations >= 0,
    )
