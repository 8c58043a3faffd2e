"""Complex polynomials and their finite-difference derivative estimate."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np

DIFF_STEP = 1e-8

# The helpers below take real and imaginary parts separately and only use
# +, -, * and /, so numpy float64 scalars and float64 tensors round alike.


def complex_mul(a_re, a_im, b_re, b_im):
    return a_re * b_re - a_im * b_im, a_re * b_im + a_im * b_re


def horner_step(acc_re, acc_im, z_re, z_im, c_re, c_im):
    """``acc * z + c``."""

    re, im = complex_mul(acc_re, acc_im, z_re, z_im)
    return re + c_re, im + c_im


def difference_reciprocal(step, f_re, f_im, g_re, g_im):
    """``step / (g - f)`` for a real ``step``; zero differences give NaN/Inf."""

    d_re = g_re - f_re
    d_im = g_im - f_im
    scale = d_re * d_re + d_im * d_im
    return step * d_re / scale, -(step * d_im) / scale


def newton_update(evaluate, z_re, z_im, step):
    """``z - f(z) * step / (f(z + step) - f(z))`` with ``evaluate`` mapping parts to parts."""

    f_re, f_im = evaluate(z_re, z_im)
    g_re, g_im = evaluate(z_re + step, z_im)
    r_re, r_im = difference_reciprocal(step, f_re, f_im, g_re, g_im)
    m_re, m_im = complex_mul(f_re, f_im, r_re, r_im)
    return z_re - m_re, z_im - m_im


@dataclass(frozen=True, init=False)
class Polynomial:
    """Polynomial with ``coefficients[i]`` multiplying ``z**i``."""

    coefficients: tuple[complex, ...]

    def __init__(self, coefficients: Iterable[complex]):
        values = tuple(complex(c) for c in coefficients)
        if not values:
            raise ValueError("a polynomial needs at least one coefficient")
        if not all(np.isfinite(c) for c in values):
            raise ValueError("polynomial coefficients must be finite")
        if len(values) < 2 or not any(values[1:]):
            raise ValueError("polynomial must have degree >= 1 to have roots to find")
        object.__setattr__(self, "coefficients", values)

    @classmethod
    def random(cls, degree: int, rng: np.random.Generator, low: float = -10.0, high: float = 10.0) -> "Polynomial":
        """Draw real and imaginary parts of each coefficient uniformly from ``[low, high)``."""

        if degree < 1:
            raise ValueError("degree must be at least 1")
        parts = rng.uniform(low, high, size=(degree + 1, 2))
        return cls(complex(re, im) for re, im in parts)

    @property
    def degree(self) -> int:
        return len(self.coefficients) - 1

    def as_array(self) -> np.ndarray:
        return np.array(self.coefficients, dtype=np.complex128)

    def as_parts(self) -> np.ndarray:
        """``(degree + 1, 2)`` float64 array of real and imaginary parts."""

        values = self.as_array()
        return np.stack((values.real, values.imag), axis=-1)

    def evaluate_parts(self, z_re, z_im):
        """Horner evaluation on split real and imaginary parts."""

        leading = self.coefficients[-1]
        re, im = np.float64(leading.real), np.float64(leading.imag)
        for c in reversed(self.coefficients[:-1]):
            re, im = horner_step(re, im, z_re, z_im, c.real, c.imag)
        return re, im

    def evaluate(self, z) -> np.complex128:
        z = complex(z)
        with np.errstate(all="ignore"):
            re, im = self.evaluate_parts(np.float64(z.real), np.float64(z.imag))
        return np.complex128(complex(re, im))

    __call__ = evaluate

    def derivative_reciprocal(self, z, step: float = DIFF_STEP) -> np.complex128:
        """Forward-difference estimate of ``1 / f'(z)``.

        An exactly flat difference gives a non-finite result rather than raising.
        """

        z = complex(z)
        z_re, z_im = np.float64(z.real), np.float64(z.imag)
        with np.errstate(all="ignore"):
            f_re, f_im = self.evaluate_parts(z_re, z_im)
            g_re, g_im = self.evaluate_parts(z_re + step, z_im)
            re, im = difference_reciprocal(step, f_re, f_im, g_re, g_im)
        return np.complex128(complex(re, im))

    def __str__(self) -> str:
        terms = []
        for power, c in enumerate(self.coefficients):
            if c == 0:
                continue
            if power == 0:
                terms.append(f"({c.real:.6g}{c.imag:+.6g}j)")
            elif power == 1:
                terms.append(f"({c.real:.6g}{c.imag:+.6g}j)z")
            else:
                terms.append(f"({c.real:.6g}{c.imag:+.6g}j)z^{power}")
        return " + ".join(terms)
