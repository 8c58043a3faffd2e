"""Per-render identification of the roots Newton's method lands on."""

from __future__ import annotations

import numpy as np

from .solver import TOLERANCE


class RootRegistry:
    """Ordered list of distinct roots discovered during one render.

    Two candidates are the same root when their squared distance is below
    ``4 * tolerance**2``. The first matching root in discovery order wins, and
    new roots get the next dense index.
    """

    def __init__(self, tolerance: float = TOLERANCE):
        self.tolerance = tolerance
        self.match_radius_sq = 4.0 * tolerance * tolerance
        self._roots: list[complex] = []

    def __len__(self) -> int:
        return len(self._roots)

    @property
    def roots(self) -> tuple[complex, ...]:
        return tuple(self._roots)

    def clear(self) -> None:
        self._roots.clear()

    def register(self, candidate: complex) -> int:
        for index, root in enumerate(self._roots):
            delta = candidate - root
            if delta.real * delta.real + delta.imag * delta.imag < self.match_radius_sq:
                return index
        self._roots.append(complex(candidate))
        return len(self._roots) - 1

    def _matches(self, candidates: np.ndarray, root: complex) -> np.ndarray:
        delta = candidates - root
        return delta.real * delta.real + delta.imag * delta.imag < self.match_radius_sq

    def assign(self, candidates: np.ndarray) -> np.ndarray:
        """Register ``candidates`` in order; same indices as calling :meth:`register` on each.

        Works one root at a time: every still-unassigned candidate that matches
        the root is claimed by it, and the earliest unclaimed candidate becomes
        the next root.
        """

        candidates = np.asarray(candidates, dtype=np.complex128).ravel()
        indices = np.full(candidates.shape, -1, dtype=np.int64)

        for index, root in enumerate(self._roots):
            pending = indices < 0
            indices[pending & self._matches(candidates, root)] = index

        pending = np.flatnonzero(indices < 0)
        while pending.size:
            root = complex(candidates[pending[0]])
            self._roots.append(root)
            claimed = self._matches(candidates[pending], root)
            # a NaN candidate cannot match itself
            claimed[0] = True
            indices[pending[claimed]] = len(self._roots) - 1
            pending = pending[~claimed]
        return indices
