"""The Newton fractal engine: owns the view, the polynomial and the pixel buffer."""

from __future__ import annotations

import logging
import time
from typing import Iterable, Union

import numpy as np
import PIL.Image

from .geometry import Rectangle, check_view, compose, view_grid
from .palette import DEFAULT_PALETTE, OPAQUE, Palette, get_palette, shade_grid
from .polynomial import Polynomial
from .registry import RootRegistry
from .solver import CPU_DEVICE, NewtonParameters, solve_grid

logger = logging.getLogger(__name__)


class FractalEngine:
    """Render Newton fractals of one polynomial into an RGBA8 buffer.

    The view is changed with :meth:`scale_view` or :meth:`set_view`; nothing is
    recomputed until :meth:`generate` is called, so several view changes can be
    batched before one render.
    """

    def __init__(
        self,
        size: tuple[int, int],
        view: Rectangle,
        coefficients: Union[Polynomial, Iterable[complex]],
        *,
        palette: Union[str, Palette] = DEFAULT_PALETTE,
        parameters: NewtonParameters = NewtonParameters(),
        alpha: int = OPAQUE,
        device: str = CPU_DEVICE,
    ):
        width, height = (int(v) for v in size)
        if width <= 0 or height <= 0:
            raise ValueError(f"image size must be positive, got {width}x{height}")
        if not 0 <= alpha <= 255:
            raise ValueError("alpha must be in [0, 255]")

        self._size = (width, height)
        self._view = check_view(view)
        self._polynomial = coefficients if isinstance(coefficients, Polynomial) else Polynomial(coefficients)
        self._palette = get_palette(palette) if isinstance(palette, str) else palette
        self.parameters = parameters
        self.alpha = alpha
        self.device = device

        self._registry = RootRegistry(parameters.tolerance)
        self._pixels = np.zeros((height, width, 4), dtype=np.uint8)
        self._pixels.setflags(write=False)

    @classmethod
    def with_random_coefficients(
        cls,
        size: tuple[int, int],
        view: Rectangle,
        degree: int,
        rng: np.random.Generator,
        **kwargs,
    ) -> "FractalEngine":
        polynomial = Polynomial.random(degree, rng)
        logger.info("random polynomial: %s", polynomial)
        return cls(size, view, polynomial, **kwargs)

    @property
    def size(self) -> tuple[int, int]:
        return self._size

    @property
    def view(self) -> Rectangle:
        return self._view

    @property
    def polynomial(self) -> Polynomial:
        return self._polynomial

    @property
    def palette(self) -> Palette:
        return self._palette

    @property
    def roots(self) -> tuple[complex, ...]:
        """Roots found by the last :meth:`generate`, in palette order."""

        return self._registry.roots

    @property
    def pixels(self) -> bytes:
        return self._pixels.tobytes()

    def as_array(self) -> np.ndarray:
        """Read-only ``(height, width, 4)`` view of the buffer."""

        return self._pixels

    def set_view(self, view: Rectangle) -> None:
        self._view = check_view(view)

    def scale_view(self, fraction: Rectangle) -> None:
        """Zoom/pan to ``fraction``, expressed relative to the current view's extent.

        Raises :class:`DegenerateViewError` and keeps the current view when the
        result would have zero area or flip orientation.
        """

        self._view = check_view(compose(self._view, fraction), reference=self._view)

    def generate(self) -> np.ndarray:
        width, height = self._size
        beginning = time.perf_counter()

        result = solve_grid(
            self._polynomial,
            view_grid(self._view, self._size),
            self.parameters,
            device=self.device,
        )

        self._registry.clear()
        indices = np.full(width * height, -1, dtype=np.int64)
        converged = result.converged.ravel()
        indices[converged] = self._registry.assign(result.roots.ravel()[converged])

        logger.debug("roots: %d us", (time.perf_counter() - beginning) * 1e6)
        beginning = time.perf_counter()

        pixels = shade_grid(
            self._palette,
            indices.reshape(height, width),
            result.iterations,
            self.parameters.max_iterations,
            self.alpha,
        )
        pixels.setflags(write=False)
        self._pixels = pixels

        logger.debug("texture: %d us", (time.perf_counter() - beginning) * 1e6)
        logger.info(
            "found %d roots, %d of %d pixels converged",
            len(self._registry), int(np.count_nonzero(converged)), width * height,
        )
        return pixels

    def to_image(self, mode: str = "RGBA") -> PIL.Image.Image:
        """Pillow image of the buffer, e.g. for saving with an image codec."""

        image = PIL.Image.fromarray(np.array(self._pixels, copy=True))
        return image if mode == "RGBA" else image.convert(mode)
