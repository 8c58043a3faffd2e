"""View rectangles and the pixel <-> complex-plane mapping."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np


class DegenerateViewError(ValueError):
    """Raised when a view rectangle cannot be mapped onto the pixel grid."""


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned rectangle. Edges are not reordered, so width/height may be negative."""

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.left, self.top, self.right, self.bottom)


FULL_FRAME = Rectangle(0.0, 0.0, 1.0, 1.0)


def check_view(view: Rectangle, reference: Optional[Rectangle] = None) -> Rectangle:
    """Reject views that would produce NaN/Inf coordinates.

    When ``reference`` is given the orientation of ``view`` must match it, so a
    composition cannot silently flip the image.
    """

    if not all(math.isfinite(edge) for edge in view.as_tuple()):
        raise DegenerateViewError(f"view has non-finite edges: {view}")
    if view.width == 0.0 or view.height == 0.0:
        raise DegenerateViewError(f"view has zero area: {view}")
    if reference is not None:
        if (view.width > 0) != (reference.width > 0) or (view.height > 0) != (reference.height > 0):
            raise DegenerateViewError(f"view {view} is inverted relative to {reference}")
    return view


def pixel_to_complex(view: Rectangle, size: tuple[int, int], x: float, y: float) -> complex:
    width, height = size
    x_scale = view.width / width
    y_scale = view.height / height
    return complex(x * x_scale + view.left, y * y_scale + view.top)


def view_grid(view: Rectangle, size: tuple[int, int]) -> np.ndarray:
    """Complex coordinate of every pixel, shaped ``(height, width)``."""

    width, height = size
    x_scale = np.float64(view.width) / np.float64(width)
    y_scale = np.float64(view.height) / np.float64(height)
    xs = np.arange(width, dtype=np.float64) * x_scale + np.float64(view.left)
    ys = np.arange(height, dtype=np.float64) * y_scale + np.float64(view.top)
    grid = np.empty((height, width), dtype=np.complex128)
    grid.real = xs[None, :]
    grid.imag = ys[:, None]
    return grid


def compose(view: Rectangle, fraction: Rectangle) -> Rectangle:
    """Map ``fraction`` (relative to ``view``'s extent) back into ``view``'s space."""

    width = view.width
    height = view.height
    return Rectangle(
        left=view.left + fraction.left * width,
        top=view.top + fraction.top * height,
        right=view.left + fraction.right * width,
        bottom=view.top + fraction.bottom * height,
    )


def normalize_selection(selection: Rectangle, size: tuple[int, int]) -> Rectangle:
    """Express a pixel-space selection as fractions of the viewport."""

    width, height = size
    return Rectangle(
        left=selection.left / width,
        top=selection.top / height,
        right=selection.right / width,
        bottom=selection.bottom / height,
    )


def square_selection(anchor: tuple[float, float], cursor: tuple[float, float]) -> Rectangle:
    """Square drag-selection centred on ``anchor`` reaching out to ``cursor``."""

    cx, cy = anchor
    offset = max(abs(cursor[0] - cx), abs(cursor[1] - cy))
    return Rectangle(cx - offset, cy - offset, cx + offset, cy + offset)


def zoom_about(x: float, y: float, amount: float, size: tuple[int, int]) -> Rectangle:
    """Fraction rectangle zooming by ``amount`` towards pixel ``(x, y)``.

    Positive amounts zoom in, negative amounts zoom out. Every edge moves
    ``amount`` of the way towards the point, so the point stays fixed on screen.
    """

    px, py = x / size[0], y / size[1]
    return Rectangle(
        left=amount * px,
        top=amount * py,
        right=amount * px + (1.0 - amount),
        bottom=amount * py + (1.0 - amount),
    )


def center_zoom(factor: float) -> Rectangle:
    """Fraction rectangle that scales the view by ``factor`` around its centre."""

    margin = (1.0 - factor) / 2.0
    return Rectangle(margin, margin, 1.0 - margin, 1.0 - margin)
