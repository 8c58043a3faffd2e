"""Root palettes and the convergence-speed shading of pixels."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
from matplotlib import colormaps as _mpl_colormaps
from matplotlib.colors import hsv_to_rgb

OPAQUE = 255
# Alpha written by older renders; matches their output byte for byte.
LEGACY_ALPHA = 1

DECAY_RATE = 4.0

RGB = tuple[int, int, int]


@dataclass(frozen=True)
class Palette:
    """Named, ordered list of RGB colors, one per discovered root."""

    name: str
    colors: tuple[RGB, ...]

    def __post_init__(self) -> None:
        if not self.colors:
            raise ValueError(f"palette '{self.name}' has no colors")
        for color in self.colors:
            if len(color) != 3 or not all(0 <= channel <= 255 for channel in color):
                raise ValueError(f"palette '{self.name}' has an invalid color {color!r}")

    def __len__(self) -> int:
        return len(self.colors)

    def color(self, root_index: int) -> RGB:
        """Color for ``root_index``; indices past the end wrap around."""

        return self.colors[root_index % len(self.colors)]

    def as_array(self) -> np.ndarray:
        return np.array(self.colors, dtype=np.float64)


def _hex(value: str) -> RGB:
    value = value.lstrip("#")
    return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))


def _palette(name: str, *colors: str) -> Palette:
    return Palette(name, tuple(_hex(c) for c in colors))


PALETTES: tuple[Palette, ...] = (
    _palette("forgot", "fec418", "06b6ef", "815ba4", "5bc4bf"),
    _palette("dusty", "cf6a4c", "8f9d6a", "7587a6", "9b859d"),
    _palette("yellow-dusty", "cf6a4c", "f9ee98", "7587a6", "9b859d"),
    _palette("red-sinister", "d73737", "516aec", "b854d4", "7b59c0"),
    _palette("grape-popsicle", "e58bf2", "6adbde", "9d83f0", "9b859d"),
    _palette("yellow-dusty-5", "cf6a4c", "f9ee98", "7587a6", "9b859d", "5f5a60"),
    _palette("candymelon", "ffb33c", "fae670", "cceb61", "ff9a81", "8de987"),
)

DEFAULT_PALETTE = "yellow-dusty"


def palette_names() -> list[str]:
    return [palette.name for palette in PALETTES]


def get_palette(name: str) -> Palette:
    for palette in PALETTES:
        if palette.name == name:
            return palette
    raise KeyError(f"Unknown palette '{name}'. Valid choices: {', '.join(palette_names())}.")


def _to_rgb(values: np.ndarray) -> tuple[RGB, ...]:
    rgb = np.rint(np.clip(values, 0.0, 1.0) * 255).astype(np.uint8)
    return tuple(tuple(int(channel) for channel in row) for row in rgb)


def hsv_palette(count: int, init_angle: float = 0.4, spread: float = 0.4, saturation: float = 0.8) -> Palette:
    """Evenly spaced hues starting at ``init_angle`` and covering ``spread`` of the wheel."""

    if count <= 0:
        raise ValueError("count must be positive")
    hues = np.mod(spread * np.arange(count, dtype=np.float64) / count + init_angle, 1.0)
    hsv = np.stack((hues, np.full(count, saturation), np.ones(count)), axis=-1)
    return Palette(f"hsv-{count}", _to_rgb(hsv_to_rgb(hsv)))


def colormap_palette(name: str, count: int) -> Palette:
    """Sample ``count`` colors from a matplotlib colormap, e.g. "viridis"."""

    if count <= 0:
        raise ValueError("count must be positive")
    cmap = _mpl_colormaps[name]
    samples = np.linspace(0.0, 1.0, count) if count > 1 else np.array([0.5])
    return Palette(name, _to_rgb(cmap(samples)[:, :3]))


def decay(iterations, max_iterations: int):
    """Brightness factor in ``(0, 1]``; 1 for a point that converged on the first step."""

    return np.exp(-DECAY_RATE * np.asarray(iterations, dtype=np.float64) / max_iterations)


def shade(
    palette: Palette,
    outcome: Optional[tuple[int, int]],
    max_iterations: int,
    alpha: int = OPAQUE,
) -> tuple[int, int, int, int]:
    """RGBA for one pixel: black when it never converged, else the root color dimmed by speed."""

    if outcome is None:
        return (0, 0, 0, alpha)
    root_index, iterations = outcome
    dist = float(decay(iterations, max_iterations))
    r, g, b = palette.color(root_index)
    return (round(dist * r), round(dist * g), round(dist * b), alpha)


def shade_grid(
    palette: Palette,
    indices: np.ndarray,
    iterations: np.ndarray,
    max_iterations: int,
    alpha: int = OPAQUE,
) -> np.ndarray:
    """Vectorised :func:`shade`; a negative root index marks a non-converged pixel."""

    indices = np.asarray(indices)
    converged = indices >= 0
    colors = palette.as_array()[np.where(converged, indices, 0) % len(palette)]
    dist = np.where(converged, decay(np.where(converged, iterations, 0), max_iterations), 0.0)

    rgba = np.empty(indices.shape + (4,), dtype=np.uint8)
    rgba[..., :3] = np.rint(dist[..., None] * colors).astype(np.uint8)
    rgba[..., 3] = alpha
    return rgba
