"""Public API for Newton fractal rendering."""

from .engine import FractalEngine
from .geometry import (
    DegenerateViewError,
    Rectangle,
    center_zoom,
    check_view,
    compose,
    normalize_selection,
    pixel_to_complex,
    square_selection,
    view_grid,
    zoom_about,
)
from .palette import (
    LEGACY_ALPHA,
    OPAQUE,
    PALETTES,
    Palette,
    colormap_palette,
    get_palette,
    hsv_palette,
    shade,
    shade_grid,
)
from .polynomial import Polynomial
from .registry import RootRegistry
from .solver import NewtonParameters, NewtonResult, find_root, solve_grid

__all__ = [
    "DegenerateViewError",
    "FractalEngine",
    "LEGACY_ALPHA",
    "NewtonParameters",
    "NewtonResult",
    "OPAQUE",
    "PALETTES",
    "Palette",
    "Polynomial",
    "Rectangle",
    "RootRegistry",
    "center_zoom",
    "check_view",
    "colormap_palette",
    "compose",
    "find_root",
    "get_palette",
    "hsv_palette",
    "normalize_selection",
    "pixel_to_complex",
    "shade",
    "shade_grid",
    "solve_grid",
    "square_selection",
    "view_grid",
    "zoom_about",
]
