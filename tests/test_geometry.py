import math

import numpy as np
import pytest

from newton.geometry import (
    FULL_FRAME,
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

VIEW = Rectangle(-5.0, -5.0, 5.0, 5.0)


def assert_rect_close(actual: Rectangle, expected: Rectangle, tol: float = 1e-12) -> None:
    for a, e in zip(actual.as_tuple(), expected.as_tuple()):
        assert math.isclose(a, e, rel_tol=tol, abs_tol=tol), (actual, expected)


def test_pixel_to_complex_maps_corners():
    assert pixel_to_complex(VIEW, (800, 800), 0, 0) == complex(-5, -5)
    assert pixel_to_complex(VIEW, (800, 800), 400, 400) == 0j
    assert pixel_to_complex(VIEW, (800, 400), 80, 40) == complex(-4, -4)


def test_view_grid_matches_pixel_mapping():
    view = Rectangle(-1.5, 2.0, 0.5, -1.0)
    grid = view_grid(view, (5, 3))
    assert grid.shape == (3, 5)
    for (y, x), value in np.ndenumerate(grid):
        assert value == pixel_to_complex(view, (5, 3), x, y)


def test_compose_zooms_into_fraction():
    zoomed = compose(VIEW, Rectangle(0.25, 0.5, 0.75, 1.0))
    assert zoomed == Rectangle(-2.5, 0.0, 2.5, 5.0)


def test_compose_allows_panning_outside_frame():
    panned = compose(VIEW, Rectangle(1.0, -0.5, 2.0, 0.5))
    assert panned == Rectangle(5.0, -10.0, 15.0, 0.0)


def test_compose_with_full_frame_is_identity():
    assert compose(VIEW, FULL_FRAME) == VIEW


def test_sequential_composition_equals_composed_fraction():
    first = Rectangle(0.1, 0.2, 0.6, 0.9)
    second = Rectangle(-0.3, 0.25, 0.45, 1.4)

    sequential = compose(compose(VIEW, first), second)
    combined = compose(VIEW, compose(first, second))

    assert_rect_close(sequential, combined)


@pytest.mark.parametrize(
    "view",
    [
        Rectangle(0.0, 0.0, 0.0, 1.0),
        Rectangle(0.0, 2.0, 1.0, 2.0),
        Rectangle(0.0, 0.0, math.inf, 1.0),
        Rectangle(math.nan, 0.0, 1.0, 1.0),
    ],
)
def test_check_view_rejects_degenerate(view):
    with pytest.raises(DegenerateViewError):
        check_view(view)


def test_check_view_allows_inverted_without_reference():
    flipped = Rectangle(5.0, 5.0, -5.0, -5.0)
    assert check_view(flipped) is flipped


def test_check_view_rejects_orientation_flip():
    with pytest.raises(DegenerateViewError):
        check_view(Rectangle(1.0, 0.0, 0.0, 1.0), reference=VIEW)
    assert check_view(Rectangle(0.0, 0.0, 1.0, 1.0), reference=VIEW)


def test_degenerate_view_error_is_value_error():
    assert issubclass(DegenerateViewError, ValueError)


def test_normalize_selection():
    fraction = normalize_selection(Rectangle(200.0, 100.0, 600.0, 300.0), (800, 400))
    assert fraction == Rectangle(0.25, 0.25, 0.75, 0.75)


def test_square_selection_uses_largest_offset():
    assert square_selection((100.0, 100.0), (130.0, 90.0)) == Rectangle(70.0, 70.0, 130.0, 130.0)
    assert square_selection((10.0, 10.0), (10.0, 10.0)) == Rectangle(10.0, 10.0, 10.0, 10.0)


def test_zoom_about_keeps_point_fixed():
    size = (800, 600)
    x, y = 200.0, 450.0
    before = pixel_to_complex(VIEW, size, x, y)
    zoomed = compose(VIEW, zoom_about(x, y, 0.15, size))
    after = pixel_to_complex(zoomed, size, x, y)
    assert abs(before - after) < 1e-12
    assert math.isclose(zoomed.width, VIEW.width * 0.85)


def test_zoom_about_negative_amount_zooms_out():
    zoomed = compose(VIEW, zoom_about(400, 400, -0.15, (800, 800)))
    assert math.isclose(zoomed.width, VIEW.width * 1.15)


def test_center_zoom():
    assert_rect_close(compose(VIEW, center_zoom(0.5)), Rectangle(-2.5, -2.5, 2.5, 2.5))
