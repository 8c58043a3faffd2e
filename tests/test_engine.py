import numpy as np
import pytest

from newton import (
    DegenerateViewError,
    FractalEngine,
    LEGACY_ALPHA,
    NewtonParameters,
    Polynomial,
    Rectangle,
    RootRegistry,
    find_root,
    get_palette,
    hsv_palette,
    pixel_to_complex,
    shade,
)

VIEW = Rectangle(-2.0, -2.0, 2.0, 2.0)
CUBE = [-1, 0, 0, 1]
QUARTIC = [
    complex(-0.2796455185190574, -8.619337302126723),
    complex(7.591418031049244, 4.167755685364256),
    complex(-9.121138413779903, -6.79613957297315),
    complex(9.197246762941262, 8.190568781916397),
    complex(5.366325985514713, -1.1587722090698378),
]


def make_engine(size=(24, 16), view=VIEW, coefficients=CUBE, **kwargs):
    return FractalEngine(size, view, coefficients, **kwargs)


@pytest.mark.parametrize("size", [(1, 1), (24, 16), (7, 13)])
def test_buffer_size(size):
    engine = make_engine(size)
    assert len(engine.pixels) == size[0] * size[1] * 4
    engine.generate()
    assert len(engine.pixels) == size[0] * size[1] * 4
    assert engine.as_array().shape == (size[1], size[0], 4)


def test_generate_is_idempotent():
    engine = make_engine()
    engine.generate()
    first = engine.pixels
    engine.generate()
    assert engine.pixels == first


def test_root_indices_are_deterministic():
    first = make_engine()
    second = make_engine()
    first.generate()
    second.generate()
    assert first.roots == second.roots
    assert first.pixels == second.pixels


def test_finds_the_three_cube_roots_in_scan_order():
    engine = make_engine()
    engine.generate()
    roots = engine.roots
    assert len(roots) == 3
    expected = [np.exp(2j * np.pi * k / 3) for k in range(3)]
    for root in roots:
        assert min(abs(root - e) for e in expected) < 1e-3


def sequential_render(engine):
    """Pixel-by-pixel row-major scan with the scalar root finder and registry."""

    width, height = engine.size
    registry = RootRegistry(engine.parameters.tolerance)
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    for y in range(height):
        for x in range(width):
            start = pixel_to_complex(engine.view, engine.size, x, y)
            outcome = find_root(engine.polynomial, start, engine.parameters)
            if outcome is not None:
                root, iterations = outcome
                outcome = (registry.register(root), iterations)
            pixels[y, x] = shade(engine.palette, outcome, engine.parameters.max_iterations, engine.alpha)
    return pixels, registry.roots


@pytest.mark.parametrize(
    "coefficients, view, size",
    [
        (CUBE, VIEW, (12, 8)),
        (QUARTIC, Rectangle(-5.0, -5.0, 5.0, 5.0), (80, 80)),
    ],
)
def test_generate_matches_sequential_scan(coefficients, view, size):
    # both views cross basin boundaries, where iteration counts are most fragile
    engine = make_engine(size, view=view, coefficients=coefficients)
    pixels = engine.generate()
    expected, roots = sequential_render(engine)
    assert engine.roots == roots
    mismatches = np.argwhere(np.any(pixels != expected, axis=-1))
    assert mismatches.tolist() == []


def test_buffer_is_read_only():
    engine = make_engine()
    pixels = engine.generate()
    with pytest.raises(ValueError):
        pixels[0, 0, 0] = 1
    assert isinstance(engine.pixels, bytes)


def test_opaque_by_default_and_legacy_alpha_on_request():
    engine = make_engine()
    engine.generate()
    assert np.all(engine.as_array()[..., 3] == 255)

    legacy = make_engine(alpha=LEGACY_ALPHA)
    legacy.generate()
    assert np.all(legacy.as_array()[..., 3] == 1)


def test_far_away_view_renders_black():
    # the finite difference vanishes this far out, so nothing converges
    engine = make_engine((6, 4), view=Rectangle(1e20, 1e20, 1.0001e20, 1.0001e20), coefficients=[-1, 0, 1])
    engine.generate()
    assert np.all(engine.as_array()[..., :3] == 0)
    assert engine.roots == ()


def test_scale_view_composes_without_rendering():
    engine = make_engine()
    before = engine.pixels
    engine.scale_view(Rectangle(0.25, 0.25, 0.75, 0.75))
    assert engine.view == Rectangle(-1.0, -1.0, 1.0, 1.0)
    engine.scale_view(Rectangle(0.5, 0.0, 1.0, 0.5))
    assert engine.view == Rectangle(0.0, -1.0, 1.0, 0.0)
    assert engine.pixels == before


def test_scale_view_rejects_degenerate_and_keeps_view():
    engine = make_engine()
    with pytest.raises(DegenerateViewError):
        engine.scale_view(Rectangle(0.5, 0.5, 0.5, 0.75))
    with pytest.raises(DegenerateViewError):
        engine.scale_view(Rectangle(0.75, 0.0, 0.25, 1.0))
    assert engine.view == VIEW


def test_set_view_replaces_and_guards():
    engine = make_engine()
    engine.set_view(Rectangle(1.0, 1.0, 3.0, 2.0))
    assert engine.view == Rectangle(1.0, 1.0, 3.0, 2.0)
    with pytest.raises(DegenerateViewError):
        engine.set_view(Rectangle(1.0, 1.0, 1.0, 2.0))
    assert engine.view == Rectangle(1.0, 1.0, 3.0, 2.0)


def test_view_change_alters_render():
    engine = make_engine()
    engine.generate()
    before = engine.pixels
    engine.scale_view(Rectangle(0.6, 0.3, 0.9, 0.6))
    engine.generate()
    assert engine.pixels != before


@pytest.mark.parametrize("size", [(0, 10), (10, 0), (-3, 4)])
def test_rejects_empty_image(size):
    with pytest.raises(ValueError):
        make_engine(size)


def test_rejects_constant_polynomial():
    with pytest.raises(ValueError):
        make_engine(coefficients=[4])


def test_rejects_degenerate_initial_view():
    with pytest.raises(DegenerateViewError):
        make_engine(view=Rectangle(0.0, 0.0, 0.0, 0.0))


def test_rejects_bad_alpha():
    with pytest.raises(ValueError):
        make_engine(alpha=300)


def test_with_random_coefficients_is_reproducible():
    first = FractalEngine.with_random_coefficients((8, 8), VIEW, 3, np.random.default_rng(11))
    second = FractalEngine.with_random_coefficients((8, 8), VIEW, 3, np.random.default_rng(11))
    assert first.polynomial == second.polynomial
    assert first.polynomial.degree == 3
    first.generate()
    second.generate()
    assert first.pixels == second.pixels


def test_palette_selection():
    assert make_engine(palette="candymelon").palette == get_palette("candymelon")
    custom = hsv_palette(3)
    assert make_engine(palette=custom).palette is custom
    with pytest.raises(KeyError):
        make_engine(palette="plaid")


def test_more_roots_than_colors_cycles_palette():
    # z^6 - 1 has six roots, two more than the palette has colors
    size = (32, 32)
    engine = make_engine(size, coefficients=[-1, 0, 0, 0, 0, 0, 1], palette="forgot")
    engine.generate()
    assert len(engine.roots) == 6

    fifth = engine.roots[4]
    y, x = min(
        ((y, x) for y in range(size[1]) for x in range(size[0])),
        key=lambda p: abs(pixel_to_complex(VIEW, size, p[1], p[0]) - fifth),
    )
    _, iterations = find_root(engine.polynomial, pixel_to_complex(VIEW, size, x, y))
    assert tuple(engine.as_array()[y, x]) == shade(get_palette("forgot"), (0, iterations), 100)


def test_custom_parameters():
    engine = make_engine(parameters=NewtonParameters(max_iterations=2))
    engine.generate()
    # two steps from the corners of the view are not enough
    assert tuple(engine.as_array()[0, 0, :3]) == (0, 0, 0)


def test_to_image():
    engine = make_engine((10, 6))
    engine.generate()
    image = engine.to_image()
    assert image.size == (10, 6)
    assert image.mode == "RGBA"
    assert engine.to_image("RGB").mode == "RGB"
    assert Polynomial(CUBE) == engine.polynomial
