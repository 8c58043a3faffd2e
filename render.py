import logging
import os
import sys
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

_VERBOSE_FLAGS = {"--verbose", "-v"}
_cli_verbose = any(arg in _VERBOSE_FLAGS for arg in sys.argv[1:])
_env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
_suppress_messages = (not _cli_verbose) and _env_log_level != "0"

if _suppress_messages and _env_log_level is None:
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

if _suppress_messages:
    warnings.filterwarnings(
        "ignore",
        message=r"Protobuf gencode version .* is exactly one major version older than the runtime version .*",
        category=UserWarning,
        module="google.protobuf",
    )

VERBOSE = _cli_verbose


def log(message, *args, **kwargs):
    if VERBOSE:
        print(message, *args, **kwargs)


import numpy as np
import tensorflow as tf

if _suppress_messages:
    tf.get_logger().setLevel("ERROR")

# Imports for output
import PIL.Image
import imageio

from newton import (
    DegenerateViewError,
    FractalEngine,
    LEGACY_ALPHA,
    NewtonParameters,
    OPAQUE,
    PALETTES,
    Rectangle,
    center_zoom,
    colormap_palette,
    get_palette,
    hsv_palette,
    normalize_selection,
    square_selection,
    zoom_about,
)

from argparse import ArgumentParser

DEFAULT_COEFFICIENTS = (
    complex(-0.2796455185190574, -8.619337302126723),
    complex(7.591418031049244, 4.167755685364256),
    complex(-9.121138413779903, -6.79613957297315),
    complex(9.197246762941262, 8.190568781916397),
    complex(5.366325985514713, -1.1587722090698378),
)


@dataclass
class OutputConfig:
    modes: tuple[str, ...]
    gif_path: Path | None
    image_path: Path | None
    frame_dir: Path | None
    image_format: str


def build_parser():
    parser = ArgumentParser(description="Render Newton fractals of complex polynomials.")

    parser.add_argument('--width', type=int,
                        dest='width', help='width of the image in pixels',
                        metavar='WIDTH', default=800)

    parser.add_argument('--height', type=int,
                        dest='height', help='height of the image in pixels',
                        metavar='HEIGHT', default=800)

    parser.add_argument('--view', type=float, nargs=4, dest='view',
                        metavar=('LEFT', 'TOP', 'RIGHT', 'BOTTOM'), default=[-5.0, -5.0, 5.0, 5.0],
                        help='region of the complex plane mapped onto the image')

    parser.add_argument('--coefficient', type=complex, action='append', dest='coefficients',
                        metavar='COEFFICIENT',
                        help='polynomial coefficient, constant term first (e.g. "-1" then "0" then "1" for z^2-1). May be repeated.')

    parser.add_argument('--random-degree', type=int, dest='random_degree', metavar='DEGREE',
                        help='use a polynomial of this degree with random coefficients instead of --coefficient')

    parser.add_argument('--seed', type=int, dest='seed', default=None,
                        help='seed for --random-degree, for reproducible polynomials')

    parser.add_argument('--palette', type=str, dest='palette', default='yellow-dusty',
                        choices=[palette.name for palette in PALETTES],
                        help='named root palette')

    parser.add_argument('--colormap', type=str, dest='colormap', metavar='COLORMAP',
                        help='sample the root palette from a matplotlib colormap (e.g. "viridis") instead of --palette')

    parser.add_argument('--hsv', action='store_true', dest='hsv',
                        help='use evenly spaced hues as the root palette instead of --palette')

    parser.add_argument('--colors', type=int, dest='colors', default=None,
                        help='number of colors for --colormap or --hsv (default: polynomial degree)')

    parser.add_argument('--max-iterations', type=int,
                        dest='max_iterations', help='maximum number of Newton steps per pixel',
                        metavar='MAX_ITERATIONS', default=100)

    parser.add_argument('--tolerance', type=float, dest='tolerance', default=1e-4,
                        help='step size below which a pixel is considered converged')

    parser.add_argument('--legacy-alpha', action='store_true', dest='legacy_alpha',
                        help=f'write alpha={LEGACY_ALPHA} to match older renders byte for byte instead of full opacity')

    parser.add_argument('--scale', type=float, nargs=4, action='append', dest='scales',
                        metavar=('LEFT', 'TOP', 'RIGHT', 'BOTTOM'),
                        help='zoom/pan into a rectangle given as fractions of the current view. May be repeated.')

    parser.add_argument('--zoom-about', type=float, nargs=3, action='append', dest='zoom_points',
                        metavar=('X', 'Y', 'AMOUNT'),
                        help='zoom by AMOUNT towards pixel (X, Y), as one mouse-wheel step does. Applied after --drag. May be repeated.')

    parser.add_argument('--select', type=float, nargs=4, action='append', dest='selections',
                        metavar=('X0', 'Y0', 'X1', 'Y1'),
                        help='zoom into a rectangle given in pixels of the current view. Applied after --scale. May be repeated.')

    parser.add_argument('--drag', type=float, nargs=4, action='append', dest='drags',
                        metavar=('AX', 'AY', 'CX', 'CY'),
                        help='zoom into the square centred on pixel (AX, AY) reaching out to pixel (CX, CY), as a mouse drag does. Applied after --select. May be repeated.')

    parser.add_argument('--frames', type=int,
                        dest='frames', help='number of frames to generate',
                        metavar='FRAMES', default=1)

    parser.add_argument('--zoom-factor', type=float,
                        dest='zoom_factor', help='the factor by which to multiply the view size each frame. Choose < 1 for zoom in, >1 for zoom out',
                        metavar='ZOOM_FACTOR', default=0.8)

    parser.add_argument('--mode', dest='modes', action='append', metavar='MODE',
                        help='Output modes to generate. May be repeated. Choices: image, frames, gif.')

    parser.add_argument('--output', dest='output', type=str,
                        help='Destination for single-file outputs (gif/image) or container directory when both are requested.')

    parser.add_argument('--frame-dir', dest='frame_dir', type=str,
                        help='Directory in which to store frame sequences.')

    parser.add_argument('--format', type=str,
                        dest='format', help='file format for image-based outputs. Can be any extension supported by Pillow. Default: "png".',
                        metavar='FORMAT', default='png')

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging, including TensorFlow diagnostics and render timings.')

    return parser


def resolve_output_config(opt, parser: ArgumentParser) -> OutputConfig:
    valid_modes = {"image", "frames", "gif"}
    modes = list(opt.modes or ["image"])

    normalized_modes: list[str] = []
    for mode in modes:
        if mode not in valid_modes:
            parser.error(f"Unknown output mode '{mode}'. Valid choices: {', '.join(sorted(valid_modes))}.")
        if mode not in normalized_modes:
            normalized_modes.append(mode)

    modes_tuple = tuple(normalized_modes)
    modes_set = set(modes_tuple)

    frame_dir_path: Path | None = None
    if "frames" in modes_set:
        frame_dir_path = Path(opt.frame_dir or "./frames").expanduser().resolve()
    elif opt.frame_dir is not None:
        parser.error("--frame-dir is only valid with the frames mode.")

    image_format = (getattr(opt, "format", "png") or "png").lower().lstrip(".")
    if not image_format:
        image_format = "png"

    file_modes = [mode for mode in modes_tuple if mode in {"gif", "image"}]
    output_arg = getattr(opt, "output", None)
    gif_path: Path | None = None
    image_path: Path | None = None

    if not file_modes:
        if output_arg:
            parser.error("--output is only valid when gif or image modes are requested.")
    elif len(file_modes) == 1:
        mode = file_modes[0]
        if output_arg:
            output_path = Path(output_arg).expanduser()
            if output_arg.endswith(tuple(filter(None, {os.sep, os.altsep}))):
                parser.error("--output must be a file path when a single file-based mode is selected.")
            if output_path.is_dir():
                parser.error("--output must point to a file, not a directory, when a single file mode is active.")
            if mode == "gif":
                if output_path.suffix:
                    if output_path.suffix.lower() != ".gif":
                        parser.error("GIF outputs must end with .gif.")
                else:
                    output_path = output_path.with_suffix(".gif")
                gif_path = output_path.resolve()
            else:
                expected_suffix = f".{image_format}"
                if output_path.suffix:
                    if output_path.suffix.lower() != expected_suffix:
                        parser.error(f"--output extension {output_path.suffix} does not match --format {image_format}.")
                else:
                    output_path = output_path.with_suffix(expected_suffix)
                image_path = output_path.resolve()
        elif mode == "gif":
            gif_path = Path("newton.gif").resolve()
        else:
            image_path = Path(f"newton.{image_format}").resolve()
    else:
        base_dir = Path(output_arg).expanduser() if output_arg else Path.cwd()
        if base_dir.exists() and not base_dir.is_dir():
            parser.error("--output must be a directory when both gif and image modes are active.")
        gif_path = (base_dir / "newton.gif").resolve()
        image_path = (base_dir / f"newton.{image_format}").resolve()

    return OutputConfig(
        modes=modes_tuple,
        gif_path=gif_path,
        image_path=image_path,
        frame_dir=frame_dir_path,
        image_format=image_format,
    )


def _pil_format_name(ext: str) -> str:
    upper = ext.upper()
    if upper == "JPG":
        return "JPEG"
    if upper == "TIF":
        return "TIFF"
    return upper


def _storable(image: PIL.Image.Image, image_format: str) -> PIL.Image.Image:
    # JPEG and BMP have no alpha channel
    if _pil_format_name(image_format) in {"JPEG", "BMP"}:
        return image.convert("RGB")
    return image


def write_single_image(image: PIL.Image.Image, output_path: Path, image_format: str) -> None:
    """Write a single image to ``output_path`` using the provided format."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    _storable(image, image_format).save(str(output_path), format=_pil_format_name(image_format))


def write_frame_sequence(
    image: PIL.Image.Image,
    frame_dir: Path,
    index: int,
    digits: int,
    image_format: str,
) -> Path:
    """Persist a frame in a numbered sequence inside ``frame_dir``."""

    frame_path = frame_dir / f"frame{index:0{digits}d}.{image_format}"
    frame_dir.mkdir(parents=True, exist_ok=True)
    _storable(image, image_format).save(str(frame_path), format=_pil_format_name(image_format))
    return frame_path


def write_gif(writer: Any, frame_array: np.ndarray) -> None:
    """Append ``frame_array`` to an active GIF writer."""

    writer.append_data(frame_array)


@dataclass
class OutputWriters:
    config: OutputConfig
    frame_digits: int

    def __post_init__(self) -> None:
        self._gif_writer = None
        if "gif" in self.config.modes and self.config.gif_path is not None:
            self.config.gif_path.parent.mkdir(parents=True, exist_ok=True)
            self._gif_writer = imageio.get_writer(str(self.config.gif_path), mode='I', duration=0.1, loop=0)

    def write_frame(self, frame_index: int, engine: FractalEngine) -> None:
        if self._gif_writer is not None:
            write_gif(self._gif_writer, np.array(engine.as_array()[..., :3], copy=True))
        if "frames" in self.config.modes and self.config.frame_dir is not None:
            path = write_frame_sequence(
                engine.to_image(),
                self.config.frame_dir,
                frame_index,
                self.frame_digits,
                self.config.image_format,
            )
            log(f"wrote {path}")

    def finalize(self, engine: FractalEngine) -> None:
        if "image" in self.config.modes and self.config.image_path is not None:
            write_single_image(engine.to_image(), self.config.image_path, self.config.image_format)
            log(f"wrote {self.config.image_path}")

    def close(self) -> None:
        if self._gif_writer is not None:
            self._gif_writer.close()
            self._gif_writer = None


def build_engine(opt, parser: ArgumentParser) -> FractalEngine:
    if opt.coefficients and opt.random_degree is not None:
        parser.error("--coefficient and --random-degree cannot be combined.")
    if opt.colormap and opt.hsv:
        parser.error("--colormap and --hsv cannot be combined.")
    if opt.colors is not None and not (opt.colormap or opt.hsv):
        parser.error("--colors requires --colormap or --hsv.")

    coefficients = opt.coefficients or DEFAULT_COEFFICIENTS
    degree = opt.random_degree if opt.random_degree is not None else len(coefficients) - 1
    colors = opt.colors if opt.colors is not None else max(degree, 1)

    try:
        if opt.colormap:
            palette = colormap_palette(opt.colormap, colors)
        elif opt.hsv:
            palette = hsv_palette(colors)
        else:
            palette = get_palette(opt.palette)

        size = (opt.width, opt.height)
        view = Rectangle(*opt.view)
        kwargs = dict(
            palette=palette,
            parameters=NewtonParameters(max_iterations=opt.max_iterations, tolerance=opt.tolerance),
            alpha=LEGACY_ALPHA if opt.legacy_alpha else OPAQUE,
        )

        if opt.random_degree is not None:
            rng = np.random.default_rng(opt.seed)
            engine = FractalEngine.with_random_coefficients(size, view, opt.random_degree, rng, **kwargs)
        else:
            engine = FractalEngine(size, view, coefficients, **kwargs)
    except KeyError:
        parser.error(f"Unknown colormap '{opt.colormap}'.")
    except ValueError as exc:
        parser.error(str(exc))

    log(f"polynomial: {engine.polynomial}")

    try:
        for fraction in opt.scales or []:
            engine.scale_view(Rectangle(*fraction))
        for selection in opt.selections or []:
            engine.scale_view(normalize_selection(Rectangle(*selection), engine.size))
        for ax, ay, cx, cy in opt.drags or []:
            engine.scale_view(normalize_selection(square_selection((ax, ay), (cx, cy)), engine.size))
        for x, y, amount in opt.zoom_points or []:
            engine.scale_view(zoom_about(x, y, amount, engine.size))
    except DegenerateViewError as exc:
        parser.error(str(exc))

    return engine


def main(argv=None):
    parser = build_parser()
    opt = parser.parse_args(argv)

    global VERBOSE
    VERBOSE = bool(opt.verbose)
    if VERBOSE:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    if opt.frames <= 0:
        parser.error("--frames must be positive.")
    if opt.zoom_factor <= 0:
        parser.error("--zoom-factor must be positive.")

    output_config = resolve_output_config(opt, parser)
    engine = build_engine(opt, parser)

    frame_digits = max(3, len(str(max(opt.frames - 1, 0))))
    writers = OutputWriters(output_config, frame_digits=frame_digits)

    try:
        for i in range(opt.frames):
            print("frame {0} out of {1}".format(i, opt.frames), end='\r')
            if i > 0:
                try:
                    engine.scale_view(center_zoom(opt.zoom_factor))
                except DegenerateViewError as exc:
                    print(f"\nstopping after {i} frames: {exc}")
                    break
            engine.generate()
            log(f"view: {engine.view}, roots: {len(engine.roots)}")
            writers.write_frame(i, engine)
    finally:
        writers.close()

    writers.finalize(engine)
    return engine


if __name__ == '__main__':
    main()
