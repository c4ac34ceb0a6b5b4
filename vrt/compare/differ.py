"""
Pixel differ

Compares two RGBA screenshots with a perceptual (YIQ) color distance and
optional anti-aliasing detection, producing a diff image that highlights the
changed pixels. Images of different sizes are never compared pixel by pixel;
the whole canvas counts as changed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageChops, UnidentifiedImageError

from vrt.exceptions import ImageDecodeError
from vrt.models.config import DiffOptions

logger = logging.getLogger(__name__)

# Maximum possible value of the YIQ squared difference
MAX_YIQ_DELTA = 35215

SIZE_MISMATCH_COLOR = (255, 0, 255, 255)
DIFF_COLOR = (255, 0, 0, 255)
AA_COLOR = (255, 255, 0, 255)
FADE_ALPHA = 0.1

Pixel = tuple[int, int, int, int]


@dataclass
class DiffResult:
    """Result of comparing two images"""

    diff_pixels: int
    total_pixels: int
    diff_percentage: float  # 0.0 to 100.0
    diff_image: Image.Image | None = None  # only set when diff_pixels > 0


def load_image(path: str | Path) -> Image.Image:
    """Decode an image file into RGBA. Raises ImageDecodeError on failure."""
    try:
        with Image.open(path) as img:
            img.load()
            return img.convert("RGBA")
    except (OSError, UnidentifiedImageError, ValueError) as e:
        raise ImageDecodeError(str(path), str(e)) from e


def diff_images(baseline: Image.Image, current: Image.Image, options: DiffOptions | None = None) -> DiffResult:
    """Compare two decoded images."""
    options = options or DiffOptions()
    baseline = baseline.convert("RGBA")
    current = current.convert("RGBA")

    if baseline.size != current.size:
        return _size_mismatch(baseline, current)

    width, height = baseline.size
    total_pixels = width * height
    if total_pixels == 0:
        return DiffResult(diff_pixels=0, total_pixels=0, diff_percentage=0.0)

    # Pixels outside the bounding box of raw differences are byte-identical
    bbox = ImageChops.difference(baseline, current).getbbox(alpha_only=False)
    if bbox is None:
        return DiffResult(diff_pixels=0, total_pixels=total_pixels, diff_percentage=0.0)

    output = _faded_background(baseline)
    out = output.load()
    img1 = baseline.load()
    img2 = current.load()

    max_delta = MAX_YIQ_DELTA * options.pixel_threshold * options.pixel_threshold
    diff_count = 0
    left, top, right, bottom = bbox

    for y in range(top, bottom):
        for x in range(left, right):
            delta = color_delta(img1[x, y], img2[x, y])
            if abs(delta) <= max_delta:
                continue
            if not options.include_anti_aliasing and (
                is_antialiased(img1, x, y, width, height, img2)
                or is_antialiased(img2, x, y, width, height, img1)
            ):
                out[x, y] = AA_COLOR
            else:
                out[x, y] = DIFF_COLOR
                diff_count += 1

    diff_percentage = diff_count / total_pixels * 100
    logger.debug("Pixel diff: %d/%d (%.3f%%)", diff_count, total_pixels, diff_percentage)

    return DiffResult(
        diff_pixels=diff_count,
        total_pixels=total_pixels,
        diff_percentage=diff_percentage,
        diff_image=output if diff_count > 0 else None,
    )


def compare_files(
    baseline_path: str | Path,
    current_path: str | Path,
    diff_path: str | Path,
    options: DiffOptions | None = None,
) -> DiffResult:
    """Compare two image files, writing the diff PNG only when pixels differ."""
    result = diff_images(load_image(baseline_path), load_image(current_path), options)
    if result.diff_image is not None:
        diff_path = Path(diff_path)
        diff_path.parent.mkdir(parents=True, exist_ok=True)
        result.diff_image.save(diff_path, "PNG")
        logger.debug("Saved diff image to: %s", diff_path)
    return result


def _size_mismatch(baseline: Image.Image, current: Image.Image) -> DiffResult:
    (w1, h1), (w2, h2) = baseline.size, current.size
    logger.warning("Image size mismatch: baseline=%dx%d, current=%dx%d", w1, h1, w2, h2)
    total_pixels = max(w1 * h1, w2 * h2)
    canvas = Image.new("RGBA", (max(w1, w2), max(h1, h2)), SIZE_MISMATCH_COLOR)
    return DiffResult(
        diff_pixels=total_pixels,
        total_pixels=total_pixels,
        diff_percentage=100.0,
        diff_image=canvas,
    )


def _faded_background(img: Image.Image) -> Image.Image:
    """Grayscale copy of the baseline blended towards white."""
    gray = img.convert("L").convert("RGBA")
    white = Image.new("RGBA", img.size, (255, 255, 255, 255))
    return Image.blend(white, gray, FADE_ALPHA)


# ----------------------------------------------------------------------
# Perceptual color distance
# ----------------------------------------------------------------------

def _blend(c: float, a: float) -> float:
    return 255 + (c - 255) * a


def _rgb2y(r: float, g: float, b: float) -> float:
    return r * 0.29889531 + g * 0.58662247 + b * 0.11448223


def _rgb2i(r: float, g: float, b: float) -> float:
    return r * 0.59597799 - g * 0.27417610 - b * 0.32180189


def _rgb2q(r: float, g: float, b: float) -> float:
    return r * 0.21147017 - g * 0.52261711 + b * 0.31114694


def _opaque(p: Pixel) -> tuple[float, float, float]:
    r, g, b, a = p
    if a < 255:
        alpha = a / 255
        return _blend(r, alpha), _blend(g, alpha), _blend(b, alpha)
    return r, g, b


def color_delta(p1: Pixel, p2: Pixel, y_only: bool = False) -> float:
    """Squared YIQ distance between two pixels.

    Negative when the first pixel is brighter. Semi-transparent pixels are
    blended over white first.
    """
    if p1 == p2:
        return 0.0
    r1, g1, b1 = _opaque(p1)
    r2, g2, b2 = _opaque(p2)

    y1 = _rgb2y(r1, g1, b1)
    y2 = _rgb2y(r2, g2, b2)
    y = y1 - y2
    if y_only:
        return y

    i = _rgb2i(r1, g1, b1) - _rgb2i(r2, g2, b2)
    q = _rgb2q(r1, g1, b1) - _rgb2q(r2, g2, b2)
    delta = 0.5053 * y * y + 0.299 * i * i + 0.1957 * q * q
    return -delta if y1 > y2 else delta


def _neighbours(x1: int, y1: int, width: int, height: int):
    x0, y0 = max(x1 - 1, 0), max(y1 - 1, 0)
    x2, y2 = min(x1 + 1, width - 1), min(y1 + 1, height - 1)
    on_edge = x1 == x0 or x1 == x2 or y1 == y0 or y1 == y2
    points = [
        (x, y)
        for x in range(x0, x2 + 1)
        for y in range(y0, y2 + 1)
        if not (x == x1 and y == y1)
    ]
    return points, on_edge


def is_antialiased(img, x1: int, y1: int, width: int, height: int, other) -> bool:
    """Whether the pixel at (x1, y1) of ``img`` looks like an anti-aliased edge.

    ``img`` and ``other`` are Pillow pixel access objects of the same size.
    """
    points, on_edge = _neighbours(x1, y1, width, height)
    zeroes = 1 if on_edge else 0
    center = img[x1, y1]

    darkest = brightest = 0.0
    min_xy = max_xy = None
    for x, y in points:
        delta = color_delta(center, img[x, y], y_only=True)
        if delta == 0:
            zeroes += 1
            # more than two identical siblings means this is not an AA edge
            if zeroes > 2:
                return False
        elif delta < darkest:
            darkest, min_xy = delta, (x, y)
        elif delta > brightest:
            brightest, max_xy = delta, (x, y)

    if darkest == 0 or brightest == 0:
        return False

    return (
        _has_many_siblings(img, *min_xy, width, height)
        and _has_many_siblings(other, *min_xy, width, height)
    ) or (
        _has_many_siblings(img, *max_xy, width, height)
        and _has_many_siblings(other, *max_xy, width, height)
    )


def _has_many_siblings(img, x1: int, y1: int, width: int, height: int) -> bool:
    points, on_edge = _neighbours(x1, y1, width, height)
    zeroes = 1 if on_edge else 0
    center = img[x1, y1]
    for x, y in points:
        if img[x, y] == center:
            zeroes += 1
        if zeroes > 2:
            return True
    return False
