from dataclasses import dataclass

import numpy as np
from PIL import Image

from asciicells.engine import PixelBuffer
from asciicells.errors import ConfigurationError
from asciicells.options import DEFAULT_ASPECT

# Mean alpha below this marks the whole cell transparent
ALPHA_THRESHOLD = 128
# Opaque pixels with luma below this feed the background (dark) colour
DARK_THRESHOLD = 128


@dataclass(frozen=True)
class GridGeometry:
    cols: int
    rows: int
    cell_width: int
    cell_height: int

    @property
    def canvas_size(self) -> tuple[int, int]:
        return (self.cols * self.cell_width, self.rows * self.cell_height)

    @property
    def pixels_per_cell(self) -> int:
        return self.cell_width * self.cell_height


@dataclass
class CellStats:
    geometry: GridGeometry
    brightness: np.ndarray  # (rows, cols) float64, mean luma of opaque pixels
    average_colour: np.ndarray  # (rows, cols, 3) uint8
    dark_colour: np.ndarray  # (rows, cols, 3) uint8
    grayscale: np.ndarray  # (rows, cols, cell_h * cell_w) float64, 0 where transparent
    transparent: np.ndarray  # (rows, cols) bool

    @property
    def rows(self) -> int:
        return self.geometry.rows

    @property
    def cols(self) -> int:
        return self.geometry.cols


def round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def luma(rgb: np.ndarray) -> np.ndarray:
    """Rec. 601 luma of an (..., 3) array."""
    return 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]


def grid_geometry(src_width: int, src_height: int, text_width: int, aspect: int = DEFAULT_ASPECT) -> GridGeometry:
    if isinstance(text_width, bool) or not isinstance(text_width, int) or text_width <= 0:
        raise ConfigurationError(f"text_width must be a positive integer, got {text_width!r}")
    if src_width <= 0 or src_height <= 0:
        raise ConfigurationError(f"Empty pixel buffer ({src_width}x{src_height})")
    cell_width = -(-src_width // text_width)
    cell_height = cell_width * aspect
    rows = -(-src_height // cell_height)
    return GridGeometry(cols=text_width, rows=rows, cell_width=cell_width, cell_height=cell_height)


def resample(pixels: PixelBuffer, geometry: GridGeometry) -> np.ndarray:
    """Stretch the source onto a canvas that is an exact multiple of the cell size."""
    size = geometry.canvas_size
    if (pixels.width, pixels.height) == size:
        return pixels.data
    image = pixels.to_image().resize(size, Image.LANCZOS)
    return np.asarray(image, dtype=np.uint8)


def _masked_mean_colour(rgb: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """Per-cell mean RGB over masked pixels, black where the mask is empty."""
    count = mask.sum(axis=(2, 3))[..., np.newaxis]
    total = (rgb * mask[..., np.newaxis]).sum(axis=(2, 3))
    mean = round_half_up(total / np.maximum(count, 1))
    return np.where(count > 0, mean, 0).clip(0, 255).astype(np.uint8)


def partition(pixels: PixelBuffer, text_width: int, aspect: int = DEFAULT_ASPECT) -> CellStats:
    """Split a pixel buffer into a text_width-column grid and aggregate each cell.

    Opaque pixels are those with non-zero alpha. Brightness and average colour
    are taken over opaque pixels only, the dark colour over opaque pixels with
    luma below DARK_THRESHOLD. A cell is transparent when its mean alpha over
    all pixels is below ALPHA_THRESHOLD.
    """
    g = grid_geometry(pixels.width, pixels.height, text_width, aspect)
    arr = resample(pixels, g).astype(np.float64)

    # (rows, cell_h, cols, cell_w, 4) -> (rows, cols, cell_h, cell_w, 4)
    cells = arr.reshape(g.rows, g.cell_height, g.cols, g.cell_width, 4).transpose(0, 2, 1, 3, 4)
    rgb = cells[..., :3]
    alpha = cells[..., 3]
    lum = luma(rgb)

    opaque = alpha > 0
    dark = opaque & (lum < DARK_THRESHOLD)

    opaque_count = opaque.sum(axis=(2, 3))
    lum_total = (lum * opaque).sum(axis=(2, 3))
    brightness = np.where(opaque_count > 0, lum_total / np.maximum(opaque_count, 1), 0.0)

    grayscale = np.where(opaque, lum, 0.0).reshape(g.rows, g.cols, g.pixels_per_cell)

    return CellStats(
        geometry=g,
        brightness=brightness,
        average_colour=_masked_mean_colour(rgb, opaque),
        dark_colour=_masked_mean_colour(rgb, dark),
        grayscale=grayscale,
        transparent=alpha.mean(axis=(2, 3)) < ALPHA_THRESHOLD,
    )
