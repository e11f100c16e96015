import itertools
import logging
import os
import shutil
import subprocess
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from asciicells.charsets import STRUCTURE_CHARS
from asciicells.errors import ConfigurationError

logger = logging.getLogger(__name__)

# (char, width, height) -> (height, width) grayscale raster, 0-255
Rasterizer = Callable[[str, int, int], np.ndarray]

_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationMono-Regular.ttf",
    "/usr/share/fonts/TTF/DejaVuSansMono.ttf",
    "/usr/share/fonts/dejavu-sans-mono-fonts/DejaVuSansMono.ttf",
]

# Process-wide so that two caches never hand out the same generation
_generations = itertools.count(1)


def find_monospace_font() -> str | None:
    """Find a monospace font on the system, asking fontconfig as a last resort."""
    for path in _FONT_CANDIDATES:
        if os.path.exists(path):
            return path
    if shutil.which("fc-match"):
        result = subprocess.run(["fc-match", "-f", "%{file}", "monospace"], capture_output=True, text=True)
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
    return None


class FontRasterizer:
    """Draw characters white on black with one fixed font, top-left aligned.

    The font size in pixels equals the cell height. Without a font path the
    first monospace font found on the system is used, then Pillow's bundled
    default font.
    """

    def __init__(self, font_path: str | None = None):
        self.font_path = font_path if font_path is not None else find_monospace_font()
        self._fonts: dict[int, ImageFont.FreeTypeFont] = {}

    def _font(self, size: int) -> ImageFont.FreeTypeFont:
        if size not in self._fonts:
            if self.font_path is None:
                self._fonts[size] = ImageFont.load_default(size=size)
            else:
                self._fonts[size] = ImageFont.truetype(self.font_path, size)
        return self._fonts[size]

    def __call__(self, char: str, width: int, height: int) -> np.ndarray:
        img = Image.new("L", (width, height), 0)
        draw = ImageDraw.Draw(img)
        draw.text((0, 0), char, fill=255, font=self._font(height))
        return np.asarray(img, dtype=np.float32)


@dataclass(frozen=True, eq=False)
class TemplateSet:
    characters: tuple[str, ...]
    rasters: np.ndarray  # (num_chars, cell_h * cell_w) float32, 0-255, read-only
    cell_width: int
    cell_height: int
    generation: int

    @property
    def pixels_per_cell(self) -> int:
        return self.cell_width * self.cell_height

    def __len__(self) -> int:
        return len(self.characters)


def build_templates(characters, cell_width: int, cell_height: int, rasterizer: Rasterizer) -> TemplateSet:
    """Render every character at cell resolution.

    Raises ConfigurationError when the rasterizer returns a raster of the wrong size.
    """
    if cell_width <= 0 or cell_height <= 0:
        raise ConfigurationError(f"Invalid cell size {cell_width}x{cell_height}")
    char_list = tuple(characters)
    if not char_list:
        raise ConfigurationError("Template character set is empty")

    rasters = np.zeros((len(char_list), cell_width * cell_height), dtype=np.float32)
    for i, char in enumerate(char_list):
        raster = np.asarray(rasterizer(char, cell_width, cell_height), dtype=np.float32)
        if raster.shape != (cell_height, cell_width):
            raise ConfigurationError(
                f"Template for {char!r} is {raster.shape[::-1]}, expected {(cell_width, cell_height)}"
            )
        rasters[i] = raster.reshape(-1)
    rasters.flags.writeable = False

    return TemplateSet(
        characters=char_list,
        rasters=rasters,
        cell_width=cell_width,
        cell_height=cell_height,
        generation=next(_generations),
    )


class TemplateCache:
    """Glyph templates for one (cell width, cell height, character set) key at a time.

    Templates are built lazily on first use and rebuilt whenever the key
    changes. A failed build leaves the cache empty. Rebuilding is not
    thread-safe: callers sharing one cache across threads with differing cell
    sizes must serialise calls to get(). Reading an already built entry is safe.
    """

    def __init__(self, rasterizer: Rasterizer | None = None):
        self.rasterizer = rasterizer if rasterizer is not None else FontRasterizer()
        self._key: tuple | None = None
        self._entry: TemplateSet | None = None

    @property
    def current(self) -> TemplateSet | None:
        return self._entry

    def get(self, cell_width: int, cell_height: int, characters=STRUCTURE_CHARS) -> TemplateSet:
        key = (cell_width, cell_height, tuple(characters))
        if self._entry is not None and self._key == key:
            return self._entry

        self.invalidate()
        logger.debug("Building %d glyph templates at %dx%d", len(key[2]), cell_width, cell_height)
        entry = build_templates(key[2], cell_width, cell_height, self.rasterizer)
        self._key, self._entry = key, entry
        return entry

    def invalidate(self) -> None:
        self._key = None
        self._entry = None
