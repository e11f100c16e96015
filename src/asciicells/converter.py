import logging
import time
from pathlib import Path

import numpy as np
from PIL import Image

from asciicells.artifact import AsciiArtifact, decode, encode
from asciicells.charsets import STRUCTURE_CHARS
from asciicells.engine import TRANSPARENT, AsciiChar, PixelBuffer, StructureMatcher
from asciicells.glyph_atlas import TemplateCache
from asciicells.gpu import match_with_fallback
from asciicells.options import GenerateOptions
from asciicells.quantize import LcgSeeder, Palette, nearest, quantize
from asciicells.sampling import CellStats, partition
from asciicells.ssim import CpuSsimMatcher, brightness_indices

logger = logging.getLogger(__name__)

BLACK = (0, 0, 0)


def _brightness_chars(stats: CellStats, ramp: str, opaque: np.ndarray) -> np.ndarray:
    indices = brightness_indices(stats.brightness[opaque], len(ramp))
    return np.array(list(ramp))[indices]


def _structure_chars(
    stats: CellStats,
    opaque: np.ndarray,
    templates: TemplateCache,
    matcher: StructureMatcher,
) -> np.ndarray:
    g = stats.geometry
    template_set = templates.get(g.cell_width, g.cell_height, STRUCTURE_CHARS)
    cells = stats.grayscale[opaque]  # (num_opaque, pixels_per_cell)
    if len(cells) == 0:
        return np.array([], dtype=str)

    start = time.perf_counter()
    indices = match_with_fallback(matcher, cells, template_set)
    logger.debug(
        "Matched %d cells against %d templates with %s in %.1fms",
        len(cells),
        len(template_set),
        matcher.name,
        (time.perf_counter() - start) * 1000,
    )
    return np.array(template_set.characters)[indices]


def render_cells(
    pixels: PixelBuffer,
    options: GenerateOptions,
    *,
    templates: TemplateCache | None = None,
    matcher: StructureMatcher | None = None,
    rng: np.random.Generator | LcgSeeder | None = None,
) -> list[list[AsciiChar]]:
    """Convert a pixel buffer to a grid of coloured characters.

    Args:
        templates: glyph template cache for structure mode. Pass the same cache
            across calls to reuse templates; a fresh one is built otherwise.
        matcher: structure matcher, defaults to the CPU matcher. Accelerated
            matchers that fail fall back to the CPU matcher.
        rng: k-means seeding, an LcgSeeder (the default, reproducible
            everywhere) or a numpy Generator.
    """
    stats = partition(pixels, options.text_width, options.aspect)
    opaque = ~stats.transparent
    rows, cols = stats.rows, stats.cols

    # Transparent cells never feed the palettes
    fg_palette = quantize(stats.average_colour[opaque], options.fg_colours, rng)
    if options.use_background_colours:
        bg_palette = quantize(stats.dark_colour[opaque], options.bg_colours, rng)
    else:
        bg_palette = Palette((BLACK,))

    if options.mode == "structure":
        if templates is None:
            templates = TemplateCache()
        chars = _structure_chars(stats, opaque, templates, matcher or CpuSsimMatcher())
    else:
        chars = _brightness_chars(stats, options.ramp_chars, opaque)

    grid: list[list[AsciiChar]] = [[TRANSPARENT] * cols for _ in range(rows)]
    if not opaque.any():
        return grid

    fg_idx = nearest(stats.average_colour[opaque], fg_palette.as_array())
    if options.use_background_colours:
        bg_idx = nearest(stats.dark_colour[opaque], bg_palette.as_array())
    else:
        bg_idx = np.zeros(len(fg_idx), dtype=np.intp)

    # Boolean indexing walks cells in row-major order
    for i, (r, c) in enumerate(zip(*np.nonzero(opaque))):
        grid[r][c] = AsciiChar(
            char=str(chars[i]),
            fg=fg_palette.colours[fg_idx[i]],
            bg=bg_palette.colours[bg_idx[i]],
        )
    return grid


def generate(
    pixels: PixelBuffer,
    options: GenerateOptions,
    *,
    templates: TemplateCache | None = None,
    matcher: StructureMatcher | None = None,
    rng: np.random.Generator | LcgSeeder | None = None,
) -> AsciiArtifact:
    start = time.perf_counter()
    artifact = encode(render_cells(pixels, options, templates=templates, matcher=matcher, rng=rng))
    logger.debug(
        "Generated %dx%d cells (%d fg / %d bg colours) in %.1fms",
        artifact.width,
        artifact.height,
        len(artifact.fg_palette),
        len(artifact.bg_palette),
        (time.perf_counter() - start) * 1000,
    )
    return artifact


def image_to_artifact(
    image: Image.Image | PixelBuffer | str | Path,
    options: GenerateOptions,
    **kwargs,
) -> AsciiArtifact:
    """Like generate(), but also accepts a Pillow image or an image path."""
    if isinstance(image, PixelBuffer):
        pixels = image
    elif isinstance(image, Image.Image):
        pixels = PixelBuffer.from_image(image)
    else:
        with Image.open(image) as img:
            pixels = PixelBuffer.from_image(img)
    return generate(pixels, options, **kwargs)


def to_text(artifact: AsciiArtifact) -> str:
    """Plain characters only; transparent cells become spaces."""
    return "\n".join("".join(cell.char or " " for cell in row) for row in decode(artifact))


def to_ansi(artifact: AsciiArtifact) -> str:
    """Wrap each character in ANSI truecolor escape sequences."""
    out = []
    for row in decode(artifact):
        parts = []
        for cell in row:
            if cell.transparent:
                parts.append("\033[0m ")
                continue
            fr, fg, fb = cell.fg
            br, bg, bb = cell.bg
            parts.append(f"\033[38;2;{fr};{fg};{fb}m\033[48;2;{br};{bg};{bb}m{cell.char}")
        parts.append("\033[0m")
        out.append("".join(parts))
    return "\n".join(out)
