import numpy as np
import pytest

from asciicells.engine import PixelBuffer
from asciicells.glyph_atlas import find_monospace_font

FONT_PATH = find_monospace_font()


@pytest.fixture
def font_path():
    if FONT_PATH is None:
        pytest.skip("No monospace font found on system")
    return FONT_PATH


@pytest.fixture
def solid():
    """Factory for a uniformly coloured RGBA pixel buffer."""

    def make(width, height, rgba):
        data = np.empty((height, width, 4), dtype=np.uint8)
        data[:] = rgba
        return PixelBuffer(width=width, height=height, data=data)

    return make
