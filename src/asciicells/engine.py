from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import numpy as np
from PIL import Image

RGB = tuple[int, int, int]


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    width: int
    height: int
    data: np.ndarray  # (height, width, 4) uint8, RGBA, read-only

    def __post_init__(self):
        if self.data.shape != (self.height, self.width, 4):
            raise ValueError(f"Expected RGBA data of shape {(self.height, self.width, 4)}, got {self.data.shape}")
        if self.data.flags.writeable:
            frozen = np.array(self.data, dtype=np.uint8)
            frozen.flags.writeable = False
            object.__setattr__(self, "data", frozen)

    @classmethod
    def from_image(cls, image: Image.Image) -> "PixelBuffer":
        arr = np.asarray(image.convert("RGBA"), dtype=np.uint8)
        return cls(width=image.width, height=image.height, data=arr)

    @classmethod
    def from_bytes(cls, width: int, height: int, rgba: bytes) -> "PixelBuffer":
        arr = np.frombuffer(rgba, dtype=np.uint8).reshape(height, width, 4)
        return cls(width=width, height=height, data=arr)

    def to_image(self) -> Image.Image:
        return Image.fromarray(np.ascontiguousarray(self.data))


def load_pixels(path: str | Path) -> PixelBuffer:
    """Decode an image file into an RGBA pixel buffer. Decode errors propagate."""
    with Image.open(path) as image:
        return PixelBuffer.from_image(image)


@dataclass(frozen=True)
class AsciiChar:
    char: str
    fg: RGB | None  # None = transparent
    bg: RGB | None

    @property
    def transparent(self) -> bool:
        return self.fg is None or self.bg is None


TRANSPARENT = AsciiChar("", None, None)


class StructureMatcher(Protocol):
    name: str

    def match(self, cells: np.ndarray, templates) -> np.ndarray:
        """Return the index of the best-matching template for each row of ``cells``."""
        ...
