import numpy as np

from asciicells.errors import ConfigurationError
from asciicells.glyph_atlas import TemplateSet

K1 = 0.01
K2 = 0.03
DYNAMIC_RANGE = 255.0
C1 = (K1 * DYNAMIC_RANGE) ** 2
C2 = (K2 * DYNAMIC_RANGE) ** 2

# Cells scored per chunk; bounds the (chunk, num_templates) score matrix
CHUNK_CELLS = 1024


def brightness_indices(brightness: np.ndarray, ramp_length: int) -> np.ndarray:
    """Map mean brightness (0-255) to a position on a dark-to-light ramp."""
    idx = np.floor(np.asarray(brightness, dtype=np.float64) / 255.0 * (ramp_length - 1)).astype(np.intp)
    return idx.clip(0, ramp_length - 1)


def ssim_scores(cells: np.ndarray, templates: np.ndarray) -> np.ndarray:
    """SSIM of every cell against every template.

    Both inputs are (N, n) sample matrices. Statistics are population
    statistics over the n samples of each row.

    Returns (num_cells, num_templates) float64.
    """
    cells = np.asarray(cells, dtype=np.float64)
    templates = np.asarray(templates, dtype=np.float64)
    n = cells.shape[1]

    mu_c = cells.mean(axis=1)
    mu_t = templates.mean(axis=1)
    dc = cells - mu_c[:, np.newaxis]
    dt = templates - mu_t[:, np.newaxis]
    var_c = (dc * dc).sum(axis=1) / n
    var_t = (dt * dt).sum(axis=1) / n
    cov = (dc @ dt.T) / n

    numerator = (2 * mu_c[:, np.newaxis] * mu_t[np.newaxis, :] + C1) * (2 * cov + C2)
    denominator = (mu_c[:, np.newaxis] ** 2 + mu_t[np.newaxis, :] ** 2 + C1) * (
        var_c[:, np.newaxis] + var_t[np.newaxis, :] + C2
    )
    return numerator / denominator


def ssim(a: np.ndarray, b: np.ndarray) -> float:
    a = np.asarray(a, dtype=np.float64).reshape(1, -1)
    b = np.asarray(b, dtype=np.float64).reshape(1, -1)
    if a.shape != b.shape or a.size == 0:
        raise ConfigurationError(f"SSIM needs two equal-length, non-empty samples, got {a.size} and {b.size}")
    return float(ssim_scores(a, b)[0, 0])


def check_dimensions(cells: np.ndarray, templates: TemplateSet) -> None:
    if cells.ndim != 2 or cells.shape[1] != templates.pixels_per_cell:
        raise ConfigurationError(
            f"Cell samples {cells.shape} do not match {templates.cell_width}x{templates.cell_height} templates"
        )


class CpuSsimMatcher:
    """Structure matcher in numpy. Always available."""

    name = "cpu"

    def __init__(self, chunk_size: int = CHUNK_CELLS):
        self.chunk_size = chunk_size

    def match(self, cells: np.ndarray, templates: TemplateSet) -> np.ndarray:
        """Index of the best template per cell; ties go to the lowest index."""
        cells = np.asarray(cells, dtype=np.float64)
        check_dimensions(cells, templates)
        result = np.empty(len(cells), dtype=np.intp)
        for start in range(0, len(cells), self.chunk_size):
            stop = start + self.chunk_size
            scores = ssim_scores(cells[start:stop], templates.rasters)
            result[start:stop] = np.argmax(scores, axis=1)
        return result
