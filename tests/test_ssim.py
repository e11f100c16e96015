import numpy as np
import pytest

from asciicells.errors import ConfigurationError
from asciicells.glyph_atlas import build_templates
from asciicells.ssim import C1, C2, CpuSsimMatcher, brightness_indices, ssim, ssim_scores


def raster_lookup(rasters):
    """Rasterizer returning fixed arrays per character."""

    def rasterize(char, width, height):
        return rasters[char]

    return rasterize


def reference_ssim(a, b):
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    mu_a, mu_b = a.mean(), b.mean()
    cov = ((a - mu_a) * (b - mu_b)).mean()
    return ((2 * mu_a * mu_b + C1) * (2 * cov + C2)) / ((mu_a**2 + mu_b**2 + C1) * (a.var() + b.var() + C2))


def test_constants():
    assert C1 == pytest.approx(6.5025)
    assert C2 == pytest.approx(58.5225)


def test_identical_samples_score_one():
    a = np.random.default_rng(0).uniform(0, 255, 32)
    assert ssim(a, a) == pytest.approx(1.0)


def test_matches_population_statistics():
    rng = np.random.default_rng(1)
    a = rng.uniform(0, 255, 18)
    b = rng.uniform(0, 255, 18)
    assert ssim(a, b) == pytest.approx(reference_ssim(a, b))


def test_inverted_pattern_scores_negative():
    assert ssim([0, 255], [255, 0]) < 0


def test_scores_matrix_shape():
    cells = np.zeros((5, 8))
    templates = np.ones((3, 8))
    assert ssim_scores(cells, templates).shape == (5, 3)


def test_ssim_rejects_mismatched_lengths():
    with pytest.raises(ConfigurationError):
        ssim([1, 2, 3], [1, 2])


def test_brightness_indices():
    ramp = " .:-=+*#%@"
    idx = brightness_indices(np.array([0.0, 76.245, 127.5, 255.0]), len(ramp))
    assert idx.tolist() == [0, 2, 4, 9]
    assert [ramp[i] for i in idx] == [" ", ":", "=", "@"]


def test_brightness_indices_single_char_ramp():
    assert brightness_indices(np.array([0.0, 255.0]), 1).tolist() == [0, 0]


def test_cpu_matcher_picks_matching_template():
    rng = np.random.default_rng(2)
    rasters = {c: rng.uniform(0, 255, (4, 2)) for c in "abcd"}
    templates = build_templates("abcd", 2, 4, raster_lookup(rasters))
    cells = np.stack([rasters["c"].reshape(-1), rasters["a"].reshape(-1), rasters["d"].reshape(-1)])
    assert CpuSsimMatcher().match(cells, templates).tolist() == [2, 0, 3]


def test_ties_go_to_first_template():
    flat = np.full((4, 2), 80.0)
    templates = build_templates("xy", 2, 4, raster_lookup({"x": flat, "y": flat}))
    cells = np.random.default_rng(3).uniform(0, 255, (6, 8))
    assert CpuSsimMatcher().match(cells, templates).tolist() == [0] * 6


def test_chunking_does_not_change_results():
    rng = np.random.default_rng(4)
    rasters = {c: rng.uniform(0, 255, (4, 3)) for c in "abcdef"}
    templates = build_templates("abcdef", 3, 4, raster_lookup(rasters))
    cells = rng.uniform(0, 255, (50, 12))
    np.testing.assert_array_equal(
        CpuSsimMatcher(chunk_size=7).match(cells, templates),
        CpuSsimMatcher().match(cells, templates),
    )


def test_rejects_cells_of_wrong_size():
    templates = build_templates("ab", 2, 4, raster_lookup({"a": np.zeros((4, 2)), "b": np.ones((4, 2))}))
    with pytest.raises(ConfigurationError):
        CpuSsimMatcher().match(np.zeros((3, 9)), templates)


def test_swapping_template_rasters_swaps_the_winner():
    left = np.zeros((4, 2))
    left[:, 0] = 255
    right = np.zeros((4, 2))
    right[:, 1] = 255
    cell = left.reshape(1, -1)
    matcher = CpuSsimMatcher()

    original = build_templates("LR", 2, 4, raster_lookup({"L": left, "R": right}))
    swapped = build_templates("LR", 2, 4, raster_lookup({"L": right, "R": left}))

    assert original.characters[matcher.match(cell, original)[0]] == "L"
    assert swapped.characters[matcher.match(cell, swapped)[0]] == "R"
    # No state carried over from the swapped set
    assert original.characters[matcher.match(cell, original)[0]] == "L"
