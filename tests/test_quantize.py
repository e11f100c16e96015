import numpy as np
import pytest

from asciicells.errors import ConfigurationError
from asciicells.quantize import LcgSeeder, Palette, kmeans, nearest, quantize


class FixedSeeds:
    """Stands in for a numpy Generator, always seeding with the same indices."""

    def __init__(self, indices):
        self.indices = np.array(indices)

    def choice(self, n, size, replace):
        assert not replace
        return self.indices[:size]


def test_few_distinct_colours_returned_verbatim():
    obs = [[1, 2, 3], [4, 5, 6]]
    np.testing.assert_array_equal(kmeans(obs, 4), obs)


def test_duplicates_collapse_to_distinct_colours_in_first_seen_order():
    obs = [[9, 9, 9], [1, 2, 3], [9, 9, 9], [1, 2, 3], [0, 0, 0]]
    np.testing.assert_array_equal(kmeans(obs, 3), [[9, 9, 9], [1, 2, 3], [0, 0, 0]])


def test_empty_input_gives_empty_palette():
    assert kmeans([], 4).shape == (0, 3)
    assert len(quantize(np.zeros((0, 3)), 4)) == 0


def test_palette_never_exceeds_k():
    rng = np.random.default_rng(1)
    obs = rng.integers(0, 256, size=(500, 3))
    for k in (2, 5, 8, 32):
        result = kmeans(obs, k, rng=np.random.default_rng(0))
        assert len(result) == k
        assert len(quantize(obs, k, rng=np.random.default_rng(0))) <= k


def test_same_seed_is_reproducible():
    obs = np.random.default_rng(5).integers(0, 256, size=(300, 3))
    a = kmeans(obs, 6, rng=np.random.default_rng(7))
    b = kmeans(obs, 6, rng=np.random.default_rng(7))
    np.testing.assert_array_equal(a, b)
    assert a.dtype == np.uint8


def test_separates_well_separated_groups():
    reds = [[250 + i % 6, 0, 0] for i in range(30)]
    blues = [[0, 0, 250 + i % 6] for i in range(30)]
    result = kmeans(reds + blues, 2, rng=np.random.default_rng(3))
    result = sorted(map(tuple, result.tolist()))
    assert result[0] == pytest.approx((0, 0, 252.5), abs=3)
    assert result[1] == pytest.approx((252.5, 0, 0), abs=3)


def test_empty_cluster_keeps_its_centroid():
    obs = [[0, 0, 0], [0, 0, 0], [100, 100, 100], [200, 200, 200], [255, 255, 255]]
    # Seeds two identical centroids; ties go to the first, so the second gets nothing
    result = kmeans(obs, 3, rng=FixedSeeds([0, 1, 4]), iterations=1)
    np.testing.assert_array_equal(result, [[33, 33, 33], [0, 0, 0], [228, 228, 228]])


@pytest.mark.parametrize("k", [0, -1, 1.5, True])
def test_rejects_bad_cluster_count(k):
    with pytest.raises(ConfigurationError):
        kmeans([[1, 2, 3]], k)


def test_palette_dedupes_in_order():
    palette = Palette.from_colours([[3, 3, 3], [1, 1, 1], [3, 3, 3]])
    assert palette.colours == ((3, 3, 3), (1, 1, 1))
    assert palette.index((1, 1, 1)) == 1
    assert len(palette) == 2


def test_palette_rejects_duplicates():
    with pytest.raises(ValueError):
        Palette(((1, 1, 1), (1, 1, 1)))


def test_nearest_prefers_first_on_ties():
    palette = np.array([[0, 0, 0], [2, 2, 2]])
    assert nearest(np.array([[1, 1, 1]]), palette).tolist() == [0]


def test_nearest_keeps_leading_shape():
    palette = np.array([[0, 0, 0], [255, 255, 255]])
    colours = np.array([[[10, 10, 10], [250, 250, 250]]])
    assert nearest(colours, palette).tolist() == [[0, 1]]


def spread_colours(n):
    return [[(i * 37) % 256, (i * 91) % 256, (i * 53) % 256] for i in range(n)]


def test_lcg_seed_indices():
    np.testing.assert_array_equal(LcgSeeder().choice(6, 3), [0, 4, 2])
    # Past 2**53 the state update depends on double rounding
    np.testing.assert_array_equal(LcgSeeder().choice(200, 8), [154, 42, 108, 137, 122, 15, 52, 17])


def test_lcg_centroids_small():
    obs = [[255, 0, 0], [250, 10, 10], [0, 0, 255], [10, 10, 250], [0, 255, 0], [128, 128, 128]]
    result = kmeans(obs, 3, rng=LcgSeeder())
    np.testing.assert_array_equal(result, [[211, 46, 46], [0, 255, 0], [5, 5, 253]])


def test_lcg_centroids_spread():
    expected = [
        [122, 194, 205],
        [44, 217, 87],
        [143, 113, 122],
        [203, 181, 77],
        [181, 46, 54],
        [56, 84, 50],
        [215, 54, 207],
        [62, 66, 185],
    ]
    np.testing.assert_array_equal(kmeans(spread_colours(200), 8, rng=LcgSeeder()), expected)


def test_default_seeding_is_lcg():
    obs = spread_colours(200)
    np.testing.assert_array_equal(kmeans(obs, 8), kmeans(obs, 8, rng=LcgSeeder()))


def test_lcg_explicit_seed_changes_seeds():
    picked = LcgSeeder(seed=12345).choice(200, 8)
    assert len(set(picked.tolist())) == 8
    assert picked.tolist() != LcgSeeder().choice(200, 8).tolist()


def test_lcg_rejects_impossible_requests():
    with pytest.raises(ValueError):
        LcgSeeder().choice(3, 4)
    with pytest.raises(ValueError):
        LcgSeeder().choice(10, 2, replace=True)
