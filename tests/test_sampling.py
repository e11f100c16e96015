import numpy as np
import pytest

from asciicells.engine import PixelBuffer
from asciicells.errors import ConfigurationError
from asciicells.sampling import grid_geometry, partition


def test_grid_geometry_rounds_up():
    g = grid_geometry(100, 75, 30)
    assert g.cols == 30
    assert g.cell_width == 4  # ceil(100 / 30)
    assert g.cell_height == 8
    assert g.rows == 10  # ceil(75 / 8)
    assert g.canvas_size == (120, 80)


def test_grid_geometry_custom_aspect():
    g = grid_geometry(40, 40, 10, aspect=3)
    assert (g.cell_width, g.cell_height, g.rows) == (4, 12, 4)


@pytest.mark.parametrize("width", [0, -3, 2.5, True, "10"])
def test_rejects_bad_text_width(solid, width):
    with pytest.raises(ConfigurationError):
        partition(solid(10, 10, (0, 0, 0, 255)), width)


def test_rejects_empty_buffer():
    empty = PixelBuffer(width=0, height=0, data=np.zeros((0, 0, 4), dtype=np.uint8))
    with pytest.raises(ConfigurationError):
        partition(empty, 4)


def test_every_cell_has_full_pixel_count(solid):
    stats = partition(solid(100, 75, (10, 20, 30, 255)), 30)
    assert stats.grayscale.shape == (10, 30, 32)
    assert stats.brightness.shape == (10, 30)
    assert stats.average_colour.shape == (10, 30, 3)
    np.testing.assert_allclose(stats.average_colour, np.broadcast_to([10, 20, 30], (10, 30, 3)), atol=1)


def test_opaque_red_cell(solid):
    stats = partition(solid(1, 1, (255, 0, 0, 255)), 1)
    assert stats.brightness[0, 0] == pytest.approx(76.245)
    assert tuple(stats.average_colour[0, 0]) == (255, 0, 0)
    # Luma 76 is below the dark threshold
    assert tuple(stats.dark_colour[0, 0]) == (255, 0, 0)
    assert not stats.transparent[0, 0]


def test_bright_cell_has_black_dark_colour(solid):
    stats = partition(solid(2, 4, (255, 255, 255, 255)), 1)
    assert tuple(stats.dark_colour[0, 0]) == (0, 0, 0)
    assert tuple(stats.average_colour[0, 0]) == (255, 255, 255)


def test_dark_colour_averages_only_dark_pixels():
    data = np.zeros((4, 2, 4), dtype=np.uint8)
    data[:2] = (255, 255, 255, 255)
    data[2:] = (0, 0, 100, 255)
    stats = partition(PixelBuffer(width=2, height=4, data=data), 1)
    assert tuple(stats.dark_colour[0, 0]) == (0, 0, 100)
    # Half-up rounding of (127.5, 127.5, 177.5)
    assert tuple(stats.average_colour[0, 0]) == (128, 128, 178)
    assert stats.brightness[0, 0] == pytest.approx((255 + 11.4) / 2)


def test_semi_transparent_cell_is_transparent_but_keeps_colour(solid):
    stats = partition(solid(2, 4, (10, 20, 30, 100)), 1)
    assert stats.transparent[0, 0]
    assert tuple(stats.average_colour[0, 0]) == (10, 20, 30)


def test_fully_transparent_cell_defaults_to_black(solid):
    stats = partition(solid(2, 4, (200, 100, 50, 0)), 1)
    assert stats.transparent[0, 0]
    assert stats.brightness[0, 0] == 0.0
    assert tuple(stats.average_colour[0, 0]) == (0, 0, 0)
    assert tuple(stats.dark_colour[0, 0]) == (0, 0, 0)
    np.testing.assert_array_equal(stats.grayscale[0, 0], 0.0)


def test_grayscale_is_zero_for_transparent_pixels():
    data = np.zeros((4, 2, 4), dtype=np.uint8)
    data[:2] = (255, 255, 255, 255)
    stats = partition(PixelBuffer(width=2, height=4, data=data), 1)
    np.testing.assert_allclose(stats.grayscale[0, 0], [255, 255, 255, 255, 0, 0, 0, 0])
    # Mean alpha 127.5
    assert stats.transparent[0, 0]


def test_grayscale_is_row_major_within_cell():
    data = np.zeros((4, 2, 4), dtype=np.uint8)
    data[..., 3] = 255
    data[0, 1] = (255, 255, 255, 255)
    stats = partition(PixelBuffer(width=2, height=4, data=data), 1)
    assert stats.grayscale[0, 0].argmax() == 1


def test_resamples_onto_exact_multiple(solid):
    stats = partition(solid(5, 3, (40, 80, 120, 255)), 2)
    g = stats.geometry
    assert (g.cell_width, g.cell_height, g.rows) == (3, 6, 1)
    np.testing.assert_allclose(stats.average_colour[0], [[40, 80, 120]] * 2, atol=1)


def test_pixel_buffer_is_read_only(solid):
    pixels = solid(2, 2, (1, 2, 3, 4))
    assert not pixels.data.flags.writeable
    with pytest.raises(ValueError):
        pixels.data[0, 0, 0] = 9


def test_pixel_buffer_rejects_wrong_shape():
    with pytest.raises(ValueError):
        PixelBuffer(width=3, height=2, data=np.zeros((2, 2, 4), dtype=np.uint8))
