import sys
from pathlib import Path

# Add project root to path so we can import inkdash
sys.path.append(str(Path(__file__).parent.parent))

import numpy as np
import pytest
from PIL import Image

from inkdash.constants import BAYER_4x4, BAYER_8x8, DITHER_PATTERNS
from inkdash.processing.dither import apply_dithering_algorithm, dither, to_pil
from inkdash.processing.dither.floyd_steinberg import diffuse
from inkdash.processing.luminance import luminance


def gray_image(value: int, width: int = 16, height: int = 16) -> Image.Image:
    return Image.new('RGB', (width, height), (value, value, value))


def test_luminance_weights_and_range():
    """Pure channels map to their weights on the 0..65535 scale."""
    img = Image.new('RGB', (3, 1))
    img.putpixel((0, 0), (255, 0, 0))
    img.putpixel((1, 0), (0, 255, 0))
    img.putpixel((2, 0), (0, 0, 255))
    lum = luminance(img)
    assert lum.shape == (1, 3)
    np.testing.assert_allclose(lum[0], [0.299 * 65535, 0.587 * 65535, 0.114 * 65535])
    assert luminance(gray_image(255)).max() == pytest.approx(65535)
    assert luminance(gray_image(0)).min() == 0


def test_two_by_two_ordered_8x8_scenario():
    """Top row black, bottom row white stays that way with ordered 8x8."""
    img = Image.new('RGB', (2, 2), (255, 255, 255))
    img.putpixel((0, 0), (0, 0, 0))
    img.putpixel((1, 0), (0, 0, 0))
    mono = dither(img, 'ordered-8x8', invert=False)
    assert mono.tolist() == [[True, True], [False, False]]


@pytest.mark.parametrize("pattern", DITHER_PATTERNS)
def test_extremes_are_solid(pattern):
    """Pure black and pure white never produce stray pixels."""
    assert dither(gray_image(0), pattern).all()
    assert not dither(gray_image(255), pattern).any()


@pytest.mark.parametrize("pattern", DITHER_PATTERNS)
def test_invert_flips_every_pixel(pattern):
    rng = np.random.default_rng(seed=7)
    img = Image.fromarray(rng.integers(0, 256, size=(20, 30, 3), dtype=np.uint8))
    normal = dither(img, pattern)
    inverted = dither(img, pattern, invert=True)
    assert np.array_equal(normal, ~inverted)


@pytest.mark.parametrize("pattern", DITHER_PATTERNS)
def test_output_shape_matches_input(pattern):
    img = gray_image(128, width=13, height=7)
    mono = dither(img, pattern)
    assert mono.shape == (7, 13)
    assert mono.dtype == np.bool_


@pytest.mark.parametrize("pattern", DITHER_PATTERNS)
def test_zero_sized_image(pattern):
    lum = np.zeros((0, 5), dtype=np.float64)
    mono = apply_dithering_algorithm(pattern, lum)
    assert mono.shape == (0, 5)


def test_ordered_is_deterministic():
    rng = np.random.default_rng(seed=42)
    lum = rng.uniform(0, 65535, size=(32, 32))
    first = apply_dithering_algorithm('ordered-8x8', lum)
    second = apply_dithering_algorithm('ordered-8x8', lum.copy())
    assert np.array_equal(first, second)


def test_ordered_depends_only_on_matrix_position():
    """Pixels one matrix period apart get the same decision for the same luminance."""
    lum = np.full((16, 16), 30000.0)
    mono = apply_dithering_algorithm('ordered-8x8', lum)
    assert np.array_equal(mono[:8, :8], mono[8:, 8:])
    assert np.array_equal(mono[:8, :8], mono[8:, :8])

    mono4 = apply_dithering_algorithm('ordered-4x4', lum)
    assert np.array_equal(mono4[:4, :4], mono4[12:, 4:8])


def test_ordered_density_tracks_luminance():
    """A flat mid-gray fills roughly half of each matrix tile."""
    lum = np.full((8, 8), 32768.0)
    assert apply_dithering_algorithm('ordered-8x8', lum).sum() == 32
    lum4 = np.full((4, 4), 32768.0)
    assert apply_dithering_algorithm('ordered-4x4', lum4).sum() == 8


def test_ordered_follows_matrix_cells():
    """A pixel is black exactly when its level is below the matrix cell."""
    level = 20
    lum = np.full((8, 8), (level + 0.25) * 1024.0)
    mono = apply_dithering_algorithm('ordered-8x8', lum)
    assert np.array_equal(mono, level < BAYER_8x8 + 0.5)


@pytest.mark.parametrize("pattern,matrix", [('hybrid-4x4', BAYER_4x4), ('hybrid-8x8', BAYER_8x8)])
def test_hybrid_band(pattern, matrix):
    low, high = 18000, 52000
    dark = np.full((16, 16), low - 1.0)
    light = np.full((16, 16), high + 1.0)
    assert apply_dithering_algorithm(pattern, dark, low=low, high=high).all()
    assert not apply_dithering_algorithm(pattern, light, low=low, high=high).any()

    # Inside the band the ordered rule applies
    mid = np.full((16, 16), 35000.0)
    ordered = 'ordered-4x4' if matrix is BAYER_4x4 else 'ordered-8x8'
    assert np.array_equal(
        apply_dithering_algorithm(pattern, mid, low=low, high=high),
        apply_dithering_algorithm(ordered, mid),
    )


def test_hybrid_respects_custom_band():
    lum = np.full((8, 8), 30000.0)
    # Band moved above the value: solid black
    assert apply_dithering_algorithm('hybrid-8x8', lum, low=40000, high=60000).all()
    # Band moved below the value: solid white
    assert not apply_dithering_algorithm('hybrid-8x8', lum, low=1000, high=20000).any()


def test_floyd_steinberg_midgray_is_half_black():
    lum = np.full((64, 64), 32767.5)
    mono = apply_dithering_algorithm('floyd-steinberg', lum)
    assert abs(mono.mean() - 0.5) < 0.02


def test_floyd_steinberg_error_stays_bounded():
    rng = np.random.default_rng(seed=1)
    lum = rng.uniform(0, 65535, size=(64, 64))
    _, buf = diffuse(lum)
    assert buf.min() >= -1.0
    assert buf.max() <= 2.0


def test_floyd_steinberg_preserves_average_tone():
    """Error diffusion keeps the overall share of white close to the mean luminance."""
    rng = np.random.default_rng(seed=3)
    lum = rng.uniform(0, 65535, size=(48, 48))
    mono = apply_dithering_algorithm('floyd-steinberg', lum)
    white_share = 1.0 - mono.mean()
    assert abs(white_share - lum.mean() / 65535) < 0.03


def test_floyd_steinberg_single_row_diffuses_right_only():
    # 0.4 rounds to black and pushes +0.175 right, 0.575 rounds to white
    lum = np.array([[0.4, 0.4]]) * 65535
    mono = apply_dithering_algorithm('floyd-steinberg', lum)
    assert mono.tolist() == [[True, False]]


def test_unknown_pattern():
    with pytest.raises(ValueError):
        apply_dithering_algorithm('atkinson', np.zeros((2, 2)))


def test_to_pil_renders_black_on_white():
    mono = np.array([[True, False]])
    img = to_pil(mono)
    assert img.size == (2, 1)
    assert img.getpixel((0, 0)) == (0, 0, 0)
    assert img.getpixel((1, 0)) == (255, 255, 255)
