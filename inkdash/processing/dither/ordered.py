import numpy as np
import numpy.typing as npt

from ...constants import MAX_SAMPLE


def _tiled_thresholds(matrix: npt.NDArray[np.integer], height: int, width: int) -> npt.NDArray[np.float64]:
    """Tile the matrix over the image so that cell (y, x) reads matrix[y % n][x % n]."""
    mh, mw = matrix.shape
    tiled_matrix = np.tile(matrix, (height // mh + 1, width // mw + 1))
    # Thresholds sit in the middle of each matrix step
    return tiled_matrix[:height, :width].astype(np.float64) + 0.5


def _levels(lum: npt.NDArray[np.float64], steps: int) -> npt.NDArray[np.float64]:
    """Scale 0..65535 luminance onto 0..steps (exclusive)."""
    return lum * steps / (MAX_SAMPLE + 1.0)


def ordered_dither(
    lum: npt.NDArray[np.float64],
    matrix: npt.NDArray[np.integer],
    invert: bool = False
) -> npt.NDArray[np.bool_]:
    """
    Apply ordered (Bayer) dithering.

    Luminance is scaled onto the matrix range (0..63 for 8x8, 0..15 for 4x4)
    and a pixel is black when its level falls below the matrix cell at
    (x mod n, y mod n).

    Args:
        lum: Luminance array (height, width) on the 0..65535 scale.
        matrix: Square Bayer matrix holding 0..n*n-1.
        invert: Flip black and white after the decision.

    Returns:
        Boolean array, True where the pixel is black.
    """
    height, width = lum.shape
    steps = matrix.shape[0] * matrix.shape[1]

    is_black = _levels(lum, steps) < _tiled_thresholds(matrix, height, width)

    if invert:
        is_black = ~is_black
    return is_black


def hybrid_dither(
    lum: npt.NDArray[np.float64],
    matrix: npt.NDArray[np.integer],
    low: float,
    high: float,
    invert: bool = False
) -> npt.NDArray[np.bool_]:
    """
    Ordered dithering restricted to a mid-tone band.

    Pixels darker than `low` are black and pixels brighter than `high` are
    white regardless of their matrix position; only the band in between is
    dithered. Keeps text and solid areas crisp on rendered pages.
    """
    is_black = ordered_dither(lum, matrix)
    is_black = np.where(lum < low, True, is_black)
    is_black = np.where(lum > high, False, is_black)

    if invert:
        is_black = ~is_black
    return is_black
