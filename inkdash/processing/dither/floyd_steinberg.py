import numpy as np
import numpy.typing as npt
from numba import jit

from ...constants import MAX_SAMPLE

# Midpoint of the normalized luminance range
FS_THRESHOLD = 0.5


@jit(nopython=True)
def _floyd_steinberg_jit(
    buf: npt.NDArray[np.float64],
    out: npt.NDArray[np.bool_]
) -> None:
    """
    Core Floyd-Steinberg error diffusion loop optimized with Numba.

    Args:
        buf: Normalized luminance (0.0 to 1.0), modified in-place. After the
             run each cell holds the value the pixel was quantized from.
        out: Boolean output array, True where the pixel is black.
    """
    height, width = buf.shape

    for y in range(height):
        for x in range(width):
            old_pixel = buf[y, x]
            new_pixel = 1.0 if old_pixel >= FS_THRESHOLD else 0.0
            out[y, x] = new_pixel < FS_THRESHOLD

            error = old_pixel - new_pixel

            # Distribute error to not-yet-visited neighbours, no wraparound
            if x + 1 < width:
                buf[y, x + 1] += error * 7 / 16
            if y + 1 < height:
                if x > 0:
                    buf[y + 1, x - 1] += error * 3 / 16
                buf[y + 1, x] += error * 5 / 16
                if x + 1 < width:
                    buf[y + 1, x + 1] += error * 1 / 16


def diffuse(lum: npt.NDArray[np.float64]) -> tuple[npt.NDArray[np.bool_], npt.NDArray[np.float64]]:
    """
    Run error diffusion and also return the running luminance buffer.

    Args:
        lum: Luminance array (height, width) on the 0..65535 scale.

    Returns:
        (is_black, buffer) where buffer holds, per pixel, the diffused value
        the quantizer saw.
    """
    buf = lum.astype(np.float64) / float(MAX_SAMPLE)
    out = np.zeros(buf.shape, dtype=np.bool_)
    if buf.size:
        _floyd_steinberg_jit(buf, out)
    return out, buf


def floyd_steinberg_dither(
    lum: npt.NDArray[np.float64],
    invert: bool = False
) -> npt.NDArray[np.bool_]:
    """
    Apply Floyd-Steinberg dithering.

    Quantization error is pushed 7/16 right, 3/16 down-left, 5/16 down and
    1/16 down-right. Neighbours outside the image are skipped.

    Args:
        lum: Luminance array (height, width) on the 0..65535 scale.
        invert: Flip black and white after quantization.

    Returns:
        Boolean array, True where the pixel is black.
    """
    is_black, _ = diffuse(lum)
    if invert:
        is_black = ~is_black
    return is_black
