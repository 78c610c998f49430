import numpy as np
import numpy.typing as npt
from PIL import Image

from ..constants import LUMA_WEIGHTS, MAX_SAMPLE

# 8-bit samples are widened to 16 bits by replication (0xAB -> 0xABAB)
_WIDEN_8_TO_16 = 257


def luminance(img: Image.Image) -> npt.NDArray[np.float64]:
    """
    Per-pixel luminance of a PIL image on the 0..65535 scale.

    Every dithering algorithm and the direct threshold path read luminance
    through this function, so their decisions are comparable.

    Args:
        img: Any PIL image. Non-RGB modes are converted to RGB first
             (alpha is dropped, palettes are expanded).

    Returns:
        Float array of shape (height, width).
    """
    if img.mode != 'RGB':
        img = img.convert('RGB')

    width, height = img.size
    if width == 0 or height == 0:
        return np.zeros((height, width), dtype=np.float64)

    rgb = np.asarray(img, dtype=np.float64) * _WIDEN_8_TO_16
    wr, wg, wb = LUMA_WEIGHTS
    lum = wr * rgb[:, :, 0] + wg * rgb[:, :, 1] + wb * rgb[:, :, 2]
    return np.clip(lum, 0.0, float(MAX_SAMPLE))


def normalized_luminance(img: Image.Image) -> npt.NDArray[np.float64]:
    """Luminance mapped to the [0, 1] range."""
    return luminance(img) / float(MAX_SAMPLE)
