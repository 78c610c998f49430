import numpy as np
import numpy.typing as npt
from PIL import Image

from ...constants import DitherPattern, BAYER_8x8, BAYER_4x4, HYBRID_LOW, HYBRID_HIGH
from ..luminance import luminance

from .floyd_steinberg import floyd_steinberg_dither
from .ordered import ordered_dither, hybrid_dither

MonochromeImage = npt.NDArray[np.bool_]


def apply_dithering_algorithm(
    pattern: DitherPattern,
    lum: npt.NDArray[np.float64],
    invert: bool = False,
    low: float = HYBRID_LOW,
    high: float = HYBRID_HIGH
) -> MonochromeImage:
    """
    Dispatch to appropriate dithering function.
    """
    match pattern:
        case 'ordered-8x8':
            return ordered_dither(lum, BAYER_8x8, invert)
        case 'ordered-4x4':
            return ordered_dither(lum, BAYER_4x4, invert)
        case 'hybrid-4x4':
            return hybrid_dither(lum, BAYER_4x4, low, high, invert)
        case 'hybrid-8x8':
            return hybrid_dither(lum, BAYER_8x8, low, high, invert)
        case 'floyd-steinberg':
            return floyd_steinberg_dither(lum, invert)
        case _:
            raise ValueError(f"Unknown dithering pattern: {pattern}")


def dither(
    img: Image.Image,
    pattern: DitherPattern = 'floyd-steinberg',
    invert: bool = False,
    low: float = HYBRID_LOW,
    high: float = HYBRID_HIGH
) -> MonochromeImage:
    """Convert a color image into a monochrome grid (True = black)."""
    return apply_dithering_algorithm(pattern, luminance(img), invert, low, high)


def to_pil(mono: MonochromeImage) -> Image.Image:
    """Render a monochrome grid as a black-on-white RGB image."""
    height, width = mono.shape
    rgb = np.where(mono[:, :, None], 0, 255).astype(np.uint8)
    rgb = np.broadcast_to(rgb, (height, width, 3)).copy()
    return Image.fromarray(rgb)
