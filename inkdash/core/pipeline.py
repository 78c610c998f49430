from pathlib import Path
from typing import Optional, Tuple, Union

from PIL import Image

from ..constants import DISPLAY_SIZE, HYBRID_LOW, HYBRID_HIGH, DitherPattern
from ..processing.dither import dither
from ..processing.bitmap import encode_monochrome, encode_threshold
from .utils import get_output_filename


def fit_cover(img: Image.Image, size: Tuple[int, int] = DISPLAY_SIZE) -> Image.Image:
    """
    Scale an image to fill `size` without distortion.

    The source is center-cropped to the target aspect ratio first, then
    resized bilinearly.
    """
    if img.mode != 'RGB':
        img = img.convert('RGB')

    src_w, src_h = img.size
    target_w, target_h = size
    target_ratio = target_w / target_h
    src_ratio = src_w / src_h

    if src_ratio > target_ratio:
        # Wider than the display: trim the sides
        new_w = int(src_h * target_ratio)
        offset_x = (src_w - new_w) // 2
        box = (offset_x, 0, offset_x + new_w, src_h)
    else:
        # Taller than the display: trim top and bottom
        new_h = int(src_w / target_ratio)
        offset_y = (src_h - new_h) // 2
        box = (0, offset_y, src_w, offset_y + new_h)

    return img.resize(size, Image.Resampling.BILINEAR, box=box)


def image_to_bitmap(
    img: Image.Image,
    pattern: DitherPattern = 'floyd-steinberg',
    invert: bool = False,
    low: float = HYBRID_LOW,
    high: float = HYBRID_HIGH,
    direct: bool = False
) -> bytes:
    """
    Run the full conversion: color image -> monochrome grid -> 1-bit BMP.

    Args:
        img: Source image in any PIL mode.
        pattern: Dithering algorithm.
        invert: Flip black and white after dithering.
        low: Hybrid band lower bound (0..65535).
        high: Hybrid band upper bound (0..65535).
        direct: Skip dithering and cut at 50% luminance instead.
    """
    if direct:
        return encode_threshold(img)
    return encode_monochrome(dither(img, pattern, invert, low, high))


def convert_file(
    input_path: Union[str, Path],
    output_path: Optional[Union[str, Path]] = None,
    **kwargs
) -> Path:
    """
    Convert an image file on disk to a monochrome BMP.

    Args:
        input_path: Path to input image.
        output_path: Optional output path. Defaults to `<stem>-mono.bmp`.
        **kwargs: Passed on to image_to_bitmap.

    Returns:
        Path where the bitmap was written.
    """
    with Image.open(input_path) as img:
        data = image_to_bitmap(img, **kwargs)

    if output_path is None:
        output_path = get_output_filename(input_path)
    output_path = Path(output_path)
    output_path.write_bytes(data)
    return output_path
