import struct
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
from PIL import Image

from ..constants import (
    DIRECT_THRESHOLD, FILE_HEADER_SIZE, DIB_HEADER_SIZE, PIXEL_OFFSET
)
from ..errors import EncodeError
from .luminance import luminance

# "BM", file size, reserved1, reserved2, pixel offset
_FILE_HEADER = struct.Struct('<2sIHHI')
# header size, width, height, planes, bit count, compression, image size,
# x ppm, y ppm, colors used, important colors
_DIB_HEADER = struct.Struct('<IiiHHIIiiII')

# Palette entries are B, G, R, reserved
_PALETTE = bytes([
    0xFF, 0xFF, 0xFF, 0x00,  # 0: white
    0x00, 0x00, 0x00, 0x00,  # 1: black
])


@dataclass(frozen=True)
class BitmapHeader:
    signature: bytes
    file_size: int
    pixel_offset: int
    dib_size: int
    width: int
    height: int
    planes: int
    bits_per_pixel: int
    compression: int
    image_size: int
    colors_used: int
    important_colors: int


def row_size(width: int) -> int:
    """Bytes per stored row: ceil(width / 8) rounded up to a multiple of 4."""
    raw_row_bytes = (width + 7) // 8
    return (raw_row_bytes + 3) & ~3


def encode_monochrome(mono: npt.NDArray[np.bool_]) -> bytes:
    """
    Encode a monochrome grid as a 1-bit-per-pixel BMP.

    Rows are written bottom-up, MSB first, black = 1, each padded with zero
    bytes to a 4-byte boundary. The 2-entry palette maps 0 to white and
    1 to black.

    Args:
        mono: 2-D boolean array, True where the pixel is black.

    Returns:
        Complete BMP file contents.

    Raises:
        EncodeError: If `mono` is not a 2-D boolean array.
    """
    if not isinstance(mono, np.ndarray):
        raise EncodeError(f"Expected a numpy array, got {type(mono).__name__}")
    if mono.ndim != 2:
        raise EncodeError(f"Expected a 2-D monochrome grid, got shape {mono.shape}")
    if mono.dtype != np.bool_:
        raise EncodeError(f"Expected a boolean grid, got dtype {mono.dtype}")

    height, width = mono.shape
    stride = row_size(width)
    image_size = stride * height
    file_size = PIXEL_OFFSET + image_size

    # packbits pads each row's last byte with zero bits
    packed = np.packbits(mono[::-1], axis=1, bitorder='big')
    rows = np.zeros((height, stride), dtype=np.uint8)
    rows[:, :packed.shape[1]] = packed

    header = _FILE_HEADER.pack(b'BM', file_size, 0, 0, PIXEL_OFFSET)
    dib = _DIB_HEADER.pack(
        DIB_HEADER_SIZE,
        width,
        height,  # positive height: bottom-up
        1,       # planes
        1,       # bit count
        0,       # BI_RGB
        image_size,
        0,
        0,
        2,
        2,
    )
    return header + dib + _PALETTE + rows.tobytes()


def threshold_monochrome(img: Image.Image, threshold: float = DIRECT_THRESHOLD) -> npt.NDArray[np.bool_]:
    """Direct conversion: black where luminance is below the 50% point."""
    return luminance(img) < threshold


def encode_threshold(img: Image.Image) -> bytes:
    """Encode a color image without dithering, using the 50% luminance cut."""
    return encode_monochrome(threshold_monochrome(img))


def read_header(data: bytes) -> BitmapHeader:
    """
    Parse the file and DIB headers of a BMP byte string.

    Raises:
        EncodeError: If the data is too short or not a BMP.
    """
    if len(data) < FILE_HEADER_SIZE + DIB_HEADER_SIZE:
        raise EncodeError(f"Bitmap too short: {len(data)} bytes")

    signature, file_size, _, _, pixel_offset = _FILE_HEADER.unpack_from(data, 0)
    if signature != b'BM':
        raise EncodeError(f"Not a bitmap, signature {signature!r}")

    (dib_size, width, height, planes, bits, compression, image_size,
     _, _, colors_used, important) = _DIB_HEADER.unpack_from(data, FILE_HEADER_SIZE)

    return BitmapHeader(
        signature=signature,
        file_size=file_size,
        pixel_offset=pixel_offset,
        dib_size=dib_size,
        width=width,
        height=height,
        planes=planes,
        bits_per_pixel=bits,
        compression=compression,
        image_size=image_size,
        colors_used=colors_used,
        important_colors=important,
    )
