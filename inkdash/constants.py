from typing import Literal, Tuple
import numpy as np

# Display geometry of the e-paper panel
DISPLAY_SIZE: Tuple[int, int] = (800, 480)

# Luminance weights (ITU-R BT.601), applied on the 16-bit sample domain
LUMA_WEIGHTS: Tuple[float, float, float] = (0.299, 0.587, 0.114)
MAX_SAMPLE: int = 65535

# Direct (non-dithered) conversion cut point: 50% luminance
DIRECT_THRESHOLD: int = 32768

# Hybrid dithering band on the 0..65535 scale
HYBRID_LOW: int = 18000
HYBRID_HIGH: int = 52000

# Dithering patterns
DitherPattern = Literal['ordered-8x8', 'ordered-4x4', 'hybrid-4x4', 'hybrid-8x8', 'floyd-steinberg']
DITHER_PATTERNS: Tuple[str, ...] = ('ordered-8x8', 'ordered-4x4', 'hybrid-4x4', 'hybrid-8x8', 'floyd-steinberg')

# Content slots
Slot = Literal['transport', 'weather', 'quote', 'photo', 'stocks', 'calendar']
SLOTS: Tuple[str, ...] = ('transport', 'weather', 'quote', 'photo', 'stocks', 'calendar')

# Matrices
# Bayer 8x8 matrix (0..63), indexed [y % 8][x % 8]
BAYER_8x8 = np.array([
    [ 0, 32,  8, 40,  2, 34, 10, 42],
    [48, 16, 56, 24, 50, 18, 58, 26],
    [12, 44,  4, 36, 14, 46,  6, 38],
    [60, 28, 52, 20, 62, 30, 54, 22],
    [ 3, 35, 11, 43,  1, 33,  9, 41],
    [51, 19, 59, 27, 49, 17, 57, 25],
    [15, 47,  7, 39, 13, 45,  5, 37],
    [63, 31, 55, 23, 61, 29, 53, 21]
], dtype=np.uint8)
BAYER_8x8.setflags(write=False)

# Bayer 4x4 matrix (0..15), indexed [y % 4][x % 4]
BAYER_4x4 = np.array([
    [ 0,  8,  2, 10],
    [12,  4, 14,  6],
    [ 3, 11,  1,  9],
    [15,  7, 13,  5]
], dtype=np.uint8)
BAYER_4x4.setflags(write=False)

# BMP layout
FILE_HEADER_SIZE: int = 14
DIB_HEADER_SIZE: int = 40
PALETTE_SIZE: int = 8
PIXEL_OFFSET: int = FILE_HEADER_SIZE + DIB_HEADER_SIZE + PALETTE_SIZE
