"""
Picture Processor - Per-pixel filters and picture combinators

Copyright (C) 2025 Adnan Valdes

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program. If not, see <https://www.gnu.org/licenses/>.
"""
import logging

from typing import Sequence

import cv2
import numpy as np
from scipy import ndimage

from picture_logging import log_method
from picture_raster import InvalidParameterError, Raster


# Blur neighbourhood (square, odd side)
BLUR_KERNEL_SIZE = 3

# Warhol tiling: first tile multiplier, growth per tile, green and blue scale fractions
WARHOL_BASE_MULTIPLIER = 2
WARHOL_MULTIPLIER_STEP = 3
WARHOL_GREEN_SCALE = (4, 3)
WARHOL_BLUE_SCALE = (5, 3)

FLIP_DIRECTIONS = {"V": 0, "H": 1}


logger = logging.getLogger(__name__)


def _channels(raster: Raster) -> np.ndarray:
    return raster.to_array().astype(np.int32)


@log_method()
def invert(raster: Raster) -> Raster:
    return Raster.from_array(255 - _channels(raster))


@log_method()
def grayscale(raster: Raster) -> Raster:
    """Replaces every channel with the truncated average of the three channels."""
    img = _channels(raster)
    avg = img.sum(axis=2) // 3
    return Raster.from_array(np.repeat(avg[..., None], 3, axis=2))


@log_method()
def darken(raster: Raster, magnitude: int) -> Raster:
    """Divides every channel by magnitude, truncating."""
    if magnitude < 1:
        raise InvalidParameterError(f"Darken magnitude must be at least 1, got {magnitude}")
    return Raster.from_array(_channels(raster) // magnitude)


@log_method()
def blur(raster: Raster) -> Raster:
    """
    Box blur over a 3x3 neighbourhood with truncating integer averages.
    Pixels on the border do not have a full neighbourhood and are copied as they are.
    """
    img = _channels(raster)
    kernel = np.ones((BLUR_KERNEL_SIZE, BLUR_KERNEL_SIZE, 1), dtype=np.int32)
    sums = ndimage.correlate(img, kernel, mode="constant", cval=0)

    blurred = img.copy()
    blurred[1:-1, 1:-1] = sums[1:-1, 1:-1] // kernel.size
    return Raster.from_array(blurred)


@log_method()
def rotate(raster: Raster, angle: int) -> Raster:
    """
    Rotates clockwise by a quarter turn for every started 90 degrees of angle,
    so 45 turns once and 180 turns twice.
    """
    if angle < 0:
        raise InvalidParameterError(f"Rotation angle must be non-negative, got {angle}")

    img = raster.to_array()
    turns = -(-angle // 90)
    for _ in range(turns % 4):
        img = cv2.rotate(img, cv2.ROTATE_90_CLOCKWISE)
    return Raster.from_array(img)


@log_method()
def flip(raster: Raster, direction: str) -> Raster:
    """Mirrors top-bottom for "V" and left-right for "H"."""
    if direction not in FLIP_DIRECTIONS:
        raise InvalidParameterError(
            f"Flip direction must be V or H, got {direction!r}"
        )
    return Raster.from_array(cv2.flip(raster.to_array(), FLIP_DIRECTIONS[direction]))


def _common_size(rasters: Sequence[Raster]):
    if not rasters:
        raise InvalidParameterError("At least one picture is required")
    width = min(r.width for r in rasters)
    height = min(r.height for r in rasters)
    return width, height


@log_method()
def blend(rasters: Sequence[Raster]) -> Raster:
    """
    Averages the pictures channel by channel, truncating. The result is as large
    as the smallest width and the smallest height among them.
    """
    width, height = _common_size(rasters)
    stacked = np.stack([_channels(r)[:height, :width] for r in rasters])
    return Raster.from_array(stacked.sum(axis=0) // len(rasters))


@log_method()
def mosaic(rasters: Sequence[Raster], tile_size: int) -> Raster:
    """
    Builds a checkerboard of square tiles taken from the pictures in turn.

    The canvas is the smallest common size rounded down to whole tiles. Each row
    starts on the next picture in the cycle, skipping ahead one if it would start
    on the same picture as the previous row.
    """
    if tile_size < 1:
        raise InvalidParameterError(f"Tile size must be at least 1, got {tile_size}")

    width, height = _common_size(rasters)
    width -= width % tile_size
    height -= height % tile_size

    sources = [r.to_array() for r in rasters]
    canvas = np.zeros((height, width, 3), dtype=np.uint8)

    current = 0
    row_start = 0
    for top in range(0, height, tile_size):
        if current == row_start:
            current = (current + 1) % len(sources)
        row_start = current

        for left in range(0, width, tile_size):
            tile = (slice(top, top + tile_size), slice(left, left + tile_size))
            canvas[tile] = sources[current][tile]
            current = (current + 1) % len(sources)

    logger.info(f"Mosaic of {width // tile_size}x{height // tile_size} tiles from {len(sources)} pictures")
    return Raster.from_array(canvas)


@log_method()
def warhol(raster: Raster) -> Raster:
    """
    Pop-art poster: a 2x2 grid of copies, each tinted by a growing multiplier.
    Channels that overflow are clipped to 255.
    """
    img = _channels(raster)
    height, width = img.shape[:2]
    canvas = np.zeros((height * 2, width * 2, 3), dtype=np.int64)

    multiplier = WARHOL_BASE_MULTIPLIER
    for row in range(2):
        for col in range(2):
            tinted = np.empty_like(canvas[:height, :width])
            tinted[..., 0] = img[..., 0] * multiplier
            tinted[..., 1] = img[..., 1] * multiplier * WARHOL_GREEN_SCALE[0] // WARHOL_GREEN_SCALE[1]
            tinted[..., 2] = img[..., 2] * multiplier * WARHOL_BLUE_SCALE[0] // WARHOL_BLUE_SCALE[1]
            canvas[row * height : (row + 1) * height, col * width : (col + 1) * width] = tinted
            multiplier *= WARHOL_MULTIPLIER_STEP

    return Raster.from_array(np.clip(canvas, 0, 255))
