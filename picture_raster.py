"""
Picture Processor - Raster storage and packed colors

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
import sys

from pathlib import Path
from typing import Iterable, Tuple

import numpy as np
from PIL import Image


# Full-opacity bit carried by every packed color
OPAQUE = 0xFF000000

DEFAULT_QUALITY = 95


logger = logging.getLogger(__name__)


class PictureError(Exception):
    pass


class InvalidParameterError(PictureError, ValueError):
    pass


def pack_rgb(red: int, green: int, blue: int) -> int:
    return OPAQUE | (red & 0xFF) << 16 | (green & 0xFF) << 8 | (blue & 0xFF)


def unpack_rgb(color: int) -> Tuple[int, int, int]:
    return (color >> 16) & 0xFF, (color >> 8) & 0xFF, color & 0xFF


class Raster:
    """
    A width x height grid of RGB pixels backed by a (height, width, 3) uint8 array.

    Pixels are addressed by (x, y) and exchanged as packed 24-bit colors with
    the opacity bit set. Whole-image operations work on the array directly.
    """

    __hash__ = None

    def __init__(self, width: int, height: int) -> None:
        if width < 0 or height < 0:
            raise InvalidParameterError(
                f"Raster dimensions must be non-negative, got {width}x{height}"
            )
        self._pixels = np.zeros((height, width, 3), dtype=np.uint8)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "Raster":
        """
        Builds a raster from an (height, width, 3) array of 8-bit channels.
        The array is copied, so later changes to it do not leak into the raster.
        """
        if array.ndim != 3 or array.shape[2] != 3:
            raise InvalidParameterError(
                f"Expected an array of shape (height, width, 3), got {array.shape}"
            )
        raster = cls(array.shape[1], array.shape[0])
        raster._pixels[...] = np.clip(array, 0, 255)
        return raster

    @classmethod
    def from_packed(cls, width: int, height: int, colors: Iterable[int]) -> "Raster":
        """Builds a raster from packed colors listed in row-major order."""
        packed = np.fromiter(colors, dtype=np.int64)
        if packed.size != width * height:
            raise InvalidParameterError(
                f"Expected {width * height} colors for a {width}x{height} raster, got {packed.size}"
            )
        channels = np.stack(
            [(packed >> 16) & 0xFF, (packed >> 8) & 0xFF, packed & 0xFF], axis=1
        )
        return cls.from_array(channels.reshape(height, width, 3))

    @classmethod
    def load(cls, source: Path | Image.Image | str | None) -> "Raster":
        """
        Reads an image from the given source and converts it into an RGB raster.

        Source parameter can be stdin ("-" or None), an Image, or a Path to an image file.
        Raises FileNotFoundError for a missing file and ValueError if Pillow cannot decode it.
        """
        if isinstance(source, Image.Image):
            return cls.from_array(np.array(source.convert("RGB")))

        if isinstance(source, str):
            source = Path(source)

        if source is None or source == Path("-"):
            if sys.stdin.isatty():
                raise ValueError("No input source provided and stdin is not piped.")
            source, source_name = sys.stdin.buffer, "stdin"
        else:
            if not source.exists():
                raise FileNotFoundError(f"File not found: {source}")
            source_name = str(source)

        try:
            with Image.open(source) as img:
                raster = cls.from_array(np.array(img.convert("RGB")))
        except Exception as e:
            raise ValueError(f"Failed to load image from {source_name}: {e}") from e

        logger.info(f"Loaded {raster.width}x{raster.height} image: {source_name}")
        return raster

    def save(self, path: Path | str, quality: int = DEFAULT_QUALITY) -> None:
        """
        Writes the raster with Pillow. The format follows the file extension;
        quality only matters for lossy formats like JPEG.
        """
        Image.fromarray(self._pixels).save(path, quality=quality)
        logger.info(f"Saved image: {path}")

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get_pixel(self, x: int, y: int) -> int:
        """
        Returns the packed color at (x, y).
        Raises IndexError if the location is outside the raster.
        """
        self._check_bounds(x, y)
        red, green, blue = self._pixels[y, x]
        return pack_rgb(int(red), int(green), int(blue))

    def set_pixel(self, x: int, y: int, color: int) -> None:
        """
        Updates the pixel at (x, y) with a packed color; the opacity bits are ignored.
        Raises IndexError if the location is outside the raster.
        """
        self._check_bounds(x, y)
        self._pixels[y, x] = unpack_rgb(color)

    def to_array(self) -> np.ndarray:
        """Returns a copy of the pixels as a (height, width, 3) uint8 array."""
        return self._pixels.copy()

    def _check_bounds(self, x: int, y: int) -> None:
        if not self.contains(x, y):
            raise IndexError(
                f"Pixel ({x}, {y}) is outside the {self.width}x{self.height} raster"
            )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Raster):
            return NotImplemented
        return np.array_equal(self._pixels, other._pixels)

    def __repr__(self) -> str:
        return f"Raster(width={self.width}, height={self.height})"

    def __str__(self) -> str:
        rows = [
            "".join(f"({r},{g},{b})" for r, g, b in row.tolist())
            for row in self._pixels
        ]
        return "\n".join(rows) + "\n"
