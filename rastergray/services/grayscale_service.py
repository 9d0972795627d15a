from __future__ import annotations

import os
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Tuple

import cv2
import numpy as np
from dotenv import load_dotenv

from ..models.errors import InvalidLayout, ShapeMismatch, UnsupportedFormat
from ..models.raster_image import RasterImage, ChannelOrder, allocate_like, DEFAULT_ROW_ALIGNMENT
from .pixel_accessor import read_channel, write_channel, pixel_view

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Luma weights of BT.601, the ones cv2.COLOR_BGR2GRAY uses.
BLUE_WEIGHT, GREEN_WEIGHT, RED_WEIGHT = 0.114, 0.587, 0.299

# Integer forms of the weights. The per-mille ones sum to exactly 1000 and the
# 14-bit ones (the classic OpenCV table) to exactly 1 << 14, so white stays 255.
_MILLI_WEIGHTS = (114, 587, 299)
_FIXED_WEIGHTS = (1868, 9617, 4899)
_FIXED_SHIFT = 14

ROUNDING_RULES = ("nearest", "truncate", "fixed_point")


def gray_value(blue: int, green: int, red: int, rounding: str = "nearest") -> int:
    """
    Grayscale intensity of one BGR pixel.

    nearest:     round-half-up of 0.114 B + 0.587 G + 0.299 R
    truncate:    floor of the same sum, like an implicit float -> uchar cast
    fixed_point: the classic 14-bit OpenCV table, within 1 of cvtColor
    """
    if rounding == "fixed_point":
        wb, wg, wr = _FIXED_WEIGHTS
        return (wb * blue + wg * green + wr * red + (1 << (_FIXED_SHIFT - 1))) >> _FIXED_SHIFT
    wb, wg, wr = _MILLI_WEIGHTS
    total = wb * blue + wg * green + wr * red
    if rounding == "nearest":
        return (total + 500) // 1000
    if rounding == "truncate":
        return total // 1000
    raise ValueError(f"Unknown rounding rule '{rounding}', expected one of {ROUNDING_RULES}")


def _gray_rows(bgr: np.ndarray, rounding: str) -> np.ndarray:
    # int32 holds 255 * 16384 comfortably, uint8 arithmetic would wrap
    wide = bgr.astype(np.int32)
    blue = wide[..., ChannelOrder.BLUE]
    green = wide[..., ChannelOrder.GREEN]
    red = wide[..., ChannelOrder.RED]

    if rounding == "fixed_point":
        wb, wg, wr = _FIXED_WEIGHTS
        gray = (wb * blue + wg * green + wr * red + (1 << (_FIXED_SHIFT - 1))) >> _FIXED_SHIFT
    else:
        wb, wg, wr = _MILLI_WEIGHTS
        total = wb * blue + wg * green + wr * red
        gray = (total + 500) // 1000 if rounding == "nearest" else total // 1000
    return gray.astype(np.uint8)


def split_rows(height: int, parts: int) -> List[Tuple[int, int]]:
    """
    Contiguous [start, end) row blocks, the first `height % parts` blocks one row longer.
    Empty blocks are dropped.
    """
    parts = max(1, min(parts, height)) if height else 1
    chunk_size, remainder = divmod(height, parts)
    blocks = []
    start = 0
    for part in range(parts):
        end = start + chunk_size + (1 if part < remainder else 0)
        if end > start:
            blocks.append((start, end))
        start = end
    return blocks


class GrayscaleService:
    """
    BGR -> grayscale conversion done by hand over strided buffers.
    Only the destination buffer is written; the source is treated as read-only.
    """

    def __init__(self, rounding: str = None, workers: int = None, alignment: int = None):
        self.rounding = rounding or os.getenv("GRAY_ROUNDING", "nearest")
        if workers is None:
            workers = os.getenv("GRAY_WORKERS", "1")
        if alignment is None:
            alignment = os.getenv("ROW_ALIGNMENT", str(DEFAULT_ROW_ALIGNMENT))
        self.workers = int(workers)
        self.alignment = int(alignment)
        self._check_rounding(self.rounding)
        self._check_workers(self.workers)
        if self.alignment < 1:
            raise InvalidLayout(f"Row alignment must be positive, got {self.alignment}")

    # ─── Validation ────────────────────────────────────────────────
    @staticmethod
    def _check_workers(workers: int) -> None:
        if workers < 1:
            raise ValueError(f"Worker count must be at least 1, got {workers}")

    @staticmethod
    def _check_rounding(rounding: str) -> None:
        if rounding not in ROUNDING_RULES:
            raise ValueError(f"Unknown rounding rule '{rounding}', expected one of {ROUNDING_RULES}")

    @staticmethod
    def check_compatible(source: RasterImage, destination: RasterImage) -> None:
        """
        Raises:
            UnsupportedFormat: source is not 3-channel 8-bit or destination is not 1-channel 8-bit.
            ShapeMismatch: width/height differ.
        """
        if source.channels != 3 or source.bytes_per_channel != 1:
            raise UnsupportedFormat(
                f"Source must be 3-channel 8-bit BGR, got {source.channels} channel(s) "
                f"of {source.depth_bits} bits")
        if destination.channels != 1 or destination.bytes_per_channel != 1:
            raise UnsupportedFormat(
                f"Destination must be 1-channel 8-bit, got {destination.channels} channel(s) "
                f"of {destination.depth_bits} bits")
        if source.size != destination.size:
            raise ShapeMismatch(source.size, destination.size)

    # ─── Public API ────────────────────────────────────────────────
    def convert(self, source: RasterImage, destination: RasterImage,
                rounding: str = None, workers: int = None) -> RasterImage:
        """
        Fill `destination` with the grayscale of `source`.

        Args:
            source: 3-channel 8-bit BGR image.
            destination: 1-channel 8-bit image of the same width and height.
            rounding: Overrides the configured rounding rule.
            workers: Overrides the configured worker count; >1 splits rows across threads.

        Returns:
            (RasterImage): `destination`, for chaining.
        """
        rounding = rounding or self.rounding
        workers = self.workers if workers is None else int(workers)
        self._check_rounding(rounding)
        self._check_workers(workers)
        self.check_compatible(source, destination)

        if source.is_empty:
            logger.debug("Empty %dx%d image, nothing to convert", source.width, source.height)
            return destination

        src = pixel_view(source)
        dst = pixel_view(destination)
        blocks = split_rows(source.height, workers)

        if len(blocks) == 1:
            dst[...] = _gray_rows(src, rounding)
        else:
            logger.debug("Converting %d rows in %d blocks", source.height, len(blocks))

            def _convert_block(block: Tuple[int, int]) -> None:
                start, end = block
                dst[start:end] = _gray_rows(src[start:end], rounding)

            with ThreadPoolExecutor(max_workers=len(blocks)) as pool:
                for future in [pool.submit(_convert_block, b) for b in blocks]:
                    future.result()

        return destination

    def convert_reference(self, source: RasterImage, destination: RasterImage,
                          rounding: str = None) -> RasterImage:
        """
        Pixel-by-pixel conversion through the accessor functions.
        Slow; kept as the oracle the vectorised path is checked against.
        """
        rounding = rounding or self.rounding
        self._check_rounding(rounding)
        self.check_compatible(source, destination)

        for row in range(source.height):
            for col in range(source.width):
                blue = read_channel(source, row, col, ChannelOrder.BLUE)
                green = read_channel(source, row, col, ChannelOrder.GREEN)
                red = read_channel(source, row, col, ChannelOrder.RED)
                write_channel(destination, row, col, 0, gray_value(blue, green, red, rounding))
        return destination

    def new_grayscale(self, source: RasterImage) -> RasterImage:
        """Allocate an empty grayscale image matching `source`."""
        return allocate_like(source, channels=1, alignment=self.alignment)

    def to_grayscale(self, source: RasterImage, rounding: str = None) -> RasterImage:
        """Allocate a destination and convert into it."""
        destination = self.new_grayscale(source)
        self.convert(source, destination, rounding=rounding)
        destination.path = source.path
        return destination

    def library_grayscale(self, source: RasterImage) -> RasterImage:
        """The same conversion done by cv2.cvtColor, for comparison."""
        destination = self.new_grayscale(source)
        self.check_compatible(source, destination)
        if not source.is_empty:
            pixel_view(destination)[...] = cv2.cvtColor(
                np.ascontiguousarray(pixel_view(source)), cv2.COLOR_BGR2GRAY)
        destination.path = source.path
        return destination

    @staticmethod
    def difference(first: RasterImage, second: RasterImage) -> Tuple[int, int]:
        """
        Returns:
            (max_abs_diff, mismatched_pixels) between two grayscale images of equal size.

        Raises:
            UnsupportedFormat: either image is not 1-channel 8-bit.
            ShapeMismatch: width/height differ.
        """
        for image in (first, second):
            if image.channels != 1 or image.bytes_per_channel != 1:
                raise UnsupportedFormat(
                    f"Can only compare 1-channel 8-bit images, got {image.channels} channel(s) "
                    f"of {image.depth_bits} bits")
        if first.size != second.size:
            raise ShapeMismatch(first.size, second.size)
        if first.is_empty:
            return 0, 0
        delta = np.abs(pixel_view(first).astype(np.int16) - pixel_view(second).astype(np.int16))
        return int(delta.max()), int(np.count_nonzero(delta))
