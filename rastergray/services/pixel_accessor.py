"""
Strided pixel buffer access.

Every read and write of a single sample goes through `pixel_offset`, which is
the one place that knows how rows, pixels and channels map onto the flat buffer:

    offset = row * stride + (col * channels + channel) * bytes_per_channel

A validated offset always lands inside the pixel payload of a row, never in
the trailing padding.
"""
from typing import Tuple

import numpy as np

from ..models.errors import PixelOutOfBounds, UnsupportedFormat
from ..models.raster_image import RasterImage

_SAMPLE_DTYPES = {1: np.uint8, 2: np.dtype("<u2"), 4: np.dtype("<u4")}


def pixel_offset(image: RasterImage, row: int, col: int, channel: int = 0) -> int:
    """
    Args:
        image: The raster whose geometry is used.
        row: Row index in [0, height).
        col: Column index in [0, width).
        channel: Channel index in [0, channels).

    Returns:
        (int): Byte offset of the first byte of that sample.

    Raises:
        PixelOutOfBounds: if any index falls outside the image.
    """
    if not 0 <= row < image.height:
        raise PixelOutOfBounds(f"row {row} outside [0, {image.height})")
    if not 0 <= col < image.width:
        raise PixelOutOfBounds(f"col {col} outside [0, {image.width})")
    if not 0 <= channel < image.channels:
        raise PixelOutOfBounds(f"channel {channel} outside [0, {image.channels})")
    return row * image.stride + (col * image.channels + channel) * image.bytes_per_channel


def read_channel(image: RasterImage, row: int, col: int, channel: int = 0) -> int:
    start = pixel_offset(image, row, col, channel)
    if image.bytes_per_channel == 1:
        return image.data[start]
    return int.from_bytes(image.data[start:start + image.bytes_per_channel], "little")


def write_channel(image: RasterImage, row: int, col: int, channel: int, value: int) -> None:
    start = pixel_offset(image, row, col, channel)
    limit = (1 << image.depth_bits) - 1
    if not 0 <= value <= limit:
        raise ValueError(f"Sample value {value} does not fit in {image.depth_bits} bits")
    if image.bytes_per_channel == 1:
        image.data[start] = value
    else:
        image.data[start:start + image.bytes_per_channel] = value.to_bytes(
            image.bytes_per_channel, "little")


def read_pixel(image: RasterImage, row: int, col: int) -> Tuple[int, ...]:
    """All channel values of one pixel, in buffer order (BGR for color images)."""
    return tuple(read_channel(image, row, col, c) for c in range(image.channels))


def pixel_view(image: RasterImage) -> np.ndarray:
    """
    Zero-copy numpy view over the pixel payload of `image`.

    Shape is (H, W, C) for multi-channel images and (H, W) for single-channel
    ones. The row stride of the view is the image stride, so padding bytes are
    skipped and writes through the view never touch them.
    """
    dtype = _SAMPLE_DTYPES.get(image.bytes_per_channel)
    if dtype is None:
        raise UnsupportedFormat(f"No sample type for {image.bytes_per_channel} bytes per channel")

    bpc = image.bytes_per_channel
    if image.channels == 1:
        shape, strides = (image.height, image.width), (image.stride, bpc)
    else:
        shape = (image.height, image.width, image.channels)
        strides = (image.stride, image.channels * bpc, bpc)

    if image.is_empty:
        return np.zeros(shape, dtype=dtype)
    return np.ndarray(shape=shape, dtype=dtype, buffer=image.data, strides=strides)
