from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path

from .errors import InvalidLayout


class ChannelOrder(IntEnum):
    """
    Interleaving of a 3-channel 8-bit pixel as delivered by OpenCV.
    The first byte of a pixel is blue, not red.
    """
    BLUE = 0
    GREEN = 1
    RED = 2


BGR = (ChannelOrder.BLUE, ChannelOrder.GREEN, ChannelOrder.RED)
DEFAULT_ROW_ALIGNMENT = 4


@dataclass
class RasterImage:
    """
    Flat byte buffer plus the geometry needed to address it.
    Rows start every `stride` bytes; bytes past the pixel payload of a row are padding.
    """
    width: int                      # pixels per row
    height: int                     # number of rows
    stride: int                     # bytes between the start of two successive rows
    channels: int = 3               # samples per pixel
    bytes_per_channel: int = 1      # 1 = 8-bit unsigned samples
    data: bytearray = field(default=None, repr=False)
    path: Path | None = None        # Source of the image, if it came from disk.

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise InvalidLayout(f"Negative dimensions: {self.width}x{self.height}")
        if self.channels < 1 or self.bytes_per_channel < 1:
            raise InvalidLayout(
                f"Invalid sample layout: channels={self.channels}, "
                f"bytes_per_channel={self.bytes_per_channel}"
            )
        if self.stride < self.row_bytes:
            raise InvalidLayout(
                f"Stride {self.stride} is smaller than the {self.row_bytes} bytes "
                f"of pixel data in a row"
            )
        if self.data is None:
            self.data = bytearray(self.buffer_size)
        if len(self.data) < self.buffer_size:
            raise InvalidLayout(
                f"Buffer holds {len(self.data)} bytes, "
                f"{self.height} rows of stride {self.stride} need {self.buffer_size}"
            )

    @property
    def row_bytes(self) -> int:
        """Bytes of real pixel data in one row."""
        return self.width * self.channels * self.bytes_per_channel

    @property
    def padding(self) -> int:
        """Trailing pad bytes at the end of every row."""
        return self.stride - self.row_bytes

    @property
    def buffer_size(self) -> int:
        return self.height * self.stride

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def depth_bits(self) -> int:
        return self.bytes_per_channel * 8

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0


def aligned_stride(row_bytes: int, alignment: int = DEFAULT_ROW_ALIGNMENT) -> int:
    """Round `row_bytes` up to the next multiple of `alignment`."""
    if alignment < 1:
        raise InvalidLayout(f"Row alignment must be positive, got {alignment}")
    return -(-row_bytes // alignment) * alignment


def allocate(
    width: int,
    height: int,
    channels: int = 3,
    bytes_per_channel: int = 1,
    alignment: int = DEFAULT_ROW_ALIGNMENT,
) -> RasterImage:
    """
    Create a zero-filled image whose rows are padded to `alignment` bytes.
    The buffer is not shared with anything else.
    """
    stride = aligned_stride(width * channels * bytes_per_channel, alignment)
    return RasterImage(width=width, height=height, stride=stride, channels=channels,
                       bytes_per_channel=bytes_per_channel)


def allocate_like(source: RasterImage, channels: int = 1,
                  alignment: int = DEFAULT_ROW_ALIGNMENT) -> RasterImage:
    """Allocate an image with the same width, height and depth as `source`."""
    return allocate(source.width, source.height, channels=channels,
                    bytes_per_channel=source.bytes_per_channel, alignment=alignment)
