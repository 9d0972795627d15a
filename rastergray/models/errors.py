class RasterError(Exception):
    """Base class for every error raised by rastergray."""


class ShapeMismatch(RasterError, ValueError):
    """Source and destination width/height disagree. Nothing was written."""

    def __init__(self, source_shape, destination_shape):
        self.source_shape = source_shape
        self.destination_shape = destination_shape
        super().__init__(
            f"Shape mismatch: source is {source_shape[0]}x{source_shape[1]}, "
            f"destination is {destination_shape[0]}x{destination_shape[1]}"
        )


class InvalidLayout(RasterError, ValueError):
    """Stride or buffer length cannot hold the declared pixels."""


class UnsupportedFormat(RasterError, ValueError):
    """Channel count or sample depth is not what the operation expects."""


class PixelOutOfBounds(RasterError, IndexError):
    """A (row, col, channel) tuple falls outside the image's pixel region."""
