from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from .raster_image import RasterImage


@dataclass
class GrayscaleComparison:
    """
    Data object holding the library grayscale, the hand-computed grayscale,
    and how far apart they are.
    """
    source: RasterImage          # 3-channel BGR input
    library_gray: RasterImage    # produced by cv2.cvtColor
    manual_gray: RasterImage     # produced by the strided accessor
    max_abs_diff: int            # largest per-pixel difference (0-255)
    mismatched_pixels: int       # pixels where the two results differ
    rounding: str                # rounding rule used for manual_gray

    @property
    def path(self) -> Path | None:
        return self.source.path

    @property
    def total_pixels(self) -> int:
        return self.source.width * self.source.height

    @property
    def identical(self) -> bool:
        return self.mismatched_pixels == 0

    @property
    def mismatch_ratio(self) -> float:
        if self.total_pixels == 0:
            return 0.0
        return self.mismatched_pixels / self.total_pixels
