from pathlib import Path
from typing import Iterable, Union, Iterator
import logging

import numpy as np

from ..models.raster_image import RasterImage
from ..repositories.raster_repository import RasterRepository

logger = logging.getLogger(__name__)


class ImageService:
    """I/O helpers.  No conversion logic here."""
    def __init__(self, alignment: int = None):
        self.raster_repository = RasterRepository(alignment=alignment)

    def create_image(self, pixels: np.ndarray, path: Union[str, Path] = None) -> RasterImage:
        return self.raster_repository.from_array(pixels, path)

    def load(self, path: Union[str, Path]) -> RasterImage:
        """Load a single image from disk into a RasterImage."""
        image = self.raster_repository.load(path)
        self.log_layout(image)
        return image

    def stream_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] = None,
    ) -> Iterator[RasterImage]:
        """
        Yield images lazily instead of returning a gigantic list.
        """
        return self.raster_repository.iter_dir(folder, recursive=recursive, exts=exts)

    def save(self, image: RasterImage, path: Union[str, Path] = None) -> Path:
        target = self.raster_repository.save(image, path)
        logger.info("Saved %dx%d image to %s", image.width, image.height, target)
        return target

    def to_array(self, image: RasterImage) -> np.ndarray:
        return self.raster_repository.to_array(image)

    @staticmethod
    def log_layout(image: RasterImage) -> None:
        """
        Log how the rows of `image` are laid out in memory.
        With padding, the stride in bits exceeds the pixel payload of a row.
        """
        logger.info("Image: %s, height: %d, width: %d, widthStep: %d",
                    image.path, image.height, image.width, image.stride)
        logger.info("width * %d: %d bits, widthStep * 8: %d bits (%d pad byte(s) per row)",
                    image.channels * image.depth_bits, image.row_bytes * 8,
                    image.stride * 8, image.padding)
