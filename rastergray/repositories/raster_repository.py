from pathlib import Path
from typing import Union, Iterable, List, Iterator
import logging
import os

import numpy as np
import cv2
from PIL import Image as PILImage
from dotenv import load_dotenv

from ..models.errors import InvalidLayout, UnsupportedFormat
from ..models.raster_image import RasterImage, allocate, DEFAULT_ROW_ALIGNMENT
from ..services.pixel_accessor import pixel_view

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class RasterRepository:
    """
    Handles file I/O for RasterImage entities and packing to / from numpy arrays.
    Decoding is delegated to OpenCV, encoding to Pillow.
    """
    def __init__(self, alignment: int = None):
        self.VALID_EXTS = {
            ext.strip().lower()
            for ext in os.getenv("VALID_IMAGE_EXTENSIONS", ".jpg,.jpeg,.png,.bmp,.tif,.tiff").split(",")
            if ext.strip()
        }
        if alignment is None:
            alignment = os.getenv("ROW_ALIGNMENT", str(DEFAULT_ROW_ALIGNMENT))
        self.alignment = int(alignment)
        if self.alignment < 1:
            raise InvalidLayout(f"Row alignment must be positive, got {self.alignment}")

    def from_array(self, pixels: np.ndarray, path: Union[str, Path] = None) -> RasterImage:
        """
        Copy an (H, W) or (H, W, C) uint8 array into a freshly allocated, row-aligned RasterImage.
        """
        if pixels.dtype != np.uint8:
            raise UnsupportedFormat(f"Only 8-bit images are supported, got {pixels.dtype}")
        if pixels.ndim == 2:
            height, width = pixels.shape
            channels = 1
        elif pixels.ndim == 3:
            height, width, channels = pixels.shape
        else:
            raise UnsupportedFormat(f"Expected a 2D or 3D array, got shape {pixels.shape}")

        image = allocate(width, height, channels=channels, alignment=self.alignment)
        if not image.is_empty:
            view = pixel_view(image)
            view[...] = pixels if channels > 1 or pixels.ndim == 2 else pixels[:, :, 0]
        image.path = Path(path) if path is not None else None
        return image

    @staticmethod
    def to_array(image: RasterImage) -> np.ndarray:
        """Contiguous copy of the pixel payload, without row padding."""
        return np.ascontiguousarray(pixel_view(image))

    def load(self, path: Union[str, Path]) -> RasterImage:
        """
        Decode a color image from disk. Channels come back in BGR order.

        Raises:
            FileNotFoundError: if the file is missing or cannot be decoded.
        """
        path = Path(path)
        arr_bgr = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if arr_bgr is None:
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        return self.from_array(arr_bgr, path)

    def save(self, image: RasterImage, path: Union[str, Path] = None) -> Path:
        """
        Encode `image` to `path` (or image.path). Color images are assumed BGR.
        """
        target = Path(path) if path is not None else image.path
        if target is None:
            raise ValueError("No output path given and the image has no path")
        target.parent.mkdir(parents=True, exist_ok=True)

        pixels = self.to_array(image)
        if image.channels == 3:
            pixels = pixels[:, :, ::-1]  # BGR -> RGB for Pillow
        PILImage.fromarray(np.ascontiguousarray(pixels)).save(target)
        image.path = target
        return target

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] = None,
    ) -> Iterator[RasterImage]:
        """
        Yield RasterImage objects one at a time. Unreadable files are logged and skipped.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if p.suffix.lower() not in allowed or not p.is_file():
                logger.debug("Skipping %s", p)
                continue
            try:
                yield self.load(p)
            except FileNotFoundError as err:
                logger.warning("Skipping %s: %s", p.name, err)

    def load_dir(
        self, folder: Union[str, Path], *, recursive=False, exts=None
    ) -> List[RasterImage]:
        return list(self.iter_dir(folder, recursive=recursive, exts=exts))
