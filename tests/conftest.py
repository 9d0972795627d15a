import numpy as np
import pytest

from rastergray.models.raster_image import RasterImage
from rastergray.repositories.raster_repository import RasterRepository
from rastergray.services.grayscale_service import GrayscaleService
from rastergray.services.image_service import ImageService
from rastergray.services.pixel_accessor import pixel_view


def make_raster(pixels: np.ndarray, pad: int = 0, fill: int = 0) -> RasterImage:
    """Pack `pixels` into a RasterImage whose rows carry `pad` extra bytes set to `fill`."""
    height, width = pixels.shape[:2]
    channels = 1 if pixels.ndim == 2 else pixels.shape[2]
    stride = width * channels + pad
    image = RasterImage(width=width, height=height, stride=stride, channels=channels,
                        data=bytearray([fill]) * (height * stride))
    if height and width:
        pixel_view(image)[...] = pixels
    return image


def make_gray(width: int, height: int, pad: int = 0, fill: int = 0) -> RasterImage:
    stride = width + pad
    return RasterImage(width=width, height=height, stride=stride, channels=1,
                       data=bytearray([fill]) * (height * stride))


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def random_bgr(rng):
    return rng.integers(0, 256, size=(13, 17, 3), dtype=np.uint8)


@pytest.fixture
def grayscale_service():
    return GrayscaleService(rounding="nearest", workers=1, alignment=4)


@pytest.fixture
def raster_repository():
    return RasterRepository(alignment=4)


@pytest.fixture
def image_service():
    return ImageService(alignment=4)
