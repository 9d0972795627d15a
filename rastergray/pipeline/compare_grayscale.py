from pathlib import Path
from typing import Union
import logging

from ..models.grayscale_comparison import GrayscaleComparison
from ..models.raster_image import RasterImage
from ..services.grayscale_service import GrayscaleService
from ..services.image_service import ImageService

logger = logging.getLogger(__name__)


def compare_images(
    color_img: RasterImage,
    grayscale_service: GrayscaleService = None,
    rounding: str = None,
) -> GrayscaleComparison:
    """
    Convert `color_img` both with cv2.cvtColor and by hand, then measure the difference.
    """
    grayscale_service = grayscale_service or GrayscaleService()
    rounding = rounding or grayscale_service.rounding

    library_gray = grayscale_service.library_grayscale(color_img)

    manual_gray = grayscale_service.new_grayscale(color_img)
    grayscale_service.convert(color_img, manual_gray, rounding=rounding)
    manual_gray.path = color_img.path

    max_abs_diff, mismatched = grayscale_service.difference(library_gray, manual_gray)
    comparison = GrayscaleComparison(
        source=color_img,
        library_gray=library_gray,
        manual_gray=manual_gray,
        max_abs_diff=max_abs_diff,
        mismatched_pixels=mismatched,
        rounding=rounding,
    )
    logger.info("%s: %d/%d pixels differ from cvtColor (max difference %d, rounding=%s)",
                color_img.path or "<memory>", mismatched, comparison.total_pixels,
                max_abs_diff, rounding)
    return comparison


def compare_grayscale(
    path: Union[str, Path],
    image_service: ImageService = None,
    grayscale_service: GrayscaleService = None,
    rounding: str = None,
) -> GrayscaleComparison:
    """
    Load a color image from `path` and compare the manual grayscale with OpenCV's.

    Raises:
        FileNotFoundError: if the image cannot be opened.
    """
    image_service = image_service or ImageService()
    color_img = image_service.load(path)
    return compare_images(color_img, grayscale_service=grayscale_service, rounding=rounding)
