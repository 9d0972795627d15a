from pathlib import Path
from typing import List, Union
import logging
import os

from dotenv import load_dotenv
from tqdm import tqdm

from ..models.errors import RasterError
from ..services.grayscale_service import GrayscaleService
from ..services.image_service import ImageService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def batch_convert(
    folder: Union[str, Path],
    output_dir: Union[str, Path],
    image_service: ImageService = None,
    grayscale_service: GrayscaleService = None,
    recursive: bool = False,
    rounding: str = None,
    suffix: str = None,
    ext: str = None,
) -> List[Path]:
    """
    Convert every readable image under `folder` to grayscale and save it in `output_dir`
    as <stem><suffix><ext>. Images that fail are logged and skipped.

    Returns:
        List[Path]: the files that were written, in processing order.
    """
    image_service = image_service or ImageService()
    grayscale_service = grayscale_service or GrayscaleService()
    suffix = suffix if suffix is not None else os.getenv("GRAY_OUTPUT_SUFFIX", "_gray")
    output_ext = ext or os.getenv("OUTPUT_IMG_EXT") or ".png"
    output_dir = Path(output_dir)

    written = []
    gallery = image_service.stream_gallery(folder, recursive=recursive)
    for color_img in tqdm(gallery, desc="Converting to grayscale", unit="img"):
        try:
            gray_img = grayscale_service.to_grayscale(color_img, rounding=rounding)
            target = output_dir / f"{color_img.path.stem}{suffix}{output_ext}"
            written.append(image_service.save(gray_img, target))
        except (RasterError, OSError) as err:
            logger.error("Failed to convert %s: %s", color_img.path, err)

    logger.info("Converted %d image(s) from %s into %s", len(written), folder, output_dir)
    return written
