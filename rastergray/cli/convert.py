import os
import sys
import logging
import argparse
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from ..models.errors import RasterError
from ..services.grayscale_service import GrayscaleService, ROUNDING_RULES
from ..services.image_service import ImageService
from ..services.display_service import show_comparison
from ..pipeline.compare_grayscale import compare_grayscale
from ..pipeline.batch_convert import batch_convert

logger = logging.getLogger(__name__)


def resolve_log_level(verbose: bool = False) -> int:
    """DEBUG with --verbose, else $LOG_LEVEL. Returns None for an unknown level name."""
    if verbose:
        return logging.DEBUG
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").strip().upper())
    return level if isinstance(level, int) else None


def configure_logging(verbose: bool = False) -> None:
    # --- Centralized Logging Configuration ---
    level = resolve_log_level(verbose)
    logging.basicConfig(
        level=logging.INFO if level is None else level,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )
    if level is None:
        logger.warning("Unknown LOG_LEVEL '%s', using INFO", os.getenv("LOG_LEVEL"))


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="raster-gray",
        description="Convert BGR images to grayscale by walking the strided pixel buffer "
                    "and compare the result with OpenCV's cvtColor.")
    ap.add_argument("image", nargs="?", help="color image to convert")
    ap.add_argument("--batch", metavar="FOLDER", help="convert every image in FOLDER instead")
    ap.add_argument("--recursive", action="store_true", help="with --batch, descend into subfolders")
    ap.add_argument("--output", "-o", help="where to write the grayscale image (a directory with --batch)")
    ap.add_argument("--show", action="store_true", help="display color, library gray and manual gray")
    ap.add_argument("--rounding", choices=ROUNDING_RULES, default=None,
                    help="rounding rule for the weighted sum (default: $GRAY_ROUNDING or nearest)")
    ap.add_argument("--workers", type=int, default=None, help="threads to split rows across")
    ap.add_argument("--alignment", type=int, default=None, help="row alignment in bytes for new images")
    ap.add_argument("--verbose", "-v", action="store_true", help="debug logging")
    return ap


def run(args: argparse.Namespace) -> int:
    image_service = ImageService(alignment=args.alignment)
    grayscale_service = GrayscaleService(rounding=args.rounding, workers=args.workers,
                                         alignment=args.alignment)

    if args.batch:
        written = batch_convert(args.batch, args.output,
                                image_service=image_service,
                                grayscale_service=grayscale_service,
                                recursive=args.recursive)
        return 0 if written else 1

    comparison = compare_grayscale(args.image, image_service=image_service,
                                   grayscale_service=grayscale_service)
    if args.output:
        image_service.save(comparison.manual_gray, args.output)
    if args.show:
        show_comparison(comparison.source, comparison.library_gray, comparison.manual_gray)
    return 0


def main(argv=None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    if not args.image and not args.batch:
        ap.error("an IMAGE or --batch FOLDER is required")
    if args.batch and not args.output:
        ap.error("--batch needs --output DIR")

    configure_logging(args.verbose)
    try:
        return run(args)
    except (RasterError, OSError, ValueError) as err:
        logger.error("%s", err)
        return 1


if __name__ == "__main__":
    sys.exit(main())
