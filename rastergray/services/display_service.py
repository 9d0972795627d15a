from typing import Dict, Tuple
import logging

import cv2

from ..models.raster_image import RasterImage
from .pixel_accessor import pixel_view

logger = logging.getLogger(__name__)

WINDOW_FLAGS = cv2.WINDOW_NORMAL | cv2.WINDOW_KEEPRATIO

# Screen positions used when showing a color / library gray / manual gray triple.
DEFAULT_POSITIONS: Dict[str, Tuple[int, int]] = {
    "color": (100, 100),
    "gray": (500, 100),
    "mygray": (500, 500),
}


class WindowSession:
    """
    Scoped set of OpenCV windows. Every window is destroyed when the block exits,
    whether it exits normally or through an exception.

        with WindowSession() as windows:
            windows.show("color", image, position=(100, 100))
            windows.wait()
    """

    def __init__(self):
        self.windows: Dict[str, Tuple[int, int]] = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        if self.windows:
            logger.debug("Destroying %d window(s)", len(self.windows))
        cv2.destroyAllWindows()
        self.windows.clear()

    def show(self, name: str, image: RasterImage, position: Tuple[int, int] = None) -> None:
        if name not in self.windows:
            cv2.namedWindow(name, WINDOW_FLAGS)
        if position is not None:
            cv2.moveWindow(name, *position)
        self.windows[name] = position
        cv2.imshow(name, pixel_view(image))

    def wait(self, delay_ms: int = 0) -> int:
        """Block until a key is pressed (or `delay_ms` elapses). Returns the key code."""
        return cv2.waitKey(delay_ms)


def show_comparison(color: RasterImage, library_gray: RasterImage, manual_gray: RasterImage,
                    delay_ms: int = 0) -> int:
    """Show the three images side by side until a key is pressed."""
    with WindowSession() as windows:
        windows.show("color", color, DEFAULT_POSITIONS["color"])
        windows.show("gray", library_gray, DEFAULT_POSITIONS["gray"])
        windows.show("mygray", manual_gray, DEFAULT_POSITIONS["mygray"])
        return windows.wait(delay_ms)
