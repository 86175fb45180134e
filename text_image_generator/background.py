"""Supplies randomly chosen, correctly sized background images."""

from pathlib import Path

import albumentations as A
import cv2
import numpy as np
from loguru import logger

from text_image_generator.exceptions import ConfigurationError, InvalidArgument

BACKGROUND_SUFFIXES = {".png", ".jpg", ".jpeg", ".bmp"}


def check_size(height, width):
    """Raises `InvalidArgument` unless both sizes are positive integers."""
    if int(height) != height or int(width) != width or height <= 0 or width <= 0:
        raise InvalidArgument(f"Background size must be positive integers, got {height}x{width}")


def cover_resize(image, height, width):
    """Scales an image up, keeping aspect ratio, until it covers `height x width`."""
    h, w = image.shape[:2]
    scale = max(height / h, width / w)
    if scale <= 1.0:
        return image
    new_size = (max(width, int(np.ceil(w * scale))), max(height, int(np.ceil(h * scale))))
    return cv2.resize(image, new_size, interpolation=cv2.INTER_CUBIC)


class BackgroundFactory:
    """A pool of background images read once and decoded fresh per request.

    The encoded bytes of every usable image in `bg_dir` are kept in memory,
    so each call to `random` decodes its own array and no two callers ever
    share a buffer.

    Attributes:
        bg_dir (Path): The scanned directory.
        height (int): Height of the images returned by `random`.
        width (int): Width of the images returned by `random`.
    """

    def __init__(self, bg_dir, height=64, width=1000, seed=None):
        """Loads the background pool.

        Args:
            bg_dir (str or Path): Directory holding `.png`, `.jpg`, `.jpeg`
                or `.bmp` images (not scanned recursively).
            height (int): Initial target height.
            width (int): Initial target width.
            seed (int or np.random.SeedSequence, optional): Seed of the
                image choice and crop position.

        Raises:
            ConfigurationError: If the directory is missing or holds no
                decodable image.
        """
        self.bg_dir = Path(bg_dir)
        if not self.bg_dir.is_dir():
            raise ConfigurationError(f"Background directory does not exist: {self.bg_dir}")
        check_size(height, width)
        self.height = int(height)
        self.width = int(width)
        self.rng = np.random.default_rng(seed)

        self.paths = []
        self._encoded = []
        for path in sorted(self.bg_dir.iterdir()):
            if not path.is_file() or path.suffix.lower() not in BACKGROUND_SUFFIXES:
                continue
            data = np.fromfile(str(path), dtype=np.uint8)
            if data.size == 0 or cv2.imdecode(data, cv2.IMREAD_UNCHANGED) is None:
                logger.warning(f"Skipping undecodable background {path}")
                continue
            self.paths.append(path)
            self._encoded.append(data)

        if not self._encoded:
            raise ConfigurationError(f"No usable background image found in {self.bg_dir}")
        logger.info(f"Loaded {len(self._encoded)} background images from {self.bg_dir}")

    def __len__(self):
        return len(self._encoded)

    def set_bg_size(self, height, width):
        """Sets the size of the images returned by later calls to `random`."""
        check_size(height, width)
        self.height = int(height)
        self.width = int(width)

    def decode(self, i, color=False):
        """Decodes background `i` into a new grayscale or RGB array."""
        flag = cv2.IMREAD_COLOR if color else cv2.IMREAD_GRAYSCALE
        image = cv2.imdecode(self._encoded[i], flag)
        if color:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        return image

    def random(self, color=False):
        """Returns a random background of exactly `(height, width)`.

        The image is scaled up if it is smaller than the target in either
        dimension, then a random window of the target size is cropped.

        Args:
            color (bool): Return `(H, W, 3)` RGB instead of `(H, W)`
                grayscale.

        Returns:
            np.ndarray: A new uint8 array.
        """
        i = int(self.rng.integers(len(self._encoded)))
        image = cover_resize(self.decode(i, color), self.height, self.width)
        h, w = image.shape[:2]
        top = int(self.rng.integers(0, h - self.height + 1))
        left = int(self.rng.integers(0, w - self.width + 1))
        crop = A.Crop(x_min=left, y_min=top, x_max=left + self.width, y_max=top + self.height)
        return np.ascontiguousarray(crop(image=image)["image"])
