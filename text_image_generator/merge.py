"""Places rendered text on backgrounds.

The `MergeEngine` shrinks and pads a text line to the background size,
perturbs the background color, blends the text in with Poisson editing and
optionally inverts the result.
"""

import cv2
import numpy as np
from loguru import logger

from text_image_generator.exceptions import InvalidArgument
from text_image_generator.poisson import blend, foreground_mask


def border_median(image):
    """Returns the median value of the outermost pixels, per channel."""
    border = np.concatenate([image[0], image[-1], image[1:-1, 0], image[1:-1, -1]])
    median = np.median(border, axis=0)
    if np.ndim(median) == 0:
        return int(round(float(median)))
    return tuple(int(round(float(v))) for v in median)


class MergeEngine:
    """Pads, recolors and blends text images onto backgrounds.

    Attributes:
        config (MergeConfig): Padding, color and blending parameters.
        rng (np.random.Generator): The random source of every draw.
    """

    def __init__(self, config, seed=None):
        self.config = config
        self.rng = np.random.default_rng(seed)

    def random_pad(self, text_image, target_height, target_width, fill=None):
        """Shrinks a text image a little and pads it to the target size.

        The height is reduced by a random amount in `[2, height_diff]`
        pixels and the width follows the aspect ratio, clamped to
        `[1, target_width]`. The image is then placed at a random offset,
        never touching the top edge, and the margin is filled.

        Args:
            text_image (np.ndarray): Grayscale or RGB uint8 text image.
            target_height (int): Output height.
            target_width (int): Output width.
            fill (int or Sequence[int], optional): Margin value; defaults
                to `merge.pad_value`.

        Returns:
            np.ndarray: An image of `(target_height, target_width)` with the
            channels of the input.
        """
        if target_height <= 2 or target_width <= 0:
            raise InvalidArgument(f"Target size {target_height}x{target_width} is too small")
        text_height, text_width = text_image.shape[:2]
        if text_height == 0 or text_width == 0:
            raise InvalidArgument("Cannot pad an empty text image")

        max_diff = min(self.config.height_diff, target_height - 1)
        diff = self.rng.uniform(min(2.0, max_diff), max_diff)
        resize_height = max(1, int(target_height - diff))
        resize_width = int(text_width * resize_height / text_height)
        resize_width = min(max(resize_width, 1), target_width)
        resized = cv2.resize(text_image, (resize_width, resize_height), interpolation=cv2.INTER_AREA)

        top = int(self.rng.integers(1, max(target_height - resize_height, 1) + 1))
        top = min(top, target_height - resize_height)
        left = int(self.rng.integers(0, target_width - resize_width + 1))

        fill = self.config.pad_value if fill is None else fill
        shape = (target_height, target_width) + text_image.shape[2:]
        padded = np.empty(shape, dtype=np.uint8)
        padded[...] = fill
        padded[top:top + resize_height, left:left + resize_width] = resized.reshape(
            (resize_height, resize_width) + text_image.shape[2:]
        )
        return padded

    def random_change_bgcolor(self, background):
        """Applies a random linear color change, `clip(bg * alpha + beta)`.

        Returns:
            np.ndarray: A new image with the shape and dtype of the input.
        """
        alpha = self.config.bg_alpha.sample(self.rng)
        beta = self.config.bg_beta.sample(self.rng)
        low, high = self.config.bg_value_range
        changed = background.astype(np.float32) * alpha + beta
        return np.clip(changed, low, high).astype(background.dtype)

    def poisson_edit(self, text_image, background_image, fill=None):
        """Seamlessly blends the text of `text_image` into a background.

        Args:
            text_image (np.ndarray): Text image already padded to the
                background size.
            background_image (np.ndarray): The target background.
            fill (int or Sequence[int], optional): The text image's
                background value; the median of its border by default.

        Returns:
            np.ndarray: A new image with the shape of the background.

        Raises:
            InvalidArgument: If the sizes or channel counts differ.
        """
        if text_image.shape[:2] != background_image.shape[:2]:
            raise InvalidArgument(
                f"Text image {text_image.shape[:2]} and background {background_image.shape[:2]} sizes differ"
            )
        if text_image.ndim != background_image.ndim or text_image.shape[2:] != background_image.shape[2:]:
            raise InvalidArgument(
                f"Text image {text_image.shape} and background {background_image.shape} channels differ"
            )
        fill = border_median(text_image) if fill is None else fill
        mask = foreground_mask(text_image, fill, self.config.mask_threshold)
        if not mask.any():
            logger.debug("Empty text mask, returning the background unchanged")
            return background_image.copy()
        strength = self.config.font_alpha.sample(self.rng)
        return blend(text_image, background_image, mask, gradient=self.config.gradient, strength=strength)

    def random_reverse(self, image):
        """Inverts the image with probability `merge.reverse_prob`."""
        if self.rng.random() < self.config.reverse_prob:
            return 255 - image
        return image.copy()
