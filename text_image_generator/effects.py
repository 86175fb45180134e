"""Randomized visual degradation of generated images.

This module provides pure image transforms that simulate real-world capture
conditions (perspective distortion, emboss and sharpen filters, resolution
loss, blur and a surrounding frame) and the `EffectPipeline` that chains
them. Every transform returns a new array of the same shape as its input and
works on grayscale `(H, W)` as well as RGB `(H, W, 3)` uint8 images.
"""

import math
from typing import Callable, NamedTuple

import cv2
import numpy as np

from text_image_generator.exceptions import InvalidArgument

SHARP_KERNEL = np.array([[-1, -1, -1], [-1, 9, -1], [-1, -1, -1]], dtype=np.float32)
EMBOSS_KERNEL = np.array([[-2, -1, 0], [-1, 1, 1], [0, 1, 2]], dtype=np.float32)

FOVY = 50.0
BOX_THICKNESS = (1, 2)


def _rotation(angles):
    ax, ay, az = (math.radians(a) for a in angles)
    rx = np.array([
        [1, 0, 0, 0],
        [0, math.cos(ax), -math.sin(ax), 0],
        [0, math.sin(ax), math.cos(ax), 0],
        [0, 0, 0, 1],
    ])
    ry = np.array([
        [math.cos(ay), 0, math.sin(ay), 0],
        [0, 1, 0, 0],
        [-math.sin(ay), 0, math.cos(ay), 0],
        [0, 0, 0, 1],
    ])
    rz = np.array([
        [math.cos(az), -math.sin(az), 0, 0],
        [math.sin(az), math.cos(az), 0, 0],
        [0, 0, 1, 0],
        [0, 0, 0, 1],
    ])
    return rx @ ry @ rz


def perspective_matrix(width, height, angles, fovy=FOVY, scale=1.0):
    """Computes the homography of a 3D rotation seen through a pinhole camera.

    The image plane is placed so that, unrotated, it fills the field of
    view. The projected corners are mapped into a square canvas of side
    `scale * diagonal / cos(fov / 2)`.

    Args:
        width (int): Image width.
        height (int): Image height.
        angles (tuple[float, float, float]): Rotation about x, y and z in
            degrees.
        fovy (float): Vertical field of view in degrees.
        scale (float): Scale of the output canvas.

    Returns:
        A tuple `(matrix, dst_points, side)`: the 3x3 perspective matrix, the
        projected corners in canvas coordinates and the canvas side length.
    """
    half_fov = math.radians(fovy) / 2
    diagonal = math.hypot(width, height)
    side = scale * diagonal / math.cos(half_fov)
    distance = diagonal / (2 * math.sin(half_fov))
    near = distance - diagonal / 2
    far = distance + diagonal / 2

    translation = np.eye(4)
    translation[2, 3] = -distance

    projection = np.zeros((4, 4))
    projection[0, 0] = projection[1, 1] = 1.0 / math.tan(half_fov)
    projection[2, 2] = -(far + near) / (far - near)
    projection[2, 3] = -2.0 * far * near / (far - near)
    projection[3, 2] = -1.0

    transform = projection @ translation @ _rotation(angles)

    corners = np.array([
        [-width / 2, -height / 2, 0, 1],
        [width / 2, -height / 2, 0, 1],
        [width / 2, height / 2, 0, 1],
        [-width / 2, height / 2, 0, 1],
    ])
    projected = (transform @ corners.T).T
    projected = projected[:, :2] / projected[:, 3:4]

    src = (corners[:, :2] + [width / 2, height / 2]).astype(np.float32)
    dst = ((projected + 1.0) * side / 2).astype(np.float32)
    return cv2.getPerspectiveTransform(src, dst), dst, side


def warp_perspective(image, angles):
    """Rotates an image in 3D, re-projects it and resizes it back.

    Args:
        image (np.ndarray): The input image.
        angles (tuple[float, float, float]): Rotation about x, y and z in
            degrees.

    Returns:
        np.ndarray: The warped image, same shape as the input.
    """
    height, width = image.shape[:2]
    matrix, dst, side = perspective_matrix(width, height, angles)
    side = int(math.ceil(side))
    warped = cv2.warpPerspective(image, matrix, (side, side), flags=cv2.INTER_LINEAR, borderMode=cv2.BORDER_REPLICATE)

    x0, y0 = np.floor(dst.min(axis=0)).astype(int)
    x1, y1 = np.ceil(dst.max(axis=0)).astype(int)
    x0, y0 = max(x0, 0), max(y0, 0)
    x1, y1 = min(max(x1, x0 + 1), side), min(max(y1, y0 + 1), side)
    cropped = warped[y0:y1, x0:x1]
    return cv2.resize(cropped, (width, height), interpolation=cv2.INTER_LINEAR)


def apply_emboss(image):
    """Applies a 3x3 emboss convolution."""
    return cv2.filter2D(image, -1, EMBOSS_KERNEL, borderType=cv2.BORDER_REPLICATE)


def apply_sharp(image):
    """Applies a 3x3 sharpening convolution."""
    return cv2.filter2D(image, -1, SHARP_KERNEL, borderType=cv2.BORDER_REPLICATE)


def apply_down_up(image, scale):
    """Downsamples an image by `scale` and upsamples it back to its size.

    Args:
        image (np.ndarray): The input image.
        scale (float): The downsampling factor, at least 1.

    Returns:
        np.ndarray: The degraded image, same shape as the input.
    """
    if scale < 1.0:
        raise InvalidArgument(f"scale must be >= 1, got {scale}")
    height, width = image.shape[:2]
    small_size = (max(1, int(round(width / scale))), max(1, int(round(height / scale))))
    small = cv2.resize(image, small_size, interpolation=cv2.INTER_AREA)
    return cv2.resize(small, (width, height), interpolation=cv2.INTER_LINEAR)


def gauss_blur(image, sigma):
    """Applies Gaussian blur; a sigma of 0 returns an unchanged copy."""
    if sigma < 0:
        raise InvalidArgument(f"sigma must be >= 0, got {sigma}")
    if sigma == 0:
        return image.copy()
    return cv2.GaussianBlur(image, (0, 0), sigmaX=sigma, sigmaY=sigma, borderType=cv2.BORDER_REPLICATE)


def draw_box(image, alpha, rng):
    """Draws a frame around the content, as if the text were boxed.

    The image is padded to `alpha` times its size at a random offset, a 1 or
    2 pixel rectangle of a random gray level (50 to 255) is drawn around the
    original content and the result is resized back.

    Args:
        image (np.ndarray): The input image.
        alpha (float): The zoom factor, greater than 1.
        rng (np.random.Generator): The random source.

    Returns:
        np.ndarray: The framed image, same shape as the input.
    """
    if alpha <= 1.0:
        raise InvalidArgument(f"alpha must be > 1, got {alpha}")
    height, width = image.shape[:2]
    pad_height = max(int(math.ceil(height * alpha)), height + 2)
    pad_width = max(int(math.ceil(width * alpha)), width + 2)

    top = int(rng.integers(1, pad_height - height + 1))
    left = int(rng.integers(1, pad_width - width + 1))
    padded = cv2.copyMakeBorder(
        image, top, pad_height - height - top, left, pad_width - width - left, cv2.BORDER_REPLICATE
    )

    box_left = int(rng.integers(1, left + 1))
    box_top = int(rng.integers(1, top + 1))
    box_width = int(rng.integers(width + left - box_left, pad_width - box_left + 1))
    box_height = int(rng.integers(height + top - box_top, pad_height - box_top + 1))
    gray = int(rng.integers(50, 256))
    color = gray if image.ndim == 2 else (gray,) * image.shape[2]
    thickness = int(rng.choice(BOX_THICKNESS))

    cv2.rectangle(
        padded,
        (box_left, box_top),
        (box_left + box_width - 1, box_top + box_height - 1),
        color,
        thickness,
    )
    return cv2.resize(padded, (width, height), interpolation=cv2.INTER_LINEAR)


class Effect(NamedTuple):
    """A named transform fired with a fixed probability.

    `transform` takes `(image, rng)` and returns a new image.
    """

    name: str
    probability: float
    transform: Callable


class EffectPipeline:
    """A fixed-order chain of independently gated effects.

    The order is perspective, emboss, sharp, down_up, blur, box. For each
    effect one gate value is drawn, whether or not the effect fires, so the
    layout of the random stream does not depend on earlier outcomes.
    """

    def __init__(self, config, seed=None):
        """Builds the chain from an `EffectConfig`.

        Args:
            config (EffectConfig): Probabilities and parameter ranges.
            seed (int or np.random.SeedSequence, optional): Seed of the
                default random source used when `apply` gets no `rng`.
        """
        self.config = config
        self.rng = np.random.default_rng(seed)
        c = config
        self.effects = (
            Effect(
                "perspective",
                c.perspective_prob,
                lambda img, rng: warp_perspective(
                    img, (c.perspective_x.sample(rng), c.perspective_y.sample(rng), c.perspective_z.sample(rng))
                ),
            ),
            Effect("emboss", c.emboss_prob, lambda img, rng: apply_emboss(img)),
            Effect("sharp", c.sharp_prob, lambda img, rng: apply_sharp(img)),
            Effect("down_up", c.down_up_prob, lambda img, rng: apply_down_up(img, c.down_up_scale.sample(rng))),
            Effect("blur", c.blur_prob, lambda img, rng: gauss_blur(img, c.blur_sigma.sample(rng))),
            Effect("box", c.box_prob, lambda img, rng: draw_box(img, c.box_alpha.sample(rng), rng)),
        )

    def __iter__(self):
        return iter(self.effects)

    def apply(self, image, rng=None):
        """Runs the image through the chain.

        Args:
            image (np.ndarray): A grayscale or RGB uint8 image.
            rng (np.random.Generator, optional): The random source; the
                pipeline's own generator is used when omitted.

        Returns:
            np.ndarray: A new array with the same shape as the input.
        """
        if image.dtype != np.uint8 or image.ndim not in (2, 3):
            raise InvalidArgument(f"Expected a 2D or 3D uint8 image, got {image.dtype} with shape {image.shape}")
        rng = self.rng if rng is None else rng
        result = image.copy()
        for effect in self.effects:
            if rng.random() < effect.probability:
                result = effect.transform(result, rng)
        return result
