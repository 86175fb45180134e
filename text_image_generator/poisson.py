"""Gradient-domain (Poisson) image blending.

The masked region of the target is replaced by the function whose discrete
Laplacian matches the divergence of a guidance field derived from the source
image, with the target's own pixels as Dirichlet boundary conditions:

    4 f_p - sum_{q in N(p), q in mask} f_q
        = sum_{q in N(p)} v_pq + sum_{q in N(p), q not in mask} target_q

The system is built over the bounding box of the mask only and solved with a
sparse LU factorization shared by all channels. Nothing outlives a call.
"""

import cv2
import numpy as np
import scipy.sparse
from scipy.sparse.linalg import splu

from text_image_generator.exceptions import InvalidArgument

GRADIENT_MODES = ("source", "maximum", "average")

_NEIGHBOURS = ((-1, 0), (1, 0), (0, -1), (0, 1))


def foreground_mask(text_image, fill, threshold=32):
    """Marks the pixels of a text image that are not background.

    Args:
        text_image (np.ndarray): Grayscale or RGB uint8 image.
        fill (int or Sequence[int]): The background fill value.
        threshold (int): Minimum departure from `fill`, over all channels.

    Returns:
        np.ndarray: A boolean mask, dilated by one pixel, with the outer
        image border cleared so every masked pixel has four neighbours.
    """
    image = text_image.astype(np.int16)
    fill = np.asarray(fill, dtype=np.int16)
    diff = np.abs(image - fill)
    if diff.ndim == 3:
        diff = diff.max(axis=2)
    mask = (diff > threshold).astype(np.uint8)
    mask = cv2.dilate(mask, np.ones((3, 3), np.uint8), iterations=1).astype(bool)
    mask[0, :] = mask[-1, :] = False
    mask[:, 0] = mask[:, -1] = False
    return mask


def _guidance(src, tgt, dy, dx, gradient, strength):
    """Guidance values v_pq for the neighbour at offset (dy, dx) of every pixel."""
    h, w = src.shape
    inner = (slice(1, h - 1), slice(1, w - 1))
    shifted = (slice(1 + dy, h - 1 + dy), slice(1 + dx, w - 1 + dx))
    grad_src = strength * (src[inner] - src[shifted])
    if gradient == "source":
        return grad_src
    grad_tgt = tgt[inner] - tgt[shifted]
    if gradient == "average":
        return (grad_src + grad_tgt) / 2
    return np.where(np.abs(grad_src) >= np.abs(grad_tgt), grad_src, grad_tgt)


def blend(source, target, mask, gradient="source", strength=1.0):
    """Blends the masked region of `source` into `target`.

    Args:
        source (np.ndarray): The image providing the gradients.
        target (np.ndarray): The image providing the boundary values; same
            height, width and channel count as `source`.
        mask (np.ndarray): Boolean mask of the pixels to solve for; it must
            not touch the image border.
        gradient (str): `"source"` uses the source gradients only;
            `"maximum"` takes, per edge, whichever of the source and target
            gradients is larger in magnitude; `"average"` takes their mean.
        strength (float): Multiplier of the source gradients.

    Returns:
        np.ndarray: A uint8 copy of `target` with the masked region solved
        and clamped to [0, 255]. Unmasked pixels equal the target exactly.

    Raises:
        InvalidArgument: On shape mismatches, an unknown gradient mode or a
            mask touching the border.
    """
    if source.shape != target.shape:
        raise InvalidArgument(f"source {source.shape} and target {target.shape} shapes differ")
    if mask.shape != target.shape[:2]:
        raise InvalidArgument(f"mask {mask.shape} does not match image {target.shape[:2]}")
    if gradient not in GRADIENT_MODES:
        raise InvalidArgument(f"gradient must be one of {GRADIENT_MODES}, got {gradient!r}")
    mask = mask.astype(bool)
    if mask[0, :].any() or mask[-1, :].any() or mask[:, 0].any() or mask[:, -1].any():
        raise InvalidArgument("mask must not touch the image border")

    result = target.copy()
    if not mask.any():
        return result

    ys, xs = np.nonzero(mask)
    y0, y1 = ys.min() - 1, ys.max() + 2
    x0, x1 = xs.min() - 1, xs.max() + 2
    sub_mask = mask[y0:y1, x0:x1]
    h, w = sub_mask.shape

    # Unknown index of every masked pixel of the cropped region.
    ids = -np.ones((h, w), dtype=np.int64)
    n = int(sub_mask.sum())
    ids[sub_mask] = np.arange(n)
    inner_mask = sub_mask[1:-1, 1:-1]
    inner_ids = ids[1:-1, 1:-1]
    rows_p = inner_ids[inner_mask]

    rows = [np.arange(n)]
    cols = [np.arange(n)]
    data = [np.full(n, 4.0)]
    for dy, dx in _NEIGHBOURS:
        neighbour_ids = ids[1 + dy:h - 1 + dy, 1 + dx:w - 1 + dx][inner_mask]
        linked = neighbour_ids >= 0
        rows.append(rows_p[linked])
        cols.append(neighbour_ids[linked])
        data.append(-np.ones(int(linked.sum())))
    matrix = scipy.sparse.csc_matrix(
        (np.concatenate(data), (np.concatenate(rows), np.concatenate(cols))), shape=(n, n)
    )
    solver = splu(matrix)

    src_region = source[y0:y1, x0:x1].astype(np.float64)
    tgt_region = target[y0:y1, x0:x1].astype(np.float64)
    if src_region.ndim == 2:
        src_region, tgt_region = src_region[..., None], tgt_region[..., None]
    out_region = result[y0:y1, x0:x1]
    if out_region.ndim == 2:
        out_region = out_region[..., None]

    for c in range(src_region.shape[2]):
        src, tgt = src_region[..., c], tgt_region[..., c]
        b = np.zeros(n)
        for dy, dx in _NEIGHBOURS:
            v = _guidance(src, tgt, dy, dx, gradient, strength)[inner_mask]
            neighbour_mask = sub_mask[1 + dy:h - 1 + dy, 1 + dx:w - 1 + dx][inner_mask]
            boundary = tgt[1 + dy:h - 1 + dy, 1 + dx:w - 1 + dx][inner_mask]
            b[rows_p] += v + np.where(neighbour_mask, 0.0, boundary)
        solution = solver.solve(b)
        channel = out_region[..., c]
        channel[sub_mask] = np.clip(np.rint(solution), 0, 255).astype(np.uint8)
    return result
