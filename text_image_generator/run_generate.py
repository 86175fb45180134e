"""Batch generation of a labeled synthetic dataset.

Writes `n_samples` PNG images of random ideograph text into `out_dir`
together with a `labels.csv` file mapping every image to its text. Samples
whose characters have no covering font are skipped with a warning.
"""

from pathlib import Path

import cv2
import fire
import pandas as pd
from loguru import logger
from tqdm import tqdm

from text_image_generator.env import DEFAULT_CONFIG_PATH, DEFAULT_OUT_DIR
from text_image_generator.exceptions import InvalidArgument, LineTooWide, MissingGlyphCoverage
from text_image_generator.generator import Generator


def parse_color(color):
    """Accepts `(r, g, b)` tuples as well as `"r,g,b"` strings from the command line."""
    if isinstance(color, str):
        try:
            return tuple(int(v) for v in color.strip("()[] ").split(","))
        except ValueError as e:
            raise InvalidArgument(f"Cannot parse color {color!r}") from e
    return tuple(color)


def save_image(path, image):
    """Writes an RGB or grayscale array as an image file."""
    if image.ndim == 3:
        image = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    if not cv2.imwrite(str(path), image):
        raise OSError(f"Cannot write image {path}")


def run(
    config_path=DEFAULT_CONFIG_PATH,
    out_dir=DEFAULT_OUT_DIR,
    n_samples=100,
    min_len=5,
    max_len=10,
    apply_effect=True,
    add_extra_symbol=False,
    seed=None,
    text_color=(0, 0, 0),
    background_color=(255, 255, 255),
):
    """Generates a dataset of random text images and their labels.

    Args:
        config_path (str or Path, optional): The YAML configuration file.
            Defaults to the repository's `config.yaml`.
        out_dir (str or Path, optional): Destination of the images and of
            `labels.csv`. Created if needed.
        n_samples (int, optional): Number of samples to attempt. Defaults to
            100.
        min_len (int, optional): Minimum text length. Defaults to 5.
        max_len (int, optional): Maximum text length. Defaults to 10.
        apply_effect (bool, optional): Composite onto backgrounds and degrade
            the images. Defaults to True.
        add_extra_symbol (bool, optional): Possibly insert a symbol into each
            text. Defaults to False.
        seed (int, optional): Seed for reproducible datasets.
        text_color (tuple or str, optional): RGB text color.
        background_color (tuple or str, optional): RGB text line background.

    Returns:
        pd.DataFrame: The labels that were written.
    """
    n_samples = int(n_samples)
    if n_samples < 0:
        raise InvalidArgument("n_samples must not be negative")
    text_color = parse_color(text_color)
    background_color = parse_color(background_color)

    out_dir = Path(out_dir)
    image_dir = out_dir / "images"
    image_dir.mkdir(parents=True, exist_ok=True)

    generator = Generator(config_path, seed=seed)

    rows = []
    for i in tqdm(range(n_samples), desc="Generating"):
        segments = generator.get_random_chinese(int(min_len), int(max_len), add_extra_symbol=add_extra_symbol)
        text = "".join(segment.text for segment in segments)
        try:
            image = generator.gen_image_from_text_with_font_list(
                segments, text_color=text_color, background_color=background_color, apply_effect=apply_effect
            )
        except (MissingGlyphCoverage, LineTooWide) as e:
            logger.warning(f"Skipping sample {i}: {e}")
            continue
        filename = f"{i:06d}.png"
        save_image(image_dir / filename, image)
        rows.append((f"images/{filename}", text))

    labels = pd.DataFrame(rows, columns=["path", "text"])
    labels.to_csv(out_dir / "labels.csv", index=False)
    logger.info(f"Wrote {len(labels)} samples to {out_dir}")
    return labels


if __name__ == "__main__":
    fire.Fire(run)
