"""Draws font runs into a single RGB text line with Pillow."""

import math

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from text_image_generator.exceptions import InvalidArgument, LineTooWide, LoadError


class Rasterizer:
    """Renders `(text, FontRecord)` runs left to right on a shared baseline.

    Pillow font objects are opened the first time a face is drawn and cached
    for the lifetime of the rasterizer.
    """

    def __init__(self, index, font_size=50, line_height=64, max_width=2000):
        if font_size <= 0 or line_height <= 0 or max_width <= 0:
            raise InvalidArgument("font_size, line_height and max_width must be positive")
        self.index = index
        self.font_size = font_size
        self.line_height = line_height
        self.max_width = max_width
        self._fonts = {}

    def get_font(self, record):
        """Returns the cached Pillow font of a record, opening it if needed."""
        face = self.index.face(record)
        font = self._fonts.get(face.record)
        if font is None:
            try:
                font = ImageFont.truetype(str(face.path), self.font_size, index=face.face_index)
            except OSError as e:
                raise LoadError(face.path, f"Pillow cannot open the font ({e})") from e
            self._fonts[face.record] = font
        return font

    def render(self, runs, text_color=(0, 0, 0), background_color=(255, 255, 255)):
        """Draws the runs into a text line.

        Args:
            runs (list[tuple[str, FontRecord]]): Text runs with their fonts.
            text_color (tuple[int, int, int]): RGB color of the text.
            background_color (tuple[int, int, int]): RGB fill color.

        Returns:
            np.ndarray: A `(line_height, width, 3)` uint8 RGB array, where
            width is the total advance plus one pixel.

        Raises:
            LineTooWide: If the line would be wider than `max_width`.
        """
        fonts = [self.get_font(record) for _, record in runs]
        advances = [font.getlength(text) for (text, _), font in zip(runs, fonts)]
        metrics = [font.getmetrics() for font in fonts]
        ascent = max((m[0] for m in metrics), default=0)
        descent = max((m[1] for m in metrics), default=0)
        baseline = (self.line_height + ascent - descent) / 2

        width = int(math.ceil(sum(advances))) + 1
        if width > self.max_width:
            raise LineTooWide(width, self.max_width)

        image = Image.new("RGB", (width, self.line_height), tuple(background_color))
        draw = ImageDraw.Draw(image)
        x = 0.0
        for (text, _), font, advance in zip(runs, fonts, advances):
            draw.text((x, baseline), text, font=font, fill=tuple(text_color), anchor="ls")
            x += advance
        return np.array(image)
