"""The public entry point: synthesizes text line images for OCR training.

This module defines the `Generator` class, which wires together the font
coverage index, the character tables, the glyph renderer, the rasterizer,
the background pool, the merge engine and the effect pipeline. Everything
that can fail is set up in the constructor, so a constructed generator only
raises on bad arguments or uncovered characters.
"""

from types import MappingProxyType

import cv2
import numpy as np
from loguru import logger

from text_image_generator.background import BackgroundFactory
from text_image_generator.config import GeneratorConfig, load_config
from text_image_generator.corpus import (
    CorpusSampler,
    load_frequency_table,
    load_latin_table,
    load_symbol_table,
    normalize_corpus,
)
from text_image_generator.effects import EffectPipeline
from text_image_generator.env import DEFAULT_CONFIG_PATH
from text_image_generator.exceptions import InvalidArgument
from text_image_generator.font_coverage import FontCategory, FontCoverageIndex
from text_image_generator.glyph_renderer import GlyphRenderer, TextSegment
from text_image_generator.merge import MergeEngine
from text_image_generator.rasterizer import Rasterizer
from text_image_generator.utils import read_list_file, read_text_file


def check_color(color, name):
    """Validates an RGB color and returns it as a tuple of ints."""
    try:
        values = tuple(color)
    except TypeError as e:
        raise InvalidArgument(f"{name} must be an (r, g, b) tuple, got {color!r}") from e
    if len(values) != 3 or not all(isinstance(v, (int, np.integer)) and 0 <= v <= 255 for v in values):
        raise InvalidArgument(f"{name} must be three integers in [0, 255], got {color!r}")
    return tuple(int(v) for v in values)


def to_gray(color):
    """Converts an RGB color to the gray level OpenCV would produce."""
    pixel = np.array([[color]], dtype=np.uint8)
    return int(cv2.cvtColor(pixel, cv2.COLOR_RGB2GRAY)[0, 0])


class Generator:
    """Generates images of text lines drawn with fonts that cover them.

    Attributes:
        config (GeneratorConfig): The validated configuration.
        sampler (CorpusSampler): Random text source.
        renderer (GlyphRenderer): Resolves text to font bindings.
        rasterizer (Rasterizer): Draws the text lines.
    """

    def __init__(self, config=DEFAULT_CONFIG_PATH, seed=None):
        """Builds every component eagerly.

        Args:
            config (str, Path or GeneratorConfig): A YAML config path or an
                already validated configuration.
            seed (int, optional): Overrides `config.seed`. Without any seed
                fresh entropy is used.

        Raises:
            ConfigurationError: On a bad config, missing directories or
                malformed tables.
            LoadError: On variable or corrupt fonts, unless they are
                configured to be skipped.
        """
        self.config = config if isinstance(config, GeneratorConfig) else load_config(config)
        seed = self.config.seed if seed is None else seed
        sampler_seed, bg_seed, merge_seed, effect_seed, font_seed = np.random.SeedSequence(seed).spawn(5)
        font_cfg = self.config.font

        main_fonts = read_list_file(font_cfg.main_font_list_file_path, "main font list") if font_cfg.main_font_list_file_path else []
        fallback_fonts = (
            read_list_file(font_cfg.fallback_font_list_file_path, "fallback font list")
            if font_cfg.fallback_font_list_file_path
            else []
        )
        self._font_index = FontCoverageIndex(
            font_cfg.font_dir, main_fonts, fallback_fonts, skip_unloadable=font_cfg.skip_unloadable_fonts
        )

        self._chinese_table = load_frequency_table(font_cfg.chinese_ch_file_path, self._font_index)
        latin_corpus = None
        self._latin_table = None
        if font_cfg.latin_corpus_file_path:
            latin_text = read_text_file(font_cfg.latin_corpus_file_path, "Latin corpus")
            latin_corpus = normalize_corpus(latin_text)
            self._latin_table = load_latin_table(latin_text, self._font_index)
        self._symbol_table = None
        if font_cfg.symbol_file_path:
            symbols = read_list_file(font_cfg.symbol_file_path, "symbol")
            self._symbol_table = load_symbol_table(symbols, self._font_index)

        self.sampler = CorpusSampler(
            self._chinese_table,
            symbol_table=self._symbol_table,
            latin_corpus=latin_corpus,
            latin_table=self._latin_table,
            extra_symbol_prob=self.config.corpus.extra_symbol_prob,
            seed=sampler_seed,
        )
        self.renderer = GlyphRenderer(
            self._font_index,
            self._chinese_table,
            latin_table=self._latin_table,
            symbol_table=self._symbol_table,
            main_font_bias=font_cfg.main_font_bias,
        )
        self.rasterizer = Rasterizer(
            self._font_index,
            font_size=font_cfg.font_size,
            line_height=font_cfg.line_height,
            max_width=font_cfg.font_img_width,
        )

        merge_cfg = self.config.merge
        self._bg_factory = BackgroundFactory(merge_cfg.bg_dir, merge_cfg.bg_height, merge_cfg.bg_width, seed=bg_seed)
        self._merge_util = MergeEngine(merge_cfg, seed=merge_seed)
        self._cv_util = EffectPipeline(self.config.effect, seed=effect_seed)
        self.rng = np.random.default_rng(font_seed)
        logger.info("Generator ready")

    @property
    def font_index(self):
        return self._font_index

    @property
    def chinese_ch_dict(self):
        """`{character: (weight, bindings)}` of the ideograph table."""
        return MappingProxyType(self._chinese_table.as_dict())

    @property
    def latin_ch_dict(self):
        return MappingProxyType(self._latin_table.as_dict() if self._latin_table else {})

    @property
    def symbol_dict(self):
        return MappingProxyType(self._symbol_table.as_dict() if self._symbol_table else {})

    @property
    def font_list(self):
        """Every font record, main fonts first."""
        return self._font_index.records

    @property
    def main_font_list(self):
        return tuple(f.record for f in self._font_index.faces if f.category == FontCategory.MAIN)

    @property
    def bg_factory(self):
        return self._bg_factory

    @property
    def merge_util(self):
        return self._merge_util

    @property
    def cv_util(self):
        return self._cv_util

    def set_bg_size(self, height, width):
        """Sets the size of the backgrounds used by later requests."""
        self._bg_factory.set_bg_size(height, width)

    def wrap_text_with_font_list(self, text):
        """Resolves `text` to one `TextSegment` per character.

        Raises:
            MissingGlyphCoverage: If any character has no covering font.
        """
        return self.renderer.resolve(text)

    def get_random_chinese(self, min=5, max=10, add_extra_symbol=False):
        """Samples random ideograph text as a list of `TextSegment`s."""
        return [TextSegment(ch, fonts) for ch, fonts in self.sampler.sample(min, max, add_extra_symbol)]

    def get_random_latin(self, min=5, max=10):
        """Samples a contiguous piece of the Latin corpus as `TextSegment`s."""
        return [TextSegment(ch, fonts) for ch, fonts in self.sampler.sample_latin(min, max)]

    def gen_image_from_text_with_font_list(
        self,
        text_with_font_list,
        text_color=(0, 0, 0),
        background_color=(255, 255, 255),
        apply_effect=False,
    ):
        """Renders font-bound text into an image.

        Args:
            text_with_font_list (list): `TextSegment`s or `(text, fonts)`
                pairs, as returned by `wrap_text_with_font_list`.
            text_color (tuple[int, int, int]): RGB text color.
            background_color (tuple[int, int, int]): RGB color of the text
                line background.
            apply_effect (bool): Composite the line onto a background and
                degrade it.

        Returns:
            np.ndarray: Without effects, the `(line_height, W, 3)` RGB text
            line (or, with `composite_plain_output`, an RGB composite of the
            background size). With effects, a `(H, W)` grayscale image of the
            background size, or `(H, W, 3)` RGB when `force_grayscale` is off.

        Raises:
            InvalidArgument: On malformed or empty segments, bad colors, or a
                line wider than `font_img_width`.
            MissingGlyphCoverage: If a segment has no fonts.
        """
        text_color = check_color(text_color, "text_color")
        background_color = check_color(background_color, "background_color")
        segments = []
        for item in text_with_font_list:
            try:
                text, fonts = item
            except (TypeError, ValueError) as e:
                raise InvalidArgument(f"Expected (text, fonts) pairs, got {item!r}") from e
            text = str(text)
            if not text:
                raise InvalidArgument("Segment text must not be empty")
            segments.append(TextSegment(text, tuple(fonts)))

        runs = self.renderer.plan_runs(segments, self.rng)
        logger.debug(f"Rendering {len(runs)} runs: {runs}")
        line = self.rasterizer.render(runs, text_color, background_color)

        if not apply_effect:
            if not self.config.composite_plain_output:
                return line
            return self._composite(line, background_color, color=True)

        if self.config.effect.force_grayscale:
            line = cv2.cvtColor(line, cv2.COLOR_RGB2GRAY)
            merged = self._composite(line, to_gray(background_color), color=False)
        else:
            merged = self._composite(line, background_color, color=True)
        merged = self._merge_util.random_reverse(merged)
        return self._cv_util.apply(merged)

    def _composite(self, line, fill, color):
        background = self._bg_factory.random(color=color)
        if self.rng.random() < self.config.merge.bg_color_prob:
            background = self._merge_util.random_change_bgcolor(background)
        height, width = background.shape[:2]
        padded = self._merge_util.random_pad(line, height, width, fill=fill)
        return self._merge_util.poisson_edit(padded, background, fill=fill)
