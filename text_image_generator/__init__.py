"""Synthesizes labeled text line images for training OCR models.

The package renders random or given text with fonts that actually cover
every character, blends it onto real backgrounds with Poisson editing and
degrades the result with randomized effects. The main entry point is the
`Generator` class.

Example:
    >>> from text_image_generator import Generator
    >>> gen = Generator("config.yaml", seed=0)
    >>> segments = gen.get_random_chinese(5, 10)
    >>> image = gen.gen_image_from_text_with_font_list(segments, apply_effect=True)
"""

from ._version import __version__ as __version__
from text_image_generator.background import BackgroundFactory as BackgroundFactory
from text_image_generator.effects import EffectPipeline as EffectPipeline
from text_image_generator.exceptions import (
    ConfigurationError as ConfigurationError,
    InvalidArgument as InvalidArgument,
    LineTooWide as LineTooWide,
    LoadError as LoadError,
    MissingGlyphCoverage as MissingGlyphCoverage,
    TextImageGeneratorError as TextImageGeneratorError,
)
from text_image_generator.font_coverage import FontCoverageIndex as FontCoverageIndex, FontRecord as FontRecord
from text_image_generator.generator import Generator as Generator
from text_image_generator.glyph_renderer import TextSegment as TextSegment
from text_image_generator.merge import MergeEngine as MergeEngine
