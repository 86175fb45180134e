"""Resolves text into font-bound segments.

Every grapheme of the input is classified as an ideograph, a Latin character
or a symbol and looked up in the matching `WeightedCharacterTable`. The
renderer only decides which fonts may draw each character; drawing is left
to the `Rasterizer`.
"""

from enum import Enum
from typing import NamedTuple, Tuple

from text_image_generator.exceptions import InvalidArgument, MissingGlyphCoverage
from text_image_generator.font_coverage import FontCategory, FontRecord
from text_image_generator.utils import is_ideograph, is_latin, is_symbol, split_graphemes


class TextSegment(NamedTuple):
    """One character and the fonts able to draw it, most preferred first."""

    text: str
    fonts: Tuple[FontRecord, ...]


class CharacterClass(Enum):
    """The closed set of character tables a character can be resolved in."""

    IDEOGRAPH = "ideograph"
    LATIN = "latin"
    SYMBOL = "symbol"

    @classmethod
    def guess(cls, character):
        """Guesses the class of a character from its Unicode properties."""
        if is_ideograph(character):
            return cls.IDEOGRAPH
        if is_latin(character):
            return cls.LATIN
        if is_symbol(character):
            return cls.SYMBOL
        return None

    def table(self, renderer):
        """Returns the renderer's table for this class, or None."""
        return renderer.tables.get(self)

    def resolve(self, renderer, character):
        """Returns the bindings of `character` in this class's table."""
        table = self.table(renderer)
        if table is None:
            return ()
        return table.bindings(character)


class GlyphRenderer:
    """Turns text into `TextSegment`s and picks the font of each segment.

    Attributes:
        index (FontCoverageIndex): The font arena the bindings refer to.
        tables (dict[CharacterClass, WeightedCharacterTable]): The
            character tables; absent classes are simply not consulted.
        main_font_bias (float): Probability of drawing a character with a
            main font when both main and other fonts cover it.
    """

    def __init__(self, index, ideograph_table, latin_table=None, symbol_table=None, main_font_bias=0.8):
        if not 0.0 <= main_font_bias <= 1.0:
            raise InvalidArgument("main_font_bias must be within [0, 1]")
        self.index = index
        self.tables = {
            cls: table
            for cls, table in (
                (CharacterClass.IDEOGRAPH, ideograph_table),
                (CharacterClass.LATIN, latin_table),
                (CharacterClass.SYMBOL, symbol_table),
            )
            if table is not None
        }
        self.main_font_bias = main_font_bias

    def classify(self, character):
        """Returns the class whose table holds `character`, or None.

        The Unicode guess is tried first; when its table does not contain
        the character the tables are consulted in ideograph, Latin, symbol
        order, so table membership alone decides whether a character
        resolves.
        """
        guessed = CharacterClass.guess(character)
        if guessed is not None and guessed.resolve(self, character):
            return guessed
        for cls in CharacterClass:
            if cls is not guessed and cls.resolve(self, character):
                return cls
        return None

    def resolve(self, text):
        """Resolves every grapheme of `text` to its font bindings.

        Args:
            text (str): The text to resolve.

        Returns:
            list[TextSegment]: One segment per grapheme, in input order.

        Raises:
            MissingGlyphCoverage: If any character is absent from every
                table; all missing characters are reported at once.
        """
        segments, missing = [], []
        for ch in split_graphemes(text):
            cls = self.classify(ch)
            if cls is None:
                missing.append(ch)
            else:
                segments.append(TextSegment(ch, cls.resolve(self, ch)))
        if missing:
            raise MissingGlyphCoverage(missing)
        return segments

    def choose_font(self, segment, rng):
        """Picks the font a segment is drawn with.

        With probability `main_font_bias` the font is a main font, otherwise
        a fallback or discovered one; within the group the choice is
        uniform. When only one group covers the character it takes all the
        probability mass.

        Args:
            segment (TextSegment or tuple): The character and its bindings.
            rng (np.random.Generator): The random source.

        Returns:
            FontRecord: The chosen font.

        Raises:
            MissingGlyphCoverage: If the segment has no bindings.
            InvalidArgument: If a binding is not a font of the index.
        """
        text, fonts = segment
        if not fonts:
            raise MissingGlyphCoverage([text])
        main, other = [], []
        for face in map(self.index.face, fonts):
            (main if face.category == FontCategory.MAIN else other).append(face.record)

        if main and other:
            group = main if rng.random() < self.main_font_bias else other
        else:
            group = main or other
        return group[int(rng.integers(len(group)))]

    def plan_runs(self, segments, rng):
        """Chooses a font per segment and merges neighbours sharing a font.

        Returns:
            list[tuple[str, FontRecord]]: The text runs, in order.
        """
        runs = []
        for segment in segments:
            record = self.choose_font(segment, rng)
            if runs and runs[-1][1] == record:
                runs[-1] = (runs[-1][0] + segment[0], record)
            else:
                runs.append((segment[0], record))
        return runs
