"""Error taxonomy of the text image generator.

Every failure surfaced by the library derives from `TextImageGeneratorError`,
so callers can choose between catching one specific condition (for example
skipping a sample whose characters have no font) and catching everything.
"""


class TextImageGeneratorError(Exception):
    """Base class for all errors raised by the generator."""


class ConfigurationError(TextImageGeneratorError):
    """Raised when the configuration or one of its input files is unusable.

    Missing or empty font and background directories, malformed frequency
    tables and invalid YAML all end up here. It is always fatal at
    construction time.
    """


class LoadError(TextImageGeneratorError):
    """Raised when a font file cannot be used (variable or corrupt font)."""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load font {path}: {reason}")


def _describe(character):
    if not character:
        return repr(character)
    return f"{character!r} (U+{ord(character[0]):04X})"


class MissingGlyphCoverage(TextImageGeneratorError, LookupError):
    """Raised when at least one requested character has no covering font.

    The whole request fails; no character is silently dropped.

    Attributes:
        characters (tuple[str, ...]): The uncovered characters, in order of
            first appearance.
    """

    def __init__(self, characters):
        self.characters = tuple(dict.fromkeys(characters))
        super().__init__(
            "No font covers the character(s): "
            + " ".join(_describe(c) for c in self.characters)
        )


class InvalidArgument(TextImageGeneratorError, ValueError):
    """Raised when a call receives arguments it cannot work with."""


class LineTooWide(InvalidArgument):
    """Raised when a text line does not fit in the maximum line width.

    The line is never clipped, so callers can skip the sample instead of
    labeling characters that were not drawn.
    """

    def __init__(self, width, max_width):
        self.width = width
        self.max_width = max_width
        super().__init__(f"Text line of {width}px exceeds the maximum width of {max_width}px")
