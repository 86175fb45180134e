"""Character-level helpers and small file readers.

This module splits text into grapheme clusters, guesses the script class of
a character (ideograph, Latin or symbol) and reads the simple one-entry-per-
line list files used by the configuration.
"""

import unicodedata
from pathlib import Path

from text_image_generator.exceptions import ConfigurationError

_ZWJ = "\u200d"

# CJK ideograph blocks, including the extension planes and the
# compatibility ideographs. Inclusive bounds.
_IDEOGRAPH_RANGES = (
    (0x2E80, 0x2FDF),  # radicals supplement, Kangxi radicals
    (0x3005, 0x3007),
    (0x3021, 0x3029),
    (0x3038, 0x303B),
    (0x3400, 0x4DBF),  # extension A
    (0x4E00, 0x9FFF),
    (0xF900, 0xFAFF),  # compatibility ideographs
    (0x16FE0, 0x16FFF),
    (0x17000, 0x18D08),  # Tangut
    (0x1B170, 0x1B2FF),  # Nushu
    (0x20000, 0x2FA1F),  # extensions B-F, compatibility supplement
    (0x30000, 0x323AF),  # extensions G-H
)


def _is_extender(ch):
    """Whether `ch` attaches to the preceding character."""
    if unicodedata.combining(ch):
        return True
    category = unicodedata.category(ch)
    if category in ("Mn", "Me", "Mc"):
        return True
    code = ord(ch)
    # Variation selectors, including the ideographic variation sequences.
    return 0xFE00 <= code <= 0xFE0F or 0xE0100 <= code <= 0xE01EF


def _is_regional_indicator(ch):
    return 0x1F1E6 <= ord(ch) <= 0x1F1FF


def _hangul_type(ch):
    """Returns the Hangul syllable type of `ch` ("L", "V", "T", "LV", "LVT") or None."""
    code = ord(ch)
    if 0x1100 <= code <= 0x115F or 0xA960 <= code <= 0xA97C:
        return "L"
    if 0x1160 <= code <= 0x11A7 or 0xD7B0 <= code <= 0xD7C6:
        return "V"
    if 0x11A8 <= code <= 0x11FF or 0xD7CB <= code <= 0xD7FB:
        return "T"
    if 0xAC00 <= code <= 0xD7A3:
        return "LV" if (code - 0xAC00) % 28 == 0 else "LVT"
    return None


# Which Hangul types may follow each type inside one syllable.
_HANGUL_FOLLOWERS = {
    "L": ("L", "V", "LV", "LVT"),
    "LV": ("V", "T"),
    "V": ("V", "T"),
    "LVT": ("T",),
    "T": ("T",),
}


def _continues(cluster, ch):
    last = cluster[-1]
    if _is_extender(ch) or ch == _ZWJ or last == _ZWJ:
        return True
    if _is_regional_indicator(ch):
        # Flags are pairs of regional indicators.
        return len(cluster) == 1 and _is_regional_indicator(last)
    return _hangul_type(ch) in _HANGUL_FOLLOWERS.get(_hangul_type(last), ())


def split_graphemes(text):
    """Splits text into grapheme clusters.

    A cluster is a base character followed by any combining marks and
    variation selectors. Characters joined by a zero width joiner stay in
    one cluster, as do conjoining Hangul jamo of one syllable and pairs of
    regional indicators (flags). This is a practical subset of the Unicode
    segmentation rules. Prepended marks (such as Arabic number signs) are
    not attached to the character after them, and emoji skin tone modifiers
    form clusters of their own.

    Args:
        text (str): The text to split.

    Returns:
        list[str]: The clusters, in order.
    """
    clusters = []
    for ch in text:
        if clusters and _continues(clusters[-1], ch):
            clusters[-1] += ch
        else:
            clusters.append(ch)
    return clusters


def is_ideograph(ch):
    """Checks if a character (or cluster) is based on a CJK ideograph."""
    if not ch:
        return False
    code = ord(ch[0])
    return any(low <= code <= high for low, high in _IDEOGRAPH_RANGES)


def is_latin(ch):
    """Checks if a character is Latin script, an ASCII digit or ASCII."""
    if not ch:
        return False
    base = ch[0]
    if base.isascii():
        return base.isalnum() or base.isspace()
    try:
        return unicodedata.name(base).startswith("LATIN")
    except ValueError:
        return False


def is_symbol(ch):
    """Checks if a character is punctuation or a symbol."""
    if not ch:
        return False
    return unicodedata.category(ch[0])[0] in ("P", "S")


def unique_graphemes(text):
    """Returns the distinct non-control grapheme clusters of `text`, sorted."""
    clusters = {c for c in split_graphemes(text) if unicodedata.category(c[0]) != "Cc"}
    return sorted(clusters)


def read_list_file(path, what):
    """Reads a file with one entry per line, ignoring blank lines.

    Args:
        path (str or Path): The file to read.
        what (str): A short description used in error messages.

    Returns:
        list[str]: The stripped entries in file order, without duplicates.

    Raises:
        ConfigurationError: If the file cannot be read.
    """
    path = Path(path)
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read {what} file {path}: {e}") from e
    entries = [line.strip() for line in lines]
    return list(dict.fromkeys(e for e in entries if e))


def read_text_file(path, what):
    """Reads a whole UTF-8 text file, raising `ConfigurationError` on failure."""
    path = Path(path)
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read {what} file {path}: {e}") from e
