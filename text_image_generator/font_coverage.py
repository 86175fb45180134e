"""Maps characters to the fonts that can draw them.

The `FontCoverageIndex` scans a directory of font files once, reads each
face's character map with fontTools (no rasterization involved) and builds
an inverted index from code point to the faces covering it. Faces are ranked
main fonts first (in the order of the main font list), then fallback fonts,
then every other font found in the directory. The index is read-only after
construction, so it can be shared freely by every component of a generator.
"""

from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from types import MappingProxyType
from typing import NamedTuple

from fontTools.pens.boundsPen import BoundsPen
from fontTools.ttLib import TTCollection, TTFont
from loguru import logger

from text_image_generator.exceptions import (
    ConfigurationError,
    InvalidArgument,
    LoadError,
    MissingGlyphCoverage,
)

FONT_SUFFIXES = {".ttf", ".otf", ".ttc", ".otc"}
COLLECTION_SUFFIXES = {".ttc", ".otc"}


class FontCategory(IntEnum):
    """Preference class of a font; lower values are preferred."""

    MAIN = 0
    FALLBACK = 1
    DISCOVERED = 2


class FontRecord(NamedTuple):
    """Identifies one face together with its rendering metrics.

    Unpacks as `(font_id, style, weight, stretch)`: the family name, the
    style (0 normal, 1 italic, 2 oblique), the OS/2 weight class and the
    OS/2 width class (1 to 9).
    """

    font_id: str
    style: int = 0
    weight: int = 400
    stretch: int = 5


@dataclass(frozen=True)
class FontFace:
    """An entry of the font arena: where a record lives and what it covers."""

    record: FontRecord
    path: Path
    face_index: int
    category: FontCategory
    rank: int
    coverage: frozenset


def _glyph_has_outline(font, glyph_set, glyph_name):
    """Whether a glyph draws anything, so blank placeholder glyphs are ignored."""
    if "glyf" in font:
        glyph = font["glyf"][glyph_name]
        # Composite glyphs report -1 contours; empty glyphs report 0.
        return glyph.numberOfContours != 0
    pen = BoundsPen(glyph_set)
    glyph_set[glyph_name].draw(pen)
    return pen.bounds is not None


def read_face_coverage(font):
    """Returns the set of code points a face can actually render.

    A code point counts when the cmap maps it to a glyph with an outline.
    Whitespace has no outline, so for whitespace presence in the cmap is
    enough.

    Args:
        font (TTFont): The face to inspect.

    Returns:
        frozenset[int]: The covered code points.
    """
    cmap = font.getBestCmap() or {}
    glyph_set = font.getGlyphSet()
    outline_cache = {}
    covered = set()
    for code, glyph_name in cmap.items():
        if chr(code).isspace():
            covered.add(code)
            continue
        if glyph_name not in outline_cache:
            try:
                outline_cache[glyph_name] = _glyph_has_outline(font, glyph_set, glyph_name)
            except KeyError:
                outline_cache[glyph_name] = False
        if outline_cache[glyph_name]:
            covered.add(code)
    return frozenset(covered)


def read_font_record(font, path):
    """Builds the `FontRecord` of a face from its name and OS/2 tables."""
    family = None
    if "name" in font:
        family = font["name"].getBestFamilyName()
    family = family or Path(path).stem

    style, weight, stretch = 0, 400, 5
    if "OS/2" in font:
        os2 = font["OS/2"]
        if os2.fsSelection & (1 << 9):
            style = 2
        elif os2.fsSelection & 1:
            style = 1
        weight = int(os2.usWeightClass) or 400
        stretch = min(max(int(os2.usWidthClass), 1), 9)
    elif "head" in font and font["head"].macStyle & 0b10:
        style = 1
    return FontRecord(family, style, weight, stretch)


def iter_font_faces(path):
    """Yields `(face_index, TTFont)` for every face stored in a font file.

    Raises:
        LoadError: If the file cannot be parsed or holds a variable font.
    """
    path = Path(path)
    try:
        if path.suffix.lower() in COLLECTION_SUFFIXES:
            fonts = list(TTCollection(str(path)).fonts)
        else:
            fonts = [TTFont(str(path))]
    except Exception as e:
        raise LoadError(path, f"corrupt or unsupported font file ({e})") from e

    for face_index, font in enumerate(fonts):
        if "fvar" in font:
            raise LoadError(path, "variable fonts are not supported")
        if "cmap" not in font:
            raise LoadError(path, "the font has no character map")
        yield face_index, font


def find_font_files(font_dir):
    """Recursively lists the font files of a directory, sorted by path."""
    font_dir = Path(font_dir)
    if not font_dir.is_dir():
        raise ConfigurationError(f"Font directory does not exist: {font_dir}")
    return sorted(p for p in font_dir.glob("**/*") if p.is_file() and p.suffix.lower() in FONT_SUFFIXES)


class FontCoverageIndex:
    """Inverted index from character to the ordered fonts that cover it.

    Attributes:
        font_dir (Path): The scanned directory.
        faces (tuple[FontFace, ...]): Every loaded face, ranked main >
            fallback > discovered.
    """

    def __init__(self, font_dir, main_fonts=(), fallback_fonts=(), skip_unloadable=False):
        """Scans `font_dir` and builds the index.

        Args:
            font_dir (str or Path): Directory scanned recursively for
                `.ttf`, `.otf`, `.ttc` and `.otc` files.
            main_fonts (Sequence[str]): Family names or file stems of the
                main fonts, most preferred first.
            fallback_fonts (Sequence[str]): Family names or file stems of
                the fallback fonts, most preferred first.
            skip_unloadable (bool): Log and skip variable or corrupt fonts
                instead of raising `LoadError`.

        Raises:
            ConfigurationError: If the directory is missing or yields no
                usable font.
            LoadError: If a font is variable or corrupt and
                `skip_unloadable` is False.
        """
        self.font_dir = Path(font_dir)
        main_rank = {name: i for i, name in enumerate(main_fonts)}
        fallback_rank = {name: i for i, name in enumerate(fallback_fonts)}

        font_paths = find_font_files(self.font_dir)
        logger.info(f"Analyzing {len(font_paths)} font files in {self.font_dir}")

        faces = []
        for discovered_rank, path in enumerate(font_paths):
            try:
                for face_index, font in iter_font_faces(path):
                    try:
                        record = read_font_record(font, path)
                        coverage = read_face_coverage(font)
                    except Exception as e:
                        raise LoadError(path, f"cannot read glyph coverage ({e})") from e
                    finally:
                        font.close()
                    category, rank = self._categorize(record, path, main_rank, fallback_rank, discovered_rank)
                    faces.append(FontFace(record, path, face_index, category, rank, coverage))
            except LoadError as e:
                if not skip_unloadable:
                    raise
                logger.warning(f"Skipping font: {e}")

        if not faces:
            raise ConfigurationError(f"No usable font found in {self.font_dir}")

        faces.sort(key=lambda f: (f.category, f.rank, str(f.path), f.face_index))
        self.faces = tuple(self._drop_duplicate_records(faces))
        self._by_record = MappingProxyType({face.record: face for face in self.faces})
        self._index = MappingProxyType(self._invert(self.faces))

        known = {f.record.font_id for f in self.faces} | {f.path.stem for f in self.faces}
        for name in [*main_fonts, *fallback_fonts]:
            if name not in known:
                logger.warning(f"Listed font {name!r} was not found in {self.font_dir}")

        counts = {c.name.lower(): sum(f.category == c for f in self.faces) for c in FontCategory}
        logger.info(
            f"Font analysis done: {len(self.faces)} faces "
            f"({counts['main']} main, {counts['fallback']} fallback, {counts['discovered']} discovered), "
            f"{len(self._index)} code points covered"
        )

    @staticmethod
    def _categorize(record, path, main_rank, fallback_rank, discovered_rank):
        for names, category in ((main_rank, FontCategory.MAIN), (fallback_rank, FontCategory.FALLBACK)):
            for key in (record.font_id, path.stem, path.name):
                if key in names:
                    return category, names[key]
        return FontCategory.DISCOVERED, discovered_rank

    @staticmethod
    def _drop_duplicate_records(faces):
        seen = set()
        for face in faces:
            if face.record in seen:
                logger.warning(f"Duplicate font {face.record} in {face.path}, keeping the first one")
                continue
            seen.add(face.record)
            yield face

    @staticmethod
    def _invert(faces):
        index = {}
        for position, face in enumerate(faces):
            for code in face.coverage:
                index.setdefault(code, []).append(position)
        return {code: tuple(positions) for code, positions in index.items()}

    def __len__(self):
        return len(self.faces)

    def __contains__(self, record):
        return FontRecord(*record) in self._by_record

    @property
    def records(self):
        """All font records, ranked main > fallback > discovered."""
        return tuple(face.record for face in self.faces)

    def covers(self, character):
        """Checks if at least one font covers every code point of `character`."""
        return bool(self._positions(character))

    def lookup(self, character):
        """Returns the fonts able to render `character`, most preferred first.

        Args:
            character (str): A character or grapheme cluster.

        Returns:
            tuple[FontRecord, ...]: The covering fonts, never empty.

        Raises:
            MissingGlyphCoverage: If no font covers the character.
        """
        positions = self._positions(character)
        if not positions:
            raise MissingGlyphCoverage([character])
        return tuple(self.faces[p].record for p in positions)

    def bindings_for(self, characters):
        """Looks up many characters at once.

        Returns:
            A tuple `(bindings, missing)`: a dict from each covered
            character to its fonts, and the list of uncovered characters.
        """
        bindings, missing = {}, []
        for ch in characters:
            positions = self._positions(ch)
            if positions:
                bindings[ch] = tuple(self.faces[p].record for p in positions)
            else:
                missing.append(ch)
        return bindings, missing

    def face(self, record):
        """Returns the `FontFace` behind a record.

        Raises:
            InvalidArgument: If the record does not belong to this index.
        """
        try:
            return self._by_record[FontRecord(*record)]
        except (KeyError, TypeError) as e:
            raise InvalidArgument(f"Unknown font record: {record!r}") from e

    def category(self, record):
        """Returns the `FontCategory` of a record."""
        return self.face(record).category

    def _positions(self, character):
        if not character:
            return ()
        codes = [ord(c) for c in character]
        positions = self._index.get(codes[0], ())
        if len(codes) == 1:
            return positions
        rest = [set(self._index.get(code, ())) for code in codes[1:]]
        return tuple(p for p in positions if all(p in r for r in rest))
