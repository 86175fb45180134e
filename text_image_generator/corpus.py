"""Weighted character tables and the random text sampler.

Three tables are built at construction: ideographs (from a tab-separated
frequency file), Latin characters (the distinct characters of a free-text
corpus) and symbols (one per line). Each entry keeps its sampling weight and
the fonts able to render it, so anything drawn from a table is guaranteed to
be renderable.
"""

import csv
from types import MappingProxyType

import numpy as np
import pandas as pd
from loguru import logger

from text_image_generator.exceptions import ConfigurationError, InvalidArgument, MissingGlyphCoverage
from text_image_generator.utils import split_graphemes, unique_graphemes


class WeightedCharacterTable:
    """An immutable table of characters, weights and font bindings.

    Attributes:
        name (str): A short name used in log messages.
        characters (tuple[str, ...]): The characters, in table order.
        weights (np.ndarray): Non-negative sampling weights.
        probabilities (np.ndarray): The weights normalized to sum to 1.
    """

    def __init__(self, name, characters, weights, bindings):
        if len(characters) != len(weights):
            raise InvalidArgument("characters and weights must have the same length")
        if not characters:
            raise ConfigurationError(f"The {name} table is empty")
        weights = np.array(weights, dtype=np.float64)
        if (weights < 0).any() or not np.isfinite(weights).all():
            raise ConfigurationError(f"The {name} table has negative or non-finite weights")
        total = weights.sum()
        if total <= 0:
            raise ConfigurationError(f"All weights of the {name} table are zero")

        self.name = name
        self.characters = tuple(characters)
        self.weights = weights
        self.weights.flags.writeable = False
        self.probabilities = weights / total
        self.probabilities.flags.writeable = False
        self._bindings = MappingProxyType({ch: tuple(bindings[ch]) for ch in self.characters})

    def __len__(self):
        return len(self.characters)

    def __contains__(self, character):
        return character in self._bindings

    def __repr__(self):
        return f"WeightedCharacterTable({self.name!r}, {len(self)} characters)"

    def bindings(self, character):
        """Returns the fonts covering `character`, or an empty tuple if absent."""
        return self._bindings.get(character, ())

    def sample_indices(self, rng, n):
        """Draws `n` table indices with probability proportional to weight."""
        return rng.choice(len(self.characters), size=n, p=self.probabilities)

    def as_dict(self):
        """Returns `{character: (weight, bindings)}`."""
        return {ch: (float(w), self._bindings[ch]) for ch, w in zip(self.characters, self.weights)}


def _build_table(name, characters, weights, index):
    """Keeps the covered characters of a table, warning once about the rest."""
    bindings, missing = index.bindings_for(characters)
    if missing:
        preview = "".join(missing[:50])
        logger.warning(
            f"Dropping {len(missing)} characters of the {name} table that no font covers: "
            f"{preview}{'...' if len(missing) > 50 else ''}"
        )
    kept = [(ch, w) for ch, w in zip(characters, weights) if ch in bindings]
    if not kept:
        raise ConfigurationError(f"No character of the {name} table is covered by any font")
    chars, ws = zip(*kept)
    table = WeightedCharacterTable(name, chars, ws, bindings)
    logger.info(f"Loaded {name} table with {len(table)} characters")
    return table


def load_frequency_table(path, index):
    """Loads the ideograph table from a `char<TAB>weight` file.

    The file has no header and no quoting. Blank lines are ignored and
    duplicated characters keep their first row.

    Args:
        path (str or Path): The tab-separated frequency file.
        index (FontCoverageIndex): Used to attach font bindings.

    Returns:
        WeightedCharacterTable: The ideograph table.

    Raises:
        ConfigurationError: If the file cannot be read, a weight is missing,
            not numeric or negative, or all weights are zero.
    """
    try:
        df = pd.read_csv(
            path,
            sep="\t",
            header=None,
            names=["char", "weight"],
            usecols=[0, 1],
            quoting=csv.QUOTE_NONE,
            keep_default_na=False,
            dtype=str,
            encoding="utf-8",
            skip_blank_lines=True,
        )
    except (OSError, ValueError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ConfigurationError(f"Cannot read frequency table {path}: {e}") from e

    df["char"] = df["char"].str.strip()
    df = df[df["char"] != ""]
    weights = pd.to_numeric(df["weight"].str.strip(), errors="coerce")
    bad = df[weights.isna() | (weights < 0)]
    if not bad.empty:
        row = bad.iloc[0]
        raise ConfigurationError(f"Invalid weight {row['weight']!r} for {row['char']!r} in {path}")

    df = df.assign(weight=weights).drop_duplicates(subset="char", keep="first")
    if df.empty:
        raise ConfigurationError(f"Frequency table {path} is empty")
    if df["weight"].sum() <= 0:
        raise ConfigurationError(f"All weights of frequency table {path} are zero")
    return _build_table("ideograph", df["char"].tolist(), df["weight"].tolist(), index)


def load_latin_table(corpus_text, index):
    """Builds the Latin table from the distinct characters of a corpus, weight 1.

    Whitespace is collapsed first, so the only blank entry is the space.
    """
    characters = unique_graphemes(" ".join(corpus_text.split()))
    return _build_table("latin", characters, [1.0] * len(characters), index)


def load_symbol_table(lines, index):
    """Builds the symbol table from a list of symbols, weight 1."""
    characters = list(dict.fromkeys(line.strip() for line in lines if line.strip()))
    return _build_table("symbol", characters, [1.0] * len(characters), index)


def normalize_corpus(text):
    """Splits a corpus into graphemes with whitespace runs collapsed to a space."""
    normalized = " ".join(text.split())
    return tuple(split_graphemes(normalized))


def check_bounds(min_len, max_len):
    """Validates sampling bounds, raising `InvalidArgument` on misuse."""
    if min_len < 0 or max_len < 0:
        raise InvalidArgument(f"Length bounds must not be negative, got min={min_len}, max={max_len}")
    if min_len > max_len:
        raise InvalidArgument(f"min_len ({min_len}) must not exceed max_len ({max_len})")


class CorpusSampler:
    """Draws random character sequences from the weighted tables.

    Every random draw goes through one seedable `numpy.random.Generator`, so
    two samplers built from the same seed and tables produce the same text.
    """

    def __init__(
        self,
        ideograph_table,
        symbol_table=None,
        latin_corpus=None,
        latin_table=None,
        extra_symbol_prob=1.0,
        seed=None,
    ):
        """Initializes the sampler.

        Args:
            ideograph_table (WeightedCharacterTable): The main table.
            symbol_table (WeightedCharacterTable, optional): Symbols that
                may be inserted into sampled text.
            latin_corpus (str or Sequence[str], optional): Free text used
                for contextual Latin samples.
            latin_table (WeightedCharacterTable, optional): Provides font
                bindings for the Latin samples. Corpus characters missing
                from it (already reported when the table was built) are
                removed from the corpus here, once.
            extra_symbol_prob (float): Probability of inserting a symbol
                when one is requested.
            seed (int or np.random.SeedSequence, optional): Seed of the
                random source.
        """
        if not 0.0 <= extra_symbol_prob <= 1.0:
            raise InvalidArgument("extra_symbol_prob must be within [0, 1]")
        self.ideograph_table = ideograph_table
        self.symbol_table = symbol_table
        self.latin_table = latin_table
        if isinstance(latin_corpus, str):
            latin_corpus = normalize_corpus(latin_corpus)
        latin_corpus = tuple(latin_corpus) if latin_corpus else ()
        if latin_corpus and latin_table is not None:
            kept = [ch for ch in latin_corpus if ch in latin_table]
            if len(kept) < len(latin_corpus):
                logger.debug(f"Removed {len(latin_corpus) - len(kept)} uncovered characters from the Latin corpus")
                latin_corpus = normalize_corpus("".join(kept))
        self.latin_corpus = latin_corpus
        self.extra_symbol_prob = extra_symbol_prob
        self.rng = np.random.default_rng(seed)

    def sample(self, min_len, max_len, add_extra_symbol=False):
        """Samples a random ideograph sequence.

        Args:
            min_len (int): Minimum number of table characters.
            max_len (int): Maximum number of table characters.
            add_extra_symbol (bool): Possibly insert one random symbol,
                never in front of the first character.

        Returns:
            list[tuple[str, tuple[FontRecord, ...]]]: The characters with
            their font bindings, in order.

        Raises:
            InvalidArgument: If the bounds are negative or inverted.
        """
        check_bounds(min_len, max_len)
        length = int(self.rng.integers(min_len, max_len + 1))
        table = self.ideograph_table
        result = [(table.characters[i], table.bindings(table.characters[i])) for i in table.sample_indices(self.rng, length)]

        if add_extra_symbol:
            if self.symbol_table is None:
                logger.debug("No symbol table configured, skipping symbol insertion")
            elif self.rng.random() < self.extra_symbol_prob:
                symbol = self.symbol_table.characters[int(self.symbol_table.sample_indices(self.rng, 1)[0])]
                position = int(self.rng.integers(min(1, len(result)), len(result) + 1))
                result.insert(position, (symbol, self.symbol_table.bindings(symbol)))
        return result

    def sample_latin(self, min_len, max_len):
        """Samples a contiguous window of the Latin corpus.

        The window length is uniform in `[min_len, max_len]` before leading
        and trailing whitespace is trimmed, so the result can be shorter.

        Returns:
            list[tuple[str, tuple[FontRecord, ...]]]: The window with the
            bindings of each character.

        Raises:
            InvalidArgument: If the bounds are invalid or there is no corpus.
            MissingGlyphCoverage: If a character of the window has no font.
        """
        check_bounds(min_len, max_len)
        if not self.latin_corpus or self.latin_table is None:
            raise InvalidArgument("No Latin corpus is configured")

        length = min(int(self.rng.integers(min_len, max_len + 1)), len(self.latin_corpus))
        start = int(self.rng.integers(0, len(self.latin_corpus) - length + 1))
        window = "".join(self.latin_corpus[start:start + length]).strip()

        result = [(ch, self.latin_table.bindings(ch)) for ch in split_graphemes(window)]
        missing = [ch for ch, fonts in result if not fonts]
        if missing:
            raise MissingGlyphCoverage(missing)
        return result
