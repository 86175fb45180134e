"""Shared fixtures: fonts built with fontTools and backgrounds written with OpenCV."""

import cv2
import numpy as np
import pytest
import yaml
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen

UNITS_PER_EM = 1000

MAIN_CHARS = "一二三abc!，"
FALLBACK_CHARS = "一四"


def _rect_glyph(x0, y0, x1, y1):
    pen = TTGlyphPen(None)
    pen.moveTo((x0, y0))
    pen.lineTo((x0, y1))
    pen.lineTo((x1, y1))
    pen.lineTo((x1, y0))
    pen.closePath()
    return pen.glyph()


def _empty_glyph():
    return TTGlyphPen(None).glyph()


def build_font(path, family, chars, blank_chars="", variable=False):
    """Writes a TrueType font mapping every char of `chars` to a bar glyph.

    The bar spans x 0..1000 and y 300..500 font units, which at a 50 px
    size falls exactly on pixel boundaries. Characters of `blank_chars` are
    mapped to a glyph without outline. The space is always mapped.
    """
    names = {ch: f"uni{ord(ch):04X}" for ch in chars + blank_chars}
    glyph_order = [".notdef", "space", *names.values()]

    fb = FontBuilder(UNITS_PER_EM, isTTF=True)
    fb.setupGlyphOrder(glyph_order)
    fb.setupCharacterMap({32: "space", **{ord(ch): name for ch, name in names.items()}})

    glyphs = {".notdef": _empty_glyph(), "space": _empty_glyph()}
    for ch, name in names.items():
        glyphs[name] = _empty_glyph() if ch in blank_chars else _rect_glyph(0, 300, 1000, 500)
    fb.setupGlyf(glyphs)

    glyf = fb.font["glyf"]
    fb.setupHorizontalMetrics({name: (UNITS_PER_EM, getattr(glyf[name], "xMin", 0)) for name in glyph_order})
    fb.setupHorizontalHeader(ascent=800, descent=-200)
    fb.setupNameTable({"familyName": family, "styleName": "Regular"})
    fb.setupOS2(sTypoAscender=800, sTypoDescender=-200, usWinAscent=800, usWinDescent=200)
    fb.setupPost()
    if variable:
        fb.setupFvar(axes=[("wght", 100, 400, 900, "Weight")], instances=[])
    fb.save(str(path))
    return path


@pytest.fixture
def font_dir(tmp_path):
    """A directory with a main font, a fallback font and an unlisted font."""
    directory = tmp_path / "fonts"
    (directory / "nested").mkdir(parents=True)
    build_font(directory / "MainFont.ttf", "MainFont", MAIN_CHARS, blank_chars="五")
    build_font(directory / "nested" / "FallbackFont.ttf", "FallbackFont", FALLBACK_CHARS)
    build_font(directory / "OtherFont.TTF", "OtherFont", "一六")
    return directory


@pytest.fixture
def single_font_dir(tmp_path):
    """A directory holding a single font that only covers "一"."""
    directory = tmp_path / "single_font"
    directory.mkdir()
    build_font(directory / "OnlyOne.ttf", "OnlyOne", "一")
    return directory


@pytest.fixture
def bg_dir(tmp_path):
    """A directory with a large color background, a small gray one and junk."""
    directory = tmp_path / "background"
    directory.mkdir()
    rng = np.random.default_rng(0)
    cv2.imwrite(str(directory / "large.png"), rng.integers(0, 256, (120, 1500, 3), dtype=np.uint8))
    cv2.imwrite(str(directory / "small.jpg"), rng.integers(0, 256, (20, 300), dtype=np.uint8))
    (directory / "broken.png").write_bytes(b"not an image")
    (directory / "notes.txt").write_text("ignored", encoding="utf-8")
    return directory


@pytest.fixture
def data_dir(tmp_path, font_dir, bg_dir):
    """Character tables and font lists next to the fonts and backgrounds."""
    (tmp_path / "ch.txt").write_text("一\t1\n二\t1\n三\t1\n", encoding="utf-8")
    (tmp_path / "main_font.txt").write_text("MainFont\n", encoding="utf-8")
    (tmp_path / "fallback_font.txt").write_text("FallbackFont\n", encoding="utf-8")
    (tmp_path / "latin.txt").write_text("abc  cab\nbca", encoding="utf-8")
    (tmp_path / "symbol.txt").write_text("!\n，\n", encoding="utf-8")
    return tmp_path


def write_config(directory, **sections):
    """Writes a config.yaml using the fixture files, with section overrides."""
    config = {
        "FONT": {
            "font_dir": "fonts",
            "chinese_ch_file_path": "ch.txt",
            "main_font_list_file_path": "main_font.txt",
            "fallback_font_list_file_path": "fallback_font.txt",
            "latin_corpus_file_path": "latin.txt",
            "symbol_file_path": "symbol.txt",
        },
        "CV": {},
        "MERGE": {"bg_dir": "background", "bg_height": 64, "bg_width": 400},
    }
    for name, values in sections.items():
        if isinstance(values, dict):
            config.setdefault(name, {}).update(values)
        else:
            config[name] = values
    path = directory / "config.yaml"
    path.write_text(yaml.safe_dump(config, allow_unicode=True), encoding="utf-8")
    return path


@pytest.fixture
def config_path(data_dir):
    return write_config(data_dir)


@pytest.fixture
def no_effects():
    """`CV` section values that disable every effect."""
    return {
        "perspective_prob": 0.0,
        "emboss_prob": 0.0,
        "sharp_prob": 0.0,
        "down_up_prob": 0.0,
        "blur_prob": 0.0,
        "box_prob": 0.0,
    }
