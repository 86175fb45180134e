"""End-to-end tests of the `Generator` public API."""

import numpy as np
import pytest

from text_image_generator import Generator, TextSegment
from text_image_generator.config import load_config
from text_image_generator.exceptions import ConfigurationError, InvalidArgument, LineTooWide, MissingGlyphCoverage
from text_image_generator.font_coverage import FontRecord
from tests.conftest import write_config

MAIN = FontRecord("MainFont", 0, 400, 5)


@pytest.fixture
def generator(data_dir, no_effects):
    return Generator(write_config(data_dir, CV=no_effects), seed=0)


def test_wrap_text_with_font_list(generator):
    segments = generator.wrap_text_with_font_list("一a!")

    assert [s.text for s in segments] == ["一", "a", "!"]
    assert segments[0].fonts[0] == MAIN
    assert all(isinstance(s, TextSegment) for s in segments)


def test_wrap_text_with_uncovered_character(generator):
    with pytest.raises(MissingGlyphCoverage):
        generator.wrap_text_with_font_list("一龘")


def test_get_random_chinese(generator):
    segments = generator.get_random_chinese(3, 6)
    assert 3 <= len(segments) <= 6
    assert all(s.text in generator.chinese_ch_dict for s in segments)


def test_get_random_chinese_with_symbol(generator):
    segments = generator.get_random_chinese(2, 2, add_extra_symbol=True)
    assert len(segments) == 3
    assert segments[0].text in generator.chinese_ch_dict
    assert any(s.text in generator.symbol_dict for s in segments[1:])


def test_get_random_latin(generator):
    text = "".join(s.text for s in generator.get_random_latin(2, 5))
    assert text in "abc cab bca"


def test_plain_output_has_only_the_two_colors(generator):
    """Rendering "一" without effects gives a text line in two colors."""
    text_color, background_color = (10, 10, 200), (240, 240, 10)
    segments = generator.wrap_text_with_font_list("一")

    image = generator.gen_image_from_text_with_font_list(segments, text_color, background_color, apply_effect=False)

    assert image.dtype == np.uint8
    assert image.shape == (64, 51, 3)
    pixels = image.reshape(-1, 3)
    is_text = (pixels == text_color).all(axis=1)
    is_background = (pixels == background_color).all(axis=1)
    assert is_text.any()
    assert (is_text | is_background).mean() > 0.9


def test_effect_output_is_grayscale_background_sized(generator):
    segments = generator.get_random_chinese(3, 5)
    image = generator.gen_image_from_text_with_font_list(segments, apply_effect=True)
    assert image.shape == (64, 400)
    assert image.dtype == np.uint8


def test_effect_output_in_color(data_dir, no_effects):
    generator = Generator(write_config(data_dir, CV={**no_effects, "force_grayscale": False}), seed=0)
    image = generator.gen_image_from_text_with_font_list(generator.get_random_chinese(3, 5), apply_effect=True)
    assert image.shape == (64, 400, 3)


def test_effect_output_with_every_effect(data_dir):
    effects = {
        "perspective_prob": 1.0,
        "emboss_prob": 1.0,
        "sharp_prob": 1.0,
        "down_up_prob": 1.0,
        "blur_prob": 1.0,
        "box_prob": 1.0,
    }
    generator = Generator(write_config(data_dir, CV=effects), seed=0)
    image = generator.gen_image_from_text_with_font_list(generator.get_random_chinese(3, 5), apply_effect=True)
    assert image.shape == (64, 400)


def test_composite_plain_output(data_dir, no_effects):
    generator = Generator(write_config(data_dir, CV=no_effects, composite_plain_output=True), seed=0)
    image = generator.gen_image_from_text_with_font_list(generator.get_random_chinese(3, 5))
    assert image.shape == (64, 400, 3)


def test_set_bg_size(generator):
    generator.set_bg_size(32, 200)
    image = generator.gen_image_from_text_with_font_list(generator.get_random_chinese(3, 5), apply_effect=True)
    assert image.shape == (32, 200)
    assert generator.bg_factory.height == 32


def test_accepts_plain_tuples_and_lists(generator):
    image = generator.gen_image_from_text_with_font_list([("一", [list(MAIN)]), ("二", [tuple(MAIN)])])
    assert image.shape == (64, 101, 3)


def test_same_seed_same_output(data_dir):
    path = write_config(data_dir)
    a, b = Generator(path, seed=5), Generator(path, seed=5)
    for _ in range(3):
        text_a, text_b = a.get_random_chinese(5, 10), b.get_random_chinese(5, 10)
        assert text_a == text_b
        np.testing.assert_array_equal(
            a.gen_image_from_text_with_font_list(text_a, apply_effect=True),
            b.gen_image_from_text_with_font_list(text_b, apply_effect=True),
        )


def test_different_seeds_differ(config_path):
    a, b = Generator(config_path, seed=1), Generator(config_path, seed=2)
    assert [a.get_random_chinese(10, 10) for _ in range(3)] != [b.get_random_chinese(10, 10) for _ in range(3)]


def test_seed_from_config(data_dir):
    path = write_config(data_dir, seed=9)
    assert Generator(path).get_random_chinese(10, 10) == Generator(path).get_random_chinese(10, 10)


def test_accepts_a_config_object(config_path):
    generator = Generator(load_config(config_path), seed=0)
    assert len(generator.font_list) == 3


def test_segment_without_fonts_raises(generator):
    with pytest.raises(MissingGlyphCoverage):
        generator.gen_image_from_text_with_font_list([("一", [])])


@pytest.mark.parametrize(
    "kwargs",
    [
        {"text_color": (0, 0)},
        {"text_color": (0, 0, 256)},
        {"background_color": "white"},
        {"background_color": None},
    ],
)
def test_invalid_colors_raise(generator, kwargs):
    with pytest.raises(InvalidArgument):
        generator.gen_image_from_text_with_font_list(generator.wrap_text_with_font_list("一"), **kwargs)


def test_malformed_segments_raise(generator):
    with pytest.raises(InvalidArgument):
        generator.gen_image_from_text_with_font_list(["一"])


@pytest.mark.parametrize("segments", [[("", [])], [("一", [MAIN]), ("", [MAIN])]])
def test_empty_segment_text_raises(generator, segments):
    with pytest.raises(InvalidArgument, match="empty"):
        generator.gen_image_from_text_with_font_list(segments)


def test_line_wider_than_font_img_width_raises(data_dir, no_effects):
    """Characters that would not fit are never dropped from the image."""
    generator = Generator(write_config(data_dir, CV=no_effects, FONT={"font_img_width": 60}), seed=0)
    segments = generator.wrap_text_with_font_list("一二三")
    with pytest.raises(LineTooWide):
        generator.gen_image_from_text_with_font_list(segments)
    with pytest.raises(LineTooWide):
        generator.gen_image_from_text_with_font_list(segments, apply_effect=True)


def test_unknown_font_raises(generator):
    with pytest.raises(InvalidArgument):
        generator.gen_image_from_text_with_font_list([("一", [("Nope", 0, 400, 5)])])


def test_properties(generator):
    assert set(generator.chinese_ch_dict) == {"一", "二", "三"}
    weight, fonts = generator.chinese_ch_dict["一"]
    assert weight == 1.0
    assert fonts[0] == MAIN
    assert set(generator.latin_ch_dict) == {" ", "a", "b", "c"}
    assert set(generator.symbol_dict) == {"!", "，"}
    assert generator.main_font_list == (MAIN,)
    assert generator.font_list[0] == MAIN
    assert generator.font_index.covers("四")
    assert generator.merge_util.config.bg_width == 400
    assert [e.name for e in generator.cv_util][0] == "perspective"


def test_optional_tables_can_be_omitted(data_dir):
    path = write_config(data_dir, FONT={"latin_corpus_file_path": "", "symbol_file_path": ""})
    generator = Generator(path, seed=0)

    assert generator.latin_ch_dict == {}
    assert len(generator.get_random_chinese(2, 2, add_extra_symbol=True)) == 2
    with pytest.raises(InvalidArgument):
        generator.get_random_latin()


def test_construction_fails_fast(data_dir):
    with pytest.raises(ConfigurationError):
        Generator(write_config(data_dir, FONT={"font_dir": "missing"}))
    with pytest.raises(ConfigurationError):
        Generator(write_config(data_dir, MERGE={"bg_dir": "missing"}))
