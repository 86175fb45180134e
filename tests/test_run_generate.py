"""Tests for the batch dataset generation script."""

from unittest.mock import patch

import cv2
import pandas as pd
import pytest

from text_image_generator.exceptions import InvalidArgument, MissingGlyphCoverage
from text_image_generator.generator import Generator
from text_image_generator.run_generate import parse_color, run
from tests.conftest import write_config


@pytest.fixture
def quiet_config(data_dir, no_effects):
    return write_config(data_dir, CV=no_effects)


def test_run_writes_images_and_labels(quiet_config, tmp_path):
    out_dir = tmp_path / "out"

    labels = run(config_path=quiet_config, out_dir=out_dir, n_samples=3, min_len=2, max_len=4, seed=0)

    written = pd.read_csv(out_dir / "labels.csv")
    assert list(written.columns) == ["path", "text"]
    assert len(written) == 3
    assert written["path"].tolist() == labels["path"].tolist()
    for path, text in written.itertuples(index=False):
        image = cv2.imread(str(out_dir / path), cv2.IMREAD_UNCHANGED)
        assert image.shape == (64, 400)
        assert 2 <= len(text) <= 4


def test_run_without_effects_writes_text_lines(quiet_config, tmp_path):
    labels = run(config_path=quiet_config, out_dir=tmp_path, n_samples=1, min_len=1, max_len=1, apply_effect=False)
    image = cv2.imread(str(tmp_path / labels["path"][0]))
    assert image.shape == (64, 51, 3)


def test_run_skips_uncovered_samples(quiet_config, tmp_path):
    """A sample raising `MissingGlyphCoverage` is skipped, the rest is kept."""
    original = Generator.gen_image_from_text_with_font_list
    calls = []

    def flaky(self, *args, **kwargs):
        calls.append(1)
        if len(calls) == 1:
            raise MissingGlyphCoverage(["龘"])
        return original(self, *args, **kwargs)

    with patch.object(Generator, "gen_image_from_text_with_font_list", flaky):
        labels = run(config_path=quiet_config, out_dir=tmp_path, n_samples=3, seed=0)

    assert len(labels) == 2
    assert labels["path"].tolist() == ["images/000001.png", "images/000002.png"]


def test_run_skips_lines_wider_than_the_maximum(data_dir, no_effects, tmp_path):
    config_path = write_config(data_dir, CV=no_effects, FONT={"font_img_width": 60})

    labels = run(config_path=config_path, out_dir=tmp_path, n_samples=2, min_len=2, max_len=3, seed=0)

    assert labels.empty
    assert list(pd.read_csv(tmp_path / "labels.csv").columns) == ["path", "text"]
    assert not any((tmp_path / "images").iterdir())


def test_run_is_reproducible(quiet_config, tmp_path):
    a = run(config_path=quiet_config, out_dir=tmp_path / "a", n_samples=4, seed=3)
    b = run(config_path=quiet_config, out_dir=tmp_path / "b", n_samples=4, seed=3)
    assert a["text"].tolist() == b["text"].tolist()


def test_run_rejects_negative_sample_count(quiet_config, tmp_path):
    with pytest.raises(InvalidArgument):
        run(config_path=quiet_config, out_dir=tmp_path, n_samples=-1)


@pytest.mark.parametrize(
    "value, expected",
    [("10,20,30", (10, 20, 30)), ("(1, 2, 3)", (1, 2, 3)), ((4, 5, 6), (4, 5, 6)), ([7, 8, 9], (7, 8, 9))],
)
def test_parse_color(value, expected):
    assert parse_color(value) == expected


def test_parse_color_rejects_garbage():
    with pytest.raises(InvalidArgument):
        parse_color("red")
