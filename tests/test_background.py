"""Tests for the background image pool."""

import numpy as np
import pytest

from text_image_generator.background import BackgroundFactory
from text_image_generator.exceptions import ConfigurationError, InvalidArgument


def test_skips_undecodable_and_foreign_files(bg_dir):
    factory = BackgroundFactory(bg_dir)
    assert len(factory) == 2
    assert sorted(p.name for p in factory.paths) == ["large.png", "small.jpg"]


def test_random_has_the_requested_size(bg_dir):
    """Small backgrounds are scaled up, large ones cropped."""
    factory = BackgroundFactory(bg_dir, height=64, width=1000, seed=0)
    for _ in range(20):
        assert factory.random().shape == (64, 1000)
        assert factory.random(color=True).shape == (64, 1000, 3)


def test_set_bg_size_affects_later_calls_only(bg_dir):
    factory = BackgroundFactory(bg_dir, seed=0)
    before = factory.random()

    factory.set_bg_size(32, 100)

    assert before.shape == (64, 1000)
    assert factory.random().shape == (32, 100)
    assert (factory.height, factory.width) == (32, 100)


def test_random_returns_fresh_buffers(bg_dir):
    factory = BackgroundFactory(bg_dir, height=10, width=10, seed=0)
    a = factory.random()
    b = factory.random()
    assert not np.shares_memory(a, b)


def test_same_seed_same_backgrounds(bg_dir):
    a = BackgroundFactory(bg_dir, seed=3)
    b = BackgroundFactory(bg_dir, seed=3)
    assert all((a.random() == b.random()).all() for _ in range(5))


@pytest.mark.parametrize("size", [(0, 10), (10, -1), (1.5, 10)])
def test_invalid_sizes_raise(bg_dir, size):
    factory = BackgroundFactory(bg_dir)
    with pytest.raises(InvalidArgument):
        factory.set_bg_size(*size)


def test_missing_directory_raises(tmp_path):
    with pytest.raises(ConfigurationError, match="does not exist"):
        BackgroundFactory(tmp_path / "missing")


def test_directory_without_images_raises(tmp_path):
    (tmp_path / "broken.png").write_bytes(b"junk")
    with pytest.raises(ConfigurationError, match="No usable background"):
        BackgroundFactory(tmp_path)
