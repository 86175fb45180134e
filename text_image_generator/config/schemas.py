"""Pydantic schemas for type-safe generator configuration.

Each class corresponds to one section of `config.yaml`. Validation happens
once, when the configuration is loaded, so the components built from it can
trust every value they receive. All models are frozen: a configuration never
changes after a `Generator` has been built from it.
"""

from pathlib import Path
from typing import Literal, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_DISTRIBUTIONS = {"u": "uniform", "g": "gaussian"}


class RandomRange(BaseModel):
    """A bounded random parameter.

    Uniform ranges draw evenly from `[low, high]`. Gaussian ranges are
    centred on the midpoint with a standard deviation of a sixth of the
    range, and the draw is clamped to the bounds.

    In YAML the compact form `[low, high, "u"]` or `[low, high, "g"]` is
    accepted as well as the mapping form.
    """

    model_config = ConfigDict(frozen=True)

    low: float
    high: float
    distribution: Literal["uniform", "gaussian"] = "uniform"

    @model_validator(mode="before")
    @classmethod
    def parse_compact_form(cls, data):
        if isinstance(data, (list, tuple)):
            if len(data) not in (2, 3):
                raise ValueError("a random range is written as [low, high] or [low, high, 'u'|'g']")
            low, high, *rest = data
            distribution = rest[0] if rest else "u"
            data = {"low": low, "high": high, "distribution": distribution}
        if isinstance(data, dict) and data.get("distribution") in _DISTRIBUTIONS:
            data = {**data, "distribution": _DISTRIBUTIONS[data["distribution"]]}
        return data

    @model_validator(mode="after")
    def check_bounds(self):
        if self.low > self.high:
            raise ValueError(f"low ({self.low}) must not exceed high ({self.high})")
        return self

    def sample(self, rng: np.random.Generator) -> float:
        """Draws one value from the range."""
        if self.distribution == "uniform":
            return float(rng.uniform(self.low, self.high))
        mean = (self.low + self.high) / 2.0
        sigma = (self.high - self.low) / 6.0
        return float(np.clip(rng.normal(mean, sigma), self.low, self.high))


class FontConfig(BaseModel):
    """Where fonts and character tables live and how text lines are drawn."""

    model_config = ConfigDict(frozen=True)

    font_dir: Path = Field(..., description="Directory scanned recursively for TTF/OTF/TTC fonts.")
    chinese_ch_file_path: Path = Field(..., description="Tab-separated `char<TAB>weight` frequency table.")
    main_font_list_file_path: Optional[Path] = Field(None, description="Family names (or file stems) of the main fonts, one per line.")
    fallback_font_list_file_path: Optional[Path] = Field(None, description="Family names (or file stems) of the fallback fonts, one per line.")
    latin_corpus_file_path: Optional[Path] = Field(None, description="Free text used for Latin characters and contextual Latin samples.")
    symbol_file_path: Optional[Path] = Field(None, description="Symbols that may be inserted into random text, one per line.")
    font_size: int = Field(50, gt=0, description="Font size in pixels.")
    line_height: int = Field(64, gt=0, description="Height of the rasterized text line.")
    font_img_height: int = Field(64, gt=0, description="Kept for compatibility; the text line height is `line_height`.")
    font_img_width: int = Field(2000, gt=0, description="Maximum width of the rasterized text line.")
    main_font_bias: float = Field(0.8, ge=0.0, le=1.0, description="Probability mass given to main fonts when several fonts cover a character.")
    skip_unloadable_fonts: bool = Field(False, description="Log and skip variable or corrupt fonts instead of failing.")

    @field_validator(
        "main_font_list_file_path",
        "fallback_font_list_file_path",
        "latin_corpus_file_path",
        "symbol_file_path",
        mode="before",
    )
    @classmethod
    def empty_path_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class EffectConfig(BaseModel):
    """Probabilities and parameter ranges of the degradation effects."""

    model_config = ConfigDict(frozen=True)

    perspective_prob: float = Field(0.2, ge=0.0, le=1.0)
    perspective_x: RandomRange = Field(default_factory=lambda: RandomRange(low=-15.0, high=15.0, distribution="gaussian"))
    perspective_y: RandomRange = Field(default_factory=lambda: RandomRange(low=-15.0, high=15.0, distribution="gaussian"))
    perspective_z: RandomRange = Field(default_factory=lambda: RandomRange(low=-3.0, high=3.0, distribution="gaussian"))
    emboss_prob: float = Field(0.004, ge=0.0, le=1.0)
    sharp_prob: float = Field(0.006, ge=0.0, le=1.0)
    down_up_prob: float = Field(0.1, ge=0.0, le=1.0)
    down_up_scale: RandomRange = Field(default_factory=lambda: RandomRange(low=1.0, high=2.0))
    blur_prob: float = Field(0.1, ge=0.0, le=1.0)
    blur_sigma: RandomRange = Field(default_factory=lambda: RandomRange(low=0.0, high=1.5))
    box_prob: float = Field(0.1, ge=0.0, le=1.0)
    box_alpha: RandomRange = Field(default_factory=lambda: RandomRange(low=1.3, high=1.3))
    force_grayscale: bool = Field(True, description="Degraded output is always single-channel.")

    @field_validator("down_up_scale")
    @classmethod
    def scale_at_least_one(cls, v):
        if v.low < 1.0:
            raise ValueError("down_up_scale must be >= 1")
        return v

    @field_validator("box_alpha")
    @classmethod
    def zoom_above_one(cls, v):
        if v.low <= 1.0:
            raise ValueError("box_alpha must be > 1")
        return v

    @field_validator("blur_sigma")
    @classmethod
    def sigma_not_negative(cls, v):
        if v.low < 0.0:
            raise ValueError("blur_sigma must be >= 0")
        return v


class MergeConfig(BaseModel):
    """Backgrounds and the parameters of padding and Poisson blending."""

    model_config = ConfigDict(frozen=True)

    bg_dir: Path = Field(..., description="Directory containing background images.")
    bg_height: int = Field(64, gt=0)
    bg_width: int = Field(1000, gt=0)
    height_diff: float = Field(10.0, ge=2.0, description="Upper bound of the random height reduction in `random_pad`.")
    pad_value: int = Field(0, ge=0, le=255, description="Default margin fill used by `random_pad`.")
    bg_color_prob: float = Field(1.0, ge=0.0, le=1.0, description="Probability of perturbing the background color.")
    bg_alpha: RandomRange = Field(default_factory=lambda: RandomRange(low=0.5, high=1.5, distribution="gaussian"))
    bg_beta: RandomRange = Field(default_factory=lambda: RandomRange(low=-50.0, high=50.0, distribution="gaussian"))
    bg_value_range: Tuple[int, int] = Field((50, 255), description="Pixel bounds after the background color change.")
    font_alpha: RandomRange = Field(default_factory=lambda: RandomRange(low=0.2, high=1.0))
    mask_threshold: int = Field(32, ge=0, le=255, description="Minimum departure from the fill value for a foreground pixel.")
    gradient: Literal["source", "maximum", "average"] = Field("source", description="Guidance field used by the Poisson solver.")
    reverse_prob: float = Field(0.5, ge=0.0, le=1.0)

    @field_validator("bg_value_range")
    @classmethod
    def ordered_bounds(cls, v):
        low, high = v
        if not 0 <= low <= high <= 255:
            raise ValueError("bg_value_range must satisfy 0 <= low <= high <= 255")
        return v


class CorpusConfig(BaseModel):
    """Options of the random text sampler."""

    model_config = ConfigDict(frozen=True)

    extra_symbol_prob: float = Field(1.0, ge=0.0, le=1.0, description="Probability of inserting a symbol when requested.")


class GeneratorConfig(BaseSettings):
    """The root configuration object of a `Generator`.

    Values come from the YAML file; environment variables prefixed with
    `TEXT_IMAGE_GENERATOR_` (nested sections separated by `__`) take
    precedence over them, e.g. `TEXT_IMAGE_GENERATOR_SEED=7`. Sections are
    merged key by key, so an override of `merge.bg_height` keeps the rest
    of the `merge` section from the file.
    """

    model_config = SettingsConfigDict(
        env_prefix="TEXT_IMAGE_GENERATOR_",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    seed: Optional[int] = Field(None, description="Seed of every random draw; None uses fresh entropy.")
    composite_plain_output: bool = Field(False, description="Composite the plain (no effect) output onto a color background.")
    font: FontConfig
    effect: EffectConfig = Field(default_factory=EffectConfig)
    merge: MergeConfig
    corpus: CorpusConfig = Field(default_factory=CorpusConfig)

    @classmethod
    def settings_customise_sources(cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings):
        # Earlier sources win; the YAML values arrive as init kwargs.
        return env_settings, init_settings, dotenv_settings, file_secret_settings
