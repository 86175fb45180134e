"""Handles loading and validation of the generator configuration.

This module provides the `load_config` function, which reads a YAML file,
normalizes its section names and validates it with the Pydantic schemas
defined in `schemas.py`.
"""

from pathlib import Path

import yaml
from pydantic import ValidationError

from text_image_generator.config.schemas import (
    CorpusConfig,
    EffectConfig,
    FontConfig,
    GeneratorConfig,
    MergeConfig,
    RandomRange,
)
from text_image_generator.exceptions import ConfigurationError

__all__ = [
    "CorpusConfig",
    "EffectConfig",
    "FontConfig",
    "GeneratorConfig",
    "MergeConfig",
    "RandomRange",
    "load_config",
]

_SECTION_ALIASES = {"cv": "effect"}


def load_config(config_path) -> GeneratorConfig:
    """Loads a YAML configuration file into a validated `GeneratorConfig`.

    The layering is as follows, with later sources overriding earlier ones:

    1.  Default values defined in the Pydantic schemas.
    2.  Values from the YAML file.
    3.  Environment variables prefixed with `TEXT_IMAGE_GENERATOR_`, with
        nested sections separated by `__`.

    Section names are case-insensitive and the historical `CV` section is
    read as `effect`. Relative paths inside the file are resolved against
    the directory that contains it.

    Args:
        config_path (str or Path): The path to the YAML configuration file.

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: If the file is missing, is not valid YAML, or
            does not validate against the schema.
    """
    config_path = Path(config_path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed YAML in {config_path}: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at the top level")

    normalized = {}
    for key, value in config_dict.items():
        key = str(key).lower()
        normalized[_SECTION_ALIASES.get(key, key)] = value

    _resolve_paths(normalized, config_path.parent)

    try:
        return GeneratorConfig(**normalized)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}:\n{e}") from e


def _resolve_paths(config_dict, base_dir):
    """Makes the relative file paths of the config relative to its directory."""
    for section in ("font", "merge"):
        values = config_dict.get(section)
        if not isinstance(values, dict):
            continue
        for key, value in values.items():
            if not (key.endswith("_dir") or key.endswith("_path")):
                continue
            if isinstance(value, str) and value.strip() and not Path(value).is_absolute():
                values[key] = str(base_dir / value)
