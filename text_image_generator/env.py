"""Default paths used by the generator and the batch command line.

All paths are constructed relative to the project's root directory, so a
checkout can be used directly without installing anything into the system.
"""

from pathlib import Path


ROOT_DIR = Path(__file__).parent.parent
"""The root directory of the project."""

DEFAULT_CONFIG_PATH = ROOT_DIR / "config.yaml"
"""The sample configuration shipped with the repository."""

DEFAULT_OUT_DIR = ROOT_DIR / "out"
"""Where the batch command line writes images and labels by default."""
