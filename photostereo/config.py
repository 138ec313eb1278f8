"""Configuration loading.

Settings live in ``config.yaml`` at the project root. Any key missing from
the file falls back to ``DEFAULT_CONFIG``.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"

DEFAULT_CONFIG: Dict = {
    "io": {
        "input_dir": "data/cat",
        "image_extensions": [".png"],
        "light_file": "light_directions.txt",
        "output_dir": "results/run1",
    },
    "factorization": {
        "rank_tol": None,
    },
    "ambiguity": {
        "singular_tol": 1.0e-10,
    },
    "mask": {
        "brightness_threshold": 20,
        "min_glow": 10,
        "norm_eps": 1.0e-12,
        "shape_eps": 0.0,
    },
    "integration": {
        "seed_depth": 0.001,
        "max_sweeps": 2000,
        "termination": "coverage",
        "nz_eps": 0.0,
    },
    "visualise": {
        "colormap": "jet",
        "point_size": 2.0,
        "save_point_cloud": True,
    },
}


def merge_config(base: Dict, overrides: Dict) -> Dict:
    """Recursively merge ``overrides`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to configuration file. Defaults to the
            ``config.yaml`` next to the package; if that file is missing,
            the built-in defaults are used.

    Returns:
        Configuration dictionary
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
        if not config_path.exists():
            logger.debug(f"No config at {config_path}, using defaults")
            return copy.deepcopy(DEFAULT_CONFIG)

    with open(config_path, "r") as f:
        loaded = yaml.safe_load(f) or {}

    if not isinstance(loaded, dict):
        raise ValueError(f"Configuration in {config_path} must be a mapping")

    logger.debug(f"Loaded configuration from {config_path}")
    return merge_config(DEFAULT_CONFIG, loaded)
