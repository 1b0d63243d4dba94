"""Loads the feature-extraction and model settings from YAML.

A typical `config.yaml`::

    min_value: 2
    save_raw_info: false
    model:
      wdiv: 1.0
      wbias: 0.0
    template:
      - "U00:%x[-1,0]"
      - "U01:%x[0,0]"
      - "U02:%x[0,0]/%x[0,1]"
    paths:
      encoder: encoder.json
      model: model.bin

Relative entries under `paths` are resolved against the directory holding the
config file.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .features import FeatureTemplate, load_template, parse_template

__all__ = ["Config", "load_config"]


@dataclass
class Config:
    """
    A typed configuration object for feature extraction and model creation.

    Attributes:
        min_value: Features seen fewer times than this in training are pruned.
        template: CRF++-style template lines.
        wdiv: The scaling divisor for newly created models.
        wbias: The bias for newly created models.
        save_raw_info: Keep the raw states alongside produced vector sequences.
        paths: Named file locations (e.g. `encoder`, `model`, `template`).
        base_dir: The directory relative paths are resolved against.
    """
    min_value: int = 1
    template: tuple[str, ...] = ()
    wdiv: float = 1.0
    wbias: float = 0.0
    save_raw_info: bool = False
    paths: dict[str, str] = field(default_factory=dict)
    base_dir: Path = Path(".")

    def resolve_path(self, key: str) -> Path:
        """
        Returns `paths[key]`, resolved against `base_dir` when relative.

        Raises:
            KeyError: If no path is configured under `key`.
        """
        p = Path(self.paths[key])
        return p if p.is_absolute() else self.base_dir / p

    def feature_template(self) -> FeatureTemplate:
        """The configured template: inline lines win over a `paths.template` file."""
        if self.template:
            return parse_template(self.template)
        if "template" in self.paths:
            return load_template(str(self.resolve_path("template")))
        raise ValueError("No feature template configured: set 'template' or 'paths.template'.")


def load_config(path: str = "config.yaml") -> Config:
    """
    Loads and validates a YAML configuration file.

    Args:
        path: The path to the configuration file.

    Returns:
        A populated `Config` object. Missing keys take their defaults.

    Raises:
        FileNotFoundError: If the configuration file cannot be found.
        ValueError: If the YAML cannot be parsed or `min_value` is below 1.
        TypeError: If the root of the YAML file (or `template`, `model` or
                   `paths`) has the wrong type.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            y = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found at: {path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file at {path}: {e}")

    if y is None:
        y = {}
    if not isinstance(y, dict):
        raise TypeError(f"Configuration file {path} must be a dictionary.")

    template = y.get("template", [])
    if not isinstance(template, list):
        raise TypeError(f"'template' in {path} must be a list of template lines.")
    model = y.get("model", {})
    if not isinstance(model, dict):
        raise TypeError(f"'model' in {path} must be a dictionary.")
    paths = y.get("paths", {})
    if not isinstance(paths, dict):
        raise TypeError(f"'paths' in {path} must be a dictionary.")

    min_value = int(y.get("min_value", 1))
    if min_value < 1:
        raise ValueError(f"min_value must be at least 1, got {min_value} in {path}.")

    return Config(
        min_value=min_value,
        template=tuple(str(line) for line in template),
        wdiv=float(model.get("wdiv", 1.0)),
        wbias=float(model.get("wbias", 0.0)),
        save_raw_info=bool(y.get("save_raw_info", False)),
        paths={str(k): str(v) for k, v in paths.items()},
        base_dir=Path(path).parent,
    )
