"""
core/config.py

YAML configuration mapped onto dataclasses. Unknown keys are ignored so older
config files keep working.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

import yaml

logger = logging.getLogger(__name__)

DeviceRef = Union[int, str]


@dataclass
class CameraConfig:
    front: DeviceRef = 0
    back: DeviceRef = 1
    width: int = 320
    height: int = 240
    preview_interval_ms: int = 33


@dataclass
class SamplerConfig:
    """Resolution of the still copied out of the live feed for each cycle."""
    width: int = 320
    height: int = 240


@dataclass
class ModelConfig:
    file: str = ""
    url: str = ""
    input_side: int = 224
    grayscale: bool = False

    @property
    def input_shape(self) -> tuple[int, int, int]:
        return (self.input_side, self.input_side, 1 if self.grayscale else 3)


def _default_models() -> Dict[str, ModelConfig]:
    return {
        "age": ModelConfig(file="age.keras", input_side=224, grayscale=False),
        "gender": ModelConfig(file="gender.keras", input_side=224, grayscale=False),
        "emotion": ModelConfig(file="emotion.keras", input_side=48, grayscale=True),
    }


@dataclass
class PathsConfig:
    models_dir: str = "models"
    logs_dir: str = "logs"
    exports_dir: str = "exports"


@dataclass
class RuntimeConfig:
    diagnostics: bool = True
    log_level: str = "INFO"


@dataclass
class Config:
    camera: CameraConfig = field(default_factory=CameraConfig)
    sampler: SamplerConfig = field(default_factory=SamplerConfig)
    models: Dict[str, ModelConfig] = field(default_factory=_default_models)
    paths: PathsConfig = field(default_factory=PathsConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)


def _update_dataclass_from_dict(obj: Any, data: Dict[str, Any]) -> Any:
    """Assign only known fields from dict into dataclass instance."""
    for k, v in data.items():
        if hasattr(obj, k) and not isinstance(getattr(type(obj), k, None), property):
            setattr(obj, k, v)
    return obj


def _parse_models(data: Dict[str, Any]) -> Dict[str, ModelConfig]:
    models = _default_models()
    for attribute, section in data.items():
        base = models.get(attribute, ModelConfig())
        models[attribute] = _update_dataclass_from_dict(base, section or {})
    return models


def load_config(path: str | Path | None = None) -> Config:
    """
    Load YAML config and map it to our dataclasses.

    With no path the built-in defaults are returned. An explicit path that does
    not exist raises FileNotFoundError.
    """
    if path is None:
        logger.info("No config file given; using defaults")
        return Config()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config root must be a dict, got: {type(raw)}")

    cfg = Config(
        camera=_update_dataclass_from_dict(CameraConfig(), raw.get("camera", {}) or {}),
        sampler=_update_dataclass_from_dict(SamplerConfig(), raw.get("sampler", {}) or {}),
        models=_parse_models(raw.get("models", {}) or {}),
        paths=_update_dataclass_from_dict(PathsConfig(), raw.get("paths", {}) or {}),
        runtime=_update_dataclass_from_dict(RuntimeConfig(), raw.get("runtime", {}) or {}),
    )

    logger.info(
        "Config loaded from %s | camera front=%s back=%s %dx%d, models=%s, diagnostics=%s",
        path,
        cfg.camera.front,
        cfg.camera.back,
        cfg.camera.width,
        cfg.camera.height,
        ",".join(cfg.models),
        cfg.runtime.diagnostics,
    )
    return cfg
