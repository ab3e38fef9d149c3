from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .online import OnlineProfilingConfig
from .scoring import DEFAULT_IOU_THRESHOLD
from .summary import DEFAULT_FRAME_RATE, DEFAULT_WINDOW_SECONDS
from .trigger import TriggerConfig


@dataclass(frozen=True)
class AnalysisConfig:
    """Options for a full analysis run over a measurement directory."""

    window_seconds: float = DEFAULT_WINDOW_SECONDS
    frame_rate: float = DEFAULT_FRAME_RATE
    iou_threshold: float = DEFAULT_IOU_THRESHOLD
    ground_truth: str | None = None
    include_ground_truth: bool = False
    first_frame: int = 0
    frame_limit: int | None = None
    profile_filter: str | None = None
    max_workers: int = 1
    initial_configuration: str | None = None
    trigger: TriggerConfig = field(default_factory=TriggerConfig)
    online: OnlineProfilingConfig | None = None

    def __post_init__(self) -> None:
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if self.frame_rate <= 0:
            raise ValueError("frame_rate must be positive")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be in [0, 1]")
        if self.first_frame < 0:
            raise ValueError("first_frame must be >= 0")
        if self.frame_limit is not None and self.frame_limit <= 0:
            raise ValueError("frame_limit must be positive")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")


def _build_section(cls: type, payload: object, section: str) -> Any:
    if not isinstance(payload, dict):
        raise ValueError(f"'{section}' section must be an object")
    known = {item.name for item in fields(cls)}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ValueError(f"unknown option(s) in '{section}': {', '.join(unknown)}")
    return cls(**payload)


def config_from_dict(payload: dict[str, Any]) -> AnalysisConfig:
    document = dict(payload)
    trigger_payload = document.pop("trigger", None)
    online_payload = document.pop("online", None)

    config = _build_section(AnalysisConfig, document, "analysis")
    if trigger_payload is not None:
        config = replace(config, trigger=_build_section(TriggerConfig, trigger_payload, "trigger"))
    if online_payload is not None:
        config = replace(
            config, online=_build_section(OnlineProfilingConfig, online_payload, "online")
        )
    return config


def load_config(path: Path) -> AnalysisConfig:
    """Load analysis options from a YAML or JSON document."""

    if not path.exists():
        raise FileNotFoundError(path)

    raw_text = path.read_text(encoding="utf-8")
    if path.suffix.strip().lower() == ".json":
        payload = json.loads(raw_text)
    else:
        payload = yaml.safe_load(raw_text)

    if payload is None:
        return AnalysisConfig()
    if not isinstance(payload, dict):
        raise ValueError("config document must be an object")
    return config_from_dict(payload)
