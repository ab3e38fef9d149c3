from __future__ import annotations

import math
from dataclasses import dataclass

from .errors import MalformedRecord


@dataclass(frozen=True, order=True)
class Configuration:
    """Encoding operating point: frame width, skipped frames and quantizer."""

    resolution: int
    skip: int
    quantization: int

    @property
    def label(self) -> str:
        return f"{self.resolution}x{self.skip}x{self.quantization}"

    @classmethod
    def parse(cls, label: str) -> Configuration:
        parts = label.strip().split("x")
        if len(parts) != 3:
            raise ValueError(f"configuration label must be WxSxQ, got '{label}'")
        try:
            resolution, skip, quantization = (int(part) for part in parts)
        except ValueError as error:
            raise ValueError(f"configuration label must be integers: '{label}'") from error
        return cls(resolution, skip, quantization)

    def effective_frame_rate(self, base_frame_rate: float) -> float:
        """Frames per second actually encoded after skipping."""

        return round(base_frame_rate / (self.skip + 1) * 10.0) / 10.0

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height


@dataclass(frozen=True)
class DetectionRecord:
    """One detected object in one frame."""

    frame_num: int
    process_time: float
    object_label: str
    probability: float
    bbox: BoundingBox

    def validate(self) -> DetectionRecord:
        if self.frame_num < 0:
            raise MalformedRecord(f"frame_num must be >= 0 (got {self.frame_num})")
        if not math.isfinite(self.process_time) or self.process_time < 0:
            raise MalformedRecord(
                f"process_time must be finite and >= 0 (frame {self.frame_num})"
            )
        if not math.isfinite(self.probability) or not 0.0 <= self.probability <= 1.0:
            raise MalformedRecord(
                f"probability must be in [0, 1] (frame {self.frame_num}, "
                f"got {self.probability})"
            )
        box = self.bbox
        if not all(math.isfinite(value) for value in (box.x, box.y, box.width, box.height)):
            raise MalformedRecord(f"bbox values must be finite (frame {self.frame_num})")
        if box.width <= 0 or box.height <= 0:
            raise MalformedRecord(
                f"bbox width and height must be positive (frame {self.frame_num})"
            )
        return self


@dataclass(frozen=True)
class SizeRecord:
    """Encoded size of one frame."""

    frame_num: int
    size_bytes: int

    def validate(self) -> SizeRecord:
        if self.frame_num < 0:
            raise MalformedRecord(f"frame_num must be >= 0 (got {self.frame_num})")
        if self.size_bytes < 0:
            raise MalformedRecord(
                f"size_bytes must be >= 0 (frame {self.frame_num}, got {self.size_bytes})"
            )
        return self


@dataclass(frozen=True)
class FrameScore:
    frame_num: int
    true_positive: int
    false_positive: int
    false_negative: int


@dataclass(frozen=True)
class ProcessTimeSample:
    """Per-frame processing time; None when the frame was never processed."""

    frame_num: int
    process_time: float | None


@dataclass(frozen=True)
class WindowSummary:
    """Aggregated metrics for one fixed-width time window.

    ``frame_count == 0`` marks a window without any measured frame; such
    windows are still emitted so that interval indices stay contiguous.
    ``frame_count is None`` means the count is unknown and the window is
    treated as measured.
    ``f1_accuracy`` is None when the window holds no ground-truth or predicted
    objects, and ``partial`` flags a trailing window shorter than the window
    width.
    """

    interval_index: int
    bandwidth_bps: float
    f1_accuracy: float | None
    mean_process_time: float | None
    frame_count: int | None = None
    partial: bool = False

    @property
    def has_data(self) -> bool:
        return self.frame_count is None or self.frame_count > 0


@dataclass(frozen=True)
class ProfilePoint:
    configuration: Configuration
    mean_bandwidth_bps: float
    mean_accuracy: float


@dataclass(frozen=True)
class Decision:
    """Reconfiguration chosen after observing ``interval_index``."""

    interval_index: int
    configuration: Configuration
    metric_value: float | None
    metric: str = ""
    previous_configuration: Configuration | None = None


@dataclass(frozen=True)
class TraceEntry:
    interval_index: int
    configuration: Configuration
    bandwidth_bps: float | None
    accuracy: float | None
