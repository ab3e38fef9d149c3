from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

import numpy as np

from .models import DetectionRecord, FrameScore, ProcessTimeSample, SizeRecord, WindowSummary

DEFAULT_WINDOW_SECONDS = 5.0
DEFAULT_FRAME_RATE = 30.0

# Guards floor() against float error when a frame sits exactly on a boundary.
_BOUNDARY_EPS = 1e-9


def f1_score(true_positive: int, false_positive: int, false_negative: int) -> float | None:
    """F1 from confusion counts; None when there is nothing to score."""

    denominator = 2 * true_positive + false_positive + false_negative
    if denominator == 0:
        return None
    return 2.0 * true_positive / denominator


def window_index(frame_num: int, frame_rate: float, window_seconds: float) -> int:
    return int(math.floor(frame_num / (frame_rate * window_seconds) + _BOUNDARY_EPS))


def _window_indices(
    frame_nums: Sequence[int], frame_rate: float, window_seconds: float
) -> np.ndarray:
    if not frame_nums:
        return np.zeros(0, dtype=np.int64)
    frames = np.asarray(frame_nums, dtype=np.float64)
    return np.floor(frames / (frame_rate * window_seconds) + _BOUNDARY_EPS).astype(np.int64)


def _validate_rates(window_seconds: float, frame_rate: float, stream_frame_rate: float) -> None:
    if window_seconds <= 0:
        raise ValueError("window_seconds must be positive")
    if frame_rate <= 0:
        raise ValueError("frame_rate must be positive")
    if stream_frame_rate <= 0:
        raise ValueError("stream_frame_rate must be positive")


def extract_process_times(
    detections: Iterable[DetectionRecord], frame_count: int | None = None
) -> list[ProcessTimeSample]:
    """Per-frame processing time series (not windowed).

    The processing time of a frame is taken from its first detection. Frames
    without any detection up to ``frame_count`` (or the last detected frame)
    carry ``None``.
    """

    first_time: dict[int, float] = {}
    for detection in detections:
        first_time.setdefault(detection.frame_num, detection.process_time)

    if frame_count is None:
        frame_count = max(first_time) + 1 if first_time else 0

    return [
        ProcessTimeSample(frame_num=frame_num, process_time=first_time.get(frame_num))
        for frame_num in range(frame_count)
    ]


def summarize(
    frame_scores: Sequence[FrameScore],
    size_records: Sequence[SizeRecord],
    window_seconds: float = DEFAULT_WINDOW_SECONDS,
    frame_rate: float = DEFAULT_FRAME_RATE,
    stream_frame_rate: float | None = None,
    process_times: Sequence[ProcessTimeSample] | None = None,
    frame_count: int | None = None,
) -> list[WindowSummary]:
    """Aggregate one configuration's per-frame data into fixed-width windows.

    ``frame_scores`` are indexed at the ground-truth ``frame_rate`` and
    ``frame_count`` counts ground-truth frames. ``size_records`` and
    ``process_times`` come from the configuration's own stream, indexed at
    ``stream_frame_rate`` (defaults to ``frame_rate``). Windows are emitted
    contiguously from 0 to the last window holding data; a trailing window
    that is not fully covered by the measured span is flagged ``partial``.
    """

    stream_rate = frame_rate if stream_frame_rate is None else stream_frame_rate
    _validate_rates(window_seconds, frame_rate, stream_rate)

    samples = [item for item in (process_times or []) if item.process_time is not None]

    score_windows = _window_indices([s.frame_num for s in frame_scores], frame_rate, window_seconds)
    size_windows = _window_indices([s.frame_num for s in size_records], stream_rate, window_seconds)
    time_windows = _window_indices([s.frame_num for s in samples], stream_rate, window_seconds)

    span_ends: list[float] = []
    if frame_count is not None:
        span_ends.append(frame_count / frame_rate)
    else:
        if frame_scores:
            span_ends.append((max(s.frame_num for s in frame_scores) + 1) / frame_rate)
        if samples:
            span_ends.append((max(s.frame_num for s in samples) + 1) / stream_rate)
        if size_records:
            span_ends.append((max(s.frame_num for s in size_records) + 1) / stream_rate)
    if not span_ends:
        return []
    span_s = max(span_ends)
    if span_s <= 0:
        return []

    window_count = max(1, int(math.ceil(span_s / window_seconds - _BOUNDARY_EPS)))
    for indices in (score_windows, size_windows, time_windows):
        if indices.size:
            window_count = max(window_count, int(indices.max()) + 1)

    def _bincount(indices: np.ndarray, weights: Sequence[float] | None = None) -> np.ndarray:
        if not indices.size:
            return np.zeros(window_count, dtype=np.float64)
        values = None if weights is None else np.asarray(weights, dtype=np.float64)
        return np.bincount(indices, weights=values, minlength=window_count).astype(np.float64)

    size_bytes = _bincount(size_windows, [s.size_bytes for s in size_records])
    tp = _bincount(score_windows, [s.true_positive for s in frame_scores])
    fp = _bincount(score_windows, [s.false_positive for s in frame_scores])
    fn = _bincount(score_windows, [s.false_negative for s in frame_scores])
    time_sum = _bincount(time_windows, [s.process_time for s in samples])
    time_count = _bincount(time_windows)

    frames_per_window = np.zeros(window_count, dtype=np.int64)
    for indices in (score_windows, size_windows, time_windows):
        if indices.size:
            frames_per_window = np.maximum(
                frames_per_window, np.bincount(indices, minlength=window_count)
            )

    last_partial = span_s < window_count * window_seconds - _BOUNDARY_EPS

    summaries: list[WindowSummary] = []
    for index in range(window_count):
        mean_time = None
        if time_count[index] > 0:
            mean_time = float(time_sum[index] / time_count[index])
        summaries.append(
            WindowSummary(
                interval_index=index,
                bandwidth_bps=float(size_bytes[index] * 8.0 / window_seconds),
                f1_accuracy=f1_score(int(tp[index]), int(fp[index]), int(fn[index])),
                mean_process_time=mean_time,
                frame_count=int(frames_per_window[index]),
                partial=last_partial and index == window_count - 1,
            )
        )
    return summaries
