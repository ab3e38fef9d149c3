"""CSV adapter between measurement directories and the analysis core.

Directory layout::

    groundtruth.csv          detections of the reference stream (optional)
    acc-<W>x<S>x<Q>.csv      detections: frame, time, label, prob, x, y, w, h
    bw-<W>x<S>x<Q>.csv       encoded sizes: frame, bytes

Input files carry no header. Output files written here do.
"""

from __future__ import annotations

import csv
import logging
import math
from collections.abc import Iterable, Sequence
from pathlib import Path

from .diagnostics import Diagnostics
from .errors import ConfigurationMismatch, MalformedRecord
from .models import (
    BoundingBox,
    Configuration,
    DetectionRecord,
    FrameScore,
    ProcessTimeSample,
    ProfilePoint,
    SizeRecord,
    TraceEntry,
    WindowSummary,
)

logger = logging.getLogger(__name__)

GROUNDTRUTH_FILE = "groundtruth.csv"
PROFILE_HEADER = ["bandwidth", "resolution", "skip", "quant", "accuracy"]


def _parse_int(value: str, field: str) -> int:
    try:
        return int(value.strip())
    except ValueError as error:
        raise MalformedRecord(f"{field} must be an integer, got '{value}'") from error


def _parse_float(value: str, field: str) -> float:
    try:
        number = float(value.strip())
    except ValueError as error:
        raise MalformedRecord(f"{field} must be numeric, got '{value}'") from error
    if not math.isfinite(number):
        raise MalformedRecord(f"{field} must be finite")
    return number


def parse_detection_row(row: Sequence[str], first_frame: int = 0) -> DetectionRecord:
    if len(row) != 8:
        raise MalformedRecord(f"detection row must have 8 fields, got {len(row)}")
    record = DetectionRecord(
        frame_num=_parse_int(row[0], "frame_num") - first_frame,
        process_time=_parse_float(row[1], "process_time"),
        object_label=row[2].strip(),
        probability=_parse_float(row[3], "probability"),
        bbox=BoundingBox(
            x=_parse_float(row[4], "x"),
            y=_parse_float(row[5], "y"),
            width=_parse_float(row[6], "width"),
            height=_parse_float(row[7], "height"),
        ),
    )
    return record.validate()


def parse_size_row(row: Sequence[str], first_frame: int = 0) -> SizeRecord:
    if len(row) != 2:
        raise MalformedRecord(f"size row must have 2 fields, got {len(row)}")
    record = SizeRecord(
        frame_num=_parse_int(row[0], "frame_num") - first_frame,
        size_bytes=_parse_int(row[1], "size_bytes"),
    )
    return record.validate()


def _read_rows(path: Path) -> Iterable[tuple[int, list[str]]]:
    with path.open("r", encoding="utf-8", newline="") as file:
        for row_number, row in enumerate(csv.reader(file), start=1):
            if not row or all(not cell.strip() for cell in row):
                continue
            yield row_number, row


def _before_first_frame(row: Sequence[str], first_frame: int) -> bool:
    # Rows ahead of the start offset are out of range, not malformed.
    if first_frame <= 0 or not row:
        return False
    try:
        return int(row[0].strip()) < first_frame
    except ValueError:
        return False


def read_detections(
    path: Path,
    diagnostics: Diagnostics | None = None,
    first_frame: int = 0,
    frame_limit: int | None = None,
) -> list[DetectionRecord]:
    """Read a detection log, skipping (and reporting) malformed rows."""

    report = diagnostics if diagnostics is not None else Diagnostics()
    records: list[DetectionRecord] = []
    for row_number, row in _read_rows(path):
        if _before_first_frame(row, first_frame):
            continue
        try:
            record = parse_detection_row(row, first_frame)
        except MalformedRecord as error:
            report.skip_record(path.name, row_number, str(error))
            continue
        if frame_limit is not None and record.frame_num >= frame_limit:
            continue
        records.append(record)
    return records


def read_sizes(
    path: Path,
    diagnostics: Diagnostics | None = None,
    first_frame: int = 0,
    frame_limit: int | None = None,
) -> list[SizeRecord]:
    report = diagnostics if diagnostics is not None else Diagnostics()
    records: list[SizeRecord] = []
    for row_number, row in _read_rows(path):
        if _before_first_frame(row, first_frame):
            continue
        try:
            record = parse_size_row(row, first_frame)
        except MalformedRecord as error:
            report.skip_record(path.name, row_number, str(error))
            continue
        if frame_limit is not None and record.frame_num >= frame_limit:
            continue
        records.append(record)
    return records


def _frame_limit_for(configuration: Configuration, frame_limit: int | None) -> int | None:
    # Configuration frames are counted at the skipped rate.
    if frame_limit is None:
        return None
    return math.ceil(frame_limit / (configuration.skip + 1))


class MeasurementStore:
    """Typed access to one measurement directory."""

    def __init__(
        self,
        directory: str | Path,
        ground_truth: str | None = None,
        first_frame: int = 0,
        frame_limit: int | None = None,
        diagnostics: Diagnostics | None = None,
    ) -> None:
        self.directory = Path(directory)
        if not self.directory.is_dir():
            raise FileNotFoundError(self.directory)
        self.ground_truth_label = ground_truth
        self.first_frame = first_frame
        self.frame_limit = frame_limit
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()

    def detection_path(self, configuration: Configuration) -> Path:
        return self.directory / f"acc-{configuration.label}.csv"

    def size_path(self, configuration: Configuration) -> Path:
        return self.directory / f"bw-{configuration.label}.csv"

    def configurations(self) -> list[Configuration]:
        """Every configuration with a detection log in the directory."""

        found: set[Configuration] = set()
        for path in self.directory.glob("acc-*.csv"):
            label = path.stem[len("acc-") :]
            try:
                found.add(Configuration.parse(label))
            except ValueError:
                logger.warning("ignoring file with unrecognized configuration: %s", path.name)
        return sorted(found)

    def ground_truth_configuration(self) -> Configuration | None:
        """Configuration used as ground truth.

        None means the dedicated ``groundtruth.csv`` file is used. Without an
        explicit label or that file, the highest-resolution configuration with
        zero skip and zero quantization is taken.
        """

        if self.ground_truth_label is not None:
            configuration = Configuration.parse(self.ground_truth_label)
            if not self.detection_path(configuration).exists():
                raise ConfigurationMismatch(
                    f"ground truth {configuration} has no detection log in {self.directory}"
                )
            return configuration
        if (self.directory / GROUNDTRUTH_FILE).exists():
            return None
        candidates = [c for c in self.configurations() if c.skip == 0 and c.quantization == 0]
        if not candidates:
            raise ConfigurationMismatch(f"no ground truth found in {self.directory}")
        return max(candidates)

    def ground_truth_detections(
        self, diagnostics: Diagnostics | None = None
    ) -> list[DetectionRecord]:
        configuration = self.ground_truth_configuration()
        if configuration is None:
            path = self.directory / GROUNDTRUTH_FILE
        else:
            path = self.detection_path(configuration)
        report = diagnostics if diagnostics is not None else self.diagnostics
        return read_detections(path, report, self.first_frame, self.frame_limit)

    def detections(
        self, configuration: Configuration, diagnostics: Diagnostics | None = None
    ) -> list[DetectionRecord]:
        path = self.detection_path(configuration)
        if not path.exists():
            raise ConfigurationMismatch(f"no detection log for {configuration}")
        return read_detections(
            path,
            diagnostics if diagnostics is not None else self.diagnostics,
            self.first_frame,
            _frame_limit_for(configuration, self.frame_limit),
        )

    def sizes(
        self, configuration: Configuration, diagnostics: Diagnostics | None = None
    ) -> list[SizeRecord]:
        path = self.size_path(configuration)
        if not path.exists():
            return []
        return read_sizes(
            path,
            diagnostics if diagnostics is not None else self.diagnostics,
            self.first_frame,
            _frame_limit_for(configuration, self.frame_limit),
        )


def load_profile_csv(path: Path) -> list[ProfilePoint]:
    """Read a profile or frontier file written by :func:`write_profile_csv`."""

    if not path.exists():
        raise FileNotFoundError(path)
    points: list[ProfilePoint] = []
    with path.open("r", encoding="utf-8", newline="") as file:
        reader = csv.DictReader(file)
        missing = set(PROFILE_HEADER) - set(reader.fieldnames or [])
        if missing:
            raise ValueError(f"profile file is missing column(s): {', '.join(sorted(missing))}")
        for row in reader:
            points.append(
                ProfilePoint(
                    configuration=Configuration(
                        int(row["resolution"]), int(row["skip"]), int(row["quant"])
                    ),
                    mean_bandwidth_bps=float(row["bandwidth"]),
                    mean_accuracy=float(row["accuracy"]),
                )
            )
    return points


def _optional(value: float | None) -> str:
    return "" if value is None else f"{value:.6f}"


def write_profile_csv(path: Path, points: Iterable[ProfilePoint]) -> None:
    with path.open("w", newline="", encoding="utf-8") as file:
        writer = csv.writer(file)
        writer.writerow(PROFILE_HEADER)
        for point in points:
            configuration = point.configuration
            writer.writerow(
                [
                    f"{point.mean_bandwidth_bps:.6f}",
                    configuration.resolution,
                    configuration.skip,
                    configuration.quantization,
                    f"{point.mean_accuracy:.6f}",
                ]
            )


def write_summary_csv(path: Path, windows: Iterable[WindowSummary]) -> None:
    with path.open("w", newline="", encoding="utf-8") as file:
        writer = csv.writer(file)
        writer.writerow(["interval", "bandwidth", "accuracy", "proc_time", "frames", "partial"])
        for window in windows:
            writer.writerow(
                [
                    window.interval_index,
                    f"{window.bandwidth_bps:.6f}",
                    _optional(window.f1_accuracy),
                    _optional(window.mean_process_time),
                    "" if window.frame_count is None else window.frame_count,
                    str(window.partial).lower(),
                ]
            )


def write_process_time_csv(path: Path, samples: Iterable[ProcessTimeSample]) -> None:
    with path.open("w", newline="", encoding="utf-8") as file:
        writer = csv.writer(file)
        writer.writerow(["frame_num", "proc_time"])
        for sample in samples:
            writer.writerow([sample.frame_num, _optional(sample.process_time)])


def write_stats_csv(
    path: Path, stats: Iterable[tuple[Configuration, Sequence[FrameScore]]]
) -> None:
    with path.open("w", newline="", encoding="utf-8") as file:
        writer = csv.writer(file)
        writer.writerow(
            [
                "frame_num",
                "resolution",
                "skip",
                "quant",
                "true_positive",
                "false_positive",
                "false_negative",
            ]
        )
        for configuration, scores in stats:
            for item in scores:
                writer.writerow(
                    [
                        item.frame_num,
                        configuration.resolution,
                        configuration.skip,
                        configuration.quantization,
                        item.true_positive,
                        item.false_positive,
                        item.false_negative,
                    ]
                )


def write_trace_csv(path: Path, trace: Iterable[TraceEntry]) -> None:
    with path.open("w", newline="", encoding="utf-8") as file:
        writer = csv.writer(file)
        writer.writerow(["interval", "configuration", "bandwidth", "accuracy"])
        for entry in trace:
            writer.writerow(
                [
                    entry.interval_index,
                    entry.configuration.label,
                    _optional(entry.bandwidth_bps),
                    _optional(entry.accuracy),
                ]
            )
