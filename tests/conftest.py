from __future__ import annotations

import csv
from pathlib import Path

import pytest

FRAME_COUNT = 30


def write_rows(path: Path, rows: list[list[object]]) -> None:
    with path.open("w", encoding="utf-8", newline="") as file:
        csv.writer(file).writerows(rows)


def detection_row(frame_num: int, x: float = 0.0, label: str = "person") -> list[object]:
    return [frame_num, 0.05, label, 0.9, x, 0.0, 10.0, 10.0]


def build_measurement_dir(directory: Path) -> Path:
    """Three analyzable configurations plus one without sizes, at 10 fps.

    640x0x0 is the ground truth. 320x0x0 finds every object, 320x1x0 skips
    every other frame and only detects on even stream frames, 160x0x5 has no
    size log.
    """

    directory.mkdir(parents=True, exist_ok=True)

    write_rows(directory / "acc-640x0x0.csv", [detection_row(f) for f in range(FRAME_COUNT)])
    write_rows(directory / "bw-640x0x0.csv", [[f, 1000] for f in range(FRAME_COUNT)])

    full_rows = [detection_row(f, x=1.0) for f in range(FRAME_COUNT)]
    full_rows.insert(3, [3, "fast", "person", 0.9, 1.0, 0.0, 10.0, 10.0])
    write_rows(directory / "acc-320x0x0.csv", full_rows)
    write_rows(directory / "bw-320x0x0.csv", [[f, 400] for f in range(FRAME_COUNT)])

    stream_frames = FRAME_COUNT // 2
    write_rows(
        directory / "acc-320x1x0.csv",
        [detection_row(f, x=1.0) for f in range(0, stream_frames, 2)],
    )
    write_rows(directory / "bw-320x1x0.csv", [[f, 300] for f in range(stream_frames)])

    write_rows(directory / "acc-160x0x5.csv", [detection_row(f) for f in range(FRAME_COUNT)])
    return directory


@pytest.fixture
def measurement_dir(tmp_path: Path) -> Path:
    return build_measurement_dir(tmp_path / "measurements")
