from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest

from stream_profiler.config import AnalysisConfig
from stream_profiler.errors import ConfigurationMismatch
from stream_profiler.models import Configuration, ProfilePoint
from stream_profiler.pipeline import AnalysisPipeline
from stream_profiler.store import write_profile_csv
from stream_profiler.trigger import TriggerConfig

FULL = Configuration(320, 0, 0)
SKIPPING = Configuration(320, 1, 0)
GROUND_TRUTH = Configuration(640, 0, 0)
NO_SIZES = Configuration(160, 0, 5)


def _config(**overrides: object) -> AnalysisConfig:
    return AnalysisConfig(window_seconds=1.0, frame_rate=10.0, **overrides)


def test_analyze_profiles_every_usable_configuration(measurement_dir: Path) -> None:
    pipeline = AnalysisPipeline(_config())

    result = pipeline.analyze(pipeline.open_store(measurement_dir))

    assert result.ground_truth == GROUND_TRUTH
    assert set(result.analyses) == {FULL, SKIPPING, GROUND_TRUTH}
    assert [p.configuration for p in result.profile] == [FULL, SKIPPING]

    full, skipping = result.profile
    assert full.mean_bandwidth_bps == pytest.approx(32000.0)
    assert full.mean_accuracy == pytest.approx(1.0)
    assert skipping.mean_bandwidth_bps == pytest.approx(12000.0)
    assert skipping.mean_accuracy == pytest.approx((0.75 + 8.0 / 14.0 + 0.75) / 3.0)

    assert result.frontier.configurations == [SKIPPING, FULL]
    assert [w.interval_index for w in result.analyses[SKIPPING].windows] == [0, 1, 2]


def test_analyze_reports_dropped_configurations_and_skipped_rows(measurement_dir: Path) -> None:
    pipeline = AnalysisPipeline(_config())

    result = pipeline.analyze(pipeline.open_store(measurement_dir))

    assert result.diagnostics.is_dropped(NO_SIZES)
    assert [(r.source, r.row_number) for r in result.diagnostics.skipped_records] == [
        ("acc-320x0x0.csv", 4)
    ]


def test_ground_truth_can_be_included_in_profile(measurement_dir: Path) -> None:
    pipeline = AnalysisPipeline(_config(include_ground_truth=True))

    result = pipeline.analyze(pipeline.open_store(measurement_dir))

    assert GROUND_TRUTH in [p.configuration for p in result.profile]
    assert result.frontier.configurations == [SKIPPING, FULL]


def test_parallel_analysis_matches_sequential(measurement_dir: Path) -> None:
    sequential = AnalysisPipeline(_config())
    parallel = AnalysisPipeline(_config(max_workers=3))

    first = sequential.analyze(sequential.open_store(measurement_dir))
    second = parallel.analyze(parallel.open_store(measurement_dir))

    assert first.profile == second.profile
    assert first.frontier == second.frontier
    assert first.summaries == second.summaries


def test_frame_limit_truncates_every_stream(measurement_dir: Path) -> None:
    pipeline = AnalysisPipeline(_config(frame_limit=20))

    result = pipeline.analyze(pipeline.open_store(measurement_dir))

    assert len(result.analyses[FULL].windows) == 2
    assert len(result.analyses[SKIPPING].windows) == 2
    assert result.analyses[SKIPPING].frame_count == 20


def test_profile_filter_limits_analyzed_configurations(
    measurement_dir: Path, tmp_path: Path
) -> None:
    filter_path = tmp_path / "keep.csv"
    write_profile_csv(filter_path, [ProfilePoint(FULL, 1.0, 1.0)])
    pipeline = AnalysisPipeline(_config(profile_filter=str(filter_path)))

    result = pipeline.analyze(pipeline.open_store(measurement_dir))

    assert list(result.analyses) == [FULL]
    assert [p.configuration for p in result.profile] == [FULL]


def test_run_writes_every_output(measurement_dir: Path, tmp_path: Path) -> None:
    output_dir = tmp_path / "out"
    pipeline = AnalysisPipeline(
        _config(
            trigger=TriggerConfig(
                bandwidth_high_watermark=20000.0, consecutive_windows_required=2
            )
        )
    )

    artifacts = pipeline.run(measurement_dir, output_dir)

    assert artifacts.stats_path == output_dir / "stat.csv"
    assert (output_dir / "summary-320x1x0.csv").exists()
    assert (output_dir / "ts-320x1x0.csv").exists()
    assert (output_dir / "profile.csv").exists()
    assert (output_dir / "pareto.csv").exists()

    with (output_dir / "trace.csv").open("r", encoding="utf-8", newline="") as file:
        rows = list(csv.DictReader(file))
    assert [row["configuration"] for row in rows] == ["320x0x0", "320x0x0", "320x1x0"]
    assert float(rows[2]["bandwidth"]) == pytest.approx(12000.0)

    payload = json.loads((output_dir / "diagnostics.json").read_text(encoding="utf-8"))
    assert payload["ground_truth"] == "640x0x0"
    assert payload["frontier"] == ["320x1x0", "320x0x0"]
    assert payload["dropped_configurations"][0]["configuration"] == "160x0x5"
    assert payload["decisions"][0]["interval"] == 1
    assert payload["decisions"][0]["configuration"] == "320x1x0"


def test_trace_without_bounds_stays_on_most_accurate_point(measurement_dir: Path) -> None:
    pipeline = AnalysisPipeline(_config())
    result = pipeline.analyze(pipeline.open_store(measurement_dir))

    simulation = pipeline.simulate(result)

    assert simulation.decisions == []
    assert {entry.configuration for entry in simulation.trace} == {FULL}


def test_unknown_initial_configuration_is_a_mismatch(measurement_dir: Path) -> None:
    pipeline = AnalysisPipeline(_config(initial_configuration="999x0x0"))
    result = pipeline.analyze(pipeline.open_store(measurement_dir))

    with pytest.raises(ConfigurationMismatch):
        pipeline.simulate(result)
