from __future__ import annotations

import json
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from .config import AnalysisConfig
from .diagnostics import Diagnostics
from .errors import ConfigurationMismatch, InsufficientData
from .models import (
    Configuration,
    DetectionRecord,
    FrameScore,
    ProcessTimeSample,
    ProfilePoint,
    WindowSummary,
)
from .online import OnlineProfiler
from .pareto import ParetoFrontier, pareto
from .profile import build_profile
from .scoring import align_to_ground_truth, score_frames
from .store import (
    MeasurementStore,
    load_profile_csv,
    write_process_time_csv,
    write_profile_csv,
    write_stats_csv,
    write_summary_csv,
    write_trace_csv,
)
from .summary import extract_process_times, summarize
from .trace import SimulationResult, simulate
from .trigger import Trigger

logger = logging.getLogger(__name__)


@dataclass
class ConfigurationAnalysis:
    """Scored and windowed measurements of one configuration."""

    configuration: Configuration
    frame_scores: list[FrameScore]
    windows: list[WindowSummary]
    process_times: list[ProcessTimeSample]
    frame_count: int


@dataclass
class AnalysisResult:
    analyses: dict[Configuration, ConfigurationAnalysis]
    profile: list[ProfilePoint]
    frontier: ParetoFrontier
    ground_truth: Configuration | None
    diagnostics: Diagnostics

    @property
    def summaries(self) -> dict[Configuration, list[WindowSummary]]:
        return {configuration: item.windows for configuration, item in self.analyses.items()}


@dataclass
class AnalysisArtifacts:
    """Files written by :meth:`AnalysisPipeline.run`."""

    input_dir: Path
    output_dir: Path
    summary_paths: list[Path] = field(default_factory=list)
    process_time_paths: list[Path] = field(default_factory=list)
    stats_path: Path | None = None
    profile_path: Path | None = None
    pareto_path: Path | None = None
    trace_path: Path | None = None
    diagnostics_path: Path | None = None
    result: AnalysisResult | None = None
    simulation: SimulationResult | None = None


class AnalysisPipeline:
    """Measurement directory -> scores -> windows -> profile -> frontier -> trace."""

    def __init__(self, config: AnalysisConfig | None = None) -> None:
        self.config = config or AnalysisConfig()

    def open_store(self, input_dir: str | Path) -> MeasurementStore:
        return MeasurementStore(
            input_dir,
            ground_truth=self.config.ground_truth,
            first_frame=self.config.first_frame,
            frame_limit=self.config.frame_limit,
        )

    def analyze_configuration(
        self,
        store: MeasurementStore,
        configuration: Configuration,
        ground_truth: list[DetectionRecord],
        frame_count: int,
        diagnostics: Diagnostics | None = None,
    ) -> ConfigurationAnalysis:
        """Score and summarize one configuration against the ground truth.

        ``frame_count`` counts ground-truth frames. Raises ``InsufficientData``
        when the configuration has no encoded sizes.
        """

        cfg = self.config
        report = diagnostics if diagnostics is not None else Diagnostics()

        detections = store.detections(configuration, report)
        sizes = store.sizes(configuration, report)
        if not sizes:
            raise InsufficientData(f"configuration {configuration} has no size records")

        aligned = align_to_ground_truth(detections, configuration.skip, frame_count)
        frame_scores = score_frames(aligned, ground_truth, frame_count, cfg.iou_threshold)
        # Frames present in neither stream do not count towards any window.
        scored = [
            item
            for item in frame_scores
            if item.true_positive or item.false_positive or item.false_negative
        ]

        stream_frames = math.ceil(frame_count / (configuration.skip + 1))
        process_times = extract_process_times(detections, stream_frames)

        windows = summarize(
            scored,
            sizes,
            window_seconds=cfg.window_seconds,
            frame_rate=cfg.frame_rate,
            stream_frame_rate=configuration.effective_frame_rate(cfg.frame_rate),
            process_times=process_times,
            frame_count=frame_count,
        )
        for window in windows:
            if not window.has_data:
                report.note_empty_window(configuration, window.interval_index)

        return ConfigurationAnalysis(
            configuration=configuration,
            frame_scores=frame_scores,
            windows=windows,
            process_times=process_times,
            frame_count=frame_count,
        )

    def _selected_configurations(self, store: MeasurementStore) -> list[Configuration]:
        configurations = store.configurations()
        if self.config.profile_filter is None:
            return configurations
        allowed = {
            point.configuration for point in load_profile_csv(Path(self.config.profile_filter))
        }
        selected = [c for c in configurations if c in allowed]
        logger.info(
            "profile filter keeps %d of %d configurations", len(selected), len(configurations)
        )
        return selected

    def analyze(self, store: MeasurementStore) -> AnalysisResult:
        diagnostics = store.diagnostics
        ground_truth_configuration = store.ground_truth_configuration()
        ground_truth = store.ground_truth_detections()
        if not ground_truth:
            raise ConfigurationMismatch(f"ground truth in {store.directory} has no detections")
        frame_count = max(record.frame_num for record in ground_truth) + 1
        if self.config.frame_limit is not None:
            frame_count = min(frame_count, self.config.frame_limit)

        configurations = self._selected_configurations(store)
        logger.info(
            "analyzing %d configurations over %d ground-truth frames",
            len(configurations),
            frame_count,
        )

        def task(
            configuration: Configuration,
        ) -> tuple[Configuration, ConfigurationAnalysis | None, Diagnostics]:
            local = Diagnostics()
            try:
                analysis = self.analyze_configuration(
                    store, configuration, ground_truth, frame_count, local
                )
            except InsufficientData as error:
                local.drop_configuration(configuration, str(error))
                return configuration, None, local
            return configuration, analysis, local

        if self.config.max_workers > 1 and len(configurations) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                outcomes = list(executor.map(task, configurations))
        else:
            outcomes = [task(configuration) for configuration in configurations]

        analyses: dict[Configuration, ConfigurationAnalysis] = {}
        for configuration, analysis, local in outcomes:
            diagnostics.merge(local)
            if analysis is not None:
                analyses[configuration] = analysis

        exclude: set[Configuration] = set()
        if ground_truth_configuration is not None and not self.config.include_ground_truth:
            exclude.add(ground_truth_configuration)

        summaries = {configuration: item.windows for configuration, item in analyses.items()}
        points = build_profile(summaries, diagnostics, exclude=exclude)
        frontier = pareto(points)
        logger.info("frontier has %d of %d profiled configurations", len(frontier), len(points))

        return AnalysisResult(
            analyses=analyses,
            profile=points,
            frontier=frontier,
            ground_truth=ground_truth_configuration,
            diagnostics=diagnostics,
        )

    def initial_configuration(self, result: AnalysisResult) -> Configuration:
        if self.config.initial_configuration is not None:
            configuration = Configuration.parse(self.config.initial_configuration)
            if configuration not in result.analyses:
                raise ConfigurationMismatch(
                    f"initial configuration {configuration} was not analyzed"
                )
            return configuration
        if not result.frontier:
            raise InsufficientData("frontier is empty, no configuration to start from")
        best = max(result.frontier, key=lambda p: (p.mean_accuracy, -p.mean_bandwidth_bps))
        return best.configuration

    def simulate(self, result: AnalysisResult) -> SimulationResult:
        """Replay the configured trigger over the analyzed window series."""

        trigger = Trigger(
            self.config.trigger,
            result.frontier,
            self.initial_configuration(result),
            profile=result.profile,
        )
        online = None
        if self.config.online is not None:
            exclude = ()
            if result.ground_truth is not None and not self.config.include_ground_truth:
                exclude = (result.ground_truth,)
            online = OnlineProfiler(self.config.online, exclude=exclude)
        simulation = simulate(result.summaries, trigger, online, result.diagnostics)
        logger.info(
            "replayed %d intervals with %d decisions",
            len(simulation.trace),
            len(simulation.decisions),
        )
        return simulation

    def write_scores(self, result: AnalysisResult, output_dir: Path) -> Path:
        path = output_dir / "stat.csv"
        write_stats_csv(
            path,
            [(c, result.analyses[c].frame_scores) for c in sorted(result.analyses)],
        )
        return path

    def write_summaries(
        self, result: AnalysisResult, output_dir: Path
    ) -> tuple[list[Path], list[Path]]:
        summary_paths: list[Path] = []
        process_time_paths: list[Path] = []
        for configuration in sorted(result.analyses):
            analysis = result.analyses[configuration]
            summary_path = output_dir / f"summary-{configuration.label}.csv"
            write_summary_csv(summary_path, analysis.windows)
            summary_paths.append(summary_path)
            ts_path = output_dir / f"ts-{configuration.label}.csv"
            write_process_time_csv(ts_path, analysis.process_times)
            process_time_paths.append(ts_path)
        return summary_paths, process_time_paths

    def write_profile(self, result: AnalysisResult, output_dir: Path) -> tuple[Path, Path]:
        profile_path = output_dir / "profile.csv"
        pareto_path = output_dir / "pareto.csv"
        write_profile_csv(profile_path, result.profile)
        write_profile_csv(pareto_path, result.frontier)
        return profile_path, pareto_path

    def write_trace(self, simulation: SimulationResult, output_dir: Path) -> Path:
        path = output_dir / "trace.csv"
        write_trace_csv(path, simulation.trace)
        return path

    def write_diagnostics(
        self,
        result: AnalysisResult,
        output_dir: Path,
        simulation: SimulationResult | None = None,
    ) -> Path:
        path = output_dir / "diagnostics.json"
        payload = {
            "ground_truth": result.ground_truth.label if result.ground_truth else None,
            "configurations": [c.label for c in sorted(result.analyses)],
            "profiled": len(result.profile),
            "frontier": [c.label for c in result.frontier.configurations],
            **result.diagnostics.to_dict(),
        }
        if simulation is not None:
            payload["decisions"] = [
                {
                    "interval": decision.interval_index,
                    "configuration": decision.configuration.label,
                    "previous": (
                        decision.previous_configuration.label
                        if decision.previous_configuration
                        else None
                    ),
                    "metric": decision.metric,
                    "value": decision.metric_value,
                }
                for decision in simulation.decisions
            ]
        path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        return path

    def run(
        self, input_dir: str | Path, output_dir: str | Path | None = None
    ) -> AnalysisArtifacts:
        source = Path(input_dir)
        store = self.open_store(source)
        target_dir = Path(output_dir) if output_dir else source
        target_dir.mkdir(parents=True, exist_ok=True)

        result = self.analyze(store)
        artifacts = AnalysisArtifacts(input_dir=source, output_dir=target_dir, result=result)
        artifacts.stats_path = self.write_scores(result, target_dir)
        artifacts.summary_paths, artifacts.process_time_paths = self.write_summaries(
            result, target_dir
        )
        artifacts.profile_path, artifacts.pareto_path = self.write_profile(result, target_dir)

        if result.frontier:
            artifacts.simulation = self.simulate(result)
            artifacts.trace_path = self.write_trace(artifacts.simulation, target_dir)
        else:
            logger.warning("frontier is empty, skipping trace replay")

        artifacts.diagnostics_path = self.write_diagnostics(
            result, target_dir, artifacts.simulation
        )
        return artifacts
