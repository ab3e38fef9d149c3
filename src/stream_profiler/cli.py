from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path

from .config import AnalysisConfig, load_config
from .errors import StreamProfilerError
from .pipeline import AnalysisPipeline
from .trigger import policy_names

logger = logging.getLogger(__name__)

_ANALYSIS_OPTIONS = (
    "window_seconds",
    "frame_rate",
    "iou_threshold",
    "ground_truth",
    "first_frame",
    "frame_limit",
    "profile_filter",
    "max_workers",
)
_TRIGGER_OPTIONS = (
    "bandwidth_high_watermark",
    "bandwidth_low_watermark",
    "accuracy_floor",
    "consecutive_windows_required",
    "cooldown_windows",
    "candidate_selection_policy",
)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input_dir", help="Measurement directory with acc-*.csv and bw-*.csv.")
    parser.add_argument(
        "--output-dir",
        help="Directory for output files. Default: the input directory.",
    )
    parser.add_argument("--config", help="YAML or JSON file with analysis options.")
    parser.add_argument("--window-seconds", type=float, default=None)
    parser.add_argument("--frame-rate", type=float, default=None)
    parser.add_argument("--iou-threshold", type=float, default=None)
    parser.add_argument(
        "--ground-truth",
        default=None,
        help="Ground-truth configuration label WxSxQ. Default: groundtruth.csv or best raw stream.",
    )
    parser.add_argument("--first-frame", type=int, default=None)
    parser.add_argument("--frame-limit", type=int, default=None)
    parser.add_argument(
        "--profile-filter",
        default=None,
        help="Profile CSV; only configurations listed there are analyzed.",
    )
    parser.add_argument("--max-workers", type=int, default=None)
    parser.add_argument(
        "--include-ground-truth",
        action="store_true",
        help="Keep the ground-truth configuration in the profile.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stream-profiler",
        description="Profile video-stream configurations by bandwidth and detection accuracy.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    score = subparsers.add_parser(
        "score",
        help="Score every configuration frame by frame against the ground truth (stat.csv).",
    )
    _add_common_arguments(score)

    summarize = subparsers.add_parser(
        "summarize",
        help="Write per-window summaries and processing-time series per configuration.",
    )
    _add_common_arguments(summarize)

    profile = subparsers.add_parser(
        "profile",
        help="Build the bandwidth/accuracy profile and its Pareto frontier.",
    )
    _add_common_arguments(profile)

    trace = subparsers.add_parser(
        "trace",
        help="Replay the online trigger over the measurements and write the full report.",
    )
    _add_common_arguments(trace)
    trace.add_argument("--bandwidth-high-watermark", type=float, default=None)
    trace.add_argument("--bandwidth-low-watermark", type=float, default=None)
    trace.add_argument("--accuracy-floor", type=float, default=None)
    trace.add_argument("--consecutive-windows-required", type=int, default=None)
    trace.add_argument("--cooldown-windows", type=int, default=None)
    trace.add_argument(
        "--candidate-selection-policy",
        choices=policy_names(),
        default=None,
    )
    trace.add_argument(
        "--initial-configuration",
        default=None,
        help="Configuration label active at interval 0. Default: most accurate frontier point.",
    )

    return parser


def _resolve_config(args: argparse.Namespace) -> AnalysisConfig:
    config = load_config(Path(args.config)) if args.config else AnalysisConfig()

    overrides = {
        name: getattr(args, name)
        for name in _ANALYSIS_OPTIONS
        if getattr(args, name, None) is not None
    }
    if args.include_ground_truth:
        overrides["include_ground_truth"] = True
    if getattr(args, "initial_configuration", None) is not None:
        overrides["initial_configuration"] = args.initial_configuration

    trigger_overrides = {
        name: getattr(args, name)
        for name in _TRIGGER_OPTIONS
        if getattr(args, name, None) is not None
    }
    if trigger_overrides:
        overrides["trigger"] = replace(config.trigger, **trigger_overrides)

    return replace(config, **overrides) if overrides else config


def _handle_score(pipeline: AnalysisPipeline, args: argparse.Namespace) -> int:
    source = Path(args.input_dir)
    output_dir = Path(args.output_dir) if args.output_dir else source
    output_dir.mkdir(parents=True, exist_ok=True)

    result = pipeline.analyze(pipeline.open_store(source))
    stats_path = pipeline.write_scores(result, output_dir)
    diagnostics_path = pipeline.write_diagnostics(result, output_dir)

    print(f"Scored configurations: {len(result.analyses)}")
    print(f"Frame stats CSV: {stats_path}")
    print(f"Diagnostics JSON: {diagnostics_path}")
    return 0


def _handle_summarize(pipeline: AnalysisPipeline, args: argparse.Namespace) -> int:
    source = Path(args.input_dir)
    output_dir = Path(args.output_dir) if args.output_dir else source
    output_dir.mkdir(parents=True, exist_ok=True)

    result = pipeline.analyze(pipeline.open_store(source))
    summary_paths, process_time_paths = pipeline.write_summaries(result, output_dir)
    diagnostics_path = pipeline.write_diagnostics(result, output_dir)

    print(f"Summarized configurations: {len(summary_paths)}")
    print(f"Window summary CSVs: {len(summary_paths)} in {output_dir}")
    print(f"Processing-time CSVs: {len(process_time_paths)} in {output_dir}")
    print(f"Dropped configurations: {len(result.diagnostics.dropped_configurations)}")
    print(f"Diagnostics JSON: {diagnostics_path}")
    return 0


def _handle_profile(pipeline: AnalysisPipeline, args: argparse.Namespace) -> int:
    source = Path(args.input_dir)
    output_dir = Path(args.output_dir) if args.output_dir else source
    output_dir.mkdir(parents=True, exist_ok=True)

    result = pipeline.analyze(pipeline.open_store(source))
    profile_path, pareto_path = pipeline.write_profile(result, output_dir)
    diagnostics_path = pipeline.write_diagnostics(result, output_dir)

    print(f"Profiled configurations: {len(result.profile)}")
    print(f"Frontier configurations: {len(result.frontier)}")
    for point in result.frontier:
        print(
            f"  {point.configuration.label}: "
            f"{point.mean_bandwidth_bps:.1f} bps, accuracy {point.mean_accuracy:.3f}"
        )
    print(f"Profile CSV: {profile_path}")
    print(f"Pareto CSV: {pareto_path}")
    print(f"Diagnostics JSON: {diagnostics_path}")
    return 0


def _handle_trace(pipeline: AnalysisPipeline, args: argparse.Namespace) -> int:
    artifacts = pipeline.run(args.input_dir, args.output_dir)
    result = artifacts.result

    print(f"Analyzed: {artifacts.input_dir}")
    if result is not None:
        print(f"Frontier configurations: {len(result.frontier)}")
    if artifacts.simulation is None:
        print("Trace skipped: frontier is empty")
    else:
        print(f"Decisions: {len(artifacts.simulation.decisions)}")
        print(f"Trace CSV: {artifacts.trace_path}")
    print(f"Diagnostics JSON: {artifacts.diagnostics_path}")
    return 0


_HANDLERS = {
    "score": _handle_score,
    "summarize": _handle_summarize,
    "profile": _handle_profile,
    "trace": _handle_trace,
}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    handler = _HANDLERS.get(args.command)
    if handler is None:
        parser.error(f"unknown command: {args.command}")
        return 2

    try:
        config = _resolve_config(args)
    except ValueError as error:
        print(f"ERROR: invalid configuration: {error}")
        return 2

    try:
        return handler(AnalysisPipeline(config), args)
    except FileNotFoundError as error:
        print(f"ERROR: file not found: {error}")
        return 1
    except StreamProfilerError as error:
        logger.debug("analysis failed", exc_info=True)
        print(f"ERROR: {error}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
