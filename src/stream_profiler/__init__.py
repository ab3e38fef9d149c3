"""Bandwidth/accuracy profiling of adaptive video-stream configurations."""

from .config import AnalysisConfig, config_from_dict, load_config
from .diagnostics import Diagnostics
from .errors import (
    ConfigurationMismatch,
    InsufficientData,
    MalformedRecord,
    OutOfOrderInput,
    StreamProfilerError,
)
from .models import (
    BoundingBox,
    Configuration,
    Decision,
    DetectionRecord,
    FrameScore,
    ProcessTimeSample,
    ProfilePoint,
    SizeRecord,
    TraceEntry,
    WindowSummary,
)
from .online import OnlineProfiler, OnlineProfilingConfig
from .pareto import ParetoFrontier, dominates, pareto
from .pipeline import AnalysisArtifacts, AnalysisPipeline, AnalysisResult, ConfigurationAnalysis
from .profile import build_profile, profile
from .scoring import align_to_ground_truth, iou, match_frame, score, score_frames
from .store import MeasurementStore, load_profile_csv, write_profile_csv
from .summary import extract_process_times, f1_score, summarize, window_index
from .trace import SimulationResult, generate_trace, simulate
from .trigger import (
    SELECTION_POLICIES,
    AccuracyFloor,
    BandwidthHighWatermark,
    BandwidthLowWatermark,
    Breach,
    Trigger,
    TriggerConfig,
    TriggerMetric,
    TriggerState,
    policy_names,
    resolve_policy,
)

__all__ = [
    "Configuration",
    "BoundingBox",
    "DetectionRecord",
    "SizeRecord",
    "FrameScore",
    "ProcessTimeSample",
    "WindowSummary",
    "ProfilePoint",
    "Decision",
    "TraceEntry",
    "StreamProfilerError",
    "MalformedRecord",
    "InsufficientData",
    "ConfigurationMismatch",
    "OutOfOrderInput",
    "Diagnostics",
    "iou",
    "match_frame",
    "score",
    "score_frames",
    "align_to_ground_truth",
    "f1_score",
    "window_index",
    "extract_process_times",
    "summarize",
    "profile",
    "build_profile",
    "dominates",
    "pareto",
    "ParetoFrontier",
    "TriggerState",
    "TriggerConfig",
    "TriggerMetric",
    "BandwidthHighWatermark",
    "BandwidthLowWatermark",
    "AccuracyFloor",
    "Breach",
    "SELECTION_POLICIES",
    "policy_names",
    "resolve_policy",
    "Trigger",
    "OnlineProfilingConfig",
    "OnlineProfiler",
    "SimulationResult",
    "generate_trace",
    "simulate",
    "MeasurementStore",
    "load_profile_csv",
    "write_profile_csv",
    "AnalysisConfig",
    "config_from_dict",
    "load_config",
    "ConfigurationAnalysis",
    "AnalysisResult",
    "AnalysisArtifacts",
    "AnalysisPipeline",
]
