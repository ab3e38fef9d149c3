from __future__ import annotations

import pytest

from stream_profiler.diagnostics import Diagnostics
from stream_profiler.models import Configuration, Decision, ProfilePoint, WindowSummary
from stream_profiler.pareto import pareto
from stream_profiler.trace import generate_trace, simulate
from stream_profiler.trigger import Trigger, TriggerConfig

A = Configuration(640, 0, 0)
B = Configuration(320, 1, 0)


def _series(bandwidths: list[float], accuracy: float) -> list[WindowSummary]:
    return [
        WindowSummary(index, bandwidth, accuracy, None, frame_count=10)
        for index, bandwidth in enumerate(bandwidths)
    ]


def _summaries() -> dict[Configuration, list[WindowSummary]]:
    return {
        A: _series([20000.0, 21000.0, 22000.0, 20000.0], 0.9),
        B: _series([11000.0, 12000.0, 13000.0, 12000.0], 0.7),
    }


def test_decision_becomes_active_on_the_next_interval() -> None:
    trace = generate_trace(_summaries(), [Decision(1, B, 21000.0)], initial_configuration=A)

    assert [entry.configuration for entry in trace] == [A, A, B, B]
    assert [entry.bandwidth_bps for entry in trace] == [20000.0, 21000.0, 13000.0, 12000.0]
    assert [entry.accuracy for entry in trace] == [0.9, 0.9, 0.7, 0.7]


def test_first_decision_sets_initial_configuration_by_default() -> None:
    trace = generate_trace(_summaries(), [Decision(2, A, None)])

    assert [entry.configuration for entry in trace] == [A, A, A, A]


def test_trace_without_decisions_needs_initial_configuration() -> None:
    with pytest.raises(ValueError):
        generate_trace(_summaries(), [])

    trace = generate_trace(_summaries(), [], initial_configuration=B)
    assert [entry.interval_index for entry in trace] == [0, 1, 2, 3]


def test_missing_window_yields_empty_measurements() -> None:
    summaries = {A: _series([1.0, 2.0, 3.0], 0.9), B: _series([5.0], 0.5)}

    trace = generate_trace(summaries, [Decision(0, B, None)], initial_configuration=A)

    assert trace[1].configuration == B
    assert trace[2].configuration == B
    assert trace[2].bandwidth_bps is None
    assert trace[2].accuracy is None


def test_zero_activation_delay_applies_decision_immediately() -> None:
    trace = generate_trace(
        _summaries(), [Decision(1, B, None)], initial_configuration=A, activation_delay=0
    )

    assert [entry.configuration for entry in trace] == [A, B, B, B]


def test_simulate_replays_the_active_configuration() -> None:
    profile = [ProfilePoint(A, 20750.0, 0.9), ProfilePoint(B, 12000.0, 0.7)]
    trigger = Trigger(
        TriggerConfig(bandwidth_high_watermark=15000.0, consecutive_windows_required=2),
        pareto(profile),
        A,
        profile=profile,
    )

    result = simulate(_summaries(), trigger)

    assert [d.interval_index for d in result.decisions] == [1]
    assert result.decisions[0].configuration == B
    assert [entry.configuration for entry in result.trace] == [A, A, B, B]
    assert result.trace[2].bandwidth_bps == 13000.0


def test_simulate_records_intervals_without_active_window() -> None:
    summaries = {
        A: _series([20000.0, 21000.0, 22000.0, 20000.0], 0.9),
        B: _series([11000.0, 12000.0], 0.7),
    }
    profile = [ProfilePoint(A, 20750.0, 0.9), ProfilePoint(B, 12000.0, 0.7)]
    trigger = Trigger(
        TriggerConfig(bandwidth_high_watermark=15000.0, consecutive_windows_required=2),
        pareto(profile),
        A,
        profile=profile,
    )
    diagnostics = Diagnostics()

    result = simulate(summaries, trigger, diagnostics=diagnostics)

    assert [d.interval_index for d in result.decisions] == [1]
    assert [(w.configuration, w.interval_index) for w in diagnostics.empty_windows] == [
        (B, 2),
        (B, 3),
    ]
