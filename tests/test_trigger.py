from __future__ import annotations

import pytest

from stream_profiler.errors import OutOfOrderInput
from stream_profiler.models import Configuration, ProfilePoint, WindowSummary
from stream_profiler.pareto import ParetoFrontier, pareto
from stream_profiler.trigger import (
    Trigger,
    TriggerConfig,
    TriggerState,
    policy_names,
    resolve_policy,
    select_nearest_accuracy,
    select_nearest_bandwidth,
)

LOW = Configuration(160, 2, 10)
MID = Configuration(320, 1, 5)
HIGH = Configuration(640, 0, 0)


def _profile() -> list[ProfilePoint]:
    return [
        ProfilePoint(LOW, 5000.0, 0.5),
        ProfilePoint(MID, 12000.0, 0.7),
        ProfilePoint(HIGH, 20000.0, 0.9),
    ]


def _window(
    index: int, bandwidth: float, accuracy: float | None = 0.8, frames: int = 10
) -> WindowSummary:
    return WindowSummary(index, bandwidth, accuracy, None, frame_count=frames)


def _trigger(config: TriggerConfig, initial: Configuration = HIGH) -> Trigger:
    return Trigger(config, pareto(_profile()), initial)


def test_decision_fires_after_consecutive_breaches() -> None:
    trigger = _trigger(
        TriggerConfig(bandwidth_high_watermark=15000.0, consecutive_windows_required=2)
    )

    assert trigger.observe(_window(0, 20000.0)) is None
    decision = trigger.observe(_window(1, 21000.0))
    assert trigger.observe(_window(2, 5000.0)) is None

    assert decision is not None
    assert decision.interval_index == 1
    assert decision.configuration == MID
    assert decision.previous_configuration == HIGH
    assert decision.metric == "bandwidth_high_watermark"
    assert decision.metric_value == 21000.0
    assert trigger.current_configuration == MID
    assert trigger.state is TriggerState.STEADY
    assert trigger.decisions == [decision]


def test_redelivered_interval_is_ignored() -> None:
    trigger = _trigger(
        TriggerConfig(bandwidth_high_watermark=15000.0, consecutive_windows_required=2)
    )

    trigger.observe(_window(0, 20000.0))
    trigger.observe(_window(1, 21000.0))
    assert trigger.observe(_window(1, 21000.0)) is None
    assert len(trigger.decisions) == 1
    assert trigger.last_interval == 1


def test_earlier_interval_raises() -> None:
    trigger = _trigger(TriggerConfig(bandwidth_high_watermark=15000.0))

    trigger.observe(_window(2, 1000.0))
    with pytest.raises(OutOfOrderInput):
        trigger.observe(_window(1, 1000.0))


def test_interval_gap_resets_streak() -> None:
    trigger = _trigger(
        TriggerConfig(bandwidth_high_watermark=15000.0, consecutive_windows_required=2)
    )

    assert trigger.observe(_window(0, 20000.0)) is None
    assert trigger.observe(_window(2, 20000.0)) is None
    assert trigger.observe(_window(3, 20000.0)) is not None


def test_cooldown_suppresses_evaluation() -> None:
    trigger = _trigger(
        TriggerConfig(
            bandwidth_high_watermark=15000.0,
            consecutive_windows_required=1,
            cooldown_windows=2,
        )
    )

    first = trigger.observe(_window(0, 20000.0))
    assert first is not None
    assert trigger.observe(_window(1, 20000.0)) is None
    assert trigger.observe(_window(2, 20000.0)) is None
    second = trigger.observe(_window(3, 20000.0))

    assert second is not None
    assert second.configuration == LOW
    assert second.previous_configuration == MID


def test_windows_without_data_do_not_breach_bandwidth() -> None:
    trigger = _trigger(
        TriggerConfig(bandwidth_low_watermark=8000.0, consecutive_windows_required=1)
    )

    assert trigger.observe(_window(0, 0.0, accuracy=None, frames=0)) is None
    decision = trigger.observe(_window(1, 4000.0))

    assert decision is not None
    assert decision.metric == "bandwidth_low_watermark"


def test_accuracy_floor_moves_to_more_accurate_configuration() -> None:
    trigger = _trigger(
        TriggerConfig(accuracy_floor=0.6, consecutive_windows_required=1), initial=LOW
    )

    decision = trigger.observe(_window(0, 5000.0, accuracy=0.5))

    assert decision is not None
    assert decision.metric == "accuracy_floor"
    assert decision.configuration == MID


def test_empty_frontier_keeps_evaluating_until_a_candidate_exists() -> None:
    trigger = Trigger(
        TriggerConfig(bandwidth_high_watermark=15000.0, consecutive_windows_required=1),
        ParetoFrontier(),
        HIGH,
    )

    assert trigger.observe(_window(0, 20000.0)) is None
    assert trigger.state is TriggerState.EVALUATING

    trigger.update_frontier(pareto(_profile()))
    decision = trigger.observe(_window(1, 1000.0))

    assert decision is not None
    assert decision.interval_index == 1
    assert trigger.state is TriggerState.STEADY


def test_no_bounds_never_decides() -> None:
    trigger = _trigger(TriggerConfig())

    decisions = trigger.run(_window(i, 1e9, accuracy=0.0) for i in range(5))

    assert decisions == []


def test_decision_is_emitted_even_when_configuration_is_unchanged() -> None:
    trigger = _trigger(
        TriggerConfig(bandwidth_high_watermark=15000.0, consecutive_windows_required=1),
        initial=LOW,
    )

    decision = trigger.observe(_window(0, 16000.0))

    assert decision is not None
    assert decision.configuration == LOW
    assert decision.previous_configuration == LOW


def test_policy_registry_resolves_aliases() -> None:
    assert resolve_policy("nearest_bandwidth") is select_nearest_bandwidth
    assert resolve_policy("nearest-frontier-point-by-accuracy") is select_nearest_accuracy
    with pytest.raises(ValueError, match="candidate_selection_policy"):
        resolve_policy("random")


def test_trigger_config_validation() -> None:
    with pytest.raises(ValueError):
        TriggerConfig(consecutive_windows_required=0)
    with pytest.raises(ValueError):
        TriggerConfig(bandwidth_high_watermark=100.0, bandwidth_low_watermark=200.0)
    with pytest.raises(ValueError):
        TriggerConfig(candidate_selection_policy="bogus")


def test_nearest_accuracy_policy_keeps_most_accurate_point_within_rate() -> None:
    trigger = _trigger(
        TriggerConfig(
            bandwidth_high_watermark=15000.0,
            consecutive_windows_required=1,
            candidate_selection_policy="nearest_accuracy",
        )
    )

    decision = trigger.observe(_window(0, 25000.0))

    assert decision is not None
    assert decision.configuration == MID


def test_summaries_without_frame_count_still_breach() -> None:
    trigger = _trigger(
        TriggerConfig(bandwidth_high_watermark=15000.0, consecutive_windows_required=2)
    )
    summaries = [
        WindowSummary(index, bandwidth, 0.9, 0.01)
        for index, bandwidth in enumerate([20000.0, 21000.0, 5000.0])
    ]

    decisions = trigger.run(summaries)

    assert [d.interval_index for d in decisions] == [1]
    assert decisions[0].configuration == MID


def test_policy_names_include_aliases() -> None:
    names = policy_names()

    assert "nearest_bandwidth" in names
    assert "nearest-frontier-point-by-bandwidth" in names
    assert "nearest-frontier-point-by-accuracy" in names
    for name in names:
        resolve_policy(name)
