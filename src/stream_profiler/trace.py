"""Replay traces: which configuration is active in each interval, and how it did."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from .diagnostics import Diagnostics
from .models import Configuration, Decision, TraceEntry, WindowSummary
from .online import OnlineProfiler
from .trigger import Trigger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationResult:
    decisions: list[Decision]
    trace: list[TraceEntry]


def _index_windows(
    summaries_by_configuration: Mapping[Configuration, Sequence[WindowSummary]],
) -> dict[Configuration, dict[int, WindowSummary]]:
    return {
        configuration: {window.interval_index: window for window in windows}
        for configuration, windows in summaries_by_configuration.items()
    }


def _last_interval(
    summaries_by_configuration: Mapping[Configuration, Sequence[WindowSummary]],
) -> int:
    return max(
        (
            window.interval_index
            for windows in summaries_by_configuration.values()
            for window in windows
        ),
        default=-1,
    )


def generate_trace(
    window_summaries_per_configuration: Mapping[Configuration, Sequence[WindowSummary]],
    decisions: Sequence[Decision],
    initial_configuration: Configuration | None = None,
    activation_delay: int = 1,
) -> list[TraceEntry]:
    """Join decisions against the active configuration's window series.

    A decision taken at interval ``i`` is active from ``i + activation_delay``.
    Every interval from 0 to the last observed one gets exactly one entry; the
    most recent decision is carried forward across intervals without one.
    Before the first decision ``initial_configuration`` is active (the first
    decision's configuration when not given).
    """

    if activation_delay < 0:
        raise ValueError("activation_delay must be >= 0")

    ordered = sorted(decisions, key=lambda decision: decision.interval_index)
    if initial_configuration is None:
        if not ordered:
            raise ValueError("initial_configuration is required when there are no decisions")
        initial_configuration = ordered[0].configuration

    last = _last_interval(window_summaries_per_configuration)
    if ordered:
        last = max(last, ordered[-1].interval_index)

    windows = _index_windows(window_summaries_per_configuration)
    activations = {
        decision.interval_index + activation_delay: decision.configuration for decision in ordered
    }

    active = initial_configuration
    trace: list[TraceEntry] = []
    for interval in range(last + 1):
        active = activations.get(interval, active)
        window = windows.get(active, {}).get(interval)
        measured = window is not None and window.has_data
        trace.append(
            TraceEntry(
                interval_index=interval,
                configuration=active,
                bandwidth_bps=window.bandwidth_bps if measured else None,
                accuracy=window.f1_accuracy if window is not None else None,
            )
        )
    return trace


def simulate(
    summaries_by_configuration: Mapping[Configuration, Sequence[WindowSummary]],
    trigger: Trigger,
    online: OnlineProfiler | None = None,
    diagnostics: Diagnostics | None = None,
) -> SimulationResult:
    """Closed-loop replay of a trigger over historical summaries.

    At every interval the window of the currently active configuration is fed
    to the trigger; a decision switches the stream from the next interval on.
    Intervals the active configuration has no window for are recorded in
    ``diagnostics`` as empty windows.
    """

    initial = trigger.current_configuration
    windows = _index_windows(summaries_by_configuration)
    decisions: list[Decision] = []

    for interval in range(_last_interval(summaries_by_configuration) + 1):
        if online is not None:
            online.refresh(trigger, summaries_by_configuration, interval, diagnostics)

        window = windows.get(trigger.current_configuration, {}).get(interval)
        if window is None:
            logger.debug(
                "interval %d: no window for active configuration %s",
                interval,
                trigger.current_configuration,
            )
            if diagnostics is not None:
                diagnostics.note_empty_window(trigger.current_configuration, interval)
            continue
        decision = trigger.observe(window)
        if decision is not None:
            decisions.append(decision)

    trace = generate_trace(summaries_by_configuration, decisions, initial_configuration=initial)
    return SimulationResult(decisions=decisions, trace=trace)
