"""Online trigger: decides when to reconfigure and which configuration to pick.

Detecting the need to switch (``TriggerMetric``) and selecting the target
(selection policies over the Pareto frontier) are kept separate so either side
can be replaced.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from .errors import OutOfOrderInput
from .models import Configuration, Decision, ProfilePoint, WindowSummary
from .pareto import ParetoFrontier

logger = logging.getLogger(__name__)


class TriggerState(str, Enum):
    STEADY = "steady"
    EVALUATING = "evaluating"


@dataclass(frozen=True)
class TriggerConfig:
    """Bounds and hysteresis for the online trigger."""

    bandwidth_high_watermark: float | None = None
    bandwidth_low_watermark: float | None = None
    accuracy_floor: float | None = None
    consecutive_windows_required: int = 2
    cooldown_windows: int = 0
    candidate_selection_policy: str = "nearest_bandwidth"

    def __post_init__(self) -> None:
        if self.consecutive_windows_required < 1:
            raise ValueError("consecutive_windows_required must be >= 1")
        if self.cooldown_windows < 0:
            raise ValueError("cooldown_windows must be >= 0")
        if (
            self.bandwidth_high_watermark is not None
            and self.bandwidth_low_watermark is not None
            and self.bandwidth_low_watermark > self.bandwidth_high_watermark
        ):
            raise ValueError("bandwidth_low_watermark must not exceed bandwidth_high_watermark")
        if self.accuracy_floor is not None and not 0.0 <= self.accuracy_floor <= 1.0:
            raise ValueError("accuracy_floor must be in [0, 1]")
        resolve_policy(self.candidate_selection_policy)


@dataclass(frozen=True)
class Breach:
    """A metric that crossed its bound, with the operating point it asks for."""

    metric: str
    value: float
    bound: float
    target_bandwidth_bps: float | None = None
    target_accuracy: float | None = None
    ceiling: bool = False


class TriggerMetric:
    """Online metric evaluated on every window of the operating stream."""

    name = "metric"

    def __init__(self, bound: float) -> None:
        self.bound = bound

    def value(self, summary: WindowSummary) -> float | None:
        raise NotImplementedError

    def breached(self, value: float) -> bool:
        raise NotImplementedError

    def breach(self, value: float, current: ProfilePoint | None) -> Breach:
        raise NotImplementedError


def _scaled_bandwidth(value: float, bound: float, current: ProfilePoint | None) -> float:
    # Rate that would have brought the observed window onto the bound.
    if current is None or value <= 0:
        return bound
    return current.mean_bandwidth_bps * bound / value


class BandwidthHighWatermark(TriggerMetric):
    name = "bandwidth_high_watermark"

    def value(self, summary: WindowSummary) -> float | None:
        return summary.bandwidth_bps if summary.has_data else None

    def breached(self, value: float) -> bool:
        return value > self.bound

    def breach(self, value: float, current: ProfilePoint | None) -> Breach:
        return Breach(
            metric=self.name,
            value=value,
            bound=self.bound,
            target_bandwidth_bps=_scaled_bandwidth(value, self.bound, current),
            ceiling=True,
        )


class BandwidthLowWatermark(TriggerMetric):
    name = "bandwidth_low_watermark"

    def value(self, summary: WindowSummary) -> float | None:
        return summary.bandwidth_bps if summary.has_data else None

    def breached(self, value: float) -> bool:
        return value < self.bound

    def breach(self, value: float, current: ProfilePoint | None) -> Breach:
        return Breach(
            metric=self.name,
            value=value,
            bound=self.bound,
            target_bandwidth_bps=_scaled_bandwidth(value, self.bound, current),
        )


class AccuracyFloor(TriggerMetric):
    name = "accuracy_floor"

    def value(self, summary: WindowSummary) -> float | None:
        return summary.f1_accuracy

    def breached(self, value: float) -> bool:
        return value < self.bound

    def breach(self, value: float, current: ProfilePoint | None) -> Breach:
        if current is None:
            target = self.bound
        else:
            target = min(1.0, current.mean_accuracy + (self.bound - value))
        return Breach(metric=self.name, value=value, bound=self.bound, target_accuracy=target)


def build_metrics(config: TriggerConfig) -> list[TriggerMetric]:
    metrics: list[TriggerMetric] = []
    if config.bandwidth_high_watermark is not None:
        metrics.append(BandwidthHighWatermark(config.bandwidth_high_watermark))
    if config.bandwidth_low_watermark is not None:
        metrics.append(BandwidthLowWatermark(config.bandwidth_low_watermark))
    if config.accuracy_floor is not None:
        metrics.append(AccuracyFloor(config.accuracy_floor))
    return metrics


SelectionPolicy = Callable[[ParetoFrontier, Breach, ProfilePoint | None], ProfilePoint | None]


def select_nearest_bandwidth(
    frontier: ParetoFrontier, breach: Breach, current: ProfilePoint | None
) -> ProfilePoint | None:
    """Frontier point whose bandwidth is nearest to the breach's target rate.

    Accuracy breaches pick the cheapest point reaching the target accuracy.
    """

    if breach.target_bandwidth_bps is not None:
        return frontier.nearest_by_bandwidth(breach.target_bandwidth_bps, ceiling=breach.ceiling)
    target = breach.target_accuracy if breach.target_accuracy is not None else breach.bound
    for point in frontier:
        if point.mean_accuracy >= target:
            return point
    return frontier.nearest_by_accuracy(target, floor=True)


def select_nearest_accuracy(
    frontier: ParetoFrontier, breach: Breach, current: ProfilePoint | None
) -> ProfilePoint | None:
    """Frontier point whose accuracy is nearest to the breach's target accuracy.

    Bandwidth breaches pick the most accurate point within the target rate.
    """

    if breach.target_accuracy is not None:
        return frontier.nearest_by_accuracy(breach.target_accuracy, floor=True)
    if not frontier:
        return None
    target = breach.target_bandwidth_bps
    if target is None:
        target = breach.bound
    fitting = [point for point in frontier if point.mean_bandwidth_bps <= target]
    if not fitting:
        return frontier.points[0]
    return max(fitting, key=lambda p: (p.mean_accuracy, -p.mean_bandwidth_bps))


SELECTION_POLICIES: dict[str, SelectionPolicy] = {
    "nearest_bandwidth": select_nearest_bandwidth,
    "nearest_accuracy": select_nearest_accuracy,
}

_POLICY_ALIASES = {
    "nearest-frontier-point-by-bandwidth": "nearest_bandwidth",
    "nearest-frontier-point-by-accuracy": "nearest_accuracy",
    "nearest-bandwidth": "nearest_bandwidth",
    "nearest-accuracy": "nearest_accuracy",
}


def policy_names() -> list[str]:
    """Every accepted candidate_selection_policy value, aliases included."""

    return sorted(set(SELECTION_POLICIES) | set(_POLICY_ALIASES))


def resolve_policy(name: str) -> SelectionPolicy:
    key = _POLICY_ALIASES.get(name, name)
    try:
        return SELECTION_POLICIES[key]
    except KeyError as error:
        options = ", ".join(sorted(SELECTION_POLICIES))
        raise ValueError(
            f"unknown candidate_selection_policy '{name}', expected one of: {options}"
        ) from error


class Trigger:
    """STEADY/EVALUATING state machine over one operating stream.

    Summaries must arrive in interval order. Re-delivering the last processed
    interval is ignored; an earlier interval raises ``OutOfOrderInput``.
    """

    def __init__(
        self,
        config: TriggerConfig,
        frontier: ParetoFrontier,
        initial_configuration: Configuration,
        profile: Iterable[ProfilePoint] | None = None,
        metrics: Sequence[TriggerMetric] | None = None,
        policy: SelectionPolicy | None = None,
    ) -> None:
        self.config = config
        self.metrics = list(metrics) if metrics is not None else build_metrics(config)
        self._policy = policy or resolve_policy(config.candidate_selection_policy)
        self.frontier = frontier
        self._points: dict[Configuration, ProfilePoint] = {}
        self.update_frontier(frontier, profile)

        self.state = TriggerState.STEADY
        self.current_configuration = initial_configuration
        self.candidate_configuration: Configuration | None = None
        self.decisions: list[Decision] = []

        self._last_interval: int | None = None
        self._streaks = [0 for _ in self.metrics]
        self._cooldown_until: int | None = None
        self._pending: Breach | None = None

    @property
    def last_interval(self) -> int | None:
        return self._last_interval

    def update_frontier(
        self, frontier: ParetoFrontier, profile: Iterable[ProfilePoint] | None = None
    ) -> None:
        self.frontier = frontier
        points = list(profile) if profile is not None else list(frontier)
        self._points = {point.configuration: point for point in points}

    def observe(self, summary: WindowSummary) -> Decision | None:
        index = summary.interval_index
        if self._last_interval is not None:
            if index == self._last_interval:
                logger.debug("interval %d already processed, ignoring", index)
                return None
            if index < self._last_interval:
                raise OutOfOrderInput(
                    f"interval {index} received after interval {self._last_interval}"
                )
            if index > self._last_interval + 1:
                self._streaks = [0 for _ in self.metrics]
        self._last_interval = index

        if self.state is TriggerState.EVALUATING:
            return self._select(index)

        if self._cooldown_until is not None and index <= self._cooldown_until:
            return None

        breach: Breach | None = None
        current = self._points.get(self.current_configuration)
        for position, metric in enumerate(self.metrics):
            value = metric.value(summary)
            if value is not None and metric.breached(value):
                self._streaks[position] += 1
            else:
                self._streaks[position] = 0
            if (
                breach is None
                and value is not None
                and self._streaks[position] >= self.config.consecutive_windows_required
            ):
                breach = metric.breach(value, current)

        if breach is None:
            return None

        logger.info(
            "interval %d: %s=%.4f crossed bound %.4f on %s",
            index,
            breach.metric,
            breach.value,
            breach.bound,
            self.current_configuration,
        )
        self.state = TriggerState.EVALUATING
        self._pending = breach
        self._streaks = [0 for _ in self.metrics]
        return self._select(index)

    def run(self, summaries: Iterable[WindowSummary]) -> list[Decision]:
        decisions: list[Decision] = []
        for summary in summaries:
            decision = self.observe(summary)
            if decision is not None:
                decisions.append(decision)
        return decisions

    def _select(self, index: int) -> Decision | None:
        breach = self._pending
        if breach is None:
            self.state = TriggerState.STEADY
            return None

        current = self._points.get(self.current_configuration)
        point = self._policy(self.frontier, breach, current)
        if point is None:
            logger.warning("interval %d: no frontier candidate, still evaluating", index)
            return None

        self.candidate_configuration = point.configuration
        decision = Decision(
            interval_index=index,
            configuration=point.configuration,
            metric_value=breach.value,
            metric=breach.metric,
            previous_configuration=self.current_configuration,
        )
        logger.info(
            "interval %d: switching %s -> %s",
            index,
            self.current_configuration,
            point.configuration,
        )
        self.current_configuration = point.configuration
        self.candidate_configuration = None
        self.state = TriggerState.STEADY
        self._pending = None
        self._cooldown_until = index + self.config.cooldown_windows
        self.decisions.append(decision)
        return decision
