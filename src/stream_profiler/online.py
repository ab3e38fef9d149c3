from __future__ import annotations

import logging
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass

from .diagnostics import Diagnostics
from .errors import InsufficientData
from .models import Configuration, ProfilePoint, WindowSummary
from .pareto import ParetoFrontier, pareto
from .profile import profile
from .trigger import Trigger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OnlineProfilingConfig:
    """Sliding-window re-profiling during replay.

    Every ``update_interval`` intervals (once ``train_windows`` intervals have
    been seen) the profile is rebuilt from the last ``train_windows`` windows
    of every configuration. When a drift threshold is set, the trigger's
    frontier is only replaced once the squared distance between the current
    frontier and the fresh profile exceeds it.
    """

    train_windows: int = 3
    update_interval: int = 1
    drift_bandwidth_bps: float | None = None
    drift_accuracy: float | None = None

    def __post_init__(self) -> None:
        if self.train_windows < 1:
            raise ValueError("train_windows must be >= 1")
        if self.update_interval < 1:
            raise ValueError("update_interval must be >= 1")


class OnlineProfiler:
    def __init__(
        self,
        config: OnlineProfilingConfig | None = None,
        exclude: Collection[Configuration] = (),
    ) -> None:
        self.config = config or OnlineProfilingConfig()
        self.exclude = frozenset(exclude)
        self.refreshes = 0

    def due(self, interval_index: int) -> bool:
        seen = interval_index + 1
        if seen < self.config.train_windows:
            return False
        return (seen - self.config.train_windows) % self.config.update_interval == 0

    def sliding_profile(
        self,
        summaries_by_configuration: Mapping[Configuration, Sequence[WindowSummary]],
        interval_index: int,
        diagnostics: Diagnostics | None = None,
    ) -> list[ProfilePoint]:
        start = interval_index - self.config.train_windows + 1
        points: list[ProfilePoint] = []
        for configuration in sorted(summaries_by_configuration):
            if configuration in self.exclude:
                continue
            recent = [
                window
                for window in summaries_by_configuration[configuration]
                if start <= window.interval_index <= interval_index
            ]
            try:
                points.append(profile(recent, configuration))
            except InsufficientData as error:
                if diagnostics is not None:
                    diagnostics.drop_from_refresh(configuration, interval_index, str(error))
                else:
                    logger.debug("interval %d: %s", interval_index, error)
        return points

    def _drifted(self, frontier: ParetoFrontier, points: Sequence[ProfilePoint]) -> bool:
        cfg = self.config
        if cfg.drift_bandwidth_bps is None and cfg.drift_accuracy is None:
            return True
        if not frontier:
            return True
        bandwidth, accuracy = frontier.distance(points)
        if cfg.drift_bandwidth_bps is not None and bandwidth > cfg.drift_bandwidth_bps:
            return True
        return cfg.drift_accuracy is not None and accuracy > cfg.drift_accuracy

    def refresh(
        self,
        trigger: Trigger,
        summaries_by_configuration: Mapping[Configuration, Sequence[WindowSummary]],
        interval_index: int,
        diagnostics: Diagnostics | None = None,
    ) -> ParetoFrontier | None:
        """Rebuild the trigger's frontier if re-profiling is due and needed."""

        if not self.due(interval_index):
            return None
        points = self.sliding_profile(
            summaries_by_configuration, interval_index, diagnostics
        )
        if not points or not self._drifted(trigger.frontier, points):
            return None
        frontier = pareto(points)
        trigger.update_frontier(frontier, points)
        self.refreshes += 1
        logger.debug(
            "interval %d: refreshed frontier with %d points", interval_index, len(frontier)
        )
        return frontier
