"""Pareto frontier over (minimize bandwidth, maximize accuracy)."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from .models import Configuration, ProfilePoint


def dominates(a: ProfilePoint, b: ProfilePoint) -> bool:
    """True when ``a`` is at least as good as ``b`` on both axes and better on one."""

    no_worse = a.mean_bandwidth_bps <= b.mean_bandwidth_bps and a.mean_accuracy >= b.mean_accuracy
    better = a.mean_bandwidth_bps < b.mean_bandwidth_bps or a.mean_accuracy > b.mean_accuracy
    return no_worse and better


def _frontier_order(point: ProfilePoint) -> tuple[float, float, Configuration]:
    return (point.mean_bandwidth_bps, -point.mean_accuracy, point.configuration)


@dataclass(frozen=True)
class ParetoFrontier:
    """Non-dominated profile points ordered by ascending bandwidth."""

    points: tuple[ProfilePoint, ...] = ()

    def __iter__(self) -> Iterator[ProfilePoint]:
        return iter(self.points)

    def __len__(self) -> int:
        return len(self.points)

    def __bool__(self) -> bool:
        return bool(self.points)

    @property
    def configurations(self) -> list[Configuration]:
        return [point.configuration for point in self.points]

    def find(self, configuration: Configuration) -> ProfilePoint | None:
        for point in self.points:
            if point.configuration == configuration:
                return point
        return None

    def best_within_bandwidth(self, budget_bps: float) -> ProfilePoint | None:
        """Most accurate point whose bandwidth stays strictly under ``budget_bps``."""

        fitting = [point for point in self.points if point.mean_bandwidth_bps < budget_bps]
        if not fitting:
            return None
        # Along the frontier accuracy grows with bandwidth.
        return fitting[-1]

    def nearest_by_bandwidth(
        self, target_bps: float, ceiling: bool = False
    ) -> ProfilePoint | None:
        """Point with bandwidth closest to ``target_bps``.

        With ``ceiling`` only points at or under the target are considered,
        falling back to the cheapest point when none fits.
        """

        if not self.points:
            return None
        candidates = list(self.points)
        if ceiling:
            candidates = [p for p in candidates if p.mean_bandwidth_bps <= target_bps]
            if not candidates:
                return self.points[0]
        return min(
            candidates,
            key=lambda p: (abs(p.mean_bandwidth_bps - target_bps), -p.mean_accuracy),
        )

    def nearest_by_accuracy(self, target: float, floor: bool = False) -> ProfilePoint | None:
        """Point with accuracy closest to ``target``.

        With ``floor`` only points at or above the target are considered,
        falling back to the most accurate point when none reaches it.
        """

        if not self.points:
            return None
        candidates = list(self.points)
        if floor:
            candidates = [p for p in candidates if p.mean_accuracy >= target]
            if not candidates:
                return max(self.points, key=lambda p: (p.mean_accuracy, -p.mean_bandwidth_bps))
        return min(
            candidates,
            key=lambda p: (abs(p.mean_accuracy - target), p.mean_bandwidth_bps),
        )

    def distance(self, points: Iterable[ProfilePoint]) -> tuple[float, float]:
        """Squared (bandwidth, accuracy) distance of this frontier to newer measurements.

        Only configurations present in both are compared.
        """

        latest = {point.configuration: point for point in points}
        bandwidth = 0.0
        accuracy = 0.0
        for point in self.points:
            other = latest.get(point.configuration)
            if other is None:
                continue
            bandwidth += (other.mean_bandwidth_bps - point.mean_bandwidth_bps) ** 2
            accuracy += (other.mean_accuracy - point.mean_accuracy) ** 2
        return bandwidth, accuracy


def pareto(points: Sequence[ProfilePoint]) -> ParetoFrontier:
    """Filter a profile to its non-dominated subset in O(n log n)."""

    ordered = sorted(points, key=_frontier_order)

    retained: list[ProfilePoint] = []
    best_accuracy = float("-inf")
    for point in ordered:
        if point.mean_accuracy > best_accuracy:
            retained.append(point)
            best_accuracy = point.mean_accuracy
            continue
        last = retained[-1] if retained else None
        if (
            last is not None
            and point.mean_bandwidth_bps == last.mean_bandwidth_bps
            and point.mean_accuracy == last.mean_accuracy
        ):
            # Identical measurements do not dominate each other.
            retained.append(point)
    return ParetoFrontier(tuple(retained))
