from __future__ import annotations

import logging
from collections.abc import Collection, Mapping, Sequence
from statistics import fmean

from .diagnostics import Diagnostics
from .errors import InsufficientData
from .models import Configuration, ProfilePoint, WindowSummary

logger = logging.getLogger(__name__)


def profile(
    window_summaries: Sequence[WindowSummary], configuration: Configuration
) -> ProfilePoint:
    """Reduce one configuration's window series to a single profile point.

    Bandwidth is averaged over complete (non-partial) windows holding data,
    accuracy over every window whose accuracy is defined.
    """

    complete = [w for w in window_summaries if not w.partial and w.has_data]
    if not complete:
        raise InsufficientData(f"configuration {configuration} has no complete window")

    accuracies = [w.f1_accuracy for w in window_summaries if w.f1_accuracy is not None]
    if not accuracies:
        raise InsufficientData(f"configuration {configuration} has no window with defined accuracy")

    return ProfilePoint(
        configuration=configuration,
        mean_bandwidth_bps=fmean(w.bandwidth_bps for w in complete),
        mean_accuracy=fmean(accuracies),
    )


def build_profile(
    summaries_by_configuration: Mapping[Configuration, Sequence[WindowSummary]],
    diagnostics: Diagnostics | None = None,
    exclude: Collection[Configuration] = (),
) -> list[ProfilePoint]:
    """Profile every configuration, dropping those without usable windows."""

    report = diagnostics if diagnostics is not None else Diagnostics()
    points: list[ProfilePoint] = []
    for configuration in sorted(summaries_by_configuration):
        if configuration in exclude:
            continue
        try:
            points.append(profile(summaries_by_configuration[configuration], configuration))
        except InsufficientData as error:
            report.drop_configuration(configuration, str(error))
    logger.info("profiled %d of %d configurations", len(points), len(summaries_by_configuration))
    return points
