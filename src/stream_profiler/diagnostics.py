from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .models import Configuration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkippedRecord:
    source: str
    row_number: int
    reason: str


@dataclass(frozen=True)
class DroppedConfiguration:
    configuration: Configuration
    reason: str


@dataclass(frozen=True)
class EmptyWindow:
    configuration: Configuration
    interval_index: int


@dataclass(frozen=True)
class RefreshDrop:
    configuration: Configuration
    interval_index: int
    reason: str


@dataclass
class Diagnostics:
    """Everything that was skipped or dropped during a run."""

    skipped_records: list[SkippedRecord] = field(default_factory=list)
    dropped_configurations: list[DroppedConfiguration] = field(default_factory=list)
    empty_windows: list[EmptyWindow] = field(default_factory=list)
    refresh_drops: list[RefreshDrop] = field(default_factory=list)

    def skip_record(self, source: str, row_number: int, reason: str) -> None:
        logger.warning("skipping %s row %d: %s", source, row_number, reason)
        self.skipped_records.append(SkippedRecord(source, row_number, reason))

    def drop_configuration(self, configuration: Configuration, reason: str) -> None:
        logger.warning("dropping configuration %s: %s", configuration, reason)
        self.dropped_configurations.append(DroppedConfiguration(configuration, reason))

    def note_empty_window(self, configuration: Configuration, interval_index: int) -> None:
        logger.debug("configuration %s has no data in window %d", configuration, interval_index)
        self.empty_windows.append(EmptyWindow(configuration, interval_index))

    def drop_from_refresh(
        self, configuration: Configuration, interval_index: int, reason: str
    ) -> None:
        logger.info(
            "interval %d: re-profiling skips %s: %s", interval_index, configuration, reason
        )
        self.refresh_drops.append(RefreshDrop(configuration, interval_index, reason))

    def is_dropped(self, configuration: Configuration) -> bool:
        return any(item.configuration == configuration for item in self.dropped_configurations)

    def merge(self, other: Diagnostics) -> None:
        self.skipped_records.extend(other.skipped_records)
        self.dropped_configurations.extend(other.dropped_configurations)
        self.empty_windows.extend(other.empty_windows)
        self.refresh_drops.extend(other.refresh_drops)

    def to_dict(self) -> dict[str, Any]:
        return {
            "skipped_records": [
                {"source": item.source, "row": item.row_number, "reason": item.reason}
                for item in self.skipped_records
            ],
            "dropped_configurations": [
                {"configuration": item.configuration.label, "reason": item.reason}
                for item in sorted(self.dropped_configurations, key=lambda d: d.configuration)
            ],
            "empty_windows": [
                {"configuration": item.configuration.label, "interval": item.interval_index}
                for item in sorted(
                    self.empty_windows, key=lambda w: (w.configuration, w.interval_index)
                )
            ],
            "refresh_drops": [
                {
                    "configuration": item.configuration.label,
                    "interval": item.interval_index,
                    "reason": item.reason,
                }
                for item in self.refresh_drops
            ],
        }
