from __future__ import annotations


class StreamProfilerError(ValueError):
    """Base class for analysis errors."""


class MalformedRecord(StreamProfilerError):
    """Input row violates the record schema or value ranges."""


class InsufficientData(StreamProfilerError):
    """A configuration has no usable windows or frames."""


class ConfigurationMismatch(StreamProfilerError):
    """A referenced configuration (usually ground truth) is absent."""


class OutOfOrderInput(StreamProfilerError):
    """A window summary arrived with an interval lower than already processed."""
