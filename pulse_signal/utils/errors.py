"""
PULSE SIGNAL — Error Types
Indicator- and regime-level errors are always contained by their callers;
only structurally invalid top-level input escapes generate_signal().
"""


class PulseSignalError(Exception):
    """Base class for all pulse_signal errors."""


class InsufficientDataError(PulseSignalError):
    """Input is shorter than an operation's minimum history, or unusable."""


class IndicatorComputationError(PulseSignalError):
    """A single indicator failed to evaluate."""

    def __init__(self, indicator: str, message: str):
        self.indicator = indicator
        super().__init__(f"{indicator}: {message}")


class RegimeDetectionError(PulseSignalError):
    """Regime classification failed; callers fall back to UNKNOWN."""


class ExternalDataUnavailable(PulseSignalError):
    """An optional external input (tick source, options chain) could not be fetched."""


class ReplayError(PulseSignalError):
    """The replay harness could not load tick history."""
