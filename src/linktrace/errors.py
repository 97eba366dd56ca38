"""
errors.py - Exception types raised by the linktrace pipeline

Every failure is fatal for the run: the CLI catches LinkTraceError once,
logs it and exits with status 1.
"""


class LinkTraceError(Exception):
    """Base class for all linktrace failures."""


class TraceFormatError(LinkTraceError, ValueError):
    """A data line is malformed (field count, numbers, event token, delay)."""


class TraceStructureError(LinkTraceError, ValueError):
    """The base-timestamp directive is missing, duplicated or out of order."""


class DegenerateTraceError(LinkTraceError):
    """The trace is well formed but too small to produce statistics."""


class ConfigError(LinkTraceError, ValueError):
    """Invalid analysis parameter or configuration file."""


class PlotError(LinkTraceError, RuntimeError):
    """The plotting backend failed."""
