"""Exception types raised by the harness itself (never by the target)."""


class ThumbprobeError(Exception):
    """Base class for harness errors."""


class HarnessConfigurationError(ThumbprobeError):
    """
    The harness cannot start: bad target URL, missing target script,
    unopenable report sink, duplicate scenario names, unreachable target
    during preflight. Raised before any scenario executes.
    """
