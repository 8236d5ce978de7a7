"""thumbprobe: black-box conformance checks for TimThumb-style image endpoints."""

from thumbprobe.errors import HarnessConfigurationError, ThumbprobeError
from thumbprobe.models import Expectation, Observation, RunSummary, Scenario, Verdict

__version__ = "1.0.0"

__all__ = [
    "Expectation",
    "HarnessConfigurationError",
    "Observation",
    "RunSummary",
    "Scenario",
    "ThumbprobeError",
    "Verdict",
    "__version__",
]
