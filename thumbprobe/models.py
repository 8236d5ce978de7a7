"""
thumbprobe.models
=================
Value types flowing through a run:

    Scenario --(runner)--> Observation --(evaluator)--> Verdict --> RunSummary

All of them are frozen; a run never mutates a record once it exists.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


# ============================================================================
# Expectations
# ============================================================================
STATUS = "status"
SUCCESS = "success"


@dataclass(frozen=True)
class Expectation:
    """
    What a scenario expects from the endpoint:
    - kind == "status":  the exact HTTP status code (``value`` is an int)
    - kind == "success": whether the transfer completes (``value`` is a bool)
    """
    kind: str
    value: Any

    @classmethod
    def status(cls, code: int) -> "Expectation":
        # bool is an int subclass; True must never stand in for status 1
        if isinstance(code, bool) or not isinstance(code, int):
            raise TypeError(f"status expectation needs an int, got {code!r}")
        return cls(STATUS, code)

    @classmethod
    def success(cls, flag: bool) -> "Expectation":
        if not isinstance(flag, bool):
            raise TypeError(f"success expectation needs a bool, got {flag!r}")
        return cls(SUCCESS, flag)

    def describe(self) -> str:
        if self.kind == STATUS:
            return f"status {self.value}"
        return "fetch success" if self.value else "fetch failure"


# ============================================================================
# Scenario / Observation / Verdict
# ============================================================================
@dataclass(frozen=True)
class Scenario:
    """
    One named probe against the endpoint:
    - name (unique within a run)
    - description (free text shown in reports)
    - group (report section, e.g. "Security")
    - params (ordered query parameters, values already resolved)
    - expect (an Expectation)
    """
    name: str
    description: str
    group: str
    params: Tuple[Tuple[str, str], ...]
    expect: Expectation


@dataclass(frozen=True)
class Observation:
    """
    Measured outcome of a single probe. ``status`` is None when no response
    line was obtained (DNS failure, refused connection, timeout).
    """
    scenario: str
    url: str
    status: Optional[int]
    success: bool
    elapsed: float
    error: Optional[str] = None

    @property
    def elapsed_ms(self) -> float:
        return round(self.elapsed * 1000, 2)


@dataclass(frozen=True)
class Verdict:
    scenario: str
    passed: bool
    message: str


# ============================================================================
# Run summary (built by folding verdicts)
# ============================================================================
@dataclass(frozen=True)
class RunSummary:
    """
    Aggregate of a run. Built with :func:`accumulate`, never mutated:
    - total / passed / failed counts
    - verdicts in scenario-table order
    """
    total: int = 0
    passed: int = 0
    failed: int = 0
    verdicts: Tuple[Verdict, ...] = field(default_factory=tuple)

    @property
    def failed_names(self) -> List[str]:
        return [v.scenario for v in self.verdicts if not v.passed]

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "failed_scenarios": self.failed_names,
        }


def accumulate(summary: RunSummary, verdict: Verdict) -> RunSummary:
    """Return a new summary with ``verdict`` appended."""
    return RunSummary(
        total=summary.total + 1,
        passed=summary.passed + (1 if verdict.passed else 0),
        failed=summary.failed + (0 if verdict.passed else 1),
        verdicts=summary.verdicts + (verdict,),
    )
