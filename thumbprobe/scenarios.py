"""
thumbprobe.scenarios
====================
The scenario table. Each entry is one probe: a group, a unique name, a
description, the query parameters and the expected outcome.

Expected outcomes are written as:
  - an int            -> exact HTTP status
  - a bool            -> transfer success / failure
  - Toggle(flag, a, b) -> ``a`` if the config flag is on, ``b`` otherwise

Parameter values may be ``Ref("local_image")`` / ``Ref("external_image")``;
they are resolved against the run configuration.

To add a scenario, add one ``Entry`` to SCENARIO_TABLE.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from thumbprobe.config import HarnessConfig
from thumbprobe.errors import HarnessConfigurationError
from thumbprobe.models import Expectation, Scenario


@dataclass(frozen=True)
class Ref:
    """Placeholder for a config attribute inside a parameter bundle."""
    attr: str


@dataclass(frozen=True)
class Toggle:
    """Expectation that depends on a boolean server option mirrored in the config."""
    flag: str
    if_on: Union[int, bool]
    if_off: Union[int, bool]


@dataclass(frozen=True)
class Entry:
    group: str
    name: str
    description: str
    params: Dict[str, Any]
    expect: Union[int, bool, Toggle, Expectation]
    # config attribute that must be truthy ("!attr" for falsy) for the entry to run
    when: Optional[str] = None


LOCAL = Ref("local_image")
EXTERNAL = Ref("external_image")

OK = 200
REJECTED = 400

# Shell metacharacters pushed through the WebShot feature
WEBSHOT_METACHARS = ["$", "`", "\\", "|", ">", "<", ";", "&"]


# ============================================================================
# Scenario table
# ============================================================================
SCENARIO_TABLE: List[Entry] = [
    # -- Functionality
    Entry("Functionality", "Basic Local Image Resize",
          "Resizes a local image with valid dimensions and quality",
          {"src": LOCAL, "w": 100, "h": 100, "q": 90}, OK),
    Entry("Functionality", "External Image Fetch",
          "Fetches and resizes a remote image (rejected when external sources are disabled)",
          {"src": EXTERNAL, "w": 100, "h": 100, "q": 90}, Toggle("allow_external", OK, REJECTED)),
    Entry("Functionality", "Large Output Within Limits",
          "Resizes to a large but permitted size without exhausting memory",
          {"src": LOCAL, "w": 1000, "h": 1000}, OK),

    # -- Security
    Entry("Security", "Security: directory_traversal",
          "Relative path escaping the document root",
          {"src": "../../../etc/passwd", "w": 100, "h": 100}, REJECTED),
    Entry("Security", "Security: null_byte",
          "NUL byte used to truncate the extension check",
          {"src": "image.jpg\x00.php", "w": 100, "h": 100}, REJECTED),
    Entry("Security", "Security: null_byte_remote",
          "NUL byte appended to a remote image URL",
          {"src": "http://example.com/image.jpg\x00malicious", "w": 100, "h": 100}, REJECTED),
    Entry("Security", "Security: command_injection",
          "Shell command chained onto the source name",
          {"src": "image.jpg;id", "w": 100, "h": 100}, REJECTED),
    Entry("Security", "Security: invalid_scheme",
          "file:// scheme pointing at a system file",
          {"src": "file:///etc/passwd", "w": 100, "h": 100}, REJECTED),
    Entry("Security", "Security: ftp_scheme",
          "Non-HTTP remote scheme",
          {"src": "ftp://example.com/image.jpg", "w": 100, "h": 100}, REJECTED),
    Entry("Security", "Security: xss_attack",
          "Script markup in the source name",
          {"src": "<script>alert(1)</script>.jpg", "w": 100, "h": 100}, REJECTED),
    Entry("Security", "Security: remote_file_inclusion",
          "Remote PHP file as source",
          {"src": "http://evil.com/malicious.php", "w": 100, "h": 100}, REJECTED),
    Entry("Security", "Security: invalid_extension",
          "Local source with a non-image extension",
          {"src": "test.php", "w": 100, "h": 100}, REJECTED),
    Entry("Security", "Security: malformed_url",
          "URL with an empty host",
          {"src": "http:///malformed-url", "w": 100, "h": 100}, REJECTED),
    Entry("Security", "Security: not_a_url",
          "Source that is neither a known file nor a URL",
          {"src": "not_a_valid_url", "w": 100, "h": 100}, REJECTED),
    Entry("Security", "Security: data_uri",
          "data: URI carrying HTML instead of an image",
          {"src": "data:text/html,<script>alert('XSS')</script>", "w": 100, "h": 100}, REJECTED),
    Entry("Security", "Security: external_blocked",
          "Remote image requested while external sources are disabled",
          {"src": "http://example.com/nonallowed.jpg", "w": 100, "h": 100}, REJECTED,
          when="!allow_external"),

    # -- WebShot
    Entry("WebShot", "WebShot Basic Functionality",
          "Page screenshot of a plain URL (rejected when WebShot is disabled)",
          {"src": "http://example.com", "webshot": 1, "w": 100, "h": 100},
          Toggle("webshot_enabled", OK, REJECTED)),
    *[
        Entry("WebShot", f"WebShot Command Injection ({ch})",
              f"Shell metacharacter {ch!r} inside the WebShot URL",
              {"src": f"http://example.com{ch}malicious", "webshot": 1, "w": 100, "h": 100}, REJECTED)
        for ch in WEBSHOT_METACHARS
    ],
    Entry("WebShot", "WebShot URL Validation",
          "Malformed scheme passed to WebShot",
          {"src": "httpmalformed://example.com", "webshot": 1, "w": 100, "h": 100}, REJECTED),

    # -- System limits / error handling
    Entry("System", "System: Oversize Rejection",
          "Dimensions above the configured maximum",
          {"src": LOCAL, "w": 5000, "h": 5000}, REJECTED),
    Entry("System", "System: Maximum Size Limit",
          "Dimensions far above the configured maximum",
          {"src": LOCAL, "w": 10000, "h": 10000}, REJECTED),
    Entry("System", "Error Handling: Non-existent Image",
          "Local source that does not exist",
          {"src": "nonexistent.jpg", "w": 100, "h": 100}, REJECTED),

    # -- Cache
    Entry("Cache", "Cache: Initial Image Caching",
          "First request for a new size, populates the cache",
          {"src": LOCAL, "w": 150, "h": 150, "q": 90}, OK),
    Entry("Cache", "Cache: Debug Request",
          "Cached request with the debug flag set",
          {"src": LOCAL, "w": 50, "h": 50, "debug": "true"}, OK),
]


# ============================================================================
# Resolution
# ============================================================================
def _to_expectation(expect: Union[int, bool, Toggle, Expectation], config: HarnessConfig) -> Expectation:
    if isinstance(expect, Toggle):
        expect = expect.if_on if getattr(config, expect.flag) else expect.if_off
    if isinstance(expect, Expectation):
        return expect
    if isinstance(expect, bool):
        return Expectation.success(expect)
    return Expectation.status(expect)


def _enabled(entry: Entry, config: HarnessConfig) -> bool:
    if entry.when is None:
        return True
    if entry.when.startswith("!"):
        return not getattr(config, entry.when[1:])
    return bool(getattr(config, entry.when))


def _resolve_params(params: Dict[str, Any], config: HarnessConfig):
    resolved = []
    for key, value in params.items():
        if isinstance(value, Ref):
            value = getattr(config, value.attr)
        resolved.append((key, str(value)))
    return tuple(resolved)


def build_scenarios(config: HarnessConfig, table: Optional[List[Entry]] = None) -> List[Scenario]:
    """
    Resolve the table against ``config`` in table order. Entries whose
    ``when`` predicate is false are left out; duplicate names are refused.
    """
    entries = SCENARIO_TABLE if table is None else table
    scenarios: List[Scenario] = []
    seen = set()
    for entry in entries:
        if not _enabled(entry, config):
            continue
        if entry.name in seen:
            raise HarnessConfigurationError(f"Duplicate scenario name: {entry.name!r}")
        seen.add(entry.name)
        scenarios.append(Scenario(
            name=entry.name,
            description=entry.description,
            group=entry.group,
            params=_resolve_params(entry.params, config),
            expect=_to_expectation(entry.expect, config),
        ))
    return scenarios
