"""Harness configuration: defaults, environment overrides and validation."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urlparse

from thumbprobe.errors import HarnessConfigurationError

DEFAULT_BASE_URL = "http://localhost/timthumb.php"
DEFAULT_LOCAL_IMAGE = "images/test-image.jpg"
DEFAULT_EXTERNAL_IMAGE = "https://picsum.photos/200/300"
DEFAULT_TIMEOUT = 10.0
DEFAULT_LOG_PATH = "thumbprobe-results.log"
DEFAULT_USER_AGENT = "thumbprobe/1.0"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def parse_bool(raw: str, name: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise HarnessConfigurationError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class HarnessConfig:
    """
    Everything a run needs. Values come from (lowest to highest priority)
    the defaults below, environment variables, then CLI options.
    """

    base_url: str = DEFAULT_BASE_URL
    local_image: str = DEFAULT_LOCAL_IMAGE
    external_image: str = DEFAULT_EXTERNAL_IMAGE
    timeout: float = DEFAULT_TIMEOUT
    verify_ssl: bool = False
    follow_redirects: bool = False
    allow_external: bool = True
    webshot_enabled: bool = False
    log_path: str = DEFAULT_LOG_PATH
    log_mode: str = "a"
    script_path: Optional[str] = None
    preflight: bool = False
    html_path: Optional[str] = None
    json_path: Optional[str] = None
    user_agent: str = DEFAULT_USER_AGENT
    color: bool = True

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "HarnessConfig":
        env = os.environ if environ is None else environ
        config = cls()

        if env.get("TARGET_BASE_URL"):
            config.base_url = env["TARGET_BASE_URL"]
        if env.get("THUMBPROBE_LOCAL_IMAGE"):
            config.local_image = env["THUMBPROBE_LOCAL_IMAGE"]
        if env.get("THUMBPROBE_EXTERNAL_IMAGE"):
            config.external_image = env["THUMBPROBE_EXTERNAL_IMAGE"]
        if env.get("THUMBPROBE_TIMEOUT"):
            try:
                config.timeout = float(env["THUMBPROBE_TIMEOUT"])
            except ValueError:
                raise HarnessConfigurationError(
                    f"THUMBPROBE_TIMEOUT must be a number, got {env['THUMBPROBE_TIMEOUT']!r}"
                )
        if "THUMBPROBE_VERIFY_SSL" in env:
            config.verify_ssl = parse_bool(env["THUMBPROBE_VERIFY_SSL"], "THUMBPROBE_VERIFY_SSL")
        if "THUMBPROBE_ALLOW_EXTERNAL" in env:
            config.allow_external = parse_bool(env["THUMBPROBE_ALLOW_EXTERNAL"], "THUMBPROBE_ALLOW_EXTERNAL")
        if "THUMBPROBE_WEBSHOT" in env:
            config.webshot_enabled = parse_bool(env["THUMBPROBE_WEBSHOT"], "THUMBPROBE_WEBSHOT")
        if env.get("THUMBPROBE_LOG_FILE"):
            config.log_path = env["THUMBPROBE_LOG_FILE"]
        if env.get("THUMBPROBE_SCRIPT"):
            config.script_path = env["THUMBPROBE_SCRIPT"]
        if "NO_COLOR" in env:
            config.color = False
        return config

    def validate(self) -> "HarnessConfig":
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise HarnessConfigurationError(
                f"Target base URL must be an absolute http(s) URL, got {self.base_url!r}"
            )
        if self.timeout <= 0:
            raise HarnessConfigurationError(f"Timeout must be positive, got {self.timeout}")
        if self.log_mode not in ("a", "w"):
            raise HarnessConfigurationError(f"Log mode must be 'a' or 'w', got {self.log_mode!r}")
        if self.html_path == "-" and self.json_path == "-":
            raise HarnessConfigurationError("Only one of the HTML and JSON reports can go to stdout")
        return self
