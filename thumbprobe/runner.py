"""
thumbprobe.runner
=================
Issues exactly one GET per scenario and records what happened.

A non-2xx answer, a refused connection or a timeout is a data point, not a
harness error: ``probe`` always returns an Observation.
"""

import logging
import time
from typing import Iterable, Optional, Tuple

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from thumbprobe.config import HarnessConfig
from thumbprobe.errors import HarnessConfigurationError
from thumbprobe.models import Observation, Scenario

logger = logging.getLogger(__name__)


# ============================================================================
# URL building
# ============================================================================
def build_url(base_url: str, params: Iterable[Tuple[str, str]]) -> str:
    """
    Append ``params`` to ``base_url`` with every value percent-escaped.
    Payload characters (``/``, ``;``, ``&``, NUL, ``<`` ...) reach the target
    intact once it decodes the query string.
    """
    req = requests.PreparedRequest()
    req.prepare_url(base_url, list(params))
    return req.url


# ============================================================================
# Session
# ============================================================================
def make_session(config: HarnessConfig) -> requests.Session:
    """
    Session with the harness User-Agent and no transparent retries; each
    scenario is a single probe.
    """
    if not config.verify_ssl:
        # verification off: silence the per-request urllib3 warning
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    session = requests.Session()
    session.headers.update({"User-Agent": config.user_agent})
    adapter = HTTPAdapter(max_retries=Retry(total=0, read=False, raise_on_status=False))
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


# ============================================================================
# Runner
# ============================================================================
class RequestRunner:
    """
    Probes scenarios against ``config.base_url`` using a shared session.
    """

    def __init__(self, config: HarnessConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or make_session(config)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "RequestRunner":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def url_for(self, scenario: Scenario) -> str:
        return build_url(self.config.base_url, scenario.params)

    def probe(self, scenario: Scenario) -> Observation:
        url = self.url_for(scenario)
        status, success, error, elapsed = self.fetch(url)
        return Observation(
            scenario=scenario.name,
            url=url,
            status=status,
            success=success,
            elapsed=elapsed,
            error=error,
        )

    def fetch(self, url: str) -> Tuple[Optional[int], bool, Optional[str], float]:
        """
        GET ``url`` once. Returns (status, success, error, elapsed_seconds).
        ``status`` is None when no response line arrived; ``success`` is True
        only when the body could be read completely.
        """
        start = time.perf_counter()
        try:
            r = self.session.get(url, timeout=self.config.timeout, verify=self.config.verify_ssl,
                                 allow_redirects=self.config.follow_redirects, stream=True)
        except requests.RequestException as e:
            elapsed = time.perf_counter() - start
            logger.debug("Transport failure for %s: %s", url, e)
            return None, False, f"{type(e).__name__}: {e}", elapsed

        status = r.status_code
        try:
            r.content  # read the whole body
        except requests.RequestException as e:
            logger.debug("Body read failed for %s (status %s): %s", url, status, e)
            return status, False, f"{type(e).__name__}: {e}", time.perf_counter() - start
        finally:
            r.close()
        return status, True, None, time.perf_counter() - start


def check_reachable(runner: RequestRunner) -> int:
    """
    Preflight: one plain GET on the base URL. Any HTTP answer counts as
    reachable; a transport failure aborts the run.
    """
    status, _, error, _ = runner.fetch(runner.config.base_url)
    if status is None:
        raise HarnessConfigurationError(
            f"Target endpoint unreachable at {runner.config.base_url}: {error}"
        )
    return status
