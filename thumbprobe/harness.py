"""
thumbprobe.harness
==================
Wires the scenario table, runner, evaluator and reporter into a run.

Scenarios execute one at a time, in table order; a scenario's verdict is
recorded before the next request is sent.
"""

import logging
import os
import re
import sys
import time
from typing import IO, List, Optional, Sequence

from thumbprobe.config import HarnessConfig
from thumbprobe.errors import HarnessConfigurationError
from thumbprobe.evaluator import evaluate
from thumbprobe.models import RunSummary, Scenario
from thumbprobe.report import (
    ConsoleRenderer,
    HtmlRenderer,
    JsonRenderer,
    LogFileRenderer,
    Renderer,
    Reporter,
    RunContext,
)
from thumbprobe.runner import RequestRunner, check_reachable
from thumbprobe.scenarios import build_scenarios

logger = logging.getLogger(__name__)

VERSION_RE = re.compile(r"define\s*\(\s*'VERSION'\s*,\s*'([^']+)'")


def read_script_version(path: str) -> str:
    """
    Read ``define('VERSION', '...')`` from a local copy of the target
    script. A missing file is fatal; a file without the define is "Unknown".
    """
    if not os.path.isfile(path):
        raise HarnessConfigurationError(f"TimThumb script not found at: {path}")
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as fh:
            contents = fh.read()
    except OSError as e:
        raise HarnessConfigurationError(f"Could not read TimThumb script at {path}: {e}") from e
    m = VERSION_RE.search(contents)
    return m.group(1) if m else "Unknown"


def build_renderers(config: HarnessConfig, stream: Optional[IO[str]] = None) -> List[Renderer]:
    """
    Console always; log file always; HTML / JSON when a path is configured.
    Every sink is opened here so a bad path fails before any request. When a
    document goes to stdout ("-"), console lines move to stderr.
    """
    stream = stream or sys.stdout
    if "-" in (config.html_path, config.json_path):
        console_stream = sys.stderr
    else:
        console_stream = stream

    renderers: List[Renderer] = [
        ConsoleRenderer(stream=console_stream, color=config.color, log_path=config.log_path),
    ]
    try:
        renderers.append(LogFileRenderer(config.log_path, mode=config.log_mode))
        if config.html_path:
            renderers.append(HtmlRenderer(config.html_path, stream=stream))
        if config.json_path:
            renderers.append(JsonRenderer(config.json_path, stream=stream))
    except HarnessConfigurationError:
        for r in renderers:
            r.close()
        raise
    return renderers


def run_scenarios(scenarios: Sequence[Scenario], runner: RequestRunner, reporter: Reporter,
                  context: RunContext) -> RunSummary:
    """Probe, judge and report each scenario in order; return the final summary."""
    reporter.begin(context)
    for scenario in scenarios:
        observation = runner.probe(scenario)
        verdict = evaluate(scenario.expect, observation)
        reporter.record(scenario, observation, verdict)
    return reporter.finish()


def run(config: HarnessConfig, stream: Optional[IO[str]] = None,
        runner: Optional[RequestRunner] = None) -> RunSummary:
    """
    Full run. Configuration problems raise HarnessConfigurationError before
    the first scenario; everything after that ends up in the summary.
    """
    config.validate()
    scenarios = build_scenarios(config)
    version = read_script_version(config.script_path) if config.script_path else None

    runner = runner or RequestRunner(config)
    with runner:
        if config.preflight:
            status = check_reachable(runner)
            logger.debug("Preflight answered with status %s", status)

        reporter = Reporter(build_renderers(config, stream))
        try:
            context = RunContext(target=config.base_url, scenario_count=len(scenarios),
                                 version=version, started_at=time.time())
            return run_scenarios(scenarios, runner, reporter, context)
        finally:
            reporter.close()
