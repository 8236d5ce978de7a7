"""
thumbprobe.report
=================
Reporter and its renderers.

The Reporter receives one (scenario, observation, verdict) triple at a time,
folds the verdict into the running RunSummary and forwards everything, in
arrival order, to each renderer:

  - ConsoleRenderer : coloured PASS/FAIL lines + final summary
  - LogFileRenderer : "[timestamp] [TAG] message" lines via logging
  - HtmlRenderer    : standalone styled document, written once at finish
  - JsonRenderer    : machine-readable document, written once at finish
"""

import enum
import html
import json
import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import IO, Any, Dict, List, Optional, Sequence

from thumbprobe.errors import HarnessConfigurationError, ThumbprobeError
from thumbprobe.models import Observation, RunSummary, Scenario, Verdict, accumulate


# ============================================================================
# Console color helpers
# ============================================================================
class C:
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    BOLD = "\033[1m"
    RESET = "\033[0m"

def c_ok(s): return f"{C.GREEN}{s}{C.RESET}"
def c_warn(s): return f"{C.YELLOW}{s}{C.RESET}"
def c_bad(s): return f"{C.RED}{s}{C.RESET}"
def c_info(s): return f"{C.CYAN}{s}{C.RESET}"
def c_head(s): return f"{C.BOLD}{s}{C.RESET}"


# ============================================================================
# Run context
# ============================================================================
@dataclass(frozen=True)
class RunContext:
    """Static facts about a run, known before the first scenario."""
    target: str
    scenario_count: int
    version: Optional[str] = None
    started_at: float = 0.0


# ============================================================================
# Renderers
# ============================================================================
class Renderer:
    """Base renderer; every hook is optional."""

    def begin(self, context: RunContext) -> None:
        pass

    def section(self, group: str) -> None:
        pass

    def record(self, scenario: Scenario, observation: Observation, verdict: Verdict,
               tally: RunSummary) -> None:
        pass

    def finish(self, summary: RunSummary) -> None:
        pass

    def close(self) -> None:
        pass


class ConsoleRenderer(Renderer):

    def __init__(self, stream: Optional[IO[str]] = None, color: bool = True,
                 log_path: Optional[str] = None):
        self.stream = stream or sys.stdout
        self.color = color
        self.log_path = log_path
        self.count = 0

    def _paint(self, fn, s: str) -> str:
        return fn(s) if self.color else s

    def _out(self, line: str = "") -> None:
        print(line, file=self.stream)

    def begin(self, context: RunContext) -> None:
        self.count = context.scenario_count
        self._out(self._paint(c_head, "== thumbprobe: TimThumb conformance checks =="))
        self._out(self._paint(c_warn, "[!] ONLY run this tool against systems you are authorized to test."))
        self._out(self._paint(c_info, f"[*] Target: {context.target}"))
        if context.version:
            self._out(self._paint(c_info, f"[*] TimThumb version: {context.version}"))
        self._out(self._paint(c_info, f"[*] {context.scenario_count} scenarios queued"))

    def section(self, group: str) -> None:
        self._out(self._paint(c_info, f"\n{group} Tests:"))

    def record(self, scenario, observation, verdict, tally) -> None:
        progress = f"[{tally.total}/{self.count}]"
        timing = f"({observation.elapsed_ms} ms)"
        if verdict.passed:
            self._out(f"{progress} {self._paint(c_ok, '[PASS] ' + scenario.name)} {timing}")
        else:
            self._out(f"{progress} {self._paint(c_bad, '[FAIL] ' + scenario.name)} {timing}")
            self._out(f"  └─ {verdict.message}")

    def finish(self, summary: RunSummary) -> None:
        self._out(self._paint(c_head, "\n=== SUMMARY ==="))
        self._out(f"Total Tests: {summary.total}")
        self._out(self._paint(c_ok, f"Passed: {summary.passed}"))
        self._out(self._paint(c_bad if summary.failed else c_ok, f"Failed: {summary.failed}"))
        if summary.failed:
            self._out(self._paint(c_bad, "[!] Failed tests:"))
            for name in summary.failed_names:
                self._out(self._paint(c_bad, f"  -> {name}"))
        else:
            self._out(self._paint(c_ok, "[+] All scenarios behaved as expected."))
        if self.log_path:
            self._out(f"See detailed results in: {self.log_path}")


class LogFileRenderer(Renderer):
    """
    Append-only results log, one line per event:

        [2025-01-31 12:00:00] [PASS] Security: null_byte: Expected status 400, got 400
    """

    LOGGER_NAME = "thumbprobe.results"
    FORMAT = "[%(asctime)s] [%(tag)s] %(message)s"
    DATEFMT = "%Y-%m-%d %H:%M:%S"

    def __init__(self, path: str, mode: str = "a"):
        self.path = path
        try:
            parent = os.path.dirname(os.path.abspath(path))
            os.makedirs(parent, exist_ok=True)
            self.handler = logging.FileHandler(path, mode=mode, encoding="utf-8")
        except OSError as e:
            raise HarnessConfigurationError(f"Could not open log file at {path}: {e}") from e
        self.handler.setFormatter(logging.Formatter(self.FORMAT, datefmt=self.DATEFMT))
        self.logger = logging.getLogger(self.LOGGER_NAME)
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False
        self.logger.addHandler(self.handler)

    def _log(self, tag: str, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, message, extra={"tag": tag})

    def begin(self, context: RunContext) -> None:
        self._log("INFO", f"Starting TimThumb conformance run against {context.target}")
        if context.version:
            self._log("INFO", f"TimThumb version {context.version}")

    def section(self, group: str) -> None:
        self._log("INFO", f"Starting {group} Tests")

    def record(self, scenario, observation, verdict, tally) -> None:
        self._log("INFO", f"Testing URL: {observation.url}")
        if verdict.passed:
            self._log("PASS", f"{scenario.name}: {verdict.message} [{observation.elapsed_ms} ms]")
        else:
            self._log("FAIL", f"{scenario.name}: {verdict.message} [{observation.elapsed_ms} ms]",
                      level=logging.WARNING)

    def finish(self, summary: RunSummary) -> None:
        self._log("INFO", f"Test Summary: total={summary.total} passed={summary.passed} "
                          f"failed={summary.failed}")
        for name in summary.failed_names:
            self._log("FAIL", f"Failed: {name}", level=logging.WARNING)

    def close(self) -> None:
        self.logger.removeHandler(self.handler)
        self.handler.close()


class _DocumentRenderer(Renderer):
    """Buffers every record and writes a single document at finish."""

    def __init__(self, path: str, stream: Optional[IO[str]] = None):
        if path != "-":
            self._check_writable(path)
        self.path = path
        self.stream = stream or sys.stdout
        self.context: Optional[RunContext] = None
        self.rows: List[Dict[str, Any]] = []

    def begin(self, context: RunContext) -> None:
        self.context = context

    def record(self, scenario, observation, verdict, tally) -> None:
        self.rows.append({
            "name": scenario.name,
            "group": scenario.group,
            "description": scenario.description,
            "expected": scenario.expect.describe(),
            "url": observation.url,
            "status": observation.status,
            "success": observation.success,
            "elapsed_ms": observation.elapsed_ms,
            "error": observation.error,
            "passed": verdict.passed,
            "message": verdict.message,
        })

    @staticmethod
    def _check_writable(path: str) -> None:
        if not os.path.isdir(os.path.dirname(os.path.abspath(path))):
            raise HarnessConfigurationError(f"Report directory does not exist for {path}")
        if os.path.isdir(path):
            raise HarnessConfigurationError(f"Report path is a directory: {path}")
        try:
            with open(path, "a", encoding="utf-8"):
                pass
        except OSError as e:
            raise HarnessConfigurationError(f"Could not open report file at {path}: {e}") from e

    def render(self, summary: RunSummary) -> str:
        raise NotImplementedError

    def finish(self, summary: RunSummary) -> None:
        doc = self.render(summary)
        if self.path == "-":
            self.stream.write(doc)
            self.stream.write("\n")
            return
        try:
            with open(self.path, "w", encoding="utf-8") as fh:
                fh.write(doc)
        except OSError as e:
            raise ThumbprobeError(f"Could not write report to {self.path}: {e}") from e


class JsonRenderer(_DocumentRenderer):

    def render(self, summary: RunSummary) -> str:
        ctx = self.context
        return json.dumps({
            "meta": {
                "target": ctx.target if ctx else None,
                "version": ctx.version if ctx else None,
                "started_at": int(ctx.started_at) if ctx else None,
                "generated_at": int(time.time()),
            },
            "summary": summary.to_dict(),
            "results": self.rows,
        }, indent=2)


class HtmlRenderer(_DocumentRenderer):
    """
    Dark card layout:
      - sticky header with target and totals
      - "only failures" filter
      - one card per scenario, red/green left border
    """

    CSS = r"""
:root {
  --bg: #080f1f; --card: #0b162c; --muted: #94a3b8; --text: #e6eef6;
  --accent: #60a5fa; --good: #34d399; --bad: #f87171; --code: #fbbf24;
  --line: rgba(148, 163, 184, 0.35);
}
* { box-sizing: border-box; }
body {
  margin: 0; background: var(--bg); color: var(--text); line-height: 1.55;
  font-family: Inter, ui-sans-serif, system-ui, -apple-system, "Segoe UI", Roboto, Arial;
}
.container { padding: 24px; max-width: 1100px; margin: 0 auto; }
.sticky {
  position: sticky; top: 0; z-index: 50; padding: 16px 24px;
  background: rgba(8, 15, 31, 0.95); border-bottom: 1px solid var(--line);
}
h1.title { color: #bfdbfe; font-size: 22px; font-weight: 600; margin: 0 0 8px 0; }
h2.group { font-size: 16px; color: var(--muted); margin: 28px 0 8px 0; }
.row { display: flex; gap: 10px; align-items: center; flex-wrap: wrap; }
.badge {
  padding: 4px 10px; border-radius: 999px; font-size: 12px;
  border: 1px solid var(--line); color: var(--muted);
}
.badge.pass { color: #bbf7d0; } .badge.fail { color: #fecaca; }
.card {
  background: var(--card); border: 1px solid var(--line); border-radius: 14px;
  padding: 14px 18px; margin: 12px 0;
}
.card.pass { border-left: 4px solid var(--good); }
.card.fail { border-left: 4px solid var(--bad); }
.status { font-weight: 700; }
.card.pass .status { color: var(--good); } .card.fail .status { color: var(--bad); }
code { color: var(--code); font-size: 0.95em; word-break: break-all; }
.small { font-size: 12px; color: var(--muted); }
"""

    JS = r"""
function filterRows() {
  const onlyFail = document.getElementById('onlyFail').checked;
  document.querySelectorAll('.scenario').forEach(p => {
    p.style.display = (onlyFail && p.dataset.passed === 'true') ? 'none' : '';
  });
}
"""

    def render(self, summary: RunSummary) -> str:
        ctx = self.context
        target = ctx.target if ctx else ""
        version = ctx.version if ctx and ctx.version else "Unknown"

        body: List[str] = []
        current_group = None
        for row in self.rows:
            if row["group"] != current_group:
                current_group = row["group"]
                body.append(f"<h2 class='group'>{html.escape(current_group)} Tests</h2>")
            klass = "pass" if row["passed"] else "fail"
            body.append(f"""
<div class="card scenario {klass}" data-passed="{str(row['passed']).lower()}">
  <div class="row">
    <span class="status">{klass.upper()}</span>
    <b>{html.escape(row['name'])}</b>
    <span class="small">{row['elapsed_ms']} ms</span>
  </div>
  <p class="small">{html.escape(row['description'])}</p>
  <p>Testing URL: <code>{html.escape(row['url'])}</code></p>
  <p>{html.escape(row['message'])}</p>
</div>""")

        failed_list = ""
        if summary.failed:
            items = "".join(f"<li>{html.escape(n)}</li>" for n in summary.failed_names)
            failed_list = f"<div class='card fail'><b>Failed tests</b><ul>{items}</ul></div>"

        return f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>thumbprobe: TimThumb conformance report</title>
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <style>{self.CSS}</style>
</head>
<body>
<div class="sticky">
  <h1 class="title">thumbprobe: TimThumb conformance report</h1>
  <div class="row">
    <span class="badge">target: <code>{html.escape(target)}</code></span>
    <span class="badge">version: {html.escape(version)}</span>
    <span class="badge">total: {summary.total}</span>
    <span class="badge pass">passed: {summary.passed}</span>
    <span class="badge fail">failed: {summary.failed}</span>
    <label class="row small"><input id="onlyFail" type="checkbox" onchange="filterRows()"> Only failures</label>
  </div>
</div>
<div class="container">
  {failed_list}
  {"".join(body) if body else "<div class='card'>No scenarios.</div>"}
</div>
<script>{self.JS}</script>
</body>
</html>"""


# ============================================================================
# Reporter
# ============================================================================
class RunState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUMMARIZED = "summarized"
    DONE = "done"


class Reporter:
    """
    Fans events out to renderers and keeps the running tally.

    Lifecycle: IDLE -> begin() -> RUNNING -> record()* -> finish() ->
    SUMMARIZED -> close() -> DONE. Calls out of order raise RuntimeError.
    """

    def __init__(self, renderers: Sequence[Renderer]):
        self.renderers = list(renderers)
        self.state = RunState.IDLE
        self.tally = RunSummary()
        self._group: Optional[str] = None

    def _require(self, state: RunState, action: str) -> None:
        if self.state is not state:
            raise RuntimeError(f"Cannot {action} while reporter is {self.state.value}")

    def begin(self, context: RunContext) -> None:
        self._require(RunState.IDLE, "begin")
        self.state = RunState.RUNNING
        for r in self.renderers:
            r.begin(context)

    def record(self, scenario: Scenario, observation: Observation, verdict: Verdict) -> RunSummary:
        self._require(RunState.RUNNING, "record")
        if scenario.group != self._group:
            self._group = scenario.group
            for r in self.renderers:
                r.section(scenario.group)
        self.tally = accumulate(self.tally, verdict)
        for r in self.renderers:
            r.record(scenario, observation, verdict, self.tally)
        return self.tally

    def finish(self) -> RunSummary:
        self._require(RunState.RUNNING, "finish")
        self.state = RunState.SUMMARIZED
        for r in self.renderers:
            r.finish(self.tally)
        return self.tally

    def close(self) -> None:
        if self.state is RunState.DONE:
            return
        self.state = RunState.DONE
        for r in self.renderers:
            r.close()
