import io
import json
import re
import shutil

import pytest

from thumbprobe.errors import HarnessConfigurationError, ThumbprobeError
from thumbprobe.models import Expectation, Observation, Scenario, Verdict
from thumbprobe.report import (
    ConsoleRenderer,
    HtmlRenderer,
    JsonRenderer,
    LogFileRenderer,
    Renderer,
    Reporter,
    RunContext,
    RunState,
)

LOG_LINE = re.compile(r"^\[\d{4}-\d\d-\d\d \d\d:\d\d:\d\d\] \[(INFO|PASS|FAIL)\] .+$")


class Recorder(Renderer):
    def __init__(self):
        self.events = []

    def begin(self, context):
        self.events.append(("begin", context.target))

    def section(self, group):
        self.events.append(("section", group))

    def record(self, scenario, observation, verdict, tally):
        self.events.append(("record", scenario.name, tally.total))

    def finish(self, summary):
        self.events.append(("finish", summary.total))

    def close(self):
        self.events.append(("close",))


def triple(name, group="Security", passed=True, src="<script>"):
    scenario = Scenario(name=name, description=f"{name} & co", group=group,
                        params=(("src", src),), expect=Expectation.status(400))
    observation = Observation(scenario=name, url=f"http://t/tt.php?src={src}",
                              status=400 if passed else 200, success=True, elapsed=0.0123)
    verdict = Verdict(name, passed, f"Expected status 400, got {observation.status}")
    return scenario, observation, verdict


def feed(reporter, triples):
    reporter.begin(RunContext(target="http://t/tt.php", scenario_count=len(triples), version="2.8"))
    for t in triples:
        reporter.record(*t)
    summary = reporter.finish()
    reporter.close()
    return summary


def test_reporter_keeps_arrival_order_and_tally():
    recorder = Recorder()
    reporter = Reporter([recorder])
    summary = feed(reporter, [triple("a", "Functionality"), triple("b", passed=False),
                              triple("c"), triple("d", "Cache")])

    assert summary.total == 4
    assert summary.passed == 3 and summary.failed == 1
    assert summary.failed_names == ["b"]
    assert [v.scenario for v in summary.verdicts] == ["a", "b", "c", "d"]
    assert recorder.events == [
        ("begin", "http://t/tt.php"),
        ("section", "Functionality"),
        ("record", "a", 1),
        ("section", "Security"),
        ("record", "b", 2),
        ("record", "c", 3),
        ("section", "Cache"),
        ("record", "d", 4),
        ("finish", 4),
        ("close",),
    ]
    assert reporter.state is RunState.DONE


def test_reporter_state_machine():
    reporter = Reporter([])
    with pytest.raises(RuntimeError):
        reporter.record(*triple("a"))
    with pytest.raises(RuntimeError):
        reporter.finish()
    reporter.begin(RunContext(target="t", scenario_count=0))
    summary = reporter.finish()
    assert summary.total == 0
    assert reporter.state is RunState.SUMMARIZED
    with pytest.raises(RuntimeError):
        reporter.record(*triple("a"))
    with pytest.raises(RuntimeError):
        reporter.finish()


def test_console_output():
    stream = io.StringIO()
    feed(Reporter([ConsoleRenderer(stream=stream, color=False, log_path="r.log")]),
         [triple("good"), triple("bad", passed=False)])
    out = stream.getvalue()

    assert "[1/2] [PASS] good (12.3 ms)" in out
    assert "[2/2] [FAIL] bad" in out
    assert "  └─ Expected status 400, got 200" in out
    assert "Security Tests:" in out
    assert "Total Tests: 2" in out
    assert "Failed: 1" in out
    assert "  -> bad" in out
    assert "See detailed results in: r.log" in out
    assert "\033[" not in out


def test_console_colors_failures_red():
    stream = io.StringIO()
    feed(Reporter([ConsoleRenderer(stream=stream, color=True)]), [triple("bad", passed=False)])
    assert "\033[31m[FAIL] bad\033[0m" in stream.getvalue()


def test_log_file_lines(tmp_path):
    path = tmp_path / "logs" / "results.log"
    feed(Reporter([LogFileRenderer(str(path))]), [triple("good"), triple("bad", passed=False)])
    lines = path.read_text(encoding="utf-8").splitlines()

    assert all(LOG_LINE.match(line) for line in lines)
    assert any("[PASS] good: Expected status 400, got 400" in line for line in lines)
    assert any("[FAIL] bad: Expected status 400, got 200" in line for line in lines)
    assert any("[INFO] Testing URL: http://t/tt.php?src=<script>" in line for line in lines)
    assert "Test Summary: total=2 passed=1 failed=1" in lines[-2]
    assert lines[-1].endswith("[FAIL] Failed: bad")


def test_log_file_appends_by_default(tmp_path):
    path = tmp_path / "results.log"
    feed(Reporter([LogFileRenderer(str(path))]), [triple("first")])
    first = len(path.read_text(encoding="utf-8").splitlines())
    feed(Reporter([LogFileRenderer(str(path))]), [triple("second")])
    assert len(path.read_text(encoding="utf-8").splitlines()) == 2 * first

    feed(Reporter([LogFileRenderer(str(path), mode="w")]), [triple("third")])
    assert len(path.read_text(encoding="utf-8").splitlines()) == first


def test_unopenable_log_file(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(HarnessConfigurationError):
        LogFileRenderer(str(blocker / "results.log"))


def test_html_report_escapes_payloads(tmp_path):
    path = tmp_path / "report.html"
    feed(Reporter([HtmlRenderer(str(path))]), [triple("xss", src="<script>alert(1)</script>"),
                                               triple("bad", passed=False)])
    doc = path.read_text(encoding="utf-8")

    assert doc.startswith("<!doctype html>")
    assert "<script>alert(1)</script>" not in doc
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in doc
    assert "failed: 1" in doc
    assert "<li>bad</li>" in doc


def test_html_to_stdout():
    stream = io.StringIO()
    feed(Reporter([HtmlRenderer("-", stream=stream)]), [triple("a")])
    assert "<html" in stream.getvalue()


def test_json_report(tmp_path):
    path = tmp_path / "report.json"
    feed(Reporter([JsonRenderer(str(path))]), [triple("a"), triple("b", passed=False)])
    data = json.loads(path.read_text(encoding="utf-8"))

    assert data["meta"]["target"] == "http://t/tt.php"
    assert data["meta"]["version"] == "2.8"
    assert data["summary"] == {"total": 2, "passed": 1, "failed": 1, "failed_scenarios": ["b"]}
    assert [r["name"] for r in data["results"]] == ["a", "b"]
    assert data["results"][1]["status"] == 200
    assert data["results"][0]["expected"] == "status 400"


def test_report_in_missing_directory(tmp_path):
    with pytest.raises(HarnessConfigurationError):
        HtmlRenderer(str(tmp_path / "missing" / "report.html"))


def test_report_path_that_is_a_directory(tmp_path):
    with pytest.raises(HarnessConfigurationError):
        JsonRenderer(str(tmp_path))


def test_report_write_failure_at_finish(tmp_path):
    outdir = tmp_path / "out"
    outdir.mkdir()
    renderer = HtmlRenderer(str(outdir / "report.html"))
    shutil.rmtree(outdir)
    with pytest.raises(ThumbprobeError):
        feed(Reporter([renderer]), [triple("a")])


def test_html_title_plain_punctuation():
    stream = io.StringIO()
    feed(Reporter([HtmlRenderer("-", stream=stream)]), [triple("a")])
    assert "<title>thumbprobe: TimThumb conformance report</title>" in stream.getvalue()
