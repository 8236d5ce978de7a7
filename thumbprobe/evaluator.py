"""Expected vs. actual: turns an Observation into a Verdict."""

from thumbprobe.models import STATUS, Expectation, Observation, Verdict


def _actual_status(observation: Observation) -> str:
    if observation.status is None:
        detail = f" ({observation.error})" if observation.error else ""
        return f"no response{detail}"
    return str(observation.status)


def evaluate(expect: Expectation, observation: Observation) -> Verdict:
    """
    Pure comparison. A missing status (no response line) never equals an
    expected code, 0 included.
    """
    if expect.kind == STATUS:
        passed = observation.status is not None and observation.status == expect.value
        message = f"Expected status {expect.value}, got {_actual_status(observation)}"
    else:
        passed = observation.success is expect.value
        actual = "fetch success" if observation.success else "fetch failure"
        message = f"Expected {expect.describe()}, got {actual} (status {_actual_status(observation)})"
    return Verdict(scenario=observation.scenario, passed=passed, message=message)
