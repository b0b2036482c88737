from __future__ import annotations

from scenario_harness.domain.diagnostics import Diagnostic, Severity, StepLocation
from scenario_harness.domain.report import ScenarioReport


def _indent(text: str, prefix: str = "    ") -> list[str]:
    if not text:
        return [f"{prefix}<empty>"]
    return [f"{prefix}{line}" for line in text.splitlines()]


def render_summary(reports: list[ScenarioReport]) -> list[str]:
    lines: list[str] = []
    for report in reports:
        passed, _, declared = report.counts()
        status = "PASS" if report.passed else "FAIL"
        lines.append(f"{status} {report.name} ({passed}/{declared} steps passed)")
        if report.setup_failed:
            lines.append("  setup failed")
        for step in report.steps:
            lines.append(f"  {'PASS' if step.passed else 'FAIL'} {step.name}")
        for name in report.skipped_steps():
            lines.append(f"  SKIP {name}")
    total = len(reports)
    green = sum(1 for report in reports if report.passed)
    lines.append(f"{green}/{total} scenarios passed")
    return lines


def render_failures(reports: list[ScenarioReport]) -> list[str]:
    """Failure detail for standard error: expected vs actual, diff and stderr."""
    lines: list[str] = []
    for report in reports:
        for diag in report.diagnostics:
            if diag.severity == Severity.INFO:
                continue
            lines.extend(_render_diagnostic(diag))
        step = report.failed_step
        failure = step.failure if step else None
        if step is None or failure is None:
            continue
        lines.append(f"[{report.name}] step '{step.name}': {failure.kind.value}")
        lines.append(f"  command: {step.command}")
        if failure.message:
            lines.append(f"  {failure.message}")
        lines.append("  expected:")
        lines.extend(_indent(failure.expected))
        lines.append("  actual:")
        lines.extend(_indent(failure.actual))
        diff = failure.diff()
        if diff:
            lines.append("  diff:")
            lines.extend(_indent(diff))
        if failure.stderr:
            lines.append("  stderr:")
            lines.extend(_indent(failure.stderr.rstrip("\n")))
    return lines


def _render_diagnostic(diag: Diagnostic) -> list[str]:
    if diag.code in {"SETUP_FAILED", "TEARDOWN_FAILED"}:
        scenario = diag.location.scenario if isinstance(diag.location, StepLocation) else "?"
        lines = [f"[{scenario}] {diag.severity.value}: {diag.code}: {diag.message}"]
        details = diag.details or {}
        if details.get("error"):
            lines.append(f"  {details['error']}")
        if details.get("exit_code") is not None:
            lines.append(f"  exit status: {details['exit_code']}")
        stderr = str(details.get("stderr") or "")
        if stderr:
            lines.append("  stderr:")
            lines.extend(_indent(stderr.rstrip("\n")))
        return lines
    return []


def render_diagnostics(diagnostics: list[Diagnostic]) -> list[str]:
    """Non-run diagnostics (config, scenario files) in one-line form."""
    lines: list[str] = []
    for diag in diagnostics:
        where = ""
        location = diag.location
        path = getattr(location, "path", None)
        if path:
            line = getattr(location, "line", None)
            where = f"{path}:{line}: " if line else f"{path}: "
        lines.append(f"{where}{diag.severity.value}: {diag.code}: {diag.message}")
        if diag.hint:
            lines.append(f"  hint: {diag.hint}")
    return lines
