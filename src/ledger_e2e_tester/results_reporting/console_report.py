"""Console summary rendering."""

from __future__ import annotations

import click

from .report_models import SuiteResults

_RULE = "-" * 50


def render_report(results: SuiteResults) -> str:
    """Render the suite summary: counts, one line per executed case, dismissal reasons."""
    lines = [
        "",
        click.style(
            f"Test suite status - executed a total of {len(results.executed)} test case(s) "
            f"in {results.duration}",
            bold=True,
            reverse=True,
        ),
        "",
        click.style("Summary:", bold=True),
        _RULE,
        f"{click.style('Successful:', fg='green')} {results.successful_count}",
        f"{click.style('Failed:', fg='red')} {results.failed_count}",
        f"{click.style('Dismissed:', fg='yellow')} {results.dismissed_count}",
        _RULE,
    ]

    if results.executed:
        lines.extend(["", click.style("Executed test cases:", bold=True), _RULE])
        for testcase in results.executed:
            outcome = (
                click.style("success", fg="green")
                if testcase.successful
                else click.style("failed", fg="red")
            )
            lines.append(f"Testcase {testcase.name}: {outcome}")
            if not testcase.successful:
                lines.extend(f"    {message}" for message in testcase.errors)
        lines.append(_RULE)

    if results.dismissed:
        lines.extend(
            ["", click.style("Test cases that weren't executed/were dismissed:", bold=True), _RULE]
        )
        for testcase in results.dismissed:
            reason = click.style(testcase.dismissal, fg="yellow")
            lines.append(f"Testcase {testcase.name} - Reason: {reason}")
        lines.append(_RULE)
    return "\n".join(lines)
