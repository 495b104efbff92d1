"""Text rendering of run summaries for the CLI."""

from __future__ import annotations

from critical_css.pipeline import RunSummary


def render_summary(summary: RunSummary) -> str:
    """Render *summary* as the block printed at the end of a run.

    Example::

        --- Summary ---
        Generated: 1/2 critical CSS files

        Failed:
          - about/index: No critical CSS extracted
    """
    lines = [
        "--- Summary ---",
        f"Generated: {summary.successful}/{len(summary.results)} critical CSS files",
    ]
    failures = summary.failures
    if failures:
        lines.append("")
        lines.append("Failed:")
        lines.extend(f"  - {r.page.template}: {r.error}" for r in failures)
    return "\n".join(lines)
