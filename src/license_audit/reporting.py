from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List

import click
from jinja2 import Environment, select_autoescape

from .types import AuditStatus, ComplianceReport, EvaluationResult, Verdict


env = Environment(autoescape=select_autoescape(["html", "xml"]))

RULE = "=" * 80

VERDICT_MARKS = {
    Verdict.APPROVED: ("✓", "green"),
    Verdict.NEEDS_REVIEW: ("⚠", "yellow"),
    Verdict.REJECTED: ("✗", "red"),
}

SECTION_TITLES = {
    Verdict.APPROVED: "Approved Dependencies",
    Verdict.NEEDS_REVIEW: "Dependencies Needing Review",
    Verdict.REJECTED: "Rejected Dependencies",
}


def progress_mark(result: EvaluationResult) -> str:
    mark, colour = VERDICT_MARKS[result.verdict]
    return click.style(mark, fg=colour)


def status_message(report: ComplianceReport) -> str:
    status = report.status
    if status is AuditStatus.REJECTED:
        return f"ERROR: Found {len(report.rejected)} dependencies with non-compliant licenses"
    if status is AuditStatus.NEEDS_REVIEW:
        return f"WARNING: {len(report.needs_review)} dependencies need manual review for license compliance"
    return "SUCCESS: All dependencies are license compliant!"


def exit_code_for(status: AuditStatus) -> int:
    # Review items are surfaced as warnings and do not fail the pipeline.
    return 1 if status is AuditStatus.REJECTED else 0


def _rows(results: Iterable[EvaluationResult]) -> List[dict]:
    return [result.as_dict() for result in results]


def _md_cell(value: object) -> str:
    return str(value).replace("|", "\\|")


def render_text(report: ComplianceReport) -> str:
    lines = [
        "",
        RULE,
        "",
        click.style("Summary:", fg="blue"),
        f"{click.style('Approved:', fg='green')} {len(report.approved)}",
        f"{click.style('Needs Review:', fg='yellow')} {len(report.needs_review)}",
        f"{click.style('Rejected:', fg='red')} {len(report.rejected)}",
    ]

    for verdict in Verdict:
        bucket = report.bucket(verdict)
        if not bucket:
            continue
        mark, colour = VERDICT_MARKS[verdict]
        lines.append("")
        lines.append(click.style(f"{SECTION_TITLES[verdict]}:", fg=colour))
        for result in bucket:
            lines.append(f"  {mark} {result.dependency.spec}")
            lines.append(f"    License: {result.license}")
            lines.append(f"    Reason: {result.justification}")
            if verdict is Verdict.NEEDS_REVIEW and result.github_repository:
                lines.append(f"    GitHub: https://github.com/{result.github_repository}")

    status_colour = {
        AuditStatus.REJECTED: "red",
        AuditStatus.NEEDS_REVIEW: "yellow",
        AuditStatus.SUCCESS: "green",
    }[report.status]
    lines.append("")
    lines.append(click.style(status_message(report), fg=status_colour))
    return "\n".join(lines)


def render_json(report: ComplianceReport) -> str:
    payload = {
        "project": {"name": report.project_name, "version": report.project_version},
        "generated_at": report.generated_at.isoformat(),
        "status": report.status.value,
        "summary": {**report.counts, "total": report.total},
        "approved": _rows(report.approved),
        "needs_review": _rows(report.needs_review),
        "rejected": _rows(report.rejected),
    }
    return json.dumps(payload, indent=2)


def render_markdown(report: ComplianceReport) -> str:
    lines = [
        "# License Compliance Report",
        "",
        f"Project: {report.project_label}",
        f"Generated at: {report.generated_at.isoformat()}",
        f"Status: {report.status.value}",
        "",
        "| Approved | Needs Review | Rejected |",
        "| --- | --- | --- |",
        f"| {len(report.approved)} | {len(report.needs_review)} | {len(report.rejected)} |",
    ]

    for verdict in Verdict:
        bucket = report.bucket(verdict)
        lines.append(f"\n## {SECTION_TITLES[verdict]}\n")
        if not bucket:
            lines.append("None")
            continue
        lines.append("| Name | Version | License | Repository | Reason |")
        lines.append("| --- | --- | --- | --- | --- |")
        for row in _rows(bucket):
            cells = [row["name"], row["version"], row["license"], row["repository"] or "unknown", row["reason"]]
            lines.append("| " + " | ".join(_md_cell(cell) for cell in cells) + " |")

    lines.append("")
    lines.append(status_message(report))
    return "\n".join(lines)


def render_html(report: ComplianceReport) -> str:
    template = env.from_string(
        """
<!doctype html>
<html lang=\"en\">
<head>
  <meta charset=\"utf-8\" />
  <title>License Compliance Report</title>
  <style>
    body { font-family: Arial, sans-serif; margin: 2rem; }
    h1, h2 { color: #1f2937; }
    table { border-collapse: collapse; width: 100%; margin-bottom: 1.5rem; }
    th, td { border: 1px solid #d1d5db; padding: 0.5rem; }
    th { background: #f3f4f6; text-align: left; }
    .badge { display: inline-block; padding: 0.35rem 0.6rem; border-radius: 0.4rem; font-weight: 600; }
    .badge.success, .badge.approved { background: #d1fae5; color: #065f46; }
    .badge.needs-review { background: #fef3c7; color: #92400e; }
    .badge.rejected { background: #fee2e2; color: #991b1b; }
  </style>
</head>
<body>
  <h1>License Compliance Report</h1>
  <p>Project: {{ project }}</p>
  <p>Generated at: {{ generated_at }}</p>
  <p>Status: <span class=\"badge {{ status }}\">{{ message }}</span></p>
  {% for section in sections %}
  <section>
    <h2>{{ section.title }} ({{ section.rows | length }})</h2>
    {% if section.rows %}
    <table>
      <thead><tr><th>Name</th><th>Version</th><th>License</th><th>Repository</th><th>Reason</th></tr></thead>
      <tbody>
        {% for row in section.rows %}
        <tr>
          <td>{{ row.name }}</td>
          <td>{{ row.version }}</td>
          <td><span class=\"badge {{ row.verdict }}\">{{ row.license }}</span></td>
          <td>{% if row.repository %}<a href=\"https://github.com/{{ row.repository }}\">{{ row.repository }}</a>{% else %}unknown{% endif %}</td>
          <td>{{ row.reason }}</td>
        </tr>
        {% endfor %}
      </tbody>
    </table>
    {% else %}
    <p>None</p>
    {% endif %}
  </section>
  {% endfor %}
</body>
</html>
"""
    )

    return template.render(
        project=report.project_label,
        generated_at=report.generated_at.isoformat(),
        status=report.status.value,
        message=status_message(report),
        sections=[
            {"title": SECTION_TITLES[verdict], "rows": _rows(report.bucket(verdict))}
            for verdict in Verdict
        ],
    )


def render_report(report: ComplianceReport, fmt: str) -> str:
    fmt = fmt.lower()
    if fmt == "text":
        return render_text(report)
    if fmt == "json":
        return render_json(report)
    if fmt in {"md", "markdown"}:
        return render_markdown(report)
    if fmt == "html":
        return render_html(report)
    raise ValueError(f"Unknown report format: {fmt}")


def write_report(report: ComplianceReport, fmt: str, destination: Path | None) -> str:
    output = render_report(report, fmt)
    if destination:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(click.unstyle(output), encoding="utf-8")
    return output


def write_github_check(path: Path, report: ComplianceReport) -> None:
    payload = {
        "conclusion": "failure" if report.status is AuditStatus.REJECTED else "success",
        "summary": status_message(report),
        "status": report.status.value,
        "counts": report.counts,
        "rejected": [result.name for result in report.rejected],
        "needs_review": [result.name for result in report.needs_review],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2))
