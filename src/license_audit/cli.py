from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import click

from .auditor import MAX_WORKERS, audit
from .manifest import MANIFEST_NAME, ManifestError, load_manifest
from .metadata import RegistryMetadataProvider
from .policy import PolicyError, load_policy
from .reporting import exit_code_for, progress_mark, write_github_check, write_report
from .types import EvaluationResult


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("source", default=".", required=False)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["text", "json", "markdown", "md", "html"], case_sensitive=False),
    default="text",
    show_default=True,
    help="Output format for the report.",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, writable=True, path_type=str),
    help="Write the report to a file instead of stdout.",
)
@click.option(
    "--policy",
    type=click.Path(exists=True, dir_okay=False, path_type=str),
    help="YAML policy file overriding the built-in license allowlist and adoption thresholds.",
)
@click.option(
    "--workers",
    type=click.IntRange(1, MAX_WORKERS),
    default=1,
    show_default=True,
    help="Number of dependencies to look up concurrently.",
)
@click.option(
    "--github-check-output",
    type=click.Path(dir_okay=False, writable=True, path_type=str),
    help="Write a GitHub Check-style JSON summary for PR gating.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log metadata lookups and failures.")
def main(
    source: str,
    fmt: str,
    output: Optional[str],
    policy: Optional[str],
    workers: int,
    github_check_output: Optional[str],
    verbose: bool,
) -> None:
    """Verify that a project's npm dependencies comply with the license policy.

    SOURCE is a local directory, a GitHub URL or an owner/repo shorthand
    (default: current directory).

    \b
    Examples:
      license-audit
      license-audit /path/to/project
      license-audit https://github.com/hashgraph-online/standards-sdk
      license-audit hashgraph-online/standards-sdk
    """

    _configure_logging(verbose)
    fmt = fmt.lower()
    # Machine-readable formats keep stdout clean; progress goes to stderr.
    chatter_to_stderr = fmt != "text"

    click.echo(click.style("License Compliance Verification", fg="blue") + "\n", err=chatter_to_stderr)

    try:
        license_policy = load_policy(Path(policy) if policy else None)
    except PolicyError as exc:
        click.echo(f"{click.style('Error reading policy:', fg='red')} {exc}", err=True)
        raise SystemExit(1)

    try:
        manifest = load_manifest(source)
    except ManifestError as exc:
        click.echo(f"{click.style(f'Error reading {MANIFEST_NAME}:', fg='red')} {exc}", err=True)
        raise SystemExit(1)

    total = len(set(manifest.dependencies) | set(manifest.dev_dependencies))
    click.echo(f"Project: {manifest.name}@{manifest.version}", err=chatter_to_stderr)
    click.echo(f"Checking {total} dependencies...\n", err=chatter_to_stderr)

    def _progress(result: EvaluationResult) -> None:
        click.echo(f"Checking {result.name}... {progress_mark(result)}", err=chatter_to_stderr)

    report = audit(
        manifest,
        RegistryMetadataProvider(),
        policy=license_policy,
        workers=workers,
        on_result=_progress,
    )

    destination = Path(output) if output else None
    rendered = write_report(report, fmt, destination)
    if destination:
        click.echo(f"Report written to {destination}", err=chatter_to_stderr)
    else:
        click.echo(rendered)

    if github_check_output:
        write_github_check(Path(github_check_output), report)

    code = exit_code_for(report.status)
    if code:
        raise SystemExit(code)


if __name__ == "__main__":
    main()
