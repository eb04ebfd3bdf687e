from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from .evaluator import evaluate_dependency
from .manifest import Manifest
from .metadata import MetadataProvider, Resolved
from .policy import DEFAULT_POLICY, LicensePolicy
from .types import ComplianceReport, Dependency, EvaluationResult


logger = logging.getLogger(__name__)

MAX_WORKERS = 8


def merge_dependencies(
    dependencies: Optional[Mapping[str, str]],
    dev_dependencies: Optional[Mapping[str, str]],
) -> List[Dependency]:
    """Combine runtime and development dependencies.

    A name declared in both keeps its runtime position but takes the
    development version.
    """

    merged: Dict[str, str] = {}
    merged.update(dependencies or {})
    merged.update(dev_dependencies or {})
    return [Dependency(name=name, version_spec=spec) for name, spec in merged.items()]


def audit_dependency(
    dependency: Dependency,
    provider: MetadataProvider,
    policy: LicensePolicy = DEFAULT_POLICY,
) -> EvaluationResult:
    license_id = provider.lookup_license(dependency.name, dependency.version)

    repository = None
    stats = None
    repo_lookup = provider.lookup_repository(dependency.name, dependency.version)
    if isinstance(repo_lookup, Resolved):
        repository = repo_lookup.value
        stats_lookup = provider.lookup_repository_stats(repository)
        if isinstance(stats_lookup, Resolved):
            stats = stats_lookup.value
        else:
            logger.debug("No repository stats for %s: %s", dependency.spec, stats_lookup.reason)
    else:
        logger.debug("No repository for %s: %s", dependency.spec, repo_lookup.reason)

    return evaluate_dependency(dependency, license_id, repository, stats, policy)


def audit(
    manifest: Manifest,
    provider: MetadataProvider,
    policy: LicensePolicy = DEFAULT_POLICY,
    workers: int = 1,
    on_result: Optional[Callable[[EvaluationResult], None]] = None,
) -> ComplianceReport:
    """Evaluate every declared dependency and bucket the results.

    With ``workers > 1`` lookups run on a bounded thread pool; results are
    still appended to the report in manifest order from the calling thread.
    """

    dependencies = merge_dependencies(manifest.dependencies, manifest.dev_dependencies)
    report = ComplianceReport(project_name=manifest.name, project_version=manifest.version)

    def _run(dependency: Dependency) -> EvaluationResult:
        return audit_dependency(dependency, provider, policy)

    workers = max(1, min(workers, MAX_WORKERS))
    if workers == 1:
        _collect(report, map(_run, dependencies), on_result)
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            _collect(report, executor.map(_run, dependencies), on_result)

    return report


def _collect(
    report: ComplianceReport,
    results: Iterable[EvaluationResult],
    on_result: Optional[Callable[[EvaluationResult], None]],
) -> None:
    for result in results:
        report.add(result)
        if on_result:
            on_result(result)
