from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .policy import DEFAULT_POLICY, LicensePolicy
from .types import Dependency, EvaluationResult, InvalidInputError, RepositoryStats, Verdict


@dataclass(frozen=True)
class Evaluation:
    verdict: Verdict
    justification: str


def _adoption_figures(stats: RepositoryStats) -> str:
    return f"{stats.stars} stars, {stats.forks} forks, {stats.age_months} months old"


def evaluate(
    license_id: str,
    stats: Optional[RepositoryStats],
    policy: LicensePolicy = DEFAULT_POLICY,
) -> Evaluation:
    """Classify a single license against ``policy``.

    Rules are applied in order and the first match wins:

    1. auto-approved licenses pass without looking at ``stats``;
    2. conditionally approved licenses pass only when repository statistics
       are known and clear the adoption gate, otherwise they need review;
    3. everything else, including the unknown sentinel, is rejected.
    """

    if stats is not None and not isinstance(stats, RepositoryStats):
        raise InvalidInputError(f"expected RepositoryStats or None, got {type(stats).__name__}")

    if policy.is_auto_approved(license_id):
        return Evaluation(Verdict.APPROVED, f"{license_id} license (automatically approved)")

    if policy.is_conditionally_approved(license_id):
        if stats is None:
            return Evaluation(
                Verdict.NEEDS_REVIEW,
                f"{license_id} license (approved) but unable to verify substantial use",
            )
        if policy.passes_adoption_gate(stats):
            return Evaluation(
                Verdict.APPROVED,
                f"{license_id} license with substantial use ({_adoption_figures(stats)})",
            )
        return Evaluation(
            Verdict.NEEDS_REVIEW,
            f"{license_id} license but insufficient adoption ({_adoption_figures(stats)})",
        )

    return Evaluation(Verdict.REJECTED, f"{license_id} license is not on the approved list")


def evaluate_dependency(
    dependency: Dependency,
    license_id: str,
    repository: Optional[str] = None,
    stats: Optional[RepositoryStats] = None,
    policy: LicensePolicy = DEFAULT_POLICY,
) -> EvaluationResult:
    outcome = evaluate(license_id, stats, policy)
    return EvaluationResult(
        dependency=dependency,
        license=license_id,
        verdict=outcome.verdict,
        justification=outcome.justification,
        repository=repository,
        stats=stats,
    )
