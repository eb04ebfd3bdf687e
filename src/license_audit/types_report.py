from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from .types_dependencies import EvaluationResult, Verdict


class AuditStatus(str, Enum):
    SUCCESS = "success"
    NEEDS_REVIEW = "needs-review"
    REJECTED = "rejected"


@dataclass
class ComplianceReport:
    project_name: Optional[str] = None
    project_version: Optional[str] = None
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    approved: List[EvaluationResult] = field(default_factory=list)
    needs_review: List[EvaluationResult] = field(default_factory=list)
    rejected: List[EvaluationResult] = field(default_factory=list)

    def bucket(self, verdict: Verdict) -> List[EvaluationResult]:
        if verdict is Verdict.APPROVED:
            return self.approved
        if verdict is Verdict.NEEDS_REVIEW:
            return self.needs_review
        return self.rejected

    def add(self, result: EvaluationResult) -> None:
        if any(existing.name == result.name for existing in self.results):
            raise ValueError(f"{result.name} was already evaluated")
        self.bucket(result.verdict).append(result)

    @property
    def results(self) -> List[EvaluationResult]:
        return self.approved + self.needs_review + self.rejected

    @property
    def total(self) -> int:
        return len(self.approved) + len(self.needs_review) + len(self.rejected)

    @property
    def counts(self) -> dict[str, int]:
        return {
            Verdict.APPROVED.value: len(self.approved),
            Verdict.NEEDS_REVIEW.value: len(self.needs_review),
            Verdict.REJECTED.value: len(self.rejected),
        }

    @property
    def status(self) -> AuditStatus:
        """Rejections dominate review items; an empty report is a success."""

        if self.rejected:
            return AuditStatus.REJECTED
        if self.needs_review:
            return AuditStatus.NEEDS_REVIEW
        return AuditStatus.SUCCESS

    @property
    def project_label(self) -> str:
        return f"{self.project_name or 'unknown'}@{self.project_version or 'unknown'}"
