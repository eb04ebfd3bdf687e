from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


UNKNOWN_LICENSE = "Unknown"

DAYS_PER_MONTH = 30

_RANGE_PREFIX = re.compile(r"^[\^~=<>v\s]+")


class InvalidInputError(ValueError):
    """Raised when a record is built from structurally invalid values."""


class Verdict(str, Enum):
    APPROVED = "approved"
    NEEDS_REVIEW = "needs-review"
    REJECTED = "rejected"


def clean_version(version_spec: str) -> str:
    """Strip range decorators and keep the first explicit version token.

    ``"^1.2.3"`` becomes ``"1.2.3"`` and ``">=1.0.0 <2.0.0"`` becomes
    ``"1.0.0"``. Specs without a token (``""``) are returned unchanged.
    """

    stripped = _RANGE_PREFIX.sub("", version_spec.strip())
    tokens = stripped.split()
    return tokens[0] if tokens else stripped


def months_since(created_at: datetime, now: Optional[datetime] = None) -> int:
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    elapsed_days = (current - created_at).total_seconds() / 86400
    return max(0, int(elapsed_days // DAYS_PER_MONTH))


@dataclass(frozen=True)
class Dependency:
    name: str
    version_spec: str

    @property
    def version(self) -> str:
        return clean_version(self.version_spec)

    @property
    def spec(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class RepositoryStats:
    stars: int
    forks: int
    age_months: int
    repository: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        for field_name in ("stars", "forks", "age_months"):
            value = getattr(self, field_name)
            # bool is an int subclass but never a valid count
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidInputError(f"{field_name} must be an integer, got {value!r}")
            if value < 0:
                raise InvalidInputError(f"{field_name} must be non-negative, got {value}")

    @classmethod
    def from_github(cls, payload: dict, repository: str, now: Optional[datetime] = None) -> "RepositoryStats":
        """Build stats from a GitHub ``repos/<owner>/<name>`` payload.

        Raises ``InvalidInputError`` when any of the required fields is
        missing or malformed so a partial payload never reaches the evaluator.
        """

        try:
            stars = payload["stargazers_count"]
            forks = payload["forks_count"]
            created_raw = payload["created_at"]
        except (KeyError, TypeError) as exc:
            raise InvalidInputError(f"incomplete repository payload for {repository}: {exc}") from exc

        try:
            created_at = datetime.fromisoformat(str(created_raw).replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidInputError(f"unparseable created_at {created_raw!r}") from exc

        return cls(
            stars=stars,
            forks=forks,
            age_months=months_since(created_at, now),
            repository=repository,
            created_at=created_at,
        )


@dataclass(frozen=True)
class EvaluationResult:
    dependency: Dependency
    license: str
    verdict: Verdict
    justification: str
    repository: Optional[str] = None
    stats: Optional[RepositoryStats] = None

    @property
    def name(self) -> str:
        return self.dependency.name

    @property
    def github_repository(self) -> Optional[str]:
        if self.stats and self.stats.repository:
            return self.stats.repository
        return self.repository

    def as_dict(self) -> dict:
        return {
            "name": self.dependency.name,
            "version": self.dependency.version,
            "version_spec": self.dependency.version_spec,
            "license": self.license,
            "verdict": self.verdict.value,
            "reason": self.justification,
            "repository": self.github_repository,
            "stats": (
                {
                    "stars": self.stats.stars,
                    "forks": self.stats.forks,
                    "age_months": self.stats.age_months,
                }
                if self.stats
                else None
            ),
        }
