from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Optional

import yaml

from .types import RepositoryStats


AUTO_APPROVED_LICENSES = frozenset({"Apache-2.0", "Apache 2.0"})

# LF Decentralized Trust allowlist; entries still have to pass the adoption gate.
CONDITIONALLY_APPROVED_LICENSES = frozenset(
    {
        "BSD-2-Clause",
        "BSD-2-Clause-FreeBSD",
        "BSD-3-Clause",
        "MIT",
        "ISC",
        "Python-2.0",
        "BSL-1.0",
        "Boost",
        "bzip2-1.0.6",
        "OLDAP-2.7",
        "OLDAP-2.8",
        "PostgreSQL",
        "TCL",
        "W3C",
        "X11",
        "Zlib",
        "OFL-1.0",
        "OFL-1.1",
        "CC-BY-1.0",
        "CC-BY-2.0",
        "CC-BY-2.5",
        "CC-BY-3.0",
        "Public Domain",
        "Unlicense",
    }
)

MIN_AGE_MONTHS = 12
MIN_STARS = 10
MIN_FORKS = 10


class PolicyError(ValueError):
    """Raised when a policy file cannot be read or has the wrong shape."""


@dataclass(frozen=True)
class AdoptionThresholds:
    min_age_months: int = MIN_AGE_MONTHS
    min_stars: int = MIN_STARS
    min_forks: int = MIN_FORKS


@dataclass(frozen=True)
class LicensePolicy:
    """Immutable license allowlist and adoption gate.

    Membership is an exact string match. ``"mit"`` is not ``"MIT"``; metadata
    with non-canonical casing is treated as off-list.
    """

    auto_approved: FrozenSet[str] = AUTO_APPROVED_LICENSES
    conditionally_approved: FrozenSet[str] = CONDITIONALLY_APPROVED_LICENSES
    adoption: AdoptionThresholds = field(default_factory=AdoptionThresholds)

    def is_auto_approved(self, license_id: str) -> bool:
        return license_id in self.auto_approved

    def is_conditionally_approved(self, license_id: str) -> bool:
        return license_id in self.conditionally_approved

    def passes_adoption_gate(self, stats: RepositoryStats) -> bool:
        # Age is mandatory; either popularity signal is enough on top of it.
        if stats.age_months < self.adoption.min_age_months:
            return False
        return stats.stars >= self.adoption.min_stars or stats.forks >= self.adoption.min_forks

    def as_dict(self) -> dict:
        return {
            "auto_approved": sorted(self.auto_approved),
            "conditionally_approved": sorted(self.conditionally_approved),
            "adoption": {
                "min_age_months": self.adoption.min_age_months,
                "min_stars": self.adoption.min_stars,
                "min_forks": self.adoption.min_forks,
            },
        }


DEFAULT_POLICY = LicensePolicy()


def _load_yaml(path: Path) -> dict:
    try:
        raw = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as exc:
        raise PolicyError(f"Unable to read policy file {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise PolicyError(f"Policy file {path} must contain a mapping at the top level")
    return raw


def _license_set(raw: dict, key: str, default: FrozenSet[str]) -> FrozenSet[str]:
    values = raw.get(key)
    if values is None:
        return default
    if not isinstance(values, list):
        raise PolicyError(f"'{key}' must be a list of license identifiers")
    return frozenset(str(value) for value in values)


def _threshold(adoption: dict, key: str, default: int) -> int:
    value = adoption.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise PolicyError(f"adoption.{key} must be a non-negative integer, got {value!r}")
    return value


def load_policy(path: Optional[Path]) -> LicensePolicy:
    """Load a YAML policy file; omitted keys fall back to the built-in policy."""

    if path is None:
        return DEFAULT_POLICY

    raw = _load_yaml(path)
    adoption = raw.get("adoption") or {}
    if not isinstance(adoption, dict):
        raise PolicyError("'adoption' must be a mapping")

    return LicensePolicy(
        auto_approved=_license_set(raw, "auto_approved", AUTO_APPROVED_LICENSES),
        conditionally_approved=_license_set(
            raw, "conditionally_approved", CONDITIONALLY_APPROVED_LICENSES
        ),
        adoption=AdoptionThresholds(
            min_age_months=_threshold(adoption, "min_age_months", MIN_AGE_MONTHS),
            min_stars=_threshold(adoption, "min_stars", MIN_STARS),
            min_forks=_threshold(adoption, "min_forks", MIN_FORKS),
        ),
    )
