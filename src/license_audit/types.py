from __future__ import annotations

"""Shared data structures for license auditing.

The definitions live in domain-focused modules; this module keeps a single
import path for callers.
"""

from .types_dependencies import (
    UNKNOWN_LICENSE,
    Dependency,
    EvaluationResult,
    InvalidInputError,
    RepositoryStats,
    Verdict,
    clean_version,
    months_since,
)
from .types_report import AuditStatus, ComplianceReport

__all__ = [
    "AuditStatus",
    "ComplianceReport",
    "Dependency",
    "EvaluationResult",
    "InvalidInputError",
    "RepositoryStats",
    "UNKNOWN_LICENSE",
    "Verdict",
    "clean_version",
    "months_since",
]
