from __future__ import annotations

"""Registry and repository metadata lookups.

Every lookup is best-effort: a failed request, a non-200 response or a payload
missing the expected fields is reported as ``Unresolved`` (or the unknown
license sentinel) instead of raising.
"""

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Iterable, List, Optional, Protocol, TypeVar, Union
from urllib.parse import quote

import requests  # type: ignore[import-untyped]

from .types import UNKNOWN_LICENSE, InvalidInputError, RepositoryStats


logger = logging.getLogger(__name__)

NPM_REGISTRY_URL = "https://registry.npmjs.org"
GITHUB_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 10.0

GITHUB_REPO_PATTERN = re.compile(r"github\.com[/:]([\w-]+/[\w.-]+)")

T = TypeVar("T")


@dataclass(frozen=True)
class Resolved(Generic[T]):
    value: T


@dataclass(frozen=True)
class Unresolved:
    reason: str = ""


Lookup = Union[Resolved[T], Unresolved]


class MetadataProvider(Protocol):
    def lookup_license(self, name: str, version: str) -> str: ...

    def lookup_repository(self, name: str, version: str) -> Lookup[str]: ...

    def lookup_repository_stats(self, repository: str) -> Lookup[RepositoryStats]: ...


def repository_variations(repository: str) -> List[str]:
    """Common naming variations between npm packages and their GitHub repos.

    The heuristic can land on an unrelated repository with a similar name.
    """

    candidates = [
        repository,
        repository if repository.endswith(".js") else f"{repository}.js",
        repository[:-3] if repository.endswith(".js") else repository,
        repository if repository.endswith("-js") else f"{repository}-js",
        repository[:-3] if repository.endswith("-js") else repository,
    ]
    seen: list[str] = []
    for candidate in candidates:
        if candidate not in seen:
            seen.append(candidate)
    return seen


def extract_github_repository(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = GITHUB_REPO_PATTERN.search(url)
    if not match:
        return None
    repository = match.group(1)
    return repository[: -len(".git")] if repository.endswith(".git") else repository


def _license_from_document(document: dict) -> Optional[str]:
    value: Any = document.get("license")
    if isinstance(value, dict):
        value = value.get("type")
    if not value:
        legacy = document.get("licenses") or []
        if isinstance(legacy, list) and legacy and isinstance(legacy[0], dict):
            value = legacy[0].get("type")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _repository_url(document: dict) -> Optional[str]:
    value: Any = document.get("repository")
    if isinstance(value, dict):
        value = value.get("url")
    return value if isinstance(value, str) else None


def _release_key(version: str) -> tuple:
    release = version.split("-", 1)[0].split("+", 1)[0]
    return tuple(int(part) if part.isdigit() else -1 for part in release.split("."))


def highest_matching_version(token: str, published: Iterable[str]) -> Optional[str]:
    """Highest published version on the release line named by ``token``.

    ``"1.2"``, ``"1.2.x"`` and ``"1.2.*"`` match ``1.2.0`` ... ``1.2.99``;
    ``"*"`` matches everything. Pre-releases are only picked when nothing
    else matches. Returns ``None`` when no version is on that line.
    """

    parts = [part for part in token.split(".") if part]
    while parts and parts[-1].lower() in {"x", "*"}:
        parts.pop()
    prefix = ".".join(parts)

    candidates = [
        candidate
        for candidate in published
        if not prefix or candidate == prefix or candidate.startswith(prefix + ".")
    ]
    if not candidates:
        return None
    stable = [candidate for candidate in candidates if "-" not in candidate]
    return max(stable or candidates, key=_release_key)


def env_timeout() -> float:
    raw = os.getenv("LICENSE_AUDIT_TIMEOUT")
    try:
        return float(raw) if raw is not None else DEFAULT_TIMEOUT
    except ValueError:
        return DEFAULT_TIMEOUT


class RegistryMetadataProvider:
    """npm registry + GitHub REST API implementation of ``MetadataProvider``."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        registry_url: Optional[str] = None,
        github_api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        github_token: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        self.session = session or requests.Session()
        self.registry_url = (registry_url or os.getenv("NPM_REGISTRY_URL") or NPM_REGISTRY_URL).rstrip("/")
        self.github_api_url = (github_api_url or os.getenv("GITHUB_API_URL") or GITHUB_API_URL).rstrip("/")
        self.timeout = timeout or env_timeout()
        self.github_token = github_token or os.getenv("GITHUB_TOKEN") or os.getenv("GH_TOKEN")
        self.now = now
        self._documents: dict[str, Lookup[dict]] = {}

    def _get_json(self, url: str, headers: Optional[dict] = None) -> Lookup[dict]:
        try:
            response = self.session.get(url, headers=headers or {}, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.debug("Request to %s failed: %s", url, exc)
            return Unresolved(f"request failed: {exc}")
        if response.status_code != 200:
            logger.debug("%s returned HTTP %s", url, response.status_code)
            return Unresolved(f"HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            return Unresolved(f"invalid JSON: {exc}")
        if not isinstance(payload, dict):
            return Unresolved("unexpected payload")
        return Resolved(payload)

    def _package_document(self, name: str) -> Lookup[dict]:
        # License and repository lookups share one registry document per package.
        if name not in self._documents:
            self._documents[name] = self._get_json(f"{self.registry_url}/{quote(name, safe='@')}")
        return self._documents[name]

    def _version_document(self, name: str, version: str) -> Lookup[dict]:
        lookup = self._package_document(name)
        if isinstance(lookup, Unresolved):
            return lookup
        document = lookup.value
        versions = document.get("versions") or {}
        dist_tags = document.get("dist-tags") or {}

        if version in versions:
            return Resolved(versions[version])
        if version in dist_tags and dist_tags[version] in versions:
            return Resolved(versions[dist_tags[version]])
        matched = highest_matching_version(version, versions)
        if matched is not None:
            logger.debug("%s@%s resolved to %s", name, version, matched)
            return Resolved(versions[matched])
        return Unresolved(f"no published version matches {version}")

    def lookup_license(self, name: str, version: str) -> str:
        lookup = self._version_document(name, version)
        if isinstance(lookup, Unresolved):
            return UNKNOWN_LICENSE
        return _license_from_document(lookup.value) or UNKNOWN_LICENSE

    def lookup_repository(self, name: str, version: str) -> Lookup[str]:
        lookup = self._version_document(name, version)
        if isinstance(lookup, Unresolved):
            return lookup
        repository = extract_github_repository(_repository_url(lookup.value))
        if repository is None:
            return Unresolved("no GitHub repository declared")
        return Resolved(repository)

    def lookup_repository_stats(self, repository: str) -> Lookup[RepositoryStats]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.github_token:
            headers["Authorization"] = f"Bearer {self.github_token}"

        for candidate in repository_variations(repository):
            lookup = self._get_json(f"{self.github_api_url}/repos/{candidate}", headers=headers)
            if isinstance(lookup, Unresolved):
                continue
            try:
                return Resolved(RepositoryStats.from_github(lookup.value, candidate, now=self.now))
            except InvalidInputError as exc:
                logger.debug("Discarding partial stats for %s: %s", candidate, exc)
                continue
        return Unresolved(f"no repository variation of {repository} resolved")
