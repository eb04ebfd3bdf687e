from __future__ import annotations

import base64
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

import requests  # type: ignore[import-untyped]

from .metadata import GITHUB_API_URL, env_timeout


logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"
RAW_CONTENT_URL = "https://raw.githubusercontent.com"

GITHUB_URL_PATTERN = re.compile(r"github\.com/([^/]+)/([^/?#]+)")
SHORTHAND_PATTERN = re.compile(r"^(?!\.{1,2}/)([\w.-]+)/([\w.-]+)$")


class ManifestError(RuntimeError):
    """Raised when the project manifest cannot be located or parsed."""


@dataclass
class Manifest:
    name: Optional[str] = None
    version: Optional[str] = None
    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)
    origin: str = MANIFEST_NAME


def _dependency_block(data: dict, key: str, origin: str) -> Dict[str, str]:
    block = data.get(key) or {}
    if not isinstance(block, dict):
        raise ManifestError(f"'{key}' in {origin} must be an object")
    return {str(name): str(version) for name, version in block.items()}


def parse_manifest(text: str, origin: str = MANIFEST_NAME) -> Manifest:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Unable to parse {origin}: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"{origin} must contain a JSON object")

    return Manifest(
        name=data.get("name"),
        version=data.get("version"),
        dependencies=_dependency_block(data, "dependencies", origin),
        dev_dependencies=_dependency_block(data, "devDependencies", origin),
        origin=origin,
    )


def parse_github_source(source: str) -> Optional[Tuple[str, str]]:
    """Return ``(owner, repo)`` for a GitHub URL or ``owner/repo`` shorthand."""

    cleaned = source.strip().rstrip("/")
    match = GITHUB_URL_PATTERN.search(cleaned) or SHORTHAND_PATTERN.match(cleaned)
    if not match:
        return None
    owner, repo = match.group(1), match.group(2)
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    return owner, repo


def load_local_manifest(path: Path) -> Manifest:
    manifest_path = path / MANIFEST_NAME if path.is_dir() else path
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"Unable to read {manifest_path}: {exc}") from exc
    return parse_manifest(text, origin=str(manifest_path))


def fetch_github_manifest(
    owner: str,
    repo: str,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> Manifest:
    """Fetch ``package.json`` from the default branch of a GitHub repository.

    The contents API is tried first; the raw content host on ``main`` is the
    fallback when the API is rate limited or unreachable.
    """

    http = session or requests.Session()
    timeout = timeout or env_timeout()
    origin = f"{owner}/{repo}/{MANIFEST_NAME}"
    headers = {"Accept": "application/vnd.github+json"}
    token = os.getenv("GITHUB_TOKEN") or os.getenv("GH_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"

    api_base = (os.getenv("GITHUB_API_URL") or GITHUB_API_URL).rstrip("/")
    api_error: str
    try:
        response = http.get(
            f"{api_base}/repos/{owner}/{repo}/contents/{MANIFEST_NAME}",
            headers=headers,
            timeout=timeout,
        )
        if response.status_code == 200:
            payload = response.json()
            content = payload.get("content") if isinstance(payload, dict) else None
            if isinstance(content, str):
                return parse_manifest(base64.b64decode(content).decode("utf-8"), origin=origin)
            api_error = "GitHub API returned no file content"
        else:
            api_error = f"GitHub API returned {response.status_code}"
    except (requests.RequestException, ValueError) as exc:
        api_error = str(exc)
    logger.debug("Contents API lookup for %s failed (%s); trying raw content", origin, api_error)

    try:
        response = http.get(f"{RAW_CONTENT_URL}/{owner}/{repo}/main/{MANIFEST_NAME}", timeout=timeout)
    except requests.RequestException as exc:
        raise ManifestError(f"Failed to fetch {MANIFEST_NAME} from GitHub: {api_error}") from exc
    if response.status_code != 200:
        raise ManifestError(f"Failed to fetch {MANIFEST_NAME} from GitHub: {api_error}")
    return parse_manifest(response.text, origin=origin)


def load_manifest(source: str = ".", session: Optional[requests.Session] = None) -> Manifest:
    """Resolve ``source`` to a manifest.

    Existing local paths win over the remote interpretation so a relative
    directory such as ``packages/app`` is never mistaken for ``owner/repo``.
    """

    path = Path(source).expanduser()
    if path.exists():
        return load_local_manifest(path)

    github = parse_github_source(source)
    if github:
        owner, repo = github
        logger.info("Fetching %s from GitHub: %s/%s", MANIFEST_NAME, owner, repo)
        return fetch_github_manifest(owner, repo, session=session)

    raise ManifestError(
        f"Unrecognized source '{source}'. Use a local directory, "
        "https://github.com/owner/repo or owner/repo"
    )
