import sys
from pathlib import Path

import pytest

# Ensure src package is importable without installation
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if SRC.exists():
    sys.path.insert(0, str(SRC))

from license_audit.metadata import Resolved, Unresolved  # noqa: E402
from license_audit.types import UNKNOWN_LICENSE  # noqa: E402


class FakeProvider:
    """In-memory metadata provider keyed by package name."""

    def __init__(self, licenses=None, repositories=None, stats=None):
        self.licenses = licenses or {}
        self.repositories = repositories or {}
        self.stats = stats or {}
        self.calls = []

    def lookup_license(self, name, version):
        self.calls.append(("license", name, version))
        return self.licenses.get(name, UNKNOWN_LICENSE)

    def lookup_repository(self, name, version):
        self.calls.append(("repository", name, version))
        if name in self.repositories:
            return Resolved(self.repositories[name])
        return Unresolved("not declared")

    def lookup_repository_stats(self, repository):
        self.calls.append(("stats", repository))
        if repository in self.stats:
            return Resolved(self.stats[repository])
        return Unresolved("not found")


class DummyResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class DummySession:
    """Maps URLs to responses; unknown URLs answer 404."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.requested = []

    def get(self, url, headers=None, timeout=None):
        self.requested.append(url)
        response = self.responses.get(url)
        if isinstance(response, Exception):
            raise response
        return response or DummyResponse(status_code=404)


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def dummy_response_cls():
    return DummyResponse


@pytest.fixture
def dummy_session_cls():
    return DummySession
