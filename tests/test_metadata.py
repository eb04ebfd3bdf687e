from datetime import datetime, timezone

import pytest
import requests

from license_audit.metadata import (
    RegistryMetadataProvider,
    Resolved,
    Unresolved,
    extract_github_repository,
    highest_matching_version,
    repository_variations,
)
from license_audit.types import UNKNOWN_LICENSE


REGISTRY = "https://registry.test"
GITHUB = "https://github.test"
NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _provider(session):
    return RegistryMetadataProvider(
        session=session,
        registry_url=REGISTRY,
        github_api_url=GITHUB,
        timeout=1,
        github_token="token",
        now=NOW,
    )


def _package(versions, latest=None):
    return {"dist-tags": {"latest": latest or list(versions)[-1]}, "versions": versions}


def test_repository_variations_follow_documented_order():
    assert repository_variations("owner/lib") == ["owner/lib", "owner/lib.js", "owner/lib-js"]
    assert repository_variations("owner/lib.js") == ["owner/lib.js", "owner/lib", "owner/lib.js-js"]
    assert repository_variations("owner/lib-js") == ["owner/lib-js", "owner/lib-js.js", "owner/lib"]


def test_extract_github_repository_formats():
    assert extract_github_repository("git+https://github.com/lodash/lodash.git") == "lodash/lodash"
    assert extract_github_repository("git@github.com:axios/axios.git") == "axios/axios"
    assert extract_github_repository("https://github.com/chalk/chalk") == "chalk/chalk"
    assert extract_github_repository("https://gitlab.com/owner/repo") is None
    assert extract_github_repository(None) is None


def test_license_lookup_resolves_exact_version(dummy_session_cls, dummy_response_cls):
    session = dummy_session_cls(
        {
            f"{REGISTRY}/lodash": dummy_response_cls(
                payload=_package({"4.17.20": {"license": "ISC"}, "4.17.21": {"license": "MIT"}})
            )
        }
    )
    provider = _provider(session)

    assert provider.lookup_license("lodash", "4.17.20") == "ISC"
    assert provider.lookup_license("lodash", "4.17.21") == "MIT"
    assert session.requested == [f"{REGISTRY}/lodash"]


def test_license_lookup_handles_object_and_legacy_fields(dummy_session_cls, dummy_response_cls):
    session = dummy_session_cls(
        {
            f"{REGISTRY}/obj": dummy_response_cls(payload=_package({"1.0.0": {"license": {"type": "BSD-3-Clause"}}})),
            f"{REGISTRY}/legacy": dummy_response_cls(payload=_package({"1.0.0": {"licenses": [{"type": "MIT"}]}})),
            f"{REGISTRY}/blank": dummy_response_cls(payload=_package({"1.0.0": {"license": "  "}})),
        }
    )
    provider = _provider(session)

    assert provider.lookup_license("obj", "1.0.0") == "BSD-3-Clause"
    assert provider.lookup_license("legacy", "1.0.0") == "MIT"
    assert provider.lookup_license("blank", "1.0.0") == UNKNOWN_LICENSE


def test_license_lookup_picks_highest_on_partial_release_line(dummy_session_cls, dummy_response_cls):
    session = dummy_session_cls(
        {
            f"{REGISTRY}/ranged": dummy_response_cls(
                payload=_package(
                    {
                        "1.2.0": {"license": "ISC"},
                        "1.2.5": {"license": "MIT"},
                        "1.3.0-beta.1": {"license": "ISC"},
                        "2.0.0": {"license": "GPL-3.0"},
                    },
                    latest="2.0.0",
                )
            )
        }
    )
    provider = _provider(session)

    assert provider.lookup_license("ranged", "1.2") == "MIT"
    assert provider.lookup_license("ranged", "1.x") == "MIT"
    assert provider.lookup_license("ranged", "*") == "GPL-3.0"


def test_unpublished_version_is_unknown_not_latest(dummy_session_cls, dummy_response_cls):
    session = dummy_session_cls(
        {
            f"{REGISTRY}/pkg": dummy_response_cls(
                payload=_package({"1.0.0": {"license": "GPL-3.0"}, "2.0.0": {"license": "MIT"}}, latest="2.0.0")
            )
        }
    )
    provider = _provider(session)

    assert provider.lookup_license("pkg", "9.9.9") == UNKNOWN_LICENSE
    assert isinstance(provider.lookup_repository("pkg", "9.9.9"), Unresolved)


@pytest.mark.parametrize(
    "token, expected",
    [
        ("1.2", "1.2.10"),
        ("1.2.x", "1.2.10"),
        ("1", "1.10.0"),
        ("3", None),
        ("1.2.3", None),
    ],
)
def test_highest_matching_version(token, expected):
    published = ["1.2.0", "1.2.9", "1.2.10", "1.10.0", "2.0.0-rc.1"]
    assert highest_matching_version(token, published) == expected


def test_scoped_package_name_is_encoded(dummy_session_cls, dummy_response_cls):
    session = dummy_session_cls(
        {f"{REGISTRY}/@types%2Fnode": dummy_response_cls(payload=_package({"20.0.0": {"license": "MIT"}}))}
    )
    assert _provider(session).lookup_license("@types/node", "20.0.0") == "MIT"


def test_license_lookup_failures_become_unknown(dummy_session_cls, dummy_response_cls):
    session = dummy_session_cls(
        {
            f"{REGISTRY}/boom": requests.ConnectionError("registry down"),
            f"{REGISTRY}/garbled": dummy_response_cls(payload=None),
        }
    )
    provider = _provider(session)

    assert provider.lookup_license("boom", "1.0.0") == UNKNOWN_LICENSE
    assert provider.lookup_license("garbled", "1.0.0") == UNKNOWN_LICENSE
    assert provider.lookup_license("missing", "1.0.0") == UNKNOWN_LICENSE


def test_repository_lookup(dummy_session_cls, dummy_response_cls):
    session = dummy_session_cls(
        {
            f"{REGISTRY}/axios": dummy_response_cls(
                payload=_package({"1.6.0": {"repository": {"type": "git", "url": "git+https://github.com/axios/axios.git"}}})
            ),
            f"{REGISTRY}/norepo": dummy_response_cls(payload=_package({"1.0.0": {}})),
        }
    )
    provider = _provider(session)

    assert provider.lookup_repository("axios", "1.6.0") == Resolved("axios/axios")
    assert isinstance(provider.lookup_repository("norepo", "1.0.0"), Unresolved)
    assert isinstance(provider.lookup_repository("missing", "1.0.0"), Unresolved)


def test_stats_lookup_tries_variations_until_one_resolves(dummy_session_cls, dummy_response_cls):
    session = dummy_session_cls(
        {
            f"{GITHUB}/repos/owner/lib.js": dummy_response_cls(
                payload={"stargazers_count": 30, "forks_count": 2, "created_at": "2023-01-01T00:00:00Z"}
            ),
        }
    )
    lookup = _provider(session).lookup_repository_stats("owner/lib")

    assert isinstance(lookup, Resolved)
    assert lookup.value.repository == "owner/lib.js"
    assert lookup.value.stars == 30
    assert lookup.value.age_months == 36
    assert session.requested == [f"{GITHUB}/repos/owner/lib", f"{GITHUB}/repos/owner/lib.js"]


def test_partial_stats_payload_is_skipped(dummy_session_cls, dummy_response_cls):
    session = dummy_session_cls(
        {
            f"{GITHUB}/repos/owner/lib": dummy_response_cls(payload={"stargazers_count": 30}),
            f"{GITHUB}/repos/owner/lib-js": dummy_response_cls(
                payload={"stargazers_count": 1, "forks_count": 1, "created_at": "2025-12-01T00:00:00Z"}
            ),
        }
    )
    lookup = _provider(session).lookup_repository_stats("owner/lib")

    assert isinstance(lookup, Resolved)
    assert lookup.value.repository == "owner/lib-js"
    assert lookup.value.age_months == 1


def test_stats_lookup_unresolved_when_all_variations_fail(dummy_session_cls):
    session = dummy_session_cls()
    lookup = _provider(session).lookup_repository_stats("owner/lib")

    assert isinstance(lookup, Unresolved)
    assert len(session.requested) == 3
