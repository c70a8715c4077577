from __future__ import annotations

from typing import Any, Optional

import pytest
import requests

from keyindex.config import GitHubConfig
from keyindex.fetcher import is_unresolvable
from keyindex.providers.github import (
    USER_KEYS_QUERY,
    AccountKeyRecord,
    GitHubClient,
    GitHubError,
    GraphQLError,
    RateLimitError,
)


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        text: str = "",
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.headers = headers or {}

    def json(self) -> Any:
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    def __init__(self, response: FakeResponse) -> None:
        self.response = response
        self.headers: dict[str, str] = {}
        self.requests: list[tuple[str, str, dict[str, Any]]] = []
        self.closed = False

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.requests.append(("GET", url, kwargs))
        return self.response

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        self.requests.append(("POST", url, kwargs))
        return self.response

    def close(self) -> None:
        self.closed = True


def _client(response: FakeResponse) -> tuple[GitHubClient, FakeSession]:
    session = FakeSession(response)
    config = GitHubConfig(
        token="t0ken",
        api_base_url="https://github.example/api/v3/",
        graphql_url="https://github.example/api/graphql",
        request_timeout=5,
    )
    return GitHubClient(config, session=session), session


def test_list_users_requests_page_after_cursor() -> None:
    client, session = _client(FakeResponse(payload=[{"id": 5}, {"id": 9}]))

    assert client.list_users(4, per_page=2) == [{"id": 5}, {"id": 9}]
    method, url, kwargs = session.requests[0]
    assert (method, url) == ("GET", "https://github.example/api/v3/users")
    assert kwargs["params"] == {"since": "4", "per_page": "2"}
    assert kwargs["timeout"] == 5
    assert session.headers["Authorization"] == "token t0ken"


def test_list_users_rate_limit_by_message() -> None:
    client, _ = _client(
        FakeResponse(
            403,
            text='{"message": "API rate limit exceeded for user ID 1."}',
            headers={"X-RateLimit-Reset": "1700000000"},
        )
    )
    with pytest.raises(RateLimitError) as excinfo:
        client.list_users(0)
    assert excinfo.value.reset_at == 1700000000


def test_list_users_rate_limit_by_header() -> None:
    client, _ = _client(FakeResponse(429, headers={"X-RateLimit-Remaining": "0"}))
    with pytest.raises(RateLimitError):
        client.list_users(0)


def test_forbidden_without_rate_limit_is_http_error() -> None:
    client, _ = _client(FakeResponse(403, text="Resource not accessible"))
    with pytest.raises(requests.HTTPError):
        client.list_users(0)


def test_server_error_is_http_error() -> None:
    client, _ = _client(FakeResponse(502, text="Bad gateway"))
    with pytest.raises(requests.HTTPError):
        client.list_users(0)


def test_unexpected_listing_payload() -> None:
    client, _ = _client(FakeResponse(payload={"message": "nope"}))
    with pytest.raises(GitHubError):
        client.list_users(0)


def test_lookup_keys_parses_user_nodes() -> None:
    payload = {
        "data": {
            "nodes": [
                {
                    "login": "octocat",
                    "publicKeys": {
                        "edges": [
                            {"node": {"key": "ssh-rsa AAAA"}},
                            {"node": {"key": "ssh-ed25519 BBBB"}},
                        ]
                    },
                },
                None,
                {},
                {"login": "keyless", "publicKeys": {"edges": []}},
            ]
        }
    }
    client, session = _client(FakeResponse(payload=payload))

    records = client.lookup_keys(["a", "b", "c", "d"])

    assert records == [
        AccountKeyRecord("octocat", ("ssh-rsa AAAA", "ssh-ed25519 BBBB")),
        AccountKeyRecord("keyless", ()),
    ]
    method, url, kwargs = session.requests[0]
    assert (method, url) == ("POST", "https://github.example/api/graphql")
    assert kwargs["json"] == {"query": USER_KEYS_QUERY, "variables": {"nodeIds": ["a", "b", "c", "d"]}}


def test_lookup_errors_carry_partial_records() -> None:
    payload = {
        "data": {"nodes": [{"login": "octocat", "publicKeys": {"edges": [{"node": {"key": "k"}}]}}, None]},
        "errors": [
            {"type": "NOT_FOUND", "message": "Could not resolve to a node with the global id of 'X'"},
            {"type": "NOT_FOUND", "message": "Could not resolve to a node with the global id of 'Y'"},
        ],
    }
    client, _ = _client(FakeResponse(payload=payload))

    with pytest.raises(GraphQLError) as excinfo:
        client.lookup_keys(["a", "X"])

    assert excinfo.value.records == [AccountKeyRecord("octocat", ("k",))]
    assert len(excinfo.value.messages) == 2
    assert is_unresolvable(excinfo.value)


def test_lookup_graphql_rate_limit() -> None:
    payload = {"errors": [{"type": "RATE_LIMITED", "message": "API rate limit exceeded"}]}
    client, _ = _client(FakeResponse(payload=payload))
    with pytest.raises(RateLimitError):
        client.lookup_keys(["a"])


def test_close_closes_session() -> None:
    client, session = _client(FakeResponse(payload=[]))
    client.close()
    assert session.closed
