"""GitHub API client: REST user listing and GraphQL public key lookups."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from keyindex.config import GitHubConfig

logger = logging.getLogger("keyindex.github")

USER_KEYS_QUERY = """
query($nodeIds: [ID!]!) {
  nodes(ids: $nodeIds) {
    ... on User {
      login
      publicKeys(first: 100) {
        edges {
          node {
            key
          }
        }
      }
    }
  }
}
"""


@dataclass(frozen=True)
class AccountKeyRecord:
    login: str
    public_keys: tuple[str, ...] = ()


class GitHubError(RuntimeError):
    pass


class RateLimitError(GitHubError):
    """GitHub refused the request because the rate limit is exhausted."""

    def __init__(self, message: str, reset_at: Optional[int] = None) -> None:
        super().__init__(message)
        self.reset_at = reset_at


class GraphQLError(GitHubError):
    """A GraphQL response carried errors.

    ``records`` holds whatever user nodes did resolve in the same response.
    """

    def __init__(
        self,
        message: str,
        messages: Optional[list[str]] = None,
        records: Optional[list[AccountKeyRecord]] = None,
    ) -> None:
        super().__init__(message)
        self.messages = messages or [message]
        self.records = records or []


class GitHubClient:
    def __init__(self, config: GitHubConfig, session: Optional[requests.Session] = None) -> None:
        self._base = config.api_base_url.rstrip("/")
        self._graphql_url = config.graphql_url
        self._timeout = config.request_timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": f"token {config.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        })

    def close(self) -> None:
        self._session.close()

    def list_users(self, since: int, per_page: int = 100) -> list[dict[str, Any]]:
        """Fetch one page of accounts with an id greater than ``since``."""
        resp = self._session.get(
            f"{self._base}/users",
            params={"since": str(since), "per_page": str(per_page)},
            timeout=self._timeout,
        )
        self._raise_for_rate_limit(resp)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, list):
            raise GitHubError(f"Unexpected /users response: {str(data)[:200]}")
        return data

    def lookup_keys(self, node_ids: list[str]) -> list[AccountKeyRecord]:
        """Resolve user node IDs to their logins and public keys in one query."""
        resp = self._session.post(
            self._graphql_url,
            json={"query": USER_KEYS_QUERY, "variables": {"nodeIds": node_ids}},
            timeout=self._timeout,
        )
        self._raise_for_rate_limit(resp)
        resp.raise_for_status()
        payload = resp.json()

        records = _parse_user_nodes((payload.get("data") or {}).get("nodes") or [])
        logger.debug("Resolved %d of %d nodes", len(records), len(node_ids))
        errors = payload.get("errors") or []
        if errors:
            if any(e.get("type") == "RATE_LIMITED" for e in errors):
                raise RateLimitError(errors[0].get("message", "GraphQL rate limit exceeded"))
            messages = [e.get("message", "Unknown GraphQL error") for e in errors]
            raise GraphQLError(messages[0], messages=messages, records=records)
        return records

    @staticmethod
    def _raise_for_rate_limit(resp: requests.Response) -> None:
        if resp.status_code not in (403, 429):
            return
        remaining = resp.headers.get("X-RateLimit-Remaining")
        if remaining != "0" and "rate limit" not in resp.text.lower():
            return
        reset_raw = resp.headers.get("X-RateLimit-Reset", "")
        reset_at = int(reset_raw) if reset_raw.isdigit() else None
        raise RateLimitError(
            f"GitHub rate limit hit (HTTP {resp.status_code})", reset_at=reset_at
        )


def _parse_user_nodes(nodes: list[Optional[dict[str, Any]]]) -> list[AccountKeyRecord]:
    records: list[AccountKeyRecord] = []
    for node in nodes:
        # Missing accounts come back as null, non-User nodes as {}
        if not node or "login" not in node:
            continue
        edges = (node.get("publicKeys") or {}).get("edges") or []
        keys = tuple(
            edge["node"]["key"] for edge in edges if edge and edge.get("node")
        )
        records.append(AccountKeyRecord(login=node["login"], public_keys=keys))
    return records
