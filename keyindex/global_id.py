"""GraphQL global node IDs for GitHub users.

The batched ``nodes(ids:)`` query only accepts opaque node IDs, while the REST
listing yields numeric account IDs. The legacy node ID format is the base64
encoding of a type tag followed by the decimal account ID.
"""

from __future__ import annotations

import base64
import binascii
import re

USER_TYPE_TAG = "4:User"

_DECODED_RE = re.compile(r"^(?P<tag>.*?\D)(?P<id>\d+)$")


def encode_global_id(account_id: int, type_tag: str = USER_TYPE_TAG) -> str:
    """Return the node ID for ``account_id``."""
    if account_id < 0:
        raise ValueError(f"account id must be non-negative, got {account_id}")
    raw = f"{type_tag}{account_id}".encode("ascii")
    return base64.standard_b64encode(raw).decode("ascii")


def decode_global_id(node_id: str) -> tuple[str, int]:
    """Split a node ID back into ``(type_tag, account_id)``."""
    try:
        raw = base64.b64decode(node_id.encode("ascii"), validate=True).decode("ascii")
    except (binascii.Error, UnicodeError) as exc:
        raise ValueError(f"Not a valid global id: {node_id!r}") from exc
    match = _DECODED_RE.match(raw)
    if not match:
        raise ValueError(f"Global id {node_id!r} does not end in a numeric id")
    return match.group("tag"), int(match.group("id"))
