"""Fetcher stage: resolves batches of account IDs to public keys."""

from __future__ import annotations

import logging
import re
import threading
from typing import Optional, Protocol

from keyindex.backoff import Backoff
from keyindex.base_stage import BaseStage, Wait
from keyindex.channel import HandoffChannel
from keyindex.global_id import encode_global_id
from keyindex.providers.github import AccountKeyRecord
from keyindex.sink import KeySink

# Accounts deleted between listing and lookup make the whole query report
# this error, alongside the nodes that did resolve.
UNRESOLVABLE_RE = re.compile(
    r"^could not resolve to a node with the global id of", re.IGNORECASE
)


class KeyLookup(Protocol):
    def lookup_keys(self, node_ids: list[str]) -> list[AccountKeyRecord]: ...


def is_unresolvable(exc: BaseException) -> bool:
    return bool(UNRESOLVABLE_RE.match(str(exc)))


class KeyFetcher(BaseStage):
    """Looks up each received batch with a single query and writes the keys.

    Transient failures retry the identical batch. An unresolvable-node error
    ends the batch: the records returned with it are still written.
    """

    STAGE_NAME = "fetcher"

    def __init__(
        self,
        client: KeyLookup,
        sink: KeySink,
        backoff: Optional[Backoff] = None,
        stop_event: Optional[threading.Event] = None,
        wait: Optional[Wait] = None,
        max_attempts: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(backoff, stop_event, wait, max_attempts, logger)
        self.client = client
        self.sink = sink
        self.retries = 0
        self.stats = {"batches": 0, "records": 0, "keys": 0, "unresolved": 0}

    def run(self, channel: HandoffChannel) -> dict[str, int]:
        for account_ids in channel:
            self._check_cancelled()
            records = self._lookup_with_retries(account_ids)
            keys = self._write(records)
            self.stats["batches"] += 1
            self.stats["records"] += len(records)
            self.stats["keys"] += keys
            self.logger.debug(
                "Indexed batch",
                extra={
                    "stage": self.STAGE_NAME,
                    "batch_size": len(account_ids),
                    "records": len(records),
                    "keys": keys,
                },
            )
        self._check_cancelled()
        return dict(self.stats)

    def _lookup_with_retries(self, account_ids: list[int]) -> list[AccountKeyRecord]:
        node_ids = [encode_global_id(account_id) for account_id in account_ids]
        self.retries = 0
        while True:
            try:
                records = self.client.lookup_keys(node_ids)
            except Exception as exc:
                if is_unresolvable(exc):
                    self.stats["unresolved"] += 1
                    self.retries = 0
                    return list(getattr(exc, "records", None) or [])
                self.logger.debug(
                    "Key lookup failed: %s",
                    exc,
                    extra={
                        "stage": self.STAGE_NAME,
                        "batch_size": len(node_ids),
                        "attempt": self.retries,
                    },
                )
                self._retry_sleep(self.retries, exc)
                self.retries += 1
                continue
            self.retries = 0
            return records

    def _write(self, records: list[AccountKeyRecord]) -> int:
        written = 0
        for record in records:
            for key in record.public_keys:
                self.sink.append(key, record.login)
                written += 1
        return written
