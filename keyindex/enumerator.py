"""Enumerator stage: walks the GitHub user listing page by page."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional, Protocol

from keyindex.backoff import Backoff
from keyindex.base_stage import BaseStage, PipelineCancelled, Wait
from keyindex.channel import ChannelCancelled, HandoffChannel
from keyindex.providers.github import RateLimitError


class UserLister(Protocol):
    def list_users(self, since: int, per_page: int = 100) -> list[dict[str, Any]]: ...


class UserEnumerator(BaseStage):
    """Sends one batch of account IDs per page, then closes the channel.

    The cursor is the ID of the last account of the previous page and only
    moves after a successful call. An empty page ends the enumeration.
    """

    STAGE_NAME = "enumerator"

    def __init__(
        self,
        client: UserLister,
        page_size: int = 100,
        backoff: Optional[Backoff] = None,
        stop_event: Optional[threading.Event] = None,
        wait: Optional[Wait] = None,
        max_attempts: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(backoff, stop_event, wait, max_attempts, logger)
        self.client = client
        self.page_size = page_size
        self.since = 0
        self.retries = 0

    def run(self, channel: HandoffChannel) -> dict[str, int]:
        pages = 0
        users = 0
        while True:
            self._check_cancelled()
            try:
                page = self.client.list_users(self.since, per_page=self.page_size)
                ids = [int(user["id"]) for user in page]
            except Exception as exc:
                self._on_error(exc)
                continue

            if not ids:
                self.logger.info(
                    "Finished enumerating users",
                    extra={"stage": self.STAGE_NAME, "since": self.since},
                )
                break

            self.logger.debug(
                "Processing %d users",
                len(ids),
                extra={"stage": self.STAGE_NAME, "since": self.since, "batch_size": len(ids)},
            )
            try:
                channel.send(ids)
            except ChannelCancelled as exc:
                raise PipelineCancelled("enumerator cancelled while handing off a batch") from exc
            pages += 1
            users += len(ids)
            self.since = ids[-1]
            self.retries = 0

        channel.close()
        return {"pages": pages, "users": users}

    def _on_error(self, exc: Exception) -> None:
        extra = {"stage": self.STAGE_NAME, "since": self.since, "attempt": self.retries}
        if isinstance(exc, RateLimitError):
            extra["reset_at"] = exc.reset_at
            self.logger.error("Rate limited listing users: %s", exc, extra=extra)
        else:
            self.logger.debug("Listing users failed: %s", exc, extra=extra)
        self._retry_sleep(self.retries, exc)
        self.retries += 1
