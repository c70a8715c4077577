"""Pipeline coordinator: runs the enumerator and the fetcher side by side."""

from __future__ import annotations

import logging
import random
import threading
import time
from concurrent import futures
from typing import Optional

from keyindex.backoff import Backoff
from keyindex.base_stage import PipelineCancelled, Wait
from keyindex.channel import HandoffChannel
from keyindex.config import PipelineConfig
from keyindex.enumerator import UserEnumerator, UserLister
from keyindex.fetcher import KeyFetcher, KeyLookup
from keyindex.sink import KeySink


class KeyIndexPipeline:
    """Wires both stages through an unbuffered channel and waits for both.

    The channel holds at most one undelivered batch, so a slow lookup
    throttles the listing. A pipeline instance runs once.
    """

    def __init__(
        self,
        lister: UserLister,
        lookup: KeyLookup,
        sink: KeySink,
        config: Optional[PipelineConfig] = None,
        wait: Optional[Wait] = None,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.logger = logger or logging.getLogger("keyindex.pipeline")
        self.stop_event = threading.Event()
        self.channel: HandoffChannel[list[int]] = HandoffChannel()
        backoff = Backoff(
            base_seconds=self.config.backoff_base,
            max_seconds=self.config.backoff_max,
            jitter=self.config.backoff_jitter,
            rng=rng or random.Random(),
        )
        self.enumerator = UserEnumerator(
            lister,
            page_size=self.config.page_size,
            backoff=backoff,
            stop_event=self.stop_event,
            wait=wait,
            max_attempts=self.config.max_attempts,
            logger=logger.getChild(UserEnumerator.STAGE_NAME) if logger else None,
        )
        self.fetcher = KeyFetcher(
            lookup,
            sink,
            backoff=backoff,
            stop_event=self.stop_event,
            wait=wait,
            max_attempts=self.config.max_attempts,
            logger=logger.getChild(KeyFetcher.STAGE_NAME) if logger else None,
        )

    def cancel(self) -> None:
        """Ask both stages to stop; waits and channel operations wake up."""
        self.stop_event.set()
        self.channel.cancel()

    def run(self) -> dict[str, int]:
        """Run until the listing is exhausted and every batch is indexed.

        Raises the first stage failure (after stopping the other stage), or
        PipelineCancelled when cancel() was called.
        """
        started = time.monotonic()
        with futures.ThreadPoolExecutor(max_workers=2, thread_name_prefix="keyindex") as pool:
            enumerating = pool.submit(self.enumerator.run, self.channel)
            fetching = pool.submit(self.fetcher.run, self.channel)
            try:
                done, _ = futures.wait(
                    [enumerating, fetching], return_when=futures.FIRST_EXCEPTION
                )
            except KeyboardInterrupt:
                self.logger.warning("Interrupted, stopping pipeline")
                self.cancel()
                raise
            if any(f.exception() is not None for f in done):
                self.cancel()

        errors = [f.exception() for f in (enumerating, fetching) if f.exception() is not None]
        failures = [e for e in errors if not isinstance(e, PipelineCancelled)]
        if failures:
            self.logger.error("Pipeline failed: %s", failures[0])
            raise failures[0]
        if errors or self.stop_event.is_set():
            raise PipelineCancelled("pipeline cancelled")

        results = {**enumerating.result(), **fetching.result()}
        self.logger.info(
            "Pipeline complete: %s",
            results,
            extra={"duration_s": round(time.monotonic() - started, 3)},
        )
        return results
