"""Progressive, batch-bounded retrieval of validator yields.

Validators are processed in consecutive batches. Inside a batch every fetch
runs concurrently; batches never overlap. Each settled batch is converted to
metrics, put back into input order and delivered before the next batch
starts, so peak concurrency is the batch size and consumers see results
while a long scan is still running.
"""

from __future__ import annotations

import inspect

from typing import TYPE_CHECKING

import asyncio

from validator_yield.errors import FetchError, InvalidArgumentError
from validator_yield.helpers.constants import (
    ANNUALIZATION_FACTOR,
    DEFAULT_BATCH_SIZE,
    FETCH_RETRIES,
    FETCH_RETRY_DELAY,
    RETRY_MAX_DELAY,
)
from validator_yield.helpers.http import retry_with_backoff
from validator_yield.helpers.logging import get_logger
from validator_yield.staking.exposure import (
    fetch_era_totals,
    fetch_raw_facts,
    validate_era,
)
from validator_yield.staking.models import (
    BatchResult,
    RetrievalResult,
    SkippedValidator,
    ValidatorMetrics,
)
from validator_yield.staking.rewards import annualization_fraction, compute_metrics


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

    from validator_yield.chain.queries import StorageReader
    from validator_yield.staking.models import EraTotals, RawFacts
    from validator_yield.staking.rewards import AnnualizationFactor


logger = get_logger(__name__)

type BatchCallback = Callable[[int, list[ValidatorMetrics]], Awaitable[None] | None]


def _is_retryable(error: Exception) -> bool:
    return isinstance(error, FetchError) and error.retryable


class BatchRetriever:
    """Fetch and compute validator yields batch by batch."""

    def __init__(
        self,
        session: StorageReader,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        fetch_retries: int = FETCH_RETRIES,
        retry_delay: float = FETCH_RETRY_DELAY,
        annualization_factor: AnnualizationFactor = ANNUALIZATION_FACTOR,
    ) -> None:
        """Initialize the retriever.

        Args:
            session: Storage reader shared by all fetches
            batch_size: Validators fetched concurrently per batch
            fetch_retries: Extra attempts for a failed fetch, 0 disables retries
            retry_delay: Backoff base for fetch retries in seconds
            annualization_factor: Eras per year

        Raises:
            InvalidArgumentError: If a parameter is out of range
        """
        if batch_size < 1:
            msg = f"batch_size must be >= 1, got {batch_size}"
            raise InvalidArgumentError(msg)
        if fetch_retries < 0:
            msg = f"fetch_retries must be >= 0, got {fetch_retries}"
            raise InvalidArgumentError(msg)

        self.session = session
        self.batch_size = batch_size
        self.fetch_retries = fetch_retries
        self.retry_delay = retry_delay
        self.annualization_factor = annualization_factor
        # Fail on a bad factor now rather than once per validator
        annualization_fraction(annualization_factor)

        self._fetch = retry_with_backoff(
            max_retries=fetch_retries + 1,
            base_delay=retry_delay,
            max_delay=RETRY_MAX_DELAY,
            retry_if=_is_retryable,
            log_errors=False,
        )(fetch_raw_facts)

    def batches(self, validator_ids: Sequence[str]) -> list[list[str]]:
        """Split validators into consecutive batches preserving order."""
        return [
            list(validator_ids[i : i + self.batch_size])
            for i in range(0, len(validator_ids), self.batch_size)
        ]

    async def _prefetch_era_totals(self, era: int) -> EraTotals | None:
        try:
            return await fetch_era_totals(self.session, era)
        except Exception as e:
            logger.warning(
                "Could not prefetch era %d totals, querying per validator: %s", era, e
            )
            return None

    async def _process_batch(
        self,
        batch_index: int,
        era: int,
        batch: list[str],
        era_totals: EraTotals | None,
    ) -> BatchResult:
        results = await asyncio.gather(
            *[
                self._fetch(self.session, era, validator_id, era_totals=era_totals)
                for validator_id in batch
            ],
            return_exceptions=True,
        )

        metrics: list[ValidatorMetrics] = []
        skipped: list[SkippedValidator] = []
        for validator_id, result in zip(batch, results, strict=True):
            if isinstance(result, FetchError):
                logger.warning("Skipping %s in era %d: %s", validator_id, era, result.cause)
                skipped.append(
                    SkippedValidator(
                        validator_id=validator_id, era=era, reason=str(result.cause)
                    )
                )
                continue
            if isinstance(result, BaseException):
                # Anything else is a bug or a cancellation, not a data problem
                raise result

            facts: RawFacts = result
            metrics.append(
                compute_metrics(facts, annualization_factor=self.annualization_factor)
            )

        return BatchResult(
            batch_index=batch_index, metrics=tuple(metrics), skipped=tuple(skipped)
        )

    async def iter_batches(
        self,
        era: int,
        validator_ids: Sequence[str],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[BatchResult]:
        """Yield one BatchResult per settled batch.

        The next batch is only fetched once the consumer asks for it.

        Args:
            era: Era to compute yields for
            validator_ids: Validators in the order results should follow
            cancel_event: Checked before each batch and before each delivery

        Yields:
            BatchResult of each batch, in batch order

        Raises:
            InvalidArgumentError: If era is negative
        """
        validate_era(era)
        batches = self.batches(validator_ids)
        if not batches:
            return

        era_totals = await self._prefetch_era_totals(era)

        for batch_index, batch in enumerate(batches):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Retrieval cancelled before batch %d", batch_index + 1)
                return

            result = await self._process_batch(batch_index, era, batch, era_totals)

            if cancel_event is not None and cancel_event.is_set():
                logger.info("Retrieval cancelled, dropping batch %d", batch_index + 1)
                return

            logger.debug(
                "Batch %d/%d settled: %d computed, %d skipped",
                batch_index + 1,
                len(batches),
                len(result.metrics),
                len(result.skipped),
            )
            yield result

    async def retrieve_progressively(
        self,
        era: int,
        validator_ids: Sequence[str],
        on_batch: BatchCallback | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> RetrievalResult:
        """Retrieve all validators, delivering each batch as it settles.

        Args:
            era: Era to compute yields for
            validator_ids: Validators in the order results should follow
            on_batch: Called with (batch_index, metrics) after each batch; may
                be a coroutine function, which is awaited
            cancel_event: Cooperative cancellation signal

        Returns:
            RetrievalResult with every delivered metric in delivery order and
            every skipped validator

        Raises:
            InvalidArgumentError: If era is negative
        """
        validate_era(era)
        outcome = RetrievalResult(era=era)

        async for batch in self.iter_batches(
            era, validator_ids, cancel_event=cancel_event
        ):
            outcome.metrics.extend(batch.metrics)
            outcome.skipped.extend(batch.skipped)
            outcome.batches += 1
            if on_batch is not None:
                delivered = on_batch(batch.batch_index, list(batch.metrics))
                if inspect.isawaitable(delivered):
                    await delivered

        outcome.cancelled = cancel_event is not None and cancel_event.is_set()
        logger.info(
            "Era %d: %d validators computed, %d skipped in %d batches%s",
            era,
            len(outcome.metrics),
            len(outcome.skipped),
            outcome.batches,
            " (cancelled)" if outcome.cancelled else "",
        )
        return outcome


async def retrieve_progressively(
    session: StorageReader,
    era: int,
    validator_ids: Sequence[str],
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_batch: BatchCallback | None = None,
    *,
    fetch_retries: int = FETCH_RETRIES,
    retry_delay: float = FETCH_RETRY_DELAY,
    annualization_factor: AnnualizationFactor = ANNUALIZATION_FACTOR,
    cancel_event: asyncio.Event | None = None,
) -> RetrievalResult:
    """Retrieve validator yields in batches with a one-shot retriever.

    Example:
        ```python
        result = await retrieve_progressively(
            session, era, validator_ids, 20,
            lambda index, metrics: print(index, len(metrics)),
        )
        ranked = rank(result.metrics, top_n=16)
        ```
    """
    retriever = BatchRetriever(
        session,
        batch_size=batch_size,
        fetch_retries=fetch_retries,
        retry_delay=retry_delay,
        annualization_factor=annualization_factor,
    )
    return await retriever.retrieve_progressively(
        era, validator_ids, on_batch, cancel_event=cancel_event
    )


__all__ = [
    "BatchCallback",
    "BatchRetriever",
    "retrieve_progressively",
]
