"""Tests for progressive batch retrieval."""

import asyncio

import pytest

from validator_yield.errors import InvalidArgumentError
from validator_yield.staking.models import ValidatorMetrics
from validator_yield.staking.retriever import BatchRetriever, retrieve_progressively
from tests.fakes import FakeStorage, seed_era, seed_validator


ERA = 1510


@pytest.fixture
def seeded_storage(storage: FakeStorage, validator_ids: list[str]) -> FakeStorage:
    """Era with 20 validators, validator i earning i points."""
    seed_era(
        storage,
        ERA,
        payout=21_000_000,
        points={vid: i for i, vid in enumerate(validator_ids, start=1)},
    )
    for vid in validator_ids:
        seed_validator(
            storage, ERA, vid, commission=50_000_000, total=1_000_000, own=100_000, nominators=2
        )
    return storage


class TestRetrieveProgressively:
    """Tests for BatchRetriever.retrieve_progressively."""

    @pytest.mark.asyncio
    async def test_delivers_batches_in_order(
        self, seeded_storage: FakeStorage, validator_ids: list[str]
    ) -> None:
        """Test 20 validators in batches of 5 give 4 ordered deliveries."""
        # The first validator of each batch settles last
        for vid in validator_ids[::5]:
            seeded_storage.delay("staking", "erasStakersOverview", ERA, vid, seconds=0.02)
        deliveries: list[tuple[int, list[str]]] = []

        def on_batch(batch_index: int, metrics: list[ValidatorMetrics]) -> None:
            deliveries.append((batch_index, [m.validator_id for m in metrics]))

        retriever = BatchRetriever(seeded_storage, batch_size=5, retry_delay=0)
        result = await retriever.retrieve_progressively(ERA, validator_ids, on_batch)

        assert [index for index, _ in deliveries] == [0, 1, 2, 3]
        assert [ids for _, ids in deliveries] == [
            validator_ids[0:5],
            validator_ids[5:10],
            validator_ids[10:15],
            validator_ids[15:20],
        ]
        assert [m.validator_id for m in result.metrics] == validator_ids
        assert result.batches == 4
        assert result.skipped == []
        assert result.cancelled is False

    @pytest.mark.asyncio
    async def test_batches_do_not_overlap(
        self, seeded_storage: FakeStorage, validator_ids: list[str]
    ) -> None:
        """Test concurrency stays within one batch of fetches."""
        for vid in validator_ids:
            seeded_storage.delay("staking", "erasValidatorPrefs", ERA, vid, seconds=0.01)

        retriever = BatchRetriever(seeded_storage, batch_size=5, retry_delay=0)
        await retriever.retrieve_progressively(ERA, validator_ids)

        # Each fetch issues a prefs and an exposure query concurrently
        assert seeded_storage.max_in_flight <= 2 * 5
        prefs_calls = seeded_storage.calls_for("staking", "erasValidatorPrefs")
        assert [call[3] for call in prefs_calls] == validator_ids

    @pytest.mark.asyncio
    async def test_era_totals_fetched_once(
        self, seeded_storage: FakeStorage, validator_ids: list[str]
    ) -> None:
        """Test era-wide records are read once per run."""
        await retrieve_progressively(seeded_storage, ERA, validator_ids, 5, retry_delay=0)

        assert len(seeded_storage.calls_for("staking", "erasRewardPoints")) == 1
        assert len(seeded_storage.calls_for("staking", "erasValidatorReward")) == 1

    @pytest.mark.asyncio
    async def test_falls_back_when_prefetch_fails(
        self, seeded_storage: FakeStorage, validator_ids: list[str]
    ) -> None:
        """Test a failed prefetch falls back to per-validator era queries."""
        seeded_storage.fail(
            "staking", "erasRewardPoints", ERA, error=TimeoutError("slow"), times=1
        )

        result = await retrieve_progressively(
            seeded_storage, ERA, validator_ids[:3], 5, retry_delay=0
        )

        assert len(result.metrics) == 3
        assert len(seeded_storage.calls_for("staking", "erasRewardPoints")) == 4

    @pytest.mark.asyncio
    async def test_failed_validators_are_skipped(
        self, seeded_storage: FakeStorage, validator_ids: list[str]
    ) -> None:
        """Test persistent failures skip the validator without stopping the run."""
        v7, v13 = validator_ids[6], validator_ids[12]
        for vid in (v7, v13):
            seeded_storage.fail(
                "staking", "erasStakersOverview", ERA, vid, error=TimeoutError("rpc timeout")
            )

        result = await retrieve_progressively(
            seeded_storage, ERA, validator_ids, 5, retry_delay=0
        )

        assert len(result.metrics) == 18
        assert result.skipped_ids == [v7, v13]
        assert result.skipped[0].reason == "rpc timeout"
        assert v7 not in [m.validator_id for m in result.metrics]
        # One retry per failing validator
        calls = seeded_storage.calls_for("staking", "erasStakersOverview")
        assert sum(1 for call in calls if call[3] == v7) == 2

    @pytest.mark.asyncio
    async def test_transient_failure_retried(
        self, seeded_storage: FakeStorage, validator_ids: list[str]
    ) -> None:
        """Test a single transient failure is absorbed by the retry."""
        seeded_storage.fail(
            "staking",
            "erasValidatorPrefs",
            ERA,
            validator_ids[0],
            error=ConnectionResetError("reset"),
            times=1,
        )

        result = await retrieve_progressively(
            seeded_storage, ERA, validator_ids[:5], 5, retry_delay=0
        )

        assert [m.validator_id for m in result.metrics] == validator_ids[:5]
        assert result.skipped == []

    @pytest.mark.asyncio
    async def test_no_retry_when_disabled(
        self, seeded_storage: FakeStorage, validator_ids: list[str]
    ) -> None:
        """Test fetch_retries=0 skips on the first failure."""
        seeded_storage.fail(
            "staking",
            "erasValidatorPrefs",
            ERA,
            validator_ids[0],
            error=ConnectionResetError("reset"),
            times=1,
        )

        result = await retrieve_progressively(
            seeded_storage, ERA, validator_ids[:5], 5, fetch_retries=0
        )

        assert result.skipped_ids == [validator_ids[0]]

    @pytest.mark.asyncio
    async def test_async_callback_awaited(
        self, seeded_storage: FakeStorage, validator_ids: list[str]
    ) -> None:
        """Test a coroutine callback finishes before the next batch starts."""
        seen: list[int] = []

        async def on_batch(batch_index: int, metrics: list[ValidatorMetrics]) -> None:
            await asyncio.sleep(0)
            seen.append(batch_index)

        await retrieve_progressively(
            seeded_storage, ERA, validator_ids, 10, on_batch, retry_delay=0
        )

        assert seen == [0, 1]

    @pytest.mark.asyncio
    async def test_cancellation_stops_further_batches(
        self, seeded_storage: FakeStorage, validator_ids: list[str]
    ) -> None:
        """Test no batch is started or delivered after cancellation."""
        cancel = asyncio.Event()
        seen: list[int] = []

        def on_batch(batch_index: int, metrics: list[ValidatorMetrics]) -> None:
            seen.append(batch_index)
            cancel.set()

        result = await retrieve_progressively(
            seeded_storage, ERA, validator_ids, 5, on_batch, cancel_event=cancel
        )

        assert seen == [0]
        assert result.cancelled is True
        assert [m.validator_id for m in result.metrics] == validator_ids[:5]
        assert len(seeded_storage.calls_for("staking", "erasValidatorPrefs")) == 5

    @pytest.mark.asyncio
    async def test_cancellation_during_batch_drops_it(
        self, seeded_storage: FakeStorage, validator_ids: list[str]
    ) -> None:
        """Test a batch settling after cancellation is not delivered."""
        cancel = asyncio.Event()
        seeded_storage.delay(
            "staking", "erasValidatorPrefs", ERA, validator_ids[0], seconds=0.05
        )
        seen: list[int] = []

        async def cancel_soon() -> None:
            await asyncio.sleep(0.01)
            cancel.set()

        canceller = asyncio.create_task(cancel_soon())
        result = await retrieve_progressively(
            seeded_storage,
            ERA,
            validator_ids,
            5,
            lambda index, _metrics: seen.append(index),
            cancel_event=cancel,
        )
        await canceller

        assert seen == []
        assert result.metrics == []
        assert result.cancelled is True

    @pytest.mark.asyncio
    async def test_empty_input(self, storage: FakeStorage) -> None:
        """Test no validators means no queries and no deliveries."""
        result = await retrieve_progressively(storage, ERA, [], 5)

        assert result.metrics == []
        assert result.batches == 0
        assert storage.calls == []

    @pytest.mark.asyncio
    async def test_negative_era(self, storage: FakeStorage, validator_ids: list[str]) -> None:
        """Test a negative era is rejected before any query."""
        with pytest.raises(InvalidArgumentError):
            await retrieve_progressively(storage, -1, validator_ids, 5)
        assert storage.calls == []


class TestBatchRetriever:
    """Tests for BatchRetriever construction and batching."""

    @pytest.mark.parametrize(
        "kwargs",
        [{"batch_size": 0}, {"fetch_retries": -1}, {"annualization_factor": 0}],
    )
    def test_invalid_parameters(self, storage: FakeStorage, kwargs: dict) -> None:
        """Test out-of-range parameters are rejected up front."""
        with pytest.raises(InvalidArgumentError):
            BatchRetriever(storage, **kwargs)

    def test_batches(self, storage: FakeStorage, validator_ids: list[str]) -> None:
        """Test the last batch holds the remainder."""
        batches = BatchRetriever(storage, batch_size=8).batches(validator_ids)

        assert [len(batch) for batch in batches] == [8, 8, 4]
        assert [vid for batch in batches for vid in batch] == validator_ids

    @pytest.mark.asyncio
    async def test_iter_batches(
        self, seeded_storage: FakeStorage, validator_ids: list[str]
    ) -> None:
        """Test batches can be consumed as an async iterator."""
        retriever = BatchRetriever(seeded_storage, batch_size=7, retry_delay=0)

        results = [batch async for batch in retriever.iter_batches(ERA, validator_ids)]

        assert [batch.batch_index for batch in results] == [0, 1, 2]
        assert sum(len(batch.metrics) for batch in results) == 20
        # Validator 20 earned the most points and has the highest APY
        assert max(
            (m for batch in results for m in batch.metrics), key=lambda m: m.apy
        ).validator_id == validator_ids[-1]
