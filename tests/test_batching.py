"""Tests for bounded-concurrency batch processing."""

import asyncio

import pytest

from deploy_validator.services.batching import process_batch


class TestProcessBatch:
    """Tests for process_batch."""

    @pytest.mark.asyncio
    async def test_preserves_input_order_when_completing_in_reverse(self):
        """Should keep input order when later items finish first."""
        async def processor(item):
            await asyncio.sleep((10 - item) * 0.001)
            return item * 10

        results = await process_batch(list(range(10)), 5, processor)

        assert results == [i * 10 for i in range(10)]

    @pytest.mark.asyncio
    async def test_never_exceeds_concurrency(self):
        """Should run at most `concurrency` processors at once."""
        running = 0
        peak = 0

        async def processor(item):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.001)
            running -= 1
            return item

        await process_batch(list(range(23)), 4, processor)

        assert peak <= 4

    @pytest.mark.asyncio
    async def test_next_batch_waits_for_previous(self):
        """Should start batch N+1 only after every item of batch N completes."""
        events = []

        async def processor(item):
            events.append(("start", item))
            await asyncio.sleep(0.001 * (3 - item % 3))
            events.append(("end", item))
            return item

        await process_batch(list(range(6)), 3, processor)

        last_end_first_batch = max(i for i, e in enumerate(events) if e[0] == "end" and e[1] < 3)
        first_start_second_batch = min(i for i, e in enumerate(events) if e[0] == "start" and e[1] >= 3)
        assert last_end_first_batch < first_start_second_batch

    @pytest.mark.asyncio
    async def test_empty_input(self):
        """Should return an empty list for empty input."""
        async def processor(item):
            return item

        assert await process_batch([], 3, processor) == []

    @pytest.mark.asyncio
    async def test_rejects_zero_concurrency(self):
        """Should reject a concurrency below one."""
        async def processor(item):
            return item

        with pytest.raises(ValueError):
            await process_batch([1], 0, processor)
