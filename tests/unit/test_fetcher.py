"""
Unit tests for conversation selection: paging, sampling and ordering.
"""
import asyncio
import random

import pytest
from pydantic import ValidationError

from qa_batch.schemas.batch_job import BatchJobConfig, BatchJobFilters
from qa_batch.services.batch.fetcher import (
    ConversationSelector, estimated_total, ids_needed, order_and_sample, sample_size, shuffle_ids,
)
from tests.helpers import FakeConversationSource


def make_config(**overrides) -> BatchJobConfig:
    fields = {
        "name": "Weekly QA",
        "framework_id": "fw-1",
        "filters": BatchJobFilters(date_from=1_700_000_000_000, date_to=1_700_086_400_000),
    }
    fields.update(overrides)
    return BatchJobConfig(**fields)


class TestJobConfig:

    def test_filters_are_immutable(self):
        filters = BatchJobFilters(date_from=1, date_to=2)
        with pytest.raises(ValidationError):
            filters.date_to = 3

    def test_config_is_immutable(self):
        config = make_config()
        with pytest.raises(ValidationError):
            config.sampling_rate = 50


class TestSamplingMath:

    def test_sample_size_rounds_up(self):
        assert sample_size(250, 20) == 50
        assert sample_size(7, 50) == 4
        assert sample_size(0, 20) == 0

    def test_estimated_total_is_capped(self):
        assert estimated_total(250, 20, 100) == 50
        assert estimated_total(10_000, 20, 100) == 100

    def test_ids_needed(self):
        assert ids_needed(100, 20) == 500
        assert ids_needed(100, 100) == 100
        assert ids_needed(10, 30) == 34


class TestOrderAndSample:

    def test_newest_first_keeps_search_order(self):
        ids = [f"c{i}" for i in range(10)]
        assert order_and_sample(ids, make_config(sampling_rate=50)) == ids[:5]

    def test_mcs_lowest_keeps_search_order(self):
        ids = [f"c{i}" for i in range(10)]
        assert order_and_sample(ids, make_config(priority_order="mcs_lowest")) == ids

    def test_random_is_a_permutation(self):
        ids = [f"c{i}" for i in range(30)]
        selected = order_and_sample(ids, make_config(priority_order="random"), random.Random(3))
        assert sorted(selected) == sorted(ids)
        assert selected == shuffle_ids(ids, random.Random(3))

    def test_shuffle_does_not_mutate_input(self):
        ids = ["a", "b", "c", "d"]
        shuffle_ids(ids, random.Random(1))
        assert ids == ["a", "b", "c", "d"]

    def test_max_conversations_caps_result(self):
        ids = [f"c{i}" for i in range(10)]
        assert order_and_sample(ids, make_config(max_conversations=3)) == ids[:3]


class TestConversationSelector:

    @pytest.mark.asyncio
    async def test_sampling_250_at_20_percent(self, progress, token):
        source = FakeConversationSource(250)
        selector = ConversationSelector(source, page_size=100)

        selected = await selector.select(
            "acc-1", make_config(sampling_rate=20, max_conversations=100), progress, token,
        )

        assert len(selected) == 50
        assert len(source.search_calls) == 3
        assert [q.offset for q in source.search_calls] == [0, 100, 200]
        assert progress.last("total_conversations") == 50

    @pytest.mark.asyncio
    async def test_stops_once_enough_ids_collected(self, progress, token):
        source = FakeConversationSource(1000)
        selector = ConversationSelector(source, page_size=10)

        selected = await selector.select("acc-1", make_config(max_conversations=30), progress, token)

        assert selected == source.ids[:30]
        assert len(source.search_calls) == 3

    @pytest.mark.asyncio
    async def test_short_page_ends_paging(self, progress, token):
        source = FakeConversationSource(5)
        selector = ConversationSelector(source, page_size=10)

        selected = await selector.select("acc-1", make_config(), progress, token)

        assert selected == source.ids
        assert len(source.search_calls) == 1

    @pytest.mark.asyncio
    async def test_progress_estimate_after_each_page(self, progress, token):
        source = FakeConversationSource(35)
        selector = ConversationSelector(source, page_size=10)

        await selector.select("acc-1", make_config(sampling_rate=50, max_conversations=100), progress, token)

        estimates = [u["total_conversations"] for u in progress.updates]
        # one estimate per page, then the final selected count
        assert estimates == [18, 18, 18, 18, 18]

    @pytest.mark.asyncio
    async def test_query_carries_filters_and_sort(self, progress, token):
        source = FakeConversationSource(3)
        selector = ConversationSelector(source, page_size=10)
        config = make_config(
            priority_order="oldest_first",
            filters=BatchJobFilters(date_from=1, date_to=2, skill_ids=[7], agent_ids=["a1"]),
        )

        await selector.select("acc-1", config, progress, token)

        query = source.search_calls[0]
        assert (query.date_from, query.date_to) == (1, 2)
        assert query.status == ["CLOSE"]
        assert query.skill_ids == [7]
        assert query.agent_ids == ["a1"]
        assert query.sort == "start:asc"
        assert query.limit == 10

    @pytest.mark.asyncio
    async def test_newest_first_sorts_descending(self, progress, token):
        source = FakeConversationSource(3)
        await ConversationSelector(source, page_size=10).select("acc-1", make_config(), progress, token)
        assert source.search_calls[0].sort == "start:desc"

    @pytest.mark.asyncio
    async def test_random_order_uses_rng(self, progress, token):
        source = FakeConversationSource(20)
        selector = ConversationSelector(source, page_size=50, rng=random.Random(11))

        selected = await selector.select("acc-1", make_config(priority_order="random"), progress, token)

        assert selected == shuffle_ids(source.ids, random.Random(11))

    @pytest.mark.asyncio
    async def test_zero_sampling_rate_selects_nothing(self, progress, token):
        source = FakeConversationSource(20)

        selected = await ConversationSelector(source).select(
            "acc-1", make_config(sampling_rate=0), progress, token,
        )

        assert selected == []
        assert source.search_calls == []
        assert progress.last("total_conversations") == 0

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, progress, token):
        source = FakeConversationSource(20)
        token.cancel()

        selected = await ConversationSelector(source, page_size=10).select("acc-1", make_config(), progress, token)

        assert selected == []
        assert source.search_calls == []

    @pytest.mark.asyncio
    async def test_cancel_stops_within_one_page(self, progress, token):
        source = FakeConversationSource(300)
        source.search_gate = asyncio.Event()
        selector = ConversationSelector(source, page_size=100)

        task = asyncio.create_task(selector.select("acc-1", make_config(max_conversations=300), progress, token))
        await source.search_started.wait()
        token.cancel()
        source.search_gate.set()
        selected = await task

        assert len(source.search_calls) == 1
        assert selected == source.ids[:100]
