"""
Unit tests for chunked transcript loading.
"""
import pytest

from qa_batch.services.batch.transcript_loader import TranscriptLoader, chunked
from tests.helpers import FakeConversationSource, make_record


def test_chunked():
    assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunked([], 3) == []


class TestTranscriptLoader:

    @pytest.mark.asyncio
    async def test_loads_all_chunks(self, progress, token):
        source = FakeConversationSource(250)
        loader = TranscriptLoader(source, chunk_size=100)

        transcripts = await loader.load("acc-1", source.ids, progress, token)

        assert list(transcripts) == source.ids
        assert [len(c) for c in source.get_calls] == [100, 100, 50]
        assert [u["fetched_conversations"] for u in progress.updates] == [100, 200, 250]

    @pytest.mark.asyncio
    async def test_failed_chunk_is_skipped(self, progress, token):
        source = FakeConversationSource(250, failing_chunks={1})
        loader = TranscriptLoader(source, chunk_size=100)

        transcripts = await loader.load("acc-1", source.ids, progress, token)

        assert len(transcripts) == 150
        assert "conv-0150" not in transcripts
        assert "conv-0249" in transcripts
        assert [u["fetched_conversations"] for u in progress.updates] == [100, 100, 150]

    @pytest.mark.asyncio
    async def test_unrequested_records_are_dropped(self, progress, token):
        class ChattySource(FakeConversationSource):
            async def get_by_ids(self, account_id, conversation_ids):
                records = await super().get_by_ids(account_id, conversation_ids)
                return records + [make_record("stranger"), {"info": None}]

        source = ChattySource(3)
        transcripts = await TranscriptLoader(source, chunk_size=10).load("acc-1", source.ids, progress, token)

        assert sorted(transcripts) == source.ids

    @pytest.mark.asyncio
    async def test_cancelled_between_chunks(self, progress, token):
        class CancellingSource(FakeConversationSource):
            async def get_by_ids(self, account_id, conversation_ids):
                token.cancel()
                return await super().get_by_ids(account_id, conversation_ids)

        source = CancellingSource(30)
        transcripts = await TranscriptLoader(source, chunk_size=10).load("acc-1", source.ids, progress, token)

        assert len(source.get_calls) == 1
        assert list(transcripts) == source.ids[:10]

    @pytest.mark.asyncio
    async def test_no_ids(self, progress, token):
        source = FakeConversationSource(0)
        assert await TranscriptLoader(source, chunk_size=10).load("acc-1", [], progress, token) == {}
        assert source.get_calls == []
