"""Chunked transcript retrieval for the selected conversations."""
import logging
from typing import Optional

from qa_batch.config import settings
from qa_batch.services.batch.cancellation import CancellationToken
from qa_batch.services.batch.errors import safe_error_message
from qa_batch.services.batch.progress import ProgressPersister
from qa_batch.services.clients.conversation_client import ConversationSource, conversation_id_of

logger = logging.getLogger(__name__)


def chunked(items: list, size: int) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class TranscriptLoader:

    def __init__(self, source: ConversationSource, chunk_size: Optional[int] = None):
        self.source = source
        self.chunk_size = chunk_size or settings.BATCH_TRANSCRIPT_CHUNK_SIZE

    async def load(
        self, account_id: str, conversation_ids: list[str],
        progress: ProgressPersister, token: CancellationToken,
    ) -> dict[str, dict]:
        """Fetch transcripts chunk by chunk.

        A failed chunk is logged and skipped; its ids are simply missing from
        the returned map.
        """
        transcripts: dict[str, dict] = {}
        for index, chunk in enumerate(chunked(conversation_ids, self.chunk_size)):
            if token.cancelled:
                logger.info(f"Job {token.job_id} cancelled during transcript loading")
                break

            try:
                records = await self.source.get_by_ids(account_id, chunk)
            except Exception as e:
                logger.warning(
                    f"Job {token.job_id}: transcript chunk {index} "
                    f"({len(chunk)} ids) failed, skipping: {safe_error_message(e)}"
                )
                records = []

            wanted = set(chunk)
            for record in records or []:
                conversation_id = conversation_id_of(record)
                if conversation_id in wanted:
                    transcripts[conversation_id] = record

            await progress.update(fetched_conversations=len(transcripts))

        return transcripts
