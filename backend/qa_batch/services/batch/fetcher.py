"""Conversation selection: paginated search, then ordering and sampling."""
import logging
import math
import random
from typing import Optional

from qa_batch.config import settings
from qa_batch.schemas.batch_job import BatchJobConfig
from qa_batch.services.batch.cancellation import CancellationToken
from qa_batch.services.batch.progress import ProgressPersister
from qa_batch.services.clients.conversation_client import (
    ConversationSource, SearchQuery, conversation_id_of,
)

logger = logging.getLogger(__name__)


def sample_size(count: int, sampling_rate: float) -> int:
    return math.ceil(count * sampling_rate / 100)


def estimated_total(total_count: int, sampling_rate: float, max_conversations: int) -> int:
    return min(sample_size(total_count, sampling_rate), max_conversations)


def ids_needed(max_conversations: int, sampling_rate: float) -> int:
    """How many matched ids yield max_conversations after sampling."""
    return math.ceil(max_conversations * 100 / sampling_rate)


def shuffle_ids(ids: list[str], rng: Optional[random.Random] = None) -> list[str]:
    """Unbiased Fisher-Yates shuffle of a copy of ids."""
    shuffled = list(ids)
    (rng or random).shuffle(shuffled)
    return shuffled


def order_and_sample(
    ids: list[str], config: BatchJobConfig, rng: Optional[random.Random] = None,
) -> list[str]:
    selected = ids
    if config.priority_order == "random":
        selected = shuffle_ids(ids, rng)
    elif config.priority_order == "mcs_lowest":
        # MCS data is not available at selection time; keep search order
        logger.debug("priority_order=mcs_lowest has no effect, using search order")

    if config.sampling_rate < 100:
        selected = selected[:sample_size(len(selected), config.sampling_rate)]
    return selected[:config.max_conversations]


class ConversationSelector:
    """Picks the working set of conversation ids for one job."""

    def __init__(
        self, source: ConversationSource,
        page_size: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.source = source
        self.page_size = page_size or settings.BATCH_SEARCH_PAGE_SIZE
        self.rng = rng

    def _query(self, config: BatchJobConfig, offset: int) -> SearchQuery:
        filters = config.filters
        return SearchQuery(
            date_from=filters.date_from,
            date_to=filters.date_to,
            status=filters.status or ["CLOSE"],
            skill_ids=filters.skill_ids,
            agent_ids=filters.agent_ids,
            sort="start:asc" if config.priority_order == "oldest_first" else "start:desc",
            offset=offset,
            limit=self.page_size,
        )

    async def select(
        self, account_id: str, config: BatchJobConfig,
        progress: ProgressPersister, token: CancellationToken,
    ) -> list[str]:
        if config.sampling_rate <= 0:
            await progress.update(total_conversations=0)
            return []

        target = ids_needed(config.max_conversations, config.sampling_rate)
        ids: list[str] = []
        offset = 0

        while True:
            if token.cancelled:
                logger.info(f"Job {token.job_id} cancelled during fetch at offset {offset}")
                break

            page = await self.source.search(account_id, self._query(config, offset))
            for record in page.records:
                conversation_id = conversation_id_of(record)
                if conversation_id:
                    ids.append(conversation_id)

            await progress.update(total_conversations=estimated_total(
                page.total_count, config.sampling_rate, config.max_conversations,
            ))

            if len(page.records) < self.page_size or len(ids) >= target:
                break
            offset += self.page_size

        selected = order_and_sample(ids, config, self.rng)
        await progress.update(total_conversations=len(selected))
        logger.info(f"Job {token.job_id}: selected {len(selected)} of {len(ids)} matched conversations")
        return selected
