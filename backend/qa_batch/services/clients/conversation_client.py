"""Async client for the messaging-history conversation source."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from qa_batch.services.clients.http_base import JSONHTTPClient

logger = logging.getLogger(__name__)

SEARCH_PATH = "/messaging_history/api/account/{account_id}/conversations/search"
BY_ID_PATH = "/messaging_history/api/account/{account_id}/conversations/conversation/search"


@dataclass
class SearchQuery:
    date_from: int
    date_to: int
    status: list[str] = field(default_factory=lambda: ["CLOSE"])
    skill_ids: Optional[list[int]] = None
    agent_ids: Optional[list[str]] = None
    sort: str = "start:desc"
    offset: int = 0
    limit: int = 100


@dataclass
class SearchPage:
    records: list[dict]
    total_count: int


def conversation_id_of(record: dict) -> Optional[str]:
    info = record.get("info") if isinstance(record, dict) else None
    if isinstance(info, dict):
        return info.get("conversationId")
    return None


class ConversationSource(ABC):
    """Where conversations and their transcripts come from."""

    @abstractmethod
    async def search(self, account_id: str, query: SearchQuery) -> SearchPage:
        pass

    @abstractmethod
    async def get_by_ids(self, account_id: str, conversation_ids: list[str]) -> list[dict]:
        pass


class ConversationClient(JSONHTTPClient, ConversationSource):
    """HTTP implementation of ConversationSource."""

    async def search(self, account_id: str, query: SearchQuery) -> SearchPage:
        body: dict = {
            "start": {"from": query.date_from, "to": query.date_to},
            "status": query.status or ["CLOSE"],
        }
        if query.skill_ids:
            body["skillIds"] = query.skill_ids
        if query.agent_ids:
            body["agentIds"] = query.agent_ids

        params = {"offset": str(query.offset), "limit": str(query.limit), "sort": query.sort}
        logger.info(
            "Searching conversations account=%s from=%s to=%s offset=%d",
            account_id, query.date_from, query.date_to, query.offset,
        )
        data = await self._post_json(SEARCH_PATH.format(account_id=account_id), body, params) or {}
        records = data.get("conversationHistoryRecords") or []
        total = (data.get("_metadata") or {}).get("count") or 0
        return SearchPage(records=records, total_count=int(total))

    async def get_by_ids(self, account_id: str, conversation_ids: list[str]) -> list[dict]:
        logger.info("Getting %d conversation(s) by ID for account=%s", len(conversation_ids), account_id)
        data = await self._post_json(
            BY_ID_PATH.format(account_id=account_id),
            {"conversationIds": conversation_ids},
        ) or {}
        return data.get("conversationHistoryRecords") or []
