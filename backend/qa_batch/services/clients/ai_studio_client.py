"""Async client for invoking AI Studio flows."""
import logging
from abc import ABC, abstractmethod
from typing import Any

from qa_batch.services.clients.http_base import JSONHTTPClient

logger = logging.getLogger(__name__)

INVOKE_PATH = "/api/v2/flows/{flow_id}"


class AIInvoker(ABC):
    """Runs a text-completion flow and returns its raw response payload."""

    @abstractmethod
    async def invoke(self, flow_id: str, payload: dict) -> Any:
        pass


class AIStudioClient(JSONHTTPClient, AIInvoker):

    async def invoke(self, flow_id: str, payload: dict) -> Any:
        return await self._post_json(INVOKE_PATH.format(flow_id=flow_id), payload)
