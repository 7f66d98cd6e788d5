"""HTTP clients for the conversation source and the AI flow service."""
from qa_batch.services.clients.conversation_client import (
    ConversationClient, ConversationSource, SearchPage, SearchQuery,
)
from qa_batch.services.clients.ai_studio_client import AIInvoker, AIStudioClient

__all__ = [
    "ConversationClient", "ConversationSource", "SearchPage", "SearchQuery",
    "AIInvoker", "AIStudioClient",
]
