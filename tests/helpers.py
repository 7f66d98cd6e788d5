"""In-memory collaborators and record builders for tests."""
import asyncio
import json


from qa_batch.services.clients.ai_studio_client import AIInvoker
from qa_batch.services.clients.conversation_client import ConversationSource, SearchPage


def make_record(conversation_id: str, messages: list[tuple[str, str]] | None = None) -> dict:
    """Build a messaging-history record with plain-text messages."""
    messages = messages if messages is not None else [
        ("Consumer", "Hi, my order is late"),
        ("Agent", "Sorry about that, let me check"),
    ]
    return {
        "info": {
            "conversationId": conversation_id,
            "startTime": "2024-01-01T10:00:00Z",
            "latestSkillName": "Support",
            "latestAgentFullName": "Agent Smith",
        },
        "agentParticipants": [{"agentId": "a1"}],
        "messageRecords": [
            {"type": "TEXT_PLAIN", "sentBy": sender, "messageData": {"msg": {"text": text}}}
            for sender, text in messages
        ],
    }


class FakeConversationSource(ConversationSource):
    """Serves ``total`` conversations conv-0000.. in pages."""

    def __init__(self, total: int, failing_chunks: set[int] | None = None):
        self.total = total
        self.ids = [f"conv-{i:04d}" for i in range(total)]
        self.failing_chunks = failing_chunks or set()
        self.search_calls: list = []
        self.get_calls: list[list[str]] = []
        # When set, search() waits on it before answering
        self.search_gate: asyncio.Event | None = None
        self.search_started = asyncio.Event()

    async def search(self, account_id, query) -> SearchPage:
        self.search_calls.append(query)
        self.search_started.set()
        if self.search_gate is not None:
            await self.search_gate.wait()
        page = self.ids[query.offset:query.offset + query.limit]
        return SearchPage(records=[{"info": {"conversationId": cid}} for cid in page], total_count=self.total)

    async def get_by_ids(self, account_id, conversation_ids):
        index = len(self.get_calls)
        self.get_calls.append(list(conversation_ids))
        if index in self.failing_chunks:
            raise ConnectionError("messaging history unavailable")
        return [make_record(cid) for cid in conversation_ids]


def ai_reply(scores: list[dict], summary: str = "ok") -> dict:
    return {"output": {"text": json.dumps({
        "comments": [],
        "scores": scores,
        "summary": summary,
        "overallAssessment": {"overallConfidence": 0.8, "criticalIssues": []},
    })}}


class FakeAI(AIInvoker):
    """Returns ``reply`` (or reply(prompt)) and tracks concurrency."""

    def __init__(self, reply=None, delay: float = 0):
        self.reply = reply if reply is not None else ai_reply([
            {"sectionId": "s1", "itemId": "i1", "score": 1},
            {"sectionId": "s1", "itemId": "i2", "score": 0},
        ])
        self.delay = delay
        self.calls: list[tuple[str, dict]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def invoke(self, flow_id, payload):
        self.calls.append((flow_id, payload))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            reply = self.reply(payload["input"]["text"]) if callable(self.reply) else self.reply
            if isinstance(reply, Exception):
                raise reply
            return reply
        finally:
            self.in_flight -= 1


class FakeProgress:
    """Stands in for ProgressPersister where no database is needed."""

    def __init__(self):
        self.updates: list[dict] = []
        self.items: list = []

    async def update(self, **fields):
        self.updates.append(fields)

    async def record(self, item):
        self.items.append(item)

    def last(self, field: str):
        for update in reversed(self.updates):
            if field in update:
                return update[field]
        return None


