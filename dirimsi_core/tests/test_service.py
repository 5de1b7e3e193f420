import asyncio

import pytest

from dirimsi_core.agents.orchestrator import ConversationOrchestrator
from dirimsi_core.api import service
from dirimsi_core.domain.models import ChatResult, RetryPolicy


class FakeProvider:
    name = "fake"

    def __init__(self):
        self.requests = []

    async def generate(self, req):
        self.requests.append(req)
        return ChatResult(provider="fake", model=req.model, text=f"reply {len(self.requests)}")


@pytest.fixture
def orchestrator(monkeypatch):
    orch = ConversationOrchestrator(FakeProvider(), retry_policy=RetryPolicy(max_attempts=1), debounce_seconds=0)
    monkeypatch.setattr(service, "_orchestrator", orch)
    yield orch
    service.reset_default_orchestrator()


def test_send_message_returns_plain_dict(orchestrator):
    result = asyncio.run(service.send_message("Jambo"))
    assert result["accepted"] is True
    assert result["reply"]["role"] == "assistant"
    assert result["reply"]["content"] == "reply 1"
    assert result["busy"] is False
    assert result["message_count"] == 3


def test_send_blank_message_not_accepted(orchestrator):
    result = asyncio.run(service.send_message("  "))
    assert result["accepted"] is False
    assert result["reply"] is None
    assert result["message_count"] == 1


def test_send_quick_action_and_image(orchestrator, tmp_path):
    asyncio.run(service.send_quick_action("dish_recipe"))
    path = tmp_path / "cloth.png"
    path.write_bytes(b"\x89PNG\r\n")
    result = asyncio.run(service.send_image(path))
    assert result["accepted"] is True

    messages = service.list_messages()
    assert len(messages) == 5
    assert messages[3]["image"] == {"mime_type": "image/png", "filename": "cloth.png", "size": 6}
    assert "image" not in messages[1]
