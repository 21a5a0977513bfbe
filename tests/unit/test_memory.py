import asyncio
import json

import httpx
import pytest

from core.memory import HttpMemoryClient, NullMemory
from core.models import Message


def _client(handler):
    return HttpMemoryClient(base_url="http://memory.test/", user_id="danny",
                            transport=httpx.MockTransport(handler))


def test_recall_posts_messages_and_returns_context():
    seen = []

    def handler(request):
        seen.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"context": "  Danny likes tea.  "})

    messages = [Message.user("hi"), Message.assistant("  "), Message.user("what do I like?")]
    context = asyncio.run(_client(handler).recall(messages))

    assert context == "Danny likes tea."
    assert seen == [("/recall", {
        "user_id": "danny",
        "messages": [
            {"role": "user", "content": "hi"},
            {"role": "user", "content": "what do I like?"},
        ],
    })]


def test_memorize_uses_given_user_id():
    seen = []

    def handler(request):
        seen.append((request.url.path, json.loads(request.content)["user_id"]))
        return httpx.Response(204)

    asyncio.run(_client(handler).memorize([Message.user("remember this")], "someone_else"))

    assert seen == [("/memorize", "someone_else")]


def test_http_errors_propagate():
    def handler(request):
        return httpx.Response(503, text="down")

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(_client(handler).recall([Message.user("hi")]))


def test_null_memory_is_disabled():
    memory = NullMemory()

    assert memory.enabled is False
    assert asyncio.run(memory.recall([Message.user("hi")])) == ""
