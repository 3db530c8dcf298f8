# tests/modules/chatbot/test_chatbot.py
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi import status
from httpx import AsyncClient

from bizhub.modules.chatbot.models import ChatbotRequestAPI, ChatTurn
from bizhub.modules.chatbot.rules import (
    DEFAULT_RESPONSE, PRODUCT_ADD_HELP, SALE_VIEW_HELP, match_rule, rule_based_reply,
)
from bizhub.modules.chatbot.services import SYSTEM_PROMPT, ChatbotService
from bizhub.services.llm_client import LLMResponse, OpenAIClient, get_llm_client

pytestmark = pytest.mark.asyncio


@pytest.mark.parametrize("message, category", [
    ("Hi there!", "greeting"),
    ("What is this platform about?", "overview"),
    ("Which framework is it built with?", "technology"),
    ("How do I install it?", "setup"),
    ("Show me the API endpoints", "api"),
    ("Where is the data stored? MongoDB?", "database"),
    ("Can you forecast next month?", "forecast"),
    ("Can I send a WhatsApp?", "communication"),
    ("Thanks a lot", "thanks"),
    ("xyzzy", "default"),
])
async def test_match_rule_categories(message, category):
    assert match_rule(message)[0] == category


async def test_words_match_on_boundaries():
    # "this" must not trigger the "hi" greeting
    assert match_rule("this")[0] == "default"
    assert match_rule("xyzzy")[1] == DEFAULT_RESPONSE


async def test_contextual_follow_ups():
    about_products = [ChatTurn(role="user", content="Tell me about products"), ChatTurn(role="bot", content="...")]
    assert rule_based_reply("How do I add one?", about_products) == PRODUCT_ADD_HELP

    about_sales = [ChatTurn(role="user", content="What about sales?")]
    assert rule_based_reply("where can I see them", about_sales) == SALE_VIEW_HELP


def llm_stub(content=None, error=None) -> MagicMock:
    client = MagicMock(spec=OpenAIClient)
    client.enabled = True
    client.get_completion = AsyncMock(return_value=LLMResponse(model="gpt-test", content=content, error=error))
    return client


async def test_service_uses_llm_with_trimmed_history():
    llm = llm_stub(content="Use the Products page.")
    history = [ChatTurn(role="user" if i % 2 else "bot", content=f"turn {i}") for i in range(14)]
    reply = await ChatbotService(llm).reply(ChatbotRequestAPI(message="How do I add stock?", conversation_history=history))

    assert reply.source == "openai"
    assert reply.response == "Use the Products page."
    messages = llm.get_completion.await_args.args[0]
    assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert len(messages) == 12
    assert messages[1] == {"role": "assistant", "content": "turn 4"}
    assert messages[-1] == {"role": "user", "content": "How do I add stock?"}


async def test_service_falls_back_when_llm_fails():
    reply = await ChatbotService(llm_stub(error="HTTP 500")).reply(ChatbotRequestAPI(message="hello"))
    assert reply.source == "rule-based"
    assert reply.response.startswith("Hello! I'm the AI Business Hub assistant.")


async def test_chatbot_endpoint_is_public_and_rule_based_without_key(client: AsyncClient):
    response = await client.post("/api/v1/communication/chatbot", json={"message": "What features do you have?"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["source"] == "rule-based"
    assert response.json()["response"].startswith("Key features:")


async def test_chatbot_endpoint_with_llm(client: AsyncClient, app):
    app.dependency_overrides[get_llm_client] = lambda: llm_stub(content="Hi from the model")
    response = await client.post("/api/v1/communication/chatbot", json={"message": "hello"})
    assert response.json() == {"response": "Hi from the model", "source": "openai"}


async def test_chatbot_rejects_blank_messages(client: AsyncClient):
    response = await client.post("/api/v1/communication/chatbot", json={"message": "   "})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


async def test_openai_client_parses_completion():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"model": "gpt-test", "choices": [{"message": {"content": "  Sure!  "}}]})

    client = OpenAIClient(api_key="sk-test", api_url="https://llm.test/v1/chat/completions")
    await client.aclient.aclose()
    client.aclient = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    result = await client.get_completion([{"role": "user", "content": "hi"}], model="gpt-test", max_tokens=20)
    await client.aclose()
    assert result.content == "Sure!"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["max_tokens"] == 20


async def test_openai_client_reports_http_errors():
    client = OpenAIClient(api_key="sk-test", api_url="https://llm.test/v1/chat/completions")
    await client.aclient.aclose()
    client.aclient = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(429, text="slow down")))

    result = await client.get_completion([{"role": "user", "content": "hi"}])
    await client.aclose()
    assert result.content is None
    assert result.error == "HTTP 429"


async def test_openai_client_disabled_without_key():
    client = OpenAIClient(api_key="")
    assert client.enabled is False
    result = await client.get_completion([{"role": "user", "content": "hi"}])
    assert result.error == "OpenAI client not initialized."
