import asyncio
import json
import os
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from citecheck.models import Footnote
from citecheck.services.llm import ModelResponse, ToolCallRequest, ToolResult


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables before any imports."""
    env_vars = {
        "GEMINI_API_KEY": "test_gemini_key",
        "LINKUP_API_KEY": "test_linkup_key",
        "GEMINI_MODEL": "gemini-3-flash-preview",
    }
    for key, value in env_vars.items():
        os.environ[key] = value
    yield
    for key in env_vars.keys():
        os.environ.pop(key, None)


def verdict_json(
    verdict: str = "supports",
    confidence: float = 0.9,
    explanation: str = "The source states the claim directly.",
    sources: Optional[List[Dict[str, Any]]] = None,
) -> str:
    if sources is None:
        sources = [{
            "title": "Source",
            "url": "https://example.com/source",
            "accessed": True,
            "verdict": verdict,
            "explanation": explanation,
        }]
    return json.dumps({
        "sources": sources,
        "overall_verdict": verdict,
        "confidence": confidence,
        "explanation": explanation,
    })


def text_reply(text: str) -> ModelResponse:
    return ModelResponse(text=text)


def tool_reply(*calls: ToolCallRequest) -> ModelResponse:
    return ModelResponse(tool_calls=list(calls))


Message = Union[str, List[ToolResult]]
Handler = Callable[["FakeChatSession", Message], Awaitable[ModelResponse]]


class FakeChatSession:
    def __init__(self, model: "FakeChatModel", system_instruction, tools, response_schema):
        self.model = model
        self.system_instruction = system_instruction
        self.tools = tools
        self.response_schema = response_schema
        self.messages: List[Message] = []

    @property
    def first_message(self) -> str:
        return self.messages[0] if self.messages else ""

    async def _reply(self, message: Message) -> ModelResponse:
        self.messages.append(message)
        if self.model.handler is not None:
            return await self.model.handler(self, message)
        if not self.model.responses:
            raise AssertionError("FakeChatModel ran out of scripted responses")
        response = self.model.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def send_message(self, text: str) -> ModelResponse:
        return await self._reply(text)

    async def send_tool_results(self, results: List[ToolResult]) -> ModelResponse:
        return await self._reply(list(results))


class FakeChatModel:
    """Chat model double: replays scripted responses, or defers to a handler."""

    def __init__(self, responses: Optional[List[Any]] = None, handler: Optional[Handler] = None):
        self.responses = list(responses or [])
        self.handler = handler
        self.sessions: List[FakeChatSession] = []

    def start_chat(self, system_instruction=None, tools=None, response_schema=None) -> FakeChatSession:
        session = FakeChatSession(self, system_instruction, tools, response_schema)
        self.sessions.append(session)
        return session


@pytest.fixture
def fake_chat_model():
    return FakeChatModel


@pytest.fixture
def sample_footnotes():
    """Five footnotes where the fifth is an "Id." reference to the fourth."""
    return [
        Footnote(
            id=f"fn-{n}",
            document_order=n,
            claim_text=claim,
            citation_text=citation,
        )
        for n, claim, citation in [
            (1, "Global temperatures rose 1.1C since 1900.", "IPCC AR6 Summary for Policymakers (2021)."),
            (2, "Coral cover declined by half.", "Hughes et al., Nature 556 (2018)."),
            (3, "Sea level rose 20cm.", "https://www.noaa.gov/sea-level"),
            (4, "Arctic ice is thinning.", "Smith, Polar Studies 12 (2019), p. 44."),
            (5, "The thinning accelerated after 2000.", "Id. at 45."),
        ]
    ]


def make_response(
    status_code: int = 200,
    url: str = "https://example.com",
    method: str = "GET",
    **kwargs,
) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request(method, url), **kwargs)


def make_async_client(get=None, post=None, stream=None) -> MagicMock:
    """Stand-in for `httpx.AsyncClient(...)` used as an async context manager."""
    mock_client = MagicMock()
    mock_client.get = get if get is not None else AsyncMock()
    mock_client.post = post if post is not None else AsyncMock()
    mock_client.stream = stream if stream is not None else MagicMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


class RecordingSubscriber:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: List[Dict[str, Any]] = []

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.messages.append(data)


class StalledSubscriber:
    """Subscriber whose send never completes, like a client that stopped reading."""

    def __init__(self):
        self.attempts = 0

    async def send_json(self, data: Any) -> None:
        self.attempts += 1
        await asyncio.Event().wait()


def make_stream(response: Optional[httpx.Response] = None, side_effect=None) -> MagicMock:
    """Stand-in for `client.stream(...)`, yielding `response` from an async context manager."""
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=context, side_effect=side_effect)
