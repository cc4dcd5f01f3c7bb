import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import httpx

from citecheck.config import LLM_CONFIG, Settings, get_settings, logger
from citecheck.exceptions import LLMException
from citecheck.utils.retry import async_retry, is_transient_http_error


@dataclass
class ToolCallRequest:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None


@dataclass
class ToolResult:
    name: str
    output: str
    id: Optional[str] = None


@dataclass
class ModelResponse:
    """One model turn: either a text payload, requested tool calls, or (rarely) both."""
    text: Optional[str] = None
    tool_calls: List[ToolCallRequest] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)


class ChatSession(Protocol):
    async def send_message(self, text: str) -> ModelResponse: ...

    async def send_tool_results(self, results: List[ToolResult]) -> ModelResponse: ...


class ChatModel(Protocol):
    def start_chat(
        self,
        system_instruction: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> ChatSession: ...


def parse_gemini_response(data: Dict[str, Any]) -> ModelResponse:
    response = ModelResponse(raw=data)
    texts: List[str] = []
    try:
        candidates = data.get("candidates") or []
        if candidates:
            parts = (candidates[0].get("content") or {}).get("parts") or []
            for part in parts:
                if part.get("thought"):
                    continue
                if text := part.get("text"):
                    texts.append(text)
                if func_call := part.get("functionCall"):
                    response.tool_calls.append(ToolCallRequest(
                        name=func_call.get("name") or "unknown",
                        args=func_call.get("args") or {},
                        id=func_call.get("id"),
                    ))
    except (AttributeError, IndexError, TypeError) as e:
        logger.error("Error parsing Gemini response structure: %s. Response: %s", e, data)
    if texts:
        response.text = "".join(texts)
    return response


@async_retry(
    max_attempts=LLM_CONFIG.RETRY_ATTEMPTS,
    exceptions=(httpx.HTTPError,),
    should_retry=is_transient_http_error,
)
async def _post_generate_content(endpoint: str, api_key: str, body: Dict[str, Any]) -> Dict[str, Any]:
    headers = {"Content-Type": "application/json", "x-goog-api-key": api_key}
    async with httpx.AsyncClient(timeout=LLM_CONFIG.REQUEST_TIMEOUT) as client:
        r = await client.post(endpoint, headers=headers, json=body)
        r.raise_for_status()
        return r.json()


async def call_gemini(endpoint: str, api_key: str, body: Dict[str, Any]) -> ModelResponse:
    """POST one generateContent request and normalize the reply."""
    if not api_key:
        logger.critical("GEMINI_API_KEY not configured.")
        raise LLMException("API key not configured", recoverable=False)

    try:
        data = await _post_generate_content(endpoint, api_key, body)
    except httpx.HTTPStatusError as e:
        logger.error("Gemini HTTP error %s: %s", e.response.status_code, e.response.text)
        raise LLMException(f"HTTP {e.response.status_code}", recoverable=True)
    except httpx.RequestError as e:
        logger.error("Gemini request error: %s", str(e))
        raise LLMException(f"Request failed: {str(e) or type(e).__name__}", recoverable=True)
    except json.JSONDecodeError as e:
        logger.error("Gemini returned a non-JSON body: %s", e)
        raise LLMException("Malformed response body", recoverable=True)

    return parse_gemini_response(data)


class GeminiChatSession:
    """Multi-turn conversation against the Gemini REST API.

    The full `contents` history is resent each turn; model turns are appended
    verbatim so function-call ids and thought signatures survive round trips.
    """

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        system_instruction: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ):
        self.api_key = api_key
        self.endpoint = endpoint
        self.system_instruction = system_instruction
        self.tools = tools or []
        self.response_schema = response_schema
        self.history: List[Dict[str, Any]] = []

    def _build_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"contents": self.history}
        if self.system_instruction:
            body["systemInstruction"] = {"parts": [{"text": self.system_instruction}]}
        if self.tools:
            body["tools"] = [{"functionDeclarations": self.tools}]
        if self.response_schema:
            body["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": self.response_schema,
            }
        return body

    async def _turn(self, content: Dict[str, Any]) -> ModelResponse:
        self.history.append(content)
        response = await call_gemini(self.endpoint, self.api_key, self._build_body())
        candidates = response.raw.get("candidates") or []
        if candidates and candidates[0].get("content"):
            model_content = dict(candidates[0]["content"])
            model_content.setdefault("role", "model")
            self.history.append(model_content)
        return response

    async def send_message(self, text: str) -> ModelResponse:
        return await self._turn({"role": "user", "parts": [{"text": text}]})

    async def send_tool_results(self, results: List[ToolResult]) -> ModelResponse:
        parts = []
        for result in results:
            function_response: Dict[str, Any] = {
                "name": result.name,
                "response": {"result": result.output},
            }
            if result.id:
                function_response["id"] = result.id
            parts.append({"functionResponse": function_response})
        return await self._turn({"role": "user", "parts": parts})


class GeminiChatModel:
    def __init__(self, api_key: str, settings: Optional[Settings] = None):
        current = settings or get_settings()
        self.api_key = api_key
        self.endpoint = current.GEMINI_ENDPOINT

    def start_chat(
        self,
        system_instruction: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> GeminiChatSession:
        return GeminiChatSession(
            api_key=self.api_key,
            endpoint=self.endpoint,
            system_instruction=system_instruction,
            tools=tools,
            response_schema=response_schema,
        )
