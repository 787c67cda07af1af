"""Shared fakes for the chat and ingestion tests.

Nothing here talks to the network: HTTP sessions, the LLM client, the
listings API and the Pinecone index are all replaced by small recorders.
"""

import json
from typing import Any, Dict, List, Optional

import pytest
import requests

from property_chat.config import ChatConfig, ChatLLMConfig, ListingsConfig
from property_chat.errors import ConfigurationError, EmbeddingError, StreamError
from property_chat.functions import FETCH_PROPERTIES, FunctionRegistry, FunctionSpec
from property_chat.llm_client import ChatCompletion, ToolCall


class FakeResponse:
    def __init__(self, status_code=200, payload=None, lines=None, text="", raise_after=None):
        self.status_code = status_code
        self._payload = payload
        self._lines = lines or []
        self.text = text or (json.dumps(payload) if payload is not None else "")
        self.raise_after = raise_after
        self.closed = False

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    def iter_lines(self):
        for index, line in enumerate(self._lines):
            if self.raise_after is not None and index == self.raise_after:
                raise requests.ConnectionError("connection reset")
            yield line.encode("utf-8") if isinstance(line, str) else line

    def close(self):
        self.closed = True


class FakeSession:
    """Records requests and replays queued responses in order."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    def _next(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)

    def put(self, url, **kwargs):
        return self._next("PUT", url, **kwargs)

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)


def sse_lines(*chunks: str, done: bool = True) -> List[str]:
    lines = []
    for chunk in chunks:
        lines.append("data: " + json.dumps({"choices": [{"delta": {"content": chunk}}]}))
        lines.append("")
    if done:
        lines.append("data: [DONE]")
    return lines


class FakeLLM:
    """Stand-in for ChatLLMClient with scripted completions."""

    def __init__(self, completions=None, stream=None, configured=True):
        self.completions = list(completions or [])
        self.stream = stream
        self.configured = configured
        self.calls: List[Dict[str, Any]] = []
        self.stream_calls: List[List[Dict[str, Any]]] = []
        self.captions: List[Any] = []
        self.caption_calls: List[str] = []
        self.embed_failures: set = set()
        self.embed_calls: List[str] = []

    def ensure_configured(self):
        if not self.configured:
            raise ConfigurationError("OPENAI_API_KEY is not set")

    def chat_completion(self, messages, *, tools=None, tool_choice=None, model=None, max_tokens=None, model_kwargs=None):
        self.calls.append({"messages": [dict(m) for m in messages], "tools": tools, "tool_choice": tool_choice})
        result = self.completions.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def open_stream(self, messages, *, model_kwargs=None):
        self.stream_calls.append(messages)
        if isinstance(self.stream, Exception):
            raise self.stream
        return self.stream

    def describe_image(self, image_url, prompt, *, model, max_tokens=150):
        self.caption_calls.append(image_url)
        result = self.captions.pop(0) if self.captions else f"caption for {image_url}"
        if isinstance(result, Exception):
            raise result
        return result

    def embed(self, texts, *, model):
        self.embed_calls.extend(texts)
        for text in texts:
            if text.split("\n", 1)[0] in {f"Property ID: {pid}" for pid in self.embed_failures}:
                raise EmbeddingError("embedding backend unavailable")
        return [[0.1, 0.2, 0.3] for _ in texts]


def broken_stream(*chunks: str):
    for chunk in chunks:
        yield chunk
    raise StreamError("Provider stream closed before the completion marker")


class FakeListings:
    def __init__(self, payload=None, error=None):
        self.payload = payload if payload is not None else {"properties": [{"id": 1, "title": "Flat"}]}
        self.error = error
        self.calls = 0

    def fetch_page(self, page=1):
        self.calls += 1
        if self.error:
            raise self.error
        return self.payload


class FakeIndex:
    def __init__(self, fail_on=None):
        self.upserts: List[Dict[str, Any]] = []
        self.fail_on = set(fail_on or [])

    def upsert(self, vectors, namespace=""):
        call_number = len(self.upserts)
        self.upserts.append({"vectors": vectors, "namespace": namespace})
        if call_number in self.fail_on:
            raise RuntimeError("index unavailable")
        return {"upserted_count": len(vectors)}


def completion(content="", tool_name=None, arguments=None, usage=None) -> ChatCompletion:
    tool_calls = []
    if tool_name:
        raw = json.dumps(arguments or {})
        tool_calls.append(ToolCall(id="call_1", name=tool_name, arguments=arguments or {}, raw_arguments=raw))
    return ChatCompletion(content=content, tool_calls=tool_calls, usage=usage)


def registry_for(listings: FakeListings) -> FunctionRegistry:
    registry = FunctionRegistry()
    registry.register(
        FunctionSpec(
            name=FETCH_PROPERTIES,
            description="Fetch properties",
            handler=lambda arguments: listings.fetch_page(),
        )
    )
    return registry


@pytest.fixture
def chat_config():
    return ChatConfig(
        llm=ChatLLMConfig(api_key="sk-test"),
        listings=ListingsConfig(api_key="listings-key"),
        max_history_messages=4,
        system_prompt="You are PropertyBot.",
    )


@pytest.fixture
def sleeps():
    return []
