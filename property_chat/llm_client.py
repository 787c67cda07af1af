"""Client wrapper for an OpenAI-compatible chat, vision and embeddings API."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import requests

from .config import ChatLLMConfig
from .errors import (
    ConfigurationError,
    EmbeddingError,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
    ProviderRequestError,
    StreamError,
)

logger = logging.getLogger(__name__)

_STATUS_ERRORS = {
    400: ProviderRequestError,
    401: ProviderAuthError,
    429: ProviderRateLimitError,
}


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    raw_arguments: str = "{}"


@dataclass
class ChatCompletion:
    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    usage: Optional[Dict[str, int]] = None

    def assistant_message(self) -> Dict[str, Any]:
        """Return the assistant turn to echo back before tool results."""
        message: Dict[str, Any] = {"role": "assistant", "content": self.content or None}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.raw_arguments},
                }
                for call in self.tool_calls
            ]
        return message


class ChatLLMClient:
    """Thin wrapper around chat-completions and embeddings endpoints.

    A single instance is shared by the chat service and the ingestion
    pipeline.  Pass ``session`` to reuse connections or to substitute a
    fake in tests.
    """

    def __init__(self, config: ChatLLMConfig, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self.session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.config.api_key)

    def ensure_configured(self) -> None:
        if not self.is_configured:
            raise ConfigurationError("OPENAI_API_KEY is not set")

    def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        model_kwargs: Optional[Dict[str, object]] = None,
    ) -> ChatCompletion:
        """Return a full completion (no streaming)."""
        payload = self._payload(messages, stream=False, model=model, max_tokens=max_tokens, model_kwargs=model_kwargs)
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = tool_choice or "auto"

        logger.debug(
            "Requesting completion for %d message(s) with %d tool(s)", len(messages), len(tools or [])
        )
        response = self._post(self.config.chat_endpoint, payload)
        data = self._json(response)

        choices = data.get("choices") or [None]
        choice = choices[0] if isinstance(choices, list) else None
        if not choice:
            raise ProviderError("Provider returned no choices")
        if not isinstance(choice, dict):
            raise ProviderError("Provider returned a malformed choice")
        message = choice.get("message") or {}
        if not isinstance(message, dict):
            raise ProviderError("Provider returned a malformed message")
        return ChatCompletion(
            content=message.get("content") or "",
            tool_calls=self._parse_tool_calls(message),
            usage=self._parse_usage(data.get("usage")),
        )

    def complete(
        self,
        messages: List[Dict[str, Any]],
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        model_kwargs: Optional[Dict[str, object]] = None,
    ) -> str:
        return self.chat_completion(
            messages, model=model, max_tokens=max_tokens, model_kwargs=model_kwargs
        ).content

    def open_stream(
        self,
        messages: List[Dict[str, Any]],
        *,
        model_kwargs: Optional[Dict[str, object]] = None,
    ) -> Iterator[str]:
        """Send a streaming request and return an iterator of content deltas.

        The HTTP request is made before this returns, so authentication and
        rate-limit failures raise immediately.  Failures after the first byte
        surface as :class:`StreamError` from the iterator.
        """
        payload = self._payload(messages, stream=True, model_kwargs=model_kwargs)
        logger.info("Streaming chat completion to %s using model %s", self.config.chat_endpoint, payload["model"])
        response = self._post(self.config.chat_endpoint, payload, stream=True)
        return self._iter_deltas(response)

    def describe_image(self, image_url: str, prompt: str, *, model: str, max_tokens: int = 150) -> str:
        """Ask a vision-capable model for a short caption of ``image_url``."""
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            }
        ]
        return self.complete(messages, model=model, max_tokens=max_tokens).strip()

    def embed(self, texts: List[str], *, model: str) -> List[List[float]]:
        """Return one embedding vector per input text, in input order."""
        if not texts:
            return []
        payload = {"model": model, "input": texts}
        logger.debug("Requesting %d embedding(s) with model %s", len(texts), model)
        try:
            response = self._post(self.config.embeddings_endpoint, payload)
            data = self._json(response)
        except ProviderError as exc:
            raise EmbeddingError(f"Embedding request failed: {exc}") from exc

        items = sorted(data.get("data") or [], key=lambda item: item.get("index", 0))
        vectors = [item.get("embedding") or [] for item in items]
        if len(vectors) != len(texts) or not all(vectors):
            raise EmbeddingError(
                f"Embedding service returned {len(vectors)} vector(s) for {len(texts)} input(s)"
            )
        return vectors

    def _payload(
        self,
        messages: List[Dict[str, Any]],
        *,
        stream: bool,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        model_kwargs: Optional[Dict[str, object]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model or self.config.model,
            "messages": messages,
            "max_tokens": max_tokens or self.config.max_tokens,
            "temperature": self.config.temperature,
            "stream": stream,
        }
        if model_kwargs:
            payload.update(model_kwargs)
        return payload

    def _post(self, url: str, payload: Dict[str, Any], *, stream: bool = False) -> requests.Response:
        self.ensure_configured()
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self.session.post(
                url,
                json=payload,
                headers=headers,
                stream=stream,
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as exc:
            logger.error("Request to %s failed: %s", url, exc)
            raise ProviderError(f"Request to {url} failed: {exc}") from exc

        if response.status_code >= 400:
            self._raise_for_status(response)
        return response

    @staticmethod
    def _raise_for_status(response: requests.Response) -> None:
        detail = ""
        try:
            detail = response.text[:500]
        except Exception:
            logger.debug("Could not read error body", exc_info=True)
        error_cls = _STATUS_ERRORS.get(response.status_code, ProviderError)
        logger.error("Provider returned HTTP %d: %s", response.status_code, detail)
        response.close()
        raise error_cls(f"Provider returned HTTP {response.status_code}: {detail}")

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError("Provider returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise ProviderError("Provider returned an unexpected payload")
        return data

    def _iter_deltas(self, response: requests.Response) -> Iterator[str]:
        finished = False
        try:
            for raw_line in response.iter_lines():
                if not raw_line:
                    continue
                try:
                    line = raw_line.decode("utf-8").strip() if isinstance(raw_line, bytes) else raw_line.strip()
                except UnicodeDecodeError as exc:
                    raise StreamError(f"Provider sent an undecodable stream line: {exc}") from exc
                if line.startswith("data:"):
                    line = line[5:].strip()
                if not line:
                    continue
                if line == "[DONE]":
                    finished = True
                    break

                try:
                    payload = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug("Skipping non-JSON stream line: %s", line)
                    continue

                if not isinstance(payload, dict):
                    raise StreamError(f"Provider sent an unexpected stream frame: {line[:100]}")
                if payload.get("error"):
                    raise StreamError(f"Provider reported a stream error: {payload['error']}")

                token = self._extract_delta(payload)
                if token:
                    yield token
        except requests.RequestException as exc:
            raise StreamError(f"Stream interrupted: {exc}") from exc
        finally:
            response.close()

        if not finished:
            raise StreamError("Provider stream closed before the completion marker")

    @staticmethod
    def _extract_delta(payload: Dict[str, Any]) -> str:
        choices = payload.get("choices") or []
        if not choices:
            return ""
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise StreamError("Provider sent a malformed stream choice")
        delta = choices[0].get("delta") or {}
        if not isinstance(delta, dict):
            raise StreamError("Provider sent a malformed stream delta")
        content = delta.get("content") or ""
        return str(content)

    @staticmethod
    def _parse_tool_calls(message: Dict[str, Any]) -> List[ToolCall]:
        calls: List[ToolCall] = []
        for raw in message.get("tool_calls") or []:
            function = raw.get("function") or {}
            raw_arguments = function.get("arguments") or "{}"
            try:
                arguments = json.loads(raw_arguments)
            except json.JSONDecodeError:
                logger.warning("Tool call %s has malformed arguments: %s", function.get("name"), raw_arguments)
                arguments = {}
            calls.append(
                ToolCall(
                    id=raw.get("id", ""),
                    name=function.get("name", ""),
                    arguments=arguments if isinstance(arguments, dict) else {},
                    raw_arguments=raw_arguments,
                )
            )
        return calls

    @staticmethod
    def _parse_usage(usage: Optional[Dict[str, Any]]) -> Optional[Dict[str, int]]:
        if not usage:
            return None
        return {
            "prompt_tokens": int(usage.get("prompt_tokens", 0)),
            "completion_tokens": int(usage.get("completion_tokens", 0)),
            "total_tokens": int(usage.get("total_tokens", 0)),
        }
