"""Python client for the chat endpoints that keeps the conversation history."""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

import requests

from .config import ChatConfig
from .errors import PropertyBotError, StreamError
from .history import trim_history

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class ChatApiClient:
    """Send turns to the chat API and thread the history between them.

    The history cap defaults to :attr:`ChatConfig.max_history_messages`, the
    same value the server trims with.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8010",
        *,
        max_history_messages: Optional[int] = None,
        session: Optional[requests.Session] = None,
        timeout: int = 120,
    ) -> None:
        self.chat_url = f"{base_url.rstrip('/')}/api/chat"
        self.max_history_messages = (
            ChatConfig().max_history_messages if max_history_messages is None else max_history_messages
        )
        self.session = session or requests.Session()
        self.timeout = timeout
        self._history: List[Dict[str, str]] = []

    def send_message(self, message: str, context: Optional[Dict[str, Any]] = None) -> str:
        """Post one turn and return the assistant's reply."""
        response = self.session.post(self.chat_url, json=self._body(message, context), timeout=self.timeout)
        data = self._json(response)
        if not response.ok:
            raise PropertyBotError(data.get("error") or "API request failed")

        reply = data.get("message", "")
        self._remember(message, reply)
        return reply

    def stream_message(
        self,
        message: str,
        on_chunk: Callable[[str], None],
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Stream one turn, calling ``on_chunk`` per fragment.

        History is only updated once the server sends its done marker.  An
        error frame or a stream that closes early raises :class:`StreamError`.
        """
        response = self.session.put(
            self.chat_url,
            json=self._body(message, context),
            stream=True,
            timeout=self.timeout,
        )
        if not response.ok:
            data = self._json(response)
            raise StreamError(data.get("error") or "Streaming request failed")

        full_response = ""
        event = "message"
        try:
            for raw_line in response.iter_lines():
                line = raw_line.decode("utf-8") if isinstance(raw_line, bytes) else raw_line
                if not line:
                    event = "message"
                    continue
                if line.startswith("event:"):
                    event = line[6:].strip()
                    continue
                if not line.startswith("data:"):
                    continue

                data = line[5:].strip()
                if event == "error":
                    raise StreamError(self._error_detail(data))
                if data == "[DONE]":
                    self._remember(message, full_response)
                    return full_response

                try:
                    parsed = json.loads(data)
                except json.JSONDecodeError:
                    logger.debug("Skipping non-JSON frame: %s", data)
                    continue
                content = parsed.get("content") if isinstance(parsed, dict) else None
                if content:
                    full_response += content
                    on_chunk(content)
        except requests.RequestException as exc:
            raise StreamError(f"Stream interrupted: {exc}") from exc
        finally:
            response.close()

        raise StreamError("Stream closed before the done marker")

    def get_property_recommendations(self, preferences: Dict[str, Any]) -> str:
        prompt = (
            "I'm looking for property recommendations with these preferences: "
            f"{json.dumps(preferences, indent=2)}"
        )
        return self.send_message(
            prompt,
            {
                "sessionId": new_session_id(),
                "userPreferences": preferences,
                "conversationGoal": "property_search",
            },
        )

    def create_help_ticket(self, ticket: Dict[str, Any]) -> str:
        prompt = f"I need to create a help ticket: {json.dumps(ticket, indent=2)}"
        return self.send_message(
            prompt, {"sessionId": new_session_id(), "conversationGoal": "ticket_creation"}
        )

    def get_market_analysis(self, location: str, property_type: Optional[str] = None) -> str:
        suffix = f" for {property_type} properties" if property_type else ""
        prompt = f"Can you provide a market analysis for {location}{suffix}?"
        return self.send_message(
            prompt,
            {
                "sessionId": new_session_id(),
                "userLocation": location,
                "conversationGoal": "market_analysis",
            },
        )

    def fetch_properties(self) -> str:
        prompt = "Please fetch properties based on the user's preferences and requirements."
        return self.send_message(
            prompt, {"sessionId": new_session_id(), "conversationGoal": "property_search"}
        )

    def clear_history(self) -> None:
        self._history = []

    def get_history(self) -> List[Dict[str, str]]:
        return [dict(entry) for entry in self._history]

    def _body(self, message: str, context: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": message, "conversationHistory": list(self._history)}
        if context is not None:
            body["context"] = context
        return body

    def _remember(self, message: str, reply: str) -> None:
        self._history.append({"role": "user", "content": message})
        self._history.append({"role": "assistant", "content": reply})
        self._history = trim_history(self._history, self.max_history_messages)

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _error_detail(data: str) -> str:
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError:
            return data or "Streaming failed"
        if isinstance(parsed, dict):
            return str(parsed.get("error") or "Streaming failed")
        return "Streaming failed"
