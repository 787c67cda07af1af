"""High level orchestration for a single conversational turn."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from .config import ChatConfig
from .errors import PropertyBotError, StreamError, ValidationError
from .functions import FunctionRegistry
from .history import build_messages
from .llm_client import ChatCompletion, ChatLLMClient
from .prompts import FUNCTION_ERROR_MESSAGE, PROPERTIES_FOUND_FALLBACK

logger = logging.getLogger(__name__)


@dataclass
class ChatResult:
    message: str
    usage: Optional[Dict[str, int]] = None
    properties: Optional[Any] = None
    error: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"message": self.message}
        if self.usage is not None:
            payload["usage"] = self.usage
        if self.properties is not None:
            payload["properties"] = self.properties
        if self.error:
            payload["error"] = True
        return payload


class ChatService:
    """Stateless chat engine used by the API and direct Python consumers.

    The caller owns the conversation history and passes it in on every
    turn; nothing is kept between calls.
    """

    def __init__(
        self,
        client: ChatLLMClient,
        functions: FunctionRegistry,
        config: Optional[ChatConfig] = None,
    ) -> None:
        self.config = config or ChatConfig()
        self.client = client
        self.functions = functions

    def chat(
        self,
        message: str,
        history: Iterable[Mapping[str, Any]] = (),
        context: Optional[Any] = None,
    ) -> ChatResult:
        """Answer one user message, running a model-requested function if needed."""
        messages = self._prepare(message, history, context)

        completion = self.client.chat_completion(
            messages,
            tools=self.functions.declarations() or None,
            tool_choice="auto",
            model_kwargs=self.config.model_kwargs,
        )

        if completion.tool_calls:
            return self._run_function_call(messages, completion)

        logger.info("Returning direct answer (%d chars)", len(completion.content))
        return ChatResult(message=completion.content, usage=completion.usage)

    def stream_chat(
        self,
        message: str,
        history: Iterable[Mapping[str, Any]] = (),
        context: Optional[Any] = None,
    ) -> Iterator[str]:
        """Stream the assistant reply one provider fragment at a time.

        Validation, configuration and the provider request happen before this
        returns.  The returned iterator raises :class:`StreamError` if the
        provider stream breaks off; a clean exhaustion means the provider
        reported completion.
        """
        messages = self._prepare(message, history, context)
        fragments = self.client.open_stream(messages, model_kwargs=self.config.model_kwargs)

        def generator() -> Iterator[str]:
            count = 0
            try:
                for fragment in fragments:
                    count += 1
                    yield fragment
            except StreamError:
                logger.error("Stream failed after %d fragment(s)", count)
                raise
            except PropertyBotError as exc:
                logger.error("Stream failed after %d fragment(s): %s", count, exc)
                raise StreamError(str(exc)) from exc
            except Exception as exc:
                logger.exception("Stream failed after %d fragment(s)", count)
                raise StreamError(f"Unexpected stream failure: {exc}") from exc
            logger.info("Stream completed with %d fragment(s)", count)

        return generator()

    def _prepare(
        self,
        message: str,
        history: Iterable[Mapping[str, Any]],
        context: Optional[Any],
    ) -> List[Dict[str, Any]]:
        self.client.ensure_configured()
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Message is required and must be a string")

        messages = build_messages(
            self.config.system_prompt,
            history,
            message,
            context,
            max_history=self.config.max_history_messages,
        )
        logger.debug("Prepared %d message(s) for the model", len(messages))
        return messages

    def _run_function_call(self, messages: List[Dict[str, Any]], completion: ChatCompletion) -> ChatResult:
        call = completion.tool_calls[0]
        if len(completion.tool_calls) > 1:
            logger.warning("Model requested %d tool calls; only %s is run", len(completion.tool_calls), call.name)
        first_turn = completion.assistant_message()
        first_turn["tool_calls"] = first_turn["tool_calls"][:1]

        try:
            result = self.functions.dispatch(call.name, call.arguments)
            follow_up = [
                *messages,
                first_turn,
                {
                    "role": "tool",
                    "tool_call_id": call.id,
                    "name": call.name,
                    "content": json.dumps(result, default=str),
                },
            ]
            summary = self.client.chat_completion(follow_up, model_kwargs=self.config.model_kwargs)
        except PropertyBotError:
            logger.exception("Function call %s failed; returning apology", call.name)
            return ChatResult(message=FUNCTION_ERROR_MESSAGE, error=True)

        return ChatResult(
            message=summary.content or PROPERTIES_FOUND_FALLBACK,
            properties=result,
        )
