"""FastAPI entry point for the property chat module."""

from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Dict, Iterator, List, Literal, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import ChatConfig, ChatLLMConfig, ListingsConfig
from .errors import PropertyBotError, StreamError
from .functions import build_default_registry
from .listings import ListingsClient
from .llm_client import ChatLLMClient
from .service import ChatService
from .utils import setup_logging

logger = logging.getLogger(__name__)

DONE_FRAME = "data: [DONE]\n\n"
STREAM_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


class HistoryMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ConversationContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    user_id: Optional[str] = Field(None, alias="userId")
    session_id: Optional[str] = Field(None, alias="sessionId")
    user_preferences: Optional[Dict[str, Any]] = Field(None, alias="userPreferences")
    active_tickets: Optional[List[Dict[str, Any]]] = Field(None, alias="activeTickets")
    recent_properties: Optional[List[Dict[str, Any]]] = Field(None, alias="recentProperties")
    user_location: Optional[str] = Field(None, alias="userLocation")
    conversation_goal: Optional[
        Literal["property_search", "ticket_creation", "market_analysis", "general_help"]
    ] = Field(None, alias="conversationGoal")


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., description="User message to send to the model.")
    conversation_history: List[HistoryMessage] = Field(
        default_factory=list,
        alias="conversationHistory",
        description="Prior turns, oldest first. The server trims it to the configured cap.",
    )
    context: Optional[ConversationContext] = Field(
        None, description="Optional side-channel appended to the message as a [CONTEXT] block."
    )

    @field_validator("message")
    @classmethod
    def _not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Message is required and must be a string")
        return value

    def history(self) -> List[Dict[str, str]]:
        return [entry.model_dump() for entry in self.conversation_history]

    def context_payload(self) -> Optional[Dict[str, Any]]:
        if self.context is None:
            return None
        return self.context.model_dump(by_alias=True, exclude_none=True)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validation_message(exc: RequestValidationError) -> str:
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        if error.get("type") == "json_invalid":
            return "Invalid JSON in request body"
        if "message" in loc:
            return "Message is required and must be a string"
        if "conversationHistory" in loc:
            return "Conversation history must be an array of role/content messages"
        if "context" in loc:
            return "Context must be an object"
    return "Invalid request body"


def install_error_handlers(app: FastAPI) -> None:
    """Render every known failure as ``{"error": ...}`` with a stable status."""

    @app.exception_handler(RequestValidationError)
    async def _on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _validation_message(exc)
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, message)
        return error_response(400, message)

    @app.exception_handler(PropertyBotError)
    async def _on_project_error(request: Request, exc: PropertyBotError) -> JSONResponse:
        logger.error(
            "%s %s failed with %s (status %d): %s",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc.status_code,
            exc,
        )
        return error_response(exc.status_code, exc.public_message)


def sse_frames(fragments: Iterator[str]) -> Iterator[str]:
    """Frame text fragments as server-sent events.

    A clean run ends with the ``[DONE]`` frame.  A broken upstream stream
    ends with an ``error`` event and no done marker.
    """
    try:
        for fragment in fragments:
            yield f"data: {json.dumps({'content': fragment})}\n\n"
    except StreamError as exc:
        logger.error("Streaming error: %s", exc)
        yield f"event: error\ndata: {json.dumps({'error': exc.public_message})}\n\n"
        return
    yield DONE_FRAME


def add_chat_routes(app: FastAPI, service: ChatService) -> None:
    app.state.chat_service = service

    @app.post("/api/chat")
    async def chat(request: ChatRequest):
        logger.info(
            "Chat turn with %d history message(s) (context=%s)",
            len(request.conversation_history),
            "on" if request.context else "off",
        )
        try:
            result = await run_in_threadpool(
                app.state.chat_service.chat,
                request.message,
                request.history(),
                request.context_payload(),
            )
        except PropertyBotError:
            raise
        except Exception:
            logger.exception("Chat request failed")
            return error_response(500, "Internal server error")
        return result.to_dict()

    @app.put("/api/chat")
    async def chat_stream(request: ChatRequest):
        logger.info("Streaming chat turn with %d history message(s)", len(request.conversation_history))
        try:
            fragments = await run_in_threadpool(
                app.state.chat_service.stream_chat,
                request.message,
                request.history(),
                request.context_payload(),
            )
        except PropertyBotError:
            raise
        except Exception:
            logger.exception("Streaming request failed")
            return error_response(500, "Streaming failed")

        return StreamingResponse(sse_frames(fragments), media_type="text/event-stream", headers=STREAM_HEADERS)

    @app.get("/api/chat/config")
    async def chat_config() -> Dict[str, int]:
        return {"max_history_messages": app.state.chat_service.config.max_history_messages}


def build_chat_service(chat_config: ChatConfig, llm_client: Optional[ChatLLMClient] = None) -> ChatService:
    """Construct the clients once and wire them into a :class:`ChatService`."""
    client = llm_client or ChatLLMClient(chat_config.llm)
    registry = build_default_registry(ListingsClient(chat_config.listings))
    return ChatService(client, registry, chat_config)


def create_app(
    chat_config: Optional[ChatConfig] = None,
    *,
    log_dir: Optional[str] = None,
    service: Optional[ChatService] = None,
) -> FastAPI:
    if log_dir:
        setup_logging(log_dir, logging.INFO)

    chat_config = chat_config or ChatConfig()
    service = service or build_chat_service(chat_config)

    app = FastAPI(title="Property Chat", version="0.1.0")
    install_error_handlers(app)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    add_chat_routes(app, service)
    return app


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the property chat service.")
    parser.add_argument("--host", default="0.0.0.0", help="Host interface to bind.")
    parser.add_argument("--port", type=int, default=8004, help="Port to bind.")
    parser.add_argument("--log_dir", help="Directory for application logs.")
    parser.add_argument("--llm_base_url", default="https://api.openai.com/v1", help="OpenAI-compatible API base URL.")
    parser.add_argument("--llm_model", default="gpt-4o", help="Model name for completions.")
    parser.add_argument("--max_tokens", type=int, default=1000, help="Completion token limit.")
    parser.add_argument("--temperature", type=float, default=0.7, help="Sampling temperature.")
    parser.add_argument("--request_timeout", type=int, default=60, help="Timeout for LLM calls (seconds).")
    parser.add_argument("--listings_endpoint", help="Override the listings API URL.")
    parser.add_argument("--max_history_messages", type=int, default=20, help="History messages kept per turn.")
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> ChatConfig:
    listings = ListingsConfig()
    if args.listings_endpoint:
        listings.endpoint = args.listings_endpoint
    return ChatConfig(
        llm=ChatLLMConfig(
            base_url=args.llm_base_url,
            model=args.llm_model,
            max_tokens=args.max_tokens,
            temperature=args.temperature,
            request_timeout=args.request_timeout,
        ),
        listings=listings,
        max_history_messages=args.max_history_messages,
    )


def main(argv: Optional[list[str]] = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    app = create_app(config_from_args(args), log_dir=args.log_dir)
    logger.info("Starting chat service on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
