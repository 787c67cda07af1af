"""Chat orchestration for the PropertyBot real-estate assistant.

This package wires an OpenAI-compatible chat model to a fixed system prompt,
a trimmed conversation history and a single callable capability,
``fetchProperties``, which reads the external listings API.  The primary
entry points are ``property_chat.api.create_app`` for running the HTTP
service, ``property_chat.service.ChatService`` for embedding the engine in
Python code, and ``property_chat.client.ChatApiClient`` for talking to a
running server.
"""

from .config import ChatConfig, ChatLLMConfig, ListingsConfig
from .service import ChatResult, ChatService

__all__ = ["ChatConfig", "ChatLLMConfig", "ListingsConfig", "ChatResult", "ChatService"]
