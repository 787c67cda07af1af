"""Conversation assembly: context block, history trimming and prompt layout."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

CONTEXT_OPEN = "[CONTEXT]"
CONTEXT_CLOSE = "[/CONTEXT]"


def _get(context: Any, key: str) -> Any:
    if isinstance(context, Mapping):
        return context.get(key)
    return getattr(context, key, None)


def build_context_block(context: Any) -> str:
    """Serialise the fields of ``context`` that are set into a delimited block.

    ``context`` may be a mapping using the wire names or any object with
    attributes of the same names.  Only preferences, non-empty active
    tickets, location and goal are included.
    """
    parts = [f"\n\n{CONTEXT_OPEN}"]

    preferences = _get(context, "userPreferences")
    if preferences:
        parts.append("User Preferences: " + json.dumps(preferences, indent=2, default=str))

    tickets = _get(context, "activeTickets")
    if tickets:
        parts.append("Active Tickets: " + json.dumps(list(tickets), indent=2, default=str))

    location = _get(context, "userLocation")
    if location:
        parts.append(f"User Location: {location}")

    goal = _get(context, "conversationGoal")
    if goal:
        parts.append(f"Conversation Goal: {goal}")

    return "\n".join(parts) + f"\n{CONTEXT_CLOSE}"


def build_user_content(message: str, context: Optional[Any] = None) -> str:
    if context is None:
        return message
    return message + build_context_block(context)


def truncate_messages(messages: List[Dict[str, Any]], max_history: int) -> List[Dict[str, Any]]:
    """Keep the system message plus the newest ``max_history + 1`` messages.

    The result never exceeds ``max_history + 2`` entries.  Dropped turns are
    discarded, not summarised.
    """
    limit = max_history + 2
    if len(messages) <= limit:
        return list(messages)
    dropped = len(messages) - limit
    logger.debug("Dropping %d oldest message(s) to respect history cap %d", dropped, max_history)
    return [messages[0], *messages[-(max_history + 1):]]


def build_messages(
    system_prompt: str,
    history: Iterable[Mapping[str, Any]],
    message: str,
    context: Optional[Any] = None,
    *,
    max_history: int,
) -> List[Dict[str, Any]]:
    """Lay out the outbound prompt: system, prior turns, then the new user turn."""
    prompt: List[Dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    for entry in history:
        role = entry.get("role")
        if role == "system":
            logger.debug("Ignoring system message found in client history")
            continue
        prompt.append({"role": role, "content": entry.get("content", "")})
    prompt.append({"role": "user", "content": build_user_content(message, context)})
    return truncate_messages(prompt, max_history)


def trim_history(history: List[Dict[str, str]], max_history: int) -> List[Dict[str, str]]:
    """Client-side cap: keep the newest ``max_history`` entries."""
    if max_history <= 0:
        return []
    if len(history) > max_history:
        return history[-max_history:]
    return history
