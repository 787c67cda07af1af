"""Functions the model may call, keyed by name."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from .errors import FunctionDispatchError
from .listings import ListingsClient

logger = logging.getLogger(__name__)

FETCH_PROPERTIES = "fetchProperties"

Handler = Callable[[Dict[str, Any]], Any]


@dataclass(frozen=True)
class FunctionSpec:
    name: str
    description: str
    handler: Handler
    parameters: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    def declaration(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class FunctionRegistry:
    """Dispatch table from capability name to handler."""

    def __init__(self) -> None:
        self._functions: Dict[str, FunctionSpec] = {}

    def register(self, spec: FunctionSpec) -> None:
        if spec.name in self._functions:
            raise ValueError(f"Function '{spec.name}' is already registered")
        self._functions[spec.name] = spec

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)

    def declarations(self) -> List[Dict[str, Any]]:
        return [spec.declaration() for spec in self._functions.values()]

    def dispatch(self, name: str, arguments: Dict[str, Any]) -> Any:
        """Run the handler registered for ``name``.

        Unknown names and handler failures both raise
        :class:`FunctionDispatchError`.
        """
        spec = self._functions.get(name)
        if spec is None:
            raise FunctionDispatchError(f"Model requested unknown function '{name}'")

        logger.info("Dispatching function %s", name)
        try:
            return spec.handler(arguments)
        except FunctionDispatchError:
            raise
        except Exception as exc:
            logger.exception("Function %s failed", name)
            raise FunctionDispatchError(f"Function '{name}' failed: {exc}") from exc


def fetch_properties_spec(listings: ListingsClient) -> FunctionSpec:
    def handler(arguments: Dict[str, Any]) -> Dict[str, Any]:
        preferences = arguments.get("preferences") or {}
        logger.info("fetchProperties called with %d preference field(s)", len(preferences))
        return listings.fetch_page()

    return FunctionSpec(
        name=FETCH_PROPERTIES,
        description="Fetch properties based on user preferences and requirements",
        handler=handler,
        parameters={
            "type": "object",
            "properties": {
                "preferences": {
                    "type": "object",
                    "description": "Budget, location, property type, size and amenities gathered from the user.",
                    "properties": {},
                }
            },
            "required": ["preferences"],
        },
    )


def build_default_registry(listings: ListingsClient) -> FunctionRegistry:
    registry = FunctionRegistry()
    registry.register(fetch_properties_spec(listings))
    return registry
