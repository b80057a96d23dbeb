"""Serializer exceptions and the property trace that accompanies them."""

from __future__ import annotations

import threading
from typing import Any

_state = threading.local()


def _stack() -> list[tuple[Any, Any]]:
    stack = getattr(_state, "stack", None)
    if stack is None:
        stack = []
        _state.stack = stack
    return stack


def current_depth() -> int:
    """Return how many contexts are active on this thread."""
    return len(_stack())


def current_trace() -> list[tuple[Any, Any]]:
    """Return a copy of the active trace as (trace hint, type name) pairs."""
    return list(_stack())


class ExceptionContext:
    """Marks a nested property while it is being (de)serialized."""

    def __init__(self, type_name, trace_hint):
        self.type_name = type_name
        self.trace_hint = trace_hint

    def __enter__(self):
        _stack().append((self.trace_hint, self.type_name))
        return self

    def __exit__(self, *args):
        stack = _stack()
        if stack:
            stack.pop()
        return False


class SerializerError(Exception):
    """Base error; records the property trace active when it was raised."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message
        self.property_trace = current_trace()

    def __str__(self) -> str:
        return str(self.message)


class SerializationError(SerializerError):
    """Raised when a value cannot be serialized."""


class DeserializationError(SerializerError):
    """Raised when data cannot be deserialized."""