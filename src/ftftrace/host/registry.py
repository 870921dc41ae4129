from __future__ import annotations

import functools
import inspect
import itertools
import threading
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Any, Callable, Iterator, Mapping, Protocol, TypeVar

F = TypeVar("F", bound=Callable[..., Any])


class Layer(Protocol):
    def on_new_span(self, name: str, fields: Mapping[str, Any], span_id: int) -> None:
        ...

    def on_close(self, span_id: int, name: str) -> None:
        ...

    def on_event(self, name: str, fields: Mapping[str, Any], parent_id: int | None) -> None:
        ...


class Span:
    def __init__(self, registry: "Registry", span_id: int, name: str) -> None:
        self.registry = registry
        self.id = span_id
        self.name = name
        self.closed = False
        self._tokens: list[Token[tuple[int, ...]]] = []

    def enter(self) -> "Span":
        self._tokens.append(self.registry._push(self.id))
        return self

    def exit(self) -> None:
        if not self._tokens:
            raise RuntimeError(f"span {self.name!r} exited without being entered")
        self.registry._pop(self._tokens.pop())

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.registry._close(self)

    def __enter__(self) -> "Span":
        return self.enter()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.exit()

    def __repr__(self) -> str:
        return f"Span(id={self.id}, name={self.name!r})"


class Registry:
    """Minimal span registry: allocates span ids, tracks the active span per
    context and forwards span/event callbacks to its layers."""

    def __init__(self, layers: list[Layer] | None = None) -> None:
        self._layers: list[Layer] = list(layers or [])
        self._ids = itertools.count(1)
        self._ids_lock = threading.Lock()
        self._active: ContextVar[tuple[int, ...]] = ContextVar(
            f"ftftrace_active_{id(self)}", default=()
        )

    def with_layer(self, layer: Layer) -> "Registry":
        self._layers.append(layer)
        return self

    def _push(self, span_id: int) -> Token[tuple[int, ...]]:
        return self._active.set(self._active.get() + (span_id,))

    def _pop(self, token: Token[tuple[int, ...]]) -> None:
        self._active.reset(token)

    def _close(self, span: Span) -> None:
        for layer in self._layers:
            layer.on_close(span.id, span.name)

    def current_span_id(self) -> int | None:
        stack = self._active.get()
        return stack[-1] if stack else None

    def new_span(self, name: str, /, **fields: Any) -> Span:
        with self._ids_lock:
            span_id = next(self._ids)
        for layer in self._layers:
            layer.on_new_span(name, fields, span_id)
        return Span(self, span_id, name)

    @contextmanager
    def span(self, name: str, /, **fields: Any) -> Iterator[Span]:
        current = self.new_span(name, **fields)
        try:
            with current:
                yield current
        finally:
            current.close()

    def event(self, name: str = "event", /, **fields: Any) -> None:
        parent_id = self.current_span_id()
        for layer in self._layers:
            layer.on_event(name, fields, parent_id)

    def instrument(self, name: str | None = None, /, **fields: Any) -> Callable[[F], F]:
        """Wrap a function in a span whose fields include its bound arguments."""

        def decorator(func: F) -> F:
            span_name = name or func.__name__
            signature = inspect.signature(func)

            def _fields(args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any]:
                bound = signature.bind_partial(*args, **kwargs)
                values = {
                    key: value for key, value in bound.arguments.items() if key != "self"
                }
                values.update(fields)
                return values

            if inspect.iscoroutinefunction(func):

                @functools.wraps(func)
                async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                    with self.span(span_name, **_fields(args, kwargs)):
                        return await func(*args, **kwargs)

                return async_wrapper  # type: ignore[return-value]

            @functools.wraps(func)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                with self.span(span_name, **_fields(args, kwargs)):
                    return func(*args, **kwargs)

            return wrapper  # type: ignore[return-value]

        return decorator
