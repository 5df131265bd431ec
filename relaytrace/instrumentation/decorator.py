"""@observe decorator for instrumenting functions."""

from __future__ import annotations

import functools
import inspect
import traceback
from typing import Any, Callable, Dict, Iterable, Optional

from relaytrace.tracer.span import Span
from relaytrace.utils.helpers import to_attribute_value


def _capture_args(bound_args: inspect.BoundArguments, skip: Iterable[str]) -> Dict[str, Any]:
    """Capture function arguments as OTel-compatible attribute values."""
    captured = {}
    for name, value in bound_args.arguments.items():
        if name in skip or name in ("self", "cls"):
            continue
        captured[f"arg.{name}"] = to_attribute_value(value)
    return captured


def _record_error(span: Span, exc: Exception) -> None:
    # The exception event itself is recorded when the span's block exits
    span.set_attribute("error.type", type(exc).__name__)
    span.set_attribute("error.message", str(exc))
    span.set_attribute("error.stack_trace", traceback.format_exc()[:2000])


def observe(
    name: Optional[str] = None,
    *,
    attributes: Optional[Dict[str, Any]] = None,
    skip_args: Optional[Iterable[str]] = None,
    capture_args: bool = False,
    skip_result: bool = True,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorate a function to create a span around its execution.

    - Supports sync and async functions.
    - The span is a child of the current span and is current while the function runs.
    - Errors are recorded on the span and re-raised.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        span_name = name or func.__qualname__
        skip_args_set = set(skip_args or [])
        signature = inspect.signature(func)

        def span_attributes(args, kwargs) -> Dict[str, Any]:
            span_attrs = dict(attributes or {})
            span_attrs["code.function"] = func.__qualname__
            if capture_args:
                bound = signature.bind_partial(*args, **kwargs)
                bound.apply_defaults()
                span_attrs.update(_capture_args(bound, skip_args_set))
            return span_attrs

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            tracer = _get_tracer(func.__module__ or "default")
            with tracer.start_as_current_span(span_name, attributes=span_attributes(args, kwargs)) as span:
                try:
                    result = func(*args, **kwargs)
                except Exception as exc:
                    _record_error(span, exc)
                    raise
                if not skip_result:
                    span.set_attribute("result", result)
                return result

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            tracer = _get_tracer(func.__module__ or "default")
            async with tracer.start_as_current_span(span_name, attributes=span_attributes(args, kwargs)) as span:
                try:
                    result = await func(*args, **kwargs)
                except Exception as exc:
                    _record_error(span, exc)
                    raise
                if not skip_result:
                    span.set_attribute("result", result)
                return result

        return async_wrapper if inspect.iscoroutinefunction(func) else sync_wrapper

    return decorator


def _get_tracer(name: str):
    import relaytrace

    return relaytrace.get_tracer(name)
