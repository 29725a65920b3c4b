"""Generate callables that route their calls through an expectation engine."""

import collections.abc
import inspect
import logging
import numbers
import types
import typing
from collections.abc import Callable, Sequence
from typing import Any

from funcmock.models import FunctionTypeDescriptor
from funcmock.signature import format_type
from funcmock.zero import zero_value

logger = logging.getLogger(__name__)

Invoke = Callable[..., Sequence[Any]]

_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


class ReturnTypeError(TypeError):
    """A registered return value does not fit the declared return type."""

    def __init__(self, message: str, expected: Any = None, value: Any = None):
        super().__init__(message)
        self.expected = expected
        self.value = value


def generate_wrapper(descriptor: FunctionTypeDescriptor, invoke: Invoke) -> Callable:
    """Generate a function of the described type that forwards to ``invoke``.

    The wrapper binds its arguments against the descriptor's signature,
    calls ``invoke(*args, **kwargs)`` with the bound values and converts the
    returned result list into the declared return slots.

    Args:
        descriptor: The function type to present
        invoke: Receives the boxed arguments and returns the result list

    Returns:
        A function (a coroutine function for async types) whose
        ``inspect.signature`` is the descriptor's signature
    """

    def call(args: tuple, kwargs: dict) -> Any:
        positional, keywords = marshal_arguments(descriptor.signature, args, kwargs)
        results = invoke(*positional, **keywords)
        return demarshal_results(descriptor, results)

    if descriptor.is_async:

        async def wrapper(*args, **kwargs):
            return call(args, kwargs)

    else:

        def wrapper(*args, **kwargs):
            return call(args, kwargs)

    wrapper.__signature__ = descriptor.signature
    wrapper.__annotations__ = _annotations(descriptor.signature)
    wrapper.__doc__ = f"Test double for {descriptor.name}."
    wrapper.__qualname__ = wrapper.__name__ = "func"

    logger.debug(f"Generated wrapper for {descriptor.name}")
    return wrapper


def marshal_arguments(
    signature: inspect.Signature, args: tuple, kwargs: dict
) -> tuple[tuple[Any, ...], dict[str, Any]]:
    """Bind a call to ``signature`` and box it as (positional, keyword) values.

    Positional-capable parameters come first in declaration order, followed by
    the values collected by ``*args``. Keyword-only parameters and ``**kwargs``
    entries form the keyword mapping. Defaults are filled in.

    Raises:
        TypeError: If the call does not fit the signature
    """
    bound = signature.bind(*args, **kwargs)
    bound.apply_defaults()

    positional: list[Any] = []
    keywords: dict[str, Any] = {}
    for param in signature.parameters.values():
        value = bound.arguments[param.name]
        if param.kind in _POSITIONAL:
            positional.append(value)
        elif param.kind is inspect.Parameter.VAR_POSITIONAL:
            positional.extend(value)
        elif param.kind is inspect.Parameter.KEYWORD_ONLY:
            keywords[param.name] = value
        else:
            keywords.update(value)

    return tuple(positional), keywords


def demarshal_results(descriptor: FunctionTypeDescriptor, results: Sequence[Any]) -> Any:
    """Convert an engine result list into the declared return value.

    A missing or None result becomes the zero value of its slot. Values past
    the declared slots are ignored.

    Returns:
        None for functions without return slots, the value itself for one
        slot, a tuple of all slots for tuple returns
    """
    if not descriptor.returns:
        return () if descriptor.multi_return else None

    values = []
    for i, declared in enumerate(descriptor.returns):
        value = results[i] if i < len(results) else None
        if value is None:
            values.append(zero_value(declared))
        else:
            check_return_type(value, declared, position=i)
            values.append(value)

    if descriptor.multi_return:
        return tuple(values)
    return values[0]


def check_return_type(value: Any, declared: Any, position: int = 0) -> None:
    """Reject a value whose runtime class cannot be the declared type.

    Only the outer class is checked: ``list[int]`` accepts any list.
    Annotations that have no runtime class are accepted.

    Raises:
        ReturnTypeError: If ``value`` does not fit ``declared``
    """
    if _fits(value, declared):
        return
    raise ReturnTypeError(
        f"funcmock: return value {position} has the wrong type: "
        f"have {format_type(type(value))} ({value!r}) for {format_type(declared)}",
        expected=declared,
        value=value,
    )


def _fits(value: Any, declared: Any) -> bool:
    if declared is Any or declared is object or declared is inspect.Signature.empty:
        return True
    if isinstance(declared, (str, typing.TypeVar, typing.ForwardRef)):
        return True

    origin = typing.get_origin(declared)
    args = typing.get_args(declared)

    if origin is typing.Annotated:
        return _fits(value, args[0])
    if origin is typing.Literal:
        return value in args
    if origin is typing.Union or origin is types.UnionType:
        return any(_fits(value, member) for member in args)
    if isinstance(declared, typing.NewType):
        return _fits(value, declared.__supertype__)
    if origin is collections.abc.Callable or declared is collections.abc.Callable:
        return callable(value)

    cls = origin if origin is not None else declared
    if not isinstance(cls, type):
        return True
    if getattr(cls, "_is_protocol", False) and not getattr(
        cls, "_is_runtime_protocol", False
    ):
        return True
    if typing.is_typeddict(cls):
        return isinstance(value, dict)
    # int is acceptable where float or complex is declared
    if cls is float:
        return isinstance(value, numbers.Real)
    if cls is complex:
        return isinstance(value, numbers.Complex)
    try:
        return isinstance(value, cls)
    except TypeError:
        # the class refuses instance checks
        return True


def _annotations(signature: inspect.Signature) -> dict[str, Any]:
    annotations = {
        name: param.annotation
        for name, param in signature.parameters.items()
        if param.annotation is not inspect.Parameter.empty
    }
    if signature.return_annotation is not inspect.Signature.empty:
        annotations["return"] = signature.return_annotation
    return annotations
