"""Resolve function types and sample values into FunctionTypeDescriptors."""

import collections.abc
import dataclasses
import functools
import inspect
import logging
import typing
from typing import Any

from funcmock.models import FunctionTypeDescriptor

logger = logging.getLogger(__name__)

_AWAITABLE_ORIGINS = (collections.abc.Awaitable, collections.abc.Coroutine)


class NotAFunctionTypeError(TypeError):
    """The supplied type or value does not describe a function."""

    def __init__(self, message: str, target: Any = None):
        super().__init__(message)
        self.target = target


def format_type(tp: Any) -> str:
    """Human-readable name for a type or annotation."""
    if tp is inspect.Signature.empty or tp is Any:
        return "Any"
    if tp is type(None):
        return "None"
    if isinstance(tp, type) and not typing.get_args(tp):
        if tp.__module__ == "builtins":
            return tp.__qualname__
        return f"{tp.__module__}.{tp.__qualname__}"
    return repr(tp).replace("typing.", "").replace("collections.abc.", "")


def describe_type(tp: Any) -> FunctionTypeDescriptor:
    """Describe a function type.

    Args:
        tp: A ``Callable[...]`` alias, or a class declaring ``__call__``

    Returns:
        The FunctionTypeDescriptor for the type

    Raises:
        NotAFunctionTypeError: If ``tp`` is not a function type
    """
    if tp is collections.abc.Callable:
        return _describe_callable_alias(tp, ..., Any)

    if typing.get_origin(tp) is collections.abc.Callable:
        args = typing.get_args(tp)
        if not args:
            return _describe_callable_alias(tp, ..., Any)
        params, return_type = args
        return _describe_callable_alias(tp, params, return_type)

    if isinstance(tp, type) and _declares_call(tp):
        descriptor = _describe_routine(
            tp.__call__, name=format_type(tp), drop_self=True
        )
        logger.debug(f"Described callable class {descriptor.name}")
        return descriptor

    raise NotAFunctionTypeError(
        f"type must be a function, got {format_type(tp)}", target=tp
    )


def describe_value(value: Any) -> FunctionTypeDescriptor:
    """Describe the type of a sample function value.

    Only the value's signature is read; the function is never called.

    Args:
        value: A function, method, partial or callable instance

    Returns:
        The FunctionTypeDescriptor for the value's type

    Raises:
        NotAFunctionTypeError: If ``value`` is not a function value
    """
    if isinstance(value, type):
        raise NotAFunctionTypeError(
            f"expected a function value, got the class {format_type(value)}; "
            "use for_type() to describe a callable class",
            target=value,
        )

    if inspect.isroutine(value) or isinstance(value, functools.partial):
        label = getattr(value, "__qualname__", None) or format_type(type(value))
        descriptor = _describe_routine(value, name=label, drop_self=False)
        return dataclasses.replace(descriptor, name=_signature_type_name(descriptor))

    if _declares_call(type(value)):
        return describe_type(type(value))

    raise NotAFunctionTypeError(
        f"type must be a function, got {format_type(type(value))}", target=value
    )


def _declares_call(cls: type) -> bool:
    """True if a class (not its metaclass) defines ``__call__``."""
    # metaclasses define __call__ to construct instances
    if issubclass(cls, type):
        return False
    return any("__call__" in vars(klass) for klass in cls.__mro__[:-1])


def _signature_type_name(descriptor: FunctionTypeDescriptor) -> str:
    """Name a function value's type the way a ``Callable[...]`` alias reads.

    Keyword-only parameters are written ``name: type``, and ``*args`` and
    ``**kwargs`` as ``*type`` and ``**type``.
    """
    parts = []
    for param in descriptor.signature.parameters.values():
        annotation = format_type(param.annotation)
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            parts.append(f"*{annotation}")
        elif param.kind is inspect.Parameter.KEYWORD_ONLY:
            parts.append(f"{param.name}: {annotation}")
        elif param.kind is inspect.Parameter.VAR_KEYWORD:
            parts.append(f"**{annotation}")
        else:
            parts.append(annotation)

    return_name = format_type(descriptor.signature.return_annotation)
    if descriptor.is_async:
        return_name = f"Coroutine[Any, Any, {return_name}]"
    return f"Callable[[{', '.join(parts)}], {return_name}]"


def _describe_callable_alias(tp: Any, params: Any, return_type: Any):
    """Build a descriptor for ``Callable[params, return_type]``."""
    parameters = []
    if params is ... or isinstance(params, typing.ParamSpec):
        parameters.extend(_variadic_parameters())
    elif typing.get_origin(params) is typing.Concatenate:
        *leading, _ = typing.get_args(params)
        parameters.extend(_positional_parameters(leading))
        parameters.extend(_variadic_parameters())
    else:
        parameters.extend(_positional_parameters(params))

    is_async = typing.get_origin(return_type) in _AWAITABLE_ORIGINS
    slots_annotation = _awaited_type(return_type) if is_async else return_type
    returns, multi_return = _split_returns(slots_annotation)

    signature = inspect.Signature(parameters, return_annotation=return_type)
    name = format_type(tp)
    logger.debug(f"Described callable alias {name}")
    return FunctionTypeDescriptor(
        name=name,
        signature=signature,
        returns=returns,
        multi_return=multi_return,
        is_async=is_async,
    )


def _describe_routine(fn: Any, name: str, drop_self: bool):
    """Build a descriptor from a function's signature and annotations."""
    try:
        signature = inspect.signature(fn)
    except ValueError as e:
        raise NotAFunctionTypeError(
            f"cannot read the signature of {name}: {e}", target=fn
        ) from e

    parameters = list(signature.parameters.values())
    if drop_self and parameters:
        parameters = parameters[1:]

    hints = _resolve_hints(fn, name)
    parameters = [
        p.replace(annotation=_resolved(p.annotation, hints, p.name))
        for p in parameters
    ]
    return_annotation = _resolved(signature.return_annotation, hints, "return")
    signature = signature.replace(
        parameters=parameters, return_annotation=return_annotation
    )

    is_async = inspect.iscoroutinefunction(fn)
    returns, multi_return = _split_returns(return_annotation)
    return FunctionTypeDescriptor(
        name=name,
        signature=signature,
        returns=returns,
        multi_return=multi_return,
        is_async=is_async,
    )


def _resolve_hints(fn: Any, name: str) -> dict[str, Any]:
    """Evaluate string annotations; unresolvable ones are left as written."""
    target = fn.func if isinstance(fn, functools.partial) else fn
    try:
        return typing.get_type_hints(target)
    except (NameError, TypeError) as e:
        logger.warning(f"Could not resolve annotations of {name}: {e}")
        return {}


def _resolved(annotation: Any, hints: dict[str, Any], name: str) -> Any:
    # Only string annotations are replaced; evaluated ones stay identical
    if isinstance(annotation, str):
        return hints.get(name, annotation)
    return annotation


def _positional_parameters(types_: Any) -> list[inspect.Parameter]:
    return [
        inspect.Parameter(
            f"arg{i}", inspect.Parameter.POSITIONAL_ONLY, annotation=annotation
        )
        for i, annotation in enumerate(types_)
    ]


def _variadic_parameters() -> list[inspect.Parameter]:
    return [
        inspect.Parameter("args", inspect.Parameter.VAR_POSITIONAL, annotation=Any),
        inspect.Parameter("kwargs", inspect.Parameter.VAR_KEYWORD, annotation=Any),
    ]


def _awaited_type(return_type: Any) -> Any:
    """The result type of ``Awaitable[R]`` or ``Coroutine[Y, S, R]``."""
    args = typing.get_args(return_type)
    if not args:
        return Any
    return args[-1]


def _split_returns(annotation: Any) -> tuple[tuple[Any, ...], bool]:
    """Split a return annotation into return slots.

    ``None`` means no slots, a fixed-length tuple means one slot per element,
    anything else (including no annotation) is a single slot.
    """
    if annotation is None or annotation is type(None):
        return (), False
    if annotation is inspect.Signature.empty:
        return (Any,), False
    if annotation is typing.Tuple:
        return (annotation,), False
    if typing.get_origin(annotation) is tuple:
        args = typing.get_args(annotation)
        if args and args[-1] is ...:
            return (annotation,), False
        if args == ((),):
            return (), True
        return tuple(args), True
    return (annotation,), False
