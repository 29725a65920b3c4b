"""Zero values for declared return types."""

import collections.abc
import dataclasses
import enum
import inspect
import logging
import numbers
import types
import typing
from typing import Any

logger = logging.getLogger(__name__)

# Concrete types whose no-argument constructor gives the zero value
_CONSTRUCTIBLE = (
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    bytearray,
    list,
    dict,
    set,
    frozenset,
    tuple,
)

_ABSTRACT_ZEROS = {
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Mapping: dict,
    collections.abc.MutableMapping: dict,
    collections.abc.Set: set,
    collections.abc.MutableSet: set,
    numbers.Number: int,
    numbers.Complex: int,
    numbers.Real: int,
    numbers.Rational: int,
    numbers.Integral: int,
}


def zero_value(tp: Any, _seen: frozenset = frozenset()) -> Any:
    """Return the zero value for a declared type.

    Numbers are zero, text is empty, containers are empty, enums take their
    first member (flags are empty), fixed-length tuples and records hold the
    zero value of each member, and nullable or reference-like types
    (optionals, classes, callables, unknown or unresolved annotations) give
    None.

    Args:
        tp: The declared type or annotation

    Returns:
        A fresh zero value of that type
    """
    if _is_untyped(tp):
        return None

    origin = typing.get_origin(tp)
    args = typing.get_args(tp)

    if origin is typing.Annotated:
        return zero_value(args[0], _seen)
    if origin is typing.Literal:
        return args[0]
    if origin is typing.Union or origin is types.UnionType:
        if type(None) in args:
            return None
        return zero_value(args[0], _seen)
    if isinstance(tp, typing.NewType):
        return zero_value(tp.__supertype__, _seen)

    if origin is tuple:
        if not args or args[-1] is ... or args == ((),):
            return ()
        return tuple(zero_value(arg, _seen) for arg in args)

    if origin is not None:
        tp = origin
    if tp in _ABSTRACT_ZEROS:
        return _ABSTRACT_ZEROS[tp]()
    if not isinstance(tp, type):
        return None
    if issubclass(tp, enum.Enum):
        return _zero_enum(tp)
    if typing.is_typeddict(tp):
        return _zero_typeddict(tp, _seen)
    if dataclasses.is_dataclass(tp) or _is_namedtuple(tp):
        return _zero_record(tp, _seen)
    if issubclass(tp, _CONSTRUCTIBLE):
        return tp()
    if issubclass(tp, numbers.Number):
        return _zero_number(tp)
    return None


def _is_untyped(tp: Any) -> bool:
    return (
        tp is None
        or tp is type(None)
        or tp is Any
        or tp is object
        or tp is inspect.Signature.empty
        or isinstance(tp, (str, typing.TypeVar, typing.ForwardRef))
    )


def _is_namedtuple(cls: type) -> bool:
    return issubclass(cls, tuple) and hasattr(cls, "_fields")


def _zero_enum(cls: type) -> Any:
    # An empty flag is a valid value; other enums start at their first member
    if issubclass(cls, enum.Flag):
        return cls(0)
    return next(iter(cls), None)


def _zero_number(cls: type) -> Any:
    """Numbers such as Decimal and Fraction construct their own zero."""
    try:
        return cls()
    except TypeError as e:
        logger.debug(f"No zero value for {cls.__qualname__}: {e}")
        return None


def _zero_typeddict(cls: type, seen: frozenset) -> dict[str, Any]:
    """A dict holding the zero value of each required key."""
    if cls in seen:
        return {}
    seen = seen | {cls}

    try:
        hints = typing.get_type_hints(cls)
    except (NameError, TypeError) as e:
        logger.warning(f"Could not resolve key types of {cls.__qualname__}: {e}")
        hints = {}

    return {
        key: zero_value(hints.get(key, Any), seen)
        for key in sorted(cls.__required_keys__)
    }


def _zero_record(cls: type, seen: frozenset) -> Any:
    """Build a dataclass or named tuple from the zero values of its fields."""
    if cls in seen:
        logger.debug(f"Recursive field type {cls.__qualname__}, using None")
        return None
    seen = seen | {cls}

    try:
        hints = typing.get_type_hints(cls)
    except (NameError, TypeError) as e:
        logger.warning(f"Could not resolve field types of {cls.__qualname__}: {e}")
        hints = {}

    if dataclasses.is_dataclass(cls):
        required = [
            f.name
            for f in dataclasses.fields(cls)
            if f.init
            and f.default is dataclasses.MISSING
            and f.default_factory is dataclasses.MISSING
        ]
    else:
        required = [name for name in cls._fields if name not in cls._field_defaults]

    return cls(**{name: zero_value(hints.get(name, Any), seen) for name in required})
