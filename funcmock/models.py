"""Data models for function test doubles."""

import inspect
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class FunctionTypeDescriptor:
    """A function type resolved from a Callable alias, protocol or sample value."""

    name: str  # human-readable type name, e.g. "Callable[[str], int]"
    signature: inspect.Signature
    returns: tuple[Any, ...]  # one entry per return slot
    multi_return: bool  # True when the return annotation is a fixed-length tuple
    is_async: bool = False

    @property
    def parameters(self) -> list[tuple[str, Any]]:
        """Ordered (name, annotation) pairs of the parameters."""
        return [(p.name, p.annotation) for p in self.signature.parameters.values()]

    @property
    def variadic(self) -> bool:
        """True if the signature accepts extra positional arguments."""
        return any(
            p.kind is inspect.Parameter.VAR_POSITIONAL
            for p in self.signature.parameters.values()
        )


@dataclass
class Invocation:
    """A recorded call with its boxed inputs and the results handed back."""

    method: str
    arguments: tuple[Any, ...]
    keyword_arguments: dict[str, Any] = field(default_factory=dict)
    results: tuple[Any, ...] = ()
    location: str = ""  # file:line of the caller
