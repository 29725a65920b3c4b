"""Builders for function test doubles."""

import logging
from typing import Any, Generic, TypeVar

from funcmock.adapter import generate_wrapper
from funcmock.mock import Arguments, Expectation, FailureContext, Mock
from funcmock.models import FunctionTypeDescriptor, Invocation
from funcmock.signature import describe_type, describe_value

logger = logging.getLogger(__name__)

# Every expectation and assertion of a Builder is keyed by this name
CALL_SITE = "func"

F = TypeVar("F")


def for_type(tp: Any) -> "Builder[Any]":
    """Create a Builder for a function type.

    Args:
        tp: A ``Callable[...]`` alias, or a class declaring ``__call__``

    Raises:
        NotAFunctionTypeError: If ``tp`` is not a function type
    """
    return Builder(describe_type(tp))


def like(value: F) -> "Builder[F]":
    """Create a Builder for the type of ``value``.

    Only the signature of ``value`` is used; it is never called.

    Raises:
        NotAFunctionTypeError: If ``value`` is not a function value
    """
    return Builder(describe_value(value))


class Builder(Generic[F]):
    """Owns the expectations and call history of one function double.

    Usage:
        fm = funcmock.for_type(Callable[[str, str], tuple[str, Exception | None]])
        fm.on("1", "2").returns("1 2", None)
        fn = fm.build()
        assert fn("1", "2") == ("1 2", None)
        fm.assert_number_of_calls(1)
    """

    def __init__(self, descriptor: FunctionTypeDescriptor):
        self._descriptor = descriptor
        self._mock = Mock()
        logger.info(f"Created function mock for {descriptor.name}")

    def __str__(self) -> str:
        return self._descriptor.name

    def __repr__(self) -> str:
        return f"<Builder {self._descriptor.name}>"

    def __enter__(self) -> "Builder[F]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        # Expectations are only checked when the block completed normally
        if exc_type is None:
            self.assert_expectations()

    @property
    def descriptor(self) -> FunctionTypeDescriptor:
        return self._descriptor

    @property
    def calls(self) -> list[Invocation]:
        """Calls recorded so far, oldest first."""
        return self._mock.calls

    def build(self) -> F:
        """Return a function of the builder's type backed by its expectations.

        Every function built from one Builder shares its call history.
        """
        fn = generate_wrapper(self._descriptor, self.called)
        logger.info(f"Built function mock for {self._descriptor.name}")
        return fn

    def on(self, *args: Any, **kwargs: Any) -> Expectation:
        """Expect a call with these arguments; chain ``.returns(...)`` to answer it."""
        return self._mock.on(CALL_SITE, *args, **kwargs)

    def called(self, *args: Any, **kwargs: Any) -> Arguments:
        """Call the mock directly with boxed arguments and get the raw results."""
        return self._mock.method_called(CALL_SITE, *args, **kwargs)

    def assert_expectations(self, t: FailureContext | None = None) -> bool:
        """Assert every expectation was met, reporting to ``t`` if given."""
        return self._mock.assert_expectations(t)

    def assert_called(self, *args: Any, **kwargs: Any) -> bool:
        return self._mock.assert_called(None, CALL_SITE, *args, **kwargs)

    def assert_not_called(self, *args: Any, **kwargs: Any) -> bool:
        return self._mock.assert_not_called(None, CALL_SITE, *args, **kwargs)

    def assert_number_of_calls(self, expected_calls: int) -> bool:
        return self._mock.assert_number_of_calls(None, CALL_SITE, expected_calls)

    def is_callable(self, *args: Any, **kwargs: Any) -> bool:
        return self._mock.is_method_callable(None, CALL_SITE, *args, **kwargs)

    def test(self, t: FailureContext) -> None:
        """Report failures to ``t`` instead of failing the running pytest test."""
        self._mock.test(t)

    def test_data(self) -> dict[str, Any]:
        return self._mock.test_data()
