"""Tests for the call adapter."""

import inspect
from collections.abc import Callable
from typing import Any, Literal, TypedDict

import pytest

from funcmock.adapter import (
    ReturnTypeError,
    check_return_type,
    demarshal_results,
    generate_wrapper,
    marshal_arguments,
)
from funcmock.signature import describe_type, describe_value


def send(
    to: str, subject: str = "hi", *attachments: bytes, cc: str = "", **headers: str
):
    pass


class User(TypedDict):
    name: str


class TestMarshalArguments:
    """Tests for marshal_arguments()."""

    def given_send_signature(self):
        self.signature = inspect.signature(send)

    def when_marshalled(self, *args, **kwargs):
        self.positional, self.keywords = marshal_arguments(
            self.signature, args, kwargs
        )

    def test_fills_defaults(self):
        """Missing arguments are boxed with their defaults."""
        self.given_send_signature()
        self.when_marshalled("ada")
        assert self.positional == ("ada", "hi")
        assert self.keywords == {"cc": ""}

    def test_keyword_call_boxes_positionally(self):
        """Positional-or-keyword parameters are boxed by position."""
        self.given_send_signature()
        self.when_marshalled(subject="report", to="ada")
        assert self.positional == ("ada", "report")

    def test_flattens_varargs_and_merges_kwargs(self):
        """*args values follow the named ones; **kwargs join the keywords."""
        self.given_send_signature()
        self.when_marshalled("ada", "report", b"a", b"b", cc="bob", priority="high")
        assert self.positional == ("ada", "report", b"a", b"b")
        assert self.keywords == {"cc": "bob", "priority": "high"}

    def test_rejects_calls_that_do_not_fit(self):
        """Binding errors surface as TypeError."""
        self.given_send_signature()
        with pytest.raises(TypeError):
            self.when_marshalled()


class TestDemarshalResults:
    """Tests for demarshal_results()."""

    def test_no_slots_returns_none(self):
        descriptor = describe_type(Callable[[], None])
        assert demarshal_results(descriptor, ("ignored",)) is None

    def test_single_slot_returns_value(self):
        descriptor = describe_type(Callable[[], int])
        assert demarshal_results(descriptor, (5,)) == 5

    def test_single_slot_zero_fills(self):
        descriptor = describe_type(Callable[[], int])
        assert demarshal_results(descriptor, ()) == 0

    def test_multi_slot_zero_fills_each_position(self):
        """None and absent results become zero values independently."""
        descriptor = describe_type(
            Callable[[], tuple[str, int | None, list[str], Exception | None]]
        )
        assert demarshal_results(descriptor, (None, None)) == ("", None, [], None)

    def test_empty_tuple_return(self):
        """tuple[()] returns an empty tuple."""
        descriptor = describe_type(Callable[[], tuple[()]])
        assert demarshal_results(descriptor, ()) == ()

    def test_typeddict_slot_accepts_matching_dict(self):
        """A TypedDict return is checked as a plain dict."""
        descriptor = describe_type(Callable[[], User])

        assert demarshal_results(descriptor, ({"name": "ada"},)) == {"name": "ada"}
        assert demarshal_results(descriptor, ()) == {"name": ""}

    def test_extra_results_are_ignored(self):
        descriptor = describe_type(Callable[[], tuple[int, int]])
        assert demarshal_results(descriptor, (1, 2, 3)) == (1, 2)


class TestCheckReturnType:
    """Tests for check_return_type()."""

    @pytest.mark.parametrize(
        ("value", "declared"),
        [
            (1, int),
            (1, float),
            (1.5, complex),
            (True, int),
            ([1], list[str]),
            ("a", str | None),
            ("a", Literal["a", "b"]),
            (len, Callable[[Any], int]),
            (object(), Any),
            ("x", "Unresolved"),
            (ValueError("boom"), Exception | None),
            ({"name": "ada"}, User),
            ({"name": "ada"}, User | None),
        ],
    )
    def test_accepts_fitting_values(self, value, declared):
        check_return_type(value, declared)

    @pytest.mark.parametrize(
        ("value", "declared"),
        [
            ("1", int),
            (1, str),
            ("c", Literal["a", "b"]),
            (3, list[int]),
            ("boom", Exception | None),
            ("ada", User),
        ],
    )
    def test_rejects_mismatched_values(self, value, declared):
        with pytest.raises(ReturnTypeError) as excinfo:
            check_return_type(value, declared, position=1)

        assert excinfo.value.value == value
        assert "return value 1" in str(excinfo.value)


class TestGenerateWrapper:
    """Tests for generate_wrapper()."""

    def given_wrapper(self, descriptor, results=()):
        self.received = []

        def invoke(*args, **kwargs):
            self.received.append((args, kwargs))
            return results

        self.fn = generate_wrapper(descriptor, invoke)

    def test_presents_descriptor_signature(self):
        """The wrapper looks like the described function."""
        self.given_wrapper(describe_value(send))

        assert inspect.signature(self.fn) == inspect.signature(send)
        assert self.fn.__annotations__["cc"] is str

    def test_forwards_boxed_arguments(self):
        """invoke sees the bound, boxed arguments."""
        self.given_wrapper(describe_value(send))

        self.fn("ada", cc="bob")

        assert self.received == [(("ada", "hi"), {"cc": "bob"})]

    def test_zero_parameters_invoke_with_nothing(self):
        """A function without parameters forwards no arguments."""
        self.given_wrapper(describe_type(Callable[[], str]), results=("x",))

        assert self.fn() == "x"
        assert self.received == [((), {})]

    def test_engine_failures_propagate(self):
        """Exceptions from invoke are not caught."""

        class Abort(BaseException):
            pass

        def invoke(*args, **kwargs):
            raise Abort

        fn = generate_wrapper(describe_type(Callable[[], None]), invoke)

        with pytest.raises(Abort):
            fn()

    @pytest.mark.asyncio
    async def test_async_wrapper_awaits_to_result(self):
        """Async descriptors produce coroutine functions."""

        async def source(url: str) -> tuple[bytes, int]:
            return b"", 0

        self.given_wrapper(describe_value(source), results=(b"body",))

        assert inspect.iscoroutinefunction(self.fn)
        assert await self.fn("u") == (b"body", 0)
