"""Expectation engine: registered calls, matching, call history and assertions.

A Mock keeps an ordered list of expectations ("when called with these
arguments, return these values") per method name. Calls are matched against
them in registration order; matched calls are recorded and their results
returned, unmatched calls are reported to the bound failure context, which is
expected to abort the test.
"""

import inspect
import logging
import os
import threading
from collections.abc import Callable, Sequence
from typing import Any, NoReturn, Protocol
from unittest.mock import ANY

import pytest

from funcmock.models import Invocation

logger = logging.getLogger(__name__)

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))


class FailureContext(Protocol):
    """Receives failure reports from a Mock."""

    def error(self, message: str) -> None: ...

    def fail_now(self) -> NoReturn: ...


class PytestContext:
    """Failure context used when no test has been bound with ``Mock.test()``.

    Every reported failure fails the running test immediately.
    """

    def error(self, message: str) -> None:
        pytest.fail(message, pytrace=False)

    def fail_now(self) -> NoReturn:
        pytest.fail("funcmock: test aborted", pytrace=False)


class MockFailure(AssertionError):
    """Raised when a failure context's fail_now() returns instead of aborting."""


class Arguments(tuple):
    """An ordered list of call arguments or return values."""

    def __new__(cls, values: Sequence[Any] = ()):
        return super().__new__(cls, values)

    def __repr__(self) -> str:
        return f"Arguments({', '.join(repr(v) for v in self)})"

    def get(self, index: int) -> Any:
        """Return the value at ``index``, or None if there is none."""
        if index < len(self):
            return self[index]
        return None

    def diff(
        self,
        actual: Sequence[Any],
        expected_kwargs: dict[str, Any] | None = None,
        actual_kwargs: dict[str, Any] | None = None,
    ) -> tuple[list[str], int]:
        """Compare these (expected) arguments with actual ones.

        Returns:
            One report line per position or keyword, and the number of
            mismatches
        """
        lines = []
        differences = 0

        for i in range(max(len(self), len(actual))):
            expected = self[i] if i < len(self) else _MISSING
            got = actual[i] if i < len(actual) else _MISSING
            ok = _matches(expected, got)
            if not ok:
                differences += 1
            lines.append(_report_line(i, ok, got, expected))

        expected_kwargs = expected_kwargs or {}
        actual_kwargs = actual_kwargs or {}
        for key in sorted(set(expected_kwargs) | set(actual_kwargs)):
            expected = expected_kwargs.get(key, _MISSING)
            got = actual_kwargs.get(key, _MISSING)
            ok = _matches(expected, got)
            if not ok:
                differences += 1
            lines.append(_report_line(key, ok, got, expected))

        return lines, differences


def _report_line(position: Any, ok: bool, actual: Any, expected: Any) -> str:
    if ok:
        return f"{position}: PASS:  {actual!r} == {expected!r}"
    return f"{position}: FAIL:  {actual!r} != {expected!r}"


class _Missing:
    def __repr__(self) -> str:
        return "(Missing)"


_MISSING = _Missing()


def _matches(expected: Any, actual: Any) -> bool:
    if expected is _MISSING or actual is _MISSING:
        return False
    # Expected value on the left so ANY and custom __eq__ matchers apply
    return bool(expected == actual)


class Expectation:
    """A registered call: argument matchers plus the values to return."""

    def __init__(
        self,
        parent: "Mock",
        method: str,
        arguments: Sequence[Any],
        keyword_arguments: dict[str, Any],
        location: str = "",
    ):
        self.parent = parent
        self.method = method
        self.arguments = Arguments(arguments)
        self.keyword_arguments = dict(keyword_arguments)
        self.return_arguments = Arguments()
        self.repeatability = 0  # 0 means unlimited
        self.total_calls = 0
        self.optional = False
        self.location = location
        self.run_fn: Callable[..., Any] | None = None
        self.exception: BaseException | None = None

    def __repr__(self) -> str:
        call = _format_call(self.method, self.arguments, self.keyword_arguments)
        return f"Expectation({call})"

    def returns(self, *values: Any) -> "Expectation":
        """Set the values returned by matching calls."""
        with self.parent._lock:
            self.return_arguments = Arguments(values)
        return self

    def once(self) -> "Expectation":
        return self.times(1)

    def twice(self) -> "Expectation":
        return self.times(2)

    def times(self, n: int) -> "Expectation":
        """Only match the next ``n`` calls."""
        if n < 1:
            raise ValueError(f"times() needs a positive count, got {n}")
        with self.parent._lock:
            self.repeatability = n
        return self

    def maybe(self) -> "Expectation":
        """Allow this expectation to go uncalled in assert_expectations()."""
        with self.parent._lock:
            self.optional = True
        return self

    def run(self, fn: Callable[..., Any]) -> "Expectation":
        """Call ``fn`` with the call's arguments whenever this expectation matches."""
        with self.parent._lock:
            self.run_fn = fn
        return self

    def raises(self, exception: BaseException) -> "Expectation":
        """Raise ``exception`` from matching calls after they are recorded."""
        with self.parent._lock:
            self.exception = exception
        return self

    def on(self, *args: Any, **kwargs: Any) -> "Expectation":
        """Register another expectation for the same method."""
        return self.parent.on(self.method, *args, **kwargs)

    @property
    def exhausted(self) -> bool:
        return self.repeatability > 0 and self.total_calls >= self.repeatability

    def satisfied(self) -> bool:
        if self.repeatability > 0:
            return self.total_calls >= self.repeatability
        return self.optional or self.total_calls > 0


class Mock:
    """Records calls and answers them from registered expectations.

    All state is guarded by one lock, so a Mock may be called from several
    threads. Call order between threads is not defined.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._expected_calls: list[Expectation] = []
        self._calls: list[Invocation] = []
        self._test: FailureContext | None = None
        self._test_data: dict[str, Any] = {}

    @property
    def expected_calls(self) -> list[Expectation]:
        with self._lock:
            return list(self._expected_calls)

    @property
    def calls(self) -> list[Invocation]:
        with self._lock:
            return list(self._calls)

    def test(self, t: FailureContext) -> None:
        """Report failures to ``t`` instead of failing the running pytest test."""
        with self._lock:
            self._test = t

    def test_data(self) -> dict[str, Any]:
        """Free-form storage for test helpers."""
        return self._test_data

    def on(self, method: str, /, *args: Any, **kwargs: Any) -> Expectation:
        """Register an expected call of ``method`` with the given arguments."""
        expectation = Expectation(self, method, args, kwargs, _caller_location())
        with self._lock:
            self._expected_calls.append(expectation)
        logger.debug(f"Registered {expectation!r} at {expectation.location}")
        return expectation

    def method_called(self, method: str, /, *args: Any, **kwargs: Any) -> Arguments:
        """Record a call and return the matching expectation's values.

        A call that matches no expectation is reported to the failure context
        and never returns.
        """
        location = _caller_location()

        with self._lock:
            found, closest = self._find_expected_call(method, args, kwargs)
            if found is not None:
                found.total_calls += 1
                self._calls.append(
                    Invocation(
                        method=method,
                        arguments=tuple(args),
                        keyword_arguments=dict(kwargs),
                        results=found.return_arguments,
                        location=location,
                    )
                )

        if found is None:
            call = _format_call(method, args, kwargs)
            if closest is not None and closest.exhausted:
                self._fail(
                    f"\nmock: The method has been called over {closest.repeatability} "
                    f"times.\n\tEither do one more Mock.on({method!r}).returns(...), "
                    f"or remove extra call.\n\tThis call was unexpected:\n\t\t{call}"
                    f"\n\tat: {location}"
                )
            self._fail(_unexpected_call_message(call, closest, args, kwargs, location))

        logger.debug(f"Matched {_format_call(method, args, kwargs)} at {location}")

        if found.run_fn is not None:
            found.run_fn(*args, **kwargs)
        if found.exception is not None:
            raise found.exception
        return found.return_arguments

    def assert_expectations(self, t: FailureContext | None = None) -> bool:
        """Assert that every non-optional expectation was called as often as set."""
        expected_calls = self.expected_calls
        failed = [e for e in expected_calls if not e.satisfied()]

        if not failed:
            return True

        lines = [
            f"FAIL:\t{_format_call(e.method, e.arguments, e.keyword_arguments)}"
            f"\n\t\tat: {e.location}"
            for e in failed
        ]
        lines.append(
            f"FAIL: {len(expected_calls) - len(failed)} out of {len(expected_calls)} "
            "expectation(s) were met.\n\tThe code you are testing needs to make "
            f"{len(failed)} more call(s).\n\tat: {_caller_location()}"
        )
        self._context(t).error("\n".join(lines))
        return False

    def assert_called(
        self, t: FailureContext | None, method: str, /, *args: Any, **kwargs: Any
    ) -> bool:
        """Assert that ``method`` was called with the given arguments."""
        if self._method_was_called(method, args, kwargs):
            return True
        self._context(t).error(
            "Should have called with given arguments\n"
            f"Expected {_format_call(method, args, kwargs)} to have been called, "
            f"but actual calls were:\n{self._format_calls(method)}"
        )
        return False

    def assert_not_called(
        self, t: FailureContext | None, method: str, /, *args: Any, **kwargs: Any
    ) -> bool:
        """Assert that ``method`` was never called with the given arguments."""
        if not self._method_was_called(method, args, kwargs):
            return True
        self._context(t).error(
            "Should not have called with given arguments\n"
            f"Expected {_format_call(method, args, kwargs)} not to have been called, "
            f"but actual calls were:\n{self._format_calls(method)}"
        )
        return False

    def assert_number_of_calls(
        self, t: FailureContext | None, method: str, expected_calls: int
    ) -> bool:
        """Assert that ``method`` was called exactly ``expected_calls`` times."""
        actual = sum(1 for c in self.calls if c.method == method)
        if actual == expected_calls:
            return True
        self._context(t).error(
            f"Expected number of calls ({expected_calls}) does not match "
            f"the actual number of calls ({actual})."
        )
        return False

    def is_method_callable(
        self, t: FailureContext | None, method: str, /, *args: Any, **kwargs: Any
    ) -> bool:
        """True if a call of ``method`` with these arguments would match."""
        with self._lock:
            found, _ = self._find_expected_call(method, args, kwargs)
        return found is not None

    def _find_expected_call(
        self, method: str, args: Sequence[Any], kwargs: dict[str, Any]
    ) -> tuple[Expectation | None, Expectation | None]:
        """Return the first usable match and, failing that, the closest one."""
        closest = None
        closest_differences = None

        for expectation in self._expected_calls:
            if expectation.method != method:
                continue
            _, differences = expectation.arguments.diff(
                args, expectation.keyword_arguments, kwargs
            )
            if differences == 0 and not expectation.exhausted:
                return expectation, None
            if closest_differences is None or differences < closest_differences:
                closest = expectation
                closest_differences = differences

        return None, closest

    def _method_was_called(
        self, method: str, args: Sequence[Any], kwargs: dict[str, Any]
    ) -> bool:
        expected = Arguments(args)
        for call in self.calls:
            if call.method != method:
                continue
            _, differences = expected.diff(
                call.arguments, kwargs, call.keyword_arguments
            )
            if differences == 0:
                return True
        return False

    def _format_calls(self, method: str) -> str:
        calls = [c for c in self.calls if c.method == method]
        if not calls:
            return "\t(none)"
        return "\n".join(
            f"\t{_format_call(c.method, c.arguments, c.keyword_arguments)}"
            for c in calls
        )

    def _context(self, t: FailureContext | None) -> FailureContext:
        if t is not None:
            return t
        with self._lock:
            bound = self._test
        return bound if bound is not None else PytestContext()

    def _fail(self, message: str) -> NoReturn:
        logger.debug(f"Reporting failure: {message.strip().splitlines()[0]}")
        t = self._context(None)
        t.error(message)
        t.fail_now()
        raise MockFailure(message)


def _format_call(method: str, args: Sequence[Any], kwargs: dict[str, Any]) -> str:
    parts = [repr(a) for a in args]
    parts.extend(f"{k}={v!r}" for k, v in kwargs.items())
    return f"{method}({', '.join(parts)})"


def _unexpected_call_message(
    call: str,
    closest: Expectation | None,
    args: Sequence[Any],
    kwargs: dict[str, Any],
    location: str,
) -> str:
    if closest is None:
        return (
            "\nmock: I don't know what to return because the method call was "
            f"unexpected.\n\t{call}\n\tEither do Mock.on(...).returns(...) first, "
            f"or remove the call.\n\tat: {location}"
        )

    lines, _ = closest.arguments.diff(args, closest.keyword_arguments, kwargs)
    expected = _format_call(
        closest.method, closest.arguments, closest.keyword_arguments
    )
    diff = "\n".join(f"\t{line}" for line in lines)
    return (
        "\n\nmock: Unexpected Method Call\n-----------------------------\n\n"
        f"{call}\n\nThe closest call I have is:\n\n{expected}\n\n"
        f"Diff:\n{diff}\nat: {location}"
    )


def _caller_location() -> str:
    """file:line of the nearest frame outside this package."""
    frame = inspect.currentframe()
    try:
        while frame is not None:
            filename = frame.f_code.co_filename
            if not os.path.abspath(filename).startswith(_PACKAGE_DIR + os.sep):
                return f"{filename}:{frame.f_lineno}"
            frame = frame.f_back
        return "<unknown>"
    finally:
        del frame
