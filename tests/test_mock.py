"""Tests for the expectation engine."""

import pytest

from funcmock.mock import ANY, Arguments, Mock, MockFailure


class ReturningContext:
    """A broken failure context whose fail_now() returns."""

    def __init__(self):
        self.errors = []

    def error(self, message):
        self.errors.append(message)

    def fail_now(self):
        pass


class TestArguments:
    """Tests for Arguments."""

    def test_get_returns_none_past_end(self):
        args = Arguments(("a",))
        assert args.get(0) == "a"
        assert args.get(1) is None

    def test_diff_reports_each_position(self):
        """Matching and mismatching positions are both listed."""
        lines, differences = Arguments(("a", "b")).diff(("a", "c"))

        assert differences == 1
        assert lines[0].startswith("0: PASS")
        assert lines[1].startswith("1: FAIL")

    def test_diff_counts_missing_arguments(self):
        _, differences = Arguments(("a", "b")).diff(("a",))
        assert differences == 1

    def test_diff_compares_keywords(self):
        lines, differences = Arguments(()).diff((), {"x": 1}, {"x": 2})

        assert differences == 1
        assert lines == ["x: FAIL:  2 != 1"]

    def test_any_matches(self):
        _, differences = Arguments((ANY,)).diff((object(),))
        assert differences == 0


class TestMethodCalled:
    """Tests for Mock.method_called()."""

    def given_mock_with_expectation(self):
        self.mock = Mock()
        self.mock.on("get", "key").returns("value", None)

    def test_returns_registered_values(self):
        self.given_mock_with_expectation()
        assert self.mock.method_called("get", "key") == ("value", None)

    def test_records_call(self):
        """Matched calls are recorded with their results."""
        self.given_mock_with_expectation()

        self.mock.method_called("get", "key")

        (call,) = self.mock.calls
        assert call.method == "get"
        assert call.arguments == ("key",)
        assert call.results == ("value", None)

    def test_methods_are_keyed_separately(self):
        """An expectation only answers its own method."""
        self.given_mock_with_expectation()

        with pytest.raises(pytest.fail.Exception):
            self.mock.method_called("put", "key")

    def test_first_registered_match_wins(self):
        """Expectations are tried in registration order."""
        mock = Mock()
        mock.on("get", ANY).returns("any")
        mock.on("get", "key").returns("exact")

        assert mock.method_called("get", "key") == ("any",)

    def test_keyword_arguments_must_match(self):
        mock = Mock()
        mock.on("get", "key", default=1).returns("found")

        assert mock.method_called("get", "key", default=1) == ("found",)
        assert not mock.is_method_callable(None, "get", "key", default=2)

    def test_unexpected_call_shows_closest_expectation(self, recording_context):
        """The failure message names the call and the closest expectation."""
        self.given_mock_with_expectation()
        self.mock.test(recording_context)

        with pytest.raises(RuntimeError):
            self.mock.method_called("get", "other")

        message = recording_context.errors[0]
        assert "get('other')" in message
        assert "The closest call I have is" in message
        assert "get('key')" in message
        assert "0: FAIL:  'other' != 'key'" in message

    def test_context_that_does_not_abort_still_stops_call(self):
        """A call without a match never returns, even if fail_now() returns."""
        mock = Mock()
        context = ReturningContext()
        mock.test(context)

        with pytest.raises(MockFailure):
            mock.method_called("get")

        assert len(context.errors) == 1
        assert mock.calls == []


class TestAssertions:
    """Tests for the Mock assertions."""

    def given_called_mock(self, recording_context):
        self.context = recording_context
        self.mock = Mock()
        self.mock.on("get", "key").returns("value").once()
        self.mock.method_called("get", "key")

    def test_explicit_context_overrides_bound_one(self, recording_context):
        """An explicit t receives the failure."""
        self.given_called_mock(recording_context)
        other = ReturningContext()
        self.mock.test(other)

        assert not self.mock.assert_called(self.context, "get", "nope")

        assert self.context.errors
        assert other.errors == []

    def test_assert_number_of_calls_counts_per_method(self, recording_context):
        self.given_called_mock(recording_context)
        assert self.mock.assert_number_of_calls(self.context, "get", 1)
        assert self.mock.assert_number_of_calls(self.context, "put", 0)

    def test_times_expectation_satisfied_after_enough_calls(self, recording_context):
        """once() is met after exactly one call."""
        self.given_called_mock(recording_context)
        assert self.mock.assert_expectations(self.context)

    def test_times_expectation_unmet(self, recording_context):
        """twice() with one call is reported."""
        self.context = recording_context
        mock = Mock()
        mock.on("get").returns().twice()
        mock.method_called("get")

        assert not mock.assert_expectations(self.context)
        assert "1 more call(s)" in self.context.errors[0]

    def test_exhausted_expectation_is_not_callable(self, recording_context):
        self.given_called_mock(recording_context)
        assert not self.mock.is_method_callable(self.context, "get", "key")

    def test_times_rejects_non_positive_counts(self):
        with pytest.raises(ValueError):
            Mock().on("get").times(0)


def test_test_data_is_per_mock():
    """Each mock has its own scratch storage."""
    first, second = Mock(), Mock()
    first.test_data()["seen"] = True
    assert second.test_data() == {}
