"""Shared fixtures."""

import pytest

EXAMPLE_ABORT_MESSAGE = "example abort message"


class RecordingContext:
    """Failure context that keeps reported messages.

    fail_now() raises RuntimeError so an aborted call never returns.
    """

    def __init__(self):
        self.errors: list[str] = []
        self.aborted = False

    def error(self, message: str) -> None:
        self.errors.append(message)

    def fail_now(self):
        self.aborted = True
        raise RuntimeError(EXAMPLE_ABORT_MESSAGE)


@pytest.fixture
def recording_context():
    """A failure context that records instead of failing the test."""
    return RecordingContext()
