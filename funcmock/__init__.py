"""Test doubles for plain functions, built from their type."""

import logging

from funcmock.adapter import (
    ReturnTypeError,
    demarshal_results,
    generate_wrapper,
    marshal_arguments,
)
from funcmock.builder import CALL_SITE, Builder, for_type, like
from funcmock.mock import (
    ANY,
    Arguments,
    Expectation,
    FailureContext,
    Mock,
    MockFailure,
    PytestContext,
)
from funcmock.models import FunctionTypeDescriptor, Invocation
from funcmock.signature import (
    NotAFunctionTypeError,
    describe_type,
    describe_value,
    format_type,
)
from funcmock.zero import zero_value

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Builders
    "Builder",
    "CALL_SITE",
    "for_type",
    "like",
    # Models
    "FunctionTypeDescriptor",
    "Invocation",
    # Type introspection
    "describe_type",
    "describe_value",
    "format_type",
    "zero_value",
    # Call adapter
    "generate_wrapper",
    "marshal_arguments",
    "demarshal_results",
    # Expectation engine
    "ANY",
    "Arguments",
    "Expectation",
    "FailureContext",
    "Mock",
    "PytestContext",
    # Errors
    "MockFailure",
    "NotAFunctionTypeError",
    "ReturnTypeError",
]
