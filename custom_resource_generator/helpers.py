"""Shared helper functions, constants and the error types used across the generator."""

import sys
from datetime import timedelta

# The resource type used when the caller does not supply one.
DEFAULT_RESOURCE_TYPE = "Custom::AWS"

# The broadest resource pattern an IAM statement can grant on.
ANY_RESOURCE = "*"

POLICY_VERSION = "2012-10-17"

DEFAULT_TIMEOUT = timedelta(minutes=2)

# Upper bound imposed by the execution runtime (a Lambda function).
MAX_TIMEOUT = timedelta(minutes=15)

# Sentinels understood by the execution runtime. These are matched by literal
# string comparison on the other side and must never change.
TRUE_BOOLEAN = "TRUE:BOOLEAN"
FALSE_BOOLEAN = "FALSE:BOOLEAN"

# Placeholder the execution runtime replaces with the current physical id.
PHYSICAL_RESOURCE_ID_MARKER = "PHYSICAL:RESOURCEID:"


class ConfigurationError(ValueError):
    """Raised when a declarative resource description cannot be built."""


def capitalize_first(s: str) -> str:
    """Capitalizes the first letter of a string without lowercasing the rest."""
    if not s:
        return ""
    return s[0].upper() + s[1:]


def lower_first(s: str) -> str:
    """Lowercases the first letter of a string without touching the rest."""
    if not s:
        return ""
    return s[0].lower() + s[1:]


class ValidationErrorCollector:
    """
    Collects configuration errors across all resources so that a single run
    reports every problem at once instead of stopping at the first.
    """

    def __init__(self):
        self.errors = []

    def add_error(self, message: str, resource: str | None = None):
        if resource:
            message = f"Resource '{resource}': {message}"
        self.errors.append(message)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def report(self):
        """Prints all collected errors to stderr and exits if any exist."""
        if self.has_errors:
            print(
                "\nGeneration failed with the following configuration errors:",
                file=sys.stderr,
            )
            for i, error in enumerate(self.errors, 1):
                print(f"  {i}. {error}", file=sys.stderr)
            sys.exit(1)
