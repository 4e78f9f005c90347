"""
Exception hierarchy for the strategy mention system.

The core text operations (deserialize, reconcile, render) are total and never
raise; these exceptions cover the collaborators around them: configuration,
the entity search backend, insertion requests and candidate-to-token
conversion.
"""

from __future__ import annotations

from typing import Any


class StrategyMentionsError(Exception):
    """Base exception for all strategy mention errors.

    Attributes:
        message: Human-readable error message
        details: Optional dictionary of additional error context
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigError(StrategyMentionsError):
    """Configuration could not be loaded or failed validation."""


class SearchProviderError(StrategyMentionsError):
    """The entity search backend could not be reached or returned garbage.

    Attributes:
        endpoint: The endpoint that failed
        status_code: HTTP status code, if a response was received
    """

    def __init__(
        self,
        message: str,
        endpoint: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code


class InvalidEditError(StrategyMentionsError):
    """A requested edit does not fit the document it targets.

    Raised for an insertion range that is inverted, out of bounds or not
    anchored on a typed ``@``, and for an insertion that would push the text
    past its length limit.
    """


class InvalidTokenError(StrategyMentionsError):
    """A search candidate could not be turned into a reference token.

    Attributes:
        category: The offending category value
    """

    def __init__(self, message: str, category: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.category = category
