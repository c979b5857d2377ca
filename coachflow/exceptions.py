"""
Exception hierarchy for coachflow.

Tool-level failures never escape a run: the coordinator converts them into
error results. Only gateway failures propagate up to the agent boundary,
where they become a Failed outcome.
"""


class CoachflowError(Exception):
    """Base class for all coachflow errors."""


class GatewayError(CoachflowError):
    """The inference backend could not be reached or rejected the request."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class ToolRegistrationError(CoachflowError):
    """A tool set was built with a duplicate or malformed tool."""


class CollaboratorError(CoachflowError):
    """A record store, search or object store call failed."""

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service


class ConfigError(CoachflowError):
    """The configuration file is empty or invalid."""
