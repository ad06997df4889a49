"""Custom exceptions for the Luna assistant."""
from enum import Enum


class AssistantError(Exception):
    """Base class for errors that map onto an HTTP error response."""
    status_code = 500
    error_code = "internal_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AssistantError):
    """The inbound request body is malformed. Raised before any model call."""
    status_code = 400
    error_code = "invalid_request"


class AuthenticationError(AssistantError):
    status_code = 401
    error_code = "unauthorized"


class ConfigurationError(AssistantError):
    """Missing credential, bad registry, or unresolvable collaborator URL."""
    status_code = 500
    error_code = "configuration_error"


class UpstreamUnavailable(AssistantError):
    """The language-model provider is unreachable or returned an error."""
    status_code = 500
    error_code = "upstream_unavailable"
    user_message = (
        "I'm having trouble reaching the AI service right now. "
        "Please try again in a moment."
    )


class ToolErrorKind(str, Enum):
    SCHEMA_INVALID = "schema_invalid"
    NOT_FOUND = "not_found"
    DOWNSTREAM_HTTP = "downstream_http_error"
    UNKNOWN_TOOL = "unknown_tool"
    WORKFLOW_BLOCKED = "workflow_blocked"
    HANDLER_ERROR = "handler_error"


class ToolExecutionError(Exception):
    """Per-invocation failure. Never escapes the tool executor."""

    def __init__(self, kind: ToolErrorKind, message: str, status: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status

    def __repr__(self) -> str:
        return f"ToolExecutionError({self.kind.value!r}, {self.message!r})"
