"""Error types for the agent execution engine."""

from typing import Any, Dict, Optional


class ErrorCode:
    """Symbolic error codes synthesized by the engine.

    Handlers may raise AgentError with their own codes; those are
    propagated unchanged.
    """

    INVALID_INPUT = "INVALID_INPUT"
    TIMEOUT = "TIMEOUT"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class AgentError(Exception):
    """Base exception for every failure surfaced by agents and workflows."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON friendly dictionary."""
        details = {}
        for key, value in self.details.items():
            details[key] = repr(value) if isinstance(value, BaseException) else value
        return {"message": self.message, "code": self.code, "details": details}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code='{self.code}', message='{self.message}')"


def normalize_error(error: Any) -> AgentError:
    """
    Normalize any raised object into an AgentError.

    AgentError instances (and subclasses) pass through untouched. Other
    exceptions are wrapped with the UNKNOWN_ERROR code and kept under
    details["original_error"].

    Args:
        error: The raised exception or arbitrary value

    Returns:
        AgentError describing the failure
    """
    if isinstance(error, AgentError):
        return error

    if isinstance(error, BaseException):
        message = str(error) or error.__class__.__name__
        return AgentError(message, ErrorCode.UNKNOWN_ERROR, {"original_error": error})

    return AgentError(str(error), ErrorCode.UNKNOWN_ERROR, {"original_error": error})
