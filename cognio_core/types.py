"""
Types used throughout the cognio_core package.

Configuration objects are pydantic models so invalid values are rejected at
construction time. Runtime records (context, step and run results) are
dataclasses owned by a single run.
"""

import logging
from copy import copy, deepcopy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import AgentError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Timezone aware current time."""
    return datetime.now(timezone.utc)


def copy_payload(value: Any) -> Any:
    """
    Copy a caller payload as deeply as it allows.

    Payloads holding objects that cannot be deep-copied (locks, sessions,
    open files) are copied shallowly, and uncopyable payloads are used as is.

    Args:
        value: Payload to copy

    Returns:
        A deep copy, a shallow copy or the value itself
    """
    try:
        return deepcopy(value)
    except Exception as e:
        logger.debug(f"Payload of type {type(value).__name__} cannot be deep-copied: {e}")

    try:
        return copy(value)
    except Exception as e:
        logger.debug(f"Payload of type {type(value).__name__} cannot be copied, using it directly: {e}")

    return value


class BackoffStrategy(str, Enum):
    """Delay growth policy between retry attempts."""

    NONE = "none"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class ErrorStrategy(str, Enum):
    """How a workflow reacts to a failing step."""

    STOP = "stop"
    CONTINUE = "continue"
    ROLLBACK = "rollback"


class RetryConfig(BaseModel):
    """Retry configuration for an agent's work function."""

    max_attempts: int = Field(default=3, ge=1, description="Maximum attempts, including the first")
    delay: float = Field(default=1.0, ge=0, description="Base delay between attempts in seconds")
    backoff: BackoffStrategy = Field(default=BackoffStrategy.EXPONENTIAL, description="Backoff strategy")
    max_delay: Optional[float] = Field(default=None, ge=0, description="Upper bound for a single delay in seconds")


class AgentConfig(BaseModel):
    """Configuration for an agent.

    ``timeout`` and ``retry`` left as None are filled from the configuration
    layer when the agent is constructed.
    """

    name: str
    description: Optional[str] = None
    version: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)
    timeout: Optional[float] = Field(default=None, gt=0, description="Overall execution timeout in seconds")
    retry: Optional[RetryConfig] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class WorkflowConfig(BaseModel):
    """Configuration for a workflow."""

    name: str
    description: Optional[str] = None
    timeout: Optional[float] = Field(default=None, gt=0, description="Overall workflow timeout in seconds")
    on_error: Optional[ErrorStrategy] = None


@dataclass(frozen=True)
class StepResult:
    """Result of one attempted workflow step."""

    step: str
    success: bool
    data: Any = None
    error: Optional[AgentError] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration: float = 0.0
    skipped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "step": self.step,
            "success": self.success,
            "data": self.data,
            "error": self.error.to_dict() if self.error else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "duration": self.duration,
            "skipped": self.skipped,
        }


@dataclass
class ExecutionContext:
    """
    State threaded through one agent or workflow run.

    ``id`` and ``timestamp`` identify the run and never change. ``data`` is
    replaced wholesale by each step that returns a value, ``metadata`` belongs
    to the caller and ``history`` grows by one StepResult per attempted step.
    """

    id: str
    data: Any = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    history: List[StepResult] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utcnow)

    def snapshot(self) -> "ExecutionContext":
        """
        Copy the context so callers cannot mutate the live run state.

        Returns:
            A new ExecutionContext with copied payload, metadata and history
        """
        return ExecutionContext(
            id=self.id,
            data=copy_payload(self.data),
            metadata=copy_payload(self.metadata),
            history=list(self.history),
            timestamp=self.timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "id": self.id,
            "data": copy_payload(self.data),
            "metadata": copy_payload(self.metadata),
            "history": [result.to_dict() for result in self.history],
            "timestamp": self.timestamp.isoformat(),
        }

    def __repr__(self) -> str:
        return f"ExecutionContext(id={self.id}, steps={len(self.history)})"


@dataclass(frozen=True)
class AgentResult:
    """Terminal summary of one agent execution."""

    success: bool
    data: Any = None
    error: Optional[AgentError] = None
    execution_time: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error.to_dict() if self.error else None,
            "execution_time": self.execution_time,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class WorkflowResult:
    """Terminal summary of one workflow execution."""

    success: bool
    data: Any = None
    steps: List[StepResult] = field(default_factory=list)
    error: Optional[AgentError] = None
    execution_time: float = 0.0

    @property
    def failed_steps(self) -> List[str]:
        """Names of the steps that failed during the run."""
        return [result.step for result in self.steps if not result.success]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "data": self.data,
            "steps": [result.to_dict() for result in self.steps],
            "error": self.error.to_dict() if self.error else None,
            "execution_time": self.execution_time,
        }
