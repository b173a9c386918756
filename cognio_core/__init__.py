"""Cognio Core - agent execution and step orchestration engine."""

VERSION = "0.1.0"

# Errors
from cognio_core.errors import AgentError, ErrorCode, normalize_error

# Data model
from cognio_core.types import (
    AgentConfig,
    AgentResult,
    BackoffStrategy,
    ErrorStrategy,
    ExecutionContext,
    RetryConfig,
    StepResult,
    WorkflowConfig,
    WorkflowResult,
)

# Events
from cognio_core.events import AgentEvent, AgentEventType, EventChannel, EventListener

# Timing helpers
from cognio_core.timing import calculate_retry_delay, generate_context_id, run_with_timeout

# Engine
from cognio_core.agent import BaseAgent
from cognio_core.workflow import AgentWorkflow, WorkflowStatus, WorkflowStep

# Domain schemas
from cognio_core.schemas import (
    Contact,
    CRMProviderType,
    EmailAttachment,
    EmailMessage,
    EmailProviderType,
    Lead,
    LLMProviderType,
    ProviderConfig,
    SMSMessage,
    SMSProviderType,
)

__all__ = [
    "VERSION",
    "AgentError",
    "ErrorCode",
    "normalize_error",
    "AgentConfig",
    "AgentResult",
    "BackoffStrategy",
    "ErrorStrategy",
    "ExecutionContext",
    "RetryConfig",
    "StepResult",
    "WorkflowConfig",
    "WorkflowResult",
    "AgentEvent",
    "AgentEventType",
    "EventChannel",
    "EventListener",
    "calculate_retry_delay",
    "generate_context_id",
    "run_with_timeout",
    "BaseAgent",
    "AgentWorkflow",
    "WorkflowStatus",
    "WorkflowStep",
    "Contact",
    "CRMProviderType",
    "EmailAttachment",
    "EmailMessage",
    "EmailProviderType",
    "Lead",
    "LLMProviderType",
    "ProviderConfig",
    "SMSMessage",
    "SMSProviderType",
]
