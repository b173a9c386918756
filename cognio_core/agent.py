"""
Base Agent

Abstract base class for units of work executed with a timeout, retries and
lifecycle events.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from config import env_manager
from .errors import AgentError, ErrorCode, normalize_error
from .events import AgentEvent, AgentEventType, EventChannel, EventListener
from .timing import calculate_retry_delay, generate_context_id, run_with_timeout
from .types import AgentConfig, AgentResult, ExecutionContext, RetryConfig, StepResult, copy_payload


class BaseAgent(ABC):
    """
    Abstract base class for agents.

    Subclasses implement ``run``. Callers only ever use ``execute``, which
    returns an AgentResult instead of raising. An instance handles one
    ``execute`` call at a time.
    """

    def __init__(self, config: Union[AgentConfig, Dict[str, Any]]):
        """
        Initialize the agent.

        Args:
            config: Agent configuration. Unset timeout and retry values are
                taken from the environment defaults.
        """
        if isinstance(config, dict):
            config = AgentConfig(**config)

        self.logger = logging.getLogger(f"{__name__}.{config.name}")
        self.config = self._apply_defaults(config)
        self.initialized = False
        self.events = EventChannel(owner=self.config.name)

    def _apply_defaults(self, config: AgentConfig) -> AgentConfig:
        defaults = env_manager.get_agent_defaults()
        updates: Dict[str, Any] = {}

        if config.timeout is None:
            updates["timeout"] = defaults.timeout
        if config.retry is None:
            try:
                updates["retry"] = RetryConfig(**defaults.retry.model_dump())
            except ValidationError as e:
                self.logger.warning(f"Invalid retry defaults in environment, using built-ins: {e}")
                updates["retry"] = RetryConfig()

        return config.model_copy(update=updates, deep=True)

    @property
    def name(self) -> str:
        return self.config.name

    async def initialize(self) -> None:
        """
        Initialize the agent.

        Called lazily by the first ``execute``. Override to acquire resources,
        calling ``super().initialize()`` once they are ready.
        """
        self.initialized = True
        self._emit(AgentEventType.AGENT_START, data={"agent": self.name})

    async def execute(
        self,
        input: Any,
        metadata: Optional[Dict[str, Any]] = None,
        history: Optional[List[StepResult]] = None,
    ) -> AgentResult:
        """
        Execute the agent on an input.

        Args:
            input: Payload for the work function. It is copied, never mutated.
            metadata: Caller metadata attached to the run
            history: Prior step results to seed the run with

        Returns:
            AgentResult carrying either the output or a normalized AgentError
        """
        start_time = time.monotonic()
        run_metadata = dict(metadata or {})

        try:
            if not self.initialized:
                await self.initialize()

            context = ExecutionContext(
                id=generate_context_id(self.name),
                data=copy_payload(input),
                metadata=run_metadata,
                history=list(history or []),
            )

            self.validate_input(input)

            self.logger.debug(f"Executing agent '{self.name}' (context: {context.id})")
            output = await run_with_timeout(
                self._execute_with_retry(context), self.config.timeout
            )

            result = AgentResult(
                success=True,
                data=output,
                execution_time=time.monotonic() - start_time,
                metadata=run_metadata,
            )
            self._emit(AgentEventType.AGENT_COMPLETE, data=result)
            return result

        except Exception as e:
            error = normalize_error(e)
            self.logger.error(f"Agent '{self.name}' failed [{error.code}]: {error.message}")

            result = AgentResult(
                success=False,
                error=error,
                execution_time=time.monotonic() - start_time,
                metadata=run_metadata,
            )
            self._emit(AgentEventType.AGENT_ERROR, data=result, error=error)
            return result

    @abstractmethod
    async def run(self, context: ExecutionContext) -> Any:
        """
        The work function.

        May be called several times for one ``execute`` when retries are
        configured, so it must tolerate re-invocation with the same context.

        Args:
            context: Execution context of the run

        Returns:
            The agent's output
        """
        pass

    def validate_input(self, input: Any) -> None:
        """
        Validate the input before any work is attempted.

        Override to add custom validation. Raising here fails the call
        immediately, without retries.

        Raises:
            AgentError: INVALID_INPUT when the input is None
        """
        if input is None:
            raise AgentError("Input cannot be None", ErrorCode.INVALID_INPUT)

    async def _execute_with_retry(self, context: ExecutionContext) -> Any:
        retry = self.config.retry or RetryConfig()
        last_error: Optional[BaseException] = None

        for attempt in range(1, retry.max_attempts + 1):
            try:
                return await self.run(context)
            except Exception as e:
                last_error = e

                if attempt < retry.max_attempts:
                    delay = calculate_retry_delay(attempt, retry)
                    self.logger.warning(
                        f"Agent '{self.name}' attempt {attempt}/{retry.max_attempts} failed: {e}. "
                        f"Retrying in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)

        if last_error is not None:
            raise last_error
        raise AgentError("Execution failed", ErrorCode.EXECUTION_FAILED)

    def _emit(
        self,
        event_type: AgentEventType,
        data: Any = None,
        error: Optional[AgentError] = None,
    ) -> None:
        self.events.emit(AgentEvent(type=event_type, data=data, error=error))

    def on_event(
        self, listener: EventListener, event_type: Optional[AgentEventType] = None
    ) -> None:
        """Register a lifecycle event listener, optionally for one event type."""
        self.events.subscribe(listener, event_type)

    def off_event(
        self, listener: EventListener, event_type: Optional[AgentEventType] = None
    ) -> None:
        """Remove a lifecycle event listener."""
        self.events.unsubscribe(listener, event_type)

    async def close(self) -> None:
        """Drop every listener and require initialization on the next call."""
        self.events.clear()
        self.initialized = False

    def get_config(self) -> AgentConfig:
        """Return a copy of the configuration."""
        return self.config.model_copy(deep=True)

    def update_config(self, **changes: Any) -> AgentConfig:
        """
        Merge changes into the configuration.

        Values are validated the same way as at construction.

        Returns:
            The updated configuration

        Raises:
            pydantic.ValidationError: If a value is invalid
        """
        merged = self.config.model_dump()
        merged.update(changes)
        self.config = self._apply_defaults(type(self.config)(**merged))
        return self.get_config()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, initialized={self.initialized})"
