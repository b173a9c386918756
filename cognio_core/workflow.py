"""
Agent Workflow

Run a linear sequence of named steps over a shared execution context.
"""

import inspect
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from config import env_manager
from .errors import AgentError, ErrorCode, normalize_error
from .events import AgentEvent, AgentEventType, EventChannel, EventListener
from .timing import generate_context_id, run_with_timeout
from .types import ErrorStrategy, ExecutionContext, StepResult, WorkflowConfig, WorkflowResult, copy_payload, utcnow

logger = logging.getLogger(__name__)

StepHandler = Callable[[ExecutionContext], Union[Any, Awaitable[Any]]]
StepCondition = Callable[[ExecutionContext], Union[bool, Awaitable[bool]]]
StepErrorHook = Callable[[Exception, ExecutionContext], Union[None, Awaitable[None]]]


class WorkflowStatus(str, Enum):
    """State of the most recent workflow run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED_STOPPED = "failed-stopped"
    FAILED_TIMEOUT = "failed-timeout"


@dataclass
class WorkflowStep:
    """A registered step."""

    name: str
    handler: StepHandler
    condition: Optional[StepCondition] = None
    on_error: Optional[StepErrorHook] = None


class _WorkflowAborted(Exception):
    """Raised by the step loop when the failure strategy ends the run."""

    def __init__(self, error: AgentError):
        super().__init__(error.message)
        self.error = error


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class AgentWorkflow:
    """
    Sequential workflow of steps.

    Steps run in registration order. Each step may return a new payload which
    replaces ``context.data``; returning None leaves it untouched. What
    happens after a failing step is decided by the ``on_error`` strategy:

    - ``stop``: end the run with the step's error
    - ``continue``: record the failure and run the next step
    - ``rollback``: run the rollback hook, then end the run like ``stop``

    One instance can be executed many times but not concurrently.
    """

    def __init__(self, config: Union[WorkflowConfig, Dict[str, Any]]):
        """
        Initialize the workflow.

        Args:
            config: Workflow configuration. Unset timeout and error strategy
                are taken from the environment defaults.
        """
        if isinstance(config, dict):
            config = WorkflowConfig(**config)

        self.config = self._apply_defaults(config)
        self.events = EventChannel(owner=self.config.name)
        self.context: Optional[ExecutionContext] = None
        self._steps: List[WorkflowStep] = []
        self._status = WorkflowStatus.IDLE

    @staticmethod
    def _apply_defaults(config: WorkflowConfig) -> WorkflowConfig:
        defaults = env_manager.get_workflow_defaults()
        updates: Dict[str, Any] = {}

        if config.timeout is None:
            updates["timeout"] = defaults.timeout
        if config.on_error is None:
            try:
                updates["on_error"] = ErrorStrategy(defaults.on_error)
            except ValueError:
                logger.warning(
                    f"Invalid workflow error strategy '{defaults.on_error}' in environment, using 'stop'"
                )
                updates["on_error"] = ErrorStrategy.STOP

        return config.model_copy(update=updates, deep=True)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def steps(self) -> List[str]:
        """Names of the registered steps, in execution order."""
        return [step.name for step in self._steps]

    @property
    def status(self) -> WorkflowStatus:
        """State of the most recent run."""
        return self._status

    def step(
        self,
        name: str,
        handler: StepHandler,
        condition: Optional[StepCondition] = None,
        on_error: Optional[StepErrorHook] = None,
    ) -> "AgentWorkflow":
        """
        Append a step.

        Args:
            name: Step name, reported in results and events
            handler: Callable receiving the context. May be a coroutine function.
            condition: Predicate deciding whether the step runs
            on_error: Hook called with the raised exception and the context

        Returns:
            The workflow, for chaining
        """
        self._steps.append(
            WorkflowStep(name=name, handler=handler, condition=condition, on_error=on_error)
        )
        return self

    def when(
        self,
        condition: StepCondition,
        name: str,
        handler: StepHandler,
        on_error: Optional[StepErrorHook] = None,
    ) -> "AgentWorkflow":
        """Append a step that only runs when ``condition`` holds."""
        return self.step(name, handler, condition=condition, on_error=on_error)

    async def execute(self, input: Any, metadata: Optional[Dict[str, Any]] = None) -> WorkflowResult:
        """
        Execute the workflow.

        Args:
            input: Initial payload. It is copied, never mutated.
            metadata: Caller metadata attached to the run

        Returns:
            WorkflowResult with the final payload or the aborting error
        """
        start_time = time.monotonic()
        results: List[StepResult] = []
        self._status = WorkflowStatus.RUNNING

        context = ExecutionContext(
            id=generate_context_id(self.name),
            data=copy_payload(input),
            metadata=dict(metadata or {}),
        )
        self.context = context

        logger.info(f"Starting workflow '{self.name}' (run: {context.id}, steps: {len(self._steps)})")
        self._emit(
            AgentEventType.WORKFLOW_START,
            data={"workflow": self.name, "steps": len(self._steps)},
        )

        try:
            await run_with_timeout(
                self._execute_steps(list(self._steps), context, results),
                self.config.timeout,
                "Workflow timeout",
            )

            self._status = WorkflowStatus.COMPLETED
            result = WorkflowResult(
                success=True,
                data=context.data,
                steps=list(results),
                execution_time=time.monotonic() - start_time,
            )
            logger.info(
                f"Workflow '{self.name}' completed in {result.execution_time:.3f}s"
                + (f" with failed steps: {result.failed_steps}" if result.failed_steps else "")
            )
            self._emit(AgentEventType.WORKFLOW_COMPLETE, data=result)
            return result

        except _WorkflowAborted as e:
            self._status = WorkflowStatus.FAILED_STOPPED
            return self._fail(e.error, results, start_time)
        except Exception as e:
            error = normalize_error(e)
            if error.code == ErrorCode.TIMEOUT:
                self._status = WorkflowStatus.FAILED_TIMEOUT
            else:
                self._status = WorkflowStatus.FAILED_STOPPED
            return self._fail(error, results, start_time)

    def _fail(self, error: AgentError, results: List[StepResult], start_time: float) -> WorkflowResult:
        result = WorkflowResult(
            success=False,
            steps=list(results),
            error=error,
            execution_time=time.monotonic() - start_time,
        )
        logger.error(
            f"Workflow '{self.name}' failed after {len(result.steps)} step(s) [{error.code}]: {error.message}"
        )
        self._emit(AgentEventType.WORKFLOW_ERROR, data=result, error=error)
        return result

    async def _execute_steps(
        self,
        steps: List[WorkflowStep],
        context: ExecutionContext,
        results: List[StepResult],
    ) -> None:
        strategy = self.config.on_error

        for step in steps:
            step_result = await self._execute_step(step, context)
            results.append(step_result)
            context.history.append(step_result)

            if step_result.success:
                continue

            if strategy == ErrorStrategy.CONTINUE:
                logger.warning(f"Step '{step.name}' failed, continuing with next step")
                continue

            if strategy == ErrorStrategy.ROLLBACK:
                await self._rollback(results)

            raise _WorkflowAborted(step_result.error)

    async def _execute_step(self, step: WorkflowStep, context: ExecutionContext) -> StepResult:
        started_at = utcnow()
        start_time = time.monotonic()

        self._emit(AgentEventType.STEP_START, data={"step": step.name})

        try:
            if step.condition is not None:
                should_run = await _resolve(step.condition(context))
                if not should_run:
                    logger.debug(f"Skipping step '{step.name}': condition not met")
                    result = StepResult(
                        step=step.name,
                        success=True,
                        data=None,
                        started_at=started_at,
                        completed_at=utcnow(),
                        duration=time.monotonic() - start_time,
                        skipped=True,
                    )
                    self._emit(AgentEventType.STEP_COMPLETE, data=result)
                    return result

            output = await _resolve(step.handler(context))

            if output is not None:
                context.data = output

            result = StepResult(
                step=step.name,
                success=True,
                data=output,
                started_at=started_at,
                completed_at=utcnow(),
                duration=time.monotonic() - start_time,
            )
            self._emit(AgentEventType.STEP_COMPLETE, data=result)
            return result

        except Exception as e:
            error = normalize_error(e)
            logger.warning(f"Step '{step.name}' failed [{error.code}]: {error.message}")

            if step.on_error is not None:
                try:
                    await _resolve(step.on_error(e, context))
                except Exception as hook_error:
                    logger.error(
                        f"Error hook of step '{step.name}' failed: {hook_error}", exc_info=True
                    )

            result = StepResult(
                step=step.name,
                success=False,
                error=error,
                started_at=started_at,
                completed_at=utcnow(),
                duration=time.monotonic() - start_time,
            )
            self._emit(AgentEventType.STEP_ERROR, data=result, error=error)
            return result

    async def _rollback(self, results: List[StepResult]) -> None:
        # No step declares an undo action, so there is nothing to reverse.
        completed = [result.step for result in results if result.success and not result.skipped]
        logger.warning(
            f"Rollback requested for workflow '{self.name}' but steps define no undo; "
            f"completed steps left in place: {completed}"
        )

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

    def get_context(self) -> Optional[ExecutionContext]:
        """Return a copy of the most recent run's context, or None."""
        return self.context.snapshot() if self.context is not None else None

    def get_config(self) -> WorkflowConfig:
        """Return a copy of the configuration."""
        return self.config.model_copy(deep=True)

    def clear(self) -> None:
        """Remove every step and forget the last run."""
        self._steps = []
        self.context = None
        self._status = WorkflowStatus.IDLE

    def __repr__(self) -> str:
        return f"AgentWorkflow(name={self.name!r}, steps={self.steps})"
