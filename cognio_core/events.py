"""
Lifecycle events and the in-process publish/subscribe channel.

Agents and workflows own an EventChannel and publish AgentEvent records on
it. Delivery is synchronous and follows emission order; a failing listener is
logged and never interrupts the run that emitted the event.
"""

import asyncio
import inspect
import logging
import weakref
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, List, Optional

from .errors import AgentError
from .types import utcnow

logger = logging.getLogger(__name__)


class AgentEventType(str, Enum):
    """Closed set of lifecycle event types."""

    AGENT_START = "agent:start"
    AGENT_COMPLETE = "agent:complete"
    AGENT_ERROR = "agent:error"
    STEP_START = "step:start"
    STEP_COMPLETE = "step:complete"
    STEP_ERROR = "step:error"
    WORKFLOW_START = "workflow:start"
    WORKFLOW_COMPLETE = "workflow:complete"
    WORKFLOW_ERROR = "workflow:error"


@dataclass(frozen=True)
class AgentEvent:
    """A phase transition of an agent, step or workflow."""

    type: AgentEventType
    data: Any = None
    error: Optional[AgentError] = None
    timestamp: datetime = field(default_factory=utcnow)


EventListener = Callable[[AgentEvent], None]


class _Subscription:
    """A registered listener, optionally filtered to one event type.

    Bound methods are held through a WeakMethod so subscribing does not keep
    the listener's owner alive. Plain functions and closures are held
    directly, since the channel is frequently their only reference.
    """

    def __init__(self, listener: EventListener, event_type: Optional[AgentEventType]):
        self.event_type = event_type
        if inspect.ismethod(listener):
            self._ref = weakref.WeakMethod(listener)
        else:
            self._ref = lambda: listener

    def resolve(self) -> Optional[EventListener]:
        return self._ref()

    def matches(self, event_type: AgentEventType) -> bool:
        return self.event_type is None or self.event_type == event_type


class EventChannel:
    """
    Process-local publish/subscribe channel for lifecycle events.

    A listener registered more than once for overlapping event types still
    receives each emitted event at most once.
    """

    def __init__(self, owner: Optional[str] = None):
        """
        Initialize the channel.

        Args:
            owner: Name of the agent or workflow publishing on this channel,
                used in log messages
        """
        self.owner = owner
        self._subscriptions: List[_Subscription] = []

    def subscribe(
        self,
        listener: EventListener,
        event_type: Optional[AgentEventType] = None,
    ) -> None:
        """
        Register a listener.

        Args:
            listener: Callable receiving each AgentEvent
            event_type: Only deliver events of this type (default: all events)
        """
        if event_type is not None:
            event_type = AgentEventType(event_type)

        for subscription in self._subscriptions:
            if subscription.event_type == event_type and subscription.resolve() == listener:
                return

        self._subscriptions.append(_Subscription(listener, event_type))

    def unsubscribe(
        self,
        listener: EventListener,
        event_type: Optional[AgentEventType] = None,
    ) -> None:
        """
        Remove a listener.

        Args:
            listener: Previously registered callable
            event_type: Only remove the subscription for this type
                (default: every subscription of the listener)
        """
        if event_type is not None:
            event_type = AgentEventType(event_type)

        self._subscriptions = [
            subscription
            for subscription in self._subscriptions
            if not (
                subscription.resolve() == listener
                and (event_type is None or subscription.event_type == event_type)
            )
        ]

    def emit(self, event: AgentEvent) -> None:
        """
        Deliver an event to every matching listener, in registration order.

        Listener exceptions are logged and swallowed.

        Args:
            event: Event to publish
        """
        delivered: List[EventListener] = []
        dead = False

        for subscription in list(self._subscriptions):
            listener = subscription.resolve()
            if listener is None:
                dead = True
                continue
            if not subscription.matches(event.type):
                continue
            if any(listener == seen for seen in delivered):
                continue
            delivered.append(listener)

            try:
                result = listener(event)
                if asyncio.iscoroutine(result):
                    result.close()
                    logger.warning(
                        f"Listener {listener!r} on '{self.owner}' returned a coroutine; "
                        f"event listeners must be synchronous"
                    )
            except Exception as e:
                logger.error(
                    f"Event listener failed for '{event.type.value}' on '{self.owner}': {e}",
                    exc_info=True,
                )

        if dead:
            self._subscriptions = [
                subscription
                for subscription in self._subscriptions
                if subscription.resolve() is not None
            ]

    def clear(self) -> None:
        """Remove every listener."""
        self._subscriptions.clear()

    @property
    def listener_count(self) -> int:
        """Number of live subscriptions."""
        return sum(1 for s in self._subscriptions if s.resolve() is not None)
