"""
Membership State Machine

Immutable lifecycle state plus a pure transition function driven by events.
Subscribers are plain callbacks notified with every new state.

Every result carries a ticket and is applied only when its ticket is newer
than the last committed one. Loads draw theirs when they start; mutation
results draw theirs when they arrive, so a load that overlapped a mutation
never overwrites it. Mutation failures are applied regardless.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, List, Optional, Union

from .models import LifecyclePhase, Membership, MembershipStats
from .protocols import MembershipError

logger = logging.getLogger(__name__)


# ====================
# State
# ====================


@dataclass(frozen=True)
class MembershipState:
    """Snapshot of the controller's view of one customer's membership"""
    customer_id: Optional[str] = None
    membership: Optional[Membership] = None
    stats: Optional[MembershipStats] = None
    error: Optional[MembershipError] = None
    initialized: bool = False
    pending: int = 0
    last_updated_at: Optional[datetime] = None
    committed_ticket: int = 0

    @property
    def phase(self) -> LifecyclePhase:
        if self.pending > 0:
            return LifecyclePhase.LOADING
        if self.error is not None:
            return LifecyclePhase.ERROR
        if self.initialized:
            return LifecyclePhase.READY
        return LifecyclePhase.UNINITIALIZED

    @property
    def is_loading(self) -> bool:
        return self.pending > 0

    @property
    def is_member(self) -> bool:
        return self.membership is not None


# ====================
# Events
# ====================


@dataclass(frozen=True)
class OperationStarted:
    ticket: int


@dataclass(frozen=True)
class LoadSucceeded:
    ticket: int
    customer_id: str
    membership: Optional[Membership]
    stats: Optional[MembershipStats]
    loaded_at: datetime


@dataclass(frozen=True)
class LoadFailed:
    ticket: int
    customer_id: str
    error: MembershipError


@dataclass(frozen=True)
class LoadRejected:
    """Load refused before any work started (no loading phase)"""
    ticket: int
    error: MembershipError


@dataclass(frozen=True)
class MembershipUpdated:
    ticket: int
    membership: Membership
    updated_at: datetime


@dataclass(frozen=True)
class OperationFailed:
    ticket: int
    error: MembershipError


@dataclass(frozen=True)
class OperationAbandoned:
    """Operation ended without a result (task cancelled)"""
    ticket: int


@dataclass(frozen=True)
class ErrorCleared:
    pass


MembershipEvent = Union[
    OperationStarted,
    LoadSucceeded,
    LoadFailed,
    LoadRejected,
    MembershipUpdated,
    OperationFailed,
    OperationAbandoned,
    ErrorCleared,
]


def _finish(state: MembershipState) -> MembershipState:
    return replace(state, pending=max(0, state.pending - 1))


def transition(state: MembershipState, event: MembershipEvent) -> MembershipState:
    """Pure transition: state + event -> new state"""
    if isinstance(event, OperationStarted):
        return replace(state, pending=state.pending + 1)

    if isinstance(event, LoadSucceeded):
        state = _finish(state)
        if event.ticket <= state.committed_ticket:
            logger.debug(f"Discarding stale load result (ticket {event.ticket})")
            return state
        return replace(
            state,
            customer_id=event.customer_id,
            membership=event.membership,
            stats=event.stats,
            error=None,
            initialized=True,
            last_updated_at=event.loaded_at,
            committed_ticket=event.ticket,
        )

    if isinstance(event, LoadFailed):
        state = _finish(state)
        if event.ticket <= state.committed_ticket:
            logger.debug(f"Discarding stale load failure (ticket {event.ticket})")
            return state
        return replace(
            state,
            customer_id=event.customer_id,
            error=event.error,
            committed_ticket=event.ticket,
        )

    if isinstance(event, LoadRejected):
        return replace(
            state,
            error=event.error,
            committed_ticket=max(state.committed_ticket, event.ticket),
        )

    if isinstance(event, MembershipUpdated):
        state = _finish(state)
        if event.ticket <= state.committed_ticket:
            logger.debug(f"Discarding stale membership update (ticket {event.ticket})")
            return state
        return replace(
            state,
            customer_id=event.membership.customer_id,
            membership=event.membership,
            error=None,
            initialized=True,
            last_updated_at=event.updated_at,
            committed_ticket=event.ticket,
        )

    if isinstance(event, OperationFailed):
        state = _finish(state)
        return replace(
            state,
            error=event.error,
            committed_ticket=max(state.committed_ticket, event.ticket),
        )

    if isinstance(event, OperationAbandoned):
        return _finish(state)

    if isinstance(event, ErrorCleared):
        return replace(state, error=None)

    raise TypeError(f"Unknown membership event: {event!r}")


# ====================
# State Machine
# ====================


StateListener = Callable[[MembershipState], None]


class MembershipStateMachine:
    """Holds the current state and notifies subscribers on every change"""

    def __init__(self, initial: Optional[MembershipState] = None):
        self._state = initial or MembershipState()
        self._listeners: List[StateListener] = []
        self._ticket = 0

    @property
    def state(self) -> MembershipState:
        return self._state

    def next_ticket(self) -> int:
        self._ticket += 1
        return self._ticket

    def update(self, event: MembershipEvent) -> MembershipState:
        """Apply an event and notify subscribers"""
        self._state = transition(self._state, event)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.warning(f"State listener failed: {e}")
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


__all__ = [
    "MembershipState",
    "MembershipStateMachine",
    "MembershipEvent",
    "OperationStarted",
    "LoadSucceeded",
    "LoadFailed",
    "LoadRejected",
    "MembershipUpdated",
    "OperationFailed",
    "OperationAbandoned",
    "ErrorCleared",
    "transition",
]
