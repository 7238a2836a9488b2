"""Shared data types and status-condition helpers used by the spoke controllers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional, Tuple

_log = logging.getLogger(__name__)

SUBMARINER_GATEWAY_LABEL = "submariner.io/gateway"
WORKER_NODE_LABEL = "node-role.kubernetes.io/worker"


class ConditionStatus(str, Enum):
    """Status value of a status condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


@dataclass
class Condition:
    """A status condition as reported on a resource."""

    type: str
    status: ConditionStatus
    reason: str = ""
    message: str = ""
    last_transition_time: Optional[datetime] = None


@dataclass
class Node:
    """A cluster node with its labels."""

    name: str
    labels: dict = field(default_factory=dict)


class NotFoundError(LookupError):
    """The requested resource does not exist."""


class ConflictError(Exception):
    """The resource was modified concurrently; the update may be retried."""


class AggregateError(Exception):
    """Several errors reported as one, one distinct message per line."""

    def __init__(self, errors: Iterable[BaseException]):
        self.errors = list(errors)
        messages = dict.fromkeys(str(error) for error in self.errors)
        super().__init__("\n".join(messages))


def aggregate_errors(errors: Iterable[Optional[BaseException]]) -> Optional[AggregateError]:
    """Combine the non-empty errors into an AggregateError, or return None if there are none."""
    present = [error for error in errors if error is not None]
    return AggregateError(present) if present else None


def find_status_condition(conditions: Iterable[Condition], cond_type: str) -> Optional[Condition]:
    """Return the condition of the given type, or None."""
    return next((c for c in conditions if c.type == cond_type), None)


def is_status_condition_true(conditions: Iterable[Condition], cond_type: str) -> bool:
    """Tell whether the condition of the given type exists and is True."""
    condition = find_status_condition(conditions, cond_type)
    return condition is not None and condition.status == ConditionStatus.TRUE


def set_status_condition(conditions: List[Condition], condition: Condition) -> bool:
    """Add or update a condition in place; return whether anything changed.

    The transition time only moves when the status changes.
    """
    now = datetime.now(timezone.utc)
    existing = find_status_condition(conditions, condition.type)
    if existing is None:
        conditions.append(
            replace(condition, last_transition_time=condition.last_transition_time or now)
        )
        return True

    changed = False
    if existing.status != condition.status:
        existing.status = condition.status
        existing.last_transition_time = condition.last_transition_time or now
        changed = True
    if existing.reason != condition.reason:
        existing.reason = condition.reason
        changed = True
    if existing.message != condition.message:
        existing.message = condition.message
        changed = True
    return changed


@dataclass
class EventRecorder:
    """Collects events emitted by controllers and logs them."""

    component: str = ""
    events: List[Tuple[str, str]] = field(default_factory=list)

    def eventf(self, reason: str, message: str, *args) -> None:
        """Record an event, formatting the message with printf-style arguments."""
        text = message % args if args else message
        self.events.append((reason, text))
        _log.info("%s: %s: %s", self.component, reason, text)