"""
Order lifecycle state machine.

Pure functions only: no database access, no storage calls. The effects
live in ``orders.py``; everything that decides *whether* a transition is
allowed, *who* is responsible for an item and *which* revision an upload
resolves is defined here once.
"""
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import InvalidTransition


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REVISION = "revision"


class OrderEvent(str, Enum):
    PAY = "pay"
    ASSIGN_EDITOR = "assign_editor"
    UNASSIGN_EDITOR = "unassign_editor"
    START_WORK = "start_work"
    DELIVER = "deliver"
    REQUEST_REVISION = "request_revision"
    FULFILL_REVISION = "fulfill_revision"
    CANCEL = "cancel"


class RevisionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


S = OrderStatus
E = OrderEvent

_ACTIVE = [s for s in OrderStatus if s is not S.CANCELLED]
_PRE_DELIVERY = [S.PENDING, S.PROCESSING, S.ASSIGNED, S.IN_PROGRESS]

TRANSITIONS: Dict[Tuple[OrderStatus, OrderEvent], OrderStatus] = {}
TRANSITIONS[(S.PENDING, E.PAY)] = S.PROCESSING
for _s in _PRE_DELIVERY:
    TRANSITIONS[(_s, E.ASSIGN_EDITOR)] = S.IN_PROGRESS
    TRANSITIONS[(_s, E.UNASSIGN_EDITOR)] = S.PENDING
for _s in (S.PENDING, S.PROCESSING, S.ASSIGNED):
    TRANSITIONS[(_s, E.START_WORK)] = S.IN_PROGRESS
# Delivering another item while a sibling is in revision still marks the order completed
for _s in (S.PENDING, S.PROCESSING, S.ASSIGNED, S.IN_PROGRESS, S.COMPLETED, S.REVISION):
    TRANSITIONS[(_s, E.DELIVER)] = S.COMPLETED
TRANSITIONS[(S.COMPLETED, E.REQUEST_REVISION)] = S.REVISION
# A pending revision is resolved by the next upload whatever status an admin left the order in
for _s in _ACTIVE:
    TRANSITIONS[(_s, E.FULFILL_REVISION)] = S.COMPLETED
for _s in _ACTIVE:
    TRANSITIONS[(_s, E.CANCEL)] = S.CANCELLED


def _as_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidTransition(f"Unknown order status '{value}'")


def next_status(current, event) -> OrderStatus:
    """Return the status an order moves to when ``event`` happens in ``current``."""
    current = _as_status(current)
    event = OrderEvent(event)
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransition(
            f"Cannot {event.value.replace('_', ' ')} an order that is {current.value}"
        )


def can_transition(current, event) -> bool:
    try:
        next_status(current, event)
        return True
    except InvalidTransition:
        return False


def admin_set_status(current, target) -> OrderStatus:
    """Admin escape hatch: any status may be set, except out of cancelled."""
    current = _as_status(current)
    target = _as_status(target)
    if current is S.CANCELLED and target is not S.CANCELLED:
        raise InvalidTransition("Cancelled orders cannot be reopened")
    return target


def status_after_assignment(current, editor_id: Optional[str]) -> OrderStatus:
    """
    Assigning an editor forces in_progress and unassigning forces pending
    while the order is undelivered. Once delivered, the editor can be
    swapped without disturbing the completed/revision status.
    """
    current = _as_status(current)
    event = E.ASSIGN_EDITOR if editor_id else E.UNASSIGN_EDITOR
    if (current, event) in TRANSITIONS:
        return TRANSITIONS[(current, event)]
    if current in (S.COMPLETED, S.REVISION):
        return current
    raise InvalidTransition(f"Cannot change the editor of an order that is {current.value}")


def effective_editor(item_editor: Optional[str], order_editor: Optional[str]) -> Optional[str]:
    """Item-level assignment wins over the order-level one."""
    return item_editor or order_editor


def has_pending_revision(revisions: Iterable) -> bool:
    return any(_revision_status(r) == RevisionStatus.PENDING.value for r in revisions)


def can_request_revision(order_status, edited_images: Optional[List], revisions: Iterable) -> bool:
    """
    A customer may ask for a revision of an item when the order is completed,
    the item has been delivered at least once and nothing is already pending.
    """
    if order_status != OrderStatus.COMPLETED:
        return False
    if not edited_images:
        return False
    return not has_pending_revision(revisions)


def latest_pending_revision(revisions: Iterable):
    """The most recently created pending revision, or None."""
    pending = [r for r in revisions if _revision_status(r) == RevisionStatus.PENDING.value]
    if not pending:
        return None
    return max(pending, key=_revision_created_at)


def latest_completed_revision(revisions: Iterable):
    completed = [r for r in revisions if _revision_status(r) == RevisionStatus.COMPLETED.value]
    if not completed:
        return None
    return max(completed, key=lambda r: _field(r, "completed_at") or _revision_created_at(r))


def item_display_status(order_status, edited_images: Optional[List], revisions: Iterable) -> str:
    revisions = list(revisions)
    if has_pending_revision(revisions):
        return OrderStatus.REVISION.value
    if edited_images:
        return OrderStatus.COMPLETED.value
    return order_status.value if isinstance(order_status, Enum) else order_status


def _field(obj, name):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _revision_status(revision) -> str:
    status = _field(revision, "status")
    return status.value if isinstance(status, Enum) else status


def _revision_created_at(revision):
    return _field(revision, "created_at")
