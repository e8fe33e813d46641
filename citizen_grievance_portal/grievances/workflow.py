"""Status and assignment rules for complaints.

Everything here works on an in-memory complaint and never touches the
database; persistence and notification delivery live in ``services``.
A failed call leaves the complaint untouched.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from django.utils import timezone

from .actors import Actor, Role
from .exceptions import DepartmentMismatch, Forbidden, InvalidTransition, MissingDepartment
from .models import Complaint, ComplaintEvent
from .notifications import ESCALATION, RESOLUTION

Status = Complaint.Status

ADMIN_CLOSE_NOTE = "closed by administrator"

STAFF_ROLES = (Role.DEPARTMENT, Role.DEPARTMENT_ADMIN, Role.ADMIN)
ADMIN_ROLES = (Role.ADMIN,)
NON_TERMINAL = tuple(s for s in Status.values if s != Status.CLOSED)


@dataclass(frozen=True)
class Transition:
    sources: Tuple[str, ...]
    target: str
    roles: Tuple[str, ...]
    effect: Optional[str] = None


# Order matters: the first rule matching (current, target) decides.
TRANSITIONS = (
    Transition((Status.NEW,), Status.TRIAGED, STAFF_ROLES),
    Transition((Status.NEW, Status.TRIAGED), Status.IN_PROGRESS, STAFF_ROLES),
    Transition((Status.IN_PROGRESS, Status.TRIAGED), Status.RESOLVED, STAFF_ROLES, "resolve"),
    Transition((Status.TRIAGED, Status.IN_PROGRESS), Status.ESCALATED, STAFF_ROLES, "escalate"),
    Transition((Status.RESOLVED,), Status.CLOSED, STAFF_ROLES),
    Transition((Status.ESCALATED,), Status.CLOSED, ADMIN_ROLES, "admin_close"),
    Transition(NON_TERMINAL, Status.CLOSED, ADMIN_ROLES, "admin_close"),
    Transition((Status.RESOLVED,), Status.IN_PROGRESS, STAFF_ROLES, "reopen"),
)


@dataclass(frozen=True)
class AuditEntry:
    kind: str
    status: str
    actor_id: Optional[int]
    timestamp: datetime
    note: str = ""
    assignee_id: Optional[int] = None


@dataclass
class WorkflowResult:
    complaint: Complaint
    entry: AuditEntry
    notifications: Tuple[str, ...] = field(default_factory=tuple)


def find_transition(current_status, target_status):
    for transition in TRANSITIONS:
        if current_status in transition.sources and transition.target == target_status:
            return transition
    return None


def allowed_targets(current_status, actor: Actor):
    """Statuses the actor could move a complaint in ``current_status`` to."""
    targets = []
    for target in Status.values:
        transition = find_transition(current_status, target)
        if transition is not None and actor.role in transition.roles:
            targets.append(target)
    return targets


def _check_department_scope(complaint, actor: Actor, action: str):
    if actor.is_department_member and complaint.department_id != actor.department_id:
        raise Forbidden(f"You do not have permission to {action} complaints outside your department.")


def apply_transition(complaint, target_status, actor: Actor, note=None, now=None) -> WorkflowResult:
    current_status = complaint.status
    transition = find_transition(current_status, target_status)
    if transition is None:
        raise InvalidTransition(current_status, target_status, actor.role)
    if actor.role not in transition.roles:
        raise Forbidden(
            f"You do not have permission to move this complaint to '{Status(target_status).label}'."
        )
    _check_department_scope(complaint, actor, "update")

    now = now or timezone.now()
    note = (note or "").strip()
    notifications = ()

    if transition.effect == "resolve":
        complaint.resolved_at = now
        if note:
            complaint.resolution_note = note
        notifications = (RESOLUTION,)
    elif transition.effect == "escalate":
        complaint.escalation_count += 1
        complaint.escalated_at = now
        complaint.escalation_reason = note
        notifications = (ESCALATION,)
    elif transition.effect == "reopen":
        complaint.resolved_at = None
    elif transition.effect == "admin_close":
        # resolved_at is left alone: only a resolution sets it.
        if note:
            complaint.resolution_note = note
        elif not complaint.resolution_note:
            complaint.resolution_note = ADMIN_CLOSE_NOTE

    complaint.status = target_status
    entry = AuditEntry(
        kind=ComplaintEvent.Kind.STATUS_CHANGE,
        status=target_status,
        actor_id=actor.id,
        timestamp=now,
        note=note,
    )
    return WorkflowResult(complaint=complaint, entry=entry, notifications=notifications)


def assign(complaint, staff_user: Actor, actor: Actor, now=None) -> WorkflowResult:
    if complaint.department_id is None:
        raise MissingDepartment()
    if not (actor.is_admin or actor.is_department_admin):
        raise Forbidden("You do not have permission to assign this complaint.")
    _check_department_scope(complaint, actor, "assign")
    if not staff_user.is_staff:
        raise DepartmentMismatch("Complaints can only be assigned to department staff.")
    if not actor.is_admin and staff_user.department_id != complaint.department_id:
        raise DepartmentMismatch("The selected staff member does not belong to this complaint's department.")

    complaint.assigned_to_id = staff_user.id
    entry = AuditEntry(
        kind=ComplaintEvent.Kind.ASSIGNMENT,
        status=complaint.status,
        actor_id=actor.id,
        timestamp=now or timezone.now(),
        assignee_id=staff_user.id,
    )
    return WorkflowResult(complaint=complaint, entry=entry)
