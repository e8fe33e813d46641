import logging

from django.db import transaction

from . import notifications, workflow
from .actors import Actor
from .classification import classify, extract_key_info
from .exceptions import ConcurrentModification, Forbidden, WorkflowError
from .models import Complaint, ComplaintComment, Department
from .store import MUTABLE_FIELDS, ComplaintStore

logger = logging.getLogger(__name__)

store = ComplaintStore()

CITIZEN_EDITABLE_FIELDS = ("title", "description", "location", "contact_phone", "contact_email")
STAFF_EDITABLE_FIELDS = ("department", "category", "priority")


def _resolve_department(name):
    return Department.objects.filter(name__iexact=name).first()


def submit_complaint(
    *,
    title,
    description,
    user=None,
    category="",
    priority="",
    department=None,
    location="",
    contact_phone="",
    contact_email="",
):
    """Create a complaint in ``new``, filling missing fields from the text heuristic."""
    analysis = classify(title, description)
    if department is None:
        department = _resolve_department(analysis.suggested_department)
    if not location:
        location = extract_key_info(description).location[:255]

    complaint = Complaint(
        title=title,
        description=description,
        user=user,
        category=category or analysis.category,
        priority=priority or analysis.priority,
        department=department,
        location=location,
        contact_phone=contact_phone,
        contact_email=contact_email,
        status=Complaint.Status.NEW,
        sentiment=analysis.sentiment,
        urgency_score=analysis.urgency,
        complexity_score=analysis.complexity,
        keywords=list(analysis.keywords),
        tags=list(analysis.tags),
    )
    complaint.full_clean(exclude=["tracking_code"])
    complaint.save()
    logger.info(
        "Complaint %s submitted (department=%s, priority=%s)",
        complaint.tracking_code,
        department,
        complaint.priority,
    )
    _notify_on_commit(complaint, (notifications.SUBMISSION,))
    return complaint


def _persist(complaint, result, expected_version, expected_status, fields=None):
    try:
        with transaction.atomic():
            store.save(complaint, expected_version, expected_status=expected_status, fields=fields or MUTABLE_FIELDS)
            if result is not None:
                store.append_event(complaint, result.entry)
    except ConcurrentModification:
        complaint.refresh_from_db()
        raise


def _dispatch_all(complaint, notices):
    delivered = True
    for notice in notices:
        delivered = notifications.dispatch(notice) and delivered
    if not delivered:
        logger.warning("Complaint %s saved but a notification could not be delivered", complaint.tracking_code)
    return delivered


def _notify_on_commit(complaint, kinds):
    """Queue notices so they go out only once the surrounding transaction commits."""
    notices = [notifications.build_notification(kind, complaint) for kind in kinds]
    if notices:
        transaction.on_commit(lambda: _dispatch_all(complaint, notices))


def transition_complaint(complaint, target_status, actor: Actor, note=None):
    expected_version, expected_status = complaint.version, complaint.status
    try:
        result = workflow.apply_transition(complaint, target_status, actor, note=note)
    except WorkflowError as exc:
        logger.info("Transition of %s rejected: %s", complaint.tracking_code, exc.message)
        raise

    _persist(complaint, result, expected_version, expected_status)
    logger.info(
        "Complaint %s moved %s -> %s by user %s",
        complaint.tracking_code,
        expected_status,
        complaint.status,
        actor.id,
    )
    _notify_on_commit(complaint, result.notifications)
    return complaint


def assign_complaint(complaint, staff_user, actor: Actor):
    expected_version, expected_status = complaint.version, complaint.status
    try:
        result = workflow.assign(complaint, Actor.from_user(staff_user), actor)
    except WorkflowError as exc:
        logger.info("Assignment of %s rejected: %s", complaint.tracking_code, exc.message)
        raise

    _persist(complaint, result, expected_version, expected_status)
    logger.info(
        "Complaint %s assigned to user %s by user %s",
        complaint.tracking_code,
        staff_user.pk,
        actor.id,
    )
    return complaint


def update_complaint_details(complaint, actor: Actor, changes):
    """Let the owner edit their complaint while it is still ``new``."""
    if not complaint.can_be_modified_by(actor):
        raise Forbidden("Only the owner can edit a complaint, and only while it is new.")
    expected_version = complaint.version
    for name, value in changes.items():
        if name in CITIZEN_EDITABLE_FIELDS:
            setattr(complaint, name, value)
    complaint.full_clean(exclude=["tracking_code"])
    _persist(complaint, None, expected_version, Complaint.Status.NEW, fields=CITIZEN_EDITABLE_FIELDS)
    return complaint


def reclassify_complaint(complaint, actor: Actor, changes):
    """Let staff set the department, category or priority of an open complaint.

    Moving a complaint to another department drops its assignee, who belongs
    to the old department.
    """
    if complaint.status == Complaint.Status.CLOSED:
        raise Forbidden("Closed complaints cannot be reclassified.")
    if not (actor.is_admin or (actor.is_department_member and complaint.department_id == actor.department_id)):
        raise Forbidden("You do not have permission to reclassify this complaint.")

    expected_version, expected_status = complaint.version, complaint.status
    previous_department_id = complaint.department_id
    for name, value in changes.items():
        if name in STAFF_EDITABLE_FIELDS:
            setattr(complaint, name, value)
    if complaint.department_id != previous_department_id:
        complaint.assigned_to = None
    complaint.full_clean(exclude=["tracking_code"])
    _persist(
        complaint,
        None,
        expected_version,
        expected_status,
        fields=STAFF_EDITABLE_FIELDS + ("assigned_to",),
    )
    logger.info(
        "Complaint %s reclassified by user %s (department=%s, category=%s, priority=%s)",
        complaint.tracking_code,
        actor.id,
        complaint.department_id,
        complaint.category,
        complaint.priority,
    )
    return complaint


def add_comment(complaint, author, actor: Actor, text):
    if not actor.is_staff or not complaint.can_be_viewed_by(actor):
        raise Forbidden("Only staff handling this complaint can comment on it.")
    return ComplaintComment.objects.create(complaint=complaint, author=author, comment=text)
