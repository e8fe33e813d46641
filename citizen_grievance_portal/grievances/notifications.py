import logging
from dataclasses import dataclass

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)

SUBMISSION = "submission"
RESOLUTION = "resolution"
ESCALATION = "escalation"


@dataclass(frozen=True)
class Notification:
    kind: str
    complaint: object
    recipient: str


def build_notification(kind, complaint):
    if kind == ESCALATION:
        department = complaint.department
        recipient = (department.email if department else "") or settings.GRIEVANCE_ESCALATION_EMAIL
    else:
        recipient = complaint.recipient_email
    return Notification(kind=kind, complaint=complaint, recipient=recipient)


def _render(notification):
    complaint = notification.complaint
    code = complaint.tracking_code
    if notification.kind == SUBMISSION:
        return (
            f"Complaint Submitted: {code}",
            "Your complaint has been submitted successfully.\n"
            f"Tracking code: {code}\n"
            f"Status: {complaint.get_status_display()}\n\n"
            "We will notify you when there is an update.",
        )
    if notification.kind == RESOLUTION:
        note = complaint.resolution_note or "No resolution note was provided."
        return (
            f"Complaint Resolved: {code}",
            f"Your complaint {code} has been marked as resolved.\n\n"
            f"Resolution: {note}\n\n"
            "Thank you.",
        )
    if notification.kind == ESCALATION:
        reason = complaint.escalation_reason or "No reason given."
        return (
            f"Complaint Escalated: {code}",
            f"Complaint {code} ({complaint.title}) has been escalated "
            f"{complaint.escalation_count} time(s).\n\n"
            f"Priority: {complaint.get_priority_display()}\n"
            f"Reason: {reason}",
        )
    raise ValueError(f"Unknown notification kind: {notification.kind}")


def dispatch(notification) -> bool:
    """Send a notification, logging failures instead of raising them."""
    if not notification.recipient:
        logger.info(
            "No recipient for %s notification on %s",
            notification.kind,
            notification.complaint.tracking_code,
        )
        return False
    subject, message = _render(notification)
    try:
        send_mail(
            subject=subject,
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[notification.recipient],
        )
    except Exception:
        logger.warning(
            "Failed to send %s notification for %s",
            notification.kind,
            notification.complaint.tracking_code,
            exc_info=True,
        )
        return False
    return True
