import logging

from django.db.models import F
from django.utils import timezone

from .exceptions import ConcurrentModification
from .models import Complaint, ComplaintEvent

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = (
    "title",
    "description",
    "category",
    "department",
    "priority",
    "status",
    "location",
    "contact_phone",
    "contact_email",
    "assigned_to",
    "resolution_note",
    "resolved_at",
    "escalation_count",
    "escalated_at",
    "escalation_reason",
)


class ComplaintStore:
    """Loads complaints and writes them back with an optimistic version check."""

    def queryset(self):
        return Complaint.objects.select_related("user", "assigned_to", "department")

    def load(self, pk):
        return self.queryset().get(pk=pk)

    def load_by_tracking_code(self, tracking_code):
        return self.queryset().get(tracking_code=tracking_code)

    def save(self, complaint, expected_version, expected_status=None, fields=MUTABLE_FIELDS):
        values = {}
        for name in fields:
            attname = Complaint._meta.get_field(name).attname
            values[attname] = getattr(complaint, attname)
        now = timezone.now()

        lookup = {"pk": complaint.pk, "version": expected_version}
        if expected_status is not None:
            lookup["status"] = expected_status
        updated = Complaint.objects.filter(**lookup).update(
            version=F("version") + 1,
            updated_at=now,
            **values,
        )
        if not updated:
            logger.info(
                "Stale write rejected for %s (expected version %s)",
                complaint.tracking_code,
                expected_version,
            )
            raise ConcurrentModification(complaint.tracking_code, expected_version)

        complaint.version = expected_version + 1
        complaint.updated_at = now
        return complaint

    def append_event(self, complaint, entry):
        return ComplaintEvent.objects.create(
            complaint=complaint,
            kind=entry.kind,
            status=entry.status,
            actor_id=entry.actor_id,
            assignee_id=entry.assignee_id,
            note=entry.note,
            created_at=entry.timestamp,
        )
