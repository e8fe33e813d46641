from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.crypto import get_random_string

TRACKING_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
TRACKING_CODE_LENGTH = 6


def generate_tracking_code(max_attempts: int = 10) -> str:
    """Return a short, URL-safe tracking code not used by any complaint."""
    prefix = settings.GRIEVANCE_TRACKING_PREFIX
    year = timezone.now().year
    for _ in range(max_attempts):
        code = f"{prefix}-{year}-{get_random_string(TRACKING_CODE_LENGTH, TRACKING_CODE_ALPHABET)}"
        if not Complaint.objects.filter(tracking_code=code).exists():
            return code
    raise RuntimeError("Could not generate a unique tracking code.")


class Department(models.Model):
    name = models.CharField(max_length=100, unique=True)
    slug = models.SlugField(max_length=100, unique=True)
    email = models.EmailField(blank=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class UserProfile(models.Model):
    class Role(models.TextChoices):
        CITIZEN = "citizen", "Citizen"
        DEPARTMENT = "department", "Department Staff"
        DEPARTMENT_ADMIN = "department_admin", "Department Admin"
        ADMIN = "admin", "Administrator"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
    )
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.CITIZEN)
    department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        related_name="members",
        null=True,
        blank=True,
    )
    phone = models.CharField(max_length=20, blank=True)

    def __str__(self):
        return f"{self.user.username} ({self.get_role_display()})"

    def clean(self):
        department_roles = {self.Role.DEPARTMENT, self.Role.DEPARTMENT_ADMIN}
        if self.role in department_roles and not self.department_id:
            raise ValidationError({"department": "Department staff must belong to a department."})


class ComplaintQuerySet(models.QuerySet):
    def visible_to(self, actor):
        if actor.is_admin:
            return self
        if actor.is_department_member:
            return self.filter(Q(department_id=actor.department_id) | Q(assigned_to_id=actor.id))
        if actor.id is None:
            return self.none()
        return self.filter(user_id=actor.id)


class Complaint(models.Model):
    class Category(models.TextChoices):
        EDUCATION = "education", "Education"
        HEALTHCARE = "healthcare", "Healthcare"
        TRANSPORT = "transport", "Transport"
        POLICE = "police", "Police"
        UTILITIES = "utilities", "Utilities"
        REVENUE = "revenue", "Revenue"
        AGRICULTURE = "agriculture", "Agriculture"
        ENVIRONMENT = "environment", "Environment"
        OTHER = "other", "Other"

    class Status(models.TextChoices):
        NEW = "new", "New"
        TRIAGED = "triaged", "Triaged"
        IN_PROGRESS = "in_progress", "In Progress"
        ESCALATED = "escalated", "Escalated"
        RESOLVED = "resolved", "Resolved"
        CLOSED = "closed", "Closed"

    class Priority(models.TextChoices):
        LOW = "low", "Low"
        MEDIUM = "medium", "Medium"
        HIGH = "high", "High"
        CRITICAL = "critical", "Critical"

    class Sentiment(models.TextChoices):
        POSITIVE = "positive", "Positive"
        NEGATIVE = "negative", "Negative"
        NEUTRAL = "neutral", "Neutral"

    PRIORITY_ORDER = [Priority.LOW, Priority.MEDIUM, Priority.HIGH, Priority.CRITICAL]

    tracking_code = models.CharField(max_length=24, unique=True, editable=False)
    title = models.CharField(max_length=255)
    description = models.TextField()
    category = models.CharField(max_length=50, choices=Category.choices, default=Category.OTHER)
    department = models.ForeignKey(
        Department,
        on_delete=models.PROTECT,
        related_name="complaints",
        null=True,
        blank=True,
    )
    priority = models.CharField(
        max_length=20,
        choices=Priority.choices,
        default=Priority.MEDIUM,
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.NEW,
    )
    location = models.CharField(max_length=255, blank=True)
    contact_phone = models.CharField(max_length=20, blank=True)
    contact_email = models.EmailField(blank=True)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="complaints",
        null=True,
        blank=True,
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="assigned_complaints",
        null=True,
        blank=True,
    )
    resolution_note = models.TextField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    escalation_count = models.PositiveIntegerField(default=0)
    escalated_at = models.DateTimeField(null=True, blank=True)
    escalation_reason = models.TextField(blank=True)

    sentiment = models.CharField(max_length=10, choices=Sentiment.choices, default=Sentiment.NEUTRAL)
    urgency_score = models.PositiveSmallIntegerField(default=1)
    complexity_score = models.PositiveSmallIntegerField(default=1)
    keywords = models.JSONField(default=list, blank=True)
    tags = models.JSONField(default=list, blank=True)

    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ComplaintQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.tracking_code or f"Complaint #{self.pk}"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_tracking_code = instance.__dict__.get("tracking_code")
        return instance

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    @property
    def recipient_email(self) -> str:
        if self.contact_email:
            return self.contact_email
        if self.user_id and self.user.email:
            return self.user.email
        return ""

    def can_be_modified_by(self, actor) -> bool:
        return actor.id is not None and self.user_id == actor.id and self.status == self.Status.NEW

    def can_be_viewed_by(self, actor) -> bool:
        if actor.is_admin:
            return True
        if actor.is_department_member and (
            self.department_id == actor.department_id or self.assigned_to_id == actor.id
        ):
            return True
        return actor.id is not None and self.user_id == actor.id

    def clean(self):
        if self.user_id is None and not self.contact_email:
            raise ValidationError({"contact_email": "Anonymous complaints require a contact email."})

    def save(self, *args, **kwargs):
        loaded = getattr(self, "_loaded_tracking_code", None)
        if loaded and loaded != self.tracking_code:
            raise ValueError("The tracking code of a complaint cannot be changed.")
        if self._state.adding and not self.tracking_code:
            self.tracking_code = generate_tracking_code()
        super().save(*args, **kwargs)
        self._loaded_tracking_code = self.tracking_code

    def delete(self, *args, **kwargs):
        raise ValueError("Complaints are closed, never deleted.")


class ComplaintEvent(models.Model):
    class Kind(models.TextChoices):
        STATUS_CHANGE = "status_change", "Status change"
        ASSIGNMENT = "assignment", "Assignment"

    complaint = models.ForeignKey(
        Complaint,
        on_delete=models.PROTECT,
        related_name="events",
    )
    kind = models.CharField(max_length=20, choices=Kind.choices)
    status = models.CharField(max_length=20, choices=Complaint.Status.choices)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="complaint_events",
        null=True,
        blank=True,
    )
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="assignment_events",
        null=True,
        blank=True,
    )
    note = models.TextField(blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.complaint.tracking_code} {self.kind} -> {self.status}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Audit events are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Audit events are append-only.")


class ComplaintComment(models.Model):
    complaint = models.ForeignKey(
        Complaint,
        on_delete=models.CASCADE,
        related_name="comments",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="complaint_comments",
    )
    comment = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.author.username} - {self.complaint.tracking_code}"
