import re

from django import forms
from django.contrib.auth import get_user_model
from django.contrib.auth.forms import UserCreationForm
from django.core.exceptions import ValidationError

from .models import Complaint, ComplaintComment, Department, UserProfile

User = get_user_model()

STATUS_ALIASES = {
    "pending": Complaint.Status.NEW,
    "received": Complaint.Status.NEW,
    "open": Complaint.Status.NEW,
    "submitted": Complaint.Status.NEW,
    "under_review": Complaint.Status.TRIAGED,
    "reviewed": Complaint.Status.TRIAGED,
    "inprogress": Complaint.Status.IN_PROGRESS,
    "in_process": Complaint.Status.IN_PROGRESS,
    "completed": Complaint.Status.RESOLVED,
    "done": Complaint.Status.RESOLVED,
}

PRIORITY_ALIASES = {
    "urgent": Complaint.Priority.CRITICAL,
    "normal": Complaint.Priority.MEDIUM,
}


def _key(value):
    return re.sub(r"[\s\-]+", "_", str(value).strip().lower())


def normalize_status(value):
    """Map an external status spelling ("Pending", "In Progress", ...) to a Status value."""
    key = _key(value)
    if key in Complaint.Status.values:
        return key
    alias = STATUS_ALIASES.get(key)
    return alias.value if alias else None


def normalize_priority(value):
    key = _key(value)
    if key in Complaint.Priority.values:
        return key
    alias = PRIORITY_ALIASES.get(key)
    return alias.value if alias else None


class SignUpForm(UserCreationForm):
    email = forms.EmailField(required=True)

    class Meta:
        model = User
        fields = ("username", "email", "password1", "password2")

    def clean_email(self):
        email = self.cleaned_data["email"].lower()
        if User.objects.filter(email__iexact=email).exists():
            raise ValidationError("An account with this email already exists.")
        return email

    def save(self, commit=True):
        user = super().save(commit=commit)
        if commit:
            UserProfile.objects.create(user=user, role=UserProfile.Role.CITIZEN)
        return user


class ComplaintForm(forms.Form):
    title = forms.CharField(max_length=255)
    description = forms.CharField()
    category = forms.ChoiceField(choices=Complaint.Category.choices, required=False)
    priority = forms.CharField(required=False)
    department = forms.ModelChoiceField(queryset=Department.objects.all(), required=False)
    location = forms.CharField(max_length=255, required=False)
    contact_phone = forms.CharField(max_length=20, required=False)
    contact_email = forms.EmailField(required=False)

    def __init__(self, *args, **kwargs):
        self.anonymous = kwargs.pop("anonymous", False)
        super().__init__(*args, **kwargs)

    def clean_priority(self):
        value = self.cleaned_data.get("priority", "")
        if not value:
            return ""
        priority = normalize_priority(value)
        if priority is None:
            raise ValidationError("Unknown priority.")
        return priority

    def clean(self):
        cleaned_data = super().clean()
        if self.anonymous and not cleaned_data.get("contact_email"):
            self.add_error("contact_email", "Anonymous complaints require a contact email.")
        return cleaned_data


class ComplaintUpdateForm(forms.Form):
    title = forms.CharField(max_length=255, required=False)
    description = forms.CharField(required=False)
    location = forms.CharField(max_length=255, required=False)
    contact_phone = forms.CharField(max_length=20, required=False)
    contact_email = forms.EmailField(required=False)
    department = forms.ModelChoiceField(queryset=Department.objects.all(), required=False)
    category = forms.ChoiceField(choices=Complaint.Category.choices, required=False)
    priority = forms.CharField(required=False)

    def clean_priority(self):
        value = self.cleaned_data.get("priority", "")
        if "priority" not in self.data:
            return value
        priority = normalize_priority(value)
        if priority is None:
            raise ValidationError("Unknown priority.")
        return priority

    def clean_category(self):
        value = self.cleaned_data.get("category", "")
        if "category" in self.data and not value:
            raise ValidationError("Category cannot be blank.")
        return value

    def changes(self):
        return {name: value for name, value in self.cleaned_data.items() if name in self.data}


class TransitionForm(forms.Form):
    status = forms.CharField()
    note = forms.CharField(required=False)

    def clean_status(self):
        status = normalize_status(self.cleaned_data["status"])
        if status is None:
            raise ValidationError("Unknown status.")
        return status


class AssignmentForm(forms.Form):
    assigned_to = forms.ModelChoiceField(queryset=User.objects.filter(is_active=True))


class CommentForm(forms.ModelForm):
    class Meta:
        model = ComplaintComment
        fields = ["comment"]

    def clean_comment(self):
        comment = self.cleaned_data.get("comment", "").strip()
        if len(comment) < 3:
            raise ValidationError("Comment must be at least 3 characters.")
        return comment


class AnalyzeForm(forms.Form):
    title = forms.CharField(required=False)
    description = forms.CharField(required=False)

    def clean(self):
        cleaned_data = super().clean()
        if not cleaned_data.get("title") and not cleaned_data.get("description"):
            raise ValidationError("Provide a title or a description to analyze.")
        return cleaned_data
