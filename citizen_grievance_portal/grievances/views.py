import json
import logging
from datetime import datetime

from django.conf import settings
from django.contrib.auth import authenticate, login, logout
from django.contrib.auth.mixins import LoginRequiredMixin, UserPassesTestMixin
from django.core.exceptions import BadRequest, PermissionDenied, ValidationError
from django.core.paginator import Paginator
from django.db.models import Count, Q
from django.http import JsonResponse, QueryDict
from django.middleware.csrf import get_token
from django.shortcuts import get_object_or_404
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import ensure_csrf_cookie

from . import services
from .actors import Actor
from .classification import category_suggestions, classify
from .exceptions import WorkflowError
from .forms import (
    AnalyzeForm,
    AssignmentForm,
    CommentForm,
    ComplaintForm,
    ComplaintUpdateForm,
    SignUpForm,
    TransitionForm,
    normalize_priority,
    normalize_status,
)
from .models import Complaint, Department, UserProfile
from .serializers import (
    classification_to_dict,
    complaint_to_dict,
    department_to_dict,
    member_to_dict,
    normalize_payload,
    tracking_to_dict,
)
from .workflow import allowed_targets

logger = logging.getLogger(__name__)


def read_payload(request):
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except json.JSONDecodeError as exc:
            raise BadRequest("Request body is not valid JSON.") from exc
        if not isinstance(data, dict):
            raise BadRequest("Request body must be a JSON object.")
        return normalize_payload(data)
    if request.method == "POST":
        return normalize_payload(request.POST.dict())
    # Django only parses form bodies for POST.
    if request.content_type == "application/x-www-form-urlencoded":
        return normalize_payload(QueryDict(request.body, encoding=request.encoding).dict())
    raise BadRequest("Send the request body as JSON or form-encoded data.")


def form_error_response(form, status=400):
    return JsonResponse({"error": "VALIDATION_ERROR", "errors": form.errors.get_json_data()}, status=status)


def workflow_error_response(exc):
    return JsonResponse(exc.as_dict(), status=exc.status_code)


def apply_complaint_filters(queryset, params):
    query = params.get("q", "").strip()
    category = params.get("category", "").strip()
    status = params.get("status", "").strip()
    priority = params.get("priority", "").strip()
    department = params.get("department", "").strip()
    start_date = params.get("start_date", "").strip()
    end_date = params.get("end_date", "").strip()

    if query:
        queryset = queryset.filter(
            Q(title__icontains=query)
            | Q(tracking_code__icontains=query)
            | Q(location__icontains=query)
        )
    if category:
        queryset = queryset.filter(category=category)
    if status:
        queryset = queryset.filter(status=normalize_status(status))
    if priority:
        queryset = queryset.filter(priority=normalize_priority(priority))
    if department:
        if department.isdigit():
            queryset = queryset.filter(department_id=int(department))
        else:
            queryset = queryset.filter(department__name__iexact=department)

    if start_date:
        try:
            start_dt = datetime.strptime(start_date, "%Y-%m-%d").date()
            queryset = queryset.filter(created_at__date__gte=start_dt)
        except ValueError:
            pass
    if end_date:
        try:
            end_dt = datetime.strptime(end_date, "%Y-%m-%d").date()
            queryset = queryset.filter(created_at__date__lte=end_dt)
        except ValueError:
            pass
    return queryset


class ApiLoginRequiredMixin(LoginRequiredMixin):
    raise_exception = True


class StaffRequiredMixin(ApiLoginRequiredMixin, UserPassesTestMixin):
    def test_func(self):
        actor = Actor.from_user(self.request.user)
        return actor.is_admin or actor.is_department_admin

    def handle_no_permission(self):
        raise PermissionDenied("Administrator access required.")


class ComplaintAccessMixin:
    def get_actor(self):
        return Actor.from_user(self.request.user)

    def get_complaint(self, tracking_code):
        complaint = get_object_or_404(
            services.store.queryset(),
            tracking_code=tracking_code,
        )
        if not complaint.can_be_viewed_by(self.get_actor()):
            raise PermissionDenied("You do not have permission to view this complaint.")
        return complaint


class ComplaintCollectionView(ComplaintAccessMixin, View):
    def get(self, request):
        if not request.user.is_authenticated:
            raise PermissionDenied("Log in to list complaints.")
        queryset = Complaint.objects.visible_to(self.get_actor()).select_related("department")
        queryset = apply_complaint_filters(queryset, request.GET).order_by("-created_at")
        page = Paginator(queryset, settings.GRIEVANCE_PAGE_SIZE).get_page(request.GET.get("page"))
        return JsonResponse(
            {
                "results": [complaint_to_dict(complaint) for complaint in page.object_list],
                "page": page.number,
                "num_pages": page.paginator.num_pages,
                "count": page.paginator.count,
            }
        )

    def post(self, request):
        user = request.user if request.user.is_authenticated else None
        form = ComplaintForm(read_payload(request), anonymous=user is None)
        if not form.is_valid():
            return form_error_response(form)
        try:
            complaint = services.submit_complaint(user=user, **form.cleaned_data)
        except ValidationError as exc:
            return JsonResponse({"error": "VALIDATION_ERROR", "errors": exc.message_dict}, status=400)
        return JsonResponse(complaint_to_dict(complaint), status=201)


class ComplaintDetailView(ComplaintAccessMixin, View):
    def get(self, request, tracking_code):
        complaint = self.get_complaint(tracking_code)
        data = complaint_to_dict(complaint, include_events=True)
        data["allowed_transitions"] = allowed_targets(complaint.status, self.get_actor())
        return JsonResponse(data)

    def patch(self, request, tracking_code):
        complaint = self.get_complaint(tracking_code)
        form = ComplaintUpdateForm(read_payload(request))
        if not form.is_valid():
            return form_error_response(form)
        actor = self.get_actor()
        try:
            if actor.is_staff:
                services.reclassify_complaint(complaint, actor, form.changes())
            else:
                services.update_complaint_details(complaint, actor, form.changes())
        except WorkflowError as exc:
            return workflow_error_response(exc)
        except ValidationError as exc:
            return JsonResponse({"error": "VALIDATION_ERROR", "errors": exc.message_dict}, status=400)
        return JsonResponse(complaint_to_dict(complaint))


class ComplaintTransitionView(ApiLoginRequiredMixin, ComplaintAccessMixin, View):
    def post(self, request, tracking_code):
        complaint = self.get_complaint(tracking_code)
        form = TransitionForm(read_payload(request))
        if not form.is_valid():
            return form_error_response(form)
        try:
            services.transition_complaint(
                complaint,
                form.cleaned_data["status"],
                self.get_actor(),
                note=form.cleaned_data["note"],
            )
        except WorkflowError as exc:
            return workflow_error_response(exc)
        return JsonResponse(complaint_to_dict(complaint, include_events=True))


class ComplaintAssignView(ApiLoginRequiredMixin, ComplaintAccessMixin, View):
    def post(self, request, tracking_code):
        complaint = self.get_complaint(tracking_code)
        form = AssignmentForm(read_payload(request))
        if not form.is_valid():
            return form_error_response(form)
        try:
            services.assign_complaint(complaint, form.cleaned_data["assigned_to"], self.get_actor())
        except WorkflowError as exc:
            return workflow_error_response(exc)
        return JsonResponse(complaint_to_dict(complaint, include_events=True))


class ComplaintCommentsView(ApiLoginRequiredMixin, ComplaintAccessMixin, View):
    def get(self, request, tracking_code):
        complaint = self.get_complaint(tracking_code)
        if not self.get_actor().is_staff:
            raise PermissionDenied("Comments are visible to staff only.")
        comments = complaint.comments.select_related("author")
        return JsonResponse(
            {
                "results": [
                    {
                        "author": comment.author.username,
                        "comment": comment.comment,
                        "created_at": comment.created_at.isoformat(),
                    }
                    for comment in comments
                ]
            }
        )

    def post(self, request, tracking_code):
        complaint = self.get_complaint(tracking_code)
        form = CommentForm(read_payload(request))
        if not form.is_valid():
            return form_error_response(form)
        try:
            comment = services.add_comment(
                complaint,
                request.user,
                self.get_actor(),
                form.cleaned_data["comment"],
            )
        except WorkflowError as exc:
            return workflow_error_response(exc)
        return JsonResponse({"id": comment.pk, "comment": comment.comment}, status=201)


class TrackComplaintView(View):
    def get(self, request, tracking_code):
        complaint = get_object_or_404(
            Complaint.objects.select_related("department"),
            tracking_code=tracking_code.strip(),
        )
        return JsonResponse(tracking_to_dict(complaint))


class AnalyzeView(View):
    def post(self, request):
        form = AnalyzeForm(read_payload(request))
        if not form.is_valid():
            return form_error_response(form)
        title = form.cleaned_data["title"]
        description = form.cleaned_data["description"]
        data = classification_to_dict(classify(title, description))
        data["category_suggestions"] = category_suggestions(title)
        return JsonResponse(data)


class AnalyticsView(StaffRequiredMixin, View):
    def get(self, request):
        queryset = Complaint.objects.visible_to(Actor.from_user(request.user))

        def counts(field):
            rows = queryset.order_by().values(field).annotate(total=Count("id"))
            return {row[field] or "unassigned": row["total"] for row in rows}

        resolution_hours = [
            (resolved_at - created_at).total_seconds() / 3600
            for created_at, resolved_at in queryset.filter(resolved_at__isnull=False).values_list(
                "created_at", "resolved_at"
            )
        ]
        average = round(sum(resolution_hours) / len(resolution_hours), 2) if resolution_hours else None
        return JsonResponse(
            {
                "total": queryset.count(),
                "by_status": counts("status"),
                "by_priority": counts("priority"),
                "by_department": counts("department__name"),
                "escalated": queryset.filter(escalation_count__gt=0).count(),
                "average_resolution_hours": average,
            }
        )


class DepartmentListView(View):
    def get(self, request):
        return JsonResponse({"results": [department_to_dict(department) for department in Department.objects.all()]})


class DepartmentDetailView(View):
    def get(self, request, pk):
        department = get_object_or_404(Department, pk=pk)
        data = department_to_dict(department)
        open_complaints = department.complaints.exclude(
            status__in=[Complaint.Status.RESOLVED, Complaint.Status.CLOSED]
        )
        data["open_complaints"] = open_complaints.count()
        return JsonResponse(data)


class DepartmentMembersView(StaffRequiredMixin, View):
    """Assignable staff of one department."""

    def get(self, request, pk):
        department = get_object_or_404(Department, pk=pk)
        actor = Actor.from_user(request.user)
        if not actor.is_admin and actor.department_id != department.pk:
            raise PermissionDenied("You can only list members of your own department.")
        members = (
            department.members.select_related("user")
            .filter(
                user__is_active=True,
                role__in=[UserProfile.Role.DEPARTMENT, UserProfile.Role.DEPARTMENT_ADMIN],
            )
            .order_by("user__username")
        )
        return JsonResponse({"results": [member_to_dict(profile) for profile in members]})


@method_decorator(ensure_csrf_cookie, name="dispatch")
class CsrfTokenView(View):
    def get(self, request):
        return JsonResponse({"csrfToken": get_token(request)})


class RegisterView(View):
    def post(self, request):
        form = SignUpForm(read_payload(request))
        if not form.is_valid():
            return form_error_response(form)
        user = form.save()
        logger.info("Registered citizen account %s", user.username)
        return JsonResponse({"id": user.pk, "username": user.username}, status=201)


class LoginView(View):
    def post(self, request):
        payload = read_payload(request)
        user = authenticate(
            request,
            username=payload.get("username", ""),
            password=payload.get("password", ""),
        )
        if user is None:
            return JsonResponse(
                {"error": "INVALID_CREDENTIALS", "message": "Invalid username or password."},
                status=401,
            )
        login(request, user)
        return JsonResponse(_me(user))


class LogoutView(View):
    def post(self, request):
        logout(request)
        return JsonResponse({"ok": True})


class MeView(ApiLoginRequiredMixin, View):
    def get(self, request):
        return JsonResponse(_me(request.user))


def _me(user):
    actor = Actor.from_user(user)
    return {
        "id": user.pk,
        "username": user.username,
        "email": user.email,
        "role": actor.role,
        "department_id": actor.department_id,
    }
