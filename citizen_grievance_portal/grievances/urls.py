from django.urls import path

from .views import (
    AnalyticsView,
    AnalyzeView,
    ComplaintAssignView,
    ComplaintCollectionView,
    ComplaintCommentsView,
    ComplaintDetailView,
    ComplaintTransitionView,
    CsrfTokenView,
    DepartmentDetailView,
    DepartmentListView,
    DepartmentMembersView,
    LoginView,
    LogoutView,
    MeView,
    RegisterView,
    TrackComplaintView,
)

app_name = "grievances"

urlpatterns = [
    path("api/complaints/", ComplaintCollectionView.as_view(), name="complaint_list"),
    path("api/complaints/<str:tracking_code>/", ComplaintDetailView.as_view(), name="complaint_detail"),
    path(
        "api/complaints/<str:tracking_code>/transition/",
        ComplaintTransitionView.as_view(),
        name="complaint_transition",
    ),
    path("api/complaints/<str:tracking_code>/assign/", ComplaintAssignView.as_view(), name="complaint_assign"),
    path(
        "api/complaints/<str:tracking_code>/comments/",
        ComplaintCommentsView.as_view(),
        name="complaint_comments",
    ),
    path("api/track/<str:tracking_code>/", TrackComplaintView.as_view(), name="track"),
    path("api/analyze/", AnalyzeView.as_view(), name="analyze"),
    path("api/analytics/", AnalyticsView.as_view(), name="analytics"),
    path("api/departments/", DepartmentListView.as_view(), name="department_list"),
    path("api/departments/<int:pk>/", DepartmentDetailView.as_view(), name="department_detail"),
    path("api/departments/<int:pk>/members/", DepartmentMembersView.as_view(), name="department_members"),
    path("api/auth/csrf/", CsrfTokenView.as_view(), name="csrf"),
    path("api/auth/register/", RegisterView.as_view(), name="register"),
    path("api/auth/login/", LoginView.as_view(), name="login"),
    path("api/auth/logout/", LogoutView.as_view(), name="logout"),
    path("api/me/", MeView.as_view(), name="me"),
]
