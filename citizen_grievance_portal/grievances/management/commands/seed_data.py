from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.utils.text import slugify

from grievances import services
from grievances.actors import Actor
from grievances.classification import DEPARTMENT_BUCKETS, FALLBACK_DEPARTMENT
from grievances.models import Complaint, Department, UserProfile

User = get_user_model()


class Command(BaseCommand):
    help = "Seed the database with departments, staff accounts and sample complaints."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="PortalPass123!", help="Password for every seeded account.")

    def create_user(self, username, password, role, department=None, **extra):
        user, created = User.objects.get_or_create(
            username=username,
            defaults={"email": f"{username}@example.com", **extra},
        )
        if created:
            user.set_password(password)
            user.save()
        UserProfile.objects.update_or_create(
            user=user,
            defaults={"role": role, "department": department},
        )
        return user

    def handle(self, *args, **options):
        password = options["password"]
        department_names = [name for _, name, _ in DEPARTMENT_BUCKETS] + [FALLBACK_DEPARTMENT]
        departments = {}
        for name in department_names:
            slug = slugify(name)
            departments[name], _ = Department.objects.get_or_create(
                name=name,
                defaults={"slug": slug, "email": f"{slug}@grievance-portal.local"},
            )

        admin_user = self.create_user("portal_admin", password, UserProfile.Role.ADMIN, is_staff=True)
        for name, department in departments.items():
            slug = slugify(name).replace("-", "_")
            self.create_user(f"{slug}_admin", password, UserProfile.Role.DEPARTMENT_ADMIN, department)
            self.create_user(f"{slug}_staff", password, UserProfile.Role.DEPARTMENT, department)
        citizen = self.create_user("citizen_user", password, UserProfile.Role.CITIZEN)

        sample_definitions = [
            {
                "title": "Overflowing garbage bins",
                "description": "Municipal bins near the market have not been cleared for a week. The waste smells terrible.",
                "location": "Zone 2 - Main Street",
            },
            {
                "title": "URGENT: water pipe burst on Main St",
                "description": "Water is flooding the road, need it fixed today.",
            },
            {
                "title": "School building roof damaged",
                "description": "The roof of the primary school leaks during rain and students are at risk.",
            },
            {
                "title": "Streetlight not working",
                "description": "The streetlight near the bus stop has been broken for three days.",
            },
        ]

        created_count = 0
        for definition in sample_definitions:
            if Complaint.objects.filter(title=definition["title"], user=citizen).exists():
                continue
            complaint = services.submit_complaint(user=citizen, **definition)
            created_count += 1
            if complaint.department_id and created_count % 2 == 0:
                services.transition_complaint(
                    complaint,
                    Complaint.Status.TRIAGED,
                    Actor.from_user(admin_user),
                    note="Verified during seeding.",
                )

        self.stdout.write(
            self.style.SUCCESS(
                f"Seed complete. Departments: {len(departments)}. New complaints: {created_count}."
            )
        )
