from dataclasses import dataclass
from typing import Optional

from .models import UserProfile

Role = UserProfile.Role


@dataclass(frozen=True)
class Actor:
    """The authenticated party on whose behalf a workflow operation runs."""

    id: Optional[int]
    role: str
    department_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_department_admin(self) -> bool:
        return self.role == Role.DEPARTMENT_ADMIN

    @property
    def is_department_member(self) -> bool:
        return self.role in (Role.DEPARTMENT, Role.DEPARTMENT_ADMIN)

    @property
    def is_staff(self) -> bool:
        return self.is_admin or self.is_department_member

    @classmethod
    def anonymous(cls):
        return cls(id=None, role=Role.CITIZEN)

    @classmethod
    def from_user(cls, user):
        if user is None or not user.is_authenticated:
            return cls.anonymous()
        if user.is_superuser:
            return cls(id=user.pk, role=Role.ADMIN)
        try:
            profile = user.profile
        except UserProfile.DoesNotExist:
            return cls(id=user.pk, role=Role.CITIZEN)
        return cls(id=user.pk, role=profile.role, department_id=profile.department_id)
