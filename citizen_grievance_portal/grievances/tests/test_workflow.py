from datetime import datetime, timezone as dt_timezone

from django.test import SimpleTestCase

from grievances import workflow
from grievances.actors import Actor
from grievances.exceptions import DepartmentMismatch, Forbidden, InvalidTransition, MissingDepartment
from grievances.models import Complaint, ComplaintEvent, UserProfile

Role = UserProfile.Role
Status = Complaint.Status

UTILITIES = 1
EDUCATION = 2
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=dt_timezone.utc)

ADMIN = Actor(id=1, role=Role.ADMIN)
DEPT_ADMIN = Actor(id=2, role=Role.DEPARTMENT_ADMIN, department_id=UTILITIES)
STAFF = Actor(id=3, role=Role.DEPARTMENT, department_id=UTILITIES)
OTHER_STAFF = Actor(id=4, role=Role.DEPARTMENT, department_id=EDUCATION)
CITIZEN = Actor(id=5, role=Role.CITIZEN)
STAFF_B = Actor(id=6, role=Role.DEPARTMENT, department_id=UTILITIES)

# (from, to) -> roles allowed
EXPECTED = {
    (Status.NEW, Status.TRIAGED): {Role.DEPARTMENT, Role.DEPARTMENT_ADMIN, Role.ADMIN},
    (Status.NEW, Status.IN_PROGRESS): {Role.DEPARTMENT, Role.DEPARTMENT_ADMIN, Role.ADMIN},
    (Status.TRIAGED, Status.IN_PROGRESS): {Role.DEPARTMENT, Role.DEPARTMENT_ADMIN, Role.ADMIN},
    (Status.TRIAGED, Status.RESOLVED): {Role.DEPARTMENT, Role.DEPARTMENT_ADMIN, Role.ADMIN},
    (Status.IN_PROGRESS, Status.RESOLVED): {Role.DEPARTMENT, Role.DEPARTMENT_ADMIN, Role.ADMIN},
    (Status.TRIAGED, Status.ESCALATED): {Role.DEPARTMENT, Role.DEPARTMENT_ADMIN, Role.ADMIN},
    (Status.IN_PROGRESS, Status.ESCALATED): {Role.DEPARTMENT, Role.DEPARTMENT_ADMIN, Role.ADMIN},
    (Status.RESOLVED, Status.CLOSED): {Role.DEPARTMENT, Role.DEPARTMENT_ADMIN, Role.ADMIN},
    (Status.RESOLVED, Status.IN_PROGRESS): {Role.DEPARTMENT, Role.DEPARTMENT_ADMIN, Role.ADMIN},
    (Status.ESCALATED, Status.CLOSED): {Role.ADMIN},
    (Status.NEW, Status.CLOSED): {Role.ADMIN},
    (Status.TRIAGED, Status.CLOSED): {Role.ADMIN},
    (Status.IN_PROGRESS, Status.CLOSED): {Role.ADMIN},
}

ACTORS_BY_ROLE = {
    Role.ADMIN: ADMIN,
    Role.DEPARTMENT_ADMIN: DEPT_ADMIN,
    Role.DEPARTMENT: STAFF,
    Role.CITIZEN: CITIZEN,
}


def make_complaint(status=Status.NEW, department_id=UTILITIES, **kwargs):
    return Complaint(
        tracking_code="GRS-2026-TEST01",
        title="Broken water main",
        description="Water everywhere",
        status=status,
        department_id=department_id,
        **kwargs,
    )


def snapshot(complaint):
    return {field.attname: getattr(complaint, field.attname) for field in Complaint._meta.concrete_fields}


def outcome(status, target, actor):
    complaint = make_complaint(status=status)
    if status in (Status.RESOLVED, Status.CLOSED):
        complaint.resolved_at = NOW
    try:
        workflow.apply_transition(complaint, target, actor, now=NOW)
    except (InvalidTransition, Forbidden) as exc:
        return type(exc)
    return "ok"


class TransitionTableTests(SimpleTestCase):
    def test_every_pair_and_role_matches_the_table(self):
        for current in Status.values:
            for target in Status.values:
                for role, actor in ACTORS_BY_ROLE.items():
                    with self.subTest(current=current, target=target, role=role):
                        allowed = EXPECTED.get((current, target))
                        result = outcome(current, target, actor)
                        if allowed is None:
                            self.assertIs(result, InvalidTransition)
                        elif role in allowed:
                            self.assertEqual(result, "ok")
                        else:
                            self.assertIs(result, Forbidden)

    def test_outcome_is_deterministic(self):
        for (current, target) in EXPECTED:
            for actor in ACTORS_BY_ROLE.values():
                with self.subTest(current=current, target=target, role=actor.role):
                    self.assertEqual(outcome(current, target, actor), outcome(current, target, actor))

    def test_closed_is_terminal(self):
        for target in Status.values:
            with self.subTest(target=target):
                self.assertIs(outcome(Status.CLOSED, target, ADMIN), InvalidTransition)

    def test_allowed_targets_for_staff_and_admin(self):
        self.assertEqual(workflow.allowed_targets(Status.NEW, STAFF), [Status.TRIAGED, Status.IN_PROGRESS])
        self.assertIn(Status.CLOSED, workflow.allowed_targets(Status.NEW, ADMIN))
        self.assertEqual(workflow.allowed_targets(Status.NEW, CITIZEN), [])


class ApplyTransitionTests(SimpleTestCase):
    def test_new_to_resolved_is_invalid_and_leaves_complaint_unchanged(self):
        complaint = make_complaint(status=Status.NEW)
        before = snapshot(complaint)

        with self.assertRaises(InvalidTransition) as ctx:
            workflow.apply_transition(complaint, Status.RESOLVED, STAFF, note="done", now=NOW)

        self.assertEqual(snapshot(complaint), before)
        self.assertEqual(ctx.exception.current_status, Status.NEW)
        self.assertEqual(ctx.exception.target_status, Status.RESOLVED)
        self.assertEqual(ctx.exception.role, Role.DEPARTMENT)
        self.assertIn("cannot be moved", ctx.exception.message)

    def test_resolving_sets_resolved_at_and_queues_notification(self):
        complaint = make_complaint(status=Status.IN_PROGRESS)

        result = workflow.apply_transition(complaint, Status.RESOLVED, STAFF, note="fixed pothole", now=NOW)

        self.assertIs(result.complaint, complaint)
        self.assertEqual(complaint.status, Status.RESOLVED)
        self.assertEqual(complaint.resolved_at, NOW)
        self.assertEqual(complaint.resolution_note, "fixed pothole")
        self.assertEqual(result.notifications, ("resolution",))
        self.assertEqual(result.entry.kind, ComplaintEvent.Kind.STATUS_CHANGE)
        self.assertEqual(result.entry.status, Status.RESOLVED)
        self.assertEqual(result.entry.actor_id, STAFF.id)
        self.assertEqual(result.entry.note, "fixed pothole")
        self.assertEqual(result.entry.timestamp, NOW)

    def test_reopen_clears_resolved_at(self):
        complaint = make_complaint(status=Status.RESOLVED, resolved_at=NOW)

        result = workflow.apply_transition(complaint, Status.IN_PROGRESS, STAFF, now=NOW)

        self.assertEqual(complaint.status, Status.IN_PROGRESS)
        self.assertIsNone(complaint.resolved_at)
        self.assertEqual(result.notifications, ())

    def test_escalation_increments_counter_and_queues_notification(self):
        complaint = make_complaint(status=Status.IN_PROGRESS)

        result = workflow.apply_transition(complaint, Status.ESCALATED, STAFF, note="needs budget", now=NOW)

        self.assertEqual(complaint.escalation_count, 1)
        self.assertEqual(complaint.escalated_at, NOW)
        self.assertEqual(complaint.escalation_reason, "needs budget")
        self.assertEqual(result.notifications, ("escalation",))

    def test_admin_close_sets_default_resolution_note(self):
        complaint = make_complaint(status=Status.TRIAGED)

        workflow.apply_transition(complaint, Status.CLOSED, ADMIN, now=NOW)

        self.assertEqual(complaint.status, Status.CLOSED)
        self.assertEqual(complaint.resolution_note, workflow.ADMIN_CLOSE_NOTE)
        self.assertIsNone(complaint.resolved_at)

    def test_admin_close_of_escalated_complaint_sets_default_note(self):
        complaint = make_complaint(status=Status.ESCALATED, escalation_count=1)

        result = workflow.apply_transition(complaint, Status.CLOSED, ADMIN, now=NOW)

        self.assertEqual(complaint.status, Status.CLOSED)
        self.assertEqual(complaint.resolution_note, workflow.ADMIN_CLOSE_NOTE)
        self.assertIsNone(complaint.resolved_at)
        self.assertEqual(result.notifications, ())

    def test_admin_close_of_escalated_complaint_keeps_supplied_note(self):
        complaint = make_complaint(status=Status.ESCALATED)

        workflow.apply_transition(complaint, Status.CLOSED, ADMIN, note="Handed to state board", now=NOW)

        self.assertEqual(complaint.resolution_note, "Handed to state board")

    def test_admin_close_keeps_supplied_note(self):
        complaint = make_complaint(status=Status.NEW)

        workflow.apply_transition(complaint, Status.CLOSED, ADMIN, note="Duplicate of GRS-2026-AAAAAA", now=NOW)

        self.assertEqual(complaint.resolution_note, "Duplicate of GRS-2026-AAAAAA")

    def test_closing_resolved_complaint_keeps_resolution(self):
        resolved_at = datetime(2026, 2, 1, tzinfo=dt_timezone.utc)
        complaint = make_complaint(status=Status.RESOLVED, resolved_at=resolved_at, resolution_note="fixed")

        workflow.apply_transition(complaint, Status.CLOSED, STAFF, now=NOW)

        self.assertEqual(complaint.resolved_at, resolved_at)
        self.assertEqual(complaint.resolution_note, "fixed")

    def test_staff_cannot_close_escalated_complaint(self):
        complaint = make_complaint(status=Status.ESCALATED)
        before = snapshot(complaint)

        with self.assertRaises(Forbidden) as ctx:
            workflow.apply_transition(complaint, Status.CLOSED, STAFF, now=NOW)

        self.assertIn("permission", ctx.exception.message)
        self.assertEqual(snapshot(complaint), before)

    def test_staff_from_other_department_is_forbidden(self):
        complaint = make_complaint(status=Status.NEW)
        before = snapshot(complaint)

        with self.assertRaises(Forbidden):
            workflow.apply_transition(complaint, Status.TRIAGED, OTHER_STAFF, now=NOW)

        self.assertEqual(snapshot(complaint), before)

    def test_unknown_target_status_is_invalid(self):
        complaint = make_complaint(status=Status.NEW)
        with self.assertRaises(InvalidTransition):
            workflow.apply_transition(complaint, "archived", ADMIN, now=NOW)

    def test_resolved_at_only_set_while_resolved(self):
        path = [
            Status.TRIAGED,
            Status.IN_PROGRESS,
            Status.RESOLVED,
            Status.IN_PROGRESS,
            Status.ESCALATED,
            Status.CLOSED,
        ]
        complaint = make_complaint(status=Status.NEW)
        for target in path:
            actor = ADMIN if target == Status.CLOSED else STAFF
            workflow.apply_transition(complaint, target, actor, now=NOW)
            with self.subTest(status=target):
                self.assertEqual(complaint.resolved_at is not None, complaint.status == Status.RESOLVED)

    def test_closing_without_resolution_never_sets_resolved_at(self):
        for status in (Status.NEW, Status.TRIAGED, Status.IN_PROGRESS, Status.ESCALATED):
            with self.subTest(status=status):
                complaint = make_complaint(status=status)
                workflow.apply_transition(complaint, Status.CLOSED, ADMIN, now=NOW)
                self.assertEqual(complaint.status, Status.CLOSED)
                self.assertIsNone(complaint.resolved_at)


class AssignTests(SimpleTestCase):
    def test_missing_department_fails_for_every_role(self):
        for actor in (ADMIN, DEPT_ADMIN, STAFF, CITIZEN):
            with self.subTest(role=actor.role):
                complaint = make_complaint(department_id=None)
                with self.assertRaises(MissingDepartment):
                    workflow.assign(complaint, STAFF, actor, now=NOW)
                self.assertIsNone(complaint.assigned_to_id)

    def test_department_admin_assigns_own_staff(self):
        complaint = make_complaint()

        result = workflow.assign(complaint, STAFF, DEPT_ADMIN, now=NOW)

        self.assertEqual(complaint.assigned_to_id, STAFF.id)
        self.assertEqual(result.entry.kind, ComplaintEvent.Kind.ASSIGNMENT)
        self.assertEqual(result.entry.assignee_id, STAFF.id)
        self.assertEqual(result.entry.status, complaint.status)
        self.assertEqual(result.notifications, ())

    def test_reassignment_overwrites_previous_assignee(self):
        complaint = make_complaint(assigned_to_id=STAFF.id)

        result = workflow.assign(complaint, STAFF_B, ADMIN, now=NOW)

        self.assertEqual(complaint.assigned_to_id, STAFF_B.id)
        self.assertEqual(result.entry.assignee_id, STAFF_B.id)

    def test_plain_staff_cannot_assign(self):
        complaint = make_complaint()
        with self.assertRaises(Forbidden):
            workflow.assign(complaint, STAFF_B, STAFF, now=NOW)
        self.assertIsNone(complaint.assigned_to_id)

    def test_department_admin_of_other_department_cannot_assign(self):
        complaint = make_complaint(department_id=EDUCATION)
        with self.assertRaises(Forbidden):
            workflow.assign(complaint, OTHER_STAFF, DEPT_ADMIN, now=NOW)

    def test_staff_outside_department_is_a_mismatch(self):
        complaint = make_complaint()
        with self.assertRaises(DepartmentMismatch):
            workflow.assign(complaint, OTHER_STAFF, DEPT_ADMIN, now=NOW)
        self.assertIsNone(complaint.assigned_to_id)

    def test_admin_may_assign_across_departments(self):
        complaint = make_complaint()
        workflow.assign(complaint, OTHER_STAFF, ADMIN, now=NOW)
        self.assertEqual(complaint.assigned_to_id, OTHER_STAFF.id)

    def test_citizen_cannot_be_assignee(self):
        complaint = make_complaint()
        with self.assertRaises(DepartmentMismatch):
            workflow.assign(complaint, CITIZEN, ADMIN, now=NOW)
