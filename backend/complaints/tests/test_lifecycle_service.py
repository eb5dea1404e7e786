"""
Service-level tests for complaint creation and the lifecycle gateway.

Notification dispatch is deferred to ``transaction.on_commit``; each
mutating call runs inside ``captureOnCommitCallbacks(execute=True)`` so
the fan-out happens as it would after a real commit.
"""

from __future__ import annotations

from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError, transaction
from django.test import TestCase

from complaints.events import AssignmentChange, StatusChange
from complaints.intents import AppendRemark, AssignTo, SetStatus, UpdateComplaint
from complaints.models import Complaint, ComplaintStatus
from complaints.services import (
    ComplaintCreationService,
    ComplaintLifecycleService,
)
from core.domain.exceptions import (
    AuthorizationError,
    NotFound,
    PersistenceError,
    ValidationError,
)
from core.models import Notification, NotificationType

User = get_user_model()

PROOF = "https://img.example/proof-1.jpg"


def _make_user(username: str, role: str, **extra) -> User:
    return User.objects.create_user(
        username=username,
        password="Str0ng!Pass77",
        email=f"{username}@hostel.test",
        role=role,
        **extra,
    )


class LifecycleTestBase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.student = _make_user("ana", "student", first_name="Ana", last_name="Lim")
        cls.other_student = _make_user("ben", "student")
        cls.staff = _make_user("tom", "staff", first_name="Tom", last_name="Tan")
        cls.other_staff = _make_user("uma", "staff")
        cls.inactive_staff = _make_user("vic", "staff", is_active=False)
        cls.warden = _make_user("wendy", "warden", first_name="Wendy", last_name="Wong")
        cls.second_warden = _make_user("walt", "warden")
        cls.inactive_warden = _make_user("wade", "warden", is_active=False)
        cls.active_wardens = {cls.warden.pk, cls.second_warden.pk}

    def create_complaint(self, **overrides) -> Complaint:
        data = {
            "campus": "Main Campus",
            "hostel": "RESTU",
            "category": "Plumbing",
            "description": "Leaking pipe under the sink in room 12.",
            "priority": "high",
        }
        data.update(overrides)
        with self.captureOnCommitCallbacks(execute=True):
            return ComplaintCreationService.create_complaint(self.student, data)

    def run_intent(self, user, complaint, intent):
        with self.captureOnCommitCallbacks(execute=True):
            return ComplaintLifecycleService.apply(user, complaint.pk, intent)

    def assigned_complaint(self) -> Complaint:
        complaint = self.create_complaint()
        self.run_intent(self.warden, complaint, AssignTo(staff_id=self.staff.pk))
        complaint.refresh_from_db()
        return complaint

    def recipients(self, notification_type: str) -> list[int]:
        return sorted(
            Notification.objects.filter(type=notification_type).values_list("recipient_id", flat=True)
        )


class TestComplaintCreation(LifecycleTestBase):

    def test_creates_pending_complaint_with_reporter_name(self):
        complaint = self.create_complaint()
        self.assertEqual(complaint.status, ComplaintStatus.PENDING)
        self.assertEqual(complaint.reporter, self.student)
        self.assertEqual(complaint.reporter_name, "Ana Lim")
        self.assertIsNone(complaint.date_resolved)
        self.assertEqual(complaint.resolution_images, [])

    def test_priority_defaults_to_medium(self):
        complaint = self.create_complaint(priority=None)
        self.assertEqual(complaint.priority, "medium")

    def test_one_created_notification_per_active_warden(self):
        complaint = self.create_complaint()
        self.assertEqual(
            self.recipients(NotificationType.COMPLAINT_CREATED),
            sorted(self.active_wardens),
        )
        notification = Notification.objects.get(recipient=self.warden)
        self.assertEqual(notification.title, "New Complaint Submitted")
        self.assertEqual(notification.message, "Ana Lim created a new complaint")
        self.assertEqual(notification.complaint_id, complaint.pk)
        self.assertEqual(notification.payload["complaintId"], complaint.pk)
        self.assertEqual(notification.payload["category"], "Plumbing")
        self.assertEqual(notification.payload["priority"], "high")
        self.assertEqual(notification.payload["status"], "pending")
        self.assertEqual(notification.payload["actorName"], "Ana Lim")
        self.assertFalse(notification.is_read)

    def test_non_student_cannot_create(self):
        for user in (self.staff, self.warden):
            with self.assertRaises(AuthorizationError):
                ComplaintCreationService.create_complaint(user, {
                    "campus": "Main Campus",
                    "hostel": "RESTU",
                    "category": "Plumbing",
                    "description": "x",
                })
        self.assertFalse(Complaint.objects.exists())
        self.assertFalse(Notification.objects.exists())

    def test_hostel_must_belong_to_campus(self):
        with self.assertRaises(ValidationError) as ctx:
            self.create_complaint(campus="Health Campus", hostel="RESTU")
        self.assertEqual(ctx.exception.field, "hostel")

    def test_unknown_campus_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.create_complaint(campus="Moon Campus")
        self.assertEqual(ctx.exception.field, "campus")

    def test_blank_description_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.create_complaint(description="   ")
        self.assertEqual(ctx.exception.field, "description")

    def test_attachment_limit(self):
        with self.settings(HOSTELFIX_MAX_ATTACHMENTS=2):
            with self.assertRaises(ValidationError):
                self.create_complaint(attachments=["a.jpg", "b.jpg", "c.jpg"])
            complaint = self.create_complaint(attachments=["a.jpg", "b.jpg"])
        self.assertEqual(complaint.attachments, ["a.jpg", "b.jpg"])


class TestStatusTransitions(LifecycleTestBase):

    def test_warden_approval_notifies_reporter_only(self):
        complaint = self.assigned_complaint()
        Notification.objects.all().delete()

        event = self.run_intent(self.warden, complaint, SetStatus(status="in_progress"))

        self.assertEqual(event.facts, (StatusChange("pending", "in_progress"),))
        updates = Notification.objects.filter(type=NotificationType.COMPLAINT_UPDATED)
        self.assertEqual([n.recipient_id for n in updates], [self.student.pk])
        self.assertEqual(updates[0].title, "Complaint Approved")
        self.assertFalse(Notification.objects.filter(recipient=self.staff).exists())

    def test_staff_resolve_without_images_is_rejected(self):
        complaint = self.assigned_complaint()
        Notification.objects.all().delete()

        with self.assertRaises(ValidationError) as ctx:
            self.run_intent(self.staff, complaint, SetStatus(status="resolved"))

        self.assertEqual(ctx.exception.field, "resolution_images")
        complaint.refresh_from_db()
        self.assertEqual(complaint.status, ComplaintStatus.PENDING)
        self.assertIsNone(complaint.date_resolved)
        self.assertFalse(Notification.objects.exists())

    def test_staff_resolution_notifies_reporter_and_every_warden(self):
        complaint = self.assigned_complaint()
        Notification.objects.all().delete()

        self.run_intent(self.staff, complaint, SetStatus(status="resolved", resolution_images=(PROOF,)))

        complaint.refresh_from_db()
        self.assertEqual(complaint.status, ComplaintStatus.RESOLVED)
        self.assertIsNotNone(complaint.date_resolved)
        self.assertEqual(complaint.resolution_images, [PROOF])
        self.assertEqual(
            self.recipients(NotificationType.COMPLAINT_RESOLVED),
            sorted([self.student.pk, *self.active_wardens]),
        )
        to_student = Notification.objects.get(recipient=self.student)
        self.assertEqual(to_student.title, "Complaint Resolved! 🎉")
        to_warden = Notification.objects.get(recipient=self.warden)
        self.assertEqual(to_warden.message, "Tom Tan has resolved a complaint. Click to see details.")
        self.assertEqual(to_warden.payload["reporterName"], "Ana Lim")
        self.assertEqual(to_warden.payload["resolverName"], "Tom Tan")

    def test_warden_may_resolve_without_images(self):
        complaint = self.create_complaint()
        self.run_intent(self.warden, complaint, SetStatus(status="resolved"))
        complaint.refresh_from_db()
        self.assertTrue(complaint.is_resolved)
        self.assertIsNotNone(complaint.date_resolved)

    def test_warden_reopen_clears_proof_and_notifies_reporter_and_assignee(self):
        complaint = self.assigned_complaint()
        self.run_intent(self.staff, complaint, SetStatus(status="resolved", resolution_images=(PROOF,)))
        Notification.objects.all().delete()

        self.run_intent(self.warden, complaint, SetStatus(status="in_progress"))

        complaint.refresh_from_db()
        self.assertEqual(complaint.status, ComplaintStatus.IN_PROGRESS)
        self.assertEqual(complaint.resolution_images, [])
        self.assertIsNone(complaint.date_resolved)
        self.assertEqual(
            self.recipients(NotificationType.STATUS_CHANGED_BY_WARDEN),
            sorted([self.student.pk, self.staff.pk]),
        )
        self.assertEqual(
            Notification.objects.get(recipient=self.student).message,
            "Your complaint is reopened again. Click to see the details.",
        )
        self.assertEqual(
            Notification.objects.get(recipient=self.staff).title,
            "Status Changed by Warden",
        )

    def test_resolving_again_keeps_retained_proof(self):
        complaint = self.assigned_complaint()
        complaint.resolution_images = [PROOF]
        complaint.save(update_fields=["resolution_images"])
        self.run_intent(self.staff, complaint, SetStatus(status="resolved"))
        complaint.refresh_from_db()
        self.assertEqual(complaint.resolution_images, [PROOF])

    def test_resolution_image_limit_counts_retained_images(self):
        complaint = self.assigned_complaint()
        with self.settings(HOSTELFIX_MAX_RESOLUTION_IMAGES=1):
            complaint.resolution_images = [PROOF]
            complaint.save(update_fields=["resolution_images"])
            with self.assertRaises(ValidationError):
                self.run_intent(
                    self.staff,
                    complaint,
                    SetStatus(status="resolved", resolution_images=("second.jpg",)),
                )

    def test_images_with_non_resolved_target_rejected(self):
        complaint = self.create_complaint()
        with self.assertRaises(ValidationError):
            self.run_intent(self.warden, complaint, SetStatus(status="in_progress", resolution_images=(PROOF,)))

    def test_same_status_is_nothing_to_update(self):
        complaint = self.create_complaint()
        with self.assertRaises(ValidationError):
            self.run_intent(self.warden, complaint, SetStatus(status="pending"))

    def test_unknown_status_rejected(self):
        complaint = self.create_complaint()
        with self.assertRaises(ValidationError):
            self.run_intent(self.warden, complaint, SetStatus(status="closed"))

    def test_date_resolved_tracks_status_through_every_transition(self):
        complaint = self.create_complaint()
        for target in ("in_progress", "resolved", "pending", "resolved", "in_progress"):
            self.run_intent(self.warden, complaint, SetStatus(status=target))
            complaint.refresh_from_db()
            self.assertEqual(complaint.date_resolved is not None, complaint.is_resolved, target)

    def test_database_rejects_inconsistent_date_resolved(self):
        complaint = self.create_complaint()
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Complaint.objects.filter(pk=complaint.pk).update(status=ComplaintStatus.RESOLVED)


class TestAssignment(LifecycleTestBase):

    def test_warden_assignment_notifies_new_assignee(self):
        complaint = self.create_complaint()
        Notification.objects.all().delete()

        event = self.run_intent(self.warden, complaint, AssignTo(staff_id=self.staff.pk))

        self.assertEqual(event.facts, (AssignmentChange(None, self.staff.pk),))
        complaint.refresh_from_db()
        self.assertEqual(complaint.assigned_to, self.staff)
        notification = Notification.objects.get()
        self.assertEqual(notification.recipient, self.staff)
        self.assertEqual(notification.type, NotificationType.COMPLAINT_ASSIGNED)
        self.assertEqual(notification.title, "New Complaint Assigned")

    def test_reassignment_notifies_only_the_new_assignee(self):
        complaint = self.assigned_complaint()
        Notification.objects.all().delete()
        self.run_intent(self.warden, complaint, AssignTo(staff_id=self.other_staff.pk))
        self.assertEqual(self.recipients(NotificationType.COMPLAINT_ASSIGNED), [self.other_staff.pk])

    def test_unassignment_is_silent(self):
        complaint = self.assigned_complaint()
        Notification.objects.all().delete()
        self.run_intent(self.warden, complaint, AssignTo(staff_id=None))
        complaint.refresh_from_db()
        self.assertIsNone(complaint.assigned_to)
        self.assertFalse(Notification.objects.exists())

    def test_assignee_must_be_active_staff(self):
        complaint = self.create_complaint()
        for candidate in (self.other_student, self.warden, self.inactive_staff):
            with self.assertRaises(ValidationError) as ctx:
                self.run_intent(self.warden, complaint, AssignTo(staff_id=candidate.pk))
            self.assertEqual(ctx.exception.field, "assigned_to")

    def test_same_assignee_is_nothing_to_update(self):
        complaint = self.assigned_complaint()
        with self.assertRaises(ValidationError):
            self.run_intent(self.warden, complaint, AssignTo(staff_id=self.staff.pk))

    def test_combined_update_yields_both_facts(self):
        complaint = self.create_complaint()
        Notification.objects.all().delete()

        event = self.run_intent(
            self.warden,
            complaint,
            UpdateComplaint(
                set_status=SetStatus(status="in_progress"),
                assign_to=AssignTo(staff_id=self.staff.pk),
            ),
        )

        self.assertEqual(
            event.facts,
            (StatusChange("pending", "in_progress"), AssignmentChange(None, self.staff.pk)),
        )
        self.assertEqual(self.recipients(NotificationType.COMPLAINT_UPDATED), [self.student.pk])
        self.assertEqual(self.recipients(NotificationType.COMPLAINT_ASSIGNED), [self.staff.pk])

    def test_combined_update_notifies_each_recipient_once(self):
        complaint = self.create_complaint()
        Notification.objects.all().delete()

        self.run_intent(
            self.warden,
            complaint,
            UpdateComplaint(
                set_status=SetStatus(status="resolved"),
                assign_to=AssignTo(staff_id=self.staff.pk),
            ),
        )

        self.assertEqual(
            list(Notification.objects.filter(recipient=self.staff).values_list("type", flat=True)),
            [NotificationType.COMPLAINT_ASSIGNED],
        )
        self.assertEqual(
            list(Notification.objects.filter(recipient=self.student).values_list("type", flat=True)),
            [NotificationType.STATUS_CHANGED_BY_WARDEN],
        )

    def test_empty_update_rejected(self):
        complaint = self.create_complaint()
        with self.assertRaises(ValidationError):
            self.run_intent(self.warden, complaint, UpdateComplaint())


class TestAuthorizationAndVisibility(LifecycleTestBase):

    def test_unauthorized_intents_produce_no_notifications(self):
        complaint = self.assigned_complaint()
        Notification.objects.all().delete()
        denied = [
            (self.staff, AssignTo(staff_id=self.other_staff.pk)),
            (self.student, AssignTo(staff_id=self.other_staff.pk)),
            (self.student, SetStatus(status="resolved")),
            (self.student, UpdateComplaint(set_status=SetStatus(status="in_progress"))),
            (self.staff, UpdateComplaint(
                set_status=SetStatus(status="in_progress"),
                assign_to=AssignTo(staff_id=self.other_staff.pk),
            )),
        ]
        for user, intent in denied:
            with self.assertRaises(AuthorizationError):
                self.run_intent(user, complaint, intent)

        complaint.refresh_from_db()
        self.assertEqual(complaint.status, ComplaintStatus.PENDING)
        self.assertEqual(complaint.assigned_to, self.staff)
        self.assertFalse(Notification.objects.exists())

    def test_unassigned_staff_cannot_see_complaint(self):
        complaint = self.assigned_complaint()
        with self.assertRaises(NotFound):
            self.run_intent(self.other_staff, complaint, SetStatus(status="in_progress"))

    def test_other_student_cannot_see_complaint(self):
        complaint = self.create_complaint()
        with self.assertRaises(NotFound):
            self.run_intent(self.other_student, complaint, AppendRemark(text="Same here."))

    def test_forbidden_role_is_refused_even_without_visibility(self):
        complaint = self.create_complaint()
        Notification.objects.all().delete()
        denied = [
            (self.staff, AssignTo(staff_id=self.staff.pk)),
            (self.other_student, AssignTo(staff_id=self.staff.pk)),
            (self.other_student, SetStatus(status="resolved")),
            (self.other_staff, UpdateComplaint(
                set_status=SetStatus(status="in_progress"),
                assign_to=AssignTo(staff_id=self.other_staff.pk),
            )),
        ]
        for user, intent in denied:
            with self.subTest(user=user.username, intent=type(intent).__name__):
                with self.assertRaises(AuthorizationError):
                    self.run_intent(user, complaint, intent)

        complaint.refresh_from_db()
        self.assertEqual(complaint.status, ComplaintStatus.PENDING)
        self.assertIsNone(complaint.assigned_to)
        self.assertFalse(Notification.objects.exists())

    def test_forbidden_role_on_missing_complaint_is_refused(self):
        with self.assertRaises(AuthorizationError):
            ComplaintLifecycleService.apply(self.staff, 999999, AssignTo(staff_id=self.staff.pk))

    def test_missing_complaint_is_not_found(self):
        with self.assertRaises(NotFound):
            ComplaintLifecycleService.apply(self.warden, 999999, SetStatus(status="resolved"))

    def test_rejection_is_logged(self):
        complaint = self.create_complaint()
        with self.assertLogs("complaints.services", level="WARNING") as logs:
            with self.assertRaises(AuthorizationError):
                self.run_intent(self.student, complaint, AssignTo(staff_id=self.staff.pk))
        self.assertIn("Rejected AssignTo", logs.output[0])


class TestPersistenceFailure(LifecycleTestBase):

    def test_failed_write_raises_and_sends_nothing(self):
        complaint = self.create_complaint()
        Notification.objects.all().delete()

        with mock.patch.object(Complaint, "save", side_effect=DatabaseError("disk full")):
            with self.assertRaises(PersistenceError):
                self.run_intent(self.warden, complaint, SetStatus(status="in_progress"))

        complaint.refresh_from_db()
        self.assertEqual(complaint.status, ComplaintStatus.PENDING)
        self.assertFalse(Notification.objects.exists())


class TestConvenienceEntryPoints(LifecycleTestBase):

    def test_set_status_and_assign_to(self):
        complaint = self.create_complaint()
        with self.captureOnCommitCallbacks(execute=True):
            ComplaintLifecycleService.assign_to(self.warden, complaint.pk, self.staff.pk)
            ComplaintLifecycleService.set_status(self.staff, complaint.pk, "resolved", [PROOF])
        complaint.refresh_from_db()
        self.assertTrue(complaint.is_resolved)
        self.assertEqual(complaint.assigned_to, self.staff)

    def test_update_with_explicit_null_unassigns(self):
        complaint = self.assigned_complaint()
        with self.captureOnCommitCallbacks(execute=True):
            ComplaintLifecycleService.update(self.warden, complaint.pk, {"assigned_to": None})
        complaint.refresh_from_db()
        self.assertIsNone(complaint.assigned_to)

    def test_update_images_without_status_rejected(self):
        complaint = self.create_complaint()
        with self.assertLogs("complaints.services", level="WARNING") as logs:
            with self.assertRaises(ValidationError):
                ComplaintLifecycleService.update(self.warden, complaint.pk, {"resolution_images": [PROOF]})
        self.assertIn(f"Rejected UpdateComplaint on complaint {complaint.pk}", logs.output[0])

    def test_update_images_without_status_checks_role_first(self):
        complaint = self.create_complaint()
        with self.assertRaises(AuthorizationError):
            ComplaintLifecycleService.update(self.other_student, complaint.pk, {"resolution_images": [PROOF]})
