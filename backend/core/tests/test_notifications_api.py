"""
Integration tests — notification inbox endpoints.

Endpoints under test (named URLs in the ``core`` namespace):
    GET  /api/core/notifications/               core:notification-list
    GET  /api/core/notifications/unread-count/  core:notification-unread-count
    POST /api/core/notifications/{id}/read/     core:notification-mark-as-read
    POST /api/core/notifications/{id}/click/    core:notification-mark-as-clicked
    POST /api/core/notifications/read-all/      core:notification-mark-all-as-read
    GET  /api/core/notifications/stream/        core:notification-stream
"""

from __future__ import annotations

import json

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from core.models import Notification, NotificationType
from core.services import NotificationInboxService

User = get_user_model()

_PASSWORD = "Str0ng!Pass77"


def _notify(recipient, **extra) -> Notification:
    fields = {
        "recipient": recipient,
        "type": NotificationType.COMPLAINT_CREATED,
        "title": "New Complaint Submitted",
        "message": "Ana Lim created a new complaint",
        "complaint_id": 1,
        "payload": {"complaintId": 1},
    }
    fields.update(extra)
    return Notification.objects.create(**fields)


class TestNotificationEndpoints(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.warden = User.objects.create_user(
            username="wendy", password=_PASSWORD, email="wendy@hostel.test", role="warden",
        )
        cls.other = User.objects.create_user(
            username="walt", password=_PASSWORD, email="walt@hostel.test", role="warden",
        )

    def setUp(self):
        self.client = APIClient()
        self.first = _notify(self.warden, title="first")
        self.second = _notify(self.warden, title="second")
        self.foreign = _notify(self.other)
        self.auth(self.warden)

    def auth(self, user) -> None:
        response = self.client.post(
            reverse("accounts:login"),
            {"identifier": user.username, "password": _PASSWORD},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, msg=response.data)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_requires_authentication(self):
        self.client.credentials()
        response = self.client.get(reverse("core:notification-list"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_returns_own_notifications_newest_first(self):
        response = self.client.get(reverse("core:notification-list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([n["id"] for n in response.data], [self.second.pk, self.first.pk])
        self.assertEqual(response.data[0]["payload"], {"complaintId": 1})

    def test_list_unread_only(self):
        NotificationInboxService(self.warden).mark_as_read(self.first.pk)
        response = self.client.get(reverse("core:notification-list"), {"unread": "true"})
        self.assertEqual([n["id"] for n in response.data], [self.second.pk])

    def test_unread_count(self):
        response = self.client.get(reverse("core:notification-unread-count"))
        self.assertEqual(response.data, {"unread": 2})

    def test_mark_as_read_is_idempotent(self):
        url = reverse("core:notification-mark-as-read", kwargs={"pk": self.first.pk})
        response = self.client.post(url, {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["is_read"])
        first_read_at = response.data["read_at"]
        self.assertIsNotNone(first_read_at)

        response = self.client.post(url, {}, format="json")
        self.assertEqual(response.data["read_at"], first_read_at)

    def test_mark_as_clicked_also_reads(self):
        url = reverse("core:notification-mark-as-clicked", kwargs={"pk": self.first.pk})
        response = self.client.post(url, {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["is_read"])
        self.assertIsNotNone(response.data["clicked_at"])

        clicked_at = response.data["clicked_at"]
        response = self.client.post(url, {}, format="json")
        self.assertEqual(response.data["clicked_at"], clicked_at)

    def test_foreign_notification_is_not_found(self):
        for name in ("core:notification-mark-as-read", "core:notification-mark-as-clicked"):
            response = self.client.post(reverse(name, kwargs={"pk": self.foreign.pk}), {}, format="json")
            self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.foreign.refresh_from_db()
        self.assertFalse(self.foreign.is_read)

    def test_mark_all_as_read_twice(self):
        url = reverse("core:notification-mark-all-as-read")
        response = self.client.post(url, {}, format="json")
        self.assertEqual(response.data, {"updated": 2})

        read_at = dict(Notification.objects.filter(recipient=self.warden).values_list("pk", "read_at"))
        response = self.client.post(url, {}, format="json")
        self.assertEqual(response.data, {"updated": 0})
        self.assertEqual(
            dict(Notification.objects.filter(recipient=self.warden).values_list("pk", "read_at")),
            read_at,
        )
        self.foreign.refresh_from_db()
        self.assertFalse(self.foreign.is_read)

    def test_stream_starts_with_current_notifications(self):
        response = self.client.get(reverse("core:notification-stream"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response["Content-Type"], "text/event-stream")
        self.assertEqual(response["Cache-Control"], "no-cache")

        frames = iter(response.streaming_content)
        try:
            self.assertEqual(next(frames), b"retry: 3000\n\n")
            keys = []
            for _ in range(2):
                frame = next(frames).decode()
                data = frame.strip().split("\n")[-1].removeprefix("data: ")
                keys.append(json.loads(data)["key"])
        finally:
            response.close()

        self.assertEqual(keys, [self.first.pk, self.second.pk])


class TestNotificationInboxPushes(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.warden = User.objects.create_user(
            username="wendy", password=_PASSWORD, email="wendy@hostel.test", role="warden",
        )

    def test_new_and_updated_notifications_are_pushed(self):
        service = NotificationInboxService(self.warden)
        with service.subscribe() as sub:
            self.assertEqual(sub.drain(), [])

            with self.captureOnCommitCallbacks(execute=True):
                notification = _notify(self.warden)
            created = sub.drain()

            with self.captureOnCommitCallbacks(execute=True):
                service.mark_all_as_read()
            updated = sub.drain()

        self.assertEqual([p.key for p in created], [notification.pk])
        self.assertFalse(created[0].snapshot["is_read"])
        self.assertEqual([p.key for p in updated], [notification.pk])
        self.assertTrue(updated[0].snapshot["is_read"])
