"""
Unit tests for ``core.domain.access`` and the complaint authorization
table built on top of it.
"""

from __future__ import annotations

from types import SimpleNamespace

from django.test import SimpleTestCase

from complaints.services import COMPLAINT_AUTHORIZATION
from core.domain.access import (
    Grant,
    authorize,
    authorize_role,
    get_user_role_name,
    require_role,
)
from core.domain.exceptions import AuthorizationError


def _actor(role):
    return SimpleNamespace(pk=1, role=role)


class TestAuthorize(SimpleTestCase):

    def test_complaint_table(self):
        expected = {
            # (intent, role, resolved) → allowed
            ("create", "student", False): True,
            ("create", "staff", False): False,
            ("create", "warden", False): False,
            ("set_status", "student", False): False,
            ("set_status", "staff", False): True,
            ("set_status", "warden", False): True,
            ("set_status", "staff", True): True,
            ("assign_to", "student", False): False,
            ("assign_to", "staff", False): False,
            ("assign_to", "warden", False): True,
            ("append_remark", "student", False): True,
            ("append_remark", "staff", False): True,
            ("append_remark", "warden", False): True,
            ("append_remark", "student", True): False,
            ("append_remark", "staff", True): False,
            ("append_remark", "warden", True): True,
        }
        for (intent, role, resolved), allowed in expected.items():
            with self.subTest(intent=intent, role=role, resolved=resolved):
                if allowed:
                    authorize(COMPLAINT_AUTHORIZATION, intent=intent, user=_actor(role), resolved=resolved)
                else:
                    with self.assertRaises(AuthorizationError):
                        authorize(
                            COMPLAINT_AUTHORIZATION,
                            intent=intent,
                            user=_actor(role),
                            resolved=resolved,
                        )

    def test_unknown_role_or_intent_is_denied(self):
        with self.assertRaises(AuthorizationError):
            authorize(COMPLAINT_AUTHORIZATION, intent="assign_to", user=_actor(None))
        with self.assertRaises(AuthorizationError):
            authorize(COMPLAINT_AUTHORIZATION, intent="delete", user=_actor("warden"))

    def test_returns_the_grant(self):
        grant = authorize(COMPLAINT_AUTHORIZATION, intent="append_remark", user=_actor("staff"))
        self.assertIs(grant, Grant.UNLESS_RESOLVED)

    def test_error_carries_role_and_intent(self):
        with self.assertRaises(AuthorizationError) as ctx:
            authorize(COMPLAINT_AUTHORIZATION, intent="assign_to", user=_actor("staff"))
        self.assertEqual(ctx.exception.role, "staff")
        self.assertEqual(ctx.exception.intent, "assign_to")


class TestAuthorizeRole(SimpleTestCase):

    def test_missing_grant_is_refused(self):
        for role, intent in [("staff", "assign_to"), ("student", "set_status"), (None, "append_remark")]:
            with self.subTest(role=role, intent=intent):
                with self.assertRaises(AuthorizationError):
                    authorize_role(COMPLAINT_AUTHORIZATION, intent=intent, user=_actor(role))

    def test_state_dependent_grant_passes(self):
        grant = authorize_role(COMPLAINT_AUTHORIZATION, intent="append_remark", user=_actor("student"))
        self.assertIs(grant, Grant.UNLESS_RESOLVED)


class TestRoleHelpers(SimpleTestCase):

    def test_role_name_is_normalised(self):
        self.assertEqual(get_user_role_name(_actor("Warden")), "warden")
        self.assertIsNone(get_user_role_name(_actor("")))
        self.assertIsNone(get_user_role_name(SimpleNamespace()))

    def test_require_role(self):
        require_role(_actor("warden"), "warden")
        with self.assertRaises(AuthorizationError):
            require_role(_actor("student"), "warden", "staff")
