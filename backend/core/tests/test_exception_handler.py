from __future__ import annotations

from django.test import SimpleTestCase
from rest_framework import exceptions as drf_exceptions

from core.domain.exception_handler import domain_exception_handler
from core.domain.exceptions import (
    AuthorizationError,
    DomainError,
    NotFound,
    PersistenceError,
    ValidationError,
)


class TestDomainExceptionHandler(SimpleTestCase):

    def handle(self, exc):
        return domain_exception_handler(exc, {"view": "test"})

    def test_status_mapping(self):
        cases = [
            (ValidationError("bad"), 400),
            (AuthorizationError(role="staff", intent="assign_to"), 403),
            (NotFound(), 404),
            (PersistenceError(), 503),
            (DomainError(), 400),
        ]
        for exc, expected in cases:
            with self.subTest(exc=type(exc).__name__):
                response = self.handle(exc)
                self.assertEqual(response.status_code, expected)
                self.assertEqual(response.data["detail"], str(exc))

    def test_validation_error_reports_field(self):
        response = self.handle(ValidationError("Need proof.", field="resolution_images"))
        self.assertEqual(response.data, {"detail": "Need proof.", "field": "resolution_images"})

    def test_drf_exceptions_use_default_handler(self):
        response = self.handle(drf_exceptions.NotAuthenticated())
        self.assertEqual(response.status_code, 401)

    def test_unknown_exceptions_propagate(self):
        self.assertIsNone(self.handle(RuntimeError("boom")))

    def test_mapped_errors_are_logged(self):
        with self.assertLogs("core.domain.exception_handler", level="WARNING"):
            self.handle(NotFound("Complaint 9 not found."))
