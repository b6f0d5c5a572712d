# apps/utils/tests.py
import json
import logging
import re
from decimal import Decimal

from django.db import IntegrityError, OperationalError
from django.test import SimpleTestCase, TestCase

from .exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
    custom_exception_handler,
    translate_db_errors,
)
from .logging import JSONFormatter
from .utils import generate_order_number, to_money


class OrderNumberTests(SimpleTestCase):
    def test_format(self):
        self.assertRegex(generate_order_number(), re.compile(r"^ORD-\d{8}-\d{4}$"))


class MoneyTests(SimpleTestCase):
    def test_to_money(self):
        self.assertEqual(to_money(0.1), Decimal("0.10"))
        self.assertEqual(to_money("19.999"), Decimal("20.00"))
        self.assertEqual(to_money(None), Decimal("0.00"))
        self.assertEqual(to_money(5), Decimal("5.00"))

    def test_to_money_rejects_non_numbers(self):
        for value in ("abc", "NaN", "Infinity", True, [1, 2]):
            with self.assertRaises(ValidationError, msg=repr(value)):
                to_money(value)


class TranslateDbErrorsTests(SimpleTestCase):
    def test_domain_errors_pass_through(self):
        @translate_db_errors("Failed")
        def op():
            raise NotFoundError("missing")

        with self.assertRaises(NotFoundError):
            op()

    def test_integrity_error_becomes_conflict_when_configured(self):
        @translate_db_errors("Failed", conflict_message="Duplicate")
        def op():
            raise IntegrityError("unique violation")

        with self.assertRaises(ConflictError) as ctx:
            op()
        self.assertEqual(ctx.exception.message, "Duplicate")

    def test_driver_error_becomes_database_error_with_details(self):
        @translate_db_errors("Failed to do thing")
        def op():
            raise OperationalError("connection reset")

        with self.assertRaises(DatabaseError) as ctx:
            op()
        self.assertEqual(ctx.exception.message, "Failed to do thing")
        self.assertEqual(ctx.exception.details, "connection reset")
        self.assertEqual(ctx.exception.status_code, 500)


class ExceptionHandlerTests(SimpleTestCase):
    def test_business_errors_render_message_and_code(self):
        response = custom_exception_handler(ValidationError("Insufficient inventory"), {})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {"error": "Insufficient inventory", "code": "validation_error"})

    def test_database_error_hides_details(self):
        response = custom_exception_handler(DatabaseError("Failed", details="secret sql"), {})

        self.assertEqual(response.status_code, 500)
        self.assertNotIn("secret sql", json.dumps(response.data))

    def test_unhandled_exception_is_500(self):
        response = custom_exception_handler(RuntimeError("boom"), {})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["code"], "server_error")


class JSONFormatterTests(SimpleTestCase):
    def make_record(self, msg, **extra):
        record = logging.LogRecord("apps.test", logging.INFO, __file__, 1, msg, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_redacts_sensitive_keys_and_keeps_context(self):
        record = self.make_record(
            {"amount": "10.00", "provider_response": {"card_number": "4242"}, "password": "x"},
            order_id="abc",
        )

        data = json.loads(JSONFormatter().format(record))

        self.assertIn("***REDACTED***", data["msg"])
        self.assertNotIn("4242", data["msg"])
        self.assertEqual(data["order_id"], "abc")
        self.assertNotIn("user_id", data)


class HealthCheckTests(TestCase):
    def test_health_ok(self):
        response = self.client.get("/api/v1/health/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["components"]["db"], "ok")

    def test_server_info_is_public(self):
        response = self.client.get("/api/v1/info/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["version"], "1.0.0")
