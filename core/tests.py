import uuid

from django.contrib.auth import get_user_model
from django.db import OperationalError
from django.test import TestCase, TransactionTestCase
from rest_framework.exceptions import NotFound
from rest_framework.test import APIClient

from common.concurrency import run_atomic
from common.exceptions import ConcurrencyConflict
from core.models import AuditLog, Branch, Factory, Workshop
from inventory.models import EntityKind, Inventory
from inventory.services import ensure_inventory, resolve_entity


class ResolveEntityTests(TestCase):
    def setUp(self):
        self.branch = Branch.objects.create(code="BR1", name="Downtown")
        self.workshop = Workshop.objects.create(code="WS1", name="Stitch Room", branch=self.branch)
        self.factory = Factory.objects.create(code="FC1", name="Main Factory")
        self.branch_inventory = ensure_inventory(self.branch)
        self.workshop_inventory = ensure_inventory(self.workshop)

    def test_resolves_each_kind_to_its_inventory(self):
        resolved = resolve_entity("branch", str(self.branch.id))
        self.assertEqual(resolved.kind, EntityKind.BRANCH)
        self.assertEqual(resolved.entity, self.branch)
        self.assertEqual(resolved.inventory, self.branch_inventory)

        resolved = resolve_entity(EntityKind.WORKSHOP, self.workshop.id)
        self.assertEqual(resolved.inventory, self.workshop_inventory)

    def test_unknown_kind_is_not_found(self):
        with self.assertRaises(NotFound):
            resolve_entity("warehouse", str(self.branch.id))

    def test_missing_or_malformed_id_is_not_found(self):
        with self.assertRaises(NotFound):
            resolve_entity("branch", str(uuid.uuid4()))
        with self.assertRaises(NotFound):
            resolve_entity("branch", "not-a-uuid")

    def test_entity_without_inventory_is_not_found(self):
        with self.assertRaises(NotFound):
            resolve_entity("factory", str(self.factory.id))

    def test_ensure_inventory_is_idempotent(self):
        ensure_inventory(self.branch)
        self.assertEqual(Inventory.objects.filter(entity_kind=EntityKind.BRANCH, entity_id=self.branch.id).count(), 1)


class StockHolderApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = get_user_model().objects.create_user(username="manager", password="pass1234", is_staff=True)
        self.client.force_authenticate(user=self.user)

    def test_creating_a_workshop_opens_its_inventory_and_audits(self):
        response = self.client.post("/api/v1/workshops/", {"code": "WS9", "name": "Hemming"}, format="json")

        self.assertEqual(response.status_code, 201)
        workshop_id = response.json()["id"]
        self.assertTrue(Inventory.objects.filter(entity_kind=EntityKind.WORKSHOP, entity_id=workshop_id).exists())
        log = AuditLog.objects.get(action="workshop.create")
        self.assertEqual(str(log.entity_id), workshop_id)
        self.assertEqual(log.actor, self.user)
        self.assertIsNotNone(log.request_id)

    def test_deleting_a_branch_deactivates_it(self):
        branch = Branch.objects.create(code="BR7", name="Old Branch")

        response = self.client.delete(f"/api/v1/branches/{branch.id}/")

        self.assertEqual(response.status_code, 204)
        branch.refresh_from_db()
        self.assertFalse(branch.is_active)
        self.assertTrue(AuditLog.objects.filter(action="branch.deactivate", entity_id=branch.id).exists())


class AuditLogApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.admin = self.user_model.objects.create_user(username="admin", password="pass1234", is_staff=True)
        self.clerk = self.user_model.objects.create_user(username="clerk", password="pass1234")
        AuditLog.objects.create(actor=self.admin, action="order.create", entity="order", entity_id=uuid.uuid4())

    def test_audit_logs_are_read_only(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post("/api/v1/admin/audit-logs/", {"action": "x"}, format="json")

        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.json()["code"], "method_not_allowed")

    def test_audit_logs_filter_by_entity(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/admin/audit-logs/?entity=order")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["count"], 1)

    def test_non_staff_cannot_read_audit_logs(self):
        self.client.force_authenticate(user=self.clerk)

        response = self.client.get("/api/v1/admin/audit-logs/")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "permission_denied")


class ErrorEnvelopeTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = get_user_model().objects.create_user(username="clerk", password="pass1234")

    def test_missing_record_uses_not_found_envelope(self):
        self.client.force_authenticate(user=self.user)

        response = self.client.get(f"/api/v1/orders/{uuid.uuid4()}/")

        self.assertEqual(response.status_code, 404)
        body = response.json()
        self.assertEqual(body["code"], "not_found")
        self.assertEqual(body["status"], 404)
        self.assertIsNone(body["errors"])

    def test_unauthenticated_request_is_rejected(self):
        response = self.client.get("/api/v1/orders/")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "not_authenticated")

    def test_request_id_header_is_echoed(self):
        response = self.client.get("/api/v1/healthz/", HTTP_X_REQUEST_ID="req-123")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["X-Request-ID"], "req-123")
        self.assertEqual(response.json()["request_id"], "req-123")


class TokenTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        get_user_model().objects.create_user(username="tailor", email="Tailor@Example.com", password="pass1234")

    def test_token_can_be_obtained_with_email(self):
        response = self.client.post(
            "/api/v1/token/",
            {"username": "tailor@example.com", "password": "pass1234"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertIn("access", response.json())


class RunAtomicTests(TransactionTestCase):
    def test_lock_errors_are_retried_then_reported_as_conflict(self):
        calls = []

        def always_deadlocks():
            calls.append(1)
            raise OperationalError("deadlock detected")

        with self.assertRaises(ConcurrencyConflict):
            run_atomic(always_deadlocks, attempts=3, backoff_base=0)
        self.assertEqual(len(calls), 3)

    def test_succeeds_after_transient_lock_error(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("lock timeout")
            return "ok"

        self.assertEqual(run_atomic(flaky, attempts=3, backoff_base=0), "ok")
        self.assertEqual(len(calls), 2)
