import unittest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import patch, AsyncMock

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from main import app
from app.core.db import get_db
from app.utils.get_user import get_current_user
from app.core.exceptions import InvalidTransition, NotOwner
from app.models.enums.ticket_status import InternalStatus, ClientStatus
from app.schemas.tickets.ticket_schemas import TicketTransitionOut, StatusHistoryEntryOut
from app.services.pricing.pricing_recompute_core import BatchResult, RecordFailure, PROCESS
from app.constants.error_codes import ErrorCode

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


async def _no_db():
    yield None


class APITestCase(unittest.TestCase):
    role = "admin"

    def setUp(self):
        self.user = SimpleNamespace(id=1, username=f"{self.role}@example.com", role=self.role)

        async def current_user():
            return self.user

        app.dependency_overrides[get_db] = _no_db
        app.dependency_overrides[get_current_user] = current_user
        self.addCleanup(app.dependency_overrides.clear)

        # no `with`: lifespan (DB init, scheduler) stays off
        self.client = TestClient(app)


class TestTicketRoutes(APITestCase):
    role = "staff"

    def test_transition_success_envelope(self):
        result = TicketTransitionOut(
            ticket_id=7,
            ticket_number="CT-000007",
            status=InternalStatus.REVIEWING_REQUEST,
            client_status=ClientStatus.PENDING_REVIEW,
            version=2,
            status_history_entry=StatusHistoryEntryOut(
                id=2,
                status=InternalStatus.REVIEWING_REQUEST,
                from_status=InternalStatus.PENDING,
                timestamp=NOW,
                changed_by_id=1,
                changed_by="staff@example.com",
                reason=None,
                notes=None,
                is_override=False,
            ),
        )

        with patch(
            "app.routers.tickets.ticket_router.transition_ticket",
            new=AsyncMock(return_value=result),
        ) as mocked:
            response = self.client.post(
                "/tickets/7/transition",
                json={"status": "reviewing-request"},
            )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"]["status"], "reviewing-request")
        self.assertEqual(body["data"]["client_status"], "pending-review")
        self.assertEqual(body["data"]["status_history_entry"]["from_status"], "pending")

        payload = mocked.await_args.args[2]
        self.assertEqual(payload.status, InternalStatus.REVIEWING_REQUEST)

    def test_rejected_transition_reports_both_statuses(self):
        error = InvalidTransition(InternalStatus.QUOTE_SENT, InternalStatus.DEPOSIT_INVOICE_SENT)

        with patch(
            "app.routers.tickets.ticket_router.transition_ticket",
            new=AsyncMock(side_effect=error),
        ):
            response = self.client.post(
                "/tickets/7/transition",
                json={"status": "deposit-invoice-sent"},
            )

        self.assertEqual(response.status_code, 409)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error_code"], "INVALID_TRANSITION")
        self.assertEqual(
            body["details"],
            {"current_status": "quote-sent", "requested_status": "deposit-invoice-sent"},
        )

    def test_unknown_status_is_a_validation_error(self):
        response = self.client.post("/tickets/7/transition", json={"status": "teleported"})

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error_code"], "VALIDATION_ERROR")

    def test_staff_cannot_reach_reopen(self):
        with patch("app.routers.tickets.ticket_router.reopen_ticket", new=AsyncMock()) as mocked:
            response = self.client.post(
                "/tickets/7/reopen",
                json={"status": "in-consultation", "reason": "client returned"},
            )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error_code"], "PERMISSION_DENIED")
        mocked.assert_not_awaited()

    def test_storage_failure_maps_to_503(self):
        error = OperationalError("SELECT tickets", {}, Exception("connection refused"))

        with patch(
            "app.routers.tickets.ticket_router.get_ticket",
            new=AsyncMock(side_effect=error),
        ):
            with self.assertLogs("app.core.error_handlers", level="ERROR"):
                response = self.client.get("/tickets/7")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["error_code"], "STORAGE_FAILURE")

    def test_request_id_is_echoed(self):
        response = self.client.get("/", headers={"X-Request-ID": "abc123"})

        self.assertEqual(response.headers["X-Request-ID"], "abc123")


class TestProductRoutes(APITestCase):
    role = "artisan"

    def test_not_owner_is_forbidden(self):
        with patch(
            "app.routers.products.product_router.submit_product",
            new=AsyncMock(side_effect=NotOwner()),
        ):
            response = self.client.post("/products/3/submit")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error_code"], "NOT_OWNER")

    def test_artisan_cannot_approve(self):
        response = self.client.post("/products/3/approve", json={})
        self.assertEqual(response.status_code, 403)


class TestPricingRoutes(APITestCase):

    def test_partial_batch_failure_is_reported(self):
        batch = BatchResult(total=2)
        batch.failed.append(
            RecordFailure(PROCESS, 9, ErrorCode.UNKNOWN_SKILL_LEVEL, "No labor rate configured for skill level 'master'")
        )

        with patch(
            "app.routers.pricing.pricing_router.recompute_all_pricing",
            new=AsyncMock(return_value=batch),
        ):
            response = self.client.post("/pricing/recompute")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["message"], "Pricing recomputed with failures")
        self.assertEqual(body["data"]["error_code"], "PARTIAL_BATCH_FAILURE")
        self.assertEqual(body["data"]["failures"][0]["record_id"], 9)

    def test_conflicting_settings_payload_rejected(self):
        response = self.client.put(
            "/pricing/settings",
            json={"labor_rates": {"standard": "50"}, "base_wage": "40"},
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error_code"], "VALIDATION_ERROR")


class TestHealth(unittest.TestCase):

    def test_health(self):
        response = TestClient(app).get("/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")
        self.assertEqual(response.json()["service"], "jewelry-ops-core")


if __name__ == "__main__":
    unittest.main()
