import unittest
from unittest.mock import patch

from app.models.enums.ticket_status import InternalStatus as S, ClientStatus
from app.models.tickets.ticket_models import TicketStatusHistory
from app.models.support.activity_models import UserActivity
from app.schemas.tickets.ticket_schemas import (
    TicketCreate,
    TicketTransitionRequest,
    TicketReopenRequest,
)
from app.services.tickets import ticket_status_service as svc
from app.services.notifications import transition_events
from app.core.exceptions import InvalidTransition, InvalidState, NotFound, PermissionDenied

from tests.db_support import AsyncDBTestCase


class TicketServiceTestCase(AsyncDBTestCase):

    async def create(self, **overrides):
        payload = TicketCreate(
            title=overrides.pop("title", "Custom engagement ring"),
            customer_name=overrides.pop("customer_name", "Jo Client"),
            customer_email="jo@example.com",
            **overrides,
        )
        return await svc.create_ticket(self.db, payload, self.staff)

    async def move(self, ticket_id, *statuses, user=None, reason=None):
        result = None
        for status in statuses:
            result = await svc.transition_ticket(
                self.db,
                ticket_id,
                TicketTransitionRequest(status=status, reason=reason),
                user or self.staff,
            )
        return result

    async def history_len(self, ticket_id):
        return await self.count(TicketStatusHistory, TicketStatusHistory.ticket_id == ticket_id)


class TestCreateAndRead(TicketServiceTestCase):

    async def test_create_starts_pending_with_history(self):
        ticket = await self.create()

        self.assertEqual(ticket.status, S.PENDING)
        self.assertEqual(ticket.client_status, ClientStatus.PENDING_REVIEW)
        self.assertEqual(ticket.ticket_number, f"CT-{ticket.id:06d}")
        self.assertEqual(ticket.version, 1)

        history = await svc.get_ticket_status_history(self.db, ticket.id)
        self.assertEqual(len(history.items), 1)
        self.assertIsNone(history.items[0].from_status)
        self.assertEqual(history.items[0].changed_by, self.staff.username)

        self.assertEqual(await self.count(UserActivity), 1)

    async def test_missing_ticket(self):
        with self.assertRaises(NotFound):
            await svc.get_ticket(self.db, 999)

        with self.assertRaises(NotFound):
            await svc.transition_ticket(
                self.db, 999, TicketTransitionRequest(status=S.REVIEWING_REQUEST), self.staff
            )

    async def test_statistics_group_by_status_and_client_status(self):
        first = await self.create()
        second = await self.create(title="Pendant")
        await self.create(title="Bracelet")
        await self.move(first.id, S.REVIEWING_REQUEST)
        await self.move(second.id, S.IN_CONSULTATION)

        stats = await svc.get_status_statistics(self.db)

        self.assertEqual(stats.total, 3)
        self.assertEqual(stats.by_status, {"pending": 1, "reviewing-request": 1, "in-consultation": 1})
        self.assertEqual(stats.by_client_status, {"pending-review": 2, "in-progress": 1})

    async def test_next_statuses_report_blocked_gates(self):
        ticket = await self.create()
        await self.move(ticket.id, S.ON_HOLD)

        options = {o.status: o for o in await svc.get_next_statuses(self.db, ticket.id)}

        self.assertIn(S.IN_PRODUCTION, options)
        self.assertIsNotNone(options[S.IN_PRODUCTION].blocked_reason)
        self.assertIsNone(options[S.SKETCHING].blocked_reason)
        self.assertNotIn(S.ON_HOLD, options)


class TestTransition(TicketServiceTestCase):

    async def test_transition_log_names_ticket_and_statuses(self):
        ticket = await self.create()

        with self.assertLogs("app.services.tickets.ticket_status_service", level="INFO") as logs:
            await self.move(ticket.id, S.REVIEWING_REQUEST)

        self.assertTrue(
            any(f"Ticket {ticket.id} transitioned pending -> reviewing-request" in line for line in logs.output),
            logs.output,
        )

    async def test_accepted_transition_appends_exactly_one_entry(self):
        ticket = await self.create()

        result = await self.move(ticket.id, S.REVIEWING_REQUEST, reason="looks feasible")

        self.assertEqual(result.status, S.REVIEWING_REQUEST)
        self.assertEqual(result.client_status, ClientStatus.PENDING_REVIEW)
        self.assertEqual(result.version, 2)
        self.assertEqual(result.status_history_entry.from_status, S.PENDING)
        self.assertEqual(result.status_history_entry.reason, "looks feasible")
        self.assertFalse(result.status_history_entry.is_override)
        self.assertEqual(await self.history_len(ticket.id), 2)

    async def test_quote_sent_cannot_jump_to_deposit_invoice(self):
        ticket = await self.create()
        await self.move(ticket.id, S.REVIEWING_REQUEST, S.PREPARING_QUOTE, S.QUOTE_SENT)
        before = await self.history_len(ticket.id)

        with self.assertRaises(InvalidTransition) as ctx:
            await self.move(ticket.id, S.DEPOSIT_INVOICE_SENT)

        self.assertEqual(ctx.exception.current_status, "quote-sent")
        self.assertEqual(ctx.exception.requested_status, "deposit-invoice-sent")
        self.assertEqual(await self.history_len(ticket.id), before)
        self.assertEqual((await svc.get_ticket(self.db, ticket.id)).status, S.QUOTE_SENT)

    async def test_full_pipeline_stamps_financial_markers(self):
        ticket = await self.create()
        await self.move(
            ticket.id,
            S.REVIEWING_REQUEST,
            S.PREPARING_QUOTE,
            S.QUOTE_SENT,
            S.QUOTE_APPROVED,
            S.DEPOSIT_INVOICE_SENT,
        )
        current = await svc.get_ticket(self.db, ticket.id)
        self.assertIsNotNone(current.deposit_invoice_sent_at)
        self.assertIsNone(current.deposit_received_at)
        self.assertEqual(current.client_status, ClientStatus.AWAITING_YOUR_RESPONSE)

        await self.move(
            ticket.id,
            S.DEPOSIT_RECEIVED,
            S.IN_PRODUCTION,
            S.QUALITY_CONTROL,
            S.FINAL_INVOICE_SENT,
            S.FINAL_PAYMENT_RECEIVED,
            S.SHIPPED,
            S.COMPLETED,
        )

        done = await svc.get_ticket(self.db, ticket.id)
        self.assertEqual(done.status, S.COMPLETED)
        self.assertEqual(done.client_status, ClientStatus.COMPLETED)
        self.assertIsNotNone(done.deposit_received_at)
        self.assertIsNotNone(done.final_payment_received_at)
        self.assertIsNotNone(done.completed_at)
        self.assertEqual(await self.history_len(ticket.id), 13)

    async def test_production_without_deposit_is_blocked(self):
        ticket = await self.create()
        await self.move(ticket.id, S.ON_HOLD, reason="client travelling")
        before = await self.history_len(ticket.id)

        with self.assertRaises(InvalidState):
            await self.move(ticket.id, S.IN_PRODUCTION)

        self.assertEqual(await self.history_len(ticket.id), before)
        held = await svc.get_ticket(self.db, ticket.id)
        self.assertEqual(held.status, S.ON_HOLD)
        self.assertEqual(held.on_hold_reason, "client travelling")

    async def test_pickup_without_final_payment_is_blocked(self):
        ticket = await self.create()
        await self.move(ticket.id, S.WAITING_FOR_CLIENT)

        with self.assertRaises(InvalidState):
            await self.move(ticket.id, S.READY_FOR_PICKUP)

    async def test_paid_ticket_cannot_become_dead_lead(self):
        ticket = await self.create()
        await self.move(
            ticket.id,
            S.REVIEWING_REQUEST,
            S.PREPARING_QUOTE,
            S.QUOTE_SENT,
            S.QUOTE_APPROVED,
            S.DEPOSIT_INVOICE_SENT,
            S.DEPOSIT_RECEIVED,
            S.ON_HOLD,
        )

        with self.assertRaises(InvalidState):
            await self.move(ticket.id, S.DEAD_LEAD)

        resumed = await self.move(ticket.id, S.IN_PRODUCTION)
        self.assertEqual(resumed.status, S.IN_PRODUCTION)

    async def test_resume_clears_hold_reason(self):
        ticket = await self.create()
        await self.move(ticket.id, S.ON_HOLD, reason="waiting on stones")
        await self.move(ticket.id, S.SKETCHING)

        current = await svc.get_ticket(self.db, ticket.id)
        self.assertIsNone(current.on_hold_reason)

    async def test_terminal_ticket_rejects_every_transition(self):
        ticket = await self.create()
        await self.move(ticket.id, S.CANCELLED, reason="client withdrew")
        before = await self.history_len(ticket.id)

        for target in (S.PENDING, S.REVIEWING_REQUEST, S.ON_HOLD, S.COMPLETED):
            with self.assertRaises(InvalidTransition):
                await self.move(ticket.id, target)

        self.assertEqual(await self.history_len(ticket.id), before)
        cancelled = await svc.get_ticket(self.db, ticket.id)
        self.assertEqual(cancelled.cancellation_reason, "client withdrew")
        self.assertEqual(cancelled.client_status, ClientStatus.CANCELLED_NO_RESPONSE)

    async def test_expected_status_mismatch_is_rejected(self):
        ticket = await self.create()
        await self.move(ticket.id, S.REVIEWING_REQUEST)

        with self.assertRaises(InvalidTransition):
            await svc.transition_ticket(
                self.db,
                ticket.id,
                TicketTransitionRequest(status=S.IN_CONSULTATION, expected_status=S.PENDING),
                self.staff,
            )

        self.assertEqual(await self.history_len(ticket.id), 2)


class TestConcurrentTransitions(TicketServiceTestCase):

    async def test_stale_read_loses_to_committed_transition(self):
        ticket = await self.create()
        read_ticket = svc._get_ticket
        raced = False

        async def read_then_get_overtaken(db, ticket_id):
            # the loser holds a live instance read while the ticket was pending
            nonlocal raced
            loaded = await read_ticket(db, ticket_id)
            if not raced:
                raced = True
                async with self.Session() as other:
                    await svc.transition_ticket(
                        other,
                        ticket_id,
                        TicketTransitionRequest(status=S.REVIEWING_REQUEST),
                        self.staff,
                    )
            return loaded

        with patch.object(svc, "_get_ticket", read_then_get_overtaken):
            with self.assertRaises(InvalidTransition) as ctx:
                await svc.transition_ticket(
                    self.db,
                    ticket.id,
                    TicketTransitionRequest(status=S.IN_CONSULTATION, expected_status=S.PENDING),
                    self.admin,
                )

        self.assertTrue(raced)
        self.assertIn("concurrently", ctx.exception.message)
        self.assertEqual(
            ctx.exception.details,
            {"current_status": "pending", "requested_status": "in-consultation"},
        )
        self.assertEqual(await self.history_len(ticket.id), 2)

        # the losing session stays usable
        current = await svc.get_ticket(self.db, ticket.id)
        self.assertEqual(current.status, S.REVIEWING_REQUEST)
        self.assertEqual(current.version, 2)


class TestReopen(TicketServiceTestCase):

    async def cancelled_ticket(self):
        ticket = await self.create()
        await self.move(ticket.id, S.CANCELLED)
        return ticket

    async def test_admin_reopen_is_recorded_as_override(self):
        ticket = await self.cancelled_ticket()

        result = await svc.reopen_ticket(
            self.db,
            ticket.id,
            TicketReopenRequest(status=S.IN_CONSULTATION, reason="client came back"),
            self.admin,
        )

        self.assertEqual(result.status, S.IN_CONSULTATION)
        self.assertTrue(result.status_history_entry.is_override)
        self.assertEqual(result.status_history_entry.from_status, S.CANCELLED)
        self.assertEqual(await self.history_len(ticket.id), 3)

        reopened = await svc.get_ticket(self.db, ticket.id)
        self.assertIsNone(reopened.cancelled_at)

    async def test_staff_cannot_reopen(self):
        ticket = await self.cancelled_ticket()

        with self.assertRaises(PermissionDenied):
            await svc.reopen_ticket(
                self.db,
                ticket.id,
                TicketReopenRequest(status=S.IN_CONSULTATION, reason="please"),
                self.staff,
            )

    async def test_reopen_requires_closed_ticket_and_open_target(self):
        ticket = await self.create()

        with self.assertRaises(InvalidState):
            await svc.reopen_ticket(
                self.db,
                ticket.id,
                TicketReopenRequest(status=S.IN_CONSULTATION, reason="x"),
                self.admin,
            )

        await self.move(ticket.id, S.DEAD_LEAD)

        with self.assertRaises(InvalidTransition):
            await svc.reopen_ticket(
                self.db,
                ticket.id,
                TicketReopenRequest(status=S.COMPLETED, reason="x"),
                self.admin,
            )

    async def test_blank_reason_rejected(self):
        ticket = await self.cancelled_ticket()

        with self.assertRaises(InvalidState):
            await svc.reopen_ticket(
                self.db,
                ticket.id,
                TicketReopenRequest(status=S.IN_CONSULTATION, reason="   "),
                self.admin,
            )


class TestNotifications(TicketServiceTestCase):

    async def test_events_delivered_after_commit(self):
        received = []

        async def collector(event):
            received.append(event)

        transition_events.register_transition_handler(collector)
        self.addCleanup(transition_events.unregister_transition_handler, collector)

        ticket = await self.create()
        await self.move(ticket.id, S.REVIEWING_REQUEST)
        await transition_events.drain_pending_notifications()

        self.assertEqual(len(received), 1)
        self.assertEqual(received[0].ticket_id, ticket.id)
        self.assertEqual(received[0].from_status, S.PENDING)
        self.assertEqual(received[0].to_status, S.REVIEWING_REQUEST)
        self.assertEqual(received[0].actor, self.staff.username)

    async def test_failing_handler_does_not_fail_transition(self):
        async def broken(event):
            raise RuntimeError("mail server down")

        transition_events.register_transition_handler(broken)
        self.addCleanup(transition_events.unregister_transition_handler, broken)

        ticket = await self.create()

        with self.assertLogs("app.services.notifications.transition_events", level="ERROR"):
            result = await self.move(ticket.id, S.REVIEWING_REQUEST)
            await transition_events.drain_pending_notifications()

        self.assertEqual(result.status, S.REVIEWING_REQUEST)
        self.assertEqual(await self.history_len(ticket.id), 2)

    async def test_rejected_transition_emits_nothing(self):
        received = []

        async def collector(event):
            received.append(event)

        transition_events.register_transition_handler(collector)
        self.addCleanup(transition_events.unregister_transition_handler, collector)

        ticket = await self.create()
        with self.assertRaises(InvalidTransition):
            await self.move(ticket.id, S.COMPLETED)
        await transition_events.drain_pending_notifications()

        self.assertEqual(received, [])


if __name__ == "__main__":
    unittest.main()
