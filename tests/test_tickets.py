import uuid
import unittest
from datetime import timedelta

from fakes import BackofficeTestCase, CRON_TOKEN
from fastapi import HTTPException
from sqlalchemy import select, update

from eduguide.core.base import utcnow
from eduguide.core.security import build_access_context
from eduguide.modules.events.outbox import EventOutbox, relay_once
from eduguide.modules.intake.models import SupportRequest
from eduguide.modules.tickets.models import Ticket, TicketEvent
from eduguide.modules.tickets.schemas import TicketStatusChange
from eduguide.modules.tickets.service import TicketService
from eduguide.platform.ports.identity import IdentityUser


class TicketWorkflowTests(BackofficeTestCase):
    def setUp(self):
        super().setUp()
        self.mgr = self.manager("mgr-1")
        self.support_agent = self.user("sup-1", "staff", "support")
        self.tutor = self.user("tut-1", "staff", "tutor")

    def events(self, ticket_id: str) -> list[TicketEvent]:
        return self.all(
            select(TicketEvent).where(TicketEvent.ticket_id == uuid.UUID(ticket_id)).order_by(TicketEvent.created_at)
        )

    def assign(self, ticket_id: str, assignee: str, team: str, headers=None):
        return self.client.post(
            "/api/backoffice/tickets/assign",
            json={"ticketId": ticket_id, "assigneeUserId": assignee, "assignedTeam": team},
            headers=headers or self.mgr,
        )

    def set_status(self, ticket_id: str, status: str, headers=None, **extra):
        return self.client.post(
            "/api/backoffice/tickets/status",
            json={"ticketId": ticket_id, "status": status, **extra},
            headers=headers or self.mgr,
        )

    def test_create_assign_resolve(self):
        ticket = self.create_ticket(self.mgr, title="Billing question", priority="medium")
        self.assertEqual(ticket["status"], "new")
        self.assertIsNotNone(ticket["resolution_due_at"])
        self.assertEqual([e.action for e in self.events(ticket["id"])], ["ticket_created"])

        response = self.assign(ticket["id"], "sup-1", "support")
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["ticket"]["status"], "assigned")
        assigned = [e for e in self.events(ticket["id"]) if e.action == "ticket_assigned"]
        self.assertEqual(len(assigned), 1)
        self.assertEqual(assigned[0].old_status, "new")
        self.assertEqual(assigned[0].new_assignee_user_id, "sup-1")
        self.assertEqual(assigned[0].details["assignment_mode"], "manual_override")

        response = self.set_status(ticket["id"], "resolved", headers=self.support_agent, note="refunded")
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()["ticket"]
        self.assertEqual(body["status"], "resolved")
        self.assertIsNotNone(body["resolved_at"])
        changed = self.events(ticket["id"])[-1]
        self.assertEqual((changed.action, changed.old_status, changed.new_status), ("status_changed", "assigned", "resolved"))
        self.assertEqual(changed.details, {"note": "refunded"})

    def test_title_is_required(self):
        response = self.client.post("/api/backoffice/tickets", json={"title": "   "}, headers=self.mgr)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "title is required")

    def test_unknown_priority_falls_back_to_medium(self):
        ticket = self.create_ticket(self.mgr, priority="critical")
        self.assertEqual(ticket["priority"], "medium")

    def test_assignee_must_hold_team_level(self):
        ticket = self.create_ticket(self.mgr)
        response = self.assign(ticket["id"], "tut-1", "support")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Assignee does not match required staff level for this team")

        row = self.one(Ticket, id=uuid.UUID(ticket["id"]))
        self.assertIsNone(row.assigned_to_user_id)
        self.assertEqual(row.status, "new")
        self.assertEqual(len(self.events(ticket["id"])), 1)

    def test_assign_requires_manager(self):
        ticket = self.create_ticket(self.mgr)
        response = self.assign(ticket["id"], "sup-1", "support", headers=self.support_agent)
        self.assertEqual(response.status_code, 403)

    def test_assignment_does_not_rewind_status(self):
        ticket = self.create_ticket(self.mgr)
        self.set_status(ticket["id"], "in_progress")
        response = self.assign(ticket["id"], "tut-1", "tutor")
        self.assertEqual(response.json()["ticket"]["status"], "in_progress")

    def test_invalid_status_is_rejected(self):
        ticket = self.create_ticket(self.mgr)
        response = self.set_status(ticket["id"], "done")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.one(Ticket, id=uuid.UUID(ticket["id"])).status, "new")

    def test_closed_stamps_closed_at(self):
        ticket = self.create_ticket(self.mgr)
        body = self.set_status(ticket["id"], "closed").json()["ticket"]
        self.assertIsNotNone(body["closed_at"])
        self.assertIsNone(body["resolved_at"])

    def test_staff_only_see_their_own_tickets(self):
        mine = self.create_ticket(self.mgr, title="Mine")
        other = self.create_ticket(self.mgr, title="Other")
        self.assign(mine["id"], "sup-1", "support")

        listed = self.client.get("/api/backoffice/tickets", headers=self.support_agent).json()["tickets"]
        self.assertEqual([t["id"] for t in listed], [mine["id"]])

        response = self.set_status(other["id"], "in_progress", headers=self.support_agent)
        self.assertEqual(response.status_code, 404)

        everything = self.client.get("/api/backoffice/tickets", headers=self.mgr).json()["tickets"]
        self.assertEqual(len(everything), 2)
        unassigned = self.client.get("/api/backoffice/tickets", params={"unassigned": "true"}, headers=self.mgr).json()["tickets"]
        self.assertEqual([t["id"] for t in unassigned], [other["id"]])

    def test_queue_filters_are_validated(self):
        response = self.client.get("/api/backoffice/tickets", params={"status": "bogus"}, headers=self.mgr)
        self.assertEqual(response.status_code, 400)

    def test_event_history(self):
        ticket = self.create_ticket(self.mgr)
        response = self.client.get("/api/backoffice/tickets/events", params={"ticketId": ticket["id"]}, headers=self.mgr)
        self.assertEqual(response.status_code, 200)
        events = response.json()["events"]
        self.assertEqual(events[0]["action"], "ticket_created")
        self.assertEqual(events[0]["metadata"]["source_type"], "manual")

        response = self.client.get("/api/backoffice/tickets/events", params={"ticketId": str(uuid.uuid4())}, headers=self.mgr)
        self.assertEqual(response.status_code, 404)

    def test_support_request_status_propagates(self):
        request_id = uuid.uuid4()

        async def seed():
            async with self.Session() as session:
                session.add(SupportRequest(id=request_id, user_id="stu-1", message="help", status="new"))
                await session.commit()

        self.wait(seed())
        ticket = self.create_ticket(self.mgr)
        self.execute(
            update(Ticket)
            .where(Ticket.id == uuid.UUID(ticket["id"]))
            .values(source_type="support_request", source_id=str(request_id))
        )

        self.assign(ticket["id"], "sup-1", "support")
        self.assertEqual(self.one(SupportRequest, id=request_id).status, "in_progress")

        response = self.set_status(ticket["id"], "resolved")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.one(SupportRequest, id=request_id).status, "resolved")

    def test_broken_source_link_does_not_fail_status_change(self):
        ticket = self.create_ticket(self.mgr)
        self.execute(
            update(Ticket)
            .where(Ticket.id == uuid.UUID(ticket["id"]))
            .values(source_type="tutoring_request", source_id="not-a-uuid")
        )
        response = self.set_status(ticket["id"], "in_progress")
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["ticket"]["status"], "in_progress")

    def test_stale_writer_gets_409_and_nothing_is_recorded(self):
        ticket = self.create_ticket(self.mgr)
        ticket_id = uuid.UUID(ticket["id"])
        actor = build_access_context(IdentityUser(id="mgr-1"), "staff", "manager", "aal2")

        async def race():
            async with self.Session() as session:
                await session.get(Ticket, ticket_id)
                async with self.Session() as other:
                    row = await other.get(Ticket, ticket_id)
                    row.status = "in_progress"
                    await other.commit()
                try:
                    await TicketService(session).change_status(
                        actor, TicketStatusChange(ticket_id=ticket_id, status="resolved")
                    )
                except HTTPException as exc:
                    return exc
            return None

        exc = self.wait(race())
        self.assertIsNotNone(exc)
        self.assertEqual((exc.status_code, exc.detail), (409, "Ticket was modified concurrently"))
        self.assertEqual(self.one(Ticket, id=ticket_id).status, "in_progress")
        self.assertEqual([e.action for e in self.events(ticket["id"])], ["ticket_created"])

    def test_events_are_relayed_through_the_outbox(self):
        ticket = self.create_ticket(self.mgr)
        pending = self.all(select(EventOutbox).where(EventOutbox.status == "pending"))
        self.assertEqual([p.event_type for p in pending], ["TICKET_TICKET_CREATED"])

        async def relay():
            async with self.Session() as session:
                return await relay_once(session)

        self.assertEqual(self.wait(relay()), 1)
        topic, key, value = self.bus.published[0]
        self.assertEqual(topic, "backoffice.events")
        self.assertEqual(key, ticket["id"])
        self.assertEqual(value["payload"]["action"], "ticket_created")
        self.assertEqual(self.all(select(EventOutbox.status)), ["sent"])


class EscalationTests(BackofficeTestCase):
    def setUp(self):
        super().setUp()
        self.mgr = self.manager("mgr-1")

    def run_job(self, token=CRON_TOKEN):
        headers = {"x-backoffice-cron-token": token} if token else {}
        return self.client.post("/api/internal/backoffice/escalations", headers=headers)

    def test_cron_token_is_required(self):
        self.assertEqual(self.run_job(token=None).status_code, 401)
        self.assertEqual(self.run_job(token="wrong").status_code, 401)

    def test_overdue_open_tickets_escalate_once(self):
        overdue = self.create_ticket(self.mgr, title="Late", priority="high")
        self.create_ticket(self.mgr, title="On time")
        done = self.create_ticket(self.mgr, title="Done", priority="low")
        self.client.post("/api/backoffice/tickets/status", json={"ticketId": done["id"], "status": "resolved"}, headers=self.mgr)

        past = utcnow() - timedelta(hours=1)
        self.execute(
            update(Ticket)
            .where(Ticket.id.in_([uuid.UUID(overdue["id"]), uuid.UUID(done["id"])]))
            .values(resolution_due_at=past)
        )

        response = self.run_job()
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["escalatedCount"], 1)
        self.assertIn("ranAt", body)

        row = self.one(Ticket, id=uuid.UUID(overdue["id"]))
        self.assertEqual(row.priority, "urgent")
        self.assertIsNotNone(row.escalated_at)
        escalated = self.one(TicketEvent, ticket_id=row.id, action="ticket_escalated")
        self.assertIsNone(escalated.actor_user_id)
        self.assertEqual(escalated.details["from_priority"], "high")

        self.assertEqual(self.run_job().json()["escalatedCount"], 0)

    def test_escalation_run_racing_a_ticket_update_is_rolled_back(self):
        ticket = self.create_ticket(self.mgr, priority="low")
        ticket_id = uuid.UUID(ticket["id"])
        self.execute(update(Ticket).where(Ticket.id == ticket_id).values(resolution_due_at=utcnow() - timedelta(hours=1)))

        async def race():
            async with self.Session() as session:
                await session.get(Ticket, ticket_id)
                async with self.Session() as other:
                    row = await other.get(Ticket, ticket_id)
                    row.status = "in_progress"
                    await other.commit()
                try:
                    await TicketService(session).escalate_overdue()
                except HTTPException as exc:
                    return exc.status_code
            return None

        self.assertEqual(self.wait(race()), 409)
        row = self.one(Ticket, id=ticket_id)
        self.assertEqual((row.priority, row.escalated_at), ("low", None))
        self.assertEqual(self.run_job().json()["escalatedCount"], 1)


if __name__ == "__main__":
    unittest.main()
