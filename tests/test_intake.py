import uuid
import unittest

from fakes import BackofficeTestCase
from sqlalchemy import select

from eduguide.modules.intake.models import TutoringRequest, SupportRequest
from eduguide.modules.tickets.models import Ticket, TicketMessage


class TutoringRequestTests(BackofficeTestCase):
    def setUp(self):
        super().setUp()
        self.student = self.user("stu-1", email="sam@example.com")

    def test_request_opens_a_tutor_ticket(self):
        response = self.client.post(
            "/api/tutoring-requests",
            json={"category": "essays", "subject": "  Personal statement review  ", "priority": "asap"},
            headers=self.student,
        )
        self.assertEqual(response.status_code, 201, response.text)
        body = response.json()
        self.assertEqual(body["request"]["subject"], "Personal statement review")
        self.assertEqual(body["request"]["priority"], "medium")
        ticket = body["ticket"]
        self.assertEqual(ticket["source_type"], "tutoring_request")
        self.assertEqual(ticket["source_id"], body["request"]["id"])
        self.assertEqual(ticket["assigned_team"], "tutor")
        self.assertEqual(ticket["student_user_id"], "stu-1")

        listed = self.client.get("/api/tutoring-requests", headers=self.student).json()["requests"]
        self.assertEqual(len(listed), 1)

    def test_unknown_category_becomes_general(self):
        response = self.client.post(
            "/api/tutoring-requests", json={"category": "astrology", "subject": "Charts"}, headers=self.student
        )
        self.assertEqual(response.json()["request"]["category"], "general")

    def test_subject_length_is_checked(self):
        response = self.client.post(
            "/api/tutoring-requests", json={"category": "essays", "subject": "hi"}, headers=self.student
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            "/api/tutoring-requests",
            json={"category": "essays", "subject": "Essay", "description": "x" * 2001},
            headers=self.student,
        )
        self.assertEqual(response.status_code, 400)

    def test_ticket_status_flows_back_to_the_request(self):
        mgr = self.manager("mgr-1")
        self.user("tut-1", "staff", "tutor")
        body = self.client.post(
            "/api/tutoring-requests", json={"category": "essays", "subject": "Essay review"}, headers=self.student
        ).json()
        request_id = uuid.UUID(body["request"]["id"])

        self.client.post(
            "/api/backoffice/tickets/assign",
            json={"ticketId": body["ticket"]["id"], "assigneeUserId": "tut-1", "assignedTeam": "tutor"},
            headers=mgr,
        )
        self.assertEqual(self.one(TutoringRequest, id=request_id).status, "assigned")

        self.client.post(
            "/api/backoffice/tickets/status",
            json={"ticketId": body["ticket"]["id"], "status": "waiting_on_student"},
            headers=mgr,
        )
        self.assertEqual(self.one(TutoringRequest, id=request_id).status, "in_progress")

        self.client.post(
            "/api/backoffice/tickets/status", json={"ticketId": body["ticket"]["id"], "status": "closed"}, headers=mgr
        )
        self.assertEqual(self.one(TutoringRequest, id=request_id).status, "completed")


class LiveSupportTests(BackofficeTestCase):
    def setUp(self):
        super().setUp()
        self.student = self.user("stu-1", email="sam.lee@example.com", user_metadata={"full_name": "Sam Lee"})

    def test_staff_are_turned_away(self):
        headers = self.user("sup-1", "staff", "support")
        response = self.client.post("/api/live-support/session", json={}, headers=headers)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"], "Live support widget is available for student accounts only.")

    def test_start_then_resume(self):
        self.assertIsNone(self.client.get("/api/live-support/session", headers=self.student).json()["ticket"])

        response = self.client.post("/api/live-support/session", json={"priority": "high"}, headers=self.student)
        self.assertEqual(response.status_code, 201, response.text)
        body = response.json()
        self.assertTrue(body["created"])
        self.assertEqual(body["ticket"]["assigned_team"], "support")
        self.assertEqual(body["ticket"]["priority"], "high")

        request = self.one(SupportRequest, user_id="stu-1")
        self.assertEqual(request.name, "Sam Lee")
        self.assertEqual(body["ticket"]["source_id"], str(request.id))
        messages = self.all(select(TicketMessage.body))
        self.assertEqual(messages, ["I would like to speak with a support agent."])

        again = self.client.post(
            "/api/live-support/session", json={"initialMessage": "Still there?"}, headers=self.student
        )
        self.assertEqual(again.status_code, 200)
        self.assertFalse(again.json()["created"])
        self.assertEqual(again.json()["ticket"]["id"], body["ticket"]["id"])
        self.assertEqual(len(self.all(select(Ticket))), 1)
        self.assertEqual(self.all(select(TicketMessage.body).order_by(TicketMessage.created_at))[-1], "Still there?")

        current = self.client.get("/api/live-support/session", headers=self.student).json()["ticket"]
        self.assertEqual(current["id"], body["ticket"]["id"])

    def test_post_without_body_uses_defaults(self):
        response = self.client.post("/api/live-support/session", headers=self.student)
        self.assertEqual(response.status_code, 201, response.text)
        self.assertEqual(response.json()["ticket"]["priority"], "medium")


if __name__ == "__main__":
    unittest.main()
