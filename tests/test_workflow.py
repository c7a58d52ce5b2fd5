import unittest
from datetime import datetime, timedelta, timezone

from eduguide.modules.tickets import workflow


class WorkflowRuleTests(unittest.TestCase):
    def test_assignment_only_advances_new_tickets(self):
        self.assertEqual(workflow.status_after_assignment("new"), "assigned")
        self.assertEqual(workflow.status_after_assignment("in_progress"), "in_progress")
        self.assertEqual(workflow.status_after_assignment("closed"), "closed")

    def test_source_status_mappings(self):
        self.assertEqual(workflow.tutoring_status_for("waiting_on_student"), "in_progress")
        self.assertEqual(workflow.tutoring_status_for("closed"), "completed")
        self.assertEqual(workflow.tutoring_status_for("new"), "new")
        self.assertEqual(workflow.support_status_for("assigned"), "in_progress")
        self.assertEqual(workflow.support_status_for("resolved"), "resolved")
        self.assertEqual(workflow.support_status_for("closed"), "closed")

    def test_sla_due_dates_follow_priority(self):
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        respond, resolve = workflow.sla_due_dates("urgent", start)
        self.assertEqual(respond - start, timedelta(hours=1))
        self.assertEqual(resolve - start, timedelta(hours=4))
        respond, resolve = workflow.sla_due_dates("bogus", start)
        self.assertEqual(resolve - start, timedelta(hours=48))

    def test_escalation_bumps_one_step_and_caps(self):
        self.assertEqual(workflow.escalated_priority("low"), "medium")
        self.assertEqual(workflow.escalated_priority("high"), "urgent")
        self.assertEqual(workflow.escalated_priority("urgent"), "urgent")

    def test_lifecycle_stamps(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        self.assertEqual(workflow.lifecycle_stamps("resolved", now), {"resolved_at": now})
        self.assertEqual(workflow.lifecycle_stamps("closed", now), {"closed_at": now})
        self.assertEqual(workflow.lifecycle_stamps("in_progress", now), {})


if __name__ == "__main__":
    unittest.main()
