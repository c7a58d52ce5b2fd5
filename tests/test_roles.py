import unittest

from fakes import BackofficeTestCase
from sqlalchemy import select, update

from eduguide.modules.audit.models import AdminAuditLog
from eduguide.modules.roles.models import UserRole


class RoleManagementTests(BackofficeTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.super_admin("root-1")

    def assign(self, **body):
        return self.client.post("/api/backoffice/roles", json=body, headers=self.admin)

    def test_assign_staff_level_by_user_id(self):
        self.user("u-1")
        response = self.assign(userId="u-1", role="staff", staffLevel="tutor")
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["staffLevel"], "tutor")

        row = self.one(UserRole, user_id="u-1")
        self.assertEqual((row.role, row.staff_level), ("staff", "tutor"))
        audit = self.one(AdminAuditLog, action="assign_user_role")
        self.assertEqual(audit.target, "u-1")
        self.assertEqual(audit.actor_user_id, "root-1")
        self.assertIn(("u-1", {"role": "staff", "staff_level": "tutor"}), self.identity.metadata_updates)

    def test_assign_by_email(self):
        self.user("u-2", email="Jane@Example.com")
        response = self.assign(email="jane@example.com", role="student")
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(self.one(UserRole, user_id="u-2").role, "student")

    def test_unknown_email_is_404(self):
        response = self.assign(email="ghost@example.com", role="staff", staffLevel="tutor")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Target user not found")

    def test_validation_messages(self):
        self.assertEqual(self.assign(userId="u-1").json()["error"], "role is required")
        self.assertEqual(self.assign(userId="u-1", role="wizard").json()["error"], "Invalid role")
        response = self.assign(userId="u-1", role="staff", staffLevel="janitor")
        self.assertEqual(response.status_code, 400)
        self.assertIn("staffLevel is required", response.json()["error"])

    def test_second_super_admin_needs_transfer_flag(self):
        self.user("u-3", "staff", "tutor")
        response = self.assign(userId="u-3", role="staff", staffLevel="super_admin")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["existingSuperAdminUserId"], "root-1")

        self.assertEqual(self.one(UserRole, user_id="root-1").staff_level, "super_admin")
        self.assertEqual(self.one(UserRole, user_id="u-3").staff_level, "tutor")

    def test_transfer_demotes_previous_holder(self):
        self.user("u-4", "staff", "manager")
        response = self.assign(userId="u-4", role="staff", staffLevel="super_admin", transferSuperAdmin=True)
        self.assertEqual(response.status_code, 200, response.text)

        self.assertEqual(self.one(UserRole, user_id="root-1").staff_level, "manager")
        self.assertEqual(self.one(UserRole, user_id="u-4").staff_level, "super_admin")
        self.assertEqual(len(self.all_super_admins()), 1)

    def all_super_admins(self):
        return self.all(select(UserRole).where(UserRole.staff_level == "super_admin"))

    def test_sole_super_admin_cannot_step_down_without_successor(self):
        for body in ({"role": "student"}, {"role": "staff", "staffLevel": "manager"}):
            response = self.assign(userId="root-1", **body)
            self.assertEqual(response.status_code, 409, response.text)
            self.assertEqual(response.json()["existingSuperAdminUserId"], "root-1")

        row = self.one(UserRole, user_id="root-1")
        self.assertEqual((row.role, row.staff_level), ("staff", "super_admin"))
        self.assertEqual(self.identity.metadata_updates, [])

    def test_reassigning_super_admin_to_itself_is_allowed(self):
        response = self.assign(userId="root-1", role="staff", staffLevel="super_admin")
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(len(self.all_super_admins()), 1)

    def test_legacy_admin_row_counts_as_the_super_admin(self):
        self.execute(update(UserRole).where(UserRole.user_id == "root-1").values(role="admin", staff_level=None))
        self.user("u-5", "staff", "support")

        response = self.assign(userId="u-5", role="staff", staffLevel="super_admin")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["existingSuperAdminUserId"], "root-1")

        response = self.assign(userId="u-5", role="staff", staffLevel="super_admin", transferSuperAdmin=True)
        self.assertEqual(response.status_code, 200, response.text)
        row = self.one(UserRole, user_id="root-1")
        self.assertEqual((row.role, row.staff_level), ("staff", "manager"))
        self.assertEqual([r.user_id for r in self.all_super_admins()], ["u-5"])

    def test_manager_cannot_manage_roles(self):
        headers = self.manager("mgr-1")
        response = self.client.get("/api/backoffice/roles", headers=headers)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"], "Forbidden")

    def test_super_admin_without_mfa_gets_role_management_message(self):
        headers = self.user("root-2", app_metadata={"role": "admin"}, aal="aal1")
        response = self.client.get("/api/backoffice/roles", headers=headers)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"], "MFA required for role management")

    def test_staff_directory_joins_emails(self):
        self.user("t-1", "staff", "tutor", email="tutor@example.com")
        self.user("s-1", "staff", "support")
        response = self.client.get("/api/backoffice/staff", params={"level": "tutor"}, headers=self.manager())
        self.assertEqual(response.status_code, 200, response.text)
        staff = response.json()["staff"]
        self.assertEqual([s["userId"] for s in staff], ["t-1"])
        self.assertEqual(staff[0]["email"], "tutor@example.com")


if __name__ == "__main__":
    unittest.main()
