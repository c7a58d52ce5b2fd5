import unittest

from fakes import BackofficeTestCase
from sqlalchemy import select

from eduguide.modules.referrals.models import ReferralCode, ReferralAttribution


class ReferralTests(BackofficeTestCase):
    def setUp(self):
        super().setUp()
        self.student = self.user("stu-1", email="Jane.Doe+test@example.com")

    def test_code_is_created_once(self):
        first = self.client.get("/api/referral", headers=self.student)
        self.assertEqual(first.status_code, 200, first.text)
        body = first.json()
        self.assertRegex(body["code"], r"^janedoet-[a-z0-9]{6}$")
        self.assertEqual(body["shareUrl"], f"https://eduguide.test/tutoring?ref={body['code']}")
        self.assertEqual(body["clicks"], 0)

        second = self.client.get("/api/referral", headers=self.student).json()
        self.assertEqual(second["code"], body["code"])
        self.assertEqual(len(self.all(select(ReferralCode))), 1)

    def test_referral_requires_auth(self):
        self.assertEqual(self.client.get("/api/referral").status_code, 401)

    def test_click_counts_and_attributes(self):
        code = self.client.get("/api/referral", headers=self.student).json()["code"]
        for _ in range(2):
            response = self.client.post(
                "/api/referral/click",
                json={"code": f"  {code.upper()} ", "visitor_id": "v" * 100, "utm_source": "newsletter"},
            )
            self.assertEqual(response.json(), {"ok": True})

        self.assertEqual(self.one(ReferralCode, code=code).clicks, 2)
        attributions = self.all(select(ReferralAttribution))
        self.assertEqual(len(attributions), 2)
        self.assertEqual(attributions[0].referrer_user_id, "stu-1")
        self.assertEqual(len(attributions[0].visitor_id), 64)
        self.assertEqual(attributions[0].utm_source, "newsletter")

    def test_click_without_code_is_400(self):
        response = self.client.post("/api/referral/click", json={"code": "  "})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Missing code")


class CheckoutNotConfiguredTests(BackofficeTestCase):
    def test_checkout_is_501_without_payments(self):
        response = self.client.post("/api/checkout", json={"amount": 5000, "plan": "Starter"})
        self.assertEqual(response.status_code, 501)

    def test_session_status_checks_configuration_first(self):
        response = self.client.get("/api/checkout/session-status")
        self.assertEqual(response.status_code, 501)


class CheckoutTests(BackofficeTestCase):
    payments_configured = True

    def checkout(self, **body):
        return self.client.post("/api/checkout", json=body)

    def test_amount_must_be_a_positive_integer(self):
        for amount in (None, 0, -5, 12.5, "100", True):
            response = self.checkout(amount=amount, plan="Starter")
            self.assertEqual(response.status_code, 400, amount)
            self.assertEqual(response.json()["error"], "Invalid amount")
        self.assertEqual(self.payments.created, [])

    def test_plain_checkout(self):
        response = self.checkout(amount=5000, plan="Starter")
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["url"], "https://checkout.test/cs_test_1")
        call = self.payments.created[0]
        self.assertEqual(call["line_items"][0]["price_data"]["unit_amount"], 5000)
        self.assertIsNone(call["discounts"])
        self.assertTrue(call["success_url"].startswith("https://eduguide.test/tutoring?success=true"))

    def test_unknown_referral_code_creates_no_session(self):
        response = self.checkout(amount=5000, plan="Starter", referralCode="nobody-123456")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid referral code.")
        self.assertEqual(self.payments.created, [])

    def test_referral_code_applies_coupon(self):
        code = self.client.get("/api/referral", headers=self.user("ref-1", email="pat@example.com")).json()["code"]
        response = self.checkout(amount=5000, plan="Starter", referralCode=code.upper())
        self.assertEqual(response.status_code, 200, response.text)
        call = self.payments.created[0]
        self.assertEqual(call["discounts"], [{"coupon": "coupon_referral"}])
        self.assertEqual(call["metadata"]["referral_code"], code)
        self.assertEqual(call["metadata"]["referrer_user_id"], "ref-1")

    def test_session_status(self):
        self.assertEqual(self.client.get("/api/checkout/session-status").status_code, 400)

        self.payments.sessions["cs_1"] = {
            "status": "complete",
            "payment_status": "paid",
            "customer_details": {"email": "pat@example.com"},
            "metadata": {"plan": "Starter"},
        }
        body = self.client.get("/api/checkout/session-status", params={"session_id": "cs_1"}).json()
        self.assertEqual(body, {"status": "complete", "payment_status": "paid", "customer_email": "pat@example.com", "plan": "Starter"})


if __name__ == "__main__":
    unittest.main()
