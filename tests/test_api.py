"""
HTTP tests: drive the FastAPI app in-process against an in-memory database.
Run from project root: python -m pytest tests/test_api.py -v
"""
import unittest
from unittest import mock

from httpx import ASGITransport, AsyncClient

from config import settings
from database import get_db
from main import app
from services.notifications import get_notifier
from tests.helpers import DatabaseTestCase, RecordingNotifier

APPLICATION = {
    "fullName": "Maria Lopez",
    "email": "maria.lopez@example.com",
    "phone": "+1 (416) 555-0100",
    "address": "12 Dundas St W, Toronto, ON",
    "employmentStatus": "Employed",
    "monthlyIncome": 4200,
    "loanAmount": 5000,
    "loanPurpose": "Replace the delivery van engine",
}


class ApiTestCase(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.notifier = RecordingNotifier()

        async def override_get_db():
            async with self.sessionmaker() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_notifier] = lambda: self.notifier
        self.client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    async def asyncTearDown(self):
        await self.client.aclose()
        app.dependency_overrides.clear()
        await super().asyncTearDown()

    async def create_borrower(self, **overrides):
        body = {"name": "John Doe", "email": "john.doe@email.com", **overrides}
        res = await self.client.post("/api/borrowers", json=body)
        self.assertEqual(res.status_code, 201, res.text)
        return res.json()

    async def create_loan(self, borrower_id, amount=2000, rate=3):
        res = await self.client.post(
            "/api/loans",
            json={"borrowerId": borrower_id, "amount": amount, "interestRate": rate, "dueDate": "2099-01-01T00:00:00Z"},
        )
        self.assertEqual(res.status_code, 201, res.text)
        return res.json()


class TestBorrowersAndLoans(ApiTestCase):
    async def test_health(self):
        res = await self.client.get("/health")
        self.assertEqual(res.json(), {"status": "ok"})

    async def test_duplicate_email_rejected(self):
        await self.create_borrower()
        res = await self.client.post("/api/borrowers", json={"name": "Other", "email": "JOHN.DOE@email.com"})
        self.assertEqual(res.status_code, 400)
        self.assertIn("already exists", res.json()["detail"])

    async def test_list_borrowers_paginates_and_searches(self):
        await self.create_borrower()
        await self.create_borrower(name="Jane Smith", email="jane@email.com")
        res = await self.client.get("/api/borrowers", params={"search": "jane", "limit": 1})
        body = res.json()
        self.assertEqual([b["name"] for b in body["borrowers"]], ["Jane Smith"])
        self.assertEqual(body["pagination"], {"page": 1, "limit": 1, "total": 1, "pages": 1})

    async def test_loan_shows_derived_figures(self):
        borrower = await self.create_borrower()
        loan = await self.create_loan(borrower["id"])
        self.assertEqual(loan["totalOwed"], 2060.0)
        self.assertEqual(loan["balance"], 2060.0)
        self.assertEqual(loan["status"], "ACTIVE")
        self.assertEqual(loan["borrower"]["name"], "John Doe")

        res = await self.client.get(f"/api/loans/{loan['id']}")
        self.assertEqual(res.status_code, 200)
        self.assertIn("daysUntilDue", res.json())

    async def test_loan_for_unknown_borrower(self):
        res = await self.client.post(
            "/api/loans", json={"borrowerId": "brw-missing", "amount": 100, "dueDate": "2099-01-01T00:00:00Z"}
        )
        self.assertEqual(res.status_code, 404)

    async def test_negative_amount_is_validation_error(self):
        borrower = await self.create_borrower()
        res = await self.client.post(
            "/api/loans", json={"borrowerId": borrower["id"], "amount": -5, "dueDate": "2099-01-01T00:00:00Z"}
        )
        self.assertEqual(res.status_code, 422)

    async def test_borrower_with_open_loan_cannot_be_deleted(self):
        borrower = await self.create_borrower()
        await self.create_loan(borrower["id"])
        res = await self.client.delete(f"/api/borrowers/{borrower['id']}")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["detail"], "Cannot delete borrower with active loans")

    async def test_schedule_and_risk(self):
        borrower = await self.create_borrower()
        loan = await self.create_loan(borrower["id"], amount=1200, rate=0)
        res = await self.client.get(f"/api/loans/{loan['id']}/schedule", params={"termMonths": 12})
        body = res.json()
        self.assertEqual(body["monthlyPayment"], 100.0)
        self.assertEqual(len(body["schedule"]), 12)
        res = await self.client.get(f"/api/loans/{loan['id']}/risk")
        self.assertEqual(res.json()["riskLevel"], "LOW")


class TestPayments(ApiTestCase):
    async def test_overpayment_rejected_and_balance_unchanged(self):
        borrower = await self.create_borrower()
        loan = await self.create_loan(borrower["id"])
        res = await self.client.post("/api/payments", json={"loanId": loan["id"], "amount": 1000})
        self.assertEqual(res.status_code, 201, res.text)
        self.assertEqual(res.json()["loan"]["balance"], 1060.0)

        res = await self.client.post("/api/payments", json={"loanId": loan["id"], "amount": 1060.01})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["detail"], "Payment amount exceeds remaining balance")

        res = await self.client.get(f"/api/loans/{loan['id']}")
        self.assertEqual(res.json()["balance"], 1060.0)
        self.assertEqual(len(res.json()["payments"]), 1)

    async def test_paying_off_and_deleting_payment(self):
        borrower = await self.create_borrower()
        loan = await self.create_loan(borrower["id"])
        await self.client.post("/api/payments", json={"loanId": loan["id"], "amount": 1000})
        res = await self.client.post("/api/payments", json={"loanId": loan["id"], "amount": 1060})
        self.assertEqual(res.json()["loan"]["status"], "PAID")

        res = await self.client.delete(f"/api/payments/{res.json()['id']}")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["loan"]["status"], "ACTIVE")
        self.assertEqual(res.json()["loan"]["balance"], 1060.0)

        res = await self.client.get("/api/payments", params={"loanId": loan["id"]})
        self.assertEqual(res.json()["pagination"]["total"], 1)

    async def test_loan_with_payments_cannot_be_deleted(self):
        borrower = await self.create_borrower()
        loan = await self.create_loan(borrower["id"])
        await self.client.post("/api/payments", json={"loanId": loan["id"], "amount": 10})
        res = await self.client.delete(f"/api/loans/{loan['id']}")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["detail"], "Cannot delete loan with existing payments")


class TestLoanApplications(ApiTestCase):
    async def patch(self, application_id, body):
        return await self.client.patch(f"/api/loan-applications/{application_id}", json=body)

    async def test_invalid_application_rejected_before_storage(self):
        res = await self.client.post("/api/loan-applications", json={**APPLICATION, "loanPurpose": "van"})
        self.assertEqual(res.status_code, 422)
        res = await self.client.get("/api/loan-applications")
        self.assertEqual(res.json()["pagination"]["total"], 0)
        self.assertEqual(self.notifier.sent, [])

    async def test_workflow_over_http(self):
        res = await self.client.post("/api/loan-applications", json=APPLICATION)
        self.assertEqual(res.status_code, 201, res.text)
        application_id = res.json()["id"]
        self.assertEqual(res.json()["status"], "SUBMITTED")

        steps = [
            {"action": "start_review", "reviewedBy": "staff-1"},
            {
                "action": "conditional_approve",
                "reviewedBy": "staff-1",
                "conditionalApprovalNotes": "Provide two pay stubs",
                "requiredDocuments": ["Pay stub"],
            },
            {"action": "sign_documents", "signedDocuments": ["Loan agreement"]},
            {"action": "final_approve", "finalApprovedBy": "manager-1"},
        ]
        for step in steps:
            res = await self.patch(application_id, step)
            self.assertEqual(res.status_code, 200, res.text)
        body = res.json()
        self.assertEqual(body["status"], "APPROVED")
        self.assertEqual(body["loan"]["borrower"]["email"], "maria.lopez@example.com")

        loan = (await self.client.get(f"/api/loans/{body['loanId']}")).json()
        self.assertEqual(loan["amount"], 5000.0)
        self.assertEqual(loan["interestRate"], 0.0)

        res = await self.patch(
            application_id,
            {"action": "disburse", "disbursedBy": "manager-1", "disbursementAmount": 5000, "disbursementMethod": "cheque"},
        )
        self.assertEqual(res.json()["status"], "DISBURSED")
        self.assertEqual(self.notifier.kinds(), ["application_received", "conditionally_approved", "approved"])

    async def test_wrong_state_returns_400(self):
        res = await self.client.post("/api/loan-applications", json=APPLICATION)
        application_id = res.json()["id"]
        res = await self.patch(
            application_id,
            {"action": "disburse", "disbursedBy": "manager-1", "disbursementAmount": 5000, "disbursementMethod": "cash"},
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["detail"], "Application must be approved before disbursement")
        res = await self.client.get(f"/api/loan-applications/{application_id}")
        self.assertEqual(res.json()["status"], "SUBMITTED")

    async def test_unknown_action_is_validation_error(self):
        res = await self.client.post("/api/loan-applications", json=APPLICATION)
        res = await self.patch(res.json()["id"], {"action": "approve_everything"})
        self.assertEqual(res.status_code, 422)

    async def test_missing_application(self):
        res = await self.client.get("/api/loan-applications/lapp-missing")
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["detail"], "Application not found")


class TestReportsAndCron(ApiTestCase):
    async def test_summary_report(self):
        borrower = await self.create_borrower()
        loan = await self.create_loan(borrower["id"])
        await self.client.post("/api/payments", json={"loanId": loan["id"], "amount": 500})
        res = await self.client.get("/api/reports/summary")
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body["portfolioStats"]["totalLoans"], 1)
        self.assertEqual(body["portfolioStats"]["totalRepaid"], 500.0)
        self.assertEqual(len(body["monthlyTrends"]), 12)
        self.assertEqual(body["monthlyTrends"][-1]["paymentsReceived"], 500.0)
        self.assertEqual(len(body["recentActivity"]["payments"]), 1)
        self.assertEqual(body["riskAnalysis"], {"lowRisk": 0, "mediumRisk": 0, "highRisk": 0})

    async def test_monthly_report(self):
        borrower = await self.create_borrower()
        await self.create_loan(borrower["id"])
        body = (await self.client.get("/api/reports/monthly")).json()
        self.assertEqual(body["totalLoans"], 1)
        self.assertEqual(body["totalBorrowers"], 1)
        self.assertEqual(body["disbursementsThisMonth"]["count"], 1)

    async def test_cron_requires_secret_when_configured(self):
        with mock.patch.object(settings, "cron_secret", "s3cret"):
            res = await self.client.post("/api/cron/overdue-notifications")
            self.assertEqual(res.status_code, 401)
            res = await self.client.post(
                "/api/cron/overdue-notifications", headers={"Authorization": "Bearer s3cret"}
            )
            self.assertEqual(res.status_code, 200)
            self.assertEqual(res.json()["overdueLoans"], 0)

    async def test_audit_log_filter(self):
        await self.create_borrower(name="Audited", email="audited@email.com")
        res = await self.client.get("/api/audit-logs", params={"action": "BORROWER_CREATED"})
        body = res.json()
        self.assertEqual(body["pagination"]["total"], 1)
        self.assertEqual(body["auditLogs"][0]["payload"]["name"], "Audited")


if __name__ == "__main__":
    unittest.main()
