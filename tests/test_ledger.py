"""
Tests for the payment ledger: balance checks and the loan status kept in step with payments.
Run from project root: python -m pytest tests/test_ledger.py -v
"""
import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest import mock

from sqlalchemy import func, insert, select

from models import AuditLog, LoanStatus, Payment
from services import ledger
from services import loans as loan_service
from services.accounting import calculate_loan_details
from services.errors import NotFoundError, PreconditionError
from tests.helpers import DatabaseTestCase
from utils.dates import as_utc

EASTERN = timezone(timedelta(hours=-5))


class TestLedger(DatabaseTestCase):
    async def _audit_count(self, action):
        return await self.session.scalar(select(func.count(AuditLog.id)).where(AuditLog.action == action))

    async def test_full_repayment_marks_loan_paid(self):
        """1000 + 1060 against 2000 at 3% clears the loan."""
        loan = await self.make_loan()
        await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("1000")})
        self.assertEqual(loan.status, LoanStatus.ACTIVE.value)
        await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("1060")})
        self.assertEqual(loan.status, LoanStatus.PAID.value)
        self.assertEqual(calculate_loan_details(loan).balance, Decimal("0"))
        self.assertEqual(await self._audit_count("PAYMENT_RECEIVED"), 2)

    async def test_fractional_interest_can_be_paid_off(self):
        """333.33 at 3% owes 343.33 to the cent; the last cent clears it."""
        loan = await self.make_loan(amount="333.33", interest_rate="3")
        self.assertEqual(calculate_loan_details(loan).total_owed, Decimal("343.33"))
        await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("343.32")})
        self.assertEqual(loan.status, LoanStatus.ACTIVE.value)
        await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("0.01")})
        self.assertEqual(loan.status, LoanStatus.PAID.value)
        self.assertEqual(calculate_loan_details(loan).balance, Decimal("0"))

    async def test_payment_over_balance_rejected(self):
        """One cent past the balance is refused and nothing is written."""
        loan = await self.make_loan()
        await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("1000")})
        with self.assertRaises(PreconditionError) as ctx:
            await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("1060.01")})
        self.assertIn("exceeds remaining balance", ctx.exception.message)
        count = await self.session.scalar(select(func.count(Payment.id)).where(Payment.loan_id == loan.id))
        self.assertEqual(count, 1)
        self.assertEqual(loan.status, LoanStatus.ACTIVE.value)

    async def test_cannot_pay_a_paid_loan(self):
        loan = await self.make_loan(amount="100", interest_rate="0")
        await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("100")})
        with self.assertRaises(PreconditionError):
            await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("1")})

    async def test_non_positive_amount_rejected(self):
        loan = await self.make_loan()
        with self.assertRaises(PreconditionError):
            await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("0")})

    async def test_unknown_loan(self):
        with self.assertRaises(NotFoundError):
            await ledger.record_payment(self.session, {"loan_id": "loan-missing", "amount": Decimal("10")})

    async def test_delete_payment_reverts_to_active(self):
        loan = await self.make_loan()
        await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("1000")})
        final = await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("1060")})
        self.assertEqual(loan.status, LoanStatus.PAID.value)

        loan = await ledger.delete_payment(self.session, final.id)
        self.assertEqual(loan.status, LoanStatus.ACTIVE.value)
        self.assertEqual(calculate_loan_details(loan).balance, Decimal("1060"))
        self.assertEqual(await self._audit_count("PAYMENT_DELETED"), 1)
        with self.assertRaises(NotFoundError):
            await ledger.get_payment(self.session, final.id)

    async def test_update_payment_checks_total_owed(self):
        loan = await self.make_loan()
        first = await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("1000")})
        await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("1000")})
        with self.assertRaises(PreconditionError):
            await ledger.update_payment(self.session, first.id, {"amount": Decimal("1060.01")})
        await ledger.update_payment(self.session, first.id, {"amount": Decimal("1060"), "notes": "corrected"})
        self.assertEqual(first.notes, "corrected")
        self.assertEqual(loan.status, LoanStatus.PAID.value)

    async def test_defaulted_loan_keeps_status_until_covered(self):
        loan = await self.make_loan(amount="500", interest_rate="0")
        await loan_service.update_loan(self.session, loan.id, {"status": LoanStatus.DEFAULTED})
        await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("200")})
        self.assertEqual(loan.status, LoanStatus.DEFAULTED.value)
        await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("300")})
        self.assertEqual(loan.status, LoanStatus.PAID.value)


    async def test_failed_audit_write_keeps_payment(self):
        """An audit insert that hits a duplicate id is logged and dropped; the payment stands."""
        loan = await self.make_loan()
        await self.session.execute(insert(AuditLog).values(id="audit-aaaaaaaaaaaa", action="SEED", payload={}))
        with mock.patch("services.audit.uuid") as fake_uuid:
            fake_uuid.uuid4.return_value.hex = "a" * 32
            with self.assertLogs("services.audit", level="ERROR"):
                payment = await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("500")})
        await self.session.commit()

        self.assertEqual(await self._audit_count("PAYMENT_RECEIVED"), 0)
        stored = await ledger.get_payment(self.session, payment.id)
        self.assertEqual(stored.amount, Decimal("500"))
        self.assertEqual(calculate_loan_details(loan).balance, Decimal("1560"))

class TestLoans(DatabaseTestCase):
    async def test_create_requires_due_after_issue(self):
        borrower = await self.make_borrower()
        with self.assertRaises(PreconditionError):
            await self.make_loan(borrower=borrower, issued_days_ago=0, due_in_days=-1)

    async def test_cannot_mark_paid_with_balance(self):
        loan = await self.make_loan()
        with self.assertRaises(PreconditionError):
            await loan_service.update_loan(self.session, loan.id, {"status": LoanStatus.PAID})

    async def test_amount_edit_rederives_status(self):
        loan = await self.make_loan(amount="1000", interest_rate="0")
        await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("800")})
        await loan_service.update_loan(self.session, loan.id, {"amount": Decimal("800")})
        self.assertEqual(loan.status, LoanStatus.PAID.value)
        statuses = await self.session.scalar(
            select(func.count(AuditLog.id)).where(AuditLog.action == "LOAN_STATUS_UPDATED")
        )
        self.assertEqual(statuses, 1)

    async def test_offset_datetimes_stored_as_utc(self):
        """Times sent with an offset keep their instant after a round trip through the database."""
        borrower = await self.make_borrower()
        loan = await loan_service.create_loan(
            self.session,
            {
                "borrower_id": borrower.id,
                "amount": Decimal("100"),
                "issued_at": datetime(2029, 12, 1, tzinfo=EASTERN),
                "due_date": datetime(2030, 1, 1, 22, 0, tzinfo=EASTERN),
            },
        )
        await ledger.record_payment(
            self.session,
            {"loan_id": loan.id, "amount": Decimal("10"), "paid_at": datetime(2029, 12, 31, 23, 30, tzinfo=EASTERN)},
        )
        await self.session.commit()
        self.session.expunge_all()

        stored = await loan_service.get_loan(self.session, loan.id)
        self.assertEqual(as_utc(stored.due_date), datetime(2030, 1, 2, 3, 0, tzinfo=timezone.utc))
        self.assertEqual(as_utc(stored.issued_at), datetime(2029, 12, 1, 5, 0, tzinfo=timezone.utc))
        self.assertEqual(as_utc(stored.payments[0].paid_at), datetime(2030, 1, 1, 4, 30, tzinfo=timezone.utc))

        await loan_service.update_loan(self.session, loan.id, {"due_date": datetime(2030, 2, 1, 20, 0, tzinfo=EASTERN)})
        await self.session.commit()
        self.session.expunge_all()
        stored = await loan_service.get_loan(self.session, loan.id)
        self.assertEqual(as_utc(stored.due_date), datetime(2030, 2, 2, 1, 0, tzinfo=timezone.utc))

    async def test_delete_loan_with_payments_refused(self):
        loan = await self.make_loan()
        await ledger.record_payment(self.session, {"loan_id": loan.id, "amount": Decimal("10")})
        with self.assertRaises(PreconditionError):
            await loan_service.delete_loan(self.session, loan.id)

    async def test_delete_loan_without_payments(self):
        loan = await self.make_loan()
        await loan_service.delete_loan(self.session, loan.id)
        with self.assertRaises(NotFoundError):
            await loan_service.get_loan(self.session, loan.id)


if __name__ == "__main__":
    unittest.main()
