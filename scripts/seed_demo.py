"""
Seed demo borrowers, loans and payments.
Run: python -m scripts.seed_demo (from the project root). Safe to re-run: existing rows are skipped.
"""
import asyncio
import os
import sys
from datetime import datetime, timezone
from decimal import Decimal

# Add parent so we can import from the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from database import AsyncSessionLocal, init_db
from models import Borrower, Loan, LoanStatus, Payment
from services import audit
from services.accounting import reconciled_status


def _d(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


BORROWERS_DATA = [
    {
        "id": "brw-john-doe",
        "name": "John Doe",
        "email": "john.doe@email.com",
        "phone": "+1 (416) 555-0123",
        "address": "123 Main St, Toronto, ON M5V 3A8",
        "notes": "Local bakery owner, excellent credit history",
    },
    {
        "id": "brw-jane-smith",
        "name": "Jane Smith",
        "email": "jane.smith@email.com",
        "phone": "+1 (416) 555-0456",
        "address": "456 Queen St, Toronto, ON M5H 2N2",
        "notes": "Coffee shop entrepreneur, first-time borrower",
    },
    {
        "id": "brw-abc-tech",
        "name": "ABC Tech Solutions",
        "email": "contact@abctech.ca",
        "phone": "+1 (416) 555-0789",
        "address": "789 King St, Toronto, ON M5K 1E7",
        "notes": "Small tech startup, expanding operations",
    },
]

LOANS_DATA = [
    {
        "id": "loan-bakery-equipment",
        "borrower_id": "brw-john-doe",
        "amount": "5000",
        "interest_rate": "3.5",
        "issued_at": "2024-01-15",
        "due_date": "2025-01-15",
        "notes": "Equipment purchase for bakery expansion",
        "payments": [
            ("1000", "2024-02-15", "First installment", "bank_transfer"),
            ("1000", "2024-05-15", "Second installment", "bank_transfer"),
        ],
    },
    {
        "id": "loan-coffee-setup",
        "borrower_id": "brw-jane-smith",
        "amount": "3000",
        "interest_rate": "4.0",
        "issued_at": "2024-03-01",
        "due_date": "2025-03-01",
        "notes": "Initial inventory and setup costs",
        "payments": [("500", "2024-04-01", "Partial payment", "cash")],
    },
    {
        "id": "loan-office-equipment",
        "borrower_id": "brw-abc-tech",
        "amount": "10000",
        "interest_rate": "5.0",
        "issued_at": "2024-02-10",
        "due_date": "2025-02-10",
        "notes": "Office equipment and software licenses",
        "payments": [("2500", "2024-03-10", "Quarterly payment", "cheque")],
    },
    {
        "id": "loan-bakery-previous",
        "borrower_id": "brw-john-doe",
        "amount": "2000",
        "interest_rate": "3.0",
        "issued_at": "2023-06-01",
        "due_date": "2024-06-01",
        "notes": "Previous loan - fully repaid",
        "payments": [
            ("1000", "2023-12-01", "First payment", "bank_transfer"),
            ("1060", "2024-06-01", "Final payment with interest", "bank_transfer"),
        ],
    },
]


async def seed():
    await init_db()
    async with AsyncSessionLocal() as session:
        for data in BORROWERS_DATA:
            existing = await session.execute(select(Borrower).where(Borrower.id == data["id"]))
            if existing.scalar_one_or_none():
                print(f"Borrower {data['id']} already exists, skipping")
                continue
            session.add(Borrower(**data))
            print(f"Seeded borrower: {data['name']}")
        await session.flush()

        for data in LOANS_DATA:
            existing = await session.execute(select(Loan).where(Loan.id == data["id"]))
            if existing.scalar_one_or_none():
                print(f"Loan {data['id']} already exists, skipping")
                continue
            loan = Loan(
                id=data["id"],
                borrower_id=data["borrower_id"],
                amount=Decimal(data["amount"]),
                interest_rate=Decimal(data["interest_rate"]),
                issued_at=_d(data["issued_at"]),
                due_date=_d(data["due_date"]),
                status=LoanStatus.ACTIVE.value,
                notes=data["notes"],
                payments=[
                    Payment(
                        id=f"pay-{data['id'][5:]}-{n}",
                        amount=Decimal(amount),
                        paid_at=_d(paid_at),
                        notes=notes,
                        method=method,
                    )
                    for n, (amount, paid_at, notes, method) in enumerate(data["payments"], start=1)
                ],
            )
            loan.status = reconciled_status(loan).value
            session.add(loan)
            await session.flush()
            await audit.record(session, "LOAN_CREATED", {"loan_id": loan.id, "amount": loan.amount}, "seed")
            print(f"Seeded loan: {data['id']} ({loan.status})")
        await session.commit()
    print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
