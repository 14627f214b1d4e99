"""Shared fixtures: a fresh in-memory database per test and a notifier that records sends."""
import unittest
from datetime import timedelta
from decimal import Decimal

from database import create_engine, create_sessionmaker, init_db
from services import borrowers as borrower_service
from services import loans as loan_service
from utils.dates import utcnow

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, str, dict]] = []

    def send(self, kind, recipient, data):
        if self.fail:
            return False
        self.sent.append((kind, recipient, data))
        return True

    def kinds(self) -> list[str]:
        return [kind for kind, _, _ in self.sent]


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = create_engine(TEST_DATABASE_URL)
        await init_db(self.engine)
        self.sessionmaker = create_sessionmaker(self.engine)
        self.session = self.sessionmaker()

    async def asyncTearDown(self):
        await self.session.close()
        await self.engine.dispose()

    async def make_borrower(self, name="John Doe", email="john.doe@email.com"):
        return await borrower_service.create_borrower(self.session, {"name": name, "email": email})

    async def make_loan(self, borrower=None, amount="2000", interest_rate="3", issued_days_ago=30, due_in_days=335):
        borrower = borrower or await self.make_borrower()
        now = utcnow()
        return await loan_service.create_loan(
            self.session,
            {
                "borrower_id": borrower.id,
                "amount": Decimal(amount),
                "interest_rate": Decimal(interest_rate),
                "issued_at": now - timedelta(days=issued_days_ago),
                "due_date": now + timedelta(days=due_in_days),
            },
        )
