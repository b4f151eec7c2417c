"""Shared fixtures: temporary SQLite database, fake collaborators, seeded data."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from quote_engine.clients.identity import ContractorProfile, UserProfile
from quote_engine.config import Settings
from quote_engine.container import build_services
from quote_engine.db.models import Base, ContractorQuote, PenaltyRule
from quote_engine.errors import DependencyError
from quote_engine.quotes.contractor_quotes import QuoteSubmission
from quote_engine.quotes.requests import NewQuoteRequest
from quote_engine.quotes.states import ReviewDecision

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
ADMIN_ID = "admin-1"
CONTRACTOR_A = "contractor-a"
CONTRACTOR_B = "contractor-b"

DEFAULT_RULES = [
    {
        "rule_name": "Late installation (daily)",
        "penalty_type": "late_installation",
        "severity_level": "moderate",
        "amount_calculation": "daily",
        "amount_value": Decimal("100.00"),
        "maximum_amount": None,
    },
    {
        "rule_name": "Late installation (major)",
        "penalty_type": "late_installation",
        "severity_level": "major",
        "amount_calculation": "percentage",
        "amount_value": Decimal("5.00"),
        "maximum_amount": Decimal("5000.00"),
    },
    {
        "rule_name": "Communication failure",
        "penalty_type": "communication_failure",
        "severity_level": "minor",
        "amount_calculation": "fixed",
        "amount_value": Decimal("250.00"),
        "maximum_amount": None,
    },
]


class FakeIdentity:
    """Profiles for known ids, placeholders for the rest."""

    def __init__(self):
        self.contractors = {
            CONTRACTOR_A: ContractorProfile(CONTRACTOR_A, "Sunrise Solar", email="a@example.com"),
            CONTRACTOR_B: ContractorProfile(CONTRACTOR_B, "Desert Power", email="b@example.com"),
        }
        self.users = {USER_ID: UserProfile(USER_ID, "Test User", email="user@example.com")}

    async def get_contractor_info(self, contractor_id):
        return self.contractors.get(contractor_id) or ContractorProfile.placeholder(contractor_id)

    async def get_user_info(self, user_id):
        return self.users.get(user_id) or UserProfile.placeholder(user_id)

    async def get_contractors_info(self, contractor_ids):
        return {cid: await self.get_contractor_info(cid) for cid in contractor_ids}

    async def get_users_info(self, user_ids):
        return {uid: await self.get_user_info(uid) for uid in user_ids}


class FakeWallet:
    """Records debits; set fail=True to simulate an unavailable wallet."""

    def __init__(self):
        self.fail = False
        self.debits = []

    async def apply_penalty_debit(self, contractor_id, amount, description, penalty_id):
        if self.fail:
            raise DependencyError("wallet", "penalty debit timed out", {"penalty_id": penalty_id})
        self.debits.append((contractor_id, amount, penalty_id))
        return True


class FakeNotifier:
    """Records notifications; set fail=True to make every call raise."""

    def __init__(self):
        self.fail = False
        self.calls = []

    async def notify_contractors_assigned(self, request_id, contractor_ids):
        if self.fail:
            raise RuntimeError("notification service down")
        self.calls.append((request_id, list(contractor_ids)))
        return True


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'quote_engine.db'}",
        admin_api_key="test-admin-key",
        scheduler_enabled=False,
        log_dir=str(tmp_path),
    )


@pytest.fixture
async def session_factory(settings):
    """Session factory over a fresh database with tables created."""
    engine = create_async_engine(settings.database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def wallet():
    return FakeWallet()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def services(settings, session_factory, identity, wallet, notifier):
    return build_services(
        settings,
        session_factory=session_factory,
        identity=identity,
        wallet=wallet,
        notifier=notifier,
    )


@pytest.fixture
async def penalty_rules(session_factory):
    """Default penalty rules."""
    rules = [PenaltyRule(**data) for data in DEFAULT_RULES]
    async with session_factory() as db:
        async with db.begin():
            db.add_all(rules)
    return rules


@pytest.fixture
async def quote_request(services):
    """10 kWp request with both test contractors invited."""
    return await services.requests.create_request(
        USER_ID,
        NewQuoteRequest(
            system_size_kwp=Decimal("10"),
            location_address="12 Palm Street, Riyadh",
            service_area="riyadh",
            contractor_ids=[CONTRACTOR_A, CONTRACTOR_B],
        ),
    )


def make_submission(request_id, base_price="20000", price_per_kwp="2000", **overrides):
    values = dict(
        request_id=request_id,
        base_price=Decimal(base_price),
        price_per_kwp=Decimal(price_per_kwp),
        installation_timeline_days=30,
        panel_brand="Jinko",
        inverter_brand="Huawei",
    )
    values.update(overrides)
    return QuoteSubmission(**values)


@pytest.fixture
async def submitted_quote(services, quote_request):
    return await services.quotes.submit_quote(CONTRACTOR_A, make_submission(quote_request.id))


@pytest.fixture
async def approved_quote(services, submitted_quote):
    return await services.quotes.approve_or_reject(
        ADMIN_ID, submitted_quote.id, ReviewDecision.APPROVED
    )


@pytest.fixture
async def selected_quote(services, approved_quote):
    quote, _request = await services.quotes.select_quote(USER_ID, approved_quote.id)
    return quote


async def backdate_quote(session_factory, quote_id, days):
    """Move a quote's creation time into the past."""
    async with session_factory() as db:
        async with db.begin():
            await db.execute(
                update(ContractorQuote)
                .where(ContractorQuote.id == quote_id)
                .values(created_at=datetime.utcnow() - timedelta(days=days))
            )
