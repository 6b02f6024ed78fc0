"""
Shared test fixtures and utilities.

This module provides common test infrastructure used across all test modules:
JWT tokens, in-memory repositories, fake Stripe/generation gateways and a
TestClient wired to them through the service container.
"""

import json
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import Any, Optional

import jwt  # PyJWT
import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.dependencies import get_container, reset_container
from modules.auth.models import Team, UserProfile
from modules.auth.service import AuthService
from modules.billing.exceptions import PaymentProviderError, WebhookVerificationError
from modules.billing.models import (
    Plan,
    ProviderEvent,
    ProviderSession,
    ProviderSubscription,
)
from modules.billing.repository import InMemoryBillingRepository
from modules.billing.service import BillingService
from modules.credits.models import Account, AccountRef, Feature
from modules.credits.repository import InMemoryCreditRepository
from modules.credits.service import CreditService
from modules.generation.service import GenerationService
from shared.config import Settings, get_settings


# Test JWT secret (only for testing)
TEST_JWT_SECRET = "test-secret-key-for-testing-only"
TEST_USER_ID = "test-user-123"
TEST_USER_EMAIL = "test@example.com"
TEST_TEAM_ID = "team-1"
VALID_SIGNATURE = "t=1,v1=valid"


def create_test_token(
    user_id: str = TEST_USER_ID,
    email: str = TEST_USER_EMAIL,
    expired: bool = False,
    email_verified: bool = True,
    secret: str = TEST_JWT_SECRET,
) -> str:
    """
    Create a test JWT token for authentication.

    Args:
        user_id: User ID to include in the token
        email: Email to include in the token
        expired: If True, creates an expired token
        email_verified: Whether the email should be marked as verified
        secret: Signing secret

    Returns:
        JWT token string
    """
    now = datetime.now(timezone.utc)
    exp = now - timedelta(hours=1) if expired else now + timedelta(hours=1)

    payload = {
        "sub": user_id,
        "email": email,
        "email_confirmed_at": now.isoformat() if email_verified else None,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": int(exp.timestamp()),
        "iat": int(now.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


# -----------------------------------------------------------------------------
# Fakes
# -----------------------------------------------------------------------------


class FakeAuthService(AuthService):
    """Real token validation, in-memory profiles and teams."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._client = None
        self.profiles: dict[str, UserProfile] = {}
        self.teams: dict[str, Team] = {}

    async def get_user_by_id(self, user_id: str) -> Optional[UserProfile]:
        return self.profiles.get(user_id)

    async def get_user_by_email(self, email: str) -> Optional[UserProfile]:
        for profile in self.profiles.values():
            if profile.email.lower() == email.lower():
                return profile
        return None

    async def get_team(self, team_id: str) -> Optional[Team]:
        return self.teams.get(team_id)


class FakePaymentGateway:
    """
    In-memory stand-in for StripeGateway.

    Webhook payloads are JSON of {"id", "type", "session"}; only
    VALID_SIGNATURE passes verification.
    """

    def __init__(self) -> None:
        self.sessions: dict[str, ProviderSession] = {}
        self.created: list[dict[str, Any]] = []
        self.customers: dict[str, str] = {}
        self.products: dict[str, str] = {}
        self.subscriptions: dict[str, ProviderSubscription] = {}
        self.retrieve_calls: list[str] = []
        self.fail_subscriptions: set[str] = set()

    async def find_customer_id(self, email: str) -> Optional[str]:
        return self.customers.get(email)

    async def create_checkout_session(self, **params: Any) -> ProviderSession:
        self.created.append(params)
        session = ProviderSession(
            id=f"cs_test_{len(self.created)}",
            url=f"https://checkout.stripe.com/c/pay/cs_test_{len(self.created)}",
            metadata=params["metadata"],
        )
        self.sessions[session.id] = session
        return session

    async def retrieve_checkout_session(self, session_id: str) -> ProviderSession:
        self.retrieve_calls.append(session_id)
        if session_id not in self.sessions:
            raise PaymentProviderError(f"No such checkout.session: {session_id}")
        return self.sessions[session_id]

    async def get_session_product_id(self, session_id: str) -> Optional[str]:
        return self.products.get(session_id)

    def construct_event(self, payload: bytes, signature: str) -> ProviderEvent:
        if signature != VALID_SIGNATURE:
            raise WebhookVerificationError()
        return ProviderEvent.model_validate(json.loads(payload))

    async def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription:
        if subscription_id in self.fail_subscriptions:
            raise PaymentProviderError(f"No such subscription: {subscription_id}")
        return self.subscriptions[subscription_id]

    # Test helpers

    def add_paid_session(
        self,
        session_id: str,
        metadata: Optional[dict[str, str]] = None,
        amount_total: int = 4000,
        customer_email: Optional[str] = None,
        payment_status: str = "paid",
    ) -> ProviderSession:
        session = ProviderSession(
            id=session_id,
            payment_status=payment_status,
            metadata=metadata or {},
            amount_total=amount_total,
            customer_email=customer_email,
            payment_intent_id=f"pi_{session_id}",
        )
        self.sessions[session_id] = session
        return session


class FakeGenerationGateway:
    def __init__(self) -> None:
        self.calls: list[tuple[Feature, dict[str, Any]]] = []
        self.error: Optional[Exception] = None
        self.output: dict[str, Any] = {"image_url": "https://cdn.example.com/out.png"}

    async def generate(self, feature: Feature, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((feature, payload))
        if self.error is not None:
            raise self.error
        return self.output


def webhook_payload(session: ProviderSession, event_type: str = "checkout.session.completed") -> bytes:
    return json.dumps(
        {"id": f"evt_{session.id}", "type": event_type, "session": session.model_dump(mode="json")}
    ).encode()


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_services():
    """Reset the service container before and after each test."""
    reset_container()
    yield
    reset_container()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        supabase_jwt_secret=TEST_JWT_SECRET,
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret="whsec_test",
        frontend_url="https://app.example.com",
        cron_secret="cron-secret",
    )


@pytest.fixture
def test_user_id() -> str:
    return TEST_USER_ID


@pytest.fixture
def test_user_email() -> str:
    return TEST_USER_EMAIL


@pytest.fixture
def auth_token(test_user_id: str, test_user_email: str) -> str:
    """Create a valid auth token for testing."""
    return create_test_token(user_id=test_user_id, email=test_user_email)


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    """Create authorization headers with a valid token."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def credit_repo() -> InMemoryCreditRepository:
    """Ledger storage with the test user (50 credits) and their team (100 credits)."""
    repo = InMemoryCreditRepository()
    repo.add_account(
        Account(
            ref=AccountRef.user(TEST_USER_ID),
            credits=50,
            email=TEST_USER_EMAIL,
            team_id=TEST_TEAM_ID,
        )
    )
    repo.add_account(Account(ref=AccountRef.team(TEST_TEAM_ID), credits=100))
    return repo


@pytest.fixture
def credit_service(credit_repo: InMemoryCreditRepository) -> CreditService:
    return CreditService(credit_repo)


@pytest.fixture
def billing_repo(credit_repo: InMemoryCreditRepository) -> InMemoryBillingRepository:
    repo = InMemoryBillingRepository(credit_repo)
    repo.add_plan(Plan(id="free", name="Free", credits=0))
    repo.add_plan(Plan(id="basic", name="Basic", credits=80, price=Decimal("39.90")))
    repo.add_plan(Plan(id="pro", name="Pro", credits=160, price=Decimal("79.90")))
    repo.add_plan(
        Plan(
            id="pack_basic",
            name="Basic Pack",
            credits=80,
            price=Decimal("40.00"),
            stripe_price_id="price_basic",
            stripe_product_id="prod_TQFRF4g5MPxoSG",
        )
    )
    repo.add_plan(
        Plan(
            id="pack_pro",
            name="Pro Pack",
            credits=160,
            price=Decimal("80.00"),
            stripe_price_id="price_pro",
            stripe_product_id="prod_TQFSnXcPofocWV",
        )
    )
    return repo


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def auth_service(settings: Settings) -> FakeAuthService:
    service = FakeAuthService(settings)
    service.profiles[TEST_USER_ID] = UserProfile(
        id=TEST_USER_ID,
        email=TEST_USER_EMAIL,
        name="Test User",
        team_id=TEST_TEAM_ID,
    )
    service.teams[TEST_TEAM_ID] = Team(id=TEST_TEAM_ID, name="Test Team", admin_id=TEST_USER_ID)
    return service


@pytest.fixture
def billing_service(
    billing_repo: InMemoryBillingRepository,
    credit_service: CreditService,
    payment_gateway: FakePaymentGateway,
    auth_service: FakeAuthService,
    settings: Settings,
) -> BillingService:
    return BillingService(
        repository=billing_repo,
        credits=credit_service,
        gateway=payment_gateway,
        auth=auth_service,
        settings=settings,
    )


@pytest.fixture
def generation_gateway() -> FakeGenerationGateway:
    return FakeGenerationGateway()


@pytest.fixture
def generation_service(
    credit_service: CreditService,
    generation_gateway: FakeGenerationGateway,
) -> GenerationService:
    return GenerationService(credits=credit_service, gateway=generation_gateway)


@pytest.fixture
def client(
    settings: Settings,
    auth_service: FakeAuthService,
    credit_service: CreditService,
    billing_service: BillingService,
    generation_service: GenerationService,
) -> TestClient:
    """TestClient with every service backed by in-memory fakes."""
    container = get_container()
    container.auth = auth_service
    container.credits = credit_service
    container.billing = billing_service
    container.generation = generation_service

    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    return TestClient(app)
