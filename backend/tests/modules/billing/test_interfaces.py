"""Tests for billing module interfaces."""

from modules.billing.gateway import StripeGateway
from modules.billing.interfaces import IBillingRepository, IBillingService, IPaymentGateway
from modules.billing.repository import BillingRepository, InMemoryBillingRepository
from modules.credits.repository import InMemoryCreditRepository
from unittest.mock import MagicMock


class TestBillingInterfaces:
    def test_billing_service_implements_interface(self, billing_service):
        assert isinstance(billing_service, IBillingService)

    def test_repositories_implement_interface(self):
        assert isinstance(BillingRepository(MagicMock()), IBillingRepository)
        assert isinstance(InMemoryBillingRepository(InMemoryCreditRepository()), IBillingRepository)

    def test_gateways_implement_interface(self, payment_gateway):
        assert isinstance(StripeGateway("sk_test_123", "whsec_test"), IPaymentGateway)
        assert isinstance(payment_gateway, IPaymentGateway)
