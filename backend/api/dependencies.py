"""
Dependency injection setup for FastAPI.

This module provides the "container" that wires together all module
implementations. Each module exposes its service through an interface,
and this file creates the concrete implementations.

Tests replace services either through app.dependency_overrides or by
assigning pre-built services to the container.
"""

from typing import TYPE_CHECKING

from shared.config import get_settings
from shared.exceptions import ConfigurationError

# Type checking imports for interfaces (avoids circular imports)
if TYPE_CHECKING:
    from modules.auth.interfaces import IAuthService
    from modules.billing.interfaces import IBillingService, IPaymentGateway
    from modules.credits.interfaces import ICreditService
    from modules.generation.interfaces import IGenerationGateway, IGenerationService


class ServiceContainer:
    """
    Container for all service instances.

    This class manages the lifecycle of service instances and their
    dependencies. Services are created lazily on first access.

    All services are cached as singletons within the container.
    Use reset() to clear all cached services for testing.
    """

    def __init__(self) -> None:
        self._auth_service: "IAuthService | None" = None
        self._credit_service: "ICreditService | None" = None
        self._payment_gateway: "IPaymentGateway | None" = None
        self._billing_service: "IBillingService | None" = None
        self._generation_gateway: "IGenerationGateway | None" = None
        self._generation_service: "IGenerationService | None" = None

    @property
    def auth(self) -> "IAuthService":
        """Get the auth service instance."""
        if self._auth_service is None:
            from modules.auth.service import AuthService
            self._auth_service = AuthService()
        return self._auth_service

    @auth.setter
    def auth(self, service: "IAuthService") -> None:
        self._auth_service = service

    @property
    def credits(self) -> "ICreditService":
        """Get the credit ledger service."""
        if self._credit_service is None:
            from modules.credits.repository import CreditRepository
            from modules.credits.service import CreditService
            from shared.database import get_supabase_client
            self._credit_service = CreditService(CreditRepository(get_supabase_client()))
        return self._credit_service

    @credits.setter
    def credits(self, service: "ICreditService") -> None:
        self._credit_service = service

    @property
    def payment_gateway(self) -> "IPaymentGateway":
        """Get the Stripe gateway. Fails if Stripe isn't configured."""
        if self._payment_gateway is None:
            from modules.billing.gateway import StripeGateway
            settings = get_settings()
            if not settings.stripe_secret_key:
                raise ConfigurationError("Stripe secret key is not configured", "stripe_secret_key")
            self._payment_gateway = StripeGateway(
                settings.stripe_secret_key,
                settings.stripe_webhook_secret,
            )
        return self._payment_gateway

    @payment_gateway.setter
    def payment_gateway(self, gateway: "IPaymentGateway") -> None:
        self._payment_gateway = gateway

    @property
    def billing(self) -> "IBillingService":
        """Get the billing service instance."""
        if self._billing_service is None:
            from modules.billing.repository import BillingRepository
            from modules.billing.service import BillingService
            from shared.database import get_supabase_client
            self._billing_service = BillingService(
                repository=BillingRepository(get_supabase_client()),
                credits=self.credits,
                gateway=self.payment_gateway,
                auth=self.auth,
                settings=get_settings(),
            )
        return self._billing_service

    @billing.setter
    def billing(self, service: "IBillingService") -> None:
        self._billing_service = service

    @property
    def generation_gateway(self) -> "IGenerationGateway":
        if self._generation_gateway is None:
            from modules.generation.gateway import HttpGenerationGateway
            settings = get_settings()
            self._generation_gateway = HttpGenerationGateway(
                settings.generation_gateway_url,
                settings.generation_api_key,
                settings.generation_timeout,
            )
        return self._generation_gateway

    @property
    def generation(self) -> "IGenerationService":
        """Get the generation service instance."""
        if self._generation_service is None:
            from modules.generation.service import GenerationService
            self._generation_service = GenerationService(
                credits=self.credits,
                gateway=self.generation_gateway,
            )
        return self._generation_service

    @generation.setter
    def generation(self, service: "IGenerationService") -> None:
        self._generation_service = service

    def reset(self) -> None:
        """
        Reset all cached services.

        This is primarily for testing - allows tests to get fresh
        service instances with different mock dependencies.
        """
        self._auth_service = None
        self._credit_service = None
        self._payment_gateway = None
        self._billing_service = None
        self._generation_gateway = None
        self._generation_service = None


# Module-level container singleton
_container: ServiceContainer | None = None


def get_container() -> ServiceContainer:
    """Get the singleton service container."""
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container


def reset_container() -> None:
    """
    Reset the service container.

    This clears the cached container, so the next call to get_container()
    will create a fresh container with new service instances.

    Primarily used for testing.
    """
    global _container
    _container = None


# FastAPI dependency functions
# These are the functions that should be used in route Depends() calls


def get_auth_service() -> "IAuthService":
    """FastAPI dependency for auth service."""
    return get_container().auth


def get_credit_service() -> "ICreditService":
    """FastAPI dependency for credit service."""
    return get_container().credits


def get_billing_service() -> "IBillingService":
    """FastAPI dependency for billing service."""
    return get_container().billing


def get_generation_service() -> "IGenerationService":
    """FastAPI dependency for generation service."""
    return get_container().generation
