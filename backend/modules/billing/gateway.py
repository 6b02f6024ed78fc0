"""
Stripe gateway.

The stripe library is synchronous; every network call runs in the default
executor so the event loop is never blocked.
"""

import asyncio
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Optional

import stripe

from .exceptions import PaymentProviderError, WebhookVerificationError
from .models import ProviderEvent, ProviderSession, ProviderSubscription

logger = logging.getLogger(__name__)


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert a StripeObject (or plain dict) to a dict."""
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return dict(obj)
    for name in ("to_dict", "to_dict_recursive"):
        convert = getattr(obj, name, None)
        if callable(convert):
            return convert()
    return dict(obj)


def _session_from_stripe(obj: Any) -> ProviderSession:
    data = _to_dict(obj)
    customer_details = data.get("customer_details") or {}
    customer = data.get("customer")
    payment_intent = data.get("payment_intent")
    return ProviderSession(
        id=data["id"],
        url=data.get("url"),
        payment_status=data.get("payment_status") or "unpaid",
        metadata={k: v for k, v in (data.get("metadata") or {}).items()},
        customer_id=customer if isinstance(customer, str) else (customer or {}).get("id"),
        customer_email=data.get("customer_email") or customer_details.get("email"),
        amount_total=data.get("amount_total"),
        payment_intent_id=(
            payment_intent if isinstance(payment_intent, str) else (payment_intent or {}).get("id")
        ),
    )


class StripeGateway:
    """IPaymentGateway backed by the stripe library."""

    def __init__(self, secret_key: str, webhook_secret: str = ""):
        stripe.api_key = secret_key
        self._webhook_secret = webhook_secret

    @staticmethod
    async def _call(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(func, *args, **kwargs))
        except stripe.StripeError as e:
            logger.error(f"Stripe call {getattr(func, '__qualname__', func)} failed: {e}")
            raise PaymentProviderError("Payment provider request failed", stripe_error=str(e))

    async def find_customer_id(self, email: str) -> Optional[str]:
        customers = await self._call(stripe.Customer.list, email=email, limit=1)
        data = customers.data if customers else []
        return data[0].id if data else None

    async def create_checkout_session(
        self,
        *,
        line_items: list[dict[str, Any]],
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
        customer_id: Optional[str] = None,
        customer_email: Optional[str] = None,
    ) -> ProviderSession:
        params: dict[str, Any] = {
            "mode": "payment",
            "line_items": line_items,
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_id:
            params["customer"] = customer_id
        elif customer_email:
            params["customer_email"] = customer_email

        session = await self._call(stripe.checkout.Session.create, **params)
        return _session_from_stripe(session)

    async def retrieve_checkout_session(self, session_id: str) -> ProviderSession:
        session = await self._call(stripe.checkout.Session.retrieve, session_id)
        return _session_from_stripe(session)

    async def get_session_product_id(self, session_id: str) -> Optional[str]:
        items = await self._call(stripe.checkout.Session.list_line_items, session_id, limit=1)
        data = items.data if items else []
        if not data or not data[0].price:
            return None
        product = data[0].price.product
        return product if isinstance(product, str) else getattr(product, "id", None)

    def construct_event(self, payload: bytes, signature: str) -> ProviderEvent:
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError:
            raise WebhookVerificationError()
        except ValueError:
            raise WebhookVerificationError("Invalid webhook payload")

        session = None
        data_object = _to_dict(event.data.object)
        if data_object.get("object") == "checkout.session":
            session = _session_from_stripe(data_object)
        return ProviderEvent(id=event.id, type=event.type, session=session)

    async def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription:
        sub = _to_dict(await self._call(stripe.Subscription.retrieve, subscription_id))

        # Newer API versions moved the period onto subscription items
        period_end = sub.get("current_period_end")
        if period_end is None:
            items = (sub.get("items") or {}).get("data") or []
            period_end = items[0].get("current_period_end") if items else None
        if period_end is None:
            raise PaymentProviderError(f"Subscription {subscription_id} has no current period")

        return ProviderSubscription(
            id=sub["id"],
            status=sub.get("status", ""),
            current_period_end=datetime.fromtimestamp(period_end, tz=timezone.utc),
        )
