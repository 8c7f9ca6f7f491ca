"""
Thin wrapper around the Stripe API.

``StripeConfig`` is built from Django settings and handed to
``StripeGateway`` explicitly; nothing here touches the global
``stripe.api_key``.  Every Stripe failure is logged and re-raised as
:class:`common.exceptions.PaymentProcessingError`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import stripe
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from common.exceptions import PaymentProcessingError

logger = logging.getLogger(__name__)


@dataclass
class StripeConfig:
    secret_key: str
    publishable_key: str = ""
    webhook_secret: str = ""
    currency: str = "gbp"
    api_version: str | None = None

    @classmethod
    def from_settings(cls) -> "StripeConfig":
        secret_key = (getattr(settings, "STRIPE_SECRET_KEY", "") or "").strip()
        if not secret_key:
            raise ImproperlyConfigured("STRIPE_SECRET_KEY not set")
        return cls(
            secret_key=secret_key,
            publishable_key=(getattr(settings, "STRIPE_PUBLISHABLE_KEY", "") or "").strip(),
            webhook_secret=(getattr(settings, "STRIPE_WEBHOOK_SECRET", "") or "").strip(),
            currency=getattr(settings, "STRIPE_CURRENCY", "gbp") or "gbp",
            api_version=getattr(settings, "STRIPE_API_VERSION", None) or None,
        )


class StripeGateway:
    def __init__(self, cfg: StripeConfig):
        self.cfg = cfg

    def _opts(self) -> dict:
        opts = {"api_key": self.cfg.secret_key}
        if self.cfg.api_version:
            opts["stripe_version"] = self.cfg.api_version
        return opts

    def _fail(self, action: str, exc: stripe.StripeError):
        logger.error("Stripe %s failed: %s", action, getattr(exc, "user_message", None) or exc)
        raise PaymentProcessingError(f"Stripe {action} failed: {getattr(exc, 'user_message', None) or exc}") from exc

    # -- payments ---------------------------------------------------------

    def create_payment_intent(
        self,
        *,
        amount: int,
        destination_account: str,
        application_fee: int,
        metadata: dict,
        receipt_email: str | None = None,
    ):
        """Create a destination charge for a clinic's connected account."""
        params = {
            "amount": int(amount),
            "currency": self.cfg.currency,
            "automatic_payment_methods": {"enabled": True},
            "metadata": {k: ("" if v is None else str(v)) for k, v in metadata.items()},
            "transfer_data": {"destination": destination_account},
            "application_fee_amount": int(application_fee),
        }
        if receipt_email:
            params["receipt_email"] = receipt_email
        try:
            return stripe.PaymentIntent.create(**params, **self._opts())
        except stripe.StripeError as exc:
            self._fail("payment intent", exc)

    def retrieve_charge_fee(self, charge_id: str) -> int:
        """Processing fee (pence) Stripe took on a charge, 0 if unknown."""
        try:
            charge = stripe.Charge.retrieve(charge_id, expand=["balance_transaction"], **self._opts())
        except stripe.StripeError as exc:
            self._fail("charge lookup", exc)
        txn = charge.get("balance_transaction") if hasattr(charge, "get") else None
        if txn and not isinstance(txn, str):
            return int(txn.get("fee") or 0)
        return 0

    def create_refund(self, *, payment_intent_id: str, amount: int | None = None, idempotency_key: str | None = None):
        """Refund a charge, returning the platform fee and reversing the transfer.

        ``amount=None`` refunds whatever is left on the charge.  Repeating a
        call with the same ``idempotency_key`` returns the original refund.
        """
        params = {
            "payment_intent": payment_intent_id,
            "refund_application_fee": True,
            "reverse_transfer": True,
        }
        if amount is not None:
            params["amount"] = int(amount)
        opts = self._opts()
        if idempotency_key:
            opts["idempotency_key"] = idempotency_key
        try:
            return stripe.Refund.create(**params, **opts)
        except stripe.StripeError as exc:
            self._fail("refund", exc)

    def retrieve_refund_fee(self, refund) -> int:
        txn = refund.get("balance_transaction") if refund is not None else None
        if not txn:
            return 0
        txn_id = txn if isinstance(txn, str) else txn.get("id")
        try:
            balance = stripe.BalanceTransaction.retrieve(txn_id, **self._opts())
        except stripe.StripeError as exc:
            # The refund already went through; a missing fee is not fatal.
            logger.warning("Could not read refund fee for %s: %s", txn_id, exc)
            return 0
        return int(balance.get("fee") or 0)

    # -- webhooks ---------------------------------------------------------

    def construct_event(self, payload: bytes, sig_header: str):
        """Verify a webhook signature and return the parsed event.

        Raises ``ValueError`` for malformed payloads and
        ``stripe.SignatureVerificationError`` for bad signatures.
        """
        if not self.cfg.webhook_secret:
            raise ImproperlyConfigured("STRIPE_WEBHOOK_SECRET not set")
        return stripe.Webhook.construct_event(payload=payload, sig_header=sig_header, secret=self.cfg.webhook_secret)

    # -- Connect ----------------------------------------------------------

    def create_connect_account(self, *, email: str = "", business_name: str = "", country: str = "GB"):
        params = {"type": "standard", "country": country}
        if email:
            params["email"] = email
        if business_name:
            params["business_profile"] = {"name": business_name}
        try:
            return stripe.Account.create(**params, **self._opts())
        except stripe.StripeError as exc:
            self._fail("account creation", exc)

    def create_account_link(self, *, account_id: str, return_url: str, refresh_url: str | None = None):
        try:
            return stripe.AccountLink.create(
                account=account_id,
                refresh_url=refresh_url or return_url,
                return_url=return_url,
                type="account_onboarding",
                **self._opts(),
            )
        except stripe.StripeError as exc:
            self._fail("account link", exc)

    def retrieve_account(self, account_id: str):
        try:
            return stripe.Account.retrieve(account_id, **self._opts())
        except stripe.StripeError as exc:
            self._fail("account lookup", exc)


def get_gateway() -> StripeGateway:
    return StripeGateway(StripeConfig.from_settings())
