"""Checkout service: creates Stripe PaymentIntents for wish item donations."""

import logging
from datetime import date
from decimal import Decimal, ROUND_FLOOR
from typing import Optional, Dict, Any

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from .database import ItemRepository, User
from .exceptions import EntityNotFoundError
from .reconciliation.normalizer import (
    META_USER_ID,
    META_ITEM_ID,
    META_AMOUNT,
    META_SUPPLEMENTAL,
    META_AGENCY,
    encode_reference,
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class CheckoutService:
    """Service for the payment steps that precede a webhook."""

    def __init__(self, session: AsyncSession, api_key: str, currency: str = "usd"):
        """Initialize the service.

        Args:
            session: AsyncSession instance for item lookups.
            api_key: Stripe secret key.
            currency: Charge currency; amounts are never converted.
        """
        self.session = session
        self.api_key = api_key
        self.currency = currency
        self.item_repo = ItemRepository(session)

    @staticmethod
    def to_minor_units(total: Decimal) -> int:
        """Stripe charges in minor units; fractions of a cent are dropped."""
        return int((total * 100).to_integral_value(rounding=ROUND_FLOOR))

    async def create_intent(
        self,
        payer: User,
        item_id: str,
        email: str,
        agency_name: str,
        supplemental_amount: Optional[Decimal] = None,
    ) -> str:
        """Create a PaymentIntent for an item plus an optional extra donation.

        The intent metadata carries everything the webhook needs to commit the
        donation later.

        Args:
            payer: The donating user.
            item_id: Wish item being donated.
            email: Receipt email.
            agency_name: Agency the item is donated through.
            supplemental_amount: Optional extra amount on top of the item price.

        Returns:
            The PaymentIntent client secret for the frontend.

        Raises:
            EntityNotFoundError: If the item does not exist.
        """
        item = await self.item_repo.get_by_id(item_id)
        if item is None:
            raise EntityNotFoundError("item", item_id)

        supplemental = (supplemental_amount or Decimal("0")).quantize(CENTS)
        total = item.price_major + supplemental

        intent = stripe.PaymentIntent.create(
            api_key=self.api_key,
            amount=self.to_minor_units(total),
            currency=self.currency,
            receipt_email=email,
            metadata={
                META_ITEM_ID: item.id,
                META_USER_ID: payer.id,
                META_AGENCY: agency_name,
                META_SUPPLEMENTAL: str(supplemental),
                META_AMOUNT: str(total),
            },
        )
        logger.info(f"Created PaymentIntent {intent.id} for item {item.id} ({total} {self.currency})")
        return intent.client_secret

    async def paypal_reference(
        self,
        payer: User,
        item_id: str,
        agency_name: str,
        supplemental_amount: Optional[Decimal] = None,
    ) -> str:
        """Reference id the frontend stamps on the PayPal order purchase unit.

        Raises:
            EntityNotFoundError: If the item does not exist.
        """
        item = await self.item_repo.get_by_id(item_id)
        if item is None:
            raise EntityNotFoundError("item", item_id)
        supplemental = (supplemental_amount or Decimal("0")).quantize(CENTS)
        return encode_reference(payer.id, item.id, supplemental, agency_name)

    async def success_details(
        self,
        payer: User,
        item_id: str,
        total_amount: str,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Details shown on the donation confirmation page."""
        item = await self.item_repo.get_by_id(item_id)
        today = today or date.today()
        return {
            "email": payer.email,
            "totalAmount": total_amount,
            "orderDate": f"{today:%b} {today.day} {today.year}",
            "itemName": item.name if item else None,
            "childName": item.child_first_name if item else None,
        }
