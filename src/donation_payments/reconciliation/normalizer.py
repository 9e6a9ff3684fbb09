"""Maps verified provider events to DonationIntents."""

import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, Optional, Tuple

from pydantic import ValidationError

from ..exceptions import NormalizationError
from ..models import DonationIntent, Provider, VerifiedEvent

logger = logging.getLogger(__name__)

# Keys stamped on the Stripe PaymentIntent metadata at checkout
META_USER_ID = "user_id"
META_ITEM_ID = "item_id"
META_AMOUNT = "amount"
META_SUPPLEMENTAL = "supplemental_amount"
META_AGENCY = "agency_name"

# PayPal purchase unit reference_id: payerId%itemId%supplementalAmount%agencyName
REFERENCE_DELIMITER = "%"
REFERENCE_PARTS = 4


def _to_decimal(value: Any, field: str, required: bool = True) -> Optional[Decimal]:
    if value is None or value == "":
        if required:
            raise NormalizationError(f"Missing {field}")
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise NormalizationError(f"Invalid {field}: {value!r}")


def encode_reference(payer_id: str, item_id: str, supplemental_amount: Any, agency_name: str) -> str:
    parts = [payer_id, item_id, str(supplemental_amount or "0"), agency_name]
    if any(REFERENCE_DELIMITER in part for part in parts):
        raise ValueError(f"Reference fields must not contain {REFERENCE_DELIMITER!r}")
    return REFERENCE_DELIMITER.join(parts)


def decode_reference(reference: str) -> Tuple[str, str, Optional[Decimal], str]:
    """Split a PayPal composite reference into (payer, item, supplemental, agency)."""
    parts = reference.split(REFERENCE_DELIMITER)
    if len(parts) != REFERENCE_PARTS:
        raise NormalizationError(
            f"Reference {reference!r} has {len(parts)} parts, expected {REFERENCE_PARTS}"
        )
    payer_id, item_id, supplemental, agency_name = parts
    return payer_id, item_id, _to_decimal(supplemental, "supplemental amount", required=False), agency_name


def _stripe_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    try:
        metadata = payload["data"]["object"]["metadata"]
    except (KeyError, TypeError):
        raise NormalizationError("Stripe event has no data.object.metadata")
    if not isinstance(metadata, dict):
        raise NormalizationError("Stripe metadata is not an object")

    return {
        "payer_user_id": metadata.get(META_USER_ID),
        "item_id": metadata.get(META_ITEM_ID),
        "donation_amount": _to_decimal(metadata.get(META_AMOUNT), "amount"),
        "supplemental_amount": _to_decimal(metadata.get(META_SUPPLEMENTAL), "supplemental amount", required=False),
        "beneficiary_agency_name": metadata.get(META_AGENCY),
    }


def _paypal_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    try:
        unit = payload["resource"]["purchase_units"][0]
        reference = unit["reference_id"]
        amount = unit["amount"]["value"]
    except (KeyError, IndexError, TypeError):
        raise NormalizationError("PayPal event has no purchase unit reference and amount")
    if not isinstance(reference, str):
        raise NormalizationError("PayPal reference_id is not a string")

    payer_id, item_id, supplemental, agency_name = decode_reference(reference)
    return {
        "payer_user_id": payer_id,
        "item_id": item_id,
        # The charged total comes from the purchase unit, never the reference
        "donation_amount": _to_decimal(amount, "amount"),
        "supplemental_amount": supplemental,
        "beneficiary_agency_name": agency_name,
    }


_EXTRACTORS = {
    Provider.STRIPE: _stripe_fields,
    Provider.PAYPAL: _paypal_fields,
}


def normalize(event: VerifiedEvent) -> DonationIntent:
    """Build a DonationIntent from a verified event.

    Raises:
        NormalizationError: If the payload is malformed or a field is missing.
    """
    fields = _EXTRACTORS[event.provider](event.payload)
    try:
        intent = DonationIntent(provider=event.provider, event_id=event.event_id, **fields)
    except ValidationError as e:
        raise NormalizationError(f"Invalid {event.provider.value} donation payload: {e}") from e

    logger.debug(f"Normalized {event.provider.value} event {event.event_id} for item {intent.item_id}")
    return intent
