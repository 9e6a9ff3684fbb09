"""Best-effort notification fan-out for committed donations."""

import logging
from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional, List, Awaitable, Callable

import httpx
from pydantic import BaseModel

from ..database import User, Item, Agency
from ..exceptions import NotificationError
from ..models import ChannelResult, DonationIntent

logger = logging.getLogger(__name__)

PAYER_CHANNEL = "payer_confirmation"
AGENCY_CHANNEL = "agency_confirmation"
PUBLIC_CHANNEL = "public_announcement"


class PayerConfirmation(BaseModel):
    email: str
    first_name: str
    last_name: str
    child_name: str
    item: str
    price: Decimal
    agency: str


class AgencyConfirmation(BaseModel):
    agency_name: str
    agency_email: str
    child_name: str
    item: str
    price: Decimal
    donation_date: str
    address: str


class AnnouncedItem(BaseModel):
    item: str
    url: Optional[str] = None
    child: str


class PublicAnnouncement(BaseModel):
    user: str
    service: str
    item: AnnouncedItem
    amount: Decimal
    supplemental_amount: Optional[Decimal] = None


def format_donation_date(day: date) -> str:
    """Format as e.g. ``Oct 19th, 2026``."""
    if 11 <= day.day % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day.day % 10, "th")
    return f"{day:%b} {day.day}{suffix}, {day.year}"


class NotificationService(ABC):
    """Outbound notification boundary. Each method may raise independently."""

    @abstractmethod
    async def send_payer_confirmation(self, payload: PayerConfirmation) -> None:
        raise NotImplementedError

    @abstractmethod
    async def send_agency_confirmation(self, payload: AgencyConfirmation) -> None:
        raise NotImplementedError

    @abstractmethod
    async def send_public_announcement(self, payload: PublicAnnouncement) -> None:
        raise NotImplementedError


class LoggingNotificationService(NotificationService):
    """Writes notifications to the log instead of delivering them."""

    async def send_payer_confirmation(self, payload: PayerConfirmation) -> None:
        logger.info(f"Donation confirmation for {payload.email}: {payload.item} for {payload.child_name}")

    async def send_agency_confirmation(self, payload: AgencyConfirmation) -> None:
        logger.info(f"Agency donation notice for {payload.agency_name}: {payload.item} on {payload.donation_date}")

    async def send_public_announcement(self, payload: PublicAnnouncement) -> None:
        logger.info(f"{payload.user} donated {payload.item.item} via {payload.service}")


class DiscordNotificationService(LoggingNotificationService):
    """Posts the public announcement to a Discord channel webhook."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.transport = transport

    def render(self, payload: PublicAnnouncement) -> str:
        text = f"{payload.user} donated {payload.item.item} to {payload.item.child} via {payload.service} (${payload.amount})"
        if payload.supplemental_amount:
            text += f", including an extra ${payload.supplemental_amount}"
        if payload.item.url:
            text += f"\n{payload.item.url}"
        return text

    async def send_public_announcement(self, payload: PublicAnnouncement) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.webhook_url, json={"content": self.render(payload)})
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(PUBLIC_CHANNEL, f"Discord webhook failed: {e}") from e


class NotificationFanout:
    """
    Dispatches the three donation notifications.

    Every channel gets exactly one attempt, in a fixed order; a failing channel
    is logged and reported in the result list without affecting the others.
    """

    def __init__(self, service: NotificationService):
        self.service = service

    async def _attempt(self, channel: str, send: Callable[[], Awaitable[None]]) -> ChannelResult:
        try:
            logger.info(f"Sending {channel}")
            await send()
        except Exception as e:
            logger.error(f"Notification channel {channel} failed: {e}")
            return ChannelResult(channel=channel, delivered=False, error=str(e))
        return ChannelResult(channel=channel, delivered=True)

    async def dispatch(
        self,
        intent: DonationIntent,
        payer: User,
        item: Item,
        agency: Agency,
        today: Optional[date] = None,
    ) -> List[ChannelResult]:
        today = today or date.today()

        payer_payload = PayerConfirmation(
            email=payer.email,
            first_name=payer.first_name,
            last_name=payer.last_name,
            child_name=item.child_first_name,
            item=item.name,
            price=item.price_major,
            agency=intent.beneficiary_agency_name,
        )
        agency_payload = AgencyConfirmation(
            agency_name=agency.name,
            agency_email=agency.manager_email,
            child_name=item.child_first_name,
            item=item.name,
            price=item.price_major,
            donation_date=format_donation_date(today),
            address=agency.formatted_address,
        )
        public_payload = PublicAnnouncement(
            user=payer.first_name,
            service=intent.provider.display_name,
            item=AnnouncedItem(item=item.name, url=item.url, child=item.child_first_name),
            amount=intent.donation_amount,
            supplemental_amount=intent.supplemental_amount,
        )

        return [
            await self._attempt(PAYER_CHANNEL, lambda: self.service.send_payer_confirmation(payer_payload)),
            await self._attempt(AGENCY_CHANNEL, lambda: self.service.send_agency_confirmation(agency_payload)),
            await self._attempt(PUBLIC_CHANNEL, lambda: self.service.send_public_announcement(public_payload)),
        ]
