"""SQLAlchemy models for donation persistence."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    ForeignKey,
    Index,
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column
import enum


def _uuid() -> str:
    return str(uuid.uuid4())


def minor_to_major(amount: int) -> Decimal:
    """Convert an amount in minor units (cents) to a two-place Decimal."""
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class ItemStatus(str, enum.Enum):
    """Lifecycle of a wish item."""
    PUBLISHED = "published"
    DONATED = "donated"


class User(Base):
    """A registered donor."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    donations: Mapped[List["Donation"]] = relationship("Donation", back_populates="donor")


class Agency(Base):
    """A partner agency that publishes wish items for the children it serves."""
    __tablename__ = "agencies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    manager_email: Mapped[str] = mapped_column(String(255), nullable=False)
    address1: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    address2: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    zipcode: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    items: Mapped[List["Item"]] = relationship("Item", back_populates="owner")

    @property
    def formatted_address(self) -> str:
        street = " ".join(part for part in (self.address1, self.address2) if part)
        return f"{street}, {self.city}, {self.state} {self.zipcode}"


class Item(Base):
    """A wish item published by an agency on behalf of a child."""
    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)  # minor units
    url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    child_first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=ItemStatus.PUBLISHED.value)
    owner_id: Mapped[str] = mapped_column(String(36), ForeignKey("agencies.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner: Mapped["Agency"] = relationship("Agency", back_populates="items", lazy="joined")

    __table_args__ = (
        Index("ix_items_status", "status"),
    )

    @property
    def price_major(self) -> Decimal:
        return minor_to_major(self.price)


class Donation(Base):
    """A committed donation: payer -> item -> item owner."""
    __tablename__ = "donations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    donor_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("items.id"), nullable=False, index=True)
    recipient_id: Mapped[str] = mapped_column(String(36), ForeignKey("agencies.id"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # minor units
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    donor: Mapped["User"] = relationship("User", back_populates="donations")

    __table_args__ = (
        Index("ix_donations_created_at", "created_at"),
    )

    @property
    def amount_major(self) -> Decimal:
        return minor_to_major(self.amount)


class ProcessedEvent(Base):
    """Durable dedup ledger entry: one row per committed idempotency key."""
    __tablename__ = "processed_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_processed_events_expires_at", "expires_at"),
    )

    def is_expired(self) -> bool:
        """Check if the ledger entry is past its retention window."""
        return datetime.utcnow() > self.expires_at
