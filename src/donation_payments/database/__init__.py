"""Database module for donation persistence."""

from .models import (
    Base,
    User,
    Agency,
    Item,
    Donation,
    ProcessedEvent,
    ItemStatus,
    minor_to_major,
)
from .session import (
    get_db,
    get_database_url,
    init_db,
    close_db,
    create_async_engine,
    create_tables,
    get_async_session_factory,
    get_db_context,
)
from .repository import (
    UserRepository,
    AgencyRepository,
    ItemRepository,
    DonationRepository,
    ProcessedEventRepository,
)

__all__ = [
    # Models
    "Base",
    "User",
    "Agency",
    "Item",
    "Donation",
    "ProcessedEvent",
    "ItemStatus",
    "minor_to_major",
    # Session management
    "get_db",
    "get_database_url",
    "init_db",
    "close_db",
    "create_async_engine",
    "create_tables",
    "get_async_session_factory",
    "get_db_context",
    # Repositories
    "UserRepository",
    "AgencyRepository",
    "ItemRepository",
    "DonationRepository",
    "ProcessedEventRepository",
]
