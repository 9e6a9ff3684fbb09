import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import List, Optional

from fastapi import FastAPI, Request, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import get_current_user, limiter
from .config import Settings, get_settings, configure_logging
from .database import User, get_db, init_db, close_db
from .exceptions import EntityNotFoundError, VerificationError
from .reconciliation import (
    CommitOrchestrator,
    DedupGate,
    DiscordNotificationService,
    InMemoryDedupGate,
    LedgerDedupGate,
    LoggingNotificationService,
    NotificationFanout,
    NotificationService,
    WebhookProcessor,
    WebhookStatus,
)
from .services import CheckoutService
from .verifiers import Verifier, build_verifiers

logger = logging.getLogger(__name__)

# Shared by every request of the process when DEDUP_BACKEND=memory
_memory_gate = InMemoryDedupGate()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()
    yield
    await close_db()


app = FastAPI(title="Donation Payments", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(EntityNotFoundError)
async def entity_not_found_handler(request: Request, exc: EntityNotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(VerificationError)
async def verification_error_handler(request: Request, exc: VerificationError):
    # Not acknowledged, so the provider redelivers the event
    logger.error(f"Rejecting {exc.provider} webhook: {exc}")
    return JSONResponse(status_code=502, content={"error": str(exc), "provider": exc.provider})


class CreateIntentBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: str = Field(..., alias="itemId", min_length=1)
    email: str = Field(..., min_length=3)
    agency_name: str = Field(..., alias="agencyName", min_length=1)
    supplemental_amount: Optional[Decimal] = Field(None, alias="supplementalAmount", ge=0)


def get_verifiers(settings: Settings = Depends(get_settings)) -> List[Verifier]:
    return build_verifiers(settings)


def get_notification_service(settings: Settings = Depends(get_settings)) -> NotificationService:
    if settings.discord_webhook_url:
        return DiscordNotificationService(settings.discord_webhook_url)
    return LoggingNotificationService()


def get_dedup_gate(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> DedupGate:
    if settings.dedup_backend == "memory":
        return _memory_gate
    return LedgerDedupGate(db, ttl_hours=settings.dedup_ttl_hours)


def get_webhook_processor(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    verifiers: List[Verifier] = Depends(get_verifiers),
    dedup_gate: DedupGate = Depends(get_dedup_gate),
    notifications: NotificationService = Depends(get_notification_service),
) -> WebhookProcessor:
    orchestrator = CommitOrchestrator(db, dedup_gate, NotificationFanout(notifications))
    return WebhookProcessor(verifiers, orchestrator, settings.stripe_completion_events)


@app.post("/payment/create-intent")
@limiter.limit("20/minute")
async def create_intent(
    request: Request,
    body: CreateIntentBody,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    service = CheckoutService(db, api_key=settings.stripe_api_key, currency=settings.currency)
    client_secret = await service.create_intent(
        payer=user,
        item_id=body.item_id,
        email=body.email,
        agency_name=body.agency_name,
        supplemental_amount=body.supplemental_amount,
    )
    return {"clientSecret": client_secret}


class PayPalReferenceBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: str = Field(..., alias="itemId", min_length=1)
    agency_name: str = Field(..., alias="agencyName", min_length=1)
    supplemental_amount: Optional[Decimal] = Field(None, alias="supplementalAmount", ge=0)


@app.post("/payment/paypal-reference")
@limiter.limit("20/minute")
async def paypal_reference(
    request: Request,
    body: PayPalReferenceBody,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    service = CheckoutService(db, api_key=settings.stripe_api_key, currency=settings.currency)
    try:
        reference = await service.paypal_reference(
            payer=user,
            item_id=body.item_id,
            agency_name=body.agency_name,
            supplemental_amount=body.supplemental_amount,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"referenceId": reference}


@app.post("/payment/webhook")
async def payment_webhook(
    request: Request,
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    body = await request.body()
    result = await processor.process(request.headers, body)
    if result.status == WebhookStatus.REJECTED:
        raise HTTPException(status_code=400, detail=f"Webhook Error: {result.error}")
    return {"received": True}


@app.get("/payment/success/{item_id}/{total_amount}")
async def payment_success(
    item_id: str,
    total_amount: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    service = CheckoutService(db, api_key=settings.stripe_api_key, currency=settings.currency)
    return {"donationInformation": await service.success_details(user, item_id, total_amount)}


@app.get("/health")
async def health():
    return {"status": "healthy"}
