import json
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field, field_validator

from lingoflow.application.analytics import ExportKind
from lingoflow.application.config import resolve_config
from lingoflow.application.factory import Services, build_services
from lingoflow.application.ids import generate_id
from lingoflow.consts import VERSION
from lingoflow.domain.constants import DEFAULT_CARD_LIMIT
from lingoflow.domain.models import (
    Account,
    Card,
    Source,
    SourceType,
    Tier,
    UsageEvent,
    UsageEventType,
    utc_now,
)

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("lingoflow.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup; tests may install their own services beforehand
    owned = getattr(app.state, "services", None) is None
    if owned:
        app.state.services = build_services(resolve_config())
    logger.info(f"lingoflow server v{VERSION} starting up...")
    yield
    logger.info("lingoflow server shutting down...")
    services: Services = app.state.services
    await services.aclose()
    services.close()
    if owned:
        app.state.services = None


app = FastAPI(
    title="lingoflow server",
    description="Usage events, reviews and card generation over HTTP.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


def _services(request: Request) -> Services:
    return request.app.state.services


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------- Models ----------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class AccountRequest(BaseModel):
    id: str
    email: str = ""
    tier: Tier = Tier.STORAGE
    auto_reactivate: bool = True
    daily_new_goal: int = Field(default=20, ge=0)
    native_language: str = "en"
    target_language: str | None = None


class AccountResponse(BaseModel):
    id: str
    tier: Tier
    last_usage_at: datetime | None
    next_bill_date: datetime | None
    last_state_change_at: datetime | None
    auto_reactivate: bool
    daily_new_goal: int

    @classmethod
    def of(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            tier=account.tier,
            last_usage_at=account.last_usage_at,
            next_bill_date=account.next_bill_date,
            last_state_change_at=account.last_state_change_at,
            auto_reactivate=account.auto_reactivate,
            daily_new_goal=account.daily_new_goal,
        )


class EventRequest(BaseModel):
    account_id: str
    type: UsageEventType
    payload: dict = Field(default_factory=dict)
    org_id: str | None = None
    created_at: datetime | None = None

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


class EventResponse(BaseModel):
    event_id: str
    account: AccountResponse


class CardResponse(BaseModel):
    id: str
    owner_id: str
    term: str
    gloss: str
    example: str
    cefr: str
    pos: str
    tags: list[str]
    image_url: str
    strength: int
    ease: float
    next_due_at: datetime | None

    @classmethod
    def of(cls, card: Card) -> "CardResponse":
        return cls(
            id=card.id,
            owner_id=card.owner_id,
            term=card.term,
            gloss=card.gloss,
            example=card.example,
            cefr=card.cefr,
            pos=card.pos,
            tags=list(card.tags),
            image_url=card.image_url,
            strength=card.strength,
            ease=card.ease,
            next_due_at=card.next_due_at,
        )


class ReviewRequest(BaseModel):
    card_id: str
    grade: int = Field(ge=0, le=5)
    device: str = "api"


class SourceRequest(BaseModel):
    type: SourceType = SourceType.TRANSCRIPT
    uri: str = ""
    language: str | None = None
    org_id: str | None = None


class GenerateRequest(BaseModel):
    account_id: str
    source: SourceRequest = Field(default_factory=SourceRequest)
    corpus: list[str]
    starred: list[str] = Field(default_factory=list)
    limit: int = Field(default=DEFAULT_CARD_LIMIT, ge=0)


class JobRequest(BaseModel):
    now: datetime | None = None

    @field_validator("now")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


class MeteringRequest(BaseModel):
    period_start: datetime

    @field_validator("period_start")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


# ---------- Endpoints ----------


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.post("/accounts", response_model=AccountResponse)
async def create_account(req: AccountRequest, request: Request):
    services = _services(request)
    account = Account(
        id=req.id,
        email=req.email,
        tier=req.tier,
        auto_reactivate=req.auto_reactivate,
        daily_new_goal=req.daily_new_goal,
        native_language=req.native_language,
        target_language=req.target_language,
    )
    services.store.save(account)
    return AccountResponse.of(account)


@app.get("/accounts/{account_id}", response_model=AccountResponse)
async def get_account(account_id: str, request: Request):
    account = _services(request).store.get(Account, account_id)
    if account is None:
        raise HTTPException(status_code=404, detail=f"Unknown account: {account_id}")
    return AccountResponse.of(account)


@app.post("/events", response_model=EventResponse)
async def record_event(req: EventRequest, request: Request):
    """Append a usage event and apply it to the account's subscription."""
    services = _services(request)
    if services.store.get(Account, req.account_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown account: {req.account_id}")

    event = UsageEvent(
        id=generate_id("evt"),
        account_id=req.account_id,
        org_id=req.org_id,
        type=req.type,
        created_at=req.created_at or utc_now(),
        payload=json.dumps(req.payload),
    )
    try:
        await services.recorder.record(event)
    except Exception as e:
        logger.error(f"Event processing failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e

    return EventResponse(
        event_id=event.id,
        account=AccountResponse.of(services.store.get(Account, req.account_id)),
    )


@app.post("/reviews", response_model=CardResponse)
async def grade_card(req: ReviewRequest, request: Request):
    services = _services(request)
    card = services.store.get(Card, req.card_id)
    if card is None:
        raise HTTPException(status_code=404, detail=f"Unknown card: {req.card_id}")
    account = services.store.get(Account, card.owner_id)
    if account is None:
        raise HTTPException(status_code=404, detail=f"Unknown account: {card.owner_id}")

    try:
        updated = await services.scheduler.grade(card, req.grade, account, req.device)
    except Exception as e:
        logger.error(f"Review failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e
    return CardResponse.of(updated)


@app.post("/cards/generate", response_model=list[CardResponse])
async def generate_cards(req: GenerateRequest, request: Request):
    services = _services(request)
    account = services.store.get(Account, req.account_id)
    if account is None:
        raise HTTPException(status_code=404, detail=f"Unknown account: {req.account_id}")

    source = Source(
        id=generate_id("src"),
        account_id=account.id,
        type=req.source.type,
        uri=req.source.uri,
        language=req.source.language,
        org_id=req.source.org_id,
    )
    services.store.save(source)
    logger.info(f"Card generation requested for {account.id}: {len(req.corpus)} sentences")

    try:
        cards = await services.generator.generate_cards(
            account, source, req.corpus, starred=req.starred, limit=req.limit
        )
    except Exception as e:
        logger.error(f"Card generation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e
    return [CardResponse.of(c) for c in cards]


@app.get("/accounts/{account_id}/queue", response_model=list[CardResponse])
async def daily_queue(account_id: str, request: Request, on: datetime | None = None):
    services = _services(request)
    account = services.store.get(Account, account_id)
    if account is None:
        raise HTTPException(status_code=404, detail=f"Unknown account: {account_id}")
    cards = services.scheduler.daily_queue(account, _as_utc(on))
    return [CardResponse.of(c) for c in cards]


@app.post("/jobs/nightly-downgrade")
async def run_nightly_downgrade(req: JobRequest, request: Request):
    demoted = _services(request).state_machine.nightly_downgrade(req.now or utc_now())
    return {"demoted": demoted}


@app.post("/jobs/rollup")
async def run_nightly_rollup(req: JobRequest, request: Request):
    rows = _services(request).analytics.nightly_rollup(req.now or utc_now())
    return {"rows": len(rows)}


@app.post("/jobs/metering")
async def run_metering(req: MeteringRequest, request: Request):
    reported = await _services(request).state_machine.send_metering_snapshot(req.period_start)
    return {"reported": reported}


@app.get("/exports/{kind}", response_class=PlainTextResponse)
async def export_tsv(kind: ExportKind, request: Request):
    return _services(request).analytics.export_tsv(kind)
