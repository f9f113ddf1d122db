"""FastAPI application: webhook and admin endpoints for the offer assistant.

Endpoints:

  GET    /health                        Health check
  POST   /webhook/inbound               Inbound message from the gateway (202)
  GET    /api/status                    Active conversations, provider, currency
  GET    /api/conversations/{user_id}   Recent transcript for one user
  DELETE /api/conversations/{user_id}   Clear one user's transcript
  GET    /api/sessions/{user_id}        Dialogue state for one user
  DELETE /api/sessions                  Administrative reset (sessions + transcripts)
  POST   /api/match                     Run the Matching Engine directly

The message flow:
  1. The WhatsApp gateway posts each received message to /webhook/inbound
  2. The channel hands it to the dispatcher, which queues it per user
  3. The dialogue controller runs the turn and replies through the gateway
"""

from __future__ import annotations

# Load .env into os.environ early so settings and the Anthropic SDK see it.
from dotenv import load_dotenv
load_dotenv()

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

# Configure root logger early so all offerbot.* loggers have a handler
# when run via `uvicorn offerbot.app:app`.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from listings.schema import OfferType
from offerbot.auth import require_admin_token, require_gateway_token
from offerbot.channels.base import InboundEvent, MessagingChannel
from offerbot.channels.http_gateway import HttpGatewayChannel
from offerbot.classification import OfferClassifier
from offerbot.config import Settings, settings
from offerbot.dialogue import DialogueController, redact_pii
from offerbot.dispatcher import Dispatcher
from offerbot.errors import InventoryUnavailableError
from offerbot.matching import MatchingEngine, budget_window
from offerbot.messages import CURRENCY
from offerbot.nlu.base import NLUClient
from offerbot.nlu.providers import create_nlu_client
from offerbot.nlu.service import NLUService
from offerbot.stores import (
    InMemorySessionStore,
    InMemoryTranscriptStore,
    JsonInventoryStore,
    JsonSessionStore,
)
from offerbot.stores.base import InventoryStore, SessionStore, TranscriptStore

log = logging.getLogger("offerbot.app")

_START_TIME = time.time()


# ── Request bodies ─────────────────────────────────────────────

class InboundPayload(BaseModel):
    """Message as posted by the gateway. Voice notes arrive transcribed."""

    sender_id: str = Field(min_length=1)
    text: str = ""
    kind: str = Field(default="text", pattern="^(text|voice)$")
    quoted: bool = False


class MatchRequest(BaseModel):
    offer_type: OfferType
    town: str = Field(min_length=1)
    service: str
    budget: float = Field(gt=0)
    exclude_ids: list[int] = Field(default_factory=list)


# ── Wiring ─────────────────────────────────────────────────────

@dataclass
class Services:
    """Everything one running assistant owns."""

    sessions: SessionStore
    inventory: InventoryStore
    transcripts: TranscriptStore
    nlu_client: NLUClient
    nlu: NLUService
    engine: MatchingEngine
    channel: MessagingChannel
    controller: DialogueController
    dispatcher: Dispatcher


def build_services(
    cfg: Settings,
    *,
    nlu_client: Optional[NLUClient] = None,
    channel: Optional[MessagingChannel] = None,
    sessions: Optional[SessionStore] = None,
    inventory: Optional[InventoryStore] = None,
    transcripts: Optional[TranscriptStore] = None,
) -> Services:
    """Build the collaborators from settings; any of them may be supplied instead."""
    if sessions is None:
        if cfg.session_backend == "json":
            sessions = JsonSessionStore(cfg.session_path)
        else:
            sessions = InMemorySessionStore()
    inventory = inventory or JsonInventoryStore(cfg.catalog_dir)
    transcripts = transcripts or InMemoryTranscriptStore()
    nlu_client = nlu_client or create_nlu_client(cfg)
    channel = channel or HttpGatewayChannel(
        cfg.gateway_url, token=cfg.gateway_token, send_delay=cfg.send_delay_seconds,
    )

    nlu = NLUService(nlu_client, cfg.nlu_temperature_extract, cfg.nlu_temperature_reply)
    engine = MatchingEngine(inventory)
    controller = DialogueController(
        sessions=sessions,
        inventory=inventory,
        transcripts=transcripts,
        nlu=nlu,
        classifier=OfferClassifier(nlu, fallback_to_last=cfg.selection_fallback_last),
        engine=engine,
        channel=channel,
        catalog_base_url=cfg.catalog_base_url,
        history_limit=cfg.history_limit,
        default_language=cfg.default_language,
    )
    return Services(
        sessions=sessions,
        inventory=inventory,
        transcripts=transcripts,
        nlu_client=nlu_client,
        nlu=nlu,
        engine=engine,
        channel=channel,
        controller=controller,
        dispatcher=Dispatcher(controller.handle),
    )


def create_app(cfg: Optional[Settings] = None, **overrides) -> FastAPI:
    """Create and configure the FastAPI application.

    ``overrides`` are passed to ``build_services`` (tests inject fakes).
    """
    cfg = cfg or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services = build_services(cfg, **overrides)
        await services.channel.connect()
        services.channel.subscribe(services.dispatcher.submit)
        services.dispatcher.start()
        app.state.services = services
        log.info("Offer assistant ready (provider=%s)", services.nlu.provider)
        try:
            yield
        finally:
            await services.dispatcher.stop()
            await services.channel.shutdown()
            await services.nlu_client.aclose()

    app = FastAPI(
        title="Offer Assistant",
        description="WhatsApp assistant matching vehicle and real estate offers",
        version="0.1.0",
        lifespan=lifespan,
    )

    def _services(request: Request) -> Services:
        return request.app.state.services

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        """Lightweight health check; confirms the event loop is responsive."""
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({"status": "ok", "uptime": uptime})

    # ── Inbound webhook ────────────────────────────────────────

    @app.post(
        "/webhook/inbound",
        status_code=status.HTTP_202_ACCEPTED,
        dependencies=[Depends(require_gateway_token)],
    )
    async def inbound(payload: InboundPayload, request: Request):
        """Queue one inbound message. The reply goes out asynchronously."""
        services = _services(request)
        event = InboundEvent(
            sender_id=payload.sender_id,
            text=payload.text,
            kind=payload.kind,
            quoted=payload.quoted,
        )
        accepted = await services.channel.deliver(event)
        log.info("Inbound %s from %s (accepted=%s)", payload.kind, redact_pii(payload.sender_id), accepted)
        return {"accepted": accepted}

    # ── Admin / ops ────────────────────────────────────────────

    @app.get("/api/status", dependencies=[Depends(require_admin_token)])
    async def get_status(request: Request):
        services = _services(request)
        return {
            "status": "running" if services.dispatcher.running else "stopped",
            "active_conversations": await services.transcripts.active_conversations(),
            "sessions": len(await services.sessions.all()),
            "provider": services.nlu.provider,
            "currency": CURRENCY,
        }

    @app.get("/api/conversations/{user_id}", dependencies=[Depends(require_admin_token)])
    async def get_conversation(user_id: str, request: Request, limit: int = 20):
        services = _services(request)
        history = await services.transcripts.recent(user_id, limit)
        return {"user_id": user_id, "history": history}

    @app.delete("/api/conversations/{user_id}", dependencies=[Depends(require_admin_token)])
    async def clear_conversation(user_id: str, request: Request):
        services = _services(request)
        if not await services.transcripts.clear(user_id):
            raise HTTPException(status_code=404, detail="No conversation for this user")
        return {"user_id": user_id, "cleared": True}

    @app.get("/api/sessions/{user_id}", dependencies=[Depends(require_admin_token)])
    async def get_session(user_id: str, request: Request):
        services = _services(request)
        snapshot = await services.controller.snapshot(user_id)
        if snapshot is None:
            raise HTTPException(status_code=404, detail="No session for this user")
        return snapshot

    @app.delete("/api/sessions", dependencies=[Depends(require_admin_token)])
    async def reset_sessions(request: Request):
        """Administrative reset: every session and transcript is dropped."""
        services = _services(request)
        sessions = await services.sessions.delete_all()
        transcripts = await services.transcripts.clear_all()
        log.warning("Administrative reset: %d sessions, %d transcripts", sessions, transcripts)
        return {"sessions_deleted": sessions, "transcripts_cleared": transcripts}

    @app.post("/api/match", dependencies=[Depends(require_admin_token)])
    async def match(body: MatchRequest, request: Request):
        services = _services(request)
        try:
            result = await services.engine.match(
                body.offer_type, body.town, body.service, body.budget, body.exclude_ids,
            )
        except InventoryUnavailableError as exc:
            raise HTTPException(status_code=503, detail=str(exc))
        low, high = budget_window(body.budget)
        return {
            "window": [low, high],
            "matches": [o.model_dump(mode="json") for o in result.matches],
            "suggestions": [o.model_dump(mode="json") for o in result.suggestions],
            "service_filter_skipped": result.service_filter_skipped,
        }

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    for warning in settings.validate_startup():
        log.warning(warning)

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "offerbot.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
