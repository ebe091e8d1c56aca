"""
FastAPI application for the relay.

Every route reads its collaborators from the :class:`RelayServices` object
the application was created with; nothing is looked up from module globals,
so tests can build as many independent applications as they need.

Order of checks on ``POST /webhook``: rate limit, signature over the raw
body, JSON decoding, envelope validation, then processing. Each check
short-circuits with a :class:`FeedRelayError`, rendered by a single
exception handler; anything else becomes a retryable 500.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Optional, Sequence

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse

from feedrelay import __version__
from feedrelay.database.db_connection import ConnectionManager
from feedrelay.datatypes.feed_datatypes import ManualItem
from feedrelay.datatypes.outcome_datatypes import ProcessingOutcome
from feedrelay.errors import (
    ConfigurationError,
    FeedRelayError,
    RateLimitError,
    ValidationError,
)
from feedrelay.ingestion.payload_validator import validate_envelope, validate_manual_submission
from feedrelay.pipeline.feed_processor import FeedProcessor
from feedrelay.security.rate_limiter import RateLimiter
from feedrelay.security.signature_verifier import SignatureVerifier
from feedrelay.util.logger import get_logger
from feedrelay.web.models import (
    HealthResponse,
    ManualResponse,
    RetryableErrorResponse,
    StatsResponse,
    WebhookResponse,
)

logger = get_logger("web_app")

SERVICE_NAME = "feedrelay"
MANUAL_FORM_PATH = Path(__file__).with_name("manual_form.html")


@dataclass
class RelayServices:
    """Everything the HTTP boundary needs, built once at startup.

    Attributes:
        verifier: Webhook signature check.
        rate_limiter: Shared by ``/webhook`` and ``/manual``.
        processor: The item pipeline.
        db: Connection backing the dedup store.
        database_path: Opened by the application lifespan when set and the
            connection is not open yet.
        signature_header: Request header carrying the webhook signature.
        manual_allowed_domains: Hosts accepted in manual submissions.
        trust_forwarded_for: Use ``X-Forwarded-For`` as the client origin.
        retention_days: Dedup records older than this are purged at startup
            (0 disables the purge).
        environment: Reported by ``/health``.
    """

    verifier: SignatureVerifier
    rate_limiter: RateLimiter
    processor: FeedProcessor
    db: ConnectionManager
    database_path: Optional[Path] = None
    signature_header: str = "X-Webhook-Signature"
    manual_allowed_domains: Sequence[str] = field(default_factory=tuple)
    trust_forwarded_for: bool = False
    retention_days: int = 0
    environment: str = "production"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def client_origin(request: Request, trust_forwarded_for: bool = False) -> str:
    """Return the key the rate limiter counts this request under."""
    if trust_forwarded_for:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            ip = forwarded_for.split(",")[0].strip()
            if ip:
                return ip
    if request.client:
        return request.client.host
    return "unknown"


def get_services(request: Request) -> RelayServices:
    return request.app.state.services


async def enforce_rate_limit(request: Request) -> str:
    """Dependency admitting the request through the rate limiter; returns the origin."""
    services = get_services(request)
    origin = client_origin(request, services.trust_forwarded_for)
    decision = services.rate_limiter.admit(origin)
    if not decision.allowed:
        raise RateLimitError(decision.retry_after_seconds or 1)
    return origin


def _error_body(exc: FeedRelayError) -> dict:
    match exc:
        case ConfigurationError():
            return {"error": exc.message, "code": "configuration_error"}
        case RateLimitError():
            return {"error": exc.message, "retryAfterSeconds": exc.retry_after_seconds}
        case ValidationError():
            return {"error": exc.message, "field": exc.field}
        case _:
            return {"error": exc.message}


async def handle_relay_error(request: Request, exc: FeedRelayError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc), headers=headers)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: any uncaught error is reported as retryable."""
    logger.error("[WEB] Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=RetryableErrorResponse().model_dump())


def create_app(services: RelayServices) -> FastAPI:
    """Build the FastAPI application around ``services``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        opened_here = False
        if services.database_path is not None and not services.db.is_open:
            await services.db.open(services.database_path)
            opened_here = True
        if services.retention_days > 0 and services.db.is_open:
            try:
                await services.processor.dedup.purge_older_than(services.retention_days)
            except Exception:
                logger.exception("[WEB] Failed to purge old dedup records")
        if not services.verifier.is_configured:
            logger.critical("[WEB] Webhook secret is not configured; /webhook will answer 500")
        logger.info("[WEB] Relay API ready")
        try:
            yield
        finally:
            if opened_here:
                await services.db.close()

    app = FastAPI(title="Feed Relay", version=__version__, lifespan=lifespan)
    app.state.services = services
    app.add_exception_handler(FeedRelayError, handle_relay_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    @app.post("/webhook")
    async def receive_webhook(request: Request, origin: str = Depends(enforce_rate_limit)):
        raw_body = await request.body()
        services.verifier.check(raw_body, request.headers.get(services.signature_header), origin)

        try:
            payload = json.loads(raw_body)
        except ValueError:
            raise ValidationError("body", "Invalid JSON payload")

        envelope = validate_envelope(payload)
        logger.info("[WEBHOOK] Accepted %d items from %s", len(envelope.items), origin)

        try:
            batch = await services.processor.process_envelope(envelope)
        except Exception:
            logger.exception("[WEBHOOK] Unexpected error while processing a batch from %s", origin)
            return JSONResponse(status_code=500, content=RetryableErrorResponse().model_dump())

        return WebhookResponse.from_batch(batch).model_dump()

    @app.get("/manual", response_class=HTMLResponse)
    async def manual_form():
        return HTMLResponse(MANUAL_FORM_PATH.read_text(encoding="utf-8"))

    @app.post("/manual")
    async def submit_manual(request: Request, origin: str = Depends(enforce_rate_limit)):
        try:
            payload = await request.json()
        except ValueError:
            raise ValidationError("body", "Invalid JSON payload")

        submission = validate_manual_submission(payload, services.manual_allowed_domains)
        logger.info("[MANUAL] Submission of %s from %s", submission.url, origin)

        try:
            result = await services.processor.process_item(ManualItem(submission))
        except Exception:
            logger.exception("[MANUAL] Unexpected error while processing %s", submission.url)
            return JSONResponse(status_code=500, content=RetryableErrorResponse().model_dump())

        match result.outcome:
            case ProcessingOutcome.SUCCESS:
                body = ManualResponse(
                    success=True,
                    post_id=result.post_id,
                    outcome=str(result.outcome),
                    deduplicated=result.deduplicated,
                    message="Post already processed" if result.deduplicated else "Post processed successfully",
                )
                status = 200
            case ProcessingOutcome.FILTERED:
                body = ManualResponse(
                    success=False,
                    post_id=result.post_id,
                    outcome=str(result.outcome),
                    filtered=True,
                    reason=result.reason,
                    message="Post was filtered",
                )
                status = 200
            case _:
                body = ManualResponse(
                    success=False,
                    post_id=result.post_id,
                    outcome=str(result.outcome),
                    retryable=True,
                    reason=result.reason,
                    message="Post could not be delivered; try again later",
                )
                status = 503
        return JSONResponse(status_code=status, content=body.model_dump())

    @app.get("/health")
    async def health():
        checks = {
            "configuration": "ok" if services.verifier.is_configured else "missing_webhook_secret",
            "discord": "ready" if services.processor.dispatcher.is_ready else "not_ready",
            "database": "ok" if services.db.is_open else "closed",
        }
        healthy = checks["configuration"] == "ok" and checks["discord"] == "ready" and checks["database"] == "ok"
        return HealthResponse(
            service=SERVICE_NAME,
            status="healthy" if healthy else "degraded",
            timestamp=_now_iso(),
            environment=services.environment,
            checks=checks,
        ).model_dump()

    @app.get("/stats")
    async def stats():
        data = services.processor.stats.snapshot()
        data["rateLimiting"] = {
            "windowSeconds": services.rate_limiter.window_seconds,
            "maxRequests": services.rate_limiter.max_requests,
            "activeOrigins": services.rate_limiter.active_origins(),
        }
        throttle = services.processor.throttle_summary()
        if throttle is not None:
            data["feedThrottle"] = throttle
        if services.db.is_open:
            try:
                data["dedup"] = await services.processor.dedup.summary()
            except Exception:
                logger.exception("[STATS] Failed to read dedup store aggregates")
        return StatsResponse(service=SERVICE_NAME, stats=data, timestamp=_now_iso()).model_dump()

    return app
