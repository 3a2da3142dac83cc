# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""FastAPI application factory and HTTP schemas for the code mailer.

Routes:

- ``POST /send-code``: submit a delivery request. Responds 200 when
  delivered, 202 when queued for background retry, 400 when a field is
  missing and 429 when rate limited.
- ``GET /health``: liveness probe.
- ``GET /status``: simulation flag, queue size and worker state.
- ``GET /queue``: items waiting for redelivery (codes are not exposed).
- ``POST /commands/run-now``: run one requeue cycle immediately.
- ``GET /metrics``: Prometheus metrics.

Example:
    Serving the API::

        core = build_core(load_settings())
        app = create_app(core)
        uvicorn.run(app, host="0.0.0.0", port=3000)
"""

from typing import AsyncContextManager, Callable, List, Optional
import logging

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .core import CodeMailerCore
from .models import DeliveryOutcome, DeliveryRequest, OutcomeStatus, RejectReason

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "Missing email, username or code"
RATE_LIMITED_MESSAGE = "Too many requests. Try later."
QUEUED_MESSAGE = "Queued for retry"


class SendCodeResponse(BaseModel):
    """Body returned by ``POST /send-code``."""
    ok: bool
    simulated: Optional[bool] = None
    message: Optional[str] = None


class StatusResponse(BaseModel):
    ok: bool
    simulated: bool
    queue_size: int
    worker_running: bool


class QueueEntry(BaseModel):
    """Queued item as exposed by ``GET /queue``."""
    recipient: str
    display_name: str
    attempt_count: int
    last_error: Optional[str] = None


class QueueResponse(BaseModel):
    ok: bool
    items: List[QueueEntry]


class RunNowResponse(BaseModel):
    ok: bool
    outcome: str


def outcome_to_response(outcome: DeliveryOutcome) -> tuple[int, SendCodeResponse]:
    """Map a :class:`DeliveryOutcome` to an HTTP status and body."""
    if outcome.status is OutcomeStatus.DELIVERED:
        return status.HTTP_200_OK, SendCodeResponse(ok=True, simulated=True if outcome.simulated else None)
    if outcome.status is OutcomeStatus.QUEUED:
        return status.HTTP_202_ACCEPTED, SendCodeResponse(ok=False, message=QUEUED_MESSAGE)
    if outcome.reason is RejectReason.RATE_LIMITED:
        return status.HTTP_429_TOO_MANY_REQUESTS, SendCodeResponse(ok=False, message=RATE_LIMITED_MESSAGE)
    return status.HTTP_400_BAD_REQUEST, SendCodeResponse(ok=False, message=MISSING_FIELDS_MESSAGE)


def _client_id(request: Request) -> str:
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def create_app(
    svc: CodeMailerCore,
    lifespan: Callable[[FastAPI], AsyncContextManager] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    svc:
        The :class:`async_code_mailer.core.CodeMailerCore` serving requests.
    lifespan:
        Optional lifespan context manager for startup/shutdown events.

    Returns
    -------
    FastAPI
        A configured application ready to be served by Uvicorn.
    """
    api = FastAPI(title="Async Code Mailer", lifespan=lifespan)
    # Browser front-ends post from another origin.
    api.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    router = APIRouter(prefix="/commands", tags=["commands"])

    @api.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Report malformed payloads as missing fields."""
        logger.warning("Validation error on %s %s: %s", request.method, request.url.path, exc.errors())
        body = SendCodeResponse(ok=False, message=MISSING_FIELDS_MESSAGE)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=body.model_dump(exclude_none=True),
        )

    @api.get("/health")
    async def health():
        """Health check endpoint for container monitoring."""
        return {"status": "ok"}

    @api.get("/status", response_model=StatusResponse)
    async def service_status():
        """Return the simulation flag, queue size and worker state."""
        return StatusResponse.model_validate(await svc.status())

    @api.post("/send-code", response_model=SendCodeResponse, response_model_exclude_none=True)
    async def send_code(request: Request, payload: Optional[DeliveryRequest] = None):
        """Deliver a confirmation code, queueing it when the transport keeps failing."""
        outcome = await svc.handle(payload, client_id=_client_id(request))
        status_code, body = outcome_to_response(outcome)
        return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))

    @api.get("/queue", response_model=QueueResponse)
    async def list_queue():
        """Expose the items waiting for background redelivery."""
        items = await svc.queue.snapshot()
        return QueueResponse(ok=True, items=[QueueEntry(**item.summary()) for item in items])

    @router.post("/run-now", response_model=RunNowResponse)
    async def run_now():
        """Run one requeue cycle and report its outcome."""
        outcome = await svc.run_now()
        return RunNowResponse(ok=True, outcome=outcome.value)

    @api.get("/metrics")
    async def metrics():
        """Expose Prometheus metrics collected by the service."""
        return Response(content=svc.metrics.generate_latest(), media_type="text/plain; version=0.0.4")

    api.include_router(router)
    return api

