"""FastAPI endpoint receiving inbound email webhooks.

Reads the raw body bytes first (the signature covers them exactly), then the
multipart form, and hands both to the ``RequestHandler`` in a worker thread:
the pipeline is synchronous and may sleep between retries.
"""

from __future__ import annotations

import asyncio

import structlog
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.formparsers import MultiPartException

from responder.pipeline.handler import RequestHandler

logger = structlog.get_logger()

router = APIRouter()


async def _read_fields(request: Request) -> dict[str, str]:
    """Decode the form payload, keeping text fields only (attachments are ignored)."""
    try:
        form = await request.form()
    except (HTTPException, MultiPartException) as exc:
        # Signature verification still runs; an unsigned garbage body gets 401/403.
        logger.warning("form_decode_failed", error=str(exc))
        return {}
    return {key: value for key, value in form.items() if isinstance(value, str)}


@router.post("/webhooks/inbound-email")
async def inbound_email_webhook(request: Request) -> JSONResponse:
    """Receive one inbound email from the mail provider.

    Args:
        request: The incoming FastAPI request.

    Returns:
        The handler's status code and JSON body.
    """
    handler: RequestHandler = request.app.state.services["request_handler"]

    raw_body = await request.body()
    fields = await _read_fields(request)

    response = await asyncio.to_thread(handler.handle, raw_body, request.headers, fields)
    return JSONResponse(content=response.body, status_code=response.status_code)
