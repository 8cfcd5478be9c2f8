"""Inbound email pipeline: request handler and stage timing."""

from responder.pipeline.handler import RequestHandler, WebhookResponse
from responder.pipeline.timing import StageTimer

__all__ = ["RequestHandler", "StageTimer", "WebhookResponse"]
