"""Inbound webhook: signature verification and the FastAPI endpoint.

The router lives in :mod:`responder.webhook.router` and is imported from
there; it depends on the pipeline, which itself depends on this package.
"""

from responder.webhook.signature import SignatureVerifier, compute_signature

__all__ = ["SignatureVerifier", "compute_signature"]
