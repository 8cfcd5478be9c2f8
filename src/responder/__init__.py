"""Inbound email responder: webhook in, threaded LLM reply out."""
