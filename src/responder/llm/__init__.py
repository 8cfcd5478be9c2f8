"""Reply generation: Anthropic client, prompts, generator, and result models."""

from responder.llm.client import DEFAULT_MODEL, get_anthropic_client
from responder.llm.generator import ReplyGenerator, build_system_prompt, build_user_prompt
from responder.llm.models import GeneratedReply

__all__ = [
    "DEFAULT_MODEL",
    "GeneratedReply",
    "ReplyGenerator",
    "build_system_prompt",
    "build_user_prompt",
    "get_anthropic_client",
]
