"""Anthropic client factory and model configuration for reply generation."""

from anthropic import Anthropic

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_MAX_TOKENS = 1024
DEFAULT_TIMEOUT_SECONDS = 25.0


def get_anthropic_client(api_key: str, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Anthropic:
    """Create an Anthropic client for the completion service.

    The SDK's own retries are disabled (``max_retries=0``); every call goes
    through the shared ``RetryExecutor`` instead.

    Args:
        api_key: The Anthropic API key.
        timeout: Per-request timeout in seconds.

    Returns:
        Configured Anthropic client instance.
    """
    return Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
