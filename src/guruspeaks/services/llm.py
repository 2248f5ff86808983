import logging
from typing import Any

from openai import AsyncOpenAI

from ..settings import get_settings

logger = logging.getLogger(__name__)

_CLIENT: AsyncOpenAI | None = None


def make_model_client() -> AsyncOpenAI:
    """Construct an AsyncOpenAI client from settings. Calls are attempted exactly once."""
    settings = get_settings()
    return AsyncOpenAI(
        api_key=settings.model_api_key,
        base_url=settings.model_base_url,
        timeout=settings.model_timeout_seconds,
        max_retries=0,
    )


def get_model_client() -> AsyncOpenAI:
    """Return the shared model client (created on first use)."""
    global _CLIENT
    if _CLIENT is None:
        _CLIENT = make_model_client()
    return _CLIENT


async def close_model_client() -> None:
    """Close the shared model client. Idempotent."""
    global _CLIENT
    if _CLIENT is not None:
        await _CLIENT.close()
        _CLIENT = None
        logger.debug("Model client closed")


def first_completion_text(completion: Any) -> str | None:
    """Return the trimmed text of the first choice, or None if the response has none."""
    choices = getattr(completion, "choices", None)
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    if not isinstance(content, str):
        return None
    return content.strip() or None
