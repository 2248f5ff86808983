"""Chat package for The Guru Speaks.

Exposes the two-step chat pipeline (digest refresh, then reply) and a
process-wide instance wired from settings.
"""

from __future__ import annotations

from ..services.llm import get_model_client
from ..services.session_store import get_session_store
from ..settings import get_settings
from .pipeline import ChatPipeline, TurnResult
from .reply_engine import NO_REPLY_PLACEHOLDER, ReplyEngine
from .summarizer import Summarizer

_PIPELINE: ChatPipeline | None = None


def get_chat_pipeline() -> ChatPipeline:
    """Return the process-wide ChatPipeline (created on first use)."""
    global _PIPELINE
    if _PIPELINE is None:
        settings = get_settings()
        client = get_model_client()
        store = get_session_store()
        _PIPELINE = ChatPipeline(
            store=store,
            summarizer=Summarizer(
                client=client,
                store=store,
                model=settings.summary_model,
                instruction=settings.summary_prompt,
                max_tokens=settings.summary_max_tokens,
            ),
            reply_engine=ReplyEngine(
                client=client,
                store=store,
                persona=settings.load_persona(),
                model=settings.reply_model,
                temperature=settings.temperature,
                presence_penalty=settings.presence_penalty,
                max_tokens=settings.max_tokens,
                stop=settings.stop_sequences,
            ),
        )
    return _PIPELINE


__all__ = [
    "NO_REPLY_PLACEHOLDER",
    "ChatPipeline",
    "ReplyEngine",
    "Summarizer",
    "TurnResult",
    "get_chat_pipeline",
]
