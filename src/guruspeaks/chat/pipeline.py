import logging
from dataclasses import dataclass

from ..services.session_store import SessionStore
from .reply_engine import ReplyEngine
from .summarizer import Summarizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnResult:
    """Outcome of one chat turn."""

    session_id: str
    reply: str
    digest: str


class ChatPipeline:
    """Two-step chat turn: best-effort digest refresh, then the required reply.

    The whole turn runs under the session's lock, so turns addressed to one
    session never interleave while different sessions run concurrently.
    """

    def __init__(self, store: SessionStore, summarizer: Summarizer, reply_engine: ReplyEngine) -> None:
        self._store = store
        self._summarizer = summarizer
        self._reply_engine = reply_engine

    async def run_turn(self, session_id: str, message: str) -> TurnResult:
        """Handle one user message for session_id.

        Raises:
            ReplyUnavailableError: the reply step failed. The digest step never raises.
        """
        async with self._store.lock(session_id):
            self._reply_engine.accept(session_id, message)
            digest = await self._summarizer.summarize(session_id, message)
            reply = await self._reply_engine.respond(session_id, message)
        logger.info("Session %s turn complete (%d chars)", session_id, len(reply))
        return TurnResult(session_id=session_id, reply=reply, digest=digest)
