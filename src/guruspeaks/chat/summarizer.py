import logging
from typing import Dict, List

from openai import AsyncOpenAI, OpenAIError

from ..services.llm import first_completion_text
from ..services.session_store import SessionStore

logger = logging.getLogger(__name__)


class Summarizer:
    """Best-effort one-sentence digest of the session's emotional state and topic."""

    def __init__(
        self,
        client: AsyncOpenAI,
        store: SessionStore,
        model: str,
        instruction: str,
        max_tokens: int = 40,
    ) -> None:
        self._client = client
        self._store = store
        self._model = model
        self._instruction = instruction
        self._max_tokens = max_tokens

    def build_messages(self, session_id: str, message: str) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": self._instruction}]
        messages.extend(turn.as_message() for turn in self._store.history(session_id))
        messages.append({"role": "user", "content": message})
        return messages

    async def summarize(self, session_id: str, message: str) -> str:
        """Refresh the session digest and return the digest now in effect.

        Any failure keeps the previous digest; nothing is raised.
        """
        previous = self._store.get_digest(session_id)
        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=self.build_messages(session_id, message),
                max_tokens=self._max_tokens,
            )
        except (OpenAIError, ConnectionError, TimeoutError) as e:
            logger.warning("Summary update failed for session %s: %s", session_id, e)
            return previous

        digest = first_completion_text(completion)
        if digest is None:
            logger.warning("Summary response for session %s had no text; keeping digest", session_id)
            return previous

        self._store.set_digest(session_id, digest)
        logger.debug("Session %s digest: %s", session_id, digest)
        return digest
