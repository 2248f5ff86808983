import logging
from typing import Any, Dict, List, Sequence

from openai import AsyncOpenAI, OpenAIError

from ..errors import ReplyUnavailableError
from ..models import Turn
from ..services.llm import first_completion_text
from ..services.session_store import SessionStore

logger = logging.getLogger(__name__)

NO_REPLY_PLACEHOLDER = "(no reply)"


class ReplyEngine:
    """Composes the persona prompt for a session and produces the visible reply."""

    def __init__(
        self,
        client: AsyncOpenAI,
        store: SessionStore,
        persona: str,
        model: str,
        temperature: float = 0.9,
        presence_penalty: float = 0.4,
        max_tokens: int = 700,
        stop: Sequence[str] = (),
    ) -> None:
        self._client = client
        self._store = store
        self._persona = persona
        self._model = model
        self._temperature = temperature
        self._presence_penalty = presence_penalty
        self._max_tokens = max_tokens
        self._stop = list(stop)

    def accept(self, session_id: str, message: str) -> None:
        """Record the user's message as the newest turn of the session."""
        self._store.append_turn(session_id, Turn(role="user", content=message))

    def build_messages(self, session_id: str, message: str) -> List[Dict[str, str]]:
        """Persona, digest note, bounded history, then the new user message."""
        messages = [
            {"role": "system", "content": self._persona},
            {"role": "system", "content": f"Context summary: {self._store.get_digest(session_id)}"},
        ]
        messages.extend(turn.as_message() for turn in self._store.history(session_id))
        messages.append({"role": "user", "content": message})
        return messages

    def _sampling(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": self._model,
            "temperature": self._temperature,
            "presence_penalty": self._presence_penalty,
            "max_tokens": self._max_tokens,
        }
        if self._stop:
            params["stop"] = self._stop
        return params

    async def respond(self, session_id: str, message: str) -> str:
        """Call the reply model for an already-recorded user message.

        Raises:
            ReplyUnavailableError: the model call failed or returned an unusable response.
        """
        messages = self.build_messages(session_id, message)
        try:
            completion = await self._client.chat.completions.create(
                messages=messages,
                **self._sampling(),
            )
            reply = first_completion_text(completion) or NO_REPLY_PLACEHOLDER
        except (OpenAIError, ConnectionError, TimeoutError, AttributeError, TypeError) as e:
            logger.exception("Reply model error for session %s: %s", session_id, e)
            raise ReplyUnavailableError(str(e)) from e

        self._store.append_turn(session_id, Turn(role="assistant", content=reply))
        return reply

    async def reply(self, session_id: str, message: str) -> str:
        """Record the user turn, then produce and record the assistant reply."""
        self.accept(session_id, message)
        return await self.respond(session_id, message)
