from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class Turn:
    """One message in a conversation, tagged with its speaker role."""

    role: Role
    content: str

    def as_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class SessionState:
    """Per-session conversation state (bounded history and context digest)."""

    session_id: str
    digest: str
    history: List[Turn] = field(default_factory=list)


@dataclass(frozen=True)
class RelayResponse:
    """Normalized backend response: the HTTP status to answer with and its JSON payload."""

    status_code: int
    payload: Any


class ChatRequest(BaseModel):
    """Body of POST /chat. `message` is validated by the route, not the model."""

    model_config = ConfigDict(populate_by_name=True)

    message: str | None = None
    session_id: str | None = Field(default=None, alias="sessionId")
    user_name: str | None = Field(default=None, alias="userName")


class RelayRequest(BaseModel):
    """Body of POST /supabase."""

    url: str | None = None
    method: str = "GET"
    body: Any = None
