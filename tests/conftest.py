import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, List
from unittest.mock import AsyncMock, MagicMock

import pytest

_root = Path(__file__).resolve().parents[1]
_src = _root / "src"
if _src.exists() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from guruspeaks.services.session_store import SessionStore  # noqa: E402

DEFAULT_DIGEST = "User begins the session calm and curious."


def completion(text: str | None) -> SimpleNamespace:
    """Build an object shaped like an OpenAI chat completion with one choice."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def empty_completion() -> SimpleNamespace:
    return SimpleNamespace(choices=[])


def sent_messages(create: AsyncMock, call_index: int = -1) -> List[dict[str, Any]]:
    """Return the `messages` argument of one recorded create() call."""
    return create.call_args_list[call_index].kwargs["messages"]


@pytest.fixture
def store() -> SessionStore:
    """Fresh SessionStore with the default window of 6 turns."""
    return SessionStore(max_history=6, default_digest=DEFAULT_DIGEST)


@pytest.fixture
def model_client() -> MagicMock:
    """Mock AsyncOpenAI client exposing chat.completions.create as an AsyncMock."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion("ok"))
    return client
