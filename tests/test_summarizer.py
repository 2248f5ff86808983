from unittest.mock import MagicMock

import httpx
import openai
import pytest

from conftest import DEFAULT_DIGEST, completion, empty_completion, sent_messages
from guruspeaks.chat import Summarizer
from guruspeaks.models import Turn
from guruspeaks.services.session_store import SessionStore

INSTRUCTION = "Summarise the emotional state and main topic in one short sentence."


@pytest.fixture
def summarizer(model_client: MagicMock, store: SessionStore) -> Summarizer:
    return Summarizer(
        client=model_client,
        store=store,
        model="gpt-4o-mini",
        instruction=INSTRUCTION,
        max_tokens=40,
    )


@pytest.mark.asyncio
async def test_summarize_updates_digest(
    summarizer: Summarizer, model_client: MagicMock, store: SessionStore
) -> None:
    """A successful call replaces the digest with the trimmed model text."""
    model_client.chat.completions.create.return_value = completion("  User feels lonely tonight.  ")
    digest = await summarizer.summarize("s1", "I feel alone")
    assert digest == "User feels lonely tonight."
    assert store.get_digest("s1") == "User feels lonely tonight."


@pytest.mark.asyncio
async def test_summarize_request_shape(
    summarizer: Summarizer, model_client: MagicMock, store: SessionStore
) -> None:
    """Instruction first, then history, then the new message, with a small token budget."""
    store.append_turn("s1", Turn(role="user", content="earlier"))
    store.append_turn("s1", Turn(role="assistant", content="reply"))
    await summarizer.summarize("s1", "now")

    kwargs = model_client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["max_tokens"] == 40
    assert sent_messages(model_client.chat.completions.create) == [
        {"role": "system", "content": INSTRUCTION},
        {"role": "user", "content": "earlier"},
        {"role": "assistant", "content": "reply"},
        {"role": "user", "content": "now"},
    ]


@pytest.mark.asyncio
async def test_summarize_keeps_digest_on_upstream_error(
    summarizer: Summarizer, model_client: MagicMock, store: SessionStore
) -> None:
    """Upstream failure is swallowed and the previous digest is retained."""
    store.set_digest("s1", "User is hopeful.")
    model_client.chat.completions.create.side_effect = openai.APIConnectionError(
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    )
    digest = await summarizer.summarize("s1", "hello")
    assert digest == "User is hopeful."
    assert store.get_digest("s1") == "User is hopeful."


@pytest.mark.asyncio
async def test_summarize_keeps_digest_on_timeout(
    summarizer: Summarizer, model_client: MagicMock, store: SessionStore
) -> None:
    model_client.chat.completions.create.side_effect = TimeoutError("slow")
    assert await summarizer.summarize("s1", "hello") == DEFAULT_DIGEST


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [empty_completion(), completion(None), completion("   ")])
async def test_summarize_keeps_digest_on_malformed_response(
    summarizer: Summarizer, model_client: MagicMock, store: SessionStore, response: object
) -> None:
    model_client.chat.completions.create.return_value = response
    assert await summarizer.summarize("s1", "hello") == DEFAULT_DIGEST
    assert store.get_digest("s1") == DEFAULT_DIGEST
