from unittest.mock import MagicMock

import httpx
import openai
import pytest

from conftest import completion, empty_completion, sent_messages
from guruspeaks.chat import NO_REPLY_PLACEHOLDER, ReplyEngine
from guruspeaks.errors import ReplyUnavailableError
from guruspeaks.services.session_store import SessionStore

PERSONA = "You are The Guru."


def make_engine(client: MagicMock, store: SessionStore, **kwargs) -> ReplyEngine:
    return ReplyEngine(client=client, store=store, persona=PERSONA, model="gpt-4o", **kwargs)


@pytest.mark.asyncio
async def test_reply_composes_prompt_in_order(model_client: MagicMock, store: SessionStore) -> None:
    """Persona, digest note, history (with the new turn), then the new message."""
    store.set_digest("s1", "User is curious.")
    engine = make_engine(model_client, store)

    await engine.reply("s1", "Who am I?")

    assert sent_messages(model_client.chat.completions.create) == [
        {"role": "system", "content": PERSONA},
        {"role": "system", "content": "Context summary: User is curious."},
        {"role": "user", "content": "Who am I?"},
        {"role": "user", "content": "Who am I?"},
    ]


@pytest.mark.asyncio
async def test_reply_sampling_configuration(model_client: MagicMock, store: SessionStore) -> None:
    engine = make_engine(model_client, store, temperature=0.9, presence_penalty=0.4, max_tokens=700)
    await engine.reply("s1", "hi")

    kwargs = model_client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["temperature"] == 0.9
    assert kwargs["presence_penalty"] == 0.4
    assert kwargs["max_tokens"] == 700
    assert "stop" not in kwargs


@pytest.mark.asyncio
async def test_reply_passes_stop_sequences_when_configured(
    model_client: MagicMock, store: SessionStore
) -> None:
    engine = make_engine(model_client, store, stop=["\nUser:"])
    await engine.reply("s1", "hi")
    assert model_client.chat.completions.create.call_args.kwargs["stop"] == ["\nUser:"]


@pytest.mark.asyncio
async def test_reply_trims_and_records_assistant_turn(
    model_client: MagicMock, store: SessionStore
) -> None:
    model_client.chat.completions.create.return_value = completion("\n  I hear you.  \n")
    engine = make_engine(model_client, store)

    reply = await engine.reply("s1", "I'm tired")

    assert reply == "I hear you."
    history = store.history("s1")
    assert [(t.role, t.content) for t in history] == [
        ("user", "I'm tired"),
        ("assistant", "I hear you."),
    ]


@pytest.mark.asyncio
async def test_reply_placeholder_when_no_completion(
    model_client: MagicMock, store: SessionStore
) -> None:
    model_client.chat.completions.create.return_value = empty_completion()
    engine = make_engine(model_client, store)

    assert await engine.reply("s1", "hello?") == NO_REPLY_PLACEHOLDER
    assert store.history("s1")[-1].content == NO_REPLY_PLACEHOLDER


@pytest.mark.asyncio
async def test_reply_failure_raises_unavailable(model_client: MagicMock, store: SessionStore) -> None:
    """Upstream errors surface as ReplyUnavailableError and no assistant turn is recorded."""
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    model_client.chat.completions.create.side_effect = openai.AuthenticationError(
        "bad key", response=httpx.Response(401, request=request), body=None
    )
    engine = make_engine(model_client, store)

    with pytest.raises(ReplyUnavailableError):
        await engine.reply("s1", "hello")

    assert [t.role for t in store.history("s1")] == ["user"]


@pytest.mark.asyncio
async def test_history_stays_bounded_across_turns(model_client: MagicMock, store: SessionStore) -> None:
    engine = make_engine(model_client, store)
    for i in range(8):
        await engine.reply("s1", f"message {i}")
        assert len(store.history("s1")) <= 6

    prompt = sent_messages(model_client.chat.completions.create)
    # persona + digest + full window + new message
    assert len(prompt) == 2 + 6 + 1
