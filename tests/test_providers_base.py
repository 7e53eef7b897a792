"""
Test the base provider interface helpers.
"""

import pytest

from chatrelay.providers.base import BaseProvider, emit_token
from chatrelay.storage.models import Message

from conftest import ScriptedProvider


def test_format_messages_prepends_system_prompt():
    """Test the system prompt goes first and roles are kept."""
    messages = [
        Message(role="user", content="Hi"),
        Message(role="assistant", content="Hello"),
    ]

    formatted = BaseProvider.format_messages(messages, "Be kind.")

    assert formatted == [
        {"role": "system", "content": "Be kind."},
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello"},
    ]


def test_format_messages_without_system_prompt():
    formatted = BaseProvider.format_messages([Message(role="user", content="Hi")])
    assert formatted == [{"role": "user", "content": "Hi"}]


def test_provider_name_derived_from_class():
    assert ScriptedProvider().name == "scripted"


@pytest.mark.asyncio
async def test_emit_token_sync_and_async():
    received = []

    async def async_callback(token):
        received.append(("async", token))

    await emit_token(None, "ignored")
    await emit_token(lambda token: received.append(("sync", token)), "a")
    await emit_token(async_callback, "b")

    assert received == [("sync", "a"), ("async", "b")]


@pytest.mark.asyncio
async def test_complete_stream_concatenates_in_order():
    provider = ScriptedProvider([["x", "y", "z"]])
    tokens = []

    text = await provider.complete_stream([Message(role="user", content="go")], on_token=tokens.append)

    assert text == "xyz"
    assert tokens == ["x", "y", "z"]


@pytest.mark.asyncio
async def test_complete_stream_propagates_errors():
    provider = ScriptedProvider([["x", RuntimeError("stream broke")]])
    tokens = []

    with pytest.raises(RuntimeError):
        await provider.complete_stream([], on_token=tokens.append)

    assert tokens == ["x"]
