from types import SimpleNamespace

import httpx
import openai
import pytest

from app.config import Settings
from app.errors import GenerationError
from app.generation import (
    SYSTEM_PROMPT,
    GenerationClient,
    build_messages,
    normalize_azure_endpoint,
)
from db.models import Message


class FakeCompletions:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.response


def fake_client(response=None, error=None):
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(response, error)))


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def msg(role, content):
    return Message(session_id="s1", role=role, content=content)


@pytest.fixture
def settings():
    return Settings(generation_api_key="test-key", generation_model="test-model")


def test_build_messages_does_not_repeat_persisted_user_turn():
    history = [msg("user", "hi"), msg("assistant", "hello!"), msg("user", "how are you?")]
    messages = build_messages(history, "how are you?")
    assert messages == [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello!"},
        {"role": "user", "content": "how are you?"},
    ]


def test_build_messages_with_empty_history():
    assert build_messages([], "hello") == [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "hello"},
    ]


def test_build_messages_appends_new_message_missing_from_history():
    messages = build_messages([msg("user", "earlier"), msg("assistant", "ok")], "new")
    assert messages[-1] == {"role": "user", "content": "new"}
    assert len(messages) == 4


async def test_generate_returns_first_choice_text(settings):
    client = fake_client(response=completion("generated text"))
    generator = GenerationClient(settings, client=client)

    reply = await generator.generate([msg("user", "hello")], "hello")

    assert reply == "generated text"
    sent = client.chat.completions.kwargs
    assert sent["model"] == "test-model"
    assert sent["messages"][-1] == {"role": "user", "content": "hello"}


async def test_network_failure_raises_generation_error(settings):
    request = httpx.Request("POST", "https://example.test/chat/completions")
    client = fake_client(error=openai.APIConnectionError(request=request))
    generator = GenerationClient(settings, client=client)

    with pytest.raises(GenerationError) as exc_info:
        await generator.generate([], "hello")
    assert isinstance(exc_info.value.__cause__, openai.APIConnectionError)


async def test_error_status_raises_generation_error(settings):
    request = httpx.Request("POST", "https://example.test/chat/completions")
    response = httpx.Response(503, request=request)
    error = openai.InternalServerError("unavailable", response=response, body=None)
    generator = GenerationClient(settings, client=fake_client(error=error))

    with pytest.raises(GenerationError):
        await generator.generate([], "hello")


@pytest.mark.parametrize(
    "response",
    [
        SimpleNamespace(choices=[]),
        SimpleNamespace(),
        completion(None),
        completion(""),
        SimpleNamespace(choices=[SimpleNamespace(message=None)]),
    ],
)
async def test_malformed_response_raises_generation_error(settings, response):
    generator = GenerationClient(settings, client=fake_client(response=response))
    with pytest.raises(GenerationError):
        await generator.generate([], "hello")


def test_foundry_endpoint_normalized_to_classic():
    endpoint, version = normalize_azure_endpoint(
        "https://myres.services.ai.azure.com/models", "2025-04-14"
    )
    assert endpoint == "https://myres.openai.azure.com"
    assert version == "2024-08-01-preview"


def test_classic_endpoint_left_alone():
    endpoint, version = normalize_azure_endpoint("https://myres.openai.azure.com", "2024-06-01")
    assert (endpoint, version) == ("https://myres.openai.azure.com", "2024-06-01")


def test_default_client_targets_configured_base_url(settings):
    generator = GenerationClient(settings)
    assert isinstance(generator.client, openai.AsyncOpenAI)
    assert str(generator.client.base_url).startswith("https://generativelanguage.googleapis.com")


def test_azure_endpoint_selects_azure_client():
    settings = Settings(
        generation_api_key="test-key",
        azure_openai_endpoint="https://myres.openai.azure.com",
    )
    generator = GenerationClient(settings)
    assert isinstance(generator.client, openai.AsyncAzureOpenAI)
